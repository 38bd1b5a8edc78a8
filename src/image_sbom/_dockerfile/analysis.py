# Copyright 2025 The image-sbom Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Provenance analysis of a Dockerfile.

The analysis is independent of the image: it reads the build description
only and reports

- the environment set by `ENV` instructions (last write wins),
- every instruction, rendered in a stable form, in source order,
- a coarse list of "packages": each `&&` separated sub-command of every
  `RUN` instruction, with whitespace normalized.

The package list is a heuristic attribution of provenance. No attempt is
made to understand the shell or the package managers invoked by it.
"""

import logging
import os
import pathlib

import dockerfile

from image_sbom import sbom
from image_sbom._dockerfile import instructions
from image_sbom.errors import BuildAnalysisFailure


logger = logging.getLogger(__name__)


def command_packages(command: str) -> list[sbom.PackageRecord]:
    """Splits a shell command into pseudo-packages.

    ```python
    >>> packages = command_packages("apt-get update &&  apt-get  install curl")
    >>> [p.name for p in packages]
    ['apt-get update', 'apt-get install curl']
    ```
    """
    packages = []
    for part in command.split("&&"):
        tokens = part.split()
        if tokens:
            packages.append(sbom.PackageRecord(name=" ".join(tokens)))
    return packages


def parse(content: str) -> list[instructions.Instruction]:
    """Parses a Dockerfile into instructions.

    Raises:
        BuildAnalysisFailure: The content is not a valid Dockerfile.
    """
    try:
        commands = dockerfile.parse_string(content)
    except dockerfile.GoParseError as e:
        raise BuildAnalysisFailure(f"Cannot parse Dockerfile: {e}") from e

    parsed = []
    for command in commands:
        try:
            parsed.append(instructions.from_command(command))
        except ValueError as e:
            raise BuildAnalysisFailure(
                f"Invalid instruction on line {command.start_line}: {e}"
            ) from e
    return parsed


def analyze(content: str) -> sbom.DockerfileAnalysis:
    """Analyzes the content of a Dockerfile.

    Raises:
        BuildAnalysisFailure: The content is not a valid Dockerfile.
    """
    env: dict[str, str] = {}
    log: list[str] = []
    packages: list[sbom.PackageRecord] = []

    for instruction in parse(content):
        log.append(instructions.render(instruction))
        match instruction:
            case instructions.Env(pairs=pairs):
                env.update(pairs)
            case instructions.Run():
                packages.extend(command_packages(instruction.command))

    logger.debug(
        "Analyzed %d instructions, %d commands", len(log), len(packages)
    )
    return sbom.DockerfileAnalysis(env, tuple(log), tuple(packages))


def analyze_file(path: str | os.PathLike) -> sbom.DockerfileAnalysis:
    """Analyzes the Dockerfile at `path`.

    Raises:
        BuildAnalysisFailure: The file cannot be read or parsed.
    """
    try:
        content = pathlib.Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise BuildAnalysisFailure(f"Cannot read Dockerfile {path}: {e}") from e
    return analyze(content)
