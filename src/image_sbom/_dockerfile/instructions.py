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

"""Build instructions, as a closed set of variants.

Only two kinds of instructions carry provenance for the SBOM: environment
assignments (`ENV`) and shell commands (`RUN`). Every other instruction is
kept as `Other` so that it still shows up in the instruction log.

Each variant has a stable textual rendering (see `render`), independent of the
parser used to read the build file:

```python
>>> render(Env((("A", "1"), ("B", "two words"))))
'ENV A=1 B="two words"'
>>> render(Run(("apt-get update && apt-get install -y curl",)))
'RUN apt-get update && apt-get install -y curl'
>>> render(Run(("python", "-m", "http.server"), exec_form=True))
'RUN ["python", "-m", "http.server"]'
```
"""

import dataclasses
import json
import re
from typing import Protocol, TypeAlias


@dataclasses.dataclass(frozen=True)
class Env:
    """An `ENV` instruction: ordered key/value assignments."""

    pairs: tuple[tuple[str, str], ...]


@dataclasses.dataclass(frozen=True)
class Run:
    """A `RUN` instruction.

    Attributes:
        arguments: The command. A single shell string in shell form, the argv
          list in exec form.
        exec_form: Whether the instruction was written as a JSON array.
        flags: Instruction flags, e.g. `--mount=type=cache,target=/root`.
    """

    arguments: tuple[str, ...]
    exec_form: bool = False
    flags: tuple[str, ...] = ()

    @property
    def command(self) -> str:
        """The command text, with exec form arguments joined by spaces."""
        return " ".join(self.arguments)


@dataclasses.dataclass(frozen=True)
class Other:
    """Any instruction that is neither `ENV` nor `RUN`."""

    keyword: str
    arguments: tuple[str, ...] = ()
    exec_form: bool = False
    flags: tuple[str, ...] = ()


Instruction: TypeAlias = Env | Run | Other


class ParsedCommand(Protocol):
    """The fields we use from `dockerfile.Command`."""

    cmd: str
    sub_cmd: str | None
    json: bool
    flags: tuple[str, ...]
    value: tuple[str, ...]


def from_command(command: ParsedCommand) -> Instruction:
    """Converts a parsed build file command to an `Instruction`.

    Raises:
        ValueError: The command arguments do not match the instruction.
    """
    keyword = command.cmd.upper()
    flags = tuple(command.flags)
    value = tuple(command.value)

    match keyword:
        case "ENV":
            if not value or len(value) % 2:
                raise ValueError(
                    f"ENV expects key/value pairs, got {list(value)}"
                )
            return Env(
                tuple(
                    (key, _unquote(val))
                    for key, val in zip(value[0::2], value[1::2])
                )
            )
        case "RUN":
            return Run(value, exec_form=command.json, flags=flags)
        case _:
            if command.sub_cmd:
                value = (command.sub_cmd.upper(), *value)
            return Other(keyword, value, exec_form=command.json, flags=flags)


def render(instruction: Instruction) -> str:
    """Returns the stable textual form of an instruction."""
    match instruction:
        case Env(pairs=pairs):
            assignments = " ".join(f"{k}={_quote(v)}" for k, v in pairs)
            return f"ENV {assignments}"
        case Run(arguments=arguments, exec_form=exec_form, flags=flags):
            return _join("RUN", flags, arguments, exec_form)
        case Other(
            keyword=keyword,
            arguments=arguments,
            exec_form=exec_form,
            flags=flags,
        ):
            return _join(keyword, flags, arguments, exec_form)
        case _:
            raise TypeError(f"Not an instruction: {instruction!r}")


def _join(
    keyword: str,
    flags: tuple[str, ...],
    arguments: tuple[str, ...],
    exec_form: bool,
) -> str:
    parts = [keyword, *flags]
    if exec_form:
        parts.append(json.dumps(list(arguments), ensure_ascii=False))
    elif arguments:
        parts.append(" ".join(arguments))
    return " ".join(parts)


_NEEDS_QUOTES = re.compile(r"[\s\"'\\$]")


def _quote(value: str) -> str:
    if value and not _NEEDS_QUOTES.search(value):
        return value
    return json.dumps(value, ensure_ascii=False)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        inner = value[1:-1]
        if value[0] == '"':
            inner = re.sub(r"\\(.)", r"\1", inner)
        return inner
    return value
