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

"""Images held by a local Docker daemon.

The daemon is driven through the `docker` command line client: the image is
looked up with `docker image inspect`, pulled if missing, then exported with
`docker save` into a private staging directory and read from there as an
archive. The staging directory is removed when the source is closed.
"""

from collections.abc import Sequence
import json
import logging
import pathlib
import shutil
import subprocess
import tempfile
from typing import Any

from typing_extensions import override

from image_sbom._source import archive
from image_sbom._source import source
from image_sbom.errors import ImageUnavailable


logger = logging.getLogger(__name__)


def _docker_path(docker: str | None) -> str:
    path = docker or shutil.which("docker")
    if not path:
        raise ImageUnavailable("The docker client was not found on PATH")
    return path


def _run(docker: str, arguments: Sequence[str]) -> str:
    """Runs a docker command and returns its standard output.

    Raises:
        ImageUnavailable: The command cannot be started or fails.
    """
    command = [docker, *arguments]
    logger.debug("Running %s", " ".join(command))
    try:
        proc = subprocess.run(
            command, capture_output=True, text=True, check=False
        )
    except OSError as e:
        raise ImageUnavailable(f"Cannot run {docker}: {e}") from e
    if proc.returncode != 0:
        raise ImageUnavailable(
            f"docker {arguments[0]} failed: {proc.stderr.strip()}"
        )
    return proc.stdout


def build_image(
    dockerfile: pathlib.Path,
    tag: str,
    *,
    context: pathlib.Path | None = None,
    docker: str | None = None,
) -> str:
    """Builds an image from a Dockerfile and returns its tag.

    Args:
        dockerfile: The build description.
        tag: The tag to give to the built image.
        context: The build context. Defaults to the directory of the
          Dockerfile.
        docker: Path to the docker client, looked up on PATH if not given.

    Raises:
        ImageUnavailable: The build failed.
    """
    context = context or dockerfile.parent
    logger.info("Building %s from %s", tag, dockerfile)
    _run(
        _docker_path(docker),
        ["build", "--file", str(dockerfile), "--tag", tag, str(context)],
    )
    return tag


class DockerImageSource(source.ImageSource):
    """Image source backed by the local Docker daemon."""

    def __init__(
        self,
        reference: str,
        *,
        aliases: source.AliasResolver | None = None,
        pull: bool = True,
        docker: str | None = None,
    ):
        """Initializes the source.

        Args:
            reference: The image reference, as given by the user.
            aliases: Rewrites applied to the reference before lookup.
            pull: Whether to pull the image when the daemon lacks it.
            docker: Path to the docker client, looked up on PATH if not
              given.
        """
        self._reference = reference
        self._resolved = (aliases or source.AliasResolver()).resolve(reference)
        if self._resolved != reference:
            logger.info("Resolved %s to %s", reference, self._resolved)
        self._pull = pull
        self._docker = docker
        self._inspect: dict[str, Any] | None = None
        self._staging: tempfile.TemporaryDirectory | None = None
        self._archive: archive.ArchiveImageSource | None = None

    @property
    @override
    def reference(self) -> str:
        return self._resolved

    @override
    def digest(self) -> str:
        info = self._inspect_image()
        for repo_digest in info.get("RepoDigests") or []:
            _, _, digest = repo_digest.partition("@")
            if digest:
                return digest
        return self._exported().digest()

    @override
    def layers(self) -> list[source.LayerSource]:
        return self._exported().layers()

    @override
    def close(self) -> None:
        if self._staging is not None:
            self._staging.cleanup()
            self._staging = None
            self._archive = None

    def _inspect_image(self) -> dict[str, Any]:
        if self._inspect is not None:
            return self._inspect

        docker = _docker_path(self._docker)
        try:
            output = _run(docker, ["image", "inspect", self._resolved])
        except ImageUnavailable:
            if not self._pull:
                raise
            logger.info("Pulling %s", self._resolved)
            _run(docker, ["pull", self._resolved])
            output = _run(docker, ["image", "inspect", self._resolved])

        try:
            info = json.loads(output)
        except ValueError as e:
            raise ImageUnavailable(f"Invalid docker inspect output: {e}") from e
        if not isinstance(info, list) or not info:
            raise ImageUnavailable(f"No image found for {self._resolved}")
        self._inspect = info[0]
        return self._inspect

    def _exported(self) -> archive.ArchiveImageSource:
        """Exports the image into the staging directory, once."""
        if self._archive is not None:
            return self._archive

        self._inspect_image()
        self._staging = tempfile.TemporaryDirectory(prefix="image-sbom-")
        path = pathlib.Path(self._staging.name) / "image.tar"
        logger.info("Exporting %s", self._resolved)
        _run(
            _docker_path(self._docker),
            ["save", "--output", str(path), self._resolved],
        )
        self._archive = archive.ArchiveImageSource(path, self._resolved)
        return self._archive
