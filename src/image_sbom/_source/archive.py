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

"""Images stored as `docker save` archives.

The archive holds a `manifest.json` listing, for each image, its config blob
and its layer archives in image order. The config blob records the
uncompressed digest of every layer (`rootfs.diff_ids`) and the build history
from which the layer creation times are read.
"""

from collections.abc import Iterator
import contextlib
import json
import logging
import pathlib
import tarfile
from typing import Any, BinaryIO

from typing_extensions import override

from image_sbom._hashing import memory
from image_sbom._source import source
from image_sbom.errors import ImageUnavailable
from image_sbom.errors import LayerExtractionFailure


logger = logging.getLogger(__name__)


class ArchiveImageSource(source.ImageSource):
    """Image source reading a `docker save` tarball."""

    def __init__(
        self, archive_path: pathlib.Path, reference: str | None = None
    ):
        """Initializes the source.

        The archive is only read on the first call to `digest()` or
        `layers()`.

        Args:
            archive_path: Path to the archive.
            reference: The image reference to report. Defaults to the first
              tag recorded in the archive, or the archive name.
        """
        self._archive_path = pathlib.Path(archive_path)
        self._reference = reference
        self._manifest: dict[str, Any] | None = None
        self._config: dict[str, Any] = {}
        self._config_digest = ""

    @property
    @override
    def reference(self) -> str:
        if self._reference is None:
            tags = self._load().get("RepoTags") or []
            self._reference = tags[0] if tags else self._archive_path.name
        return self._reference

    @override
    def digest(self) -> str:
        self._load()
        return self._config_digest

    @override
    def layers(self) -> list[source.LayerSource]:
        manifest = self._load()
        paths = manifest["Layers"]
        diff_ids = self._config["rootfs"].get("diff_ids") or []
        if len(diff_ids) != len(paths):
            logger.warning(
                "Archive lists %d layers but config has %d diff ids",
                len(paths),
                len(diff_ids),
            )
            diff_ids = [_layer_id_from_path(path) for path in paths]
        created = self._layer_creation_times(len(paths))

        return [
            source.LayerSource(
                index=index,
                layer_id=diff_ids[index],
                created=created[index],
                opener=self._opener(path),
            )
            for index, path in enumerate(paths)
        ]

    def _load(self) -> dict[str, Any]:
        """Reads, checks and caches the manifest and config of the archive."""
        if self._manifest is not None:
            return self._manifest

        logger.debug("Reading image archive %s", self._archive_path)
        try:
            with tarfile.open(self._archive_path, "r") as tar:
                manifests = json.loads(_read_member(tar, "manifest.json"))
                if not isinstance(manifests, list) or not manifests:
                    raise ImageUnavailable(
                        f"No image listed in {self._archive_path}"
                    )
                manifest = manifests[0]
                if not isinstance(manifest, dict) or not isinstance(
                    manifest.get("Config"), str
                ):
                    raise ImageUnavailable("Manifest has no Config path")
                config_bytes = _read_member(tar, manifest["Config"])
        except (OSError, tarfile.TarError, KeyError, TypeError) as e:
            raise ImageUnavailable(
                f"Cannot read image archive {self._archive_path}: {e}"
            ) from e
        except ValueError as e:
            raise ImageUnavailable(
                f"Invalid metadata in image archive {self._archive_path}: {e}"
            ) from e

        try:
            config = json.loads(config_bytes)
        except ValueError as e:
            raise ImageUnavailable(f"Invalid image config: {e}") from e

        _check_manifest(manifest)
        _check_config(config)
        self._config = config
        self._config_digest = str(memory.digest(config_bytes))
        self._manifest = manifest
        return manifest

    def _layer_creation_times(self, count: int) -> list[str]:
        """Matches history entries that created a layer with the layers."""
        history = [
            entry
            for entry in self._config.get("history") or []
            if not entry.get("empty_layer", False)
        ]
        if len(history) == count:
            return [str(entry.get("created", "")) for entry in history]
        return [str(self._config.get("created", ""))] * count

    def _opener(self, member_path: str):
        @contextlib.contextmanager
        def open_layer() -> Iterator[BinaryIO]:
            try:
                tar = tarfile.open(self._archive_path, "r")
            except (OSError, tarfile.TarError) as e:
                raise LayerExtractionFailure(
                    f"Cannot open image archive {self._archive_path}: {e}"
                ) from e
            with tar:
                try:
                    stream = tar.extractfile(member_path)
                except KeyError as e:
                    raise LayerExtractionFailure(
                        f"Layer {member_path} missing from archive"
                    ) from e
                if stream is None:
                    raise LayerExtractionFailure(
                        f"Layer {member_path} is not a regular file"
                    )
                with stream:
                    yield stream

        return open_layer


def _read_member(tar: tarfile.TarFile, name: str) -> bytes:
    stream = tar.extractfile(name)
    if stream is None:
        raise KeyError(name)
    with stream:
        return stream.read()


def _is_list_of(value: Any, item_type: type) -> bool:
    return isinstance(value, list) and all(
        isinstance(item, item_type) for item in value
    )


def _check_manifest(manifest: dict[str, Any]) -> None:
    """Checks the manifest entry fields used by `ArchiveImageSource`.

    Raises:
        ImageUnavailable: A field does not have the expected shape.
    """
    if not _is_list_of(manifest.get("Layers"), str):
        raise ImageUnavailable("Manifest Layers must be a list of paths")
    if not _is_list_of(manifest.get("RepoTags") or [], str):
        raise ImageUnavailable("Manifest RepoTags must be a list of tags")


def _check_config(config: Any) -> None:
    """Checks the image config fields used by `ArchiveImageSource`.

    Raises:
        ImageUnavailable: A field does not have the expected shape.
    """
    if not isinstance(config, dict):
        raise ImageUnavailable("Image config must be a JSON object")
    rootfs = config.get("rootfs")
    if not isinstance(rootfs, dict):
        raise ImageUnavailable("Image config rootfs must be an object")
    if not _is_list_of(rootfs.get("diff_ids") or [], str):
        raise ImageUnavailable("Image config diff_ids must be a list of ids")
    if not _is_list_of(config.get("history") or [], dict):
        raise ImageUnavailable("Image config history must be a list of objects")


def _layer_id_from_path(path: str) -> str:
    """Derives a layer id from the path of its archive.

    OCI style archives store layers as `blobs/sha256/<hex>`, older ones as
    `<hex>/layer.tar`.
    """
    parts = pathlib.PurePosixPath(path).parts
    if len(parts) >= 3 and parts[-3] == "blobs":
        return f"{parts[-2]}:{parts[-1]}"
    if len(parts) >= 2 and parts[-1] == "layer.tar":
        return f"sha256:{parts[-2]}"
    return path
