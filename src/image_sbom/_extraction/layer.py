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

"""Streaming extraction of a single image layer.

A layer is a (possibly compressed) tar archive. The archive is read once,
front to back, without seeking: every entry becomes a `sbom.FileRecord` and
regular files are hashed as their payload streams by.

Extraction never raises for malformed layer data. A corrupted or truncated
archive ends the extraction early with an `error` notice; the records
collected up to that point are kept.

Example usage:
```python
>>> extractor = Extractor(watched_paths={"lib/apk/db/installed"})
>>> with open("layer.tar", "rb") as f:
...     extraction = extractor.extract("sha256:abcd", f)
>>> [record.path for record in extraction.files]
['etc', 'etc/hostname', 'lib/apk/db/installed']
>>> extraction.contents.keys()
dict_keys(['lib/apk/db/installed'])
```
"""

from collections.abc import Callable, Iterable, Mapping
import dataclasses
import logging
import lzma
import tarfile
import threading
from typing import BinaryIO
import zlib

from image_sbom import sbom
from image_sbom._hashing import hashing
from image_sbom._hashing import io
from image_sbom._hashing import memory


logger = logging.getLogger(__name__)


# Errors that signal a corrupted or truncated layer archive.
_ARCHIVE_ERRORS = (
    tarfile.TarError,
    EOFError,
    OSError,
    zlib.error,
    lzma.LZMAError,
)


class _LayerMember(tarfile.TarInfo):
    """Remembers the header errors that end a streamed archive."""

    @classmethod
    def fromtarfile(cls, archive):
        try:
            return super().fromtarfile(archive)
        except tarfile.EOFHeaderError:
            raise
        except tarfile.HeaderError as e:
            archive.header_error = e
            raise


class _LayerArchive(tarfile.TarFile):
    """A layer archive read as a stream.

    Past the first block, `tarfile` stops iterating without raising when a
    header is damaged, truncated or missing. Only an all-zero block is a
    proper end of archive; any other stop is kept in `header_error`.
    """

    header_error: tarfile.HeaderError | None = None


def normalize_path(path: str) -> str:
    """Normalizes an archive path for lookups: no leading `./` or `/`."""
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


@dataclasses.dataclass(frozen=True)
class Extraction:
    """The outcome of extracting one layer.

    Attributes:
        files: One record per archive entry, in archive order.
        notices: Problems met during extraction.
        contents: Content of the watched paths found in the layer, keyed by
          normalized path.
        complete: Whether the whole archive was read.
    """

    files: tuple[sbom.FileRecord, ...] = ()
    notices: tuple[sbom.Notice, ...] = ()
    contents: Mapping[str, bytes] = dataclasses.field(default_factory=dict)
    complete: bool = True


class Extractor:
    """Extracts file records from layer archives.

    The same instance can be used concurrently for different layers: all per
    layer state lives in `extract`.
    """

    def __init__(
        self,
        hasher_factory: Callable[
            [], hashing.StreamingHashEngine
        ] = memory.SHA256,
        *,
        watched_paths: Iterable[str] = frozenset(),
        chunk_size: int = 8192,
        max_captured_size: int = 64 * 1024 * 1024,
    ):
        """Initializes an extractor.

        Args:
            hasher_factory: Builds the engine used to hash file content.
            watched_paths: Normalized paths whose content must be captured
              in memory, e.g. package databases.
            chunk_size: How much of a file payload to read at once.
            max_captured_size: Watched files larger than this are hashed but
              not captured.
        """
        self._hasher_factory = hasher_factory
        self._watched_paths = frozenset(watched_paths)
        self._chunk_size = chunk_size
        self._max_captured_size = max_captured_size

    def extract(
        self,
        layer_id: str,
        stream: BinaryIO,
        *,
        cancel: threading.Event | None = None,
    ) -> Extraction:
        """Reads the layer archive from `stream`.

        Args:
            layer_id: Identifier of the layer, used in notices.
            stream: The layer archive, opened for reading in binary mode.
            cancel: When set, extraction stops before the next entry.

        Returns:
            The records of all entries read, with diagnostics.
        """
        files: list[sbom.FileRecord] = []
        notices: list[sbom.Notice] = []
        contents: dict[str, bytes] = {}
        complete = True

        try:
            with _LayerArchive.open(
                fileobj=stream, mode="r|*", tarinfo=_LayerMember
            ) as archive:
                for member in archive:
                    if cancel is not None and cancel.is_set():
                        notices.append(
                            sbom.Notice.warning(
                                f"Extraction of layer {layer_id} cancelled "
                                f"after {len(files)} entries"
                            )
                        )
                        complete = False
                        break
                    files.append(
                        self._record(archive, member, notices, contents)
                    )
                if complete and archive.header_error is not None:
                    raise tarfile.ReadError(
                        f"bad header at offset {archive.offset}: "
                        f"{archive.header_error}"
                    )
        except _ARCHIVE_ERRORS as e:
            logger.warning(
                "Layer %s is unreadable after %d entries: %s",
                layer_id,
                len(files),
                e,
            )
            notices.append(
                sbom.Notice.error(
                    f"Layer archive is corrupted or truncated after "
                    f"{len(files)} entries: {e}"
                )
            )
            complete = False

        logger.debug("Extracted %d entries from layer %s", len(files), layer_id)
        return Extraction(tuple(files), tuple(notices), contents, complete)

    def _record(
        self,
        archive: tarfile.TarFile,
        member: tarfile.TarInfo,
        notices: list[sbom.Notice],
        contents: dict[str, bytes],
    ) -> sbom.FileRecord:
        """Builds the record of a single archive entry."""
        if member.isdir():
            return sbom.FileRecord(member.name, member.size, sbom.FileType.DIR)
        if not member.isfile():
            return sbom.FileRecord(
                member.name, member.size, sbom.FileType.OTHER
            )

        payload = archive.extractfile(member)
        if payload is None:
            raise tarfile.ExtractError(f"Cannot read payload of {member.name}")

        normalized = normalize_path(member.name)
        if normalized in self._watched_paths:
            if member.size <= self._max_captured_size:
                digest, bytes_read = self._capture(
                    payload, normalized, contents
                )
            else:
                notices.append(
                    sbom.Notice.warning(
                        f"{member.name} is too large to be scanned "
                        f"({member.size} bytes)"
                    )
                )
                digest, bytes_read = self._hash(payload)
        else:
            digest, bytes_read = self._hash(payload)

        if bytes_read != member.size:
            notices.append(
                sbom.Notice.warning(
                    f"{member.name}: header declares {member.size} bytes "
                    f"but {bytes_read} were read"
                )
            )

        return sbom.FileRecord(
            member.name, member.size, sbom.FileType.FILE, str(digest)
        )

    def _hash(self, payload: BinaryIO) -> tuple[hashing.Digest, int]:
        hasher = io.StreamHasher(
            payload, self._hasher_factory(), chunk_size=self._chunk_size
        )
        digest = hasher.compute()
        return digest, hasher.bytes_read

    def _capture(
        self, payload: BinaryIO, path: str, contents: dict[str, bytes]
    ) -> tuple[hashing.Digest, int]:
        data = payload.read()
        contents[path] = data
        hasher = self._hasher_factory()
        hasher.update(data)
        return hasher.compute(), len(data)
