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

"""Digest engines for data held in memory.

Example usage:
```python
>>> hasher = SHA256()
>>> hasher.update(b"abcd")
>>> digest = hasher.compute()
>>> str(digest)
'sha256:88d4266fd4e6338d13b845fcf289579d209c897823b9217da3e161936f031589'
```

For one-shot hashing of a byte string use `digest`:
```python
>>> str(digest(b"abcd"))
'sha256:88d4266fd4e6338d13b845fcf289579d209c897823b9217da3e161936f031589'
```
"""

from collections.abc import Callable
import hashlib
from typing import Any, ClassVar

import blake3
from typing_extensions import override

from image_sbom._hashing import hashing


class _LibraryEngine(hashing.StreamingHashEngine):
    """Adapts a `hashlib` style constructor to a `StreamingHashEngine`.

    Subclasses name the algorithm and the constructor to call.
    """

    name: ClassVar[str]
    _new: ClassVar[Callable[[bytes], Any]]

    def __init__(self, initial_data: bytes = b""):
        """Initializes the engine.

        Args:
            initial_data: Optional initial data to hash.
        """
        self._hasher = self._new(initial_data)

    @override
    def update(self, data: bytes) -> None:
        self._hasher.update(data)

    @override
    def reset(self, data: bytes = b"") -> None:
        self._hasher = self._new(data)

    @override
    def compute(self) -> hashing.Digest:
        return hashing.Digest(self.name, self._hasher.digest())

    @property
    @override
    def digest_name(self) -> str:
        return self.name


class SHA256(_LibraryEngine):
    """SHA-256, the default for file checksums."""

    name = "sha256"
    _new = staticmethod(hashlib.sha256)


class BLAKE2(_LibraryEngine):
    """BLAKE2b with its full 64 byte digest."""

    name = "blake2b"
    _new = staticmethod(hashlib.blake2b)


class BLAKE3(_LibraryEngine):
    name = "blake3"
    _new = staticmethod(blake3.blake3)


# Engines selectable by name, e.g. from the command line.
ENGINES: dict[str, Callable[[], hashing.StreamingHashEngine]] = {
    engine_type.name: engine_type for engine_type in (SHA256, BLAKE2, BLAKE3)
}


def engine(algorithm: str = "sha256") -> hashing.StreamingHashEngine:
    """Builds a fresh streaming engine for the named algorithm.

    Raises:
        ValueError: The algorithm is not supported.
    """
    try:
        return ENGINES[algorithm]()
    except KeyError:
        raise ValueError(
            f"Unsupported hash algorithm '{algorithm}', expected one of "
            f"{sorted(ENGINES)}"
        ) from None


def digest(data: bytes, algorithm: str = "sha256") -> hashing.Digest:
    """Computes the digest of `data` in one call.

    This is a pure function: the same input always produces the same digest.
    """
    hasher = engine(algorithm)
    hasher.update(data)
    return hasher.compute()
