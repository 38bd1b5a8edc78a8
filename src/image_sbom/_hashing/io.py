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

"""Machinery for computing digests of readable byte streams.

Layer content is never materialized on disk: entries are read straight from
the layer archive. `StreamHasher` reads a binary stream in chunks and feeds
each chunk to an inner `hashing.StreamingHashEngine`, so the digest does not
depend on the chunk size.

Example usage:
```python
>>> hasher = StreamHasher(io.BytesIO(b"abcd"), memory.SHA256())
>>> digest = hasher.compute()
>>> hasher.bytes_read
4
```
"""

from typing import BinaryIO

from typing_extensions import override

from image_sbom._hashing import hashing


class StreamHasher(hashing.HashEngine):
    """Hash engine over an opened binary stream.

    The stream is owned by the caller and is read until exhausted. The number
    of bytes consumed by the last `compute` call is available as `bytes_read`.
    """

    def __init__(
        self,
        stream: BinaryIO,
        content_hasher: hashing.StreamingHashEngine,
        *,
        chunk_size: int = 8192,
    ):
        """Initializes an instance to hash a stream with a `HashEngine`.

        Args:
            stream: The stream to hash, opened for reading in binary mode.
            content_hasher: A `hashing.StreamingHashEngine` instance used to
              compute the digest of the stream.
            chunk_size: The amount of data to read at once. Default is 8KB.
        """
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}.")

        self._stream = stream
        self._content_hasher = content_hasher
        self._chunk_size = chunk_size
        self._bytes_read = 0

    @property
    def bytes_read(self) -> int:
        """Number of bytes consumed by the last call to `compute`."""
        return self._bytes_read

    @property
    @override
    def digest_name(self) -> str:
        return self._content_hasher.digest_name

    @override
    def compute(self) -> hashing.Digest:
        self._content_hasher.reset()
        self._bytes_read = 0

        while True:
            data = self._stream.read(self._chunk_size)
            if not data:
                break
            self._bytes_read += len(data)
            self._content_hasher.update(data)

        digest = self._content_hasher.compute()
        return hashing.Digest(self.digest_name, digest.value)
