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

import io

import pytest

from image_sbom._hashing import io as io_hashing
from image_sbom._hashing import memory


class TestStreamHasher:
    def test_fails_with_negative_chunk_size(self):
        with pytest.raises(ValueError, match="Chunk size must be positive"):
            io_hashing.StreamHasher(
                io.BytesIO(b""), memory.SHA256(), chunk_size=-2
            )

    @pytest.mark.parametrize("chunk_size", [1, 3, 7, 8192])
    def test_digest_does_not_depend_on_chunk_size(self, chunk_size):
        data = b"This is a simple file" * 10
        hasher = io_hashing.StreamHasher(
            io.BytesIO(data), memory.SHA256(), chunk_size=chunk_size
        )
        assert hasher.compute() == memory.digest(data)
        assert hasher.bytes_read == len(data)

    def test_empty_stream(self):
        hasher = io_hashing.StreamHasher(io.BytesIO(b""), memory.SHA256())
        assert hasher.compute() == memory.digest(b"")
        assert hasher.bytes_read == 0

    def test_digest_name_follows_content_hasher(self):
        hasher = io_hashing.StreamHasher(io.BytesIO(b"x"), memory.BLAKE2())
        assert hasher.digest_name == "blake2b"
        assert str(hasher.compute()).startswith("blake2b:")
