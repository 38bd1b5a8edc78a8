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

"""Content digests as recorded in an SBOM.

Every checksum in a document names its algorithm next to the value, e.g.
`sha256:88d4...`, so that a reader never has to guess how it was computed.
`Digest` is that pair; its string form is what gets written to records.

Engines come in two flavors. A `HashEngine` produces one digest from a
source it owns (see `io.StreamHasher`); a `StreamingHashEngine` is fed bytes
by its caller and is what layer extraction hashes file payloads with.
"""

import abc
import dataclasses


@dataclasses.dataclass(frozen=True)
class Digest:
    """An algorithm name and the raw digest it produced."""

    algorithm: str
    value: bytes

    @property
    def hex(self) -> str:
        return self.value.hex()

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.hex}"


class HashEngine(metaclass=abc.ABCMeta):
    """Computes a `Digest`."""

    @abc.abstractmethod
    def compute(self) -> Digest:
        """Computes the digest of the data seen by the engine."""

    @property
    @abc.abstractmethod
    def digest_name(self) -> str:
        """Algorithm prefix of the rendered digests, e.g. `sha256`."""


class StreamingHashEngine(HashEngine):
    """A `HashEngine` fed incrementally by its caller."""

    @abc.abstractmethod
    def update(self, data: bytes) -> None:
        """Appends bytes to the data to be hashed."""

    @abc.abstractmethod
    def reset(self, data: bytes = b"") -> None:
        """Starts over, hashing `data` as the first bytes."""
