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

"""Interfaces to the images an SBOM is generated for.

An image source knows the reference and digest of an image and hands out its
layers, in image order, each as a `LayerSource` that can be opened any number
of times. Every `open()` returns an independent stream, so layers can be read
concurrently from different threads.
"""

import abc
from collections.abc import Callable, Iterable, Mapping
import contextlib
import dataclasses
import sys
from typing import BinaryIO, ContextManager


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


@dataclasses.dataclass(frozen=True)
class LayerSource:
    """A single layer of an image.

    Attributes:
        index: Position of the layer in the image, 0 for the base layer.
        layer_id: The content digest identifying the layer.
        created: Creation time of the layer, empty if unknown.
        opener: Callable returning a context manager over the layer archive.
    """

    index: int
    layer_id: str
    created: str
    opener: Callable[[], ContextManager[BinaryIO]] = dataclasses.field(
        repr=False, compare=False
    )

    def open(self) -> ContextManager[BinaryIO]:
        """Opens the layer archive for reading.

        Raises:
            LayerExtractionFailure: The layer cannot be opened.
        """
        return self.opener()


class ImageSource(contextlib.AbstractContextManager, metaclass=abc.ABCMeta):
    """Generic image source.

    Sources may hold resources (temporary files, open handles) that are
    released by `close()`, or by using the source as a context manager.
    """

    @property
    @abc.abstractmethod
    def reference(self) -> str:
        """The reference of the image, as given by the user."""

    @abc.abstractmethod
    def digest(self) -> str:
        """Returns the digest of the image.

        Raises:
            ImageUnavailable: The image cannot be found or read.
        """

    @abc.abstractmethod
    def layers(self) -> list[LayerSource]:
        """Returns the layers of the image, base layer first.

        Raises:
            ImageUnavailable: The image cannot be found or read.
        """

    def close(self) -> None:
        """Releases any resource held by the source."""

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class AliasResolver:
    """Rewrites image references before they are looked up.

    Aliases are matched either on the full reference or on the repository
    part alone, in which case the tag or digest of the reference is kept.
    With `{"ngnix": "nginx"}` both `ngnix` and `ngnix:1.25` resolve, to
    `nginx` and `nginx:1.25` respectively.
    """

    def __init__(self, aliases: Mapping[str, str] | None = None):
        self._aliases = dict(aliases or {})

    @classmethod
    def from_pairs(cls, pairs: Iterable[str]) -> Self:
        """Builds a resolver from `OLD=NEW` strings.

        Raises:
            ValueError: A pair is malformed.
        """
        aliases = {}
        for pair in pairs:
            old, sep, new = pair.partition("=")
            if not sep or not old or not new:
                raise ValueError(f"Expected OLD=NEW alias, got '{pair}'")
            aliases[old] = new
        return cls(aliases)

    def resolve(self, reference: str) -> str:
        if reference in self._aliases:
            return self._aliases[reference]
        repository, suffix = split_reference(reference)
        if repository in self._aliases:
            return self._aliases[repository] + suffix
        return reference


def split_reference(reference: str) -> tuple[str, str]:
    """Splits a reference into repository and tag or digest suffix.

    The suffix keeps its separator, so `nginx:1.25` splits into `nginx` and
    `:1.25` while `localhost:5000/app` has an empty suffix.
    """
    repository, sep, digest = reference.partition("@")
    if sep:
        return repository, sep + digest
    slash = reference.rfind("/")
    colon = reference.rfind(":")
    if colon > slash:
        return reference[:colon], reference[colon:]
    return reference, ""
