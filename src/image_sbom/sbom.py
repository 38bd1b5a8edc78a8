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

"""An in-memory representation of a container image SBOM.

The document is a tree of frozen dataclasses. Each record serializes its
fields in declaration order, which gives the JSON output a stable layout.

Signing and verification do not use the displayed layout but the canonical
form returned by `SbomDocument.canonical_bytes`: the document without its
`signature` field, with sorted keys and no insignificant whitespace. The
signature therefore never covers its own value.

Example:
```python
>>> layer = LayerRecord(layer_id="sha256:abcd", files=(
...     FileRecord("etc/hostname", 5, FileType.FILE, "sha256:..."),
... ))
>>> document = SbomDocument(name="alpine", ..., layers=(layer,))
>>> document.canonical_bytes()
b'{"created":...}'
```
"""

from collections.abc import Iterable, Mapping
import dataclasses
import enum
import json
import sys
from typing import Any

from image_sbom.errors import SerializationError


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


class FileType(str, enum.Enum):
    """Kind of an archive entry."""

    FILE = "file"
    DIR = "dir"
    OTHER = "other"


class Level(str, enum.Enum):
    """Severity of a `Notice`."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclasses.dataclass(frozen=True)
class FileRecord:
    """A single entry of a layer archive.

    Attributes:
        path: The path of the entry, as written in the layer archive.
        size: The size recorded in the archive header.
        file_type: Whether the entry is a regular file, a directory or
          anything else.
        checksum: The content digest (`algorithm:hex`) for regular files,
          empty string for every other entry type.
    """

    path: str
    size: int
    file_type: FileType
    checksum: str = ""


@dataclasses.dataclass(frozen=True)
class PackageRecord:
    """A package found in a package-manager database or a build file.

    Missing information is always an empty string, never `None`.
    """

    name: str = ""
    version: str = ""
    source: str = ""
    license: str = ""
    vendor: str = ""
    checksum: str = ""


@dataclasses.dataclass(frozen=True)
class Notice:
    """A non-fatal diagnostic attached to a layer."""

    message: str
    level: Level = Level.INFO

    @classmethod
    def info(cls, message: str) -> Self:
        return cls(message, Level.INFO)

    @classmethod
    def warning(cls, message: str) -> Self:
        return cls(message, Level.WARNING)

    @classmethod
    def error(cls, message: str) -> Self:
        return cls(message, Level.ERROR)


@dataclasses.dataclass(frozen=True)
class LayerRecord:
    """Everything learned about one image layer.

    Records are created once per layer and listed in image order, base layer
    first.

    Attributes:
        layer_id: The content digest identifying the layer.
        created: When the layer was created, as recorded by the image config.
        os_guess: Operating system release found in the layer, if any.
        package_format: Name of the package database found in the layer.
        files: One record per archive entry, in archive order.
        packages: Packages parsed from the package database, in database
          order.
        notices: Problems met while extracting or scanning the layer.
        raw_output: Raw text of the package database the packages were
          parsed from.
    """

    layer_id: str
    created: str = ""
    os_guess: str = ""
    package_format: str = ""
    files: tuple[FileRecord, ...] = ()
    packages: tuple[PackageRecord, ...] = ()
    notices: tuple[Notice, ...] = ()
    raw_output: str = ""


@dataclasses.dataclass(frozen=True)
class DockerfileAnalysis:
    """Provenance extracted from the build description of the image.

    Attributes:
        env: Environment assignments, last write wins.
        instructions: Every instruction, rendered in a stable textual form,
          in source order.
        packages: Commands found in shell instructions, attributed as
          packages with only a name.
    """

    env: Mapping[str, str] = dataclasses.field(default_factory=dict)
    instructions: tuple[str, ...] = ()
    packages: tuple[PackageRecord, ...] = ()


@dataclasses.dataclass(frozen=True)
class ToolInfo:
    """The tool that generated the document."""

    vendor: str
    name: str
    version: str


@dataclasses.dataclass
class SbomDocument:
    """The SBOM of a container image.

    After assembly the document is read-only, except for `signature` which
    is set once by the signer.

    Attributes:
        name: Name of the document.
        namespace: Unique URI of the document.
        document_id: Unique identifier of the document.
        created: Creation time of the document (UTC, ISO 8601).
        image: The image reference the document describes.
        image_digest: The digest of the image.
        tool: The tool that produced the document.
        layers: One record per image layer, base layer first.
        dockerfile: Build provenance, when a build description was analyzed.
        signature: Base64 signature over `canonical_bytes()`, if signed.
    """

    name: str
    namespace: str
    document_id: str
    created: str
    image: str
    image_digest: str
    tool: ToolInfo
    layers: tuple[LayerRecord, ...] = ()
    dockerfile: DockerfileAnalysis | None = None
    signature: str | None = None

    def to_dict(self, *, include_signature: bool = True) -> dict[str, Any]:
        """Converts the document to JSON compatible values.

        Args:
            include_signature: Whether to include the `signature` field. The
              field is never present when the document is unsigned.
        """
        result = _to_json_value(self)
        if not include_signature:
            result.pop("signature", None)
        return result

    def to_json(self, *, indent: int | None = 2) -> str:
        """Serializes the document for display or storage."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def canonical_bytes(self) -> bytes:
        """Returns the byte sequence covered by the signature.

        The `signature` field is always left out. Two documents that differ
        only in their signature produce identical bytes.

        Raises:
            SerializationError: The document contains values that cannot be
              represented as JSON.
        """
        try:
            return json.dumps(
                self.to_dict(include_signature=False),
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize document: {e}") from e

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """Rebuilds a document from the output of `to_dict`.

        Raises:
            SerializationError: The data does not describe a document.
        """
        try:
            dockerfile = data.get("dockerfile")
            signature = data.get("signature")
            return cls(
                name=_str(data["name"]),
                namespace=_str(data["namespace"]),
                document_id=_str(data["document_id"]),
                created=_str(data["created"]),
                image=_str(data["image"]),
                image_digest=_str(data["image_digest"]),
                tool=ToolInfo(
                    **{
                        k: _str(v)
                        for k, v in _fields(ToolInfo, data["tool"]).items()
                    }
                ),
                layers=tuple(_layer_from_dict(item) for item in data["layers"]),
                dockerfile=(
                    None
                    if dockerfile is None
                    else _dockerfile_from_dict(dockerfile)
                ),
                signature=None if signature is None else _str(signature),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SerializationError(f"Malformed SBOM document: {e!r}") from e

    @classmethod
    def from_json(cls, text: str | bytes) -> Self:
        """Parses a document serialized with `to_json`.

        Raises:
            SerializationError: The text is not a valid document.
        """
        try:
            data = json.loads(text)
        except ValueError as e:
            raise SerializationError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SerializationError("Expected a JSON object")
        return cls.from_dict(data)


def _to_json_value(value: Any) -> Any:
    """Converts records to plain JSON values, keeping field order."""
    if isinstance(value, enum.Enum):
        return value.value
    if dataclasses.is_dataclass(value):
        result = {}
        for field in dataclasses.fields(value):
            item = getattr(value, field.name)
            if item is None:
                continue
            result[field.name] = _to_json_value(item)
        return result
    if isinstance(value, Mapping):
        return {str(k): _to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_value(v) for v in value]
    return value


def _str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"Expected a string, got {value!r}")
    return value


def _fields(record_type: type, data: Mapping[str, Any]) -> dict[str, Any]:
    """Extracts exactly the fields of `record_type` from `data`."""
    names = [field.name for field in dataclasses.fields(record_type)]
    unknown = set(data) - set(names)
    if unknown:
        raise ValueError(
            f"Unknown fields for {record_type.__name__}: {sorted(unknown)}"
        )
    return {name: data[name] for name in names}


def _packages(items: Iterable[Mapping[str, Any]]) -> tuple[PackageRecord, ...]:
    packages = []
    for item in items:
        fields = {
            k: _str(v) for k, v in _fields(PackageRecord, item).items()
        }
        packages.append(PackageRecord(**fields))
    return tuple(packages)


def _layer_from_dict(data: Mapping[str, Any]) -> LayerRecord:
    fields = _fields(LayerRecord, data)
    files = []
    for item in fields["files"]:
        item = _fields(FileRecord, item)
        if not isinstance(item["size"], int):
            raise TypeError(f"Expected an integer size, got {item['size']!r}")
        files.append(
            FileRecord(
                path=_str(item["path"]),
                size=item["size"],
                file_type=FileType(item["file_type"]),
                checksum=_str(item["checksum"]),
            )
        )
    notices = [
        Notice(_str(n["message"]), Level(n["level"]))
        for n in (_fields(Notice, item) for item in fields["notices"])
    ]
    return LayerRecord(
        layer_id=_str(fields["layer_id"]),
        created=_str(fields["created"]),
        os_guess=_str(fields["os_guess"]),
        package_format=_str(fields["package_format"]),
        files=tuple(files),
        packages=_packages(fields["packages"]),
        notices=tuple(notices),
        raw_output=_str(fields["raw_output"]),
    )


def _dockerfile_from_dict(data: Mapping[str, Any]) -> DockerfileAnalysis:
    fields = _fields(DockerfileAnalysis, data)
    return DockerfileAnalysis(
        env={_str(k): _str(v) for k, v in fields["env"].items()},
        instructions=tuple(_str(i) for i in fields["instructions"]),
        packages=_packages(fields["packages"]),
    )
