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

"""Output formats for SBOM documents.

Only the `json` format can be read back and verified; the others are views
for humans and for other tools.
"""

import base64
import binascii
from collections.abc import Callable, Iterator

from image_sbom import sbom


def render_json(document: sbom.SbomDocument) -> str:
    return document.to_json(indent=2)


def render_list(document: sbom.SbomDocument) -> str:
    """Renders one line per package, then one line per regular file."""
    lines = []
    for layer in document.layers:
        for package in layer.packages:
            lines.append(f"{layer.layer_id} {package.name} {package.version}")
    for layer in document.layers:
        for record in layer.files:
            if record.file_type == sbom.FileType.FILE:
                lines.append(
                    f"{layer.layer_id} {record.checksum} {record.path}"
                )
    return "\n".join(lines)


def render_table(document: sbom.SbomDocument) -> str:
    """Renders the packages as an aligned table."""
    rows = [("LAYER", "PACKAGE", "VERSION", "LICENSE")]
    for layer in document.layers:
        short_id = layer.layer_id.partition(":")[2][:12] or layer.layer_id
        for package in layer.packages:
            rows.append(
                (short_id, package.name, package.version, package.license)
            )
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    return "\n".join(
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths))
        .rstrip()
        for row in rows
    )


def render_spdx(document: sbom.SbomDocument) -> str:
    """Renders the document as SPDX 2.3 tag-value."""
    lines = [
        "SPDXVersion: SPDX-2.3",
        "DataLicense: CC0-1.0",
        "SPDXID: SPDXRef-DOCUMENT",
        f"DocumentName: {document.name}",
        f"DocumentNamespace: {document.namespace}",
        f"Creator: Organization: {document.tool.vendor}",
        f"Creator: Tool: {document.tool.name}-{document.tool.version}",
        f"Created: {document.created}",
        f"DocumentComment: <text>Image {document.image} "
        f"({document.image_digest})</text>",
    ]
    for layer_index, layer in enumerate(document.layers):
        for index, package in enumerate(layer.packages):
            lines.extend(
                _spdx_package(
                    f"SPDXRef-Package-{layer_index}-{index}",
                    package,
                    f"Found in layer {layer.layer_id}",
                )
            )
    if document.dockerfile is not None:
        for index, package in enumerate(document.dockerfile.packages):
            lines.extend(
                _spdx_package(
                    f"SPDXRef-Dockerfile-{index}",
                    package,
                    "Command run by the Dockerfile",
                )
            )
    return "\n".join(lines)


def _spdx_package(
    spdx_id: str, package: sbom.PackageRecord, comment: str
) -> Iterator[str]:
    yield ""
    yield f"PackageName: {package.name}"
    yield f"SPDXID: {spdx_id}"
    yield f"PackageVersion: {_or_noassertion(package.version)}"
    if package.vendor:
        yield f"PackageSupplier: Organization: {package.vendor}"
    else:
        yield "PackageSupplier: NOASSERTION"
    yield "PackageDownloadLocation: NOASSERTION"
    yield "FilesAnalyzed: false"
    if package.source:
        yield f"PackageSourceInfo: <text>{package.source}</text>"
    yield "PackageLicenseConcluded: NOASSERTION"
    yield f"PackageLicenseDeclared: {_or_noassertion(package.license)}"
    yield "PackageCopyrightText: NOASSERTION"
    spdx_checksum = _spdx_checksum(package.checksum)
    if spdx_checksum is not None:
        yield f"PackageChecksum: {spdx_checksum}"
    elif package.checksum:
        comment = f"{comment}, checksum {package.checksum}"
    yield f"PackageComment: <text>{comment}</text>"
    yield f"Relationship: SPDXRef-DOCUMENT DESCRIBES {spdx_id}"


def _spdx_checksum(checksum: str) -> str | None:
    """Converts an apk `Q1` checksum (base64 SHA1) to SPDX notation."""
    if not checksum.startswith("Q1"):
        return None
    try:
        raw = base64.b64decode(checksum[2:], validate=True)
    except (binascii.Error, ValueError):
        return None
    if len(raw) != 20:
        return None
    return f"SHA1: {raw.hex()}"


def _or_noassertion(value: str) -> str:
    return value or "NOASSERTION"


RENDERERS: dict[str, Callable[[sbom.SbomDocument], str]] = {
    "json": render_json,
    "list": render_list,
    "spdx": render_spdx,
    "table": render_table,
}


def render(document: sbom.SbomDocument, output_format: str = "json") -> str:
    """Renders a document in the named format.

    Raises:
        ValueError: The format is not supported.
    """
    try:
        renderer = RENDERERS[output_format]
    except KeyError:
        raise ValueError(
            f"Unsupported output format '{output_format}'"
        ) from None
    return renderer(document)
