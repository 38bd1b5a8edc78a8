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

"""Assembly of layer records into an SBOM document.

The assembler owns the identity of the document: its name, namespace URI,
identifier, creation time and the descriptor of the generating tool. Each of
them can be fixed up front, which makes the output reproducible; otherwise
fresh values are generated for every document.
"""

from collections.abc import Iterable
import datetime
import re
import uuid

import image_sbom
from image_sbom import sbom


DEFAULT_NAMESPACE_PREFIX = "https://image-sbom.dev/sbom"


def default_tool() -> sbom.ToolInfo:
    """Returns the descriptor of this package."""
    return sbom.ToolInfo(
        vendor="image-sbom", name="image-sbom", version=image_sbom.__version__
    )


def utc_timestamp() -> str:
    """Returns the current time as a UTC ISO 8601 timestamp."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat(
        timespec="seconds"
    )


class Assembler:
    """Builds documents from analysis results."""

    def __init__(
        self,
        *,
        name: str | None = None,
        namespace: str | None = None,
        document_id: str | None = None,
        created: str | None = None,
        tool: sbom.ToolInfo | None = None,
        namespace_prefix: str = DEFAULT_NAMESPACE_PREFIX,
    ):
        """Initializes the assembler.

        Args:
            name: Name of the documents. Defaults to the image reference.
            namespace: Namespace URI. Defaults to a unique URI under
              `namespace_prefix`.
            document_id: Identifier. Defaults to a random `urn:uuid:` URN.
            created: Creation timestamp. Defaults to the assembly time.
            tool: Tool descriptor. Defaults to `default_tool()`.
            namespace_prefix: Base URI of generated namespaces.
        """
        self._name = name
        self._namespace = namespace
        self._document_id = document_id
        self._created = created
        self._tool = tool
        self._namespace_prefix = namespace_prefix.rstrip("/")

    def assemble(
        self,
        image: str,
        image_digest: str,
        layers: Iterable[sbom.LayerRecord],
        dockerfile: sbom.DockerfileAnalysis | None = None,
    ) -> sbom.SbomDocument:
        """Builds an unsigned document.

        Args:
            image: The image reference.
            image_digest: The digest of the image.
            layers: Layer records, base layer first. Their order is kept.
            dockerfile: Build provenance, if any.
        """
        unique = uuid.uuid4()
        name = self._name or image
        namespace = self._namespace or (
            f"{self._namespace_prefix}/{_slug(name)}-{unique}"
        )
        return sbom.SbomDocument(
            name=name,
            namespace=namespace,
            document_id=self._document_id or f"urn:uuid:{unique}",
            created=self._created or utc_timestamp(),
            image=image,
            image_digest=image_digest,
            tool=self._tool or default_tool(),
            layers=tuple(layers),
            dockerfile=dockerfile,
        )


def _slug(name: str) -> str:
    """Makes a name safe for use in a URI path segment."""
    return re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip("-") or "image"
