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

"""High level API for verifying signed SBOM documents.

```python
verifying_config = image_sbom.verifying.Config().use_elliptic_key_verifier(
    public_key="sbom.pub"
)

if not verifying_config.verify(document):
    raise ValueError("SBOM was modified after signing")
```

A verifier only states whether the signature matches. Unsigned documents and
undecodable signatures are reported as errors, or as distinct `Status` values
by `Config.check`.
"""

import enum
import pathlib
import sys

from image_sbom import pipeline
from image_sbom import sbom
from image_sbom._signing import sign_ec_key as ec_key
from image_sbom.errors import SerializationError
from image_sbom.errors import UnsignedDocumentError


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


class Status(enum.Enum):
    """Outcome of checking a document."""

    VALID = "valid"
    INVALID = "invalid"
    UNSIGNED = "unsigned"


def read_document(path: pipeline.PathLike) -> sbom.SbomDocument:
    """Reads a document written as JSON.

    Raises:
        SerializationError: The file cannot be read or parsed.
    """
    try:
        text = pathlib.Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SerializationError(f"Cannot read SBOM {path}: {e}") from e
    return sbom.SbomDocument.from_json(text)


def check(
    document: sbom.SbomDocument,
    public_key: pipeline.PathLike,
    password: str | None = None,
) -> Status:
    """Checks a document against an elliptic curve public key.

    Args:
        document: The document to check.
        public_key: The path to the public key, or to the keypair file used
          for signing.
        password: Password of the keypair file, if encrypted.

    Raises:
        SignatureEncodingError: The key or the signature cannot be decoded.
    """
    return (
        Config()
        .use_elliptic_key_verifier(public_key=public_key, password=password)
        .check(document)
    )


class Config:
    """Configuration to use when verifying documents."""

    def __init__(self):
        """Initializes an empty configuration, without a verifier."""
        self._verifier: ec_key.Verifier | None = None

    def verify(self, document: sbom.SbomDocument) -> bool:
        """Verifies the signature stored in a document.

        Returns:
            Whether the signature matches the document.

        Raises:
            ValueError: No verifier has been configured.
            UnsignedDocumentError: The document is not signed.
            SignatureEncodingError: The signature cannot be decoded.
        """
        if self._verifier is None:
            raise ValueError("Attempting to verify with no configured verifier")
        return self._verifier.verify(document)

    def check(self, document: sbom.SbomDocument) -> Status:
        """Like `verify`, but reports unsigned documents as a status.

        Raises:
            ValueError: No verifier has been configured.
            SignatureEncodingError: The signature cannot be decoded.
        """
        try:
            valid = self.verify(document)
        except UnsignedDocumentError:
            return Status.UNSIGNED
        return Status.VALID if valid else Status.INVALID

    def check_file(self, path: pipeline.PathLike) -> Status:
        """Reads a document from a JSON file and checks it."""
        return self.check(read_document(path))

    def use_elliptic_key_verifier(
        self, *, public_key: pipeline.PathLike, password: str | None = None
    ) -> Self:
        """Configures the verification to be performed using elliptic keys.

        Args:
            public_key: The path to the public key, or to the keypair file
              used for signing.
            password: Password of the keypair file, if encrypted.

        Return:
            The new verification configuration.

        Raises:
            SignatureEncodingError: The key cannot be loaded.
        """
        self._verifier = ec_key.Verifier.from_path(
            pathlib.Path(public_key), password
        )
        return self
