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

"""High level API for signing SBOM documents.

Keys are generated once:

```python
image_sbom.signing.generate_key("sbom.key", password="secret")
```

and a signing configuration can then be reused for many documents:

```python
signing_config = image_sbom.signing.Config().use_elliptic_key_signer(
    private_key="sbom.key", password="secret"
)

for document in documents:
    signing_config.sign(document)
```

The signature is stored inside the document, in its `signature` field.
"""

import pathlib
import sys

from image_sbom import pipeline
from image_sbom import sbom
from image_sbom._signing import keys
from image_sbom._signing import sign_ec_key as ec_key


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


def generate_key(
    path: pipeline.PathLike,
    *,
    curve: str = keys.DEFAULT_CURVE,
    password: str | None = None,
) -> None:
    """Generates a keypair file usable for both signing and verifying.

    Args:
        path: Where to write the PEM encoded private key.
        curve: The elliptic curve to use.
        password: Optional password to encrypt the key with.

    Raises:
        ValueError: The curve is not supported.
        OSError: The file cannot be written.
    """
    keys.write_keypair(pathlib.Path(path), curve=curve, password=password)


def sign(
    document: sbom.SbomDocument,
    private_key: pipeline.PathLike,
    password: str | None = None,
) -> sbom.SbomDocument:
    """Signs a document with an elliptic curve private key.

    Args:
        document: The document to sign, updated in place.
        private_key: The path to the keypair file.
        password: Password of the keypair file, if encrypted.

    Returns:
        The signed document.
    """
    return (
        Config()
        .use_elliptic_key_signer(private_key=private_key, password=password)
        .sign(document)
    )


class Config:
    """Configuration to use when signing documents."""

    def __init__(self):
        """Initializes an empty configuration, without a signer."""
        self._signer: ec_key.Signer | None = None

    def sign(self, document: sbom.SbomDocument) -> sbom.SbomDocument:
        """Signs a document using the current configuration.

        Args:
            document: The document to sign, updated in place.

        Returns:
            The signed document.

        Raises:
            ValueError: No signer has been configured.
        """
        if self._signer is None:
            raise ValueError("Attempting to sign with no configured signer")
        self._signer.sign(document)
        return document

    def use_elliptic_key_signer(
        self, *, private_key: pipeline.PathLike, password: str | None = None
    ) -> Self:
        """Configures the signing to be performed using elliptic curve keys.

        Args:
            private_key: The path to the private key to use for signing.
            password: An optional password for the key, if encrypted.

        Return:
            The new signing configuration.

        Raises:
            SignatureEncodingError: The key cannot be loaded.
        """
        self._signer = ec_key.Signer.from_path(
            pathlib.Path(private_key), password
        )
        return self
