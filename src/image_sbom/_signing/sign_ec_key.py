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

"""Signers and verifiers using elliptic curve keys.

The signature is a detached ECDSA signature over the canonical bytes of the
document, stored base64 encoded in the document's own `signature` field. The
canonical bytes never include that field, so a signed document can be
verified by recomputing them from the document alone.
"""

import base64
import binascii
import logging
import pathlib

from cryptography import exceptions
from cryptography.hazmat.primitives.asymmetric import ec

from image_sbom import sbom
from image_sbom._signing import keys
from image_sbom.errors import SignatureEncodingError
from image_sbom.errors import UnsignedDocumentError


logger = logging.getLogger(__name__)


class Signer:
    """Signer using an elliptic curve private key."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey):
        """Initializes the signer with the private key.

        Raises:
            SignatureEncodingError: The key is not supported.
        """
        keys.check_supported_ec_key(private_key.public_key())
        self._private_key = private_key

    @classmethod
    def from_path(
        cls, private_key_path: pathlib.Path, password: str | None = None
    ) -> "Signer":
        """Builds a signer from a keypair file.

        Args:
            private_key_path: The path to the PEM encoded private key.
            password: Optional password for the private key.
        """
        return cls(keys.load_private_key(private_key_path, password))

    def sign(self, document: sbom.SbomDocument) -> str:
        """Signs the document and stores the signature in it.

        Any previous signature is dropped first. Signing the same document
        from several threads at once is not supported.

        Returns:
            The base64 encoded signature, also set as `document.signature`.
        """
        document.signature = None
        payload = document.canonical_bytes()
        public_key = self._private_key.public_key()
        raw_signature = self._private_key.sign(
            payload, ec.ECDSA(keys.get_ec_key_hash(public_key))
        )
        encoded = base64.b64encode(raw_signature).decode("ascii")
        document.signature = encoded
        logger.debug("Signed %d bytes of canonical document", len(payload))
        return encoded


class Verifier:
    """Verifier for signatures generated with an elliptic curve private key."""

    def __init__(self, public_key: ec.EllipticCurvePublicKey):
        """Initializes the verifier with the public key to use.

        Raises:
            SignatureEncodingError: The key is not supported.
        """
        keys.check_supported_ec_key(public_key)
        self._public_key = public_key

    @classmethod
    def from_path(
        cls, key_path: pathlib.Path, password: str | None = None
    ) -> "Verifier":
        """Builds a verifier from a public key or keypair file.

        Args:
            key_path: The path to the PEM encoded public key, or to the
              keypair file used for signing.
            password: Password of the keypair file, if encrypted.
        """
        return cls(keys.load_public_key(key_path, password))

    def verify(self, document: sbom.SbomDocument) -> bool:
        """Checks the signature stored in the document.

        Returns:
            Whether the signature matches the document and the key. A
            mismatch is never an exception.

        Raises:
            UnsignedDocumentError: The document has no signature.
            SignatureEncodingError: The signature is not valid base64.
        """
        if not document.signature:
            raise UnsignedDocumentError("Document has no signature to verify")

        try:
            raw_signature = base64.b64decode(document.signature, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise SignatureEncodingError(
                f"Signature is not valid base64: {e}"
            ) from e

        payload = document.canonical_bytes()
        try:
            self._public_key.verify(
                raw_signature,
                payload,
                ec.ECDSA(keys.get_ec_key_hash(self._public_key)),
            )
        except exceptions.InvalidSignature:
            logger.debug("Signature does not match the document")
            return False
        return True
