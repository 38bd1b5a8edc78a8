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

"""Generation and loading of elliptic curve key material.

A keypair is stored as a single PEM encoded PKCS #8 private key, optionally
encrypted with a password. The public key is always derived from it, so the
same file can be handed to both signing and verification. Verification also
accepts a PEM encoded public key on its own.

There is no key registry, rotation or revocation: distributing the public
key to the verifiers is left to the caller.
"""

import pathlib

from cryptography import exceptions
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric import types as crypto_types

from image_sbom.errors import SignatureEncodingError


# Curves we sign with, by `cryptography` name.
SUPPORTED_CURVES: dict[str, type[ec.EllipticCurve]] = {
    "secp256r1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
}

DEFAULT_CURVE = "secp256r1"


def check_supported_ec_key(public_key: crypto_types.PublicKeyTypes):
    """Checks if the elliptic curve key is supported by our package.

    Args:
        public_key: The public key to check. Can be obtained from a private key.

    Raises:
        SignatureEncodingError: The key is not supported, or is not an
          elliptic curve one.
    """
    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise SignatureEncodingError("Only elliptic curve keys are supported")

    curve = public_key.curve.name
    if curve not in SUPPORTED_CURVES:
        raise SignatureEncodingError(f"Unsupported key for curve '{curve}'")


def get_ec_key_hash(
    public_key: ec.EllipticCurvePublicKey,
) -> hashes.HashAlgorithm:
    """Returns the hash algorithm paired with the curve of the key.

    Args:
        public_key: The public key to get the hash algorithm from.

    Raises:
        SignatureEncodingError: The key is not supported.
    """
    key_size = public_key.curve.key_size

    match key_size:
        case 256:
            return hashes.SHA256()
        case 384:
            return hashes.SHA384()
        case 521:
            return hashes.SHA512()
        case _:
            raise SignatureEncodingError(f"Unexpected key size {key_size}")


def generate(curve: str = DEFAULT_CURVE) -> ec.EllipticCurvePrivateKey:
    """Generates a new private key on the given curve.

    Raises:
        ValueError: The curve is not supported.
    """
    try:
        curve_type = SUPPORTED_CURVES[curve]
    except KeyError:
        raise ValueError(
            f"Unsupported curve '{curve}', expected one of "
            f"{sorted(SUPPORTED_CURVES)}"
        ) from None
    return ec.generate_private_key(curve_type())


def encode_private_key(
    private_key: ec.EllipticCurvePrivateKey, password: str | None = None
) -> bytes:
    """Encodes a private key as PKCS #8 PEM."""
    if password:
        encryption = serialization.BestAvailableEncryption(
            password.encode("utf-8")
        )
    else:
        encryption = serialization.NoEncryption()
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def encode_public_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Encodes a public key as SubjectPublicKeyInfo PEM."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def write_keypair(
    path: pathlib.Path,
    *,
    curve: str = DEFAULT_CURVE,
    password: str | None = None,
) -> ec.EllipticCurvePrivateKey:
    """Generates a keypair and writes it to `path`.

    Raises:
        OSError: The file cannot be written.
    """
    private_key = generate(curve)
    path.write_bytes(encode_private_key(private_key, password))
    return private_key


def load_private_key(
    path: pathlib.Path, password: str | None = None
) -> ec.EllipticCurvePrivateKey:
    """Loads a private key written by `write_keypair`.

    Raises:
        SignatureEncodingError: The file cannot be read, is not a supported
          private key, or the password does not match.
    """
    data = _read(path)
    try:
        private_key = serialization.load_pem_private_key(
            data, password.encode("utf-8") if password else None
        )
    except (ValueError, TypeError, exceptions.UnsupportedAlgorithm) as e:
        raise SignatureEncodingError(
            f"Cannot load private key from {path}: {e}"
        ) from e
    check_supported_ec_key(private_key.public_key())
    return private_key


def load_public_key(
    path: pathlib.Path, password: str | None = None
) -> ec.EllipticCurvePublicKey:
    """Loads a public key, either on its own or derived from a keypair file.

    Raises:
        SignatureEncodingError: The file cannot be read or holds no supported
          key.
    """
    data = _read(path)
    try:
        public_key = serialization.load_pem_public_key(data)
    except (ValueError, exceptions.UnsupportedAlgorithm):
        public_key = load_private_key(path, password).public_key()
    check_supported_ec_key(public_key)
    return public_key


def _read(path: pathlib.Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise SignatureEncodingError(f"Cannot read key {path}: {e}") from e
