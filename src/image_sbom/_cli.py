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

"""The main entry-point for the image_sbom package."""

from collections.abc import Sequence
import logging
import pathlib
import sys

import click

import image_sbom
from image_sbom import _render
from image_sbom._signing import keys
from image_sbom.errors import SbomError


# Decorator for the commonly used option for the password of a keypair file.
_password_option = click.option(
    "--password",
    type=str,
    metavar="PASSWORD",
    help="Password for the key encryption, if any.",
)


@click.group(
    context_settings=dict(help_option_names=["-h", "--help"]),
)
@click.version_option(image_sbom.__version__, "--version")
@click.option(
    "--log-level",
    type=click.Choice(
        ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
    ),
    default="WARNING",
    show_default=True,
    metavar="LEVEL",
    envvar="IMAGE_SBOM_LOG_LEVEL",
    help="Set the logging level. This can also be set via the "
    "IMAGE_SBOM_LOG_LEVEL env var.",
)
def main(log_level: str) -> None:
    """SBOM generation and verification for container images.

    Use each subcommand's `--help` option for details on each mode.
    """
    logging.basicConfig(
        format="%(message)s", level=getattr(logging, log_level.upper())
    )


@main.command(name="generate-key")
@click.option(
    "--output",
    type=pathlib.Path,
    metavar="KEY_PATH",
    required=True,
    help="Location of the keypair file to generate.",
)
@click.option(
    "--public-output",
    type=pathlib.Path,
    metavar="PUBLIC_KEY_PATH",
    help="Also write the public key, for distribution to verifiers.",
)
@click.option(
    "--curve",
    type=click.Choice(sorted(keys.SUPPORTED_CURVES)),
    default=keys.DEFAULT_CURVE,
    show_default=True,
    help="Elliptic curve of the key.",
)
@_password_option
def _generate_key(
    output: pathlib.Path,
    public_output: pathlib.Path | None,
    curve: str,
    password: str | None = None,
) -> None:
    """Generate a keypair for signing SBOMs.

    The keypair file holds the PEM-encoded private key, encrypted when a
    password is given. The same file is accepted by `verify --key`.
    """
    try:
        private_key = keys.write_keypair(
            output, curve=curve, password=password
        )
        if public_output is not None:
            public_output.write_bytes(
                keys.encode_public_key(private_key.public_key())
            )
    except (OSError, ValueError) as err:
        click.echo(f"Key generation failed with error: {err}", err=True)
        sys.exit(1)

    click.echo(f"Keypair written to {output}")


@main.command(name="analyze")
@click.argument("image", type=str, metavar="IMAGE")
@click.option(
    "--output",
    type=pathlib.Path,
    metavar="SBOM_PATH",
    help="Write the SBOM to this file instead of standard output.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(list(_render.RENDERERS)),
    default="json",
    show_default=True,
    help="Output format. Only `json` can be verified later.",
)
@click.option(
    "--dockerfile",
    type=pathlib.Path,
    metavar="DOCKERFILE",
    help="Dockerfile to analyze for build provenance.",
)
@click.option(
    "--build",
    is_flag=True,
    help="Build IMAGE from `--dockerfile` before analyzing it.",
)
@click.option(
    "--tag",
    type=str,
    metavar="TAG",
    help="Tag to give to the built image. Defaults to IMAGE.",
)
@click.option(
    "--archive",
    is_flag=True,
    help="IMAGE is the path of a `docker save` archive, not a reference.",
)
@click.option(
    "--alias",
    type=str,
    metavar="OLD=NEW",
    multiple=True,
    help="Rewrite an image reference before looking it up.",
)
@click.option(
    "--sign",
    type=pathlib.Path,
    metavar="KEY_PATH",
    help="Sign the SBOM with this keypair file.",
)
@_password_option
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    help="Maximum number of layers analyzed at once.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds after which unfinished layers are abandoned.",
)
@click.option(
    "--hash-algorithm",
    type=click.Choice(["sha256", "blake2b", "blake3"]),
    default="sha256",
    show_default=True,
    help="Hash algorithm used for file checksums.",
)
def _analyze(
    image: str,
    output: pathlib.Path | None,
    output_format: str,
    dockerfile: pathlib.Path | None,
    build: bool,
    tag: str | None,
    archive: bool,
    alias: Sequence[str],
    sign: pathlib.Path | None,
    password: str | None,
    workers: int | None,
    timeout: float | None,
    hash_algorithm: str,
) -> None:
    """Generate the SBOM of a container image.

    IMAGE is looked up in the local Docker daemon and pulled if missing,
    unless `--archive` is given. Every layer is listed with its files and
    the packages of its package database. With `--sign`, the signature is
    embedded in the SBOM.
    """
    if build and dockerfile is None:
        raise click.UsageError("--build requires --dockerfile")
    if build and archive:
        raise click.UsageError("--build cannot be combined with --archive")
    if tag is not None and not build:
        raise click.UsageError("--tag requires --build")
    if sign is not None and output_format != "json":
        raise click.UsageError("--sign requires the json format")
    try:
        aliases = image_sbom.AliasResolver.from_pairs(alias)
    except ValueError as err:
        raise click.BadParameter(str(err), param_hint="--alias") from err

    try:
        if archive:
            source = image_sbom.ArchiveImageSource(pathlib.Path(image))
        else:
            if build:
                image = image_sbom.build_image(dockerfile, tag or image)
            source = image_sbom.DockerImageSource(image, aliases=aliases)

        config = (
            image_sbom.pipeline.Config()
            .set_hash_algorithm(hash_algorithm)
            .set_max_workers(workers)
            .set_timeout(timeout)
            .set_dockerfile(dockerfile)
        )
        with source:
            document = config.analyze(source)

        if sign is not None:
            image_sbom.signing.Config().use_elliptic_key_signer(
                private_key=sign, password=password
            ).sign(document)

        text = _render.render(document, output_format)
        if output is None:
            click.echo(text)
        else:
            output.write_text(text + "\n", encoding="utf-8")
    except (SbomError, OSError) as err:
        click.echo(f"Analysis failed with error: {err}", err=True)
        sys.exit(1)

    if output is not None:
        click.echo(f"SBOM written to {output}", err=True)


@main.command(name="verify")
@click.option(
    "--sbom",
    "sbom_path",
    type=pathlib.Path,
    metavar="SBOM_PATH",
    required=True,
    help="Location of the signed SBOM, in json format.",
)
@click.option(
    "--key",
    type=pathlib.Path,
    metavar="KEY_PATH",
    required=True,
    help="Public key, or keypair file, to verify with.",
)
@_password_option
def _verify(
    sbom_path: pathlib.Path, key: pathlib.Path, password: str | None = None
) -> None:
    """Verify the signature embedded in an SBOM.

    Exits with a non-zero status when the signature does not match. An
    unsigned SBOM is reported but is not a failure.
    """
    try:
        status = (
            image_sbom.verifying.Config()
            .use_elliptic_key_verifier(public_key=key, password=password)
            .check_file(sbom_path)
        )
    except SbomError as err:
        click.echo(f"Verification failed with error: {err}", err=True)
        sys.exit(1)

    match status:
        case image_sbom.verifying.Status.VALID:
            click.echo("Verification succeeded")
        case image_sbom.verifying.Status.UNSIGNED:
            click.echo("No signature to verify")
        case _:
            click.echo("Verification failed", err=True)
            sys.exit(1)
