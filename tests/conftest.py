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

"""Test fixtures to share between tests. Not part of the public API."""

import pytest

from image_sbom._signing import keys
from tests import test_support


@pytest.fixture
def image_archive(tmp_path_factory):
    """A `docker save` archive with an apk base layer and a plain layer."""
    path = tmp_path_factory.mktemp("image") / "image.tar"
    test_support.make_image_archive(
        path, [test_support.apk_layer(), test_support.plain_layer()]
    )
    return path


@pytest.fixture
def keypair_file(tmp_path_factory):
    """An unencrypted P-256 keypair file."""
    path = tmp_path_factory.mktemp("keys") / "sbom.key"
    keys.write_keypair(path)
    return path


@pytest.fixture
def other_keypair_file(tmp_path_factory):
    """A keypair file unrelated to `keypair_file`."""
    path = tmp_path_factory.mktemp("keys") / "other.key"
    keys.write_keypair(path)
    return path


@pytest.fixture
def public_key_file(keypair_file):
    """The public half of `keypair_file`, on its own."""
    path = keypair_file.with_suffix(".pub")
    private_key = keys.load_private_key(keypair_file)
    path.write_bytes(keys.encode_public_key(private_key.public_key()))
    return path


@pytest.fixture
def dockerfile(tmp_path_factory):
    path = tmp_path_factory.mktemp("build") / "Dockerfile"
    path.write_text(
        "FROM alpine:3.19\n"
        "ENV LANG=C.UTF-8 APP_HOME=/app\n"
        "RUN apk add --no-cache curl && \\\n"
        "    adduser -D app\n"
        "ENV APP_HOME=/srv/app\n"
        'CMD ["/bin/sh"]\n'
    )
    return path
