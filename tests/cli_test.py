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

import json

from click.testing import CliRunner
import pytest

import image_sbom
from image_sbom import _cli
from image_sbom import sbom
from image_sbom._signing import keys
from tests import test_support


@pytest.fixture
def runner():
    return CliRunner()


def _analyze(runner, image_archive, output, *extra):
    return runner.invoke(
        _cli.main,
        ["analyze", str(image_archive), "--archive", "--output", str(output)]
        + list(extra),
    )


class TestCli:
    def test_version(self, runner):
        result = runner.invoke(_cli.main, ["--version"])
        assert result.exit_code == 0
        assert image_sbom.__version__ in result.output

    def test_generate_key(self, runner, tmp_path):
        key = tmp_path / "sbom.key"
        public = tmp_path / "sbom.pub"
        result = runner.invoke(
            _cli.main,
            [
                "generate-key",
                "--output",
                str(key),
                "--public-output",
                str(public),
                "--curve",
                "secp384r1",
            ],
        )

        assert result.exit_code == 0, result.output
        assert keys.load_private_key(key).curve.name == "secp384r1"
        assert keys.load_public_key(public).curve.name == "secp384r1"

    def test_analyze_archive(self, runner, image_archive, tmp_path):
        output = tmp_path / "sbom.json"
        result = _analyze(runner, image_archive, output)

        assert result.exit_code == 0, result.output
        document = sbom.SbomDocument.from_json(output.read_text())
        assert len(document.layers) == 2
        assert [p.name for p in document.layers[0].packages] == [
            "musl",
            "busybox",
        ]
        assert document.signature is None

    def test_analyze_to_stdout(self, runner, image_archive):
        result = runner.invoke(
            _cli.main,
            ["analyze", str(image_archive), "--archive", "--format", "list"],
        )

        assert result.exit_code == 0, result.output
        assert " musl 1.2.4-r2" in result.output

    def test_analyze_with_dockerfile(
        self, runner, image_archive, dockerfile, tmp_path
    ):
        output = tmp_path / "sbom.json"
        result = _analyze(
            runner, image_archive, output, "--dockerfile", str(dockerfile)
        )

        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text())
        assert data["dockerfile"]["env"]["LANG"] == "C.UTF-8"

    def test_sign_and_verify(self, runner, image_archive, tmp_path):
        key = tmp_path / "sbom.key"
        runner.invoke(
            _cli.main,
            ["generate-key", "--output", str(key), "--password", "secret"],
        )
        output = tmp_path / "sbom.json"
        result = _analyze(
            runner,
            image_archive,
            output,
            "--sign",
            str(key),
            "--password",
            "secret",
        )
        assert result.exit_code == 0, result.output

        result = runner.invoke(
            _cli.main,
            [
                "verify",
                "--sbom",
                str(output),
                "--key",
                str(key),
                "--password",
                "secret",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Verification succeeded" in result.output

    def test_verify_tampered(
        self, runner, image_archive, keypair_file, tmp_path
    ):
        output = tmp_path / "sbom.json"
        _analyze(runner, image_archive, output, "--sign", str(keypair_file))
        data = json.loads(output.read_text())
        data["image"] = "someone/else:1.0"
        output.write_text(json.dumps(data))

        result = runner.invoke(
            _cli.main,
            ["verify", "--sbom", str(output), "--key", str(keypair_file)],
        )
        assert result.exit_code == 1
        assert "Verification failed" in result.output

    def test_verify_unsigned(
        self, runner, image_archive, keypair_file, tmp_path
    ):
        output = tmp_path / "sbom.json"
        _analyze(runner, image_archive, output)

        result = runner.invoke(
            _cli.main,
            ["verify", "--sbom", str(output), "--key", str(keypair_file)],
        )
        assert result.exit_code == 0
        assert "No signature to verify" in result.output

    def test_verify_malformed_document(self, runner, keypair_file, tmp_path):
        output = tmp_path / "sbom.json"
        output.write_text("{}")

        result = runner.invoke(
            _cli.main,
            ["verify", "--sbom", str(output), "--key", str(keypair_file)],
        )
        assert result.exit_code == 1
        assert "Verification failed with error" in result.output

    def test_verify_signature_of_wrong_type(
        self, runner, keypair_file, tmp_path
    ):
        data = test_support.sample_document().to_dict()
        data["signature"] = 12345
        output = tmp_path / "sbom.json"
        output.write_text(json.dumps(data))

        result = runner.invoke(
            _cli.main,
            ["verify", "--sbom", str(output), "--key", str(keypair_file)],
        )
        assert result.exit_code == 1
        assert "Verification failed with error" in result.output

    def test_build_requires_dockerfile(self, runner):
        result = runner.invoke(_cli.main, ["analyze", "app", "--build"])
        assert result.exit_code == 2
        assert "--build requires --dockerfile" in result.output

    def test_tag_requires_build(self, runner):
        result = runner.invoke(_cli.main, ["analyze", "app", "--tag", "x"])
        assert result.exit_code == 2

    def test_malformed_alias(self, runner):
        result = runner.invoke(_cli.main, ["analyze", "app", "--alias", "x"])
        assert result.exit_code == 2

    def test_sign_requires_json(self, runner, keypair_file):
        result = runner.invoke(
            _cli.main,
            [
                "analyze",
                "app",
                "--format",
                "table",
                "--sign",
                str(keypair_file),
            ],
        )
        assert result.exit_code == 2

    def test_missing_archive(self, runner, tmp_path):
        result = runner.invoke(
            _cli.main, ["analyze", str(tmp_path / "missing.tar"), "--archive"]
        )
        assert result.exit_code == 1
        assert "Analysis failed with error" in result.output

    def test_bad_signing_key(self, runner, image_archive, tmp_path):
        key = tmp_path / "bad.key"
        key.write_text("not a key")
        result = _analyze(
            runner, image_archive, tmp_path / "sbom.json", "--sign", str(key)
        )
        assert result.exit_code == 1
