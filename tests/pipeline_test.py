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

import contextlib
import io
import threading

import pytest

from image_sbom import pipeline
from image_sbom import sbom
from image_sbom._source import archive
from image_sbom._source import source
from image_sbom.errors import ImageUnavailable
from tests import test_support


def _blocking_layer(
    index: int,
    release: threading.Event,
    finished: threading.Event | None = None,
) -> source.LayerSource:
    """A layer whose stream only opens once `release` is set."""

    @contextlib.contextmanager
    def opener():
        release.wait(timeout=10)
        try:
            yield io.BytesIO(test_support.plain_layer())
        finally:
            if finished is not None:
                finished.set()

    return source.LayerSource(index, f"sha256:blocked{index}", "", opener)


class TestAnalyze:
    def test_two_layer_image(self, image_archive):
        with archive.ArchiveImageSource(image_archive) as image:
            document = pipeline.Config().analyze(image)

        assert document.image == "example/app:1.0"
        assert len(document.layers) == 2
        base, top = document.layers
        assert len(base.packages) == 2
        assert base.package_format == "apk"
        assert base.os_guess == "Alpine Linux v3.19"
        assert base.raw_output == test_support.APK_DATABASE
        assert top.packages == ()
        assert top.package_format == ""
        assert [f.path for f in top.files] == [
            "app",
            "app/data.txt",
            "app/latest",
        ]
        assert document.dockerfile is None
        assert document.signature is None

    def test_single_record_database(self):
        layers = [
            test_support.layer_source(
                0,
                test_support.make_layer(
                    {"lib/apk/db/installed": b"P:curl\nV:7.88\n\nP:\nV:1.0\n\n"}
                ),
            ),
            test_support.layer_source(1, test_support.plain_layer()),
        ]
        document = pipeline.analyze(test_support.FakeImageSource(layers))

        assert len(document.layers) == 2
        assert document.layers[0].packages == (
            sbom.PackageRecord(name="curl", version="7.88"),
        )
        assert document.layers[1].packages == ()

    def test_order_does_not_depend_on_completion(self):
        release = threading.Event()

        @contextlib.contextmanager
        def releasing_opener():
            release.set()
            yield io.BytesIO(test_support.apk_layer())

        layers = [
            _blocking_layer(0, release),
            source.LayerSource(1, "sha256:second", "", releasing_opener),
        ]
        records = pipeline.Config().set_max_workers(2).analyze_layers(layers)

        assert [r.layer_id for r in records] == [
            "sha256:blocked0",
            "sha256:second",
        ]
        assert records[0].notices == ()
        assert len(records[1].packages) == 2

    def test_corrupted_layer_is_isolated(self):
        good = test_support.plain_layer()
        # Cut in the middle of the payload of `app/data.txt`.
        layers = [
            test_support.layer_source(0, good),
            test_support.layer_source(1, good[:1030], layer_id="sha256:bad"),
            test_support.layer_source(2, good),
        ]
        records = pipeline.Config().analyze_layers(layers)

        assert records[0] == records[2]
        assert records[1].layer_id == "sha256:bad"
        assert sbom.Level.ERROR in [n.level for n in records[1].notices]
        assert len(records[0].files) == 3

    def test_layer_that_cannot_be_opened(self):
        def failing_opener():
            raise ImageUnavailable("blob is gone")

        layers = [
            source.LayerSource(0, "sha256:gone", "2024", failing_opener),
            test_support.layer_source(1, test_support.plain_layer()),
        ]
        records = pipeline.Config().analyze_layers(layers)

        assert records[0].files == ()
        assert records[0].created == "2024"
        assert records[0].notices[0].level == sbom.Level.ERROR
        assert "blob is gone" in records[0].notices[0].message
        assert len(records[1].files) == 3

    def test_timeout_keeps_finished_layers(self):
        release = threading.Event()
        layers = [
            test_support.layer_source(0, test_support.plain_layer()),
            _blocking_layer(1, release),
        ]
        timer = threading.Timer(1.0, release.set)
        timer.start()
        try:
            records = (
                pipeline.Config()
                .set_max_workers(2)
                .set_timeout(0.5)
                .analyze_layers(layers)
            )
        finally:
            release.set()
            timer.cancel()

        assert len(records[0].files) == 3
        assert records[0].notices == ()
        assert records[1].files == ()
        assert records[1].notices[0].level == sbom.Level.ERROR
        assert "cancelled" in records[1].notices[0].message

    def test_stopped_workers_are_joined(self):
        release = threading.Event()
        finished = threading.Event()
        layers = [_blocking_layer(0, release, finished)]
        timer = threading.Timer(1.0, release.set)
        timer.start()
        try:
            records = (
                pipeline.Config().set_timeout(0.2).analyze_layers(layers)
            )
        finally:
            release.set()
            timer.cancel()

        assert finished.is_set()
        assert records[0].files == ()
        assert "cancelled" in records[0].notices[0].message

    def test_caller_cancellation(self):
        cancel = threading.Event()
        cancel.set()
        layers = [test_support.layer_source(0, test_support.plain_layer())]

        records = pipeline.Config().analyze_layers(layers, cancel=cancel)

        assert records[0].files == ()
        assert "cancelled" in records[0].notices[0].message

    def test_no_layers(self):
        document = pipeline.analyze(test_support.FakeImageSource([]))
        assert document.layers == ()

    def test_hash_algorithm(self):
        layers = [test_support.layer_source(0, test_support.plain_layer())]
        records = (
            pipeline.Config()
            .set_hash_algorithm("blake3")
            .analyze_layers(layers)
        )
        assert records[0].files[1].checksum.startswith("blake3:")

    def test_dockerfile(self, dockerfile):
        document = (
            pipeline.Config()
            .set_dockerfile(dockerfile)
            .analyze(test_support.FakeImageSource([]))
        )
        assert document.dockerfile is not None
        assert document.dockerfile.env["APP_HOME"] == "/srv/app"

    def test_invalid_dockerfile_is_skipped(self, tmp_path):
        path = tmp_path / "Dockerfile"
        path.write_text("FROM scratch\nENV ONLYKEY\n")
        document = (
            pipeline.Config()
            .set_dockerfile(path)
            .analyze(test_support.FakeImageSource([]))
        )
        assert document.dockerfile is None

    def test_identity(self):
        document = (
            pipeline.Config()
            .set_identity(
                name="release",
                namespace="urn:ns",
                document_id="urn:id",
                created="2024-01-01T00:00:00+00:00",
            )
            .analyze(test_support.FakeImageSource([]))
        )
        assert document.name == "release"
        assert document.namespace == "urn:ns"
        assert document.document_id == "urn:id"
        assert document.created == "2024-01-01T00:00:00+00:00"
        assert document.image == "example/app:1.0"

    def test_unavailable_image(self, tmp_path):
        image = archive.ArchiveImageSource(tmp_path / "missing.tar")
        with pytest.raises(ImageUnavailable):
            pipeline.analyze(image)


class TestConfigValidation:
    def test_unknown_hash_algorithm(self):
        with pytest.raises(ValueError):
            pipeline.Config().set_hash_algorithm("md5")

    @pytest.mark.parametrize("workers", [0, -1])
    def test_invalid_workers(self, workers):
        with pytest.raises(ValueError):
            pipeline.Config().set_max_workers(workers)

    def test_invalid_timeout(self):
        with pytest.raises(ValueError):
            pipeline.Config().set_timeout(0)
