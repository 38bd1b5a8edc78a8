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

import datetime

import image_sbom
from image_sbom import assembly
from image_sbom import sbom


_LAYERS = [
    sbom.LayerRecord(layer_id="sha256:base"),
    sbom.LayerRecord(layer_id="sha256:top"),
]


class TestAssembler:
    def test_defaults(self):
        document = assembly.Assembler().assemble(
            "alpine:3.19", "sha256:abcd", _LAYERS
        )

        assert document.name == "alpine:3.19"
        assert document.namespace.startswith(
            "https://image-sbom.dev/sbom/alpine-3.19-"
        )
        assert document.document_id.startswith("urn:uuid:")
        assert document.image == "alpine:3.19"
        assert document.image_digest == "sha256:abcd"
        assert document.dockerfile is None
        assert document.signature is None
        assert document.tool == sbom.ToolInfo(
            "image-sbom", "image-sbom", image_sbom.__version__
        )

    def test_created_is_utc(self):
        document = assembly.Assembler().assemble("a", "sha256:abcd", [])
        created = datetime.datetime.fromisoformat(document.created)
        assert created.utcoffset() == datetime.timedelta(0)

    def test_identity_is_unique_per_document(self):
        assembler = assembly.Assembler()
        first = assembler.assemble("a", "sha256:abcd", [])
        second = assembler.assemble("a", "sha256:abcd", [])
        assert first.document_id != second.document_id
        assert first.namespace != second.namespace

    def test_fixed_identity(self):
        tool = sbom.ToolInfo("acme", "scanner", "0.1")
        assembler = assembly.Assembler(
            name="release",
            namespace="https://example.com/sbom/release",
            document_id="urn:uuid:1",
            created="2024-01-01T00:00:00+00:00",
            tool=tool,
        )
        document = assembler.assemble("a", "sha256:abcd", [])

        assert document.name == "release"
        assert document.namespace == "https://example.com/sbom/release"
        assert document.document_id == "urn:uuid:1"
        assert document.created == "2024-01-01T00:00:00+00:00"
        assert document.tool == tool

    def test_fixed_identity_gives_identical_documents(self):
        assembler = assembly.Assembler(
            namespace="urn:ns", document_id="urn:id", created="now"
        )
        first = assembler.assemble("a", "sha256:abcd", _LAYERS)
        second = assembler.assemble("a", "sha256:abcd", _LAYERS)
        assert first.canonical_bytes() == second.canonical_bytes()

    def test_layer_order_is_kept(self):
        document = assembly.Assembler().assemble(
            "a", "sha256:abcd", reversed(_LAYERS)
        )
        assert [layer.layer_id for layer in document.layers] == [
            "sha256:top",
            "sha256:base",
        ]

    def test_namespace_prefix(self):
        assembler = assembly.Assembler(namespace_prefix="https://sbom.test/")
        document = assembler.assemble("registry:5000/app", "sha256:abcd", [])
        assert document.namespace.startswith(
            "https://sbom.test/registry-5000-app-"
        )

    def test_dockerfile_is_attached(self):
        analysis = sbom.DockerfileAnalysis(env={"A": "1"})
        document = assembly.Assembler().assemble(
            "a", "sha256:abcd", [], analysis
        )
        assert document.dockerfile == analysis
