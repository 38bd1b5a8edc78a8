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

"""Software bill of materials (SBOM) generation for container images.

The API is split into 3 main components (and a glue `image_sbom.sbom` module
for the data types of the document):

- `image_sbom.pipeline`: responsible with analyzing an image. Every layer of
  the image is read once as a stream: each archive entry is recorded with its
  size, type and checksum, and the package database of the layer (`apk` or
  `dpkg`) is parsed into package records. An optional Dockerfile is analyzed
  for build provenance. The result is an `image_sbom.sbom.SbomDocument`.
- `image_sbom.signing`: responsible with signing a document with an elliptic
  curve private key. The signature is embedded in the document and covers its
  canonical serialization.
- `image_sbom.verifying`: responsible with checking that the embedded
  signature matches the document and a public key.

Images are provided by image sources: `DockerImageSource` drives the local
Docker daemon, while `ArchiveImageSource` reads a `docker save` archive
directly.

Generating and signing an SBOM:

```python
image_sbom.signing.generate_key("sbom.key")

with image_sbom.DockerImageSource("alpine:3.19") as source:
    document = image_sbom.pipeline.Config().set_dockerfile(
        "Dockerfile"
    ).analyze(source)

image_sbom.signing.sign(document, "sbom.key")
pathlib.Path("sbom.json").write_text(document.to_json())
```

Verifying it later:

```python
image_sbom.verifying.Config().use_elliptic_key_verifier(
    public_key="sbom.key"
).check_file("sbom.json")
```

The CLI that maps over the API is available as `image-sbom`.
"""

from image_sbom import errors
from image_sbom import pipeline
from image_sbom import sbom
from image_sbom import signing
from image_sbom import verifying
from image_sbom._source.archive import ArchiveImageSource
from image_sbom._source.daemon import DockerImageSource
from image_sbom._source.daemon import build_image
from image_sbom._source.source import AliasResolver


__version__ = "1.0.0"


__all__ = [
    "errors",
    "pipeline",
    "sbom",
    "signing",
    "verifying",
    "AliasResolver",
    "ArchiveImageSource",
    "DockerImageSource",
    "build_image",
]
