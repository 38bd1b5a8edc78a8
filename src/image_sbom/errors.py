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

"""Errors raised by the SBOM pipeline.

Only conditions that prevent producing a well-formed result are raised.
Problems scoped to a single layer are recorded as `sbom.Notice` entries on
that layer instead, and the pipeline keeps going.
"""


class SbomError(Exception):
    """Base exception for all errors raised by `image_sbom`."""


class ImageUnavailable(SbomError):
    """The image (or its metadata) could not be obtained from the source.

    Fatal to the whole run.
    """


class LayerExtractionFailure(SbomError):
    """A single layer could not be read.

    The pipeline converts this into an `error` notice on the layer.
    """


class BuildAnalysisFailure(SbomError):
    """The build description could not be read or parsed.

    Fatal to the Dockerfile analysis only.
    """


class SignatureEncodingError(SbomError):
    """Key material or signature bytes are malformed or unsupported."""


class UnsignedDocumentError(SbomError):
    """The document carries no signature, there is nothing to verify."""


class SerializationError(SbomError):
    """A document could not be serialized or deserialized."""
