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

"""High level API for generating the SBOM of a container image.

Generating a document with the default configuration:

```python
with image_sbom.DockerImageSource("alpine:3.19") as source:
    document = image_sbom.pipeline.Config().analyze(source)
```

The configuration can be customized before analysis, and reused:

```python
config = (
    image_sbom.pipeline.Config()
    .set_dockerfile("Dockerfile")
    .set_max_workers(4)
    .set_timeout(300)
    .set_hash_algorithm("blake3")
)
```

Layers are analyzed concurrently, one task per layer. The records are always
reported in image order, whatever the order in which the tasks complete. A
layer that fails is reported with an `error` notice and does not stop the
analysis of the others. When the timeout expires, or when the caller sets the
`cancel` event, unfinished layers are stopped and reported with a notice,
while finished ones are kept as they are. Analysis returns once the stopped
workers have exited, or after a grace period of a few seconds if one is
stuck.
"""

from collections.abc import Iterable, Sequence
import concurrent.futures
import logging
import os
import pathlib
import sys
import threading
import time
from typing import Optional, TypeAlias

from image_sbom import assembly
from image_sbom import sbom
from image_sbom._dockerfile import analysis
from image_sbom._extraction import layer
from image_sbom._hashing import memory
from image_sbom._scanning import registry
from image_sbom._scanning import scanner
from image_sbom._source import source as image_source
from image_sbom.errors import BuildAnalysisFailure
from image_sbom.errors import ImageUnavailable
from image_sbom.errors import LayerExtractionFailure


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


logger = logging.getLogger(__name__)


# Type alias to support `os.PathLike`, `str` and `bytes` objects in the API
PathLike: TypeAlias = str | bytes | os.PathLike

# How often the cancellation event is polled while waiting for layers.
_POLL_INTERVAL_SECONDS = 0.1

# How long running workers get to notice the stop event once analysis ends.
_SHUTDOWN_GRACE_SECONDS = 5.0


def analyze(source: image_source.ImageSource) -> sbom.SbomDocument:
    """Generates the SBOM of an image using the default configuration.

    Args:
        source: The image to analyze.
    """
    return Config().analyze(source)


class Config:
    """Configuration to use when analyzing images."""

    def __init__(self):
        """Initializes the default configuration for analysis.

        By default layers are hashed with SHA256, scanned for every supported
        package database, analyzed with the default pool size of
        `concurrent.futures.ThreadPoolExecutor` and without a timeout.
        """
        self._hash_algorithm = "sha256"
        self._scanners: tuple[scanner.Scanner, ...] = (
            registry.default_scanners()
        )
        self._max_workers: Optional[int] = None
        self._timeout: Optional[float] = None
        self._dockerfile: Optional[pathlib.Path] = None
        self._assembler = assembly.Assembler()

    def analyze(
        self,
        source: image_source.ImageSource,
        *,
        cancel: Optional[threading.Event] = None,
    ) -> sbom.SbomDocument:
        """Generates the unsigned SBOM of an image.

        Args:
            source: The image to analyze.
            cancel: Optional event the caller can set to stop the analysis
              early.

        Returns:
            The assembled document.

        Raises:
            ImageUnavailable: The image cannot be found or read.
        """
        layers = source.layers()
        digest = source.digest()
        logger.info("Analyzing %d layers of %s", len(layers), source.reference)

        records = self.analyze_layers(layers, cancel=cancel)
        return self._assembler.assemble(
            source.reference, digest, records, self._analyze_dockerfile()
        )

    def analyze_layers(
        self,
        layers: Sequence[image_source.LayerSource],
        *,
        cancel: Optional[threading.Event] = None,
    ) -> list[sbom.LayerRecord]:
        """Analyzes layers concurrently.

        Args:
            layers: The layers to analyze.
            cancel: Optional event the caller can set to stop the analysis
              early.

        Returns:
            One record per layer, ordered by layer index.
        """
        extractor = layer.Extractor(
            memory.ENGINES[self._hash_algorithm],
            watched_paths=registry.watched_paths(self._scanners),
        )
        stop = threading.Event()
        deadline = (
            None if self._timeout is None else time.monotonic() + self._timeout
        )
        records: dict[int, sbom.LayerRecord] = {}
        futures: dict[concurrent.futures.Future, image_source.LayerSource] = {}

        tpe = concurrent.futures.ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="layer"
        )
        try:
            futures = {
                tpe.submit(self._analyze_layer, extractor, item, stop): item
                for item in layers
            }
            pending = set(futures)
            while pending and not _expired(deadline, cancel):
                done, pending = concurrent.futures.wait(
                    pending,
                    timeout=_wait_timeout(deadline, cancel),
                    return_when=concurrent.futures.FIRST_COMPLETED,
                )
                for future in done:
                    records[futures[future].index] = future.result()

            if pending:
                logger.warning(
                    "Stopping analysis with %d layers unfinished", len(pending)
                )
        finally:
            stop.set()
            tpe.shutdown(wait=False, cancel_futures=True)
            _join(futures, _SHUTDOWN_GRACE_SECONDS)

        result = []
        for item in sorted(layers, key=lambda item: item.index):
            if item.index not in records:
                records[item.index] = sbom.LayerRecord(
                    layer_id=item.layer_id,
                    created=item.created,
                    notices=(
                        sbom.Notice.error(
                            "Analysis cancelled before the layer was finished"
                        ),
                    ),
                )
            result.append(records[item.index])
        return result

    def _analyze_layer(
        self,
        extractor: layer.Extractor,
        item: image_source.LayerSource,
        stop: threading.Event,
    ) -> sbom.LayerRecord:
        """Extracts and scans a single layer."""
        logger.debug("Analyzing layer %d (%s)", item.index, item.layer_id)
        try:
            with item.open() as stream:
                extraction = extractor.extract(
                    item.layer_id, stream, cancel=stop
                )
        except (LayerExtractionFailure, ImageUnavailable, OSError) as e:
            logger.warning("Cannot read layer %s: %s", item.layer_id, e)
            return sbom.LayerRecord(
                layer_id=item.layer_id,
                created=item.created,
                notices=(sbom.Notice.error(f"Cannot read layer: {e}"),),
            )

        scan = registry.scan(extraction.contents, self._scanners)
        return sbom.LayerRecord(
            layer_id=item.layer_id,
            created=item.created,
            os_guess=scan.os_guess,
            package_format=scan.package_format,
            files=extraction.files,
            packages=scan.result.packages,
            notices=extraction.notices + scan.result.notices,
            raw_output=scan.raw_output,
        )

    def _analyze_dockerfile(self) -> Optional[sbom.DockerfileAnalysis]:
        if self._dockerfile is None:
            return None
        try:
            return analysis.analyze_file(self._dockerfile)
        except BuildAnalysisFailure as e:
            logger.warning("Skipping Dockerfile analysis: %s", e)
            return None

    def set_hash_algorithm(self, algorithm: str) -> Self:
        """Sets the algorithm used for file checksums.

        Args:
            algorithm: One of `sha256`, `blake2b` and `blake3`.

        Returns:
            The new analysis configuration.

        Raises:
            ValueError: The algorithm is not supported.
        """
        memory.engine(algorithm)
        self._hash_algorithm = algorithm
        return self

    def set_scanners(self, scanners: Sequence[scanner.Scanner]) -> Self:
        """Sets the package scanners to try on every layer, in order."""
        self._scanners = tuple(scanners)
        return self

    def set_max_workers(self, max_workers: Optional[int]) -> Self:
        """Sets the maximum number of layers analyzed at once.

        Args:
            max_workers: Pool size, `None` for the executor default.

        Returns:
            The new analysis configuration.

        Raises:
            ValueError: The value is not positive.
        """
        if max_workers is not None and max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self._max_workers = max_workers
        return self

    def set_timeout(self, timeout: Optional[float]) -> Self:
        """Sets the time budget for analyzing all layers, in seconds.

        Args:
            timeout: Seconds, or `None` to wait for every layer.

        Returns:
            The new analysis configuration.

        Raises:
            ValueError: The value is not positive.
        """
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self._timeout = timeout
        return self

    def set_dockerfile(self, path: Optional[PathLike]) -> Self:
        """Sets the Dockerfile to analyze along with the image.

        A Dockerfile that cannot be read or parsed is skipped with a
        warning; the document then has no build provenance.
        """
        self._dockerfile = None if path is None else pathlib.Path(path)
        return self

    def set_identity(
        self,
        *,
        name: Optional[str] = None,
        namespace: Optional[str] = None,
        document_id: Optional[str] = None,
        created: Optional[str] = None,
    ) -> Self:
        """Fixes the identity of the generated documents.

        Fields left as `None` keep being generated for every document.

        Returns:
            The new analysis configuration.
        """
        self._assembler = assembly.Assembler(
            name=name,
            namespace=namespace,
            document_id=document_id,
            created=created,
        )
        return self

    def set_assembler(self, assembler: assembly.Assembler) -> Self:
        """Sets the assembler, e.g. to fix the identity of the documents."""
        self._assembler = assembler
        return self


def _join(
    futures: Iterable[concurrent.futures.Future], timeout: float
) -> None:
    """Waits for the workers still running when the analysis stopped."""
    _, running = concurrent.futures.wait(futures, timeout=timeout)
    if running:
        logger.warning(
            "%d layer workers still running after %.1f seconds",
            len(running),
            timeout,
        )


def _expired(
    deadline: Optional[float], cancel: Optional[threading.Event]
) -> bool:
    if cancel is not None and cancel.is_set():
        return True
    return deadline is not None and time.monotonic() >= deadline


def _wait_timeout(
    deadline: Optional[float], cancel: Optional[threading.Event]
) -> Optional[float]:
    """How long to block before checking for cancellation again."""
    timeout = None if deadline is None else deadline - time.monotonic()
    if cancel is not None:
        timeout = (
            _POLL_INTERVAL_SECONDS
            if timeout is None
            else min(timeout, _POLL_INTERVAL_SECONDS)
        )
    return None if timeout is None else max(timeout, 0.0)
