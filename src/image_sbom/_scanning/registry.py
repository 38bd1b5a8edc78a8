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

"""Selection of the scanner matching the content of a layer."""

from collections.abc import Iterable, Mapping, Sequence
import dataclasses
import logging

from image_sbom._scanning import apk
from image_sbom._scanning import dpkg
from image_sbom._scanning import os_release
from image_sbom._scanning import scanner


logger = logging.getLogger(__name__)


def default_scanners() -> tuple[scanner.Scanner, ...]:
    """All supported scanners, in lookup order."""
    return (apk.Scanner(), dpkg.Scanner())


def watched_paths(scanners: Iterable[scanner.Scanner]) -> frozenset[str]:
    """The normalized layer paths whose content is needed for scanning."""
    paths = set(os_release.PATHS)
    for s in scanners:
        paths.update(s.database_paths)
    return frozenset(paths)


@dataclasses.dataclass(frozen=True)
class LayerScan:
    """What scanning found in a single layer."""

    os_guess: str = ""
    package_format: str = ""
    raw_output: str = ""
    result: scanner.ScanResult = scanner.ScanResult()


def scan(
    contents: Mapping[str, bytes], scanners: Sequence[scanner.Scanner]
) -> LayerScan:
    """Scans the captured content of a layer.

    The first scanner whose database is present wins. A layer without any
    package database is not an error: it produces an empty result.

    Args:
        contents: Content of the watched paths found in the layer, keyed by
          normalized path.
        scanners: The scanners to try, in order.
    """
    os_guess = ""
    for path in os_release.PATHS:
        if path in contents:
            os_guess = os_release.parse(_decode(contents[path]))
            break

    for s in scanners:
        for path in s.database_paths:
            if path not in contents:
                continue
            text = _decode(contents[path])
            result = s.parse(text)
            logger.debug(
                "Found %d %s packages in %s",
                len(result.packages),
                s.package_format,
                path,
            )
            return LayerScan(
                os_guess=os_guess,
                package_format=s.package_format,
                raw_output=text,
                result=result,
            )

    return LayerScan(os_guess=os_guess)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")
