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

"""Machinery for parsing package-manager databases.

Package databases of the common Linux distributions are line oriented: a
package is a group of `key: value` lines and groups are separated by blank
lines. `FieldScanner` implements this shape once, as a small state machine:

- every recognized line assigns its value to a field of an accumulator
  record (all fields start empty);
- a blank line terminates the record: the accumulator is emitted if its
  name is set, and discarded otherwise;
- unrecognized lines are ignored.

Concrete scanners only declare where their database lives inside a layer and
how to split a line into a key and a value.
"""

import abc
from collections.abc import Mapping
import dataclasses

from image_sbom import sbom


@dataclasses.dataclass(frozen=True)
class ScanResult:
    """Packages parsed from one database, with parse diagnostics."""

    packages: tuple[sbom.PackageRecord, ...] = ()
    notices: tuple[sbom.Notice, ...] = ()


class Scanner(metaclass=abc.ABCMeta):
    """Generic package database scanner."""

    @property
    @abc.abstractmethod
    def package_format(self) -> str:
        """The name of the package format, recorded on the layer."""

    @property
    @abc.abstractmethod
    def database_paths(self) -> tuple[str, ...]:
        """Where the database can be found, relative to the layer root.

        Paths are normalized: no leading `./` or `/`.
        """

    @abc.abstractmethod
    def parse(self, text: str) -> ScanResult:
        """Parses the content of the database."""


class FieldScanner(Scanner):
    """Scanner for databases made of blank-line separated field groups."""

    # Maps a database key to the `PackageRecord` field receiving its value.
    fields: Mapping[str, str] = {}

    @abc.abstractmethod
    def split_line(self, line: str) -> tuple[str, str] | None:
        """Splits a line into key and value.

        Returns `None` when the line does not hold a field.
        """

    def parse(self, text: str) -> ScanResult:
        packages = []
        notices = []
        current: dict[str, str] = {}

        for line in text.splitlines():
            if not line.strip():
                if current.get("name"):
                    packages.append(sbom.PackageRecord(**current))
                current = {}
                continue

            parts = self.split_line(line)
            if parts is None:
                continue
            key, value = parts
            field = self.fields.get(key)
            if field is not None:
                current[field] = value

        if any(current.values()):
            notices.append(
                sbom.Notice.info(
                    f"Discarded unterminated record at the end of the "
                    f"{self.package_format} database"
                )
            )

        return ScanResult(tuple(packages), tuple(notices))
