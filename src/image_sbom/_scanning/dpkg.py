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

"""Scanner for the Debian package manager (dpkg) status database."""

from typing_extensions import override

from image_sbom._scanning import scanner


class Scanner(scanner.FieldScanner):
    """Scanner for `var/lib/dpkg/status`.

    Records use RFC 822 style `Key: value` lines. Lines starting with
    whitespace continue the previous field (e.g. the long description) and
    are skipped.
    """

    fields = {
        "Package": "name",
        "Version": "version",
        "Maintainer": "vendor",
        "Source": "source",
    }

    @property
    @override
    def package_format(self) -> str:
        return "dpkg"

    @property
    @override
    def database_paths(self) -> tuple[str, ...]:
        return ("var/lib/dpkg/status",)

    @override
    def split_line(self, line: str) -> tuple[str, str] | None:
        if line[0] in " \t":
            return None
        key, sep, value = line.partition(":")
        if not sep:
            return None
        return key.strip(), value.strip()
