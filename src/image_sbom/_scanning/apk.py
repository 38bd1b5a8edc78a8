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

"""Scanner for the Alpine package manager (apk) database.

The installed database is a sequence of records, one field per line, where
each line starts with a single character key followed by `:`.

```
P:musl
V:1.2.4-r2
L:MIT
o:musl
t:1698154400
C:Q1Tm6cQqhvPp2LS4Js6LKTzV5oQ4g=

```
"""

from typing_extensions import override

from image_sbom._scanning import scanner


class Scanner(scanner.FieldScanner):
    """Scanner for `lib/apk/db/installed`."""

    fields = {
        "P": "name",
        "V": "version",
        "L": "license",
        "o": "vendor",
        "t": "source",
        "C": "checksum",
    }

    @property
    @override
    def package_format(self) -> str:
        return "apk"

    @property
    @override
    def database_paths(self) -> tuple[str, ...]:
        return ("lib/apk/db/installed",)

    @override
    def split_line(self, line: str) -> tuple[str, str] | None:
        if len(line) < 2 or line[1] != ":":
            return None
        return line[0], line[2:]
