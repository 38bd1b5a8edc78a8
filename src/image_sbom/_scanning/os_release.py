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

"""Best effort detection of the operating system shipped in a layer."""

import shlex


PATHS = ("etc/os-release", "usr/lib/os-release")


def parse(text: str) -> str:
    """Returns a human readable OS name from an `os-release` file.

    `PRETTY_NAME` is preferred, then `ID` and `VERSION_ID`. Returns an empty
    string if nothing usable is found.
    """
    values = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, raw = line.partition("=")
        if not sep:
            continue
        try:
            words = shlex.split(raw)
        except ValueError:
            words = [raw.strip("\"'")]
        values[key.strip()] = " ".join(words)

    if values.get("PRETTY_NAME"):
        return values["PRETTY_NAME"]
    return " ".join(
        v for v in (values.get("ID", ""), values.get("VERSION_ID", "")) if v
    )
