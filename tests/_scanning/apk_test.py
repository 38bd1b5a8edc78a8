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

from image_sbom import sbom
from image_sbom._scanning import apk
from tests import test_support


class TestApkScanner:
    def test_format_and_paths(self):
        scanner = apk.Scanner()
        assert scanner.package_format == "apk"
        assert scanner.database_paths == ("lib/apk/db/installed",)

    def test_group_without_name_is_discarded(self):
        result = apk.Scanner().parse("P:curl\nV:7.88\n\nP:\nV:1.0\n\n")

        assert result.packages == (
            sbom.PackageRecord(name="curl", version="7.88"),
        )
        assert result.notices == ()

    def test_all_fields(self):
        result = apk.Scanner().parse(test_support.APK_DATABASE)

        assert result.packages == (
            sbom.PackageRecord(
                name="musl",
                version="1.2.4-r2",
                source="1698154400",
                license="MIT",
                vendor="musl",
                checksum="Q1Tm6cQqhvPp2LS4Js6LKTzV5oQ4g=",
            ),
            sbom.PackageRecord(
                name="busybox",
                version="1.36.1-r15",
                license="GPL-2.0-only",
                vendor="busybox",
            ),
        )

    def test_unknown_prefixes_are_ignored(self):
        text = "P:zlib\nA:x86_64\nS:12345\nnot a field\nV:1.3\n\n"
        result = apk.Scanner().parse(text)
        assert result.packages == (
            sbom.PackageRecord(name="zlib", version="1.3"),
        )

    def test_value_keeps_colons(self):
        result = apk.Scanner().parse("P:a\nV:1:2.0\n\n")
        assert result.packages[0].version == "1:2.0"

    def test_unterminated_trailing_record_is_not_emitted(self):
        result = apk.Scanner().parse("P:musl\n\nP:zlib\nV:1.3\n")

        assert [p.name for p in result.packages] == ["musl"]
        assert len(result.notices) == 1
        assert result.notices[0].level == sbom.Level.INFO

    def test_consecutive_blank_lines(self):
        result = apk.Scanner().parse("\n\nP:a\n\n\n\nP:b\n\n")
        assert [p.name for p in result.packages] == ["a", "b"]

    def test_empty_database(self):
        result = apk.Scanner().parse("")
        assert result.packages == ()
        assert result.notices == ()

    def test_crlf_line_endings(self):
        result = apk.Scanner().parse("P:a\r\nV:1\r\n\r\n")
        assert result.packages == (sbom.PackageRecord(name="a", version="1"),)
