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

from image_sbom._scanning import registry
from tests import test_support


class TestRegistry:
    def test_watched_paths(self):
        paths = registry.watched_paths(registry.default_scanners())
        assert paths == {
            "etc/os-release",
            "usr/lib/os-release",
            "lib/apk/db/installed",
            "var/lib/dpkg/status",
        }

    def test_scan_apk_layer(self):
        contents = {
            "etc/os-release": test_support.OS_RELEASE.encode("utf-8"),
            "lib/apk/db/installed": test_support.APK_DATABASE.encode("utf-8"),
        }
        scan = registry.scan(contents, registry.default_scanners())

        assert scan.os_guess == "Alpine Linux v3.19"
        assert scan.package_format == "apk"
        assert scan.raw_output == test_support.APK_DATABASE
        assert [p.name for p in scan.result.packages] == ["musl", "busybox"]

    def test_scan_dpkg_layer(self):
        contents = {
            "var/lib/dpkg/status": test_support.DPKG_STATUS.encode("utf-8")
        }
        scan = registry.scan(contents, registry.default_scanners())

        assert scan.os_guess == ""
        assert scan.package_format == "dpkg"
        assert [p.name for p in scan.result.packages] == ["libc6"]

    def test_missing_database_is_an_empty_result(self):
        scan = registry.scan({}, registry.default_scanners())

        assert scan == registry.LayerScan()
        assert scan.result.packages == ()
        assert scan.result.notices == ()

    def test_first_scanner_wins(self):
        contents = {
            "lib/apk/db/installed": b"P:a\n\n",
            "var/lib/dpkg/status": b"Package: b\n\n",
        }
        scan = registry.scan(contents, registry.default_scanners())
        assert scan.package_format == "apk"

    def test_undecodable_database(self):
        contents = {"lib/apk/db/installed": b"P:caf\xe9\n\n"}
        scan = registry.scan(contents, registry.default_scanners())
        assert scan.result.packages[0].name == "caf\ufffd"
