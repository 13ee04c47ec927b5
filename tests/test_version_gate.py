"""Unit tests for chartmigrate/version_gate.py"""

import pytest

from chartmigrate.error_utils import VersionError, VersionFormatError, VersionParseError, VersionTooOldError
from chartmigrate.version_gate import check_helm_version, check_minimum_version, extract_version, is_older


class TestExtractVersion:
    """Tests for extract_version"""

    @pytest.mark.parametrize(
        "output, expected",
        [
            ("v3.19.0+gce43812", "3.19.0"),
            ("v3.19.0", "3.19.0"),
            ("3.19.0", "3.19.0"),
            ("v3.20.1\n", "3.20.1"),
            ("v4.0.0-rc1+g1234", "4.0.0-rc1"),
        ],
    )
    def test_strips_prefix_and_build_metadata(self, output, expected):
        """Test the numeric core is kept and v/+metadata dropped"""
        assert extract_version(output) == expected

    @pytest.mark.parametrize("output", ["v3.19", "3.19", "v3.19.0.1", "", "version.BuildInfo{}"])
    def test_wrong_number_of_components(self, output):
        """Test anything but three dot-separated parts is a parse error"""
        with pytest.raises(VersionParseError):
            extract_version(output)


class TestCheckMinimumVersion:
    """Tests for check_minimum_version"""

    def test_accepts_version_with_build_metadata(self):
        """Test 'v3.19.0+gce43812' is accepted as 3.19.0"""
        assert check_minimum_version("v3.19.0+gce43812", "3.19.0") == "3.19.0"

    def test_equal_to_minimum_passes(self):
        """Test the boundary: exactly the minimum is accepted"""
        assert check_minimum_version("3.19.0", "v3.19.0") == "3.19.0"

    def test_newer_versions_pass(self):
        """Test newer minor and major versions are accepted"""
        assert check_minimum_version("v3.20.0", "3.19.0") == "3.20.0"
        assert check_minimum_version("v4.0.0", "3.19.0") == "4.0.0"
        assert check_minimum_version("v3.19.10", "3.19.2") == "3.19.10"

    def test_too_old(self):
        """Test v3.18.9 is rejected against 3.19.0"""
        with pytest.raises(VersionTooOldError) as exc_info:
            check_minimum_version("v3.18.9", "3.19.0")
        assert exc_info.value.details == {"found": "3.18.9", "required": "3.19.0"}
        assert exc_info.value.fatal is True

    def test_prerelease_sorts_below_release(self):
        """Test 3.19.0-rc1 does not satisfy 3.19.0"""
        with pytest.raises(VersionTooOldError):
            check_minimum_version("v3.19.0-rc1", "3.19.0")

    def test_two_components_is_parse_error(self):
        """Test '3.19' fails with a parse error, not a format error"""
        with pytest.raises(VersionParseError):
            check_minimum_version("3.19", "3.19.0")

    @pytest.mark.parametrize("output", ["v3.x.0", "v03.19.0", "3.19.0-", "3.19.0-rc_1", "v3..0", "3.19.0-01"])
    def test_invalid_semver_is_format_error(self, output):
        """Test three parts that are not a semantic version fail with a format error"""
        with pytest.raises(VersionFormatError):
            check_minimum_version(output, "3.19.0")

    def test_all_errors_are_version_errors(self):
        """Test callers can catch the whole family at once"""
        for output in ("3.19", "v3.x.0", "v3.0.0"):
            with pytest.raises(VersionError):
                check_minimum_version(output, "3.19.0")


class TestIsOlder:
    """Tests for semantic-version ordering"""

    def test_numeric_not_lexical_comparison(self):
        """Test 3.9.0 < 3.19.0 even though '9' > '1'"""
        assert is_older("3.9.0", "3.19.0") is True
        assert is_older("3.19.0", "3.9.0") is False

    def test_prerelease_ordering(self):
        """Test pre-releases of the same core compare among themselves"""
        assert is_older("3.19.0-alpha", "3.19.0-beta") is True
        assert is_older("3.19.0", "3.19.0-rc1") is False

    def test_numeric_prerelease_identifiers(self):
        """Test numeric pre-release identifiers compare as numbers"""
        assert is_older("3.19.0-9", "3.19.0-10") is True
        assert is_older("3.19.0-10", "3.19.0-9") is False
        assert is_older("3.19.0-rc.2", "3.19.0-rc.10") is True

    def test_prerelease_identifier_precedence(self):
        """Test numeric identifiers rank below alphanumeric ones and longer sets rank higher"""
        assert is_older("3.19.0-1", "3.19.0-alpha") is True
        assert is_older("3.19.0-alpha", "3.19.0-alpha.1") is True
        assert is_older("3.19.0-alpha.1", "3.19.0-alpha") is False
        assert is_older("3.19.0-rc.1", "3.19.0-rc.1") is False


class TestCheckHelmVersion:
    """Tests for check_helm_version"""

    def test_uses_tool_output(self, fake_tool, caplog):
        """Test the version reported by the tool is gated and logged"""
        fake_tool.version_output = "v3.19.2+gabcdef"
        with caplog.at_level("INFO"):
            assert check_helm_version(fake_tool, "3.19.0") == "3.19.2"
        assert "Helm version check passed: 3.19.2" in caplog.text

    def test_rejects_old_tool(self, fake_tool):
        """Test an old tool stops the run"""
        fake_tool.version_output = "v3.12.1+gf32a527"
        with pytest.raises(VersionTooOldError):
            check_helm_version(fake_tool)
