"""Tests for shared types."""

import pytest

from gt_installer.types import Loader, SetupTarget, StepStatus, Version, VersionBump


class TestVersion:
    """Tests for Version."""

    def test_parse_with_prefix(self):
        """Should accept a leading v."""
        assert Version.parse("v1.0.3") == Version(1, 0, 3)

    def test_parse_without_prefix(self):
        """Should accept bare versions and surrounding whitespace."""
        assert Version.parse(" 12.4.0\n") == Version(12, 4, 0)

    @pytest.mark.parametrize("text", ["", "1.0", "v1.0.x", "release-1.0.3"])
    def test_parse_rejects_non_versions(self, text):
        """Should raise ValueError for anything that is not X.Y.Z."""
        with pytest.raises(ValueError):
            Version.parse(text)

    def test_search_in_output(self):
        """Should find a version embedded in program output."""
        assert Version.search("GlamorousToolkit App v1.0.7 (abc)") == Version(1, 0, 7)

    def test_search_without_version(self):
        """Should raise ValueError when no version is present."""
        with pytest.raises(ValueError):
            Version.search("nothing here")

    def test_ordering(self):
        """Versions should order numerically."""
        assert Version(1, 0, 10) > Version(1, 0, 9)
        assert Version(2, 0, 0) > Version(1, 99, 99)

    def test_str(self):
        """Should render without the v prefix."""
        assert str(Version(1, 0, 3)) == "1.0.3"


class TestEnums:
    """Tests for enum values used on the command line and in logs."""

    def test_values(self):
        """Enum values should match their command line spelling."""
        assert Loader("cloner") is Loader.CLONER
        assert Loader("metacello") is Loader.METACELLO
        assert SetupTarget("local-build") is SetupTarget.LOCAL_BUILD
        assert VersionBump("patch") is VersionBump.PATCH
        assert StepStatus.PENDING.value == "pending"
