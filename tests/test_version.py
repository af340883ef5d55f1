"""
Unit tests for the version module.

Tests parsing and ordering of kernel version strings.
"""

import itertools
import unittest

from kernel_janitor.errors import InvalidVersion
from kernel_janitor.version import KernelVersion, compare, parse


class TestParse(unittest.TestCase):
    """Tests for parse function."""

    def test_parse_source_dir_name(self):
        """Test parsing a source directory name with the linux- prefix."""
        version = parse("linux-5.7.11-gentoo")

        self.assertEqual((version.major, version.minor, version.patch), (5, 7, 11))
        self.assertEqual(version.extra, ((False, "gentoo"),))

    def test_prefix_and_module_form_are_equal(self):
        """Test that source and module directory forms give the same version."""
        self.assertEqual(parse("linux-5.10.1-gentoo"), parse("5.10.1-gentoo"))
        self.assertEqual(hash(parse("linux-5.10.1-gentoo")), hash(parse("5.10.1-gentoo")))

    def test_parse_release_candidate(self):
        version = parse("linux-2.6.999-rc1234-gentoo")

        self.assertEqual((version.major, version.minor, version.patch), (2, 6, 999))
        self.assertEqual(version.extra, ((False, "rc1234"), (False, "gentoo")))

    def test_parse_numeric_extra_tokens(self):
        version = parse("5.15.0-82-generic")

        self.assertEqual(version.extra, ((True, "82"), (False, "generic")))

    def test_missing_minor_and_patch_default_to_zero(self):
        version = parse("6-rc1")

        self.assertEqual((version.major, version.minor, version.patch), (6, 0, 0))
        self.assertEqual(version.extra, ((False, "rc1"),))
        self.assertEqual(parse("6.1-rc1").minor, 1)

    def test_display_strips_prefix(self):
        self.assertEqual(str(parse("linux-5.10.1-gentoo")), "5.10.1-gentoo")
        self.assertEqual(str(parse("5.15.0")), "5.15.0")

    def test_display_round_trip(self):
        """Test that parsing the displayed form gives an equal version."""
        for text in ("linux-5.10.1-gentoo", "5.15.0-82-generic", "6-rc1",
                     "linux-4.10.0-rc8-gentoo", "5.10.1.2"):
            version = parse(text)
            self.assertEqual(parse(str(version)), version, text)

    def test_display_without_source_text(self):
        version = KernelVersion(5, 10, 1, ((False, "gentoo"),))

        self.assertEqual(str(version), "5.10.1-gentoo")
        self.assertEqual(parse(str(version)), version)

    def test_invalid_versions(self):
        """Test that strings without a numeric major component are rejected."""
        for text in ("", "SoYouThink-ImAKernel", "linux", "linux-", "-5.10.1",
                     "gentoo-5.10.1", "vmlinuz-5.10.1"):
            with self.assertRaises(InvalidVersion, msg=text):
                parse(text)

    def test_invalid_version_is_value_error(self):
        with self.assertRaises(ValueError):
            parse("not-a-kernel")


class TestOrdering(unittest.TestCase):
    """Tests for version comparison."""

    def test_numeric_patch_comparison(self):
        """Test that 5.10.10 is newer than 5.10.2 (numeric, not lexicographic)."""
        self.assertEqual(compare(parse("5.10.2"), parse("5.10.10")), -1)
        self.assertEqual(compare(parse("5.10.10"), parse("5.10.2")), 1)
        self.assertLess(parse("5.10.2"), parse("5.10.10"))

    def test_equal_versions(self):
        self.assertEqual(compare(parse("linux-2.6.0-gentoo"), parse("2.6.0-gentoo")), 0)

    def test_major_minor_patch_order(self):
        self.assertGreater(parse("linux-4.10.5-gentoo"), parse("linux-4.10.0-gentoo"))
        self.assertGreater(parse("5.0.0"), parse("4.99.99"))
        self.assertGreater(parse("4.11.0"), parse("4.10.99"))

    def test_numeric_token_beats_text_token(self):
        self.assertGreater(parse("5.10.1-1"), parse("5.10.1-gentoo"))

    def test_text_tokens_compare_lexicographically(self):
        self.assertGreater(parse("5.10.1-rc2"), parse("5.10.1-rc10"))
        self.assertLess(parse("5.10.1-alpha"), parse("5.10.1-beta"))

    def test_numeric_extra_tokens_compare_numerically(self):
        self.assertLess(parse("5.15.0-82-generic"), parse("5.15.0-91-generic"))
        self.assertLess(parse("5.15.0-9-generic"), parse("5.15.0-10-generic"))

    def test_prefix_sorts_lower(self):
        """Test that a shorter suffix that is a prefix of a longer one sorts lower."""
        self.assertLess(parse("5.10.1"), parse("5.10.1-gentoo"))
        self.assertLess(parse("5.10.1-gentoo"), parse("5.10.1-gentoo-r1"))

    def test_sort_versions(self):
        versions = [parse(text) for text in (
            "linux-5.12.0-gentoo",
            "5.10.2-gentoo",
            "linux-2.6.0-gentoo",
            "5.10.10-gentoo",
            "4.10.0-gentoo",
        )]

        self.assertEqual(
            [str(version) for version in sorted(versions)],
            ["2.6.0-gentoo", "4.10.0-gentoo", "5.10.2-gentoo",
             "5.10.10-gentoo", "5.12.0-gentoo"],
        )

    def test_ordering_is_antisymmetric_and_transitive(self):
        versions = [parse(text) for text in (
            "5.10.1", "5.10.1-gentoo", "5.10.1-1", "5.10.1-rc1", "5.10.1-r1",
            "5.10.10", "5.9.99-gentoo", "6-rc1", "6.0.0", "5.10.1-gentoo-r2",
        )]

        for a, b in itertools.product(versions, repeat=2):
            self.assertEqual(compare(a, b), -compare(b, a), (a, b))

        for a, b, c in itertools.product(versions, repeat=3):
            if compare(a, b) <= 0 and compare(b, c) <= 0:
                self.assertLessEqual(compare(a, c), 0, (a, b, c))

    def test_comparison_with_other_types(self):
        self.assertNotEqual(parse("5.10.1"), "5.10.1")


if __name__ == '__main__':
    unittest.main()
