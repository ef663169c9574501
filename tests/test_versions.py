"""Unit tests for roundup.services.versions: version ordering and constraint parsing."""

import unittest

from roundup.services.versions import compare_versions, parse_constraint, satisfies, split_version


class TestSplitVersion(unittest.TestCase):
    """Version component splitting."""

    def test_components(self) -> None:
        self.assertEqual(split_version("1.2.3"), ["1", "2", "3"])
        self.assertEqual(split_version("2.3a"), ["2", "3", "a"])
        self.assertEqual(split_version("1.0pre1"), ["1", "0", "pre", "1"])
        self.assertEqual(split_version("2019-03-01"), ["2019", "03", "01"])


class TestCompareVersions(unittest.TestCase):
    """Nix version ordering."""

    def test_numeric_not_lexicographic(self) -> None:
        self.assertEqual(compare_versions("1.10", "1.9"), 1)
        self.assertEqual(compare_versions("1.9", "1.10"), -1)

    def test_equal(self) -> None:
        self.assertEqual(compare_versions("1.0.2", "1.0.2"), 0)

    def test_longer_is_newer(self) -> None:
        self.assertEqual(compare_versions("1.0", "1.0.1"), -1)
        self.assertEqual(compare_versions("1.0", "1.0.0"), -1)

    def test_pre_is_older(self) -> None:
        self.assertEqual(compare_versions("1.0pre1", "1.0"), -1)

    def test_letter_before_number(self) -> None:
        self.assertEqual(compare_versions("2.3a", "2.3.1"), -1)
        self.assertEqual(compare_versions("1.0.2a", "1.0.2b"), -1)


class TestParseConstraint(unittest.TestCase):
    """Version constraint parsing."""

    def test_any(self) -> None:
        self.assertEqual(parse_constraint(None), [])
        self.assertEqual(parse_constraint("*"), [])
        self.assertEqual(parse_constraint(" "), [])

    def test_bare_version_is_equality(self) -> None:
        self.assertEqual(parse_constraint("1.0"), [("==", "1.0")])

    def test_range(self) -> None:
        self.assertEqual(
            parse_constraint(">=1.1.0, <1.1.1"),
            [(">=", "1.1.0"), ("<", "1.1.1")],
        )

    def test_invalid(self) -> None:
        with self.assertRaises(ValueError):
            parse_constraint(">=")
        with self.assertRaises(ValueError):
            parse_constraint("1.0,")


class TestSatisfies(unittest.TestCase):
    """Constraint evaluation."""

    def test_range(self) -> None:
        comparators = parse_constraint(">=1.1.0, <1.1.1")
        self.assertTrue(satisfies("1.1.0", comparators))
        self.assertTrue(satisfies("1.1.0k", comparators))
        self.assertFalse(satisfies("1.1.1", comparators))
        self.assertFalse(satisfies("1.0.2", comparators))

    def test_not_equal(self) -> None:
        self.assertFalse(satisfies("2.0", parse_constraint("!=2.0")))
        self.assertTrue(satisfies("2.1", parse_constraint("!=2.0")))

    def test_empty_accepts_all(self) -> None:
        self.assertTrue(satisfies("anything", []))
