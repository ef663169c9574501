"""Unit tests for roundup.services.normalize and scanner_mappers: scanner records to findings."""

import unittest

from roundup.services.normalize import (
    cve_sort_key,
    normalize,
    parse_score,
    split_package_name,
    strip_store_paths,
)
from roundup.services.scanner_mappers import extract_records, flatten_maintainers

HASH = "0" * 32


def _record(**kwargs: object) -> dict:
    """Minimal vulnix record."""
    rec: dict = {
        "name": "libtiff-4.0.9",
        "pname": "libtiff",
        "version": "4.0.9",
        "derivation": f"/nix/store/{'a' * 32}-libtiff-4.0.9.drv",
        "affected_by": ["CVE-2018-5784", "CVE-2017-11613"],
        "whitelisted": [],
        "cvssv3_basescore": {"CVE-2018-5784": 6.5, "CVE-2017-11613": 7.5},
        "description": {"CVE-2018-5784": "Uncontrolled resource consumption."},
    }
    rec.update(kwargs)
    return rec


class TestSplitPackageName(unittest.TestCase):
    """Name/version split at the first dash followed by a digit."""

    def test_splits_at_first_dash_digit(self) -> None:
        self.assertEqual(split_package_name("libtiff-4.0.9"), ("libtiff", "4.0.9"))
        self.assertEqual(split_package_name("python3.7-acoustics-0.2.3"), ("python3.7-acoustics", "0.2.3"))

    def test_no_version(self) -> None:
        self.assertEqual(split_package_name("hello"), ("hello", ""))


class TestStripStorePaths(unittest.TestCase):
    """Store path rewriting in free text."""

    def test_rewrites_store_path_to_name(self) -> None:
        text = f"see /nix/store/{HASH}-openssl-1.0.2/lib for details"
        self.assertEqual(strip_store_paths(text), "see openssl-1.0.2/lib for details")

    def test_custom_store_dir(self) -> None:
        self.assertEqual(strip_store_paths(f"/gnu/store/{HASH}-x.patch", "/gnu/store"), "x.patch")

    def test_leaves_short_hash_alone(self) -> None:
        text = "/nix/store/abc-foo"
        self.assertEqual(strip_store_paths(text), text)

    def test_none(self) -> None:
        self.assertIsNone(strip_store_paths(None))


class TestParseScore(unittest.TestCase):
    """Score validation."""

    def test_valid(self) -> None:
        self.assertEqual(parse_score(9.8), 9.8)
        self.assertEqual(parse_score(0), 0.0)

    def test_out_of_range_dropped(self) -> None:
        self.assertIsNone(parse_score(11.0))
        self.assertIsNone(parse_score(-1))

    def test_non_numeric_dropped(self) -> None:
        self.assertIsNone(parse_score("high"))
        self.assertIsNone(parse_score(True))


class TestCveSortKey(unittest.TestCase):
    """Numeric CVE ordering."""

    def test_numeric_order(self) -> None:
        ids = ["CVE-2019-10000", "CVE-2019-9999", "CVE-2018-20000"]
        self.assertEqual(
            sorted(ids, key=cve_sort_key),
            ["CVE-2018-20000", "CVE-2019-9999", "CVE-2019-10000"],
        )


class TestExtractRecords(unittest.TestCase):
    """Record list extraction from scanner payloads."""

    def test_list(self) -> None:
        self.assertEqual(extract_records([{"a": 1}]), [{"a": 1}])

    def test_single_object(self) -> None:
        self.assertEqual(extract_records({"name": "x"}), [{"name": "x"}])

    def test_wrapped(self) -> None:
        for key in ("packages", "results", "vulnerabilities"):
            self.assertEqual(extract_records({key: [{"n": 1}]}), [{"n": 1}])

    def test_scalar(self) -> None:
        self.assertEqual(extract_records("nope"), [])


class TestFlattenMaintainers(unittest.TestCase):
    """Maintainer shapes flattened to handles."""

    def test_mixed_shapes(self) -> None:
        value = [
            "alice",
            {"github": "Bob", "email": "bob@example.org"},
            {"email": "nogithub@example.org"},
            [{"github": "carol"}, ["dave"]],
        ]
        self.assertEqual(flatten_maintainers(value), ["alice", "Bob", "carol", "dave"])


class TestNormalize(unittest.TestCase):
    """Channel normalization end to end."""

    def test_one_finding_per_cve(self) -> None:
        result = normalize([_record()], "nixos-19.09")
        self.assertEqual(len(result.findings), 2)
        self.assertEqual(result.diagnostics, [])
        by_cve = {f.cve_id: f for f in result.findings}
        f = by_cve["CVE-2018-5784"]
        self.assertEqual(f.name, "libtiff-4.0.9")
        self.assertEqual(f.pname, "libtiff")
        self.assertEqual(f.version, "4.0.9")
        self.assertEqual(f.channel, "nixos-19.09")
        self.assertEqual(f.score, 6.5)
        self.assertEqual(f.description, "Uncontrolled resource consumption.")
        self.assertEqual(f.source_ref, "libtiff-4.0.9.drv")
        self.assertIsNone(by_cve["CVE-2017-11613"].description)

    def test_scalar_shapes(self) -> None:
        rec = {
            "pname": "foo",
            "version": "1.0",
            "cve": "CVE-2020-0001",
            "score": 5,
            "description": "Bad thing",
            "patches": f"/nix/store/{HASH}-fix.patch",
            "attrpath": "python3Packages.foo",
            "maintainers": [{"github": "alice"}],
        }
        result = normalize(rec, "nixos-unstable")
        self.assertEqual(len(result.findings), 1)
        f = result.findings[0]
        self.assertEqual(f.name, "foo-1.0")
        self.assertEqual(f.score, 5.0)
        self.assertEqual(f.description, "Bad thing")
        self.assertEqual(f.patches, ("fix.patch",))
        self.assertEqual(f.attr_path, ("python3Packages", "foo"))
        self.assertEqual(f.attribute, "python3Packages.foo")
        self.assertEqual(f.maintainers, ("alice",))

    def test_missing_identity_is_skipped_with_diagnostic(self) -> None:
        result = normalize([{"affected_by": ["CVE-2020-0001"]}, _record()], "c")
        self.assertEqual(len(result.findings), 2)
        self.assertEqual(len(result.diagnostics), 1)
        self.assertEqual(result.diagnostics[0].category, "malformed_input")
        self.assertIn("record 0", result.diagnostics[0].message)

    def test_record_without_cves_is_skipped(self) -> None:
        result = normalize([_record(affected_by=[])], "c")
        self.assertEqual(result.findings, [])
        self.assertEqual(len(result.diagnostics), 1)

    def test_non_object_record_is_skipped(self) -> None:
        result = normalize([42, _record()], "c")
        self.assertEqual(len(result.findings), 2)
        self.assertEqual(result.diagnostics[0].category, "malformed_input")

    def test_invalid_cve_excluded_valid_kept(self) -> None:
        result = normalize([_record(affected_by=["CVE-2018-5784", "GHSA-xxxx"])], "c")
        self.assertEqual([f.cve_id for f in result.findings], ["CVE-2018-5784"])
        self.assertEqual(len(result.diagnostics), 1)
        self.assertIn("GHSA-xxxx", result.diagnostics[0].message)

    def test_bad_score_becomes_absent(self) -> None:
        rec = _record(affected_by=["CVE-2018-5784"], cvssv3_basescore={"CVE-2018-5784": 42})
        result = normalize([rec], "c")
        self.assertIsNone(result.findings[0].score)

    def test_duplicates_collapse_first_wins(self) -> None:
        first = _record(affected_by=["CVE-2018-5784"], description={"CVE-2018-5784": "first"})
        second = _record(affected_by=["CVE-2018-5784"], description={"CVE-2018-5784": "second"})
        result = normalize([first, second], "c")
        self.assertEqual(len(result.findings), 1)
        self.assertEqual(result.findings[0].description, "first")

    def test_description_store_paths_stripped(self) -> None:
        rec = _record(
            affected_by=["CVE-2018-5784"],
            description={"CVE-2018-5784": f"in /nix/store/{HASH}-libtiff-4.0.9/bin"},
        )
        result = normalize([rec], "c")
        self.assertEqual(result.findings[0].description, "in libtiff-4.0.9/bin")
