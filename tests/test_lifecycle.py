"""Unit tests for roundup.services.lifecycle: grouping, collisions and NEW/CARRIED/RESOLVED decisions."""

import unittest

from roundup.core.errors import IdentityCollision
from roundup.schemas.findings import Finding
from roundup.schemas.ticket import LifecycleSnapshot, LifecycleStatus
from roundup.schemas.whitelist import WhitelistRule
from roundup.services.lifecycle import build_entries, group_by_identity, reconcile
from roundup.services.normalize import normalize
from roundup.services.whitelist import SuppressedFinding


def _finding(
    name: str = "foo-1.0",
    cve_id: str = "CVE-2020-0001",
    channel: str = "nixos-19.09",
    score: float | None = None,
    **kwargs: object,
) -> Finding:
    pname, _, version = name.partition("-")
    return Finding(
        name=name,
        pname=pname,
        version=version,
        channel=channel,
        cve_id=cve_id,
        score=score,
        **kwargs,
    )


def _snapshot(identity: str, status: LifecycleStatus, iteration: int = 1) -> LifecycleSnapshot:
    return LifecycleSnapshot(identity=identity, status=status, iteration=iteration)


class TestGroupByIdentity(unittest.TestCase):
    """Grouping active findings and detecting identity collisions."""

    def test_groups_across_channels(self) -> None:
        groups = group_by_identity(
            [
                _finding(channel="nixos-unstable"),
                _finding(channel="nixos-19.09"),
                _finding("bar-2.0"),
            ]
        )
        self.assertEqual(list(groups), ["bar-2.0", "foo-1.0"])
        self.assertEqual(len(groups["foo-1.0"]), 2)

    def test_distinct_attribute_paths_in_one_channel_collide(self) -> None:
        with self.assertRaises(IdentityCollision) as ctx:
            group_by_identity(
                [
                    _finding(attr_path=("foo",), derivation=f"/nix/store/{'a' * 32}-foo-1.0.drv"),
                    _finding(
                        cve_id="CVE-2020-0002",
                        attr_path=("python3Packages", "foo"),
                        derivation=f"/nix/store/{'b' * 32}-foo-1.0.drv",
                    ),
                ]
            )
        self.assertEqual(ctx.exception.category, "identity_collision")

    def test_same_derivation_under_two_attributes_is_not_a_collision(self) -> None:
        drv = f"/nix/store/{'a' * 32}-foo-1.0.drv"
        groups = group_by_identity(
            [
                _finding(attr_path=("foo",), derivation=drv),
                _finding(cve_id="CVE-2020-0002", attr_path=("foo_1",), derivation=drv),
            ]
        )
        self.assertEqual(len(groups["foo-1.0"]), 2)

    def test_collision_detected_on_normalized_scanner_records(self) -> None:
        records = [
            {
                "name": "foo-1.0",
                "attrpath": "foo",
                "derivation": f"/nix/store/{'a' * 32}-foo-1.0.drv",
                "affected_by": ["CVE-2020-0001"],
            },
            {
                "name": "foo-1.0",
                "attrpath": "python3Packages.foo",
                "derivation": f"/nix/store/{'b' * 32}-foo-1.0.drv",
                "affected_by": ["CVE-2020-0002"],
            },
        ]
        findings = normalize(records, "nixos-19.09").findings
        self.assertEqual({f.source_ref for f in findings}, {"foo-1.0.drv"})
        with self.assertRaises(IdentityCollision):
            group_by_identity(findings)

    def test_distinct_attribute_paths_across_channels_are_fine(self) -> None:
        groups = group_by_identity(
            [
                _finding(attr_path=("foo",), channel="a"),
                _finding(attr_path=("pkgs", "foo"), channel="b"),
            ]
        )
        self.assertEqual(len(groups), 1)


class TestBuildEntries(unittest.TestCase):
    """CVE entries unioned across channels."""

    def test_order_and_channel_union(self) -> None:
        entries = build_entries(
            [
                _finding(cve_id="CVE-2020-0002", score=4.0),
                _finding(cve_id="CVE-2020-0003"),
                _finding(cve_id="CVE-2020-0001", score=9.0, channel="nixos-unstable"),
                _finding(cve_id="CVE-2020-0001", score=7.0, channel="nixos-19.09"),
                _finding(cve_id="CVE-2019-0009", score=4.0),
            ]
        )
        self.assertEqual(
            [e.cve_id for e in entries],
            ["CVE-2020-0001", "CVE-2019-0009", "CVE-2020-0002", "CVE-2020-0003"],
        )
        self.assertEqual(entries[0].score, 9.0)
        self.assertEqual(entries[0].channels, ("nixos-19.09", "nixos-unstable"))
        self.assertIsNone(entries[-1].score)


class TestReconcile(unittest.TestCase):
    """NEW, CARRIED and RESOLVED decisions."""

    def test_new_ticket_without_history(self) -> None:
        active = group_by_identity(
            [
                _finding(cve_id="CVE-2020-0001", score=9.0),
                _finding(cve_id="CVE-2020-0002", score=4.0),
            ]
        )
        decisions = reconcile(active, {})
        self.assertEqual(len(decisions), 1)
        d = decisions[0]
        self.assertEqual(d.status, LifecycleStatus.NEW)
        self.assertEqual([e.cve_id for e in d.entries], ["CVE-2020-0001", "CVE-2020-0002"])
        self.assertIsNone(d.previous_iteration)

    def test_carried_when_open_in_history(self) -> None:
        active = group_by_identity([_finding()])
        history = {"foo-1.0": _snapshot("foo-1.0", LifecycleStatus.NEW, 4)}
        decisions = reconcile(active, history)
        self.assertEqual(decisions[0].status, LifecycleStatus.CARRIED)
        self.assertEqual(decisions[0].previous_iteration, 4)

    def test_new_when_previously_resolved(self) -> None:
        active = group_by_identity([_finding()])
        history = {"foo-1.0": _snapshot("foo-1.0", LifecycleStatus.RESOLVED)}
        self.assertEqual(reconcile(active, history)[0].status, LifecycleStatus.NEW)

    def test_resolved_when_open_and_no_findings(self) -> None:
        history = {"bar-2.0": _snapshot("bar-2.0", LifecycleStatus.CARRIED, 6)}
        decisions = reconcile({}, history)
        self.assertEqual(len(decisions), 1)
        d = decisions[0]
        self.assertEqual(d.status, LifecycleStatus.RESOLVED)
        self.assertEqual(d.closure_reason, "fixed")
        self.assertEqual(d.name, "bar-2.0")
        self.assertEqual(d.pname, "bar")
        self.assertEqual(d.entries, [])
        self.assertFalse(d.is_open)

    def test_resolved_by_whitelist(self) -> None:
        f = _finding("baz-1.0", "CVE-2020-0003")
        rule = WhitelistRule(
            release="nixos-19.09", package="baz", version="1.0", cve_id="CVE-2020-0003", comment="vendored"
        )
        history = {"baz-1.0": _snapshot("baz-1.0", LifecycleStatus.NEW)}
        decisions = reconcile(
            {},
            history,
            suppressed_by_identity={"baz-1.0": [SuppressedFinding(finding=f, rule=rule)]},
        )
        d = decisions[0]
        self.assertEqual(d.closure_reason, "whitelisted")
        self.assertEqual(len(d.suppressed), 1)
        self.assertEqual(d.suppressed[0].comment, "vendored")
        self.assertEqual(d.suppressed[0].rule, "nixos-19.09: baz (1.0) CVE-2020-0003")

    def test_no_op_without_findings_or_open_history(self) -> None:
        history = {"old-1.0": _snapshot("old-1.0", LifecycleStatus.RESOLVED)}
        self.assertEqual(reconcile({}, history), [])

    def test_pings_override_record_handles(self) -> None:
        active = group_by_identity([_finding(maintainers=("Alice",))])
        self.assertEqual(reconcile(active, {})[0].maintainers, ["alice"])
        decisions = reconcile(active, {}, pings={"foo-1.0": ["bob"]})
        self.assertEqual(decisions[0].maintainers, ["bob"])

    def test_deterministic_and_sorted(self) -> None:
        findings = [_finding("b-1.0"), _finding("a-1.0"), _finding("c-1.0", channel="x")]
        one = reconcile(group_by_identity(findings), {})
        two = reconcile(group_by_identity(list(reversed(findings))), {})
        self.assertEqual(one, two)
        self.assertEqual([d.identity for d in one], ["a-1.0", "b-1.0", "c-1.0"])
