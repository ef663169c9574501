"""Package version ordering (builtins.compareVersions semantics) and whitelist version constraints."""

import re

_COMPARATOR = re.compile(r"^\s*(>=|<=|==|!=|>|<)?\s*([0-9A-Za-z]\S*)\s*$")
_SEPARATORS = ".-"


def split_version(version: str) -> list[str]:
    """
    Split a version into components.

    A component is a maximal run of digits or a maximal run of characters that
    are neither digits nor separators ("." and "-").
    """
    components: list[str] = []
    i, n = 0, len(version)
    while i < n:
        c = version[i]
        if c in _SEPARATORS:
            i += 1
            continue
        j = i + 1
        if c.isdigit():
            while j < n and version[j].isdigit():
                j += 1
        else:
            while j < n and not version[j].isdigit() and version[j] not in _SEPARATORS:
                j += 1
        components.append(version[i:j])
        i = j
    return components


def _component_lt(c1: str, c2: str) -> bool:
    n1 = c1.isdigit()
    n2 = c2.isdigit()
    if n1 and n2:
        return int(c1) < int(c2)
    if c1 == "" and n2:
        return True
    if c1 == "pre" and c2 != "pre":
        return True
    if c2 == "pre":
        return False
    # 2.3a < 2.3.1
    if n2:
        return True
    if n1:
        return False
    return c1 < c2


def compare_versions(v1: str, v2: str) -> int:
    """Return -1, 0 or 1 as v1 is older than, equal to or newer than v2."""
    a = split_version(v1)
    b = split_version(v2)
    for i in range(max(len(a), len(b))):
        c1 = a[i] if i < len(a) else ""
        c2 = b[i] if i < len(b) else ""
        if _component_lt(c1, c2):
            return -1
        if _component_lt(c2, c1):
            return 1
    return 0


def parse_constraint(constraint: str | None) -> list[tuple[str, str]]:
    """
    Parse a version constraint into (operator, version) comparators.

    None, "" and "*" mean any version (no comparators). A bare version means "==".
    Raises ValueError on an empty comparator or a comparator without a version.
    """
    if constraint is None or constraint.strip() in ("", "*"):
        return []
    out: list[tuple[str, str]] = []
    for part in constraint.split(","):
        m = _COMPARATOR.match(part)
        if not m:
            raise ValueError(f"invalid version comparator {part.strip()!r} in {constraint!r}")
        out.append((m.group(1) or "==", m.group(2)))
    return out


def satisfies(version: str, comparators: list[tuple[str, str]]) -> bool:
    """True when version satisfies every comparator (an empty list accepts any version)."""
    for op, bound in comparators:
        cmp = compare_versions(version, bound)
        if op == "==" and cmp != 0:
            return False
        if op == "!=" and cmp == 0:
            return False
        if op == ">=" and cmp < 0:
            return False
        if op == ">" and cmp <= 0:
            return False
        if op == "<=" and cmp > 0:
            return False
        if op == "<" and cmp >= 0:
            return False
    return True
