"""Map vulnix-style scanner payload shapes to RawScanRecord field names for ingestion."""

from typing import Any

# Keys under which a scanner may wrap its record list.
WRAPPER_KEYS = ("packages", "results", "vulnerabilities")

# Scanner field name -> RawScanRecord field name, first match wins per target.
CVE_KEYS = ("affected_by", "cves", "cve")
ATTR_KEYS = ("attrpath", "attr", "attribute")
SCALAR_SCORE_KEYS = ("score", "cvss")
SCORE_MAP_KEYS = ("cvssv3_basescore", "scores")
OUTPUT_KEYS = ("outputsToInstall", "outputs")


def extract_records(payload: Any) -> list[Any]:
    """
    Return the list of scanner records contained in payload.

    Accepts a JSON list, a single record object, or an object wrapping the list
    under one of WRAPPER_KEYS. Anything else yields an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in WRAPPER_KEYS:
            if key in payload and isinstance(payload[key], list):
                return payload[key]
        return [payload]
    return []


def _str_or_none(value: Any) -> str | None:
    """Return string or None; coerce non-str scalars to str."""
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, str):
        return value.strip() or None
    return str(value).strip() or None


def str_list(value: Any) -> list[str]:
    """Scalar or list of scalars -> list of non-empty strings."""
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    out: list[str] = []
    for item in value:
        s = _str_or_none(item)
        if s is not None:
            out.append(s)
    return out


def _attr_path(obj: dict[str, Any]) -> list[str]:
    for key in ATTR_KEYS:
        value = obj.get(key)
        if isinstance(value, str) and value.strip():
            return [seg for seg in value.strip().split(".") if seg]
        if isinstance(value, list):
            return str_list(value)
    return []


def _score_or_raw(value: Any) -> Any:
    """Numbers become float; anything else is returned as-is for the normalizer to reject."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return value
    return value


def _scores(obj: dict[str, Any], cves: list[str]) -> dict[str, Any]:
    for key in SCORE_MAP_KEYS:
        value = obj.get(key)
        if isinstance(value, dict):
            return {str(k).strip(): _score_or_raw(v) for k, v in value.items()}
    for key in SCALAR_SCORE_KEYS:
        if key in obj and obj[key] is not None:
            score = _score_or_raw(obj[key])
            return {cve: score for cve in cves}
    return {}


def _descriptions(obj: dict[str, Any], cves: list[str]) -> dict[str, str]:
    value = obj.get("description")
    if isinstance(value, dict):
        out: dict[str, str] = {}
        for k, v in value.items():
            s = _str_or_none(v)
            if s is not None:
                out[str(k).strip()] = s
        return out
    s = _str_or_none(value)
    if s is None:
        return {}
    return {cve: s for cve in cves}


def _outputs(obj: dict[str, Any]) -> list[str]:
    for key in OUTPUT_KEYS:
        if key in obj:
            return str_list(obj.get(key))
    return []


def flatten_maintainers(value: Any) -> list[str]:
    """
    Collect GitHub handles from plain strings, {github, email} objects and nested lists.

    Objects without a github handle contribute nothing.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, dict):
        handle = _str_or_none(value.get("github"))
        return [handle] if handle else []
    if isinstance(value, list):
        out: list[str] = []
        for item in value:
            out.extend(flatten_maintainers(item))
        return out
    return []


def map_vulnix_to_raw(obj: dict[str, Any]) -> dict[str, Any]:
    """Map one vulnix record (any supported scanner version) to a RawScanRecord-shaped dict."""
    cves: list[str] = []
    for key in CVE_KEYS:
        if key in obj:
            cves = str_list(obj.get(key))
            if cves:
                break
    return {
        "name": _str_or_none(obj.get("name")),
        "pname": _str_or_none(obj.get("pname")),
        "version": _str_or_none(obj.get("version")),
        "attr_path": _attr_path(obj),
        "derivation": _str_or_none(obj.get("derivation")),
        "cves": cves,
        "scores": _scores(obj, cves),
        "descriptions": _descriptions(obj, cves),
        "patches": str_list(obj.get("patches")),
        "maintainers": flatten_maintainers(obj.get("maintainers")),
        "outputs": _outputs(obj),
    }
