"""Render ticket decisions into markdown ticket documents and closure notices.

Documents carry no timestamps, iteration numbers or environment data, so the
same decision renders to the same bytes in every iteration.
"""

from urllib.parse import quote_plus

from roundup.schemas.ticket import (
    TITLE_MAX_LENGTH,
    CveEntry,
    LifecycleStatus,
    TicketDecision,
    TicketDocument,
)
from roundup.services.history import (
    format_ticket_header,
    parse_ticket_header,
    ticket_filename,
)

__all__ = ["parse_ticket_header", "render", "render_all"]

NVD_URL = "https://nvd.nist.gov/vuln/detail/{cve}"
SEARCH_URL = "https://search.nix.gsc.io/?q={pname}&i=fosho&repos=NixOS-nixpkgs"
FILES_URL = "https://github.com/NixOS/nixpkgs/search?utf8=%E2%9C%93&q={pname}+in%3Apath&type=Code"

CLOSURE_TEXT = {
    "fixed": "No advisories are reported for {name} in the scanned channels any more.",
    "whitelisted": "All remaining advisories for {name} are whitelisted.",
}


def _truncate_title(title: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    if len(title) <= max_length:
        return title
    return title[: max_length - 3].rstrip() + "..."


def build_title(decision: TicketDecision) -> str:
    """Headline: package, advisory count and maximum score."""
    if decision.status == LifecycleStatus.RESOLVED:
        return _truncate_title(f"Vulnerability roundup: {decision.name}: resolved")
    num = len(decision.entries)
    advisory = "advisory" if num == 1 else "advisories"
    score = decision.max_score
    max_cvss = f" [{score:.1f}]" if score is not None else ""
    return _truncate_title(f"Vulnerability roundup: {decision.name}: {num} {advisory}{max_cvss}")


def _checklist_line(entry: CveEntry) -> str:
    url = NVD_URL.format(cve=entry.cve_id)
    score = f"CVSSv3={entry.score:.1f} " if entry.score is not None else ""
    return f"* [ ] [{entry.cve_id}]({url}) {score}({', '.join(entry.channels)})"


def _open_body(decision: TicketDecision, notify: bool) -> list[str]:
    pname = quote_plus(decision.pname)
    lines = [
        f"[search]({SEARCH_URL.format(pname=pname)}), [files]({FILES_URL.format(pname=pname)})",
        "",
    ]
    lines.extend(_checklist_line(e) for e in decision.entries)
    described = [e for e in decision.entries if e.description]
    if described:
        lines.extend(["", "## CVE details"])
        for e in described:
            lines.extend(["", f"### {e.cve_id}", "", e.description.strip()])
    if decision.patches:
        lines.extend(["", "## Applied patches", ""])
        lines.extend(f"* {p}" for p in decision.patches)
    lines.extend(["", "-----", f"Scanned channels: {', '.join(decision.channels)}.", ""])
    if decision.maintainers:
        if notify:
            lines.extend(f"Cc @{h}" for h in decision.maintainers)
        else:
            lines.append(f"Maintainers: {', '.join(decision.maintainers)}")
    return lines


def _closure_body(decision: TicketDecision) -> list[str]:
    reason = decision.closure_reason or "fixed"
    lines = [CLOSURE_TEXT[reason].format(name=decision.name)]
    if decision.suppressed:
        lines.extend(["", "Suppressed by:", ""])
        for s in decision.suppressed:
            line = f"* {s.cve_id} ({s.channel}): {s.rule}"
            if s.comment:
                line = f"{line}: {s.comment}"
            lines.append(line)
    return lines


def render(decision: TicketDecision, *, notify: bool = True) -> TicketDocument:
    """
    Render one decision.

    NEW and CARRIED decisions become ticket documents; RESOLVED decisions become
    closure notices. notify selects "Cc @handle" lines over a plain maintainer list.
    """
    title = build_title(decision)
    if decision.is_open:
        header = format_ticket_header(decision.identity)
        body_lines = _open_body(decision, notify)
    else:
        header = format_ticket_header(decision.identity, decision.closure_reason or "fixed")
        body_lines = _closure_body(decision)
    lines = [header, f"# {title}", "", *body_lines]
    body = "\n".join(lines).rstrip("\n") + "\n"
    return TicketDocument(
        identity=decision.identity,
        status=decision.status,
        filename=ticket_filename(decision.identity),
        title=title,
        body=body,
    )


def render_all(decisions: list[TicketDecision], *, notify: bool = True) -> list[TicketDocument]:
    return [render(d, notify=notify) for d in decisions]
