"""Export NEW roundup tickets as GitHub issues and cross-link related open issues."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from roundup.core.errors import GitHubApiError, GitHubNotConfiguredError
from roundup.schemas.report import GitHubCreatedIssue, GitHubExportResponse
from roundup.schemas.ticket import LifecycleStatus, TicketDocument

if TYPE_CHECKING:
    from roundup.core.config import Settings

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github+json"


def is_github_configured(settings: Settings) -> bool:
    if not settings.GITHUB_REPO or not settings.GITHUB_REPO.strip():
        return False
    if settings.GITHUB_TOKEN is None:
        return False
    token_val = settings.GITHUB_TOKEN.get_secret_value()
    if not token_val or not token_val.strip():
        return False
    return True


def issue_body(document: TicketDocument) -> str:
    """Ticket markdown without the machine header and the title line."""
    lines = document.body.split("\n")
    if lines and lines[0].startswith("<!--"):
        lines = lines[1:]
    if lines and lines[0].startswith("# "):
        lines = lines[1:]
    return "\n".join(lines).strip("\n") + "\n"


def _raise_for_status(resp: httpx.Response, what: str) -> None:
    if resp.status_code == 401:
        raise GitHubApiError("GitHub authentication failed (invalid token).", 401)
    if resp.status_code == 404:
        raise GitHubApiError("GitHub repository or resource not found.", 404)
    if resp.status_code >= 400:
        try:
            body = resp.json()
            detail = body.get("message") or json.dumps(body.get("errors", {}))[:500]
        except ValueError:
            detail = resp.text[:500] if resp.text else "Unknown error"
        raise GitHubApiError(f"GitHub returned {resp.status_code} on {what}: {detail}", resp.status_code)


async def _create_issue(
    client: httpx.AsyncClient,
    api_url: str,
    repo: str,
    document: TicketDocument,
    label: str,
    timeout: float,
) -> dict[str, Any]:
    """Create one issue. Returns the decoded response (number, html_url)."""
    url = f"{api_url}/repos/{repo}/issues"
    payload = {"title": document.title, "body": issue_body(document), "labels": [label]}
    resp = await client.post(url, json=payload, timeout=timeout)
    _raise_for_status(resp, "issue creation")
    data = resp.json()
    if not data.get("number"):
        raise GitHubApiError("GitHub response missing issue number.")
    return data


async def _related_issues(
    client: httpx.AsyncClient,
    api_url: str,
    repo: str,
    name: str,
    label: str,
    timeout: float,
) -> list[int]:
    """Open roundup issues of the same package, by issue number."""
    query = f'repo:{repo} is:open label:"{label}" in:title "Vulnerability roundup" " {name}: "'
    resp = await client.get(f"{api_url}/search/issues", params={"q": query}, timeout=timeout)
    _raise_for_status(resp, "issue search")
    items = resp.json().get("items") or []
    return sorted(int(i["number"]) for i in items if isinstance(i, dict) and i.get("number"))


async def _comment(
    client: httpx.AsyncClient,
    api_url: str,
    repo: str,
    number: int,
    related: list[int],
    timeout: float,
) -> None:
    url = f"{api_url}/repos/{repo}/issues/{number}/comments"
    body = "See also: " + ", ".join(f"#{n}" for n in related)
    resp = await client.post(url, json={"body": body}, timeout=timeout)
    _raise_for_status(resp, "comment creation")


async def export_tickets_to_github(
    documents: list[TicketDocument],
    names: dict[str, str],
    settings: Settings,
) -> GitHubExportResponse:
    """
    Create one GitHub issue per NEW ticket and comment links to related open issues.

    names maps ticket identity to package name+version for the related-issue search.
    Requires GITHUB_REPO and GITHUB_TOKEN; raises GitHubNotConfiguredError otherwise.
    401/404 abort the export; other per-issue failures are collected (partial success).
    """
    if not is_github_configured(settings):
        raise GitHubNotConfiguredError(
            "GitHub export is not configured; set GITHUB_REPO and GITHUB_TOKEN."
        )
    api_url = settings.GITHUB_API_URL.rstrip("/")
    repo = (settings.GITHUB_REPO or "").strip()
    label = settings.GITHUB_ISSUE_LABEL
    timeout = max(1.0, min(120.0, settings.GITHUB_REQUEST_TIMEOUT_SEC))
    headers = {
        "Authorization": f"Bearer {settings.GITHUB_TOKEN.get_secret_value()}",
        "Accept": GITHUB_ACCEPT,
    }

    issues: list[GitHubCreatedIssue] = []
    errors: list[str] = []
    new_documents = [d for d in documents if d.status == LifecycleStatus.NEW]

    async with httpx.AsyncClient(headers=headers) as client:
        for document in new_documents:
            try:
                created = await _create_issue(client, api_url, repo, document, label, timeout)
            except GitHubApiError as e:
                if e.status_code in (401, 404):
                    raise
                errors.append(f"Issue '{document.identity}': {e.message}")
                continue
            number = int(created["number"])
            issues.append(
                GitHubCreatedIssue(
                    identity=document.identity,
                    number=number,
                    url=created.get("html_url") or f"https://github.com/{repo}/issues/{number}",
                )
            )
            try:
                name = names.get(document.identity, document.identity)
                related = [
                    n
                    for n in await _related_issues(client, api_url, repo, name, label, timeout)
                    if n != number
                ]
                if related:
                    await _comment(client, api_url, repo, number, related, timeout)
            except GitHubApiError as e:
                if e.status_code in (401, 404):
                    raise
                errors.append(f"Issue '{document.identity}' (#{number}) cross-links: {e.message}")

    logger.info(
        "GitHub export completed",
        extra={"issues_created": len(issues), "errors_count": len(errors)},
    )
    return GitHubExportResponse(issues=issues, errors=errors)
