"""Check maintainer handles against the GitHub users API before pinging them."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Literal
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field

from roundup.schemas.report import Diagnostic

if TYPE_CHECKING:
    from roundup.core.config import Settings

logger = logging.getLogger(__name__)

HandleState = Literal["valid", "invalid", "unverified"]

# Seconds before retry n is base * 2**n.
RETRY_BACKOFF_SEC = 0.5

# Case-folded GitHub login: letters, digits and hyphens.
_HANDLE = re.compile(r"^[a-z0-9-]+$")


class HandleValidationResult(BaseModel):
    """Handles split by lookup outcome. Unverified handles stay in the ping list."""

    valid: list[str] = Field(default_factory=list)
    invalid: list[str] = Field(default_factory=list)
    unverified: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def rejected(self) -> set[str]:
        return set(self.invalid)


async def _check_handle(
    client: httpx.AsyncClient,
    semaphore: asyncio.Semaphore,
    api_url: str,
    handle: str,
    retries: int,
    timeout: float,
) -> tuple[HandleState, str]:
    """Return (state, detail). 200 is valid, 404 invalid; anything else is retried."""
    if not _HANDLE.match(handle):
        return "invalid", "not a GitHub handle"
    url = f"{api_url}/users/{quote(handle, safe='')}"
    detail = ""
    for attempt in range(retries + 1):
        if attempt:
            # semaphore not held while backing off
            await asyncio.sleep(RETRY_BACKOFF_SEC * 2 ** (attempt - 1))
        async with semaphore:
            try:
                resp = await client.get(url, timeout=timeout)
            except httpx.HTTPError as e:
                detail = f"{type(e).__name__}: {e}"
                continue
        if resp.status_code == 200:
            return "valid", ""
        if resp.status_code == 404:
            return "invalid", "GitHub user not found"
        detail = f"GitHub returned {resp.status_code}"
    return "unverified", detail


async def validate_handles(handles: list[str], settings: Settings) -> HandleValidationResult:
    """
    Look up every handle with bounded concurrency and retries.

    404 marks a handle invalid (an invalid_maintainer_handle diagnostic, removed
    from pings). Errors that persist after retries leave the handle unverified.
    """
    unique = sorted(set(handles))
    result = HandleValidationResult()
    if not unique:
        return result
    api_url = settings.GITHUB_API_URL.rstrip("/")
    timeout = max(1.0, min(120.0, settings.GITHUB_REQUEST_TIMEOUT_SEC))
    semaphore = asyncio.Semaphore(settings.HANDLE_VALIDATION_CONCURRENCY)
    headers = {"Accept": "application/vnd.github+json"}
    if settings.GITHUB_TOKEN is not None and settings.GITHUB_TOKEN.get_secret_value().strip():
        headers["Authorization"] = f"Bearer {settings.GITHUB_TOKEN.get_secret_value()}"

    async with httpx.AsyncClient(headers=headers) as client:
        outcomes = await asyncio.gather(
            *(
                _check_handle(
                    client, semaphore, api_url, h, settings.HANDLE_VALIDATION_RETRIES, timeout
                )
                for h in unique
            )
        )

    for handle, (state, detail) in zip(unique, outcomes):
        if state == "valid":
            result.valid.append(handle)
        elif state == "invalid":
            result.invalid.append(handle)
            result.diagnostics.append(
                Diagnostic(
                    category="invalid_maintainer_handle",
                    message=f"@{handle}: {detail}",
                    subject=handle,
                )
            )
        else:
            logger.warning("Maintainer handle unverified", extra={"handle": handle, "detail": detail})
            result.unverified.append(handle)
            result.diagnostics.append(
                Diagnostic(
                    category="unverified_maintainer_handle",
                    message=f"@{handle}: {detail or 'lookup failed'}",
                    subject=handle,
                )
            )
    logger.info(
        "Handle validation completed",
        extra={
            "valid": len(result.valid),
            "invalid": len(result.invalid),
            "unverified": len(result.unverified),
        },
    )
    return result


def drop_invalid_handles(
    pings: dict[str, list[str]],
    result: HandleValidationResult,
) -> dict[str, list[str]]:
    """Remove handles confirmed invalid from identity -> handles."""
    rejected = result.rejected
    return {identity: [h for h in hs if h not in rejected] for identity, hs in pings.items()}
