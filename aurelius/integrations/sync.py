"""
Concurrent sync fan-out.

An adapter's sync touches several resources (tweets, lists, DMs, ...).
run_sync() starts all of them at once; one failing branch never cancels
the others. The result reports how many items came back and which
branches failed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable

from .errors import SyncError
from .schemas import SyncResult

logger = logging.getLogger(__name__)


def _count(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, (list, tuple, set)):
        return len(value)
    if isinstance(value, dict) and isinstance(value.get("items"), list):
        return len(value["items"])
    return 1


async def run_sync(
    provider: str,
    branches: dict[str, Awaitable[Any]],
    *,
    last_sync_time: datetime | None = None,
) -> SyncResult:
    """
    Await every branch concurrently and fold the outcomes into a SyncResult.

    Args:
        provider: Provider key, for logging and error messages
        branches: Branch name -> awaitable returning a list of items
        last_sync_time: Lower bound passed by the caller, echoed in metadata

    Raises:
        SyncError: If every branch failed
    """
    names = list(branches)
    outcomes = await asyncio.gather(*branches.values(), return_exceptions=True)

    processed = 0
    counts: dict[str, int] = {}
    errors: list[str] = []

    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            logger.error(f"[{provider}] {name} sync failed: {outcome}")
            errors.append(f"{name} sync failed: {outcome}")
            continue
        counts[name] = _count(outcome)
        processed += counts[name]

    if names and len(errors) == len(names):
        raise SyncError(f"All sync operations failed: {'; '.join(errors)}", provider)

    logger.info(
        f"[{provider}] Sync finished: {processed} items, {len(errors)} failed branches"
    )

    return SyncResult(
        success=not errors,
        items_processed=processed,
        items_skipped=len(errors),
        errors=errors,
        metadata={
            "provider": provider,
            "branches": counts,
            "synced_at": datetime.now(timezone.utc).isoformat(),
            "last_sync_time": last_sync_time.isoformat() if last_sync_time else None,
        },
    )
