"""HTTP trigger for the search index rebuild."""

import logging
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse

from search_rebuilder.core.config import RebuildConfig
from search_rebuilder.core.errors import ConfigurationError, InvalidCount
from search_rebuilder.pipelines.orchestrator import (
    OutcomeStatus,
    RebuildOrchestrator,
    RebuildOutcome,
)

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_CODES = {
    OutcomeStatus.SUCCEEDED: 200,
    OutcomeStatus.PARTIAL: 200,
    OutcomeStatus.REJECTED: 400,
    OutcomeStatus.THROTTLED: 429,
    OutcomeStatus.FAILED: 502,
    OutcomeStatus.CANCELED: 503,
}


def get_orchestrator() -> RebuildOrchestrator:
    """Build a fresh orchestrator so settings and definitions are read per invocation.

    Raises:
        ConfigurationError: If settings or definitions are invalid
    """
    return RebuildOrchestrator.from_config(RebuildConfig.from_settings())


def parse_count(raw: Optional[str]) -> Optional[int]:
    """Parse the trigger's count argument.

    Raises:
        InvalidCount: If the value is not a positive integer
    """
    if raw is None or raw == "":
        return None
    try:
        count = int(raw)
    except ValueError:
        raise InvalidCount(raw) from None
    if count < 1:
        raise InvalidCount(count)
    return count


def outcome_response(outcome: RebuildOutcome) -> PlainTextResponse:
    """Map a rebuild outcome onto a plain-text HTTP response."""
    headers = {}
    if outcome.status == OutcomeStatus.THROTTLED and outcome.retry_after is not None:
        headers["Retry-After"] = str(outcome.retry_after)

    body = outcome.message
    if outcome.errors and not outcome.success:
        body = f"{body}: {'; '.join(outcome.errors)}"
    return PlainTextResponse(body, status_code=STATUS_CODES[outcome.status], headers=headers)


async def _rebuild(raw_count: Optional[str]) -> PlainTextResponse:
    try:
        count = parse_count(raw_count)
    except InvalidCount as e:
        logger.warning(f"Rebuild rejected: {e}")
        return PlainTextResponse(str(e), status_code=400)

    try:
        orchestrator = get_orchestrator()
    except ConfigurationError as e:
        logger.error(f"Rebuild misconfigured: {e}")
        return PlainTextResponse(f"Rebuild misconfigured: {e}", status_code=500)

    outcome = await orchestrator.run(count)
    return outcome_response(outcome)


@router.post("/rebuild-index", response_class=PlainTextResponse)
async def rebuild_index(
    count: Optional[str] = Query(default=None, description="Range-mode source count"),
):
    """Rebuild the search index from the configured sources."""
    return await _rebuild(count)


@router.post("/rebuild-index/{count}", response_class=PlainTextResponse)
async def rebuild_index_with_count(count: str):
    """Rebuild the search index from sources 1..count."""
    return await _rebuild(count)
