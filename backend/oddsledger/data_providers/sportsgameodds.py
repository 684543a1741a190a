from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from oddsledger.config import settings

logger = logging.getLogger(__name__)


class FeedUnavailableError(Exception):
    """Transport failure, timeout or non-success response from the feed."""


@dataclass
class FeedResult:
    data: list[dict[str, Any]]
    pages: int = 0


def _iso(value: datetime | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat().replace("+00:00", "Z")
    return value


class SportsGameOddsClient:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.base_url = settings.odds_api_base_url.rstrip("/")
        self.api_key = settings.odds_api_key
        self.timeout = settings.odds_api_timeout_seconds
        self.page_limit = settings.odds_api_page_limit
        self.max_pages = settings.odds_api_max_pages
        self._transport = transport

    async def _get(self, client: httpx.AsyncClient, path: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await client.get(
                f"{self.base_url}/{path.lstrip('/')}",
                params={k: v for k, v in params.items() if v is not None},
                headers={"X-API-Key": self.api_key},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise FeedUnavailableError(f"{path}: {exc}") from exc
        except ValueError as exc:
            raise FeedUnavailableError(f"{path}: invalid JSON body") from exc

        if not isinstance(payload, dict) or payload.get("success") is False:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise FeedUnavailableError(f"{path}: unsuccessful response {message or ''}".strip())
        return payload

    async def get_events(
        self,
        league: str,
        starts_after: datetime | str | None = None,
        starts_before: datetime | str | None = None,
        include_alt_lines: bool | None = None,
    ) -> FeedResult:
        if not self.api_key:
            logger.warning("ODDS_API_KEY is missing; returning no events: league=%s", league)
            return FeedResult(data=[])

        include_alt = settings.include_alt_lines if include_alt_lines is None else include_alt_lines
        params: dict[str, Any] = {
            "leagueID": league,
            "type": "match",
            "startsAfter": _iso(starts_after),
            "startsBefore": _iso(starts_before),
            "limit": self.page_limit,
            "includeAltLines": "true" if include_alt else "false",
        }
        events: list[dict[str, Any]] = []
        pages = 0
        cursor: str | None = None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            while pages < self.max_pages:
                payload = await self._get(client, "events", {**params, "cursor": cursor})
                pages += 1
                events.extend(item for item in payload.get("data") or [] if isinstance(item, dict))
                cursor = payload.get("nextCursor")
                if not cursor:
                    break
            else:
                logger.warning("event pagination truncated: league=%s pages=%s", league, pages)

        logger.info("fetched events: league=%s events=%s pages=%s", league, len(events), pages)
        return FeedResult(data=events, pages=pages)

    async def get_event(self, event_id: str, include_alt_lines: bool | None = None) -> dict[str, Any] | None:
        if not self.api_key:
            logger.warning("ODDS_API_KEY is missing; cannot fetch event: event_id=%s", event_id)
            return None

        include_alt = settings.include_alt_lines if include_alt_lines is None else include_alt_lines
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            payload = await self._get(
                client,
                "events",
                {"eventIDs": event_id, "includeAltLines": "true" if include_alt else "false"},
            )
        for item in payload.get("data") or []:
            if isinstance(item, dict) and item.get("eventID") == event_id:
                return item
        return None
