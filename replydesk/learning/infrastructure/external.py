"""
Learning External Service Integrations
======================================

Freshdesk REST API v2 client used by the ticket harvester.

Freshdesk allows roughly 50 requests per minute on common plans; every call
goes through a RateLimiter and HTTP 429 responses are retried after the
server's Retry-After delay.
"""

import asyncio
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from replydesk.config import settings
from replydesk.core import HelpdeskException
from replydesk.learning.domain import HelpdeskTicket, Conversation
from replydesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

LIST_PAGE_SIZE = 100
SEARCH_PAGE_SIZE = 30  # fixed by the search endpoint
DEFAULT_RETRY_AFTER = 60.0


class RateLimiter:
    """Enforces a minimum delay between successive calls."""

    def __init__(
        self,
        min_interval: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.min_interval = min_interval
        self._sleep = sleep
        self._last_call: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        async with self._lock:
            if self._last_call is not None and self.min_interval > 0:
                elapsed = time.monotonic() - self._last_call
                if elapsed < self.min_interval:
                    await self._sleep(self.min_interval - elapsed)
            self._last_call = time.monotonic()


def parse_retry_after(value: Optional[str], default: float = DEFAULT_RETRY_AFTER) -> float:
    """Seconds to wait from a Retry-After header in delta-seconds or HTTP-date form."""
    if not value:
        return default
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


def normalize_domain(domain: str) -> str:
    """Accept 'acme', 'acme.freshdesk.com' or a full URL."""
    domain = domain.strip().removeprefix("https://").removeprefix("http://").rstrip("/")
    if "." not in domain:
        domain = f"{domain}.freshdesk.com"
    return domain


class FreshdeskClient:
    """
    Freshdesk API client with rate limiting and 429 retry.

    Authentication is HTTP Basic with the API key as user and "X" as password.
    """

    def __init__(
        self,
        domain: str,
        api_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        request_delay: Optional[float] = None,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.domain = normalize_domain(domain)
        self._max_retries = settings.helpdesk_max_retries if max_retries is None else max_retries
        self._sleep = sleep
        self._rate_limiter = RateLimiter(
            settings.helpdesk_request_delay_seconds if request_delay is None else request_delay,
            sleep=sleep
        )
        self._http_client = httpx.AsyncClient(
            base_url=f"https://{self.domain}/api/v2",
            auth=(api_key, "X"),
            timeout=settings.helpdesk_timeout_seconds,
            transport=transport,
            headers={"Content-Type": "application/json"}
        )

    async def _get(self, path: str, params: Optional[dict] = None):
        """
        GET a helpdesk resource.

        Raises:
            HelpdeskException: On non-2xx status (after 429 retries) or network error
        """
        for attempt in range(self._max_retries + 1):
            await self._rate_limiter.wait()
            try:
                response = await self._http_client.get(path, params=params)
            except httpx.HTTPError as e:
                raise HelpdeskException(f"Request to {path} failed: {str(e)}")

            if response.status_code == 429 and attempt < self._max_retries:
                retry_after = parse_retry_after(response.headers.get("Retry-After"))
                logger.warning(
                    "Helpdesk rate limit hit",
                    extra={"path": path, "retry_after": retry_after, "attempt": attempt + 1}
                )
                await self._sleep(retry_after)
                continue

            if response.status_code >= 400:
                raise HelpdeskException(
                    f"GET {path} returned {response.status_code}",
                    status_code=response.status_code
                )

            try:
                return response.json()
            except ValueError:
                raise HelpdeskException(
                    f"GET {path} returned a non-JSON body",
                    status_code=response.status_code
                )

        raise HelpdeskException(f"GET {path} still rate limited", status_code=429)

    async def list_tickets(self, filter_name: str, page: int) -> List[HelpdeskTicket]:
        """One page of a predefined ticket filter (e.g. resolved, closed)."""
        data = await self._get(
            "/tickets",
            {"filter": filter_name, "page": page, "per_page": LIST_PAGE_SIZE}
        )
        return self._parse_tickets(data)

    async def search_tickets(self, status: int, page: int) -> Tuple[List[HelpdeskTicket], int]:
        """One page of a status search; returns tickets and the reported total."""
        data = await self._get(
            "/search/tickets",
            {"query": f'"status:{status}"', "page": page}
        )
        if not isinstance(data, dict):
            raise HelpdeskException("Unexpected ticket search payload")
        try:
            total = int(data.get("total") or 0)
        except (TypeError, ValueError):
            raise HelpdeskException("Unexpected ticket search total")
        return self._parse_tickets(data.get("results")), total

    async def list_recent_tickets(self, page: int) -> List[HelpdeskTicket]:
        """One page of all tickets, most recently updated first."""
        data = await self._get(
            "/tickets",
            {
                "order_by": "updated_at",
                "order_type": "desc",
                "include": "description",
                "page": page,
                "per_page": LIST_PAGE_SIZE
            }
        )
        return self._parse_tickets(data)

    async def get_conversations(self, ticket_id: int) -> List[Conversation]:
        data = await self._get(f"/tickets/{ticket_id}/conversations")
        if data is not None and not isinstance(data, list):
            raise HelpdeskException(f"Unexpected conversation payload for ticket {ticket_id}")
        try:
            return [Conversation.model_validate(item) for item in data or []]
        except ValidationError as e:
            raise HelpdeskException(f"Unexpected conversation payload for ticket {ticket_id}: {e}")

    @staticmethod
    def _parse_tickets(items) -> List[HelpdeskTicket]:
        if items is not None and not isinstance(items, list):
            raise HelpdeskException("Unexpected ticket list payload")
        tickets = []
        for item in items or []:
            try:
                tickets.append(HelpdeskTicket.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping malformed ticket", extra={"error": str(e)})
        return tickets

    async def close(self) -> None:
        """Close HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "FreshdeskClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
