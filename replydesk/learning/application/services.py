"""
Learning Application Services
=============================

Harvests a helpdesk's resolved and closed tickets into the tenant's
knowledge base.

Discovery runs three strategies in order until the target is met: the
helpdesk's list filters, a status search, then a bounded full scan of
recently updated tickets. Every loop has a page cap so a harvest always
terminates, and finding fewer tickets than requested is a normal outcome.
"""

from typing import Callable, Dict, List, Optional, Tuple

from replydesk.config import settings, LEARNABLE_STATUSES, LEARNED_DOCUMENT_PREFIX
from replydesk.core import (
    ValidationException,
    HelpdeskException,
    IngestionException,
)
from replydesk.knowledge.application import IngestionService
from replydesk.learning.application.cache import LearningCache
from replydesk.learning.domain import (
    HelpdeskTicket,
    HarvestProgress,
    HarvestResult,
    ProgressCallback,
    build_learning_block,
    build_learning_record,
    combine_learning_blocks,
    top_topics,
)
from replydesk.learning.infrastructure import FreshdeskClient
from replydesk.learning.infrastructure.external import LIST_PAGE_SIZE, SEARCH_PAGE_SIZE
from replydesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TARGET_COUNT = 100
MAX_EMPTY_SCAN_PAGES = 2

STRATEGY_FILTER = "filter"
STRATEGY_SEARCH = "search"
STRATEGY_FULL_SCAN = "full_scan"

ClientFactory = Callable[[str, str], FreshdeskClient]


class TicketHarvester:
    """
    Service for learning from resolved helpdesk tickets.

    Coordinates the helpdesk client, the ingestion service and the
    learning-record cache.
    """

    def __init__(
        self,
        ingestion_service: IngestionService,
        cache: LearningCache,
        client_factory: ClientFactory = FreshdeskClient
    ):
        self._ingestion = ingestion_service
        self._cache = cache
        self._client_factory = client_factory

    @staticmethod
    def clamp_target(target_count: Optional[int]) -> int:
        if target_count is None:
            target_count = DEFAULT_TARGET_COUNT
        return max(settings.harvest_min_tickets, min(settings.harvest_max_tickets, target_count))

    async def harvest(
        self,
        tenant_id: str,
        target_count: Optional[int] = DEFAULT_TARGET_COUNT,
        helpdesk_domain: Optional[str] = None,
        helpdesk_api_key: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> HarvestResult:
        """
        Harvest resolved tickets and relearn the tenant's learned document.

        Args:
            tenant_id: Tenant to learn for
            target_count: Tickets wanted; clamped to the supported range
            helpdesk_domain: Overrides the tenant's stored domain
            helpdesk_api_key: Overrides the tenant's stored key
            on_progress: Called with discovery and processing progress

        Returns:
            HarvestResult with the counts actually reached

        Raises:
            ValidationException: Missing or rejected helpdesk credentials
            ResourceNotFoundException: Unknown tenant
            IngestionException: The learned document could not be indexed
        """
        if not tenant_id:
            raise ValidationException("tenant_id is required")

        target = self.clamp_target(target_count)
        tenant = await self._ingestion.get_tenant(tenant_id)

        domain = helpdesk_domain or tenant.helpdesk_domain
        api_key = helpdesk_api_key or tenant.helpdesk_api_key
        if not domain or not api_key:
            raise ValidationException("Helpdesk domain and API key are required")

        logger.info(
            "Harvest started",
            extra={"tenant_id": tenant_id, "target_count": target}
        )

        async with self._client_factory(domain, api_key) as client:
            tickets, strategies = await self._discover(client, target, on_progress)
            blocks, records = await self._process(client, tickets, on_progress)

        if records:
            self._cache.put(tenant_id, records)
        topics = top_topics(records)

        if not blocks:
            logger.info(
                "Harvest found nothing to learn",
                extra={"tenant_id": tenant_id, "tickets_scanned": len(tickets)}
            )
            return HarvestResult(
                tickets_scanned=len(tickets),
                conversations_learned=0,
                chunks_created=0,
                strategies_used=strategies,
                top_topics=topics,
                message="No tickets with useful content found"
            )

        try:
            result = await self._ingestion.replace_documents(
                tenant_id,
                LEARNED_DOCUMENT_PREFIX,
                f"{LEARNED_DOCUMENT_PREFIX} ({len(blocks)} tickets)",
                combine_learning_blocks(blocks),
                {"source": "freshdesk"}
            )
        except IngestionException as e:
            e.details.update({
                "tickets_scanned": len(tickets),
                "conversations_learned": len(blocks)
            })
            raise

        logger.info(
            "Harvest finished",
            extra={
                "tenant_id": tenant_id,
                "tickets_scanned": len(tickets),
                "conversations_learned": len(blocks),
                "chunks_created": result.chunk_count,
                "strategies": strategies
            }
        )

        return HarvestResult(
            tickets_scanned=len(tickets),
            conversations_learned=len(blocks),
            chunks_created=result.chunk_count,
            document_id=result.document_id,
            strategies_used=strategies,
            top_topics=topics,
            message=f"Learned from {len(blocks)} support conversations"
        )

    # ---------- discovery ----------

    async def _discover(
        self,
        client: FreshdeskClient,
        target: int,
        on_progress: Optional[ProgressCallback]
    ) -> Tuple[List[HelpdeskTicket], List[str]]:
        found: Dict[int, HelpdeskTicket] = {}
        strategies: List[str] = []

        def report() -> None:
            if on_progress:
                on_progress(HarvestProgress("discovery", len(found), target))

        for name, strategy in (
            (STRATEGY_FILTER, self._filter_scan),
            (STRATEGY_SEARCH, self._search_scan),
            (STRATEGY_FULL_SCAN, self._full_scan),
        ):
            if len(found) >= target:
                break
            strategies.append(name)
            await strategy(client, found, target, report)
            logger.info(
                "Discovery strategy finished",
                extra={"strategy": name, "tickets_found": len(found)}
            )

        return list(found.values())[:target], strategies

    @staticmethod
    def _collect(
        found: Dict[int, HelpdeskTicket],
        tickets: List[HelpdeskTicket],
        target: int,
        require_status: bool = False
    ) -> int:
        """Add unseen learnable tickets; returns how many were new."""
        added = 0
        for ticket in tickets:
            if len(found) >= target:
                break
            if ticket.id in found:
                continue
            if ticket.status is None and require_status:
                continue
            if ticket.status is not None and ticket.status not in LEARNABLE_STATUSES:
                continue
            found[ticket.id] = ticket
            added += 1
        return added

    @staticmethod
    def _page_failed(strategy: str, page: int, error: HelpdeskException) -> None:
        """Log a failed discovery page; rejected credentials abort the harvest."""
        if error.http_status in (401, 403):
            raise ValidationException("Helpdesk rejected the API credentials")
        logger.warning(
            "Discovery page failed",
            extra={"strategy": strategy, "page": page, "error": error.message}
        )

    async def _filter_scan(self, client, found, target, report) -> None:
        for filter_name in settings.harvest_filters:
            for page in range(1, settings.harvest_filter_max_pages + 1):
                if len(found) >= target:
                    return
                try:
                    tickets = await client.list_tickets(filter_name, page)
                except HelpdeskException as e:
                    self._page_failed(STRATEGY_FILTER, page, e)
                    break

                self._collect(found, tickets, target)
                report()
                if len(tickets) < LIST_PAGE_SIZE:
                    break

    async def _search_scan(self, client, found, target, report) -> None:
        for status in LEARNABLE_STATUSES:
            for page in range(1, settings.harvest_search_max_pages + 1):
                if len(found) >= target:
                    return
                try:
                    tickets, total = await client.search_tickets(status, page)
                except HelpdeskException as e:
                    self._page_failed(STRATEGY_SEARCH, page, e)
                    break

                self._collect(found, tickets, target)
                report()
                if len(tickets) < SEARCH_PAGE_SIZE or page * SEARCH_PAGE_SIZE >= total:
                    break

    async def _full_scan(self, client, found, target, report) -> None:
        empty_pages = 0
        for page in range(1, settings.harvest_scan_max_pages + 1):
            if len(found) >= target:
                return
            try:
                tickets = await client.list_recent_tickets(page)
            except HelpdeskException as e:
                self._page_failed(STRATEGY_FULL_SCAN, page, e)
                return

            added = self._collect(found, tickets, target, require_status=True)
            report()
            if len(tickets) < LIST_PAGE_SIZE:
                return

            empty_pages = 0 if added else empty_pages + 1
            if empty_pages >= MAX_EMPTY_SCAN_PAGES:
                return

    # ---------- processing ----------

    async def _process(
        self,
        client: FreshdeskClient,
        tickets: List[HelpdeskTicket],
        on_progress: Optional[ProgressCallback]
    ):
        blocks: List[str] = []
        records = []

        for index, ticket in enumerate(tickets, 1):
            try:
                conversations = await client.get_conversations(ticket.id)
                block = build_learning_block(ticket, conversations)
                record = build_learning_record(ticket, conversations)
            except HelpdeskException as e:
                logger.warning(
                    "Skipping ticket",
                    extra={"ticket_id": ticket.id, "error": e.message}
                )
            else:
                if block:
                    blocks.append(block)
                if record:
                    records.append(record)

            if on_progress:
                on_progress(HarvestProgress("processing", index, len(tickets)))

        return blocks, records
