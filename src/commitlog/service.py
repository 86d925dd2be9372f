"""Caller-facing operations for one provider family."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import date

import httpx

from commitlog.config import ProviderFamily, Settings
from commitlog.extractors import extractor_for
from commitlog.models import CommitPage, DailyCount, FetchResult, ProjectInfo
from commitlog.provider_client import client_for
from commitlog.query import QueryService
from commitlog.storage import CommitStore
from commitlog.sync import RECENT_WINDOWS, SyncOrchestrator, trailing_range
from commitlog.tokens import is_blank, mask_token

logger = logging.getLogger(__name__)


class CommitLogService:
    """Wires client, orchestrator, store and query facade together.

    Attributes:
        settings: Application settings.
        provider: Provider family served.
        store: Store for this provider family.
        query: Read-side facade.
    """

    def __init__(
        self,
        settings: Settings,
        provider: ProviderFamily | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize service.

        Args:
            settings: Application settings.
            provider: Provider family (defaults to settings.provider).
            transport: Optional httpx transport for the provider client.
        """
        self.settings = settings
        self.provider = provider or settings.provider
        self.store = CommitStore(settings.store_dir_for(self.provider))
        self.query = QueryService(self.store)
        self._transport = transport

    async def _with_orchestrator(
        self,
        token: str | None,
        run: Callable[[SyncOrchestrator], Awaitable[dict[date, int]]],
    ) -> dict[date, int]:
        """Open a provider client for the duration of one sync run."""
        if is_blank(token):
            return {}
        async with client_for(self.settings, self.provider, self._transport) as client:
            orchestrator = SyncOrchestrator(
                client,
                self.store,
                extractor_for(self.provider),
                max_concurrency=self.settings.max_concurrency,
            )
            return await run(orchestrator)

    async def fetch(
        self,
        token: str | None,
        today: date | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> FetchResult:
        """Serve cached data if present, otherwise sync the trailing year.

        Returns:
            FetchResult with status "cached" (days=0) or "synced".
        """
        logger.info("Fetch request, provider=%s, token=%s", self.provider, mask_token(token))
        if self.query.has_data(token):
            logger.info("Cache hit, token=%s", mask_token(token))
            return FetchResult(status="cached", days=0)

        counts = await self._with_orchestrator(
            token,
            lambda o: o.sync_last_year(
                token, today, days=self.settings.heatmap_days, cancel_event=cancel_event
            ),
        )
        logger.info("Sync completed, token=%s, new days=%d", mask_token(token), len(counts))
        return FetchResult(status="synced", days=len(counts))

    async def sync_recent(
        self,
        token: str | None,
        window: str = "week",
        today: date | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> FetchResult:
        """Re-sync a recent window regardless of cached state.

        Raises:
            ValueError: For an unknown window name.
        """
        if window not in RECENT_WINDOWS:
            raise ValueError(f"Unknown sync window {window!r}")
        counts = await self._with_orchestrator(
            token, lambda o: o.sync_recent(token, window, today, cancel_event)
        )
        logger.info(
            "Sync latest done, token=%s, window=%s, days=%d", mask_token(token), window, len(counts)
        )
        return FetchResult(status="synced", days=len(counts))

    def heatmap(self, token: str | None, today: date | None = None) -> list[DailyCount]:
        """Zero-filled daily counts over the trailing heatmap window."""
        start, end = trailing_range(self.settings.heatmap_days, today)
        logger.info("Fetching heatmap data, token=%s, range=%s ~ %s", mask_token(token), start, end)
        return self.query.daily_counts(start, end, token)

    def commits(
        self,
        token: str | None,
        project: str | None = None,
        branch: str | None = None,
        page: int = 1,
        size: int = 20,
    ) -> CommitPage:
        """One page of the token's commits, newest first, optionally filtered."""
        return self.query.commit_page(project, branch, page, size, token)

    def projects(self, token: str | None) -> list[str]:
        """Distinct repository names the token has commits in."""
        return self.query.distinct_projects(token)

    def project_details(self, token: str | None) -> list[ProjectInfo]:
        """Stored project metadata (visibility, top language)."""
        if is_blank(token):
            return []
        return self.store.projects(token)

    def branches(self, token: str | None, project: str | None) -> list[str]:
        """Distinct branches of one repository for the token."""
        return self.query.distinct_branches(project, token)
