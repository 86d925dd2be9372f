"""Sync orchestration: provider listings in, deduplicated commits and daily counts out."""

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

from commitlog.extractors import PayloadExtractor
from commitlog.models import CommitRecord, ProjectInfo, parse_timestamp
from commitlog.provider_client import ProviderClient
from commitlog.storage import CommitStore
from commitlog.tokens import is_blank, mask_token

logger = logging.getLogger(__name__)

RECENT_WINDOWS = {
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}


def resolve_top_language(languages: dict[str, float] | None) -> str | None:
    """Language with the largest weight.

    Equal weights resolve to whichever comes first in the mapping.
    """
    if not languages:
        return None
    return max(languages, key=lambda name: languages[name])


def trailing_range(days: int, today: date | None = None) -> tuple[date, date]:
    """Inclusive range of `days` calendar days ending today."""
    end = today or date.today()
    return end - timedelta(days=max(days, 1) - 1), end


async def run_all(coros: Iterable[Awaitable[Any]]) -> list[Any]:
    """Run coroutines in one task group and return their results in order.

    The first failure cancels the remaining tasks and is re-raised as itself
    rather than wrapped in an ExceptionGroup.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except BaseExceptionGroup as failures:
        error: BaseException = failures
        while isinstance(error, BaseExceptionGroup):
            error = error.exceptions[0]
        raise error from None
    return [task.result() for task in tasks]


class SyncOrchestrator:
    """Runs one sync of a token's projects into a store.

    Every provider request (languages, branches, each branch's commit
    listing) takes a slot from one semaphore of max_concurrency slots, so a
    project with many branches cannot exceed the limit. Branch listings are
    consumed in branch order, so a commit reachable from several branches is
    attributed to the first branch the provider listed. A failing project
    cancels all other in-flight work of the run.

    Attributes:
        client: Opened provider client.
        store: Target store.
        extractor: Field rules for the client's provider family.
        max_concurrency: Maximum provider requests in flight.
        tz: Zone for calendar-day bucketing; None means the system zone.
    """

    def __init__(
        self,
        client: ProviderClient,
        store: CommitStore,
        extractor: PayloadExtractor,
        max_concurrency: int = 4,
        tz: tzinfo | None = None,
    ):
        """Initialize orchestrator.

        Args:
            client: Opened provider client.
            store: Target store.
            extractor: Field rules matching the client's provider family.
            max_concurrency: Maximum provider requests in flight.
            tz: Bucketing zone (defaults to the system zone).
        """
        self.client = client
        self.store = store
        self.extractor = extractor
        self.max_concurrency = max(max_concurrency, 1)
        self.tz = tz
        self._slots = asyncio.Semaphore(self.max_concurrency)
        self._write_lock = asyncio.Lock()

    async def _fetch(self, call: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Issue one provider request within the concurrency limit."""
        async with self._slots:
            return await call(*args, **kwargs)

    async def _write(self, write: Callable[..., Any], *args) -> Any:
        """Run a store write in a worker thread, one write at a time.

        A write that has started is allowed to finish even if the run is
        cancelled meanwhile, so no store change lands after the run returns.
        """
        async with self._write_lock:
            pending = asyncio.ensure_future(asyncio.to_thread(write, *args))
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                await pending
                raise

    def _local_midnight(self, day: date) -> datetime:
        """Midnight of a day in the bucketing zone."""
        midnight = datetime.combine(day, time.min)
        if self.tz is None:
            return midnight.astimezone()
        return midnight.replace(tzinfo=self.tz)

    def local_day(self, timestamp: str) -> date | None:
        """Calendar day of a timestamp in the bucketing zone, or None if unparseable."""
        try:
            return parse_timestamp(timestamp).astimezone(self.tz).date()
        except ValueError:
            return None

    async def sync_range(
        self,
        start: date,
        end: date,
        token: str | None,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[date, int]:
        """Sync all commits of a token committed within [start, end].

        Args:
            start: First calendar day, inclusive.
            end: Last calendar day, inclusive.
            token: Access token; blank means nothing to do.
            cancel_event: Checked at every page fetch.

        Returns:
            Mapping of day to commit count, days without commits omitted.

        Raises:
            ProviderAPIError: On any fetch failure. Projects and commits
                stored before the failure are kept; daily counts are not
                replaced.
            SyncCancelledError: When cancel_event is set mid-run.
        """
        if is_blank(token):
            return {}

        masked = mask_token(token)
        since = self._local_midnight(start)
        until = self._local_midnight(end + timedelta(days=1))

        logger.info("Start syncing commits, token=%s, range=%s ~ %s", masked, start, end)
        projects = await self._fetch(
            self.client.list_projects, token, cancel_event=cancel_event
        )
        logger.info("Projects to process: %d", len(projects))

        daily: Counter[date] = Counter()
        await run_all(
            self._sync_project(project, start, end, since, until, token, daily, cancel_event)
            for project in projects
        )

        await self._write(self.store.replace_daily_counts, token, start, end, dict(daily))
        logger.info("Sync finished, token=%s, total days=%d", masked, len(daily))
        return dict(sorted(daily.items()))

    async def _sync_project(
        self,
        project: dict,
        start: date,
        end: date,
        since: datetime,
        until: datetime,
        token: str,
        daily: Counter,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """Store one project's metadata and in-range commits, adding to `daily`."""
        ex = self.extractor
        name = ex.project_name(project)
        ref = ex.project_ref(project)
        project_id = ex.project_id(project)
        if not name or ref is None or project_id is None:
            logger.debug(
                "Skipping project without name or id: name=%r, ref=%r, id=%r",
                name,
                ref,
                project_id,
            )
            return

        languages = await self._fetch(
            self.client.list_languages, ref, token, cancel_event=cancel_event
        )
        await self._write(
            self.store.upsert_projects,
            [
                ProjectInfo(
                    token=token,
                    project_id=project_id,
                    name=name,
                    visibility=ex.visibility(project),
                    language=resolve_top_language(languages),
                )
            ],
        )

        branches = await self._fetch(
            self.client.list_branches, ref, token, cancel_event=cancel_event
        )
        listings = await run_all(
            self._fetch(
                self.client.list_commits,
                ref,
                branch,
                since,
                until,
                token,
                cancel_event=cancel_event,
            )
            for branch in branches
        )

        seen: set[str] = set()
        records: list[CommitRecord] = []
        for branch, commits in zip(branches, listings, strict=True):
            for commit in commits:
                sha = ex.sha(commit)
                if sha is None:
                    logger.debug("Skipping commit without sha in %s@%s", name, branch)
                    continue
                if sha in seen:
                    continue
                seen.add(sha)

                committed_at = ex.committed_date(commit)
                if committed_at is None:
                    logger.debug("Skipping commit %s without date in %s", sha, name)
                    continue
                day = self.local_day(committed_at)
                if day is None:
                    logger.debug("Skipping commit %s with bad date %r", sha, committed_at)
                    continue
                if day < start or day > end:
                    logger.debug("Skipping commit %s outside range: %s", sha, day)
                    continue

                records.append(
                    CommitRecord(
                        token=token,
                        sha=sha,
                        repository=name,
                        branch=branch,
                        committed_at=committed_at,
                        author=ex.author(commit),
                        message=ex.message(commit),
                        url=ex.url(commit),
                    )
                )
                daily[day] += 1

        await self._write(self.store.upsert_commits, records)
        logger.info(
            "Finished project: %s, branches=%d, unique commits=%d, in range=%d",
            name,
            len(branches),
            len(seen),
            len(records),
        )

    async def sync_last_year(
        self,
        token: str | None,
        today: date | None = None,
        days: int = 365,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[date, int]:
        """Sync the trailing window (365 days by default) ending today."""
        start, end = trailing_range(days, today)
        return await self.sync_range(start, end, token, cancel_event)

    async def sync_recent(
        self,
        token: str | None,
        window: str = "week",
        today: date | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[date, int]:
        """Re-sync only a short recent window.

        Args:
            token: Access token.
            window: One of "day", "week", "month", "year".
            today: Last day of the window (defaults to today).
            cancel_event: Optional cancellation signal.

        Raises:
            ValueError: For an unknown window name.
        """
        if window not in RECENT_WINDOWS:
            raise ValueError(
                f"Unknown sync window {window!r}, expected one of {sorted(RECENT_WINDOWS)}"
            )
        start, end = trailing_range(RECENT_WINDOWS[window], today)
        return await self.sync_range(start, end, token, cancel_event)
