"""Read-side facade over the commit store."""

import logging
from datetime import date, timedelta

from commitlog.models import CommitPage, DailyCount
from commitlog.storage import CommitStore
from commitlog.tokens import is_blank, mask_token

logger = logging.getLogger(__name__)


class QueryService:
    """Answers caller queries from persisted sync state.

    A blank token always yields an empty result rather than an error.
    """

    def __init__(self, store: CommitStore):
        """Initialize facade.

        Args:
            store: Store to read from.
        """
        self.store = store

    def has_data(self, token: str | None) -> bool:
        """True iff at least one commit record exists for the token."""
        if is_blank(token):
            return False
        exists = self.store.has_commits(token)
        logger.info("Check cached data, token=%s, exists=%s", mask_token(token), exists)
        return exists

    def daily_counts(self, start: date, end: date, token: str | None) -> list[DailyCount]:
        """One entry per day in [start, end], ascending, zero-filled.

        Returns:
            end - start + 1 DailyCount entries; empty for a blank token.
        """
        if is_blank(token):
            return []

        stored = self.store.daily_counts(token, start, end)
        results = []
        cursor = start
        while cursor <= end:
            results.append(DailyCount(day=cursor, count=stored.get(cursor, 0)))
            cursor += timedelta(days=1)
        return results

    def commit_page(
        self,
        project: str | None,
        branch: str | None,
        page: int | None,
        size: int | None,
        token: str | None,
    ) -> CommitPage:
        """Filtered, paginated commit records, newest first.

        Page and size are clamped to at least 1; missing values count as 1.
        """
        safe_page = max(page or 1, 1)
        safe_size = max(size or 1, 1)
        if is_blank(token):
            return CommitPage(total=0, page=safe_page, size=safe_size)

        total, records = self.store.find_commits(
            token, repository=project, branch=branch, page=safe_page, size=safe_size
        )
        logger.info(
            "Commit records query finished, token=%s, project=%s, branch=%s, total=%d",
            mask_token(token),
            project,
            branch,
            total,
        )
        return CommitPage(total=total, page=safe_page, size=safe_size, records=records)

    def distinct_projects(self, token: str | None) -> list[str]:
        """Repository names with stored commits, sorted case-insensitively."""
        if is_blank(token):
            return []
        projects = self.store.distinct_repositories(token)
        logger.info("Project list fetched, token=%s, count=%d", mask_token(token), len(projects))
        return projects

    def distinct_branches(self, project: str | None, token: str | None) -> list[str]:
        """Branch names with stored commits for one project."""
        if is_blank(project) or is_blank(token):
            return []
        branches = self.store.distinct_branches(project, token)
        logger.info(
            "Branch list fetched, token=%s, project=%s, count=%d",
            mask_token(token),
            project,
            len(branches),
        )
        return branches
