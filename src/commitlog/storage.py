"""File-based project, commit and daily-count storage using Parquet format."""

from datetime import date
from pathlib import Path

import polars as pl

from commitlog.models import CommitRecord, ProjectInfo

PROJECTS_SCHEMA = {
    "token": pl.Utf8,
    "project_id": pl.Utf8,
    "name": pl.Utf8,
    "visibility": pl.Utf8,
    "language": pl.Utf8,
}

COMMITS_SCHEMA = {
    "token": pl.Utf8,
    "sha": pl.Utf8,
    "repository": pl.Utf8,
    "branch": pl.Utf8,
    "committed_at": pl.Utf8,
    "committed_ts": pl.Datetime("us", "UTC"),
    "author": pl.Utf8,
    "message": pl.Utf8,
    "url": pl.Utf8,
}

DAILY_SCHEMA = {
    "token": pl.Utf8,
    "date": pl.Date,
    "count": pl.Int64,
}

PROJECT_KEY = ["token", "project_id"]
COMMIT_KEY = ["token", "repository", "sha"]


def _contains(column: str, needle: str) -> pl.Expr:
    """Case-insensitive literal substring match."""
    return pl.col(column).str.to_lowercase().str.contains(needle.strip().lower(), literal=True)


class CommitStore:
    """Parquet-backed store for one provider family.

    Projects and commits are upserted by composite key; daily counts for a
    date range are replaced wholesale. Every query is scoped by token.

    The delete-then-insert of daily counts is not atomic across processes:
    two concurrent syncs of the same token and overlapping ranges may race.

    Attributes:
        data_dir: Directory holding the Parquet files.
    """

    def __init__(self, data_dir: Path):
        """Initialize storage rooted at a directory.

        Args:
            data_dir: Directory for projects/commits/daily Parquet files.
        """
        self.data_dir = data_dir
        self.projects_path = data_dir / "projects.parquet"
        self.commits_path = data_dir / "commits.parquet"
        self.daily_path = data_dir / "daily.parquet"

    def _read(self, path: Path, schema: dict) -> pl.DataFrame:
        """Read a Parquet file, or an empty frame of the schema if missing."""
        if not path.exists():
            return pl.DataFrame(schema=schema)
        return pl.read_parquet(path)

    def _write(self, path: Path, df: pl.DataFrame) -> None:
        """Write a frame to Parquet, creating the directory if needed."""
        path.parent.mkdir(parents=True, exist_ok=True)
        df.write_parquet(path)

    def _upsert(
        self, path: Path, schema: dict, key_cols: list[str], rows: list[dict]
    ) -> int:
        """Merge rows into a file, new rows replacing existing ones by key."""
        if not rows:
            return 0

        # Last occurrence wins within a single batch as well
        new_df = pl.DataFrame(rows, schema=schema).unique(
            subset=key_cols, keep="last", maintain_order=True
        )
        existing_df = self._read(path, schema)

        if existing_df.is_empty():
            self._write(path, new_df)
            return len(new_df)

        merged_df = existing_df.join(
            new_df.select(key_cols), on=key_cols, how="anti"
        ).vstack(new_df)

        self._write(path, merged_df)
        return len(new_df)

    def read_projects(self) -> pl.DataFrame:
        """Load all stored projects."""
        return self._read(self.projects_path, PROJECTS_SCHEMA)

    def read_commits(self) -> pl.DataFrame:
        """Load all stored commit records."""
        return self._read(self.commits_path, COMMITS_SCHEMA)

    def read_daily(self) -> pl.DataFrame:
        """Load all stored daily counts."""
        return self._read(self.daily_path, DAILY_SCHEMA)

    def upsert_projects(self, projects: list[ProjectInfo]) -> int:
        """Insert or replace projects keyed by (token, project_id).

        Returns:
            Number of projects written.
        """
        return self._upsert(
            self.projects_path, PROJECTS_SCHEMA, PROJECT_KEY, [p.to_dict() for p in projects]
        )

    def upsert_commits(self, records: list[CommitRecord]) -> int:
        """Insert or replace commits keyed by (token, repository, sha).

        Returns:
            Number of records written.
        """
        return self._upsert(
            self.commits_path, COMMITS_SCHEMA, COMMIT_KEY, [r.to_dict() for r in records]
        )

    def replace_daily_counts(
        self, token: str, start: date, end: date, counts: dict[date, int]
    ) -> int:
        """Replace all daily counts of a token within [start, end].

        Rows in the range are deleted first; only non-zero days inside the
        range are inserted back.

        Returns:
            Number of daily rows inserted.
        """
        existing_df = self.read_daily()
        kept_df = existing_df.filter(
            ~(
                (pl.col("token") == token)
                & (pl.col("date") >= start)
                & (pl.col("date") <= end)
            )
        )

        rows = [
            {"token": token, "date": day, "count": count}
            for day, count in sorted(counts.items())
            if count > 0 and start <= day <= end
        ]
        new_df = pl.DataFrame(rows, schema=DAILY_SCHEMA)

        self._write(self.daily_path, kept_df.vstack(new_df).sort(["token", "date"]))
        return len(rows)

    def daily_counts(self, token: str, start: date, end: date) -> dict[date, int]:
        """Stored daily counts of a token within [start, end].

        Days without a stored row are absent from the result.
        """
        df = self.read_daily()
        if df.is_empty():
            return {}

        df = df.filter(
            (pl.col("token") == token)
            & (pl.col("date") >= start)
            & (pl.col("date") <= end)
        )
        return {row["date"]: row["count"] for row in df.iter_rows(named=True)}

    def has_commits(self, token: str) -> bool:
        """Check whether any commit record exists for a token."""
        df = self.read_commits()
        return not df.is_empty() and df.filter(pl.col("token") == token).height > 0

    def find_commits(
        self,
        token: str,
        repository: str | None = None,
        branch: str | None = None,
        page: int = 1,
        size: int = 20,
    ) -> tuple[int, list[CommitRecord]]:
        """Query commit records with optional filters.

        Args:
            token: Exact token to scope by.
            repository: Case-insensitive substring of the repository name.
            branch: Case-insensitive substring of the branch name.
            page: 1-based page index, floored to 1.
            size: Page size, floored to 1.

        Returns:
            Tuple of (total matches, records on the page newest first).
        """
        page = max(page, 1)
        size = max(size, 1)

        df = self.read_commits().filter(pl.col("token") == token)
        if repository and repository.strip():
            df = df.filter(_contains("repository", repository))
        if branch and branch.strip():
            df = df.filter(_contains("branch", branch))

        total = df.height
        page_df = df.sort("committed_ts", descending=True, nulls_last=True).slice(
            (page - 1) * size, size
        )

        records = [
            CommitRecord(
                token=row["token"],
                sha=row["sha"],
                repository=row["repository"],
                branch=row["branch"],
                committed_at=row["committed_at"],
                author=row["author"],
                message=row["message"],
                url=row["url"],
            )
            for row in page_df.iter_rows(named=True)
        ]
        return total, records

    def distinct_repositories(self, token: str) -> list[str]:
        """Distinct repository names of a token, sorted case-insensitively."""
        df = self.read_commits().filter(pl.col("token") == token)
        values = df["repository"].drop_nulls().unique().to_list()
        return sorted(values, key=str.lower)

    def distinct_branches(self, repository: str, token: str) -> list[str]:
        """Distinct branch names of one repository, sorted case-insensitively."""
        df = self.read_commits().filter(
            (pl.col("token") == token) & (pl.col("repository") == repository)
        )
        values = df["branch"].drop_nulls().unique().to_list()
        return sorted(values, key=str.lower)

    def projects(self, token: str) -> list[ProjectInfo]:
        """Stored project metadata of a token, sorted by name."""
        df = self.read_projects().filter(pl.col("token") == token)
        return sorted(
            (ProjectInfo(**row) for row in df.iter_rows(named=True)),
            key=lambda p: p.name.lower(),
        )
