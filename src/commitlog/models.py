"""Data models for commitlog."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime


@dataclass
class ProjectInfo:
    """Project metadata as of the latest sync.

    Attributes:
        token: Access token the project was listed under.
        project_id: Provider project id (string form).
        name: Owner/path-qualified display name (e.g., "acme/widgets").
        visibility: "public", "private" or the provider-reported value.
        language: Language with the largest weight, if any.
    """

    token: str
    project_id: str
    name: str
    visibility: str
    language: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for DataFrame creation.

        Returns:
            Dictionary representation of the project.
        """
        return {
            "token": self.token,
            "project_id": self.project_id,
            "name": self.name,
            "visibility": self.visibility,
            "language": self.language,
        }


@dataclass
class CommitRecord:
    """A single commit, unique per (token, repository, sha).

    Attributes:
        token: Access token the commit was synced under.
        sha: Commit hash.
        repository: Display name of the owning project.
        branch: First branch the commit was seen on during its sync.
        committed_at: Committed timestamp as reported (ISO-8601 with offset).
        author: Author display name.
        message: Commit subject or full message.
        url: Web URL of the commit.
    """

    token: str
    sha: str
    repository: str
    branch: str | None
    committed_at: str
    author: str | None = None
    message: str | None = None
    url: str | None = None

    @property
    def record_id(self) -> str:
        """Composite key in "token:repository:sha" form."""
        return f"{self.token}:{self.repository}:{self.sha}"

    @property
    def committed_ts(self) -> datetime:
        """Committed instant normalized to UTC."""
        return parse_timestamp(self.committed_at).astimezone(UTC)

    def to_dict(self) -> dict:
        """Convert to dictionary for DataFrame creation.

        Returns:
            Dictionary representation of the record, including the UTC sort key.
        """
        return {
            "token": self.token,
            "sha": self.sha,
            "repository": self.repository,
            "branch": self.branch,
            "committed_at": self.committed_at,
            "committed_ts": self.committed_ts,
            "author": self.author,
            "message": self.message,
            "url": self.url,
        }

    def to_public_dict(self) -> dict:
        """Caller-facing representation (no token, no internal sort key)."""
        return {
            "id": self.record_id,
            "sha": self.sha,
            "repository": self.repository,
            "branch": self.branch,
            "committed_at": self.committed_at,
            "author": self.author,
            "message": self.message,
            "url": self.url,
        }


@dataclass
class DailyCount:
    """Commit count for one calendar day.

    Attributes:
        day: The calendar day (local time zone).
        count: Number of commits on that day.
    """

    day: date
    count: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary with an ISO date string."""
        return {"date": self.day.isoformat(), "count": self.count}


@dataclass
class CommitPage:
    """One page of a filtered commit query.

    Attributes:
        total: Total number of matching records.
        page: Clamped 1-based page index.
        size: Clamped page size.
        records: Records on this page, newest first.
    """

    total: int
    page: int
    size: int
    records: list[CommitRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "total": self.total,
            "page": self.page,
            "size": self.size,
            "records": [r.to_public_dict() for r in self.records],
        }


@dataclass
class FetchResult:
    """Outcome of a caller-triggered sync.

    Attributes:
        status: "cached" when stored data was reused, "synced" otherwise.
        days: Number of days with at least one commit in the synced range.
    """

    status: str
    days: int = 0


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
