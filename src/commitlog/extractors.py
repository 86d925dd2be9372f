"""Normalization of provider-native project and commit payloads.

Each provider family reports the same facts under different keys. An extractor
knows one family's field priority rules; the first present alternative wins and
a missing field yields None. Extractors never raise on malformed input.
"""

from typing import Any, Protocol

from commitlog.config import ProviderFamily


def _dig(payload: Any, *path: str) -> Any:
    """Walk nested mappings, returning None on any missing or non-dict step."""
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _first(payload: Any, *paths: tuple[str, ...]) -> str | None:
    """Return the first non-null value among alternative key paths, as a string."""
    for path in paths:
        value = _dig(payload, *path)
        if value is not None:
            return str(value)
    return None


def _first_non_blank(payload: Any, *paths: tuple[str, ...]) -> str | None:
    """Like _first, but blank strings count as absent."""
    for path in paths:
        value = _dig(payload, *path)
        if value is not None and str(value).strip():
            return str(value)
    return None


class PayloadExtractor(Protocol):
    """Field extraction rules for one provider family."""

    def project_id(self, project: dict) -> str | None: ...

    def project_ref(self, project: dict) -> str | int | None: ...

    def project_name(self, project: dict) -> str | None: ...

    def visibility(self, project: dict) -> str: ...

    def sha(self, commit: dict) -> str | None: ...

    def committed_date(self, commit: dict) -> str | None: ...

    def message(self, commit: dict) -> str | None: ...

    def author(self, commit: dict) -> str | None: ...

    def url(self, commit: dict) -> str | None: ...


class GitHubExtractor:
    """Rules for GitHub REST v3 payloads."""

    def project_id(self, project: dict) -> str | None:
        """Numeric repository id, as a string."""
        return _first(project, ("id",))

    def project_ref(self, project: dict) -> str | None:
        """API path segment: the owner-qualified full name."""
        return _first_non_blank(project, ("full_name",))

    def project_name(self, project: dict) -> str | None:
        """Display name: full_name, then name."""
        return _first_non_blank(project, ("full_name",), ("name",))

    def visibility(self, project: dict) -> str:
        """Private when the private flag is set, otherwise public."""
        return "private" if _dig(project, "private") is True else "public"

    def sha(self, commit: dict) -> str | None:
        """Commit hash."""
        return _first(commit, ("sha",))

    def committed_date(self, commit: dict) -> str | None:
        """Committer date, then author date."""
        return _first(commit, ("commit", "committer", "date"), ("commit", "author", "date"))

    def message(self, commit: dict) -> str | None:
        """Full commit message."""
        return _first(commit, ("commit", "message"))

    def author(self, commit: dict) -> str | None:
        """Author name, then committer name."""
        return _first(commit, ("commit", "author", "name"), ("commit", "committer", "name"))

    def url(self, commit: dict) -> str | None:
        """Browser URL of the commit."""
        return _first(commit, ("html_url",))


class GitLabExtractor:
    """Rules for GitLab REST v4 payloads."""

    def project_id(self, project: dict) -> str | None:
        """Numeric project id, as a string."""
        return _first(project, ("id",))

    def project_ref(self, project: dict) -> int | str | None:
        """API path segment: the numeric project id."""
        return _dig(project, "id")

    def project_name(self, project: dict) -> str | None:
        """Display name: path_with_namespace, then name."""
        return _first_non_blank(project, ("path_with_namespace",), ("name",))

    def visibility(self, project: dict) -> str:
        """Reported visibility, private when absent."""
        return _first(project, ("visibility",)) or "private"

    def sha(self, commit: dict) -> str | None:
        """Commit hash (GitLab calls it id)."""
        return _first(commit, ("id",))

    def committed_date(self, commit: dict) -> str | None:
        """Committed date, then authored date."""
        return _first(commit, ("committed_date",), ("authored_date",))

    def message(self, commit: dict) -> str | None:
        """Title line, then full message."""
        return _first(commit, ("title",), ("message",))

    def author(self, commit: dict) -> str | None:
        """Author name, then committer name."""
        return _first(commit, ("author_name",), ("committer_name",))

    def url(self, commit: dict) -> str | None:
        """Browser URL of the commit."""
        return _first(commit, ("web_url",))


def extractor_for(provider: ProviderFamily) -> PayloadExtractor:
    """Return the extractor matching a provider family."""
    if provider is ProviderFamily.GITLAB:
        return GitLabExtractor()
    return GitHubExtractor()
