"""Shared test fixtures."""

from datetime import datetime
from pathlib import Path

import pytest

from commitlog.models import CommitRecord
from commitlog.provider_client import NotFoundError
from commitlog.storage import CommitStore

TOKEN = "ghp_testtoken1234"


def github_commit(sha: str, committed: str, message: str = "Update", author: str = "Ada") -> dict:
    """Minimal GitHub commit payload."""
    return {
        "sha": sha,
        "html_url": f"https://github.com/acme/widgets/commit/{sha}",
        "commit": {
            "message": message,
            "author": {"name": author, "date": committed},
            "committer": {"name": "GitHub", "date": committed},
        },
    }


class FakeProviderClient:
    """In-memory stand-in for a provider client.

    Attributes:
        projects: Project payloads returned by list_projects.
        languages: Project ref -> language weights.
        branches: Project ref -> branch names.
        commits: (project ref, branch) -> commit payloads.
        calls: Names of methods invoked, in order.
    """

    def __init__(self, projects=None, languages=None, branches=None, commits=None):
        self.projects = projects or []
        self.languages = languages or {}
        self.branches = branches or {}
        self.commits = commits or {}
        self.calls: list[str] = []
        self.commit_windows: list[tuple[datetime, datetime]] = []
        self.fail_on_project: str | None = None

    async def list_projects(self, token, *, cancel_event=None):
        """Return the configured projects."""
        self.calls.append("list_projects")
        return list(self.projects)

    async def list_languages(self, project_ref, token, *, cancel_event=None):
        """Return the language weights for a project."""
        self.calls.append("list_languages")
        return dict(self.languages.get(project_ref, {}))

    async def list_branches(self, project_ref, token, *, cancel_event=None):
        """Return branch names, failing for fail_on_project."""
        self.calls.append("list_branches")
        if project_ref == self.fail_on_project:
            raise NotFoundError(f"Resource not found or no access: {project_ref}")
        return list(self.branches.get(project_ref, []))

    async def list_commits(self, project_ref, branch, since, until, token, *, cancel_event=None):
        """Return commits for a branch, recording the window."""
        self.calls.append("list_commits")
        self.commit_windows.append((since, until))
        return list(self.commits.get((project_ref, branch), []))


@pytest.fixture
def store(tmp_path: Path) -> CommitStore:
    """Empty store in a temporary directory."""
    return CommitStore(tmp_path / "data" / "github")


@pytest.fixture
def widgets_client() -> FakeProviderClient:
    """acme/widgets with main and dev sharing sha2."""
    return FakeProviderClient(
        projects=[{"id": 1, "full_name": "acme/widgets", "name": "widgets", "private": False}],
        languages={"acme/widgets": {"Python": 5000, "Shell": 200}},
        branches={"acme/widgets": ["main", "dev"]},
        commits={
            ("acme/widgets", "main"): [
                github_commit("sha1", "2024-01-05T10:00:00Z"),
                github_commit("sha2", "2024-01-06T10:00:00Z"),
            ],
            ("acme/widgets", "dev"): [
                github_commit("sha2", "2024-01-06T10:00:00Z"),
                github_commit("sha3", "2024-01-07T10:00:00Z"),
            ],
        },
    )


@pytest.fixture
def sample_records() -> list[CommitRecord]:
    """Commit records across two repositories."""
    return [
        CommitRecord(
            token=TOKEN,
            sha="aaa111",
            repository="acme/widgets",
            branch="main",
            committed_at="2024-01-05T10:00:00+00:00",
            author="Ada",
            message="Add widget",
            url="https://github.com/acme/widgets/commit/aaa111",
        ),
        CommitRecord(
            token=TOKEN,
            sha="bbb222",
            repository="acme/widgets",
            branch="feature/Login",
            committed_at="2024-01-07T09:00:00+09:00",
            author="Grace",
            message="Login form",
        ),
        CommitRecord(
            token=TOKEN,
            sha="ccc333",
            repository="acme/Gadgets",
            branch="dev",
            committed_at="2024-01-06T23:30:00-05:00",
            author="Linus",
            message="Fix gadget",
        ),
        CommitRecord(
            token="other-token-9999",
            sha="ddd444",
            repository="acme/widgets",
            branch="main",
            committed_at="2024-01-08T00:00:00Z",
        ),
    ]


@pytest.fixture
def token() -> str:
    """Token the sample data is stored under."""
    return TOKEN


@pytest.fixture
def make_commit():
    """Builder for GitHub commit payloads."""
    return github_commit


@pytest.fixture
def fake_client_cls() -> type[FakeProviderClient]:
    """The in-memory provider client class, for tests that build their own."""
    return FakeProviderClient
