"""Async clients for the GitHub and GitLab REST APIs."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any, Self

import httpx

from commitlog.config import ProviderFamily, Settings
from commitlog.tokens import is_blank

logger = logging.getLogger(__name__)

USER_AGENT = "commitlog"


class ProviderAPIError(Exception):
    """Base exception for provider API errors."""


class RateLimitError(ProviderAPIError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, reset_at: datetime | None = None):
        """Initialize with reset time.

        Args:
            message: Error message.
            reset_at: When rate limit resets (UTC).
        """
        super().__init__(message)
        self.reset_at = reset_at


class AuthenticationError(ProviderAPIError):
    """Raised for authentication failures."""


class NotFoundError(ProviderAPIError):
    """Raised when a project doesn't exist or the token has no access."""


class SyncCancelledError(Exception):
    """Raised at a page boundary once cancellation has been requested."""


def _reset_time(value: str | None) -> datetime | None:
    """Parse a rate-limit reset header (epoch seconds) into UTC."""
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=UTC)
    except ValueError:
        return None


class ProviderClient(ABC):
    """Async paginated client for one provider's listing endpoints.

    The token is passed per call, so one client can serve many tenants.
    Subclasses supply the endpoint paths and the auth header.

    Attributes:
        provider: Provider family this client talks to.
    """

    provider: ProviderFamily

    def __init__(
        self,
        base_url: str,
        page_size: int = 100,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            base_url: API base URL.
            page_size: Items requested per page.
            timeout: Request timeout in seconds.
            max_retries: Attempts for transient failures (5xx, network errors).
            transport: Optional httpx transport, used by tests.
        """
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout
        self.max_retries = max(max_retries, 1)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.default_headers(),
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def default_headers(self) -> dict[str, str]:
        """Headers sent with every request."""
        return {"User-Agent": USER_AGENT}

    @abstractmethod
    def auth_headers(self, token: str | None) -> dict[str, str]:
        """Headers carrying the token; empty for a blank token."""

    async def _request(
        self,
        method: str,
        path: str,
        token: str | None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute request with retry logic.

        Args:
            method: HTTP method.
            path: API endpoint path.
            token: Access token, may be blank.
            params: Query parameters.

        Returns:
            Decoded JSON body.

        Raises:
            RateLimitError: When rate limit is exceeded.
            AuthenticationError: For auth failures.
            NotFoundError: When resource not found.
            ProviderAPIError: For other API errors.
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                response = await self._client.request(
                    method, path, params=params, headers=self.auth_headers(token)
                )
            except httpx.RequestError as e:
                last_error = ProviderAPIError(f"Request failed: {e}")
                logger.warning("Request to %s failed (attempt %d): %s", path, attempt + 1, e)
                if attempt + 1 < self.max_retries:
                    await asyncio.sleep(2**attempt)
                continue

            if response.status_code == 200:
                return response.json()

            if response.status_code == 401:
                raise AuthenticationError("Invalid or expired token")

            if response.status_code == 403:
                # GitHub signals rate limiting with 403 and an exhausted quota
                if response.headers.get("X-RateLimit-Remaining") == "0":
                    reset_at = _reset_time(response.headers.get("X-RateLimit-Reset"))
                    raise RateLimitError(
                        f"Rate limit exceeded. Resets at {reset_at.isoformat() if reset_at else 'unknown'}",
                        reset_at=reset_at,
                    )
                raise AuthenticationError("Access forbidden - check token permissions")

            if response.status_code == 404:
                raise NotFoundError(f"Resource not found or no access: {path}")

            if response.status_code == 429:
                reset_at = _reset_time(
                    response.headers.get("RateLimit-Reset")
                    or response.headers.get("X-RateLimit-Reset")
                )
                raise RateLimitError("Rate limit exceeded", reset_at=reset_at)

            # Server errors - retry
            if response.status_code >= 500:
                last_error = ProviderAPIError(
                    f"Server error {response.status_code}: {response.text}"
                )
                if attempt + 1 < self.max_retries:
                    await asyncio.sleep(2**attempt)
                continue

            raise ProviderAPIError(f"API error {response.status_code}: {response.text}")

        raise last_error or ProviderAPIError("Request failed after retries")

    async def _paginate(
        self,
        path: str,
        token: str | None,
        params: dict[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[dict]:
        """Collect every page of a listing endpoint.

        Pages are requested from 1 upward until one comes back empty.

        Raises:
            SyncCancelledError: If cancel_event is set before a page fetch.
        """
        results: list[dict] = []
        page = 1

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise SyncCancelledError(f"Cancelled while paginating {path}")

            query = dict(params or {})
            query["per_page"] = self.page_size
            query["page"] = page
            body = await self._request("GET", path, token, params=query)

            if not isinstance(body, list) or not body:
                break

            results.extend(body)
            logger.info("Fetched %s page %d, count=%d", path, page, len(body))
            page += 1

        logger.info("Finished fetching %s, total=%d", path, len(results))
        return results

    @abstractmethod
    def projects_path(self) -> tuple[str, dict[str, Any]]:
        """Project listing path and its fixed query parameters."""

    @abstractmethod
    def languages_path(self, project_ref: str | int) -> str:
        """Path of a project's language breakdown."""

    @abstractmethod
    def branches_path(self, project_ref: str | int) -> str:
        """Path of a project's branch listing."""

    @abstractmethod
    def commits_path(self, project_ref: str | int) -> str:
        """Path of a project's commit listing."""

    @abstractmethod
    def branch_param(self) -> str:
        """Query parameter selecting the branch of a commit listing."""
    async def list_projects(
        self, token: str | None, *, cancel_event: asyncio.Event | None = None
    ) -> list[dict]:
        """Fetch every project visible to the token.

        Args:
            token: Access token, may be blank for anonymous access.
            cancel_event: Optional cancellation signal.

        Returns:
            Provider-native project payloads.
        """
        path, params = self.projects_path()
        logger.info("Start fetching %s projects", self.provider.value)
        return await self._paginate(path, token, params, cancel_event)

    async def list_languages(
        self,
        project_ref: str | int,
        token: str | None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, float]:
        """Fetch the language weight map of a project.

        Returns:
            Mapping of language name to weight (bytes or percentage).
        """
        if cancel_event is not None and cancel_event.is_set():
            raise SyncCancelledError(f"Cancelled before languages of {project_ref}")
        logger.info("Fetching languages: %s", project_ref)
        data = await self._request("GET", self.languages_path(project_ref), token)
        if not isinstance(data, dict):
            return {}
        return {
            str(name): weight
            for name, weight in data.items()
            if isinstance(weight, int | float)
        }

    async def list_branches(
        self,
        project_ref: str | int,
        token: str | None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[str]:
        """Fetch branch names of a project."""
        items = await self._paginate(
            self.branches_path(project_ref), token, cancel_event=cancel_event
        )
        return [str(item["name"]) for item in items if isinstance(item, dict) and item.get("name")]

    async def list_commits(
        self,
        project_ref: str | int,
        branch: str,
        since: datetime,
        until: datetime,
        token: str | None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[dict]:
        """Fetch commits of one branch in a time window.

        The provider's own date filtering is advisory; callers re-check dates.

        Args:
            project_ref: Provider-specific project reference.
            branch: Branch name.
            since: Window start (timezone-aware).
            until: Window end (timezone-aware).
            token: Access token, may be blank.
            cancel_event: Optional cancellation signal.

        Returns:
            Provider-native commit payloads.
        """
        params = {
            "since": since.isoformat(),
            "until": until.isoformat(),
            self.branch_param(): branch,
        }
        return await self._paginate(
            self.commits_path(project_ref), token, params, cancel_event
        )


class GitHubClient(ProviderClient):
    """Client for the GitHub REST API."""

    provider = ProviderFamily.GITHUB

    def default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def auth_headers(self, token: str | None) -> dict[str, str]:
        if is_blank(token):
            return {}
        return {"Authorization": f"token {token}"}

    def projects_path(self) -> tuple[str, dict[str, Any]]:
        return "/user/repos", {
            "visibility": "all",
            "affiliation": "owner,collaborator,organization_member",
        }

    def languages_path(self, project_ref: str | int) -> str:
        return f"/repos/{project_ref}/languages"

    def branches_path(self, project_ref: str | int) -> str:
        return f"/repos/{project_ref}/branches"

    def commits_path(self, project_ref: str | int) -> str:
        return f"/repos/{project_ref}/commits"

    def branch_param(self) -> str:
        return "sha"


class GitLabClient(ProviderClient):
    """Client for the GitLab REST API (v4)."""

    provider = ProviderFamily.GITLAB

    def auth_headers(self, token: str | None) -> dict[str, str]:
        if is_blank(token):
            return {}
        return {"Private-Token": token}

    def projects_path(self) -> tuple[str, dict[str, Any]]:
        return "/projects", {"membership": "true"}

    def languages_path(self, project_ref: str | int) -> str:
        return f"/projects/{project_ref}/languages"

    def branches_path(self, project_ref: str | int) -> str:
        return f"/projects/{project_ref}/repository/branches"

    def commits_path(self, project_ref: str | int) -> str:
        return f"/projects/{project_ref}/repository/commits"

    def branch_param(self) -> str:
        return "ref_name"


def client_for(
    settings: Settings,
    provider: ProviderFamily,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderClient:
    """Build an unopened client for a provider family from settings."""
    cls = GitLabClient if provider is ProviderFamily.GITLAB else GitHubClient
    return cls(
        settings.base_url_for(provider),
        page_size=settings.page_size,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        transport=transport,
    )
