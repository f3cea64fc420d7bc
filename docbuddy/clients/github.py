"""GitHub API client with App JWT authentication.

One client class for every REST call DocBuddy makes: from_env(),
_handle_response(), typed methods. Each method takes the installation id
first and exchanges it for a cached installation token.
"""

import base64
import binascii
import logging
import time

import httpx
import jwt

from docbuddy.config import GithubSettings
from docbuddy.errors import ApiResponseError, AuthenticationError, NotFoundError
from docbuddy.models.github import CommitComparison, CommitDetails, PullCommit

log = logging.getLogger(__name__)

# Installation token cache: {installation_id: (token, expires_at)}
_token_cache: dict[int, tuple[str, float]] = {}
_TOKEN_TTL = 50 * 60  # 50 minutes (tokens last 1 hour)


class GitHubClient:
    """GitHub API client with App authentication."""

    service_name: str = "github"

    def __init__(
        self,
        app_id: str,
        private_key: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._app_id = app_id
        self._private_key = private_key
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_env(cls) -> "GitHubClient":
        settings = GithubSettings()
        return cls(
            app_id=settings.app_id,
            private_key=settings.private_key,
            base_url=settings.api_url,
            timeout=settings.timeout_seconds,
        )

    def _generate_jwt(self) -> str:
        """Generate a short-lived JWT for GitHub App authentication."""
        now = int(time.time())
        payload = {
            "iat": now - 60,   # 60s in the past for clock skew
            "exp": now + 600,  # 10 minute expiry
            "iss": self._app_id,
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    async def _get_installation_token(self, installation_id: int) -> str:
        """Get an installation access token, caching for reuse."""
        if installation_id in _token_cache:
            token, expires_at = _token_cache[installation_id]
            if time.time() < expires_at:
                return token

        app_jwt = self._generate_jwt()
        response = await self._client.post(
            f"/app/installations/{installation_id}/access_tokens",
            headers={
                "Authorization": f"Bearer {app_jwt}",
                "Accept": "application/vnd.github.v3+json",
            },
        )
        if response.status_code != 201:
            raise AuthenticationError(
                self.service_name,
                f"failed to get installation token: HTTP {response.status_code}",
            )

        data = response.json()
        token = data["token"]
        _token_cache[installation_id] = (token, time.time() + _TOKEN_TTL)
        log.info("Generated new installation token for %d", installation_id)
        return token

    def _handle_response(self, response: httpx.Response) -> None:
        """Raise typed errors for non-success responses."""
        if response.status_code == 401:
            raise AuthenticationError(self.service_name, "invalid credentials")
        if response.status_code == 404:
            raise NotFoundError(self.service_name, "resource not found")
        if response.status_code >= 400:
            raise ApiResponseError(self.service_name, response.status_code, response.text)

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github.v3+json",
        }

    async def get_commit_details(
        self, installation_id: int, owner: str, repo: str, sha: str,
    ) -> CommitDetails:
        """Fetch a commit with its changed files and their patches."""
        token = await self._get_installation_token(installation_id)
        response = await self._client.get(
            f"/repos/{owner}/{repo}/commits/{sha}",
            headers=self._auth_headers(token),
        )
        self._handle_response(response)

        details = CommitDetails.model_validate(response.json())
        log.info("Commit %s changed %d files", sha[:7], len(details.files))
        return details

    async def get_file_content(
        self, installation_id: int, owner: str, repo: str, ref: str, path: str,
    ) -> str | None:
        """Fetch file contents at a ref. Returns None if missing, a directory or binary."""
        token = await self._get_installation_token(installation_id)
        response = await self._client.get(
            f"/repos/{owner}/{repo}/contents/{path}",
            params={"ref": ref},
            headers=self._auth_headers(token),
        )
        if response.status_code == 404:
            return None
        self._handle_response(response)

        data = response.json()
        if not isinstance(data, dict) or "content" not in data:
            log.info("No content for %s (directory or submodule)", path)
            return None
        try:
            return base64.b64decode(data["content"]).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            log.info("Skipping non-text content for %s", path)
            return None

    async def create_review_comment(
        self,
        installation_id: int,
        owner: str,
        repo: str,
        pr_number: int,
        *,
        body: str,
        commit_id: str,
        path: str,
        line: int,
        side: str = "RIGHT",
        start_line: int | None = None,
        start_side: str | None = None,
    ) -> bool:
        """Create an inline review comment anchored to a line of the diff.

        Raises ApiResponseError (422) when the line is not part of the diff.
        """
        token = await self._get_installation_token(installation_id)
        payload: dict = {
            "body": body,
            "commit_id": commit_id,
            "path": path,
            "line": line,
            "side": side,
        }
        if start_line is not None and start_line != line:
            payload["start_line"] = start_line
            payload["start_side"] = start_side or side

        response = await self._client.post(
            f"/repos/{owner}/{repo}/pulls/{pr_number}/comments",
            headers=self._auth_headers(token),
            json=payload,
        )
        self._handle_response(response)
        log.info("Review comment created for %s:%d", path, line)
        return True

    async def create_review(
        self,
        installation_id: int,
        owner: str,
        repo: str,
        pr_number: int,
        *,
        commit_id: str,
        body: str,
    ) -> None:
        """Post a PR-level review comment."""
        token = await self._get_installation_token(installation_id)
        response = await self._client.post(
            f"/repos/{owner}/{repo}/pulls/{pr_number}/reviews",
            headers=self._auth_headers(token),
            json={"commit_id": commit_id, "body": body, "event": "COMMENT"},
        )
        self._handle_response(response)

    async def _fetch_paginated(
        self, installation_id: int, path: str, max_pages: int = 3,
    ) -> list[dict]:
        """Fetch a paginated list endpoint, returning up to max_pages of results.

        A failed page raises instead of returning a truncated list.
        """
        token = await self._get_installation_token(installation_id)
        all_items: list[dict] = []
        per_page = 100
        for page in range(1, max_pages + 1):
            response = await self._client.get(
                path,
                headers=self._auth_headers(token),
                params={"per_page": per_page, "page": page},
            )
            if response.status_code != 200:
                log.warning("Failed to fetch %s page %d: %d", path, page, response.status_code)
            self._handle_response(response)
            items = response.json()
            all_items.extend(items)
            if len(items) < per_page:
                break
        return all_items

    async def list_commits(
        self, installation_id: int, owner: str, repo: str, pr_number: int,
    ) -> list[PullCommit]:
        """Fetch the commits of a PR, oldest first."""
        items = await self._fetch_paginated(
            installation_id, f"/repos/{owner}/{repo}/pulls/{pr_number}/commits",
        )
        commits = [PullCommit.model_validate(item) for item in items]
        log.info("Found %d commits in PR #%d", len(commits), pr_number)
        return commits

    async def compare_commits(
        self, installation_id: int, owner: str, repo: str, base: str, head: str,
    ) -> CommitComparison:
        """Compare two commits (``base...head``)."""
        token = await self._get_installation_token(installation_id)
        response = await self._client.get(
            f"/repos/{owner}/{repo}/compare/{base}...{head}",
            headers=self._auth_headers(token),
        )
        self._handle_response(response)
        return CommitComparison.model_validate(response.json())

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
