"""Post suggestion comments on a pull request, falling back to a PR-level review."""

import logging

import httpx

from docbuddy.clients.github import GitHubClient
from docbuddy.errors import ServiceError
from docbuddy.models.review import FileRef, Outcome

log = logging.getLogger(__name__)


class CommentPublisher:
    """Publish review comments for one installation."""

    def __init__(self, github: GitHubClient, installation_id: int) -> None:
        self._github = github
        self._installation_id = installation_id

    async def publish(
        self, ref: FileRef, body: str, line: int, start_line: int | None = None,
    ) -> Outcome:
        """Post an inline comment on ``line`` of ``ref.path``.

        If GitHub rejects the inline comment (typically a 422 because the
        line is outside every hunk), the body is posted once as a PR-level
        review prefixed with the file path. Never raises.
        """
        try:
            await self._github.create_review_comment(
                self._installation_id,
                ref.owner,
                ref.repo,
                ref.pr_number,
                body=body,
                commit_id=ref.commit_id,
                path=ref.path,
                line=line,
                side="RIGHT",
                start_line=start_line,
            )
            return Outcome.success()
        except (ServiceError, httpx.HTTPError) as e:
            log.info("Inline comment on %s:%d failed (%s), posting PR review instead", ref.path, line, e)

        try:
            await self._github.create_review(
                self._installation_id,
                ref.owner,
                ref.repo,
                ref.pr_number,
                commit_id=ref.commit_id,
                body=f"Documentation improvement for {ref.path}:\n\n{body}",
            )
        except (ServiceError, httpx.HTTPError) as e:
            log.error("Fallback review for %s also failed: %s", ref.path, e)
            return Outcome.failed(f"comment rejected: {e}")

        log.info("Created general review comment instead for %s", ref.path)
        return Outcome.success("posted as PR review")
