"""Webhook event routing for DocBuddy documentation suggestions."""

import logging

import httpx

from docbuddy.classifier import is_bot_suggestion_commit, select_candidates
from docbuddy.clients.gemini import GeminiClient
from docbuddy.clients.github import GitHubClient
from docbuddy.config import DocBuddySettings
from docbuddy.diff_parser import commentable_positions, parse_positions
from docbuddy.errors import ServiceError
from docbuddy.models.github import CommitFile, WebhookContext
from docbuddy.models.review import FileRef, Outcome, Suggestion
from docbuddy.publisher import CommentPublisher
from docbuddy.suggestions import SuggestionGenerator, format_suggestion_comment

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 300


class EventRouter:
    """Route GitHub webhook events through the suggestion pipeline."""

    def __init__(
        self,
        github: GitHubClient,
        generator: SuggestionGenerator,
        settings: DocBuddySettings | None = None,
    ) -> None:
        self._github = github
        self._generator = generator
        self._settings = settings or DocBuddySettings()

    @classmethod
    def from_env(cls) -> "EventRouter":
        settings = DocBuddySettings()
        return cls(
            github=GitHubClient.from_env(),
            generator=SuggestionGenerator(GeminiClient.from_env(), settings),
            settings=settings,
        )

    async def handle(self, event_type: str, data: dict) -> list[Outcome]:
        """Dispatch one webhook delivery. Returns one outcome per file or comment."""
        ctx = WebhookContext.from_webhook(event_type, data)

        if ctx.is_pr_review:
            return await self._handle_pr_review(ctx)
        if ctx.is_push:
            return await self._handle_push(ctx)

        logger.debug("[webhook] Ignoring event: %s/%s", event_type, ctx.action)
        return []

    async def _handle_pr_review(self, ctx: WebhookContext) -> list[Outcome]:
        """Suggest documentation improvements for the latest commit of a PR."""
        logger.info("[review] Processing PR #%d in %s/%s", ctx.pr_number, ctx.owner, ctx.repo_name)

        try:
            commits = await self._github.list_commits(
                ctx.installation_id, ctx.owner, ctx.repo_name, ctx.pr_number,
            )
        except (ServiceError, httpx.HTTPError) as e:
            logger.error("[review] Could not list commits of PR #%d: %s", ctx.pr_number, e)
            return [Outcome.failed(f"commit list unavailable: {e}")]
        if not commits:
            logger.warning("[review] No commits found for PR #%d", ctx.pr_number)
            return []

        # Only the most recent commit: bounds API usage and suggestion volume
        latest = next((c for c in commits if c.sha == ctx.head_sha), None)
        if latest is None:
            latest = commits[-1]
            logger.warning(
                "[review] Head %s not in commit list of PR #%d, using %s",
                (ctx.head_sha or "?")[:7], ctx.pr_number, latest.sha[:7],
            )
        if is_bot_suggestion_commit(latest.commit.message, self._settings.bot_identities):
            logger.info("[review] Commit %s applies a DocBuddy suggestion, skipping", latest.sha[:7])
            return [Outcome.skipped("commit applies a bot suggestion")]

        try:
            details = await self._github.get_commit_details(
                ctx.installation_id, ctx.owner, ctx.repo_name, latest.sha,
            )
        except (ServiceError, httpx.HTTPError) as e:
            logger.error("[review] Could not fetch commit %s: %s", latest.sha[:7], e)
            return [Outcome.failed(f"commit details unavailable: {e}")]

        publisher = CommentPublisher(self._github, ctx.installation_id)
        outcomes: list[Outcome] = []
        for file in details.files:
            if not file.patch:
                logger.debug("[review] No patch for %s, skipping", file.filename)
                continue
            if file.status == "removed":
                continue

            ref = FileRef(
                owner=ctx.owner,
                repo=ctx.repo_name,
                pr_number=ctx.pr_number,
                commit_id=latest.sha,
                path=file.filename,
            )
            try:
                outcomes.extend(await self._review_file(ctx, ref, file, publisher))
            except (ServiceError, httpx.HTTPError) as e:
                logger.error("[review] Failed to process %s: %s", file.filename, e)
                outcomes.append(Outcome.failed(f"{file.filename}: {e}"))
            except Exception as e:
                logger.exception("[review] Unexpected error processing %s", file.filename)
                outcomes.append(Outcome.failed(f"{file.filename}: {type(e).__name__}"))

        posted = sum(1 for o in outcomes if o.ok)
        logger.info("[review] Posted %d suggestions on PR #%d", posted, ctx.pr_number)
        return outcomes

    async def _review_file(
        self,
        ctx: WebhookContext,
        ref: FileRef,
        file: CommitFile,
        publisher: CommentPublisher,
    ) -> list[Outcome]:
        lines = parse_positions(file.patch)
        candidates = select_candidates(
            lines,
            strict=self._settings.strict_doc_detection,
            doc_markers=self._settings.doc_markers,
            bot_markers=self._settings.bot_markers,
        )
        if not candidates:
            return []

        logger.info("[review] Found %d documentation lines in %s", len(candidates), file.filename)

        file_context = None
        if self._settings.include_file_context:
            try:
                file_context = await self._github.get_file_content(
                    ctx.installation_id, ctx.owner, ctx.repo_name, ref.commit_id, file.filename,
                )
            except (ServiceError, httpx.HTTPError) as e:
                logger.warning("[review] No file context for %s: %s", file.filename, e)

        suggestions = await self._generator.generate(candidates, file_context)

        valid_positions = commentable_positions(lines)
        outcomes = []
        for suggestion in suggestions:
            if not _within_diff(suggestion, valid_positions):
                logger.warning(
                    "[review] Dropping suggestion on %s:%d, line not in diff",
                    file.filename, suggestion.position,
                )
                outcomes.append(Outcome.skipped("position outside diff"))
                continue
            outcomes.append(await publisher.publish(
                ref,
                format_suggestion_comment(suggestion),
                suggestion.position,
                suggestion.start_position,
            ))
        return outcomes

    async def _handle_push(self, ctx: WebhookContext) -> list[Outcome]:
        """Fetch the files touched by each pushed commit, in delivery order."""
        logger.info(
            "[push] %d commits pushed to %s/%s", len(ctx.pushed_commits), ctx.owner, ctx.repo_name,
        )

        if ctx.has_previous_commit and ctx.after:
            await self._log_comparison(ctx)

        outcomes: list[Outcome] = []
        for sha in ctx.pushed_commits:
            try:
                details = await self._github.get_commit_details(
                    ctx.installation_id, ctx.owner, ctx.repo_name, sha,
                )
            except (ServiceError, httpx.HTTPError) as e:
                logger.error("[push] Could not fetch commit %s: %s", sha[:7], e)
                outcomes.append(Outcome.failed(f"commit {sha[:7]} unavailable: {e}"))
                continue

            for file in details.files:
                if file.status == "removed":
                    continue
                try:
                    content = await self._github.get_file_content(
                        ctx.installation_id, ctx.owner, ctx.repo_name, sha, file.filename,
                    )
                except (ServiceError, httpx.HTTPError) as e:
                    logger.error("[push] Could not fetch %s at %s: %s", file.filename, sha[:7], e)
                    outcomes.append(Outcome.failed(f"{file.filename}: {e}"))
                    continue

                if content is None:
                    outcomes.append(Outcome.skipped(f"{file.filename}: no text content"))
                    continue

                preview = content[:_PREVIEW_CHARS] + ("..." if len(content) > _PREVIEW_CHARS else "")
                logger.debug("[push] %s at %s:\n%s", file.filename, sha[:7], preview)
                outcomes.append(Outcome.success())
        return outcomes

    async def _log_comparison(self, ctx: WebhookContext) -> None:
        try:
            comparison = await self._github.compare_commits(
                ctx.installation_id, ctx.owner, ctx.repo_name, ctx.before, ctx.after,
            )
        except (ServiceError, httpx.HTTPError) as e:
            logger.warning("[push] Could not compare %s...%s: %s", ctx.before[:7], ctx.after[:7], e)
            return
        logger.info(
            "[push] Comparison %s: %d commits, %d files changed",
            comparison.status, comparison.total_commits, len(comparison.files),
        )


def _within_diff(suggestion: Suggestion, valid_positions: set[int]) -> bool:
    if suggestion.position not in valid_positions:
        return False
    if suggestion.start_position is None:
        return True
    return (
        suggestion.start_position in valid_positions
        and suggestion.start_position <= suggestion.position
    )
