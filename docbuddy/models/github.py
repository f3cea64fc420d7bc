"""Pydantic models for GitHub webhook payloads and REST responses."""

from pydantic import BaseModel

_NULL_SHA = "0" * 40


class WebhookContext(BaseModel):
    """Typed context parsed from a raw GitHub webhook payload.

    Flattens the nested webhook JSON into a single object with the fields
    that DocBuddy's handlers actually use.
    """

    event_type: str
    action: str

    # Repository
    owner: str
    repo_name: str

    # Installation
    installation_id: int

    # PR fields (only present for pull_request events)
    pr_number: int | None = None
    head_sha: str | None = None
    base_sha: str | None = None

    # Push fields (only present for push events)
    before: str | None = None
    after: str | None = None
    pushed_commits: list[str] = []

    @classmethod
    def from_webhook(cls, event_type: str, data: dict) -> "WebhookContext":
        """Parse a raw GitHub webhook payload into typed context."""
        repo = data.get("repository", {})
        installation = data.get("installation", {})

        fields: dict = {
            "event_type": event_type,
            "action": data.get("action", ""),
            "owner": repo.get("owner", {}).get("login", ""),
            "repo_name": repo.get("name", ""),
            "installation_id": installation.get("id", 0),
        }

        # PR-specific
        pr = data.get("pull_request")
        if pr:
            fields["pr_number"] = pr.get("number")
            fields["head_sha"] = pr.get("head", {}).get("sha")
            fields["base_sha"] = pr.get("base", {}).get("sha")

        # Push-specific
        if event_type == "push":
            fields["before"] = data.get("before")
            fields["after"] = data.get("after")
            fields["pushed_commits"] = [
                c["id"] for c in data.get("commits", []) if c.get("id")
            ]

        return cls(**fields)

    @property
    def is_pr_review(self) -> bool:
        return self.event_type == "pull_request" and self.action in ("opened", "synchronize")

    @property
    def is_push(self) -> bool:
        return self.event_type == "push"

    @property
    def has_previous_commit(self) -> bool:
        """False for pushes that create a branch (``before`` is the null SHA)."""
        return bool(self.before) and self.before != _NULL_SHA


class CommitFile(BaseModel):
    """A file entry from the commit or compare endpoints."""

    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    patch: str | None = None


class CommitDetails(BaseModel):
    sha: str
    files: list[CommitFile] = []


class CommitAuthor(BaseModel):
    name: str = ""
    email: str = ""


class CommitInfo(BaseModel):
    message: str = ""
    author: CommitAuthor | None = None


class PullCommit(BaseModel):
    """An entry of ``GET /pulls/{number}/commits``."""

    sha: str
    commit: CommitInfo


class CommitComparison(BaseModel):
    status: str
    total_commits: int = 0
    files: list[CommitFile] = []
