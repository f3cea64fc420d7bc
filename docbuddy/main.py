"""DocBuddy GitHub App: FastAPI webhook endpoint with signature verification."""

import collections
import hashlib
import hmac
import logging
import traceback

from fastapi import FastAPI, Header, HTTPException, Request

from docbuddy.config import DocBuddySettings, GithubSettings
from docbuddy.webhook_handler import EventRouter

settings = DocBuddySettings()

# In-memory ring buffer for debug logs
_log_buffer: collections.deque = collections.deque(maxlen=settings.log_buffer_size)


class _BufferHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        _log_buffer.append(self.format(record))


logging.basicConfig(level=getattr(logging, settings.log_level))
_bh = _BufferHandler()
_bh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
logging.getLogger().addHandler(_bh)

log = logging.getLogger(__name__)

app = FastAPI(title="DocBuddy", description="Documentation suggestions for pull requests")

_webhook_secret: bytes | None = None
_router: EventRouter | None = None


def _get_webhook_secret() -> bytes:
    global _webhook_secret
    if _webhook_secret is None:
        gh = GithubSettings()
        _webhook_secret = gh.webhook_secret.encode()
    return _webhook_secret


def _get_router() -> EventRouter:
    global _router
    if _router is None:
        _router = EventRouter.from_env()
    return _router


def _verify_signature(payload: bytes, signature: str) -> bool:
    """Verify GitHub webhook HMAC-SHA256 signature."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(
        _get_webhook_secret(), payload, hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(f"sha256={expected}", signature)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "app": "docbuddy"}


@app.get("/debug/logs")
async def debug_logs() -> dict[str, list]:
    return {"logs": list(_log_buffer)}


@app.post("/webhook")
async def webhook(
    request: Request,
    x_hub_signature_256: str = Header(None),
    x_github_event: str = Header(None),
) -> dict[str, str]:
    payload = await request.body()

    if not _verify_signature(payload, x_hub_signature_256):
        raise HTTPException(status_code=401, detail="Invalid signature")

    event_data = await request.json()
    log.info("Received event: %s, action: %s", x_github_event, event_data.get("action"))

    # A failing delivery is only visible in the operator logs
    try:
        outcomes = await _get_router().handle(x_github_event, event_data)
    except Exception:
        log.error("Handler failed:\n%s", traceback.format_exc())
        return {"status": "error"}

    log.info("Handled %s with %d outcomes", x_github_event, len(outcomes))
    return {"status": "ok"}
