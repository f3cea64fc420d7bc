"""Heuristics deciding which added lines are worth sending to the model."""

import logging
from collections.abc import Iterable, Sequence

from docbuddy.models.review import CandidateLine, LineKind, PatchLine

log = logging.getLogger(__name__)

DEFAULT_DOC_MARKERS: tuple[str, ...] = ("//", "/*", "*", "#")

DEFAULT_BOT_MARKERS: tuple[str, ...] = (
    "Co-authored-by:",
    "Suggested",
    "Apply suggestion from",
    "@users.noreply.github.com",
)

_CO_AUTHOR_TRAILER = "co-authored-by:"


def is_documentation_line(text: str, markers: Iterable[str] = DEFAULT_DOC_MARKERS) -> bool:
    """True if the line, ignoring leading whitespace, starts with a comment or Markdown marker.

    A prefix check, not a parser: ``#include`` counts as documentation and
    ``--`` SQL comments do not.
    """
    stripped = text.lstrip()
    return any(stripped.startswith(marker) for marker in markers)


def is_bot_metadata(text: str, markers: Iterable[str] = DEFAULT_BOT_MARKERS) -> bool:
    """True if the line looks like commit metadata written by a bot or by accepting a suggestion."""
    return any(marker in text for marker in markers)


def select_candidates(
    lines: Sequence[PatchLine],
    strict: bool = True,
    doc_markers: Iterable[str] = DEFAULT_DOC_MARKERS,
    bot_markers: Iterable[str] = DEFAULT_BOT_MARKERS,
) -> list[CandidateLine]:
    """Pick the added lines to review.

    With ``strict`` only documentation-like lines are kept; without it every
    non-empty added line that is not bot metadata is a candidate.
    """
    doc_markers = tuple(doc_markers)
    bot_markers = tuple(bot_markers)

    candidates = []
    for line in lines:
        if line.kind != LineKind.ADDED:
            continue
        if not line.text.strip():
            continue
        if is_bot_metadata(line.text, bot_markers):
            log.debug("Skipping bot metadata at patch line %d", line.index)
            continue
        if strict and not is_documentation_line(line.text, doc_markers):
            continue
        candidates.append(CandidateLine(
            patch_line_index=line.index,
            position=line.position,
            text=line.text,
        ))
    return candidates


def is_bot_suggestion_commit(message: str, identities: Iterable[str]) -> bool:
    """True if a ``Co-authored-by:`` trailer in the commit message names a bot identity.

    Commits created with GitHub's "Apply suggestion" button carry such a
    trailer; reviewing them again would make the bot comment on its own text.
    """
    identities = [identity.lower() for identity in identities]
    for line in message.splitlines():
        lowered = line.strip().lower()
        if not lowered.startswith(_CO_AUTHOR_TRAILER):
            continue
        if any(identity in lowered for identity in identities):
            return True
    return False
