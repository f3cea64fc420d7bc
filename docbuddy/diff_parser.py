"""Parse per-file unified diff patches into positioned lines for review comments."""

import logging
import re

from docbuddy.models.review import Hunk, LineKind, PatchLine

log = logging.getLogger(__name__)

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


def parse_hunk_header(line: str) -> Hunk | None:
    """Parse ``@@ -a,b +c,d @@``. Omitted counts default to 1."""
    match = _HUNK_HEADER.match(line)
    if not match:
        return None
    old_start, old_count, new_start, new_count = match.groups()
    return Hunk(
        old_start=int(old_start),
        old_count=int(old_count) if old_count is not None else 1,
        new_start=int(new_start),
        new_count=int(new_count) if new_count is not None else 1,
    )


def parse_positions(patch: str) -> list[PatchLine]:
    """Classify every patch line and compute its new-file position.

    Returns:
        [PatchLine(index=0, kind="header", position=10, text="@@ -10,3 +10,4 @@"),
         PatchLine(index=1, kind="context", position=10, text="existing"),
         PatchLine(index=2, kind="removed", position=11, text="old"),
         PatchLine(index=3, kind="added", position=11, text="new", replaces_deleted=True)]

    The position of an added or context line is its line number in the new
    file: a hunk header seeds the counter with its new start line and every
    added or context line after it advances the counter by one. Removed lines
    take the position the next new line will get but never advance it; those
    positions are remembered so a line re-added at the same spot is flagged as
    a replacement rather than treated as a pure deletion.

    Lines outside a valid hunk (no header yet, or a malformed one) all get
    position 1.
    """
    if not patch:
        return []

    raw_lines = patch.split("\n")
    if len(raw_lines) > 1 and raw_lines[-1] == "":
        raw_lines.pop()

    parsed: list[PatchLine] = []
    deleted: set[int] = set()
    position = 1
    in_hunk = False
    seen_hunk = False

    for index, line in enumerate(raw_lines):
        if line.startswith("@@"):
            hunk = parse_hunk_header(line)
            seen_hunk = True
            if hunk is None:
                log.warning("Malformed hunk header at patch line %d: %r", index, line)
                in_hunk = False
                position = 1
            else:
                in_hunk = True
                position = max(hunk.new_start, 1)
            parsed.append(PatchLine(index=index, kind=LineKind.HEADER, position=position, text=line))
            continue

        if not seen_hunk and (line.startswith("+++") or line.startswith("---")):
            # File header before the first hunk
            parsed.append(PatchLine(index=index, kind=LineKind.HEADER, position=1, text=line))
            continue

        current = position if in_hunk else 1

        if line.startswith("+"):
            parsed.append(PatchLine(
                index=index,
                kind=LineKind.ADDED,
                position=current,
                text=line[1:],
                replaces_deleted=current in deleted,
                in_hunk=in_hunk,
            ))
            if in_hunk:
                position += 1
        elif line.startswith("-"):
            deleted.add(current)
            parsed.append(PatchLine(
                index=index, kind=LineKind.REMOVED, position=current, text=line[1:], in_hunk=in_hunk,
            ))
        elif line.startswith("\\"):
            # "\ No newline at end of file" refers to the preceding line
            parsed.append(PatchLine(
                index=index,
                kind=LineKind.NO_NEWLINE,
                position=max(current - 1, 1) if in_hunk else 1,
                text=line,
                in_hunk=in_hunk,
            ))
        else:
            content = line[1:] if line.startswith(" ") else line
            parsed.append(PatchLine(
                index=index, kind=LineKind.CONTEXT, position=current, text=content, in_hunk=in_hunk,
            ))
            if in_hunk:
                position += 1

    return parsed


def commentable_positions(lines: list[PatchLine]) -> set[int]:
    """Return the new-file positions a review comment may be anchored to.

    Includes both added and context lines since GitHub allows
    commenting on any line visible in the diff. Lines outside a valid hunk
    are never commentable.
    """
    return {
        line.position
        for line in lines
        if line.in_hunk and line.kind in (LineKind.ADDED, LineKind.CONTEXT)
    }
