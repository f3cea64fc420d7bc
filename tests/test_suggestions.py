"""Tests for suggestions: response parsing, per-line and batched generation."""

import asyncio

import httpx

from docbuddy.config import DocBuddySettings
from docbuddy.errors import ApiResponseError
from docbuddy.models.review import CandidateLine, GenerationMode, Suggestion, Tone
from docbuddy.suggestions import (
    SuggestionGenerator,
    build_system_prompt,
    build_user_prompt,
    format_suggestion_comment,
    parse_response,
)


class FakeLLM:
    """Returns canned answers in order and records every prompt."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls: list[tuple[str, str]] = []

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


def _candidate(position, text, index=None):
    return CandidateLine(patch_line_index=index if index is not None else position, position=position, text=text)


def _generate(llm, candidates, mode, file_context=None, **settings):
    generator = SuggestionGenerator(llm, DocBuddySettings(generation_mode=mode, **settings))
    return asyncio.run(generator.generate(candidates, file_context))


# ---------------------------------------------------------------------------
# parse_response
# ---------------------------------------------------------------------------

class TestParseResponse:
    def test_plain_text(self):
        assert parse_response("// Fixes the bug.") == (None, "// Fixes the bug.")

    def test_reason_and_suggestion(self):
        reason, text = parse_response("Reason: shorter and clearer\nSuggestion: // Fix the bug.")
        assert reason == "shorter and clearer"
        assert text == "// Fix the bug."

    def test_suggestion_marker_alone_is_not_split(self):
        assert parse_response("Suggestion: keep it") == (None, "Suggestion: keep it")

    def test_markers_are_case_insensitive(self):
        reason, text = parse_response("REASON: typo\nSUGGESTION:\n# Heading")
        assert reason == "typo"
        assert text == "# Heading"


class TestPrompts:
    def test_sarcastic_tone_adds_paragraph(self):
        assert "sarcastic" in build_system_prompt(Tone.SARCASTIC)
        assert "sarcastic" not in build_system_prompt(Tone.NEUTRAL)

    def test_user_prompt_without_context(self):
        assert build_user_prompt("// hi", None, 100) == "// hi"

    def test_user_prompt_truncates_context(self):
        prompt = build_user_prompt("// hi", "x" * 50, 10)
        assert "x" * 10 in prompt
        assert "x" * 11 not in prompt
        assert prompt.endswith("// hi")


class TestFormatSuggestionComment:
    def test_single_line(self):
        body = format_suggestion_comment(Suggestion(position=3, original_text="a", improved_text="b"))
        assert body == "Documentation improvement suggestion:\n```suggestion\nb\n```"

    def test_reason_included(self):
        body = format_suggestion_comment(
            Suggestion(position=3, original_text="a", improved_text="b", reason="clearer"),
        )
        assert "clearer" in body
        assert body.endswith("```suggestion\nb\n```")


# ---------------------------------------------------------------------------
# Per-line mode
# ---------------------------------------------------------------------------

class TestPerLineMode:
    def test_one_call_per_candidate(self):
        llm = FakeLLM("// Fix the bug.", "# Usage guide")
        suggestions = _generate(
            llm, [_candidate(2, "// fix teh bug"), _candidate(7, "# usage")], GenerationMode.PER_LINE,
        )
        assert len(llm.calls) == 2
        assert [(s.position, s.improved_text) for s in suggestions] == [(2, "// Fix the bug."), (7, "# Usage guide")]
        assert all(s.start_position is None for s in suggestions)

    def test_no_op_is_dropped(self):
        llm = FakeLLM("// fix bug")
        assert _generate(llm, [_candidate(1, "// fix bug")], GenerationMode.PER_LINE) == []

    def test_no_op_ignores_surrounding_whitespace(self):
        llm = FakeLLM("  // fix bug\n")
        assert _generate(llm, [_candidate(1, "// fix bug")], GenerationMode.PER_LINE) == []

    def test_reason_is_kept(self):
        llm = FakeLLM("Reason: grammar\nSuggestion: // Fixes the bug.")
        [suggestion] = _generate(llm, [_candidate(4, "// fix bug")], GenerationMode.PER_LINE)
        assert suggestion.reason == "grammar"
        assert suggestion.improved_text == "// Fixes the bug."

    def test_metadata_and_empty_lines_never_sent(self):
        llm = FakeLLM("// Better.")
        candidates = [
            _candidate(1, "# Co-authored-by: docbuddy[bot]"),
            _candidate(2, "   "),
            _candidate(3, "// better"),
        ]
        suggestions = _generate(llm, candidates, GenerationMode.PER_LINE)
        assert len(llm.calls) == 1
        assert llm.calls[0][1] == "// better"
        assert [s.position for s in suggestions] == [3]

    def test_backend_failure_skips_only_that_line(self):
        llm = FakeLLM(ApiResponseError("gemini", 500, "boom"), httpx.ReadTimeout("slow"), "# Better")
        candidates = [_candidate(1, "# a"), _candidate(2, "# b"), _candidate(3, "# c")]
        suggestions = _generate(llm, candidates, GenerationMode.PER_LINE)
        assert [s.position for s in suggestions] == [3]

    def test_unexpected_backend_error_skips_only_that_line(self):
        llm = FakeLLM(ValueError("Expecting value"), "# Better")
        suggestions = _generate(llm, [_candidate(1, "# a"), _candidate(2, "# b")], GenerationMode.PER_LINE)
        assert len(llm.calls) == 2
        assert [s.position for s in suggestions] == [2]

    def test_file_context_is_sent(self):
        llm = FakeLLM("// Better.")
        _generate(llm, [_candidate(1, "// better")], GenerationMode.PER_LINE, file_context="int main() {}")
        assert "int main() {}" in llm.calls[0][1]


# ---------------------------------------------------------------------------
# Batched mode
# ---------------------------------------------------------------------------

class TestBatchedMode:
    def test_single_call_with_joined_lines(self):
        llm = FakeLLM("# A\n# B")
        _generate(llm, [_candidate(1, "# a"), _candidate(2, "# b")], GenerationMode.BATCHED)
        assert len(llm.calls) == 1
        assert llm.calls[0][1] == "# a\n# b"
        assert "exactly 2 lines" in llm.calls[0][0]

    def test_line_count_mismatch_discards_batch(self):
        llm = FakeLLM("# A\n# B")
        candidates = [_candidate(1, "# a"), _candidate(2, "# b"), _candidate(3, "# c")]
        assert _generate(llm, candidates, GenerationMode.BATCHED) == []

    def test_consecutive_lines_become_one_multiline_suggestion(self):
        llm = FakeLLM("# A\n# B\n# C\n")
        candidates = [_candidate(4, "# a"), _candidate(5, "# b"), _candidate(6, "# c")]
        [suggestion] = _generate(llm, candidates, GenerationMode.BATCHED)
        assert suggestion.start_position == 4
        assert suggestion.position == 6
        assert suggestion.is_multiline
        assert suggestion.original_text == "# a\n# b\n# c"
        assert suggestion.improved_text == "# A\n# B\n# C"

    def test_gaps_split_into_separate_suggestions(self):
        llm = FakeLLM("# A\n# B\n# C")
        candidates = [_candidate(1, "# a"), _candidate(2, "# b"), _candidate(9, "# c")]
        suggestions = _generate(llm, candidates, GenerationMode.BATCHED)
        assert [(s.start_position, s.position) for s in suggestions] == [(1, 2), (None, 9)]

    def test_unchanged_run_is_dropped(self):
        llm = FakeLLM("// fix bug\n# Better")
        candidates = [_candidate(1, "// fix bug"), _candidate(5, "# better")]
        suggestions = _generate(llm, candidates, GenerationMode.BATCHED)
        assert [s.position for s in suggestions] == [5]

    def test_backend_failure_returns_nothing(self):
        llm = FakeLLM(ApiResponseError("gemini", 503, "unavailable"))
        assert _generate(llm, [_candidate(1, "# a")], GenerationMode.BATCHED) == []

    def test_run_with_empty_answer_line_is_dropped(self):
        llm = FakeLLM("# A\n\n# C")
        candidates = [_candidate(1, "# a"), _candidate(2, "# b"), _candidate(7, "# c")]
        suggestions = _generate(llm, candidates, GenerationMode.BATCHED)
        assert [s.position for s in suggestions] == [7]

    def test_co_authored_by_excluded_from_batch(self):
        llm = FakeLLM("# A")
        candidates = [_candidate(1, "# a"), _candidate(2, "Co-authored-by: bot")]
        suggestions = _generate(llm, candidates, GenerationMode.BATCHED)
        assert "Co-authored-by" not in llm.calls[0][1]
        assert [s.position for s in suggestions] == [1]

    def test_no_candidates_no_call(self):
        llm = FakeLLM()
        assert _generate(llm, [], GenerationMode.BATCHED) == []
        assert llm.calls == []
