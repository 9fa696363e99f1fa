"""
Tests for report redaction.
"""

import pytest

from llmo_checker.services.redaction import (
    LIST_ITEM_MASK,
    MASK_PLACEHOLDER,
    SectionState,
    is_score_line,
    redact,
    section_state_for,
)

REPORT = """## 🎯 Executive Summary
- **Overall LLMO score**: 62/100
- **AI citation likelihood**: 35% (estimated)
The page is reasonably structured.

## 📊 Detailed Diagnosis Results
The heading hierarchy skips from H1 to H3 in two places.
- Use a single H1 per page and nest H2 below it consistently
1. Add an FAQ section covering pricing questions

### Details: readability score B
Paragraphs are long.

## 🔧 Prioritized Improvement Suggestions
- Rewrite the hero section so the value proposition is explicit

## 🚀 Next Steps
Measure again after a month."""


# ============================================
# Authorized callers
# ============================================

class TestAuthorized:
    @pytest.mark.parametrize("report", [REPORT, "", "plain", "## Details\nsecret text"])
    def test_unchanged(self, report):
        assert redact(report, True) == report


# ============================================
# Anonymous callers
# ============================================

class TestAnonymous:
    """Headings and scores survive; restricted prose never leaks."""

    def test_open_sections_pass_through(self):
        redacted = redact(REPORT, False).split("\n")

        assert redacted[0] == "## 🎯 Executive Summary"
        assert redacted[3] == "The page is reasonably structured."
        assert redacted[-1] == "Measure again after a month."

    def test_headings_always_kept(self):
        redacted = redact(REPORT, False)
        for heading in (
            "## 📊 Detailed Diagnosis Results",
            "### Details: readability score B",
            "## 🔧 Prioritized Improvement Suggestions",
            "## 🚀 Next Steps",
        ):
            assert heading in redacted.split("\n")

    def test_score_lines_kept(self):
        lines = redact(REPORT, False).split("\n")
        assert "- **Overall LLMO score**: 62/100" in lines
        assert "- **AI citation likelihood**: 35% (estimated)" in lines

    def test_restricted_prose_masked(self):
        redacted = redact(REPORT, False)

        assert "skips from H1 to H3" not in redacted
        assert "Paragraphs are long." not in redacted
        assert MASK_PLACEHOLDER in redacted.split("\n")

    def test_list_items_truncated(self):
        lines = redact(REPORT, False).split("\n")

        assert "- Use a single H1 pe" + LIST_ITEM_MASK in lines
        assert "1. Add an FAQ sectio" + LIST_ITEM_MASK in lines
        assert "- Rewrite the hero s" + LIST_ITEM_MASK in lines
        assert "value proposition" not in "\n".join(lines)

    def test_line_count_preserved(self):
        assert len(redact(REPORT, False).split("\n")) == len(REPORT.split("\n"))

    def test_blank_lines_preserved(self):
        assert redact("## Details\n\ntext\n", False) == "## Details\n\n" + MASK_PLACEHOLDER + "\n"

    def test_every_line_identical_or_masked(self):
        original = REPORT.split("\n")
        redacted = redact(REPORT, False).split("\n")

        for before, after in zip(original, redacted):
            assert after == before or after == MASK_PLACEHOLDER or after.endswith(LIST_ITEM_MASK)

    def test_text_before_first_heading_is_open(self):
        assert redact("intro line\n## Details\nhidden", False) == "intro line\n## Details\n" + MASK_PLACEHOLDER

    def test_open_heading_resets_state(self):
        report = "## Specific fixes\nhidden\n## Overview\nvisible"
        assert redact(report, False) == "## Specific fixes\n" + MASK_PLACEHOLDER + "\n## Overview\nvisible"


# ============================================
# Classification helpers
# ============================================

class TestClassification:
    @pytest.mark.parametrize("heading", [
        "## Detailed analysis",
        "### Improvement plan",
        "## SUGGESTIONS",
        "## Specific issues",
        "## Recommendations",
        "## Action items",
    ])
    def test_restricted_headings(self, heading):
        assert section_state_for(heading) is SectionState.RESTRICTED

    @pytest.mark.parametrize("heading", ["## Summary", "## Overview", "# Report"])
    def test_open_headings(self, heading):
        assert section_state_for(heading) is SectionState.OPEN

    @pytest.mark.parametrize("line", [
        "Coverage: 45%",
        "Readiness 12.5 %",
        "Total 80 points",
        "Overall: 72/100",
        "Content earns a B grade",
        "Grade: A",
        "Score: excellent",
        "EVALUATION: needs work",
    ])
    def test_score_lines(self, line):
        assert is_score_line(line)

    @pytest.mark.parametrize("line", ["Add more headings", "Use H2 tags", "Write for people first"])
    def test_not_score_lines(self, line):
        assert not is_score_line(line)
