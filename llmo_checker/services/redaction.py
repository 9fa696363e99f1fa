"""
Report redaction for callers without full access.

Single pass over the report lines with one piece of state: whether the
current section is restricted. Headings and score lines are always shown;
prose inside restricted sections is masked.
"""

import re
from enum import Enum
from typing import Iterable, Iterator

MASK_PLACEHOLDER = "●●●●● Sign up to see the full details ●●●●●"
LIST_ITEM_MASK = "... ●●●●●"
LIST_ITEM_PREFIX_LENGTH = 20

RESTRICTED_KEYWORDS = (
    "detail",
    "improvement",
    "suggestion",
    "specific",
    "recommendation",
    "action",
)

SCORE_RE = re.compile(
    r"\d+(\.\d+)?\s*%"              # 45%, 12.5 %
    r"|\d+(\.\d+)?\s*(points?|pts)\b"  # 80 points
    r"|\b\d+(\.\d+)?\s*/\s*\d+\b"    # 72/100
    r"|\b[A-F][+-]?\s+grade\b"       # B grade
    r"|\bgrade\s*:\s*[A-F]\b"        # Grade: A
    r"|\bscore\s*:"                  # Score: ...
    r"|\bevaluation\s*:",            # Evaluation: ...
    re.IGNORECASE,
)
LIST_ITEM_RE = re.compile(r"^(\s*)([-*]|\d+\.)\s")


class SectionState(str, Enum):
    OPEN = "open"
    RESTRICTED = "restricted"


def is_heading(line: str) -> bool:
    return line.startswith("#")


def is_score_line(line: str) -> bool:
    return SCORE_RE.search(line) is not None


def section_state_for(heading: str) -> SectionState:
    lowered = heading.lower()
    if any(keyword in lowered for keyword in RESTRICTED_KEYWORDS):
        return SectionState.RESTRICTED
    return SectionState.OPEN


def mask_line(line: str) -> str:
    if LIST_ITEM_RE.match(line):
        return line[:LIST_ITEM_PREFIX_LENGTH] + LIST_ITEM_MASK
    return MASK_PLACEHOLDER


def redact_lines(lines: Iterable[str]) -> Iterator[str]:
    state = SectionState.OPEN
    for line in lines:
        if is_heading(line):
            state = section_state_for(line)
            yield line
        elif is_score_line(line):
            yield line
        elif state is SectionState.RESTRICTED and line.strip():
            yield mask_line(line)
        else:
            yield line


def redact(report: str, authorized: bool) -> str:
    """
    Return ``report`` unchanged for authorized callers, otherwise a copy with
    detailed/actionable sections masked line by line.
    """
    if authorized:
        return report
    return "\n".join(redact_lines(report.split("\n")))
