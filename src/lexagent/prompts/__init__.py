from __future__ import annotations

from lexagent.prompts.research import (
    AUTONOMOUS_RESEARCH_PROMPT,
    AUTONOMOUS_RESEARCH_SYSTEM_PROMPT,
    FINAL_SYNTHESIS_PROMPT,
    FOLLOW_UP_QUERIES_PROMPT,
    FOLLOW_UP_QUERIES_SYSTEM_PROMPT,
    GAP_ANALYSIS_PROMPT,
    GAP_ANALYSIS_SYSTEM_PROMPT,
    RESEARCH_SYSTEM_PROMPT,
    RESEARCH_USER_PROMPT,
)

__all__ = [
    "RESEARCH_SYSTEM_PROMPT",
    "RESEARCH_USER_PROMPT",
    "FINAL_SYNTHESIS_PROMPT",
    "GAP_ANALYSIS_SYSTEM_PROMPT",
    "GAP_ANALYSIS_PROMPT",
    "FOLLOW_UP_QUERIES_SYSTEM_PROMPT",
    "FOLLOW_UP_QUERIES_PROMPT",
    "AUTONOMOUS_RESEARCH_SYSTEM_PROMPT",
    "AUTONOMOUS_RESEARCH_PROMPT",
]
