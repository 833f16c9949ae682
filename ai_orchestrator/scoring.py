"""
Pure heuristics used by the strategy executor.

Token estimation, parallel-comparison scoring and cost-optimized quality
scoring are plain functions of their inputs so they can be tested and swapped
without touching orchestration control flow.
"""

from __future__ import annotations

import math

from ai_orchestrator.models import GenerationRequest, GenerationResponse

# ~4 characters per token for English text
CHARS_PER_TOKEN = 4
DEFAULT_OUTPUT_TOKENS = 1000
DEFAULT_QUALITY_THRESHOLD = 0.6

_STRUCTURE_MARKERS = ("{", "[", "#", "*")


def estimate_text_tokens(text: str | None) -> int:
    """Rough token count for a piece of text."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_request_tokens(request: GenerationRequest) -> int:
    """Input tokens (prompt + system prompt) plus the expected output budget."""
    chars = len(request.prompt) + len(request.system_prompt or "")
    input_tokens = math.ceil(chars / CHARS_PER_TOKEN)
    return input_tokens + (request.max_tokens or DEFAULT_OUTPUT_TOKENS)


def comparison_score(response: GenerationResponse, priority: int) -> float:
    """Score used to pick the winner of a parallel comparison (higher wins).

    Content length up to 50 points, speed up to 20, token usage up to 30 and
    a priority bonus up to 10.
    """
    score = min(len(response.content) / 100, 50)
    score += max(0.0, 20 - response.response_time_ms / 1000)
    if response.tokens_used:
        score += min(response.tokens_used / 100, 30)
    score += max(0, 10 - priority)
    return score


def quality_score(response: GenerationResponse) -> float:
    """Score between 0 and 1 estimating whether a cheap response is good enough."""
    content = response.content
    score = 0.0

    # Length: full 0.3 from 100 characters on
    score += 0.3 if len(content) >= 100 else (len(content) / 100) * 0.3

    if any(marker in content for marker in _STRUCTURE_MARKERS):
        score += 0.2

    # Not truncated
    if not content.endswith("...") and "[truncated]" not in content:
        score += 0.2

    if response.tokens_used and response.tokens_used > 100:
        score += 0.3

    return min(score, 1.0)
