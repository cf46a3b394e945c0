"""Helpers to parse chat completion outputs."""

from typing import Any, Dict


def extract_text(response: Any) -> str:
    """Return the first choice's message content, or an empty string."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) or ""


def extract_usage(response: Any) -> Dict[str, int]:
    """Return prompt/completion token counts, defaulting missing values to zero."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": int(getattr(usage, "prompt_tokens", 0) or 0) if usage else 0,
        "output_tokens": int(getattr(usage, "completion_tokens", 0) or 0) if usage else 0,
    }


def finalize_comment(text: str) -> str:
    """Trim the model's statement and make sure a non-empty one ends with a period."""
    comment = (text or "").strip()
    if comment and not comment.endswith("."):
        comment += "."
    return comment
