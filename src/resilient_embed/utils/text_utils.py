"""Text helpers applied to record content before it is sent to a provider."""

from typing import Optional

OMISSION_MARKER = " [... {count} characters omitted ...] "


def is_blank(text: Optional[str]) -> bool:
    """Return True for ``None``, empty, or whitespace-only text."""
    return text is None or not text.strip()


def truncate_large_text(text: str, max_chars: int = 5000) -> str:
    """
    Shorten over-long text by keeping its head and tail.

    The first 60% of the character budget is taken from the start of the
    text, the remainder (minus the marker length) from the end, and an
    omission marker naming the number of dropped characters sits between
    them. Text at or under *max_chars* is returned unchanged.

    Args:
        text: Input text.
        max_chars: Target length in characters. Must be positive.

    Returns:
        Text no longer than roughly *max_chars* characters.
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be positive, got {max_chars}")
    if not text or len(text) <= max_chars:
        return text

    marker = OMISSION_MARKER.format(count=len(text) - max_chars)
    head_length = int(max_chars * 0.6)
    tail_length = max(max_chars - head_length - len(marker), 0)

    head = text[:head_length]
    tail = text[len(text) - tail_length:] if tail_length else ""
    return f"{head}{marker}{tail}"
