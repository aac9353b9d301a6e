"""Fixed-size message framing."""

from collections.abc import Iterator


def iter_frames(text: str, frame_size: int) -> Iterator[str]:
    """Yield consecutive ``frame_size`` slices of *text*.

    Splits mid-word; only the last frame may be shorter.
    """
    if frame_size <= 0:
        raise ValueError("frame_size must be greater than zero")
    for start in range(0, len(text), frame_size):
        yield text[start : start + frame_size]


def chunk_text(text: str, frame_size: int) -> list[str]:
    return list(iter_frames(text, frame_size))
