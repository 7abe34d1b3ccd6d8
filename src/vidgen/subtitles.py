"""Subtitle timing and SRT output.

Word timings are estimated from the narration text: each word gets a share
of the narration proportional to its length. Words are then grouped into
subtitle entries of a few words each and shifted to the scene's position in
the final video.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

# Pause between words, capped at half of the narration.
WORD_GAP = 0.05


@dataclass(frozen=True)
class WordTiming:
    """A single word with its start and end time in seconds."""

    word: str
    start: float
    end: float


@dataclass(frozen=True)
class SubtitleEntry:
    """One subtitle cue."""

    index: int
    start: float
    end: float
    text: str


def estimate_word_timestamps(text: str, duration: float) -> List[WordTiming]:
    """Spread the words of ``text`` over ``duration`` seconds.

    Time is divided in proportion to each word's character count after
    reserving a short gap between words. The last word always ends exactly
    at ``duration``.
    """
    words = text.split()
    if not words or duration <= 0:
        return []

    gap_total = min(WORD_GAP * (len(words) - 1), duration / 2)
    gap = gap_total / (len(words) - 1) if len(words) > 1 else 0.0
    speaking_time = duration - gap_total
    total_chars = sum(len(w) for w in words)

    timings: List[WordTiming] = []
    cursor = 0.0
    for i, word in enumerate(words):
        length = speaking_time * len(word) / total_chars
        end = duration if i == len(words) - 1 else cursor + length
        timings.append(WordTiming(word=word, start=cursor, end=end))
        cursor = end + gap
    return timings


def group_into_subtitles(
    words: Sequence[WordTiming],
    max_words: int,
    offset: float = 0.0,
    start_index: int = 1,
) -> List[SubtitleEntry]:
    """Group word timings into entries of at most ``max_words`` words.

    Args:
        words: Word timings relative to the start of the narration.
        max_words: Maximum words per entry.
        offset: Seconds added to every timestamp.
        start_index: Number of the first entry.
    """
    max_words = max(max_words, 1)
    entries: List[SubtitleEntry] = []
    for n, i in enumerate(range(0, len(words), max_words)):
        chunk = words[i:i + max_words]
        entries.append(
            SubtitleEntry(
                index=start_index + n,
                start=chunk[0].start + offset,
                end=chunk[-1].end + offset,
                text=" ".join(w.word for w in chunk),
            )
        )
    return entries


def format_srt_time(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS,mmm``."""
    total_ms = max(int(round(seconds * 1000)), 0)
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, ms = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def to_srt(entries: Sequence[SubtitleEntry]) -> str:
    blocks = [
        f"{e.index}\n{format_srt_time(e.start)} --> {format_srt_time(e.end)}\n{e.text}\n"
        for e in entries
    ]
    return "\n".join(blocks)


def write_srt(entries: Sequence[SubtitleEntry], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(to_srt(entries), encoding="utf-8")
    return path
