"""Scene timing: effective durations, frame counts and animation progress."""

import math
from typing import Optional

from ..models.scene import AutoDuration, DurationPolicy, FixedDuration

# Absorbs float error so that e.g. 2.5 * 60 does not round up to 151 frames.
_FRAME_EPSILON = 1e-9


def resolve_duration(
    policy: DurationPolicy,
    narration_seconds: Optional[float],
    padding_before: float,
    padding_after: float,
    fallback: float,
) -> float:
    """Resolve a scene's effective duration in seconds.

    - ``Auto`` with narration: ``narration + padding_before + padding_after``
    - ``Auto`` without narration: ``fallback``
    - ``Fixed(d)``: ``d``, regardless of narration
    """
    if isinstance(policy, FixedDuration):
        return policy.seconds
    if isinstance(policy, AutoDuration):
        if narration_seconds is None:
            return fallback
        return narration_seconds + padding_before + padding_after
    raise TypeError(f"Unknown duration policy: {policy!r}")


def total_frames(duration: float, fps: int) -> int:
    """Number of frames needed to cover ``duration`` seconds at ``fps``."""
    if duration <= 0:
        return 0
    return math.ceil(duration * fps - _FRAME_EPSILON)


def frame_progress(frame: int, frames: int) -> float:
    """Overall progress of ``frame`` through ``frames``."""
    if frames <= 0:
        return 0.0
    return frame / frames


def content_progress(
    frame: int,
    frames: int,
    fps: int,
    duration: float,
    start_offset: float,
    end_padding: float,
) -> float:
    """Progress through the narrated part of a scene, clamped to ``[0, 1]``.

    The window runs from ``start_offset`` seconds to ``duration - end_padding``
    seconds. An empty window falls back to plain frame progress.
    """
    start_frame = start_offset * fps
    end_frame = (duration - end_padding) * fps
    window = end_frame - start_frame
    if window <= 0 or not math.isfinite(window):
        return frame_progress(frame, frames)
    return min(max((frame - start_frame) / window, 0.0), 1.0)
