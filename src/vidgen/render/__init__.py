"""Render pipeline: timing, transitions, encoding and concatenation.

The browser capture and orchestration layers live in ``render.browser`` and
``render.orchestrator``.
"""

from .timing import resolve_duration, total_frames, content_progress
from .transitions import TransitionType, SceneTransition, resolve_transition, resolve_transitions
from .presets import QualityPreset, EncodingPreset, resolve_encoding
from .progress import RenderProgress

__all__ = [
    # Timing
    "resolve_duration",
    "total_frames",
    "content_progress",
    # Transitions
    "TransitionType",
    "SceneTransition",
    "resolve_transition",
    "resolve_transitions",
    # Presets
    "QualityPreset",
    "EncodingPreset",
    "resolve_encoding",
    "RenderProgress",
]
