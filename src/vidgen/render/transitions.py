"""Scene-to-scene transition resolution."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from ..models.project import VideoConfig
from ..models.scene import Scene

logger = logging.getLogger(__name__)


class TransitionType(str, Enum):
    """Supported blend styles between adjacent scenes."""

    FADE = "fade"
    SLIDE_LEFT = "slide-left"
    SLIDE_RIGHT = "slide-right"
    ZOOM = "zoom"
    WIPE = "wipe"
    NONE = "none"

    @classmethod
    def parse(cls, name: Optional[str]) -> "TransitionType":
        """Parse a transition name from scene or project settings.

        Unknown names log a warning and fall back to ``FADE``.
        """
        key = (name or "").strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        logger.warning(f"Unknown transition \"{name}\", defaulting to fade")
        return cls.FADE

    @property
    def xfade_name(self) -> str:
        """Name of the encoder's xfade transition."""
        return _XFADE_NAMES[self]


_ALIASES = {
    "fade": TransitionType.FADE,
    "slide-left": TransitionType.SLIDE_LEFT,
    "slideleft": TransitionType.SLIDE_LEFT,
    "slide_left": TransitionType.SLIDE_LEFT,
    "slide-right": TransitionType.SLIDE_RIGHT,
    "slideright": TransitionType.SLIDE_RIGHT,
    "slide_right": TransitionType.SLIDE_RIGHT,
    "zoom": TransitionType.ZOOM,
    "wipe": TransitionType.WIPE,
    "wipeleft": TransitionType.WIPE,
    "wipe-left": TransitionType.WIPE,
    "none": TransitionType.NONE,
    "": TransitionType.NONE,
}

_XFADE_NAMES = {
    TransitionType.FADE: "fade",
    TransitionType.SLIDE_LEFT: "slideleft",
    TransitionType.SLIDE_RIGHT: "slideright",
    TransitionType.ZOOM: "smoothup",
    TransitionType.WIPE: "wipeleft",
    # Only reached through the instant-cut path in the filter graph.
    TransitionType.NONE: "fade",
}


@dataclass(frozen=True)
class SceneTransition:
    """A resolved transition between scene i and scene i+1."""

    type: TransitionType
    duration: float


def resolve_transition(
    scene_out: Scene,
    scene_in: Scene,
    video: VideoConfig,
) -> Optional[SceneTransition]:
    """Resolve the transition between ``scene_out`` and the following ``scene_in``.

    Name precedence: ``scene_out.transition_out``, then ``scene_in.transition_in``,
    then the project default. The first name found decides, so an explicit
    ``none`` disables the transition even when a project default exists.

    Duration precedence: ``scene_out.transition_duration``, then
    ``scene_in.transition_duration``, then the project default.
    """
    for name in (scene_out.transition_out, scene_in.transition_in, video.default_transition):
        if name is not None:
            break
    else:
        return None

    transition_type = TransitionType.parse(name)
    if transition_type is TransitionType.NONE:
        return None

    duration = scene_out.transition_duration
    if duration is None:
        duration = scene_in.transition_duration
    if duration is None:
        duration = video.default_transition_duration

    return SceneTransition(type=transition_type, duration=duration)


def resolve_transitions(
    scenes: Sequence[Scene],
    video: VideoConfig,
) -> List[Optional[SceneTransition]]:
    """Resolve every boundary of ``scenes``; the result has ``len(scenes) - 1`` entries."""
    return [
        resolve_transition(scenes[i], scenes[i + 1], video)
        for i in range(len(scenes) - 1)
    ]
