"""Render progress reporting."""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# Called with (done, total, message).
ProgressCallback = Callable[[int, int, str], None]


def total_steps(scene_count: int, format_count: int) -> int:
    """Steps in a full render.

    One narration step per scene, then per format one "captured" and one
    "encoded" step per scene plus one concatenation step.
    """
    return scene_count + format_count * (2 * scene_count + 1)


class RenderProgress:
    """Counts completed render steps and forwards them to a callback.

    Reported counts never decrease and never exceed ``total``. The final
    ``done == total`` report is sent once, by :meth:`complete`.
    """

    def __init__(self, total: int, callback: Optional[ProgressCallback] = None) -> None:
        self.total = total
        self.done = 0
        self._callback = callback
        self._completed = False

    def advance(self, message: str, steps: int = 1) -> None:
        """Record ``steps`` finished steps."""
        # Hold back the last step for complete().
        self.done = min(self.done + steps, self.total - 1) if self.total > 0 else 0
        self._emit(message)

    def complete(self, message: str = "Done") -> None:
        """Report the render as finished."""
        if self._completed:
            return
        self._completed = True
        self.done = self.total
        self._emit(message)

    def _emit(self, message: str) -> None:
        logger.debug(f"[{self.done}/{self.total}] {message}")
        if self._callback is not None:
            self._callback(self.done, self.total, message)
