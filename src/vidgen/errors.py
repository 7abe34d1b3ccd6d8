"""Error taxonomy for the render pipeline.

Every error carries a ``kind`` and a ``params`` dict so the CLI layer can
attach actionable hints without parsing messages.
"""

from pathlib import Path
from typing import Any, Optional


class VidgenError(Exception):
    """Base class for all vidgen errors."""

    kind = "error"

    def __init__(self, message: str, **params: Any) -> None:
        super().__init__(message)
        self.message = message
        self.params: dict[str, Any] = {k: v for k, v in params.items() if v is not None}

    @property
    def scene_index(self) -> Optional[int]:
        return self.params.get("scene_index")

    @property
    def format_name(self) -> Optional[str]:
        return self.params.get("format_name")

    def with_context(
        self,
        scene_index: Optional[int] = None,
        format_name: Optional[str] = None,
    ) -> "VidgenError":
        """Attach scene/format context in place and return self."""
        if scene_index is not None:
            self.params.setdefault("scene_index", scene_index)
        if format_name is not None:
            self.params.setdefault("format_name", format_name)
        return self

    def hint(self) -> Optional[str]:
        """Return a short remediation hint, if one applies."""
        return None

    def __str__(self) -> str:
        where = []
        if self.scene_index is not None:
            where.append(f"scene {self.scene_index + 1}")
        if self.format_name is not None:
            where.append(f"format '{self.format_name}'")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message


class ConfigError(VidgenError):
    """Bad project or scene data. Raised before any rendering starts."""

    kind = "config"

    def __init__(self, message: str, path: Optional[Path] = None, **params: Any) -> None:
        super().__init__(message, path=str(path) if path else None, **params)

    def hint(self) -> Optional[str]:
        if "scenes" in self.message.lower():
            return "Add at least one entry under 'scenes:' in the project manifest."
        return "Check the manifest YAML: keys must be indented and durations be 'auto' or seconds."


class TemplateError(VidgenError):
    """A scene template is missing or failed to render."""

    kind = "template"

    def __init__(self, message: str, template: Optional[str] = None, **params: Any) -> None:
        super().__init__(message, template=template, **params)

    def hint(self) -> Optional[str]:
        return "Templates are looked up as templates/<name>.html inside the project directory."


class CaptureError(VidgenError):
    """The rendering surface failed to load, update or screenshot a scene."""

    kind = "capture"

    def hint(self) -> Optional[str]:
        return "Install the browser with 'playwright install chromium'."


class EncodingError(VidgenError):
    """The encoder subprocess could not be spawned or exited non-zero."""

    kind = "encoding"

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr_tail: Optional[str] = None,
        **params: Any,
    ) -> None:
        super().__init__(message, returncode=returncode, stderr_tail=stderr_tail, **params)

    @property
    def stderr_tail(self) -> Optional[str]:
        return self.params.get("stderr_tail")

    def hint(self) -> Optional[str]:
        return (
            "Ensure FFmpeg is installed and on your PATH "
            "(brew install ffmpeg / apt install ffmpeg), or set VIDGEN_FFMPEG."
        )


class NarrationError(VidgenError):
    """Narration synthesis failed. Non-fatal: the scene renders silent."""

    kind = "narration"

    def hint(self) -> Optional[str]:
        return "macOS uses the built-in 'say'; on Linux install espeak-ng."


class SubtitleError(VidgenError):
    """Subtitle generation or burn-in failed. Non-fatal."""

    kind = "subtitle"
