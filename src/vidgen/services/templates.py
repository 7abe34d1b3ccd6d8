"""Scene template rendering."""

import html
import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from ..errors import TemplateError
from ..models.project import ThemeConfig
from ..models.scene import Scene

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][\w.-]*)\s*\}\}")


class TemplateRenderer(ABC):
    """Turns a scene into a full HTML document for one frame.

    Implementations must be pure: the same scene, theme, size and frame
    always produce the same markup.
    """

    @abstractmethod
    def render(
        self,
        scene: Scene,
        theme: ThemeConfig,
        width: int,
        height: int,
        frame: int,
        total_frames: int,
    ) -> str:
        """Render ``scene`` at ``frame``.

        Raises:
            TemplateError: If the template is missing or cannot be rendered.
        """


def template_context(
    scene: Scene,
    theme: ThemeConfig,
    width: int,
    height: int,
    frame: int,
    total_frames: int,
) -> Dict[str, Any]:
    """Values available to ``{{ key }}`` placeholders.

    Scene props are available both at the top level and under ``props``;
    theme values under ``theme``.
    """
    background = theme.background
    if scene.background is not None and scene.background.color:
        background = scene.background.color

    context: Dict[str, Any] = {
        "frame": frame,
        "total_frames": total_frames,
        "width": width,
        "height": height,
        "background": background,
        "background_image": scene.background.image if scene.background else None,
        "script": scene.script,
        "theme": theme.model_dump(),
        "props": dict(scene.props),
    }
    for key, value in scene.props.items():
        context.setdefault(key, value)
    return context


def _lookup(context: Dict[str, Any], dotted: str) -> Any:
    value: Any = context
    for part in dotted.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        elif isinstance(value, list) and part.isdigit() and int(part) < len(value):
            value = value[int(part)]
        else:
            return None
    return value


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return html.escape(json.dumps(value))
    return html.escape(str(value))


def substitute(source: str, context: Dict[str, Any]) -> str:
    """Replace ``{{ key }}`` placeholders; unknown keys render empty."""
    return PLACEHOLDER.sub(lambda m: _to_text(_lookup(context, m.group(1))), source)


class FileTemplateRenderer(TemplateRenderer):
    """Renders scenes from ``templates/<name>.html`` files in a project.

    ``templates/components/<name>.html`` is also searched. Template sources
    are read once and kept for the lifetime of the renderer.
    """

    def __init__(self, project_dir: Path) -> None:
        self.project_dir = project_dir
        self.search_dirs = [
            project_dir / "templates",
            project_dir / "templates" / "components",
        ]
        self._sources: Dict[str, str] = {}

    def find_template(self, name: str) -> Optional[Path]:
        for directory in self.search_dirs:
            candidate = directory / f"{name}.html"
            if candidate.is_file():
                return candidate
        return None

    def load(self, name: str) -> str:
        """Return the source of template ``name``.

        Raises:
            TemplateError: If no file exists for the template.
        """
        if name in self._sources:
            return self._sources[name]

        path = self.find_template(name)
        if path is None:
            raise TemplateError(f"Template not found: {name}", template=name)
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TemplateError(f"Failed to read template {path}: {e}", template=name) from e

        logger.debug(f"Loaded template '{name}' from {path}")
        self._sources[name] = source
        return source

    def render(
        self,
        scene: Scene,
        theme: ThemeConfig,
        width: int,
        height: int,
        frame: int,
        total_frames: int,
    ) -> str:
        source = self.load(scene.template)
        context = template_context(scene, theme, width, height, frame, total_frames)
        return substitute(source, context)
