"""Template and narration services used by the render pipeline."""

from .templates import TemplateRenderer, FileTemplateRenderer
from .narration import (
    NarrationEngine,
    SynthesisResult,
    CommandNarrationEngine,
    CachedNarrationEngine,
    create_engine,
)

__all__ = [
    "TemplateRenderer",
    "FileTemplateRenderer",
    "NarrationEngine",
    "SynthesisResult",
    "CommandNarrationEngine",
    "CachedNarrationEngine",
    "create_engine",
]
