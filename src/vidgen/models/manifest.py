"""Manifest data model."""

from pathlib import Path
from typing import List

import yaml
from pydantic import Field, ValidationError, model_validator

from ..errors import ConfigError
from .project import ProjectConfig
from .scene import AutoDuration, Scene


class Manifest(ProjectConfig):
    """Video project manifest: project configuration plus ordered scenes."""

    scenes: List[Scene] = Field(default_factory=list, description="List of scenes")

    @model_validator(mode="after")
    def _assign_scene_ids(self) -> "Manifest":
        scenes = [
            scene if scene.id else scene.model_copy(update={"id": f"scene-{i + 1:03d}"})
            for i, scene in enumerate(self.scenes)
        ]
        self.scenes = scenes
        return self

    @property
    def config(self) -> ProjectConfig:
        """The project configuration without scenes."""
        return ProjectConfig(**self.model_dump(exclude={"scenes"}))

    @classmethod
    def from_yaml(cls, path: Path) -> "Manifest":
        """Load manifest from YAML file.

        Raises:
            ConfigError: If the file is missing, not valid YAML or fails validation.
        """
        if not path.exists():
            raise ConfigError(f"Manifest not found: {path}", path=path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}", path=path) from e

        if not isinstance(data, dict):
            raise ConfigError(f"Manifest must be a mapping: {path}", path=path)

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid manifest {path}: {e}", path=path) from e

    def to_yaml(self, path: Path) -> None:
        """Save manifest to YAML file."""
        data = self.model_dump(mode="json", exclude_none=True)
        for scene_data, scene in zip(data.get("scenes", []), self.scenes):
            scene_data["duration"] = (
                "auto" if isinstance(scene.duration, AutoDuration) else scene.duration.seconds
            )
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
