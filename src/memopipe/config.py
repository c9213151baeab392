"""Pydantic models for pipeline configuration with strict validation.

Example configuration::

    {
      "output": {
        "dir": "s3://bucket/experiments/run1",
        "persist": {"tokenize": true, "vocabulary": "vocab/words.txt", "features": false}
      },
      "runOnly": "tokenize,vocabulary",
      "dryRun": false
    }
"""

import json
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from memopipe.errors import ConfigLoadError


class PersistPolicy(BaseModel):
    """How one named step is persisted.

    Exactly one of: auto-derived path, explicit path, or not persisted.
    """
    enabled: bool
    path: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_value(cls, value: Union[bool, str]) -> "PersistPolicy":
        """Interpret a configured value: true/"true", false/"false", or a path."""
        if value is True or value == "true":
            return cls(enabled=True)
        if value is False or value == "false":
            return cls(enabled=False)
        if not value:
            raise ValueError("Persist path must not be empty")
        return cls(enabled=True, path=value)


class OutputConfig(BaseModel):
    dir: Optional[str] = None  # Output root, a path or URL
    persist: Dict[str, Union[bool, str]] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @field_validator("persist")
    @classmethod
    def validate_persist(cls, v: Dict[str, Union[bool, str]]) -> Dict[str, Union[bool, str]]:
        for step_name, value in v.items():
            try:
                PersistPolicy.from_value(value)
            except ValueError as e:
                raise ValueError(f"output.persist.{step_name}: {e}")
        return v


class PipelineConfig(BaseModel):
    """Configuration of a ConfiguredPipeline."""
    output: OutputConfig = Field(default_factory=OutputConfig)
    dry_run: bool = Field(False, alias="dryRun")
    run_only: Optional[List[str]] = Field(None, alias="runOnly")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @field_validator("run_only", mode="before")
    @classmethod
    def split_run_only(cls, v):
        """Accept a comma-separated string as well as a list; drop blanks."""
        if v is None:
            return v
        if isinstance(v, str):
            v = v.split(",")
        return [name.strip() for name in v if name and name.strip()]

    def persist_policy(self, step_name: str) -> Optional[PersistPolicy]:
        """Policy configured for ``step_name``, or None if the step is not mentioned."""
        if step_name not in self.output.persist:
            return None
        return PersistPolicy.from_value(self.output.persist[step_name])

    @classmethod
    def from_dict(cls, data: Dict) -> "PipelineConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigLoadError(f"Invalid pipeline configuration: {e}") from e


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """Load a pipeline configuration from a JSON file."""
    config_path = Path(path)
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigLoadError(f"Cannot load configuration {config_path}: {e}") from e
    return PipelineConfig.from_dict(data)
