"""YAML schema validation and config loading.

Provides centralized validation for run configuration using pydantic:
    - Trace schema (trace.v1.yaml): sampling constants, canvas size, colors

Loaders fail fast with actionable messages (offending keys, expected ranges).

Units:
    - Time: samples per second, integer step indices
    - Canvas: pixels
    - Color: RGB channels in [0, 255]

Usage:
    from epitrace.utils import validators

    cfg = validators.load_trace_config("configs/trace_v1.yaml")
    cfg = validators.apply_overrides(cfg, sampling={"sample_count": 500})
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from epitrace.errors import ConfigError


# ============================================================================
# TRACE SCHEMA V1
# ============================================================================

class SamplingConfig(BaseModel):
    """Discrete-time sampling of the epicycle sum."""
    model_config = ConfigDict(extra="forbid")

    samples_per_second: float = Field(500.0, gt=0.0, allow_inf_nan=False,
                                      description="Steps per simulated second")
    sample_count: int = Field(10000, ge=1, description="Exclusive upper bound of the step range")
    include_initial_sample: bool = Field(False, description="Also sample t=0")
    precision: Literal["float32", "float64"] = Field("float32", description="Working float dtype")

    @model_validator(mode='after')
    def validate_non_empty_range(self) -> 'SamplingConfig':
        """Steps run over 1..sample_count-1 unless t=0 is included."""
        if not self.include_initial_sample and self.sample_count < 2:
            raise ValueError(
                f"sample_count={self.sample_count} yields no samples; "
                "use >= 2 or set include_initial_sample"
            )
        return self

    @property
    def dtype(self) -> type:
        return np.float32 if self.precision == "float32" else np.float64


class CanvasConfig(BaseModel):
    """Square output canvas."""
    model_config = ConfigDict(extra="forbid")

    size_px: int = Field(1000, ge=1, description="Canvas side in pixels")
    foreground_rgb: Tuple[int, int, int] = Field((255, 255, 255), description="Drawn pixel color")
    background_rgb: Tuple[int, int, int] = Field((0, 0, 0), description="Background color")

    @field_validator('foreground_rgb', 'background_rgb')
    @classmethod
    def validate_channels(cls, v: Tuple[int, int, int]) -> Tuple[int, int, int]:
        for c in v:
            if not 0 <= c <= 255:
                raise ValueError(f"RGB channel {c} out of range [0, 255] in {v}")
        return v

    @model_validator(mode='after')
    def validate_distinct_colors(self) -> 'CanvasConfig':
        if self.foreground_rgb == self.background_rgb:
            raise ValueError(
                f"foreground_rgb and background_rgb must differ, both are {self.foreground_rgb}"
            )
        return self


class TraceConfigV1(BaseModel):
    """Run configuration (trace.v1.yaml schema)."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_version: str = Field("trace.v1", alias="schema", description="Schema version")
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    canvas: CanvasConfig = Field(default_factory=CanvasConfig)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "trace.v1":
            raise ValueError(f"Expected schema 'trace.v1', got '{v}'")
        return v


# ============================================================================
# PUBLIC API
# ============================================================================

def load_trace_config(path: Union[str, Path]) -> TraceConfigV1:
    """Load and validate trace config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to trace.v1.yaml file

    Returns
    -------
    TraceConfigV1
        Validated run configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ConfigError
        If the YAML is malformed or validation fails
    """
    import yaml

    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Trace config not found: {path}")

    try:
        data = fs.load_yaml(path)
    except yaml.YAMLError as e:
        raise ConfigError(str(e)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Trace config at {path} must be a mapping, got {type(data).__name__}")

    try:
        return TraceConfigV1(**data)
    except ValidationError as e:
        raise ConfigError(f"Trace config validation failed at {path}: {e}") from e


def apply_overrides(
    cfg: TraceConfigV1,
    sampling: Optional[Dict[str, Any]] = None,
    canvas: Optional[Dict[str, Any]] = None,
) -> TraceConfigV1:
    """Return a re-validated copy of ``cfg`` with section fields replaced.

    ``None`` values in the override dicts are ignored, so argparse results can
    be passed straight through.

    Raises
    ------
    ConfigError
        If the merged configuration fails validation
    """
    data = cfg.model_dump(by_alias=True)
    for section, overrides in (("sampling", sampling), ("canvas", canvas)):
        for key, value in (overrides or {}).items():
            if value is not None:
                data[section][key] = value

    try:
        return TraceConfigV1(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration override: {e}") from e
