"""Engine configuration: defaults plus optional YAML overrides."""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass
class EngineConfig:
    max_call_depth: int = 400
    max_iterations: Optional[int] = 1_000_000  # None disables the loop budget
    strict_assignment: bool = False  # assigning an undeclared name raises instead of creating a global
    recursion_limit: int = 20_000  # host recursion limit while executing, restored afterwards
    random_seed: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown engine config keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def load_config(path: Optional[Path] = None) -> EngineConfig:
    """Read an EngineConfig from a YAML mapping; defaults when path is None."""
    if path is None:
        return EngineConfig()
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: engine config must be a mapping, got {type(data).__name__}")
    # Allow the settings to live under an `engine:` section.
    if set(data) == {"engine"} and isinstance(data["engine"], dict):
        data = data["engine"]
    return EngineConfig.from_dict(data)
