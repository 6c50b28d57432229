"""Matching configuration loaded from YAML with code defaults."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from facematch.errors import ValidationError
from facematch.io_utils import load_yaml, resolve_path
from facematch.types import DESCRIPTOR_LENGTH

LOGGER = logging.getLogger("facematch.config")

DEFAULT_CONFIG_PATH = Path("configs/matching.yaml")


@dataclass(frozen=True)
class MatchingConfig:
    # Euclidean distance cut-off; a candidate qualifies when distance < threshold
    threshold: float = 0.6
    max_threshold: float = 2.0
    descriptor_length: int = DESCRIPTOR_LENGTH
    model_version: str = "1.0"
    store_root: Path = Path("data/store")

    def resolve_threshold(self, threshold: Optional[float]) -> float:
        """Return ``threshold`` (or the default) after range validation."""
        value = self.threshold if threshold is None else threshold
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"Match threshold must be a number, got {value!r}")
        if not math.isfinite(value) or value <= 0 or value > self.max_threshold:
            raise ValidationError(
                f"Match threshold {value} outside (0, {self.max_threshold}]"
            )
        return float(value)


def config_from_dict(data: Dict[str, Any], base_dir: Optional[Path] = None) -> MatchingConfig:
    known = {f.name for f in fields(MatchingConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        LOGGER.warning("Ignoring unknown matching config keys: %s", unknown)
    values = {key: data[key] for key in data if key in known and data[key] is not None}
    if "store_root" in values:
        values["store_root"] = resolve_path(str(values["store_root"]), base_dir)
    if "threshold" in values:
        values["threshold"] = float(values["threshold"])
    if "max_threshold" in values:
        values["max_threshold"] = float(values["max_threshold"])
    if "descriptor_length" in values:
        values["descriptor_length"] = int(values["descriptor_length"])
    if "model_version" in values:
        values["model_version"] = str(values["model_version"])
    config = MatchingConfig(**values)
    config.resolve_threshold(None)
    return config


def load_matching_config(path: Optional[Path] = None, **overrides: Any) -> MatchingConfig:
    """Load config from YAML (if present) and apply non-None keyword overrides."""
    config_path = path or DEFAULT_CONFIG_PATH
    if config_path.exists():
        data = load_yaml(config_path)
        config = config_from_dict(data.get("matching", data))
    else:
        if path is not None:
            raise FileNotFoundError(f"Matching config not found: {config_path}")
        LOGGER.debug("No matching config at %s; using defaults", config_path)
        config = MatchingConfig()
    applied = {key: value for key, value in overrides.items() if value is not None}
    if applied:
        config = replace(config, **applied)
        config.resolve_threshold(None)
    LOGGER.debug("Matching config: %s", config)
    return config
