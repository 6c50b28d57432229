"""I/O helpers shared across CLI entrypoints and the document store."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import numpy as np
import yaml

LOGGER = logging.getLogger("facematch.io")

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png"}


def ensure_dir(path: Path) -> Path:
    """Create directory (and parents) if it does not exist."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    LOGGER.debug("Loaded YAML config %s -> keys=%s", path, list(data.keys()))
    return data


def _json_default(obj: Any) -> Any:
    if is_dataclass(obj):
        return asdict(obj)
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def dump_json(path: Path, data: Any, indent: int = 2) -> None:
    """Write JSON to disk (with dataclass and numpy support)."""
    with path.open("w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=indent, default=_json_default)
    LOGGER.debug("Wrote JSON file %s", path)


def dump_json_atomic(path: Path, data: Any, indent: int = 2) -> None:
    """Replace ``path`` with JSON content in a single rename."""
    ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=indent, default=_json_default)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    LOGGER.debug("Wrote JSON file %s", path)


def load_json(path: Path) -> Any:
    """Read JSON from disk."""
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure application logging if not already configured."""
    if logging.getLogger().handlers:
        logging.getLogger().setLevel(level)
        return
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def list_images(directory: Path) -> Iterable[Path]:
    """Yield image paths sorted in lexicographic order."""
    if not directory.exists():
        return []
    return sorted(
        [p for p in directory.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES]
    )


def resolve_path(path: Optional[str], base_dir: Optional[Path] = None) -> Optional[Path]:
    if path is None:
        return None
    p = Path(path)
    if not p.is_absolute() and base_dir is not None:
        p = base_dir / p
    return p
