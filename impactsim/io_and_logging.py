"""Trajectory output."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import numpy as np


def save_npz(out_path: str | Path, payload: Mapping[str, Any]) -> Path:
    """Save a run result (see BrickSimulator.run) to an .npz file.

    '.npz' is appended when out_path has another or no suffix. Parent
    directories are created as needed. Returns the path written.
    """
    out_path = Path(out_path)
    if out_path.suffix.lower() != ".npz":
        out_path = out_path.with_name(out_path.name + ".npz")
    out_path.parent.mkdir(parents=True, exist_ok=True)

    np.savez(str(out_path), **dict(payload))
    return out_path
