"""impactsim: rigid brick contact and impact resolution.
CPU-only JAX
------------
"""

from __future__ import annotations

import os as _os

# Set env var before any JAX import happens anywhere.
_os.environ.setdefault("JAX_PLATFORM_NAME", "cpu")

# Apply JAX config (imports jax).
from .config import apply_jax_cpu as _apply_jax_cpu

_apply_jax_cpu()

# Public API
from .config import ContactSettings, DEFAULT_SETTINGS
from .errors import ContactResolutionError, ImpactError, PositionProjectionError, ProjectionConvergenceError
from .engine import FreeBodySystem, SystemState
from .model import load_brick_model, make_brick_xml
from .brick import UnilateralBrick
from .projection import PositionProjector
from .impact import Impacter, ImpactEpisode
from .sim import BrickSimulator
from .scenarios import SCENARIOS, get_scenario

__all__ = [
    "ContactSettings",
    "DEFAULT_SETTINGS",
    "ContactResolutionError",
    "ImpactError",
    "PositionProjectionError",
    "ProjectionConvergenceError",
    "FreeBodySystem",
    "SystemState",
    "load_brick_model",
    "make_brick_xml",
    "UnilateralBrick",
    "PositionProjector",
    "Impacter",
    "ImpactEpisode",
    "BrickSimulator",
    "SCENARIOS",
    "get_scenario",
]
