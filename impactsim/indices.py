"""Index kinds used by the contact layer.

Brick vertex indices (0..7) and proximal point indices (0..n-1, n <= 4 for a
brick on a plane) are easy to mix up, as are multiplier row indices into the
constraint Jacobian. Keep them as separate types.
"""

from __future__ import annotations

from typing import NewType

BrickVertexIndex = NewType("BrickVertexIndex", int)
ProximalPointIndex = NewType("ProximalPointIndex", int)
MultiplierIndex = NewType("MultiplierIndex", int)
ConstraintIndex = NewType("ConstraintIndex", int)
