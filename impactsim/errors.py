from __future__ import annotations


class ContactResolutionError(RuntimeError):
    """A projection or impact could not be resolved; the simulation step is lost."""


class PositionProjectionError(ContactResolutionError):
    pass


class ImpactError(ContactResolutionError):
    pass


class ProjectionConvergenceError(RuntimeError):
    """Raised by the engine when project_q() cannot reach the requested accuracy."""
