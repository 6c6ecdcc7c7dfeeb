"""Exception hierarchy for netdiagram."""


class NetDiagramError(Exception):
    """Base class for all netdiagram errors."""


class GraphValidationError(NetDiagramError):
    """Raised in strict mode when a graph has ERROR-level validation issues."""

    def __init__(self, message: str, issues: list | None = None):
        super().__init__(message)
        self.issues = issues or []


class LayoutError(NetDiagramError):
    """The layout oracle failed or returned something unusable."""


class GeometryError(NetDiagramError):
    """Path geometry is unusable (e.g. zero length or missing segments)."""


class CapabilityError(NetDiagramError):
    """A data source was asked for a capability it does not declare."""
