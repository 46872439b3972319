"""
Error taxonomy for the orbit navigator.

Nothing in the core is fatal to the hosting application: propagation
failures turn into invalid results, asset failures into fallbacks, and fetch
failures into advisory messages. These classes mark where each conversion
happens.
"""


class OrbitNavigatorError(Exception):
    """Base class for all orbit navigator errors."""


class PropagationError(OrbitNavigatorError):
    """Element set missing, malformed, or SGP4 reported a numerical failure."""

    def __init__(self, message, error_code=None):
        super().__init__(message)
        self.error_code = error_code


class AssetLoadError(OrbitNavigatorError):
    """A scene asset (the Earth surface image) could not be loaded."""


class CatalogServiceError(OrbitNavigatorError):
    """The catalog, statistics or launch service could not be reached or refused."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class SceneStateError(OrbitNavigatorError):
    """Operation attempted in a scene lifecycle state that does not allow it."""
