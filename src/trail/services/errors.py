"""Service-layer exceptions."""


class EventResolutionError(LookupError):
    """Raised when an event, stage or choice id cannot be resolved."""


class UnknownEventError(EventResolutionError):
    """Raised for an event id missing from the library."""


class UnknownStageError(EventResolutionError):
    """Raised for a stage id missing from its event."""


class UnknownChoiceError(EventResolutionError):
    """Raised for a choice id missing from its stage."""


class SaveLoadError(Exception):
    """Raised when a persisted payload cannot be restored."""


class WorldNotReadyError(Exception):
    """Raised when a world graph is required but cannot be built."""
