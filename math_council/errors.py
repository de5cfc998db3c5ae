"""Exception types raised by the debate engine."""


class CouncilError(Exception):
    """Base class for all Math Council errors."""


class NotFoundError(CouncilError):
    """Raised when a session, participant or personality does not exist."""


class InvalidArgumentError(CouncilError):
    """Raised when a request is rejected before any state is touched."""


class StoreError(CouncilError):
    """Raised when a persistence read or write fails."""
