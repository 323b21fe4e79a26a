"""Custom exceptions for pathknock."""


class PathKnockError(Exception):
    """Base class for pathknock exceptions."""

    def __init__(self, message: str = "pathknock error"):
        self.message = message
        super().__init__(message)


class ConfigError(PathKnockError):
    """Raised when the rules file or settings cannot be turned into a KnockConfig."""

    def __init__(self, detail: str, source: str | None = None):
        self.detail = detail
        self.source = source
        message = f"{source}: {detail}" if source else detail
        super().__init__(message)


class LoggingError(PathKnockError):
    """Raised when a knock event cannot be emitted to the sink.

    Never leaves ``pathknock.events.record``; the sink reports it and
    returns False.
    """

    def __init__(self, detail: str = "failed to emit knock event"):
        self.detail = detail
        super().__init__(detail)
