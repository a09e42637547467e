"""Domain-specific errors for capturectl."""


class CapturectlError(Exception):
    """Base error for capturectl."""


class ConfigLoadError(CapturectlError):
    """Raised when a configuration source or protocol import cannot be loaded."""


class ConfigValidationError(CapturectlError):
    """Raised when a configuration file does not conform to schema or semantics."""


class UnknownProtocolError(CapturectlError):
    """Raised when a protocol name cannot be resolved to a usable handler."""

    def __init__(self, protocol: str, reason: str | None = None) -> None:
        self.protocol = protocol
        message = f"Unknown protocol '{protocol}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class HandlerQueryError(CapturectlError):
    """Raised when a protocol handler failed inside a capture worker."""


class WorkerError(CapturectlError):
    """Base error for isolated capture workers."""


class WorkerTimeoutError(WorkerError):
    """Raised when a capture worker exceeds its wall-clock deadline."""


class WorkerCrashError(WorkerError):
    """Raised when a capture worker exits without reporting a result."""


class FixtureDecodeError(CapturectlError):
    """Raised when stored fixture data cannot be decoded."""
