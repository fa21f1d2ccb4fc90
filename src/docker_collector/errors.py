"""Exception types raised by the collector."""

from typing import Optional


class CollectorError(Exception):
    """Base class for collector errors."""


class RegistrationError(CollectorError):
    """The collector could not look up or create its own identity record.

    This is the one unrecoverable condition: without an identity no run
    summary can be attributed, so the process must stop.
    """


class TargetListError(CollectorError):
    """The registry could not enumerate collection targets; the cycle is skipped."""


class TargetConfigError(CollectorError):
    """A target is missing one or more required connection options."""

    def __init__(self, target_id: str, options: list[str]):
        self.target_id = target_id
        self.options = list(options)
        names = ", ".join(f"'{o}'" for o in self.options)
        plural = "s" if len(self.options) > 1 else ""
        super().__init__(
            f"Collector item {target_id} is missing required option{plural} {names}"
        )


class RemoteRuntimeError(CollectorError):
    """A call to a remote container runtime failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class StatsDecodeError(CollectorError):
    """A container stats payload could not be decoded."""


class StoreError(CollectorError):
    """A document store operation failed."""
