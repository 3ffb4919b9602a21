from __future__ import annotations


class SchedulingError(RuntimeError):
    """Base class for failures raised by the occurrence lifecycle engine."""


class NotFoundError(SchedulingError, LookupError):
    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class InvalidStateError(SchedulingError):
    pass


class ConfigurationError(SchedulingError, ValueError):
    pass
