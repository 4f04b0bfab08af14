"""
Error taxonomy for the scheduling engine.

- ValidationError: bad input (time strings, mode ids, config fields, rule chains)
- NotFoundError: schedule, session or tournament session missing
- PreconditionError: operation not allowed in the current state
- ExternalDependencyError: a collaborator (event data, scores, repository) failed
"""


class SchedulingError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(SchedulingError, ValueError):
    pass


class ParseError(ValidationError):
    pass


class NotFoundError(SchedulingError):
    pass


class PreconditionError(SchedulingError):
    pass


class ExternalDependencyError(SchedulingError):
    def __init__(self, dependency: str, message: str):
        super().__init__(f"{dependency}: {message}")
        self.dependency = dependency
