"""
Engine exception taxonomy.

ValidationError subclasses ValueError so route handlers map it to 422 the
same way they map any other bad-input ValueError.
"""


class ValidationError(ValueError):
    """Invalid or missing input: roof area, capacity, assumptions."""


class NotFoundError(LookupError):
    """A site, run or benchmark id does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} '{identifier}' not found")


class DataUnavailableError(Exception):
    """Benchmark or metering data does not exist yet."""


class UpstreamServiceError(Exception):
    """A geometry, metering or persistence collaborator failed."""

    def __init__(self, service: str, detail: str):
        self.service = service
        self.detail = detail
        super().__init__(f"{service} failed: {detail}")
