class WorkflowError(Exception):
    """Base class for every error the appointment core raises on purpose."""


class ValidationError(WorkflowError):
    """Malformed or missing input. Raised before any store state is touched."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(WorkflowError):
    def __init__(self, entity: str, key):
        super().__init__(f"{entity} {key!r} not found")
        self.entity = entity
        self.key = key


class NormalizationError(WorkflowError):
    """A single raw record could not be interpreted."""

    def __init__(self, message: str, index: int | None = None):
        super().__init__(message if index is None else f"record {index}: {message}")
        self.index = index
        self.message = message


class CollisionError(WorkflowError):
    """Identifier collision. Retried internally, never surfaced unless retries run out."""

    def __init__(self, field: str, value: str):
        super().__init__(f"{field} {value!r} already in use")
        self.field = field
        self.value = value


def from_pydantic(exc) -> ValidationError:
    """Turn a pydantic ValidationError into ours, naming the first offending field."""
    errors = exc.errors()
    if not errors:
        return ValidationError("payload", str(exc))
    first = errors[0]
    field = ".".join(str(p) for p in first.get("loc", ())) or "payload"
    return ValidationError(field, first.get("msg", "invalid value"))
