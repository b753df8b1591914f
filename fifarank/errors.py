"""Typed failures raised by services and the ranking engine.

Each class carries the HTTP status the API layer maps it to.
"""


class FifaRankError(Exception):
    """Base class for domain failures."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(FifaRankError):
    """Raised when a match, team or competition identity is unresolved."""

    status_code = 404

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(FifaRankError):
    """Raised when an operation clashes with existing state."""

    status_code = 409


class MatchAlreadyFinishedError(ConflictError):
    """Raised when a finished match is processed again."""

    def __init__(self, match_id: int):
        self.match_id = match_id
        super().__init__(f"Match {match_id} already finished")


class ValidationError(FifaRankError):
    """Raised when input is well-formed but semantically invalid."""

    status_code = 422


class InvalidResultError(ValidationError):
    """Raised for a result kind outside win/draw/loss."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid match result: {value!r}")
