"""Domain errors for the Sous Chef engine.

Every failure the engine raises derives from `SousChefError`:
- ValidationError: malformed RecipeInput (all offending fields, not just the first)
- NotFound: unknown recipe / list / item id
- OutOfRange: version number outside [1, current_version]
- InvalidArgument: contract violation such as a non-positive scale factor
- EmptyInput: consolidation with zero resolvable recipes
- IntegrityError: corrupted store state (heritage cycle, head without version)
- StoreError: an atomic write batch was rejected; nothing was applied

IntegrityError is fatal and must never be caught and repaired by the engine.
"""

from dataclasses import dataclass


class SousChefError(Exception):
    """Base class for all engine errors."""


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class ValidationError(SousChefError):
    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors) or "invalid input")

    @property
    def fields(self) -> list[str]:
        return [e.field for e in self.errors]


class NotFound(SousChefError):
    pass


class OutOfRange(SousChefError):
    pass


class InvalidArgument(SousChefError):
    pass


class EmptyInput(SousChefError):
    pass


class IntegrityError(SousChefError):
    pass


class StoreError(SousChefError):
    pass
