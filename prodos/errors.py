"""
Unified hierarchy of error types. These inherit from standard errors like
ValueError and FileNotFoundError but are more fine-grained.
"""

from typing import Tuple, Type


class ProdosRuntimeError(ValueError):
    """Base class for prodos runtime errors."""

    pass


class UnexpectedError(ProdosRuntimeError):
    """For unexpected errors or runtime check failures."""

    pass


class SelfExplanatoryError(ProdosRuntimeError):
    """Common errors that arise from 'normal' problems that are largely self-explanatory,
    i.e., no stack trace should be necessary when reporting to the user."""

    pass


class InvalidInput(SelfExplanatoryError):
    """Raised when the wrong kind of input is given to an operation."""

    pass


class InvalidEntityType(InvalidInput):
    """Raised when an entity type is not one of the known types."""

    def __init__(self, type_name: str):
        super().__init__(f"Unknown entity type: {repr(type_name)}")


class InvalidFolderName(InvalidInput):
    """Raised when a name can't be used as a product folder name."""

    pass


class InvalidOperation(InvalidInput):
    """Raised when an operation can't be performed on the given records."""

    pass


class DuplicateRelationship(InvalidOperation):
    """Raised when a relationship already exists between the same two entities."""

    pass


class NotFound(InvalidInput, LookupError):
    """Raised when a product, entity, relationship or sidecar is missing."""

    pass


class InvalidState(SelfExplanatoryError):
    """Raised when the workspace or database is not in a valid state for an operation."""

    pass


class SkippableError(SelfExplanatoryError):
    """Errors that are skippable and shouldn't abort the entire operation."""

    pass


class FileFormatError(SkippableError):
    """Raised when a file's content format is invalid."""

    pass


def _nonfatal_exceptions() -> Tuple[Type[Exception], ...]:
    return (
        SelfExplanatoryError,
        FileNotFoundError,
        IOError,
    )


NONFATAL_EXCEPTIONS = _nonfatal_exceptions()
"""Exceptions that are not fatal and usually don't merit a full stack trace."""


def is_fatal(exception: Exception) -> bool:
    for e in NONFATAL_EXCEPTIONS:
        if isinstance(exception, e):
            return False
    return True
