"""Exceptions raised by the catalog, analyzer and ingestion layers."""

from typing import List, Optional


class JobMatchError(Exception):
    """Base class for all jobmatch errors."""
    pass


class NotFoundError(JobMatchError):
    """
    Raised when a referenced entity does not exist.

    Attributes:
        entity: Kind of entity (e.g., 'job_posting', 'candidate', 'skill')
        identifier: The id that was looked up
    """

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        label = entity.replace("_", " ").capitalize()
        super().__init__(f"{label} not found: {identifier}")


class ValidationError(JobMatchError, ValueError):
    """
    Raised when input is rejected before any lookup or write happens.

    Attributes:
        message: Error description
        errors: Individual validation messages, if more than one check failed
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = list(errors or [])

        parts = [message]
        for err in self.errors:
            parts.append(f" - {err}")

        super().__init__("\n".join(parts))
