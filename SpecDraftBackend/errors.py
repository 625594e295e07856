from typing import List, Optional


class SpecDraftError(Exception):
    pass


class NotFound(SpecDraftError):
    """Unknown or expired draft, unknown question, undeclared array field."""


class InvalidPayload(SpecDraftError):
    """A structured payload failed its schema."""

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        super().__init__(message)
        self.issues = list(issues or [])


class IllegalState(SpecDraftError):
    """Operation invoked out of sequence."""
