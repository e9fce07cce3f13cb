"""
Exception types shared by the extraction pipeline.

Failures inside a single unit of work are caught by the orchestrators and
turned into log lines; these types let callers tell the cases apart.
"""


class PipelineError(Exception):
    """Base class for extraction pipeline errors."""


class RecordNotFound(PipelineError):
    """The source document has no record for the requested identifier."""


class FetchFailure(PipelineError):
    """Every fetch attempt (backend, direct, relays) failed."""

    def __init__(self, target: str, attempts: list = None):
        self.target = target
        self.attempts = attempts or []
        detail = "; ".join(self.attempts) if self.attempts else "no attempts made"
        super().__init__(f"All fetch attempts failed for {target}: {detail}")


class QuotaExceeded(PipelineError):
    """The user's daily extraction ceiling has been reached."""

    def __init__(self, user_id: str, daily_limit: int):
        self.user_id = user_id
        self.daily_limit = daily_limit
        super().__init__(f"Daily limit of {daily_limit} records reached for user {user_id}")


class PersistenceFailure(PipelineError):
    """A write to the persistence backend failed."""


class ValidationFailure(PipelineError):
    """A required identifier is missing (e.g. empty DOT number before enrichment)."""


class DuplicateUserError(PipelineError):
    """A user with the same (lower-cased) email already exists."""


class AdminDeletionError(PipelineError):
    """Administrator accounts cannot be deleted."""
