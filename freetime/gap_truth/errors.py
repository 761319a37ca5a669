"""
Gap Truth error taxonomy.

Every error raised by the gap core derives from GapError and carries the HTTP
status the API layer should answer with. Pure computation errors are raised
synchronously and never swallowed; store errors bubble up unchanged unless a
batch wraps them in BatchApplyError.
"""


class GapError(Exception):
    """Base class for all gap-core errors."""

    http_status = 500
    code = "gap_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "details": self.details}


class ParseError(GapError, ValueError):
    """Malformed "HH:MM" string. Always a caller bug."""

    http_status = 400
    code = "parse_error"


class RangeError(GapError, ValueError):
    """Minutes value outside [0, 1440)."""

    http_status = 400
    code = "range_error"


class InvalidPreferencesError(GapError, ValueError):
    """Work preferences are missing fields or end at/before they start."""

    http_status = 400
    code = "invalid_preferences"


class OutOfBoundsError(GapError, ValueError):
    """Task interval does not fit inside the target gap."""

    http_status = 400
    code = "out_of_bounds"


class NotFoundError(GapError, LookupError):
    """Referenced gap is absent or owned by another user."""

    http_status = 404
    code = "not_found"


class ConflictError(GapError):
    """The gap changed between read and write (optimistic concurrency miss)."""

    http_status = 409
    code = "conflict"


class OverlapError(ConflictError):
    """A manually created gap would overlap an existing one."""

    code = "overlap"


class InvariantViolationError(GapError):
    """A write batch would break the gap-set invariants. Internal bug."""

    http_status = 500
    code = "invariant_violation"

    def __init__(self, violations: list):
        self.violations = list(violations)
        super().__init__(
            f"{len(self.violations)} gap invariant violation(s)",
            {"violations": [v.describe() for v in self.violations]},
        )


class BatchApplyError(GapError):
    """
    A delete/update/insert batch failed part-way.

    ``phase`` names the step that failed; ``applied`` holds the counts that were
    reached before the failure. Re-running the whole reconciliation is safe.
    """

    http_status = 500
    code = "batch_apply_failed"

    def __init__(self, phase: str, applied: dict, cause: Exception):
        self.phase = phase
        self.applied = dict(applied)
        super().__init__(
            f"Gap batch failed during {phase}: {cause}",
            {"phase": phase, "applied": self.applied, "retryable": True},
        )
