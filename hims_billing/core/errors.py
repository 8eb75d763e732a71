# hims_billing/core/errors.py
from __future__ import annotations


class BillingError(Exception):
    """
    Base for errors that abort a billing operation and are reported
    to the caller. `status_code` / `code` are what the API layer answers with.
    """
    status_code = 400
    code = "billing_error"

    def __init__(self, msg: str):
        super().__init__(msg)
        self.msg = msg


class ValidationError(BillingError):
    """Missing reference, negative amount, bad discount input."""
    status_code = 400
    code = "validation_error"


class NotFoundError(BillingError):
    status_code = 404
    code = "not_found"


class ConflictError(BillingError):
    """Operation on an admission / observation that is no longer open."""
    status_code = 409
    code = "conflict"


# ---------------------------------------------------------------------
# Non-fatal: absorbed by the engine, logged and surfaced as warnings
# ---------------------------------------------------------------------


class DegradedCapabilityError(Exception):
    """Backing store lacks a table the workflow would like to use."""

    def __init__(self, capability: str, detail: str = ""):
        msg = f"{capability} unavailable"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.capability = capability


class SourceLookupError(Exception):
    """One charge source failed or timed out."""

    def __init__(self, source: str, cause: BaseException | str):
        super().__init__(f"{source} lookup failed: {cause}")
        self.source = source
        self.cause = cause
