# catalog_sync/services/errors.py
"""Row-level failures.

Each stage of a row raises one of these; the reconciler turns it into an
``error`` outcome whose message is ``str(exc)``. They never escape a row.
"""

VALIDATE = "validate"
RESOLVE_SKU = "resolve_sku"
RESOLVE_LOCATION = "resolve_location"
ENSURE_LINK = "ensure_link"
SET_QUANTITY = "set_quantity"


class RowError(Exception):
    kind = "error"

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage
        self.message = message

    def __str__(self):
        return self.message


class InvalidRow(RowError):
    kind = "invalid_row"


class NotFound(RowError):
    kind = "not_found"


class LinkCreateFailed(RowError):
    kind = "link_create_failed"


class ValidationRejected(RowError):
    kind = "validation_rejected"


class Transient(RowError):
    kind = "transient"
