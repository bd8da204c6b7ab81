"""
Error taxonomy for template operations
"""

from typing import Optional


class TemplateError(Exception):
    """Base error carrying a stable code and HTTP status"""

    code = "TEMPLATE_ERROR"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(self.message)


class ValidationError(TemplateError):
    """Missing or malformed input (missing name, no asset, bad zone)"""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(TemplateError):
    """Unknown template id"""

    code = "TEMPLATE_NOT_FOUND"
    status_code = 404

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__("Template not found")


class UpstreamStoreError(TemplateError):
    """A blob store or record store call failed"""

    code = "UPSTREAM_STORE_ERROR"
    status_code = 500


class BlobStoreError(UpstreamStoreError):
    code = "BLOB_STORE_ERROR"


class RecordStoreError(UpstreamStoreError):
    code = "RECORD_STORE_ERROR"


class RecordReloadError(RecordStoreError):
    """
    The write was committed but reloading the row afterwards failed.

    The stored record is current; callers must not undo side effects
    the committed record depends on.
    """


class CompensationFailure(TemplateError):
    """
    A rollback or cleanup step failed.

    Only ever logged; never returned to the caller in place of the
    original error.
    """

    code = "COMPENSATION_FAILED"

    def __init__(self, message: str, storage_key: str, cause: Optional[BaseException] = None):
        self.storage_key = storage_key
        self.cause = cause
        super().__init__(message)
