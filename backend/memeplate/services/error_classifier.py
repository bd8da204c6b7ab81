"""
Error Classifier - Map exceptions to API error codes and HTTP statuses
"""

from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError

from memeplate.core.errors import (
    BlobStoreError,
    NotFoundError,
    RecordStoreError,
    TemplateError,
    ValidationError,
)


class ErrorClassifier:
    """
    Classify errors for the JSON error envelope

    Nothing is retried automatically; `retryable` only tells the caller
    whether re-issuing the same request may succeed.
    """

    # Error codes
    ERROR_VALIDATION_FAILED = "VALIDATION_ERROR"
    ERROR_TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
    ERROR_BLOB_STORE = "BLOB_STORE_ERROR"
    ERROR_RECORD_STORE = "RECORD_STORE_ERROR"
    ERROR_UNKNOWN = "INTERNAL_ERROR"

    def classify(self, error: Exception) -> Dict[str, Any]:
        """
        Classify error with user-facing message

        Args:
            error: Exception to classify

        Returns:
            Dict with code, message, status_code, retryable
        """
        if isinstance(error, ValidationError):
            return {
                "code": error.code,
                "message": error.message,
                "status_code": 400,
                "retryable": False,
            }

        elif isinstance(error, NotFoundError):
            return {
                "code": self.ERROR_TEMPLATE_NOT_FOUND,
                "message": error.message,
                "status_code": 404,
                "retryable": False,
            }

        elif isinstance(error, BlobStoreError):
            return {
                "code": self.ERROR_BLOB_STORE,
                "message": error.message,
                "status_code": 500,
                "retryable": True,
            }

        elif isinstance(error, RecordStoreError):
            return {
                "code": self.ERROR_RECORD_STORE,
                "message": error.message,
                "status_code": 500,
                "retryable": True,
            }

        elif isinstance(error, TemplateError):
            return {
                "code": error.code,
                "message": error.message,
                "status_code": error.status_code,
                "retryable": error.status_code >= 500,
            }

        if isinstance(error, SQLAlchemyError):
            return {
                "code": self.ERROR_RECORD_STORE,
                "message": str(error),
                "status_code": 500,
                "retryable": True,
            }

        # Default - unknown error
        return {
            "code": self.ERROR_UNKNOWN,
            "message": str(error) or "Internal server error",
            "status_code": 500,
            "retryable": False,
        }
