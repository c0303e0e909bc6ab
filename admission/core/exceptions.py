"""
Custom Exceptions for the Admission Portal client
==================================================

Usage:
    from admission.core.exceptions import SessionExpiredError, UploadRejectedError

    try:
        await api.get_page3()
    except SessionExpiredError:
        navigator.go(Route.LOGIN)
"""

from typing import Optional, Any, Dict, List


class AdmissionError(Exception):
    """Base exception for all admission client errors"""

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication Errors
# ============================================

class AuthenticationError(AdmissionError):
    """No usable auth token"""

    def __init__(self, message: str = "Please login again."):
        super().__init__(message, code="AUTH_REQUIRED")


class SessionExpiredError(AuthenticationError):
    """Backend rejected the token (HTTP 401)"""

    def __init__(self, message: str = "Session expired. Please login again."):
        super().__init__(message)
        self.code = "SESSION_EXPIRED"


# ============================================
# Validation Errors (caller misuse, not form input)
# ============================================

class ValidationError(AdmissionError):
    """Invalid operation on the form document"""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class RecordIndexError(ValidationError):
    """Record index out of range"""

    def __init__(self, collection: str, index: int, size: int):
        super().__init__(f"{collection} index {index} out of range (size {size})")
        self.code = "RECORD_INDEX_OUT_OF_RANGE"
        self.details = {"collection": collection, "index": index, "size": size}


class MandatoryQualificationError(ValidationError):
    """S.S.L.C and HSC entries cannot be removed or re-typed"""

    def __init__(self, course: str, operation: str = "remove"):
        super().__init__(f"{course} qualification is mandatory and cannot be {operation}d", field="course")
        self.code = "MANDATORY_QUALIFICATION"
        self.details["course"] = course


class InvalidOptionError(ValidationError):
    """Select value not among the offered options"""

    def __init__(self, field: str, value: str, options: List[str]):
        super().__init__(f"'{value}' is not a valid option for {field}", field=field)
        self.code = "INVALID_OPTION"
        self.details["options"] = options


class FormInvalidError(ValidationError):
    """Form has validation errors"""

    def __init__(self, errors: Dict[str, List[str]]):
        super().__init__("Please fix all errors before submitting.")
        self.code = "FORM_INVALID"
        self.details = {"errors": errors}


# ============================================
# Upload Errors
# ============================================

class UploadError(AdmissionError):
    """Base class for upload errors"""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message, code="UPLOAD_ERROR")
        if target:
            self.details["target"] = target


class UploadRejectedError(UploadError):
    """File rejected locally; no request was made"""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message, target)
        self.code = "UPLOAD_REJECTED"


class InvalidFileTypeError(UploadRejectedError):
    """File type not allowed for the target"""

    def __init__(self, file_type: str, allowed_types: list, target: Optional[str] = None,
                 message: Optional[str] = None):
        super().__init__(
            message or f"Invalid file type for {target or 'upload'}. Allowed: {', '.join(allowed_types)}",
            target
        )
        self.code = "INVALID_FILE_TYPE"
        self.details.update({"file_type": file_type, "allowed_types": allowed_types})


class FileTooLargeError(UploadRejectedError):
    """File exceeds the size ceiling for the target"""

    def __init__(self, size_bytes: int, max_bytes: int, target: Optional[str] = None,
                 message: Optional[str] = None):
        super().__init__(
            message or f"File size for {target or 'upload'} exceeds {max_bytes // (1024 * 1024)}MB",
            target
        )
        self.code = "FILE_TOO_LARGE"
        self.details.update({"size_bytes": size_bytes, "max_bytes": max_bytes})


class UploadFailedError(UploadError):
    """Request was made and the server or network failed it"""

    def __init__(self, message: str = "Failed to upload file", target: Optional[str] = None):
        super().__init__(message, target)
        self.code = "UPLOAD_FAILED"


class UploadCancelledError(UploadError):
    """Upload aborted through its abort token"""

    def __init__(self, target: Optional[str] = None):
        super().__init__("Upload cancelled", target)
        self.code = "UPLOAD_CANCELLED"


# ============================================
# API Errors
# ============================================

class APIError(AdmissionError):
    """Backend returned a non-2xx response"""

    def __init__(self, status_code: int, payload: Any = None, message: Optional[str] = None):
        if message is None:
            if isinstance(payload, dict) and payload.get("message"):
                message = str(payload["message"])
            else:
                message = f"Request failed with status {status_code}"
        super().__init__(message, code="API_ERROR")
        self.status_code = status_code
        self.payload = payload
        self.details = {"status_code": status_code}


class APIConnectionError(AdmissionError):
    """Backend unreachable"""

    def __init__(self, message: str = "Error connecting to server."):
        super().__init__(message, code="API_UNREACHABLE")


class HydrationError(AdmissionError):
    """Response arrived but did not carry the expected data"""

    def __init__(self, message: str = "Error fetching data", endpoint: Optional[str] = None):
        super().__init__(message, code="HYDRATION_FAILED")
        if endpoint:
            self.details["endpoint"] = endpoint


# ============================================
# Payment Errors
# ============================================

class PaymentError(AdmissionError):
    """Payment operation failed"""

    def __init__(self, message: str):
        super().__init__(message, code="PAYMENT_ERROR")


class OrderCreationError(PaymentError):
    """Order could not be created after retries"""

    def __init__(self, attempts: int):
        super().__init__("Failed to create order.")
        self.code = "ORDER_CREATION_FAILED"
        self.details["attempts"] = attempts


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: AdmissionError) -> Dict[str, Any]:
    """Convert exception to the error response format used by the CLI --json output"""
    return {
        "success": False,
        "error": error.to_dict()
    }
