"""
Form Orchestrator - single writer for the educational qualifications form.

Every edit is dispatched as an action, applied synchronously by the reducer,
then validation is recomputed and subscribers are notified. Only the
subscriber notification is debounced; state transitions never wait.
"""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from admission.core.config import settings
from admission.core.exceptions import (
    APIConnectionError,
    APIError,
    RecordIndexError,
    SessionExpiredError,
)
from admission.core.logging_config import logger
from admission.orchestrator.actions import (
    RemoveQualification,
    UploadFailed,
    UploadProgressed,
    UploadSucceeded,
)
from admission.orchestrator.reducer import reduce
from admission.schemas.application import Semester
from admission.schemas.navigation import Route
from admission.services.records import FormDocument
from admission.services.uploads import UploadTarget
from admission.services.validation import (
    SEMESTER_MARKSHEET_MESSAGE,
    is_blank,
    is_optional_semester,
    parse_number,
    qualification_errors,
    semester_errors,
    summary_field_error,
    validate_non_negative,
)


LOGIN_AGAIN_MESSAGE = "Please login again."
FIX_ERRORS_MESSAGE = "Please fix all errors before submitting."
SUBMIT_FAILED_MESSAGE = "Submission failed"
SUBMIT_SUCCESS_MESSAGE = "Page 3 submitted successfully!"
SUBMIT_IN_FLIGHT_MESSAGE = "Submission already in progress"

SUMMARY_REQUIRED_FIELDS = ("total_max_marks", "total_obtained_marks", "percentage", "class_obtained")
NUMERIC_SUMMARY_FIELDS = ("total_max_marks", "total_obtained_marks", "percentage")
NON_NEGATIVE_FIELDS = ("years_experience", "annual_income")


@dataclass(frozen=True)
class ValidationReport:
    errors: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class SubmitResult:
    success: bool
    message: str = ""
    next_route: Optional[str] = None
    field_errors: Dict[str, List[str]] = field(default_factory=dict)


def validate_document(doc: FormDocument) -> ValidationReport:
    """Run every record check; keys follow the form's error map"""
    errors: Dict[str, List[str]] = {}

    for index, qualification in enumerate(doc.qualifications.entries):
        problems = qualification_errors(qualification)
        if problems:
            errors[f"qualification_{index}"] = problems

    for index, semester in enumerate(doc.semesters.semesters):
        problems = semester_errors(semester, index)
        if problems:
            errors[f"semester_{index}"] = problems

    if doc.semesters.count > 0:
        if is_blank(doc.semester_marksheet.url):
            errors["semester_marksheet"] = [SEMESTER_MARKSHEET_MESSAGE]
        for name in SUMMARY_REQUIRED_FIELDS:
            message = summary_field_error(name, getattr(doc.summary, name))
            if message:
                errors[name] = [message]

    for name in NON_NEGATIVE_FIELDS:
        result = validate_non_negative(name, getattr(doc.professional, name))
        if not result.valid:
            errors[name] = [result.error]

    return ValidationReport(errors=errors)


def normalize_field_errors(payload: Dict[str, Any]) -> Dict[str, List[str]]:
    """Server error body -> {field: [messages]}"""
    normalized: Dict[str, List[str]] = {}
    for key, value in payload.items():
        if isinstance(value, (list, tuple)):
            normalized[str(key)] = [str(item) for item in value]
        else:
            normalized[str(key)] = [str(value)]
    return normalized


def _to_float(value: str) -> Optional[float]:
    if is_blank(value):
        return None
    number = parse_number(value)
    return None if math.isnan(number) else number


def _semester_is_submittable(semester: Semester, index: int) -> bool:
    if is_blank(semester.semester):
        return False
    if not all(subject.is_complete() for subject in semester.subjects):
        return False
    return is_optional_semester(index) or bool(semester.subjects)


class RenderDebouncer:
    """Coalesces change notifications for views; falls back to immediate calls outside an event loop"""

    def __init__(self, callback: Callable[[], None], delay: Optional[float] = None):
        self.callback = callback
        self.delay = settings.RENDER_DEBOUNCE_SECONDS if delay is None else delay
        self._handle: Optional[asyncio.TimerHandle] = None

    def trigger(self) -> None:
        if self.delay <= 0:
            self.callback()
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.callback()
            return
        self.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        self.callback()

    def flush(self) -> None:
        if self._handle is not None:
            self.cancel()
            self.callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None


class FormOrchestrator:
    """
    Owns the Form Document for the qualifications page.

    Also acts as the UploadSink for marksheet uploads, turning upload
    callbacks into UploadProgressed / UploadSucceeded / UploadFailed actions.
    """

    def __init__(
        self,
        document: Optional[FormDocument] = None,
        notifier: Any = None,
        debounce_seconds: Optional[float] = None,
    ):
        self._document = (document or FormDocument()).with_totals()
        self.notifier = notifier
        self._subscribers: List[Callable[[FormDocument, ValidationReport], None]] = []
        self._server_errors: Dict[str, List[str]] = {}
        self._report = validate_document(self._document)
        self._submitting = False
        self._debouncer = RenderDebouncer(self._notify_subscribers, debounce_seconds)

    # ==================== State ====================

    @property
    def document(self) -> FormDocument:
        return self._document

    @property
    def errors(self) -> Dict[str, List[str]]:
        return self.validate_all().errors

    @property
    def is_valid(self) -> bool:
        return self.validate_all().is_valid

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    @property
    def orphaned_semesters(self) -> bool:
        """Semesters remain although no additional qualification does"""
        return self._document.semesters.count > 0 and not self._document.qualifications.additional

    # ==================== Dispatch ====================

    def dispatch(self, action: Any) -> FormDocument:
        self._document = reduce(self._document, action)
        self._server_errors = {}
        self._report = validate_document(self._document)

        if isinstance(action, RemoveQualification) and self.orphaned_semesters:
            logger.warning(
                f"[Form] {self._document.semesters.count} semester(s) remain without an additional qualification"
            )

        self._debouncer.trigger()
        return self._document

    def subscribe(self, callback: Callable[[FormDocument, ValidationReport], None]) -> Callable[[], None]:
        """Register a view callback; returns an unsubscribe function"""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def flush(self) -> None:
        """Deliver a pending debounced notification now"""
        self._debouncer.flush()

    def _notify_subscribers(self) -> None:
        report = self.validate_all()
        for callback in list(self._subscribers):
            callback(self._document, report)

    # ==================== Validation ====================

    def validate_all(self) -> ValidationReport:
        if not self._server_errors:
            return self._report
        merged = {key: list(messages) for key, messages in self._report.errors.items()}
        for key, messages in self._server_errors.items():
            existing = merged.setdefault(key, [])
            existing.extend(message for message in messages if message not in existing)
        return ValidationReport(errors=merged)

    def merge_server_errors(self, errors: Dict[str, Any]) -> None:
        """Merged errors stay visible until the next dispatch"""
        for key, messages in normalize_field_errors(errors).items():
            existing = self._server_errors.setdefault(key, [])
            existing.extend(message for message in messages if message not in existing)
        self._debouncer.trigger()

    # ==================== Serialization ====================

    def build_payload(self) -> Dict[str, Any]:
        doc = self._document
        qualifications = doc.qualifications
        additional = qualifications.additional

        payload: Dict[str, Any] = {
            "email": doc.email,
            "name_initial": doc.name_initial,
            "qualifications": [
                entry.to_payload() for entry in qualifications.entries if entry.is_complete()
            ],
            "sslc_marksheet_url": qualifications.sslc.marksheet_url.strip(),
            "hsc_marksheet_url": qualifications.hsc.marksheet_url.strip(),
            "ug_marksheet_url": additional[0].marksheet_url.strip() if additional else "",
            "semester_marksheet_url": doc.semester_marksheet.url.strip(),
            "semester_marks": [
                {
                    "semester": semester.semester,
                    "subjects": [subject.model_dump() for subject in semester.subjects],
                }
                for index, semester in enumerate(doc.semesters.semesters)
                if _semester_is_submittable(semester, index)
            ],
            "cgpa": doc.summary.cgpa,
            "overall_grade": doc.summary.overall_grade,
            "class_obtained": doc.summary.class_obtained,
            "current_designation": doc.professional.current_designation,
            "current_institute": doc.professional.current_institute,
        }
        for name in NUMERIC_SUMMARY_FIELDS:
            payload[name] = _to_float(getattr(doc.summary, name))
        for name in NON_NEGATIVE_FIELDS:
            payload[name] = _to_float(getattr(doc.professional, name))
        return payload

    # ==================== Submission ====================

    async def submit(self, api: Any, session: Any) -> SubmitResult:
        """
        POST the page-3 payload.

        Returns:
            SubmitResult; next_route is set for success (page 4) and for
            auth failures (login)
        """
        if self._submitting:
            logger.warning("[Form] Submit ignored: a submission is already in flight")
            return SubmitResult(success=False, message=SUBMIT_IN_FLIGHT_MESSAGE)

        if not session.token:
            self._notify("error", LOGIN_AGAIN_MESSAGE)
            return SubmitResult(success=False, message=LOGIN_AGAIN_MESSAGE, next_route=Route.LOGIN.value)

        report = self.validate_all()
        if not report.is_valid:
            self._notify("error", FIX_ERRORS_MESSAGE)
            logger.info(f"[Form] Submit blocked by {len(report.errors)} error group(s)")
            return SubmitResult(success=False, message=FIX_ERRORS_MESSAGE, field_errors=report.errors)

        self._submitting = True
        try:
            response = await api.submit_page3(self.build_payload())
        except SessionExpiredError as e:
            self._notify("error", e.message)
            return SubmitResult(success=False, message=e.message, next_route=Route.LOGIN.value)
        except APIError as e:
            return self._submission_failed(e)
        except APIConnectionError as e:
            logger.log_error_with_context(e, context="page3 submit")
            self._notify("error", e.message)
            return SubmitResult(success=False, message=e.message)
        finally:
            self._submitting = False

        if response.is_status_success:
            logger.info("[Form] Page 3 submitted")
            self._notify("success", SUBMIT_SUCCESS_MESSAGE)
            return SubmitResult(success=True, message=SUBMIT_SUCCESS_MESSAGE, next_route=Route.DOCUMENTS.value)

        message = str(response.body.get("message") or SUBMIT_FAILED_MESSAGE)
        self._notify("error", message)
        return SubmitResult(success=False, message=message)

    def _submission_failed(self, error: APIError) -> SubmitResult:
        payload = error.payload
        if isinstance(payload, dict) and payload:
            field_errors = normalize_field_errors(payload)
            self.merge_server_errors(field_errors)
            details = "; ".join(f"{key}: {'; '.join(messages)}" for key, messages in field_errors.items())
            message = f"{SUBMIT_FAILED_MESSAGE}: {details}"
            logger.warning(f"[Form] Server rejected page 3 ({error.status_code}): {details}")
            self._notify("error", message)
            return SubmitResult(success=False, message=message, field_errors=field_errors)

        message = payload if isinstance(payload, str) and payload.strip() else "Error submitting form"
        logger.warning(f"[Form] Page 3 submit failed with status {error.status_code}")
        self._notify("error", message)
        return SubmitResult(success=False, message=message)

    def _notify(self, level: str, message: str) -> None:
        if self.notifier is not None:
            getattr(self.notifier, level)(message)

    # ==================== UploadSink ====================

    def progress(self, target: UploadTarget, percent: int) -> None:
        self._dispatch_upload(UploadProgressed(target=target, percent=percent))

    def succeeded(self, target: UploadTarget, file_url: str, file_name: str = "") -> None:
        self._dispatch_upload(UploadSucceeded(target=target, file_url=file_url, file_name=file_name))

    def failed(self, target: UploadTarget, cancelled: bool = False) -> None:
        self._dispatch_upload(UploadFailed(target=target, cancelled=cancelled))

    def _dispatch_upload(self, action: Any) -> None:
        try:
            self.dispatch(action)
        except RecordIndexError:
            # Entry removed while its upload was running
            logger.warning(f"[Form] Dropping upload update for removed slot {action.target.label}")
