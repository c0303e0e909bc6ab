"""
Upload Coordinator - per-slot async upload lifecycle.

Flow:
1. Check MIME type and size against the target's policy (no request on rejection)
2. Stream the multipart body in chunks, reporting progress to the sink and the task channel
3. Assign the returned file_url on success; on failure keep any previous URL

Usage:
    coordinator = UploadCoordinator(api, notifier)
    task = coordinator.start(file, UploadTarget.qualification(0, "S.S.L.C"), sink)
    async for percent in task.progress():
        ...
    outcome = await task
"""

import asyncio
import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Tuple, Union

import aiofiles

from admission.core.exceptions import (
    APIConnectionError,
    APIError,
    FileTooLargeError,
    InvalidFileTypeError,
    SessionExpiredError,
    UploadCancelledError,
    UploadFailedError,
    UploadRejectedError,
)
from admission.core.logging_config import logger
from admission.schemas.application import DocumentKind


MB = 1024 * 1024

PDF = "application/pdf"
JPEG_TYPES = ("image/jpeg", "image/jpg")

MARKSHEET_ENDPOINT = "/upload-marksheet/"
DOCUMENTS_ENDPOINT = "/upload-documents/"


# ==================== Policies ====================

@dataclass(frozen=True)
class UploadPolicy:
    """Allowed MIME types and size ceiling for an upload slot"""
    allowed_types: Tuple[str, ...]
    max_bytes: int
    pdf_max_bytes: Optional[int] = None
    type_message: Optional[str] = None
    size_message: Optional[str] = None

    def limit_for(self, content_type: str) -> int:
        if content_type == PDF and self.pdf_max_bytes:
            return self.pdf_max_bytes
        return self.max_bytes

    def check(self, file: "FileRef", target_name: str) -> None:
        """Raise an UploadRejectedError subclass when the file does not fit"""
        if file.content_type not in self.allowed_types:
            raise InvalidFileTypeError(
                file.content_type, list(self.allowed_types),
                target=target_name, message=self.type_message,
            )
        limit = self.limit_for(file.content_type)
        if file.size > limit:
            raise FileTooLargeError(file.size, limit, target=target_name, message=self.size_message)


QUALIFICATION_MARKSHEET_POLICY = UploadPolicy(
    allowed_types=(PDF, "image/jpeg", "image/jpg", "image/png"),
    max_bytes=5 * MB,
    type_message="Only PDF, JPG, JPEG, and PNG files are allowed",
    size_message="File size exceeds 5MB limit",
)

SEMESTER_MARKSHEET_POLICY = UploadPolicy(
    allowed_types=(PDF,),
    max_bytes=10 * MB,
    type_message="Only PDF files are allowed",
    size_message="File size exceeds 10MB limit",
)

DOCUMENT_POLICIES: Dict[DocumentKind, UploadPolicy] = {
    DocumentKind.PHOTO: UploadPolicy(JPEG_TYPES, 5 * MB),
    DocumentKind.SIGNATURE: UploadPolicy(JPEG_TYPES, 5 * MB),
    DocumentKind.COMMUNITY_CERTIFICATE: UploadPolicy(JPEG_TYPES + (PDF,), 5 * MB, pdf_max_bytes=10 * MB),
    DocumentKind.AADHAR_CARD: UploadPolicy(JPEG_TYPES + (PDF,), 5 * MB),
    DocumentKind.TRANSFER_CERTIFICATE: UploadPolicy(JPEG_TYPES + (PDF,), 5 * MB, pdf_max_bytes=10 * MB),
}


# ==================== Targets ====================

class UploadTargetKind(str, Enum):
    QUALIFICATION = "qualification"
    SEMESTER_MARKSHEET = "semester_marksheet"
    DOCUMENT = "document"


@dataclass(frozen=True)
class UploadTarget:
    """Where an upload goes and which record slot it fills"""
    kind: UploadTargetKind
    policy: UploadPolicy
    endpoint: str
    file_field: str = "file"
    index: Optional[int] = None
    document: Optional[DocumentKind] = None
    qualification_type: Optional[str] = None
    entry_id: Optional[str] = None

    @classmethod
    def qualification(cls, index: int, course: str = "", entry_id: Optional[str] = None) -> "UploadTarget":
        """Marksheet slot of a qualification; additional entries pass their entry_id"""
        return cls(
            kind=UploadTargetKind.QUALIFICATION,
            policy=QUALIFICATION_MARKSHEET_POLICY,
            endpoint=MARKSHEET_ENDPOINT,
            index=index,
            qualification_type=course or f"Qualification {index + 1}",
            entry_id=entry_id,
        )

    @classmethod
    def semester_marksheet(cls) -> "UploadTarget":
        return cls(
            kind=UploadTargetKind.SEMESTER_MARKSHEET,
            policy=SEMESTER_MARKSHEET_POLICY,
            endpoint=MARKSHEET_ENDPOINT,
            qualification_type="Semester Marks",
        )

    @classmethod
    def for_document(cls, document: Union[DocumentKind, str]) -> "UploadTarget":
        document = DocumentKind(document)
        return cls(
            kind=UploadTargetKind.DOCUMENT,
            policy=DOCUMENT_POLICIES[document],
            endpoint=DOCUMENTS_ENDPOINT,
            file_field=document.value,
            document=document,
        )

    @property
    def label(self) -> str:
        """Stable key for logs"""
        if self.kind == UploadTargetKind.QUALIFICATION:
            return f"qualification_{self.index}"
        if self.kind == UploadTargetKind.DOCUMENT:
            return self.document.value
        return self.kind.value

    @property
    def requires_file_url(self) -> bool:
        """Document uploads succeed on status alone; marksheets need the returned URL"""
        return self.kind != UploadTargetKind.DOCUMENT

    @property
    def display_name(self) -> str:
        if self.kind == UploadTargetKind.DOCUMENT:
            return self.document.value.replace("_", " ", 1)
        if self.kind == UploadTargetKind.SEMESTER_MARKSHEET:
            return "semester marksheet"
        return "marksheet"

    @property
    def success_message(self) -> str:
        if self.kind == UploadTargetKind.QUALIFICATION:
            return "Marksheet uploaded successfully!"
        if self.kind == UploadTargetKind.SEMESTER_MARKSHEET:
            return "Semester marksheet uploaded successfully!"
        return f"Uploaded {self.display_name}"

    def failure_message(self, reason: Optional[str]) -> str:
        if self.kind == UploadTargetKind.DOCUMENT:
            return reason or "Network error occurred while uploading documents"
        return f"Error uploading marksheet: {reason or 'Failed to upload marksheet'}"

    def form_fields(self, email: str) -> Dict[str, str]:
        fields = {"email": email or ""}
        if self.qualification_type is not None:
            fields["qualification_type"] = self.qualification_type
        return fields


# ==================== Files / cancellation ====================

@dataclass(frozen=True)
class FileRef:
    """File picked for upload"""
    file_name: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    async def from_path(cls, path: Union[str, Path], content_type: Optional[str] = None) -> "FileRef":
        path = Path(path)
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
        if content_type is None:
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(file_name=path.name, content_type=content_type, content=content)


class AbortToken:
    """Cancels an in-flight upload between chunks"""

    def __init__(self):
        self._aborted = False

    def abort(self) -> None:
        self._aborted = True

    @property
    def aborted(self) -> bool:
        return self._aborted


@dataclass(frozen=True)
class UploadOutcome:
    status: str  # success | rejected | failed | cancelled
    file_url: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "success"


class UploadSink(Protocol):
    """Receives upload state changes for one slot"""

    def progress(self, target: UploadTarget, percent: int) -> None: ...

    def succeeded(self, target: UploadTarget, file_url: str, file_name: str) -> None: ...

    def failed(self, target: UploadTarget, cancelled: bool = False) -> None: ...


class UploadTask:
    """Awaitable handle for a running upload with a progress channel"""

    def __init__(self, target: UploadTarget, abort_token: AbortToken):
        self.target = target
        self.abort_token = abort_token
        self._channel: "asyncio.Queue[Optional[int]]" = asyncio.Queue()
        self._task: Optional["asyncio.Task[UploadOutcome]"] = None

    def publish(self, percent: int) -> None:
        self._channel.put_nowait(percent)

    def close(self) -> None:
        self._channel.put_nowait(None)

    async def progress(self) -> AsyncIterator[int]:
        """Yield progress values until the upload settles"""
        while True:
            value = await self._channel.get()
            if value is None:
                return
            yield value

    def abort(self) -> None:
        self.abort_token.abort()

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def __await__(self):
        return self._task.__await__()


# ==================== Coordinator ====================

class UploadCoordinator:
    """Runs uploads through the API client and reports to a sink + notifier"""

    def __init__(self, api: Any, notifier: Any = None):
        self.api = api
        self.notifier = notifier

    def start(
        self,
        file: FileRef,
        target: UploadTarget,
        sink: UploadSink,
        abort: Optional[AbortToken] = None,
    ) -> UploadTask:
        task = UploadTask(target, abort or AbortToken())
        task._task = asyncio.ensure_future(self._run(file, target, sink, task))
        return task

    async def upload(
        self,
        file: FileRef,
        target: UploadTarget,
        sink: UploadSink,
        abort: Optional[AbortToken] = None,
    ) -> UploadOutcome:
        return await self.start(file, target, sink, abort)

    async def _run(self, file: FileRef, target: UploadTarget, sink: UploadSink,
                   task: UploadTask) -> UploadOutcome:
        try:
            return await self._upload(file, target, sink, task)
        finally:
            task.close()

    async def _upload(self, file: FileRef, target: UploadTarget, sink: UploadSink,
                      task: UploadTask) -> UploadOutcome:
        try:
            target.policy.check(file, target.display_name)
        except UploadRejectedError as e:
            logger.log_upload_event(target.label, "rejected", file.file_name, file.size, reason=e.code)
            self._notify("error", e.message)
            return UploadOutcome(status="rejected", message=e.message)

        logger.log_upload_event(target.label, "started", file.file_name, file.size)

        def on_progress(percent: int) -> None:
            sink.progress(target, percent)
            task.publish(percent)

        try:
            response = await self.api.upload(
                target.endpoint,
                files={target.file_field: (file.file_name, file.content, file.content_type)},
                data=target.form_fields(self.api.session.user_email),
                on_progress=on_progress,
                is_aborted=lambda: task.abort_token.aborted,
            )
        except UploadCancelledError as e:
            sink.failed(target, cancelled=True)
            logger.log_upload_event(target.label, "cancelled", file.file_name, file.size)
            self._notify("warning", f"{e.message}: {target.display_name}")
            return UploadOutcome(status="cancelled", message=e.message)
        except SessionExpiredError:
            sink.failed(target)
            logger.log_upload_event(target.label, "failed", file.file_name, file.size, reason="SESSION_EXPIRED")
            raise
        except APIError as e:
            return self._fail(target, sink, file, _server_message(e.payload) or e.message)
        except APIConnectionError as e:
            return self._fail(target, sink, file, e.message)

        body = response.body
        file_url = body.get("file_url") or ""
        if not response.is_status_success or (target.requires_file_url and not file_url):
            return self._fail(target, sink, file, _server_message(body))

        sink.succeeded(target, file_url, file.file_name)
        logger.log_upload_event(target.label, "succeeded", file.file_name, file.size)
        self._notify("success", target.success_message)
        return UploadOutcome(status="success", file_url=file_url)

    def _fail(self, target: UploadTarget, sink: UploadSink, file: FileRef,
              reason: Optional[str]) -> UploadOutcome:
        error = UploadFailedError(target.failure_message(reason), target=target.label)
        sink.failed(target)
        logger.log_upload_event(target.label, "failed", file.file_name, file.size, reason=reason or error.code)
        self._notify("error", error.message)
        return UploadOutcome(status="failed", message=error.message)

    def _notify(self, level: str, message: str) -> None:
        if self.notifier is not None:
            getattr(self.notifier, level)(message)


def _server_message(payload: Any) -> Optional[str]:
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return None
