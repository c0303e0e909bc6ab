"""
Document uploads page (/application/page4).

Each slot uploads on its own through the Upload Coordinator; a success status
marks the slot uploaded even when no URL comes back. Submit only checks that
something was uploaded and advances to the preview.
"""

from typing import Dict, Optional, Union

from admission.core.exceptions import HydrationError
from admission.core.logging_config import logger
from admission.pages.base import PageController
from admission.schemas.application import DocumentKind, DocumentSlot, UploadState
from admission.schemas.navigation import Route
from admission.services.uploads import (
    AbortToken,
    FileRef,
    UploadCoordinator,
    UploadTarget,
    UploadTask,
)


MISSING_EMAIL_MESSAGE = "User email not found. Please try logging in again."
NO_DOCUMENTS_MESSAGE = "Please upload at least one document."
DOCUMENTS_DONE_MESSAGE = "Documents uploaded successfully!"


class DocumentsPage(PageController):
    route = Route.DOCUMENTS

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.email = ""
        self.slots: Dict[DocumentKind, DocumentSlot] = {
            kind: DocumentSlot(kind=kind) for kind in DocumentKind
        }
        self.uploads = UploadCoordinator(self.api, self.notifier)

    async def load(self) -> None:
        response = await self.api.get_current_user_email()
        if not response.is_status_success:
            raise HydrationError(
                str(response.body.get("message") or "Failed to fetch user email"),
                endpoint="/current-user-email/",
            )
        data = response.body.get("data") or {}
        self.email = data.get("email") or ""
        self.session.user_email = self.email
        self.session.save()

    # ==================== Slots ====================

    def upload(self, kind: Union[DocumentKind, str], file: FileRef,
               abort: Optional[AbortToken] = None) -> UploadTask:
        return self.uploads.start(file, UploadTarget.for_document(kind), self, abort)

    def remove(self, kind: Union[DocumentKind, str]) -> None:
        kind = DocumentKind(kind)
        self.slots[kind] = DocumentSlot(kind=kind)
        self.notifier.success(f"Removed {kind.value.replace('_', ' ', 1)}")

    @property
    def uploaded(self) -> Dict[DocumentKind, str]:
        """Uploaded kinds and their URL (empty when the server returned none)"""
        return {kind: slot.url for kind, slot in self.slots.items() if slot.uploaded}

    # ==================== UploadSink ====================

    def progress(self, target: UploadTarget, percent: int) -> None:
        slot = self.slots[target.document]
        self.slots[target.document] = slot.model_copy(update={
            "upload": slot.upload.model_copy(update={"progress": percent, "error": False}),
        })

    def succeeded(self, target: UploadTarget, file_url: str, file_name: str = "") -> None:
        self.slots[target.document] = DocumentSlot(
            kind=target.document, url=file_url, uploaded=True, upload=UploadState(file_name=file_name),
        )

    def failed(self, target: UploadTarget, cancelled: bool = False) -> None:
        slot = self.slots[target.document]
        self.slots[target.document] = slot.model_copy(update={
            "upload": slot.upload.model_copy(update={"progress": 0, "error": True}),
        })

    # ==================== Navigation ====================

    def submit(self) -> bool:
        if not self.email:
            self.notifier.error(MISSING_EMAIL_MESSAGE)
            return False
        if not self.uploaded:
            self.notifier.error(NO_DOCUMENTS_MESSAGE)
            return False
        logger.info(f"[Documents] {len(self.uploaded)} document(s) uploaded, moving to preview")
        self.notifier.success(DOCUMENTS_DONE_MESSAGE)
        self.navigator.go(Route.PREVIEW)
        return True

    def back(self) -> None:
        self.navigator.go(Route.QUALIFICATIONS)
