"""
Educational qualifications page (/application/page3).
"""

from typing import Any, List, Optional

from admission.orchestrator.actions import (
    AddQualification,
    AddSemester,
    AddSubject,
    Hydrate,
    RemoveQualification,
    RemoveSemester,
    RemoveSubject,
    SetProfessionalField,
    SetSummaryField,
    UpdateQualification,
    UpdateSemester,
    UpdateSubject,
)
from admission.orchestrator.form_orchestrator import FormOrchestrator, SubmitResult
from admission.pages.base import PageController, response_data
from admission.schemas.application import ADDITIONAL_COURSE_OPTIONS
from admission.schemas.navigation import Route
from admission.services.uploads import (
    AbortToken,
    FileRef,
    UploadCoordinator,
    UploadTarget,
    UploadTask,
)
from admission.services.validation import NON_NEGATIVE_LABELS, sanitize_field


class QualificationsPage(PageController):
    route = Route.QUALIFICATIONS

    def __init__(self, *args, orchestrator: Optional[FormOrchestrator] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.form = orchestrator or FormOrchestrator(notifier=self.notifier)
        self.uploads = UploadCoordinator(self.api, self.notifier)

    async def load(self) -> None:
        response = await self.api.get_page3()
        data = response_data(response, "/application/page3/")
        self.form.dispatch(Hydrate(data=data))
        self.session.user_email = data.get("email") or ""
        self.session.save()

    # ==================== Qualifications ====================

    @property
    def course_options(self) -> List[str]:
        return list(ADDITIONAL_COURSE_OPTIONS)

    def add_qualification(self) -> None:
        self.form.dispatch(AddQualification())

    def update_qualification(self, index: int, field: str, value: Any) -> None:
        self.form.dispatch(UpdateQualification(index=index, field=field, value=value))

    def remove_qualification(self, index: int) -> None:
        self.form.dispatch(RemoveQualification(index=index))

    def upload_marksheet(self, index: int, file: FileRef, abort: Optional[AbortToken] = None) -> UploadTask:
        record = self.form.document.qualifications.get(index)
        target = UploadTarget.qualification(index, record.course, getattr(record, "entry_id", None))
        return self.uploads.start(file, target, self.form, abort)

    # ==================== Semesters ====================

    def add_semester(self) -> None:
        self.form.dispatch(AddSemester())

    def rename_semester(self, index: int, label: str) -> None:
        self.form.dispatch(UpdateSemester(index=index, label=label))

    def remove_semester(self, index: int) -> None:
        self.form.dispatch(RemoveSemester(index=index))

    def add_subject(self, semester_index: int) -> None:
        self.form.dispatch(AddSubject(semester_index=semester_index))

    def update_subject(self, semester_index: int, subject_index: int, field: str, value: Any) -> None:
        self.form.dispatch(UpdateSubject(
            semester_index=semester_index, subject_index=subject_index, field=field, value=value,
        ))

    def remove_subject(self, semester_index: int, subject_index: int) -> None:
        self.form.dispatch(RemoveSubject(semester_index=semester_index, subject_index=subject_index))

    def upload_semester_marksheet(self, file: FileRef, abort: Optional[AbortToken] = None) -> UploadTask:
        return self.uploads.start(file, UploadTarget.semester_marksheet(), self.form, abort)

    # ==================== Summary / professional ====================

    def set_summary_field(self, field: str, value: Any) -> None:
        self.form.dispatch(SetSummaryField(field=field, value=value))

    def set_professional_field(self, field: str, value: Any) -> None:
        if field in NON_NEGATIVE_LABELS:
            value, warning = sanitize_field(field, value)
            if warning:
                self.notifier.error(warning)
        self.form.dispatch(SetProfessionalField(field=field, value=value))

    # ==================== Navigation ====================

    async def submit(self) -> SubmitResult:
        self.loading = True
        try:
            result = await self.form.submit(self.api, self.session)
        finally:
            self.loading = False
        if result.next_route:
            self.navigator.go(result.next_route)
        return result

    def back(self) -> None:
        self.navigator.go(Route.PAGE2)
