"""
Pure reducer: (FormDocument, action) -> FormDocument.

Derived aggregate totals are recomputed after every semester mutation and
after hydration. Misuse (bad index, removing a mandatory entry, unknown
select option) raises ValidationError subclasses; form input problems never
raise here, they show up in validate_all().
"""

from typing import Any, Callable, Dict, Type

from admission.core.exceptions import (
    InvalidOptionError,
    MandatoryQualificationError,
    RecordIndexError,
    ValidationError,
)
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
    UploadFailed,
    UploadProgressed,
    UploadSucceeded,
)
from admission.schemas.application import (
    QUALIFICATION_FIELDS,
    SELECT_OPTIONS,
    SUBJECT_FIELDS,
    SUMMARY_INPUT_FIELDS,
    MandatoryQualification,
    ProfessionalDetails,
    UploadState,
    as_text,
)
from admission.services.records import FormDocument
from admission.services.uploads import UploadTargetKind


EDITABLE_QUALIFICATION_FIELDS = QUALIFICATION_FIELDS + ("marksheet_url",)


def _check_option(field: str, value: str) -> None:
    options = SELECT_OPTIONS.get(field)
    if options is not None and value != "" and value not in options:
        raise InvalidOptionError(field, value, options)


def _edited(record, field: str, value: Any, allowed) -> Any:
    if field not in allowed:
        raise ValidationError(f"Unknown field '{field}'", field=field)
    text = as_text(value)
    _check_option(field, text)
    return record.model_copy(update={field: text})


# ==================== Qualifications ====================

def _add_qualification(doc: FormDocument, action: AddQualification) -> FormDocument:
    return doc.model_copy(update={
        "qualifications": doc.qualifications.add(),
        "semesters": doc.semesters.add_batch(),
    }).with_totals()


def _update_qualification(doc: FormDocument, action: UpdateQualification) -> FormDocument:
    if action.record is not None:
        record = action.record
        _check_option("mode_of_study", record.mode_of_study)
    else:
        current = doc.qualifications.get(action.index)
        if action.field == "course" and isinstance(current, MandatoryQualification):
            raise MandatoryQualificationError(current.course, operation="change")
        record = _edited(current, action.field, action.value, EDITABLE_QUALIFICATION_FIELDS)
    return doc.model_copy(update={"qualifications": doc.qualifications.update(action.index, record)})


def _remove_qualification(doc: FormDocument, action: RemoveQualification) -> FormDocument:
    return doc.model_copy(update={
        "qualifications": doc.qualifications.remove(action.index),
        "semesters": doc.semesters.trim_tail(),
    }).with_totals()


# ==================== Semesters / subjects ====================

def _add_semester(doc: FormDocument, action: AddSemester) -> FormDocument:
    return doc.model_copy(update={"semesters": doc.semesters.add()}).with_totals()


def _update_semester(doc: FormDocument, action: UpdateSemester) -> FormDocument:
    if action.record is not None:
        record = action.record
        for subject in record.subjects:
            _check_option("category", subject.category)
    else:
        current = doc.semesters.get(action.index)
        record = current.model_copy(update={"semester": as_text(action.label)})
    return doc.model_copy(update={"semesters": doc.semesters.update(action.index, record)}).with_totals()


def _remove_semester(doc: FormDocument, action: RemoveSemester) -> FormDocument:
    return doc.model_copy(update={"semesters": doc.semesters.remove(action.index)}).with_totals()


def _add_subject(doc: FormDocument, action: AddSubject) -> FormDocument:
    return doc.model_copy(update={"semesters": doc.semesters.add_subject(action.semester_index)}).with_totals()


def _update_subject(doc: FormDocument, action: UpdateSubject) -> FormDocument:
    if action.record is not None:
        record = action.record
        _check_option("category", record.category)
    else:
        semester = doc.semesters.get(action.semester_index)
        if not 0 <= action.subject_index < len(semester.subjects):
            raise RecordIndexError(
                f"semester {action.semester_index} subjects", action.subject_index, len(semester.subjects)
            )
        record = _edited(semester.subjects[action.subject_index], action.field, action.value, SUBJECT_FIELDS)
    semesters = doc.semesters.update_subject(action.semester_index, action.subject_index, record)
    return doc.model_copy(update={"semesters": semesters}).with_totals()


def _remove_subject(doc: FormDocument, action: RemoveSubject) -> FormDocument:
    semesters = doc.semesters.remove_subject(action.semester_index, action.subject_index)
    return doc.model_copy(update={"semesters": semesters}).with_totals()


# ==================== Summary / professional ====================

def _set_summary_field(doc: FormDocument, action: SetSummaryField) -> FormDocument:
    if action.field not in SUMMARY_INPUT_FIELDS:
        raise ValidationError(f"'{action.field}' is derived from semester marks or unknown", field=action.field)
    return doc.model_copy(update={"summary": _edited(doc.summary, action.field, action.value, SUMMARY_INPUT_FIELDS)})


def _set_professional_field(doc: FormDocument, action: SetProfessionalField) -> FormDocument:
    professional = _edited(doc.professional, action.field, action.value, tuple(ProfessionalDetails.model_fields))
    return doc.model_copy(update={"professional": professional})


# ==================== Upload state ====================

def _with_upload(doc: FormDocument, target, **changes) -> FormDocument:
    """Apply record changes to the slot an upload target points at"""
    if target.kind == UploadTargetKind.QUALIFICATION:
        if target.entry_id is not None:
            index = doc.qualifications.index_of(target.entry_id)
        else:
            index = target.index
        record = doc.qualifications.get(index)
        upload = record.upload.model_copy(update=changes.pop("upload"))
        updated = record.model_copy(update={"upload": upload, **changes})
        return doc.model_copy(update={"qualifications": doc.qualifications.update(index, updated)})

    if target.kind == UploadTargetKind.SEMESTER_MARKSHEET:
        slot = doc.semester_marksheet
        upload = slot.upload.model_copy(update=changes.pop("upload"))
        url = changes.pop("marksheet_url", slot.url)
        return doc.model_copy(update={"semester_marksheet": slot.model_copy(update={"upload": upload, "url": url})})

    raise ValidationError("Document uploads are tracked by the documents page", field=target.label)


def _upload_progressed(doc: FormDocument, action: UploadProgressed) -> FormDocument:
    percent = max(0, min(100, int(action.percent)))
    return _with_upload(doc, action.target, upload={"progress": percent, "error": False})


def _upload_succeeded(doc: FormDocument, action: UploadSucceeded) -> FormDocument:
    return _with_upload(
        doc, action.target,
        marksheet_url=action.file_url,
        upload=UploadState(file_name=action.file_name).model_dump(),
    )


def _upload_failed(doc: FormDocument, action: UploadFailed) -> FormDocument:
    # Previously assigned URL stays in place
    return _with_upload(doc, action.target, upload={"progress": 0, "error": True})


# ==================== Hydration ====================

def _hydrate(doc: FormDocument, action: Hydrate) -> FormDocument:
    return FormDocument.from_server(action.data).with_totals()


_HANDLERS: Dict[Type, Callable[[FormDocument, Any], FormDocument]] = {
    AddQualification: _add_qualification,
    UpdateQualification: _update_qualification,
    RemoveQualification: _remove_qualification,
    AddSemester: _add_semester,
    UpdateSemester: _update_semester,
    RemoveSemester: _remove_semester,
    AddSubject: _add_subject,
    UpdateSubject: _update_subject,
    RemoveSubject: _remove_subject,
    SetSummaryField: _set_summary_field,
    SetProfessionalField: _set_professional_field,
    UploadProgressed: _upload_progressed,
    UploadSucceeded: _upload_succeeded,
    UploadFailed: _upload_failed,
    Hydrate: _hydrate,
}


def reduce(doc: FormDocument, action: Any) -> FormDocument:
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise ValidationError(f"Unsupported action {type(action).__name__}")
    return handler(doc, action)
