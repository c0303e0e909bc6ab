"""
Form actions - every edit to the Form Document is one of these.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from admission.schemas.application import Qualification, Semester, Subject
from admission.services.uploads import UploadTarget


@dataclass(frozen=True)
class AddQualification:
    """Append a blank additional qualification (and a batch of semesters)"""


@dataclass(frozen=True)
class UpdateQualification:
    index: int
    record: Optional[Qualification] = None
    # Single-field edit; applied to the current record when `record` is None
    field: Optional[str] = None
    value: Any = None


@dataclass(frozen=True)
class RemoveQualification:
    index: int


@dataclass(frozen=True)
class AddSemester:
    pass


@dataclass(frozen=True)
class UpdateSemester:
    index: int
    record: Optional[Semester] = None
    label: Optional[str] = None


@dataclass(frozen=True)
class RemoveSemester:
    index: int


@dataclass(frozen=True)
class AddSubject:
    semester_index: int


@dataclass(frozen=True)
class UpdateSubject:
    semester_index: int
    subject_index: int
    record: Optional[Subject] = None
    field: Optional[str] = None
    value: Any = None


@dataclass(frozen=True)
class RemoveSubject:
    semester_index: int
    subject_index: int


@dataclass(frozen=True)
class SetSummaryField:
    field: str
    value: Any


@dataclass(frozen=True)
class SetProfessionalField:
    field: str
    value: Any


@dataclass(frozen=True)
class UploadProgressed:
    target: UploadTarget
    percent: int


@dataclass(frozen=True)
class UploadSucceeded:
    target: UploadTarget
    file_url: str
    file_name: str = ""


@dataclass(frozen=True)
class UploadFailed:
    target: UploadTarget
    cancelled: bool = False


@dataclass(frozen=True)
class Hydrate:
    """Replace the document with server data (page-3 GET `data` object)"""
    data: Dict[str, Any] = field(default_factory=dict)


Action = Union[
    AddQualification, UpdateQualification, RemoveQualification,
    AddSemester, UpdateSemester, RemoveSemester,
    AddSubject, UpdateSubject, RemoveSubject,
    SetSummaryField, SetProfessionalField,
    UploadProgressed, UploadSucceeded, UploadFailed,
    Hydrate,
]
