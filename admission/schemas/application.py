"""
Application form records (page 3 and the document/preview slots around it).

Every record is frozen; edits go through ``model_copy(update=...)``.
Text inputs are kept as raw strings so validation sees what the user typed.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ==================== Option Enums ====================

class QualificationKind(str, Enum):
    """Mandatory qualification kinds"""
    SSLC = "S.S.L.C"
    HSC = "HSC"


class AdditionalCourse(str, Enum):
    DIPLOMA = "Diploma"
    UG = "UG"
    OTHERS = "OTHERS"


class ModeOfStudy(str, Enum):
    REGULAR = "Regular"
    DISTANCE = "Distance"
    ONLINE = "Online"


class SubjectCategory(str, Enum):
    THEORY = "Theory"
    PRACTICAL = "Practical"


class ClassObtained(str, Enum):
    FIRST = "First Class"
    SECOND = "Second Class"
    THIRD = "Third Class"
    PASS = "Pass"


class DocumentKind(str, Enum):
    """Upload slots on the documents page"""
    PHOTO = "photo"
    SIGNATURE = "signature"
    COMMUNITY_CERTIFICATE = "community_certificate"
    AADHAR_CARD = "aadhar_card"
    TRANSFER_CERTIFICATE = "transfer_certificate"


def option_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# Select fields and the values they offer; empty string means "not chosen yet"
SELECT_OPTIONS: Dict[str, List[str]] = {
    "mode_of_study": option_values(ModeOfStudy),
    "category": option_values(SubjectCategory),
    "class_obtained": option_values(ClassObtained),
}

# Offered for user-added entries; any other text is accepted too
ADDITIONAL_COURSE_OPTIONS: List[str] = option_values(AdditionalCourse)

QUALIFICATION_FIELDS: Tuple[str, ...] = (
    "course",
    "institute_name",
    "board",
    "subject_studied",
    "reg_no",
    "percentage",
    "month_year",
    "mode_of_study",
)

SUBJECT_FIELDS: Tuple[str, ...] = (
    "subject_name",
    "category",
    "max_marks",
    "obtained_marks",
    "month_year",
)

MARKSHEET_URL_KEYS: Dict[str, str] = {
    QualificationKind.SSLC.value: "sslc_marksheet_url",
    QualificationKind.HSC.value: "hsc_marksheet_url",
}
DEFAULT_MARKSHEET_URL_KEY = "ug_marksheet_url"


def marksheet_url_key(course: str) -> str:
    """Wire field that carries the marksheet URL for a course"""
    return MARKSHEET_URL_KEYS.get(course, DEFAULT_MARKSHEET_URL_KEY)


def as_text(value: Any) -> str:
    """Server values arrive as numbers or null; the form keeps strings"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


# ==================== Leaf Records ====================

class UploadState(BaseModel):
    """Transient per-slot upload status"""
    model_config = ConfigDict(frozen=True)

    progress: int = Field(default=0, ge=0, le=100)
    error: bool = False
    file_name: str = ""


class Subject(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject_name: str = ""
    category: str = ""
    max_marks: str = ""
    obtained_marks: str = ""
    month_year: str = ""

    @field_validator("subject_name", "category", "max_marks", "obtained_marks", "month_year", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return as_text(v)

    def is_complete(self) -> bool:
        return all(getattr(self, name).strip() for name in SUBJECT_FIELDS)


class Semester(BaseModel):
    model_config = ConfigDict(frozen=True)

    semester: str = ""
    subjects: Tuple[Subject, ...] = ()

    @field_validator("semester", mode="before")
    @classmethod
    def _coerce_label(cls, v):
        return as_text(v)


class _QualificationFields(BaseModel):
    """Fields shared by mandatory and additional qualifications"""
    model_config = ConfigDict(frozen=True)

    institute_name: str = ""
    board: str = ""
    subject_studied: str = ""
    reg_no: str = ""
    percentage: str = ""
    month_year: str = ""
    mode_of_study: str = ""
    marksheet_url: str = ""
    upload: UploadState = UploadState()

    @field_validator(
        "institute_name", "board", "subject_studied", "reg_no",
        "percentage", "month_year", "mode_of_study", "marksheet_url",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, v):
        return as_text(v)

    def is_complete(self) -> bool:
        """All eight required fields filled"""
        return all(str(getattr(self, name)).strip() for name in QUALIFICATION_FIELDS)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for POST; marksheet URLs are flattened to the top level and upload state is dropped"""
        return {name: getattr(self, name) for name in QUALIFICATION_FIELDS}


class MandatoryQualification(_QualificationFields):
    """S.S.L.C or HSC entry; course is fixed by kind"""
    kind: QualificationKind

    @property
    def course(self) -> str:
        return self.kind.value


class AdditionalQualification(_QualificationFields):
    """User-added entry (Diploma, UG, OTHERS or free text)"""
    course: str = ""
    # Survives removal of earlier entries; not part of the payload
    entry_id: str = Field(default_factory=lambda: uuid4().hex)

    @field_validator("course", mode="before")
    @classmethod
    def _coerce_course(cls, v):
        return as_text(v)


Qualification = Union[MandatoryQualification, AdditionalQualification]


class MarksheetSlot(BaseModel):
    """Single semester marksheet upload"""
    model_config = ConfigDict(frozen=True)

    url: str = ""
    upload: UploadState = UploadState()


class AggregateTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_max_marks: float = 0.0
    total_obtained_marks: float = 0.0
    percentage: str = "0.00"


class AggregateSummary(BaseModel):
    """Derived totals plus user-entered result fields"""
    model_config = ConfigDict(frozen=True)

    total_max_marks: str = ""
    total_obtained_marks: str = ""
    percentage: str = ""
    cgpa: str = ""
    overall_grade: str = ""
    class_obtained: str = ""

    @field_validator(
        "total_max_marks", "total_obtained_marks", "percentage",
        "cgpa", "overall_grade", "class_obtained",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, v):
        return as_text(v)

    def with_totals(self, totals: AggregateTotals) -> "AggregateSummary":
        return self.model_copy(update={
            "total_max_marks": format_number(totals.total_max_marks),
            "total_obtained_marks": format_number(totals.total_obtained_marks),
            "percentage": totals.percentage,
        })


SUMMARY_INPUT_FIELDS: Tuple[str, ...] = ("cgpa", "overall_grade", "class_obtained")


class ProfessionalDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_designation: str = ""
    current_institute: str = ""
    years_experience: str = ""
    annual_income: str = ""

    @field_validator(
        "current_designation", "current_institute", "years_experience", "annual_income",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, v):
        return as_text(v)


def format_number(value: float) -> str:
    """150.0 -> '150', 12.5 -> '12.5'"""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


# ==================== Documents / Preview ====================

class DocumentSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: DocumentKind
    url: str = ""
    uploaded: bool = False
    upload: UploadState = UploadState()


class Declarations(BaseModel):
    """Preview page consent checkboxes"""
    model_config = ConfigDict(frozen=True)

    info_correct: bool = False
    documents_authentic: bool = False
    university_rules: bool = False
    data_processing: bool = False

    def all_accepted(self) -> bool:
        return all((self.info_correct, self.documents_authentic, self.university_rules, self.data_processing))


class UserProfile(BaseModel):
    """Cached identity used by the payment and dashboard pages"""
    email: str = ""
    name: str = ""
    phone: str = ""

    @field_validator("email", "name", "phone", mode="before")
    @classmethod
    def _coerce_text(cls, v):
        return as_text(v)

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> Optional["UserProfile"]:
        """Accepts user-profile and student-details payloads"""
        if not data:
            return None
        name = data.get("name") or data.get("full_name") or " ".join(
            part for part in (data.get("first_name"), data.get("last_name")) if part
        )
        email = data.get("email") or ""
        if not email:
            return None
        return cls(email=email, name=name, phone=data.get("phone") or data.get("mobile") or "")
