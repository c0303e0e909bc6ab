"""
Field Validator - pure checks for the educational qualifications form.

Never raises for bad input: every check returns a FieldResult (or a list of
messages for the record-level aggregators).
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from admission.core.config import settings
from admission.schemas.application import (
    QUALIFICATION_FIELDS,
    SUBJECT_FIELDS,
    QualificationKind,
    Semester,
    Subject,
)


MONTH_YEAR_PATTERN = re.compile(r"[0-9]{2}/[0-9]{4}")
# Leading numeric prefix, the way a browser's parseFloat reads it
_NUMBER_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

PERCENTAGE_MESSAGE = "Percentage must be between 0 and 100"
MONTH_YEAR_MESSAGE = "Month & Year must be in MM/YYYY format"
MAX_MARKS_MESSAGE = "Max Marks must be positive"
OBTAINED_MARKS_MESSAGE = "Obtained Marks must be between 0 and Max Marks"
SEMESTER_LABEL_MESSAGE = "Semester/Year is required"
NO_SUBJECTS_MESSAGE = "At least one subject is required"
SEMESTER_MARKSHEET_MESSAGE = "Semester marksheet upload is required"

MARKSHEET_MESSAGES = {
    QualificationKind.SSLC.value: "SSLC Marksheet is required",
    QualificationKind.HSC.value: "HSC Marksheet is required",
}

NON_NEGATIVE_LABELS = {
    "years_experience": "Years of Experience",
    "annual_income": "Annual Income",
}


@dataclass(frozen=True)
class FieldResult:
    error: str = ""
    valid: bool = True

    @classmethod
    def ok(cls) -> "FieldResult":
        return cls()

    @classmethod
    def fail(cls, message: str) -> "FieldResult":
        return cls(error=message, valid=False)


# ==================== Primitive parsing ====================

def parse_number(value: Any) -> float:
    """
    Parse like JavaScript's parseFloat.

    "12abc" -> 12.0, "  7.5" -> 7.5, "abc" -> nan, "" -> nan
    """
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return math.nan
    text = str(value).strip()
    if text.lower().lstrip("+-").startswith("infinity"):
        return -math.inf if text.startswith("-") else math.inf
    match = _NUMBER_PREFIX.match(text)
    if not match:
        return math.nan
    return float(match.group(0))


def is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def humanize(field_name: str) -> str:
    """course -> 'course', reg_no -> 'reg no'"""
    return field_name.replace("_", " ")


# ==================== Field rules ====================

def validate_required(field_name: str, value: Any) -> FieldResult:
    if is_blank(value):
        return FieldResult.fail(f"{humanize(field_name)} is required")
    return FieldResult.ok()


def validate_percentage(value: Any) -> FieldResult:
    number = parse_number(value)
    if math.isnan(number) or number < 0 or number > 100:
        return FieldResult.fail(PERCENTAGE_MESSAGE)
    return FieldResult.ok()


def validate_month_year(value: Any) -> FieldResult:
    # Pattern only: "13/2023" is accepted
    if MONTH_YEAR_PATTERN.fullmatch(str(value)) is None:
        return FieldResult.fail(MONTH_YEAR_MESSAGE)
    return FieldResult.ok()


def validate_max_marks(value: Any) -> FieldResult:
    number = parse_number(value)
    if math.isnan(number) or number <= 0:
        return FieldResult.fail(MAX_MARKS_MESSAGE)
    return FieldResult.ok()


def validate_obtained_marks(value: Any, max_marks: Any = None) -> FieldResult:
    maximum = parse_number(max_marks)
    if is_blank(max_marks) or math.isnan(maximum) or maximum <= 0:
        # Nothing to compare against; the max marks rule reports the problem
        return FieldResult.ok()
    number = parse_number(value)
    if math.isnan(number) or number < 0 or number > maximum:
        return FieldResult.fail(OBTAINED_MARKS_MESSAGE)
    return FieldResult.ok()


def validate_non_negative(field_name: str, value: Any) -> FieldResult:
    """Optional numeric field: empty passes, otherwise must parse to >= 0"""
    if is_blank(value):
        return FieldResult.ok()
    number = parse_number(value)
    if math.isnan(number) or number < 0:
        label = NON_NEGATIVE_LABELS.get(field_name, humanize(field_name))
        return FieldResult.fail(f"{label} must be a valid non-negative number")
    return FieldResult.ok()


def validate(field_name: str, value: Any, context: Optional[Dict[str, Any]] = None) -> FieldResult:
    """
    Validate one field value.

    Args:
        field_name: Form field name (percentage, month_year, max_marks, ...)
        value: Raw input
        context: Sibling values; ``obtained_marks`` reads ``max_marks`` from it

    Returns:
        FieldResult with the first failing rule's message
    """
    context = context or {}

    if field_name in NON_NEGATIVE_LABELS:
        return validate_non_negative(field_name, value)

    required = validate_required(field_name, value)
    if not required.valid:
        return required

    if field_name == "percentage":
        return validate_percentage(value)
    if field_name == "month_year":
        return validate_month_year(value)
    if field_name == "max_marks":
        return validate_max_marks(value)
    if field_name == "obtained_marks":
        return validate_obtained_marks(value, context.get("max_marks"))
    return FieldResult.ok()


def sanitize_non_negative(raw: Any) -> Tuple[str, Optional[str]]:
    """
    Clean a years-of-experience / annual-income input.

    Returns:
        (value, warning) - invalid input resets to "" and only produces a
        warning when something was actually typed
    """
    text = "" if raw is None else str(raw).strip()
    if not text:
        return "", None
    number = parse_number(text)
    if math.isnan(number) or number < 0:
        return "", "must be a valid non-negative number"
    return text, None


def sanitize_field(field_name: str, raw: Any) -> Tuple[str, Optional[str]]:
    """sanitize_non_negative with the field's display label in the warning"""
    value, warning = sanitize_non_negative(raw)
    if warning:
        warning = f"{NON_NEGATIVE_LABELS.get(field_name, humanize(field_name))} {warning}"
    return value, warning


# ==================== Record aggregators ====================

def qualification_errors(qualification) -> List[str]:
    """Messages for one qualification, in form order"""
    errors: List[str] = []
    for name in QUALIFICATION_FIELDS:
        result = validate_required(name, getattr(qualification, name))
        if not result.valid:
            errors.append(result.error)

    if not is_blank(qualification.percentage):
        result = validate_percentage(qualification.percentage)
        if not result.valid:
            errors.append(result.error)

    if not is_blank(qualification.month_year):
        result = validate_month_year(qualification.month_year)
        if not result.valid:
            errors.append(result.error)

    marksheet_message = MARKSHEET_MESSAGES.get(qualification.course)
    if marksheet_message and is_blank(qualification.marksheet_url):
        errors.append(marksheet_message)

    return errors


def subject_errors(subject: Subject) -> List[str]:
    errors: List[str] = []
    for name in SUBJECT_FIELDS:
        result = validate_required(name, getattr(subject, name))
        if not result.valid:
            errors.append(result.error)

    if not is_blank(subject.max_marks):
        result = validate_max_marks(subject.max_marks)
        if not result.valid:
            errors.append(result.error)

    if not is_blank(subject.obtained_marks):
        result = validate_obtained_marks(subject.obtained_marks, subject.max_marks)
        if not result.valid:
            errors.append(result.error)

    if not is_blank(subject.month_year):
        result = validate_month_year(subject.month_year)
        if not result.valid:
            errors.append(result.error)

    return errors


def is_optional_semester(index: int) -> bool:
    return index == settings.OPTIONAL_SEMESTER_INDEX


def semester_errors(semester: Semester, index: int) -> List[str]:
    """Messages for one semester; the optional semester is never checked"""
    if is_optional_semester(index):
        return []

    errors: List[str] = []
    if is_blank(semester.semester):
        errors.append(SEMESTER_LABEL_MESSAGE)

    if not semester.subjects:
        errors.append(NO_SUBJECTS_MESSAGE)
        return errors

    for position, subject in enumerate(semester.subjects, start=1):
        problems = subject_errors(subject)
        if problems:
            errors.append(f"Subject {position}: {'; '.join(problems)}")
    return errors


def summary_field_error(field_name: str, value: Any) -> Optional[str]:
    """Summary fields are required once any semester exists"""
    if is_blank(value):
        return f"{humanize(field_name)} is required for semester marks"
    return None
