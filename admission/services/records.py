"""
Qualification and semester record stores plus the root Form Document.

Stores are immutable: every operation returns a new store. Logical
qualification index 0 is S.S.L.C, 1 is HSC and 2+ are user-added entries.
"""

import math
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from admission.core.config import settings
from admission.core.exceptions import (
    MandatoryQualificationError,
    RecordIndexError,
    ValidationError,
)
from admission.schemas.application import (
    AdditionalQualification,
    AggregateSummary,
    AggregateTotals,
    MandatoryQualification,
    MarksheetSlot,
    ProfessionalDetails,
    Qualification,
    QualificationKind,
    Semester,
    Subject,
    marksheet_url_key,
)
from admission.services.validation import parse_number


MANDATORY_COURSES = tuple(kind.value for kind in QualificationKind)

_SHARED_FIELDS = (
    "institute_name",
    "board",
    "subject_studied",
    "reg_no",
    "percentage",
    "month_year",
    "mode_of_study",
)


def _shared_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Server fields present on the raw entry; missing ones keep client defaults"""
    return {name: raw[name] for name in _SHARED_FIELDS if raw.get(name) is not None}


def _check_index(collection: str, index: int, size: int) -> None:
    if not isinstance(index, int) or index < 0 or index >= size:
        raise RecordIndexError(collection, index, size)


# ==================== Qualification Store ====================

class QualificationStore(BaseModel):
    model_config = ConfigDict(frozen=True)

    sslc: MandatoryQualification = MandatoryQualification(kind=QualificationKind.SSLC)
    hsc: MandatoryQualification = MandatoryQualification(kind=QualificationKind.HSC)
    additional: Tuple[AdditionalQualification, ...] = ()

    @property
    def entries(self) -> Tuple[Qualification, ...]:
        return (self.sslc, self.hsc) + self.additional

    @property
    def count(self) -> int:
        return 2 + len(self.additional)

    def get(self, index: int) -> Qualification:
        _check_index("qualifications", index, self.count)
        return self.entries[index]

    def index_of(self, entry_id: str) -> int:
        """Current logical index of the additional entry with this id"""
        for offset, record in enumerate(self.additional):
            if record.entry_id == entry_id:
                return offset + 2
        raise RecordIndexError("qualifications", entry_id, self.count)

    def add(self, record: Optional[AdditionalQualification] = None) -> "QualificationStore":
        """Append a blank (or given) additional entry"""
        record = record or AdditionalQualification()
        self._check_course(record)
        return self.model_copy(update={"additional": self.additional + (record,)})

    def update(self, index: int, record: Qualification) -> "QualificationStore":
        """Replace the record at index in full"""
        _check_index("qualifications", index, self.count)

        if index < 2:
            slot = self.entries[index]
            if not isinstance(record, MandatoryQualification) or record.kind != slot.kind:
                raise MandatoryQualificationError(slot.course, operation="change")
            return self.model_copy(update={"sslc" if index == 0 else "hsc": record})

        if not isinstance(record, AdditionalQualification):
            raise ValidationError("Additional qualification expected", field="course")
        self._check_course(record)
        additional = list(self.additional)
        additional[index - 2] = record.model_copy(update={"entry_id": additional[index - 2].entry_id})
        return self.model_copy(update={"additional": tuple(additional)})

    def remove(self, index: int) -> "QualificationStore":
        _check_index("qualifications", index, self.count)
        if index < 2:
            raise MandatoryQualificationError(self.entries[index].course)
        additional = self.additional[:index - 2] + self.additional[index - 1:]
        return self.model_copy(update={"additional": additional})

    @staticmethod
    def _check_course(record: AdditionalQualification) -> None:
        if record.course in MANDATORY_COURSES:
            raise ValidationError(
                f"{record.course} is already present as a mandatory qualification",
                field="course",
            )

    @classmethod
    def hydrate(
        cls,
        raw_list: Optional[Iterable[Dict[str, Any]]],
        top_level: Optional[Dict[str, Any]] = None,
    ) -> "QualificationStore":
        """
        Build a store from the page-3 GET payload.

        S.S.L.C and HSC are found by course name, not position. Nested
        marksheet URLs fall back to the top-level *_marksheet_url fields
        (ug only for the first additional entry).
        """
        top_level = top_level or {}
        raw_entries = [entry for entry in (raw_list or []) if isinstance(entry, dict)]

        def mandatory(kind: QualificationKind) -> MandatoryQualification:
            raw = next((entry for entry in raw_entries if entry.get("course") == kind.value), {})
            key = marksheet_url_key(kind.value)
            return MandatoryQualification(
                kind=kind,
                marksheet_url=raw.get(key) or top_level.get(key) or "",
                **_shared_fields(raw),
            )

        additional: List[AdditionalQualification] = []
        for raw in raw_entries:
            if raw.get("course") in MANDATORY_COURSES:
                continue
            key = marksheet_url_key(raw.get("course") or "")
            url = raw.get(key) or ""
            if not url and not additional:
                url = top_level.get(key) or ""
            additional.append(AdditionalQualification(
                course=raw.get("course") or "",
                marksheet_url=url,
                **_shared_fields(raw),
            ))

        return cls(
            sslc=mandatory(QualificationKind.SSLC),
            hsc=mandatory(QualificationKind.HSC),
            additional=tuple(additional),
        )


# ==================== Semester Store ====================

class SemesterStore(BaseModel):
    model_config = ConfigDict(frozen=True)

    semesters: Tuple[Semester, ...] = ()

    @property
    def count(self) -> int:
        return len(self.semesters)

    def get(self, index: int) -> Semester:
        _check_index("semesters", index, self.count)
        return self.semesters[index]

    @staticmethod
    def is_optional(index: int) -> bool:
        return index == settings.OPTIONAL_SEMESTER_INDEX

    def add(self, semester: Optional[Semester] = None) -> "SemesterStore":
        semester = semester or Semester(semester=f"Semester {self.count + 1}")
        return self.model_copy(update={"semesters": self.semesters + (semester,)})

    def add_batch(self, count: Optional[int] = None) -> "SemesterStore":
        """Append `count` empty semesters labelled Semester N..N+count-1"""
        count = settings.SEMESTERS_PER_QUALIFICATION if count is None else count
        batch = tuple(
            Semester(semester=f"Semester {self.count + offset + 1}")
            for offset in range(count)
        )
        return self.model_copy(update={"semesters": self.semesters + batch})

    def update(self, index: int, semester: Semester) -> "SemesterStore":
        _check_index("semesters", index, self.count)
        semesters = list(self.semesters)
        semesters[index] = semester
        return self.model_copy(update={"semesters": tuple(semesters)})

    def remove(self, index: int) -> "SemesterStore":
        _check_index("semesters", index, self.count)
        return self.model_copy(update={"semesters": self.semesters[:index] + self.semesters[index + 1:]})

    def trim_tail(self, count: Optional[int] = None) -> "SemesterStore":
        """Drop the last `count` semesters, only when more than `count` exist"""
        count = settings.SEMESTERS_PER_QUALIFICATION if count is None else count
        if self.count <= count:
            return self
        return self.model_copy(update={"semesters": self.semesters[:-count]})

    def add_subject(self, index: int, subject: Optional[Subject] = None) -> "SemesterStore":
        semester = self.get(index)
        updated = semester.model_copy(update={"subjects": semester.subjects + (subject or Subject(),)})
        return self.update(index, updated)

    def update_subject(self, index: int, subject_index: int, subject: Subject) -> "SemesterStore":
        semester = self.get(index)
        _check_index(f"semester {index} subjects", subject_index, len(semester.subjects))
        subjects = list(semester.subjects)
        subjects[subject_index] = subject
        return self.update(index, semester.model_copy(update={"subjects": tuple(subjects)}))

    def remove_subject(self, index: int, subject_index: int) -> "SemesterStore":
        semester = self.get(index)
        _check_index(f"semester {index} subjects", subject_index, len(semester.subjects))
        subjects = semester.subjects[:subject_index] + semester.subjects[subject_index + 1:]
        return self.update(index, semester.model_copy(update={"subjects": subjects}))

    def totals(self) -> AggregateTotals:
        """Sum marks across all subjects; non-numeric marks count as 0"""
        total_max = 0.0
        total_obtained = 0.0
        for semester in self.semesters:
            for subject in semester.subjects:
                total_max += _number_or_zero(subject.max_marks)
                total_obtained += _number_or_zero(subject.obtained_marks)

        percentage = f"{total_obtained / total_max * 100:.2f}" if total_max > 0 else "0.00"
        return AggregateTotals(
            total_max_marks=total_max,
            total_obtained_marks=total_obtained,
            percentage=percentage,
        )

    @classmethod
    def hydrate(cls, raw_list: Optional[Iterable[Dict[str, Any]]]) -> "SemesterStore":
        semesters = []
        for raw in raw_list or []:
            if not isinstance(raw, dict):
                continue
            subjects = tuple(
                Subject(**{key: value for key, value in subject.items() if key in Subject.model_fields})
                for subject in raw.get("subjects") or []
                if isinstance(subject, dict)
            )
            semesters.append(Semester(semester=raw.get("semester"), subjects=subjects))
        return cls(semesters=tuple(semesters))


def _number_or_zero(value: Any) -> float:
    number = parse_number(value)
    return 0.0 if math.isnan(number) else number


# ==================== Form Document ====================

class FormDocument(BaseModel):
    """Root aggregate for the educational qualifications page"""
    model_config = ConfigDict(frozen=True)

    email: str = ""
    name_initial: str = ""
    qualifications: QualificationStore = QualificationStore()
    semesters: SemesterStore = SemesterStore()
    semester_marksheet: MarksheetSlot = MarksheetSlot()
    summary: AggregateSummary = AggregateSummary()
    professional: ProfessionalDetails = ProfessionalDetails()

    @classmethod
    def from_server(cls, data: Optional[Dict[str, Any]]) -> "FormDocument":
        """Hydrate from the `data` object of GET /api/application/page3/"""
        data = data or {}
        return cls(
            email=data.get("email") or "",
            name_initial=data.get("name_initial") or "",
            qualifications=QualificationStore.hydrate(data.get("qualifications"), data),
            semesters=SemesterStore.hydrate(data.get("semester_marks")),
            semester_marksheet=MarksheetSlot(url=data.get("semester_marksheet_url") or ""),
            summary=AggregateSummary(**{
                name: data.get(name) for name in AggregateSummary.model_fields
                if data.get(name) is not None
            }),
            professional=ProfessionalDetails(**{
                name: data.get(name) for name in ProfessionalDetails.model_fields
                if data.get(name) is not None
            }),
        )

    def with_totals(self) -> "FormDocument":
        """Recompute the derived summary values; blank (sent as null) while there are no semesters"""
        if not self.semesters.count:
            summary = self.summary.model_copy(update={
                "total_max_marks": "", "total_obtained_marks": "", "percentage": "",
            })
        else:
            summary = self.summary.with_totals(self.semesters.totals())
        return self.model_copy(update={"summary": summary})
