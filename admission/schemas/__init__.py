# Form records and routes
from admission.schemas.application import (
    AdditionalQualification,
    AggregateSummary,
    Declarations,
    DocumentKind,
    DocumentSlot,
    MandatoryQualification,
    ProfessionalDetails,
    QualificationKind,
    Semester,
    Subject,
    UploadState,
    UserProfile,
)
from admission.schemas.navigation import Route

__all__ = [
    "AdditionalQualification",
    "AggregateSummary",
    "Declarations",
    "DocumentKind",
    "DocumentSlot",
    "MandatoryQualification",
    "ProfessionalDetails",
    "QualificationKind",
    "Semester",
    "Subject",
    "UploadState",
    "UserProfile",
    "Route",
]
