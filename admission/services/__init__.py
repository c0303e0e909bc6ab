from admission.services.records import FormDocument, QualificationStore, SemesterStore
from admission.services.uploads import AbortToken, FileRef, UploadCoordinator, UploadTarget

__all__ = [
    "FormDocument",
    "QualificationStore",
    "SemesterStore",
    "AbortToken",
    "FileRef",
    "UploadCoordinator",
    "UploadTarget",
]
