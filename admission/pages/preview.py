"""
Application preview page (/application/page5).

Combines the preview, autofill and page-3 endpoints into one read model,
normalizes Google Drive links to an image proxy and gates the move to
payment on four declarations.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from admission.core.exceptions import ValidationError
from admission.core.logging_config import logger
from admission.pages.base import PageController
from admission.schemas.application import Declarations
from admission.schemas.navigation import Route


DEFAULT_IMAGE = "/default-image.png"
IMAGE_PROXY = "https://images.weserv.nl/?url="
DRIVE_DOWNLOAD = "https://drive.google.com/uc?export=download&id="

DRIVE_ID_PATTERNS = (
    re.compile(r"/file/d/([^/]+)/?"),
    re.compile(r"id=([^&]+)"),
    re.compile(r"/d/([^/]+)/?"),
)

# Autofill wins; the preview's application block is the fallback
PREVIEW_FALLBACK_FIELDS = ("mode_of_study", "programme_applied", "course", "medium", "academic_year")

AUTOFILL_FIELDS = (
    "deb_id", "abc_id", "name_as_aadhaar", "aadhaar_no", "dob",
    "father_name", "father_occupation", "mother_name", "mother_occupation",
    "guardian_name", "guardian_occupation", "nationality", "religion", "community",
    "mother_tongue", "differently_abled", "disability_type", "blood_group", "access_internet",
    "comm_pincode", "comm_district", "comm_state", "comm_country", "comm_town", "comm_area",
    "perm_pincode", "perm_district", "perm_state", "perm_country", "perm_town", "perm_area",
)

SUMMARY_FIELDS = (
    "total_max_marks", "total_obtained_marks", "percentage", "cgpa", "overall_grade",
    "class_obtained", "current_designation", "current_institute", "years_experience", "annual_income",
)

IMAGE_FIELDS = (
    "photo_url", "signature_url", "sslc_marksheet_url", "hsc_marksheet_url", "ug_marksheet_url",
    "semester_marksheet_url", "community_certificate_url", "aadhaar_url", "transfer_certificate_url",
)


def direct_drive_url(url: Any) -> str:
    """
    Google Drive share link -> proxied direct image URL.

    Anything that is not a parseable Drive link becomes the default image.
    """
    if not url or not isinstance(url, str):
        return DEFAULT_IMAGE
    if "drive.google.com" in url:
        for pattern in DRIVE_ID_PATTERNS:
            match = pattern.search(url)
            if match and match.group(1):
                google_url = f"{DRIVE_DOWNLOAD}{match.group(1)}"
                return IMAGE_PROXY + quote(google_url, safe="!~*'()")
        logger.warning(f"[Preview] Could not extract a Drive file id from {url}")
    return DEFAULT_IMAGE


@dataclass
class PreviewData:
    student: Dict[str, Any] = field(default_factory=dict)
    application: Dict[str, Any] = field(default_factory=dict)
    student_details: Dict[str, Any] = field(default_factory=dict)
    marksheet_uploads: List[str] = field(default_factory=list)


def _data(response: Any) -> Dict[str, Any]:
    data = response.body.get("data")
    return data if isinstance(data, dict) else {}


def combine_preview(preview: Dict[str, Any], autofill: Dict[str, Any],
                    page3: Dict[str, Any]) -> PreviewData:
    preview_application = preview.get("application") or {}

    application = {**preview_application, **autofill}
    for name in PREVIEW_FALLBACK_FIELDS:
        application[name] = autofill.get(name) or preview_application.get(name) or ""
    for name in AUTOFILL_FIELDS:
        application[name] = autofill.get(name) or ""
    application["same_as_comm"] = bool(autofill.get("same_as_comm"))

    qualifications = page3.get("qualifications") or []
    details = {
        **page3,
        "qualifications": qualifications,
        "semester_marks": page3.get("semester_marks") or [],
    }
    for name in SUMMARY_FIELDS:
        details[name] = page3.get(name) or ""
    for name in IMAGE_FIELDS:
        details[name] = direct_drive_url(page3.get(name))

    marksheets = [
        direct_drive_url(q.get("sslc_marksheet_url") or q.get("hsc_marksheet_url") or q.get("ug_marksheet_url"))
        for q in qualifications if isinstance(q, dict)
    ]

    return PreviewData(
        student=preview.get("student") or autofill or {},
        application=application,
        student_details=details,
        marksheet_uploads=marksheets,
    )


class PreviewPage(PageController):
    route = Route.PREVIEW

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.data: Optional[PreviewData] = None
        self.declarations = Declarations()

    async def load(self) -> None:
        preview, autofill, page3 = await asyncio.gather(
            self.api.get_preview(),
            self.api.get_autofill(),
            self.api.get_page3(),
        )
        self.data = combine_preview(_data(preview), _data(autofill), _data(page3))

    # ==================== Declarations ====================

    def toggle_declaration(self, key: str) -> bool:
        if key not in Declarations.model_fields:
            raise ValidationError(f"Unknown declaration '{key}'", field=key)
        value = not getattr(self.declarations, key)
        self.declarations = self.declarations.model_copy(update={key: value})
        return value

    @property
    def can_proceed(self) -> bool:
        return self.data is not None and self.fetch_error is None and self.declarations.all_accepted()

    def proceed(self) -> bool:
        if not self.can_proceed:
            self.notifier.error("Please accept all declarations to proceed.")
            return False
        self.navigator.go(Route.PAYMENT)
        return True

    def back(self) -> None:
        self.navigator.go(Route.DOCUMENTS)

    # ==================== Rendering ====================

    def render(self, console: Console) -> None:
        if self.fetch_error:
            console.print(Panel(f"[red]{self.fetch_error}[/red]", title="Failed to Load Data", border_style="red"))
            return
        if self.data is None:
            console.print("[dim]Preview not loaded[/dim]")
            return

        student = self.data.student
        application = self.data.application
        details = self.data.student_details

        console.print(Panel(
            f"[bold]Name:[/bold] {student.get('name') or application.get('name_as_aadhaar') or '-'}\n"
            f"[bold]Email:[/bold] {student.get('email') or details.get('email') or '-'}\n"
            f"[bold]Programme:[/bold] {application.get('programme_applied') or '-'} "
            f"({application.get('course') or '-'}, {application.get('mode_of_study') or '-'})\n"
            f"[bold]Academic Year:[/bold] {application.get('academic_year') or '-'}",
            title="Application Preview",
            border_style="cyan",
        ))

        table = Table(title="Educational Qualifications")
        for column in ("Course", "Institute", "Board", "Reg No", "Percentage", "Month/Year", "Mode"):
            table.add_column(column)
        for q in details.get("qualifications") or []:
            table.add_row(*(str(q.get(name) or "") for name in (
                "course", "institute_name", "board", "reg_no", "percentage", "month_year", "mode_of_study",
            )))
        console.print(table)

        if details.get("semester_marks"):
            console.print(
                f"[bold]Total:[/bold] {details.get('total_obtained_marks')} / {details.get('total_max_marks')} "
                f"({details.get('percentage')}%) - {details.get('class_obtained') or '-'}"
            )

        declarations = Table(show_header=False)
        for name in Declarations.model_fields:
            mark = "[green]x[/green]" if getattr(self.declarations, name) else " "
            declarations.add_row(f"[{mark}]", name.replace("_", " "))
        console.print(declarations)
