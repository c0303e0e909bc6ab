# Wizard page controllers
from admission.pages.base import Navigator, Notifier, PageController
from admission.pages.dashboard import DashboardPage
from admission.pages.documents import DocumentsPage
from admission.pages.payment import PaymentPage
from admission.pages.preview import PreviewPage
from admission.pages.qualifications import QualificationsPage

__all__ = [
    "Navigator",
    "Notifier",
    "PageController",
    "DashboardPage",
    "DocumentsPage",
    "PaymentPage",
    "PreviewPage",
    "QualificationsPage",
]
