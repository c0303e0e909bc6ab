"""
Admission Portal - Test Configuration and Fixtures
"""
import json
from typing import Any, Callable, Dict, List

import httpx
import pytest
from faker import Faker

from admission.api.client import AdmissionAPIClient
from admission.pages.base import Navigator, Notifier
from admission.session import SessionContext, SessionData

fake = Faker()

BASE_URL = "http://testserver/api/"


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served"""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

    def json_body(self, index: int = -1) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)


def route_handler(routes: Dict[str, Any]) -> Callable[[httpx.Request], httpx.Response]:
    """
    Map "METHOD /path" (path below /api) to a payload, an httpx.Response or a
    callable taking the request. Unknown routes answer 404.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith("/api"):
            path = path[len("/api"):]
        route = routes.get(f"{request.method} {path}")
        if route is None:
            return json_response({"status": "error", "message": "Not found"}, 404)
        if callable(route):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return json_response(route)

    return handler


@pytest.fixture
def session_file(tmp_path):
    return tmp_path / "session.json"


@pytest.fixture
def session(session_file) -> SessionContext:
    """Authenticated session stored in a temp directory"""
    return SessionContext(
        path=session_file,
        data=SessionData(token="test-token-123", user_email=fake.email()),
    )


@pytest.fixture
def anonymous_session(session_file) -> SessionContext:
    return SessionContext(path=session_file)


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def navigator() -> Navigator:
    return Navigator()


@pytest.fixture
def make_api(session):
    """Build an API client wired to a RecordingTransport"""
    def _make(routes: Dict[str, Any], client_session: SessionContext = None):
        transport = RecordingTransport(route_handler(routes))
        api = AdmissionAPIClient(BASE_URL, client_session or session, transport=transport)
        return api, transport

    return _make


def complete_qualification(course: str, **overrides) -> Dict[str, Any]:
    entry = {
        "course": course,
        "institute_name": fake.company(),
        "board": "State Board",
        "subject_studied": "Science",
        "reg_no": str(fake.random_number(digits=8, fix_len=True)),
        "percentage": "85",
        "month_year": "04/2019",
        "mode_of_study": "Regular",
    }
    entry.update(overrides)
    return entry


def complete_subject(max_marks: Any = "100", obtained_marks: Any = "70", **overrides) -> Dict[str, Any]:
    subject = {
        "subject_name": fake.word().title(),
        "category": "Theory",
        "max_marks": max_marks,
        "obtained_marks": obtained_marks,
        "month_year": "11/2021",
    }
    subject.update(overrides)
    return subject


@pytest.fixture
def page3_data() -> Dict[str, Any]:
    """Valid GET /application/page3/ `data` object with no semesters"""
    return {
        "email": fake.email(),
        "name_initial": "R.",
        "qualifications": [
            complete_qualification("S.S.L.C", sslc_marksheet_url="https://drive.google.com/file/d/sslc123/view"),
            complete_qualification("HSC", hsc_marksheet_url="https://drive.google.com/file/d/hsc456/view"),
        ],
        "semester_marks": [],
        "current_designation": "",
        "current_institute": "",
        "years_experience": None,
        "annual_income": None,
    }
