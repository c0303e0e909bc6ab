"""
Unit Tests for the educational qualifications page
"""
import pytest

from admission.orchestrator.form_orchestrator import FormOrchestrator
from admission.pages.qualifications import QualificationsPage
from admission.services.uploads import MB, FileRef

from conftest import json_response


def make_page(session, api, navigator, notifier) -> QualificationsPage:
    form = FormOrchestrator(notifier=notifier, debounce_seconds=0)
    return QualificationsPage(session, api, navigator, notifier, orchestrator=form)


class TestMount:
    """Test page lifecycle"""

    @pytest.mark.asyncio
    async def test_no_token_redirects(self, make_api, anonymous_session, navigator, notifier):
        """Test mounting without a token goes to login"""
        api, transport = make_api({}, anonymous_session)
        page = make_page(anonymous_session, api, navigator, notifier)

        assert not await page.mount()
        assert navigator.current == "/login"
        assert notifier.messages("error") == ["Please login again."]
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_hydrates_form(self, make_api, session, navigator, notifier, page3_data):
        """Test loading fills the form and caches the email"""
        api, _ = make_api({"GET /application/page3/": {"status": "success", "data": page3_data}})
        page = make_page(session, api, navigator, notifier)

        assert await page.mount()
        assert page.form.document.email == page3_data["email"]
        assert session.user_email == page3_data["email"]
        assert page.form.is_valid

    @pytest.mark.asyncio
    async def test_fetch_error_then_retry(self, make_api, session, navigator, notifier, page3_data):
        """Test a failed fetch is shown and can be retried"""
        responses = [
            json_response({"status": "error", "message": "Database unavailable"}, 500),
            json_response({"status": "success", "data": page3_data}),
        ]
        api, _ = make_api({"GET /application/page3/": lambda request: responses.pop(0)})
        page = make_page(session, api, navigator, notifier)

        assert not await page.mount()
        assert page.fetch_error == "Database unavailable"
        assert notifier.messages("error") == ["Error fetching data: Database unavailable"]

        assert await page.retry()
        assert page.fetch_error is None

    @pytest.mark.asyncio
    async def test_expired_session(self, make_api, session, navigator, notifier):
        """Test a 401 while loading goes to login"""
        api, _ = make_api({"GET /application/page3/": json_response({}, 401)})
        page = make_page(session, api, navigator, notifier)

        assert not await page.mount()
        assert navigator.current == "/login"
        assert session.token is None


class TestEditing:
    """Test edit operations"""

    def test_add_and_remove_qualification(self, make_api, session, navigator, notifier):
        """Test semesters follow additional qualifications"""
        api, _ = make_api({})
        page = make_page(session, api, navigator, notifier)

        page.add_qualification()
        page.add_qualification()
        assert page.form.document.semesters.count == 12

        page.remove_qualification(3)
        assert page.form.document.semesters.count == 6

    def test_professional_sanitized(self, make_api, session, navigator, notifier):
        """Test negative annual income resets with a warning"""
        api, _ = make_api({})
        page = make_page(session, api, navigator, notifier)

        page.set_professional_field("annual_income", "-100")

        assert page.form.document.professional.annual_income == ""
        assert notifier.messages("error") == ["Annual Income must be a valid non-negative number"]

    def test_course_options(self, make_api, session, navigator, notifier):
        """Test additional course suggestions"""
        api, _ = make_api({})

        assert make_page(session, api, navigator, notifier).course_options == ["Diploma", "UG", "OTHERS"]


class TestUploads:
    """Test marksheet uploads through the page"""

    @pytest.mark.asyncio
    async def test_marksheet_upload(self, make_api, session, navigator, notifier):
        """Test a 4MB S.S.L.C marksheet scan ends with the URL and progress at 0"""
        api, transport = make_api({
            "POST /upload-marksheet/": {"status": "success", "file_url": "https://drive.google.com/file/d/s1/view"},
        })
        page = make_page(session, api, navigator, notifier)
        file = FileRef(file_name="sslc.jpg", content_type="image/jpeg", content=b"\xff" * (4 * MB))

        outcome = await page.upload_marksheet(0, file)

        sslc = page.form.document.qualifications.sslc
        assert outcome.ok
        assert sslc.marksheet_url == "https://drive.google.com/file/d/s1/view"
        assert sslc.upload.progress == 0
        assert not sslc.upload.error
        assert b"S.S.L.C" in transport.requests[0].content

    @pytest.mark.asyncio
    async def test_failed_upload_marks_error(self, make_api, session, navigator, notifier):
        """Test a failed semester marksheet upload flags the slot"""
        api, _ = make_api({"POST /upload-marksheet/": json_response({"message": "Upload failed"}, 500)})
        page = make_page(session, api, navigator, notifier)
        file = FileRef(file_name="sem.pdf", content_type="application/pdf", content=b"0" * 1024)

        outcome = await page.upload_semester_marksheet(file)

        assert outcome.status == "failed"
        assert page.form.document.semester_marksheet.upload.error
        assert notifier.messages("error") == ["Error uploading marksheet: Upload failed"]


class TestSubmit:
    """Test navigation"""

    @pytest.mark.asyncio
    async def test_submit_navigates(self, make_api, session, navigator, notifier, page3_data):
        """Test a successful submit moves to the documents page"""
        api, _ = make_api({
            "GET /application/page3/": {"status": "success", "data": page3_data},
            "POST /application/page3/": {"status": "success"},
        })
        page = make_page(session, api, navigator, notifier)
        await page.mount()

        result = await page.submit()

        assert result.success
        assert navigator.current == "/application/page4"
        assert not page.loading

    def test_back(self, make_api, session, navigator, notifier):
        """Test back goes to page 2"""
        api, _ = make_api({})
        page = make_page(session, api, navigator, notifier)

        page.back()

        assert navigator.current == "/application/page2"
