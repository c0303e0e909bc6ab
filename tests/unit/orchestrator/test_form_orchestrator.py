"""
Unit Tests for the Form Orchestrator
Tests for: validation report, payload, submit flow, debounced notifications, upload sink
"""
import asyncio
from unittest.mock import MagicMock

import pytest

from admission.api.client import APIResponse
from admission.orchestrator.actions import (
    AddQualification,
    AddSubject,
    Hydrate,
    RemoveQualification,
    SetProfessionalField,
    UpdateQualification,
    UpdateSemester,
    UpdateSubject,
)
from admission.orchestrator.form_orchestrator import (
    FormOrchestrator,
    RenderDebouncer,
    normalize_field_errors,
    validate_document,
)
from admission.pages.base import Notifier
from admission.services.records import FormDocument
from admission.services.uploads import UploadTarget

from conftest import complete_subject, json_response


def valid_form(page3_data, notifier=None) -> FormOrchestrator:
    form = FormOrchestrator(notifier=notifier, debounce_seconds=0)
    form.dispatch(Hydrate(data=page3_data))
    return form


def fill_subject(form, semester_index, subject_index=0, **values):
    for name, value in complete_subject(**values).items():
        form.dispatch(UpdateSubject(
            semester_index=semester_index, subject_index=subject_index, field=name, value=value,
        ))


class SlowAPI:
    """API stub whose submit yields to the event loop"""

    def __init__(self):
        self.calls = 0

    async def submit_page3(self, payload):
        self.calls += 1
        await asyncio.sleep(0.01)
        return APIResponse(status=200, data={"status": "success"}, headers={}, success=True)


class TestValidation:
    """Test the validation report"""

    def test_blank_document_errors(self):
        """Test a blank form reports both mandatory qualifications"""
        report = validate_document(FormDocument())

        assert not report.is_valid
        assert set(report.errors) == {"qualification_0", "qualification_1"}
        assert "SSLC Marksheet is required" in report.errors["qualification_0"]
        assert "HSC Marksheet is required" in report.errors["qualification_1"]

    def test_hydrated_document_valid(self, page3_data):
        """Test a complete server payload is valid"""
        assert valid_form(page3_data).is_valid

    def test_semesters_require_summary_and_marksheet(self, page3_data):
        """Test semester marks bring the marksheet and class requirements"""
        form = valid_form(page3_data)
        form.dispatch(AddQualification())

        errors = form.errors

        assert errors["semester_marksheet"] == ["Semester marksheet upload is required"]
        assert errors["class_obtained"] == ["class obtained is required for semester marks"]
        assert "semester_5" not in errors
        assert "semester_0" in errors

    def test_professional_numbers(self, page3_data):
        """Test negative experience is reported"""
        form = valid_form(page3_data)
        form.dispatch(SetProfessionalField(field="years_experience", value="-1"))

        assert form.errors["years_experience"] == ["Years of Experience must be a valid non-negative number"]

    def test_validate_all_idempotent(self, page3_data):
        """Test repeated validation gives the same report"""
        form = valid_form(page3_data)
        form.dispatch(AddQualification())

        assert form.validate_all() == form.validate_all()


class TestServerErrors:
    """Test server error merging"""

    def test_normalize(self):
        """Test scalar and list values become lists of strings"""
        assert normalize_field_errors({"a": "bad", "b": ["x", 2]}) == {"a": ["bad"], "b": ["x", "2"]}

    def test_merge_until_next_dispatch(self, page3_data):
        """Test merged errors show until the next edit"""
        form = valid_form(page3_data)
        form.merge_server_errors({"qualification_0": ["Register number already used"]})

        assert form.errors == {"qualification_0": ["Register number already used"]}

        form.dispatch(UpdateQualification(index=0, field="board", value="CBSE"))

        assert form.is_valid


class TestPayload:
    """Test submission payload"""

    def test_incomplete_entries_omitted(self, page3_data):
        """Test only complete qualifications are sent"""
        form = valid_form(page3_data)
        form.dispatch(AddQualification())

        payload = form.build_payload()

        assert [q["course"] for q in payload["qualifications"]] == ["S.S.L.C", "HSC"]
        assert payload["sslc_marksheet_url"].endswith("sslc123/view")
        assert payload["ug_marksheet_url"] == ""

    def test_semesters_filtered(self, page3_data):
        """Test empty semesters are dropped and a complete optional one is kept"""
        form = valid_form(page3_data)
        form.dispatch(AddQualification())
        form.dispatch(AddSubject(semester_index=0))
        fill_subject(form, 0, max_marks="100", obtained_marks="70")
        form.dispatch(AddSubject(semester_index=5))
        fill_subject(form, 5, max_marks="50", obtained_marks="35")

        payload = form.build_payload()

        assert [s["semester"] for s in payload["semester_marks"]] == ["Semester 1", "Semester 6"]
        assert payload["total_max_marks"] == 150.0
        assert payload["total_obtained_marks"] == 105.0
        assert payload["percentage"] == 70.0

    def test_optional_semester_without_label_dropped(self, page3_data):
        """Test the optional semester needs a label"""
        form = valid_form(page3_data)
        form.dispatch(AddQualification())
        form.dispatch(UpdateSemester(index=5, label=""))

        assert form.build_payload()["semester_marks"] == []

    def test_blank_numbers_are_null(self, page3_data):
        """Test blank numeric fields serialize as None"""
        payload = valid_form(page3_data).build_payload()

        assert payload["years_experience"] is None
        assert payload["annual_income"] is None

    def test_totals_null_without_semesters(self, page3_data):
        """Test derived totals are sent as null while no semester exists"""
        payload = valid_form(page3_data).build_payload()

        assert payload["total_max_marks"] is None
        assert payload["total_obtained_marks"] is None
        assert payload["percentage"] is None


class TestSubmit:
    """Test submit flow"""

    @pytest.mark.asyncio
    async def test_success(self, page3_data, make_api, session):
        """Test a valid form posts and moves to documents"""
        notifier = Notifier()
        api, transport = make_api({"POST /application/page3/": {"status": "success"}})
        form = valid_form(page3_data, notifier)

        result = await form.submit(api, session)

        assert result.success
        assert result.next_route == "/application/page4"
        assert notifier.messages("success") == ["Page 3 submitted successfully!"]
        assert transport.json_body()["email"] == page3_data["email"]

    @pytest.mark.asyncio
    async def test_invalid_form_not_sent(self, make_api, session):
        """Test an invalid form never reaches the server"""
        notifier = Notifier()
        api, transport = make_api({})
        form = FormOrchestrator(notifier=notifier, debounce_seconds=0)

        result = await form.submit(api, session)

        assert not result.success
        assert result.message == "Please fix all errors before submitting."
        assert "qualification_0" in result.field_errors
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_missing_token(self, page3_data, make_api, anonymous_session):
        """Test submit without a token sends the user to login"""
        notifier = Notifier()
        api, transport = make_api({}, anonymous_session)

        result = await valid_form(page3_data, notifier).submit(api, anonymous_session)

        assert result.next_route == "/login"
        assert notifier.messages("error") == ["Please login again."]
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_server_field_errors_merged(self, page3_data, make_api, session):
        """Test a 400 with field errors is merged into the report"""
        api, _ = make_api({
            "POST /application/page3/": json_response({"percentage": ["Enter a valid number."]}, 400),
        })
        form = valid_form(page3_data, Notifier())

        result = await form.submit(api, session)

        assert not result.success
        assert result.message == "Submission failed: percentage: Enter a valid number."
        assert form.errors == {"percentage": ["Enter a valid number."]}

    @pytest.mark.asyncio
    async def test_unauthorized(self, page3_data, make_api, session):
        """Test a 401 clears the token and routes to login"""
        api, _ = make_api({"POST /application/page3/": json_response({"detail": "Invalid token."}, 401)})

        result = await valid_form(page3_data, Notifier()).submit(api, session)

        assert result.next_route == "/login"
        assert session.token is None

    @pytest.mark.asyncio
    async def test_status_not_success(self, page3_data, make_api, session):
        """Test a 200 with an error status reports the server message"""
        api, _ = make_api({"POST /application/page3/": {"status": "error", "message": "Closed for the year"}})

        result = await valid_form(page3_data, Notifier()).submit(api, session)

        assert not result.success
        assert result.message == "Closed for the year"

    @pytest.mark.asyncio
    async def test_concurrent_submit_deduplicated(self, page3_data, session):
        """Test a second submit while one is in flight is ignored"""
        api = SlowAPI()
        form = valid_form(page3_data)

        first, second = await asyncio.gather(form.submit(api, session), form.submit(api, session))

        assert api.calls == 1
        assert first.success
        assert second.message == "Submission already in progress"
        assert not form.is_submitting


class TestSubscribers:
    """Test debounced notifications"""

    def test_immediate_without_debounce(self, page3_data):
        """Test subscribers see every dispatch when debounce is off"""
        form = valid_form(page3_data)
        callback = MagicMock()
        unsubscribe = form.subscribe(callback)

        form.dispatch(AddQualification())
        unsubscribe()
        form.dispatch(AddQualification())

        assert callback.call_count == 1
        document, report = callback.call_args[0]
        assert document.qualifications.count == 3
        assert not report.is_valid

    @pytest.mark.asyncio
    async def test_debounced_in_event_loop(self):
        """Test rapid dispatches produce one notification but state updates immediately"""
        form = FormOrchestrator(debounce_seconds=0.02)
        callback = MagicMock()
        form.subscribe(callback)

        for value in ("1", "12", "123"):
            form.dispatch(UpdateQualification(index=0, field="reg_no", value=value))
            assert form.document.qualifications.sslc.reg_no == value

        assert callback.call_count == 0
        await asyncio.sleep(0.06)
        assert callback.call_count == 1

    @pytest.mark.asyncio
    async def test_flush(self):
        """Test flush delivers a pending notification"""
        form = FormOrchestrator(debounce_seconds=10)
        callback = MagicMock()
        form.subscribe(callback)
        form.dispatch(AddQualification())

        form.flush()

        assert callback.call_count == 1

    def test_debouncer_outside_loop(self):
        """Test the debouncer calls straight through without a running loop"""
        callback = MagicMock()
        debouncer = RenderDebouncer(callback, delay=5)

        debouncer.trigger()

        assert callback.call_count == 1
        assert not debouncer.pending


class TestUploadSink:
    """Test the orchestrator as upload sink"""

    def test_success_sets_url(self):
        """Test a finished upload stores the URL with progress back at 0"""
        form = FormOrchestrator(debounce_seconds=0)
        target = UploadTarget.qualification(1, "HSC")

        form.progress(target, 100)
        form.succeeded(target, "https://hsc", "hsc.pdf")

        assert form.document.qualifications.hsc.marksheet_url == "https://hsc"
        assert form.document.qualifications.hsc.upload.progress == 0
        assert "HSC Marksheet is required" not in form.errors.get("qualification_1", [])

    def test_removed_slot_ignored(self):
        """Test updates for a removed qualification are dropped"""
        form = FormOrchestrator(debounce_seconds=0)
        form.dispatch(AddQualification())
        target = UploadTarget.qualification(2, "UG")
        form.dispatch(RemoveQualification(index=2))

        form.succeeded(target, "https://ug")

        assert form.document.qualifications.count == 2

    def test_entry_above_running_upload_removed(self):
        """Test an upload follows its entry when an earlier entry is removed"""
        form = FormOrchestrator(debounce_seconds=0)
        form.dispatch(AddQualification())
        form.dispatch(AddQualification())
        form.dispatch(UpdateQualification(index=2, field="course", value="Diploma"))
        form.dispatch(UpdateQualification(index=3, field="course", value="UG"))
        ug = form.document.qualifications.get(3)
        target = UploadTarget.qualification(3, "UG", ug.entry_id)

        form.dispatch(RemoveQualification(index=2))
        form.succeeded(target, "https://ug-marksheet", "ug.pdf")

        moved = form.document.qualifications.get(2)
        assert moved.course == "UG"
        assert moved.marksheet_url == "https://ug-marksheet"

    def test_upload_for_removed_entry_not_reassigned(self):
        """Test a removed entry's upload never lands on the entry that took its place"""
        form = FormOrchestrator(debounce_seconds=0)
        form.dispatch(AddQualification())
        form.dispatch(AddQualification())
        form.dispatch(UpdateQualification(index=2, field="course", value="Diploma"))
        form.dispatch(UpdateQualification(index=3, field="course", value="UG"))
        diploma = form.document.qualifications.get(2)
        target = UploadTarget.qualification(2, "Diploma", diploma.entry_id)

        form.dispatch(RemoveQualification(index=2))
        form.progress(target, 60)
        form.succeeded(target, "https://diploma-marksheet")

        remaining = form.document.qualifications.get(2)
        assert remaining.course == "UG"
        assert remaining.marksheet_url == ""
        assert remaining.upload.progress == 0

    def test_orphaned_semesters(self):
        """Test semesters left without additional qualifications are flagged"""
        form = FormOrchestrator(debounce_seconds=0)
        form.dispatch(AddQualification())
        form.dispatch(RemoveQualification(index=2))

        assert form.orphaned_semesters
