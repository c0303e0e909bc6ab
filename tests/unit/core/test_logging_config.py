"""
Unit Tests for logging configuration
"""
import json
import logging

from admission.core.logging_config import (
    JSONFormatter,
    generate_request_id,
    get_request_id,
    get_user_email,
    logger,
    set_request_id,
    set_user_email,
)


class TestContextVars:
    """Test request tracing context"""

    def test_request_id_roundtrip(self):
        """Test request id can be set and read"""
        set_request_id("abc12345")

        assert get_request_id() == "abc12345"

    def test_generate_request_id_length(self):
        """Test generated ids are short"""
        assert len(generate_request_id()) == 8

    def test_user_email(self):
        """Test user email context"""
        set_user_email("student@example.com")

        assert get_user_email() == "student@example.com"


class TestJSONFormatter:
    """Test JSON structured output"""

    def test_includes_extra_fields(self):
        """Test extra attributes end up in the JSON record"""
        record = logging.LogRecord("admission", logging.INFO, __file__, 1, "Upload started", None, None)
        record.upload_target = "photo"

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "Upload started"
        assert payload["upload_target"] == "photo"


class TestAdmissionLogger:
    """Test helper methods"""

    def test_log_upload_event(self, caplog):
        """Test upload events are logged with the target"""
        with caplog.at_level(logging.INFO, logger="admission"):
            logger.log_upload_event("photo", "succeeded", "me.jpg", 1024)

        assert any("photo" in record.getMessage() for record in caplog.records)
