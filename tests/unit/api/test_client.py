"""
Unit Tests for the backend API client
Tests for: headers, error mapping, login, payment endpoints
"""
import httpx
import pytest

from admission.api.client import AdmissionAPIClient, APIResponse
from admission.core.exceptions import APIConnectionError, APIError, SessionExpiredError

from conftest import BASE_URL, fake, json_response


class TestAPIResponse:
    """Test the response wrapper"""

    def test_body_for_non_dict(self):
        """Test non-object bodies read as empty"""
        response = APIResponse(status=200, data=["a"], headers={}, success=True)

        assert response.body == {}
        assert not response.is_status_success

    def test_status_success(self):
        """Test the backend success convention"""
        response = APIResponse(status=200, data={"status": "success"}, headers={}, success=True)

        assert response.is_status_success
        assert response.json == {"status": "success"}


class TestRequests:
    """Test request plumbing"""

    @pytest.mark.asyncio
    async def test_auth_header_and_url(self, make_api):
        """Test token auth header and base URL joining"""
        api, transport = make_api({"GET /application/page3/": {"status": "success", "data": {}}})

        async with api:
            response = await api.get_page3()

        request = transport.requests[0]
        assert response.is_status_success
        assert str(request.url) == "http://testserver/api/application/page3/"
        assert request.headers["Authorization"] == "Token test-token-123"
        assert len(request.headers["X-Request-ID"]) == 8

    @pytest.mark.asyncio
    async def test_no_auth_for_public_endpoints(self, make_api):
        """Test OTP calls go without a token"""
        api, transport = make_api({"POST /send-otp/": {"status": "success"}})

        await api.send_otp("student@example.com")

        assert "Authorization" not in transport.requests[0].headers
        assert transport.json_body() == {"email": "student@example.com"}

    @pytest.mark.asyncio
    async def test_401_clears_session(self, make_api, session, session_file):
        """Test a 401 drops the token and raises"""
        api, _ = make_api({"GET /user-profile/": json_response({"detail": "Invalid token."}, 401)})

        with pytest.raises(SessionExpiredError):
            await api.get_user_profile()

        assert session.token is None
        assert session_file.exists()

    @pytest.mark.asyncio
    async def test_error_status(self, make_api):
        """Test non-2xx responses raise APIError with the payload"""
        api, _ = make_api({"POST /signup/": json_response({"status": "error", "message": "Email exists"}, 400)})

        with pytest.raises(APIError) as exc_info:
            await api.signup("Anu", "anu@example.com", "9876543210", "secret")

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Email exists"

    @pytest.mark.asyncio
    async def test_connection_error(self, session):
        """Test transport failures become APIConnectionError"""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        api = AdmissionAPIClient(BASE_URL, session, transport=httpx.MockTransport(handler))

        with pytest.raises(APIConnectionError):
            await api.get_student_details()

    @pytest.mark.asyncio
    async def test_text_body(self, make_api):
        """Test non-JSON bodies are kept as text"""
        api, _ = make_api({"GET /application/preview/": httpx.Response(200, text="ok")})

        response = await api.get_preview()

        assert response.data == "ok"
        assert response.body == {}


class TestLogin:
    """Test login"""

    @pytest.mark.asyncio
    async def test_login_stores_token(self, make_api, anonymous_session, session_file):
        """Test a successful login persists the token and email"""
        email = fake.email()
        api, _ = make_api({"POST /login/": {"status": "success", "token": "abc123"}}, anonymous_session)

        await api.login(email, "password123")

        assert anonymous_session.token == "abc123"
        assert anonymous_session.user_email == email
        assert session_file.exists()

    @pytest.mark.asyncio
    async def test_login_without_token(self, make_api, anonymous_session):
        """Test an error status leaves the session anonymous"""
        api, _ = make_api({"POST /login/": {"status": "error", "message": "Invalid credentials"}}, anonymous_session)

        response = await api.login("x@example.com", "bad")

        assert anonymous_session.token is None
        assert response.body["message"] == "Invalid credentials"


class TestPaymentEndpoints:
    """Test payment request bodies"""

    @pytest.mark.asyncio
    async def test_create_order(self, make_api):
        """Test order amount and currency"""
        api, transport = make_api({"POST /create-order/": {"status": "success", "order_id": "order_1"}})

        response = await api.create_order(23400, "INR")

        assert response.body["order_id"] == "order_1"
        assert transport.json_body() == {"amount": 23400, "currency": "INR"}

    @pytest.mark.asyncio
    async def test_verify_payment_keys(self, make_api):
        """Test gateway result field names"""
        api, transport = make_api({"POST /verify-payment/": {"status": "success", "application_id": 42}})

        await api.verify_payment("pay_1", "order_1", "sig")

        assert transport.json_body() == {
            "razorpay_payment_id": "pay_1",
            "razorpay_order_id": "order_1",
            "razorpay_signature": "sig",
        }
