"""
Admission Portal - Backend API Client
Thin async wrapper over every backend endpoint the wizard pages call.
"""

import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional

import httpx

from admission.core.config import settings
from admission.core.exceptions import (
    APIConnectionError,
    APIError,
    SessionExpiredError,
    UploadCancelledError,
)
from admission.core.logging_config import logger, generate_request_id, set_request_id
from admission.session import SessionContext


@dataclass
class APIResponse:
    """API Response wrapper"""
    status: int
    data: Any
    headers: Dict[str, str]
    success: bool

    @property
    def json(self) -> Any:
        return self.data

    @property
    def body(self) -> Dict[str, Any]:
        """Response body when it is a JSON object, else {}"""
        return self.data if isinstance(self.data, dict) else {}

    @property
    def is_status_success(self) -> bool:
        """Backend convention: {"status": "success", ...}"""
        return self.body.get("status") == "success"


class AdmissionAPIClient:
    """API Client for the admission backend"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[SessionContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip('/')
        self.session = session or SessionContext()
        self.transport = transport
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None:
            kwargs: Dict[str, Any] = {"transport": self.transport}
            if self.timeout is not None:
                kwargs["timeout"] = self.timeout
            self.client = httpx.AsyncClient(**kwargs)
        return self.client

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    def _get_headers(self, auth: bool = True, json_body: bool = True) -> Dict[str, str]:
        """Get request headers"""
        request_id = generate_request_id()
        set_request_id(request_id)
        headers = {"X-Request-ID": request_id}
        if json_body:
            headers["Content-Type"] = "application/json"
        if auth and self.session.token:
            headers["Authorization"] = f"Token {self.session.token}"
        return headers

    def _handle_response(self, response: httpx.Response, method: str, endpoint: str,
                         started: float) -> APIResponse:
        try:
            data = response.json()
        except ValueError:
            data = response.text

        logger.log_request(
            method, endpoint, response.status_code,
            (time.perf_counter() - started) * 1000,
        )

        if response.status_code == 401:
            logger.log_auth_event("token_check", success=False,
                                  user_email=self.session.user_email or None,
                                  reason=f"401 on {endpoint}")
            self.session.clear()
            raise SessionExpiredError()

        result = APIResponse(
            status=response.status_code,
            data=data,
            headers=dict(response.headers),
            success=200 <= response.status_code < 300,
        )
        if not result.success:
            raise APIError(response.status_code, data)
        return result

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict] = None,
        auth: bool = True,
    ) -> APIResponse:
        """Make HTTP request"""
        client = self._ensure_client()
        url = f"{self.base_url}{endpoint}"
        started = time.perf_counter()

        try:
            response = await client.request(method, url, json=data, headers=self._get_headers(auth))
        except httpx.TransportError as e:
            logger.log_error_with_context(e, context=f"{method} {endpoint}")
            raise APIConnectionError() from e

        return self._handle_response(response, method, endpoint, started)

    # ==================== Uploads ====================

    async def upload(
        self,
        endpoint: str,
        files: Dict[str, Any],
        data: Optional[Dict[str, str]] = None,
        on_progress: Optional[Callable[[int], None]] = None,
        is_aborted: Optional[Callable[[], bool]] = None,
        chunk_size: Optional[int] = None,
    ) -> APIResponse:
        """
        POST a multipart body in chunks, reporting progress as each chunk is handed
        to the transport.

        Args:
            endpoint: Path under the API base (e.g. "/upload-marksheet/")
            files: httpx-style files mapping
            data: Extra form fields
            on_progress: Called with 0-100 after each chunk
            is_aborted: Checked before each chunk; True cancels the upload

        Raises:
            UploadCancelledError: Aborted between chunks
        """
        client = self._ensure_client()
        url = f"{self.base_url}{endpoint}"
        chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE

        prepared = client.build_request(
            "POST", url, files=files, data=data,
            headers=self._get_headers(json_body=False),
        )
        body = prepared.read()
        total = len(body) or 1

        async def body_chunks() -> AsyncIterator[bytes]:
            sent = 0
            for start in range(0, len(body), chunk_size):
                if is_aborted is not None and is_aborted():
                    raise UploadCancelledError()
                chunk = body[start:start + chunk_size]
                sent += len(chunk)
                if on_progress is not None:
                    on_progress(min(100, sent * 100 // total))
                yield chunk

        # Content-Length is kept from the prepared request so the body is not sent chunked-encoded
        request = client.build_request("POST", url, content=body_chunks(), headers=prepared.headers)
        started = time.perf_counter()
        try:
            response = await client.send(request)
        except httpx.TransportError as e:
            logger.log_error_with_context(e, context=f"POST {endpoint}")
            raise APIConnectionError() from e

        return self._handle_response(response, "POST", endpoint, started)

    # ==================== Authentication ====================

    async def send_otp(self, email: str) -> APIResponse:
        return await self._request("POST", "/send-otp/", data={"email": email}, auth=False)

    async def verify_otp(self, email: str, otp: str) -> APIResponse:
        return await self._request("POST", "/verify-otp/", data={"email": email, "otp": otp}, auth=False)

    async def signup(self, name: str, email: str, phone: str, password: str) -> APIResponse:
        data = {"name": name, "email": email, "phone": phone, "password": password}
        return await self._request("POST", "/signup/", data=data, auth=False)

    async def login(self, email: str, password: str) -> APIResponse:
        """Login and store the token in the session"""
        response = await self._request("POST", "/login/", data={"email": email, "password": password}, auth=False)
        if response.is_status_success and response.body.get("token"):
            self.session.token = response.body["token"]
            self.session.user_email = email
            self.session.save()
            logger.log_auth_event("login", success=True, user_email=email)
        else:
            logger.log_auth_event("login", success=False, user_email=email,
                                  reason=str(response.body.get("message") or "no token"))
        return response

    # ==================== Profile ====================

    async def get_current_user_email(self) -> APIResponse:
        return await self._request("GET", "/current-user-email/")

    async def get_user_profile(self) -> APIResponse:
        return await self._request("GET", "/user-profile/")

    async def get_student_details(self) -> APIResponse:
        return await self._request("GET", "/student-details/")

    # ==================== Application ====================

    async def get_page3(self) -> APIResponse:
        return await self._request("GET", "/application/page3/")

    async def submit_page3(self, payload: Dict[str, Any]) -> APIResponse:
        return await self._request("POST", "/application/page3/", data=payload)

    async def get_preview(self) -> APIResponse:
        return await self._request("GET", "/application/preview/")

    async def get_autofill(self) -> APIResponse:
        return await self._request("GET", "/get-autofill-application/")

    # ==================== Payment ====================

    async def create_order(self, amount: int, currency: str) -> APIResponse:
        return await self._request("POST", "/create-order/", data={"amount": amount, "currency": currency})

    async def verify_payment(self, payment_id: str, order_id: str, signature: str) -> APIResponse:
        data = {
            "razorpay_payment_id": payment_id,
            "razorpay_order_id": order_id,
            "razorpay_signature": signature,
        }
        return await self._request("POST", "/verify-payment/", data=data)
