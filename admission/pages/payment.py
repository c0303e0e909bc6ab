"""
Payment page (/application/page6).

The gateway checkout itself is external; this controller resolves the payer
profile, creates the order (with retries) and verifies the gateway result
with the backend.
"""

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from admission.api.client import APIResponse
from admission.core.config import settings
from admission.core.exceptions import (
    APIConnectionError,
    APIError,
    OrderCreationError,
    SessionExpiredError,
)
from admission.core.logging_config import logger
from admission.pages.base import PageController
from admission.schemas.application import UserProfile
from admission.schemas.navigation import Route


class PaymentStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


STATUS_MESSAGES = {
    PaymentStatus.SUCCESS: "Payment successful! Your application has been submitted.",
    PaymentStatus.FAILED: "Payment failed. Please try again.",
    PaymentStatus.CANCELLED: "Payment cancelled.",
}


class PaymentPage(PageController):
    route = Route.PAYMENT

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.profile: Optional[UserProfile] = None
        self.order_id: Optional[str] = None
        self.status: Optional[PaymentStatus] = None
        self.processing = False

    async def mount(self) -> bool:
        mounted = await super().mount()
        return mounted and self.profile is not None

    async def load(self) -> None:
        """Profile from the session cache, then student-details, then user-profile"""
        cached = self.session.profile
        if cached and cached.email and cached.name:
            self.profile = cached
            return

        profile = await self._fetch_profile(self.api.get_student_details, "student-details")
        if profile is None:
            profile = await self._fetch_profile(self.api.get_user_profile, "user-profile")
        if profile is None:
            logger.warning("[Payment] No profile available, sending user to login")
            self.redirect_to_login()
            return

        self.profile = profile
        self.session.profile = profile
        self.session.save()

    async def _fetch_profile(self, call: Callable[[], Awaitable[APIResponse]],
                             source: str) -> Optional[UserProfile]:
        try:
            response = await call()
        except SessionExpiredError:
            raise
        except (APIError, APIConnectionError) as e:
            logger.warning(f"[Payment] {source} lookup failed: {e.message}")
            return None
        data = response.body.get("data")
        if not response.is_status_success or not isinstance(data, dict):
            logger.warning(f"[Payment] {source} returned no usable data")
            return None
        profile = UserProfile.from_api(data)
        if profile is not None and not profile.name:
            profile = profile.model_copy(update={"name": "User"})
        return profile

    # ==================== Order ====================

    async def create_order(self) -> Optional[str]:
        """POST /create-order/ with up to ORDER_MAX_RETRIES retries, ORDER_RETRY_DELAY apart"""
        if self.order_id:
            return self.order_id

        attempts = settings.ORDER_MAX_RETRIES + 1
        for attempt in range(1, attempts + 1):
            try:
                response = await self.api.create_order(settings.APPLICATION_FEE_PAISE, settings.PAYMENT_CURRENCY)
                order_id = response.body.get("order_id")
                if response.is_status_success and order_id:
                    self.order_id = str(order_id)
                    logger.info(f"[Payment] Order {self.order_id} created (attempt {attempt})")
                    return self.order_id
                logger.warning(f"[Payment] Order attempt {attempt} returned no order id")
            except SessionExpiredError as e:
                self.redirect_to_login(e.message)
                return None
            except (APIError, APIConnectionError) as e:
                logger.warning(f"[Payment] Order attempt {attempt} failed: {e.message}")

            if attempt < attempts:
                await asyncio.sleep(settings.ORDER_RETRY_DELAY)

        error = OrderCreationError(attempts)
        logger.error(f"[Payment] {error.message} after {attempts} attempts")
        self.notifier.error(error.message)
        return None

    def checkout_options(self) -> Dict[str, Any]:
        """Values handed to the gateway checkout"""
        profile = self.profile or UserProfile()
        return {
            "amount": settings.APPLICATION_FEE_PAISE,
            "currency": settings.PAYMENT_CURRENCY,
            "name": "Application Portal",
            "description": "Application Fee Payment",
            "order_id": self.order_id,
            "prefill": {"name": profile.name, "email": profile.email, "contact": profile.phone},
        }

    @property
    def ready(self) -> bool:
        return bool(self.order_id and self.profile and self.profile.email and self.profile.name)

    # ==================== Gateway result ====================

    async def verify(self, payment_id: str, order_id: str, signature: str) -> PaymentStatus:
        self.processing = True
        try:
            response = await self.api.verify_payment(payment_id, order_id, signature)
        except SessionExpiredError as e:
            self.redirect_to_login(e.message)
            return self._settle(PaymentStatus.FAILED)
        except (APIError, APIConnectionError) as e:
            logger.log_error_with_context(e, context="verify-payment")
            return self._settle(PaymentStatus.FAILED)
        finally:
            self.processing = False

        if not response.is_status_success:
            return self._settle(PaymentStatus.FAILED)

        self.session.application_id = response.body.get("application_id")
        self.session.save()
        status = self._settle(PaymentStatus.SUCCESS)
        self.navigator.go(Route.SUBMITTED)
        return status

    def cancel(self) -> PaymentStatus:
        """Checkout dismissed by the user"""
        self.processing = False
        return self._settle(PaymentStatus.CANCELLED)

    def fail(self, reason: str = "") -> PaymentStatus:
        """Gateway reported payment.failed"""
        self.processing = False
        if reason:
            logger.warning(f"[Payment] Gateway failure: {reason}")
        return self._settle(PaymentStatus.FAILED)

    def _settle(self, status: PaymentStatus) -> PaymentStatus:
        self.status = status
        message = STATUS_MESSAGES[status]
        if status == PaymentStatus.SUCCESS:
            self.notifier.success(message)
        elif status == PaymentStatus.CANCELLED:
            self.notifier.warning(message)
        else:
            self.notifier.error(message)
        logger.info(f"[Payment] Status: {status.value}")
        return status
