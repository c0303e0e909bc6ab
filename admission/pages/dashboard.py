"""Dashboard (/dashboard)"""

from typing import Optional

from admission.core.exceptions import HydrationError
from admission.pages.base import PageController
from admission.schemas.application import UserProfile
from admission.schemas.navigation import Route


class DashboardPage(PageController):
    route = Route.DASHBOARD

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.profile: Optional[UserProfile] = None

    async def load(self) -> None:
        response = await self.api.get_user_profile()
        data = response.body.get("data")
        if not response.is_status_success or not isinstance(data, dict):
            raise HydrationError("Invalid user data received.", endpoint="/user-profile/")
        self.profile = UserProfile(
            email=data.get("email") or "user@example.com",
            name=data.get("name") or "User",
            phone=data.get("phone") or "",
        )
        self.session.profile = self.profile
        self.session.save()

    def logout(self) -> None:
        self.session.clear()
        self.notifier.success("Logged out successfully!")
        self.navigator.go(Route.LOGIN)
