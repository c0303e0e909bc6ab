"""
Page controller plumbing: navigation, toasts and the mount/retry lifecycle
shared by every wizard step.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from rich.console import Console

from admission.api.client import AdmissionAPIClient, APIResponse
from admission.core.exceptions import (
    APIConnectionError,
    APIError,
    HydrationError,
    SessionExpiredError,
)
from admission.core.logging_config import logger
from admission.schemas.navigation import Route
from admission.session import SessionContext


LOGIN_AGAIN_MESSAGE = "Please login again."


@dataclass(frozen=True)
class Toast:
    level: str
    message: str


class Notifier:
    """Collects user-facing toasts; mirrors them to the logger and optionally a rich console"""

    STYLES = {
        "success": "green",
        "error": "red",
        "warning": "yellow",
        "info": "cyan",
    }

    LOG_LEVELS = {
        "success": logging.INFO,
        "error": logging.WARNING,
        "warning": logging.WARNING,
        "info": logging.INFO,
    }

    def __init__(self, console: Optional[Console] = None):
        self.console = console
        self.toasts: List[Toast] = []

    def success(self, message: str) -> None:
        self._push("success", message)

    def error(self, message: str) -> None:
        self._push("error", message)

    def warning(self, message: str) -> None:
        self._push("warning", message)

    def info(self, message: str) -> None:
        self._push("info", message)

    def _push(self, level: str, message: str) -> None:
        self.toasts.append(Toast(level, message))
        logger.log(self.LOG_LEVELS[level], f"[Toast] {level}: {message}")
        if self.console is not None:
            style = self.STYLES[level]
            self.console.print(f"[{style}]{message}[/{style}]")

    @property
    def last(self) -> Optional[Toast]:
        return self.toasts[-1] if self.toasts else None

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [toast.message for toast in self.toasts if level is None or toast.level == level]

    def clear(self) -> None:
        self.toasts.clear()


class Navigator:
    """Records wizard route transitions"""

    def __init__(self, start: Union[Route, str, None] = None):
        self.history: List[str] = [_route(start)] if start else []

    def go(self, route: Union[Route, str]) -> None:
        route = _route(route)
        logger.debug(f"[Navigator] -> {route}")
        self.history.append(route)

    @property
    def current(self) -> Optional[str]:
        return self.history[-1] if self.history else None

    def back(self) -> Optional[str]:
        if len(self.history) > 1:
            self.history.pop()
        return self.current


def _route(route: Union[Route, str]) -> str:
    return route.value if isinstance(route, Route) else str(route)


def response_data(response: APIResponse, endpoint: str) -> dict:
    """`data` object of a {"status": "success", "data": {...}} response"""
    data = response.body.get("data")
    if not response.is_status_success or not isinstance(data, dict):
        raise HydrationError(str(response.body.get("message") or "Error fetching data"), endpoint=endpoint)
    return data


class PageController:
    """
    Base wizard page.

    mount() redirects to login without a token; a 401 clears the token and
    redirects; any other fetch failure sets fetch_error and leaves the page
    retryable.
    """

    route: Route = Route.DASHBOARD

    def __init__(
        self,
        session: SessionContext,
        api: AdmissionAPIClient,
        navigator: Navigator,
        notifier: Notifier,
    ):
        self.session = session
        self.api = api
        self.navigator = navigator
        self.notifier = notifier
        self.loading = False
        self.fetch_error: Optional[str] = None
        self.mounted = False

    async def mount(self) -> bool:
        if not self.session.token:
            self.redirect_to_login(LOGIN_AGAIN_MESSAGE)
            return False
        self.mounted = await self._guarded_load()
        return self.mounted

    async def retry(self) -> bool:
        self.fetch_error = None
        return await self.mount()

    async def load(self) -> None:
        """Fetch page state; subclasses override"""

    async def _guarded_load(self) -> bool:
        self.loading = True
        try:
            await self.load()
            self.fetch_error = None
            return True
        except SessionExpiredError as e:
            self.redirect_to_login(e.message)
            return False
        except (APIError, APIConnectionError, HydrationError) as e:
            self.fetch_error = e.message
            logger.log_error_with_context(e, context=f"{type(self).__name__}.load")
            self.notifier.error(f"Error fetching data: {e.message}")
            return False
        finally:
            self.loading = False

    def redirect_to_login(self, message: Optional[str] = None) -> None:
        if message:
            self.notifier.error(message)
        self.navigator.go(Route.LOGIN)
