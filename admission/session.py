"""
Session Context - auth token and cached identity for the wizard pages.

Stored in ~/.admission/session.json (ADMISSION_SESSION_FILE overrides).
Passed explicitly to every page controller and to the API client.
"""

import json
import os
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from admission.core.config import settings
from admission.core.logging_config import logger, set_user_email
from admission.schemas.application import UserProfile


@dataclass
class SessionData:
    """Persisted session fields"""
    token: Optional[str] = None
    user_email: str = ""
    profile: Optional[Dict[str, Any]] = None
    application_id: Optional[str] = None


@dataclass
class SessionContext:
    path: Path = field(default_factory=lambda: Path(settings.SESSION_FILE))
    data: SessionData = field(default_factory=SessionData)

    def __post_init__(self):
        self.path = Path(self.path)

    # ==================== Accessors ====================

    @property
    def token(self) -> Optional[str]:
        return self.data.token

    @token.setter
    def token(self, value: Optional[str]) -> None:
        self.data.token = value

    @property
    def user_email(self) -> str:
        return self.data.user_email

    @user_email.setter
    def user_email(self, value: str) -> None:
        self.data.user_email = value or ""
        set_user_email(self.data.user_email)

    @property
    def profile(self) -> Optional[UserProfile]:
        if not self.data.profile:
            return None
        return UserProfile(**self.data.profile)

    @profile.setter
    def profile(self, value: Optional[UserProfile]) -> None:
        self.data.profile = value.model_dump() if value else None

    @property
    def application_id(self) -> Optional[str]:
        return self.data.application_id

    @application_id.setter
    def application_id(self, value: Optional[Union[str, int]]) -> None:
        self.data.application_id = str(value) if value is not None else None

    def is_authenticated(self) -> bool:
        return bool(self.data.token)

    # ==================== Lifecycle ====================

    def load(self) -> bool:
        """Load the session file; a missing or unreadable file leaves an empty session"""
        if not self.path.exists():
            return False
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"[Session] Could not load {self.path}: {e}")
            return False

        known = {key: raw.get(key) for key in SessionData.__dataclass_fields__ if key in raw}
        self.data = SessionData(**known)
        self.data.user_email = self.data.user_email or ""
        set_user_email(self.data.user_email)
        logger.debug(f"[Session] Loaded session from {self.path}")
        return True

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(asdict(self.data), f, indent=2)
        if os.name == "posix":
            os.chmod(self.path, 0o600)
        logger.debug(f"[Session] Saved session to {self.path}")

    def clear(self) -> None:
        """Drop the token (logout / 401) and persist"""
        had_token = bool(self.data.token)
        self.data.token = None
        self.save()
        if had_token:
            logger.log_auth_event("logout", success=True, user_email=self.data.user_email or None)


def load_session(path: Optional[Union[str, Path]] = None) -> SessionContext:
    session = SessionContext(path=Path(path or settings.SESSION_FILE))
    session.load()
    return session
