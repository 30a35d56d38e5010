"""
Backoffice Admin - Session Store

Explicit wrapper around the per-browser session mapping (Starlette's signed
cookie session in production, a plain dict in unit tests). The impersonation
state machine only ever talks to the session through this class.
"""

import uuid
from dataclasses import asdict, dataclass
from typing import Any, MutableMapping, Optional

AUTH_KEY = "auth_user_id"
IMPERSONATION_KEY = "impersonation"


@dataclass(frozen=True)
class ImpersonationSession:
    """State kept under the ``impersonation`` key while a user is impersonated."""

    is_impersonating: bool
    original_user_id: str
    return_url: str
    can_bypass_2fa: bool = True

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ImpersonationSession"]:
        """Rebuild from session data; anything malformed yields None."""
        if not isinstance(data, dict):
            return None
        if not data.get("is_impersonating") or not data.get("original_user_id"):
            return None
        return cls(
            is_impersonating=True,
            original_user_id=str(data["original_user_id"]),
            return_url=data.get("return_url") or "",
            can_bypass_2fa=bool(data.get("can_bypass_2fa", True)),
        )

    @property
    def original_uuid(self) -> Optional[uuid.UUID]:
        try:
            return uuid.UUID(self.original_user_id)
        except ValueError:
            return None


class SessionStore:
    """Key/value access plus the authenticated principal of one session."""

    def __init__(self, data: Optional[MutableMapping[str, Any]] = None):
        self._data = data if data is not None else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def put(self, key: str, value: Any) -> None:
        self._data[key] = value

    def forget(self, key: str) -> None:
        self._data.pop(key, None)

    def has(self, key: str) -> bool:
        return key in self._data

    # ===========================================
    # AUTHENTICATED PRINCIPAL
    # ===========================================

    def auth_user_id(self) -> Optional[uuid.UUID]:
        raw = self._data.get(AUTH_KEY)
        if not raw:
            return None
        try:
            return uuid.UUID(str(raw))
        except ValueError:
            return None

    def login(self, user_id: uuid.UUID) -> None:
        """Make ``user_id`` the authenticated principal of this session."""
        self._data[AUTH_KEY] = str(user_id)

    def logout(self) -> None:
        """Drop the principal and everything else held in the session."""
        self._data.clear()

    # ===========================================
    # IMPERSONATION STATE
    # ===========================================

    def impersonation(self) -> Optional[ImpersonationSession]:
        return ImpersonationSession.from_dict(self._data.get(IMPERSONATION_KEY))

    def is_impersonating(self) -> bool:
        return self.impersonation() is not None
