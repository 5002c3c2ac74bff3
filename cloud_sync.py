import datetime
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from planner_core import PlannerState
from planner_settings import DEFAULT_TABLE, Settings

logger = logging.getLogger(__name__)

# -------------------------------
# Optional Supabase support
# -------------------------------

SUPABASE_AVAILABLE = False
try:
    from supabase import create_client  # pip install supabase
    SUPABASE_AVAILABLE = True
except ImportError:
    SUPABASE_AVAILABLE = False


class SignInError(Exception):
    """Sign-in or sign-up was rejected; shown to the user as a blocking notice."""


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.email or self.id


AuthListener = Callable[[Optional[AuthUser]], None]


def _get_attr(obj: Any, name: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def user_from_auth(user: Any) -> Optional[AuthUser]:
    uid = _get_attr(user, "id")
    if not uid:
        return None
    meta = _get_attr(user, "user_metadata") or {}
    if not isinstance(meta, dict):
        meta = {}
    email = _get_attr(user, "email")
    return AuthUser(
        id=str(uid),
        email=str(email) if email else None,
        display_name=meta.get("full_name") or meta.get("name") or None,
        photo_url=meta.get("avatar_url") or meta.get("picture") or None,
    )


def make_client(settings: Settings) -> Any:
    if not SUPABASE_AVAILABLE:
        logger.info("supabase package not installed, running local-only")
        return None
    if not settings.cloud_configured:
        return None
    try:
        return create_client(settings.supabase_url, settings.supabase_anon_key)
    except Exception as e:
        logger.error("Could not create Supabase client: %s", e)
        return None


class CloudSync:
    """
    Mirrors the planner record to one row per signed-in user.

    On sign-in the remote row is shallow-merged over the local record (remote
    wins per top-level key). Every local save while signed in overwrites the
    row. Network and auth failures are logged; only sign-in errors surface.
    """

    def __init__(self, state: PlannerState, client: Any = None, table: str = DEFAULT_TABLE):
        self.state = state
        self.client = client
        self.table = table
        self.user: Optional[AuthUser] = None
        self._listeners: List[AuthListener] = []
        state.add_save_hook(self.push)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @property
    def signed_in(self) -> bool:
        return self.user is not None

    def subscribe(self, listener: AuthListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    # ---- auth ----

    def sign_in(self, email: str, password: str) -> AuthUser:
        if self.client is None:
            raise SignInError("Cloud sync is not configured.")
        if not email or not password:
            raise SignInError("Enter email and password.")

        try:
            res = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            logger.error("Sign in failed: %s", e)
            raise SignInError(f"Sign in failed: {e}") from e

        sess = _get_attr(res, "session")
        user = user_from_auth(_get_attr(res, "user") or _get_attr(sess, "user"))
        if user is None or not _get_attr(sess, "access_token"):
            raise SignInError("Sign in failed. Double-check email/password.")

        self.on_auth_state_changed(user)
        return user

    def sign_up(self, email: str, password: str) -> None:
        if self.client is None:
            raise SignInError("Cloud sync is not configured.")
        if not email or not password:
            raise SignInError("Enter email and password.")
        try:
            self.client.auth.sign_up({"email": email, "password": password})
        except Exception as e:
            logger.error("Sign up failed: %s", e)
            raise SignInError(f"Sign up failed: {e}") from e

    def sign_out(self) -> None:
        if self.client is not None:
            try:
                self.client.auth.sign_out()
            except Exception as e:
                logger.warning("Sign out call failed: %s", e)
        self.on_auth_state_changed(None)

    def on_auth_state_changed(self, user: Optional[AuthUser]) -> bool:
        """Record the new identity; on sign-in pull and merge the remote record. Returns True if merged."""
        self.user = user
        for listener in list(self._listeners):
            try:
                listener(user)
            except Exception:
                logger.exception("Auth listener %r failed", listener)

        if user is None:
            return False

        remote = self.fetch()
        if not remote:
            return False
        self.state.merge_remote(remote)
        logger.info("Merged cloud data for %s (%d fields)", user.label, len(remote))
        return True

    # ---- document sync ----

    def fetch(self) -> Optional[Dict[str, Any]]:
        if self.client is None or self.user is None:
            return None
        try:
            resp = self.client.table(self.table).select("data").eq("user_id", self.user.id).execute()
        except Exception as e:
            logger.error("Cloud load failed: %s", e)
            return None

        rows = getattr(resp, "data", None)
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            data = rows[0].get("data")
            if isinstance(data, dict):
                return data
        return None

    def push(self, data: Dict[str, Any]) -> None:
        if self.client is None or self.user is None:
            return

        payload = {
            "user_id": self.user.id,
            "data": data,
            "updated_at": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
        try:
            self.client.table(self.table).upsert(payload, on_conflict="user_id").execute()
        except Exception as e:
            logger.error("Cloud save failed: %s", e)
