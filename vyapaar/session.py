import json
import logging
from typing import Optional

from vyapaar.constants import NAV_ITEMS, SESSION_KEY
from vyapaar.domain import User
from vyapaar.storage import KeyValueStore

logger = logging.getLogger(__name__)


class SessionContext:
    """The signed-in user, kept apart from the expense document.

    Starts empty; ``restore`` picks up a previous login from the store and
    ``logout`` removes it again.
    """

    def __init__(self, backend: KeyValueStore, key: str = SESSION_KEY):
        self.backend = backend
        self.key = key
        self.user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def restore(self) -> Optional[User]:
        raw = self.backend.get(self.key)
        if raw is None:
            self.user = None
            return None
        try:
            self.user = User.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable session %r: %s", self.key, exc)
            self.backend.delete(self.key)
            self.user = None
        return self.user

    def login(self, user: User) -> None:
        self.user = user
        self.backend.set(self.key, json.dumps(user.to_dict()))
        logger.info("User %s signed in as %s", user.id, user.role)

    def logout(self) -> None:
        if self.user is not None:
            logger.info("User %s signed out", self.user.id)
        self.user = None
        self.backend.delete(self.key)

    def can_view(self, view: str) -> bool:
        if self.user is None:
            return False
        return self.user.role in NAV_ITEMS.get(view, ())

    def visible_views(self) -> list:
        return [view for view in NAV_ITEMS if self.can_view(view)]

    def landing_view(self) -> str:
        return "Dashboard" if self.user is not None and self.user.is_admin else "New Entry"
