"""Login, registration and the persisted user session.

The logged-in user is kept in the local store under ``@loggedUser`` so that a
restarted application can resume the session without asking for credentials.
The resulting :class:`SessionContext` is passed explicitly to the sync
reconciler.
"""

import dataclasses
import json
import logging
import re
import threading
from typing import Any, Dict, Optional

from .database import DatabaseAPI, LOGGED_USER_KEY, expenses_key
from .service import RemoteClient, get_client
from .signals import signals
from ..status import status

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MIN_NAME_LENGTH: int = 2


@dataclasses.dataclass(frozen=True)
class SessionContext:
    """Identity of the logged-in user."""
    user_id: str
    full_name: str = ''

    @property
    def storage_key(self) -> str:
        """Local store key of this user's record list."""
        return expenses_key(self.user_id)

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.user_id, 'full_name': self.full_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionContext':
        """
        Raises:
            ValueError: If the user id is missing.
        """
        if not isinstance(data, dict) or data.get('id') in (None, ''):
            raise ValueError(f'Invalid user entry: {data!r}')
        name = data.get('full_name') or data.get('fullname') or ''
        return cls(user_id=str(data['id']), full_name=str(name))


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ''))


def _require(**fields: Any) -> None:
    blank = [k for k, v in fields.items() if not isinstance(v, str) or not v.strip()]
    if blank:
        raise status.MissingFieldException(f'Missing: {", ".join(blank)}.')


class AuthManager:
    """Thread-safe access to the logged-in user."""

    def __init__(self, store: Optional[DatabaseAPI] = None, remote: Optional[RemoteClient] = None) -> None:
        self._lock = threading.Lock()
        self.store = store or DatabaseAPI()
        self.remote = remote or get_client()

    def login(self, email: str, password: str) -> SessionContext:
        """Authenticate against the backend and persist the session.

        Raises:
            status.MissingFieldException: If either field is blank.
            status.InvalidEmailException: If the email is malformed.
            status.ServerException: If the backend rejected the credentials.
            status.ConnectivityException: If the backend is unreachable.
        """
        _require(email=email, password=password)
        email = email.strip()
        if not is_valid_email(email):
            raise status.InvalidEmailException(f'"{email}" is not a valid email address.')

        with self._lock:
            user = self.remote.login(email, password)
            try:
                session = SessionContext.from_dict(user)
            except ValueError as ex:
                raise status.ServerException(str(ex)) from ex

            self.store.write(LOGGED_USER_KEY, json.dumps(session.to_dict()))

        logging.info(f'Logged in as user {session.user_id}.')
        signals.sessionChanged.emit(session)
        return session

    def register(self, full_name: str, email: str, password: str, confirm_password: str) -> str:
        """Create a new account. Validation happens before any request is sent.

        Returns:
            The server's confirmation message.

        Raises:
            status.ValidationException: If a field is rejected.
            status.ServerException: If the backend refused the registration.
            status.ConnectivityException: If the backend is unreachable.
        """
        _require(full_name=full_name, email=email, password=password, confirm_password=confirm_password)

        full_name = full_name.strip()
        email = email.strip()
        if len(full_name) < MIN_NAME_LENGTH:
            raise status.NameTooShortException(f'"{full_name}" is shorter than {MIN_NAME_LENGTH} characters.')
        if not is_valid_email(email):
            raise status.InvalidEmailException(f'"{email}" is not a valid email address.')
        if password != confirm_password:
            raise status.PasswordMismatchException

        with self._lock:
            message = self.remote.register(full_name, email, password, confirm_password)
        logging.info(f'Registered account for {email}.')
        return message

    def current_session(self) -> Optional[SessionContext]:
        """Restore the persisted session, if any.

        A corrupt entry is removed from the store.
        """
        with self._lock:
            blob = self.store.read(LOGGED_USER_KEY)
            if blob is None:
                return None
            try:
                return SessionContext.from_dict(json.loads(blob))
            except ValueError as ex:
                logging.warning(f'Discarding unreadable session entry: {ex}')
                self.store.remove(LOGGED_USER_KEY)
                return None

    def require_session(self) -> SessionContext:
        """
        Raises:
            status.NotAuthenticatedException: If nobody is logged in.
        """
        session = self.current_session()
        if session is None:
            raise status.NotAuthenticatedException
        return session

    def logout(self) -> None:
        """Forget the logged-in user. Cached records are kept."""
        with self._lock:
            self.store.remove(LOGGED_USER_KEY)
        logging.info('Logged out.')
        signals.sessionChanged.emit(None)
