"""Backend integration for the expense store.

Provides the HTTP client for the remote expense API, a connectivity probe that
pings the backend on a worker thread with a deadline, and the generic worker
thread used to move blocking calls off the caller's thread.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import requests
from PySide6 import QtCore

from .models import Record, records_from_list
from .signals import signals
from ..settings import lib
from ..status import status

DEFAULT_PROBE_TIMEOUT: float = 5.0


class Endpoint:
    """Paths of the remote expense API, relative to the configured server url."""
    LoadExpenses = '/ExpenseTracker/LoadExpenses'
    SaveExpenses = '/ExpenseTracker/SaveExpenses'
    DeleteExpenses = '/ExpenseTracker/DeleteExpenses'
    Login = '/ExpenseTracker/Login'
    Register = '/ExpenseTracker/Register'


# Shared client for callers that don't bring their own
_cached_client: Optional['RemoteClient'] = None


class AsyncWorker(QtCore.QThread):
    """
    Worker thread that runs one blocking call off the caller's thread.

    The outcome is kept on the worker as ``result`` and ``error`` so that a caller
    blocked in :meth:`QThread.wait` can read it without running an event loop.

    Signals:
        resultReady (object): Emitted with the function's result on success.
        errorOccurred (object): Emitted with the exception on failure.
    """
    resultReady = QtCore.Signal(object)
    errorOccurred = QtCore.Signal(object)

    def __init__(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self.func = func
        self.args = args
        self.kwargs = kwargs

        self.result: Any = None
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            self.result = self.func(*self.args, **self.kwargs)
        except Exception as ex:
            self.error = ex
            self.errorOccurred.emit(ex)
            return
        self.resultReady.emit(self.result)


class RemoteClient:
    """Thin wrapper around :class:`requests.Session` for the expense API.

    Each call performs exactly one round trip. Only :meth:`ping` sets a timeout.

    Args:
        base_url: Server url. Defaults to the ``server.url`` setting, read at call time.
        session: Optional session, mainly for tests.
    """

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None) -> None:
        self._base_url = base_url
        self.session = session or requests.Session()

    @property
    def base_url(self) -> str:
        url = self._base_url or lib.settings.get_section('server')['url']
        return url.rstrip('/')

    def url(self, endpoint: str) -> str:
        return f'{self.base_url}{endpoint}'

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        url = self.url(endpoint)
        logging.debug(f'{method} {url}')
        try:
            return self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as ex:
            raise status.ConnectivityException(f'{method} {endpoint} failed: {ex}') from ex

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Raises:
            status.ConnectivityException: If the server could not be reached.
            status.ServerException: If the server answered with an error.
        """
        response = self._send(method, endpoint, **kwargs)

        try:
            data = response.json()
        except ValueError:
            data = None

        message = data.get('message') if isinstance(data, dict) else None

        if not response.ok:
            detail = f'{endpoint} returned HTTP {response.status_code}'
            raise status.ServerException(f'{detail}: {message}' if message else f'{detail}.')
        if not isinstance(data, dict):
            raise status.ServerException(f'{endpoint} did not return a JSON object.')
        if not data.get('status'):
            raise status.ServerException(message or f'{endpoint} reported a failure.')
        return data

    def list_records(self) -> List[Record]:
        """Fetch every record from the backend.

        Returns:
            The records, all marked as synced.
        """
        data = self._request('GET', Endpoint.LoadExpenses)
        if 'expenseList' not in data:
            raise status.ServerException('Response is missing "expenseList".')

        try:
            records = records_from_list(data['expenseList'])
        except ValueError as ex:
            raise status.ServerException(f'Malformed expense list: {ex}') from ex

        for record in records:
            record.synced = True
        logging.debug(f'Loaded {len(records)} records from the server.')
        return records

    def create_record(self, record: Record, user: str) -> Optional[str]:
        """Push a record and return the server-assigned id, if any."""
        payload = {
            'id': record.id,
            'title': record.title,
            'amount': float(record.amount),
            'category': str(record.category),
            'date': record.date,
            'user': user,
        }
        data = self._request('POST', Endpoint.SaveExpenses, json=payload)
        server_id = data.get('id')
        return str(server_id) if server_id is not None else None

    def delete_record(self, identifier: str) -> None:
        self._request('DELETE', Endpoint.DeleteExpenses, params={'id': identifier})

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Returns:
            The ``logUser`` object, with at least an ``id``.
        """
        data = self._request('POST', Endpoint.Login, json={'email': email, 'password': password})
        user = data.get('logUser')
        if not isinstance(user, dict) or user.get('id') is None:
            raise status.ServerException('Login response is missing the user.')
        return user

    def register(self, full_name: str, email: str, password: str, confirm_password: str) -> str:
        payload = {
            'full_name': full_name,
            'email': email,
            'password': password,
            'confirmPassword': confirm_password,
        }
        data = self._request('POST', Endpoint.Register, json=payload)
        return data.get('message') or ''

    def ping(self, timeout: float = DEFAULT_PROBE_TIMEOUT) -> int:
        """Check whether the server answers at all.

        Any HTTP response counts as reachable, including error statuses.

        Returns:
            The HTTP status code.

        Raises:
            status.ConnectivityException: If no response arrived in time.
        """
        response = self._send('GET', Endpoint.LoadExpenses, timeout=timeout)
        return response.status_code


class ConnectivityProbe:
    """Decides whether the backend is reachable within a deadline.

    The ping runs on an :class:`AsyncWorker`. A worker that outlives the deadline
    is kept referenced until it finishes, so the thread is never destroyed while
    still running.
    """

    def __init__(self, remote: Optional[RemoteClient] = None, timeout: Optional[float] = None) -> None:
        self.remote = remote or get_client()
        self._timeout = timeout
        self._workers: List[AsyncWorker] = []
        self._lock = threading.Lock()

    @property
    def timeout(self) -> float:
        if self._timeout is not None:
            return self._timeout
        return float(lib.settings.get_section('server').get('probe_timeout', DEFAULT_PROBE_TIMEOUT))

    def check_online(self) -> bool:
        timeout = self.timeout

        with self._lock:
            self._workers = [w for w in self._workers if w.isRunning()]

            worker = AsyncWorker(self.remote.ping, timeout)
            worker.start()
            if not worker.wait(int(timeout * 1000)):
                logging.warning(f'Connectivity probe timed out after {timeout} seconds.')
                self._workers.append(worker)
                return False

        if worker.error is not None:
            logging.warning(f'Server is unreachable: {worker.error}')
            return False

        logging.debug(f'Server answered the probe with HTTP {worker.result}.')
        return True


def get_client() -> RemoteClient:
    """Return the shared :class:`RemoteClient`, creating it on first use."""
    global _cached_client
    if _cached_client is None:
        _cached_client = RemoteClient()
    return _cached_client


def clear_client() -> None:
    """Drop the shared client so the next call starts a fresh session."""
    global _cached_client
    if _cached_client is not None:
        _cached_client.session.close()
    _cached_client = None


@QtCore.Slot(str)
def _reset_cached_client(section: str) -> None:
    if section == 'server':
        logging.debug('Clearing cached remote client due to server settings change')
        clear_client()


signals.configSectionChanged.connect(_reset_cached_client)
