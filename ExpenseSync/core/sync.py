"""Sync reconciler for the offline-first expense collection.

The reconciler owns the in-memory record list of one logged-in user. Every
mutation is written to the local store first, then mirrored to the backend when
the connectivity flag says it is reachable:

- New records start with a temporary id and ``synced=False``.
- Unsynced records are pushed one by one, newest first. The first failed push
  flips the reconciler offline and leaves the rest for the next attempt.
- Temporary ids are replaced by server ids through a full reload after a
  successful push batch (see :meth:`SyncAPI.retry_sync`).

Remote and storage failures never raise. They are collected as warnings on the
returned :class:`SyncResult`. Only input validation raises, before any state is
touched.
"""
import dataclasses
import decimal
import enum
import json
import logging
import threading
from typing import Any, List, Optional

from PySide6 import QtCore

from .auth import SessionContext
from .database import DatabaseAPI
from .models import Category, DEFAULT_CATEGORY, Record, dedupe, new_record, records_from_list
from .service import ConnectivityProbe, RemoteClient, get_client
from ..status import status


class DataSource(enum.StrEnum):
    """Where the collection was populated from by :meth:`SyncAPI.initialize`."""
    Remote = 'remote'
    Cache = 'cache'
    Empty = 'empty'


@dataclasses.dataclass
class SyncWarning:
    """A recoverable problem encountered while completing an operation."""
    status: status.Status
    message: str


@dataclasses.dataclass
class SyncResult:
    """Outcome of a reconciler operation.

    Attributes:
        status: ``Okay``, ``Offline`` or ``RecordNotFound``.
        record: The record created by :meth:`SyncAPI.add_record`.
        source: The source used by :meth:`SyncAPI.initialize`.
        warnings: Recoverable problems, in the order they happened.
    """
    status: status.Status
    record: Optional[Record] = None
    source: Optional[DataSource] = None
    warnings: List[SyncWarning] = dataclasses.field(default_factory=list)

    @property
    def partial(self) -> bool:
        """True if the operation succeeded locally but something was left undone."""
        return bool(self.warnings)

    @property
    def ok(self) -> bool:
        return self.status == status.Status.Okay


class SyncAPI(QtCore.QObject):
    """Keeps a user's records in the local store and mirrors them to the backend.

    All public operations are serialized by a reentrant lock.

    Signals:
        recordsChanged (list): Emitted with a copy of the records after every change.
        onlineChanged (bool): Emitted when the connectivity flag flips.
        loadingChanged (bool): Emitted when :meth:`initialize` starts and ends.
        warningIssued (str): Emitted with the message of every warning.
    """
    recordsChanged = QtCore.Signal(list)
    onlineChanged = QtCore.Signal(bool)
    loadingChanged = QtCore.Signal(bool)
    warningIssued = QtCore.Signal(str)

    def __init__(
            self,
            session: SessionContext,
            store: Optional[DatabaseAPI] = None,
            remote: Optional[RemoteClient] = None,
            probe: Optional[ConnectivityProbe] = None,
            parent: Optional[QtCore.QObject] = None
    ) -> None:
        super().__init__(parent)
        if session is None:
            raise status.NotAuthenticatedException

        self.session = session
        self.store = store or DatabaseAPI()
        self.remote = remote or get_client()
        self.probe = probe or ConnectivityProbe(self.remote)

        self._records: List[Record] = []
        self._online: bool = False
        self._loading: bool = False
        self._lock = threading.RLock()

    @property
    def records(self) -> List[Record]:
        """A copy of the current records, newest first."""
        with self._lock:
            return list(self._records)

    @property
    def online(self) -> bool:
        return self._online

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def total_amount(self) -> decimal.Decimal:
        with self._lock:
            return sum((r.amount for r in self._records), decimal.Decimal(0))

    @property
    def unsynced_count(self) -> int:
        with self._lock:
            return sum(1 for r in self._records if not r.synced)

    def get_record(self, record_id: str) -> Optional[Record]:
        with self._lock:
            return next((r for r in self._records if r.id == record_id), None)

    def _set_online(self, value: bool) -> None:
        if value == self._online:
            return
        logging.info(f'Connectivity changed: {"online" if value else "offline"}.')
        self._online = value
        self.onlineChanged.emit(value)

    def _set_loading(self, value: bool) -> None:
        if value == self._loading:
            return
        self._loading = value
        self.loadingChanged.emit(value)

    def _warn(self, warnings: List[SyncWarning], ex: Any) -> None:
        if isinstance(ex, status.BaseStatusException):
            warning = SyncWarning(ex.status, str(ex))
        else:
            warning = SyncWarning(status.Status.UnknownStatus, str(ex))
        logging.warning(warning.message)
        warnings.append(warning)
        self.warningIssued.emit(warning.message)

    def _emit_records(self) -> None:
        self.recordsChanged.emit(list(self._records))

    def _persist(self, warnings: List[SyncWarning]) -> bool:
        """Write the whole collection to the local store.

        A failed write is reported as a warning and the in-memory state stands.
        """
        blob = json.dumps([r.to_dict() for r in self._records], ensure_ascii=False)
        try:
            self.store.write(self.session.storage_key, blob)
        except status.StorageException as ex:
            self._warn(warnings, ex)
            return False
        return True

    def _load_cache(self, warnings: List[SyncWarning]) -> Optional[List[Record]]:
        """Read the local snapshot.

        Returns:
            The cached records, or None if there is no usable snapshot.
        """
        try:
            blob = self.store.read(self.session.storage_key)
        except status.StorageException as ex:
            self._warn(warnings, ex)
            return None

        if blob is None:
            logging.debug(f'No local snapshot under "{self.session.storage_key}".')
            return None

        try:
            return records_from_list(json.loads(blob), skip_invalid=True)
        except ValueError as ex:
            self._warn(warnings, status.StorageException(f'Local snapshot is corrupt: {ex}'))
            return None

    def _fetch_remote(self, warnings: List[SyncWarning]) -> Optional[List[Record]]:
        """Fetch the full collection from the backend.

        A connectivity failure also flips the reconciler offline.
        """
        try:
            records = self.remote.list_records()
        except status.ConnectivityException as ex:
            self._set_online(False)
            self._warn(warnings, ex)
            return None
        except status.ServerException as ex:
            self._warn(warnings, ex)
            return None

        for record in records:
            record.synced = True
        return dedupe(records)

    def _replace(self, records: List[Record], warnings: List[SyncWarning]) -> None:
        self._records = records
        self._persist(warnings)
        self._emit_records()

    def _push_unsynced(self, warnings: List[SyncWarning]) -> bool:
        """Push unsynced records one at a time in collection order.

        Returns:
            True if every unsynced record was confirmed by the backend.
        """
        pending = [r for r in self._records if not r.synced]
        if not pending:
            return True

        logging.debug(f'Pushing {len(pending)} unsynced record(s).')
        for record in pending:
            try:
                server_id = self.remote.create_record(record, self.session.user_id)
            except (status.ConnectivityException, status.ServerException) as ex:
                self._set_online(False)
                self._warn(warnings, ex)
                self._emit_records()
                return False

            record.synced = True
            if server_id is not None:
                record.remote_id = server_id
            self._persist(warnings)

        self._emit_records()
        return True

    def initialize(self) -> SyncResult:
        """Populate the collection from the backend, or from the local snapshot.

        Returns:
            A result whose ``source`` names where the records came from.
        """
        with self._lock:
            self._set_loading(True)
            try:
                warnings: List[SyncWarning] = []
                self._set_online(self.probe.check_online())

                if self._online:
                    records = self._fetch_remote(warnings)
                    if records is not None:
                        self._replace(records, warnings)
                        logging.info(f'Loaded {len(records)} record(s) from the server.')
                        return SyncResult(status.Status.Okay, source=DataSource.Remote, warnings=warnings)

                cached = self._load_cache(warnings)
                self._records = cached or []
                self._emit_records()

                source = DataSource.Cache if cached is not None else DataSource.Empty
                logging.info(f'Loaded {len(self._records)} record(s) from {source}.')
                result_status = status.Status.Okay if self._online else status.Status.Offline
                return SyncResult(result_status, source=source, warnings=warnings)
            finally:
                self._set_loading(False)

    def add_record(self, title: str, amount_text: str, category: Category = DEFAULT_CATEGORY) -> SyncResult:
        """Validate and add a new record, then push pending records if online.

        Raises:
            status.ValidationException: If the input is rejected. Nothing is changed.
        """
        record = new_record(title, amount_text, category)

        with self._lock:
            warnings: List[SyncWarning] = []
            self._records.insert(0, record)
            self._persist(warnings)
            self._emit_records()
            logging.info(f'Added record "{record.title}" ({record.amount}).')

            if self._online:
                self._push_unsynced(warnings)

            return SyncResult(status.Status.Okay, record=record, warnings=warnings)

    def delete_record(self, record_id: str) -> SyncResult:
        """Remove a record locally, and from the backend if it was synced."""
        with self._lock:
            record = next((r for r in self._records if r.id == record_id), None)
            if record is None:
                logging.debug(f'Record "{record_id}" not found, nothing to delete.')
                return SyncResult(status.Status.RecordNotFound)

            warnings: List[SyncWarning] = []
            self._records = [r for r in self._records if r.id != record_id]
            self._persist(warnings)
            self._emit_records()
            logging.info(f'Deleted record "{record_id}".')

            if record.synced and self._online:
                identifier = record.remote_id or record.id
                try:
                    self.remote.delete_record(identifier)
                except status.ConnectivityException as ex:
                    self._set_online(False)
                    self._warn(warnings, ex)
                except status.ServerException as ex:
                    self._warn(warnings, ex)

            return SyncResult(status.Status.Okay, record=record, warnings=warnings)

    def retry_sync(self) -> SyncResult:
        """Probe again, push pending records, then reload everything from the backend."""
        with self._lock:
            warnings: List[SyncWarning] = []
            self._set_online(self.probe.check_online())
            if not self._online:
                return SyncResult(status.Status.Offline)

            if not self._push_unsynced(warnings):
                return SyncResult(status.Status.Offline, warnings=warnings)

            records = self._fetch_remote(warnings)
            if records is not None:
                self._replace(records, warnings)
            result_status = status.Status.Okay if self._online else status.Status.Offline
            return SyncResult(result_status, source=DataSource.Remote if records is not None else None,
                              warnings=warnings)
