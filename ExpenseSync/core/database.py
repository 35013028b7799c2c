"""
Durable local key/value store backed by SQLite.

The store holds opaque text blobs under string keys. The sync reconciler keeps
each user's serialized record list under ``@expenses_<user id>`` and the
authentication layer keeps the logged-in user under ``@loggedUser``.
Every write is a single transaction: a blob is either fully replaced or left
untouched.
"""

import datetime
import enum
import logging
import pathlib
import sqlite3
import time
from typing import List, Optional

from PySide6 import QtCore

from ..settings import lib
from ..status import status

LOGGED_USER_KEY: str = '@loggedUser'
EXPENSES_KEY_PREFIX: str = '@expenses_'


class Table(enum.StrEnum):
    """Enum for database tables."""
    KeyValue = 'keyvalue'


KEYVALUE_SCHEMA: str = (
    f'CREATE TABLE IF NOT EXISTS {Table.KeyValue} ('
    '"key" TEXT PRIMARY KEY, '
    '"value" TEXT NOT NULL, '
    '"updated" TEXT NOT NULL)'
)


def now_str() -> str:
    """Return current UTC date and time as an ISO 8601 string."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def expenses_key(user_id: str) -> str:
    """Return the store key holding a user's record list."""
    return f'{EXPENSES_KEY_PREFIX}{user_id}'


class DatabaseAPI(QtCore.QObject):
    """Key/value access to the local SQLite store.

    Each call opens its own connection, so an instance can be shared between
    the reconciler and the authentication manager.

    Signals:
        keyChanged (str): Emitted after a key was written or removed.
    """
    keyChanged = QtCore.Signal(str)

    def __init__(self, db_path: Optional[str] = None, parent: Optional[QtCore.QObject] = None) -> None:
        super().__init__(parent=parent)
        self._db_path: Optional[pathlib.Path] = pathlib.Path(db_path) if db_path else None
        self._initialize_schema_if_needed()

    @property
    def db_path(self) -> pathlib.Path:
        """The database file, defaulting to the configured application path."""
        return self._db_path or lib.settings.db_path

    def connection(self) -> sqlite3.Connection:
        """Return a new connection to the store database.

        Raises:
            status.StorageException: If the database cannot be opened.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path), timeout=2.0)
            # The file may have been deleted since the schema was last checked
            conn.execute(KEYVALUE_SCHEMA)
        except (sqlite3.Error, OSError) as ex:
            raise status.StorageException(f'Could not open {self.db_path}: {ex}') from ex
        conn.set_progress_handler(lambda: logging.debug('Waiting on DB lock…'), 1000)
        return conn

    @staticmethod
    def _table_exists_in_conn(conn: sqlite3.Connection, table_name: str) -> bool:
        cursor = conn.execute(
            """SELECT name FROM sqlite_master WHERE type='table' AND name=?""",
            (table_name,)
        )
        return cursor.fetchone() is not None

    def _initialize_schema_if_needed(self) -> None:
        """Create the key/value table when the file or the table is missing.

        Raises:
            status.StorageException: If the schema cannot be created.
        """
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            if self._table_exists_in_conn(conn, Table.KeyValue):
                cursor = conn.execute(f'PRAGMA table_info({Table.KeyValue})')
                columns = {row[1] for row in cursor.fetchall()}
                if {'key', 'value', 'updated'}.issubset(columns):
                    logging.debug('Existing store schema is valid.')
                    return
                logging.warning(f'Table "{Table.KeyValue}" has unexpected columns {columns}. Recreating.')
                conn.execute(f'DROP TABLE IF EXISTS {Table.KeyValue}')

            logging.info(f'Creating store schema in {self.db_path}.')
            conn.execute(KEYVALUE_SCHEMA)
            conn.commit()
        except sqlite3.Error as ex:
            raise status.StorageException(f'Could not initialize the store schema: {ex}') from ex
        finally:
            if conn:
                conn.close()

    def read(self, key: str) -> Optional[str]:
        """Return the blob stored under ``key``, or None if there is none.

        Raises:
            status.StorageException: On SQLite errors.
        """
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            row = conn.execute(
                f'SELECT value FROM {Table.KeyValue} WHERE key=?', (key,)
            ).fetchone()
        except sqlite3.Error as ex:
            raise status.StorageException(f'Could not read "{key}": {ex}') from ex
        finally:
            if conn:
                conn.close()
        return row[0] if row else None

    def write(self, key: str, blob: str) -> None:
        """Replace the blob stored under ``key`` in a single transaction.

        Raises:
            status.StorageException: If the write failed. The previous blob is kept.
        """
        if not isinstance(blob, str):
            raise TypeError(f'Expected a str blob, got {type(blob)}')

        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            with conn:
                conn.execute(
                    f'INSERT OR REPLACE INTO {Table.KeyValue} (key, value, updated) VALUES (?, ?, ?)',
                    (key, blob, now_str())
                )
        except sqlite3.Error as ex:
            raise status.StorageException(f'Could not write "{key}": {ex}') from ex
        finally:
            if conn:
                conn.close()

        logging.debug(f'Wrote {len(blob)} characters to "{key}".')
        self.keyChanged.emit(key)

    def remove(self, key: str) -> None:
        """Remove ``key`` from the store. Missing keys are ignored.

        Raises:
            status.StorageException: On SQLite errors.
        """
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            with conn:
                conn.execute(f'DELETE FROM {Table.KeyValue} WHERE key=?', (key,))
        except sqlite3.Error as ex:
            raise status.StorageException(f'Could not remove "{key}": {ex}') from ex
        finally:
            if conn:
                conn.close()

        logging.debug(f'Removed "{key}".')
        self.keyChanged.emit(key)

    def keys(self) -> List[str]:
        """Return all stored keys in sorted order."""
        conn: Optional[sqlite3.Connection] = None
        try:
            conn = self.connection()
            rows = conn.execute(f'SELECT key FROM {Table.KeyValue} ORDER BY key').fetchall()
        except sqlite3.Error as ex:
            raise status.StorageException(f'Could not list keys: {ex}') from ex
        finally:
            if conn:
                conn.close()
        return [r[0] for r in rows]

    def delete(self) -> None:
        """Delete the database file, retrying on failure.

        The schema is recreated on the next use.

        Raises:
            status.StorageException: If unable to remove the database file after retries.
        """
        db_file = self.db_path
        if not db_file.exists():
            logging.debug('No store database found to delete.')
            return

        max_attempts = 5
        wait_seconds = 0.5

        for attempt in range(1, max_attempts + 1):
            try:
                db_file.unlink()
                logging.info(f'Store database removed: {db_file}')
                return
            except OSError as ex:
                logging.error(f'Error removing store DB (attempt {attempt}/{max_attempts}): {ex}')
                if attempt < max_attempts:
                    time.sleep(wait_seconds)

        raise status.StorageException(f'Failed to remove {db_file} after {max_attempts} attempts.')
