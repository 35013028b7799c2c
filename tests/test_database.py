# tests/test_database.py
"""
Tests for ExpenseSync.core.database
(key/value access, durability, schema recovery).

Run:
    python -m unittest tests.test_database
"""
import sqlite3
import tempfile
from pathlib import Path
from typing import List

from ExpenseSync.core.database import (
    DatabaseAPI,
    LOGGED_USER_KEY,
    Table,
    expenses_key,
)
from ExpenseSync.settings import lib
from ExpenseSync.status import status
from tests.base import BaseTestCase


class DatabaseAPITests(BaseTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.db = DatabaseAPI()

    def test_default_path(self):
        self.assertEqual(self.db.db_path, lib.settings.db_path)
        self.assertTrue(self.db.db_path.exists())
        self.assertEqual(self.db.db_path.name, 'store.db')

    def test_keys_helpers(self):
        self.assertEqual(expenses_key('7'), '@expenses_7')
        self.assertEqual(LOGGED_USER_KEY, '@loggedUser')

    def test_read_missing_key(self):
        self.assertIsNone(self.db.read('@expenses_1'))

    def test_write_and_overwrite(self):
        self.db.write('@expenses_1', '[1]')
        self.assertEqual(self.db.read('@expenses_1'), '[1]')

        self.db.write('@expenses_1', '[1, 2]')
        self.assertEqual(self.db.read('@expenses_1'), '[1, 2]')
        self.assertEqual(self.db.keys(), ['@expenses_1'])

    def test_write_rejects_non_text(self):
        with self.assertRaises(TypeError):
            self.db.write('@expenses_1', b'[]')  # type: ignore[arg-type]

    def test_remove(self):
        self.db.write(LOGGED_USER_KEY, '{}')
        self.db.write('@expenses_1', '[]')
        self.db.remove(LOGGED_USER_KEY)
        self.db.remove('never-written')
        self.assertEqual(self.db.keys(), ['@expenses_1'])

    def test_values_survive_new_instance(self):
        self.db.write('@expenses_1', '["durable"]')
        self.assertEqual(DatabaseAPI().read('@expenses_1'), '["durable"]')

    def test_key_changed_signal(self):
        changed: List[str] = []
        self.db.keyChanged.connect(changed.append)
        self.db.write('a', '1')
        self.db.remove('a')
        self.assertEqual(changed, ['a', 'a'])

    def test_delete_and_recreate(self):
        self.db.write('a', '1')
        self.db.delete()
        self.assertFalse(self.db.db_path.exists())

        # Schema comes back on first use
        self.assertIsNone(self.db.read('a'))
        self.db.write('a', '2')
        self.assertEqual(self.db.read('a'), '2')

    def test_delete_missing_file_is_noop(self):
        self.db.delete()
        self.db.delete()

    def test_invalid_schema_is_recreated(self):
        path = lib.settings.db_dir / 'broken.db'
        conn = sqlite3.connect(str(path))
        conn.execute(f'CREATE TABLE {Table.KeyValue} (something TEXT)')
        conn.commit()
        conn.close()

        db = DatabaseAPI(db_path=str(path))
        db.write('a', '1')
        self.assertEqual(db.read('a'), '1')

    def test_unusable_path_raises_storage_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            # A directory cannot be opened as a database
            with self.assertRaises(status.StorageException):
                DatabaseAPI(db_path=tmp)

    def test_custom_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'nested' / 'custom.db'
            db = DatabaseAPI(db_path=str(path))
            db.write('a', '1')
            self.assertTrue(path.exists())
            self.assertIsNone(self.db.read('a'))
