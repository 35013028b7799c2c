# tests/test_auth.py
"""
Tests for ExpenseSync.core.auth: login, registration and the persisted session.

Run:
    python -m unittest tests.test_auth
"""
import json
from typing import List

from ExpenseSync.core.auth import AuthManager, SessionContext, is_valid_email
from ExpenseSync.core.database import DatabaseAPI, LOGGED_USER_KEY
from ExpenseSync.core.signals import signals
from ExpenseSync.status import status
from tests.base import BaseTestCase
from tests.stubs import FakeRemote


class SessionContextTests(BaseTestCase):

    def test_storage_key(self):
        self.assertEqual(SessionContext('7').storage_key, '@expenses_7')

    def test_dict_round_trip(self):
        session = SessionContext('7', 'Jane Doe')
        self.assertEqual(session.to_dict(), {'id': '7', 'full_name': 'Jane Doe'})
        self.assertEqual(SessionContext.from_dict(session.to_dict()), session)

    def test_from_dict_accepts_server_shapes(self):
        self.assertEqual(SessionContext.from_dict({'id': 7, 'fullname': 'Jane'}), SessionContext('7', 'Jane'))
        self.assertEqual(SessionContext.from_dict({'id': 7}), SessionContext('7'))
        with self.assertRaises(ValueError):
            SessionContext.from_dict({'full_name': 'Nobody'})

    def test_email_pattern(self):
        self.assertTrue(is_valid_email('jane@example.com'))
        for value in ('jane', 'jane@example', 'ja ne@example.com', '@example.com', ''):
            with self.subTest(value=value):
                self.assertFalse(is_valid_email(value))


class AuthManagerTests(BaseTestCase):

    def setUp(self) -> None:
        super().setUp()
        self.store = DatabaseAPI()
        self.remote = FakeRemote()
        self.auth = AuthManager(store=self.store, remote=self.remote)

    def test_login_persists_session(self):
        changes: List[object] = []

        def _slot(value: object) -> None:
            changes.append(value)

        signals.sessionChanged.connect(_slot)
        try:
            session = self.auth.login(' jane@example.com ', 'secret')
        finally:
            signals.sessionChanged.disconnect(_slot)

        self.assertEqual(session, SessionContext('7', 'Jane Doe'))
        self.assertEqual(self.remote.login_calls, [('jane@example.com', 'secret')])
        self.assertEqual(json.loads(self.store.read(LOGGED_USER_KEY)), {'id': '7', 'full_name': 'Jane Doe'})
        self.assertEqual(changes, [session])

    def test_session_survives_restart(self):
        self.auth.login('jane@example.com', 'secret')
        restored = AuthManager(store=DatabaseAPI(), remote=self.remote).current_session()
        self.assertEqual(restored, SessionContext('7', 'Jane Doe'))

    def test_login_validation_never_calls_backend(self):
        with self.assertRaises(status.MissingFieldException):
            self.auth.login('', 'secret')
        with self.assertRaises(status.MissingFieldException):
            self.auth.login('jane@example.com', '   ')
        with self.assertRaises(status.InvalidEmailException):
            self.auth.login('jane.example.com', 'secret')
        self.assertEqual(self.remote.login_calls, [])

    def test_login_rejected(self):
        self.remote.login_error = status.ServerException
        with self.assertRaises(status.ServerException):
            self.auth.login('jane@example.com', 'wrong')
        self.assertIsNone(self.auth.current_session())

    def test_login_unreachable(self):
        self.remote.login_error = status.ConnectivityException
        with self.assertRaises(status.ConnectivityException):
            self.auth.login('jane@example.com', 'secret')

    def test_login_response_without_id(self):
        self.remote.user = {'full_name': 'Ghost'}
        with self.assertRaises(status.ServerException):
            self.auth.login('jane@example.com', 'secret')

    def test_current_session_none(self):
        self.assertIsNone(self.auth.current_session())
        with self.assertRaises(status.NotAuthenticatedException):
            self.auth.require_session()

    def test_corrupt_session_is_discarded(self):
        self.store.write(LOGGED_USER_KEY, '{not json')
        self.assertIsNone(self.auth.current_session())
        self.assertIsNone(self.store.read(LOGGED_USER_KEY))

        self.store.write(LOGGED_USER_KEY, '{"full_name": "no id"}')
        self.assertIsNone(self.auth.current_session())
        self.assertIsNone(self.store.read(LOGGED_USER_KEY))

    def test_logout_keeps_records(self):
        session = self.auth.login('jane@example.com', 'secret')
        self.store.write(session.storage_key, '[]')

        self.auth.logout()

        self.assertIsNone(self.auth.current_session())
        self.assertEqual(self.store.read(session.storage_key), '[]')

    def test_register(self):
        message = self.auth.register(' Jane Doe ', 'jane@example.com', 'pw', 'pw')
        self.assertEqual(message, 'Registration successful')
        self.assertEqual(self.remote.register_calls, [('Jane Doe', 'jane@example.com', 'pw', 'pw')])

    def test_register_validation_never_calls_backend(self):
        cases = [
            (('', 'jane@example.com', 'pw', 'pw'), status.MissingFieldException),
            (('Jane', 'jane@example.com', 'pw', ''), status.MissingFieldException),
            ((' J ', 'jane@example.com', 'pw', 'pw'), status.NameTooShortException),
            (('Jane', 'jane@', 'pw', 'pw'), status.InvalidEmailException),
            (('Jane', 'jane@example.com', 'pw', 'pw2'), status.PasswordMismatchException),
        ]
        for args, exc in cases:
            with self.subTest(args=args):
                with self.assertRaises(exc):
                    self.auth.register(*args)
        self.assertEqual(self.remote.register_calls, [])
