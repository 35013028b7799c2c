# tests/test_models.py
"""
Unit tests for ExpenseSync.core.models.

Run:
    python -m unittest tests.test_models
"""
import decimal
import json
import re

from ExpenseSync.core.models import (
    Category,
    Record,
    dedupe,
    is_temp_id,
    new_record,
    new_temp_id,
    records_from_list,
    to_category,
)
from ExpenseSync.settings import lib
from ExpenseSync.status import status
from tests.base import BaseTestCase

TEMP_ID_RE = re.compile(r'^tmp-\d{13}-[0-9a-z]{9}$')


class RecordTests(BaseTestCase):

    def test_temp_id_format(self):
        ids = {new_temp_id() for _ in range(200)}
        self.assertEqual(len(ids), 200)
        for value in ids:
            self.assertRegex(value, TEMP_ID_RE)
            self.assertTrue(is_temp_id(value))
        self.assertFalse(is_temp_id('42'))

    def test_to_dict_omits_unset_remote_id(self):
        record = Record('tmp-1-abc', 'Coffee', decimal.Decimal('3.50'), Category.Food, '1/2/25')
        data = record.to_dict()
        self.assertEqual(data, {
            'id': 'tmp-1-abc',
            'title': 'Coffee',
            'amount': '3.50',
            'category': 'Food',
            'date': '1/2/25',
            'synced': False,
        })

        record.synced = True
        record.remote_id = '42'
        self.assertEqual(record.to_dict()['remoteId'], '42')

    def test_from_dict_round_trip(self):
        record = Record('tmp-1-abc', 'Lunch', decimal.Decimal('12.25'), Category.Shopping, '1/2/25',
                        synced=True, remote_id='9')
        self.assertEqual(Record.from_dict(record.to_dict()), record)

    def test_from_dict_server_shape(self):
        record = Record.from_dict({'id': 5, 'title': 'Bus', 'amount': '2.5', 'category': 'Transport'})
        self.assertEqual(record.id, '5')
        self.assertEqual(record.amount, decimal.Decimal('2.5'))
        self.assertEqual(record.category, Category.Transport)
        self.assertTrue(record.synced)
        self.assertIsNone(record.remote_id)
        self.assertEqual(record.date, '')

    def test_from_dict_rejects_incomplete(self):
        for data in (
                {'title': 'Bus', 'amount': 1},
                {'id': 1, 'amount': 1},
                {'id': 1, 'title': 'Bus'},
                {'id': 1, 'title': 'Bus', 'amount': 'lots'},
                {'id': 1, 'title': 'Bus', 'amount': True},
                ['not', 'a', 'dict'],
        ):
            with self.subTest(data=data):
                with self.assertRaises(ValueError):
                    Record.from_dict(data)

    def test_unknown_category_maps_to_other(self):
        self.assertEqual(to_category('Rent'), Category.Other)
        self.assertEqual(to_category('Bills'), Category.Bills)
        record = Record.from_dict({'id': 1, 'title': 'Rent', 'amount': 900, 'category': 'Rent'})
        self.assertEqual(record.category, Category.Other)

    def test_dedupe_keeps_first(self):
        a = Record('1', 'A', decimal.Decimal(1))
        b = Record('1', 'B', decimal.Decimal(2))
        c = Record('2', 'C', decimal.Decimal(3))
        self.assertEqual(dedupe([a, b, c]), [a, c])

    def test_records_from_list(self):
        records = records_from_list([
            {'id': 1, 'title': 'A', 'amount': 1},
            {'id': 2, 'title': 'B', 'amount': 2, 'synced': False},
        ])
        self.assertEqual([r.synced for r in records], [True, False])

        with self.assertRaises(ValueError):
            records_from_list({'id': 1})

    def test_records_from_list_skips_unreadable_entries(self):
        data = [
            {'id': 1, 'title': 'A', 'amount': '1'},
            {'id': 2, 'title': 'B', 'amount': 'Infinity'},
            {'id': 3, 'title': 'C'},
        ]
        with self.assertRaises(ValueError):
            records_from_list(data)

        records = records_from_list(data, skip_invalid=True)
        self.assertEqual([r.id for r in records], ['1'])

    def test_amount_survives_json(self):
        amount = decimal.Decimal('12345678901234567.89')
        record = Record('tmp-1-abc', 'Big', amount)
        restored = Record.from_dict(json.loads(json.dumps(record.to_dict())))
        self.assertEqual(restored.amount, amount)
        self.assertEqual(str(restored.amount), '12345678901234567.89')


class NewRecordTests(BaseTestCase):

    def test_new_record_defaults(self):
        record = new_record(' Coffee ', '3.50')
        self.assertTrue(is_temp_id(record.id))
        self.assertEqual(record.title, 'Coffee')
        self.assertEqual(record.amount, decimal.Decimal('3.50'))
        self.assertEqual(record.category, Category.Food)
        self.assertFalse(record.synced)
        self.assertIsNone(record.remote_id)
        self.assertTrue(record.date)

    def test_new_record_accepts_category_names(self):
        self.assertEqual(new_record('Pills', '8', 'Healthcare').category, Category.Healthcare)

    def test_new_record_validation(self):
        with self.assertRaises(status.MissingFieldException):
            new_record('', '3')
        with self.assertRaises(status.MissingFieldException):
            new_record('Coffee', '  ')
        with self.assertRaises(status.InvalidAmountException):
            new_record('Coffee', '0.00')
        with self.assertRaises(status.InvalidAmountException):
            new_record('Coffee', 'Infinity')
        with self.assertRaises(status.InvalidAmountException):
            new_record('Coffee', '1e400')
        with self.assertRaises(status.InvalidCategoryException):
            new_record('Coffee', '3', 'Groceries')

    def test_grouped_amount(self):
        self.assertEqual(new_record('TV', '1,299.99').amount, decimal.Decimal('1299.99'))

        lib.settings['locale'] = 'de_DE'
        self.assertEqual(new_record('TV', '1.299,99').amount, decimal.Decimal('1299.99'))
