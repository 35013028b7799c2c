"""Expense record model and validation helpers.

A :class:`Record` is created locally with a temporary identifier and stays
``synced=False`` until the backend confirms it. Records loaded from the backend
carry the server's identifier and are always considered synced.
"""
import dataclasses
import decimal
import enum
import logging
import math
import random
import string
import time
from typing import Any, Dict, Iterable, List, Optional

from ..settings import lib
from ..settings import locale
from ..status import status

TEMP_ID_PREFIX: str = 'tmp'
TEMP_ID_LENGTH: int = 9

_BASE36: str = string.digits + string.ascii_lowercase


class Category(enum.StrEnum):
    """Expense categories known to the backend."""
    Food = 'Food'
    Transport = 'Transport'
    Shopping = 'Shopping'
    Bills = 'Bills'
    Healthcare = 'Healthcare'
    Other = 'Other'


DEFAULT_CATEGORY: Category = Category.Food


def new_temp_id() -> str:
    """Return a new temporary record identifier.

    The format is ``tmp-<epoch milliseconds>-<9 random base36 characters>``.
    """
    stamp = int(time.time() * 1000)
    suffix = ''.join(random.choices(_BASE36, k=TEMP_ID_LENGTH))
    return f'{TEMP_ID_PREFIX}-{stamp}-{suffix}'


def is_temp_id(value: str) -> bool:
    return isinstance(value, str) and value.startswith(f'{TEMP_ID_PREFIX}-')


def to_category(value: Any) -> Category:
    """Map a stored or remote category value to a :class:`Category`.

    Unknown values fall back to ``Category.Other``.
    """
    try:
        return Category(value)
    except ValueError:
        logging.warning(f'Unknown category "{value}", using "{Category.Other}".')
        return Category.Other


def _to_decimal(value: Any) -> decimal.Decimal:
    if isinstance(value, bool):
        raise ValueError(f'Invalid amount: {value!r}')
    try:
        # str() first so floats keep their shortest repr, e.g. 3.5 and not 3.4999...
        result = decimal.Decimal(str(value))
    except (decimal.InvalidOperation, TypeError) as ex:
        raise ValueError(f'Invalid amount: {value!r}') from ex
    if not result.is_finite():
        raise ValueError(f'Invalid amount: {value!r}')
    return result


@dataclasses.dataclass
class Record:
    """A single expense entry.

    Attributes:
        id: Temporary token or server identifier.
        title: Short description of the expense.
        amount: Positive amount.
        category: One of :class:`Category`.
        date: Display date assigned at creation.
        synced: True once the backend has confirmed the record.
        remote_id: Identifier assigned by the backend, when it differs from ``id``.
    """
    id: str
    title: str
    amount: decimal.Decimal
    category: Category = DEFAULT_CATEGORY
    date: str = ''
    synced: bool = False
    remote_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON-compatible representation used by the local store.

        The amount is written as a decimal string so it reads back unchanged.
        """
        data: Dict[str, Any] = {
            'id': self.id,
            'title': self.title,
            'amount': str(self.amount),
            'category': str(self.category),
            'date': self.date,
            'synced': self.synced,
        }
        if self.remote_id is not None:
            data['remoteId'] = self.remote_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Record':
        """Build a record from its stored or remote representation.

        Records without a ``synced`` key are treated as synced, matching the
        shape returned by the backend.

        Raises:
            ValueError: If ``id``, ``title`` or ``amount`` is missing or unusable.
        """
        if not isinstance(data, dict):
            raise ValueError(f'Expected a dict, got {type(data)}')

        for key in ('id', 'title', 'amount'):
            if data.get(key) is None:
                raise ValueError(f'Record is missing "{key}": {data}')

        remote_id = data.get('remoteId')
        return cls(
            id=str(data['id']),
            title=str(data['title']),
            amount=_to_decimal(data['amount']),
            category=to_category(data.get('category', Category.Other)),
            date=str(data.get('date') or ''),
            synced=bool(data.get('synced', True)),
            remote_id=str(remote_id) if remote_id is not None else None,
        )


def dedupe(records: Iterable[Record]) -> List[Record]:
    """Return the records with duplicate ids removed, keeping the first occurrence."""
    seen = set()
    result = []
    for record in records:
        if record.id in seen:
            logging.warning(f'Dropping duplicate record id "{record.id}".')
            continue
        seen.add(record.id)
        result.append(record)
    return result


def records_from_list(data: Any, skip_invalid: bool = False) -> List[Record]:
    """Deserialize a stored or remote record list.

    Args:
        data: The decoded JSON list.
        skip_invalid: Drop malformed entries with a warning instead of raising.

    Raises:
        ValueError: If ``data`` is not a list, or an entry is malformed and
            ``skip_invalid`` is False.
    """
    if not isinstance(data, list):
        raise ValueError(f'Expected a list of records, got {type(data)}')
    if not skip_invalid:
        return dedupe(Record.from_dict(item) for item in data)

    records = []
    for item in data:
        try:
            records.append(Record.from_dict(item))
        except ValueError as ex:
            logging.warning(f'Skipping unreadable record: {ex}')
    return dedupe(records)


def validate_amount(amount_text: str) -> decimal.Decimal:
    """Parse and validate user-entered amount text.

    The text is interpreted with the configured locale.

    Raises:
        status.MissingFieldException: If the text is blank.
        status.InvalidAmountException: If the text is not a positive finite number.
    """
    if not isinstance(amount_text, str) or not amount_text.strip():
        raise status.MissingFieldException('Amount is required.')

    try:
        amount = locale.parse_amount(amount_text, locale=lib.settings['locale'])
    except ValueError as ex:
        raise status.InvalidAmountException(str(ex)) from ex

    if amount <= 0:
        raise status.InvalidAmountException(f'Amount must be greater than zero, got {amount}.')
    if not math.isfinite(float(amount)):
        raise status.InvalidAmountException(f'Amount is out of range, got {amount}.')
    return amount


def validate_category(category: Any) -> Category:
    """
    Raises:
        status.InvalidCategoryException: If the value is not a known category.
    """
    if isinstance(category, Category):
        return category
    try:
        return Category(category)
    except ValueError as ex:
        raise status.InvalidCategoryException(
            f'"{category}" is not one of {[str(c) for c in Category]}.'
        ) from ex


def new_record(title: str, amount_text: str, category: Any = DEFAULT_CATEGORY) -> Record:
    """Validate user input and build a new unsynced record.

    Raises:
        status.ValidationException: If any field is rejected.
    """
    if not isinstance(title, str) or not title.strip():
        raise status.MissingFieldException('Title is required.')

    amount = validate_amount(amount_text)
    category = validate_category(category)

    date = locale.format_date(
        locale=lib.settings['locale'],
        fmt=lib.settings['date_format'],
    )
    return Record(
        id=new_temp_id(),
        title=title.strip(),
        amount=amount,
        category=category,
        date=date,
        synced=False,
    )
