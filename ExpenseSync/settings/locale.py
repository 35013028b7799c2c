"""
Module for formatting dates and parsing decimal values using Babel.

"""
import datetime
import decimal
import logging
from typing import List, Optional

from babel import Locale, UnknownLocaleError, dates, numbers

DEFAULT_LOCALE: str = 'en_US'
DEFAULT_DATE_FORMAT: str = 'short'

LOCALE_MAP: List[str] = [
    "en_GB",
    "de_DE",
    "es_ES",
    "hu_HU",
    "da_DK",
    "en_AU",
    "en_CA",
    "en_IN",
    "en_US",
    "en_ZA",
    "es_MX",
    "fi_FI",
    "fr_BE",
    "fr_FR",
    "id_ID",
    "it_IT",
    "ja_JP",
    "ko_KR",
    "nb_NO",
    "nl_NL",
    "pt_BR",
    "ru_RU",
    "si_LK",
    "sv_SE",
    "ta_LK",
    "tr_TR",
    "zh_CN",
]


def is_valid_locale(locale: str) -> bool:
    """
    Check whether Babel can parse the given locale identifier.

    Args:
        locale (str): Locale string, e.g. 'fr_FR'.

    Returns:
        bool: True if the locale is known to Babel.
    """
    if not isinstance(locale, str) or not locale:
        return False
    try:
        Locale.parse(locale)
    except (ValueError, TypeError, UnknownLocaleError):
        return False
    return True


def format_date(value: Optional[datetime.date] = None, locale: str = DEFAULT_LOCALE,
                fmt: str = DEFAULT_DATE_FORMAT) -> str:
    """
    Format a date according to the locale conventions.

    Args:
        value (datetime.date): The date to format. Defaults to today.
        locale (str): Locale string, e.g. 'en_US'.
        fmt (str): A Babel format name ('short', 'medium', 'long', 'full') or a custom pattern.

    Returns:
        str: The formatted date, or the ISO date if the locale or pattern is unusable.
    """
    value = value or datetime.date.today()
    try:
        return dates.format_date(value, format=fmt, locale=Locale.parse(locale))
    except (ValueError, TypeError, AttributeError, UnknownLocaleError) as ex:
        logging.warning(f'Could not format date with locale "{locale}" and format "{fmt}": {ex}')
        return value.isoformat()


def parse_amount(text: str, locale: str = DEFAULT_LOCALE) -> decimal.Decimal:
    """
    Parse a user-entered amount using the locale's decimal and grouping symbols.

    Args:
        text (str): The raw amount text, e.g. '3.50' or '3,50'.
        locale (str): Locale string used to interpret the separators.

    Returns:
        decimal.Decimal: The parsed value.

    Raises:
        ValueError: If the text is not a finite number.
    """
    if not isinstance(text, str) or not text.strip():
        raise ValueError('Amount is empty.')

    try:
        value = numbers.parse_decimal(text.strip(), locale=locale)
    except (numbers.NumberFormatError, decimal.InvalidOperation) as ex:
        raise ValueError(f'"{text}" is not a number.') from ex

    if not value.is_finite():
        raise ValueError(f'"{text}" is not a finite number.')
    return value
