"""Status definitions and exceptions for ExpenseSync.

This module provides:
    - Status: enumeration of possible application states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions (validation, connectivity, server, storage, settings) used by the core
"""
import enum
import logging
from typing import Dict


class Status(enum.StrEnum):
    """Enumeration of application status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Settings status
    SettingsNotFound = enum.auto()
    SettingsInvalid = enum.auto()

    # Validation status
    MissingField = enum.auto()
    InvalidAmount = enum.auto()
    InvalidCategory = enum.auto()
    InvalidEmail = enum.auto()
    NameTooShort = enum.auto()
    PasswordMismatch = enum.auto()

    # Authentication status
    NotAuthenticated = enum.auto()

    # Remote status
    Offline = enum.auto()
    ServerError = enum.auto()

    # Local store status
    StorageError = enum.auto()

    # Record status
    RecordNotFound = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status.',
    Status.Okay: 'Everything is okay.',

    Status.SettingsNotFound: 'Could not find the settings file.',
    Status.SettingsInvalid: 'The settings seem to be incomplete, or contain invalid values.',

    Status.MissingField: 'Please fill in all fields.',
    Status.InvalidAmount: 'Please enter a valid amount.',
    Status.InvalidCategory: 'Please pick one of the available categories.',
    Status.InvalidEmail: 'Please enter a valid email address.',
    Status.NameTooShort: 'Full name must be at least 2 characters.',
    Status.PasswordMismatch: 'Passwords do not match.',

    Status.NotAuthenticated: 'You are not signed in. Please sign in again.',

    Status.Offline: 'The server could not be reached. Working offline.',
    Status.ServerError: 'The server reported an error.',

    Status.StorageError: 'Could not access local storage. Changes may not survive a restart.',

    Status.RecordNotFound: 'The expense could not be found.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


class BaseStatusException(Exception):
    """Base exception for status-based errors in ExpenseSync.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.
        detail (str): The optional context passed in by the raiser.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        self.detail = message or ''
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.error(exception_message)

        from ..core.signals import signals
        signals.error.emit(message or self.status_message)


class SettingsNotFoundException(BaseStatusException):
    """Exception raised when the settings file cannot be found."""
    status = Status.SettingsNotFound


class SettingsInvalidException(BaseStatusException):
    """Exception raised when the settings file is invalid or malformed."""
    status = Status.SettingsInvalid


class ValidationException(BaseStatusException):
    """Base for input rejected before any state is touched."""
    status = Status.UnknownStatus


class MissingFieldException(ValidationException):
    status = Status.MissingField


class InvalidAmountException(ValidationException):
    status = Status.InvalidAmount


class InvalidCategoryException(ValidationException):
    status = Status.InvalidCategory


class InvalidEmailException(ValidationException):
    status = Status.InvalidEmail


class NameTooShortException(ValidationException):
    status = Status.NameTooShort


class PasswordMismatchException(ValidationException):
    status = Status.PasswordMismatch


class NotAuthenticatedException(BaseStatusException):
    """Exception raised when an operation needs a logged-in user."""
    status = Status.NotAuthenticated


class ConnectivityException(BaseStatusException):
    """Exception raised when the server cannot be reached or the request timed out."""
    status = Status.Offline


class ServerException(BaseStatusException):
    """Exception raised when the server answered but reported a failure."""
    status = Status.ServerError


class StorageException(BaseStatusException):
    """Exception raised when the local store cannot be read or written."""
    status = Status.StorageError
