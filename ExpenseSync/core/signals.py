"""Application-wide Qt signals for ExpenseSync.

The core emits these so that a presentation layer can react to errors,
configuration changes and log events without the core importing any UI code.
"""
from PySide6 import QtCore


class Signals(QtCore.QObject):
    """Centralized Qt signals for application config, session and log events."""
    configSectionChanged = QtCore.Signal(str)
    metadataChanged = QtCore.Signal(str, object)

    sessionChanged = QtCore.Signal(object)  # SessionContext or None

    showLogs = QtCore.Signal()

    error = QtCore.Signal(str)


signals = Signals()
