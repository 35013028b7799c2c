"""Test package for ExpenseSync.

Qt's test mode is switched on before the package under test is imported, so the
settings singleton never touches the real application data directory.
"""
from PySide6 import QtCore

QtCore.QStandardPaths.setTestModeEnabled(True)
