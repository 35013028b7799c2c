"""
Logging subsystem: root logger setup and an in-memory log store.

Modules:

- :mod:`ExpenseSync.log.log` – Log handler integrating with Python logging and the Qt message handler.
"""
