"""
Core package for ExpenseSync providing essential functionality.

This package includes:

- :mod:`ExpenseSync.core.models` – The expense record, categories and input validation.
- :mod:`ExpenseSync.core.database` – Durable SQLite key/value store.
- :mod:`ExpenseSync.core.service` – Backend HTTP client, connectivity probe and worker thread.
- :mod:`ExpenseSync.core.auth` – Login, registration and the persisted session.
- :mod:`ExpenseSync.core.sync` – The offline-first sync reconciler.
- :mod:`ExpenseSync.core.signals` – Application-wide Qt signals.
"""
