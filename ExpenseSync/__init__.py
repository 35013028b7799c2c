"""
ExpenseSync: offline-first expense tracking with a remote JSON backend.

This package provides:

- :mod:`ExpenseSync.core` – Records, the local store, the backend client, authentication and the sync reconciler.
- :mod:`ExpenseSync.settings` – Settings management with schema validation, and locale helpers.
- :mod:`ExpenseSync.status` – Status codes and the exceptions that carry them.
- :mod:`ExpenseSync.log` – Root logger setup and an in-memory log tank.

A presentation layer restores the session with
:meth:`ExpenseSync.core.auth.AuthManager.current_session` and hands it to
:class:`ExpenseSync.core.sync.SyncAPI`.
"""

import sys

# Fail on Python < 3.11
if not (sys.version_info.major == 3 and sys.version_info.minor >= 11):
    raise RuntimeError('ExpenseSync requires Python 3.11 or higher.')

__version__ = '0.1.0'
__license__ = 'GPL-3.0'
__description__ = 'ExpenseSync: offline-first expense tracking with a remote JSON backend.'

from .log import log

log.setup_logging()
