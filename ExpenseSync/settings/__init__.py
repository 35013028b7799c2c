"""
Settings package: configuration API and localization helpers.

This package provides:

- :mod:`ExpenseSync.settings.lib` – Core settings management and schema validation.
- :mod:`ExpenseSync.settings.locale` – Localization utilities for dates and amounts.
"""
