"""Unittest base class for creating a clean test environment."""
import logging
import shutil
import unittest
from pathlib import Path

from PySide6 import QtCore

from ExpenseSync.settings import lib


class BaseTestCase(unittest.TestCase):
    """Base test case that runs against an empty config directory.

    Qt's test mode redirects the application data location, so the directory can
    be wiped freely between tests.
    """

    config_paths: lib.ConfigPaths

    def setUp(self) -> None:
        """Clear the config directory and reinitialize the settings API."""
        QtCore.QStandardPaths.setTestModeEnabled(True)

        if not QtCore.QCoreApplication.instance():
            QtCore.QCoreApplication([])
            logging.debug('QtCore.QCoreApplication initialized for tests.')

        self.config_paths = lib.ConfigPaths()
        config_dir: Path = self.config_paths.config_dir
        if config_dir.exists():
            shutil.rmtree(config_dir)
            logging.debug(f'Removed config directory {config_dir}')

        lib.settings = lib.SettingsAPI()
        logging.debug('SettingsAPI reinitialized.')

    def tearDown(self) -> None:
        config_dir: Path = self.config_paths.config_dir
        if config_dir.exists():
            shutil.rmtree(config_dir, ignore_errors=True)
            logging.debug(f'Removed test config directory {config_dir}')
