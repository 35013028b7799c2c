"""Settings library for the server and locale configuration.

Provides:
    - Schema validation and enforcement for the settings.json structure.
    - Loading, saving, reverting, and managing application settings.
    - Application paths for the configuration file and the local store.
"""

import json
import logging
import pathlib
import shutil
from typing import Dict, Any, Optional, List
from urllib.parse import urlparse

from PySide6 import QtCore

from . import locale
from ..status import status

app_name: str = 'ExpenseSync'

METADATA_KEYS: List[str] = [
    'locale',
    'date_format',
]

SERVER_KEYS: List[str] = [
    'url',
    'probe_timeout',
]

SETTINGS_SCHEMA: Dict[str, Any] = {
    'server': {
        'type': dict,
        'required': True,
        'required_keys': SERVER_KEYS,
        'item_schema': {
            'url': {'type': str, 'required': True, 'format': 'url'},
            'probe_timeout': {'type': (int, float), 'required': True, 'format': 'positive'},
        }
    },
    'metadata': {
        'type': dict,
        'required': True,
        'required_keys': METADATA_KEYS,
        'item_schema': {
            'locale': {'type': str, 'required': True, 'format': 'locale'},
            'date_format': {'type': str, 'required': True},
        }
    },
}


def is_valid_url(value: str) -> bool:
    """Check if a string is an absolute http(s) URL.

    Args:
        value (str): URL to validate.

    Returns:
        bool: True if value has an http or https scheme and a host.
    """
    parsed = urlparse(value)
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def _validate_section(section_name: str, section: Dict[str, Any], specs: Dict[str, Any]) -> None:
    """Validate one section of the settings against its schema entry.

    Args:
        section_name: Name of the section, used in error messages.
        section: The section data.
        specs: Schema dict containing 'required_keys' and 'item_schema'.

    Raises:
        TypeError: If a value has the wrong type.
        ValueError: If a required key is missing or a value fails format validation.
    """
    logging.debug(f'Validating "{section_name}" section.')
    missing = [k for k in specs.get('required_keys', []) if k not in section]
    if missing:
        msg: str = f'"{section_name}" is missing keys: {missing}.'
        logging.error(msg)
        raise ValueError(msg)

    for field, field_specs in specs.get('item_schema', {}).items():
        if field not in section:
            continue
        value = section[field]

        # bool is an int subclass, but never a valid number here
        if isinstance(value, bool) or not isinstance(value, field_specs['type']):
            msg = f'"{section_name}.{field}" must be {field_specs["type"]}, got {type(value)}.'
            logging.error(msg)
            raise TypeError(msg)

        fmt = field_specs.get('format')
        if fmt == 'url' and not is_valid_url(value):
            msg = f'"{section_name}.{field}" must be an http(s) URL, got "{value}".'
            logging.error(msg)
            raise ValueError(msg)
        if fmt == 'positive' and value <= 0:
            msg = f'"{section_name}.{field}" must be positive, got {value}.'
            logging.error(msg)
            raise ValueError(msg)
        if fmt == 'locale' and not locale.is_valid_locale(value):
            msg = f'"{section_name}.{field}" is not a known locale: "{value}".'
            logging.error(msg)
            raise ValueError(msg)


class ConfigPaths:
    """Manage application file paths and ensure the default settings file exists.

    The settings template ships inside the package. On first run it is copied into
    the user's application data directory, next to the local store's database.
    """

    def __init__(self) -> None:
        QtCore.QCoreApplication.setApplicationName(app_name)
        QtCore.QCoreApplication.setOrganizationName('')
        logging.debug(f'Setting application name: {app_name}')

        p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.StandardLocation.AppDataLocation)
        app_data_dir = pathlib.Path(p)
        logging.debug(f'Using app data directory: {app_data_dir}')

        self.template_dir: pathlib.Path = pathlib.Path(__file__).parent.parent / 'config'
        self.settings_template: pathlib.Path = self.template_dir / 'settings.json.template'

        self.config_dir: pathlib.Path = app_data_dir / 'config'
        self.db_dir: pathlib.Path = self.config_dir / 'db'

        self.settings_path: pathlib.Path = self.config_dir / 'settings.json'
        self.db_path: pathlib.Path = self.db_dir / 'store.db'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Verify the template exists and prepare the configuration directories.

        Raises:
            FileNotFoundError: If the template directory or file is missing.
        """
        logging.debug(f'Verifying required directories and templates in {self.template_dir}')
        if not self.template_dir.exists():
            msg: str = f'Missing template directory: {self.template_dir}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        if not self.settings_template.exists():
            msg = f'Missing settings template: {self.settings_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)

        if not self.config_dir.exists():
            logging.debug(f'Creating config directory: {self.config_dir}')
            self.config_dir.mkdir(parents=True, exist_ok=True)

        if not self.db_dir.exists():
            logging.debug(f'Creating db directory: {self.db_dir}')
            self.db_dir.mkdir(parents=True, exist_ok=True)

        if not self.settings_path.exists():
            logging.debug(f'Copying default settings from template to {self.settings_path}')
            shutil.copy(self.settings_template, self.settings_path)

    def revert_settings_to_template(self) -> None:
        """Restore settings.json from the default template file.

        Raises:
            FileNotFoundError: If the settings template file is missing.
        """
        logging.debug(f'Reverting settings to template: {self.settings_template}')
        if not self.settings_template.exists():
            msg: str = f'Settings template not found: {self.settings_template}'
            logging.error(msg)
            raise FileNotFoundError(msg)
        shutil.copy(self.settings_template, self.settings_path)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save settings.json sections.
    """

    def __init__(self, settings_path: Optional[str] = None) -> None:
        """Initialize SettingsAPI and load the settings data.

        Args:
            settings_path: Optional path to a custom settings.json file.
        """
        super().__init__()

        self.settings_path: pathlib.Path = pathlib.Path(settings_path) if settings_path else self.settings_path

        self._signals_blocked: bool = False

        self.settings_data: Dict[str, Any] = {}
        for k in SETTINGS_SCHEMA.keys():
            self.settings_data[k] = {}

        self.init_data()

    def __getitem__(self, key: str) -> Any:
        """Retrieve a metadata value using dictionary-style access.

        Args:
            key: Metadata key to retrieve.

        Returns:
            Value stored for the metadata key.

        Raises:
            KeyError: If key is not in METADATA_KEYS.
        """
        if key not in METADATA_KEYS:
            raise KeyError(f'Invalid metadata key: {key}, must be one of {METADATA_KEYS}')
        return self.settings_data['metadata'].get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        """Assign a metadata value using dictionary-style access and persist it.

        Args:
            key: Metadata key to set.
            value: Value to assign to the metadata key.

        Raises:
            KeyError: If key is not in METADATA_KEYS.
            ValueError, TypeError: If the new value fails validation.
        """
        if key not in METADATA_KEYS:
            raise KeyError(f'Invalid metadata key: {key}, must be one of {METADATA_KEYS}')

        metadata = self.get_section('metadata')
        metadata[key] = value
        self.set_section('metadata', metadata)

        if self._signals_blocked:
            return

        from ..core.signals import signals
        signals.metadataChanged.emit(key, value)

    def block_signals(self, v: bool) -> None:
        """Enable or disable emission of configuration change signals.

        Args:
            v: True to block signals, False to allow signals to emit.
        """
        self._signals_blocked = v

    def _check_section(self, section_name: str, action: str) -> None:
        if section_name in self.settings_data:
            return
        msg: str = f'Cannot {action} "{section_name}", sections are {list(self.settings_data)}.'
        logging.error(msg)
        raise ValueError(msg)

    def _emit_section_changed(self, section_name: str) -> None:
        if self._signals_blocked:
            return
        from ..core.signals import signals
        signals.configSectionChanged.emit(section_name)

    @QtCore.Slot()
    def init_data(self) -> None:
        """Reload the settings data, emitting change signals."""
        self.load_settings()

        for section in SETTINGS_SCHEMA.keys():
            self._emit_section_changed(section)

    def load_settings(self) -> Dict[str, Any]:
        """Load settings.json from disk and validate against schema.

        Returns:
            The loaded settings data dictionary.

        Raises:
            status.SettingsNotFoundException: If settings.json is missing.
            status.SettingsInvalidException: If JSON parsing or validation fails.
        """
        logging.debug(f'Loading settings from "{self.settings_path}"')
        if not self.settings_path.exists():
            raise status.SettingsNotFoundException

        try:
            with self.settings_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_settings_data(data)
        except status.SettingsInvalidException:
            raise
        except (ValueError, TypeError, OSError) as ex:
            raise status.SettingsInvalidException(str(ex)) from ex

        self.settings_data = data
        return self.settings_data

    def validate_settings_data(self, data: Dict[str, Any] = None) -> None:
        """Validate settings data against the defined SETTINGS_SCHEMA.

        Args:
            data (dict, optional): Settings data to validate. Defaults to self.settings_data.

        Raises:
            status.SettingsInvalidException: If the data is empty or a required section is missing.
            TypeError, ValueError: If a section fails validation.
        """
        if data is None:
            data = self.settings_data
        if not data or not isinstance(data, dict):
            raise status.SettingsInvalidException('Settings data is empty.')

        logging.debug('Validating settings data against schema.')
        for field, specs in SETTINGS_SCHEMA.items():
            if specs.get('required') and field not in data:
                raise status.SettingsInvalidException(f'Missing required field: {field}')

            if field not in data:
                continue

            if not isinstance(data[field], specs['type']):
                raise status.SettingsInvalidException(
                    f'Field "{field}" must be {specs["type"]}, got {type(data[field])}.'
                )
            _validate_section(field, data[field], specs)

        logging.debug('Settings data is valid.')

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Retrieve a copy of a settings section.

        Args:
            section_name: Section name, a key of SETTINGS_SCHEMA.

        Returns:
            A copied dict of the requested section data.

        Raises:
            KeyError: If section_name is not in settings_data.
        """
        return self.settings_data[section_name].copy()

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Replace and persist a settings section.

        The previous section is restored if the new data fails validation.

        Args:
            section_name: Section to update.
            new_data: New data dict for the section.

        Raises:
            ValueError: If section_name is unrecognized or new_data is invalid.
            TypeError: If new_data has the wrong types.
        """
        self._check_section(section_name, 'set')

        current_section_data: Dict[str, Any] = self.settings_data[section_name].copy()

        self.settings_data[section_name] = new_data
        try:
            self.validate_settings_data()
        except (ValueError, TypeError, status.SettingsInvalidException) as e:
            logging.error(f'Validation error on set_section("{section_name}"): {e}')
            self.settings_data[section_name] = current_section_data
            raise

        self.save_section(section_name)
        self._emit_section_changed(section_name)

    def reload_section(self, section_name: str) -> None:
        """Reload a settings section from its source file and emit change signal.

        Args:
            section_name: Section to reload.

        Raises:
            ValueError: If section_name is unrecognized.
            JSONDecodeError: If parsing settings.json fails.
            status.SettingsInvalidException: If reloaded data fails validation.
        """
        self._check_section(section_name, 'reload')

        logging.debug(f'Reloading section "{section_name}" from disk.')
        try:
            with self.settings_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            self.validate_settings_data(data=data)
            self.settings_data[section_name] = data[section_name]
        except (ValueError, TypeError, json.JSONDecodeError) as e:
            logging.error(f'Failed to reload section "{section_name}": {e}')
            raise

        self._emit_section_changed(section_name)

    def revert_section(self, section_name: str) -> None:
        """Revert a settings section to its template default and save.

        Args:
            section_name: Section to revert.

        Raises:
            ValueError: If section_name is invalid or not present in the template.
        """
        self._check_section(section_name, 'revert')

        with self.settings_template.open('r', encoding='utf-8') as f:
            template_data: Dict[str, Any] = json.load(f)

        if section_name not in template_data:
            msg = f'No template-based revert logic for section "{section_name}".'
            logging.error(msg)
            raise ValueError(msg)

        self.settings_data[section_name] = template_data[section_name]
        self.save_section(section_name)

        self._emit_section_changed(section_name)

    def save_section(self, section_name: str) -> None:
        """Persist a single settings section to settings.json.

        Args:
            section_name: The section to save.

        Raises:
            ValueError: If section_name is not recognized.
        """
        self._check_section(section_name, 'save')

        original_data: Dict[str, Any] = {}
        if self.settings_path.exists():
            with self.settings_path.open('r', encoding='utf-8') as f:
                original_data = json.load(f)

        new_data: Dict[str, Any] = original_data.copy()
        new_data[section_name] = self.settings_data[section_name]

        with self.settings_path.open('w', encoding='utf-8') as f:
            json.dump(new_data, f, indent=4, ensure_ascii=False)

    def save_all(self) -> None:
        """Validate and save the whole settings file, restoring the previous state on failure.

        Raises:
            status.SettingsInvalidException: On validation failure.
            OSError: For I/O errors writing the file.
        """
        logging.debug('Saving all settings.')
        original_data: Dict[str, Any] = dict(self.settings_data)
        try:
            self.validate_settings_data()
            with self.settings_path.open('w', encoding='utf-8') as f:
                json.dump(self.settings_data, f, indent=4, ensure_ascii=False)
        except (ValueError, TypeError, status.SettingsInvalidException) as e:
            logging.error(f'Failed to save settings: {e}. Rolling back.')
            self.settings_data = original_data
            raise


settings: SettingsAPI = SettingsAPI()
