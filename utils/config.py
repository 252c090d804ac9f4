import logging
import os
from typing import NamedTuple

import yaml

DEFAULT_PROM_ADDR = ':9096'
ENV_PREFIX = 'HEPMETRICS_'


class ConfigurationError(Exception):
    """Raised at setup when the configuration cannot be used. Fatal."""


class Settings(NamedTuple):
    """Configuration consumed by the collector setup"""
    prom_addr: str = DEFAULT_PROM_ADDR
    prom_target_ip: str = ''
    prom_target_name: str = ''
    rtp_agent_stats: bool = False
    horaclifix_stats: bool = False


def _to_bool(key, value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('1', 'true', 'yes', 'on'):
            return True
        if lowered in ('0', 'false', 'no', 'off', ''):
            return False
    raise ConfigurationError(f'{key} must be a boolean, got {value!r}')


def _coerce(key, value):
    if isinstance(Settings._field_defaults[key], bool):
        return _to_bool(key, value)
    if value is None:
        return ''
    if isinstance(value, list):
        # YAML lists are accepted for the target lists
        return ','.join(str(v) for v in value)
    return str(value)


def load_settings(file_path=None, environ=None) -> Settings:
    """
    Builds the Settings from an optional YAML file and HEPMETRICS_* environment
    variables. Environment variables take precedence over the file.

    Args:
        file_path (str): YAML file whose top-level keys are Settings fields.
        environ (dict): Environment to read overrides from, os.environ if None.

    Returns:
        Settings: The validated settings.
    """
    values = {}
    if file_path:
        try:
            with open(file_path, 'r', encoding='utf-8') as settings_file:
                document = yaml.safe_load(settings_file)
        except OSError as e:
            raise ConfigurationError(f'could not read settings file {file_path}: {e}') from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f'could not parse settings file {file_path}: {e}') from e
        if document is None:
            document = {}
        if not isinstance(document, dict):
            raise ConfigurationError(f'settings file {file_path} must contain a mapping')
        unknown_keys = set(document) - set(Settings._fields)
        if unknown_keys:
            raise ConfigurationError(f'unknown settings: {", ".join(sorted(map(str, unknown_keys)))}')
        values.update(document)
        logging.info(f'Loaded settings from {file_path}')

    environ = os.environ if environ is None else environ
    for key in Settings._fields:
        env_key = f'{ENV_PREFIX}{key.upper()}'
        if env_key in environ:
            values[key] = environ[env_key]
            logging.debug(f'Setting {key} overridden by {env_key}')

    return Settings(**{key: _coerce(key, value) for key, value in values.items()})


def parse_prom_addr(prom_addr: str) -> tuple:
    """
    Splits a bind address such as ':9096' or '127.0.0.1:9096' into (host, port).
    An empty host binds every interface.
    """
    host, separator, port = prom_addr.rpartition(':')
    if not separator:
        raise ConfigurationError(f'prom_addr must be host:port, got {prom_addr!r}')
    host = host.strip('[]')
    try:
        port_number = int(port)
    except ValueError as e:
        raise ConfigurationError(f'invalid port in prom_addr {prom_addr!r}') from e
    if not 0 <= port_number <= 65535:
        raise ConfigurationError(f'port out of range in prom_addr {prom_addr!r}')
    return host or '0.0.0.0', port_number
