"""Shared helpers: MSK authentication, configuration, JSON files, logging."""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from datetime import datetime
from datetime import timezone
from pathlib import Path
from typing import IO
from typing import Any

from aws_msk_iam_sasl_signer import MSKAuthTokenProvider
from kafka.sasl.oauth import AbstractTokenProvider
from pydantic import BaseModel

DEFAULT_CONFIG_FILE = 'ccloud.config'
DEFAULT_CLOUD_REST_URL = 'https://api.confluent.cloud'

MSK_JSON_DIR = Path('generated_jsons') / 'msk_jsons'
CC_JSON_DIR = Path('generated_jsons') / 'cc_jsons'

# Loggers of client libraries that are too chatty at INFO
NOISY_LOGGERS = ('kafka', 'botocore', 'boto3', 'urllib3')

# field -> (property keys in lookup order, environment variable)
CONFIG_SOURCES: dict[str, tuple[tuple[str, ...], str]] = {
    'environment': (
        ('confluent.cloud.environment',),
        'CONFLUENT_CLOUD_ENVIRONMENT',
    ),
    'cluster': (('confluent.cloud.cluster',), 'CONFLUENT_CLOUD_CLUSTER'),
    'organization': (
        ('confluent.cloud.organization',),
        'CONFLUENT_CLOUD_ORGANIZATION',
    ),
    'api_key': (
        ('cloud.api.key', 'confluent_cloud_key'),
        'CONFLUENT_CLOUD_API_KEY',
    ),
    'api_secret': (
        ('cloud.api.secret', 'confluent_cloud_secret'),
        'CONFLUENT_CLOUD_API_SECRET',
    ),
    'kafka_api_key': (('sasl.username',), 'CONFLUENT_KAFKA_API_KEY'),
    'kafka_api_secret': (('sasl.password',), 'CONFLUENT_KAFKA_API_SECRET'),
    'bootstrap_servers': (
        ('bootstrap.servers',),
        'CONFLUENT_BOOTSTRAP_SERVERS',
    ),
    'rest_url': (('cloud.rest.url',), 'CONFLUENT_CLOUD_REST_URL'),
    'kafka_rest_endpoint': (
        ('kafka.rest.endpoint',),
        'CONFLUENT_KAFKA_REST_ENDPOINT',
    ),
    'schema_registry_url': (
        ('schema.registry.url',),
        'SCHEMA_REGISTRY_URL',
    ),
    'schema_registry_auth': (
        ('schema.registry.basic.auth.user.info', 'basic.auth.user.info'),
        'SCHEMA_REGISTRY_AUTH',
    ),
}

_JAAS_OPTION = re.compile(r"""(username|password)\s*=\s*["']([^"']*)["']""")


class MSKTokenProvider(AbstractTokenProvider):
    """Provide tokens for MSK authentication."""

    def __init__(self, region: str) -> None:
        """Initialize with AWS region."""
        self.region = region

    def token(self) -> str:
        """Generate and return an MSK auth token."""
        token, _ = MSKAuthTokenProvider.generate_auth_token(self.region)
        return token


def load_properties(path: str | Path) -> dict[str, str]:
    """Parse a Java-style properties file into a dictionary.

    Blank lines and lines starting with '#' or '!' are ignored. Keys and
    values are separated by the first '=' or ':'.
    """
    properties: dict[str, str] = {}
    with open(path, encoding='utf-8') as f:
        for raw_line in f:
            line = raw_line.strip()
            if not line or line.startswith(('#', '!')):
                continue
            match = re.match(r'([^=:\s]+)\s*[=:]\s*(.*)', line)
            if match:
                properties[match.group(1)] = match.group(2).strip()
    return properties


def parse_jaas_credentials(jaas_config: str) -> tuple[str | None, str | None]:
    """Extract username and password from a sasl.jaas.config value."""
    options = dict(_JAAS_OPTION.findall(jaas_config))
    return options.get('username'), options.get('password')


class ConfluentCloudConfig(BaseModel):
    """Confluent Cloud connection settings.

    Values come from a ccloud.config properties file, with environment
    variables as a fallback for anything the file does not set.
    """

    environment: str | None = None
    cluster: str | None = None
    organization: str | None = None
    api_key: str | None = None
    api_secret: str | None = None
    kafka_api_key: str | None = None
    kafka_api_secret: str | None = None
    bootstrap_servers: str | None = None
    rest_url: str = DEFAULT_CLOUD_REST_URL
    kafka_rest_endpoint: str | None = None
    schema_registry_url: str | None = None
    schema_registry_auth: str | None = None
    properties: dict[str, str] = {}

    @classmethod
    def load(cls, path: str | Path | None = None) -> ConfluentCloudConfig:
        """Load settings from a properties file and the environment.

        A missing file is not an error: every setting can also come from
        the environment.
        """
        config_path = Path(path or DEFAULT_CONFIG_FILE)
        properties: dict[str, str] = {}
        if config_path.is_file():
            properties = load_properties(config_path)
        return cls.from_properties(properties)

    @classmethod
    def from_properties(
        cls,
        properties: dict[str, str],
    ) -> ConfluentCloudConfig:
        """Build settings from already parsed properties."""
        values: dict[str, Any] = {'properties': properties}
        for field, (keys, env_var) in CONFIG_SOURCES.items():
            value = next(
                (properties[key] for key in keys if properties.get(key)),
                None,
            )
            value = value or os.getenv(env_var)
            if value:
                values[field] = value

        jaas_config = properties.get('sasl.jaas.config')
        if jaas_config:
            username, password = parse_jaas_credentials(jaas_config)
            values.setdefault('kafka_api_key', username)
            values.setdefault('kafka_api_secret', password)
        return cls(**values)

    def require(self, *fields: str) -> None:
        """Raise ValueError naming every required setting that is unset."""
        missing = [
            '/'.join(CONFIG_SOURCES[field][0])
            for field in fields
            if not getattr(self, field)
        ]
        if missing:
            raise ValueError(
                f'Missing required configuration: {", ".join(missing)}',
            )

    @property
    def kafka_rest_url(self) -> str:
        """Base URL for the Kafka REST v3 API."""
        return (self.kafka_rest_endpoint or self.rest_url).rstrip('/')


def utc_now() -> str:
    """Return the current UTC time in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


def read_json(path: str | Path) -> dict[str, Any]:
    """Read a JSON document, raising FileNotFoundError if it is missing."""
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f'Input file not found: {file_path}')
    with open(file_path, encoding='utf-8') as f:
        return json.load(f)


def open_private(path: str | Path) -> IO[str]:
    """Open a file for writing that only its owner can read or write."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    # O_CREAT leaves the mode of an existing file alone
    os.fchmod(fd, 0o600)
    return os.fdopen(fd, 'w', encoding='utf-8')


def write_json(path: str | Path, data: Any, private: bool = False) -> Path:
    """Write data as indented JSON, creating parent directories.

    Private files are created with mode 0600.
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(data, BaseModel):
        data = data.model_dump(mode='json')
    opened = (
        open_private(file_path)
        if private
        else open(file_path, 'w', encoding='utf-8')
    )
    with opened as f:
        json.dump(data, f, indent=2)
        f.write('\n')
    return file_path


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    """Configure the root logger for command line use."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
