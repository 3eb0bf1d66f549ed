"""Export ACLs, topics, consumer groups and schemas from an MSK cluster."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError

from msk_migration.models import ClusterMetadata
from msk_migration.models import SchemaInfo
from msk_migration.responses import create_failure_result
from msk_migration.responses import create_success_result
from msk_migration.services import ApicurioReader
from msk_migration.services import GlueSchemaService
from msk_migration.services import KafkaAdminService
from msk_migration.services import MSKClusterService
from msk_migration.services import RestClient
from msk_migration.services import SchemaRegistryReader
from msk_migration.services import build_admin_client
from msk_migration.services import build_registry_session
from msk_migration.utils import MSK_JSON_DIR
from msk_migration.utils import utc_now
from msk_migration.utils import write_json

logger = logging.getLogger(__name__)

SCHEMA_SOURCES = ('glue', 'schemaregistry', 'apicurio', 'none')
REST_SCHEMA_SOURCES = ('schemaregistry', 'apicurio')

ACLS_FILE = 'msk_acls.json'
TOPICS_FILE = 'msk_topics.json'
CONSUMER_GROUPS_FILE = 'msk_consumer_groups.json'
SCHEMAS_FILE = 'msk_schemas.json'


class MSKExtractor:
    """Read migration inputs from an MSK cluster and its schema registry."""

    def __init__(
        self,
        cluster_service: MSKClusterService,
        admin_service: KafkaAdminService,
        schema_source: str = 'none',
        schema_reader: Any | None = None,
    ) -> None:
        """Initialize the extractor.

        Args:
            cluster_service: Reads cluster metadata from the MSK API
            admin_service: Reads ACLs, topics and groups from the brokers
            schema_source: glue, schemaregistry, apicurio or none
            schema_reader: Object with list_all_schemas() for the source;
                required unless schema_source is 'none'
        """
        schema_source = schema_source.lower()
        if schema_source not in SCHEMA_SOURCES:
            raise ValueError(
                f'Invalid schema source {schema_source!r}, expected one of '
                f'{", ".join(SCHEMA_SOURCES)}',
            )
        if schema_source != 'none' and schema_reader is None:
            raise ValueError(f'A schema reader is required for {schema_source}')

        self.cluster_service = cluster_service
        self.admin_service = admin_service
        self.schema_source = schema_source
        self.schema_reader = schema_reader

    def get_cluster_metadata(self) -> ClusterMetadata | None:
        """Describe the cluster, or return None if MSK cannot be reached."""
        try:
            return self.cluster_service.describe_cluster()
        except Exception:
            logger.exception('Failed to describe cluster')
            return None

    def extract_schemas(self) -> list[SchemaInfo]:
        """Read schemas from the configured source.

        Glue connection problems are reported and produce no schemas, so a
        cluster without Glue access can still be exported.
        """
        if self.schema_source == 'none':
            logger.info('Schema extraction disabled')
            return []
        if self.schema_source == 'glue':
            try:
                return self.schema_reader.list_all_schemas()
            except BotoCoreError as e:
                logger.warning(
                    'Could not connect to AWS Glue Schema Registry: %s',
                    e,
                )
                logger.info('Continuing without schema extraction')
                return []
        return self.schema_reader.list_all_schemas()

    def _document(
        self,
        key: str,
        items: list[Any],
        metadata: ClusterMetadata | None,
        **extra: Any,
    ) -> dict[str, Any]:
        count_key = f'{key[:-1]}_count' if key.endswith('s') else f'{key}_count'
        document: dict[str, Any] = {
            key: [item.model_dump(mode='json') for item in items],
            count_key: len(items),
            'exported_at': utc_now(),
            **extra,
        }
        if metadata is not None:
            document['cluster_metadata'] = metadata.model_dump(mode='json')
        return document

    def export_all(
        self,
        output_dir: str | Path = MSK_JSON_DIR,
        include_metadata: bool = True,
    ) -> dict[str, dict[str, Any]]:
        """Write every export file into output_dir.

        ACL extraction failures are fatal. Failures exporting topics,
        consumer groups or schemas are logged and reported in the result.

        Args:
            output_dir: Directory for the msk_*.json files
            include_metadata: Embed cluster metadata in each file

        Returns:
            Result dictionary per export file
        """
        output_path = Path(output_dir)
        metadata = self.get_cluster_metadata() if include_metadata else None
        results: dict[str, dict[str, Any]] = {}

        acls = self.admin_service.list_acls()
        write_json(
            output_path / ACLS_FILE,
            self._document('acls', acls, metadata),
        )
        results[ACLS_FILE] = create_success_result(
            f'Exported {len(acls)} ACLs',
            count=len(acls),
        )

        sections = (
            (TOPICS_FILE, 'topics', self.admin_service.list_topics, {}),
            (
                CONSUMER_GROUPS_FILE,
                'consumer_groups',
                self.admin_service.list_consumer_groups,
                {},
            ),
            (
                SCHEMAS_FILE,
                'schemas',
                self.extract_schemas,
                {'schema_source': self.schema_source},
            ),
        )
        for file_name, key, extract, extra in sections:
            try:
                items = extract()
            except Exception as e:
                logger.exception('Failed to export %s', key)
                results[file_name] = create_failure_result(
                    f'Failed to export {key}',
                    error=str(e),
                )
                continue
            write_json(
                output_path / file_name,
                self._document(key, items, metadata, **extra),
            )
            results[file_name] = create_success_result(
                f'Exported {len(items)} {key.replace("_", " ")}',
                count=len(items),
            )

        for file_name, result in results.items():
            logger.info('%s: %s', file_name, result['message'])
        return results


def create_schema_reader(  # noqa: PLR0913
    schema_source: str,
    region: str,
    schema_registry_url: str | None = None,
    auth_type: str = 'none',
    glue_client: Any | None = None,
    **auth: Any,
) -> Any | None:
    """Create the reader for a schema source.

    Args:
        schema_source: glue, schemaregistry, apicurio or none
        region: AWS region for Glue
        schema_registry_url: Base URL for REST registries
        auth_type: Auth mode for REST registries
        glue_client: Optional boto3 Glue client (for testing)
        **auth: Credentials passed to build_registry_session

    Returns:
        A reader with list_all_schemas(), or None for 'none'
    """
    schema_source = schema_source.lower()
    if schema_source == 'none':
        return None
    if schema_source == 'glue':
        return GlueSchemaService(
            glue_client or boto3.client('glue', region_name=region),
        )
    if schema_source in REST_SCHEMA_SOURCES:
        if not schema_registry_url:
            raise ValueError(
                f'--schema-registry-url is required for {schema_source}',
            )
        client = RestClient(
            schema_registry_url,
            session=build_registry_session(auth_type, **auth),
        )
        if schema_source == 'schemaregistry':
            return SchemaRegistryReader(client)
        return ApicurioReader(client)
    raise ValueError(
        f'Invalid schema source {schema_source!r}, expected one of '
        f'{", ".join(SCHEMA_SOURCES)}',
    )


def create_extractor(  # noqa: PLR0913
    cluster_arn: str,
    region: str,
    security_protocol: str = 'SSL',
    sasl_mechanism: str | None = None,
    sasl_username: str | None = None,
    sasl_password: str | None = None,
    schema_source: str = 'none',
    schema_reader: Any | None = None,
) -> MSKExtractor:
    """Connect to an MSK cluster and build an extractor for it."""
    cluster_service = MSKClusterService(
        boto3.client('kafka', region_name=region),
        cluster_arn,
    )
    bootstrap_servers = cluster_service.get_bootstrap_servers(
        security_protocol,
        sasl_mechanism,
    )
    logger.info('Connecting to %s', bootstrap_servers)
    admin_service = KafkaAdminService(
        build_admin_client(
            bootstrap_servers,
            security_protocol=security_protocol,
            sasl_mechanism=sasl_mechanism,
            region=region,
            username=sasl_username,
            password=sasl_password,
        ),
    )
    return MSKExtractor(
        cluster_service,
        admin_service,
        schema_source=schema_source,
        schema_reader=schema_reader,
    )
