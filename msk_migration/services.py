"""Service classes wrapping AWS, Kafka and Confluent Cloud APIs."""

from __future__ import annotations

import contextlib
import logging
import time
from typing import Any
from urllib.parse import quote

import requests
from botocore.exceptions import ClientError
from kafka.admin import ACL
from kafka.admin import ACLFilter
from kafka.admin import ACLOperation
from kafka.admin import ACLPermissionType
from kafka.admin import ACLResourcePatternType
from kafka.admin import ConfigResource
from kafka.admin import ConfigResourceType
from kafka.admin import KafkaAdminClient
from kafka.admin import ResourcePattern
from kafka.admin import ResourcePatternFilter
from kafka.admin import ResourceType

from msk_migration.models import ACLBinding
from msk_migration.models import ClusterMetadata
from msk_migration.models import ConsumerGroupInfo
from msk_migration.models import ConsumerGroupMemberInfo
from msk_migration.models import PartitionInfo
from msk_migration.models import SchemaInfo
from msk_migration.models import TopicInfo
from msk_migration.utils import MSKTokenProvider

logger = logging.getLogger(__name__)

# Kafka DescribeConfigs config_source value for broker defaults
DEFAULT_CONFIG_SOURCE = 5

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
DEFAULT_TIMEOUT = (10, 30)
DEFAULT_PAGE_SIZE = 100

SCHEMA_REGISTRY_NAME = 'confluent-schema-registry'
APICURIO_REGISTRY_NAME = 'apicurio-registry'
APICURIO_DEFAULT_GROUP = 'default'


# ============================================================================
# AWS MSK
# ============================================================================


class MSKClusterService:
    """Service for reading MSK cluster information."""

    def __init__(self, kafka_client: Any, cluster_arn: str) -> None:
        """Initialize MSK cluster service.

        Args:
            kafka_client: Boto3 'kafka' client
            cluster_arn: ARN of the source MSK cluster
        """
        self.msk = kafka_client
        self.cluster_arn = cluster_arn

    @property
    def region(self) -> str | None:
        """AWS region embedded in the cluster ARN."""
        parts = self.cluster_arn.split(':')
        return parts[3] if len(parts) > 3 else None

    def describe_cluster(self) -> ClusterMetadata:
        """Return descriptive metadata for the cluster."""
        info = self.msk.describe_cluster(ClusterArn=self.cluster_arn)[
            'ClusterInfo'
        ]
        return ClusterMetadata(
            cluster_name=info.get('ClusterName'),
            cluster_arn=info.get('ClusterArn', self.cluster_arn),
            state=info.get('State'),
            kafka_version=info.get('CurrentBrokerSoftwareInfo', {}).get(
                'KafkaVersion',
            ),
            number_of_broker_nodes=info.get('NumberOfBrokerNodes'),
            instance_type=info.get('BrokerNodeGroupInfo', {}).get(
                'InstanceType',
            ),
            region=self.region,
        )

    def get_bootstrap_servers(
        self,
        security_protocol: str,
        sasl_mechanism: str | None = None,
    ) -> str:
        """Pick the bootstrap broker string matching the client settings.

        Falls back to whichever broker string the cluster exposes, in the
        order IAM, TLS, SCRAM, plaintext.

        Args:
            security_protocol: PLAINTEXT, SSL or SASL_SSL
            sasl_mechanism: AWS_MSK_IAM or SCRAM-SHA-* for SASL_SSL

        Returns:
            Comma separated bootstrap servers

        Raises:
            ValueError: If the cluster exposes no broker string
        """
        brokers = self.msk.get_bootstrap_brokers(ClusterArn=self.cluster_arn)
        protocol = security_protocol.upper()
        mechanism = (sasl_mechanism or '').upper()

        preferred = None
        if protocol == 'SASL_SSL' and mechanism == 'AWS_MSK_IAM':
            preferred = 'BootstrapBrokerStringSaslIam'
        elif protocol == 'SASL_SSL' and mechanism.startswith('SCRAM'):
            preferred = 'BootstrapBrokerStringSaslScram'
        elif protocol == 'SSL':
            preferred = 'BootstrapBrokerStringTls'
        elif protocol == 'PLAINTEXT':
            preferred = 'BootstrapBrokerString'

        if preferred and brokers.get(preferred):
            return brokers[preferred]

        for key in (
            'BootstrapBrokerStringSaslIam',
            'BootstrapBrokerStringTls',
            'BootstrapBrokerStringSaslScram',
            'BootstrapBrokerString',
        ):
            if brokers.get(key):
                logger.warning(
                    'No %s brokers for %s, falling back to %s',
                    preferred or protocol,
                    self.cluster_arn,
                    key,
                )
                return brokers[key]

        raise ValueError(
            f'No bootstrap brokers available for cluster {self.cluster_arn}',
        )


# ============================================================================
# Kafka admin
# ============================================================================


def build_admin_client(  # noqa: PLR0913
    bootstrap_servers: str,
    security_protocol: str = 'SSL',
    sasl_mechanism: str | None = None,
    region: str | None = None,
    username: str | None = None,
    password: str | None = None,
    client_id: str = 'msk-migration',
) -> KafkaAdminClient:
    """Create a KafkaAdminClient for the given security settings."""
    config: dict[str, Any] = {
        'bootstrap_servers': bootstrap_servers,
        'security_protocol': security_protocol,
        'client_id': client_id,
    }
    mechanism = (sasl_mechanism or '').upper()
    if mechanism == 'AWS_MSK_IAM':
        if not region:
            raise ValueError('AWS region is required for AWS_MSK_IAM')
        config['sasl_mechanism'] = 'OAUTHBEARER'
        config['sasl_oauth_token_provider'] = MSKTokenProvider(region)
    elif mechanism:
        if not username or not password:
            raise ValueError(
                f'SASL username and password are required for {mechanism}',
            )
        config['sasl_mechanism'] = mechanism
        config['sasl_plain_username'] = username
        config['sasl_plain_password'] = password
    return KafkaAdminClient(**config)


def _first(entry: dict[str, Any], *keys: str) -> Any:
    """Return the first present value among alternative field names."""
    for key in keys:
        if key in entry:
            return entry[key]
    return None


def _is_default_config(entry: tuple[Any, ...]) -> bool:
    """Check a DescribeConfigs entry for a broker default value.

    Index 3 holds is_default in protocol v0 and config_source afterwards.
    """
    flag = entry[3]
    if isinstance(flag, bool):
        return flag
    return flag == DEFAULT_CONFIG_SOURCE


def _assigned_partition_count(member_assignment: Any) -> int:
    """Count partitions in a decoded consumer member assignment."""
    assignment = getattr(member_assignment, 'assignment', None) or []
    return sum(len(partitions) for _, partitions in assignment)


class KafkaAdminService:
    """Service for reading and writing cluster state via the admin API."""

    def __init__(self, admin_client: Any) -> None:
        """Initialize Kafka admin service.

        Args:
            admin_client: A kafka-python KafkaAdminClient
        """
        self.admin = admin_client

    def close(self) -> None:
        """Close the underlying admin client."""
        with contextlib.suppress(Exception):
            self.admin.close()

    def list_acls(self) -> list[ACLBinding]:
        """Return every ACL defined on the cluster."""
        acl_filter = ACLFilter(
            principal=None,
            host=None,
            operation=ACLOperation.ANY,
            permission_type=ACLPermissionType.ANY,
            resource_pattern=ResourcePatternFilter(
                resource_type=ResourceType.ANY,
                resource_name=None,
                pattern_type=ACLResourcePatternType.ANY,
            ),
        )
        result, _ = self.admin.describe_acls(acl_filter)
        acls = [
            ACLBinding(
                principal=acl.principal,
                host=acl.host,
                operation=acl.operation.name,
                permission_type=acl.permission_type.name,
                resource_type=acl.resource_pattern.resource_type.name,
                resource_name=acl.resource_pattern.resource_name,
                pattern_type=acl.resource_pattern.pattern_type.name,
            )
            for acl in result
        ]
        logger.info('Found %d ACLs', len(acls))
        return acls

    def get_topic_configs(self, topic: str) -> dict[str, str]:
        """Return the non-default configuration entries of a topic."""
        conf = ConfigResource(ConfigResourceType.TOPIC, topic)
        entries = self.admin.describe_configs([conf])[0].resources[0][4]
        return {
            entry[0]: str(entry[1])
            for entry in entries
            if entry[1] is not None and not _is_default_config(entry)
        }

    def list_topics(self) -> list[TopicInfo]:
        """Describe every topic, including partitions and configs."""
        topics: list[TopicInfo] = []
        for description in self.admin.describe_topics():
            name = _first(description, 'topic', 'name')
            partitions = [
                PartitionInfo(
                    partition=_first(p, 'partition', 'partition_index'),
                    leader=_first(p, 'leader', 'leader_id'),
                    replicas=list(_first(p, 'replicas', 'replica_nodes') or []),
                    in_sync_replicas=list(_first(p, 'isr', 'isr_nodes') or []),
                )
                for p in description.get('partitions', [])
            ]
            partitions.sort(key=lambda p: p.partition)

            try:
                configs = self.get_topic_configs(name)
            except Exception:
                logger.exception('Failed to describe configs for %s', name)
                configs = {}

            topics.append(
                TopicInfo(
                    name=name,
                    partitions=len(partitions),
                    replication_factor=(
                        len(partitions[0].replicas) if partitions else 0
                    ),
                    is_internal=bool(description.get('is_internal', False)),
                    partition_info=partitions,
                    configurations=configs,
                ),
            )
        topics.sort(key=lambda t: t.name)
        logger.info('Found %d topics', len(topics))
        return topics

    def list_consumer_groups(self) -> list[ConsumerGroupInfo]:
        """Describe every consumer group and its members."""
        group_ids = [group[0] for group in self.admin.list_consumer_groups()]
        if not group_ids:
            logger.info('Found 0 consumer groups')
            return []

        groups: list[ConsumerGroupInfo] = []
        for description in self.admin.describe_consumer_groups(group_ids):
            members = [
                ConsumerGroupMemberInfo(
                    member_id=member.member_id,
                    client_id=member.client_id,
                    host=member.client_host,
                    assigned_partitions=_assigned_partition_count(
                        member.member_assignment,
                    ),
                )
                for member in description.members
            ]
            groups.append(
                ConsumerGroupInfo(
                    group_id=description.group,
                    state=description.state,
                    member_count=len(members),
                    members=members,
                ),
            )
        logger.info('Found %d consumer groups', len(groups))
        return groups

    def create_acl(self, acl: ACLBinding) -> None:
        """Create one ALLOW ACL, raising if the broker rejects it.

        Raises:
            ValueError: If a field has no kafka-python equivalent
            RuntimeError: If the broker reports a failure
        """
        try:
            kafka_acl = ACL(
                principal=acl.principal,
                host=acl.host or '*',
                operation=ACLOperation[acl.operation.upper()],
                permission_type=ACLPermissionType.ALLOW,
                resource_pattern=ResourcePattern(
                    ResourceType[acl.resource_type.upper()],
                    acl.resource_name,
                    ACLResourcePatternType[acl.pattern_type.upper()],
                ),
            )
        except KeyError as e:
            raise ValueError(f'Unsupported ACL field value: {e}') from e

        result = self.admin.create_acls([kafka_acl])
        failed = result.get('failed') or []
        if failed:
            _, error = failed[0]
            raise RuntimeError(f'Failed to create ACL: {error}')


# ============================================================================
# AWS Glue Schema Registry
# ============================================================================


class GlueSchemaService:
    """Service for reading schemas from the AWS Glue Schema Registry."""

    def __init__(self, glue_client: Any) -> None:
        """Initialize Glue schema service.

        Args:
            glue_client: Boto3 'glue' client
        """
        self.glue = glue_client

    def _paginate(self, operation: str, key: str, **kwargs: Any) -> list:
        paginator = self.glue.get_paginator(operation)
        items: list = []
        for page in paginator.paginate(**kwargs):
            items.extend(page.get(key, []))
        return items

    def list_registries(self) -> list[dict[str, Any]]:
        """Return every registry in the account and region."""
        return self._paginate('list_registries', 'Registries')

    def list_schemas(self, registry_arn: str) -> list[dict[str, Any]]:
        """Return every schema in a registry."""
        return self._paginate(
            'list_schemas',
            'Schemas',
            RegistryId={'RegistryArn': registry_arn},
        )

    def list_schema_versions(self, schema_arn: str) -> list[dict[str, Any]]:
        """Return every version of a schema."""
        return self._paginate(
            'list_schema_versions',
            'Schemas',
            SchemaId={'SchemaArn': schema_arn},
        )

    def get_tags(self, resource_arn: str) -> dict[str, str]:
        """Return tags on a schema, or nothing when they are unreadable."""
        with contextlib.suppress(ClientError):
            return self.glue.get_tags(ResourceArn=resource_arn).get('Tags', {})
        return {}

    def get_schema_versions(
        self,
        registry_name: str,
        schema_item: dict[str, Any],
    ) -> list[SchemaInfo]:
        """Read every version of one schema.

        A version that cannot be read is logged and skipped.
        """
        schema_arn = schema_item['SchemaArn']
        schema = self.glue.get_schema(SchemaId={'SchemaArn': schema_arn})
        tags = self.get_tags(schema_arn)

        versions: list[SchemaInfo] = []
        for version_item in self.list_schema_versions(schema_arn):
            version_number = version_item.get('VersionNumber')
            try:
                version = self.glue.get_schema_version(
                    SchemaId={'SchemaArn': schema_arn},
                    SchemaVersionNumber={'VersionNumber': version_number},
                )
            except ClientError as e:
                logger.warning(
                    'Failed to get version %s of schema %s in registry %s: %s',
                    version_number,
                    schema_item.get('SchemaName'),
                    registry_name,
                    e,
                )
                continue

            versions.append(
                SchemaInfo(
                    schema_id=schema_arn,
                    schema_name=schema.get(
                        'SchemaName',
                        schema_item.get('SchemaName'),
                    ),
                    registry_name=registry_name,
                    schema_arn=schema_arn,
                    version_number=version.get('VersionNumber'),
                    version_id=version.get('SchemaVersionId'),
                    schema_definition=version.get('SchemaDefinition'),
                    data_format=version.get(
                        'DataFormat',
                        schema.get('DataFormat'),
                    ),
                    compatibility=schema.get('Compatibility'),
                    description=schema.get('Description'),
                    status=version.get('Status', schema.get('SchemaStatus')),
                    created_time=_as_text(schema.get('CreatedTime')),
                    updated_time=_as_text(schema.get('UpdatedTime')),
                    tags=tags,
                ),
            )
        return versions

    def list_all_schemas(self) -> list[SchemaInfo]:
        """Read every version of every schema in every registry.

        Failures on a single registry or schema are logged and skipped.
        """
        schemas: list[SchemaInfo] = []
        registries = self.list_registries()
        for registry in registries:
            registry_name = registry.get('RegistryName')
            try:
                schema_items = self.list_schemas(registry['RegistryArn'])
            except ClientError as e:
                logger.warning(
                    'Failed to list schemas in registry %s: %s',
                    registry_name,
                    e,
                )
                continue

            for schema_item in schema_items:
                try:
                    schemas.extend(
                        self.get_schema_versions(registry_name, schema_item),
                    )
                except ClientError as e:
                    logger.warning(
                        'Failed to get schema %s in registry %s: %s',
                        schema_item.get('SchemaName'),
                        registry_name,
                        e,
                    )
        logger.info(
            'Retrieved %d schemas from %d registries',
            len(schemas),
            len(registries),
        )
        return schemas


def _as_text(value: Any) -> str | None:
    """Render timestamps from AWS responses as text."""
    if value is None:
        return None
    if hasattr(value, 'isoformat'):
        return value.isoformat()
    return str(value)


# ============================================================================
# REST clients
# ============================================================================


class RestClient:
    """JSON REST client with retries on throttling and server errors."""

    def __init__(  # noqa: PLR0913
        self,
        base_url: str,
        auth: tuple[str, str] | None = None,
        session: requests.Session | None = None,
        timeout: tuple[int, int] = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
    ) -> None:
        """Initialize REST client.

        Args:
            base_url: Scheme and host, optionally with a path prefix
            auth: HTTP basic auth credentials (key, secret)
            session: Optional requests session (for testing)
            timeout: (connect, read) timeout in seconds
            max_retries: Attempts per request
            retry_backoff: Base delay in seconds, doubled per attempt

        Raises:
            ValueError: If max_retries is less than one
        """
        if max_retries < 1:
            raise ValueError('max_retries must be at least 1')
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        if auth:
            self.session.auth = auth
        self.session.headers.update(
            {
                'Content-Type': 'application/json',
                'Accept': 'application/json',
            },
        )
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

    def request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> requests.Response:
        """Send a request and return the successful response.

        Raises:
            requests.HTTPError: On a non-2xx response after retries
            requests.RequestException: On connection failures after retries
        """
        url = path if path.startswith('http') else f'{self.base_url}{path}'
        response = None
        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            try:
                response = self.session.request(
                    method,
                    url,
                    timeout=self.timeout,
                    **kwargs,
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                if last_attempt:
                    raise
                logger.warning('%s %s failed: %s, retrying', method, url, e)
                time.sleep(self.retry_backoff * 2**attempt)
                continue

            if response.status_code in RETRY_STATUS_CODES and not last_attempt:
                logger.warning(
                    '%s %s returned %d, retrying',
                    method,
                    url,
                    response.status_code,
                )
                time.sleep(self.retry_backoff * 2**attempt)
                continue
            break

        if not response.ok:
            raise requests.HTTPError(
                f'{method} {url} failed with {response.status_code}: '
                f'{response.text}',
                response=response,
            )
        return response

    def get(self, path: str, **kwargs: Any) -> Any:
        """GET a JSON document."""
        return self.request('GET', path, **kwargs).json()

    def post(self, path: str, body: dict[str, Any]) -> Any:
        """POST a JSON body and return the decoded response, if any."""
        response = self.request('POST', path, json=body)
        return response.json() if response.content else {}

    def put(self, path: str, body: dict[str, Any]) -> Any:
        """PUT a JSON body and return the decoded response, if any."""
        response = self.request('PUT', path, json=body)
        return response.json() if response.content else {}


def status_code_of(error: requests.HTTPError) -> int | None:
    """Return the HTTP status carried by an HTTPError."""
    return error.response.status_code if error.response is not None else None


def build_registry_session(  # noqa: PLR0913
    auth_type: str = 'none',
    username: str | None = None,
    password: str | None = None,
    api_key: str | None = None,
    api_secret: str | None = None,
    token: str | None = None,
    cert_file: str | None = None,
    key_file: str | None = None,
    ca_file: str | None = None,
) -> requests.Session:
    """Create a session authenticated for a source schema registry.

    Args:
        auth_type: none, basic, apikey, bearer or mtls
        username: Basic auth username
        password: Basic auth password
        api_key: API key, sent as basic auth
        api_secret: API secret, sent as basic auth
        token: Bearer token
        cert_file: PEM client certificate for mtls
        key_file: PEM private key for mtls
        ca_file: PEM CA bundle used to verify the registry

    Raises:
        ValueError: If the credentials for auth_type are missing
    """
    session = requests.Session()
    auth_type = auth_type.lower()
    if auth_type == 'basic':
        if not username or not password:
            raise ValueError('Basic auth requires a username and password')
        session.auth = (username, password)
    elif auth_type == 'apikey':
        if not api_key or not api_secret:
            raise ValueError('API key auth requires a key and secret')
        session.auth = (api_key, api_secret)
    elif auth_type == 'bearer':
        if not token:
            raise ValueError('Bearer auth requires a token')
        session.headers['Authorization'] = f'Bearer {token}'
    elif auth_type == 'mtls':
        if not cert_file:
            raise ValueError('mTLS auth requires a client certificate')
        session.cert = (cert_file, key_file) if key_file else cert_file
    elif auth_type != 'none':
        raise ValueError(f'Unsupported schema registry auth type: {auth_type}')

    if ca_file:
        session.verify = ca_file
    return session


class SchemaRegistryReader:
    """Read schemas from a Confluent-compatible Schema Registry."""

    def __init__(self, client: RestClient) -> None:
        """Initialize with a REST client for the registry."""
        self.client = client

    def list_all_schemas(self) -> list[SchemaInfo]:
        """Read every version of every subject."""
        schemas: list[SchemaInfo] = []
        for subject in self.client.get('/subjects'):
            encoded = quote(subject, safe='')
            try:
                versions = self.client.get(f'/subjects/{encoded}/versions')
            except requests.RequestException as e:
                logger.warning(
                    'Failed to get versions for subject %s: %s',
                    subject,
                    e,
                )
                continue

            for version in versions:
                try:
                    data = self.client.get(
                        f'/subjects/{encoded}/versions/{version}',
                    )
                except requests.RequestException as e:
                    logger.warning(
                        'Failed to get schema for subject %s version %s: %s',
                        subject,
                        version,
                        e,
                    )
                    continue
                schemas.append(
                    SchemaInfo(
                        schema_id=str(data.get('id')),
                        schema_name=subject,
                        subject=subject,
                        registry_name=SCHEMA_REGISTRY_NAME,
                        version_number=data.get('version', version),
                        schema_definition=data.get('schema'),
                        data_format=data.get('schemaType', 'AVRO'),
                        status='AVAILABLE',
                    ),
                )
        logger.info('Retrieved %d schemas from Schema Registry', len(schemas))
        return schemas


class ApicurioReader:
    """Read schemas from an Apicurio Registry (v2 API)."""

    def __init__(self, client: RestClient, page_size: int = 100) -> None:
        """Initialize with a REST client for the registry."""
        self.client = client
        self.page_size = page_size

    def list_artifacts(self) -> list[dict[str, Any]]:
        """Return every artifact, following offset pagination."""
        artifacts: list[dict[str, Any]] = []
        while True:
            page = self.client.get(
                '/apis/registry/v2/search/artifacts',
                params={'offset': len(artifacts), 'limit': self.page_size},
            )
            batch = page.get('artifacts') or []
            artifacts.extend(batch)
            if not batch or len(artifacts) >= page.get('count', 0):
                return artifacts

    def list_all_schemas(self) -> list[SchemaInfo]:
        """Read every version of every artifact."""
        schemas: list[SchemaInfo] = []
        for artifact in self.list_artifacts():
            group_id = quote(
                artifact.get('groupId') or APICURIO_DEFAULT_GROUP,
                safe='',
            )
            artifact_id = artifact['id']
            base = (
                f'/apis/registry/v2/groups/{group_id}'
                f'/artifacts/{quote(artifact_id, safe="")}/versions'
            )
            try:
                versions = self.client.get(base).get('versions') or []
            except requests.RequestException as e:
                logger.warning(
                    'Failed to get versions for artifact %s: %s',
                    artifact_id,
                    e,
                )
                continue

            for version_meta in versions:
                version = version_meta.get('version')
                try:
                    content = self.client.request('GET', f'{base}/{version}')
                    schema = SchemaInfo(
                        schema_id=artifact_id,
                        schema_name=artifact_id,
                        subject=artifact_id,
                        registry_name=APICURIO_REGISTRY_NAME,
                        version_number=int(version),
                        schema_definition=content.text,
                        data_format=version_meta.get('type'),
                        created_time=version_meta.get('createdOn'),
                        description=version_meta.get('description'),
                        status='AVAILABLE',
                    )
                except (requests.RequestException, TypeError, ValueError) as e:
                    logger.warning(
                        'Failed to get artifact %s version %s: %s',
                        artifact_id,
                        version,
                        e,
                    )
                    continue
                schemas.append(schema)
        logger.info('Retrieved %d schemas from Apicurio Registry', len(schemas))
        return schemas


# ============================================================================
# Confluent Cloud
# ============================================================================


class IAMService:
    """Service for Confluent Cloud IAM: service accounts, roles, keys."""

    def __init__(self, client: RestClient) -> None:
        """Initialize IAM service.

        Args:
            client: REST client for https://api.confluent.cloud with a
                Cloud API key
        """
        self.client = client

    def list_service_accounts(self) -> list[dict[str, Any]]:
        """Return every service account, following pagination."""
        accounts: list[dict[str, Any]] = []
        url = f'/iam/v2/service-accounts?page_size={DEFAULT_PAGE_SIZE}'
        while url:
            page = self.client.get(url)
            accounts.extend(page.get('data') or [])
            url = (page.get('metadata') or {}).get('next')
        return accounts

    def find_service_account(self, display_name: str) -> dict[str, Any] | None:
        """Find a service account by display name."""
        for account in self.list_service_accounts():
            if account.get('display_name') == display_name:
                return account
        return None

    def create_service_account(
        self,
        display_name: str,
        description: str,
    ) -> dict[str, Any]:
        """Create a service account and return the API representation."""
        return self.client.post(
            '/iam/v2/service-accounts',
            {'display_name': display_name, 'description': description},
        )

    def create_role_binding(
        self,
        service_account_id: str,
        role_name: str,
        crn_pattern: str,
    ) -> dict[str, Any]:
        """Bind a role to a service account on a CRN pattern."""
        return self.client.post(
            '/iam/v2/role-bindings',
            {
                'principal': f'User:{service_account_id}',
                'role_name': role_name,
                'crn_pattern': crn_pattern,
            },
        )

    def list_role_bindings(self, crn_pattern: str) -> list[dict[str, Any]]:
        """Return role bindings matching a CRN pattern."""
        bindings: list[dict[str, Any]] = []
        url = '/iam/v2/role-bindings'
        params: dict[str, Any] | None = {
            'crn_pattern': crn_pattern,
            'page_size': DEFAULT_PAGE_SIZE,
        }
        while url:
            page = self.client.get(url, params=params)
            bindings.extend(page.get('data') or [])
            url = (page.get('metadata') or {}).get('next')
            params = None
        return bindings

    def create_api_key(
        self,
        owner_id: str,
        cluster_id: str,
        environment: str,
        display_name: str,
        description: str = '',
    ) -> dict[str, Any]:
        """Create a Kafka cluster API key owned by a service account."""
        return self.client.post(
            '/iam/v2/api-keys',
            {
                'spec': {
                    'display_name': display_name,
                    'description': description,
                    'owner': {'id': owner_id},
                    'resource': {
                        'id': cluster_id,
                        'environment': {'id': environment},
                    },
                },
            },
        )


class KafkaRestService:
    """Service for topic management via the Kafka REST v3 API."""

    def __init__(self, client: RestClient, cluster_id: str) -> None:
        """Initialize Kafka REST service.

        Args:
            client: REST client for the cluster REST endpoint with a Kafka
                API key
            cluster_id: Confluent Cloud cluster ID (lkc-...)
        """
        self.client = client
        self.cluster_id = cluster_id
        self.topics_path = f'/kafka/v3/clusters/{cluster_id}/topics'

    def list_topics(self) -> set[str]:
        """Return names of the topics already on the cluster."""
        data = self.client.get(self.topics_path).get('data') or []
        return {topic['topic_name'] for topic in data if 'topic_name' in topic}

    def create_topic(
        self,
        name: str,
        partitions: int,
        configs: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create a topic with the given partition count and configs."""
        body: dict[str, Any] = {
            'topic_name': name,
            'partitions_count': partitions,
        }
        if configs:
            body['configs'] = [
                {'name': key, 'value': value} for key, value in configs.items()
            ]
        return self.client.post(self.topics_path, body)


class SchemaRegistryService:
    """Service for registering schemas in Confluent Cloud Schema Registry."""

    def __init__(self, client: RestClient) -> None:
        """Initialize with a REST client for the target registry."""
        self.client = client

    def list_subjects(self) -> set[str]:
        """Return every subject in the registry."""
        return set(self.client.get('/subjects'))

    def set_compatibility(self, subject: str, compatibility: str) -> None:
        """Set the compatibility level of a subject."""
        self.client.put(
            f'/config/{quote(subject, safe="")}',
            {'compatibility': compatibility},
        )

    def register_schema(
        self,
        subject: str,
        schema: str,
        schema_type: str,
        schema_id: int | None = None,
    ) -> int | None:
        """Register a schema version and return its ID.

        Args:
            subject: Subject name
            schema: Schema definition
            schema_type: AVRO, JSON or PROTOBUF
            schema_id: ID to request for the schema, if any

        Returns:
            ID assigned by the registry
        """
        body: dict[str, Any] = {'schema': schema, 'schemaType': schema_type}
        if schema_id is not None:
            body['id'] = schema_id
        result = self.client.post(
            f'/subjects/{quote(subject, safe="")}/versions',
            body,
        )
        return result.get('id')
