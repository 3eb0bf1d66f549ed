"""Create migrated resources in Confluent Cloud.

Each creator works from the JSON files written by the extract and convert
steps, handles failures per item, and supports a dry run that only logs
what would change.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import requests
from kafka.errors import KafkaError
from pydantic import ValidationError

from msk_migration.converter import sanitize_service_account_name
from msk_migration.models import ACLBinding
from msk_migration.models import PrincipalInfo
from msk_migration.models import PrincipalsData
from msk_migration.models import RBACOutput
from msk_migration.models import RoleBinding
from msk_migration.models import SchemaInfo
from msk_migration.models import ServiceAccountInfo
from msk_migration.models import ServiceAccountRecord
from msk_migration.models import TopicInfo
from msk_migration.responses import create_failure_result
from msk_migration.responses import create_skipped_result
from msk_migration.responses import create_success_result
from msk_migration.responses import summarize_results
from msk_migration.services import IAMService
from msk_migration.services import KafkaAdminService
from msk_migration.services import KafkaRestService
from msk_migration.services import SchemaRegistryService
from msk_migration.services import status_code_of
from msk_migration.utils import open_private
from msk_migration.utils import read_json
from msk_migration.utils import utc_now
from msk_migration.utils import write_json

logger = logging.getLogger(__name__)

DRY_RUN_ID = 'dry-run-id'
DRY_RUN_RESOURCE_ID = 'dry-run-resource-id'
UNKNOWN_ID_MARKER = 'EXISTING_ID_UNKNOWN'
CRN_PREFIX = 'crn://confluent.cloud'

# Topic configs that Confluent Cloud accepts on creation
SUPPORTED_TOPIC_CONFIGS = (
    'cleanup.policy',
    'retention.ms',
    'retention.bytes',
    'segment.bytes',
    'min.insync.replicas',
    'unclean.leader.election.enable',
    'max.message.bytes',
    'compression.type',
)

COMPATIBILITY_MODES = {
    'NONE': 'NONE',
    'DISABLED': 'NONE',
    'BACKWARD': 'BACKWARD',
    'FORWARD': 'FORWARD',
    'FULL': 'FULL',
    'BACKWARD_ALL': 'BACKWARD_TRANSITIVE',
    'FORWARD_ALL': 'FORWARD_TRANSITIVE',
    'FULL_ALL': 'FULL_TRANSITIVE',
}
DEFAULT_COMPATIBILITY = 'BACKWARD'

SCHEMA_TYPES = ('AVRO', 'JSON', 'PROTOBUF')
DEFAULT_SCHEMA_TYPE = 'AVRO'
DEFAULT_START_ID = 1000

CRN_RESOURCE_SEGMENTS = {
    'topic': 'topic',
    'group': 'group',
    'transactionalid': 'transactional-id',
    'transactional_id': 'transactional-id',
}

SKIPPED_PRINCIPAL_PREFIXES = ('kafka-', '__')


def build_crn_pattern(  # noqa: PLR0913
    organization: str,
    environment: str,
    cluster_id: str,
    resource_type: str,
    resource_name: str,
    pattern_type: str = 'LITERAL',
) -> str:
    """Build the CRN pattern that scopes a role binding.

    Cluster bindings are scoped to the cluster itself. Topic, group and
    transactional ID bindings add a resource segment, with a trailing '*'
    for prefixed patterns.

    Raises:
        ValueError: If the organization is missing or the resource type
            has no CRN form
    """
    if not organization:
        raise ValueError(
            'Missing organization ID (confluent.cloud.organization), '
            'required for CRN patterns',
        )
    cluster_crn = (
        f'{CRN_PREFIX}/organization={organization}'
        f'/environment={environment}/cloud-cluster={cluster_id}'
    )
    kind = resource_type.lower()
    if kind == 'cluster':
        return cluster_crn

    segment = CRN_RESOURCE_SEGMENTS.get(kind)
    if segment is None:
        raise ValueError(f'Unsupported resource type for RBAC: {resource_type}')
    name = resource_name
    if pattern_type.upper() == 'PREFIXED' and not name.endswith('*'):
        name = f'{name}*'
    return f'{cluster_crn}/kafka={cluster_id}/{segment}={name}'


def load_service_account_ids(path: str | Path) -> dict[str, str]:
    """Map service account names to IDs from cc_service_accounts.json.

    Only accounts that were created or already existed, and have a real
    ID, are included. A missing file yields an empty mapping.
    """
    if not Path(path).is_file():
        logger.info('No service accounts file at %s', path)
        return {}
    mappings: dict[str, str] = {}
    for account in read_json(path).get('service_accounts', []):
        account_id = account.get('id')
        if (
            account.get('status') in ('created', 'existing')
            and account_id
            and account_id != DRY_RUN_ID
        ):
            mappings[account['name']] = account_id
    logger.info('Loaded %d service account mappings', len(mappings))
    return mappings


def should_create_service_account(principal: PrincipalInfo) -> bool:
    """Only user principals that are not system accounts get one."""
    if principal.principal_type != 'User':
        return False
    name = principal.principal_name.lower()
    return not (name.startswith(SKIPPED_PRINCIPAL_PREFIXES) or 'system' in name)


# ============================================================================
# Service accounts
# ============================================================================


class ServiceAccountCreator:
    """Create Confluent Cloud service accounts for MSK principals."""

    def __init__(self, iam_service: IAMService, dry_run: bool = False) -> None:
        """Initialize service account creator.

        Args:
            iam_service: Confluent Cloud IAM service
            dry_run: Log actions without calling the API
        """
        self.iam_service = iam_service
        self.dry_run = dry_run

    def ensure_service_account(
        self,
        name: str,
        description: str,
    ) -> tuple[str | None, str, str]:
        """Find or create a service account (idempotent).

        A 409 conflict on creation means the account exists, so it is
        looked up again. The ID can still be unknown afterwards.

        Args:
            name: Service account display name
            description: Description for a new account

        Returns:
            Tuple of (id, status, message). Status is created, existing or
            dry-run.
        """
        if self.dry_run:
            logger.info('Would create service account %s', name)
            return DRY_RUN_ID, 'dry-run', 'Dry run - not created'

        existing = self.iam_service.find_service_account(name)
        if existing:
            logger.info(
                'Service account %s already exists with ID %s',
                name,
                existing.get('id'),
            )
            return existing.get('id'), 'existing', 'Already exists'

        try:
            created = self.iam_service.create_service_account(name, description)
        except requests.HTTPError as e:
            conflict = status_code_of(e) == 409
            if not conflict and 'already in use' not in str(e).lower():
                raise
            logger.warning(
                'Service account %s already exists, looking it up',
                name,
            )
        else:
            logger.info(
                'Created service account %s with ID %s',
                name,
                created.get('id'),
            )
            return created.get('id'), 'created', 'Created successfully'

        try:
            existing = self.iam_service.find_service_account(name)
        except requests.RequestException as e:
            logger.warning('Lookup of service account %s failed: %s', name, e)
            return (
                None,
                'existing',
                f'Already exists (confirmed by 409 error, lookup failed: {e})',
            )
        if existing:
            return (
                existing.get('id'),
                'existing',
                'Already exists (found after conflict)',
            )
        logger.warning(
            'Service account %s exists but its ID could not be retrieved',
            name,
        )
        return (
            None,
            'existing',
            'Already exists (confirmed by 409 error, but ID not retrievable)',
        )

    def create_for_principal(
        self,
        principal: PrincipalInfo,
    ) -> ServiceAccountRecord:
        """Create the service account for one principal."""
        name = sanitize_service_account_name(principal.principal_name)
        description = (
            f'Service account created from MSK principal: '
            f'{principal.principal} (ACLs: {principal.acl_count})'
        )
        try:
            account_id, status, message = self.ensure_service_account(
                name,
                description,
            )
        except requests.RequestException as e:
            logger.error('Failed to create service account %s: %s', name, e)
            account_id, status, message = None, 'failed', str(e)

        resource_id = account_id
        if status == 'dry-run':
            resource_id = DRY_RUN_RESOURCE_ID
        return ServiceAccountRecord(
            name=name,
            id=account_id,
            account_id=account_id,
            resource_id=resource_id,
            status=status,
            message=message,
            original_principal=principal.principal,
            acl_count=principal.acl_count,
            permissions=principal.permissions,
        )

    def create_from_principals(
        self,
        principals_file: str | Path,
        output_file: str | Path,
    ) -> list[ServiceAccountRecord]:
        """Create service accounts for every eligible principal.

        Args:
            principals_file: Path to msk_principals.json
            output_file: Path for cc_service_accounts.json

        Returns:
            One record per processed principal
        """
        data = PrincipalsData.model_validate(read_json(principals_file))
        logger.info('Found %d principals to process', len(data.principals))

        records: list[ServiceAccountRecord] = []
        for principal in data.principals:
            if not should_create_service_account(principal):
                logger.info(
                    'Skipping principal %s (type: %s)',
                    principal.principal_name,
                    principal.principal_type,
                )
                continue
            if not sanitize_service_account_name(principal.principal_name):
                logger.warning(
                    'Skipping principal %s: no valid service account name',
                    principal.principal,
                )
                continue
            records.append(self.create_for_principal(principal))

        statuses = [record.status for record in records]
        write_json(
            output_file,
            {
                'service_accounts': [
                    record.model_dump(mode='json') for record in records
                ],
                'metadata': {
                    'created_at': utc_now(),
                    'source_file': str(principals_file),
                    'source_cluster': (
                        data.cluster_metadata.cluster_name
                        if data.cluster_metadata
                        else None
                    ),
                    'total_principals_processed': len(records),
                    'created_count': statuses.count('created'),
                    'existing_count': statuses.count('existing'),
                    'failed_count': statuses.count('failed'),
                },
            },
        )
        logger.info(
            'Service accounts: %d created, %d existing, %d failed',
            statuses.count('created'),
            statuses.count('existing'),
            statuses.count('failed'),
        )
        logger.info('Service account details written to %s', output_file)
        return records


# ============================================================================
# API keys
# ============================================================================


class ApiKeyCreator:
    """Create Kafka API keys for migrated service accounts."""

    def __init__(  # noqa: PLR0913
        self,
        iam_service: IAMService,
        environment: str,
        cluster_id: str,
        bootstrap_servers: str | None = None,
        dry_run: bool = False,
    ) -> None:
        """Initialize API key creator.

        Args:
            iam_service: Confluent Cloud IAM service
            environment: Confluent Cloud environment ID
            cluster_id: Kafka cluster the keys are scoped to
            bootstrap_servers: Written into each kafka.properties file
            dry_run: Log actions without calling the API
        """
        self.iam_service = iam_service
        self.environment = environment
        self.cluster_id = cluster_id
        self.bootstrap_servers = bootstrap_servers
        self.dry_run = dry_run
        self.account_creator = ServiceAccountCreator(iam_service, dry_run)

    def save_credentials(
        self,
        directory: Path,
        account: ServiceAccountInfo,
        account_id: str,
        api_key: str,
        api_secret: str,
    ) -> None:
        """Write credentials.json and kafka.properties for one account.

        Both files hold the API secret and are readable by their owner
        only.
        """
        directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        write_json(
            directory / 'credentials.json',
            {
                'service_account': {
                    'name': account.name,
                    'id': account_id,
                    'original_principal': account.original_principal,
                },
                'api_credentials': {'key': api_key, 'secret': api_secret},
                'confluent_cloud': {
                    'environment': self.environment,
                    'cluster_id': self.cluster_id,
                },
                'metadata': {'created_at': utc_now()},
            },
            private=True,
        )
        with open_private(directory / 'kafka.properties') as f:
            f.write(
                f'# Kafka client configuration for {account.name}\n'
                f'bootstrap.servers={self.bootstrap_servers or ""}\n'
                'security.protocol=SASL_SSL\n'
                'sasl.mechanisms=PLAIN\n'
                f'sasl.username={api_key}\n'
                f'sasl.password={api_secret}\n'
                f'client.id={account.name}\n',
            )

    def create_for_account(
        self,
        account: ServiceAccountInfo,
        known_ids: dict[str, str],
        credentials_dir: Path,
        force: bool = False,
    ) -> dict[str, Any]:
        """Create and save an API key for one service account."""
        directory = credentials_dir / account.name
        if (directory / 'credentials.json').exists() and not force:
            return create_skipped_result(
                'Credentials already exist',
                service_account=account.name,
            )

        account_id = known_ids.get(account.name)
        if not account_id:
            account_id, _, message = self.account_creator.ensure_service_account(
                account.name,
                account.description,
            )
            if not account_id:
                return create_failure_result(
                    'Service account ID unknown',
                    error=message,
                    service_account=account.name,
                )

        if self.dry_run:
            logger.info('Would create API key for %s', account.name)
            return create_success_result(
                'Dry run - API key not created',
                service_account=account.name,
            )

        response = self.iam_service.create_api_key(
            account_id,
            self.cluster_id,
            self.environment,
            display_name=f'{account.name}-kafka',
            description=f'Kafka API key for {account.name} (migrated from MSK)',
        )
        api_key = response['id']
        self.save_credentials(
            directory,
            account,
            account_id,
            api_key,
            response['spec']['secret'],
        )
        logger.info('Created API key %s for %s', api_key, account.name)
        return create_success_result(
            'API key created',
            service_account=account.name,
            id=account_id,
            api_key=api_key,
            folder=str(directory),
        )

    def create_for_service_accounts(
        self,
        rbac_file: str | Path,
        service_accounts_file: str | Path,
        credentials_dir: str | Path,
        force: bool = False,
    ) -> dict[str, int]:
        """Create API keys for every service account in cc_rbac.json.

        Args:
            rbac_file: Path to cc_rbac.json
            service_accounts_file: Path to cc_service_accounts.json
            credentials_dir: Directory receiving one folder per account
            force: Create a new key even if credentials were saved before

        Returns:
            Counts by result status
        """
        rbac = RBACOutput.model_validate(read_json(rbac_file))
        known_ids = load_service_account_ids(service_accounts_file)
        credentials_path = Path(credentials_dir)

        results: list[dict[str, Any]] = []
        for account in rbac.service_accounts:
            try:
                result = self.create_for_account(
                    account,
                    known_ids,
                    credentials_path,
                    force,
                )
            except (requests.RequestException, KeyError) as e:
                logger.error(
                    'Failed to create API key for %s: %s',
                    account.name,
                    e,
                )
                result = create_failure_result(
                    'Failed to create API key',
                    error=str(e),
                    service_account=account.name,
                )
            logger.info('%s: %s', account.name, result['message'])
            results.append(result)

        summary = summarize_results(results)
        if not self.dry_run:
            write_json(
                credentials_path / 'credentials-summary.json',
                {
                    'summary': {**summary, 'created_at': utc_now()},
                    'credentials': [
                        result
                        for result in results
                        if result['status'] == 'success'
                    ],
                },
            )
        logger.info(
            'API keys: %d created, %d skipped, %d failed',
            summary['success'],
            summary['skipped'],
            summary['failure'],
        )
        return summary


# ============================================================================
# Role bindings
# ============================================================================


class RBACApplicator:
    """Apply converted role bindings to Confluent Cloud."""

    def __init__(
        self,
        iam_service: IAMService,
        organization: str | None,
        dry_run: bool = False,
    ) -> None:
        """Initialize the applicator.

        Args:
            iam_service: Confluent Cloud IAM service
            organization: Confluent Cloud organization ID
            dry_run: Log actions without calling the API

        Raises:
            ValueError: If the organization ID is missing
        """
        if not organization:
            raise ValueError(
                'Missing organization ID (confluent.cloud.organization), '
                'required for CRN patterns',
            )
        self.iam_service = iam_service
        self.organization = organization
        self.dry_run = dry_run
        self.account_creator = ServiceAccountCreator(iam_service, dry_run)
        self.service_account_ids: dict[str, str] = {}

    def resolve_service_account_id(self, name: str) -> str | None:
        """Look up a service account ID, caching API results."""
        if name in self.service_account_ids:
            return self.service_account_ids[name]
        if self.dry_run:
            return None
        account = self.iam_service.find_service_account(name)
        if account and account.get('id'):
            self.service_account_ids[name] = account['id']
            return account['id']
        return None

    def create_service_accounts(
        self,
        accounts: list[ServiceAccountInfo],
    ) -> list[dict[str, Any]]:
        """Create any service accounts that are not already mapped."""
        results: list[dict[str, Any]] = []
        for account in accounts:
            if account.name in self.service_account_ids:
                results.append(
                    create_skipped_result(
                        'Already mapped',
                        service_account=account.name,
                    ),
                )
                continue
            try:
                account_id, status, message = (
                    self.account_creator.ensure_service_account(
                        account.name,
                        account.description,
                    )
                )
            except requests.RequestException as e:
                logger.error(
                    'Failed to create service account %s: %s',
                    account.name,
                    e,
                )
                results.append(
                    create_failure_result(
                        'Failed to create service account',
                        error=str(e),
                        service_account=account.name,
                    ),
                )
                continue

            if account_id and account_id != DRY_RUN_ID:
                self.service_account_ids[account.name] = account_id
            if status == 'created':
                results.append(
                    create_success_result(message, service_account=account.name),
                )
            else:
                results.append(
                    create_skipped_result(message, service_account=account.name),
                )
        return results

    def apply_role_binding(self, binding: RoleBinding) -> dict[str, Any]:
        """Create one role binding.

        The binding principal is matched to its service account by the
        same sanitized name the converter generated.
        """
        name = sanitize_service_account_name(binding.principal)
        fields = {
            'principal': binding.principal,
            'service_account': name,
            'role': binding.role,
            'resource_type': binding.resource_type,
            'resource_name': binding.resource_name,
        }
        try:
            crn_pattern = build_crn_pattern(
                self.organization,
                binding.environment,
                binding.cluster_id,
                binding.resource_type,
                binding.resource_name,
                binding.pattern_type,
            )
        except ValueError as e:
            return create_failure_result(
                'Invalid role binding',
                error=str(e),
                **fields,
            )
        fields['crn_pattern'] = crn_pattern

        account_id = self.resolve_service_account_id(name)
        if self.dry_run:
            logger.info(
                'Would bind %s to User:%s on %s',
                binding.role,
                account_id or name,
                crn_pattern,
            )
            return create_success_result('Dry run - not created', **fields)
        if not account_id:
            return create_failure_result(
                f'Service account not found: {name}',
                **fields,
            )

        try:
            self.iam_service.create_role_binding(
                account_id,
                binding.role,
                crn_pattern,
            )
        except requests.HTTPError as e:
            if status_code_of(e) == 409:
                return create_skipped_result(
                    'Role binding already exists',
                    **fields,
                )
            return create_failure_result(
                'Failed to create role binding',
                error=str(e),
                **fields,
            )
        return create_success_result('Role binding created', **fields)

    def verify_role_bindings(self) -> int | None:
        """Count the role bindings visible in the organization."""
        if self.dry_run:
            logger.info('Would verify role bindings for %s', self.organization)
            return None
        crn_pattern = f'{CRN_PREFIX}/organization={self.organization}/*'
        try:
            bindings = self.iam_service.list_role_bindings(crn_pattern)
        except requests.RequestException as e:
            logger.warning(
                'Could not verify role bindings (permissions may be '
                'limited): %s',
                e,
            )
            return None
        logger.info('Total role bindings in organization: %d', len(bindings))
        return len(bindings)

    def apply(
        self,
        rbac_file: str | Path,
        service_accounts_file: str | Path,
        output_file: str | Path | None = None,
        skip_service_accounts: bool = False,
    ) -> dict[str, Any]:
        """Apply every role binding in an RBAC file.

        Args:
            rbac_file: Path to cc_rbac.json
            service_accounts_file: Path to cc_service_accounts.json
            output_file: Optional path for the per-binding report
            skip_service_accounts: Do not create missing service accounts

        Returns:
            Summary counts for service accounts and role bindings
        """
        rbac = RBACOutput.model_validate(read_json(rbac_file))
        logger.info(
            'Applying %d role bindings for %d service accounts',
            len(rbac.role_bindings),
            len(rbac.service_accounts),
        )
        self.service_account_ids.update(
            load_service_account_ids(service_accounts_file),
        )

        account_results: list[dict[str, Any]] = []
        if skip_service_accounts:
            logger.info('Skipping service account creation')
        else:
            account_results = self.create_service_accounts(rbac.service_accounts)

        binding_results: list[dict[str, Any]] = []
        total = len(rbac.role_bindings)
        for index, binding in enumerate(rbac.role_bindings, start=1):
            logger.info(
                '[%d/%d] %s -> %s on %s:%s',
                index,
                total,
                binding.principal,
                binding.role,
                binding.resource_type,
                binding.resource_name,
            )
            try:
                result = self.apply_role_binding(binding)
            except requests.RequestException as e:
                result = create_failure_result(
                    'Failed to create role binding',
                    error=str(e),
                    principal=binding.principal,
                )
            if result['status'] == 'failure':
                logger.error(
                    '  %s: %s',
                    result['message'],
                    result.get('error', ''),
                )
            else:
                logger.info('  %s', result['message'])
            binding_results.append(result)

        self.verify_role_bindings()
        summary = {
            'service_accounts': summarize_results(account_results),
            'role_bindings': summarize_results(binding_results),
        }
        if output_file:
            write_json(
                output_file,
                {
                    'applied_at': utc_now(),
                    'dry_run': self.dry_run,
                    'summary': summary,
                    'service_accounts': account_results,
                    'role_bindings': binding_results,
                },
            )
        logger.info(
            'Role bindings: %d created, %d existing, %d failed',
            summary['role_bindings']['success'],
            summary['role_bindings']['skipped'],
            summary['role_bindings']['failure'],
        )
        return summary


# ============================================================================
# Topics
# ============================================================================


def convert_topic_configurations(configs: dict[str, str]) -> dict[str, str]:
    """Keep only the topic configs Confluent Cloud accepts."""
    converted = {}
    for key, value in configs.items():
        if key in SUPPORTED_TOPIC_CONFIGS:
            converted[key] = value
        else:
            logger.debug('Skipping unsupported config: %s', key)
    return converted


class TopicCreator:
    """Recreate MSK topics in Confluent Cloud."""

    def __init__(
        self,
        rest_service: KafkaRestService,
        dry_run: bool = False,
    ) -> None:
        """Initialize with a Kafka REST service for the target cluster."""
        self.rest_service = rest_service
        self.dry_run = dry_run

    def create_topic(
        self,
        topic: TopicInfo,
        existing_topics: set[str],
    ) -> dict[str, Any]:
        """Create one topic unless it is internal or already present."""
        if topic.is_internal:
            return create_skipped_result('Internal topic', topic=topic.name)
        if topic.name in existing_topics:
            return create_skipped_result('Already exists', topic=topic.name)

        configs = convert_topic_configurations(topic.configurations)
        if self.dry_run:
            logger.info(
                'Would create topic %s with %d partitions',
                topic.name,
                topic.partitions,
            )
            return create_success_result(
                'Dry run - not created',
                topic=topic.name,
                configs=configs,
            )

        try:
            self.rest_service.create_topic(
                topic.name,
                topic.partitions,
                configs,
            )
        except requests.RequestException as e:
            return create_failure_result(
                'Failed to create topic',
                error=str(e),
                topic=topic.name,
            )
        return create_success_result(
            f'Created with {topic.partitions} partitions',
            topic=topic.name,
            configs=configs,
        )

    def create_topics(self, topics: list[TopicInfo]) -> list[dict[str, Any]]:
        """Create every topic, reading the existing topic list once."""
        if not topics:
            logger.info('No topics to create')
            return []
        existing_topics = self.rest_service.list_topics()
        logger.info(
            'Creating %d topics (%d already on the cluster)',
            len(topics),
            len(existing_topics),
        )

        results = []
        for topic in topics:
            result = self.create_topic(topic, existing_topics)
            if result['status'] == 'failure':
                logger.error(
                    'Topic %s: %s',
                    topic.name,
                    result.get('error', result['message']),
                )
            else:
                logger.info('Topic %s: %s', topic.name, result['message'])
            results.append(result)
        return results

    def create_from_file(self, topics_file: str | Path) -> dict[str, int]:
        """Create the topics listed in msk_topics.json."""
        data = read_json(topics_file)
        topics = [TopicInfo.model_validate(t) for t in data.get('topics', [])]
        summary = summarize_results(self.create_topics(topics))
        logger.info(
            'Topics: %d created, %d skipped, %d failed',
            summary['success'],
            summary['skipped'],
            summary['failure'],
        )
        return summary


# ============================================================================
# Schemas
# ============================================================================


def convert_compatibility(
    compatibility: str | None,
    default: str = DEFAULT_COMPATIBILITY,
) -> str:
    """Map a source compatibility level to a Schema Registry one."""
    return COMPATIBILITY_MODES.get((compatibility or '').upper(), default)


def convert_schema_type(data_format: str | None) -> str:
    """Map a source data format to a Schema Registry schema type."""
    schema_type = (data_format or '').upper()
    return schema_type if schema_type in SCHEMA_TYPES else DEFAULT_SCHEMA_TYPE


def subject_name(schema: SchemaInfo) -> str:
    """Return the target subject for a schema."""
    if schema.subject:
        return schema.subject
    if schema.registry_name:
        return f'{schema.registry_name}-{schema.schema_name}'
    return schema.schema_name


class SchemaCreator:
    """Register source schemas in Confluent Cloud Schema Registry."""

    def __init__(
        self,
        registry_service: SchemaRegistryService,
        dry_run: bool = False,
        default_compatibility: str = DEFAULT_COMPATIBILITY,
    ) -> None:
        """Initialize schema creator.

        Args:
            registry_service: Target Schema Registry service
            dry_run: Log actions without calling the API
            default_compatibility: Used when the source level has no
                Schema Registry equivalent
        """
        self.registry_service = registry_service
        self.dry_run = dry_run
        self.default_compatibility = default_compatibility

    def register(
        self,
        subject: str,
        schema: SchemaInfo,
        target_id: int | None,
    ) -> int | None:
        """Register a schema, retrying without an ID if that is refused."""
        schema_type = convert_schema_type(schema.data_format)
        if target_id is not None:
            try:
                return self.registry_service.register_schema(
                    subject,
                    schema.schema_definition,
                    schema_type,
                    schema_id=target_id,
                )
            except requests.HTTPError as e:
                logger.warning(
                    'Could not register %s with ID %d, using an '
                    'assigned ID: %s',
                    subject,
                    target_id,
                    e,
                )
        return self.registry_service.register_schema(
            subject,
            schema.schema_definition,
            schema_type,
        )

    def create_schemas(  # noqa: PLR0913
        self,
        schemas: list[SchemaInfo],
        force: bool = False,
        preserve_ids: bool = False,
        start_id: int = DEFAULT_START_ID,
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Register schemas version by version.

        Args:
            schemas: Schema versions read from the source registry
            force: Add versions to subjects that already exist
            preserve_ids: Request source IDs (numeric ones) or sequential
                IDs from start_id
            start_id: First ID handed out when a source ID is not numeric

        Returns:
            Tuple of (per-schema results, ID mappings)
        """
        existing_subjects = self.registry_service.list_subjects()
        ordered = sorted(
            schemas,
            key=lambda s: (subject_name(s), s.version_number or 0),
        )

        results: list[dict[str, Any]] = []
        id_mappings: list[dict[str, Any]] = []
        configured: set[str] = set()
        next_id = start_id

        for schema in ordered:
            subject = subject_name(schema)
            fields = {'subject': subject, 'version': schema.version_number}
            if schema.status and schema.status.upper() != 'AVAILABLE':
                results.append(
                    create_skipped_result(
                        f'Status is {schema.status}',
                        **fields,
                    ),
                )
                continue
            if subject in existing_subjects and not force:
                results.append(
                    create_skipped_result('Subject already exists', **fields),
                )
                continue
            if not schema.schema_definition:
                results.append(
                    create_failure_result('Schema has no definition', **fields),
                )
                continue

            target_id = None
            if preserve_ids:
                if schema.schema_id and schema.schema_id.isdigit():
                    target_id = int(schema.schema_id)
                else:
                    target_id = next_id
                    next_id += 1

            compatibility = convert_compatibility(
                schema.compatibility,
                self.default_compatibility,
            )
            if self.dry_run:
                logger.info(
                    'Would register %s version %s (%s, %s)',
                    subject,
                    schema.version_number,
                    convert_schema_type(schema.data_format),
                    compatibility,
                )
                results.append(
                    create_success_result('Dry run - not registered', **fields),
                )
                continue

            try:
                if subject not in configured:
                    self.registry_service.set_compatibility(
                        subject,
                        compatibility,
                    )
                    configured.add(subject)
                schema_id = self.register(subject, schema, target_id)
            except requests.RequestException as e:
                logger.error('Failed to register %s: %s', subject, e)
                results.append(
                    create_failure_result(
                        'Failed to register schema',
                        error=str(e),
                        **fields,
                    ),
                )
                continue

            logger.info('Registered %s with ID %s', subject, schema_id)
            results.append(
                create_success_result('Registered', id=schema_id, **fields),
            )
            if preserve_ids:
                id_mappings.append(
                    {
                        'original_id': schema.schema_arn or schema.schema_id,
                        'subject_name': subject,
                        'confluent_id': schema_id,
                        'target_id': target_id,
                        'id_preserved': schema_id == target_id,
                    },
                )
        return results, id_mappings

    def create_from_file(  # noqa: PLR0913
        self,
        schemas_file: str | Path,
        force: bool = False,
        preserve_ids: bool = False,
        start_id: int = DEFAULT_START_ID,
        id_mapping_file: str | Path | None = None,
    ) -> dict[str, int]:
        """Register the schemas listed in msk_schemas.json."""
        data = read_json(schemas_file)
        schemas = [SchemaInfo.model_validate(s) for s in data.get('schemas', [])]
        logger.info('Found %d schema versions to migrate', len(schemas))

        results, id_mappings = self.create_schemas(
            schemas,
            force=force,
            preserve_ids=preserve_ids,
            start_id=start_id,
        )
        if preserve_ids and id_mapping_file and not self.dry_run:
            write_json(
                id_mapping_file,
                {
                    'migration_metadata': {
                        'timestamp': utc_now(),
                        'source': data.get('schema_source'),
                        'preserve_ids_enabled': True,
                        'start_id': start_id,
                    },
                    'id_mappings': id_mappings,
                },
            )
            logger.info('ID mapping report written to %s', id_mapping_file)

        summary = summarize_results(results)
        logger.info(
            'Schemas: %d registered, %d skipped, %d failed',
            summary['success'],
            summary['skipped'],
            summary['failure'],
        )
        return summary


# ============================================================================
# ACLs
# ============================================================================


def load_principal_mappings(path: str | Path) -> dict[str, str]:
    """Map original principals to service account IDs.

    Accounts without an original principal are keyed as 'User:<name>'.
    """
    mappings: dict[str, str] = {}
    for account in read_json(path).get('service_accounts', []):
        account_id = account.get('id')
        if not account_id or account_id == DRY_RUN_ID:
            continue
        principal = account.get('original_principal') or f'User:{account["name"]}'
        mappings[principal] = account_id
    logger.info('Loaded %d principal mappings', len(mappings))
    return mappings


def map_principal(principal: str, mappings: dict[str, str]) -> str | None:
    """Find the service account ID for a principal."""
    if principal in mappings:
        return mappings[principal]
    bare = principal.removeprefix('User:')
    return mappings.get(f'User:{bare}')


class ACLCreator:
    """Recreate MSK ACLs on a Confluent Cloud cluster."""

    def __init__(
        self,
        admin_service: KafkaAdminService,
        dry_run: bool = False,
    ) -> None:
        """Initialize with an admin service connected to Confluent Cloud."""
        self.admin_service = admin_service
        self.dry_run = dry_run

    def migrate_acl(
        self,
        acl: ACLBinding,
        mappings: dict[str, str],
    ) -> dict[str, Any]:
        """Recreate one ACL with its principal mapped to a service account."""
        fields = {
            'original_principal': acl.principal,
            'operation': acl.operation,
            'resource_type': acl.resource_type,
            'resource_name': acl.resource_name,
        }
        if acl.permission_type.upper() != 'ALLOW':
            return create_skipped_result(
                f'Skipping {acl.permission_type} permission',
                acl_status='SKIPPED_DENY',
                **fields,
            )

        account_id = map_principal(acl.principal, mappings)
        if account_id is None:
            return create_failure_result(
                f'No service account mapping for {acl.principal}',
                acl_status='NO_MAPPING',
                **fields,
            )

        cc_principal = f'User:{account_id}'
        if self.dry_run:
            logger.info('Would create ACL for %s', cc_principal)
            return create_success_result(
                'Dry run - not created',
                acl_status='SUCCESS',
                cc_principal=cc_principal,
                **fields,
            )

        try:
            self.admin_service.create_acl(
                acl.model_copy(update={'principal': cc_principal}),
            )
        except (KafkaError, RuntimeError, ValueError) as e:
            return create_failure_result(
                'Failed to create ACL',
                error=str(e),
                acl_status='FAILED',
                cc_principal=cc_principal,
                **fields,
            )
        return create_success_result(
            'ACL created',
            acl_status='SUCCESS',
            cc_principal=cc_principal,
            **fields,
        )

    def migrate(
        self,
        acls_file: str | Path,
        service_accounts_file: str | Path,
        output_file: str | Path,
    ) -> dict[str, int]:
        """Migrate every ACL in msk_acls.json and write a report."""
        raw_acls = read_json(acls_file).get('acls')
        if not isinstance(raw_acls, list):
            raise ValueError(f'Invalid ACLs file format: {acls_file}')
        mappings = load_principal_mappings(service_accounts_file)

        results: list[dict[str, Any]] = []
        for index, raw_acl in enumerate(raw_acls, start=1):
            try:
                acl = ACLBinding.model_validate(raw_acl)
            except ValidationError as e:
                logger.error('[%d] Invalid ACL entry: %s', index, e)
                results.append(
                    create_failure_result(
                        'Invalid ACL entry',
                        error=str(e),
                        acl_status='FAILED',
                        index=index,
                    ),
                )
                continue
            result = self.migrate_acl(acl, mappings)
            logger.info(
                '[%d] %s -> %s on %s:%s: %s',
                index,
                acl.principal,
                acl.operation,
                acl.resource_type,
                acl.resource_name,
                result['message'],
            )
            results.append(result)

        summary = summarize_results(results)
        write_json(
            output_file,
            {
                'migrated_at': utc_now(),
                'dry_run': self.dry_run,
                'summary': summary,
                'migration_results': results,
            },
        )
        logger.info(
            'ACLs: %d migrated, %d skipped, %d failed',
            summary['success'],
            summary['skipped'],
            summary['failure'],
        )
        return summary


# ============================================================================
# Service account ID updates
# ============================================================================


class ServiceAccountIDUpdater:
    """Fill in service account IDs that could not be looked up."""

    def __init__(
        self,
        service_accounts_file: str | Path,
        rbac_file: str | Path,
    ) -> None:
        """Initialize with the two files that carry service account IDs."""
        self.service_accounts_file = Path(service_accounts_file)
        self.rbac_file = Path(rbac_file)

    def update_service_accounts_file(self, name: str, account_id: str) -> bool:
        """Set the ID of one account in cc_service_accounts.json."""
        if not self.service_accounts_file.is_file():
            logger.warning(
                'Service accounts file not found: %s',
                self.service_accounts_file,
            )
            return False

        data = read_json(self.service_accounts_file)
        for account in data.get('service_accounts', []):
            if account.get('name') == name:
                account['id'] = account_id
                account['account_id'] = account_id
                account['resource_id'] = account_id
                account['message'] = 'Already exists (ID manually updated)'
                write_json(self.service_accounts_file, data)
                logger.info('Updated %s in %s', name, self.service_accounts_file)
                return True

        logger.warning(
            'Service account %s not found in service accounts file',
            name,
        )
        return False

    def update_rbac_file(self, name: str, account_id: str) -> bool:
        """Fill unknown resource IDs for one account in cc_rbac.json."""
        if not self.rbac_file.is_file():
            logger.warning('RBAC file not found: %s', self.rbac_file)
            return False

        data = read_json(self.rbac_file)
        updated = 0
        entries = [
            (binding, sanitize_service_account_name(binding.get('principal', '')))
            for binding in data.get('role_bindings', [])
        ] + [
            (account, account.get('name'))
            for account in data.get('service_accounts', [])
        ]
        for entry, entry_name in entries:
            if entry_name != name:
                continue
            if entry.get('resource_id') in (None, '', UNKNOWN_ID_MARKER):
                entry['resource_id'] = account_id
                updated += 1

        if updated == 0:
            logger.warning('No entries to update in RBAC file for %s', name)
            return False

        metadata = data.get('rbac_update_metadata')
        if isinstance(metadata, dict):
            metadata['updated_at'] = utc_now()
            metadata['valid_id_count'] = metadata.get('valid_id_count', 0) + 1
            metadata['existing_unknown_id_count'] = max(
                0,
                metadata.get('existing_unknown_id_count', 0) - 1,
            )

        write_json(self.rbac_file, data)
        logger.info('Updated %d entries in %s', updated, self.rbac_file)
        return True

    def update(self, name: str, account_id: str) -> bool:
        """Update both files, returning True only if both changed."""
        logger.info('Updating service account %s to ID %s', name, account_id)
        accounts_updated = self.update_service_accounts_file(name, account_id)
        rbac_updated = self.update_rbac_file(name, account_id)
        if not (accounts_updated and rbac_updated):
            logger.warning(
                'Partial update: service accounts %s, RBAC %s',
                accounts_updated,
                rbac_updated,
            )
        return accounts_updated and rbac_updated

    def list_unknown(self) -> list[str]:
        """Return accounts whose ID is missing or was found as existing."""
        if not self.service_accounts_file.is_file():
            logger.warning(
                'Service accounts file not found: %s',
                self.service_accounts_file,
            )
            return []
        return [
            account.get('name')
            for account in read_json(self.service_accounts_file).get(
                'service_accounts',
                [],
            )
            if not account.get('id') or account.get('status') == 'existing'
        ]
