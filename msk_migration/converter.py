"""Convert MSK ACL exports into Confluent Cloud RBAC role bindings."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from pydantic import ValidationError

from msk_migration.models import ACLBinding
from msk_migration.models import ConversionMetadata
from msk_migration.models import MSKACLData
from msk_migration.models import RBACOutput
from msk_migration.models import RoleBinding
from msk_migration.models import ServiceAccountInfo
from msk_migration.utils import read_json
from msk_migration.utils import utc_now
from msk_migration.utils import write_json

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = 'env-xxxxx'
DEFAULT_CLUSTER_ID = 'lkc-xxxxx'

DEVELOPER_READ = 'DeveloperRead'
DEVELOPER_WRITE = 'DeveloperWrite'
DEVELOPER_MANAGE = 'DeveloperManage'
RESOURCE_OWNER = 'ResourceOwner'
CLUSTER_ADMIN = 'ClusterAdmin'

OPERATION_ROLES = {
    'WRITE': DEVELOPER_WRITE,
    'CREATE': DEVELOPER_WRITE,
    'DESCRIBE': DEVELOPER_READ,
    'READ': DEVELOPER_READ,
    'ALTER': RESOURCE_OWNER,
    'DELETE': RESOURCE_OWNER,
    'DESCRIBE_CONFIGS': RESOURCE_OWNER,
    'ALTER_CONFIGS': RESOURCE_OWNER,
    'CLUSTER_ACTION': CLUSTER_ADMIN,
    'IDEMPOTENT_WRITE': DEVELOPER_WRITE,
}

TOPIC_OPERATION_ROLES = {
    'READ': DEVELOPER_READ,
    'WRITE': DEVELOPER_WRITE,
    'CREATE': DEVELOPER_MANAGE,
    'DELETE': RESOURCE_OWNER,
    'ALTER': RESOURCE_OWNER,
    'DESCRIBE': DEVELOPER_READ,
    'DESCRIBE_CONFIGS': DEVELOPER_READ,
    'ALTER_CONFIGS': RESOURCE_OWNER,
}

GROUP_OPERATION_ROLES = {
    'READ': DEVELOPER_READ,
}

RESOURCE_TYPES = {
    'TOPIC': 'Topic',
    'GROUP': 'Group',
    'CLUSTER': 'Cluster',
    'TRANSACTIONAL_ID': 'TransactionalId',
    'DELEGATION_TOKEN': 'DelegationToken',
}

PATTERN_TYPES = {
    'LITERAL': 'LITERAL',
    'PREFIXED': 'PREFIXED',
}

CONVERSION_NOTES = (
    'Conversion from MSK ACLs to Confluent Cloud RBAC completed',
    'DENY permissions were skipped as Confluent Cloud uses ALLOW-based RBAC',
    'Wildcard Group:* ACLs were skipped as Confluent Cloud does not allow '
    'wildcard group role bindings',
    'Service accounts need to be created in Confluent Cloud before applying '
    'role bindings',
    'Role assignments may need manual review for complex permission patterns',
    'Ensure target environment and cluster ID are correctly specified',
    'Some MSK-specific operations may not have direct Confluent Cloud '
    'equivalents',
)

USER_PREFIX = 'User:'


def extract_principal(principal: str) -> str:
    """Strip the 'User:' prefix from a Kafka principal."""
    if principal.startswith(USER_PREFIX):
        return principal[len(USER_PREFIX) :]
    return principal


def map_operation_to_role(operation: str, resource_type: str) -> str:
    """Map an ACL operation on a resource type to a Confluent Cloud role.

    Topic and cluster resources have their own tables. Group resources
    only override READ and otherwise use the general table. Operations
    missing from every table fall back to DeveloperRead.
    """
    operation = operation.upper()
    resource_type = resource_type.upper()

    if resource_type == 'CLUSTER':
        return CLUSTER_ADMIN
    if resource_type == 'TOPIC':
        return TOPIC_OPERATION_ROLES.get(operation, DEVELOPER_READ)
    if resource_type == 'GROUP' and operation in GROUP_OPERATION_ROLES:
        return GROUP_OPERATION_ROLES[operation]
    return OPERATION_ROLES.get(operation, DEVELOPER_READ)


def convert_resource_type(resource_type: str) -> str:
    """Return the Confluent Cloud spelling of a Kafka resource type."""
    return RESOURCE_TYPES.get(resource_type.upper(), resource_type)


def convert_pattern_type(pattern_type: str | None) -> str:
    """Normalize a Kafka pattern type to LITERAL or PREFIXED."""
    return PATTERN_TYPES.get((pattern_type or '').upper(), 'LITERAL')


def sanitize_service_account_name(principal: str) -> str:
    """Turn a principal into a valid service account name.

    The result only contains lowercase letters, digits and single dashes,
    and never starts or ends with a dash. It is empty when the principal
    has no usable characters.
    """
    name = re.sub(r'[^a-zA-Z0-9-]', '-', principal).lower()
    name = re.sub(r'-+', '-', name)
    return name.strip('-')


def is_wildcard_group(acl: ACLBinding) -> bool:
    """Check whether an ACL targets every consumer group."""
    return acl.resource_type.upper() == 'GROUP' and acl.resource_name == '*'


class ACLToRBACConverter:
    """Translate MSK ACL entries into Confluent Cloud role bindings."""

    def __init__(
        self,
        environment: str = DEFAULT_ENVIRONMENT,
        cluster_id: str = DEFAULT_CLUSTER_ID,
    ) -> None:
        """Initialize the converter.

        Args:
            environment: Target Confluent Cloud environment ID
            cluster_id: Target Confluent Cloud Kafka cluster ID
        """
        self.environment = environment
        self.cluster_id = cluster_id

    def convert_acl(self, acl: ACLBinding) -> RoleBinding:
        """Build the role binding that corresponds to one ALLOW ACL."""
        return RoleBinding(
            principal=extract_principal(acl.principal),
            role=map_operation_to_role(acl.operation, acl.resource_type),
            resource_type=convert_resource_type(acl.resource_type),
            resource_name=acl.resource_name,
            pattern_type=convert_pattern_type(acl.pattern_type),
            environment=self.environment,
            cluster_id=self.cluster_id,
        )

    def convert(self, data: MSKACLData) -> RBACOutput:
        """Convert an ACL export into role bindings and service accounts.

        Args:
            data: Parsed contents of an msk_acls.json export

        Returns:
            Role bindings, required service accounts and run metadata
        """
        role_bindings: list[RoleBinding] = []
        service_accounts: list[ServiceAccountInfo] = []
        seen_bindings: set[tuple[str, str, str, str, str]] = set()
        seen_principals: set[str] = set()
        seen_names: set[str] = set()
        notes: list[str] = []
        skipped_deny = 0
        skipped_wildcard = 0
        failed = 0

        for index, raw_acl in enumerate(data.acls):
            try:
                acl = ACLBinding.model_validate(raw_acl)
            except ValidationError as e:
                failed += 1
                logger.warning('Failed to convert ACL #%d: %s', index, e)
                notes.append(f'Failed to convert ACL #{index}: {raw_acl}')
                continue

            if acl.permission_type.upper() == 'DENY':
                skipped_deny += 1
                logger.warning(
                    'Skipping DENY ACL for %s on %s:%s',
                    acl.principal,
                    acl.resource_type,
                    acl.resource_name,
                )
                continue

            if is_wildcard_group(acl):
                skipped_wildcard += 1
                logger.warning(
                    'Skipping wildcard group ACL for %s (%s)',
                    acl.principal,
                    acl.operation,
                )
                continue

            binding = self.convert_acl(acl)
            if binding.key() in seen_bindings:
                logger.debug('Duplicate role binding skipped: %s', binding)
                continue
            seen_bindings.add(binding.key())
            role_bindings.append(binding)

            if acl.principal in seen_principals:
                continue
            seen_principals.add(acl.principal)

            name = sanitize_service_account_name(binding.principal)
            if name in seen_names:
                continue
            seen_names.add(name)
            if not name:
                logger.warning(
                    'Principal %s has no valid service account name',
                    acl.principal,
                )
                notes.append(
                    f'No service account generated for principal '
                    f'{acl.principal}: name is empty after sanitizing',
                )
                continue
            service_accounts.append(
                ServiceAccountInfo(
                    name=name,
                    description=(
                        f'Service account for {acl.principal} '
                        '(migrated from MSK)'
                    ),
                    original_principal=acl.principal,
                ),
            )

        metadata = data.cluster_metadata
        conversion_metadata = ConversionMetadata(
            source_cluster=metadata.cluster_name if metadata else None,
            source_region=metadata.region if metadata else None,
            target_environment=self.environment,
            target_cluster_id=self.cluster_id,
            original_acl_count=data.total_acls,
            converted_role_bindings_count=len(role_bindings),
            skipped_deny_count=skipped_deny,
            skipped_wildcard_group_count=skipped_wildcard,
            failed_acl_count=failed,
            converted_at=utc_now(),
            conversion_notes=[*CONVERSION_NOTES, *notes],
        )

        logger.info(
            'Converted %d ACLs into %d role bindings for %d service accounts',
            len(data.acls),
            len(role_bindings),
            len(service_accounts),
        )
        if skipped_deny or skipped_wildcard or failed:
            logger.info(
                'Skipped %d DENY and %d wildcard group ACLs, %d failed',
                skipped_deny,
                skipped_wildcard,
                failed,
            )

        return RBACOutput(
            role_bindings=role_bindings,
            service_accounts=service_accounts,
            conversion_metadata=conversion_metadata,
        )


def read_acl_data(path: str | Path) -> MSKACLData:
    """Load an msk_acls.json export."""
    return MSKACLData.model_validate(read_json(path))


def write_rbac(output: RBACOutput, path: str | Path) -> Path:
    """Write the conversion result to cc_rbac.json."""
    return write_json(path, output)


def convert_file(
    input_file: str | Path,
    output_file: str | Path,
    environment: str = DEFAULT_ENVIRONMENT,
    cluster_id: str = DEFAULT_CLUSTER_ID,
) -> RBACOutput:
    """Convert an ACL export file and write the RBAC file."""
    logger.info('Reading MSK ACLs from %s', input_file)
    output = ACLToRBACConverter(environment, cluster_id).convert(
        read_acl_data(input_file),
    )
    write_rbac(output, output_file)
    logger.info('RBAC configuration written to %s', output_file)
    return output
