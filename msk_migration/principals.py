"""Extract the unique principals referenced by an MSK ACL export."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Any

from msk_migration.converter import read_acl_data
from msk_migration.models import MSKACLData
from msk_migration.models import PrincipalInfo
from msk_migration.models import PrincipalsData
from msk_migration.utils import utc_now
from msk_migration.utils import write_json

logger = logging.getLogger(__name__)

UNKNOWN_PRINCIPAL_TYPE = 'Unknown'


def split_principal(principal: str) -> tuple[str, str]:
    """Split 'Type:name' into its type and name parts."""
    principal_type, sep, principal_name = principal.partition(':')
    if not sep:
        return UNKNOWN_PRINCIPAL_TYPE, principal
    return principal_type, principal_name


def format_permission(acl: dict[str, Any]) -> str:
    """Describe an ACL entry as a single readable permission string."""
    return (
        f'{acl.get("permission_type")}:{acl.get("operation")} on '
        f'{acl.get("resource_type")}:{acl.get("resource_name")}'
    )


def extract_principals(data: MSKACLData) -> PrincipalsData:
    """Group ACL entries by principal.

    Principals appear in the order they are first referenced. Blank,
    missing and non-string principals are ignored. The ACL total is the
    count the export reports.
    """
    principals: dict[str, PrincipalInfo] = {}

    for acl in data.acls:
        principal = acl.get('principal')
        if not isinstance(principal, str) or not principal.strip():
            continue
        principal = principal.strip()

        info = principals.get(principal)
        if info is None:
            principal_type, principal_name = split_principal(principal)
            info = PrincipalInfo(
                principal=principal,
                principal_type=principal_type,
                principal_name=principal_name,
            )
            principals[principal] = info

        info.acl_count += 1
        permission = format_permission(acl)
        if permission not in info.permissions:
            info.permissions.append(permission)

    return PrincipalsData(
        principals=list(principals.values()),
        cluster_metadata=data.cluster_metadata,
        principal_count=len(principals),
        total_acl_count=data.total_acls,
        exported_at=utc_now(),
    )


def log_summary(result: PrincipalsData) -> None:
    """Log principal counts by type and by number of ACLs."""
    logger.info(
        'Found %d unique principals across %d ACLs',
        result.principal_count,
        result.total_acl_count,
    )
    by_type = Counter(p.principal_type for p in result.principals)
    for principal_type, count in sorted(by_type.items()):
        logger.info('  %s: %d', principal_type, count)

    ranked = sorted(
        result.principals,
        key=lambda p: p.acl_count,
        reverse=True,
    )
    for info in ranked:
        logger.info('  %s (%d ACLs)', info.principal, info.acl_count)


def extract_principals_file(
    input_file: str | Path,
    output_file: str | Path,
) -> PrincipalsData:
    """Read msk_acls.json and write msk_principals.json."""
    result = extract_principals(read_acl_data(input_file))
    write_json(output_file, result)
    log_summary(result)
    logger.info('Principals written to %s', output_file)
    return result
