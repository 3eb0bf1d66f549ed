"""Shared fixtures and sample documents for the migration tool tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from msk_migration.utils import write_json

ENVIRONMENT = 'env-abc123'
CLUSTER_ID = 'lkc-xyz789'
ORGANIZATION = 'org-42'

CLUSTER_METADATA = {
    'cluster_name': 'orders-msk',
    'cluster_arn': (
        'arn:aws:kafka:us-east-1:123456789012:cluster/orders-msk/abcd-1234'
    ),
    'state': 'ACTIVE',
    'kafka_version': '3.5.1',
    'number_of_broker_nodes': 3,
    'instance_type': 'kafka.m5.large',
    'region': 'us-east-1',
}


def make_acl(  # noqa: PLR0913
    principal: str = 'User:alice',
    operation: str = 'READ',
    resource_type: str = 'TOPIC',
    resource_name: str = 'orders',
    permission_type: str = 'ALLOW',
    pattern_type: str = 'LITERAL',
) -> dict[str, Any]:
    """Build one ACL entry as found in msk_acls.json."""
    return {
        'principal': principal,
        'host': '*',
        'operation': operation,
        'permission_type': permission_type,
        'resource_type': resource_type,
        'resource_name': resource_name,
        'pattern_type': pattern_type,
    }


def make_response(
    status_code: int = 200,
    payload: Any = None,
    text: str = '',
) -> MagicMock:
    """Build a MagicMock mimicking requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300  # noqa: PLR2004
    response.json.return_value = payload
    response.content = b'' if payload is None and not text else b'{}'
    response.text = text
    return response


@pytest.fixture
def sample_acls() -> list[dict[str, Any]]:
    """A small but varied ACL export."""
    return [
        make_acl('User:alice', 'READ', 'TOPIC', 'orders'),
        make_acl('User:alice', 'DESCRIBE', 'TOPIC', 'orders'),
        make_acl('User:alice', 'READ', 'GROUP', 'orders-consumers'),
        make_acl('User:bob', 'WRITE', 'TOPIC', 'payments', pattern_type='PREFIXED'),
        make_acl('User:bob', 'WRITE', 'TOPIC', 'audit', permission_type='DENY'),
        make_acl('User:carol', 'READ', 'GROUP', '*'),
        make_acl('User:ops', 'ALTER', 'CLUSTER', 'kafka-cluster'),
    ]


@pytest.fixture
def acl_export(tmp_path: Path, sample_acls: list[dict[str, Any]]) -> Path:
    """Write msk_acls.json with cluster metadata."""
    return write_json(
        tmp_path / 'msk_acls.json',
        {
            'acls': sample_acls,
            'cluster_metadata': CLUSTER_METADATA,
            'acl_count': len(sample_acls),
            'exported_at': '2024-01-01T00:00:00+00:00',
        },
    )


@pytest.fixture
def rbac_document() -> dict[str, Any]:
    """A cc_rbac.json document for two service accounts."""
    binding = {
        'role': 'DeveloperRead',
        'resource_type': 'Topic',
        'resource_name': 'orders',
        'pattern_type': 'LITERAL',
        'environment': ENVIRONMENT,
        'cluster_id': CLUSTER_ID,
    }
    return {
        'role_bindings': [
            {'principal': 'alice', **binding},
            {
                **binding,
                'principal': 'bob',
                'role': 'DeveloperWrite',
                'resource_name': 'payments',
                'pattern_type': 'PREFIXED',
            },
        ],
        'service_accounts': [
            {
                'name': 'alice',
                'description': 'Service account for User:alice',
                'original_principal': 'User:alice',
            },
            {
                'name': 'bob',
                'description': 'Service account for User:bob',
                'original_principal': 'User:bob',
            },
        ],
        'conversion_metadata': {
            'target_environment': ENVIRONMENT,
            'target_cluster_id': CLUSTER_ID,
            'converted_at': '2024-01-01T00:00:00+00:00',
        },
    }


@pytest.fixture
def rbac_file(tmp_path: Path, rbac_document: dict[str, Any]) -> Path:
    """Write cc_rbac.json."""
    return write_json(tmp_path / 'cc_rbac.json', rbac_document)


@pytest.fixture
def service_accounts_document() -> dict[str, Any]:
    """A cc_service_accounts.json document."""
    return {
        'service_accounts': [
            {
                'name': 'alice',
                'id': 'sa-alice1',
                'account_id': 'sa-alice1',
                'resource_id': 'sa-alice1',
                'status': 'created',
                'original_principal': 'User:alice',
            },
            {
                'name': 'bob',
                'id': None,
                'status': 'existing',
                'message': 'Already exists',
                'original_principal': 'User:bob',
            },
            {
                'name': 'dave',
                'id': 'dry-run-id',
                'status': 'dry-run',
                'original_principal': 'User:dave',
            },
        ],
        'metadata': {'created_at': '2024-01-01T00:00:00+00:00'},
    }


@pytest.fixture
def service_accounts_file(
    tmp_path: Path,
    service_accounts_document: dict[str, Any],
) -> Path:
    """Write cc_service_accounts.json."""
    return write_json(
        tmp_path / 'cc_service_accounts.json',
        service_accounts_document,
    )


@pytest.fixture
def mock_iam() -> MagicMock:
    """An IAMService double with no existing service accounts."""
    iam = MagicMock()
    iam.find_service_account.return_value = None
    iam.create_service_account.side_effect = lambda name, _: {
        'id': f'sa-{name}',
        'display_name': name,
    }
    iam.list_role_bindings.return_value = []
    return iam
