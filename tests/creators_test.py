"""Unit tests for the Confluent Cloud creators."""

from __future__ import annotations

import json
import logging
import stat
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from msk_migration.creators import ACLCreator
from msk_migration.creators import ApiKeyCreator
from msk_migration.creators import RBACApplicator
from msk_migration.creators import SchemaCreator
from msk_migration.creators import ServiceAccountCreator
from msk_migration.creators import ServiceAccountIDUpdater
from msk_migration.creators import TopicCreator
from msk_migration.creators import build_crn_pattern
from msk_migration.creators import convert_compatibility
from msk_migration.creators import convert_schema_type
from msk_migration.creators import convert_topic_configurations
from msk_migration.creators import load_principal_mappings
from msk_migration.creators import load_service_account_ids
from msk_migration.creators import map_principal
from msk_migration.creators import should_create_service_account
from msk_migration.creators import subject_name
from msk_migration.models import PrincipalInfo
from msk_migration.models import SchemaInfo
from msk_migration.models import TopicInfo
from msk_migration.utils import write_json
from testing.fixtures import CLUSTER_ID
from testing.fixtures import ENVIRONMENT
from testing.fixtures import ORGANIZATION
from testing.fixtures import make_acl
from testing.fixtures import make_response
from testing.fixtures import mock_iam  # noqa: F401
from testing.fixtures import rbac_document  # noqa: F401
from testing.fixtures import rbac_file  # noqa: F401
from testing.fixtures import service_accounts_document  # noqa: F401
from testing.fixtures import service_accounts_file  # noqa: F401

logging.getLogger('kafka').setLevel(logging.WARNING)
logging.getLogger('botocore').setLevel(logging.WARNING)
logging.getLogger('boto3').setLevel(logging.WARNING)
logging.getLogger('urllib3').setLevel(logging.WARNING)

# ============================================================================
# Test Constants
# ============================================================================

CLUSTER_CRN = (
    f'crn://confluent.cloud/organization={ORGANIZATION}'
    f'/environment={ENVIRONMENT}/cloud-cluster={CLUSTER_ID}'
)
CONFLICT = 409
SERVER_ERROR = 500


def _http_error(status_code: int, text: str = '') -> requests.HTTPError:
    return requests.HTTPError(
        f'request failed with {status_code}: {text}',
        response=make_response(status_code, text=text),
    )


def _load(path: Path) -> dict[str, Any]:
    with open(path) as f:
        return json.load(f)


# ============================================================================
# Unit Tests - Helpers
# ============================================================================


def test_build_crn_pattern_cluster() -> None:
    """Test that cluster bindings are scoped to the cluster itself."""
    crn = build_crn_pattern(
        ORGANIZATION,
        ENVIRONMENT,
        CLUSTER_ID,
        'Cluster',
        'kafka-cluster',
    )

    assert crn == CLUSTER_CRN


@pytest.mark.parametrize(
    ('resource_type', 'name', 'pattern_type', 'suffix'),
    [
        ('Topic', 'orders', 'LITERAL', 'topic=orders'),
        ('Topic', 'pay', 'PREFIXED', 'topic=pay*'),
        ('Group', 'consumers', 'LITERAL', 'group=consumers'),
        ('TransactionalId', 'tx', 'PREFIXED', 'transactional-id=tx*'),
    ],
)
def test_build_crn_pattern_resources(
    resource_type: str,
    name: str,
    pattern_type: str,
    suffix: str,
) -> None:
    """Test resource segments and the prefixed wildcard."""
    crn = build_crn_pattern(
        ORGANIZATION,
        ENVIRONMENT,
        CLUSTER_ID,
        resource_type,
        name,
        pattern_type,
    )

    assert crn == f'{CLUSTER_CRN}/kafka={CLUSTER_ID}/{suffix}'


def test_build_crn_pattern_errors() -> None:
    """Test the missing organization and unsupported type errors."""
    with pytest.raises(ValueError, match='organization'):
        build_crn_pattern('', ENVIRONMENT, CLUSTER_ID, 'Topic', 'orders')
    with pytest.raises(ValueError, match='DelegationToken'):
        build_crn_pattern(
            ORGANIZATION,
            ENVIRONMENT,
            CLUSTER_ID,
            'DelegationToken',
            'x',
        )


def test_load_service_account_ids(
    tmp_path: Path,
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test that only accounts with real IDs are mapped."""
    assert load_service_account_ids(service_accounts_file) == {
        'alice': 'sa-alice1',
    }
    assert load_service_account_ids(tmp_path / 'missing.json') == {}


@pytest.mark.parametrize(
    ('principal', 'expected'),
    [
        ('User:alice', True),
        ('User:kafka-broker', False),
        ('User:__internal', False),
        ('User:SystemMonitor', False),
        ('Group:admins', False),
    ],
)
def test_should_create_service_account(principal: str, expected: bool) -> None:
    """Test which principals get a service account."""
    principal_type, _, name = principal.partition(':')
    info = PrincipalInfo(
        principal=principal,
        principal_type=principal_type,
        principal_name=name,
    )

    assert should_create_service_account(info) is expected


# ============================================================================
# Unit Tests - ServiceAccountCreator
# ============================================================================


def test_ensure_service_account_existing(mock_iam: MagicMock) -> None:  # noqa: F811
    """Test that an existing account is reused."""
    mock_iam.find_service_account.return_value = {'id': 'sa-9'}

    result = ServiceAccountCreator(mock_iam).ensure_service_account('a', 'd')

    assert result == ('sa-9', 'existing', 'Already exists')
    mock_iam.create_service_account.assert_not_called()


def test_ensure_service_account_created(mock_iam: MagicMock) -> None:  # noqa: F811
    """Test creating a new account."""
    result = ServiceAccountCreator(mock_iam).ensure_service_account('a', 'd')

    assert result == ('sa-a', 'created', 'Created successfully')


def test_ensure_service_account_conflict(mock_iam: MagicMock) -> None:  # noqa: F811
    """Test that a 409 looks the account up again."""
    mock_iam.create_service_account.side_effect = _http_error(CONFLICT)
    mock_iam.find_service_account.side_effect = [None, {'id': 'sa-7'}]

    account_id, status, _ = ServiceAccountCreator(
        mock_iam,
    ).ensure_service_account('a', 'd')

    assert (account_id, status) == ('sa-7', 'existing')


def test_ensure_service_account_conflict_without_id(
    mock_iam: MagicMock,  # noqa: F811
) -> None:
    """Test that an account confirmed by 409 can still lack an ID."""
    mock_iam.create_service_account.side_effect = _http_error(
        400,
        'Service name is already in use',
    )

    account_id, status, message = ServiceAccountCreator(
        mock_iam,
    ).ensure_service_account('a', 'd')

    assert account_id is None
    assert status == 'existing'
    assert 'not retrievable' in message


def test_ensure_service_account_other_error(
    mock_iam: MagicMock,  # noqa: F811
) -> None:
    """Test that other HTTP errors propagate."""
    mock_iam.create_service_account.side_effect = _http_error(SERVER_ERROR)

    with pytest.raises(requests.HTTPError):
        ServiceAccountCreator(mock_iam).ensure_service_account('a', 'd')


def test_ensure_service_account_dry_run(mock_iam: MagicMock) -> None:  # noqa: F811
    """Test that a dry run makes no API calls."""
    result = ServiceAccountCreator(
        mock_iam,
        dry_run=True,
    ).ensure_service_account('a', 'd')

    assert result == ('dry-run-id', 'dry-run', 'Dry run - not created')
    mock_iam.find_service_account.assert_not_called()


def test_create_from_principals(
    tmp_path: Path,
    mock_iam: MagicMock,  # noqa: F811
) -> None:
    """Test the principal filter and the written account file."""
    principals = [
        ('User:Alice.Smith', 'User', 'Alice.Smith'),
        ('User:kafka-broker', 'User', 'kafka-broker'),
        ('Group:admins', 'Group', 'admins'),
        ('User:bob', 'User', 'bob'),
    ]
    principals_file = write_json(
        tmp_path / 'msk_principals.json',
        {
            'principals': [
                {
                    'principal': principal,
                    'principal_type': principal_type,
                    'principal_name': name,
                    'acl_count': 2,
                    'permissions': ['ALLOW:READ on TOPIC:orders'],
                }
                for principal, principal_type, name in principals
            ],
            'cluster_metadata': {'cluster_name': 'orders-msk'},
        },
    )
    mock_iam.create_service_account.side_effect = [
        {'id': 'sa-1'},
        _http_error(SERVER_ERROR),
    ]
    output_file = tmp_path / 'cc_service_accounts.json'

    records = ServiceAccountCreator(mock_iam).create_from_principals(
        principals_file,
        output_file,
    )

    assert [r.name for r in records] == ['alice-smith', 'bob']
    assert [r.status for r in records] == ['created', 'failed']
    name, description = mock_iam.create_service_account.call_args_list[0].args
    assert name == 'alice-smith'
    assert description == (
        'Service account created from MSK principal: User:Alice.Smith '
        '(ACLs: 2)'
    )

    written = _load(output_file)
    alice = written['service_accounts'][0]
    assert alice['id'] == alice['account_id'] == alice['resource_id'] == 'sa-1'
    assert alice['original_principal'] == 'User:Alice.Smith'
    metadata = written['metadata']
    assert metadata['source_cluster'] == 'orders-msk'
    assert metadata['total_principals_processed'] == 2  # noqa: PLR2004
    assert metadata['created_count'] == 1
    assert metadata['failed_count'] == 1


# ============================================================================
# Unit Tests - ApiKeyCreator
# ============================================================================


@pytest.fixture
def api_key_creator(mock_iam: MagicMock) -> ApiKeyCreator:  # noqa: F811
    """An ApiKeyCreator whose keys are KEY-<owner>."""
    mock_iam.create_api_key.side_effect = lambda owner, *args, **kwargs: {
        'id': f'KEY-{owner}',
        'spec': {'secret': 'SECRET'},
    }
    return ApiKeyCreator(
        mock_iam,
        ENVIRONMENT,
        CLUSTER_ID,
        bootstrap_servers='pkc-1.aws.confluent.cloud:9092',
    )


def test_create_api_keys(
    tmp_path: Path,
    api_key_creator: ApiKeyCreator,
    rbac_file: Path,  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test key creation, saved credentials and the summary file."""
    credentials_dir = tmp_path / 'cc_credentials'

    summary = api_key_creator.create_for_service_accounts(
        rbac_file,
        service_accounts_file,
        credentials_dir,
    )

    assert summary['success'] == 2  # noqa: PLR2004
    credentials = _load(credentials_dir / 'alice' / 'credentials.json')
    assert credentials['service_account']['id'] == 'sa-alice1'
    assert credentials['api_credentials'] == {
        'key': 'KEY-sa-alice1',
        'secret': 'SECRET',
    }
    assert credentials['confluent_cloud'] == {
        'environment': ENVIRONMENT,
        'cluster_id': CLUSTER_ID,
    }
    properties = (credentials_dir / 'alice' / 'kafka.properties').read_text()
    assert 'sasl.username=KEY-sa-alice1' in properties
    assert 'bootstrap.servers=pkc-1.aws.confluent.cloud:9092' in properties

    alice_dir = credentials_dir / 'alice'
    assert stat.S_IMODE(alice_dir.stat().st_mode) == 0o700  # noqa: PLR2004
    for name in ('credentials.json', 'kafka.properties'):
        mode = stat.S_IMODE((alice_dir / name).stat().st_mode)
        assert mode == 0o600  # noqa: PLR2004

    # bob had no known ID, so his account was created first
    assert _load(credentials_dir / 'bob' / 'credentials.json')[
        'service_account'
    ]['id'] == 'sa-bob'

    written = _load(credentials_dir / 'credentials-summary.json')
    assert written['summary']['success'] == 2  # noqa: PLR2004
    assert 'SECRET' not in json.dumps(written)


def test_create_api_keys_skips_existing_credentials(
    tmp_path: Path,
    api_key_creator: ApiKeyCreator,
    rbac_file: Path,  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test that saved credentials are kept unless forced."""
    credentials_dir = tmp_path / 'cc_credentials'
    api_key_creator.create_for_service_accounts(
        rbac_file,
        service_accounts_file,
        credentials_dir,
    )

    summary = api_key_creator.create_for_service_accounts(
        rbac_file,
        service_accounts_file,
        credentials_dir,
    )
    assert summary['skipped'] == 2  # noqa: PLR2004

    forced = api_key_creator.create_for_service_accounts(
        rbac_file,
        service_accounts_file,
        credentials_dir,
        force=True,
    )
    assert forced['success'] == 2  # noqa: PLR2004


def test_create_api_keys_failure(
    tmp_path: Path,
    api_key_creator: ApiKeyCreator,
    mock_iam: MagicMock,  # noqa: F811
    rbac_file: Path,  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test that a failed key request is counted."""
    mock_iam.create_api_key.side_effect = _http_error(SERVER_ERROR)

    summary = api_key_creator.create_for_service_accounts(
        rbac_file,
        service_accounts_file,
        tmp_path / 'cc_credentials',
    )

    assert summary['failure'] == 2  # noqa: PLR2004


def test_create_api_keys_dry_run(
    tmp_path: Path,
    mock_iam: MagicMock,  # noqa: F811
    rbac_file: Path,  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test that a dry run writes nothing."""
    credentials_dir = tmp_path / 'cc_credentials'
    creator = ApiKeyCreator(mock_iam, ENVIRONMENT, CLUSTER_ID, dry_run=True)

    summary = creator.create_for_service_accounts(
        rbac_file,
        service_accounts_file,
        credentials_dir,
    )

    assert summary['success'] == 2  # noqa: PLR2004
    assert not credentials_dir.exists()
    mock_iam.create_api_key.assert_not_called()


# ============================================================================
# Unit Tests - RBACApplicator
# ============================================================================


def test_rbac_applicator_requires_organization(
    mock_iam: MagicMock,  # noqa: F811
) -> None:
    """Test that a missing organization fails before any work."""
    with pytest.raises(ValueError, match='organization'):
        RBACApplicator(mock_iam, None)


def test_apply(
    tmp_path: Path,
    mock_iam: MagicMock,  # noqa: F811
    rbac_file: Path,  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test applying bindings for a mapped and a new service account."""
    output_file = tmp_path / 'cc_rbac_applied.json'
    applicator = RBACApplicator(mock_iam, ORGANIZATION)

    summary = applicator.apply(
        rbac_file,
        service_accounts_file,
        output_file=output_file,
    )

    assert summary['service_accounts']['success'] == 1
    assert summary['service_accounts']['skipped'] == 1
    assert summary['role_bindings']['success'] == 2  # noqa: PLR2004
    calls = [c.args for c in mock_iam.create_role_binding.call_args_list]
    assert calls == [
        (
            'sa-alice1',
            'DeveloperRead',
            f'{CLUSTER_CRN}/kafka={CLUSTER_ID}/topic=orders',
        ),
        (
            'sa-bob',
            'DeveloperWrite',
            f'{CLUSTER_CRN}/kafka={CLUSTER_ID}/topic=payments*',
        ),
    ]
    mock_iam.list_role_bindings.assert_called_once_with(
        f'crn://confluent.cloud/organization={ORGANIZATION}/*',
    )
    assert _load(output_file)['summary'] == summary


def test_apply_existing_binding_and_missing_account(
    mock_iam: MagicMock,  # noqa: F811
    rbac_file: Path,  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test a 409 binding and an account that cannot be found."""
    mock_iam.create_role_binding.side_effect = _http_error(CONFLICT)
    applicator = RBACApplicator(mock_iam, ORGANIZATION)

    summary = applicator.apply(
        rbac_file,
        service_accounts_file,
        skip_service_accounts=True,
    )

    assert summary['service_accounts']['total'] == 0
    assert summary['role_bindings']['skipped'] == 1
    assert summary['role_bindings']['failure'] == 1
    mock_iam.create_service_account.assert_not_called()


def test_apply_dry_run(
    mock_iam: MagicMock,  # noqa: F811
    rbac_file: Path,  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test that a dry run creates and verifies nothing."""
    applicator = RBACApplicator(mock_iam, ORGANIZATION, dry_run=True)

    summary = applicator.apply(rbac_file, service_accounts_file)

    assert summary['role_bindings']['success'] == 2  # noqa: PLR2004
    mock_iam.create_role_binding.assert_not_called()
    mock_iam.create_service_account.assert_not_called()
    mock_iam.list_role_bindings.assert_not_called()


def test_verify_role_bindings_failure_is_tolerated(
    mock_iam: MagicMock,  # noqa: F811
) -> None:
    """Test that verification errors only produce a warning."""
    mock_iam.list_role_bindings.side_effect = _http_error(403)

    assert RBACApplicator(mock_iam, ORGANIZATION).verify_role_bindings() is None


# ============================================================================
# Unit Tests - TopicCreator
# ============================================================================


def test_convert_topic_configurations() -> None:
    """Test that unsupported configs are dropped."""
    configs = {
        'retention.ms': '1000',
        'cleanup.policy': 'compact',
        'message.timestamp.type': 'LogAppendTime',
        'leader.replication.throttled.replicas': '',
    }

    assert convert_topic_configurations(configs) == {
        'retention.ms': '1000',
        'cleanup.policy': 'compact',
    }


def test_create_topics_from_file(tmp_path: Path) -> None:
    """Test skipped, created and failed topics."""
    rest_service = MagicMock()
    rest_service.list_topics.return_value = {'orders'}
    rest_service.create_topic.side_effect = [{}, _http_error(SERVER_ERROR)]
    topics = [
        TopicInfo(name='orders', partitions=3, replication_factor=3),
        TopicInfo(
            name='__consumer_offsets',
            partitions=50,
            replication_factor=3,
            is_internal=True,
        ),
        TopicInfo(
            name='payments',
            partitions=6,
            replication_factor=3,
            configurations={'retention.ms': '1000', 'follower.throttle': 'x'},
        ),
        TopicInfo(name='audit', partitions=1, replication_factor=3),
    ]
    topics_file = write_json(
        tmp_path / 'msk_topics.json',
        {'topics': [t.model_dump() for t in topics]},
    )

    summary = TopicCreator(rest_service).create_from_file(topics_file)

    assert summary == {'total': 4, 'success': 1, 'skipped': 2, 'failure': 1}
    rest_service.create_topic.assert_any_call(
        'payments',
        6,
        {'retention.ms': '1000'},
    )


def test_create_topics_dry_run() -> None:
    """Test that a dry run creates no topics."""
    rest_service = MagicMock()
    rest_service.list_topics.return_value = set()

    results = TopicCreator(rest_service, dry_run=True).create_topics(
        [TopicInfo(name='orders', partitions=3, replication_factor=3)],
    )

    assert results[0]['status'] == 'success'
    rest_service.create_topic.assert_not_called()


# ============================================================================
# Unit Tests - SchemaCreator
# ============================================================================


def test_schema_conversions() -> None:
    """Test compatibility, schema type and subject naming."""
    assert convert_compatibility('DISABLED') == 'NONE'
    assert convert_compatibility('FULL_ALL') == 'FULL_TRANSITIVE'
    assert convert_compatibility(None) == 'BACKWARD'
    assert convert_compatibility('weird', 'FORWARD') == 'FORWARD'
    assert convert_schema_type('protobuf') == 'PROTOBUF'
    assert convert_schema_type('XML') == 'AVRO'
    assert subject_name(SchemaInfo(schema_name='s', registry_name='r')) == 'r-s'
    assert subject_name(SchemaInfo(schema_name='s', subject='t')) == 't'
    assert subject_name(SchemaInfo(schema_name='s')) == 's'


def _schema(version: int, **kwargs: Any) -> SchemaInfo:
    values = {
        'schema_name': 'orders-value',
        'registry_name': 'main',
        'version_number': version,
        'schema_definition': f'{{"v": {version}}}',
        'data_format': 'AVRO',
        'compatibility': 'BACKWARD_ALL',
        'status': 'AVAILABLE',
    }
    values.update(kwargs)
    return SchemaInfo(**values)


def test_create_schemas() -> None:
    """Test version ordering, compatibility and skipped schemas."""
    registry = MagicMock()
    registry.list_subjects.return_value = {'existing'}
    registry.register_schema.side_effect = [11, 12]
    schemas = [
        _schema(2),
        _schema(1),
        _schema(1, schema_name='deleting', status='DELETING'),
        _schema(1, subject='existing'),
    ]

    results, mappings = SchemaCreator(registry).create_schemas(schemas)

    statuses = {(r['subject'], r['version']): r['status'] for r in results}
    assert statuses == {
        ('main-orders-value', 1): 'success',
        ('main-orders-value', 2): 'success',
        ('main-deleting', 1): 'skipped',
        ('existing', 1): 'skipped',
    }
    assert mappings == []
    registry.set_compatibility.assert_called_once_with(
        'main-orders-value',
        'BACKWARD_TRANSITIVE',
    )
    registered = [c.args[1] for c in registry.register_schema.call_args_list]
    assert registered == ['{"v": 1}', '{"v": 2}']


def test_create_schemas_force_existing_subject() -> None:
    """Test that force adds versions to an existing subject."""
    registry = MagicMock()
    registry.list_subjects.return_value = {'existing'}
    registry.register_schema.return_value = 3

    results, _ = SchemaCreator(registry).create_schemas(
        [_schema(1, subject='existing')],
        force=True,
    )

    assert results[0]['status'] == 'success'


def test_create_schemas_preserve_ids(tmp_path: Path) -> None:
    """Test requested IDs, sequential IDs and the fallback registration."""
    registry = MagicMock()
    registry.list_subjects.return_value = set()
    registry.register_schema.side_effect = [
        _http_error(422, 'id in use'),
        7,
        101,
    ]
    schemas = [
        _schema(1, subject='orders-value', schema_id='101'),
        _schema(1, schema_name='payments', schema_id='arn:aws:glue:schema/p'),
    ]
    schemas_file = write_json(
        tmp_path / 'msk_schemas.json',
        {
            'schemas': [s.model_dump() for s in schemas],
            'schema_source': 'glue',
        },
    )
    mapping_file = tmp_path / 'schema_id_mapping.json'

    summary = SchemaCreator(registry).create_from_file(
        schemas_file,
        preserve_ids=True,
        start_id=2000,
        id_mapping_file=mapping_file,
    )

    assert summary['success'] == 2  # noqa: PLR2004
    requested = [
        c.kwargs.get('schema_id') for c in registry.register_schema.call_args_list
    ]
    assert requested == [2000, None, 101]

    written = _load(mapping_file)
    assert written['migration_metadata']['start_id'] == 2000  # noqa: PLR2004
    assert written['migration_metadata']['source'] == 'glue'
    assert written['id_mappings'] == [
        {
            'original_id': 'arn:aws:glue:schema/p',
            'subject_name': 'main-payments',
            'confluent_id': 7,
            'target_id': 2000,
            'id_preserved': False,
        },
        {
            'original_id': '101',
            'subject_name': 'orders-value',
            'confluent_id': 101,
            'target_id': 101,
            'id_preserved': True,
        },
    ]


def test_create_schemas_registration_failure() -> None:
    """Test that a rejected schema is counted as a failure."""
    registry = MagicMock()
    registry.list_subjects.return_value = set()
    registry.register_schema.side_effect = _http_error(422, 'invalid schema')

    results, _ = SchemaCreator(registry).create_schemas([_schema(1)])

    assert results[0]['status'] == 'failure'
    assert 'invalid schema' in results[0]['error']


# ============================================================================
# Unit Tests - ACLCreator
# ============================================================================


def test_load_principal_mappings(
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test mapping original principals to IDs."""
    mappings = load_principal_mappings(service_accounts_file)

    assert mappings == {'User:alice': 'sa-alice1'}
    assert map_principal('User:alice', mappings) == 'sa-alice1'
    assert map_principal('alice', mappings) == 'sa-alice1'
    assert map_principal('User:bob', mappings) is None


def test_migrate_acls(
    tmp_path: Path,
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test migrated, denied, unmapped and rejected ACLs."""
    admin_service = MagicMock()
    admin_service.create_acl.side_effect = [None, RuntimeError('rejected')]
    acls_file = write_json(
        tmp_path / 'msk_acls.json',
        {
            'acls': [
                make_acl('User:alice', 'READ'),
                make_acl('User:alice', 'WRITE', permission_type='DENY'),
                make_acl('User:bob', 'READ'),
                make_acl('User:alice', 'DESCRIBE'),
            ],
        },
    )
    output_file = tmp_path / 'cc_acls_migrated.json'

    summary = ACLCreator(admin_service).migrate(
        acls_file,
        service_accounts_file,
        output_file,
    )

    assert summary == {'total': 4, 'success': 1, 'skipped': 1, 'failure': 2}
    sent = admin_service.create_acl.call_args_list[0].args[0]
    assert sent.principal == 'User:sa-alice1'
    assert sent.operation == 'READ'

    written = _load(output_file)
    assert [r['acl_status'] for r in written['migration_results']] == [
        'SUCCESS',
        'SKIPPED_DENY',
        'NO_MAPPING',
        'FAILED',
    ]


def test_migrate_acls_malformed_entry(
    tmp_path: Path,
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test that a malformed entry is counted and the rest still migrate."""
    admin_service = MagicMock()
    acls_file = write_json(
        tmp_path / 'msk_acls.json',
        {
            'acls': [
                make_acl('User:alice', 'READ'),
                {'principal': 'User:bob'},
                make_acl('User:alice', 'DESCRIBE'),
            ],
        },
    )
    output_file = tmp_path / 'cc_acls_migrated.json'

    summary = ACLCreator(admin_service).migrate(
        acls_file,
        service_accounts_file,
        output_file,
    )

    assert summary == {'total': 3, 'success': 2, 'skipped': 0, 'failure': 1}
    assert admin_service.create_acl.call_count == 2  # noqa: PLR2004

    written = _load(output_file)
    invalid = written['migration_results'][1]
    assert invalid['acl_status'] == 'FAILED'
    assert invalid['message'] == 'Invalid ACL entry'
    assert invalid['index'] == 2  # noqa: PLR2004


def test_migrate_acls_invalid_file(
    tmp_path: Path,
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test that a file without an ACL list is rejected."""
    acls_file = write_json(tmp_path / 'msk_acls.json', {'acls': 'none'})

    with pytest.raises(ValueError, match='Invalid ACLs file'):
        ACLCreator(MagicMock()).migrate(
            acls_file,
            service_accounts_file,
            tmp_path / 'out.json',
        )


# ============================================================================
# Unit Tests - ServiceAccountIDUpdater
# ============================================================================


def test_update_service_account_id(
    rbac_file: Path,  # noqa: F811
    rbac_document: dict[str, Any],  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test that both files receive the new ID."""
    rbac_document['rbac_update_metadata'] = {
        'valid_id_count': 1,
        'existing_unknown_id_count': 1,
    }
    write_json(rbac_file, rbac_document)
    updater = ServiceAccountIDUpdater(service_accounts_file, rbac_file)

    assert updater.update('bob', 'sa-bob9') is True

    accounts = _load(service_accounts_file)['service_accounts']
    bob = next(a for a in accounts if a['name'] == 'bob')
    assert bob['id'] == bob['account_id'] == bob['resource_id'] == 'sa-bob9'
    assert bob['message'] == 'Already exists (ID manually updated)'

    rbac = _load(rbac_file)
    assert [b.get('resource_id') for b in rbac['role_bindings']] == [
        None,
        'sa-bob9',
    ]
    assert rbac['service_accounts'][1]['resource_id'] == 'sa-bob9'
    assert rbac['rbac_update_metadata']['valid_id_count'] == 2  # noqa: PLR2004
    assert rbac['rbac_update_metadata']['existing_unknown_id_count'] == 0
    assert rbac['rbac_update_metadata']['updated_at']


def test_update_service_account_id_unknown_name(
    rbac_file: Path,  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test that an unknown account updates nothing."""
    updater = ServiceAccountIDUpdater(service_accounts_file, rbac_file)

    assert updater.update('zoe', 'sa-zoe') is False


def test_update_service_account_id_missing_files(tmp_path: Path) -> None:
    """Test that missing files are reported, not raised."""
    updater = ServiceAccountIDUpdater(
        tmp_path / 'cc_service_accounts.json',
        tmp_path / 'cc_rbac.json',
    )

    assert updater.update('bob', 'sa-bob') is False
    assert updater.list_unknown() == []


def test_list_unknown(
    rbac_file: Path,  # noqa: F811
    service_accounts_file: Path,  # noqa: F811
) -> None:
    """Test listing accounts whose ID needs checking."""
    updater = ServiceAccountIDUpdater(service_accounts_file, rbac_file)

    assert updater.list_unknown() == ['bob']
