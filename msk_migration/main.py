"""Command line entry point for the MSK to Confluent Cloud migration tool."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any

from msk_migration.converter import DEFAULT_CLUSTER_ID
from msk_migration.converter import DEFAULT_ENVIRONMENT
from msk_migration.converter import convert_file
from msk_migration.creators import DEFAULT_START_ID
from msk_migration.creators import ACLCreator
from msk_migration.creators import ApiKeyCreator
from msk_migration.creators import RBACApplicator
from msk_migration.creators import SchemaCreator
from msk_migration.creators import ServiceAccountCreator
from msk_migration.creators import ServiceAccountIDUpdater
from msk_migration.creators import TopicCreator
from msk_migration.extractor import ACLS_FILE
from msk_migration.extractor import SCHEMA_SOURCES
from msk_migration.extractor import SCHEMAS_FILE
from msk_migration.extractor import TOPICS_FILE
from msk_migration.extractor import create_extractor
from msk_migration.extractor import create_schema_reader
from msk_migration.principals import extract_principals_file
from msk_migration.services import IAMService
from msk_migration.services import KafkaAdminService
from msk_migration.services import KafkaRestService
from msk_migration.services import RestClient
from msk_migration.services import SchemaRegistryService
from msk_migration.services import build_admin_client
from msk_migration.utils import CC_JSON_DIR
from msk_migration.utils import DEFAULT_CONFIG_FILE
from msk_migration.utils import MSK_JSON_DIR
from msk_migration.utils import ConfluentCloudConfig
from msk_migration.utils import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_REGION = 'us-east-1'
PRINCIPALS_FILE = MSK_JSON_DIR / 'msk_principals.json'
RBAC_FILE = CC_JSON_DIR / 'cc_rbac.json'
SERVICE_ACCOUNTS_FILE = CC_JSON_DIR / 'cc_service_accounts.json'
RBAC_APPLIED_FILE = CC_JSON_DIR / 'cc_rbac_applied.json'
ACLS_MIGRATED_FILE = CC_JSON_DIR / 'cc_acls_migrated.json'
CREDENTIALS_DIR = CC_JSON_DIR / 'cc_credentials'
SCHEMA_ID_MAPPING_FILE = Path('generated_jsons') / 'schema_id_mapping.json'

SECURITY_PROTOCOLS = ('PLAINTEXT', 'SSL', 'SASL_SSL', 'SASL_PLAINTEXT')
SASL_MECHANISMS = ('AWS_MSK_IAM', 'SCRAM-SHA-512', 'SCRAM-SHA-256', 'PLAIN')
REGISTRY_AUTH_TYPES = ('none', 'basic', 'apikey', 'bearer', 'mtls')


# ============================================================================
# Service factories
# ============================================================================


def iam_service(config: ConfluentCloudConfig) -> IAMService:
    """Build the IAM service from the Cloud API key."""
    config.require('api_key', 'api_secret')
    return IAMService(
        RestClient(config.rest_url, auth=(config.api_key, config.api_secret)),
    )


def kafka_rest_service(config: ConfluentCloudConfig) -> KafkaRestService:
    """Build the Kafka REST service from the Kafka API key."""
    config.require('cluster', 'kafka_api_key', 'kafka_api_secret')
    return KafkaRestService(
        RestClient(
            config.kafka_rest_url,
            auth=(config.kafka_api_key, config.kafka_api_secret),
        ),
        config.cluster,
    )


def schema_registry_service(
    config: ConfluentCloudConfig,
) -> SchemaRegistryService:
    """Build the target Schema Registry service."""
    config.require('schema_registry_url', 'schema_registry_auth')
    key, _, secret = config.schema_registry_auth.partition(':')
    return SchemaRegistryService(
        RestClient(config.schema_registry_url, auth=(key, secret)),
    )


def kafka_admin_service(config: ConfluentCloudConfig) -> KafkaAdminService:
    """Connect a Kafka admin client to the Confluent Cloud cluster."""
    config.require('bootstrap_servers', 'kafka_api_key', 'kafka_api_secret')
    properties = config.properties
    return KafkaAdminService(
        build_admin_client(
            config.bootstrap_servers,
            security_protocol=properties.get('security.protocol', 'SASL_SSL'),
            sasl_mechanism=properties.get('sasl.mechanism', 'PLAIN'),
            username=config.kafka_api_key,
            password=config.kafka_api_secret,
        ),
    )


# ============================================================================
# Commands
# ============================================================================


def run_extract(args: argparse.Namespace) -> int:
    """Export ACLs, topics, consumer groups and schemas from MSK."""
    schema_reader = create_schema_reader(
        args.source_of_schemas,
        args.region,
        schema_registry_url=args.schema_registry_url,
        auth_type=args.sr_auth_type,
        username=args.sr_username,
        password=args.sr_password,
        api_key=args.sr_api_key,
        api_secret=args.sr_api_secret,
        token=args.sr_token,
        cert_file=args.sr_cert_file,
        key_file=args.sr_key_file,
        ca_file=args.sr_ca_file,
    )
    extractor = create_extractor(
        args.cluster_arn,
        args.region,
        security_protocol=args.security_protocol,
        sasl_mechanism=args.sasl_mechanism,
        sasl_username=args.sasl_username,
        sasl_password=args.sasl_password,
        schema_source=args.source_of_schemas,
        schema_reader=schema_reader,
    )
    try:
        results = extractor.export_all(
            args.output_dir,
            include_metadata=not args.no_metadata,
        )
    finally:
        extractor.admin_service.close()
    return 0 if all(r['status'] == 'success' for r in results.values()) else 1


def run_extract_principals(args: argparse.Namespace) -> int:
    """Write the unique principals found in an ACL export."""
    extract_principals_file(args.input_file, args.output_file)
    return 0


def run_convert(args: argparse.Namespace) -> int:
    """Convert MSK ACLs into Confluent Cloud role bindings."""
    config = ConfluentCloudConfig.load(args.config_file)
    output = convert_file(
        args.input_file,
        args.output_file,
        environment=args.environment or config.environment or DEFAULT_ENVIRONMENT,
        cluster_id=args.cluster_id or config.cluster or DEFAULT_CLUSTER_ID,
    )
    return 0 if output.conversion_metadata.failed_acl_count == 0 else 1


def run_create_service_accounts(args: argparse.Namespace) -> int:
    """Create service accounts for the extracted principals."""
    config = ConfluentCloudConfig.load(args.config_file)
    creator = ServiceAccountCreator(iam_service(config), dry_run=args.dry_run)
    records = creator.create_from_principals(args.input_file, args.output_file)
    return 1 if any(record.status == 'failed' for record in records) else 0


def run_create_api_keys(args: argparse.Namespace) -> int:
    """Create one Kafka API key per migrated service account."""
    config = ConfluentCloudConfig.load(args.config_file)
    config.require('environment', 'cluster')
    creator = ApiKeyCreator(
        iam_service(config),
        config.environment,
        config.cluster,
        bootstrap_servers=config.bootstrap_servers,
        dry_run=args.dry_run,
    )
    summary = creator.create_for_service_accounts(
        args.rbac_file,
        args.service_accounts_file,
        args.output_dir,
        force=args.force,
    )
    return 1 if summary['failure'] else 0


def run_apply(args: argparse.Namespace) -> int:
    """Apply converted role bindings to Confluent Cloud."""
    config = ConfluentCloudConfig.load(args.config_file)
    config.require('organization')
    applicator = RBACApplicator(
        iam_service(config),
        config.organization,
        dry_run=args.dry_run,
    )
    summary = applicator.apply(
        args.rbac_file,
        args.service_accounts_file,
        output_file=args.output_file,
        skip_service_accounts=args.skip_service_accounts,
    )
    return 1 if summary['role_bindings']['failure'] else 0


def run_create_topics(args: argparse.Namespace) -> int:
    """Create the extracted topics in Confluent Cloud."""
    config = ConfluentCloudConfig.load(args.config_file)
    creator = TopicCreator(kafka_rest_service(config), dry_run=args.dry_run)
    summary = creator.create_from_file(args.input_file)
    return 1 if summary['failure'] else 0


def run_create_schemas(args: argparse.Namespace) -> int:
    """Register the extracted schemas in Confluent Cloud."""
    config = ConfluentCloudConfig.load(args.config_file)
    creator = SchemaCreator(
        schema_registry_service(config),
        dry_run=args.dry_run,
        default_compatibility=args.default_compatibility,
    )
    summary = creator.create_from_file(
        args.input_file,
        force=args.force,
        preserve_ids=args.preserve_ids,
        start_id=args.start_id,
        id_mapping_file=args.id_mapping_file,
    )
    return 1 if summary['failure'] else 0


def run_create_acls(args: argparse.Namespace) -> int:
    """Recreate MSK ACLs on the Confluent Cloud cluster."""
    config = ConfluentCloudConfig.load(args.config_file)
    admin_service = kafka_admin_service(config)
    try:
        summary = ACLCreator(admin_service, dry_run=args.dry_run).migrate(
            args.input_file,
            args.service_accounts_file,
            args.output_file,
        )
    finally:
        admin_service.close()
    return 1 if summary['failure'] else 0


def run_update_service_account_id(args: argparse.Namespace) -> int:
    """Fill in or list service account IDs."""
    updater = ServiceAccountIDUpdater(
        args.service_accounts_file,
        args.rbac_file,
    )
    if args.action == 'list':
        names = updater.list_unknown()
        if not names:
            logger.info('All service accounts have known IDs')
        for name in names:
            logger.info('  %s', name)
        return 0
    return 0 if updater.update(args.name, args.id) else 1


# ============================================================================
# Argument parsing
# ============================================================================


def _add_schema_registry_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '--source-of-schemas',
        choices=SCHEMA_SOURCES,
        default='none',
        help='Where to read schemas from',
    )
    parser.add_argument('--schema-registry-url', help='Source registry URL')
    parser.add_argument(
        '--sr-auth-type',
        choices=REGISTRY_AUTH_TYPES,
        default='none',
        help='Source registry authentication',
    )
    parser.add_argument('--sr-username', help='Basic auth username')
    parser.add_argument('--sr-password', help='Basic auth password')
    parser.add_argument('--sr-api-key', help='Registry API key')
    parser.add_argument('--sr-api-secret', help='Registry API secret')
    parser.add_argument('--sr-token', help='Bearer token')
    parser.add_argument('--sr-cert-file', help='Client certificate (PEM)')
    parser.add_argument('--sr-key-file', help='Client private key (PEM)')
    parser.add_argument('--sr-ca-file', help='CA bundle (PEM)')


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one sub-command per step."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        '--config-file',
        default=DEFAULT_CONFIG_FILE,
        help='Confluent Cloud properties file',
    )
    common.add_argument(
        '-v',
        '--verbose',
        action='store_true',
        help='Enable debug logging',
    )
    common.add_argument('--log-file', help='Also write logs to this file')

    dry_run = argparse.ArgumentParser(add_help=False)
    dry_run.add_argument(
        '--dry-run',
        action='store_true',
        help='Log what would change without calling Confluent Cloud',
    )

    parser = argparse.ArgumentParser(
        prog='msk-migration',
        description='Migrate Amazon MSK resources to Confluent Cloud',
    )
    commands = parser.add_subparsers(dest='command', required=True)

    extract = commands.add_parser(
        'extract',
        parents=[common],
        help='Export ACLs, topics, consumer groups and schemas from MSK',
    )
    extract.add_argument('--cluster-arn', required=True, help='MSK cluster ARN')
    extract.add_argument('--region', default=DEFAULT_REGION, help='AWS region')
    extract.add_argument(
        '--security-protocol',
        choices=SECURITY_PROTOCOLS,
        default='SSL',
    )
    extract.add_argument('--sasl-mechanism', choices=SASL_MECHANISMS)
    extract.add_argument('--sasl-username', help='SCRAM or PLAIN username')
    extract.add_argument('--sasl-password', help='SCRAM or PLAIN password')
    extract.add_argument('--output-dir', default=str(MSK_JSON_DIR))
    extract.add_argument(
        '--no-metadata',
        action='store_true',
        help='Do not embed cluster metadata in the export files',
    )
    _add_schema_registry_arguments(extract)
    extract.set_defaults(func=run_extract)

    principals = commands.add_parser(
        'extract-principals',
        parents=[common],
        help='List the unique principals in an ACL export',
    )
    principals.add_argument('--input-file', default=str(MSK_JSON_DIR / ACLS_FILE))
    principals.add_argument('--output-file', default=str(PRINCIPALS_FILE))
    principals.set_defaults(func=run_extract_principals)

    convert = commands.add_parser(
        'convert',
        parents=[common],
        help='Convert MSK ACLs into Confluent Cloud role bindings',
    )
    convert.add_argument('--input-file', default=str(MSK_JSON_DIR / ACLS_FILE))
    convert.add_argument('--output-file', default=str(RBAC_FILE))
    convert.add_argument('--environment', help='Target environment ID')
    convert.add_argument('--cluster-id', help='Target Kafka cluster ID')
    convert.set_defaults(func=run_convert)

    accounts = commands.add_parser(
        'create-service-accounts',
        parents=[common, dry_run],
        help='Create service accounts for the extracted principals',
    )
    accounts.add_argument('--input-file', default=str(PRINCIPALS_FILE))
    accounts.add_argument('--output-file', default=str(SERVICE_ACCOUNTS_FILE))
    accounts.set_defaults(func=run_create_service_accounts)

    api_keys = commands.add_parser(
        'create-api-keys',
        parents=[common, dry_run],
        help='Create Kafka API keys for the migrated service accounts',
    )
    api_keys.add_argument('--rbac-file', default=str(RBAC_FILE))
    api_keys.add_argument(
        '--service-accounts-file',
        default=str(SERVICE_ACCOUNTS_FILE),
    )
    api_keys.add_argument('--output-dir', default=str(CREDENTIALS_DIR))
    api_keys.add_argument(
        '--force',
        action='store_true',
        help='Create new keys even where credentials were saved before',
    )
    api_keys.set_defaults(func=run_create_api_keys)

    apply = commands.add_parser(
        'apply',
        parents=[common, dry_run],
        help='Apply role bindings to Confluent Cloud',
    )
    apply.add_argument('--rbac-file', default=str(RBAC_FILE))
    apply.add_argument(
        '--service-accounts-file',
        default=str(SERVICE_ACCOUNTS_FILE),
    )
    apply.add_argument('--output-file', default=str(RBAC_APPLIED_FILE))
    apply.add_argument(
        '--skip-service-accounts',
        action='store_true',
        help='Do not create missing service accounts',
    )
    apply.set_defaults(func=run_apply)

    topics = commands.add_parser(
        'create-topics',
        parents=[common, dry_run],
        help='Create the extracted topics in Confluent Cloud',
    )
    topics.add_argument('--input-file', default=str(MSK_JSON_DIR / TOPICS_FILE))
    topics.set_defaults(func=run_create_topics)

    schemas = commands.add_parser(
        'create-schemas',
        parents=[common, dry_run],
        help='Register the extracted schemas in Confluent Cloud',
    )
    schemas.add_argument('--input-file', default=str(MSK_JSON_DIR / SCHEMAS_FILE))
    schemas.add_argument(
        '--force',
        action='store_true',
        help='Add versions to subjects that already exist',
    )
    schemas.add_argument(
        '--preserve-ids',
        action='store_true',
        help='Request the source schema IDs in the target registry',
    )
    schemas.add_argument('--start-id', type=int, default=DEFAULT_START_ID)
    schemas.add_argument(
        '--id-mapping-file',
        default=str(SCHEMA_ID_MAPPING_FILE),
    )
    schemas.add_argument('--default-compatibility', default='BACKWARD')
    schemas.set_defaults(func=run_create_schemas)

    acls = commands.add_parser(
        'create-acls',
        parents=[common, dry_run],
        help='Recreate MSK ACLs on the Confluent Cloud cluster',
    )
    acls.add_argument('--input-file', default=str(MSK_JSON_DIR / ACLS_FILE))
    acls.add_argument(
        '--service-accounts-file',
        default=str(SERVICE_ACCOUNTS_FILE),
    )
    acls.add_argument('--output-file', default=str(ACLS_MIGRATED_FILE))
    acls.set_defaults(func=run_create_acls)

    updater = commands.add_parser(
        'update-service-account-id',
        parents=[common],
        help='Fill in service account IDs that could not be looked up',
    )
    updater.add_argument(
        '--service-accounts-file',
        default=str(SERVICE_ACCOUNTS_FILE),
    )
    updater.add_argument('--rbac-file', default=str(RBAC_FILE))
    actions = updater.add_subparsers(dest='action', required=True)
    update = actions.add_parser('update', help='Set the ID of one account')
    update.add_argument('name', help='Service account name')
    update.add_argument('id', help='Service account ID (sa-...)')
    actions.add_parser('list', help='List accounts whose ID needs checking')
    updater.set_defaults(func=run_update_service_account_id)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit status."""
    parser = build_parser()
    args: Any = parser.parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        return args.func(args)
    except Exception as e:
        logger.error('%s failed: %s', args.command, e)
        logger.debug('Traceback', exc_info=True)
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
