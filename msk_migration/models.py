"""Pydantic models for the JSON files produced and consumed by the tool.

Field names match the on-disk JSON documents exactly, so files written by
earlier runs (or by other tooling) load without translation.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel
from pydantic import Field


class ACLBinding(BaseModel):
    """A single Kafka ACL entry as exported from MSK."""

    principal: str
    host: str = '*'
    operation: str
    permission_type: str
    resource_type: str
    resource_name: str
    pattern_type: str = 'LITERAL'


class ClusterMetadata(BaseModel):
    """Descriptive metadata about the source MSK cluster."""

    cluster_name: str | None = None
    cluster_arn: str | None = None
    state: str | None = None
    kafka_version: str | None = None
    number_of_broker_nodes: int | None = None
    instance_type: str | None = None
    region: str | None = None


class MSKACLData(BaseModel):
    """Contents of msk_acls.json.

    ACL entries are kept as raw dictionaries so that one malformed entry
    can be reported on its own instead of rejecting the whole file.
    """

    acls: list[dict[str, Any]] = Field(default_factory=list)
    cluster_metadata: ClusterMetadata | None = None
    acl_count: int | None = None
    count: int | None = Field(
        None,
        description='Legacy name for acl_count.',
    )
    exported_at: str | None = None

    @property
    def total_acls(self) -> int:
        """Number of ACLs the export claims to contain."""
        if self.acl_count is not None:
            return self.acl_count
        if self.count is not None:
            return self.count
        return len(self.acls)


class RoleBinding(BaseModel):
    """A Confluent Cloud role binding derived from one or more ACLs."""

    principal: str
    role: str
    resource_type: str
    resource_name: str
    pattern_type: str
    environment: str
    cluster_id: str

    def key(self) -> tuple[str, str, str, str, str]:
        """Return the identity used to deduplicate bindings."""
        return (
            self.principal,
            self.role,
            self.resource_type,
            self.resource_name,
            self.pattern_type,
        )


class ServiceAccountInfo(BaseModel):
    """A service account that must exist before bindings are applied."""

    name: str
    description: str
    original_principal: str


class ConversionMetadata(BaseModel):
    """Summary of an ACL to RBAC conversion run."""

    source_cluster: str | None = None
    source_region: str | None = None
    target_environment: str | None = None
    target_cluster_id: str | None = None
    original_acl_count: int = 0
    converted_role_bindings_count: int = 0
    skipped_deny_count: int = 0
    skipped_wildcard_group_count: int = 0
    failed_acl_count: int = 0
    converted_at: str
    conversion_notes: list[str] = Field(default_factory=list)


class RBACOutput(BaseModel):
    """Contents of cc_rbac.json."""

    role_bindings: list[RoleBinding] = Field(default_factory=list)
    service_accounts: list[ServiceAccountInfo] = Field(default_factory=list)
    conversion_metadata: ConversionMetadata


class PrincipalInfo(BaseModel):
    """Aggregated view of one principal found in the ACL export."""

    principal: str
    principal_type: str
    principal_name: str
    acl_count: int = 0
    permissions: list[str] = Field(default_factory=list)


class PrincipalsData(BaseModel):
    """Contents of msk_principals.json."""

    principals: list[PrincipalInfo] = Field(default_factory=list)
    cluster_metadata: ClusterMetadata | None = None
    principal_count: int = 0
    total_acl_count: int = 0
    exported_at: str | None = None


class PartitionInfo(BaseModel):
    """Leader and replica placement of one topic partition."""

    partition: int
    leader: int | None = None
    replicas: list[int] = Field(default_factory=list)
    in_sync_replicas: list[int] = Field(default_factory=list)


class TopicInfo(BaseModel):
    """A topic as exported from MSK."""

    name: str
    partitions: int
    replication_factor: int
    is_internal: bool = False
    partition_info: list[PartitionInfo] = Field(default_factory=list)
    configurations: dict[str, str] = Field(default_factory=dict)


class ConsumerGroupMemberInfo(BaseModel):
    """One member of a consumer group."""

    member_id: str
    client_id: str | None = None
    host: str | None = None
    assigned_partitions: int = 0


class ConsumerGroupInfo(BaseModel):
    """A consumer group as exported from MSK."""

    group_id: str
    state: str | None = None
    coordinator: int | None = None
    member_count: int = 0
    members: list[ConsumerGroupMemberInfo] = Field(default_factory=list)


class SchemaInfo(BaseModel):
    """One version of a schema read from a source registry."""

    schema_id: str | None = None
    schema_name: str
    registry_name: str | None = None
    schema_arn: str | None = None
    subject: str | None = Field(
        None,
        description='Subject name when the source registry has subjects.',
    )
    version_number: int | None = None
    version_id: str | None = None
    schema_definition: str | None = None
    data_format: str | None = None
    compatibility: str | None = None
    description: str | None = None
    status: str | None = None
    created_time: str | None = None
    updated_time: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)


class ServiceAccountRecord(BaseModel):
    """A service account entry in cc_service_accounts.json."""

    name: str
    id: str | None = None
    account_id: str | None = None
    resource_id: str | None = None
    status: str
    message: str | None = None
    original_principal: str | None = None
    acl_count: int = 0
    permissions: list[str] = Field(default_factory=list)
