from __future__ import annotations

from typing import Any, Collection, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config_engine.domain.audit.db_models import AuditLogRecord
from config_engine.domain.audit.schemas import AuditLogEntry, AuditQuery
from config_engine.domain.configurations.db_models import ConfigurationEntryRecord
from config_engine.domain.configurations.schemas import ConfigurationEntry
from config_engine.domain.deployments.db_models import (
    DeploymentItemRecord,
    DeploymentRecord,
    DeploymentStatus,
)
from config_engine.domain.deployments.schemas import Deployment, DeploymentItem
from config_engine.domain.errors import ConflictError, NotFoundError
from config_engine.domain.feature_flags.db_models import FeatureFlagRecord
from config_engine.domain.feature_flags.schemas import FeatureFlag
from config_engine.domain.snapshots.db_models import ConfigurationSnapshotRecord
from config_engine.domain.snapshots.schemas import ConfigurationSnapshot
from config_engine.infra.db import get_session_factory
from config_engine.infra.encryption import decrypt_value, encrypt_value
from config_engine.infra.repositories.base import (
    AuditRepository,
    ConfigurationRepository,
    DeploymentRepository,
    FeatureFlagRepository,
    SnapshotRepository,
    ensure_expected_status,
)


def _tenant_clause(column, tenant_id: str | None):  # noqa: ANN001
    if tenant_id is None:
        return column.is_(None)
    return column == tenant_id


def _encrypt_optional(value: str | None) -> str | None:
    return encrypt_value(value) if value is not None else None


def _decrypt_optional(value: str | None) -> str | None:
    return decrypt_value(value) if value is not None else None


class _SqlRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory


def _entry_to_record_fields(entry: ConfigurationEntry) -> dict[str, Any]:
    fields = entry.model_dump(mode="json", exclude={"created_at", "updated_at"})
    fields["value"] = encrypt_value(entry.value) if entry.is_encrypted else entry.value
    fields["created_at"] = entry.created_at
    fields["updated_at"] = entry.updated_at
    return fields


def _entry_from_record(record: ConfigurationEntryRecord) -> ConfigurationEntry:
    value = decrypt_value(record.value) if record.is_encrypted else record.value
    return ConfigurationEntry(
        id=record.id,
        key=record.key,
        value=value,
        environment=record.environment,
        application=record.application,
        tenant_id=record.tenant_id,
        description=record.description,
        is_active=record.is_active,
        is_encrypted=record.is_encrypted,
        version=record.version,
        validation_rule=record.validation_rule,
        tags=list(record.tags or []),
        created_by=record.created_by,
        updated_by=record.updated_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class SqlConfigurationRepository(_SqlRepository, ConfigurationRepository):
    async def get(self, entry_id: str) -> Optional[ConfigurationEntry]:
        async with self.session_factory() as session:
            record = await session.get(ConfigurationEntryRecord, entry_id)
            return _entry_from_record(record) if record else None

    async def get_by_key(
        self, key: str, environment: str, application: str, tenant_id: str | None
    ) -> Optional[ConfigurationEntry]:
        stmt = sa.select(ConfigurationEntryRecord).where(
            ConfigurationEntryRecord.key == key,
            ConfigurationEntryRecord.environment == environment,
            ConfigurationEntryRecord.application == application,
            _tenant_clause(ConfigurationEntryRecord.tenant_id, tenant_id),
        )
        async with self.session_factory() as session:
            record = (await session.execute(stmt)).scalar_one_or_none()
            return _entry_from_record(record) if record else None

    async def list_for_scope(
        self, environment: str, application: str, tenant_id: str | None
    ) -> List[ConfigurationEntry]:
        stmt = (
            sa.select(ConfigurationEntryRecord)
            .where(
                ConfigurationEntryRecord.environment == environment,
                ConfigurationEntryRecord.application == application,
                _tenant_clause(ConfigurationEntryRecord.tenant_id, tenant_id),
            )
            .order_by(ConfigurationEntryRecord.key)
        )
        async with self.session_factory() as session:
            records = (await session.execute(stmt)).scalars().all()
            return [_entry_from_record(record) for record in records]

    async def add(self, entry: ConfigurationEntry) -> ConfigurationEntry:
        async with self.session_factory() as session:
            session.add(ConfigurationEntryRecord(**_entry_to_record_fields(entry)))
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError(
                    detail=f"Configuration '{entry.key}' already exists in this scope"
                ) from exc
        return entry.model_copy(deep=True)

    async def save(self, entry: ConfigurationEntry) -> ConfigurationEntry:
        async with self.session_factory() as session:
            record = await session.get(ConfigurationEntryRecord, entry.id)
            if record is None:
                raise NotFoundError(detail=f"Configuration '{entry.id}' not found")
            for field, value in _entry_to_record_fields(entry).items():
                setattr(record, field, value)
            await session.commit()
        return entry.model_copy(deep=True)

    async def delete(self, entry_id: str) -> bool:
        async with self.session_factory() as session:
            record = await session.get(ConfigurationEntryRecord, entry_id)
            if record is None:
                return False
            await session.delete(record)
            await session.commit()
            return True


def _flag_to_record_fields(flag: FeatureFlag) -> dict[str, Any]:
    payload = flag.model_dump(mode="json", exclude={"metadata", "created_at", "updated_at"})
    payload["flag_metadata"] = dict(flag.metadata)
    payload["created_at"] = flag.created_at
    payload["updated_at"] = flag.updated_at
    return payload


def _flag_from_record(record: FeatureFlagRecord) -> FeatureFlag:
    return FeatureFlag(
        id=record.id,
        name=record.name,
        environment=record.environment,
        application=record.application,
        tenant_id=record.tenant_id,
        description=record.description,
        is_enabled=record.is_enabled,
        rules=list(record.rules or []),
        schedule=record.schedule,
        metadata=dict(record.flag_metadata or {}),
        created_by=record.created_by,
        updated_by=record.updated_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class SqlFeatureFlagRepository(_SqlRepository, FeatureFlagRepository):
    async def get(self, flag_id: str) -> Optional[FeatureFlag]:
        async with self.session_factory() as session:
            record = await session.get(FeatureFlagRecord, flag_id)
            return _flag_from_record(record) if record else None

    async def get_by_name(
        self, name: str, environment: str, application: str, tenant_id: str | None
    ) -> Optional[FeatureFlag]:
        stmt = sa.select(FeatureFlagRecord).where(
            FeatureFlagRecord.name == name,
            FeatureFlagRecord.environment == environment,
            FeatureFlagRecord.application == application,
            _tenant_clause(FeatureFlagRecord.tenant_id, tenant_id),
        )
        async with self.session_factory() as session:
            record = (await session.execute(stmt)).scalar_one_or_none()
            return _flag_from_record(record) if record else None

    async def list_for_scope(
        self, environment: str, application: str, tenant_id: str | None
    ) -> List[FeatureFlag]:
        stmt = (
            sa.select(FeatureFlagRecord)
            .where(
                FeatureFlagRecord.environment == environment,
                FeatureFlagRecord.application == application,
                _tenant_clause(FeatureFlagRecord.tenant_id, tenant_id),
            )
            .order_by(FeatureFlagRecord.name)
        )
        async with self.session_factory() as session:
            records = (await session.execute(stmt)).scalars().all()
            return [_flag_from_record(record) for record in records]

    async def add(self, flag: FeatureFlag) -> FeatureFlag:
        async with self.session_factory() as session:
            session.add(FeatureFlagRecord(**_flag_to_record_fields(flag)))
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError(
                    detail=f"Feature flag '{flag.name}' already exists in this scope"
                ) from exc
        return flag.model_copy(deep=True)

    async def save(self, flag: FeatureFlag) -> FeatureFlag:
        async with self.session_factory() as session:
            record = await session.get(FeatureFlagRecord, flag.id)
            if record is None:
                raise NotFoundError(detail=f"Feature flag '{flag.id}' not found")
            for field, value in _flag_to_record_fields(flag).items():
                setattr(record, field, value)
            await session.commit()
        return flag.model_copy(deep=True)

    async def delete(self, flag_id: str) -> bool:
        async with self.session_factory() as session:
            record = await session.get(FeatureFlagRecord, flag_id)
            if record is None:
                return False
            await session.delete(record)
            await session.commit()
            return True


def _item_fields(item: DeploymentItem, position: int) -> dict[str, Any]:
    previous = None
    if item.previous_entry is not None:
        previous = item.previous_entry.model_dump(mode="json")
        if item.previous_entry.is_encrypted:
            previous["value"] = encrypt_value(item.previous_entry.value)
    # Item values may come from encrypted entries, so they are always stored as ciphertext.
    return {
        "id": item.id,
        "position": position,
        "configuration_id": item.configuration_id,
        "action": item.action.value,
        "old_value": _encrypt_optional(item.old_value),
        "new_value": _encrypt_optional(item.new_value),
        "status": item.status.value,
        "error_message": item.error_message,
        "processed_at": item.processed_at,
        "previous_entry": previous,
    }


def _item_from_record(record: DeploymentItemRecord) -> DeploymentItem:
    previous = None
    if record.previous_entry is not None:
        previous = ConfigurationEntry.model_validate(record.previous_entry)
        if previous.is_encrypted:
            previous.value = decrypt_value(previous.value)
    return DeploymentItem(
        id=record.id,
        configuration_id=record.configuration_id,
        action=record.action,
        old_value=_decrypt_optional(record.old_value),
        new_value=_decrypt_optional(record.new_value),
        status=record.status,
        error_message=record.error_message,
        processed_at=record.processed_at,
        previous_entry=previous,
    )


def _apply_deployment(record: DeploymentRecord, deployment: Deployment) -> None:
    record.name = deployment.name
    record.description = deployment.description
    record.environment = deployment.environment
    record.application = deployment.application
    record.tenant_id = deployment.tenant_id
    record.status = deployment.status.value
    record.deployment_metadata = dict(deployment.metadata)
    record.created_by = deployment.created_by
    record.deployed_by = deployment.deployed_by
    record.created_at = deployment.created_at
    record.deployed_at = deployment.deployed_at
    record.completed_at = deployment.completed_at
    record.rollback_reason = deployment.rollback_reason

    existing = {item.id: item for item in record.items}
    for position, item in enumerate(deployment.items):
        fields = _item_fields(item, position)
        item_record = existing.get(item.id)
        if item_record is None:
            record.items.append(DeploymentItemRecord(**fields))
            continue
        for field, value in fields.items():
            setattr(item_record, field, value)


def _deployment_from_record(record: DeploymentRecord) -> Deployment:
    return Deployment(
        id=record.id,
        name=record.name,
        description=record.description,
        environment=record.environment,
        application=record.application,
        tenant_id=record.tenant_id,
        status=record.status,
        items=[_item_from_record(item) for item in record.items],
        metadata=dict(record.deployment_metadata or {}),
        created_by=record.created_by,
        deployed_by=record.deployed_by,
        created_at=record.created_at,
        deployed_at=record.deployed_at,
        completed_at=record.completed_at,
        rollback_reason=record.rollback_reason,
    )


class SqlDeploymentRepository(_SqlRepository, DeploymentRepository):
    async def get(self, deployment_id: str) -> Optional[Deployment]:
        async with self.session_factory() as session:
            record = await session.get(DeploymentRecord, deployment_id)
            return _deployment_from_record(record) if record else None

    async def list_deployments(
        self, environment: str | None = None, application: str | None = None
    ) -> List[Deployment]:
        stmt = sa.select(DeploymentRecord).order_by(DeploymentRecord.created_at.desc())
        if environment is not None:
            stmt = stmt.where(DeploymentRecord.environment == environment)
        if application is not None:
            stmt = stmt.where(DeploymentRecord.application == application)
        async with self.session_factory() as session:
            records = (await session.execute(stmt)).scalars().all()
            return [_deployment_from_record(record) for record in records]

    async def add(self, deployment: Deployment) -> Deployment:
        async with self.session_factory() as session:
            record = DeploymentRecord(id=deployment.id, items=[])
            _apply_deployment(record, deployment)
            session.add(record)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError(detail=f"Deployment '{deployment.id}' already exists") from exc
        return deployment.model_copy(deep=True)

    async def save(
        self, deployment: Deployment, *, expected: Collection[DeploymentStatus] | None = None
    ) -> Deployment:
        async with self.session_factory() as session:
            record = await session.get(DeploymentRecord, deployment.id, with_for_update=True)
            if record is None:
                raise NotFoundError(detail=f"Deployment '{deployment.id}' not found")
            ensure_expected_status(deployment.id, record.status, expected)
            _apply_deployment(record, deployment)
            await session.commit()
        return deployment.model_copy(deep=True)


def _snapshot_from_record(record: ConfigurationSnapshotRecord) -> ConfigurationSnapshot:
    encrypted_keys = set(record.encrypted_keys or [])
    configuration_data = {
        key: decrypt_value(value) if key in encrypted_keys else value
        for key, value in (record.configuration_data or {}).items()
    }
    return ConfigurationSnapshot(
        id=record.id,
        name=record.name,
        description=record.description,
        environment=record.environment,
        application=record.application,
        tenant_id=record.tenant_id,
        created_by=record.created_by,
        created_at=record.created_at,
        is_automatic=record.is_automatic,
        tags=list(record.tags or []),
        configuration_data=configuration_data,
        encrypted_keys=sorted(encrypted_keys),
        feature_flag_data=dict(record.feature_flag_data or {}),
    )


class SqlSnapshotRepository(_SqlRepository, SnapshotRepository):
    async def get(self, snapshot_id: str) -> Optional[ConfigurationSnapshot]:
        async with self.session_factory() as session:
            record = await session.get(ConfigurationSnapshotRecord, snapshot_id)
            return _snapshot_from_record(record) if record else None

    async def list_for_scope(
        self, environment: str, application: str, tenant_id: str | None
    ) -> List[ConfigurationSnapshot]:
        stmt = (
            sa.select(ConfigurationSnapshotRecord)
            .where(
                ConfigurationSnapshotRecord.environment == environment,
                ConfigurationSnapshotRecord.application == application,
                _tenant_clause(ConfigurationSnapshotRecord.tenant_id, tenant_id),
            )
            .order_by(ConfigurationSnapshotRecord.created_at.desc())
        )
        async with self.session_factory() as session:
            records = (await session.execute(stmt)).scalars().all()
            return [_snapshot_from_record(record) for record in records]

    async def add(self, snapshot: ConfigurationSnapshot) -> ConfigurationSnapshot:
        encrypted_keys = set(snapshot.encrypted_keys)
        record = ConfigurationSnapshotRecord(
            id=snapshot.id,
            name=snapshot.name,
            description=snapshot.description,
            environment=snapshot.environment,
            application=snapshot.application,
            tenant_id=snapshot.tenant_id,
            created_by=snapshot.created_by,
            created_at=snapshot.created_at,
            is_automatic=snapshot.is_automatic,
            tags=list(snapshot.tags),
            configuration_data={
                key: encrypt_value(value) if key in encrypted_keys else value
                for key, value in snapshot.configuration_data.items()
            },
            encrypted_keys=sorted(encrypted_keys),
            feature_flag_data=dict(snapshot.feature_flag_data),
        )
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
        return snapshot.model_copy(deep=True)


class SqlAuditRepository(_SqlRepository, AuditRepository):
    async def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        record = AuditLogRecord(
            audit_id=entry.id,
            entity_type=entry.entity_type.value,
            entity_id=entry.entity_id,
            action=entry.action,
            old_value=entry.old_value,
            new_value=entry.new_value,
            user_id=entry.user_id,
            tenant_id=entry.tenant_id,
            request_id=entry.request_id,
            details=entry.details,
            timestamp=entry.timestamp,
        )
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
        return entry.model_copy(deep=True)

    async def query(self, query: AuditQuery) -> List[AuditLogEntry]:
        stmt = sa.select(AuditLogRecord)
        if query.entity_id is not None:
            stmt = stmt.where(AuditLogRecord.entity_id == query.entity_id)
        if query.entity_type is not None:
            stmt = stmt.where(AuditLogRecord.entity_type == query.entity_type.value)
        if query.action is not None:
            stmt = stmt.where(AuditLogRecord.action == query.action)
        if query.user_id is not None:
            stmt = stmt.where(AuditLogRecord.user_id == query.user_id)
        if query.tenant_id is not None:
            stmt = stmt.where(AuditLogRecord.tenant_id == query.tenant_id)
        if query.from_ts is not None:
            stmt = stmt.where(AuditLogRecord.timestamp >= query.from_ts)
        if query.to_ts is not None:
            stmt = stmt.where(AuditLogRecord.timestamp <= query.to_ts)
        stmt = (
            stmt.order_by(AuditLogRecord.timestamp.desc(), AuditLogRecord.id.desc())
            .limit(query.limit)
            .offset(query.offset)
        )
        async with self.session_factory() as session:
            records = (await session.execute(stmt)).scalars().all()
        return [
            AuditLogEntry(
                id=record.audit_id,
                entity_type=record.entity_type,
                entity_id=record.entity_id,
                action=record.action,
                old_value=record.old_value,
                new_value=record.new_value,
                user_id=record.user_id,
                tenant_id=record.tenant_id,
                request_id=record.request_id,
                details=record.details,
                timestamp=record.timestamp,
            )
            for record in records
        ]
