import pytest

from config_engine.domain.audit.db_models import AuditEntityType
from config_engine.domain.audit.service import REDACTED
from config_engine.domain.configurations.schemas import (
    ConfigurationCreateRequest,
    ConfigurationUpdateRequest,
)
from config_engine.domain.errors import ConflictError, NotFoundError, ValidationError
from config_engine.domain.validation.schemas import ValidationRule


def _create_request(**overrides) -> ConfigurationCreateRequest:
    payload = {
        "key": "db.timeout",
        "value": "30",
        "environment": "prod",
        "application": "billing",
        "validation_rule": ValidationRule(rule_type="number", min_value="1", max_value="300"),
    }
    payload.update(overrides)
    return ConfigurationCreateRequest(**payload)


@pytest.mark.anyio
async def test_create_starts_at_version_one_and_is_audited(services):
    entry = await services.configurations.create(_create_request(), actor="alice")

    assert entry.version == 1
    assert entry.created_by == "alice"
    fetched = await services.configurations.get("db.timeout", "prod", "billing")
    assert fetched.id == entry.id

    history = await services.audit.for_entity(AuditEntityType.CONFIGURATION, entry.id)
    assert [(item.action, item.old_value, item.new_value) for item in history] == [
        ("CREATE", None, "30")
    ]
    assert history[0].user_id == "alice"


@pytest.mark.anyio
async def test_create_rejects_invalid_value_without_writing(services):
    with pytest.raises(ValidationError) as excinfo:
        await services.configurations.create(_create_request(value="fast"), actor="alice")

    assert excinfo.value.violations
    assert await services.configurations.list("prod", "billing") == []


@pytest.mark.anyio
async def test_create_duplicate_key_conflicts(services):
    await services.configurations.create(_create_request(), actor="alice")
    with pytest.raises(ConflictError):
        await services.configurations.create(_create_request(value="45"), actor="bob")


@pytest.mark.anyio
async def test_same_key_in_other_scope_is_independent(services):
    await services.configurations.create(_create_request(), actor="alice")
    other = await services.configurations.create(
        _create_request(environment="staging", value="5"), actor="alice"
    )
    tenant = await services.configurations.create(
        _create_request(tenant_id="acme", value="7"), actor="alice"
    )

    assert (await services.configurations.get("db.timeout", "staging", "billing")).id == other.id
    assert (await services.configurations.get("db.timeout", "prod", "billing", "acme")).id == tenant.id
    assert (await services.configurations.get("db.timeout", "prod", "billing")).value == "30"


@pytest.mark.anyio
async def test_update_increments_version_and_records_old_value(services):
    entry = await services.configurations.create(_create_request(), actor="alice")

    updated = await services.configurations.update(
        entry.id, ConfigurationUpdateRequest(value="45"), actor="bob"
    )

    assert updated.version == 2
    assert updated.value == "45"
    assert updated.updated_by == "bob"
    history = await services.audit.for_entity(AuditEntityType.CONFIGURATION, entry.id)
    assert history[0].action == "UPDATE"
    assert (history[0].old_value, history[0].new_value) == ("30", "45")


@pytest.mark.anyio
async def test_update_is_partial(services):
    entry = await services.configurations.create(
        _create_request(description="connection timeout", tags=["db"]), actor="alice"
    )

    updated = await services.configurations.update(
        entry.id, ConfigurationUpdateRequest(is_active=False), actor="bob"
    )

    assert updated.is_active is False
    assert updated.value == "30"
    assert updated.description == "connection timeout"
    assert updated.tags == ["db"]


@pytest.mark.anyio
async def test_invalid_update_leaves_entry_untouched(services):
    entry = await services.configurations.create(_create_request(), actor="alice")

    with pytest.raises(ValidationError):
        await services.configurations.update(
            entry.id, ConfigurationUpdateRequest(value="500"), actor="bob"
        )

    current = await services.configurations.get_by_id(entry.id)
    assert current.value == "30"
    assert current.version == 1


@pytest.mark.anyio
async def test_delete_removes_entry_and_audits(services):
    entry = await services.configurations.create(_create_request(), actor="alice")

    await services.configurations.delete(entry.id, actor="bob")

    with pytest.raises(NotFoundError):
        await services.configurations.get_by_id(entry.id)
    history = await services.audit.for_entity(AuditEntityType.CONFIGURATION, entry.id)
    assert history[0].action == "DELETE"
    assert (history[0].old_value, history[0].new_value) == ("30", None)


@pytest.mark.anyio
async def test_missing_entry_raises_not_found(services):
    with pytest.raises(NotFoundError):
        await services.configurations.get("missing", "prod", "billing")
    with pytest.raises(NotFoundError):
        await services.configurations.update(
            "missing-id", ConfigurationUpdateRequest(value="1"), actor="bob"
        )


@pytest.mark.anyio
async def test_encrypted_entry_values_are_redacted_in_audit(services):
    entry = await services.configurations.create(
        _create_request(key="payments.api_secret", value="s3cr3t", validation_rule=None, is_encrypted=True),
        actor="alice",
    )

    history = await services.audit.for_entity(AuditEntityType.CONFIGURATION, entry.id)
    assert history[0].new_value == REDACTED
    assert (await services.configurations.get_by_id(entry.id)).value == "s3cr3t"


@pytest.mark.anyio
async def test_validate_existing_entry_with_candidate_value(services):
    entry = await services.configurations.create(_create_request(), actor="alice")

    assert (await services.configurations.validate(entry.id)).is_valid
    assert not (await services.configurations.validate(entry.id, "fast")).is_valid


def test_validate_batch_reports_per_item(services):
    report = services.configurations.validate_batch(
        [_create_request(), _create_request(value="31"), _create_request(key="cache.size", value="x")]
    )

    assert report.is_valid is False
    assert [item.is_valid for item in report.items] == [False, False, False]
    assert "Duplicate configuration key: db.timeout" in report.items[0].errors
