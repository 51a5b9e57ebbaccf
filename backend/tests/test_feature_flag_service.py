import pytest

from config_engine.domain.audit.db_models import AuditEntityType
from config_engine.domain.errors import ConflictError, NotFoundError
from config_engine.domain.feature_flags import (
    FeatureFlagCreateRequest,
    FeatureFlagRule,
    FeatureFlagUpdateRequest,
)


def _create_request(**overrides) -> FeatureFlagCreateRequest:
    payload = {"name": "beta_ui", "environment": "prod", "application": "web", "is_enabled": True}
    payload.update(overrides)
    return FeatureFlagCreateRequest(**payload)


class _BrokenRepository:
    async def get_by_name(self, *args, **kwargs):
        raise RuntimeError("store unavailable")


@pytest.mark.anyio
async def test_missing_flag_is_disabled(services):
    assert await services.feature_flags.is_enabled("nope", "prod", "web", {"userId": "u-1"}) is False


@pytest.mark.anyio
async def test_lookup_failure_is_disabled(services):
    services.feature_flags._repository = _BrokenRepository()

    assert await services.feature_flags.is_enabled("beta_ui", "prod", "web") is False


@pytest.mark.anyio
async def test_flag_lookup_is_tenant_scoped(services):
    await services.feature_flags.create(_create_request(tenant_id="acme"), actor="alice")

    assert await services.feature_flags.is_enabled("beta_ui", "prod", "web", tenant_id="acme") is True
    assert await services.feature_flags.is_enabled("beta_ui", "prod", "web") is False
    assert await services.feature_flags.is_enabled("beta_ui", "prod", "web", tenant_id="other") is False


@pytest.mark.anyio
async def test_percentage_rollout_is_deterministic(services):
    await services.feature_flags.create(
        _create_request(
            rules=[FeatureFlagRule(attribute="userId", operator="percentage", value="25")]
        ),
        actor="alice",
    )

    results = {
        await services.feature_flags.is_enabled("beta_ui", "prod", "web", {"userId": "u-42"})
        for _ in range(1000)
    }
    assert len(results) == 1


@pytest.mark.anyio
async def test_create_conflict(services):
    await services.feature_flags.create(_create_request(), actor="alice")
    with pytest.raises(ConflictError):
        await services.feature_flags.create(_create_request(), actor="bob")


@pytest.mark.anyio
async def test_toggle_flips_and_audits(services):
    flag = await services.feature_flags.create(_create_request(is_enabled=False), actor="alice")

    toggled = await services.feature_flags.toggle(flag.id, actor="bob")

    assert toggled.is_enabled is True
    history = await services.audit.for_entity(AuditEntityType.FEATURE_FLAG, flag.id)
    assert [(entry.action, entry.old_value, entry.new_value) for entry in history] == [
        ("TOGGLE", "false", "true"),
        ("CREATE", None, "false"),
    ]


@pytest.mark.anyio
async def test_update_replaces_rules_and_keeps_other_fields(services):
    flag = await services.feature_flags.create(
        _create_request(description="new checkout", metadata={"owner": "web"}), actor="alice"
    )

    updated = await services.feature_flags.update(
        flag.id,
        FeatureFlagUpdateRequest(
            rules=[FeatureFlagRule(attribute="country", operator="equals", value="CA")]
        ),
        actor="bob",
    )

    assert [rule.attribute for rule in updated.rules] == ["country"]
    assert updated.description == "new checkout"
    assert updated.metadata == {"owner": "web"}
    assert updated.is_enabled is True
    assert await services.feature_flags.is_enabled("beta_ui", "prod", "web", {"country": "CA"})
    assert not await services.feature_flags.is_enabled("beta_ui", "prod", "web", {"country": "US"})


@pytest.mark.anyio
async def test_evaluate_rules_reports_each_rule(services):
    flag = await services.feature_flags.create(
        _create_request(
            rules=[
                FeatureFlagRule(attribute="tier", operator="equals", value="gold", priority=2),
                FeatureFlagRule(attribute="country", operator="equals", value="CA", priority=1),
            ]
        ),
        actor="alice",
    )

    results = await services.feature_flags.evaluate_rules(flag.id, {"tier": "gold"})

    assert [result.attribute for result in results] == ["country", "tier"]
    assert [result.matched for result in results] == [False, True]
    assert results[0].reason == "Attribute 'country' not found in context"


@pytest.mark.anyio
async def test_delete_flag(services):
    flag = await services.feature_flags.create(_create_request(), actor="alice")

    await services.feature_flags.delete(flag.id, actor="bob")

    with pytest.raises(NotFoundError):
        await services.feature_flags.get_by_id(flag.id)
    assert await services.feature_flags.is_enabled("beta_ui", "prod", "web") is False
