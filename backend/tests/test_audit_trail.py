from datetime import datetime, timedelta, timezone

import pytest

from config_engine.domain.audit import AuditTrail
from config_engine.domain.audit.db_models import AuditEntityType
from config_engine.domain.audit.schemas import AuditQuery
from config_engine.domain.audit.service import REDACTED, is_sensitive_key
from config_engine.infra.logging import update_log_context
from config_engine.infra.repositories.memory import InMemoryAuditRepository


@pytest.fixture()
def trail():
    return AuditTrail(InMemoryAuditRepository())


@pytest.mark.anyio
async def test_log_and_query_by_entity(trail):
    await trail.log(AuditEntityType.CONFIGURATION, "cfg-1", "CREATE", None, "1", "alice")
    await trail.log(AuditEntityType.CONFIGURATION, "cfg-2", "CREATE", None, "2", "alice")
    await trail.log(AuditEntityType.CONFIGURATION, "cfg-1", "UPDATE", "1", "3", "bob")

    history = await trail.for_entity(AuditEntityType.CONFIGURATION, "cfg-1")

    assert [entry.action for entry in history] == ["UPDATE", "CREATE"]
    assert history[0].user_id == "bob"


@pytest.mark.anyio
async def test_query_filters_by_type_action_and_user(trail):
    await trail.log(AuditEntityType.CONFIGURATION, "cfg-1", "CREATE", None, "1", "alice")
    await trail.log(AuditEntityType.FEATURE_FLAG, "flag-1", "TOGGLE", "false", "true", "bob")
    await trail.log(AuditEntityType.DEPLOYMENT, "dep-1", "EXECUTE", "Pending", "Completed", "bob")

    flags = await trail.query(AuditQuery(entity_type=AuditEntityType.FEATURE_FLAG))
    by_bob = await trail.query(AuditQuery(user_id="bob"))
    executes = await trail.query(AuditQuery(action="EXECUTE"))

    assert [entry.entity_id for entry in flags] == ["flag-1"]
    assert {entry.entity_id for entry in by_bob} == {"flag-1", "dep-1"}
    assert [entry.entity_id for entry in executes] == ["dep-1"]


@pytest.mark.anyio
async def test_query_by_time_range(trail):
    entry = await trail.log(AuditEntityType.CONFIGURATION, "cfg-1", "CREATE", None, "1", "alice")
    later = entry.timestamp + timedelta(minutes=5)

    assert await trail.query(AuditQuery(from_ts=later)) == []
    in_range = await trail.query(
        AuditQuery(from_ts=entry.timestamp - timedelta(minutes=1), to_ts=later)
    )
    assert [item.id for item in in_range] == [entry.id]


@pytest.mark.anyio
async def test_naive_time_bounds_are_treated_as_utc(trail):
    await trail.log(AuditEntityType.CONFIGURATION, "cfg-1", "CREATE", None, "1", "alice")
    future = (datetime.now(timezone.utc) + timedelta(hours=1)).replace(tzinfo=None)

    assert len(await trail.query(AuditQuery(to_ts=future))) == 1


@pytest.mark.anyio
async def test_pagination(trail):
    for index in range(5):
        await trail.log(AuditEntityType.CONFIGURATION, "cfg-1", "UPDATE", str(index), str(index + 1), "alice")

    page = await trail.query(AuditQuery(entity_id="cfg-1", limit=2, offset=1))

    assert [entry.new_value for entry in page] == ["4", "3"]


@pytest.mark.anyio
async def test_sensitive_entries_are_redacted(trail):
    entry = await trail.log(
        AuditEntityType.CONFIGURATION, "cfg-1", "UPDATE", "old-pass", "new-pass", "alice", sensitive=True
    )

    assert entry.old_value == REDACTED
    assert entry.new_value == REDACTED


@pytest.mark.anyio
async def test_request_id_comes_from_log_context(trail):
    update_log_context(request_id="req-123")

    entry = await trail.log(AuditEntityType.FEATURE_FLAG, "flag-1", "CREATE", None, "true", "alice")

    assert entry.request_id == "req-123"


@pytest.mark.anyio
async def test_blank_actor_is_recorded_as_system(trail):
    entry = await trail.log(AuditEntityType.DEPLOYMENT, "dep-1", "CREATE", None, "Pending", "")
    assert entry.user_id == "system"


@pytest.mark.anyio
async def test_entity_id_is_required(trail):
    with pytest.raises(ValueError):
        await trail.log(AuditEntityType.DEPLOYMENT, "", "CREATE", None, None, "alice")


@pytest.mark.parametrize(
    ("key", "expected"),
    [
        ("password", True),
        ("stripe.api_key", True),
        ("github_token", True),
        ("DB_PASSWORD", True),
        ("db.timeout", False),
        ("keyboard_layout", False),
    ],
)
def test_is_sensitive_key(key, expected):
    assert is_sensitive_key(key) is expected
