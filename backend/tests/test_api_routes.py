CONFIG_PAYLOAD = {
    "key": "max_upload_mb",
    "value": "10",
    "environment": "prod",
    "application": "api",
    "validation_rule": {"rule_type": "number", "min_value": "1", "max_value": "100"},
}
ACTOR = {"X-Actor-Id": "alice"}


def _create_config(client, **overrides):
    payload = {**CONFIG_PAYLOAD, **overrides}
    response = client.post("/v1/configurations", json=payload, headers=ACTOR)
    assert response.status_code == 201, response.text
    return response.json()


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readyz_with_memory_backend(client):
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.json()["store_backend"] == "memory"


def test_configuration_lifecycle(client):
    created = _create_config(client)
    assert created["version"] == 1
    assert created["created_by"] == "alice"

    rejected = client.patch(f"/v1/configurations/{created['id']}", json={"value": "500"}, headers=ACTOR)
    assert rejected.status_code == 422
    body = rejected.json()
    assert body["title"] == "Validation Error"
    assert body["errors"]

    updated = client.patch(f"/v1/configurations/{created['id']}", json={"value": "20"}, headers=ACTOR)
    assert updated.status_code == 200
    assert updated.json()["version"] == 2

    by_key = client.get(
        "/v1/configurations/by-key/max_upload_mb",
        params={"environment": "prod", "application": "api"},
    )
    assert by_key.status_code == 200
    assert by_key.json()["value"] == "20"

    listed = client.get("/v1/configurations", params={"environment": "prod", "application": "api"})
    assert [item["key"] for item in listed.json()["items"]] == ["max_upload_mb"]

    deleted = client.delete(f"/v1/configurations/{created['id']}", headers=ACTOR)
    assert deleted.status_code == 204
    missing = client.get(f"/v1/configurations/{created['id']}")
    assert missing.status_code == 404
    assert missing.headers["content-type"].startswith("application/problem+json")


def test_duplicate_configuration_conflicts(client):
    _create_config(client)
    response = client.post("/v1/configurations", json=CONFIG_PAYLOAD, headers=ACTOR)
    assert response.status_code == 409


def test_missing_key_is_not_found(client):
    response = client.get(
        "/v1/configurations/by-key/unknown", params={"environment": "prod", "application": "api"}
    )
    assert response.status_code == 404
    assert response.json()["type"].endswith("/not-found")


def test_request_validation_uses_problem_details(client):
    response = client.post("/v1/configurations", json={"key": "x"}, headers=ACTOR)
    assert response.status_code == 422
    fields = {error["field"] for error in response.json()["errors"]}
    assert {"value", "environment", "application"} <= fields


def test_validate_endpoints(client):
    created = _create_config(client)

    single = client.post(f"/v1/configurations/{created['id']}/validate", json={"value": "abc"})
    assert single.status_code == 200
    assert single.json()["is_valid"] is False

    batch = client.post(
        "/v1/configurations/validate",
        json={"items": [CONFIG_PAYLOAD, CONFIG_PAYLOAD]},
    )
    assert batch.status_code == 200
    assert batch.json()["is_valid"] is False
    assert all("Duplicate configuration key: max_upload_mb" in item["errors"] for item in batch.json()["items"])


def test_feature_flag_endpoints(client):
    created = client.post(
        "/v1/feature-flags",
        json={
            "name": "beta_ui",
            "environment": "prod",
            "application": "web",
            "is_enabled": True,
            "rules": [{"attribute": "country", "operator": "equals", "value": "CA"}],
        },
        headers=ACTOR,
    )
    assert created.status_code == 201
    flag = created.json()

    plain = client.get(
        "/v1/feature-flags/beta_ui/enabled", params={"environment": "prod", "application": "web"}
    )
    assert plain.json()["enabled"] is True

    with_context = client.post(
        "/v1/feature-flags/beta_ui/enabled",
        json={"environment": "prod", "application": "web", "context": {"country": "US"}},
    )
    assert with_context.json()["enabled"] is False

    evaluation = client.post(f"/v1/feature-flags/{flag['id']}/evaluate", json={"country": "CA"})
    assert evaluation.status_code == 200
    assert evaluation.json()[0]["matched"] is True

    toggled = client.post(f"/v1/feature-flags/{flag['id']}/toggle", headers=ACTOR)
    assert toggled.json()["is_enabled"] is False

    unknown = client.get(
        "/v1/feature-flags/nope/enabled", params={"environment": "prod", "application": "web"}
    )
    assert unknown.status_code == 200
    assert unknown.json()["enabled"] is False


def test_deployment_partial_failure_and_rollback(client):
    rate_limit = _create_config(client, key="rate_limit", value="100", validation_rule=None)
    created = client.post(
        "/v1/deployments",
        json={
            "name": "release-42",
            "environment": "prod",
            "application": "api",
            "items": [
                {"configuration_id": rate_limit["id"], "action": "UPDATE", "new_value": "200"},
                {"configuration_id": "missing_key", "action": "UPDATE", "new_value": "1"},
            ],
        },
        headers=ACTOR,
    )
    assert created.status_code == 201
    deployment_id = created.json()["id"]

    executed = client.post(f"/v1/deployments/{deployment_id}/execute", headers=ACTOR)
    assert executed.status_code == 200
    assert executed.json()["status"] == "Failed"
    assert [item["status"] for item in executed.json()["items"]] == ["Completed", "Failed"]

    again = client.post(f"/v1/deployments/{deployment_id}/execute", headers=ACTOR)
    assert again.status_code == 409

    items = client.get(f"/v1/deployments/{deployment_id}/items")
    assert items.json()["items"][1]["error_message"] == "Configuration not found"

    rolled_back = client.post(
        f"/v1/deployments/{deployment_id}/rollback", json={"reason": "bad release"}, headers=ACTOR
    )
    assert rolled_back.status_code == 200
    assert rolled_back.json()["status"] == "RolledBack"

    current = client.get(f"/v1/configurations/{rate_limit['id']}")
    assert current.json()["value"] == "100"

    status = client.get(f"/v1/deployments/{deployment_id}/status")
    assert status.json() == {"id": deployment_id, "status": "RolledBack"}


def test_status_of_unknown_deployment_is_pending(client):
    response = client.get("/v1/deployments/unknown/status")
    assert response.status_code == 200
    assert response.json()["status"] == "Pending"


def test_snapshot_endpoints(client):
    created = _create_config(client)
    snapshot = client.post(
        "/v1/configurations/snapshots",
        json={"name": "before", "environment": "prod", "application": "api"},
        headers=ACTOR,
    )
    assert snapshot.status_code == 201
    snapshot_id = snapshot.json()["id"]

    client.patch(f"/v1/configurations/{created['id']}", json={"value": "50"}, headers=ACTOR)

    listed = client.get(
        "/v1/configurations/snapshots", params={"environment": "prod", "application": "api"}
    )
    assert listed.json()["items"][0]["configuration_count"] == 1

    restored = client.post(f"/v1/configurations/snapshots/{snapshot_id}/restore", headers=ACTOR)
    assert restored.status_code == 200
    assert restored.json()["restored"] == ["max_upload_mb"]
    assert client.get(f"/v1/configurations/{created['id']}").json()["value"] == "10"


def test_audit_endpoints(client):
    created = _create_config(client)
    client.patch(
        f"/v1/configurations/{created['id']}",
        json={"value": "20"},
        headers={**ACTOR, "X-Request-ID": "req-42"},
    )

    history = client.get(f"/v1/audit/configurations/{created['id']}")
    assert history.status_code == 200
    entries = history.json()["items"]
    assert [entry["action"] for entry in entries] == ["UPDATE", "CREATE"]
    assert entries[0]["request_id"] == "req-42"
    assert entries[0]["user_id"] == "alice"

    filtered = client.get("/v1/audit", params={"entity_type": "Configuration", "action": "CREATE"})
    assert [entry["entity_id"] for entry in filtered.json()["items"]] == [created["id"]]

    paged = client.get("/v1/audit", params={"limit": 1})
    assert paged.json()["limit"] == 1
    assert len(paged.json()["items"]) == 1


def test_request_id_is_echoed(client):
    response = client.get("/healthz", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"
