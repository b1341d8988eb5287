"""Tests for the FastAPI API endpoints."""

import pytest
from fastapi.testclient import TestClient

from crx_reconciler.api.app import create_app
from crx_reconciler.errors import AuthenticationError
from crx_reconciler.models.package import PackageRecord
from crx_reconciler.models.responses import ExecResponse
from crx_reconciler.reconciler.loop import Reconciler
from fakes import FakePackageAPI, FakeProbe, bundle_payload, installer_payload


def _converge_body(ensure: str, **overrides) -> dict:
    body = {
        "group": "acme",
        "name": "site",
        "version": "1.0",
        "ensure": ensure,
        "username": "admin",
        "password": "admin",
        "retries": 1,
        "retry_timeout": 1,
        "stabilization_time": 0,
    }
    body.update(overrides)
    return body


@pytest.fixture
def runtime():
    """The fake package manager and probe behind the API."""
    return FakePackageAPI(), FakeProbe()


@pytest.fixture
def client(runtime, settings, sleep):
    """Create a test client wired to the fake runtime."""
    api, probe = runtime
    reconciler = Reconciler(
        settings=settings,
        api_factory=lambda req: api,
        probe_factory=lambda req: probe,
        sleep=sleep,
    )
    return TestClient(create_app(reconciler=reconciler))


class TestConvergeEndpoint:
    def test_converge_upload(self, client, runtime, tmp_path):
        source = tmp_path / "site-1.0.zip"
        source.write_bytes(b"PK\x03\x04")

        response = client.post(
            "/packages/converge", json=_converge_body("present", source=str(source))
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ensure"] == "present"
        assert data["actions"] == ["upload"]
        assert data["changed"] is True
        assert data["observation"]["version"] == "1.0"

    def test_converge_noop(self, client, runtime):
        response = client.post("/packages/converge", json=_converge_body("purged"))
        assert response.status_code == 200
        assert response.json()["ensure"] == "purged"
        assert response.json()["changed"] is False

    def test_invalid_ensure_is_422(self, client):
        response = client.post("/packages/converge", json=_converge_body("latest"))
        assert response.status_code == 422

    def test_missing_source_is_400(self, client):
        response = client.post("/packages/converge", json=_converge_body("installed"))
        assert response.status_code == 400

    def test_failed_action_is_409_with_remote_message(self, client, runtime):
        api, _ = runtime
        api.records = [PackageRecord(name="site", group="acme", version="1.0")]
        api.exec_responses["delete"] = ExecResponse(success=False, msg="Package locked")

        response = client.post("/packages/converge", json=_converge_body("absent"))

        assert response.status_code == 409
        assert response.json()["detail"] == "Package locked"

    def test_unstable_runtime_is_503(self, client, runtime):
        _, probe = runtime
        probe.cycles = [(installer_payload(count=2), bundle_payload())] * 5

        response = client.post("/packages/converge", json=_converge_body("absent"))

        assert response.status_code == 503
        assert "ActiveResourceCount: 2" in response.json()["detail"]

    def test_authentication_failure_is_401(self, client, runtime):
        api, _ = runtime

        def refuse(path, include_versions=True):
            raise AuthenticationError("Package list refused credentials (HTTP 401)")

        api.list = refuse
        response = client.post("/packages/converge", json=_converge_body("absent"))
        assert response.status_code == 401


class TestObserveEndpoint:
    def test_observe(self, client, runtime):
        api, _ = runtime
        api.records = [
            PackageRecord(name="site", group="acme", version="1.0", last_unpacked=1700000000000),
        ]

        body = _converge_body("absent")
        del body["ensure"]
        response = client.post("/packages/observe", json=body)

        assert response.status_code == 200
        assert response.json()["state"] == "installed"
        assert response.json()["version"] == "1.0"
        assert api.actions == []

    def test_observe_missing_package(self, client):
        body = {"group": "acme", "name": "site", "version": "2.0", "stabilization_time": 0}
        response = client.post("/packages/observe", json=body)
        assert response.status_code == 200
        assert response.json()["state"] == "absent"

    def test_observe_requires_identity(self, client):
        response = client.post("/packages/observe", json={"group": "acme", "name": "site"})
        assert response.status_code == 422


class TestPlanEndpoint:
    def test_plan(self, client):
        response = client.post("/packages/plan", json={"desired": "purged", "observed": "installed"})
        assert response.status_code == 200
        assert response.json()["actions"] == ["uninstall", "delete"]

    def test_plan_noop(self, client):
        response = client.post("/packages/plan", json={"desired": "present", "observed": "installed"})
        assert response.json()["actions"] == []

    def test_plan_unknown_state(self, client):
        response = client.post("/packages/plan", json={"desired": "latest", "observed": "absent"})
        assert response.status_code == 400


class TestSettingsEndpoint:
    def test_settings(self, client):
        response = client.get("/settings")
        assert response.status_code == 200
        data = response.json()
        assert data["base_url"] == "http://localhost:4502"
        assert data["settle_seconds"] == 10
