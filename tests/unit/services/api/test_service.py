"""Unit tests for services.api.service module.

Tests:
- Api service initialization and manager ownership
- FastAPI endpoints via TestClient
- Error mapping for /troubleshoot (422, 429, 503, 500)
- Run cycle metrics and server task monitoring
"""

import asyncio
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from hostprobe.core.exceptions import CooldownError, ShutdownError
from hostprobe.models.constants import ServiceName
from hostprobe.models.host import Host
from hostprobe.rhp.results import AggregateResult, ProtocolTestResult
from hostprobe.services.api.service import Api


HOST_KEY = "ed25519:" + "ab" * 32
HOST_BODY = {
    "publicKey": HOST_KEY,
    "rhp4NetAddresses": [{"address": "h.example:9984", "protocol": "quic"}],
}


# ============================================================================
# Api Service Tests
# ============================================================================


class TestApi:
    """Tests for Api service class."""

    def test_service_name(self) -> None:
        assert Api.SERVICE_NAME == ServiceName.API

    def test_init(self, api_service: Api, mock_manager: MagicMock) -> None:
        assert api_service._requests_total == 0
        assert api_service._requests_failed == 0
        assert api_service._server_task is None
        assert api_service.manager is mock_manager

    def test_owns_manager_when_not_given(self) -> None:
        service = Api()
        assert service._owns_manager
        assert service.manager.config.cooldown == 10.0

    def test_state(self, api_service: Api) -> None:
        with patch("hostprobe.services.api.service._get_version", return_value="0.1.0"):
            state = api_service.state()
        assert state["version"] == "0.1.0"
        assert set(state) == {"version", "os", "pythonVersion", "startedAt"}


# ============================================================================
# Endpoint Tests
# ============================================================================


class TestApiEndpoints:
    """Tests for the HTTP routes."""

    def test_health(self, test_client: TestClient) -> None:
        resp = test_client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_state(self, test_client: TestClient) -> None:
        with patch("hostprobe.services.api.service._get_version", return_value="0.1.0"):
            resp = test_client.get("/state")
        assert resp.status_code == 200
        assert resp.json()["version"] == "0.1.0"

    def test_troubleshoot(self, test_client: TestClient, mock_manager: MagicMock) -> None:
        mock_manager.test_host.return_value = AggregateResult(
            public_key=HOST_KEY,
            version="v1.6.0",
            rhp4=[ProtocolTestResult(variant="quic", address="h.example:9984")],
        )
        resp = test_client.post("/troubleshoot", json=HOST_BODY)

        assert resp.status_code == 200
        body = resp.json()
        assert body["publicKey"] == HOST_KEY
        assert body["version"] == "v1.6.0"
        assert body["rhp4"][0]["variant"] == "quic"
        assert "rhp2" not in body

        host, = mock_manager.test_host.await_args.args
        assert isinstance(host, Host)
        assert host.rhp4_net_addresses[0].protocol == "quic"
        assert mock_manager.test_host.await_args.kwargs == {"timeout": 12.0}

    def test_non_json_body(self, test_client: TestClient, mock_manager: MagicMock) -> None:
        resp = test_client.post(
            "/troubleshoot", content=b"not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 422
        assert resp.json() == {"error": "request body must be JSON"}
        mock_manager.test_host.assert_not_called()

    def test_non_object_body(self, test_client: TestClient) -> None:
        resp = test_client.post("/troubleshoot", json=[HOST_BODY])
        assert resp.status_code == 422
        assert resp.json() == {"error": "request body must be an object"}

    @pytest.mark.parametrize(
        "body",
        [
            {"publicKey": "not-a-key"},
            {"publicKey": HOST_KEY, "rhp4NetAddresses": "h.example:9984"},
            {"publicKey": HOST_KEY, "rhp4NetAddresses": ["h.example:9984"]},
        ],
    )
    def test_invalid_host(
        self, test_client: TestClient, mock_manager: MagicMock, body: dict
    ) -> None:
        resp = test_client.post("/troubleshoot", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"].startswith("invalid host:")
        mock_manager.test_host.assert_not_called()

    def test_cooldown(self, test_client: TestClient, mock_manager: MagicMock) -> None:
        mock_manager.test_host.side_effect = CooldownError(4.2)
        resp = test_client.post("/troubleshoot", json=HOST_BODY)
        assert resp.status_code == 429
        assert resp.json()["retryAfter"] == 5
        assert resp.headers["Retry-After"] == "5"
        assert "cooldown" in resp.json()["error"]

    def test_cooldown_retry_after_at_least_one(
        self, test_client: TestClient, mock_manager: MagicMock
    ) -> None:
        mock_manager.test_host.side_effect = CooldownError(0.01)
        resp = test_client.post("/troubleshoot", json=HOST_BODY)
        assert resp.json()["retryAfter"] == 1

    def test_shutting_down(self, test_client: TestClient, mock_manager: MagicMock) -> None:
        mock_manager.test_host.side_effect = ShutdownError("manager is shutting down")
        resp = test_client.post("/troubleshoot", json=HOST_BODY)
        assert resp.status_code == 503
        assert resp.json() == {"error": "manager is shutting down"}

    def test_unhandled_exception_returns_json_500(
        self, test_client: TestClient, mock_manager: MagicMock
    ) -> None:
        mock_manager.test_host.side_effect = RuntimeError("boom")
        resp = test_client.post("/troubleshoot", json=HOST_BODY)
        assert resp.status_code == 500
        assert resp.json()["error"] == "Internal server error"

    def test_request_counters(self, test_client: TestClient, api_service: Api) -> None:
        test_client.get("/health")
        test_client.post("/troubleshoot", json=[])
        assert api_service._requests_total == 2
        assert api_service._requests_failed == 1
        assert api_service._hosts_tested == 0


# ============================================================================
# Run Cycle Tests
# ============================================================================


class TestApiRun:
    """Tests for Api.run() cycle."""

    async def test_run_reports_metrics(self, api_service: Api) -> None:
        api_service._requests_total = 42
        api_service._requests_failed = 3
        api_service._hosts_tested = 7

        with patch.object(api_service, "inc_counter") as mock_counter:
            await api_service.run()

        mock_counter.assert_any_call("requests_total", 42)
        mock_counter.assert_any_call("requests_failed", 3)
        mock_counter.assert_any_call("hosts_tested", 7)

    async def test_run_resets_counters(self, api_service: Api) -> None:
        api_service._requests_total = 10
        api_service._requests_failed = 2

        with patch.object(api_service, "inc_counter"):
            await api_service.run()

        assert api_service._requests_total == 0
        assert api_service._requests_failed == 0

    async def test_run_detects_crashed_server_task(self, api_service: Api) -> None:
        failed_task = MagicMock(spec=asyncio.Task)
        failed_task.done.return_value = True
        failed_task.cancelled.return_value = False
        failed_task.exception.return_value = OSError("bind failed")
        api_service._server_task = failed_task

        with pytest.raises(RuntimeError, match="HTTP server task has stopped unexpectedly"):
            await api_service.run()

    async def test_borrowed_manager_not_started(
        self, api_service: Api, mock_manager: MagicMock
    ) -> None:
        with patch.object(
            api_service, "_run_server", side_effect=lambda app: asyncio.sleep(3600)
        ):
            async with api_service:
                pass
        mock_manager.start.assert_not_called()
        mock_manager.shutdown.assert_not_called()
