"""
Tests for the platform adapters — the in-memory mock and the HTTP client.

The HTTP client is tested with urlopen patched out; no network access.
"""

import http.client
import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from vapi_gitops.adapters import MockPlatformClient, TransportError, VapiClient
from vapi_gitops.core.models.resource import ResourceType


def _response(body) -> MagicMock:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode()
    resp = MagicMock()
    resp.__enter__.return_value.read.return_value = raw
    return resp


def _http_error(code: int, body: str = "") -> urllib.error.HTTPError:
    return urllib.error.HTTPError(
        "https://api.test/x", code, "error", {}, io.BytesIO(body.encode())
    )


@pytest.fixture
def vapi() -> VapiClient:
    return VapiClient("secret", base_url="https://api.test/", request_interval=0, initial_delay=1.0)


# ── Mock ────────────────────────────────────────────────────────────


class TestMockPlatformClient:
    def test_create_assigns_uuid(self, client):
        doc = client.create(ResourceType.TOOLS, {"type": "function"})

        assert doc["id"]
        assert doc["orgId"] == "mock-org"
        assert client.stored(ResourceType.TOOLS, doc["id"])["type"] == "function"

    def test_update_is_shallow_merge(self, client):
        uuid = client.create(ResourceType.ASSISTANTS, {"name": "a", "model": {"x": 1}})["id"]

        client.update(ResourceType.ASSISTANTS, uuid, {"model": {"y": 2}})

        assert client.stored(ResourceType.ASSISTANTS, uuid) == {
            "id": uuid,
            "orgId": "mock-org",
            "name": "a",
            "model": {"y": 2},
        }

    def test_update_unknown_uuid_upserts(self, client):
        client.update(ResourceType.TOOLS, "u-1", {"type": "function"})
        assert client.stored(ResourceType.TOOLS, "u-1")["type"] == "function"

    def test_delete_and_list(self, client):
        keep = client.create(ResourceType.TOOLS, {})["id"]
        gone = client.create(ResourceType.TOOLS, {})["id"]

        client.delete(ResourceType.TOOLS, gone)

        assert [d["id"] for d in client.list_resources(ResourceType.TOOLS)] == [keep]

    def test_call_log(self, client):
        client.create(ResourceType.TOOLS, {"a": 1})
        client.list_resources(ResourceType.SQUADS)

        assert [c.method for c in client.call_log] == ["POST", "GET"]
        assert client.calls("GET")[0].resource_type is ResourceType.SQUADS

    def test_payload_copied(self, client):
        payload = {"nested": {"v": 1}}
        doc = client.create(ResourceType.TOOLS, payload)
        payload["nested"]["v"] = 2
        assert client.stored(ResourceType.TOOLS, doc["id"])["nested"] == {"v": 1}

    def test_seed_bypasses_log(self, client):
        uuid = client.seed(ResourceType.TOOLS, {"id": "u-seed", "name": "builtin"})
        assert uuid == "u-seed"
        assert client.call_count == 0
        assert "orgId" not in client.stored(ResourceType.TOOLS, uuid)

    def test_failure_injection(self, client):
        client.set_failure("POST", ResourceType.TOOLS, name="broken", status=400, body="bad")

        client.create(ResourceType.TOOLS, {"name": "fine"})
        with pytest.raises(TransportError) as exc_info:
            client.create(ResourceType.TOOLS, {"name": "broken"})

        assert exc_info.value.status == 400
        assert exc_info.value.endpoint == "/tool"
        assert "bad" in str(exc_info.value)
        assert client.call_count == 2

    def test_reset_keeps_store(self, client):
        uuid = client.create(ResourceType.TOOLS, {})["id"]
        client.set_failure("DELETE")
        client.reset()

        client.delete(ResourceType.TOOLS, uuid)

        assert client.calls() == [client.call_log[0]]
        assert client.stored(ResourceType.TOOLS, uuid) is None

    def test_repr(self, client):
        assert repr(client) == "<MockPlatformClient name='mock'>"


# ── HTTP client ─────────────────────────────────────────────────────


class TestVapiClient:
    """Tests for VapiClient request handling."""

    def test_create_sends_json_with_token(self, vapi):
        with patch("urllib.request.urlopen", return_value=_response({"id": "u1"})) as urlopen:
            doc = vapi.create(ResourceType.TOOLS, {"type": "function"})

        assert doc == {"id": "u1"}
        req = urlopen.call_args[0][0]
        assert req.full_url == "https://api.test/tool"
        assert req.get_method() == "POST"
        assert req.get_header("Authorization") == "Bearer secret"
        assert json.loads(req.data) == {"type": "function"}

    def test_create_without_id_fails(self, vapi):
        with patch("urllib.request.urlopen", return_value=_response({"ok": True})):
            with pytest.raises(TransportError, match="no id"):
                vapi.create(ResourceType.TOOLS, {})

    def test_update_patches_uuid(self, vapi):
        with patch("urllib.request.urlopen", return_value=_response(b"")) as urlopen:
            vapi.update(ResourceType.SIMULATION_SUITES, "u9", {"name": "n"})

        req = urlopen.call_args[0][0]
        assert req.get_method() == "PATCH"
        assert req.full_url == "https://api.test/eval/simulation/suite/u9"

    def test_http_error_raises(self, vapi):
        with patch("urllib.request.urlopen", side_effect=_http_error(400, '{"message":"bad"}')):
            with pytest.raises(TransportError) as exc_info:
                vapi.update(ResourceType.TOOLS, "u1", {})

        assert exc_info.value.status == 400
        assert exc_info.value.method == "PATCH"
        assert exc_info.value.body == '{"message":"bad"}'

    def test_network_error_raises(self, vapi):
        with patch("urllib.request.urlopen", side_effect=urllib.error.URLError("refused")):
            with pytest.raises(TransportError) as exc_info:
                vapi.list_resources(ResourceType.TOOLS)
        assert exc_info.value.status == 0
        assert "refused" in exc_info.value.body

    @pytest.mark.parametrize(
        "error",
        [
            http.client.RemoteDisconnected("closed"),
            ConnectionResetError("reset by peer"),
            TimeoutError("timed out"),
        ],
    )
    def test_connection_failure_raises_transport_error(self, vapi, error):
        with patch("urllib.request.urlopen", side_effect=error):
            with pytest.raises(TransportError) as exc_info:
                vapi.request("GET", "/tool")
        assert exc_info.value.status == 0
        assert exc_info.value.method == "GET"
        assert exc_info.value.__cause__ is error

    def test_429_retried_with_backoff(self, vapi):
        responses = [_http_error(429), _http_error(429), _response([{"id": "u1"}])]
        with (
            patch("urllib.request.urlopen", side_effect=responses),
            patch("vapi_gitops.adapters.vapi_client.time.sleep") as sleep,
        ):
            items = vapi.list_resources(ResourceType.TOOLS)

        assert items == [{"id": "u1"}]
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_429_retries_exhausted(self):
        vapi = VapiClient("t", request_interval=0, max_retries=1, initial_delay=0.5)
        with (
            patch("urllib.request.urlopen", side_effect=[_http_error(429), _http_error(429)]),
            patch("vapi_gitops.adapters.vapi_client.time.sleep"),
        ):
            with pytest.raises(TransportError) as exc_info:
                vapi.delete(ResourceType.TOOLS, "u1")
        assert exc_info.value.status == 429

    def test_delete_404_is_success(self, vapi):
        with patch("urllib.request.urlopen", side_effect=_http_error(404, "not found")):
            vapi.delete(ResourceType.TOOLS, "u1")

    def test_delete_other_error_raises(self, vapi):
        with patch("urllib.request.urlopen", side_effect=_http_error(500)):
            with pytest.raises(TransportError):
                vapi.delete(ResourceType.TOOLS, "u1")

    @pytest.mark.parametrize("key", ["results", "data", "items"])
    def test_list_unwraps_envelope(self, vapi, key):
        with patch("urllib.request.urlopen", return_value=_response({key: [{"id": "u1"}]})):
            assert vapi.list_resources(ResourceType.SCENARIOS) == [{"id": "u1"}]

    def test_list_unexpected_shape(self, vapi):
        with patch("urllib.request.urlopen", return_value=_response({"total": 3})):
            with pytest.raises(TransportError, match="unexpected list response"):
                vapi.list_resources(ResourceType.TOOLS)

    def test_throttle_spaces_requests(self):
        vapi = VapiClient("t", request_interval=10.0)
        with (
            patch("urllib.request.urlopen", return_value=_response([])),
            patch("vapi_gitops.adapters.vapi_client.time.sleep") as sleep,
        ):
            vapi.list_resources(ResourceType.TOOLS)
            vapi.list_resources(ResourceType.TOOLS)

        assert sleep.call_count == 1
        assert 0 < sleep.call_args.args[0] <= 10.0
