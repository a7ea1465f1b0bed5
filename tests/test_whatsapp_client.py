import json
from types import SimpleNamespace
from unittest.mock import patch

import httpx
import pytest

from safetatt.services.marketing import send_mass_message
from safetatt.services.whatsapp_client import (
    WhatsAppGateway,
    WhatsAppGatewayError,
    clean_number,
    provision_instance,
    sanitize_instance_name,
)

BASE_URL = "https://gateway.test"


def _gateway(handler):
    return WhatsAppGateway(BASE_URL, "'global-key'", transport=httpx.MockTransport(handler))


@pytest.mark.whatsapp
class TestHelpers:
    def test_instance_name_is_sanitized(self):
        assert sanitize_instance_name("  Estúdio  Tinta & Cia ") == "estúdio_tinta__cia"

    def test_numbers_are_digits_only(self):
        assert clean_number("+55 (11) 99999-0000") == "5511999990000"

    def test_quoted_key_is_stripped(self):
        gateway = WhatsAppGateway(BASE_URL + "/", "\"abc\"")

        assert gateway.api_key == "abc"
        assert gateway.base_url == BASE_URL


@pytest.mark.whatsapp
class TestCreateInstance:
    def test_reads_id_and_hash(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["apikey"] = request.headers["apikey"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201, json={"instance": {"instanceId": "abc-123"}, "hash": "tok-xyz"}
            )

        result = _gateway(handler).create_instance("estudio")

        assert result == {"instance_id": "abc-123", "token": "tok-xyz"}
        assert seen == {
            "path": "/instance/create",
            "apikey": "global-key",
            "body": {"instanceName": "estudio", "qrcode": True},
        }

    def test_hash_object_form(self):
        def handler(request):
            return httpx.Response(200, json={"instance": {"id": 9}, "hash": {"apikey": "k"}})

        assert _gateway(handler).create_instance("estudio") == {"instance_id": "9", "token": "k"}

    def test_missing_token_raises(self):
        def handler(request):
            return httpx.Response(200, json={"instance": {"instanceId": "abc"}})

        with pytest.raises(WhatsAppGatewayError):
            _gateway(handler).create_instance("estudio")

    def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(403, text="forbidden")

        with pytest.raises(WhatsAppGatewayError):
            _gateway(handler).create_instance("estudio")


@pytest.mark.whatsapp
class TestConnect:
    def test_conflict_means_already_connected(self):
        gateway = _gateway(lambda request: httpx.Response(409))

        assert gateway.connect_instance("estudio", "tok") == {"status": "CONNECTED"}

    def test_qr_code_means_waiting_for_pairing(self):
        def handler(request):
            assert request.headers["Authorization"] == "Bearer tok"
            return httpx.Response(200, json={"base64": "data:image/png;base64,AAA", "pairingCode": "WZYE-H1YY"})

        result = _gateway(handler).connect_instance("estudio", "tok")

        assert result["status"] == "DISCONNECTED"
        assert result["qr_code"].startswith("data:image/png")
        assert result["pairing_code"] == "WZYE-H1YY"

    def test_open_state(self):
        gateway = _gateway(lambda request: httpx.Response(200, json={"instance": {"state": "open"}}))

        assert gateway.connect_instance("estudio", "tok")["status"] == "CONNECTED"

    def test_non_json_reply_means_still_connecting(self):
        gateway = _gateway(lambda request: httpx.Response(200, text="<html>busy</html>"))

        assert gateway.connect_instance("estudio", "tok") == {"status": "CONNECTING"}

    def test_transport_error_is_reported_as_disconnected(self):
        def handler(request):
            raise httpx.ConnectError("down")

        assert _gateway(handler).connect_instance("estudio", "tok")["status"] == "DISCONNECTED"

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"instance": {"state": "open"}}, "open"),
            ({"instance": {"state": "close"}}, "close"),
            ({"instance": {"state": "weird"}}, "unknown"),
            ({}, "unknown"),
        ],
    )
    def test_connection_state(self, payload, expected):
        gateway = _gateway(lambda request: httpx.Response(200, json=payload))

        assert gateway.get_connection_state("estudio", "tok") == expected


@pytest.mark.whatsapp
class TestSendText:
    def test_payload_shape(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"key": {"id": "MSG1"}})

        result = _gateway(handler).send_text("estudio", "tok", "(11) 99999-0000", "Oi")

        assert result == {"success": True, "message_id": "MSG1"}
        assert seen["path"] == "/message/sendText/estudio"
        assert seen["body"] == {
            "number": "11999990000",
            "textMessage": {"text": "Oi"},
            "options": {"delay": 1200, "presence": "composing"},
        }

    def test_rejected_message(self):
        gateway = _gateway(lambda request: httpx.Response(400, text="bad number"))

        result = gateway.send_text("estudio", "tok", "1", "Oi")

        assert result == {"success": False, "error": "bad number"}

    @pytest.mark.parametrize("body", ["OK", ""])
    def test_plain_text_reply_counts_as_sent(self, body):
        gateway = _gateway(lambda request: httpx.Response(200, text=body))

        result = gateway.send_text("estudio", "tok", "1", "Oi")

        assert result == {"success": True, "message_id": None}

    def test_mass_send_survives_plain_text_replies(self):
        gateway = _gateway(lambda request: httpx.Response(200, text="OK"))
        studio = SimpleNamespace(whatsapp_instance_name="estudio", whatsapp_token="tok")
        recipients = [{"name": "Ana", "phone": "1"}, {"name": "Bia", "phone": "2"}]

        result = send_mass_message(studio, recipients, "Oi", gateway, sleep=lambda _: None)

        assert result == {"success": True, "sent_count": 2, "failed_count": 0}

    def test_logout(self):
        def handler(request):
            assert request.method == "DELETE"
            return httpx.Response(200, json={})

        assert _gateway(handler).logout_instance("estudio", "tok") == {"success": True}


@pytest.mark.whatsapp
class TestProvisioning:
    def test_credentials_are_stored_on_studio(self, db, studio):
        def handler(request):
            return httpx.Response(201, json={"instance": {"instanceId": "id-1"}, "hash": "tok-1"})

        result = provision_instance(studio, _gateway(handler))

        assert result == {"success": True, "instance_name": "estúdio_tinta_fina"}
        assert studio.whatsapp_instance_id == "id-1"
        assert studio.whatsapp_token == "tok-1"
        assert studio.whatsapp_status == "connecting"

    def test_gateway_failure_leaves_studio_untouched(self, db, studio):
        result = provision_instance(studio, _gateway(lambda request: httpx.Response(500)))

        assert result["success"] is False
        assert studio.whatsapp_token is None

    def test_provision_endpoint(self, client, studio, auth_headers):
        def handler(request):
            return httpx.Response(201, json={"instance": {"instanceId": "id-1"}, "hash": "tok-1"})

        with patch("safetatt.api.whatsapp.whatsapp.get_gateway", return_value=_gateway(handler)):
            response = client.post(
                f"/api/whatsapp/studios/{studio.id}/provision", headers=auth_headers
            )

        assert response.status_code == 201

    def test_state_requires_provisioned_instance(self, client, studio, auth_headers):
        response = client.get(f"/api/whatsapp/studios/{studio.id}/state", headers=auth_headers)

        assert response.status_code == 400
