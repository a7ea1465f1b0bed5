"""
WhatsApp gateway client
Thin wrapper over the gateway HTTP API used for studio instances and campaign sends
"""

import logging
import re
from typing import Dict, Optional

import httpx
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db

logger = logging.getLogger(__name__)

CONNECTION_STATES = ("open", "close", "connecting")


class WhatsAppGatewayError(Exception):
    """Raised when the gateway refuses to provision an instance."""


def _mask(secret: Optional[str]) -> str:
    return f"{secret[:5]}..." if secret else "<empty>"


def _json_body(response: httpx.Response) -> Dict:
    """The reply as a JSON object; {} when the gateway answers with anything else."""
    try:
        data = response.json()
    except ValueError:
        logger.warning(f"Non-JSON reply from {response.request.url}: {response.text[:80]!r}")
        return {}
    return data if isinstance(data, dict) else {}


def sanitize_instance_name(name: str) -> str:
    """Studio name -> gateway-safe instance name (lowercase, underscores, no symbols)."""
    cleaned = re.sub(r"\s+", "_", (name or "").strip().lower())
    return re.sub(r"[^\w-]", "", cleaned)


def clean_number(number: str) -> str:
    return re.sub(r"\D", "", number or "")


class WhatsAppGateway:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        # Keys pasted into .env files often carry quotes
        self.api_key = (api_key or "").strip().strip("'\"")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config=None, transport=None):
        config = config or current_app.config
        return cls(
            config.get("WHATSAPP_API_URL", ""),
            config.get("WHATSAPP_GLOBAL_KEY", ""),
            timeout=config.get("WHATSAPP_TIMEOUT_SECONDS", 15.0),
            transport=transport,
        )

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {token or self.api_key}"
        return headers

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    def create_instance(self, instance_name: str) -> Dict[str, str]:
        """Returns {"instance_id", "token"}; raises WhatsAppGatewayError otherwise."""
        logger.info(
            f"Creating WhatsApp instance {instance_name} (apikey={_mask(self.api_key)})"
        )
        try:
            with self._client() as client:
                response = client.post(
                    "/instance/create",
                    headers=self._headers(),
                    json={"instanceName": instance_name, "qrcode": True},
                )
                response.raise_for_status()
                data = _json_body(response)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Gateway rejected instance {instance_name}: "
                f"{e.response.status_code} {e.response.text}"
            )
            raise WhatsAppGatewayError(
                f"Gateway returned {e.response.status_code} creating instance"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Gateway unreachable creating instance {instance_name}: {e}")
            raise WhatsAppGatewayError(str(e)) from e

        instance = data.get("instance") or {}
        instance_id = (
            instance.get("instanceId") or instance.get("id") or data.get("instanceId")
        )
        token = data.get("hash") or data.get("token")
        if isinstance(token, dict):
            token = token.get("token") or token.get("apikey")
        if not instance_id or not token:
            raise WhatsAppGatewayError(
                "Invalid response from WhatsApp API: Missing instanceId or token"
            )
        return {"instance_id": str(instance_id), "token": token}

    def connect_instance(self, instance_name: str, token: str) -> Dict:
        """
        Asks the gateway for a QR code (or pairing code).
        A 409 means the number is already paired.
        """
        try:
            with self._client() as client:
                response = client.get(
                    f"/instance/connect/{instance_name}", headers=self._headers(token)
                )
                if response.status_code == 409:
                    return {"status": "CONNECTED"}
                response.raise_for_status()
                data = _json_body(response)
        except httpx.HTTPError as e:
            logger.error(f"Failed to connect instance {instance_name}: {e}")
            return {"status": "DISCONNECTED", "error": str(e)}

        instance = data.get("instance") or {}
        if instance.get("state") == "open" or instance.get("status") == "connected":
            return {"status": "CONNECTED"}

        qr_code = data.get("base64") or data.get("qrcode") or data.get("code")
        if isinstance(qr_code, dict):
            qr_code = qr_code.get("base64")
        pairing_code = data.get("pairingCode") or data.get("paircode")
        if qr_code or pairing_code:
            return {
                "status": "DISCONNECTED",
                "qr_code": qr_code,
                "pairing_code": pairing_code,
            }
        return {"status": "CONNECTING"}

    def get_connection_state(self, instance_name: str, token: str) -> str:
        try:
            with self._client() as client:
                response = client.get(
                    f"/instance/connectionState/{instance_name}",
                    headers=self._headers(token),
                )
                response.raise_for_status()
                state = (_json_body(response).get("instance") or {}).get("state")
        except httpx.HTTPError as e:
            logger.warning(f"Could not read state of instance {instance_name}: {e}")
            return "unknown"
        return state if state in CONNECTION_STATES else "unknown"

    def send_text(
        self,
        instance_name: str,
        token: str,
        number: str,
        text: str,
        delay: int = 1200,
        presence: str = "composing",
    ) -> Dict:
        payload = {
            "number": clean_number(number),
            "textMessage": {"text": text},
            "options": {"delay": delay, "presence": presence},
        }
        try:
            with self._client() as client:
                response = client.post(
                    f"/message/sendText/{instance_name}",
                    headers=self._headers(token),
                    json=payload,
                )
                response.raise_for_status()
                data = _json_body(response)
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Gateway refused message to {payload['number']}: {e.response.status_code}"
            )
            return {"success": False, "error": e.response.text}
        except httpx.HTTPError as e:
            logger.error(f"Failed to send message to {payload['number']}: {e}")
            return {"success": False, "error": str(e)}

        message_id = data.get("messageId") or (data.get("key") or {}).get("id")
        return {"success": data.get("success", True), "message_id": message_id}

    def logout_instance(self, instance_name: str, token: str) -> Dict:
        try:
            with self._client() as client:
                response = client.delete(
                    f"/instance/logout/{instance_name}", headers=self._headers(token)
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"[WhatsApp] Logout Failed for {instance_name}: {e}")
            return {"success": False, "error": str(e)}
        return {"success": True}


def provision_instance(studio, gateway: WhatsAppGateway) -> Dict:
    """Creates the studio's gateway instance and stores its credentials on the studio."""
    instance_name = sanitize_instance_name(studio.name)
    if not instance_name:
        return {"success": False, "error": {"message": "Nome do estúdio inválido."}}
    try:
        created = gateway.create_instance(instance_name)
    except WhatsAppGatewayError as e:
        return {"success": False, "error": {"message": str(e)}}

    studio.whatsapp_instance_name = instance_name
    studio.whatsapp_instance_id = created["instance_id"]
    studio.whatsapp_token = created["token"]
    studio.whatsapp_status = "connecting"
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to store WhatsApp credentials for studio {studio.id}: {e}")
        return {"success": False, "error": {"message": str(e)}}
    return {"success": True, "instance_name": instance_name}
