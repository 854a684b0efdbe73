# app/infrastructure/external/webhook_adapter.py
import logging
from typing import Any, Dict, Optional

import requests

import config
from app.domain.exceptions import DeliveryBusinessError, DeliveryTransportError
from app.domain.models.delivery import DeliveryOutcome, DeliveryStatus
from app.domain.ports.notification import DeliveryGateway

logger = logging.getLogger(__name__)

_FAILURE_FLAGS = ("estado", "success")


class WebhookDeliveryAdapter(DeliveryGateway):
    """
    Adaptador para el webhook de n8n que envía el correo al proveedor.
    Una sola llamada por envío, sin reintentos.
    """
    def __init__(
        self,
        url: Optional[str] = None,
        auth_header: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url or config.WEBHOOK_URL
        self.auth_header = auth_header if auth_header is not None else config.WEBHOOK_AUTH_HEADER
        self.timeout = timeout or config.WEBHOOK_TIMEOUT

        if not self.url:
            raise ValueError("Falta la variable de entorno WEBHOOK_URL")

    def _headers(self) -> Dict[str, str]:
        headers = {"content-type": "application/json"}
        if self.auth_header:
            headers["authorization"] = self.auth_header
        return headers

    def _post(self, payload: Dict[str, Any]) -> Any:
        try:
            response = requests.post(self.url, json=payload, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise DeliveryTransportError(f"Timeout de {self.timeout}s llamando al webhook") from e
        except requests.exceptions.RequestException as e:
            raise DeliveryTransportError(f"Error llamando al webhook: {e}") from e

        try:
            data = response.json()
        except ValueError:
            return response.text

        if isinstance(data, dict):
            for flag in _FAILURE_FLAGS:
                if flag in data and not data[flag]:
                    message = data.get("message") or data.get("mensaje") or f"El webhook respondió {flag}={data[flag]!r}"
                    raise DeliveryBusinessError(message, response_data=data)
        return data

    def send(self, payload: Dict[str, Any]) -> DeliveryOutcome:
        proveedor = payload.get("info_correo", {}).get("proveedor", "N/A")
        logger.info(f"Enviando correo de pagos al webhook para el proveedor '{proveedor}'...")
        try:
            data = self._post(payload)
        except DeliveryBusinessError as e:
            logger.warning(f"El webhook rechazó el envío para '{proveedor}': {e}")
            return DeliveryOutcome(status=DeliveryStatus.DELIVERY_ERROR, raw=e.response_data, error=str(e))
        except DeliveryTransportError as e:
            logger.error(f"Error de transporte con el webhook para '{proveedor}': {e}")
            return DeliveryOutcome(status=DeliveryStatus.DELIVERY_ERROR, error=str(e))
        except Exception as e:
            # El contrato del puerto es no lanzar nunca
            logger.exception(f"Error inesperado llamando al webhook para '{proveedor}'")
            return DeliveryOutcome(status=DeliveryStatus.DELIVERY_ERROR, error=str(e))

        logger.info(f"Webhook respondió correctamente para '{proveedor}'.")
        return DeliveryOutcome(status=DeliveryStatus.SENT, raw=data)
