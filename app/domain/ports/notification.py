# app/domain/ports/notification.py
from abc import ABC, abstractmethod
from typing import Any, Dict

from app.domain.models.delivery import DeliveryOutcome


class DeliveryGateway(ABC):
    """Puerto para el canal externo que envía el correo al proveedor."""
    @abstractmethod
    def send(self, payload: Dict[str, Any]) -> DeliveryOutcome:
        """
        Realiza una única llamada al canal externo. Nunca lanza excepciones:
        cualquier fallo se devuelve como `DeliveryOutcome` con estado
        DELIVERY_ERROR. No reintenta.
        """
        pass
