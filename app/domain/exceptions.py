# app/domain/exceptions.py
from typing import List


class NoEligibleRecords(Exception):
    """No hay pagos pendientes de envío para el proveedor en la fecha indicada."""

    def __init__(self, operator_id: int, recipient_id: int, summary_date):
        self.operator_id = operator_id
        self.recipient_id = recipient_id
        self.summary_date = summary_date
        super().__init__(
            f"No se encontraron pagos pendientes para el proveedor {recipient_id} "
            f"en la fecha {summary_date} (Pagado + Activo)."
        )


class DeliveryTransportError(Exception):
    """El webhook no respondió (timeout, conexión rechazada, HTTP no 2xx)."""


class DeliveryBusinessError(Exception):
    """El webhook respondió pero indicó un fallo en el cuerpo de la respuesta."""

    def __init__(self, message: str, response_data=None):
        self.response_data = response_data
        super().__init__(message)


class PersistenceError(Exception):
    """La base de datos no pudo leer o registrar el envío. No quedó nada registrado."""


class PersistenceAfterDeliveryFailure(Exception):
    """
    El webhook ya notificó al proveedor pero el registro local del envío falló.
    Requiere conciliación manual: contiene todo lo necesario para hacerla.
    """

    def __init__(self, recipient_id: int, payment_ids: List[int], subject: str, body: str, cause: Exception):
        self.recipient_id = recipient_id
        self.payment_ids = list(payment_ids)
        self.subject = subject
        self.body = body
        self.cause = cause
        super().__init__(
            f"El proveedor {recipient_id} fue notificado pero no se pudo registrar el envío "
            f"de los pagos {self.payment_ids}: {cause}"
        )

    def to_detail(self) -> dict:
        return {
            "error": "persistence_after_delivery",
            "message": str(self),
            "proveedor_id": self.recipient_id,
            "ids_pagos": self.payment_ids,
            "asunto": self.subject,
            "mensaje": self.body,
        }
