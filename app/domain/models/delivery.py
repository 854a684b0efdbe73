# app/domain/models/delivery.py
from enum import Enum
from typing import Any, List, Optional
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from app.domain.models.payment import Money, PaymentRecord, Recipient


class DeliveryStatus(str, Enum):
    SENT = "SENT"
    DELIVERY_ERROR = "DELIVERY_ERROR"


class DispatchState(str, Enum):
    REQUESTED = "REQUESTED"
    CLAIMING = "CLAIMING"
    CLAIM_EMPTY = "CLAIM_EMPTY"
    CLAIMED = "CLAIMED"
    DELIVERING = "DELIVERING"
    RECORDED_SENT = "RECORDED_SENT"
    RECORDED_ERROR = "RECORDED_ERROR"


class ComposedMessage(BaseModel):
    subject: str = Field(alias="asunto")
    body: str = Field(alias="mensaje")

    model_config = ConfigDict(populate_by_name=True)


class DeliveryOutcome(BaseModel):
    """Resultado del webhook. `error` describe el fallo cuando el estado es DELIVERY_ERROR."""
    status: DeliveryStatus
    raw: Optional[Any] = None
    error: Optional[str] = None


class Delivery(BaseModel):
    """
    Registro persistido de un intento de envío (tabla `envios_correo`).
    Se usa tanto para la respuesta de /enviar como para el historial.
    """
    id: int = Field(alias="id_envio")
    recipient: Recipient = Field(alias="proveedor")
    operator_id: int = Field(alias="usuario_envio_id")
    summary_date: date = Field(alias="fecha_resumen")
    payment_count: int = Field(alias="cantidad_pagos")
    total_amount: Money = Field(alias="monto_total")
    subject: str = Field(alias="asunto")
    body: str = Field(alias="cuerpo_correo")
    status: DeliveryStatus = Field(alias="estado")
    sent_at: datetime = Field(alias="fecha_envio")
    card_payment_ids: List[int] = Field(default_factory=list, alias="ids_pagos_tarjeta")
    bank_payment_ids: List[int] = Field(default_factory=list, alias="ids_pagos_bancario")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    @property
    def recipient_id(self) -> int:
        return self.recipient.id


class NewDelivery(BaseModel):
    """Datos necesarios para registrar un envío junto con sus pagos consumidos."""
    recipient_id: int
    operator_id: int
    summary_date: date
    payment_count: int
    total_amount: Money
    subject: str
    body: str
    status: DeliveryStatus
    sent_at: datetime
    card_payment_ids: List[int]
    bank_payment_ids: List[int]


class DeliveryReport(BaseModel):
    delivery: Delivery = Field(alias="envio")
    message: ComposedMessage = Field(alias="infoCorreo")
    payments: List[PaymentRecord] = Field(alias="infoPagos")
    gateway_response: Optional[Any] = Field(default=None, alias="webhook")

    model_config = ConfigDict(populate_by_name=True)
