# app/domain/models/payment.py
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, computed_field

BANK_CODE_PREFIX = "BANCO-"
PAID_STATE = "PAGADO"

# Decimal en memoria; número en el JSON que consume el frontend.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class PaymentChannel(str, Enum):
    CARD = "TARJETA"
    BANK = "BANCARIO"


def classify_channel(code: Optional[str]) -> PaymentChannel:
    """`BANCO-...` (sin distinguir mayúsculas) es canal bancario; todo lo demás, tarjeta."""
    if str(code or "").upper().startswith(BANK_CODE_PREFIX):
        return PaymentChannel.BANK
    return PaymentChannel.CARD


class PaymentRecord(BaseModel):
    """
    Un pago realizado a un proveedor. Lo crean otros flujos; aquí solo se lee
    y se marca como consumido por un envío.
    """
    id: int
    client_name: str = Field(alias="cliente")
    amount: Money = Field(alias="monto", ge=0)
    code: str = Field(default="", alias="codigo")

    recipient_id: int = Field(exclude=True)
    operator_id: Optional[int] = Field(default=None, exclude=True)
    payment_date: Optional[date] = Field(default=None, exclude=True)
    state: str = Field(default=PAID_STATE, exclude=True)
    is_active: bool = Field(default=True, exclude=True)
    is_verified: bool = Field(default=False, exclude=True)

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    @property
    def channel(self) -> PaymentChannel:
        return classify_channel(self.code)


class Recipient(BaseModel):
    id: int
    name: str = Field(alias="nombre")
    email: Optional[str] = Field(default=None, alias="correo")

    model_config = ConfigDict(populate_by_name=True)


class LastDelivery(BaseModel):
    email: Optional[str] = Field(default=None, alias="correoElectronico")
    subject: str = Field(alias="asunto")
    body: str = Field(alias="mensaje")
    sent_at: datetime = Field(alias="fechaEnvio")

    model_config = ConfigDict(populate_by_name=True)


class Group(BaseModel):
    """
    Agrupación efímera de pagos por proveedor. Los totales se calculan
    siempre a partir de `payments`.
    """
    recipient_id: int = Field(alias="id")
    recipient_name: str = Field(alias="proveedorNombre")
    contact_email: Optional[str] = Field(default=None, alias="correoContacto")
    color: Literal["teal", "brown"] = "teal"
    state: Literal["pendiente", "enviado"] = Field(default="pendiente", alias="estado")
    payments: List[PaymentRecord] = Field(default_factory=list, alias="pagos")
    last_delivery: Optional[LastDelivery] = Field(default=None, alias="ultimoEnvio")

    model_config = ConfigDict(populate_by_name=True)

    @computed_field(alias="totalPagos")
    @property
    def total_count(self) -> int:
        return len(self.payments)

    @computed_field(alias="totalMonto")
    @property
    def total_amount(self) -> Money:
        return sum((p.amount for p in self.payments), Decimal("0"))

    def payment_ids_by_channel(self):
        """Retorna (ids_tarjeta, ids_bancario) en el orden de los pagos."""
        card_ids, bank_ids = [], []
        for payment in self.payments:
            if payment.channel is PaymentChannel.BANK:
                bank_ids.append(payment.id)
            else:
                card_ids.append(payment.id)
        return card_ids, bank_ids
