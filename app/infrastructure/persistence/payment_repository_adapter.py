from typing import List, Optional, Tuple
from datetime import date
import logging

from sqlalchemy import exists
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from app.domain.exceptions import PersistenceError
from app.domain.models.delivery import Delivery, NewDelivery
from app.domain.models.payment import PaymentChannel, PaymentRecord, Recipient
from app.domain.policies import PAID_AND_ACTIVE, EligibilityPolicy
from app.domain.ports.payment_repository import PaymentRepository
from .models import DetalleEnvioCorreo, EnvioCorreo, Pago, Proveedor

logger = logging.getLogger(__name__)


def _to_recipient(proveedor: Proveedor) -> Recipient:
    return Recipient(id=proveedor.id, name=proveedor.nombre, email=proveedor.correo)


def _to_payment(pago: Pago) -> PaymentRecord:
    return PaymentRecord(
        id=pago.id_pago,
        client_name=pago.cliente,
        amount=pago.monto,
        code=pago.codigo or "",
        recipient_id=pago.proveedor_id,
        operator_id=pago.usuario_id,
        payment_date=pago.fecha_pago,
        state=pago.estado,
        is_active=pago.esta_activo,
        is_verified=pago.esta_verificado,
    )


def _to_delivery(envio: EnvioCorreo) -> Delivery:
    card_ids = [d.pago_id for d in envio.detalles if d.canal == PaymentChannel.CARD.value]
    bank_ids = [d.pago_id for d in envio.detalles if d.canal == PaymentChannel.BANK.value]
    return Delivery(
        id=envio.id_envio,
        recipient=_to_recipient(envio.proveedor),
        operator_id=envio.usuario_envio_id,
        summary_date=envio.fecha_resumen,
        payment_count=envio.cantidad_pagos,
        total_amount=envio.monto_total,
        subject=envio.asunto_correo,
        body=envio.cuerpo_correo,
        status=envio.estado,
        sent_at=envio.fecha_envio,
        card_payment_ids=card_ids,
        bank_payment_ids=bank_ids,
    )


class PostgreSQLPaymentRepository(PaymentRepository):
    def __init__(self, db: Session, policy: EligibilityPolicy = PAID_AND_ACTIVE):
        self.db = db
        self.policy = policy

    def _policy_filters(self):
        filters = [Pago.estado == self.policy.paid_state]
        if self.policy.require_active:
            filters.append(Pago.esta_activo.is_(True))
        if self.policy.require_verified:
            filters.append(Pago.esta_verificado.is_(True))
        return filters

    def find_eligible_payments(
        self,
        operator_id: int,
        summary_date: date,
        recipient_id: Optional[int] = None,
        for_update: bool = False,
    ) -> List[Tuple[Recipient, PaymentRecord]]:
        query = (
            self.db.query(Pago, Proveedor)
            .join(Proveedor, Pago.proveedor_id == Proveedor.id)
            .filter(
                Pago.usuario_id == operator_id,
                Pago.fecha_pago == summary_date,
                *self._policy_filters(),
                ~exists().where(DetalleEnvioCorreo.pago_id == Pago.id_pago),
            )
        )
        if recipient_id is not None:
            query = query.filter(Pago.proveedor_id == recipient_id)
        query = query.order_by(Pago.id_pago)
        if for_update:
            query = query.with_for_update(of=Pago)

        try:
            rows = query.all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error consultando pagos pendientes: {e}") from e
        return [(_to_recipient(proveedor), _to_payment(pago)) for pago, proveedor in rows]

    def lock_recipient(self, recipient_id: int) -> Optional[Recipient]:
        try:
            proveedor = (
                self.db.query(Proveedor)
                .filter(Proveedor.id == recipient_id)
                .with_for_update()
                .first()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error bloqueando el proveedor {recipient_id}: {e}") from e
        return _to_recipient(proveedor) if proveedor else None

    def find_sent_payments(self, operator_id: int, summary_date: date) -> List[Tuple[Recipient, PaymentRecord]]:
        try:
            rows = (
                self.db.query(Pago, Proveedor)
                .join(DetalleEnvioCorreo, DetalleEnvioCorreo.pago_id == Pago.id_pago)
                .join(EnvioCorreo, EnvioCorreo.id_envio == DetalleEnvioCorreo.envio_id)
                .join(Proveedor, Pago.proveedor_id == Proveedor.id)
                .filter(
                    EnvioCorreo.usuario_envio_id == operator_id,
                    EnvioCorreo.fecha_resumen == summary_date,
                )
                .order_by(Pago.id_pago)
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error consultando pagos enviados: {e}") from e
        return [(_to_recipient(proveedor), _to_payment(pago)) for pago, proveedor in rows]

    def _deliveries_query(self, operator_id: int):
        return (
            self.db.query(EnvioCorreo)
            .options(joinedload(EnvioCorreo.proveedor), selectinload(EnvioCorreo.detalles))
            .filter(EnvioCorreo.usuario_envio_id == operator_id)
            .order_by(EnvioCorreo.fecha_envio.desc(), EnvioCorreo.id_envio.desc())
        )

    def find_deliveries_by_date(self, operator_id: int, summary_date: date) -> List[Delivery]:
        try:
            envios = self._deliveries_query(operator_id).filter(EnvioCorreo.fecha_resumen == summary_date).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error consultando envíos del {summary_date}: {e}") from e
        return [_to_delivery(envio) for envio in envios]

    def list_deliveries(self, operator_id: int, limit: int, offset: int) -> List[Delivery]:
        try:
            envios = self._deliveries_query(operator_id).offset(offset).limit(limit).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error consultando el historial de envíos: {e}") from e
        return [_to_delivery(envio) for envio in envios]

    def record_delivery(self, new_delivery: NewDelivery) -> Delivery:
        try:
            envio = EnvioCorreo(
                proveedor_id=new_delivery.recipient_id,
                usuario_envio_id=new_delivery.operator_id,
                fecha_resumen=new_delivery.summary_date,
                cantidad_pagos=new_delivery.payment_count,
                monto_total=new_delivery.total_amount,
                asunto_correo=new_delivery.subject,
                cuerpo_correo=new_delivery.body,
                estado=new_delivery.status.value,
                fecha_envio=new_delivery.sent_at,
            )
            self.db.add(envio)
            self.db.flush()

            for pago_id in new_delivery.card_payment_ids:
                self.db.add(DetalleEnvioCorreo(envio_id=envio.id_envio, pago_id=pago_id, canal=PaymentChannel.CARD.value))
            for pago_id in new_delivery.bank_payment_ids:
                self.db.add(DetalleEnvioCorreo(envio_id=envio.id_envio, pago_id=pago_id, canal=PaymentChannel.BANK.value))
            # La restricción única sobre pago_id salta aquí si otro envío ya consumió algún pago.
            self.db.flush()
            self.db.refresh(envio)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error registrando el envío de correo: {e}") from e

        logger.info(
            f"Envío {envio.id_envio} registrado para el proveedor {new_delivery.recipient_id} "
            f"({new_delivery.payment_count} pagos, estado {new_delivery.status.value})."
        )
        return _to_delivery(envio)

    def commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.rollback()
            raise PersistenceError(f"Error confirmando la transacción: {e}") from e

    def rollback(self) -> None:
        # Se llama en rutas de error: no debe tapar la excepción original.
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.error("No se pudo hacer rollback de la transacción.", exc_info=True)
