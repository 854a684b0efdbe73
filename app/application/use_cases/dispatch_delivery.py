# app/application/use_cases/dispatch_delivery.py
from typing import Callable, Optional
from datetime import date, datetime, timezone
import logging

from app.application.services.notification_composer import NotificationComposer
from app.application.use_cases.summarize_payments import group_payments
from app.domain.exceptions import NoEligibleRecords, PersistenceAfterDeliveryFailure, PersistenceError
from app.domain.models.delivery import DeliveryReport, DeliveryStatus, DispatchState, NewDelivery
from app.domain.ports.notification import DeliveryGateway
from app.domain.ports.payment_repository import PaymentRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DispatchDeliveryUseCase:
    """
    Envía el resumen de pagos de un proveedor y registra el envío.

    Todo ocurre en una sola transacción: bloqueo del proveedor, lectura de
    los pagos elegibles, llamada al webhook, registro del envío con sus
    detalles y commit. Un segundo envío concurrente para el mismo proveedor
    espera al bloqueo y, al continuar, ya no encuentra pagos elegibles.
    """

    def __init__(
        self,
        payment_repo: PaymentRepository,
        delivery_gateway: DeliveryGateway,
        composer: Optional[NotificationComposer] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.payment_repo = payment_repo
        self.delivery_gateway = delivery_gateway
        self.composer = composer or NotificationComposer()
        self.clock = clock

    def execute(
        self,
        operator_id: int,
        recipient_id: int,
        summary_date: date,
        subject: Optional[str] = None,
        body: Optional[str] = None,
    ) -> DeliveryReport:
        tag = f"[usuario {operator_id} / proveedor {recipient_id} / {summary_date}]"
        state = DispatchState.REQUESTED
        logger.info(f"{tag} {state.value}: solicitud de envío recibida.")

        try:
            # --- PASO 1: RESERVA DE PAGOS ---
            state = DispatchState.CLAIMING
            recipient = self.payment_repo.lock_recipient(recipient_id)
            rows = []
            if recipient is not None:
                rows = self.payment_repo.find_eligible_payments(
                    operator_id, summary_date, recipient_id, for_update=True
                )
            if not rows:
                state = DispatchState.CLAIM_EMPTY
                logger.info(f"{tag} {state.value}: no hay pagos pendientes de envío.")
                raise NoEligibleRecords(operator_id, recipient_id, summary_date)

            state = DispatchState.CLAIMED
            group = group_payments(rows)[0]
            card_ids, bank_ids = group.payment_ids_by_channel()
            logger.info(
                f"{tag} {state.value}: {group.total_count} pago(s), total {group.total_amount:.2f} "
                f"({len(card_ids)} tarjeta, {len(bank_ids)} bancario)."
            )

            # --- PASO 2: COMPOSICIÓN Y ENVÍO ---
            message = self.composer.compose(group, summary_date, subject=subject, body=body)
            payload = self.composer.build_payload(group, summary_date, message)

            state = DispatchState.DELIVERING
            outcome = self.delivery_gateway.send(payload)
            logger.info(f"{tag} {state.value}: resultado del webhook {outcome.status.value}.")

            # --- PASO 3: REGISTRO (se registra aunque el webhook haya fallado) ---
            new_delivery = NewDelivery(
                recipient_id=recipient_id,
                operator_id=operator_id,
                summary_date=summary_date,
                payment_count=group.total_count,
                total_amount=group.total_amount,
                subject=message.subject,
                body=message.body,
                status=outcome.status,
                sent_at=self.clock(),
                card_payment_ids=card_ids,
                bank_payment_ids=bank_ids,
            )
            try:
                delivery = self.payment_repo.record_delivery(new_delivery)
                self.payment_repo.commit()
            except PersistenceError as e:
                if outcome.status is DeliveryStatus.SENT:
                    logger.error(
                        f"{tag} INCONSISTENCIA: el proveedor fue notificado pero el envío no quedó "
                        f"registrado. Pagos: {card_ids + bank_ids}. Requiere conciliación manual.",
                        exc_info=True,
                    )
                    raise PersistenceAfterDeliveryFailure(
                        recipient_id, card_ids + bank_ids, message.subject, message.body, e
                    ) from e
                raise
        except Exception:
            self._rollback(tag)
            raise

        if outcome.status is DeliveryStatus.SENT:
            state = DispatchState.RECORDED_SENT
        else:
            state = DispatchState.RECORDED_ERROR
        logger.info(f"{tag} {state.value}: envío {delivery.id} registrado.")

        return DeliveryReport(
            delivery=delivery,
            message=message,
            payments=group.payments,
            gateway_response=outcome.raw,
        )

    def _rollback(self, tag: str) -> None:
        # La excepción que se está propagando es la que importa al llamador.
        try:
            self.payment_repo.rollback()
        except Exception:
            logger.error(f"{tag} Falló el rollback tras un error en el envío.", exc_info=True)
