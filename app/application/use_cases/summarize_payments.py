# app/application/use_cases/summarize_payments.py
from typing import Dict, Iterable, List, Optional, Tuple
from datetime import date
import logging

from app.domain.models.delivery import Delivery
from app.domain.models.payment import Group, LastDelivery, PaymentRecord, Recipient
from app.domain.ports.payment_repository import PaymentRepository

logger = logging.getLogger(__name__)

COLORS = ("teal", "brown")


def group_payments(rows: Iterable[Tuple[Recipient, PaymentRecord]], state: str = "pendiente") -> List[Group]:
    """
    Agrupa pagos por proveedor conservando el orden de aparición dentro de
    cada grupo, y ordena los grupos por nombre de proveedor (orden de bytes,
    distinguiendo mayúsculas).
    """
    groups: Dict[int, Group] = {}
    for recipient, payment in rows:
        group = groups.get(recipient.id)
        if group is None:
            group = Group(
                recipient_id=recipient.id,
                recipient_name=recipient.name,
                contact_email=recipient.email,
                state=state,
            )
            groups[recipient.id] = group
        group.payments.append(payment)

    ordered = sorted(groups.values(), key=lambda g: g.recipient_name.encode("utf-8"))
    for index, group in enumerate(ordered):
        group.color = COLORS[index % 2]
    return ordered


class SummarizePaymentsUseCase:
    """Consultas de solo lectura: resumen pendiente, resumen enviado e historial."""

    def __init__(self, payment_repo: PaymentRepository, history_max_limit: int = 200):
        self.payment_repo = payment_repo
        self.history_max_limit = history_max_limit

    def summarize(self, operator_id: int, summary_date: date, recipient_id: Optional[int] = None) -> List[Group]:
        rows = self.payment_repo.find_eligible_payments(operator_id, summary_date, recipient_id)
        groups = group_payments(rows)
        logger.info(f"[usuario {operator_id}] Resumen {summary_date}: {len(groups)} proveedor(es) con pagos pendientes.")
        return groups

    def sent_summary(self, operator_id: int, summary_date: date) -> List[Group]:
        rows = self.payment_repo.find_sent_payments(operator_id, summary_date)
        groups = group_payments(rows, state="enviado")

        latest: Dict[int, Delivery] = {}
        # Vienen del más reciente al más antiguo: el primero por proveedor gana
        for delivery in self.payment_repo.find_deliveries_by_date(operator_id, summary_date):
            latest.setdefault(delivery.recipient_id, delivery)

        for group in groups:
            delivery = latest.get(group.recipient_id)
            if delivery is not None:
                group.last_delivery = LastDelivery(
                    email=delivery.recipient.email,
                    subject=delivery.subject,
                    body=delivery.body,
                    sent_at=delivery.sent_at,
                )
        return groups

    def list_deliveries(self, operator_id: int, limit: int = 50, offset: int = 0) -> List[Delivery]:
        limit = max(1, min(limit, self.history_max_limit))
        offset = max(0, offset)
        return self.payment_repo.list_deliveries(operator_id, limit, offset)
