# app/application/services/notification_composer.py
from typing import Any, Dict, Optional
from datetime import date

from app.domain.models.delivery import ComposedMessage
from app.domain.models.payment import Group

DEFAULT_SUBJECT = "Payment confirmation - {recipient_name}"
DEFAULT_BODY = (
    "Dear provider, please find the summary of {count} payment(s) for a total of "
    "{total} corresponding to {summary_date}."
)


def _override(text: Optional[str]) -> Optional[str]:
    if text and text.strip():
        return text
    return None


class NotificationComposer:
    """Arma el asunto, el cuerpo y el payload del webhook. Sin E/S."""

    def compose(
        self,
        group: Group,
        summary_date: date,
        subject: Optional[str] = None,
        body: Optional[str] = None,
    ) -> ComposedMessage:
        final_subject = _override(subject) or DEFAULT_SUBJECT.format(recipient_name=group.recipient_name)
        final_body = _override(body) or DEFAULT_BODY.format(
            count=group.total_count,
            total=f"{group.total_amount:.2f}",
            summary_date=summary_date.isoformat(),
        )
        return ComposedMessage(subject=final_subject, body=final_body)

    def build_payload(self, group: Group, summary_date: date, message: ComposedMessage) -> Dict[str, Any]:
        # Los montos viajan como números JSON
        return {
            "info_correo": {
                "fecha": summary_date.isoformat(),
                "correo": group.contact_email,
                "proveedor": group.recipient_name,
                "monto_total": float(group.total_amount),
                "cantidad_pagos": group.total_count,
                "asunto": message.subject,
                "mensaje": message.body,
            },
            "info_pagos": [
                {"monto": float(p.amount), "codigo": p.code, "cliente": p.client_name}
                for p in group.payments
            ],
        }
