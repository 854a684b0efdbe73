import logging
from datetime import date
from typing import Dict, Optional

from celery import Celery
from sqlalchemy.orm import Session

import config

# El broker por defecto es Google Cloud Pub/Sub ('pubsub://'); se puede
# cambiar con CELERY_BROKER_URL.
celery_app = Celery(
    'tasks',
    broker=config.CELERY_BROKER_URL,
    backend=None  # Pub/Sub no funciona como backend de resultados.
)

celery_app.conf.update(
    broker_transport_options={
        # Un lote diario hace una llamada al webhook (máx. WEBHOOK_TIMEOUT) por proveedor.
        'visibility_timeout': 3600,
        'topic': config.CELERY_PUBSUB_TOPIC,
        'subscription_name_prefix': 'celery-worker-sub'
    },
    task_ignore_result=True,
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - [%(funcName)s] - %(message)s')
logger = logging.getLogger(__name__)

from app.application.use_cases.dispatch_delivery import DispatchDeliveryUseCase
from app.application.use_cases.summarize_payments import SummarizePaymentsUseCase
from app.domain.exceptions import NoEligibleRecords, PersistenceAfterDeliveryFailure, PersistenceError
from app.domain.models.delivery import DeliveryStatus
from app.domain.policies import get_policy
from app.domain.ports.notification import DeliveryGateway
from app.infrastructure.external.webhook_adapter import WebhookDeliveryAdapter
from app.infrastructure.persistence.database import SessionLocal
from app.infrastructure.persistence.payment_repository_adapter import PostgreSQLPaymentRepository


def run_daily_batch(db_session: Session, gateway: DeliveryGateway, operator_id: int, summary_date: date) -> Dict[str, int]:
    """
    Envía el resumen a cada proveedor con pagos pendientes en `summary_date`.
    Un fallo con un proveedor no detiene a los demás.
    """
    repo = PostgreSQLPaymentRepository(db_session, policy=get_policy(config.ELIGIBILITY_POLICY))
    summarize = SummarizePaymentsUseCase(repo, history_max_limit=config.HISTORY_MAX_LIMIT)
    dispatch = DispatchDeliveryUseCase(repo, gateway)

    groups = summarize.summarize(operator_id, summary_date)
    # Cerramos la transacción de lectura antes de empezar a bloquear proveedores
    repo.rollback()

    counts = {"enviados": 0, "errores_webhook": 0, "sin_pagos": 0, "fallidos": 0}
    for group in groups:
        tag = f"[usuario {operator_id} / proveedor {group.recipient_id}]"
        try:
            report = dispatch.execute(operator_id, group.recipient_id, summary_date)
        except NoEligibleRecords:
            # Otro disparo (manual o concurrente) ya consumió estos pagos
            logger.info(f"{tag} Sin pagos pendientes al momento de enviar. Se omite.")
            counts["sin_pagos"] += 1
            continue
        except PersistenceAfterDeliveryFailure as e:
            logger.error(f"{tag} Notificado pero no registrado: {e.to_detail()}")
            counts["fallidos"] += 1
            continue
        except PersistenceError as e:
            logger.error(f"{tag} No se pudo registrar el envío: {e}")
            counts["fallidos"] += 1
            continue

        if report.delivery.status is DeliveryStatus.SENT:
            counts["enviados"] += 1
        else:
            counts["errores_webhook"] += 1

    logger.info(f"[usuario {operator_id}] Lote {summary_date} terminado: {counts}")
    return counts


@celery_app.task(name="tasks.dispatch_daily_batch")
def dispatch_daily_batch(operator_id: int, fecha: Optional[str] = None):
    summary_date = date.fromisoformat(fecha) if fecha else date.today()
    logger.info(f"[usuario {operator_id}] >>> INICIO DEL LOTE DIARIO {summary_date}.")
    db_session = SessionLocal()
    try:
        return run_daily_batch(db_session, WebhookDeliveryAdapter(), operator_id, summary_date)
    except Exception:
        logger.error(f"[usuario {operator_id}] ¡ERROR! Excepción no controlada en el lote. Iniciando rollback.", exc_info=True)
        db_session.rollback()
        raise
    finally:
        logger.info(f"[usuario {operator_id}] Cerrando sesión de base de datos.")
        db_session.close()
