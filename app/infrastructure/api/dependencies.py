# app/infrastructure/api/dependencies.py
from datetime import date

from fastapi import Depends, Header
from sqlalchemy.orm import Session

import config
from app.application.use_cases.dispatch_delivery import DispatchDeliveryUseCase
from app.application.use_cases.summarize_payments import SummarizePaymentsUseCase
from app.domain.policies import get_policy
from app.domain.ports.notification import DeliveryGateway
from app.domain.ports.payment_repository import PaymentRepository
from app.infrastructure.external.webhook_adapter import WebhookDeliveryAdapter
from app.infrastructure.persistence.database import SessionLocal
from app.infrastructure.persistence.payment_repository_adapter import PostgreSQLPaymentRepository


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_today() -> date:
    """Fecha por defecto de los resúmenes. Se sobreescribe en los tests."""
    return date.today()


def get_operator_id(x_usuario_id: int = Header(..., alias="X-Usuario-Id")) -> int:
    # La autenticación vive fuera de este servicio; el gateway inyecta el usuario.
    return x_usuario_id


def get_payment_repository(db: Session = Depends(get_db)) -> PaymentRepository:
    return PostgreSQLPaymentRepository(db, policy=get_policy(config.ELIGIBILITY_POLICY))


def get_delivery_gateway() -> DeliveryGateway:
    return WebhookDeliveryAdapter()


def get_summarize_use_case(repo: PaymentRepository = Depends(get_payment_repository)) -> SummarizePaymentsUseCase:
    return SummarizePaymentsUseCase(repo, history_max_limit=config.HISTORY_MAX_LIMIT)


def get_dispatch_use_case(
    repo: PaymentRepository = Depends(get_payment_repository),
    gateway: DeliveryGateway = Depends(get_delivery_gateway),
) -> DispatchDeliveryUseCase:
    return DispatchDeliveryUseCase(repo, gateway)
