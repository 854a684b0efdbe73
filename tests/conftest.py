import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.domain.models.delivery import DeliveryOutcome, DeliveryStatus
from app.domain.ports.notification import DeliveryGateway
from app.infrastructure.persistence.database import Base
from app.infrastructure.persistence.models import Pago, Proveedor

OPERATOR_ID = 7
DAY = date(2024, 5, 1)


class FakeGateway(DeliveryGateway):
    """Gateway en memoria: guarda los payloads y devuelve un resultado fijo."""

    def __init__(self, status: DeliveryStatus = DeliveryStatus.SENT, raw: Any = None):
        self.status = status
        self.raw = raw if raw is not None else {"estado": True, "code": 200}
        self.payloads: List[Dict[str, Any]] = []

    def send(self, payload: Dict[str, Any]) -> DeliveryOutcome:
        self.payloads.append(payload)
        error = None if self.status is DeliveryStatus.SENT else "webhook caído"
        return DeliveryOutcome(status=self.status, raw=self.raw, error=error)


def fixed_clock() -> datetime:
    return datetime(2024, 5, 1, 18, 30, tzinfo=timezone.utc)


@pytest.fixture()
def db_session():
    """Sesión SQLite en memoria con todas las tablas creadas."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


def add_provider(db: Session, provider_id: int, nombre: str, correo: Optional[str] = None) -> Proveedor:
    proveedor = Proveedor(id=provider_id, nombre=nombre, correo=correo or f"proveedor{provider_id}@example.com")
    db.add(proveedor)
    db.commit()
    return proveedor


def add_payment(
    db: Session,
    pago_id: int,
    proveedor_id: int,
    monto: str,
    codigo: str = "",
    cliente: str = "Cliente",
    usuario_id: int = OPERATOR_ID,
    fecha_pago: date = DAY,
    estado: str = "PAGADO",
    esta_activo: bool = True,
    esta_verificado: bool = False,
) -> Pago:
    pago = Pago(
        id_pago=pago_id,
        usuario_id=usuario_id,
        proveedor_id=proveedor_id,
        cliente=cliente,
        monto=Decimal(monto),
        codigo=codigo,
        fecha_pago=fecha_pago,
        estado=estado,
        esta_activo=esta_activo,
        esta_verificado=esta_verificado,
    )
    db.add(pago)
    db.commit()
    return pago


@pytest.fixture()
def seeded(db_session: Session) -> Session:
    """Proveedor 1 con dos pagos elegibles el 2024-05-01 (10.00 + 15.50)."""
    add_provider(db_session, 1, "Hotel Rideau", "reservas@rideau.example.com")
    add_payment(db_session, 101, 1, "10.00", codigo="TARJ-001", cliente="Ana")
    add_payment(db_session, 102, 1, "15.50", codigo="BANCO-001", cliente="Luis")
    return db_session
