# app/infrastructure/api/routers/notifications_router.py
from datetime import date
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

import config
from app.application.use_cases.dispatch_delivery import DispatchDeliveryUseCase
from app.application.use_cases.summarize_payments import SummarizePaymentsUseCase
from app.domain.exceptions import NoEligibleRecords, PersistenceAfterDeliveryFailure, PersistenceError
from app.infrastructure.api.dependencies import (
    get_dispatch_use_case,
    get_operator_id,
    get_summarize_use_case,
    get_today,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/gmail-gen", tags=["Gmail-GEN"])


class EnviarCorreoRequest(BaseModel):
    proveedor_id: int
    fecha: Optional[date] = None
    asunto: Optional[str] = None
    mensaje: Optional[str] = None


def _ok(data) -> dict:
    return {"success": True, "data": data}


@router.get("/resumen", summary="Resumen diario de pagos pendientes de envío")
def get_resumen(
    fecha: Optional[date] = Query(None, description="Fecha de pago (YYYY-MM-DD). Por defecto, hoy."),
    operator_id: int = Depends(get_operator_id),
    today: date = Depends(get_today),
    use_case: SummarizePaymentsUseCase = Depends(get_summarize_use_case),
):
    try:
        groups = use_case.summarize(operator_id, fecha or today)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _ok([g.model_dump(by_alias=True, mode="json") for g in groups])


@router.get("/enviados-resumen", summary="Resumen de pagos ya enviados en una fecha")
def get_enviados_resumen(
    fecha: Optional[date] = Query(None, description="Fecha de resumen (YYYY-MM-DD). Por defecto, hoy."),
    operator_id: int = Depends(get_operator_id),
    today: date = Depends(get_today),
    use_case: SummarizePaymentsUseCase = Depends(get_summarize_use_case),
):
    try:
        groups = use_case.sent_summary(operator_id, fecha or today)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _ok([g.model_dump(by_alias=True, mode="json") for g in groups])


@router.post("/enviar", summary="Enviar el correo de confirmación de pagos a un proveedor")
def enviar_correo(
    request: EnviarCorreoRequest,
    operator_id: int = Depends(get_operator_id),
    today: date = Depends(get_today),
    use_case: DispatchDeliveryUseCase = Depends(get_dispatch_use_case),
):
    try:
        report = use_case.execute(
            operator_id=operator_id,
            recipient_id=request.proveedor_id,
            summary_date=request.fecha or today,
            subject=request.asunto,
            body=request.mensaje,
        )
    except NoEligibleRecords as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceAfterDeliveryFailure as e:
        raise HTTPException(status_code=500, detail=e.to_detail())
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _ok(report.model_dump(by_alias=True, mode="json"))


@router.get("/historial", summary="Historial paginado de envíos")
def get_historial(
    limit: int = Query(config.HISTORY_DEFAULT_LIMIT, ge=1),
    offset: int = Query(0, ge=0),
    operator_id: int = Depends(get_operator_id),
    use_case: SummarizePaymentsUseCase = Depends(get_summarize_use_case),
):
    try:
        deliveries = use_case.list_deliveries(operator_id, limit=limit, offset=offset)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _ok([d.model_dump(by_alias=True, mode="json") for d in deliveries])
