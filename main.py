# main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config

# Importamos los routers de la capa de infraestructura
from app.infrastructure.api.routers import notifications_router

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - [%(funcName)s] - %(message)s')

app = FastAPI(
    title="API de Notificación de Pagos a Proveedores",
    description="Resumen diario de pagos por proveedor y envío de la confirmación por correo, una sola vez por pago.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notifications_router.router)


@app.get("/", tags=["Health Check"])
def read_root():
    return {"status": "ok", "message": "API de notificación de pagos operativa"}
