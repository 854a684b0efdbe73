# config.py
import os
from dotenv import load_dotenv

load_dotenv()

# --- BASE DE DATOS ---
DATABASE_URL = os.getenv("DATABASE_URL")

# --- WEBHOOK DE ENVÍO DE CORREOS (n8n) ---
WEBHOOK_URL = os.getenv("WEBHOOK_URL", "https://n8n.salazargroup.cloud/webhook/enviar_gmail")
# Cabecera completa, p. ej. "Basic xxxx" o "Bearer xxxx"
WEBHOOK_AUTH_HEADER = os.getenv("WEBHOOK_AUTH_HEADER", "")
WEBHOOK_TIMEOUT = float(os.getenv("WEBHOOK_TIMEOUT", "15"))

# --- HISTORIAL ---
HISTORY_DEFAULT_LIMIT = 50
HISTORY_MAX_LIMIT = int(os.getenv("HISTORY_MAX_LIMIT", "200"))

# --- ELEGIBILIDAD DE PAGOS ---
# "pagado_activo" (por defecto) o "pagado_activo_verificado"
ELIGIBILITY_POLICY = os.getenv("ELIGIBILITY_POLICY", "pagado_activo")

# --- CORS ---
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:4200").split(",") if o.strip()]

# --- CELERY ---
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "pubsub://")
CELERY_PUBSUB_TOPIC = os.getenv("CELERY_PUBSUB_TOPIC", "gmail-gen-envios")
