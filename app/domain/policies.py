# app/domain/policies.py
from dataclasses import dataclass

from app.domain.models.payment import PAID_STATE


@dataclass(frozen=True)
class EligibilityPolicy:
    """
    Regla que decide qué pagos pueden entrar en un resumen de envío.

    Solo datos: el repositorio traduce estos campos a condiciones SQL. La
    ausencia de un envío previo no forma parte de la política: se exige
    siempre.
    """
    name: str
    paid_state: str = PAID_STATE
    require_active: bool = True
    require_verified: bool = False


# Por defecto la verificación se ignora.
PAID_AND_ACTIVE = EligibilityPolicy(name="pagado_activo")
PAID_ACTIVE_AND_VERIFIED = EligibilityPolicy(name="pagado_activo_verificado", require_verified=True)

POLICIES = {policy.name: policy for policy in (PAID_AND_ACTIVE, PAID_ACTIVE_AND_VERIFIED)}


def get_policy(name: str) -> EligibilityPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(f"Política de elegibilidad desconocida: {name!r}. Opciones: {sorted(POLICIES)}")
