# app/domain/ports/payment_repository.py
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
from datetime import date

from app.domain.models.delivery import Delivery, NewDelivery
from app.domain.models.payment import PaymentRecord, Recipient


class PaymentRepository(ABC):
    """
    Contrato de acceso a pagos, proveedores y envíos registrados.
    Todas las implementaciones traducen los errores de la base de datos
    a `PersistenceError`.
    """

    @abstractmethod
    def find_eligible_payments(
        self,
        operator_id: int,
        summary_date: date,
        recipient_id: Optional[int] = None,
        for_update: bool = False,
    ) -> List[Tuple[Recipient, PaymentRecord]]:
        """
        Pagos elegibles (según la política configurada) y sin envío previo,
        en orden de aparición. Con `for_update` bloquea las filas devueltas
        hasta el fin de la transacción.
        """
        pass

    @abstractmethod
    def lock_recipient(self, recipient_id: int) -> Optional[Recipient]:
        """
        Bloquea la fila del proveedor hasta el fin de la transacción.
        Retorna None si el proveedor no existe.
        """
        pass

    @abstractmethod
    def find_sent_payments(self, operator_id: int, summary_date: date) -> List[Tuple[Recipient, PaymentRecord]]:
        """Pagos ya consumidos por envíos cuya fecha de resumen es `summary_date`."""
        pass

    @abstractmethod
    def find_deliveries_by_date(self, operator_id: int, summary_date: date) -> List[Delivery]:
        """Envíos de una fecha de resumen, del más reciente al más antiguo."""
        pass

    @abstractmethod
    def record_delivery(self, new_delivery: NewDelivery) -> Delivery:
        """
        Inserta el envío y un detalle por cada pago consumido en la
        transacción actual. No hace commit.
        """
        pass

    @abstractmethod
    def list_deliveries(self, operator_id: int, limit: int, offset: int) -> List[Delivery]:
        """Historial paginado, del más reciente al más antiguo."""
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Descarta la transacción actual. No lanza: los fallos solo se registran."""
        pass
