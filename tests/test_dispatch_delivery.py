from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.application.use_cases.dispatch_delivery import DispatchDeliveryUseCase
from app.application.use_cases.summarize_payments import SummarizePaymentsUseCase
from app.domain.exceptions import NoEligibleRecords, PersistenceAfterDeliveryFailure, PersistenceError
from app.domain.models.delivery import DeliveryStatus
from app.infrastructure.persistence.models import DetalleEnvioCorreo, EnvioCorreo
from app.infrastructure.persistence.payment_repository_adapter import PostgreSQLPaymentRepository

from conftest import DAY, OPERATOR_ID, FakeGateway, add_payment, add_provider, fixed_clock


class FailingRecordRepository(PostgreSQLPaymentRepository):
    def record_delivery(self, new_delivery):
        raise PersistenceError("conexión perdida")


class DeadConnectionRepository(FailingRecordRepository):
    def rollback(self):
        raise OperationalError("ROLLBACK", {}, Exception("server closed the connection"))


class FailingReadRepository(PostgreSQLPaymentRepository):
    def find_eligible_payments(self, *args, **kwargs):
        raise PersistenceError("base de datos inaccesible")


def _dispatch(repo, gateway=None):
    return DispatchDeliveryUseCase(repo, gateway or FakeGateway(), clock=fixed_clock)


def test_reference_scenario_sent(seeded):
    repo = PostgreSQLPaymentRepository(seeded)
    gateway = FakeGateway()

    report = _dispatch(repo, gateway).execute(OPERATOR_ID, 1, DAY)

    delivery = report.delivery
    assert delivery.status is DeliveryStatus.SENT
    assert delivery.payment_count == 2
    assert delivery.total_amount == Decimal("25.50")
    assert delivery.summary_date == DAY
    assert delivery.card_payment_ids == [101]
    assert delivery.bank_payment_ids == [102]
    assert [p.id for p in report.payments] == [101, 102]
    assert report.message.subject == "Payment confirmation - Hotel Rideau"
    assert report.gateway_response == {"estado": True, "code": 200}
    assert len(gateway.payloads) == 1
    assert gateway.payloads[0]["info_correo"]["cantidad_pagos"] == 2

    assert SummarizePaymentsUseCase(repo).summarize(OPERATOR_ID, DAY) == []


def test_second_dispatch_finds_nothing(seeded):
    repo = PostgreSQLPaymentRepository(seeded)
    gateway = FakeGateway()
    _dispatch(repo, gateway).execute(OPERATOR_ID, 1, DAY)

    with pytest.raises(NoEligibleRecords):
        _dispatch(repo, gateway).execute(OPERATOR_ID, 1, DAY)

    assert len(gateway.payloads) == 1
    assert seeded.query(EnvioCorreo).count() == 1


def test_no_eligible_records_sends_nothing(db_session):
    add_provider(db_session, 1, "Hotel Rideau")
    gateway = FakeGateway()

    with pytest.raises(NoEligibleRecords) as exc_info:
        _dispatch(PostgreSQLPaymentRepository(db_session), gateway).execute(OPERATOR_ID, 1, DAY)

    assert exc_info.value.recipient_id == 1
    assert gateway.payloads == []
    assert db_session.query(EnvioCorreo).count() == 0


def test_unknown_recipient_is_no_eligible_records(db_session):
    gateway = FakeGateway()

    with pytest.raises(NoEligibleRecords):
        _dispatch(PostgreSQLPaymentRepository(db_session), gateway).execute(OPERATOR_ID, 404, DAY)

    assert gateway.payloads == []


def test_unknown_recipient_skips_the_payment_query():
    repo = MagicMock()
    repo.lock_recipient.return_value = None

    with pytest.raises(NoEligibleRecords):
        DispatchDeliveryUseCase(repo, FakeGateway()).execute(OPERATOR_ID, 404, DAY)

    repo.find_eligible_payments.assert_not_called()
    repo.rollback.assert_called_once()


def test_delivery_error_is_still_recorded_and_claims_records(seeded):
    repo = PostgreSQLPaymentRepository(seeded)
    gateway = FakeGateway(status=DeliveryStatus.DELIVERY_ERROR, raw={"estado": False})

    report = _dispatch(repo, gateway).execute(OPERATOR_ID, 1, DAY)

    assert report.delivery.status is DeliveryStatus.DELIVERY_ERROR
    assert report.gateway_response == {"estado": False}
    envios = seeded.query(EnvioCorreo).all()
    assert len(envios) == 1
    assert envios[0].estado == "DELIVERY_ERROR"
    assert SummarizePaymentsUseCase(repo).summarize(OPERATOR_ID, DAY) == []


def test_only_the_target_recipient_is_claimed(seeded):
    add_provider(seeded, 2, "Agencia Norte")
    add_payment(seeded, 201, 2, "3.00")
    repo = PostgreSQLPaymentRepository(seeded)

    _dispatch(repo).execute(OPERATOR_ID, 1, DAY)

    remaining = SummarizePaymentsUseCase(repo).summarize(OPERATOR_ID, DAY)
    assert [g.recipient_id for g in remaining] == [2]


def test_overrides_reach_payload_and_record(seeded):
    repo = PostgreSQLPaymentRepository(seeded)
    gateway = FakeGateway()

    report = _dispatch(repo, gateway).execute(OPERATOR_ID, 1, DAY, subject="Pagos de mayo", body="Adjuntamos el detalle.")

    assert report.delivery.subject == "Pagos de mayo"
    assert report.delivery.body == "Adjuntamos el detalle."
    assert gateway.payloads[0]["info_correo"]["asunto"] == "Pagos de mayo"


def test_each_payment_is_linked_to_exactly_one_delivery(db_session):
    add_provider(db_session, 1, "Hotel Rideau")
    add_provider(db_session, 2, "Agencia Norte")
    for pago_id, proveedor_id in [(1, 1), (2, 1), (3, 2), (4, 2), (5, 1)]:
        add_payment(db_session, pago_id, proveedor_id, "2.00")
    repo = PostgreSQLPaymentRepository(db_session)
    use_case = _dispatch(repo)

    for recipient_id in (1, 2, 1, 2):
        try:
            use_case.execute(OPERATOR_ID, recipient_id, DAY)
        except NoEligibleRecords:
            pass

    links = db_session.query(DetalleEnvioCorreo.pago_id).all()
    assert sorted(pago_id for (pago_id,) in links) == [1, 2, 3, 4, 5]
    assert db_session.query(EnvioCorreo).count() == 2


def test_persistence_failure_before_delivery_sends_nothing(seeded):
    gateway = FakeGateway()

    with pytest.raises(PersistenceError):
        _dispatch(FailingReadRepository(seeded), gateway).execute(OPERATOR_ID, 1, DAY)

    assert gateway.payloads == []


def test_persistence_failure_after_sent_is_flagged(seeded):
    gateway = FakeGateway()

    with pytest.raises(PersistenceAfterDeliveryFailure) as exc_info:
        _dispatch(FailingRecordRepository(seeded), gateway).execute(OPERATOR_ID, 1, DAY, subject="Asunto")

    error = exc_info.value
    assert not isinstance(error, PersistenceError)
    assert error.recipient_id == 1
    assert sorted(error.payment_ids) == [101, 102]
    assert error.subject == "Asunto"
    assert error.to_detail()["error"] == "persistence_after_delivery"
    assert len(gateway.payloads) == 1
    assert seeded.query(EnvioCorreo).count() == 0


def test_persistence_failure_after_delivery_error_is_plain_persistence_error(seeded):
    gateway = FakeGateway(status=DeliveryStatus.DELIVERY_ERROR)

    with pytest.raises(PersistenceError):
        _dispatch(FailingRecordRepository(seeded), gateway).execute(OPERATOR_ID, 1, DAY)


def test_claim_runs_under_recipient_lock_and_rolls_back_on_empty():
    repo = MagicMock()
    repo.find_eligible_payments.return_value = []

    with pytest.raises(NoEligibleRecords):
        DispatchDeliveryUseCase(repo, FakeGateway()).execute(OPERATOR_ID, 1, DAY)

    repo.lock_recipient.assert_called_once_with(1)
    repo.find_eligible_payments.assert_called_once_with(OPERATOR_ID, DAY, 1, for_update=True)
    repo.rollback.assert_called_once()
    repo.record_delivery.assert_not_called()
    repo.commit.assert_not_called()


def test_failed_rollback_does_not_hide_persistence_after_delivery(seeded):
    gateway = FakeGateway()

    with pytest.raises(PersistenceAfterDeliveryFailure) as exc_info:
        _dispatch(DeadConnectionRepository(seeded), gateway).execute(OPERATOR_ID, 1, DAY)

    assert sorted(exc_info.value.payment_ids) == [101, 102]
    assert len(gateway.payloads) == 1
    seeded.rollback()


def test_failed_rollback_does_not_hide_no_eligible_records():
    repo = MagicMock()
    repo.find_eligible_payments.return_value = []
    repo.rollback.side_effect = OperationalError("ROLLBACK", {}, Exception("server closed the connection"))

    with pytest.raises(NoEligibleRecords):
        DispatchDeliveryUseCase(repo, FakeGateway()).execute(OPERATOR_ID, 1, DAY)
