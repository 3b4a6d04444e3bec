"""
Tests for ContractService.

Covers:
- Creation guards (unknown references, inactive plan, duplicate vigente)
- Cancellation with progress-log compensation
- Extension by calendar months
- Finalization and deletion rules
- Listing by client, date range and expiry window
- Statistics
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from gym_kernel.domain.lifecycle import ContractState
from gym_kernel.exceptions import (
    ActiveContractExistsError,
    AlreadyCancelledError,
    ClientNotFoundError,
    ConflictError,
    DuplicateActiveContractError,
    InvalidStateTransitionError,
    PlanNotActiveError,
    PlanNotFoundError,
    ValidationError,
)
from gym_kernel.services import ContractService


class TestContractCreation:
    """Tests for ContractService.create."""

    def test_create_vigente(self, make_client, make_plan, make_contract, captured_logs):
        client, plan = make_client(), make_plan()
        contract = make_contract(client.id, plan.id, precio=100)

        assert contract.estado == ContractState.VIGENTE
        assert contract.precio == Decimal("100.00")
        assert any(r["message"] == "contract_created" for r in captured_logs())

    def test_second_vigente_for_pair_is_conflict(self, make_client, make_plan, make_contract):
        """A pair holds at most one vigente contract."""
        client, plan = make_client(), make_plan()
        make_contract(client.id, plan.id)

        with pytest.raises(DuplicateActiveContractError) as exc_info:
            make_contract(client.id, plan.id)
        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.code == "DUPLICATE_ACTIVE_CONTRACT"

    def test_same_client_other_plan_allowed(self, make_client, make_plan, make_contract, contract_service):
        client = make_client()
        make_contract(client.id, make_plan().id)
        make_contract(client.id, make_plan().id)
        assert len(contract_service.list_active_by_client(client.id)) == 2

    def test_unknown_client(self, make_plan, make_contract):
        with pytest.raises(ClientNotFoundError):
            make_contract(uuid4(), make_plan().id)

    def test_unknown_plan(self, make_client, make_contract):
        with pytest.raises(PlanNotFoundError):
            make_contract(make_client().id, uuid4())

    def test_inactive_plan(self, make_client, make_plan, make_contract, plan_service):
        plan = make_plan()
        plan_service.change_state(plan.id, "cancelado")
        with pytest.raises(PlanNotActiveError) as exc_info:
            make_contract(make_client().id, plan.id)
        assert exc_info.value.estado == "cancelado"

    def test_invalid_field(self, make_client, make_plan, make_contract):
        with pytest.raises(ValidationError) as exc_info:
            make_contract(make_client().id, make_plan().id, duracion_meses=0)
        assert exc_info.value.field == "duracion_meses"

    def test_rejection_logged(self, make_client, make_plan, make_contract, captured_logs):
        client, plan = make_client(), make_plan()
        make_contract(client.id, plan.id)
        with pytest.raises(DuplicateActiveContractError):
            make_contract(client.id, plan.id)
        rejected = [r for r in captured_logs() if r["message"] == "contract_create_rejected"]
        assert rejected[0]["error_code"] == "DUPLICATE_ACTIVE_CONTRACT"
        assert rejected[0]["level"] == "WARNING"


class TestContractCancellation:
    """Tests for ContractService.cancel."""

    def test_cancel_sets_state_and_reason(self, make_client, make_plan, make_contract, contract_service):
        contract = make_contract(make_client().id, make_plan().id)
        result = contract_service.cancel(contract.id, "mudanza")

        assert result.contract.estado == ContractState.CANCELADO
        assert result.contract.motivo_cancelacion == "mudanza"
        assert contract_service.get_by_id(contract.id).estado == ContractState.CANCELADO

    def test_cancel_twice(self, make_client, make_plan, make_contract, contract_service):
        contract = make_contract(make_client().id, make_plan().id)
        contract_service.cancel(contract.id)
        with pytest.raises(AlreadyCancelledError):
            contract_service.cancel(contract.id)

    def test_cancel_finalized(self, make_client, make_plan, make_contract, contract_service):
        contract = make_contract(make_client().id, make_plan().id)
        contract_service.finalize(contract.id)
        with pytest.raises(InvalidStateTransitionError):
            contract_service.cancel(contract.id)

    def test_compensation_removes_contract_logs(
        self, make_client, make_plan, make_contract, contract_service, progress_log_service
    ):
        client = make_client()
        contract = make_contract(client.id, make_plan().id)
        progress_log_service.record(cliente_id=client.id, contrato_id=contract.id, peso=80)
        progress_log_service.record(cliente_id=client.id, peso=79)

        result = contract_service.cancel(contract.id)

        assert result.compensation.is_ok
        assert result.compensation.value == 1
        assert len(progress_log_service.list_by_client(client.id)) == 1

    def test_cancel_frees_the_pair(self, make_client, make_plan, make_contract, contract_service):
        client, plan = make_client(), make_plan()
        first = make_contract(client.id, plan.id)
        contract_service.cancel(first.id)
        second = make_contract(client.id, plan.id)
        assert second.is_vigente


class TestContractExtension:
    """Tests for ContractService.extend."""

    def test_extend_by_calendar_months(self, make_client, make_plan, make_contract, contract_service):
        """fecha_fin 2025-01-31 + 3 months -> 2025-04-30."""
        contract = make_contract(
            make_client().id,
            make_plan().id,
            duracion_meses=12,
            fecha_inicio=datetime(2024, 1, 31, tzinfo=timezone.utc),
            fecha_fin=datetime(2025, 1, 31, tzinfo=timezone.utc),
        )
        extended = contract_service.extend(contract.id, 3)

        assert extended.duracion_meses == 15
        assert extended.fecha_fin == datetime(2025, 4, 30, tzinfo=timezone.utc)
        assert extended.fecha_inicio == contract.fecha_inicio

    @pytest.mark.parametrize("meses", [0, -1, 1.5, "3", True])
    def test_invalid_months(self, make_client, make_plan, make_contract, contract_service, meses):
        contract = make_contract(make_client().id, make_plan().id)
        with pytest.raises(ValidationError):
            contract_service.extend(contract.id, meses)

    def test_total_duration_capped(self, make_client, make_plan, make_contract, contract_service):
        contract = make_contract(make_client().id, make_plan().id, duracion_meses=58)
        with pytest.raises(ValidationError):
            contract_service.extend(contract.id, 3)

    def test_only_vigente(self, make_client, make_plan, make_contract, contract_service):
        contract = make_contract(make_client().id, make_plan().id)
        contract_service.cancel(contract.id)
        with pytest.raises(ConflictError):
            contract_service.extend(contract.id, 1)


class TestFinalizeAndDelete:
    def test_finalize_is_terminal(self, make_client, make_plan, make_contract, contract_service):
        contract = make_contract(make_client().id, make_plan().id)
        finalized = contract_service.finalize(contract.id)
        assert finalized.estado == ContractState.FINALIZADO
        with pytest.raises(InvalidStateTransitionError):
            contract_service.finalize(contract.id)

    def test_delete_vigente_refused(self, make_client, make_plan, make_contract, contract_service):
        contract = make_contract(make_client().id, make_plan().id)
        with pytest.raises(ActiveContractExistsError):
            contract_service.delete(contract.id)
        assert contract_service.find_by_id(contract.id) is not None

    def test_delete_terminal(self, make_client, make_plan, make_contract, contract_service):
        contract = make_contract(make_client().id, make_plan().id)
        contract_service.cancel(contract.id)
        contract_service.delete(contract.id)
        assert contract_service.find_by_id(contract.id) is None


class TestContractQueries:
    def test_list_by_date_range(self, make_client, make_plan, make_contract, contract_service):
        client = make_client()
        early = make_contract(
            client.id, make_plan().id, duracion_meses=12,
            fecha_inicio=datetime(2024, 1, 10, tzinfo=timezone.utc),
        )
        make_contract(client.id, make_plan().id, duracion_meses=12)

        found = contract_service.list_by_date_range(
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            datetime(2024, 1, 31, tzinfo=timezone.utc),
        )
        assert [c.id for c in found] == [early.id]

    def test_list_by_date_range_inverted(self, contract_service):
        with pytest.raises(ValidationError):
            contract_service.list_by_date_range(
                datetime(2024, 2, 1, tzinfo=timezone.utc),
                datetime(2024, 1, 1, tzinfo=timezone.utc),
            )

    def test_near_expiration_and_expired(
        self, make_client, make_plan, make_contract, contract_service, deterministic_clock
    ):
        client = make_client()
        now = deterministic_clock.now()
        soon = make_contract(
            client.id, make_plan().id, duracion_meses=1, fecha_inicio=now - timedelta(days=20)
        )
        make_contract(client.id, make_plan().id, duracion_meses=12)
        expired = make_contract(
            client.id, make_plan().id, duracion_meses=1, fecha_inicio=now - timedelta(days=45)
        )

        assert [c.id for c in contract_service.list_near_expiration()] == [soon.id]
        assert [c.id for c in contract_service.list_near_expiration(days=5)] == []
        assert [c.id for c in contract_service.list_expired()] == [expired.id]

    def test_near_expiration_default_from_settings(self, session, deterministic_clock):
        service = ContractService(session, deterministic_clock, near_expiration_days=7)
        assert service.list_near_expiration() == []

    def test_stats(self, make_client, make_plan, make_contract, contract_service):
        client = make_client()
        a = make_contract(client.id, make_plan().id, precio=100, duracion_meses=6)
        make_contract(client.id, make_plan().id, precio=200, duracion_meses=12)
        contract_service.cancel(a.id)

        stats = contract_service.stats()

        assert stats.total == 2
        assert stats.por_estado == {"vigente": 1, "cancelado": 1, "finalizado": 0}
        assert stats.ingresos_por_estado["vigente"] == Decimal("200.00")
        assert stats.ingresos_por_estado["cancelado"] == Decimal("100.00")
        assert stats.precio_promedio == Decimal("150.00")
        assert stats.duracion_promedio == Decimal("9.00")
        assert len(stats.por_mes) == 12
        assert stats.por_mes["2024-06"] == 2
