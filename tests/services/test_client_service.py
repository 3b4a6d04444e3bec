"""Tests for ClientService and ProgressLogService."""

from datetime import timedelta
from uuid import uuid4

import pytest

from gym_kernel.domain.results import PhaseStatus
from gym_kernel.exceptions import (
    ActiveContractExistsError,
    ClientNotFoundError,
    ContractNotFoundError,
    DuplicateEmailError,
    ValidationError,
)


class TestClientCreation:
    def test_normalized_fields(self, make_client, deterministic_clock):
        client = make_client(email="  Ana.Lopez@Gym.TEST ", telefono="(555) 123-4567")
        assert client.email == "ana.lopez@gym.test"
        assert client.telefono == "5551234567"
        assert client.fecha_registro == deterministic_clock.now()
        assert client.nivel.value == "principiante"
        assert client.activo is True

    def test_duplicate_email_case_insensitive(self, make_client):
        make_client(email="ana@gym.test")
        with pytest.raises(DuplicateEmailError):
            make_client(email="ANA@gym.test")

    def test_future_registration(self, make_client, deterministic_clock):
        with pytest.raises(ValidationError) as exc_info:
            make_client(fecha_registro=deterministic_clock.now() + timedelta(days=1))
        assert exc_info.value.field == "fecha_registro"

    @pytest.mark.parametrize("telefono", ["123", "555-abc-4567"])
    def test_invalid_phone(self, make_client, telefono):
        with pytest.raises(ValidationError):
            make_client(telefono=telefono)


class TestClientUpdate:
    def test_update(self, make_client, client_service):
        client = make_client()
        updated = client_service.update(client.id, {"nivel": "avanzado", "activo": False})
        assert updated.nivel.value == "avanzado"
        assert client.id not in {c.id for c in client_service.list_active()}

    def test_email_taken(self, make_client, client_service):
        make_client(email="ana@gym.test")
        other = make_client()
        with pytest.raises(DuplicateEmailError):
            client_service.update(other.id, {"email": "ana@gym.test"})

    def test_same_email_kept(self, make_client, client_service):
        client = make_client(email="ana@gym.test")
        assert client_service.update(client.id, {"email": "ANA@gym.test"}).email == "ana@gym.test"

    def test_plan_list_not_updatable(self, make_client, client_service):
        client = make_client()
        with pytest.raises(ValidationError):
            client_service.update(client.id, {"planes": [uuid4()]})


class TestClientDelete:
    """Delete detaches the client from its plans and cleans up progress logs."""

    def test_refused_with_vigente_contract(self, client_service, enrolled):
        _, client, _ = enrolled()
        with pytest.raises(ActiveContractExistsError):
            client_service.delete(client.id)
        assert client_service.get_by_id(client.id).id == client.id

    def test_detaches_and_compensates(
        self, client_service, plan_service, contract_service, progress_log_service, enrolled
    ):
        plan, client, contract = enrolled()
        progress_log_service.record(cliente_id=client.id, peso=81.5, comentarios="inicio")
        contract_service.cancel(contract.id)

        result = client_service.delete(client.id)

        assert result.detached_plan_ids == (plan.id,)
        assert result.compensation.status == PhaseStatus.OK
        assert result.compensation.value == 1
        assert plan_service.get_by_id(plan.id).clientes == ()
        assert client_service.find_by_email(client.email) is None
        with pytest.raises(ClientNotFoundError):
            client_service.get_by_id(client.id)

    def test_delete_unknown(self, client_service):
        with pytest.raises(ClientNotFoundError):
            client_service.delete(uuid4())


class TestProgressLogs:
    def test_record_and_list(self, make_client, progress_log_service):
        client = make_client()
        log = progress_log_service.record(cliente_id=client.id, peso="72.456", grasa_corporal=18)
        assert str(log.peso) == "72.46"
        assert progress_log_service.get_by_id(log.id) == log
        assert progress_log_service.list_by_client(client.id) == [log]

    def test_unknown_client(self, progress_log_service):
        with pytest.raises(ClientNotFoundError):
            progress_log_service.record(cliente_id=uuid4(), peso=70)

    def test_unknown_contract(self, make_client, progress_log_service):
        with pytest.raises(ContractNotFoundError):
            progress_log_service.record(cliente_id=make_client().id, contrato_id=uuid4())

    def test_body_fat_range(self, make_client, progress_log_service):
        with pytest.raises(ValidationError) as exc_info:
            progress_log_service.record(cliente_id=make_client().id, grasa_corporal=101)
        assert exc_info.value.field == "grasa_corporal"
