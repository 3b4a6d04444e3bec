"""
Tests for plan/client association.

Bidirectionality: after every committed operation, client C is in plan P's
list iff P is in C's list.  A failure on either side of the dual write
leaves neither side changed.
"""

from uuid import uuid4

import pytest

from gym_kernel.domain.policy import LevelPolicy
from gym_kernel.exceptions import (
    ActiveContractExistsError,
    AlreadyAssociatedError,
    ClientNotFoundError,
    ConflictError,
    LevelIncompatibleError,
    NotAssociatedError,
    PersistenceError,
    PlanNotActiveError,
)
from gym_kernel.gateways.client_gateway import ClientGateway
from gym_kernel.gateways.plan_gateway import PlanGateway
from gym_kernel.services import AssociationService


def _assert_consistent(plan_service, client_service, plan_id, cliente_id, associated):
    plan = plan_service.get_by_id(plan_id)
    client = client_service.get_by_id(cliente_id)
    assert plan.has_client(cliente_id) is associated
    assert client.has_plan(plan_id) is associated


class TestAssociate:
    def test_both_sides_updated(
        self, make_plan, make_client, association_service, plan_service, client_service
    ):
        plan, client = make_plan(), make_client()
        result = association_service.associate(plan.id, client.id)

        assert result.consistent
        assert result.plan.clientes == (client.id,)
        assert result.client.planes == (plan.id,)
        _assert_consistent(plan_service, client_service, plan.id, client.id, True)

    def test_already_associated(self, make_plan, make_client, association_service):
        plan, client = make_plan(), make_client()
        association_service.associate(plan.id, client.id)
        with pytest.raises(AlreadyAssociatedError):
            association_service.associate(plan.id, client.id)

    def test_inactive_plan(self, make_plan, make_client, association_service, plan_service):
        plan = make_plan()
        plan_service.change_state(plan.id, "cancelado")
        with pytest.raises(PlanNotActiveError):
            association_service.associate(plan.id, make_client().id)

    def test_inactive_plan_checked_before_client(self, make_plan, association_service, plan_service):
        plan = make_plan()
        plan_service.change_state(plan.id, "cancelado")
        with pytest.raises(PlanNotActiveError):
            association_service.associate(plan.id, uuid4())

    def test_level_incompatible(self, make_plan, make_client, association_service):
        plan = make_plan(nivel="principiante")
        client = make_client(nivel="avanzado")
        with pytest.raises(LevelIncompatibleError) as exc_info:
            association_service.associate(plan.id, client.id)
        assert isinstance(exc_info.value, ConflictError)

    def test_custom_policy(self, session, deterministic_clock, make_plan, make_client):
        service = AssociationService(
            session,
            deterministic_clock,
            level_policy=LevelPolicy.from_mapping({"avanzado": ["principiante", "avanzado"]}),
        )
        result = service.associate(make_plan(nivel="principiante").id, make_client(nivel="avanzado").id)
        assert result.consistent

    def test_unknown_client(self, make_plan, association_service):
        with pytest.raises(ClientNotFoundError):
            association_service.associate(make_plan().id, uuid4())

    def test_failed_second_write_leaves_neither_side(
        self, make_plan, make_client, association_service, plan_service, client_service, captured_logs
    ):
        plan, client = make_plan(), make_client()

        def broken(gateway, cliente_id, plan_id):
            raise PersistenceError("client", "add_plan_reference", "disk full")

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(ClientGateway, "add_plan_reference", broken)
            with pytest.raises(PersistenceError):
                association_service.associate(plan.id, client.id)

        _assert_consistent(plan_service, client_service, plan.id, client.id, False)
        assert any(r["message"] == "plan_associate_client_rejected" for r in captured_logs())

    def test_available_plans(self, make_plan, make_client, association_service, plan_service):
        client = make_client(nivel="intermedio")
        joined = make_plan(nivel="avanzado")
        open_plan = make_plan(nivel="intermedio")
        make_plan(nivel="principiante")
        closed = make_plan(nivel="avanzado")
        plan_service.change_state(closed.id, "cancelado")
        association_service.associate(joined.id, client.id)

        available = association_service.available_plans_for_client(client.id)

        assert [p.id for p in available] == [open_plan.id]


class TestDisassociate:
    def test_refused_with_vigente_contract_then_allowed(
        self, association_service, contract_service, plan_service, client_service, enrolled
    ):
        plan, client, contract = enrolled()
        with pytest.raises(ConflictError) as exc_info:
            association_service.disassociate(plan.id, client.id)
        assert isinstance(exc_info.value, ActiveContractExistsError)
        _assert_consistent(plan_service, client_service, plan.id, client.id, True)

        contract_service.cancel(contract.id)
        result = association_service.disassociate(plan.id, client.id)

        assert result.consistent
        _assert_consistent(plan_service, client_service, plan.id, client.id, False)

    def test_not_associated(self, make_plan, make_client, association_service):
        with pytest.raises(NotAssociatedError):
            association_service.disassociate(make_plan().id, make_client().id)

    def test_repairs_one_sided_reference(
        self, session, make_plan, make_client, association_service, plan_service, client_service
    ):
        """A reference held by only one side is still removed from both."""
        plan, client = make_plan(), make_client()
        PlanGateway(session).add_client_reference(plan.id, client.id)
        session.commit()

        association_service.disassociate(plan.id, client.id)

        _assert_consistent(plan_service, client_service, plan.id, client.id, False)

    def test_plan_service_delegates(self, make_plan, make_client, plan_service, client_service):
        plan, client = make_plan(), make_client()
        plan_service.associate_client(plan.id, client.id)
        _assert_consistent(plan_service, client_service, plan.id, client.id, True)
        plan_service.disassociate_client(plan.id, client.id)
        _assert_consistent(plan_service, client_service, plan.id, client.id, False)
