"""
Client gateway.

Besides CRUD it owns the single-sided plan-reference primitives
(add/remove/has).  They are deliberately not exposed by any service:
AssociationService pairs each with the mirror write on PlanGateway inside
one savepoint.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from gym_kernel.domain.entities import ClientInfo
from gym_kernel.domain.values import TrainingLevel
from gym_kernel.exceptions import ClientNotFoundError, DuplicateEmailError
from gym_kernel.gateways.base import BaseGateway, id_strings, id_tuple
from gym_kernel.models.client import Client


class ClientGateway(BaseGateway[Client, ClientInfo]):
    model = Client
    entity_name = "client"
    not_found_error = ClientNotFoundError

    def _to_entity(self, row: Client) -> ClientInfo:
        return ClientInfo(
            id=row.id,
            nombre=row.nombre,
            apellido=row.apellido,
            email=row.email,
            telefono=row.telefono,
            fecha_registro=row.fecha_registro,
            activo=row.activo,
            nivel=TrainingLevel(row.nivel),
            planes=id_tuple(row.plan_ids),
        )

    def insert(self, client: ClientInfo) -> ClientInfo:
        """
        Raises:
            DuplicateEmailError: If the email is already registered.
        """
        row = Client(
            id=client.id,
            nombre=client.nombre,
            apellido=client.apellido,
            email=client.email,
            telefono=client.telefono,
            fecha_registro=client.fecha_registro,
            activo=client.activo,
            nivel=client.nivel.value,
            plan_ids=id_strings(client.planes),
        )
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError as exc:
            raise DuplicateEmailError(client.email) from exc
        return self._to_entity(row)

    def update(self, client: ClientInfo) -> ClientInfo:
        """Write the scalar fields of ``client``.  Plan references are untouched."""
        row = self._get_row(client.id)
        return self._write(
            row,
            {
                "nombre": client.nombre,
                "apellido": client.apellido,
                "email": client.email,
                "telefono": client.telefono,
                "activo": client.activo,
                "nivel": client.nivel.value,
            },
            "update",
        )

    def find_by_email(self, email: str) -> ClientInfo | None:
        stmt = select(Client).where(Client.email == email.strip().lower())
        found = self._scalars(stmt, "find_by_email")
        return found[0] if found else None

    def list_active(self) -> list[ClientInfo]:
        stmt = select(Client).where(Client.activo.is_(True)).order_by(Client.apellido, Client.nombre)
        return self._scalars(stmt, "list_active")

    # -- plan references ----------------------------------------------------

    def has_plan_reference(self, cliente_id: UUID, plan_id: UUID) -> bool:
        row = self._get_row(cliente_id)
        return str(plan_id) in (row.plan_ids or [])

    def add_plan_reference(self, cliente_id: UUID, plan_id: UUID) -> bool:
        """Append ``plan_id`` unless present.  Returns the modified flag."""
        row = self._get_row(cliente_id, for_update=True)
        current = list(row.plan_ids or [])
        if str(plan_id) in current:
            return False
        row.plan_ids = current + [str(plan_id)]
        self._flush("add_plan_reference")
        return True

    def remove_plan_reference(self, cliente_id: UUID, plan_id: UUID) -> bool:
        """Remove ``plan_id`` if present.  Returns the modified flag."""
        row = self._get_row(cliente_id, for_update=True)
        current = list(row.plan_ids or [])
        if str(plan_id) not in current:
            return False
        row.plan_ids = [p for p in current if p != str(plan_id)]
        self._flush("remove_plan_reference")
        return True
