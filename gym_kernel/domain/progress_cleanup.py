"""
Progress-log cleanup interface.

The cascade removes a client's progress logs after cancelling the contract
that justified them.  It only knows this protocol, never the progress-log
subsystem itself; ProgressLogGateway is the store-backed implementation
and tests substitute fakes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID


@runtime_checkable
class ProgressLogCleaner(Protocol):
    """Protocol for the compensating progress-log deletion.

    Implementations: ProgressLogGateway.
    """

    def delete_by_client_id(self, cliente_id: UUID, reason: str) -> int:
        """Delete every progress log of the client and return the count removed."""
        ...

    def delete_by_contract_id(self, contrato_id: UUID, reason: str) -> int:
        """Delete progress logs tagged with the contract and return the count removed."""
        ...
