"""
Module: gym_kernel.selectors.base
Responsibility: Abstract base class for read-only selectors (balances,
    statistics, rankings).
Architecture position: Kernel > Selectors.  May import from db/, models/,
    gateways/ and domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Results are frozen dataclasses computed from committed rows visible
      to the caller's session; nothing derived is stored.
    - Money is summed in Python over Decimal values, never as SQL floats.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries and return DTOs.
    """

    def __init__(self, session: Session):
        self.session = session
