"""
Module: gym_kernel.db.types
Responsibility: Column types shared by every model: portable UUID and
    timezone-aware datetime decorators plus annotated aliases for the
    recurring string and money widths.
Architecture position: Kernel > DB.  Imported by db/base.py and models/.
    MUST NOT import from domain/, gateways/ or services/.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return UUID(str(value))
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime normalized to UTC.

    Contract:
        Naive values are taken to be UTC.  Aware values are converted to UTC
        before binding.  Values read back are always aware UTC, including on
        SQLite which stores timestamps without an offset.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# Monetary amount at two decimals (precio, monto)
Money = Annotated[Decimal, Numeric(12, 2)]

# Lower-case enum value (estado, nivel, metodo_pago, ...)
StateCode = Annotated[str, String(20)]

# Person names
NameText = Annotated[str, String(50)]

# Plan names, emails, payment references
ShortText = Annotated[str, String(100)]

# Goals, notes, cancellation reasons
MediumText = Annotated[str, String(500)]

# Contract conditions, progress-log comments
LongText = Annotated[str, String(2000)]
