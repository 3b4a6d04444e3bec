"""
Entity validators (``gym_kernel.domain.validation``).

Responsibility
--------------
Turn raw field values into validated, normalized entities.  Strings are
trimmed, enums lower-cased, emails lower-cased, phone separators stripped
and money rounded, so nothing downstream re-validates.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.  "Now" is an
argument supplied by the caller's Clock.

Failure modes
-------------
* The first offending field raises ``ValidationError(field, message)``.
  Field names are the entity attribute names.
"""

from __future__ import annotations

import re
from dataclasses import fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, TypeVar
from uuid import UUID, uuid4

from gym_kernel.domain.entities import (
    ClientInfo,
    ContractInfo,
    PaymentInfo,
    PlanInfo,
    ProgressLogInfo,
)
from gym_kernel.domain.lifecycle import ContractState, PaymentState, PlanState
from gym_kernel.domain.values import (
    MovementType,
    PaymentMethod,
    TrainingLevel,
    add_months,
    months_between,
    one_day_after,
    round2,
    to_decimal,
    years_after,
    years_before,
)
from gym_kernel.exceptions import ValidationError

E = TypeVar("E", bound=Enum)

MAX_AMOUNT = Decimal("1000000")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")

CLIENT_HISTORY_YEARS = 10
PAYMENT_PAST_YEARS = 5
PAYMENT_FUTURE_YEARS = 1
PROGRESS_HISTORY_YEARS = 1

# Tolerance, in months, between a contract's dates and its duration.
DURATION_TOLERANCE_MONTHS = 1


# ---------------------------------------------------------------------------
# Field primitives
# ---------------------------------------------------------------------------


def require_text(
    field: str,
    value: Any,
    min_len: int,
    max_len: int,
) -> str:
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    text = value.strip()
    if len(text) < min_len:
        raise ValidationError(field, f"must have at least {min_len} characters")
    if len(text) > max_len:
        raise ValidationError(field, f"must have at most {max_len} characters")
    return text


def optional_text(field: str, value: Any, max_len: int) -> str | None:
    """Blank or missing optional text is stored as None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    text = value.strip()
    if not text:
        return None
    if len(text) > max_len:
        raise ValidationError(field, f"must have at most {max_len} characters")
    return text


def require_int(field: str, value: Any, low: int, high: int) -> int:
    if isinstance(value, bool):
        raise ValidationError(field, "must be an integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(field, "must be an integer")
    if value < low or value > high:
        raise ValidationError(field, f"must be between {low} and {high}")
    return value


def require_enum(field: str, value: Any, enum_cls: type[E]) -> E:
    """Case-insensitive enum membership, normalized to the lower-case value."""
    if isinstance(value, enum_cls):
        return value
    allowed = ", ".join(m.value for m in enum_cls)
    if not isinstance(value, str):
        raise ValidationError(field, f"must be one of: {allowed}")
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        raise ValidationError(field, f"must be one of: {allowed}") from None


def require_uuid(field: str, value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    if value is None or value == "":
        raise ValidationError(field, "is required")
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(field, "must be a valid identifier") from None


def optional_uuid(field: str, value: Any) -> UUID | None:
    if value is None or value == "":
        return None
    return require_uuid(field, value)


def require_datetime(field: str, value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError(field, "must be a datetime")
    if value.tzinfo is None:
        raise ValidationError(field, "must be timezone-aware")
    return value


def require_amount(
    field: str,
    value: Any,
    *,
    minimum: Decimal,
    inclusive_minimum: bool,
    maximum: Decimal = MAX_AMOUNT,
) -> Decimal:
    try:
        amount = round2(value)
    except ValueError:
        raise ValidationError(field, "must be a number") from None
    if inclusive_minimum and amount < minimum:
        raise ValidationError(field, f"must be at least {minimum}")
    if not inclusive_minimum and amount <= minimum:
        raise ValidationError(field, f"must be greater than {minimum}")
    if amount > maximum:
        raise ValidationError(field, f"cannot exceed {maximum}")
    return amount


def require_id_list(field: str, values: Iterable[Any] | None) -> tuple[UUID, ...]:
    """Identifiers in first-seen order with duplicates removed."""
    seen: dict[UUID, None] = {}
    for value in values or ():
        seen.setdefault(require_uuid(field, value), None)
    return tuple(seen)


def normalize_phone(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError("telefono", "must be a string")
    digits = PHONE_SEPARATORS.sub("", value)
    if not digits.isdigit():
        raise ValidationError("telefono", "may only contain digits, spaces, dashes and parentheses")
    if not 7 <= len(digits) <= 15:
        raise ValidationError("telefono", "must have between 7 and 15 digits")
    return digits


def normalize_email(value: Any) -> str:
    email = require_text("email", value, 3, 100).lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email", "is not a valid email address")
    return email


# ---------------------------------------------------------------------------
# Entity validators
# ---------------------------------------------------------------------------


def validate_client(
    *,
    nombre: Any,
    apellido: Any,
    email: Any,
    telefono: Any,
    now: datetime,
    fecha_registro: Any = None,
    activo: Any = True,
    nivel: Any = None,
    planes: Iterable[Any] | None = None,
    client_id: Any = None,
) -> ClientInfo:
    fecha = now if fecha_registro is None else require_datetime("fecha_registro", fecha_registro)
    if fecha > now:
        raise ValidationError("fecha_registro", "cannot be in the future")
    if fecha < years_before(now, CLIENT_HISTORY_YEARS):
        raise ValidationError(
            "fecha_registro", f"cannot be more than {CLIENT_HISTORY_YEARS} years old"
        )
    if not isinstance(activo, bool):
        raise ValidationError("activo", "must be a boolean")

    return ClientInfo(
        id=optional_uuid("id", client_id) or uuid4(),
        nombre=require_text("nombre", nombre, 2, 50),
        apellido=require_text("apellido", apellido, 2, 50),
        email=normalize_email(email),
        telefono=normalize_phone(telefono),
        fecha_registro=fecha,
        activo=activo,
        nivel=require_enum("nivel", nivel or TrainingLevel.PRINCIPIANTE.value, TrainingLevel),
        planes=require_id_list("planes", planes),
    )


def validate_plan(
    *,
    nombre: Any,
    duracion_semanas: Any,
    metas_fisicas: Any,
    nivel: Any,
    estado: Any = PlanState.ACTIVO,
    clientes: Iterable[Any] | None = None,
    plan_id: Any = None,
) -> PlanInfo:
    return PlanInfo(
        id=optional_uuid("id", plan_id) or uuid4(),
        nombre=require_text("nombre", nombre, 3, 100),
        duracion_semanas=require_int("duracion_semanas", duracion_semanas, 1, 104),
        metas_fisicas=require_text("metas_fisicas", metas_fisicas, 5, 500),
        nivel=require_enum("nivel", nivel, TrainingLevel),
        estado=require_enum("estado", estado, PlanState),
        clientes=require_id_list("clientes", clientes),
    )


def validate_contract(
    *,
    cliente_id: Any,
    plan_id: Any,
    condiciones: Any,
    duracion_meses: Any,
    precio: Any,
    now: datetime,
    fecha_inicio: Any = None,
    fecha_fin: Any = None,
    estado: Any = ContractState.VIGENTE,
    motivo_cancelacion: Any = None,
    contract_id: Any = None,
) -> ContractInfo:
    cliente = require_uuid("cliente_id", cliente_id)
    plan = require_uuid("plan_id", plan_id)
    texto = require_text("condiciones", condiciones, 10, 2000)
    meses = require_int("duracion_meses", duracion_meses, 1, 60)
    monto = require_amount(
        "precio", precio, minimum=Decimal("0"), inclusive_minimum=True
    )

    inicio = now if fecha_inicio is None else require_datetime("fecha_inicio", fecha_inicio)
    if inicio > one_day_after(now):
        raise ValidationError("fecha_inicio", "cannot be more than 1 day in the future")

    fin = add_months(inicio, meses) if fecha_fin is None else require_datetime("fecha_fin", fecha_fin)
    if fin <= inicio:
        raise ValidationError("fecha_fin", "must be after fecha_inicio")

    elapsed = months_between(inicio, fin)
    if abs(elapsed - meses) > DURATION_TOLERANCE_MONTHS:
        raise ValidationError(
            "duracion_meses",
            f"does not match the contract dates ({elapsed:.1f} months apart)",
        )

    return ContractInfo(
        id=optional_uuid("id", contract_id) or uuid4(),
        cliente_id=cliente,
        plan_id=plan,
        condiciones=texto,
        duracion_meses=meses,
        precio=monto,
        fecha_inicio=inicio,
        fecha_fin=fin,
        estado=require_enum("estado", estado, ContractState),
        motivo_cancelacion=optional_text("motivo_cancelacion", motivo_cancelacion, 500),
    )


def validate_payment(
    *,
    monto: Any,
    metodo_pago: Any,
    now: datetime,
    fecha_pago: Any = None,
    estado: Any = PaymentState.PENDIENTE,
    tipo_movimiento: Any = MovementType.INGRESO,
    cliente_id: Any = None,
    contrato_id: Any = None,
    referencia: Any = None,
    notas: Any = None,
    payment_id: Any = None,
) -> PaymentInfo:
    amount = require_amount("monto", monto, minimum=Decimal("0"), inclusive_minimum=False)

    fecha = now if fecha_pago is None else require_datetime("fecha_pago", fecha_pago)
    if fecha < years_before(now, PAYMENT_PAST_YEARS):
        raise ValidationError(
            "fecha_pago", f"cannot be more than {PAYMENT_PAST_YEARS} years in the past"
        )
    if fecha > years_after(now, PAYMENT_FUTURE_YEARS):
        raise ValidationError(
            "fecha_pago", f"cannot be more than {PAYMENT_FUTURE_YEARS} year in the future"
        )

    state = require_enum("estado", estado, PaymentState)
    note = optional_text("notas", notas, 500)
    if state == PaymentState.CANCELADO and note is None:
        # The notes of a cancelled payment are its cancellation reason.
        raise ValidationError("notas", "a cancelled payment requires a cancellation reason")

    return PaymentInfo(
        id=optional_uuid("id", payment_id) or uuid4(),
        monto=amount,
        fecha_pago=fecha,
        metodo_pago=require_enum("metodo_pago", metodo_pago, PaymentMethod),
        estado=state,
        tipo_movimiento=require_enum("tipo_movimiento", tipo_movimiento, MovementType),
        cliente_id=optional_uuid("cliente_id", cliente_id),
        contrato_id=optional_uuid("contrato_id", contrato_id),
        referencia=optional_text("referencia", referencia, 100),
        notas=note,
    )


def validate_progress_log(
    *,
    cliente_id: Any,
    now: datetime,
    contrato_id: Any = None,
    fecha: Any = None,
    peso: Any = None,
    grasa_corporal: Any = None,
    comentarios: Any = "",
    log_id: Any = None,
) -> ProgressLogInfo:
    when = now if fecha is None else require_datetime("fecha", fecha)
    if when > one_day_after(now):
        raise ValidationError("fecha", "cannot be more than 1 day in the future")
    if when < years_before(now, PROGRESS_HISTORY_YEARS):
        raise ValidationError("fecha", "cannot be more than 1 year old")

    weight = None
    if peso is not None:
        weight = require_amount(
            "peso", peso, minimum=Decimal("0"), inclusive_minimum=False, maximum=Decimal("500")
        )
    body_fat = None
    if grasa_corporal is not None:
        body_fat = require_amount(
            "grasa_corporal",
            grasa_corporal,
            minimum=Decimal("0"),
            inclusive_minimum=True,
            maximum=Decimal("100"),
        )

    return ProgressLogInfo(
        id=optional_uuid("id", log_id) or uuid4(),
        cliente_id=require_uuid("cliente_id", cliente_id),
        contrato_id=optional_uuid("contrato_id", contrato_id),
        fecha=when,
        peso=weight,
        grasa_corporal=body_fat,
        comentarios=optional_text("comentarios", comentarios, 1000) or "",
    )


# ---------------------------------------------------------------------------
# Partial updates
# ---------------------------------------------------------------------------


def _merge(current: Any, changes: Mapping[str, Any], updatable: frozenset[str]) -> dict[str, Any]:
    unknown = set(changes) - updatable
    if unknown:
        name = sorted(unknown)[0]
        raise ValidationError(name, "cannot be updated through this operation")
    merged = {f.name: getattr(current, f.name) for f in fields(current)}
    merged.update(changes)
    return merged


PLAN_UPDATABLE = frozenset({"nombre", "duracion_semanas", "metas_fisicas", "nivel"})
PAYMENT_UPDATABLE = frozenset(
    {"monto", "fecha_pago", "metodo_pago", "tipo_movimiento", "referencia", "notas", "cliente_id", "contrato_id"}
)
CLIENT_UPDATABLE = frozenset({"nombre", "apellido", "email", "telefono", "activo", "nivel"})


def validate_plan_update(current: PlanInfo, changes: Mapping[str, Any]) -> PlanInfo:
    """Re-validate a plan with ``changes`` applied.  State and clients are kept."""
    merged = _merge(current, changes, PLAN_UPDATABLE)
    return validate_plan(
        nombre=merged["nombre"],
        duracion_semanas=merged["duracion_semanas"],
        metas_fisicas=merged["metas_fisicas"],
        nivel=merged["nivel"],
        estado=current.estado,
        clientes=current.clientes,
        plan_id=current.id,
    )


def validate_payment_update(
    current: PaymentInfo, changes: Mapping[str, Any], now: datetime
) -> PaymentInfo:
    """Re-validate a payment with ``changes`` applied.  State is kept."""
    merged = _merge(current, changes, PAYMENT_UPDATABLE)
    return validate_payment(
        monto=merged["monto"],
        metodo_pago=merged["metodo_pago"],
        now=now,
        fecha_pago=merged["fecha_pago"],
        estado=current.estado,
        tipo_movimiento=merged["tipo_movimiento"],
        cliente_id=merged["cliente_id"],
        contrato_id=merged["contrato_id"],
        referencia=merged["referencia"],
        notas=merged["notas"],
        payment_id=current.id,
    )


def validate_client_update(
    current: ClientInfo, changes: Mapping[str, Any], now: datetime
) -> ClientInfo:
    """Re-validate a client with ``changes`` applied.  Plan references are kept."""
    merged = _merge(current, changes, CLIENT_UPDATABLE)
    return validate_client(
        nombre=merged["nombre"],
        apellido=merged["apellido"],
        email=merged["email"],
        telefono=merged["telefono"],
        now=now,
        fecha_registro=current.fecha_registro,
        activo=merged["activo"],
        nivel=merged["nivel"],
        planes=current.planes,
        client_id=current.id,
    )
