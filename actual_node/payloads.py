"""Validated shapes for the node's JSON parameters.

The host hands these over as JSON text (or as already decoded values when an
expression produced them). Each is checked against the model for its target
operation before anything reaches the vendor client.
"""

import json
import re
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic import ValidationError as PydanticValidationError

from actual_node.errors import ValidationError

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})(?:-\d{2})?$")


def _month(value) -> str:
    match = MONTH_PATTERN.match(str(value or "").strip())
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise ValueError(f"invalid month '{value}', expected YYYY-MM")
    return f"{match.group(1)}-{match.group(2)}"


def normalize_month(value: str) -> str:
    """Accept YYYY-MM or YYYY-MM-DD and return YYYY-MM."""
    try:
        return _month(value)
    except ValueError as e:
        raise ValidationError(f"Invalid month '{value}', expected YYYY-MM") from e


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


# ---------- BUDGET ----------

class BudgetUpdate(_Payload):
    month: str
    category_id: str = Field(alias="categoryId")
    amount: int | None = None
    carryover: bool | None = None

    @model_validator(mode="after")
    def _check(self):
        self.month = _month(self.month)
        if self.amount is None and self.carryover is None:
            raise ValueError("each update needs an amount or a carryover")
        return self


# ---------- RULES ----------

class RuleCondition(_Payload):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    field: str
    op: str
    value: Any = None
    type: str | None = None


class RuleAction(_Payload):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    op: str = "set"
    field: str | None = None
    value: Any = None
    type: str | None = None


# ---------- SCHEDULES ----------

class ScheduleDetails(_Payload):
    name: str | None = None
    date: str | dict | None = None
    amount: int | dict | None = None
    amount_op: Literal["is", "isapprox", "isbetween"] | None = Field(default=None, alias="amountOp")
    payee: str | None = None
    account: str | None = None
    posts_transaction: bool | None = Field(default=None, alias="postsTransaction")


# ---------- TRANSACTIONS ----------

class TransactionInput(_Payload):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date: date
    amount: int = 0
    payee: str | None = None
    payee_name: str | None = None
    category: str | None = None
    notes: str | None = None
    imported_id: str | None = None
    imported_payee: str | None = None
    cleared: bool = False


UPDATES = TypeAdapter(list[BudgetUpdate])
CONDITIONS = TypeAdapter(list[RuleCondition])
ACTIONS = TypeAdapter(list[RuleAction])
SCHEDULE = TypeAdapter(ScheduleDetails)
TRANSACTIONS = TypeAdapter(list[TransactionInput])


def parse_json_field(name: str, value: Any, adapter: TypeAdapter):
    """Decode ``value`` if it is JSON text and validate it with ``adapter``.

    Raises:
        ValidationError: naming ``name`` when decoding or validation fails
    """
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else None
        except json.JSONDecodeError as e:
            raise ValidationError(f"Parameter '{name}' is not valid JSON: {e.msg}") from e
    try:
        return adapter.validate_python(value)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or name}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Parameter '{name}' is invalid: {problems}") from e


def dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json", exclude_none=True)
