from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from .attribute_value import AttributeValue
from .codec import encode, encode_key
from .errors import ValidationError

if TYPE_CHECKING:
    from .table import ItemTable, WriteOutcome


class ReturnValues(Enum):
    NONE = "NONE"
    ALL_OLD = "ALL_OLD"
    ALL_NEW = "ALL_NEW"
    UPDATED_OLD = "UPDATED_OLD"
    UPDATED_NEW = "UPDATED_NEW"


@dataclass(frozen=True)
class Condition:
    field: str
    operator: str
    value: Any = None
    logic: str = "AND"

    @staticmethod
    def equals(field: str, value: Any) -> Condition:
        return Condition(field, "=", value)

    @staticmethod
    def exists(field: str) -> Condition:
        return Condition(field, "EXISTS")

    @staticmethod
    def not_exists(field: str) -> Condition:
        return Condition(field, "NOT_EXISTS")


@dataclass(frozen=True)
class UpdateRequest:
    table_name: str
    key: Mapping[str, Any]
    update_expression: str
    expression_attribute_names: Mapping[str, str]
    expression_attribute_values: Mapping[str, Any]
    condition_expression: str | None = None
    return_values: ReturnValues = ReturnValues.NONE

    def to_params(self) -> dict[str, Any]:
        req: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": dict(self.key),
            "UpdateExpression": self.update_expression,
            "ExpressionAttributeNames": dict(self.expression_attribute_names),
            "ReturnValues": self.return_values.value,
        }
        if self.expression_attribute_values:
            req["ExpressionAttributeValues"] = dict(self.expression_attribute_values)
        if self.condition_expression is not None:
            req["ConditionExpression"] = self.condition_expression
        return req


MAX_IN_VALUES = 100

# operator spelling -> expression syntax
_COMPARATORS = {
    "=": "=",
    "==": "=",
    "EQ": "=",
    "!=": "<>",
    "<>": "<>",
    "NE": "<>",
    "<": "<",
    "LT": "<",
    "<=": "<=",
    "LE": "<=",
    ">": ">",
    "GT": ">",
    ">=": ">=",
    "GE": ">=",
}
_VALUE_FUNCTIONS = {"BEGINS_WITH": "begins_with", "CONTAINS": "contains"}
_PRESENCE_FUNCTIONS = {
    "EXISTS": "attribute_exists",
    "ATTRIBUTE_EXISTS": "attribute_exists",
    "NOT_EXISTS": "attribute_not_exists",
    "ATTRIBUTE_NOT_EXISTS": "attribute_not_exists",
}


class ExpressionPlaceholders:
    """Allocates `#n<i>` / `:v<i>` placeholders, one per distinct field name and literal value."""

    def __init__(self) -> None:
        self._names: dict[str, str] = {}
        self._values: dict[AttributeValue, str] = {}

    def name(self, field_name: str) -> str:
        if not isinstance(field_name, str) or not field_name:
            raise ValidationError(f"field name must be a non-empty string: {field_name!r}")
        ref = self._names.get(field_name)
        if ref is None:
            ref = f"#n{len(self._names)}"
            self._names[field_name] = ref
        return ref

    def value(self, value: Any) -> str:
        av = value if isinstance(value, AttributeValue) else encode(value)
        ref = self._values.get(av)
        if ref is None:
            ref = f":v{len(self._values)}"
            self._values[av] = ref
        return ref

    def condition(self, cond: Condition) -> str:
        """Render one condition term, sharing placeholders with everything rendered before it."""
        op = str(cond.operator or "").strip().upper()
        ref = self.name(cond.field)
        value = cond.value

        if op in _PRESENCE_FUNCTIONS:
            if value is not None:
                raise ValidationError(f"{cond.operator} does not take a value")
            return f"{_PRESENCE_FUNCTIONS[op]}({ref})"

        if op == "BETWEEN":
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                raise ValidationError("BETWEEN requires two values")
            low, high = self.value(value[0]), self.value(value[1])
            return f"{ref} BETWEEN {low} AND {high}"

        if op == "IN":
            if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
                raise ValidationError("IN requires a sequence of values")
            if not value:
                raise ValidationError("IN requires at least one value")
            if len(value) > MAX_IN_VALUES:
                raise ValidationError(f"IN supports maximum {MAX_IN_VALUES} values")
            return f"{ref} IN (" + ", ".join(self.value(v) for v in value) + ")"

        if op not in _COMPARATORS and op not in _VALUE_FUNCTIONS:
            raise ValidationError(f"unsupported condition operator: {cond.operator}")
        if value is None:
            raise ValidationError(f"{cond.operator} requires one value")
        if op in _COMPARATORS:
            return f"{ref} {_COMPARATORS[op]} {self.value(value)}"
        return f"{_VALUE_FUNCTIONS[op]}({ref}, {self.value(value)})"

    def names(self) -> dict[str, str]:
        return {ref: field_name for field_name, ref in self._names.items()}

    def values(self) -> dict[str, Any]:
        return {ref: av.to_wire() for av, ref in self._values.items()}


def _normalize_set(value: Any) -> frozenset[Any]:
    if isinstance(value, (set, frozenset)):
        out = frozenset(value)
    elif isinstance(value, (list, tuple)):
        out = frozenset(value)
    else:
        out = frozenset({value})
    if not out:
        raise ValidationError("set operations require at least one element")
    return out


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, Decimal)) and not isinstance(value, bool)


class UpdateBuilder:
    def __init__(
        self,
        table_name: str,
        key: Mapping[str, Any],
        *,
        key_fields: Sequence[str] | None = None,
        table: ItemTable | None = None,
    ) -> None:
        if not table_name:
            raise ValidationError("table_name is required")
        self._table_name = table_name
        self._key = dict(key)
        self._key_fields = tuple(key_fields) if key_fields else ()
        self._table = table
        self._return_values = ReturnValues.NONE
        self._updates: list[tuple[str, tuple[Any, ...]]] = []
        self._conditions: list[Condition] = []

    def set(self, field: str, value: Any) -> UpdateBuilder:
        self._updates.append(("SET", (field, value)))
        return self

    def set_if_not_exists(self, field: str, default_value: Any) -> UpdateBuilder:
        self._updates.append(("SET_IF_NOT_EXISTS", (field, default_value)))
        return self

    def add(self, field: str, value: Any) -> UpdateBuilder:
        self._updates.append(("ADD", (field, value)))
        return self

    def increment(self, field: str, by: int | Decimal = 1) -> UpdateBuilder:
        return self.add(field, by)

    def remove(self, field: str) -> UpdateBuilder:
        self._updates.append(("REMOVE", (field,)))
        return self

    def delete(self, field: str, value: Any) -> UpdateBuilder:
        self._updates.append(("DELETE", (field, value)))
        return self

    def append_to_list(self, field: str, values: Sequence[Any]) -> UpdateBuilder:
        self._updates.append(("APPEND_LIST", (field, list(values))))
        return self

    def condition(self, field: str, operator: str, value: Any = None) -> UpdateBuilder:
        self._conditions.append(Condition(field, operator, value, "AND"))
        return self

    def or_condition(self, field: str, operator: str, value: Any = None) -> UpdateBuilder:
        self._conditions.append(Condition(field, operator, value, "OR"))
        return self

    def condition_exists(self, field: str) -> UpdateBuilder:
        return self.condition(field, "EXISTS")

    def condition_not_exists(self, field: str) -> UpdateBuilder:
        return self.condition(field, "NOT_EXISTS")

    def where(self, condition: Condition) -> UpdateBuilder:
        self._conditions.append(condition)
        return self

    def return_values(self, option: ReturnValues | str) -> UpdateBuilder:
        try:
            self._return_values = option if isinstance(option, ReturnValues) else ReturnValues(option)
        except ValueError as err:
            raise ValidationError(f"unsupported return values option: {option}") from err
        return self

    def execute(self) -> WriteOutcome:
        if self._table is None:
            raise ValidationError("builder is not bound to a table")
        return self._table.execute_update(self.build())

    def build(self) -> UpdateRequest:
        if not self._updates:
            raise ValidationError("no updates provided")

        key = encode_key(self._key, self._key_fields or None)
        refs = ExpressionPlaceholders()
        set_parts: list[str] = []
        remove_parts: list[str] = []
        add_parts: list[str] = []
        delete_parts: list[str] = []

        def update_name_ref(field_name: str) -> str:
            if field_name in self._key_fields:
                raise ValidationError(f"cannot update key field: {field_name}")
            return refs.name(field_name)

        for kind, args in self._updates:
            if kind == "SET":
                field_name, value = args
                ref = update_name_ref(field_name)
                set_parts.append(f"{ref} = {refs.value(value)}")
                continue

            if kind == "SET_IF_NOT_EXISTS":
                field_name, default_value = args
                ref = update_name_ref(field_name)
                set_parts.append(f"{ref} = if_not_exists({ref}, {refs.value(default_value)})")
                continue

            if kind == "REMOVE":
                (field_name,) = args
                remove_parts.append(update_name_ref(field_name))
                continue

            if kind == "ADD":
                field_name, value = args
                ref = update_name_ref(field_name)
                if _is_number(value):
                    add_parts.append(f"{ref} {refs.value(value)}")
                elif isinstance(value, (set, frozenset, list, tuple)):
                    add_parts.append(f"{ref} {refs.value(_normalize_set(value))}")
                else:
                    raise ValidationError("ADD requires a number or a set of values")
                continue

            if kind == "DELETE":
                field_name, value = args
                ref = update_name_ref(field_name)
                delete_parts.append(f"{ref} {refs.value(_normalize_set(value))}")
                continue

            if kind == "APPEND_LIST":
                field_name, values_list = args
                ref = update_name_ref(field_name)
                set_parts.append(f"{ref} = list_append({ref}, {refs.value(values_list)})")
                continue

            raise ValidationError(f"unsupported update operation: {kind}")

        expr_parts: list[str] = []
        if set_parts:
            expr_parts.append("SET " + ", ".join(set_parts))
        if remove_parts:
            expr_parts.append("REMOVE " + ", ".join(remove_parts))
        if add_parts:
            expr_parts.append("ADD " + ", ".join(add_parts))
        if delete_parts:
            expr_parts.append("DELETE " + ", ".join(delete_parts))

        condition_expr = build_condition_expression(self._conditions, refs)

        return UpdateRequest(
            table_name=self._table_name,
            key=key,
            update_expression=" ".join(expr_parts),
            expression_attribute_names=refs.names(),
            expression_attribute_values=refs.values(),
            condition_expression=condition_expr,
            return_values=self._return_values,
        )


def build_update(
    table_name: str,
    key: Mapping[str, Any],
    *,
    set_ops: Mapping[str, Any] | None = None,
    add_ops: Mapping[str, Any] | None = None,
    remove_ops: Sequence[str] = (),
    condition: Condition | Sequence[Condition] | None = None,
    return_values: ReturnValues = ReturnValues.NONE,
    key_fields: Sequence[str] | None = None,
) -> UpdateRequest:
    builder = UpdateBuilder(table_name, key, key_fields=key_fields).return_values(return_values)
    for field_name, value in (set_ops or {}).items():
        builder.set(field_name, value)
    for field_name, value in (add_ops or {}).items():
        builder.add(field_name, value)
    for field_name in remove_ops:
        builder.remove(field_name)

    if isinstance(condition, Condition):
        builder.where(condition)
    elif condition is not None:
        for cond in condition:
            builder.where(cond)

    return builder.build()


def build_condition_expression(
    conditions: Sequence[Condition], refs: ExpressionPlaceholders
) -> str | None:
    if not conditions:
        return None

    out = refs.condition(conditions[0])
    for cond in conditions[1:]:
        logic = str(cond.logic or "AND").strip().upper()
        term = refs.condition(cond)
        if logic not in {"AND", "OR"}:
            raise ValidationError(f"unsupported condition logic: {cond.logic}")
        out += f" {logic} {term}"
    return out
