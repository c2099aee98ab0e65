"""Condition Evaluator - Safe evaluation of form field visibility conditions"""
from typing import Any, Callable, Dict, Mapping, Optional

from ..domain.enums import ConditionOperator
from ..domain.form_models import BaseFormField, FormSchema, VisibilityCondition
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _numeric(comparator: Callable[[float, float], bool]) -> Callable[[Any, Any], bool]:
    """Wrap a numeric comparator; non-numeric operands never match"""
    def compare(field_value: Any, expected: Any) -> bool:
        if _is_empty(field_value) or expected is None:
            return False
        try:
            return comparator(float(field_value), float(expected))
        except (ValueError, TypeError):
            return False
    return compare


def _contains(field_value: Any, expected: Any) -> bool:
    if field_value is None:
        return False
    if isinstance(field_value, (list, tuple, set)):
        return expected in field_value
    return str(expected) in str(field_value)


_OPERATORS: Dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: lambda v, e: v == e,
    ConditionOperator.NOT_EQUALS: lambda v, e: v != e,
    ConditionOperator.GREATER_THAN: _numeric(lambda a, b: a > b),
    ConditionOperator.LESS_THAN: _numeric(lambda a, b: a < b),
    ConditionOperator.GREATER_THAN_OR_EQUALS: _numeric(lambda a, b: a >= b),
    ConditionOperator.LESS_THAN_OR_EQUALS: _numeric(lambda a, b: a <= b),
    ConditionOperator.CONTAINS: _contains,
    ConditionOperator.NOT_CONTAINS: lambda v, e: not _contains(v, e),
    ConditionOperator.IN: lambda v, e: v in _as_list(e),
    ConditionOperator.NOT_IN: lambda v, e: v not in _as_list(e),
    ConditionOperator.IS_EMPTY: lambda v, e: _is_empty(v),
    ConditionOperator.IS_NOT_EMPTY: lambda v, e: not _is_empty(v),
}


class ConditionEvaluator:
    """
    Decide whether form fields are visible for a given set of values

    Uses a fixed operator table - no eval() or exec().
    """

    def is_visible(
        self,
        field: BaseFormField,
        schema: FormSchema,
        values: Mapping[str, Any]
    ) -> bool:
        """
        Check a field's visibility against submitted values

        A field without a condition is always visible. The referenced field
        is looked up by id and then by name; its value is read by name.
        """
        if field.visible_when is None:
            return True
        return self.evaluate(field.visible_when, schema, values)

    def evaluate(
        self,
        condition: VisibilityCondition,
        schema: FormSchema,
        values: Mapping[str, Any]
    ) -> bool:
        """Evaluate a single visibility condition"""
        field_value = self._get_field_value(condition.field_id, schema, values)
        comparator = _OPERATORS.get(condition.operator)
        if comparator is None:
            logger.warning(f"Unsupported condition operator: {condition.operator}")
            return False
        return comparator(field_value, condition.value)

    def _get_field_value(
        self,
        field_key: str,
        schema: FormSchema,
        values: Mapping[str, Any]
    ) -> Optional[Any]:
        referenced = schema.get_field(field_key)
        if referenced is not None:
            return values.get(referenced.name)
        # Unknown reference: fall back to a raw key lookup
        return values.get(field_key)
