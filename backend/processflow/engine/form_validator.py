"""Form Validator - Check submitted form data against a template's form schema"""
import re
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from ..domain.form_models import (
    FormSchema, BaseFormField, TextField, TextareaField, NumberField,
    CurrencyField, DateField, DropdownField, FileField
)
from ..utils.time import parse_date, utc_today
from .condition_evaluator import ConditionEvaluator


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == []


def _fmt(number: float) -> str:
    return f"{number:g}"


class FormValidator:
    """
    Validate form data field by field

    Pure function of (schema, values): returns {field name: message}, empty
    when the data is valid. Fields hidden by their visibility condition are
    neither required nor validated. Keys without a matching field are ignored.
    """

    def __init__(self, condition_evaluator: Optional[ConditionEvaluator] = None):
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()

    def validate(
        self,
        schema: Optional[FormSchema],
        values: Optional[Mapping[str, Any]],
        today: Optional[date] = None
    ) -> Dict[str, str]:
        """
        Validate values against schema

        Args:
            schema: Form schema, None means nothing to check
            values: Submitted form data keyed by field name
            today: Reference date for date rules (defaults to UTC today)

        Returns:
            Mapping of field name to the first error found for it
        """
        if schema is None:
            return {}

        values = values or {}
        today = today or utc_today()
        errors: Dict[str, str] = {}

        for field in schema.fields:
            if not self.condition_evaluator.is_visible(field, schema, values):
                continue

            value = values.get(field.name)
            if _is_blank(value):
                if field.required:
                    errors[field.name] = f"{field.label} is required"
                continue

            message = self._check_field(field, value, today)
            if message:
                errors[field.name] = message

        return errors

    def _check_field(self, field: BaseFormField, value: Any, today: date) -> Optional[str]:
        if isinstance(field, (TextField, TextareaField)):
            return self._check_text(field, value)
        if isinstance(field, (NumberField, CurrencyField)):
            return self._check_number(field, value)
        if isinstance(field, DateField):
            return self._check_date(field, value, today)
        if isinstance(field, DropdownField):
            if value not in field.options:
                return f"{field.label} must be one of: {', '.join(field.options)}"
            return None
        if isinstance(field, FileField):
            return self._check_files(field, value)
        return None

    def _check_text(self, field, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return f"{field.label} must be text"

        rules = field.validation
        if rules.min_length and len(value) < rules.min_length:
            return f"{field.label} must be at least {rules.min_length} characters"
        if rules.max_length and len(value) > rules.max_length:
            return f"{field.label} must be no more than {rules.max_length} characters"

        pattern = getattr(rules, "pattern", None)
        if pattern:
            try:
                matched = re.fullmatch(pattern, value) is not None
            except re.error:
                # A broken pattern in the template is not the submitter's fault
                return None
            if not matched:
                return f"{field.label} has an invalid format"
        return None

    def _check_number(self, field, value: Any) -> Optional[str]:
        if isinstance(value, bool):
            return f"{field.label} must be a number"
        try:
            number = float(value)
        except (TypeError, ValueError):
            return f"{field.label} must be a number"

        rules = field.validation
        if rules.min_value is not None and number < rules.min_value:
            return f"{field.label} must be at least {_fmt(rules.min_value)}"
        if rules.max_value is not None and number > rules.max_value:
            return f"{field.label} must be no more than {_fmt(rules.max_value)}"
        return None

    def _check_date(self, field: DateField, value: Any, today: date) -> Optional[str]:
        try:
            submitted = parse_date(value)
        except (TypeError, ValueError, OverflowError):
            return f"{field.label} must be a valid date"

        rules = field.validation
        if submitted < today and not rules.allow_past_dates:
            return f"{field.label} cannot be in the past"
        if submitted == today and not rules.allow_today:
            return f"{field.label} cannot be today"
        if submitted > today and not rules.allow_future_dates:
            return f"{field.label} cannot be in the future"
        return None

    def _check_files(self, field: FileField, value: Any) -> Optional[str]:
        references: List[Any] = value if isinstance(value, list) else [value]
        if not all(isinstance(ref, str) and ref for ref in references):
            return f"{field.label} must be a file reference"

        rules = field.validation
        if rules.max_files is not None and len(references) > rules.max_files:
            return f"{field.label} allows at most {rules.max_files} file(s)"

        if rules.accept:
            allowed = [ext.strip().lower() for ext in rules.accept.split(",") if ext.strip()]
            for ref in references:
                if not any(ref.lower().endswith(ext) for ext in allowed):
                    return f"{field.label} must be one of: {', '.join(allowed)}"
        return None
