from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from ..rules.schemas import (
    DATE,
    GENERIC_SCHEMA,
    NUMBER,
    Schema,
    build_all_purpose_schema,
    build_dynamic_schema,
    schema_for_industry,
)
from ..utils.validators import (
    EMPTY_VALUE,
    EXTRA_FIELD,
    FORMAT_ERROR,
    MISSING_FIELD,
    STRUCTURAL_KINDS,
    FieldIssue,
    find_best_field_match,
    infer_data_types,
    is_empty,
    validate_date,
    validate_number,
)

logger = logging.getLogger(__name__)

INDUSTRY = "industry"
DYNAMIC = "dynamic"
ALL_PURPOSE = "all-purpose"

# Layer 1 escalates when structural errors exceed this share of the CSV headers
ESCALATION_RATIO = 0.5

FALLBACK_MESSAGES = {
    INDUSTRY: "Validated against the selected industry format.",
    DYNAMIC: "Your file did not match the selected format, so a schema was inferred from its columns.",
    ALL_PURPOSE: "Your file did not match any known format; all columns were accepted as-is.",
}


@dataclass
class ValidationSummary:
    total_rows: int
    total_fields: int
    schema_used: str
    valid_rows: int
    error_rows: int
    warning_count: int
    empty_value_percentage: float
    data_quality_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "totalFields": self.total_fields,
            "schemaUsed": self.schema_used,
            "validRows": self.valid_rows,
            "errorRows": self.error_rows,
            "warningCount": self.warning_count,
            "emptyValuePercentage": self.empty_value_percentage,
            "dataQualityScore": self.data_quality_score,
        }


@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[FieldIssue]
    warnings: list[FieldIssue]
    summary: ValidationSummary
    fallback_level: str | None = None
    fallback_message: str | None = None
    insights: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @property
    def structural_error_count(self) -> int:
        return sum(1 for e in self.errors if e.kind in STRUCTURAL_KINDS)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "summary": self.summary.to_dict(),
            "fallbackLevel": self.fallback_level,
            "fallbackMessage": self.fallback_message,
            "insights": list(self.insights),
            "aiSuggestions": list(self.suggestions),
        }


def data_quality_score(error_count: int, warning_count: int, empty_value_percentage: float) -> float:
    return max(0.0, 100 - error_count * 2 - warning_count * 1 - empty_value_percentage / 2)


def map_headers(schema: Schema, headers: Sequence[str]) -> dict[str, str]:
    """Map schema fields to CSV headers; exact matches claim headers first.

    Optional fields only map on a case-insensitive exact match, so an extra
    column such as "Message" is never claimed by "Age".
    """
    if schema.accept_all:
        return {h: h for h in headers}

    mapped: dict[str, str] = {}
    used: set[str] = set()
    lowered = {h.lower(): h for h in headers}
    for field_name in schema.expected_fields:
        exact = lowered.get(field_name.lower())
        if exact is not None and exact not in used:
            mapped[field_name] = exact
            used.add(exact)

    for field_name in schema.required_fields:
        if field_name in mapped:
            continue
        match = find_best_field_match(field_name, [h for h in headers if h not in used])
        if match is not None:
            mapped[field_name] = match
            used.add(match)
    return mapped


def _empty_input_result() -> ValidationResult:
    return ValidationResult(
        is_valid=False,
        errors=[FieldIssue(field="File", message="No data found in CSV file", kind=FORMAT_ERROR, severity="error")],
        warnings=[],
        summary=ValidationSummary(
            total_rows=0,
            total_fields=0,
            schema_used="None",
            valid_rows=0,
            error_rows=0,
            warning_count=0,
            empty_value_percentage=0.0,
            data_quality_score=0.0,
        ),
    )


class ValidationEngine:
    """Schema validation with industry -> dynamic -> all-purpose fallback."""

    def __init__(self, escalation_ratio: float = ESCALATION_RATIO, now=None) -> None:
        self.escalation_ratio = escalation_ratio
        self.now = now

    def validate(self, rows: Sequence[Mapping[str, Any]], industry: str) -> ValidationResult:
        if not rows:
            return _empty_input_result()

        headers = list(rows[0].keys())
        schema = schema_for_industry(industry)
        logger.info("layer 1: validating %d rows as %s", len(rows), schema.name)
        industry_result = self.run_validation(rows, schema, INDUSTRY)

        if industry_result.is_valid or schema is GENERIC_SCHEMA:
            return industry_result

        structural = industry_result.structural_error_count
        if structural > len(headers) * self.escalation_ratio:
            logger.info(
                "layer 2: %d structural errors over %d headers, inferring schema",
                structural,
                len(headers),
            )
            dynamic_schema = build_dynamic_schema(headers, infer_data_types(rows, headers))
            dynamic_result = self.run_validation(rows, dynamic_schema, DYNAMIC)
            if dynamic_result.is_valid or len(dynamic_result.errors) < len(industry_result.errors):
                return dynamic_result

            logger.info("layer 3: falling back to all-purpose schema")
            return self.run_validation(rows, build_all_purpose_schema(), ALL_PURPOSE)

        logger.info("layer 1: %d errors below escalation threshold, keeping industry result", len(industry_result.errors))
        return industry_result

    def run_validation(self, rows: Sequence[Mapping[str, Any]], schema: Schema, fallback_level: str) -> ValidationResult:
        errors: list[FieldIssue] = []
        warnings: list[FieldIssue] = []
        suggestions: list[str] = []
        headers = list(rows[0].keys()) if rows else []
        required = set(schema.required_fields)
        optional_names = {f.lower() for f in schema.optional_fields}

        mapped = map_headers(schema, headers)

        if not schema.accept_all:
            for field_name in schema.required_fields:
                if field_name in mapped:
                    continue
                errors.append(FieldIssue(
                    field=field_name,
                    message=f'Required field "{field_name}" is missing from your CSV headers',
                    kind=MISSING_FIELD,
                    severity="error",
                ))
                first_word = field_name.lower().split(" ")[0]
                candidates = [h for h in headers if first_word in h.lower()]
                if candidates:
                    suggestions.append(f'Consider mapping "{candidates[0]}" to "{field_name}"')

            for header in headers:
                is_expected = header.lower() in optional_names or any(
                    find_best_field_match(f, [header]) == header for f in schema.required_fields
                )
                if not is_expected:
                    warnings.append(FieldIssue(
                        field=header,
                        message=f'Unexpected field "{header}" found. Consider removing or mapping to a schema field.',
                        kind=EXTRA_FIELD,
                        severity="warning",
                    ))

        valid_rows = 0
        error_rows = 0
        empty_count = 0
        total_count = 0

        for row_index, row in enumerate(rows, start=1):
            row_has_errors = False
            for schema_field, csv_field in mapped.items():
                value = row.get(csv_field)
                total_count += 1

                if is_empty(value):
                    empty_count += 1
                    if schema_field in required:
                        errors.append(FieldIssue(
                            field=schema_field,
                            message=f'Required field "{schema_field}" is empty in row {row_index}',
                            kind=EMPTY_VALUE,
                            severity="error",
                            row=row_index,
                            column=csv_field,
                        ))
                        row_has_errors = True
                    continue

                if schema.accept_all:
                    continue

                issue = self._check_type(schema, schema_field, value)
                if issue is None:
                    continue
                issue = issue.at(row_index, csv_field)
                if issue.severity == "error":
                    errors.append(issue)
                    row_has_errors = True
                else:
                    warnings.append(issue)

            if row_has_errors:
                error_rows += 1
            else:
                valid_rows += 1

        empty_pct = (empty_count / total_count) * 100 if total_count else 0.0
        score = data_quality_score(len(errors), len(warnings), empty_pct)
        summary = ValidationSummary(
            total_rows=len(rows),
            total_fields=len(headers),
            schema_used=schema.name,
            valid_rows=valid_rows,
            error_rows=error_rows,
            warning_count=len(warnings),
            empty_value_percentage=empty_pct,
            data_quality_score=score,
        )
        logger.debug(
            "%s: %d errors, %d warnings, score %.1f", schema.name, len(errors), len(warnings), score
        )
        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            summary=summary,
            fallback_level=fallback_level,
            fallback_message=FALLBACK_MESSAGES[fallback_level],
            insights=self._insights(summary, len(errors)),
            suggestions=suggestions,
        )

    def _check_type(self, schema: Schema, field_name: str, value: Any) -> FieldIssue | None:
        expected = schema.type_of(field_name)
        if expected == DATE:
            return validate_date(value, field_name, now=self.now)
        if expected == NUMBER:
            return validate_number(value, field_name, allow_negative=field_name not in schema.non_negative_fields)
        return None

    @staticmethod
    def _insights(summary: ValidationSummary, error_count: int) -> list[str]:
        recommendation = (
            "Address validation errors for better data quality"
            if error_count
            else "Data quality is excellent, ready for analysis"
        )
        return [
            f"Dataset contains {summary.total_rows} records with {summary.total_fields} fields",
            f"Data quality score: {round(summary.data_quality_score)}% based on completeness and validation",
            f"Found {summary.valid_rows} valid rows out of {summary.total_rows} total records",
            f"Empty value rate: {summary.empty_value_percentage:.1f}% across all fields",
            f"Schema compliance: {summary.schema_used} validation completed",
            f"Recommendation: {recommendation}",
        ]


def validate(rows: Sequence[Mapping[str, Any]], industry: str) -> ValidationResult:
    return ValidationEngine().validate(rows, industry)
