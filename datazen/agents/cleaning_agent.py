# datazen/agents/cleaning_agent.py
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from datazen.config import CleaningKeywords, DEFAULT_KEYWORDS
from datazen.models import (
    CleaningReport, CleaningTotals, Column, ColumnCleaningReport, ColumnType, Table
)
from datazen.utils.logging_config import PipelineLogger, log_execution_time
from datazen.utils.values import (
    cell_to_text, is_missing, parse_date, parse_leading_float, parse_leading_int, parse_number
)

logger = logging.getLogger(__name__)

CLEANING_FLAG_COLUMN = 'cleaning_performed'


class ValueNormalizer:
    """Replaces sentinel "missing" tokens and sign errors in a column"""

    POSITIVE_MAJORITY = 0.8

    def __init__(self, keywords: CleaningKeywords = DEFAULT_KEYWORDS):
        self.keywords = keywords

    def fix(self, values: Sequence[Any], column_type: ColumnType) -> Tuple[List[Any], int]:
        sentinels = set(self.keywords.SENTINEL_TOKENS)
        flip_negatives = (
            column_type == ColumnType.NUMERICAL and self._is_price_or_quantity(values)
        )

        fixed: List[Any] = []
        erroneous_count = 0

        for value in values:
            if is_missing(value):
                fixed.append(value)
                continue

            if cell_to_text(value).strip().lower() in sentinels:
                fixed.append(None)
                erroneous_count += 1
                continue

            if flip_negatives:
                number = parse_number(value)
                if number is not None and number < 0:
                    fixed.append(abs(number))
                    erroneous_count += 1
                    continue

            fixed.append(value)

        return fixed, erroneous_count

    def _is_price_or_quantity(self, values: Sequence[Any]) -> bool:
        """Most numeric cells are non-negative"""
        numbers = [number for number in map(parse_number, values) if number is not None]
        if not numbers:
            return False
        positives = sum(1 for number in numbers if number >= 0)
        return positives / len(numbers) > self.POSITIVE_MAJORITY


class TypeCoercer:
    """Converts a column's cells to a canonical representation based on its name"""

    def __init__(self, keywords: CleaningKeywords = DEFAULT_KEYWORDS):
        self.keywords = keywords

    def coerce(self, values: Sequence[Any], column: Column) -> Tuple[List[Any], ColumnType, bool]:
        name = column.name.lower()

        # Price is checked first: 'amount' is both a price and a quantity keyword
        if self._matches(name, self.keywords.PRICE_KEYWORDS):
            return self._convert(values, parse_leading_float), ColumnType.NUMERICAL, True

        if self._matches(name, self.keywords.QUANTITY_KEYWORDS):
            return self._convert(values, parse_leading_int), ColumnType.NUMERICAL, True

        if self._matches(name, self.keywords.DATE_KEYWORDS) or column.type == ColumnType.DATE:
            return self._convert(values, self._to_iso_date), ColumnType.DATE, True

        return list(values), column.type, False

    @staticmethod
    def _matches(name: str, keywords: Sequence[str]) -> bool:
        return any(keyword in name for keyword in keywords)

    @staticmethod
    def _convert(values: Sequence[Any], parse) -> List[Any]:
        return [value if is_missing(value) else parse(value) for value in values]

    @staticmethod
    def _to_iso_date(value: Any) -> Optional[str]:
        parsed = parse_date(value)
        return parsed.isoformat() if parsed is not None else None


class Imputer:
    """Fills missing cells with a type-appropriate representative value"""

    def impute(self, values: Sequence[Any], column_type: ColumnType) -> Tuple[List[Any], int, str]:
        present = [value for value in values if not is_missing(value)]
        if not present:
            return list(values), 0, 'no_imputation_possible'

        if column_type == ColumnType.NUMERICAL:
            numbers = [number for number in map(parse_number, present) if number is not None]
            if not numbers:
                return list(values), 0, 'no_imputation_possible'
            fill_value: Any = float(np.median(numbers))
            method = 'median'
        elif column_type == ColumnType.CATEGORICAL:
            fill_value = self._most_frequent(present)
            method = 'mode'
        elif column_type == ColumnType.DATE:
            fill_value = self._most_frequent([cell_to_text(value) for value in present])
            method = 'most_frequent_date'
        else:
            fill_value = self._most_frequent([cell_to_text(value) for value in present])
            method = 'most_frequent_text'

        imputed: List[Any] = []
        imputed_count = 0
        for value in values:
            if is_missing(value):
                imputed.append(fill_value)
                imputed_count += 1
            else:
                imputed.append(value)

        return imputed, imputed_count, method

    @staticmethod
    def _most_frequent(values: Sequence[Any]) -> Any:
        """Mode with ties going to the first value seen"""
        counts: Dict[Any, int] = {}
        first_seen: Dict[Any, Any] = {}
        for value in values:
            # Keyed by type as well so that True, 1 and 1.0 stay distinct
            key = (type(value).__name__, value)
            counts[key] = counts.get(key, 0) + 1
            first_seen.setdefault(key, value)

        best_key = None
        for key, count in counts.items():
            if best_key is None or count > counts[best_key]:
                best_key = key
        return first_seen[best_key]


def _cell_changed(original: Any, cleaned: Any) -> bool:
    """Strict comparison: text never equals a non-text cell"""
    if is_missing(original) and is_missing(cleaned):
        # NaN never equals itself, so missing cells compare by type and text only
        if type(original) is not type(cleaned):
            return True
        return isinstance(original, str) and original != cleaned
    if isinstance(original, str) != isinstance(cleaned, str):
        return True
    return original != cleaned


class CleaningPipeline:
    """Normalizes, coerces and imputes every column of a table.

    The input table is never modified. The cleaned table holds one extra
    boolean column, ``cleaning_performed``, that marks every row in which at
    least one cell differs from the raw value. A table that already carries
    that column, such as the output of a previous run, gets a fresh one.
    """

    def __init__(self, keywords: CleaningKeywords = DEFAULT_KEYWORDS):
        self.keywords = keywords
        self.normalizer = ValueNormalizer(keywords)
        self.coercer = TypeCoercer(keywords)
        self.imputer = Imputer()

    @log_execution_time
    def clean(self, table: Table) -> Tuple[Table, CleaningReport]:
        # A flag column from an earlier pass is replaced, never cleaned
        source_columns = [column for column in table.columns if column.name != CLEANING_FLAG_COLUMN]
        results = [self.clean_column(column) for column in source_columns]

        cleaned_columns = [cleaned for cleaned, _ in results]
        column_reports = tuple(report for _, report in results)

        row_flags = [False] * table.total_rows
        for original, cleaned in zip(source_columns, cleaned_columns):
            for index, (before, after) in enumerate(zip(original.values, cleaned.values)):
                if not row_flags[index] and _cell_changed(before, after):
                    row_flags[index] = True

        flag_column = Column.from_values(CLEANING_FLAG_COLUMN, ColumnType.CATEGORICAL, row_flags)
        cleaned_table = Table(
            total_rows=table.total_rows,
            total_columns=len(cleaned_columns) + 1,
            columns=tuple(cleaned_columns + [flag_column]),
            source_name=table.source_name
        )

        report = CleaningReport(
            total_rows_modified=sum(row_flags),
            per_column=column_reports,
            totals=CleaningTotals(
                values_imputed=sum(r.values_imputed for r in column_reports),
                errors_fixed=sum(r.errors_fixed for r in column_reports),
                types_converted=sum(1 for r in column_reports if r.type_converted)
            )
        )

        logger.info(
            f"Cleaned {table.source_name}: {report.total_rows_modified} rows modified, "
            f"{report.totals.values_imputed} values imputed, "
            f"{report.totals.errors_fixed} errors fixed, "
            f"{report.totals.types_converted} types converted"
        )
        return cleaned_table, report

    def clean_column(self, column: Column) -> Tuple[Column, ColumnCleaningReport]:
        values, errors_fixed = self.normalizer.fix(column.values, column.type)

        values, new_type, converted = self.coercer.coerce(values, column)
        final_type = new_type if converted else column.type

        values, imputed_count, method = self.imputer.impute(values, final_type)

        report = ColumnCleaningReport(
            column_name=column.name,
            original_type=column.type,
            final_type=final_type,
            values_imputed=imputed_count,
            errors_fixed=errors_fixed,
            type_converted=converted,
            imputation_method=method
        )
        logger.debug(f"Column '{column.name}': {report}")

        return Column.from_values(column.name, final_type, values), report


class DataCleaningAgent:
    """Workflow node wrapping the cleaning pipeline"""

    def __init__(self, keywords: CleaningKeywords = DEFAULT_KEYWORDS):
        self.pipeline = CleaningPipeline(keywords)

    def clean_data(self, state: dict) -> dict:
        """Clean the raw table"""
        with PipelineLogger("data_cleaning") as step:
            try:
                cleaned_table, report = self.pipeline.clean(state['raw_table'])

                step.log_metric("rows_modified", report.total_rows_modified)
                step.log_metric("values_imputed", report.totals.values_imputed)

                return {
                    'cleaned_table': cleaned_table,
                    'cleaning_report': report,
                    'current_step': 'data_cleaning',
                    'next_action': 'data_analysis',
                    'execution_log': state.get('execution_log', []) + [
                        f"Data cleaning completed: {report.total_rows_modified} rows modified"
                    ]
                }

            except Exception as e:
                logger.error(f"Data cleaning failed: {str(e)}")
                return {
                    'current_step': 'data_cleaning',
                    'next_action': 'error',
                    'errors': state.get('errors', []) + [f"Data cleaning error: {str(e)}"]
                }
