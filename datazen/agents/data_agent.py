# datazen/agents/data_agent.py
import numpy as np
import pandas as pd
from typing import Any, List, Optional, Sequence
import logging
from pathlib import Path

from datazen.config import DataValidationConfig, get_config
from datazen.models import Column, ColumnType, Table
from datazen.utils.logging_config import PipelineLogger, log_execution_time
from datazen.utils.values import cell_to_text, is_missing, parse_date, parse_number

logger = logging.getLogger(__name__)


class ColumnTypeClassifier:
    """Infers the semantic type of a column from its raw cells.

    Rules are evaluated in order against the non-missing cells and the first
    one that holds wins: numbers, then dates, then low-cardinality categories,
    then free text.
    """

    NUMERIC_RATIO = 0.8
    DATE_RATIO = 0.8
    UNIQUE_RATIO = 0.5
    MAX_CATEGORIES = 20

    def classify(self, values: Sequence[Any]) -> ColumnType:
        present = [value for value in values if not is_missing(value)]
        if not present:
            return ColumnType.TEXT

        total = len(present)

        numeric_count = sum(1 for value in present if parse_number(value) is not None)
        if numeric_count / total > self.NUMERIC_RATIO:
            return ColumnType.NUMERICAL

        date_count = sum(1 for value in present if parse_date(value) is not None)
        if date_count / total > self.DATE_RATIO:
            return ColumnType.DATE

        unique_count = len({cell_to_text(value) for value in present})
        if unique_count / total < self.UNIQUE_RATIO and unique_count < self.MAX_CATEGORIES:
            return ColumnType.CATEGORICAL

        return ColumnType.TEXT


def _to_cell(value: Any) -> Any:
    """Normalize a pandas/numpy scalar into a plain Python cell"""
    if is_missing(value) and not isinstance(value, str):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value


def table_from_dataframe(data: pd.DataFrame,
                         source_name: str,
                         classifier: Optional[ColumnTypeClassifier] = None) -> Table:
    """Build a Table from a parsed DataFrame, inferring each column's type"""
    classifier = classifier or ColumnTypeClassifier()
    columns: List[Column] = []

    for name in data.columns:
        values = [_to_cell(value) for value in data[name].tolist()]
        column_type = classifier.classify(values)
        columns.append(Column.from_values(str(name), column_type, values))

    return Table.from_columns(columns, source_name)


class DataIngestionAgent:
    """Agent responsible for reading a tabular file into a Table"""

    def __init__(self, validation: Optional[DataValidationConfig] = None,
                 classifier: Optional[ColumnTypeClassifier] = None):
        self.validation = validation or get_config().data_validation
        self.classifier = classifier or ColumnTypeClassifier()

    def process(self, state: dict) -> dict:
        """Workflow node: load the dataset unless a table was handed in"""
        with PipelineLogger("data_ingestion") as step:
            try:
                table = state.get('raw_table')
                if table is None:
                    table = self.load_table(state['data_path'])

                step.log_metric("rows", table.total_rows)
                step.log_metric("columns", table.total_columns)

                return {
                    'raw_table': table,
                    'current_step': 'data_ingestion',
                    'next_action': 'data_cleaning' if state.get('clean', True) else 'data_analysis',
                    'execution_log': state.get('execution_log', []) + [
                        f"Data loaded successfully: {table.total_rows} rows, {table.total_columns} columns"
                    ]
                }

            except Exception as e:
                logger.error(f"Data ingestion failed: {str(e)}")
                return {
                    'current_step': 'data_ingestion',
                    'next_action': 'error',
                    'errors': state.get('errors', []) + [f"Data ingestion error: {str(e)}"]
                }

    @log_execution_time
    def load_table(self, data_path: str) -> Table:
        """Load a CSV or spreadsheet file into a Table"""
        path = Path(data_path)
        data = self._load_data(path)

        if len(data) < self.validation.MIN_DATA_ROWS:
            raise ValueError("File must contain at least a header row and one data row.")

        table = table_from_dataframe(data, path.name, self.classifier)
        logger.info(f"Loaded {path.name}: {table.total_rows} rows, {table.total_columns} columns")
        return table

    def _load_data(self, path: Path) -> pd.DataFrame:
        """Load data from the supported file formats"""
        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")

        file_size_mb = path.stat().st_size / (1024 * 1024)
        if file_size_mb > self.validation.MAX_FILE_SIZE_MB:
            raise ValueError(f"File too large: {file_size_mb:.1f}MB > {self.validation.MAX_FILE_SIZE_MB}MB")

        extension = path.suffix.lower()
        if extension not in self.validation.SUPPORTED_FILE_FORMATS:
            raise ValueError(
                f"Unsupported file format: {extension}. Please upload a CSV or Excel file."
            )

        if extension == '.csv':
            return self._load_csv(path)

        # Only blank cells are missing; sentinel tokens stay text for the normalizer
        engine = 'xlrd' if extension == '.xls' else 'openpyxl'
        return pd.read_excel(path, sheet_name=0, engine=engine, keep_default_na=False, na_values=[''])

    def _load_csv(self, path: Path) -> pd.DataFrame:
        """Read a CSV as text so that sentinel tokens reach the cleaning step untouched"""
        first_parse = None

        for encoding in ['utf-8', 'latin-1', 'cp1252']:
            for sep in [',', ';', '\t']:
                try:
                    data = pd.read_csv(
                        path,
                        encoding=encoding,
                        sep=sep,
                        dtype=str,
                        keep_default_na=False,
                        skip_blank_lines=True
                    )
                except pd.errors.EmptyDataError:
                    raise ValueError("File must contain at least a header row and one data row.")
                except (UnicodeDecodeError, pd.errors.ParserError) as e:
                    logger.debug(f"CSV parse failed with encoding={encoding!r} sep={sep!r}: {e}")
                    continue

                if data.shape[1] > 1:
                    return data
                if first_parse is None:
                    first_parse = data

        if first_parse is None:
            raise ValueError("Could not parse CSV file with any encoding/separator combination")

        return first_parse
