# datazen/models.py
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from datazen.utils.values import is_missing


class ColumnType(str, Enum):
    NUMERICAL = 'numerical'
    CATEGORICAL = 'categorical'
    DATE = 'date'
    TEXT = 'text'


class AnomalyKind(str, Enum):
    OUTLIER = 'outlier'
    MISSING_VALUES = 'missing_values'
    INCONSISTENT_FORMAT = 'inconsistent_format'
    DUPLICATE_VALUES = 'duplicate_values'
    INVALID_VALUES = 'invalid_values'


class Severity(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'


class RecommendationCategory(str, Enum):
    DATA_QUALITY = 'data_quality'
    ANALYSIS = 'analysis'
    PREPROCESSING = 'preprocessing'


# Recommendations share the low/medium/high scale with anomalies
Priority = Severity


def _plain(value: Any) -> Any:
    """Convert enums and tuples into JSON-ready values"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


@dataclass(frozen=True)
class Column:
    """A single named column of raw or cleaned cells"""
    name: str
    type: ColumnType
    values: Tuple[Any, ...]
    missing_count: int
    missing_rate: float

    @classmethod
    def from_values(cls, name: str, column_type: ColumnType, values: Sequence[Any]) -> 'Column':
        values = tuple(values)
        missing_count = sum(1 for value in values if is_missing(value))
        missing_rate = missing_count / len(values) if values else 0.0
        return cls(
            name=name,
            type=ColumnType(column_type),
            values=values,
            missing_count=missing_count,
            missing_rate=missing_rate
        )

    def non_missing(self) -> List[Any]:
        return [value for value in self.values if not is_missing(value)]


@dataclass(frozen=True)
class Table:
    """An in-memory rectangular dataset (one entry per column, original order)"""
    total_rows: int
    total_columns: int
    columns: Tuple[Column, ...]
    source_name: str

    def __post_init__(self):
        if self.total_columns != len(self.columns):
            raise ValueError(
                f"Table declares {self.total_columns} columns but holds {len(self.columns)}"
            )

        names = [column.name for column in self.columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Column names must be unique: {names}")

        for column in self.columns:
            if len(column.values) != self.total_rows:
                raise ValueError(
                    f"Column '{column.name}' has {len(column.values)} values, expected {self.total_rows}"
                )

    @classmethod
    def from_columns(cls, columns: Sequence[Column], source_name: str) -> 'Table':
        columns = tuple(columns)
        total_rows = len(columns[0].values) if columns else 0
        return cls(
            total_rows=total_rows,
            total_columns=len(columns),
            columns=columns,
            source_name=source_name
        )

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def column(self, name: str) -> Column:
        for column in self.columns:
            if column.name == name:
                return column
        raise KeyError(f"Column '{name}' not found in {self.source_name}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source_name': self.source_name,
            'total_rows': self.total_rows,
            'total_columns': self.total_columns,
            'columns': [
                {
                    'name': column.name,
                    'type': column.type.value,
                    'missing_count': column.missing_count,
                    'missing_rate': column.missing_rate
                }
                for column in self.columns
            ]
        }


@dataclass(frozen=True)
class ColumnCleaningReport:
    column_name: str
    original_type: ColumnType
    final_type: ColumnType
    values_imputed: int = 0
    errors_fixed: int = 0
    type_converted: bool = False
    imputation_method: Optional[str] = None


@dataclass(frozen=True)
class CleaningTotals:
    values_imputed: int = 0
    errors_fixed: int = 0
    types_converted: int = 0


@dataclass(frozen=True)
class CleaningReport:
    """Outcome of one cleaning run"""
    total_rows_modified: int
    per_column: Tuple[ColumnCleaningReport, ...]
    totals: CleaningTotals

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))


@dataclass(frozen=True)
class NumericalStats:
    mean: float = 0.0
    median: float = 0.0
    std: float = 0.0
    min: float = 0.0
    max: float = 0.0
    q1: float = 0.0
    q3: float = 0.0
    outliers: Tuple[float, ...] = ()


@dataclass(frozen=True)
class TopValue:
    value: str
    count: int
    percentage: float


@dataclass(frozen=True)
class CategoricalStats:
    unique_count: int = 0
    top_values: Tuple[TopValue, ...] = ()


@dataclass(frozen=True)
class ColumnStats:
    name: str
    type: ColumnType
    numerical: Optional[NumericalStats] = None
    categorical: Optional[CategoricalStats] = None


@dataclass(frozen=True)
class Anomaly:
    kind: AnomalyKind
    severity: Severity
    title: str
    description: str
    column_name: str
    affected_count: Optional[int] = None


@dataclass(frozen=True)
class Recommendation:
    category: RecommendationCategory
    priority: Priority
    title: str
    description: str
    suggested_action: Optional[str] = None
    expected_impact: Optional[str] = None


@dataclass(frozen=True)
class DataAnalysis:
    """Analysis bundle handed to exporters and renderers"""
    column_stats: Tuple[ColumnStats, ...]
    correlations: Dict[str, Dict[str, float]]
    anomalies: Tuple[Anomaly, ...]
    recommendations: Tuple[Recommendation, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return _plain(asdict(self))
