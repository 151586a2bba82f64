# datazen/agents/analysis_agent.py
"""
Statistics, correlations, anomalies and recommendations for a Table.

All engines are pure functions of their inputs. Degenerate columns (empty,
constant, all missing) produce zero-valued results rather than errors so that
a report can always be built.
"""
import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from datazen.models import (
    Anomaly, AnomalyKind, CategoricalStats, Column, ColumnStats, ColumnType, DataAnalysis,
    NumericalStats, Priority, Recommendation, RecommendationCategory, Severity, Table, TopValue
)
from datazen.utils.logging_config import PipelineLogger, log_execution_time
from datazen.utils.values import cell_to_text, is_missing, parse_number

logger = logging.getLogger(__name__)

CorrelationMatrix = Dict[str, Dict[str, float]]


def _numeric_values(values: Sequence[Any]) -> List[float]:
    return [number for number in map(parse_number, values) if number is not None]


class DescriptiveStatsEngine:
    """Per-column summary statistics"""

    TOP_VALUES = 10
    IQR_FACTOR = 1.5

    def stats(self, table: Table) -> Tuple[ColumnStats, ...]:
        return tuple(self.column_stats(column) for column in table.columns)

    def column_stats(self, column: Column) -> ColumnStats:
        if column.type == ColumnType.NUMERICAL:
            return ColumnStats(column.name, column.type, numerical=self.numerical_stats(column.values))
        if column.type == ColumnType.CATEGORICAL:
            return ColumnStats(column.name, column.type, categorical=self.categorical_stats(column.values))
        return ColumnStats(column.name, column.type)

    def numerical_stats(self, values: Sequence[Any]) -> NumericalStats:
        numbers = _numeric_values(values)
        if not numbers:
            return NumericalStats()

        data = np.asarray(numbers, dtype=float)

        # Linear interpolation between closest ranks: index = p/100 * (n - 1)
        q1, median, q3 = np.percentile(data, [25, 50, 75])
        iqr = q3 - q1
        lower = q1 - self.IQR_FACTOR * iqr
        upper = q3 + self.IQR_FACTOR * iqr
        outliers = tuple(number for number in numbers if number < lower or number > upper)

        return NumericalStats(
            mean=round(float(np.mean(data)), 2),
            median=round(float(median), 2),
            std=round(float(np.std(data)), 2),
            min=round(float(np.min(data)), 2),
            max=round(float(np.max(data)), 2),
            q1=round(float(q1), 2),
            q3=round(float(q3), 2),
            outliers=outliers
        )

    def categorical_stats(self, values: Sequence[Any]) -> CategoricalStats:
        counts: Dict[str, int] = {}
        for value in values:
            if is_missing(value):
                continue
            key = cell_to_text(value)
            counts[key] = counts.get(key, 0) + 1

        total = sum(counts.values())
        if total == 0:
            return CategoricalStats()

        # sorted() is stable, so equal counts keep first-seen order
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        top_values = tuple(
            TopValue(value=value, count=count, percentage=round(count / total * 100, 1))
            for value, count in ranked[:self.TOP_VALUES]
        )
        return CategoricalStats(unique_count=len(counts), top_values=top_values)


class CorrelationEngine:
    """Pairwise Pearson correlation across numerical columns"""

    def correlate(self, table: Table) -> CorrelationMatrix:
        numerical = [column for column in table.columns if column.type == ColumnType.NUMERICAL]
        matrix: CorrelationMatrix = {column.name: {} for column in numerical}

        for i, first in enumerate(numerical):
            matrix[first.name][first.name] = 1.0
            for second in numerical[i + 1:]:
                coefficient = self.pearson(first.values, second.values)
                matrix[first.name][second.name] = coefficient
                matrix[second.name][first.name] = coefficient

        return matrix

    @staticmethod
    def pearson(x_values: Sequence[Any], y_values: Sequence[Any]) -> float:
        """Pearson coefficient over rows where both cells are numeric"""
        pairs = [
            (x, y) for x, y in zip(map(parse_number, x_values), map(parse_number, y_values))
            if x is not None and y is not None
        ]
        if len(pairs) < 2:
            return 0.0

        x = np.array([p[0] for p in pairs], dtype=float)
        y = np.array([p[1] for p in pairs], dtype=float)

        if np.ptp(x) == 0 or np.ptp(y) == 0:
            return 0.0

        dx = x - x.mean()
        dy = y - y.mean()
        denominator = math.sqrt(float(np.sum(dx * dx)) * float(np.sum(dy * dy)))
        if denominator == 0:
            return 0.0

        coefficient = float(np.sum(dx * dy)) / denominator
        return round(min(1.0, max(-1.0, coefficient)), 3)


class AnomalyDetector:
    """Flags missingness, outlier concentration and duplication"""

    MISSING_RATE = 0.3
    MISSING_RATE_HIGH = 0.5
    OUTLIER_RATE_HIGH = 0.1
    OUTLIER_RATE_MEDIUM = 0.05
    DUPLICATE_RATE = 0.8

    def detect(self, table: Table, stats: Sequence[ColumnStats]) -> Tuple[Anomaly, ...]:
        anomalies: List[Anomaly] = []

        for column in table.columns:
            if column.missing_rate > self.MISSING_RATE:
                anomalies.append(Anomaly(
                    kind=AnomalyKind.MISSING_VALUES,
                    severity=Severity.HIGH if column.missing_rate > self.MISSING_RATE_HIGH else Severity.MEDIUM,
                    title=f"High Missing Value Rate in {column.name}",
                    description=(
                        f'Column "{column.name}" has {column.missing_rate * 100:.1f}% missing values, '
                        f'which may impact analysis quality.'
                    ),
                    column_name=column.name,
                    affected_count=column.missing_count
                ))

        for column_stats in stats:
            numerical = column_stats.numerical
            if numerical is None or not numerical.outliers:
                continue

            outlier_count = len(numerical.outliers)
            outlier_rate = outlier_count / table.total_rows if table.total_rows else 0.0
            if outlier_rate > self.OUTLIER_RATE_HIGH:
                severity = Severity.HIGH
            elif outlier_rate > self.OUTLIER_RATE_MEDIUM:
                severity = Severity.MEDIUM
            else:
                severity = Severity.LOW

            anomalies.append(Anomaly(
                kind=AnomalyKind.OUTLIER,
                severity=severity,
                title=f"Outliers Detected in {column_stats.name}",
                description=(
                    f'Found {outlier_count} outliers in "{column_stats.name}" '
                    f'({outlier_rate * 100:.1f}% of data).'
                ),
                column_name=column_stats.name,
                affected_count=outlier_count
            ))

        for column in table.columns:
            if column.type == ColumnType.CATEGORICAL:
                continue

            present = column.non_missing()
            if not present:
                continue

            unique_count = len({cell_to_text(value) for value in present})
            duplicate_rate = 1 - unique_count / len(present)
            if duplicate_rate > self.DUPLICATE_RATE:
                anomalies.append(Anomaly(
                    kind=AnomalyKind.DUPLICATE_VALUES,
                    severity=Severity.MEDIUM,
                    title=f"High Duplicate Rate in {column.name}",
                    description=f'Column "{column.name}" has {duplicate_rate * 100:.1f}% duplicate values.',
                    column_name=column.name,
                    affected_count=len(present) - unique_count
                ))

        return tuple(anomalies)


class RecommendationEngine:
    """Turns anomalies and statistics into prioritized recommendations"""

    MISSING_RATE = 0.2
    STRONG_CORRELATION = 0.7
    HIGH_CARDINALITY_RATIO = 0.8

    def __init__(self, correlation_engine: Optional[CorrelationEngine] = None):
        self.correlation_engine = correlation_engine or CorrelationEngine()

    def recommend(self,
                  table: Table,
                  stats: Sequence[ColumnStats],
                  anomalies: Sequence[Anomaly],
                  correlations: Optional[CorrelationMatrix] = None) -> Tuple[Recommendation, ...]:
        recommendations: List[Recommendation] = []

        high_missing = [column for column in table.columns if column.missing_rate > self.MISSING_RATE]
        if high_missing:
            recommendations.append(Recommendation(
                category=RecommendationCategory.DATA_QUALITY,
                priority=Priority.HIGH,
                title="Address Missing Values",
                description=(
                    f"{len(high_missing)} columns have significant missing values (>20%). "
                    f"This could impact analysis accuracy."
                ),
                suggested_action=(
                    "Consider imputation strategies, removal of incomplete records, "
                    "or collection of additional data."
                ),
                expected_impact="Improved data completeness and analysis reliability"
            ))

        numerical_stats = [s for s in stats if s.type == ColumnType.NUMERICAL]
        if len(numerical_stats) >= 2:
            if correlations is None:
                correlations = self.correlation_engine.correlate(table)
            strong_pairs = self._strong_pairs(correlations)
            if strong_pairs:
                pair_names = ", ".join(f"{a} / {b}" for a, b, _ in strong_pairs[:5])
                recommendations.append(Recommendation(
                    category=RecommendationCategory.ANALYSIS,
                    priority=Priority.MEDIUM,
                    title="Strong Correlations Detected",
                    description=(
                        f"Found {len(strong_pairs)} pairs of strongly correlated variables "
                        f"({pair_names}). This could indicate multicollinearity."
                    ),
                    suggested_action="Consider feature selection or dimensionality reduction techniques for modeling.",
                    expected_impact="Reduced model complexity and improved interpretability"
                ))

        severe_outliers = [
            anomaly for anomaly in anomalies
            if anomaly.kind == AnomalyKind.OUTLIER and anomaly.severity == Severity.HIGH
        ]
        if severe_outliers:
            recommendations.append(Recommendation(
                category=RecommendationCategory.PREPROCESSING,
                priority=Priority.MEDIUM,
                title="Handle Outliers",
                description=(
                    f"{len(severe_outliers)} columns contain significant outliers "
                    f"that may skew analysis results."
                ),
                suggested_action="Consider outlier removal, transformation, or robust statistical methods.",
                expected_impact="More reliable statistical measures and model performance"
            ))

        for column_stats in stats:
            categorical = column_stats.categorical
            if column_stats.type != ColumnType.CATEGORICAL or categorical is None:
                continue
            if categorical.unique_count > table.total_rows * self.HIGH_CARDINALITY_RATIO:
                recommendations.append(Recommendation(
                    category=RecommendationCategory.PREPROCESSING,
                    priority=Priority.LOW,
                    title=f"High Cardinality in {column_stats.name}",
                    description=(
                        f'Column "{column_stats.name}" has very high cardinality '
                        f'({categorical.unique_count} unique values).'
                    ),
                    suggested_action="Consider grouping rare categories or using encoding techniques for modeling.",
                    expected_impact="Reduced dimensionality and improved model efficiency"
                ))

        return tuple(recommendations)

    def _strong_pairs(self, correlations: CorrelationMatrix) -> List[Tuple[str, str, float]]:
        """Unordered column pairs with |r| above the threshold"""
        names = list(correlations)
        pairs = []
        for i, first in enumerate(names):
            for second in names[i + 1:]:
                coefficient = correlations[first].get(second, 0.0)
                if abs(coefficient) > self.STRONG_CORRELATION:
                    pairs.append((first, second, coefficient))
        return pairs


class DataAnalyzer:
    """Runs the full analysis over one table"""

    def __init__(self):
        self.stats_engine = DescriptiveStatsEngine()
        self.correlation_engine = CorrelationEngine()
        self.anomaly_detector = AnomalyDetector()
        self.recommendation_engine = RecommendationEngine(self.correlation_engine)

    @log_execution_time
    def analyze(self, table: Table) -> DataAnalysis:
        column_stats = self.stats_engine.stats(table)
        correlations = self.correlation_engine.correlate(table)
        anomalies = self.anomaly_detector.detect(table, column_stats)
        recommendations = self.recommendation_engine.recommend(
            table, column_stats, anomalies, correlations
        )

        logger.info(
            f"Analyzed {table.source_name}: {len(anomalies)} anomalies, "
            f"{len(recommendations)} recommendations"
        )
        return DataAnalysis(
            column_stats=column_stats,
            correlations=correlations,
            anomalies=anomalies,
            recommendations=recommendations
        )


class DataAnalysisAgent:
    """Workflow node wrapping the analyzer"""

    def __init__(self):
        self.analyzer = DataAnalyzer()

    def analyze(self, state: dict) -> dict:
        """Analyze the cleaned table when there is one, else the raw table"""
        with PipelineLogger("data_analysis") as step:
            try:
                table = state.get('cleaned_table') or state['raw_table']
                analysis = self.analyzer.analyze(table)

                step.log_metric("anomalies", len(analysis.anomalies))
                step.log_metric("recommendations", len(analysis.recommendations))

                return {
                    'analysis': analysis,
                    'current_step': 'data_analysis',
                    'next_action': 'export' if state.get('export_format') else 'completed',
                    'execution_log': state.get('execution_log', []) + [
                        f"Data analysis completed: {len(analysis.anomalies)} anomalies, "
                        f"{len(analysis.recommendations)} recommendations"
                    ]
                }

            except Exception as e:
                logger.error(f"Data analysis failed: {str(e)}")
                return {
                    'current_step': 'data_analysis',
                    'next_action': 'error',
                    'errors': state.get('errors', []) + [f"Data analysis error: {str(e)}"]
                }
