# tests/test_cleaning_agent.py
import pytest

from datazen.agents.cleaning_agent import (
    CLEANING_FLAG_COLUMN, CleaningPipeline, DataCleaningAgent, Imputer, TypeCoercer, ValueNormalizer
)
from datazen.config import CleaningKeywords
from datazen.models import Column, ColumnType, Table


def make_table(*columns, source_name="sample.csv"):
    return Table.from_columns(list(columns), source_name)


class TestValueNormalizer:

    @pytest.fixture
    def normalizer(self):
        return ValueNormalizer()

    def test_sentinel_tokens_become_missing(self, normalizer):
        """Sentinels match case-insensitively after trimming"""
        values = ["n/a", "NA", " Unknown ", "x", None, ""]

        fixed, count = normalizer.fix(values, ColumnType.TEXT)

        assert fixed == [None, None, None, "x", None, ""]
        assert count == 3

    def test_negative_flip_in_mostly_positive_column(self, normalizer):
        values = ["10", "20", "30", "40", "50", "-5"]

        fixed, count = normalizer.fix(values, ColumnType.NUMERICAL)

        assert fixed == ["10", "20", "30", "40", "50", 5.0]
        assert count == 1

    def test_no_flip_without_positive_majority(self, normalizer):
        """Three positives out of four is not above 80%"""
        values = ["10", "-5", "20", "30"]

        fixed, count = normalizer.fix(values, ColumnType.NUMERICAL)

        assert fixed == values
        assert count == 0

    def test_no_flip_for_non_numerical_column(self, normalizer):
        values = ["10", "20", "30", "40", "50", "-5"]

        fixed, count = normalizer.fix(values, ColumnType.TEXT)

        assert fixed == values
        assert count == 0

    def test_input_is_not_mutated(self, normalizer):
        values = ["n/a", "1"]
        normalizer.fix(values, ColumnType.TEXT)
        assert values == ["n/a", "1"]

    def test_custom_sentinels(self):
        normalizer = ValueNormalizer(CleaningKeywords(SENTINEL_TOKENS=('sans objet',)))

        fixed, count = normalizer.fix(["Sans Objet", "n/a"], ColumnType.TEXT)

        assert fixed == [None, "n/a"]
        assert count == 1


class TestTypeCoercer:

    @pytest.fixture
    def coercer(self):
        return TypeCoercer()

    def coerce(self, coercer, name, column_type, values):
        column = Column.from_values(name, column_type, values)
        return coercer.coerce(list(values), column)

    def test_price_column(self, coercer):
        values, column_type, converted = self.coerce(
            coercer, "unit_price", ColumnType.TEXT, ["$1,200.50", "abc", None]
        )

        assert values == [1200.5, None, None]
        assert column_type == ColumnType.NUMERICAL
        assert converted

    def test_price_takes_precedence_over_quantity(self, coercer):
        """'amount' is in both keyword lists and is treated as a price"""
        values, column_type, _ = self.coerce(coercer, "total_amount", ColumnType.TEXT, ["12.7"])

        assert values == [12.7]
        assert column_type == ColumnType.NUMERICAL

    def test_quantity_column(self, coercer):
        values, column_type, converted = self.coerce(
            coercer, "item_qty", ColumnType.TEXT, ["1,200", "3.9", ""]
        )

        assert values == [1200, 3, ""]
        assert column_type == ColumnType.NUMERICAL
        assert converted

    def test_date_column_by_name(self, coercer):
        values, column_type, converted = self.coerce(
            coercer, "signup_date", ColumnType.TEXT, ["2024-03-15", "banana", None]
        )

        assert values == ["2024-03-15", None, None]
        assert column_type == ColumnType.DATE
        assert converted

    def test_date_column_by_type(self, coercer):
        values, column_type, converted = self.coerce(
            coercer, "event", ColumnType.DATE, ["March 5, 2024"]
        )

        assert values == ["2024-03-05"]
        assert column_type == ColumnType.DATE
        assert converted

    def test_unmatched_column_is_unchanged(self, coercer):
        values, column_type, converted = self.coerce(coercer, "city", ColumnType.TEXT, ["Paris", None])

        assert values == ["Paris", None]
        assert column_type == ColumnType.TEXT
        assert not converted


class TestImputer:

    @pytest.fixture
    def imputer(self):
        return Imputer()

    def test_numerical_median(self, imputer):
        values, count, method = imputer.impute([1, None, 3, "", 10], ColumnType.NUMERICAL)

        assert values == [1, 3.0, 3, 3.0, 10]
        assert count == 2
        assert method == 'median'

    def test_numerical_median_even_count(self, imputer):
        values, count, _ = imputer.impute([1, 2, 3, 4, None], ColumnType.NUMERICAL)

        assert values[-1] == 2.5
        assert count == 1

    def test_numerical_without_parseable_values(self, imputer):
        values, count, method = imputer.impute(["abc", None], ColumnType.NUMERICAL)

        assert values == ["abc", None]
        assert count == 0
        assert method == 'no_imputation_possible'

    def test_categorical_mode_ties_go_to_first_seen(self, imputer):
        values, count, method = imputer.impute(["b", "a", "b", "a", None], ColumnType.CATEGORICAL)

        assert values[-1] == "b"
        assert count == 1
        assert method == 'mode'

    def test_date_most_frequent(self, imputer):
        values, _, method = imputer.impute(
            ["2024-01-01", "2024-01-02", "2024-01-02", None], ColumnType.DATE
        )

        assert values[-1] == "2024-01-02"
        assert method == 'most_frequent_date'

    def test_text_most_frequent(self, imputer):
        values, _, method = imputer.impute(["x", "y", None], ColumnType.TEXT)

        assert values == ["x", "y", "x"]
        assert method == 'most_frequent_text'

    def test_all_missing(self, imputer):
        values, count, method = imputer.impute([None, ""], ColumnType.TEXT)

        assert values == [None, ""]
        assert count == 0
        assert method == 'no_imputation_possible'


class TestCleaningPipeline:

    @pytest.fixture
    def pipeline(self):
        return CleaningPipeline()

    @pytest.fixture
    def score_table(self):
        """Only the row holding -5 needs a fix"""
        return make_table(
            Column.from_values("score", ColumnType.NUMERICAL, ["10", "20", "30", "40", "50", "-5"]),
            Column.from_values("city", ColumnType.TEXT, ["a", "b", "c", "d", "e", "f"])
        )

    def test_price_scenario(self, pipeline):
        """Sentinel removed, then currency parse, then median fill"""
        table = make_table(
            Column.from_values("price", ColumnType.TEXT, ["10", "-5", "n/a", "20"])
        )

        cleaned, report = pipeline.clean(table)

        price = cleaned.column("price")
        assert price.values == (10.0, -5.0, 10.0, 20.0)
        assert price.type == ColumnType.NUMERICAL

        column_report = report.per_column[0]
        assert column_report.errors_fixed == 1
        assert column_report.values_imputed == 1
        assert column_report.type_converted
        assert column_report.final_type == ColumnType.NUMERICAL
        assert column_report.imputation_method == 'median'

    def test_flag_column_appended(self, pipeline, score_table):
        cleaned, report = pipeline.clean(score_table)

        assert cleaned.total_columns == score_table.total_columns + 1
        assert cleaned.total_rows == score_table.total_rows
        assert cleaned.column_names == ["score", "city", CLEANING_FLAG_COLUMN]

        flags = cleaned.column(CLEANING_FLAG_COLUMN)
        assert flags.type == ColumnType.CATEGORICAL
        assert flags.values == (False, False, False, False, False, True)
        assert report.total_rows_modified == 1

    def test_rows_modified_matches_flags(self, pipeline):
        table = make_table(
            Column.from_values("unit_price", ColumnType.TEXT, ["$5", "n/a", "7"]),
            Column.from_values("city", ColumnType.TEXT, ["a", "b", "c"])
        )

        cleaned, report = pipeline.clean(table)

        flags = cleaned.column(CLEANING_FLAG_COLUMN).values
        assert report.total_rows_modified == sum(flags)
        assert all(flags)

    def test_totals_are_sums(self, pipeline):
        table = make_table(
            Column.from_values("unit_price", ColumnType.TEXT, ["$5", "n/a", "7", None]),
            Column.from_values("signup_date", ColumnType.TEXT, ["2024-01-01", "unknown", None, "2024-01-01"]),
            Column.from_values("city", ColumnType.TEXT, ["a", "b", "c", "d"])
        )

        _, report = pipeline.clean(table)

        assert report.totals.values_imputed == sum(r.values_imputed for r in report.per_column)
        assert report.totals.errors_fixed == sum(r.errors_fixed for r in report.per_column)
        assert report.totals.types_converted == 2
        assert report.totals.errors_fixed == 2

    def test_input_table_untouched(self, pipeline):
        table = make_table(Column.from_values("price", ColumnType.TEXT, ["10", "-5", "n/a", "20"]))

        pipeline.clean(table)

        assert table.column("price").values == ("10", "-5", "n/a", "20")
        assert table.total_columns == 1

    def test_second_pass_imputes_nothing(self, pipeline):
        table = make_table(
            Column.from_values("price", ColumnType.TEXT, ["10", "-5", "n/a", "20"]),
            Column.from_values("city", ColumnType.CATEGORICAL, ["a", None, "a", "b"])
        )

        once, _ = pipeline.clean(table)
        twice, second_report = pipeline.clean(once)

        assert second_report.totals.values_imputed == 0
        assert second_report.total_rows_modified == 0
        assert twice.column_names == ["price", "city", CLEANING_FLAG_COLUMN]
        assert twice.column(CLEANING_FLAG_COLUMN).values == (False, False, False, False)
        assert [r.column_name for r in second_report.per_column] == ["price", "city"]

    def test_existing_flag_column_is_replaced(self, pipeline):
        table = make_table(
            Column.from_values("city", ColumnType.TEXT, ["a", "n/a"]),
            Column.from_values(CLEANING_FLAG_COLUMN, ColumnType.TEXT, ["stale", None])
        )

        cleaned, report = pipeline.clean(table)

        assert cleaned.column_names == ["city", CLEANING_FLAG_COLUMN]
        assert cleaned.column(CLEANING_FLAG_COLUMN).values == (False, True)
        assert report.total_rows_modified == 1

    def test_empty_table(self, pipeline):
        table = Table(total_rows=0, total_columns=0, columns=(), source_name="empty.csv")

        cleaned, report = pipeline.clean(table)

        assert cleaned.column_names == [CLEANING_FLAG_COLUMN]
        assert report.total_rows_modified == 0


class TestDataCleaningAgent:

    def test_clean_data_node(self):
        table = make_table(Column.from_values("price", ColumnType.TEXT, ["10", "n/a"]))
        state = {'raw_table': table, 'execution_log': ["started"], 'errors': []}

        result = DataCleaningAgent().clean_data(state)

        assert result['next_action'] == 'data_analysis'
        assert result['cleaned_table'].total_columns == 2
        assert result['cleaning_report'].totals.values_imputed == 1
        assert len(result['execution_log']) == 2

    def test_clean_data_without_table(self):
        result = DataCleaningAgent().clean_data({'errors': []})

        assert result['next_action'] == 'error'
        assert result['errors'][0].startswith("Data cleaning error:")
