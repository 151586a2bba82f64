# tests/test_pipeline.py
from pathlib import Path

import pytest

from datazen.agents.cleaning_agent import CLEANING_FLAG_COLUMN
from datazen.config import Config
from datazen.models import Column, ColumnType, Table
from datazen.pipeline import DataQualityPipeline


class TestDataQualityPipeline:

    @pytest.fixture
    def pipeline(self):
        return DataQualityPipeline(Config())

    @pytest.fixture
    def table(self):
        return Table.from_columns([
            Column.from_values("unit_price", ColumnType.TEXT, ["$5", "n/a", "7", "9"]),
            Column.from_values("city", ColumnType.CATEGORICAL, ["a", "b", "a", None])
        ], "sales.csv")

    @pytest.fixture
    def csv_file(self, tmp_path):
        path = tmp_path / "orders.csv"
        path.write_text(
            "order_date,quantity,price,region\n"
            "2024-01-05,3,19.99,north\n"
            "2024-01-06,n/a,5.00,south\n"
            "2024-01-07,2,,north\n"
            "2024-01-08,4,12.50,north\n"
            "2024-01-09,1,7.25,south\n"
        )
        return path

    def test_run_table_with_cleaning(self, pipeline, table):
        result = pipeline.run_table(table)

        assert result['status'] == 'completed'
        assert result['cleaned_table'].total_columns == table.total_columns + 1
        assert result['cleaned_table'].column_names[-1] == CLEANING_FLAG_COLUMN
        assert result['cleaning_report'].totals.values_imputed == 2
        assert len(result['analysis'].column_stats) == table.total_columns + 1
        assert result['execution_log'][-1].startswith("Pipeline completed")

    def test_run_table_without_cleaning(self, pipeline, table):
        result = pipeline.run_table(table, clean=False)

        assert result['status'] == 'completed'
        assert 'cleaned_table' not in result
        assert 'cleaning_report' not in result
        assert len(result['analysis'].column_stats) == table.total_columns

    def test_run_pipeline_from_csv(self, pipeline, csv_file, tmp_path):
        output_dir = tmp_path / "out"

        result = pipeline.run_pipeline(str(csv_file), export_format='json', output_dir=str(output_dir))

        assert result['status'] == 'completed'
        assert result['raw_table'].total_rows == 5

        cleaned = result['cleaned_table']
        assert cleaned.column('quantity').type == ColumnType.NUMERICAL
        assert cleaned.column('quantity').missing_count == 0
        assert cleaned.column('price').missing_count == 0
        assert cleaned.column('order_date').values[0] == "2024-01-05"

        assert len(result['export_paths']) == 1
        assert Path(result['export_paths'][0]).exists()

    def test_run_pipeline_exports_xlsx(self, pipeline, csv_file, tmp_path):
        result = pipeline.run_pipeline(str(csv_file), export_format='XLSX', output_dir=str(tmp_path))

        assert result['status'] == 'completed'
        suffixes = sorted(Path(p).suffix for p in result['export_paths'])
        assert suffixes == ['.json', '.xlsx']

    def test_missing_file(self, pipeline):
        result = pipeline.run_pipeline("non_existent_file.csv")

        assert result['status'] == 'failed'
        assert result['errors'][0].startswith("Data ingestion error:")
        assert 'analysis' not in result

    def test_unsupported_export_format(self, pipeline, table):
        with pytest.raises(ValueError, match="Unsupported export format"):
            pipeline.run_table(table, export_format='pdf')

    def test_routing(self, pipeline):
        assert pipeline._route_after_ingestion({'next_action': 'error'}) == 'error'
        assert pipeline._route_after_ingestion({'next_action': 'data_cleaning', 'clean': True}) == 'clean'
        assert pipeline._route_after_ingestion({'next_action': 'data_analysis', 'clean': False}) == 'analyze'
        assert pipeline._route_after_cleaning({'next_action': 'error'}) == 'error'
        assert pipeline._route_after_analysis({'next_action': 'export'}) == 'export'
        assert pipeline._route_after_analysis({'next_action': 'completed'}) == 'end'
