# datazen/agents/export_agent.py
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from datazen.config import ExportConfig, get_config
from datazen.models import CleaningReport, DataAnalysis, Table
from datazen.utils.logging_config import PipelineLogger

logger = logging.getLogger(__name__)


def table_to_dataframe(table: Table) -> pd.DataFrame:
    """Rebuild a DataFrame with the table's columns in their original order"""
    return pd.DataFrame(
        {column.name: list(column.values) for column in table.columns},
        columns=table.column_names
    )


def cleaning_report_rows(report: CleaningReport, prefix: str = 'DataZen') -> List[List[Any]]:
    """Rows of the cleaning report sheet"""
    rows: List[List[Any]] = [
        [f'{prefix} - Cleaning Report'],
        [''],
        ['Summary'],
        ['Total Rows Modified', report.total_rows_modified],
        ['Missing Values Imputed', report.totals.values_imputed],
        ['Erroneous Values Fixed', report.totals.errors_fixed],
        ['Types Converted', report.totals.types_converted],
        [''],
        ['Detailed Report by Column'],
        ['Column Name', 'Original Type', 'Final Type', 'Values Imputed', 'Errors Fixed', 'Method']
    ]
    for column_report in report.per_column:
        rows.append([
            column_report.column_name,
            column_report.original_type.value,
            column_report.final_type.value,
            column_report.values_imputed,
            column_report.errors_fixed,
            column_report.imputation_method or ''
        ])
    return rows


class ExportAgent:
    """Writes cleaned tables and analysis reports to disk"""

    def __init__(self, export_config: Optional[ExportConfig] = None):
        self.config = export_config or get_config().export

    def export(self, state: dict) -> dict:
        """Workflow node: export the active table and the analysis report"""
        with PipelineLogger("export") as step:
            try:
                output_dir = Path(state.get('output_dir') or get_config().paths.OUTPUT_DIR)
                fmt = state['export_format']
                report = state.get('cleaning_report')
                table = state.get('cleaned_table') or state['raw_table']

                paths = []
                if fmt == 'json':
                    paths.append(self.export_report(table, state['analysis'], output_dir, report))
                else:
                    paths.append(self.export_table(table, output_dir, fmt, report))
                    paths.append(self.export_report(table, state['analysis'], output_dir, report))

                for path in paths:
                    step.log_progress(f"Wrote {path}")

                return {
                    'export_paths': [str(path) for path in paths],
                    'current_step': 'export',
                    'next_action': 'completed',
                    'execution_log': state.get('execution_log', []) + [
                        f"Export completed: {len(paths)} files written to {output_dir}"
                    ]
                }

            except Exception as e:
                logger.error(f"Export failed: {str(e)}")
                return {
                    'current_step': 'export',
                    'next_action': 'error',
                    'errors': state.get('errors', []) + [f"Export error: {str(e)}"]
                }

    def export_table(self,
                     table: Table,
                     output_dir: Union[str, Path],
                     fmt: str = 'csv',
                     cleaning_report: Optional[CleaningReport] = None) -> Path:
        """Write the table as CSV or as a workbook with an optional report sheet"""
        fmt = fmt.lower()
        if fmt not in ('csv', 'xlsx'):
            raise ValueError(f"Unsupported export format: {fmt}")

        kind = 'Cleaned' if cleaning_report is not None else 'Export'
        path = self._output_path(output_dir, kind, table.source_name, fmt)
        data = table_to_dataframe(table)

        if fmt == 'csv':
            data.to_csv(path, index=False)
        else:
            with pd.ExcelWriter(path, engine='openpyxl') as writer:
                data.to_excel(writer, sheet_name='Cleaned Data', index=False)
                if cleaning_report is not None:
                    report_rows = cleaning_report_rows(cleaning_report, self.config.REPORT_PREFIX)
                    pd.DataFrame(report_rows).to_excel(
                        writer, sheet_name='Cleaning Report', index=False, header=False
                    )

        logger.info(f"Exported {table.total_rows} rows to {path}")
        return path

    def build_report_sections(self,
                              table: Table,
                              analysis: DataAnalysis,
                              cleaning_report: Optional[CleaningReport] = None) -> Dict[str, Any]:
        """Plain-data sections of the analysis report, ready for a renderer"""
        limit = self.config.MAX_REPORT_ITEMS
        average_missing = (
            sum(column.missing_rate for column in table.columns) / len(table.columns)
            if table.columns else 0.0
        )

        cleaning = None
        if cleaning_report is not None:
            cleaning = {
                'rows_modified': cleaning_report.total_rows_modified,
                'values_imputed': cleaning_report.totals.values_imputed,
                'errors_fixed': cleaning_report.totals.errors_fixed,
                'types_converted': cleaning_report.totals.types_converted
            }

        full = analysis.to_dict()
        return {
            'title': f'{self.config.REPORT_PREFIX} Analysis Report',
            'overview': {
                'source_name': table.source_name,
                'total_rows': table.total_rows,
                'total_columns': table.total_columns,
                'average_missing_percent': round(average_missing * 100, 1)
            },
            'cleaning': cleaning,
            'columns': [
                {
                    'name': column.name,
                    'type': column.type.value,
                    'missing_percent': round(column.missing_rate * 100, 1)
                }
                for column in table.columns
            ],
            'anomalies': full['anomalies'][:limit],
            'recommendations': full['recommendations'][:limit]
        }

    def export_report(self,
                      table: Table,
                      analysis: DataAnalysis,
                      output_dir: Union[str, Path],
                      cleaning_report: Optional[CleaningReport] = None) -> Path:
        """Write the report sections and the full analysis bundle as JSON"""
        kind = 'Complete_Report' if cleaning_report is not None else 'Report'
        path = self._output_path(output_dir, kind, table.source_name, 'json')

        payload = {
            'generated_at': datetime.now().isoformat(),
            'report': self.build_report_sections(table, analysis, cleaning_report),
            'analysis': analysis.to_dict(),
            'cleaning_report': cleaning_report.to_dict() if cleaning_report is not None else None
        }

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, default=str)

        logger.info(f"Report written to {path}")
        return path

    def _output_path(self, output_dir: Union[str, Path], kind: str, source_name: str, extension: str) -> Path:
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)
        stem = Path(source_name).stem or 'dataset'
        stamp = datetime.now().strftime('%Y-%m-%d')
        return directory / f"{self.config.REPORT_PREFIX}_{kind}_{stem}_{stamp}.{extension}"
