# datazen/cli.py
import argparse
import sys
from pathlib import Path

from datazen.config import get_config, reload_config
from datazen.pipeline import DataQualityPipeline
from datazen.utils.logging_config import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="DataZen data-quality pipeline")
    parser.add_argument("--data-path", required=True, help="Path to the CSV or Excel dataset")
    parser.add_argument("--no-clean", action="store_true", help="Analyze the raw table without cleaning it")
    parser.add_argument("--export-format", choices=["csv", "xlsx", "json"], help="Write results in this format")
    parser.add_argument("--output-dir", help="Directory for exported files")
    parser.add_argument("--config", help="Path to configuration file")
    parser.add_argument("--log-level", default=None, help="Logging level")
    return parser


def main(argv=None):
    """Main entry point for the DataZen pipeline"""
    args = build_parser().parse_args(argv)

    config = reload_config(args.config) if args.config else get_config()
    setup_logging(
        log_level=args.log_level or config.logging_level,
        log_dir=config.paths.LOGS_DIR
    )

    issues = config.validate_config()
    if issues:
        print(f"Invalid configuration: {'; '.join(issues)}")
        sys.exit(1)

    if not Path(args.data_path).exists():
        print(f"Error: Data file not found at {args.data_path}")
        sys.exit(1)

    pipeline = DataQualityPipeline(config)
    result = pipeline.run_pipeline(
        data_path=args.data_path,
        clean=not args.no_clean,
        export_format=args.export_format or config.export.DEFAULT_FORMAT,
        output_dir=args.output_dir
    )

    if result.get("status") == "failed":
        error = result.get("error") or "; ".join(result.get("errors", []))
        print(f"Pipeline failed: {error}")
        sys.exit(1)

    table = result.get("cleaned_table") or result["raw_table"]
    analysis = result["analysis"]

    print("Pipeline completed successfully!")
    print(f"Dataset: {table.source_name}")
    print(f"Rows: {table.total_rows}  Columns: {table.total_columns}")

    report = result.get("cleaning_report")
    if report is not None:
        print(
            f"Cleaning: {report.total_rows_modified} rows modified, "
            f"{report.totals.values_imputed} values imputed, "
            f"{report.totals.errors_fixed} errors fixed"
        )

    print(f"Anomalies: {len(analysis.anomalies)}")
    for anomaly in analysis.anomalies:
        print(f"  [{anomaly.severity.value}] {anomaly.title}")

    print(f"Recommendations: {len(analysis.recommendations)}")
    for recommendation in analysis.recommendations:
        print(f"  [{recommendation.priority.value}] {recommendation.title}")

    for path in result.get("export_paths", []):
        print(f"Exported: {path}")


if __name__ == "__main__":
    main()
