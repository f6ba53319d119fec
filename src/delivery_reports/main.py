"""
Command line entry point for the delivery reports.
"""
import logging
import argparse
import sys
import time
import traceback
from datetime import datetime

import pandas as pd

from delivery_reports.config import Config
from delivery_reports.db.engine import create_db_engine
from delivery_reports.ingestion.loader import load_tables, load_tables_from_csv
from delivery_reports.loading.database import load_snapshot_to_db
from delivery_reports.loading.writer import export_results_to_csv, format_result
from delivery_reports.reports.definitions import default_catalog
from delivery_reports.schema import DEFAULT_SCHEMA
from delivery_reports.transformation.quality import run_data_quality_checks

logger = logging.getLogger(__name__)


def parse_params(pairs):
    """
    Turn ['key=value', ...] into a dict.
    """
    params = {}
    for pair in pairs or []:
        if '=' not in pair:
            raise ValueError(f"Parameters must look like key=value, got '{pair}'")
        key, value = pair.split('=', 1)
        params[key.strip()] = value.strip()
    return params


def run_report(report, config_file='config.ini', params=None, as_of=None, quality_check=None,
               export_csv=False, catalog=None, schema=DEFAULT_SCHEMA):
    """
    Load the tables a report needs, check them, evaluate the report and
    optionally export it.

    Returns:
        dict: run statistics; 'result' holds the ReportResult on success
    """
    start_time = time.time()
    statistics = {
        'start_time': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        'status': 'failed',
        'stages': {},
    }

    try:
        # Load configuration
        config = Config(config_file)
        catalog = catalog or default_catalog()

        definition = catalog.get(report)
        statistics['report'] = definition.name
        logger.info(f"Starting report {definition.number} '{definition.name}'")

        if quality_check is None:
            quality_check = config.is_quality_check_enabled()
        as_of = pd.Timestamp(as_of) if as_of is not None else config.get_as_of()
        statistics['as_of'] = as_of.strftime('%Y-%m-%d')
        # command-line values override the [report:<name>] section
        params = {**config.get_report_params(definition.name), **(params or {})}

        # ---- Table scans
        stage_start = time.time()
        names = definition.tables(params, as_of)
        tables = load_tables(config, schema, names)
        statistics['stages']['ingestion'] = {
            'duration': time.time() - stage_start,
            'rows_processed': {name: len(df) for name, df in tables.items()}
        }

        # ---- Data quality checks
        if quality_check:
            stage_start = time.time()
            quality_results = run_data_quality_checks(tables, schema)
            statistics['stages']['quality_check'] = {
                'duration': time.time() - stage_start,
                'issues_found': quality_results['total_issues']
            }

        # ---- Evaluation
        stage_start = time.time()
        result = definition.run(tables, as_of=as_of, params=params, schema=schema)
        statistics['stages']['evaluation'] = {
            'duration': time.time() - stage_start,
            'rows_generated': len(result)
        }
        statistics['result'] = result

        # Export results to CSV if requested
        if export_csv:
            exported_files = export_results_to_csv(
                {definition.name: result},
                config.get_output_path()
            )
            statistics['stages']['export'] = {
                'files_exported': len(exported_files),
                'file_paths': exported_files
            }

        statistics['status'] = 'success'
        logger.info(f"Report {definition.name} completed successfully")

    except Exception as e:
        logger.error(f"Report execution failed: {str(e)}")
        logger.error(traceback.format_exc())
        statistics['status'] = 'failed'
        statistics['error'] = str(e)

    # Calculate total duration
    statistics['duration'] = time.time() - start_time

    return statistics


def init_database(config_file='config.ini', load_csv=False, schema=DEFAULT_SCHEMA):
    """
    Create the report tables in the configured database, optionally filling
    them from the CSV snapshot in the input directory.

    Returns:
        dict: run statistics
    """
    start_time = time.time()
    statistics = {
        'start_time': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        'status': 'failed',
        'stages': {},
    }

    engine = None
    try:
        config = Config(config_file)
        engine = create_db_engine(config)

        stage_start = time.time()
        tables = load_tables_from_csv(config.get_input_path(), schema) if load_csv else {}
        loaded = load_snapshot_to_db(engine, tables)
        statistics['stages']['loading'] = {
            'duration': time.time() - stage_start,
            'rows_processed': loaded
        }

        statistics['status'] = 'success'
        logger.info(f"Database initialised with {sum(loaded.values())} rows")

    except Exception as e:
        logger.error(f"Database initialisation failed: {str(e)}")
        logger.error(traceback.format_exc())
        statistics['status'] = 'failed'
        statistics['error'] = str(e)
    finally:
        if engine is not None:
            engine.dispose()

    statistics['duration'] = time.time() - start_time
    return statistics


def list_reports(catalog=None):
    """Lines describing every report in the catalog."""
    catalog = catalog or default_catalog()
    lines = []
    for definition in catalog:
        lines.append(f"{definition.number:>2}  {definition.name:<32} {definition.title}")
        for parameter in definition.parameters:
            default = '<from as_of>' if callable(parameter.default) else parameter.default
            lines.append(f"      --param {parameter.name}=<{parameter.kind}>  (default: {default}) {parameter.help}")
    return lines


def build_parser():
    parser = argparse.ArgumentParser(description='Food delivery reports')
    parser.add_argument('--config', default='config.ini', help='Path to configuration file')
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('list', help='List available reports')

    run_parser = subparsers.add_parser('run', help='Run one report')
    run_parser.add_argument('report', help='Report number or name')
    run_parser.add_argument('--param', action='append', default=[], metavar='KEY=VALUE',
                            help='Report parameter, may be repeated')
    run_parser.add_argument('--as-of', help='Evaluation date (YYYY-MM-DD)')
    run_parser.add_argument('--quality-check', action='store_true', help='Run data quality checks')
    run_parser.add_argument('--no-quality-check', action='store_true', help='Skip data quality checks')
    run_parser.add_argument('--export-csv', action='store_true', help='Export results to CSV files')
    run_parser.add_argument('--max-rows', type=int, help='Print at most this many rows')

    init_parser = subparsers.add_parser('init-db', help='Create the report tables in the configured database')
    init_parser.add_argument('--load-csv', action='store_true',
                             help='Fill the tables from the CSV files in the input directory')
    return parser


def print_summary(results, title):
    print(f"\n{title}:")
    print(f"Status: {results['status']}")
    print(f"Duration: {results['duration']:.2f} seconds")

    if results['status'] == 'failed' and 'error' in results:
        print(f"Error: {results['error']}")

    for stage, stats in results.get('stages', {}).items():
        print(f"\n{stage.capitalize()} stage:")
        for key, value in stats.items():
            if key != 'rows_processed' and key != 'file_paths':
                print(f"  {key}: {value}")


def main(argv=None):
    """Command line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == 'list':
        for line in list_reports():
            print(line)
        return 0

    if args.command == 'init-db':
        results = init_database(config_file=args.config, load_csv=args.load_csv)
        print_summary(results, "Database Initialisation Summary")
        return 0 if results['status'] == 'success' else 1

    try:
        params = parse_params(args.param)
    except ValueError as e:
        parser.error(str(e))

    # Determine quality check mode
    quality_check = None
    if args.quality_check:
        quality_check = True
    elif args.no_quality_check:
        quality_check = False

    results = run_report(
        args.report,
        config_file=args.config,
        params=params,
        as_of=args.as_of,
        quality_check=quality_check,
        export_csv=args.export_csv
    )

    if results['status'] == 'success':
        print(format_result(results['result'], max_rows=args.max_rows))

    print_summary(results, "Report Execution Summary")
    return 0 if results['status'] == 'success' else 1


if __name__ == "__main__":
    sys.exit(main())
