"""
Table scans for the delivery reports: CSV directories and SQL databases.
"""
import os
import logging
import traceback

import pandas as pd
from sqlalchemy import inspect

from delivery_reports.db.engine import create_db_engine

logger = logging.getLogger(__name__)

CSV_DTYPES = {
    'int': None,
    'float': None,
    'str': 'str',
    'date': 'str',
    'time': 'str',
}


def read_csv_table(file_path, table_def):
    """
    Read one table from a CSV file.

    Only columns declared as text are pinned to str; numeric and temporal
    columns are coerced by the evaluator.
    """
    if not os.path.exists(file_path):
        logger.error(f"File not found: {file_path}")
        raise FileNotFoundError(file_path)

    dtypes = {
        column.name: CSV_DTYPES[column.kind]
        for column in table_def.columns
        if CSV_DTYPES.get(column.kind)
    }
    df = pd.read_csv(file_path, dtype=dtypes)
    logger.info(f"Loaded {len(df)} rows from {file_path}")

    missing_values = df.isnull().sum().sum()
    if missing_values > 0:
        logger.warning(f"Found {missing_values} missing values in {file_path}")
    return df


def load_tables_from_csv(input_dir, schema, names=None):
    """
    Load tables from '<input_dir>/<table>.csv' files.

    Args:
        input_dir: directory holding one CSV file per table
        schema: Schema describing the tables
        names: tables to load; every schema table when omitted

    Returns:
        dict: table name to DataFrame
    """
    try:
        tables = {}
        for name in names or schema.table_names:
            file_path = os.path.join(input_dir, f"{name}.csv")
            tables[name] = read_csv_table(file_path, schema.table(name))
        return tables
    except Exception as e:
        logger.error(f"Failed to load tables from {input_dir}: {str(e)}")
        logger.error(traceback.format_exc())
        raise


def load_tables_from_db(engine, schema, names=None):
    """
    Scan tables from a SQL database.
    """
    try:
        available = set(inspect(engine).get_table_names())
        tables = {}
        for name in names or schema.table_names:
            if name not in available:
                logger.error(f"Table {name} does not exist in the database")
                raise LookupError(f"Table not found: {name}")
            df = pd.read_sql_table(name, engine)
            logger.info(f"Loaded {len(df)} rows from table {name}")
            tables[name] = df
        return tables
    except Exception as e:
        logger.error(f"Failed to load tables from database: {str(e)}")
        logger.error(traceback.format_exc())
        raise


def load_tables(config, schema, names=None):
    """
    Load tables from the source named in the configuration.
    """
    source_type = config.get_source_type()
    logger.info(f"Loading tables {names or schema.table_names} from {source_type}")
    if source_type == 'database':
        engine = create_db_engine(config)
        try:
            return load_tables_from_db(engine, schema, names)
        finally:
            engine.dispose()
    return load_tables_from_csv(config.get_input_path(), schema, names)
