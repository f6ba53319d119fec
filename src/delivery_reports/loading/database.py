"""
Seeding a SQL database with a table snapshot through the ORM models.
"""
import datetime
import logging
import traceback

import pandas as pd
from sqlalchemy import Date, Integer, Time
from sqlalchemy.orm import Session

from delivery_reports.db.engine import init_db
from delivery_reports.db.models import Base, Customer, Delivery, Order, Restaurant, Rider

logger = logging.getLogger(__name__)

# parents first so foreign keys resolve on flush
MODELS = (Customer, Restaurant, Rider, Order, Delivery)


def _to_db_value(value, column_type):
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(column_type, Date):
        return pd.Timestamp(value).date()
    if isinstance(column_type, Time):
        if isinstance(value, datetime.time):
            return value
        return datetime.time.fromisoformat(str(value))
    if isinstance(column_type, Integer):
        return int(value)
    return value


def _model_rows(model, df):
    columns = model.__table__.columns
    names = [name for name in df.columns if name in columns.keys()]
    return [
        model(**{name: _to_db_value(record[name], columns[name].type) for name in names})
        for record in df.to_dict('records')
    ]


def load_snapshot_to_db(engine, tables):
    """
    Create the report tables and insert a snapshot into them.

    Args:
        engine: SQLAlchemy engine
        tables (dict): table name to raw DataFrame, e.g. read from CSV

    Returns:
        dict: table name to inserted row count
    """
    try:
        init_db(engine, Base)
        loaded = {}
        with Session(engine) as session:
            for model in MODELS:
                name = model.__tablename__
                if name not in tables:
                    continue
                session.add_all(_model_rows(model, tables[name]))
                session.flush()
                loaded[name] = len(tables[name])
                logger.info(f"Inserted {loaded[name]} rows into {name}")
            session.commit()
        return loaded
    except Exception as e:
        logger.error(f"Error loading snapshot into database: {str(e)}")
        logger.error(traceback.format_exc())
        raise
