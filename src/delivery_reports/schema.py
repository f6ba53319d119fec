"""
Canonical relational schema for the food-delivery dataset.

The schema is a plain configuration object handed to the evaluator on every
call, so test fixtures and alternative schema versions can coexist.
"""
import logging
from dataclasses import dataclass, field

import pandas as pd

from delivery_reports.exceptions import DataError, SchemaMismatchError

logger = logging.getLogger(__name__)

COLUMN_KINDS = ('int', 'float', 'str', 'date', 'time')


@dataclass(frozen=True)
class ColumnDef:
    name: str
    kind: str
    nullable: bool = False
    minimum: float = None


@dataclass(frozen=True)
class TableDef:
    name: str
    columns: tuple
    primary_key: tuple
    unique: tuple = ()

    def column(self, name):
        for column in self.columns:
            if column.name == name:
                return column
        raise SchemaMismatchError(f"Unknown column '{name}'", table=self.name, column=name)

    @property
    def column_names(self):
        return [column.name for column in self.columns]


@dataclass(frozen=True)
class ForeignKey:
    table: str
    column: str
    ref_table: str
    ref_column: str

    def __str__(self):
        return f"{self.table}.{self.column} -> {self.ref_table}.{self.ref_column}"


@dataclass(frozen=True)
class Schema:
    tables: tuple
    foreign_keys: tuple = field(default=())

    def table(self, name):
        for table in self.tables:
            if table.name == name:
                return table
        raise SchemaMismatchError(f"Unknown table '{name}'", table=name)

    @property
    def table_names(self):
        return [table.name for table in self.tables]


DEFAULT_SCHEMA = Schema(
    tables=(
        TableDef('customers', (
            ColumnDef('customer_id', 'int'),
            ColumnDef('customer_name', 'str'),
            ColumnDef('reg_date', 'date', nullable=True),
        ), primary_key=('customer_id',)),
        TableDef('restaurants', (
            ColumnDef('restaurant_id', 'int'),
            ColumnDef('restaurant_name', 'str'),
            ColumnDef('city', 'str'),
            ColumnDef('country', 'str', nullable=True),
            ColumnDef('opening_hours', 'str', nullable=True),
        ), primary_key=('restaurant_id',)),
        TableDef('riders', (
            ColumnDef('rider_id', 'int'),
            ColumnDef('rider_name', 'str', nullable=True),
            ColumnDef('sign_up', 'date', nullable=True),
        ), primary_key=('rider_id',)),
        TableDef('orders', (
            ColumnDef('order_id', 'int'),
            ColumnDef('customer_id', 'int'),
            ColumnDef('restaurant_id', 'int'),
            ColumnDef('order_item', 'str'),
            ColumnDef('quantity', 'int', nullable=True),
            ColumnDef('order_date', 'date'),
            ColumnDef('order_time', 'time'),
            ColumnDef('order_status', 'str', nullable=True),
            ColumnDef('total_amount', 'float', minimum=0),
        ), primary_key=('order_id',)),
        TableDef('deliveries', (
            ColumnDef('delivery_id', 'int'),
            ColumnDef('order_id', 'int'),
            ColumnDef('delivery_status', 'str'),
            ColumnDef('delivery_time', 'time', nullable=True),
            ColumnDef('rider_id', 'int', nullable=True),
        ), primary_key=('delivery_id',), unique=(('order_id',),)),
    ),
    foreign_keys=(
        ForeignKey('orders', 'customer_id', 'customers', 'customer_id'),
        ForeignKey('orders', 'restaurant_id', 'restaurants', 'restaurant_id'),
        ForeignKey('deliveries', 'order_id', 'orders', 'order_id'),
        ForeignKey('deliveries', 'rider_id', 'riders', 'rider_id'),
    ),
)


def _coerce_time(series):
    # datetime.time, "HH:MM:SS" strings and timedeltas all become offsets from midnight
    if pd.api.types.is_timedelta64_dtype(series):
        return series
    if pd.api.types.is_datetime64_any_dtype(series):
        return series - series.dt.normalize()
    as_text = series.map(lambda value: None if pd.isna(value) else str(value))
    return pd.to_timedelta(as_text)


def coerce_column(series, column, table_name):
    """
    Convert a raw column to the pandas dtype used for its kind.
    """
    try:
        if column.kind == 'int':
            values = pd.to_numeric(series)
            if values.isnull().any():
                return values.astype('float64')
            return values.astype('int64')
        if column.kind == 'float':
            return pd.to_numeric(series).astype('float64')
        if column.kind == 'str':
            return series.astype(object).where(series.notna(), None).map(
                lambda value: value if value is None else str(value)
            )
        if column.kind == 'date':
            return pd.to_datetime(series)
        if column.kind == 'time':
            return _coerce_time(series)
    except (TypeError, ValueError) as e:
        raise SchemaMismatchError(
            f"Cannot read column as {column.kind}: {e}",
            table=table_name,
            column=column.name
        ) from e
    raise SchemaMismatchError(
        f"Unsupported column kind '{column.kind}'",
        table=table_name,
        column=column.name
    )


def prepare_table(table_def, frame):
    """
    Validate and coerce one table snapshot against its definition.

    Returns a new DataFrame sorted by primary key; the input is left untouched.
    """
    missing = [name for name in table_def.column_names if name not in frame.columns]
    if missing:
        raise SchemaMismatchError(
            f"Table is missing columns {missing}",
            table=table_def.name,
            column=missing[0]
        )

    prepared = frame.copy()
    for column in table_def.columns:
        prepared[column.name] = coerce_column(prepared[column.name], column, table_def.name)
        if not column.nullable:
            null_count = int(prepared[column.name].isnull().sum())
            if null_count > 0:
                raise DataError(
                    f"Found {null_count} null values in non-nullable column",
                    table=table_def.name,
                    column=column.name
                )

    prepared = prepared.sort_values(list(table_def.primary_key), kind='mergesort')
    prepared = prepared.reset_index(drop=True)
    logger.debug(f"Prepared table '{table_def.name}' with {len(prepared)} rows")
    return prepared


def prepare_tables(schema, tables, names):
    """
    Prepare the named tables from a snapshot mapping.
    """
    prepared = {}
    for name in names:
        table_def = schema.table(name)
        if name not in tables:
            raise SchemaMismatchError(f"Table '{name}' was not supplied", table=name)
        prepared[name] = prepare_table(table_def, tables[name])
    return prepared
