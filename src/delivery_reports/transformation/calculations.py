"""
Group-by aggregation for report evaluation.
"""
import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from delivery_reports.exceptions import SchemaMismatchError, SpecificationError
from delivery_reports.transformation.expressions import _as_mask, _broadcast, col, to_expr

logger = logging.getLogger(__name__)

NUMERIC_FUNCTIONS = ('sum', 'avg')

# result dtypes when there are no groups; min and max keep the input dtype
EMPTY_DTYPES = {
    'count': 'int64',
    'count_distinct': 'int64',
    'sum': 'float64',
    'avg': 'float64',
}


def _sum(series):
    # SQL semantics: SUM over no non-null values is null, not 0
    return series.sum(min_count=1)


def _input_expr(value):
    # plain strings name columns
    if isinstance(value, str):
        return col(value)
    return to_expr(value)


PANDAS_FUNCTIONS = {
    'count': 'count',
    'count_distinct': 'nunique',
    'sum': _sum,
    'avg': 'mean',
    'min': 'min',
    'max': 'max',
}


@dataclass(frozen=True, eq=False)
class Agg:
    """
    One aggregate column.

    func is one of count, count_distinct, sum, avg, min, max. When expr is
    None the aggregate counts rows. Rows where the optional where condition
    is false are ignored.
    """
    func: str
    expr: object = None
    where: object = None

    def __post_init__(self):
        if self.func not in PANDAS_FUNCTIONS:
            raise SpecificationError(f"Unsupported aggregate function '{self.func}'")
        if self.expr is None and self.func != 'count':
            raise SpecificationError(f"Aggregate '{self.func}' needs an input expression")

    def columns(self):
        names = set()
        if self.expr is not None:
            names |= _input_expr(self.expr).columns()
        if self.where is not None:
            names |= to_expr(self.where).columns()
        return names

    def input_values(self, frame, context):
        """
        Evaluate the aggregate input for every row, nulling out filtered rows.
        """
        if self.expr is None:
            values = pd.Series(1, index=frame.index, dtype='int64')
        else:
            values = _broadcast(_input_expr(self.expr).evaluate(frame, context), frame)
        if self.where is not None:
            mask = _as_mask(to_expr(self.where).evaluate(frame, context), frame)
            values = values.where(mask, np.nan)
        if self.func in NUMERIC_FUNCTIONS and not pd.api.types.is_numeric_dtype(values):
            if len(values) > 0 and not values.isnull().all():
                raise SchemaMismatchError(
                    f"Aggregate '{self.func}' needs numeric input, got {values.dtype}",
                    column=', '.join(sorted(self.columns())) or None
                )
            values = values.astype(float)
        return values


def count(expr=None, where=None):
    """COUNT(*) when called without arguments, otherwise COUNT(expr)."""
    return Agg('count', expr, where)


def count_if(condition):
    return Agg('count', None, condition)


def count_distinct(expr, where=None):
    return Agg('count_distinct', expr, where)


def sum_(expr, where=None):
    return Agg('sum', expr, where)


def avg(expr, where=None):
    return Agg('avg', expr, where)


def min_(expr, where=None):
    return Agg('min', expr, where)


def max_(expr, where=None):
    return Agg('max', expr, where)


def _global_aggregate(work, aggregates):
    row = {}
    for name, agg in aggregates.items():
        func = PANDAS_FUNCTIONS[agg.func]
        series = work[name]
        row[name] = func(series) if callable(func) else getattr(series, func)()
    return pd.DataFrame([row], columns=list(aggregates))


def _empty_groups(work, group_by, aggregates):
    result = work[group_by].reset_index(drop=True)
    for name, agg in aggregates.items():
        dtype = EMPTY_DTYPES.get(agg.func, work[name].dtype)
        result[name] = pd.Series([], dtype=dtype)
    return result


def aggregate(frame, group_by, aggregates, context):
    """
    Group rows by key columns and compute aggregate columns.

    Null keys form their own group. The result is sorted by the key columns.
    Without key columns the result is a single row, even for empty input.
    """
    group_by = list(group_by)
    overlap = set(group_by) & set(aggregates)
    if overlap:
        raise SpecificationError(f"Aggregate names clash with group keys: {sorted(overlap)}")
    for key in group_by:
        if key not in frame.columns:
            raise SchemaMismatchError(
                f"Unknown group-by column '{key}'; available: {list(frame.columns)}",
                column=key
            )

    logger.info(f"Aggregating {len(frame)} rows by {group_by or 'all rows'}")

    work = frame[group_by].copy()
    for name, agg in aggregates.items():
        work[name] = agg.input_values(frame, context)

    if not group_by:
        return _global_aggregate(work, aggregates)

    if len(work) == 0:
        return _empty_groups(work, group_by, aggregates)

    named = {
        name: (name, PANDAS_FUNCTIONS[agg.func])
        for name, agg in aggregates.items()
    }
    grouped = work.groupby(group_by, dropna=False, sort=True)
    if named:
        result = grouped.agg(**named).reset_index()
    else:
        result = grouped.size().reset_index()[group_by]

    logger.info(f"Aggregated into {len(result)} groups")
    return result
