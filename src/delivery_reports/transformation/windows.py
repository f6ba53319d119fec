"""
Window functions over partitioned, ordered rows.

Each window is evaluated in two passes: rows are split into partitions and
stably sorted by the order keys, then values are assigned by one forward
scan over every partition.
"""
import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from delivery_reports.exceptions import SchemaMismatchError, SpecificationError

logger = logging.getLogger(__name__)

RANKING_FUNCTIONS = ('rank', 'dense_rank', 'row_number')
OFFSET_FUNCTIONS = ('lag', 'lead')
AGGREGATE_FUNCTIONS = ('sum', 'avg', 'min', 'max', 'count')


@dataclass(frozen=True)
class SortKey:
    column: str
    ascending: bool = True


def asc(column):
    return SortKey(column, True)


def desc(column):
    return SortKey(column, False)


def as_sort_keys(keys):
    return tuple(key if isinstance(key, SortKey) else SortKey(key) for key in keys)


@dataclass(frozen=True)
class Window:
    func: str
    column: str = None
    partition_by: tuple = ()
    order_by: tuple = ()
    offset: int = 1

    def columns(self):
        names = set(self.partition_by) | {key.column for key in self.order_by}
        if self.column is not None:
            names.add(self.column)
        return names

    def validate(self):
        """Check the window is well formed before touching any data."""
        known = RANKING_FUNCTIONS + OFFSET_FUNCTIONS + AGGREGATE_FUNCTIONS
        if self.func not in known:
            raise SpecificationError(f"Unsupported window function '{self.func}'")
        if self.func in RANKING_FUNCTIONS + OFFSET_FUNCTIONS and not self.order_by:
            raise SpecificationError(f"Window function '{self.func}' requires an order_by clause")
        if self.func in AGGREGATE_FUNCTIONS and self.order_by:
            raise SpecificationError(f"Aggregate window '{self.func}' does not take an order_by clause")
        if self.func in OFFSET_FUNCTIONS + AGGREGATE_FUNCTIONS and self.column is None:
            if self.func != 'count':
                raise SpecificationError(f"Window function '{self.func}' needs a column")
        if self.func in OFFSET_FUNCTIONS and self.offset < 1:
            raise SpecificationError(f"Window offset must be positive, got {self.offset}")


def rank(order_by, partition_by=()):
    return Window('rank', None, tuple(partition_by), as_sort_keys(order_by))


def dense_rank(order_by, partition_by=()):
    return Window('dense_rank', None, tuple(partition_by), as_sort_keys(order_by))


def row_number(order_by, partition_by=()):
    return Window('row_number', None, tuple(partition_by), as_sort_keys(order_by))


def lag(column, order_by, partition_by=(), offset=1):
    return Window('lag', column, tuple(partition_by), as_sort_keys(order_by), offset)


def lead(column, order_by, partition_by=(), offset=1):
    return Window('lead', column, tuple(partition_by), as_sort_keys(order_by), offset)


def over(func, column=None, partition_by=()):
    """Whole-partition aggregate, e.g. over('avg', 'total_amount')."""
    return Window(func, column, tuple(partition_by))


def _key(values):
    # NaN never equals itself; normalise so null keys compare equal
    return tuple(None if pd.isna(value) else value for value in values)


def sort_frame(frame, keys, tie_breakers=()):
    """
    Stable sort by keys, followed by ascending tie-breaker columns.
    """
    keys = list(keys) + [SortKey(column) for column in tie_breakers]
    if not keys or len(frame) == 0:
        return frame
    return frame.sort_values(
        [key.column for key in keys],
        ascending=[key.ascending for key in keys],
        kind='mergesort',
        na_position='last'
    )


def _row_keys(frame, columns):
    if not columns:
        return [()] * len(frame)
    return frame[list(columns)].itertuples(index=False, name=None)


def partition_rows(frame, window):
    """
    Pass one: group row labels by partition key, each partition in window order.
    """
    ordered = sort_frame(frame, window.order_by)
    partition_values = _row_keys(ordered, window.partition_by)
    order_values = _row_keys(ordered, [key.column for key in window.order_by])

    partitions = {}
    for label, partition_key, order_key in zip(ordered.index, partition_values, order_values):
        partitions.setdefault(_key(partition_key), []).append((label, _key(order_key)))
    return partitions


def _ranking_values(rows, func):
    values = {}
    rank_value = 0
    dense_value = 0
    previous_key = object()
    for position, (label, order_key) in enumerate(rows, start=1):
        if order_key != previous_key:
            rank_value = position
            dense_value += 1
            previous_key = order_key
        if func == 'rank':
            values[label] = rank_value
        elif func == 'dense_rank':
            values[label] = dense_value
        else:
            values[label] = position
    return values


def _offset_values(rows, source, func, offset):
    labels = [label for label, _ in rows]
    missing = np.nan if pd.api.types.is_numeric_dtype(source) else None
    values = {}
    for position, label in enumerate(labels):
        target = position - offset if func == 'lag' else position + offset
        if 0 <= target < len(labels):
            values[label] = source[labels[target]]
        else:
            values[label] = missing
    return values


def _aggregate_values(rows, source, func):
    labels = [label for label, _ in rows]
    if source is None:
        series = pd.Series(1, index=labels)
    else:
        series = source.loc[labels]
    if func == 'count':
        result = series.count()
    elif func == 'sum':
        result = series.sum(min_count=1)
    elif func == 'avg':
        result = series.mean()
    else:
        result = getattr(series, func)()
    return {label: result for label in labels}


def compute_window(frame, window):
    """
    Evaluate one window function, returning a Series aligned with frame.
    """
    window.validate()
    missing = [name for name in sorted(window.columns()) if name not in frame.columns]
    if missing:
        raise SchemaMismatchError(
            f"Unknown window column '{missing[0]}'; available: {list(frame.columns)}",
            column=missing[0]
        )
    if window.func in ('sum', 'avg') and not pd.api.types.is_numeric_dtype(frame[window.column]):
        raise SchemaMismatchError(
            f"Window '{window.func}' needs numeric input, got {frame[window.column].dtype}",
            column=window.column
        )

    source = frame[window.column] if window.column is not None else None
    values = {}
    for rows in partition_rows(frame, window).values():
        if window.func in RANKING_FUNCTIONS:
            values.update(_ranking_values(rows, window.func))
        elif window.func in OFFSET_FUNCTIONS:
            values.update(_offset_values(rows, source, window.func, window.offset))
        else:
            values.update(_aggregate_values(rows, source, window.func))

    return pd.Series([values[label] for label in frame.index], index=frame.index)


def apply_windows(frame, windows):
    """
    Add one column per window definition, in definition order.
    """
    if not windows:
        return frame
    result = frame.copy()
    for name, window in windows.items():
        logger.info(f"Computing window '{name}' ({window.func}) over {len(result)} rows")
        result[name] = compute_window(result, window)
    return result
