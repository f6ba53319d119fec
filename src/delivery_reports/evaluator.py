"""
Report evaluator: runs a declarative report spec against table snapshots.

Stages run in a fixed order: scan, join, derive, where, group and
aggregate, window, having, project, sort, limit.
"""
import logging
import traceback
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from delivery_reports.exceptions import ReportError, SchemaMismatchError, SpecificationError
from delivery_reports.schema import DEFAULT_SCHEMA, prepare_tables
from delivery_reports.transformation.calculations import aggregate
from delivery_reports.transformation.expressions import _as_mask, _broadcast, col, to_expr
from delivery_reports.transformation.joins import join_frames
from delivery_reports.transformation.windows import apply_windows, as_sort_keys, sort_frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ReportSpec:
    """
    Declarative definition of one result set.

    source and join sources are table names or nested ReportSpecs.
    derive, aggregates, windows and select are ordered mappings of output
    column name to expression, Agg or Window. select may also list plain
    column names. order_by holds column names or SortKeys.
    """
    source: object
    joins: tuple = ()
    derive: dict = field(default_factory=dict)
    where: object = None
    group_by: tuple = ()
    aggregates: dict = field(default_factory=dict)
    windows: dict = field(default_factory=dict)
    having: object = None
    select: object = ()
    order_by: tuple = ()
    limit: int = None

    def tables(self):
        """Names of every table this spec scans, including nested specs."""
        names = set()
        for source in [self.source] + [join.source for join in self.joins]:
            if isinstance(source, ReportSpec):
                names |= source.tables()
            else:
                names.add(source)
        return names

    def projection(self):
        """Output columns as (name, expression) pairs."""
        if isinstance(self.select, dict):
            return [(name, to_expr(expr)) for name, expr in self.select.items()]
        return [(name, col(name)) for name in self.select]

    @property
    def is_grouped(self):
        return bool(self.group_by) or bool(self.aggregates)


@dataclass
class EvaluationContext:
    as_of: object = None
    params: dict = field(default_factory=dict)
    report_id: object = None

    def param(self, name):
        if name == 'as_of':
            if self.as_of is None:
                raise SpecificationError("Evaluation instant 'as_of' is required", report_id=self.report_id)
            return self.as_of
        if name not in self.params:
            raise SpecificationError(f"Missing report parameter '{name}'", report_id=self.report_id)
        return self.params[name]


def _to_python(value):
    if value is None:
        return None
    if isinstance(value, (pd.Timestamp, pd.Timedelta)) and pd.isna(value):
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if isinstance(value, np.generic):
        value = value.item()
        if isinstance(value, float) and np.isnan(value):
            return None
        return value
    if value is pd.NaT or value is pd.NA:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, pd.Timedelta):
        return value.to_pytimedelta()
    return value


class ReportResult:
    """Ordered rows of one report evaluation."""

    def __init__(self, report_id, frame):
        self.report_id = report_id
        self.frame = frame.reset_index(drop=True)
        self.columns = list(self.frame.columns)
        self.rows = [
            tuple(_to_python(value) for value in row)
            for row in self.frame.itertuples(index=False, name=None)
        ]

    def records(self):
        return [dict(zip(self.columns, row)) for row in self.rows]

    def to_frame(self):
        return self.frame.copy()

    def __len__(self):
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def __repr__(self):
        return f"ReportResult(report_id={self.report_id!r}, columns={self.columns}, rows={len(self.rows)})"


def _filter(frame, predicate, context, stage):
    before = len(frame)
    mask = _as_mask(to_expr(predicate).evaluate(frame, context), frame)
    filtered = frame[mask.values]
    logger.info(f"{stage} kept {len(filtered)} of {before} rows")
    return filtered


def _project(frame, spec, context):
    projection = spec.projection()
    if not projection:
        return frame
    projected = pd.DataFrame(index=frame.index)
    for name, expr in projection:
        projected[name] = _broadcast(expr.evaluate(frame, context), frame)
    return projected


def run_spec(spec, tables, context):
    """
    Evaluate a spec against prepared tables and return a DataFrame.
    """
    frame = _scan(spec.source, tables, context)

    for join in spec.joins:
        right = _scan(join.source, tables, context)
        frame = join_frames(frame, right, join)

    if spec.derive:
        frame = frame.copy()
        for name, expr in spec.derive.items():
            frame[name] = _broadcast(to_expr(expr).evaluate(frame, context), frame)

    if spec.where is not None:
        frame = _filter(frame, spec.where, context, 'Filter')

    if spec.is_grouped:
        frame = aggregate(frame, spec.group_by, spec.aggregates, context)

    frame = apply_windows(frame, spec.windows)

    if spec.having is not None:
        frame = _filter(frame, spec.having, context, 'Post-filter')

    frame = _project(frame, spec, context)

    if spec.order_by:
        keys = as_sort_keys(spec.order_by)
        for key in keys:
            if key.column not in frame.columns:
                raise SchemaMismatchError(
                    f"Unknown sort column '{key.column}'; available: {list(frame.columns)}",
                    column=key.column
                )
        sorted_columns = {key.column for key in keys}
        tie_breakers = [name for name in frame.columns if name not in sorted_columns]
        frame = sort_frame(frame, keys, tie_breakers)

    if spec.limit is not None:
        if spec.limit < 0:
            raise SpecificationError(f"Limit must not be negative, got {spec.limit}")
        frame = frame.head(spec.limit)

    return frame.reset_index(drop=True)


def _scan(source, tables, context):
    if isinstance(source, ReportSpec):
        return run_spec(source, tables, context)
    if source not in tables:
        raise SchemaMismatchError(f"Unknown table '{source}'", table=source)
    return tables[source]


def evaluate(spec, tables, as_of=None, params=None, schema=DEFAULT_SCHEMA, report_id=None):
    """
    Evaluate a report spec against a snapshot of tables.

    Args:
        spec: ReportSpec to evaluate
        tables: mapping of table name to DataFrame; never modified
        as_of: evaluation instant for relative-date filters
        params: report parameters referenced through param()
        schema: Schema the snapshot conforms to
        report_id: identifier attached to errors and log lines

    Returns:
        ReportResult: ordered result rows
    """
    context = EvaluationContext(
        as_of=pd.Timestamp(as_of) if as_of is not None else None,
        params=dict(params or {}),
        report_id=report_id
    )
    try:
        logger.info(f"Evaluating report {report_id if report_id is not None else '<adhoc>'}")
        prepared = prepare_tables(schema, tables, sorted(spec.tables()))
        frame = run_spec(spec, prepared, context)
        logger.info(f"Report {report_id} produced {len(frame)} rows")
        return ReportResult(report_id, frame)
    except ReportError as e:
        e.with_report(report_id)
        logger.error(f"Report evaluation failed: {e}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error evaluating report {report_id}: {str(e)}")
        logger.error(traceback.format_exc())
        raise
