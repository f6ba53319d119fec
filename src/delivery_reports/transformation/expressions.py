"""
Column expressions used by report definitions.

Expressions are small trees evaluated against a DataFrame. They support
comparisons, boolean logic, arithmetic with null-safe division, calendar
features and case-style labelling::

    (col('total_amount') > param('min_spent')) & col('city').isin(['Delhi'])
    when(col('minutes') < 15, '5 star').when(col('minutes') <= 20, '4 star').otherwise('3 star')
"""
import operator

import numpy as np
import pandas as pd

from delivery_reports.exceptions import SchemaMismatchError, SpecificationError
from delivery_reports.transformation import time_buckets


def _broadcast(value, frame):
    if isinstance(value, pd.Series):
        return value
    return pd.Series([value] * len(frame), index=frame.index, dtype=object).infer_objects()


def _as_mask(value, frame):
    """Turn a predicate result into a boolean Series; nulls count as false."""
    mask = _broadcast(value, frame)
    return mask.fillna(False).astype(bool)


def to_expr(value):
    if isinstance(value, Expr):
        return value
    return Literal(value)


class Expr:
    """Base class of all column expressions."""

    def evaluate(self, frame, context):
        raise NotImplementedError

    def columns(self):
        """Names of the input columns this expression reads."""
        return set()

    # comparisons
    def __eq__(self, other):
        return BinaryOp('==', operator.eq, self, other)

    def __ne__(self, other):
        return BinaryOp('!=', operator.ne, self, other)

    def __lt__(self, other):
        return BinaryOp('<', operator.lt, self, other)

    def __le__(self, other):
        return BinaryOp('<=', operator.le, self, other)

    def __gt__(self, other):
        return BinaryOp('>', operator.gt, self, other)

    def __ge__(self, other):
        return BinaryOp('>=', operator.ge, self, other)

    __hash__ = None

    # boolean logic
    def __and__(self, other):
        return BooleanOp('&', self, other)

    def __or__(self, other):
        return BooleanOp('|', self, other)

    def __invert__(self):
        return Not(self)

    # arithmetic
    def __add__(self, other):
        return BinaryOp('+', operator.add, self, other)

    def __radd__(self, other):
        return BinaryOp('+', operator.add, other, self)

    def __sub__(self, other):
        return BinaryOp('-', operator.sub, self, other)

    def __rsub__(self, other):
        return BinaryOp('-', operator.sub, other, self)

    def __mul__(self, other):
        return BinaryOp('*', operator.mul, self, other)

    def __rmul__(self, other):
        return BinaryOp('*', operator.mul, other, self)

    def __truediv__(self, other):
        return Divide(self, other)

    def __rtruediv__(self, other):
        return Divide(other, self)

    # predicates
    def is_null(self):
        return Function('is_null', lambda s: s.isnull(), self)

    def not_null(self):
        return Function('not_null', lambda s: s.notnull(), self)

    def isin(self, values):
        values = list(values)
        return Function('isin', lambda s: s.isin(values), self)

    # numeric
    def round(self, digits=0):
        return Function(f'round_{digits}', lambda s: s.astype(float).round(digits), self)

    # calendar
    def year(self):
        return Function('year', time_buckets.year, self)

    def month(self):
        return Function('month', time_buckets.month, self)

    def year_month(self):
        return Function('year_month', time_buckets.year_month, self)

    def day_name(self):
        return Function('day_name', time_buckets.day_name, self)

    def hour(self):
        return Function('hour', time_buckets.hour, self)

    def time_slot(self, width=2):
        return Function(f'time_slot_{width}', lambda s: time_buckets.time_slot(s, width), self)

    def season(self):
        return Function('season', time_buckets.season, self)

    def months_before(self, months):
        return MonthsBefore(self, months)


class Column(Expr):

    def __init__(self, name):
        self.name = name

    def evaluate(self, frame, context):
        if self.name not in frame.columns:
            raise SchemaMismatchError(
                f"Unknown column '{self.name}'; available: {list(frame.columns)}",
                column=self.name
            )
        return frame[self.name]

    def columns(self):
        return {self.name}

    def __repr__(self):
        return f"col({self.name!r})"


class Literal(Expr):

    def __init__(self, value):
        self.value = value

    def evaluate(self, frame, context):
        return self.value

    def __repr__(self):
        return f"lit({self.value!r})"


class Param(Expr):
    """Value supplied at evaluation time, e.g. as_of or a report threshold."""

    def __init__(self, name):
        self.name = name

    def evaluate(self, frame, context):
        return context.param(self.name)

    def __repr__(self):
        return f"param({self.name!r})"


class BinaryOp(Expr):

    def __init__(self, symbol, func, left, right):
        self.symbol = symbol
        self.func = func
        self.left = to_expr(left)
        self.right = to_expr(right)

    def evaluate(self, frame, context):
        left = self.left.evaluate(frame, context)
        right = self.right.evaluate(frame, context)
        try:
            return self.func(left, right)
        except TypeError as e:
            raise SchemaMismatchError(
                f"Cannot apply '{self.symbol}' to {self.left!r} and {self.right!r}: {e}"
            ) from e

    def columns(self):
        return self.left.columns() | self.right.columns()

    def __repr__(self):
        return f"({self.left!r} {self.symbol} {self.right!r})"


class Divide(BinaryOp):
    """Division that yields null instead of failing on a zero or null denominator."""

    def __init__(self, left, right):
        super().__init__('/', operator.truediv, left, right)

    def evaluate(self, frame, context):
        numerator = self.left.evaluate(frame, context)
        denominator = self.right.evaluate(frame, context)
        if not isinstance(numerator, pd.Series) and not isinstance(denominator, pd.Series):
            if denominator is None or numerator is None or pd.isna(denominator) or denominator == 0:
                return None
            return numerator / denominator
        try:
            numerator = pd.to_numeric(_broadcast(numerator, frame)).astype(float)
            denominator = pd.to_numeric(_broadcast(denominator, frame)).astype(float)
        except (TypeError, ValueError) as e:
            raise SchemaMismatchError(f"Cannot divide {self.left!r} by {self.right!r}: {e}") from e
        return numerator / denominator.where(denominator != 0, np.nan)


class BooleanOp(Expr):

    def __init__(self, symbol, left, right):
        self.symbol = symbol
        self.left = to_expr(left)
        self.right = to_expr(right)

    def evaluate(self, frame, context):
        left = _as_mask(self.left.evaluate(frame, context), frame)
        right = _as_mask(self.right.evaluate(frame, context), frame)
        if self.symbol == '&':
            return left & right
        return left | right

    def columns(self):
        return self.left.columns() | self.right.columns()

    def __repr__(self):
        return f"({self.left!r} {self.symbol} {self.right!r})"


class Not(Expr):

    def __init__(self, operand):
        self.operand = to_expr(operand)

    def evaluate(self, frame, context):
        return ~_as_mask(self.operand.evaluate(frame, context), frame)

    def columns(self):
        return self.operand.columns()

    def __repr__(self):
        return f"~{self.operand!r}"


class Function(Expr):
    """Series-to-Series function applied to a single operand."""

    def __init__(self, name, func, operand):
        self.name = name
        self.func = func
        self.operand = to_expr(operand)

    def evaluate(self, frame, context):
        value = _broadcast(self.operand.evaluate(frame, context), frame)
        try:
            return self.func(value)
        except (AttributeError, TypeError, ValueError) as e:
            raise SchemaMismatchError(f"Cannot apply {self.name} to {self.operand!r}: {e}") from e

    def columns(self):
        return self.operand.columns()

    def __repr__(self):
        return f"{self.name}({self.operand!r})"


class MonthsBefore(Expr):

    def __init__(self, operand, months):
        self.operand = to_expr(operand)
        self.months = months

    def evaluate(self, frame, context):
        value = self.operand.evaluate(frame, context)
        if value is None:
            raise SpecificationError(f"{self.operand!r} is not set; cannot subtract {self.months} months")
        if isinstance(value, pd.Series):
            return pd.to_datetime(value) - pd.DateOffset(months=self.months)
        return pd.Timestamp(value) - pd.DateOffset(months=self.months)

    def columns(self):
        return self.operand.columns()

    def __repr__(self):
        return f"months_before({self.operand!r}, {self.months})"


class MinutesBetween(Expr):

    def __init__(self, start, end, wrap_midnight=True):
        self.start = to_expr(start)
        self.end = to_expr(end)
        self.wrap_midnight = wrap_midnight

    def evaluate(self, frame, context):
        start = _broadcast(self.start.evaluate(frame, context), frame)
        end = _broadcast(self.end.evaluate(frame, context), frame)
        try:
            return time_buckets.minutes_between(start, end, self.wrap_midnight)
        except (AttributeError, TypeError) as e:
            raise SchemaMismatchError(
                f"Cannot compute minutes between {self.start!r} and {self.end!r}: {e}"
            ) from e

    def columns(self):
        return self.start.columns() | self.end.columns()


class When(Expr):
    """Case expression; the first matching condition wins."""

    def __init__(self, cases, default=None):
        self.cases = cases
        self.default = to_expr(default)

    def when(self, condition, value):
        return When(self.cases + [(to_expr(condition), to_expr(value))], self.default)

    def otherwise(self, value):
        return When(self.cases, value)

    def evaluate(self, frame, context):
        result = _broadcast(self.default.evaluate(frame, context), frame).astype(object)
        for condition, value in reversed(self.cases):
            mask = _as_mask(condition.evaluate(frame, context), frame)
            value = _broadcast(value.evaluate(frame, context), frame).astype(object)
            result = value.where(mask, result)
        return result.infer_objects()

    def columns(self):
        names = self.default.columns()
        for condition, value in self.cases:
            names |= condition.columns() | value.columns()
        return names


def col(name):
    return Column(name)


def lit(value):
    return Literal(value)


def param(name):
    return Param(name)


def when(condition, value):
    return When([(to_expr(condition), to_expr(value))])


def minutes_between(start, end, wrap_midnight=True):
    return MinutesBetween(start, end, wrap_midnight)
