"""
Report catalog: numbered, named report definitions and their parameters.
"""
import logging
from dataclasses import dataclass

import pandas as pd

from delivery_reports.evaluator import ReportResult, evaluate
from delivery_reports.exceptions import SchemaMismatchError, SpecificationError
from delivery_reports.schema import DEFAULT_SCHEMA

logger = logging.getLogger(__name__)

PARAMETER_KINDS = ('int', 'float', 'str', 'bool', 'date')
TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off')


def cast_columns(frame, columns, report_id=None):
    """
    Cast report output to its declared column kinds.

    Integer columns holding nulls use the nullable Int64 dtype, so a rider id
    stays an integer after a left join.
    """
    cast = frame.copy()
    for name, kind in columns:
        series = cast[name]
        try:
            if kind == 'int' and not pd.api.types.is_integer_dtype(series):
                cast[name] = pd.to_numeric(series).astype('Int64')
            elif kind == 'float' and not pd.api.types.is_float_dtype(series):
                cast[name] = pd.to_numeric(series).astype('float64')
        except (TypeError, ValueError) as e:
            raise SchemaMismatchError(
                f"Report column cannot be read as {kind}: {e}",
                report_id=report_id,
                column=name
            ) from e
    return cast


@dataclass(frozen=True)
class ReportParameter:
    """
    A named report input.

    default may be a value or a callable receiving the evaluation instant,
    for defaults such as "the year before as_of".
    """
    name: str
    kind: str
    default: object = None
    help: str = ''
    minimum: float = None

    def default_for(self, as_of):
        if callable(self.default):
            if as_of is None:
                raise SpecificationError(f"Parameter '{self.name}' defaults from as_of, which is not set")
            return self.default(pd.Timestamp(as_of))
        return self.default

    def coerce(self, value):
        """Convert a raw value (often a command-line string) to the parameter kind."""
        if value is None:
            return None
        try:
            if self.kind == 'int':
                return int(value)
            if self.kind == 'float':
                return float(value)
            if self.kind == 'bool':
                if isinstance(value, bool):
                    return value
                text = str(value).strip().lower()
                if text in TRUE_VALUES:
                    return True
                if text in FALSE_VALUES:
                    return False
                raise ValueError(f"not a boolean: {value!r}")
            if self.kind == 'date':
                return pd.Timestamp(value)
            return str(value)
        except (TypeError, ValueError) as e:
            raise SpecificationError(f"Invalid value for parameter '{self.name}': {e}") from e

    def validate(self, value):
        if value is None:
            raise SpecificationError(f"Parameter '{self.name}' is required")
        if self.minimum is not None and value < self.minimum:
            raise SpecificationError(
                f"Parameter '{self.name}' must be at least {self.minimum}, got {value}"
            )


@dataclass(frozen=True, eq=False)
class ReportDefinition:
    """
    One catalog entry.

    spec and columns are either fixed, or callables receiving the resolved
    parameters when the output shape depends on them.
    """
    number: int
    name: str
    title: str
    spec: object
    columns: object
    parameters: tuple = ()

    def parameter(self, name):
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        raise SpecificationError(f"Unknown parameter '{name}'", report_id=self.name)

    def resolve_parameters(self, params=None, as_of=None):
        """
        Merge supplied parameters over defaults, coercing and validating each.
        """
        params = dict(params or {})
        for name in params:
            self.parameter(name)

        resolved = {}
        for parameter in self.parameters:
            if parameter.name in params:
                value = parameter.coerce(params[parameter.name])
            else:
                value = parameter.coerce(parameter.default_for(as_of))
            parameter.validate(value)
            resolved[parameter.name] = value
        return resolved

    def build_spec(self, resolved):
        return self.spec(resolved) if callable(self.spec) else self.spec

    def declared_columns(self, resolved):
        return self.columns(resolved) if callable(self.columns) else self.columns

    def output_columns(self, resolved):
        return [name for name, _ in self.declared_columns(resolved)]

    def tables(self, params=None, as_of=None):
        return sorted(self.build_spec(self.resolve_parameters(params, as_of)).tables())

    def run(self, tables, as_of=None, params=None, schema=DEFAULT_SCHEMA):
        """
        Evaluate the report, check its output shape and cast each column
        to its declared kind.
        """
        try:
            resolved = self.resolve_parameters(params, as_of)
        except SpecificationError as e:
            raise e.with_report(self.name)
        logger.info(f"Running report {self.number} '{self.name}' with parameters {resolved}")

        result = evaluate(
            self.build_spec(resolved),
            tables,
            as_of=as_of,
            params=resolved,
            schema=schema,
            report_id=self.name
        )

        expected = self.output_columns(resolved)
        if result.columns != expected:
            raise SpecificationError(
                f"Report produced columns {result.columns}, expected {expected}",
                report_id=self.name
            )
        frame = cast_columns(result.frame, self.declared_columns(resolved), self.name)
        return ReportResult(self.name, frame)


class ReportCatalog:
    """Ordered collection of report definitions, addressed by number or name."""

    def __init__(self, definitions):
        self._definitions = sorted(definitions, key=lambda definition: definition.number)
        numbers = [definition.number for definition in self._definitions]
        names = [definition.name for definition in self._definitions]
        if len(set(numbers)) != len(numbers) or len(set(names)) != len(names):
            raise SpecificationError("Report numbers and names must be unique")

    def list(self):
        return list(self._definitions)

    def get(self, key):
        """Look a report up by number (int or digit string) or by name."""
        if isinstance(key, str) and key.strip().isdigit():
            key = int(key)
        for definition in self._definitions:
            if definition.number == key or definition.name == key:
                return definition
        raise SpecificationError(f"Unknown report '{key}'", report_id=key)

    def run(self, key, tables, as_of=None, params=None, schema=DEFAULT_SCHEMA):
        return self.get(key).run(tables, as_of=as_of, params=params, schema=schema)

    def __len__(self):
        return len(self._definitions)

    def __iter__(self):
        return iter(self._definitions)
