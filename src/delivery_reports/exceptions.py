"""
Error types raised while evaluating reports.
"""


class ReportError(Exception):
    """Base class for report evaluation failures."""

    def __init__(self, message, report_id=None, table=None, column=None):
        super().__init__(message)
        self.message = message
        self.report_id = report_id
        self.table = table
        self.column = column

    def with_report(self, report_id):
        """Attach the report identifier if it is not already set."""
        if self.report_id is None:
            self.report_id = report_id
        return self

    def __str__(self):
        context = []
        if self.report_id is not None:
            context.append(f"report={self.report_id}")
        if self.table is not None:
            context.append(f"table={self.table}")
        if self.column is not None:
            context.append(f"column={self.column}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class SchemaMismatchError(ReportError):
    """Unknown table or column, or a value type the operation cannot use."""


class SpecificationError(ReportError):
    """Malformed report definition or invalid report parameter."""


class DataError(ReportError):
    """Snapshot data violates a semantic constraint, e.g. a null order_date."""
