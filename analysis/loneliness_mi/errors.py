"""
Error Taxonomy for the Loneliness Cohort Pipeline
==================================================

Every condition here is raised at the point of detection. There is no
best-effort mode: a malformed intermediate table must not reach the
report or the imputation ensemble.
"""


class MissingDataError(Exception):
    """Base class for all pipeline errors"""


class ColumnNotFound(MissingDataError, KeyError):
    """A requested column is absent from the table"""

    def __init__(self, column, available=None):
        self.column = column
        self.available = list(available) if available is not None else []
        message = f"Column not found: {column!r}"
        if self.available:
            preview = ', '.join(map(str, self.available[:10]))
            if len(self.available) > 10:
                preview += f", ... ({len(self.available) - 10} more)"
            message += f" (available: {preview})"
        super().__init__(message)

    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return self.args[0]


class AmbiguousJoin(MissingDataError):
    """Duplicate keys in an auxiliary table would fan out a left join"""

    def __init__(self, key, duplicates, position=None):
        self.key = key
        self.duplicates = list(duplicates)
        self.position = position
        where = f"auxiliary table {position}" if position is not None else "auxiliary table"
        preview = ', '.join(map(str, self.duplicates[:5]))
        if len(self.duplicates) > 5:
            preview += ', ...'
        super().__init__(
            f"{where} has {len(self.duplicates)} duplicated value(s) "
            f"in join key {key!r}: {preview}"
        )


class EmptyQualifyingGroup(MissingDataError):
    """
    No row meets the qualifying criteria

    `groups` names the persons without a qualifying observation; it is
    empty when the table as a whole has none (no collection start).
    """

    def __init__(self, groups, message=None):
        self.groups = list(groups)
        if message is None:
            preview = ', '.join(map(str, self.groups[:5]))
            if len(self.groups) > 5:
                preview += ', ...'
            message = f"{len(self.groups)} group(s) without a qualifying observation: {preview}"
        super().__init__(message)


class ImputationNonconvergence(MissingDataError):
    """Imputed columns still contain missing values after imputation"""

    def __init__(self, columns, run=None):
        self.columns = list(columns)
        self.run = run
        where = f" in imputation {run}" if run is not None else ""
        super().__init__(
            f"Imputation left missing values{where} for: {', '.join(map(str, self.columns))}. "
            f"Drop these columns upstream (see columns.IMPUTATION_DROP)."
        )


def check_columns(table, columns):
    """Raise ColumnNotFound for the first name in `columns` absent from `table`"""
    for col in columns:
        if col not in table.columns:
            raise ColumnNotFound(col, table.columns)
