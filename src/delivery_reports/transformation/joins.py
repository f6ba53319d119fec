"""
Equi-joins between table scans and intermediate results.
"""
import logging
from dataclasses import dataclass

import pandas as pd

from delivery_reports.exceptions import SchemaMismatchError, SpecificationError

logger = logging.getLogger(__name__)

JOIN_TYPES = ('inner', 'left')


@dataclass(frozen=True, eq=False)
class Join:
    """
    Join the current rows with a table (by name) or a nested report spec.

    on is a column name, or a sequence of column names or (left, right)
    pairs. Right-hand non-key columns whose names are already taken are
    renamed to '<name>_<alias>'.
    """
    source: object
    on: object
    how: str = 'inner'
    alias: str = None

    def key_pairs(self):
        on = [self.on] if isinstance(self.on, str) else list(self.on)
        pairs = []
        for key in on:
            if isinstance(key, str):
                pairs.append((key, key))
            else:
                left, right = key
                pairs.append((left, right))
        return pairs

    @property
    def name(self):
        if self.alias:
            return self.alias
        if isinstance(self.source, str):
            return self.source
        return 'subquery'


def _key_kind(series):
    if pd.api.types.is_bool_dtype(series):
        return 'bool'
    if pd.api.types.is_numeric_dtype(series):
        return 'numeric'
    if pd.api.types.is_datetime64_any_dtype(series):
        return 'datetime'
    if pd.api.types.is_timedelta64_dtype(series):
        return 'timedelta'
    return 'object'


def _check_keys(left, right, pairs, join_name):
    for left_key, right_key in pairs:
        if left_key not in left.columns:
            raise SchemaMismatchError(
                f"Unknown join key '{left_key}' on left side of join with {join_name}",
                column=left_key
            )
        if right_key not in right.columns:
            raise SchemaMismatchError(
                f"Unknown join key '{right_key}' in {join_name}",
                table=join_name,
                column=right_key
            )
        left_kind = _key_kind(left[left_key])
        right_kind = _key_kind(right[right_key])
        # an all-null column carries no type information
        if left[left_key].isnull().all() or right[right_key].isnull().all():
            continue
        if left_kind != right_kind:
            raise SchemaMismatchError(
                f"Join key type mismatch: {left_key} is {left_kind}, {right_key} is {right_kind}",
                table=join_name,
                column=right_key
            )


def join_frames(left, right, join):
    """
    Join two DataFrames following the Join definition.

    Left joins keep every left row; right-hand columns are null where no
    match exists. Row order follows the left input.
    """
    if join.how not in JOIN_TYPES:
        raise SpecificationError(f"Unsupported join type '{join.how}'")

    pairs = join.key_pairs()
    if not pairs:
        raise SpecificationError(f"Join with {join.name} has no key columns")
    _check_keys(left, right, pairs, join.name)

    logger.info(f"Joining {len(left)} rows with {join.name} ({len(right)} rows, how={join.how})")

    # keys with the same name on both sides collapse into one column
    shared_keys = {left_key for left_key, right_key in pairs if left_key == right_key}
    renames = {
        column: f"{column}_{join.name}"
        for column in right.columns
        if column in left.columns and column not in shared_keys
    }
    if renames:
        logger.debug(f"Renaming clashing columns from {join.name}: {renames}")
    right = right.rename(columns=renames)

    joined = pd.merge(
        left,
        right,
        left_on=[left_key for left_key, _ in pairs],
        right_on=[renames.get(right_key, right_key) for _, right_key in pairs],
        how=join.how,
        sort=False,
        indicator=True
    )

    unmatched = int((joined['_merge'] == 'left_only').sum())
    if unmatched > 0:
        logger.info(f"Found {unmatched} rows with no match in {join.name}")
    joined = joined.drop(columns=['_merge'])

    logger.info(f"Joined data has {len(joined)} rows")
    return joined.reset_index(drop=True)
