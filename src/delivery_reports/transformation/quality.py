"""
Data quality checks for table snapshots.

The checks only report problems; the snapshot is never modified.
"""
import logging
import traceback

import pandas as pd

logger = logging.getLogger(__name__)


def run_data_quality_checks(tables, schema):
    """
    Run a series of data quality checks on the input tables.

    """
    try:
        logger.info("Running data quality checks")

        quality_results = {}

        # Run individual checks
        quality_results['missing_values'] = check_missing_values(tables, schema)
        quality_results['duplicate_keys'] = check_duplicate_keys(tables, schema)
        quality_results['value_ranges'] = check_value_ranges(tables, schema)
        quality_results['referential_integrity'] = check_referential_integrity(tables, schema)

        total_issues = count_issues(quality_results)
        quality_results['total_issues'] = total_issues

        if total_issues > 0:
            logger.warning(f"Found a total of {total_issues} data quality issues")
        else:
            logger.info("All data quality checks passed")

        return quality_results
    except Exception as e:
        logger.error(f"Error running data quality checks: {str(e)}")
        logger.error(traceback.format_exc())
        raise


def count_issues(quality_results):
    """Sum the problem counts across every check."""
    total = 0
    for result in quality_results.get('missing_values', {}).values():
        total += result['total_missing']
    for result in quality_results.get('duplicate_keys', {}).values():
        total += result['duplicate_count']
    for table_results in quality_results.get('value_ranges', {}).values():
        for result in table_results.values():
            total += result.get('invalid_count', 0)
    for result in quality_results.get('referential_integrity', {}).values():
        total += result.get('orphaned_count', 0)
    return total


def check_missing_values(tables, schema):
    """
    Check for missing values in columns the schema declares non-nullable.
    """
    results = {}

    for table_name, df in tables.items():
        table_def = schema.table(table_name)
        required = [
            column.name for column in table_def.columns
            if not column.nullable and column.name in df.columns
        ]
        missing_by_column = df[required].isnull().sum()
        total_missing = int(missing_by_column.sum())

        # Only include columns with missing values
        missing_columns = {
            column: int(count) for column, count in missing_by_column.items() if count > 0
        }

        results[table_name] = {
            'total_missing': total_missing,
            'missing_columns': missing_columns
        }

        if total_missing > 0:
            logger.warning(f"Table '{table_name}' has {total_missing} missing values")
            for column, count in missing_columns.items():
                logger.warning(f"  - Column '{column}': {count} missing values")

    return results


def check_duplicate_keys(tables, schema):
    """
    Check for duplicate primary and unique keys in each table.
    """
    results = {}

    for table_name, df in tables.items():
        table_def = schema.table(table_name)
        for key_columns in (table_def.primary_key,) + tuple(table_def.unique):
            key_columns = list(key_columns)
            key_name = f"{table_name}({', '.join(key_columns)})"

            # Skip if not all key columns exist
            if not all(column in df.columns for column in key_columns):
                results[key_name] = {
                    'duplicate_count': 0,
                    'error': f"Not all key columns {key_columns} exist in table"
                }
                continue

            keyed = df.dropna(subset=key_columns)
            duplicates = keyed[keyed.duplicated(subset=key_columns, keep=False)]
            duplicate_count = len(duplicates)

            results[key_name] = {
                'duplicate_count': duplicate_count,
                'duplicate_keys': duplicates[key_columns].head(10).values.tolist() if duplicate_count > 0 else []
            }

            if duplicate_count > 0:
                logger.warning(f"Table '{table_name}' has {duplicate_count} rows with duplicate {key_columns}")

    return results


def check_value_ranges(tables, schema):
    """
    Check for values below the minimum declared in the schema.
    """
    results = {}

    for table_name, df in tables.items():
        table_results = {}

        for column in schema.table(table_name).columns:
            if column.minimum is None:
                continue
            if column.name not in df.columns:
                table_results[column.name] = {'error': f"Column '{column.name}' not found in table"}
                continue

            values = pd.to_numeric(df[column.name], errors='coerce')
            invalid_mask = values < column.minimum
            invalid_count = int(invalid_mask.sum())

            table_results[column.name] = {
                'invalid_count': invalid_count,
                'invalid_examples': df.loc[invalid_mask, column.name].head(5).tolist() if invalid_count > 0 else []
            }

            if invalid_count > 0:
                logger.warning(
                    f"Table '{table_name}' has {invalid_count} values below {column.minimum} in column '{column.name}'"
                )

        results[table_name] = table_results

    return results


def check_referential_integrity(tables, schema):
    """
    Check referential integrity between tables.
    """
    results = {}

    for fk in schema.foreign_keys:
        relationship = str(fk)

        # Check if all required tables and columns exist
        if (fk.table in tables and fk.ref_table in tables and
                fk.column in tables[fk.table].columns and
                fk.ref_column in tables[fk.ref_table].columns):

            # Get all foreign key values; a null reference is not orphaned
            fk_values = set(tables[fk.table][fk.column].dropna().unique())

            # Get all reference key values
            ref_values = set(tables[fk.ref_table][fk.ref_column].dropna().unique())

            # Find orphaned values (foreign keys without matching reference keys)
            orphaned = sorted(fk_values - ref_values)
            orphaned_count = len(orphaned)

            results[relationship] = {
                'orphaned_count': orphaned_count,
                'orphaned_examples': orphaned[:10] if orphaned_count > 0 else []
            }

            if orphaned_count > 0:
                logger.warning(
                    f"Referential integrity issue: {orphaned_count} values in "
                    f"{fk.table}.{fk.column} have no matching {fk.ref_table}.{fk.ref_column}"
                )
        elif fk.table in tables and fk.ref_table in tables:
            results[relationship] = {'error': 'Missing table or column'}

    return results
