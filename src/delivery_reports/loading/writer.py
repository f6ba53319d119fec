"""
Output of report results: console rendering and CSV export.
"""
import logging
import os
import traceback

logger = logging.getLogger(__name__)


def format_result(result, max_rows=None):
    """
    Render a report result as a plain-text table.
    """
    frame = result.to_frame()
    if len(frame) == 0:
        return "(no rows)"
    if max_rows is not None:
        frame = frame.head(max_rows)
    return frame.to_string(index=False, na_rep='NULL')


def export_results_to_csv(results, output_dir):
    """
    Export report results to CSV files.

    Args:
        results (dict): report name to ReportResult
        output_dir (str): target directory

    Returns:
        dict: report name to written file path
    """
    try:
        # Create output directory if it doesn't exist
        if not os.path.exists(output_dir):
            os.makedirs(output_dir)

        exported_files = {}

        # Empty results still get a header-only file
        for name, result in results.items():
            file_path = os.path.join(output_dir, f"{name}.csv")
            result.to_frame().to_csv(file_path, index=False)
            exported_files[name] = file_path
            logger.info(f"Exported {len(result)} rows to {file_path}")

        return exported_files
    except Exception as e:
        logger.error(f"Error exporting results to CSV: {str(e)}")
        logger.error(traceback.format_exc())
        raise
