"""Export generators for CSV and Excel formats."""

from __future__ import annotations

import io
import logging
from typing import Any, Optional

import pandas as pd
from openpyxl.styles import Font

logger = logging.getLogger(__name__)

MAX_COLUMN_WIDTH = 50


def _frame(rows: list[dict[str, Any]], columns: Optional[list[str]]) -> pd.DataFrame:
    # Explicit columns keep the header row even when there is no data
    return pd.DataFrame(rows, columns=columns)


class CSVGenerator:
    """Generate CSV exports from statistics rows."""

    @staticmethod
    def generate(
        rows: list[dict[str, Any]], columns: Optional[list[str]] = None
    ) -> bytes:
        """
        Generate CSV file content.

        Args:
            rows: List of row dictionaries
            columns: Column order; defaults to the keys of the first row

        Returns:
            CSV file content as bytes
        """
        df = _frame(rows, columns)

        buffer = io.BytesIO()
        df.to_csv(buffer, index=False, encoding="utf-8")
        buffer.seek(0)

        return buffer.read()


class ExcelGenerator:
    """Generate Excel exports from statistics rows."""

    @staticmethod
    def generate(
        rows: list[dict[str, Any]],
        columns: Optional[list[str]] = None,
        sheet_name: str = "Data",
    ) -> bytes:
        """
        Generate Excel file content with a bold header and fitted columns.

        Args:
            rows: List of row dictionaries
            columns: Column order; defaults to the keys of the first row
            sheet_name: Sheet name

        Returns:
            Excel file content as bytes
        """
        df = _frame(rows, columns)

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet_name, index=False)

            worksheet = writer.sheets[sheet_name]
            for cell in worksheet[1]:
                cell.font = Font(bold=True)

            for column in worksheet.columns:
                column_letter = column[0].column_letter
                max_length = max(
                    (len(str(cell.value)) for cell in column if cell.value is not None),
                    default=0,
                )
                worksheet.column_dimensions[column_letter].width = min(
                    max_length + 2, MAX_COLUMN_WIDTH
                )

        buffer.seek(0)
        return buffer.read()
