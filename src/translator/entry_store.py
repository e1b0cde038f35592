"""Excel localization file reading and writing."""

from typing import List

import pandas as pd

from config.logging_config import get_logger
from translator.entries import Entry
from translator.exceptions import TranslationError

logger = get_logger(__name__)


class EntryStore:
    """Reads and writes two-column (key, text) localization workbooks."""

    def __init__(self, sheet_name: str = "Localization"):
        self.sheet_name = sheet_name

    def read_entries(self, file_path: str) -> List[Entry]:
        """
        Read entries from the first sheet of an Excel file.

        Args:
            file_path: Path to the Excel file

        Returns:
            Entries in row order; rows with fewer than two columns are skipped
        """
        try:
            df = pd.read_excel(
                file_path, sheet_name=0, header=None, dtype=str, engine="openpyxl"
            )
        except Exception as e:
            raise TranslationError(f"读取Excel文件失败: {str(e)}", code="entry_read_failed")

        if df.shape[1] < 2:
            logger.warning(f"{file_path} has fewer than two columns, no entries loaded")
            return []

        df = df.fillna("")
        entries = [
            Entry(key=str(row[0]), source_text=str(row[1]))
            for row in df.itertuples(index=False)
        ]
        logger.info(f"Loaded {len(entries)} entries from {file_path}")
        return entries

    def entries_to_dataframe(self, entries: List[Entry]) -> pd.DataFrame:
        """Key column plus translation, or source text when not translated."""
        return pd.DataFrame(
            [
                [entry.key, entry.translation or entry.source_text]
                for entry in entries
            ],
            columns=["key", "text"],
        )

    def write_entries(self, entries: List[Entry], output_path: str) -> str:
        """
        Write entries to an Excel file.

        Args:
            entries: Entries to write
            output_path: Output file path

        Returns:
            Path to the created file
        """
        try:
            df = self.entries_to_dataframe(entries)
            with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
                df.to_excel(writer, sheet_name=self.sheet_name, index=False, header=False)
                worksheet = writer.sheets[self.sheet_name]
                for column in worksheet.columns:
                    max_length = 0
                    column_letter = None
                    for cell in column:
                        if cell.value:
                            max_length = max(max_length, len(str(cell.value)))
                        if column_letter is None:
                            column_letter = cell.column_letter
                    if column_letter:
                        worksheet.column_dimensions[column_letter].width = min(
                            max_length + 2, 80
                        )
        except Exception as e:
            raise TranslationError(f"写入Excel文件失败: {str(e)}", code="entry_write_failed")

        logger.info(f"Saved {len(entries)} entries to {output_path}")
        return output_path
