import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .errors import SpreadsheetReadError

logger = logging.getLogger(__name__)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_as_string(value: Any) -> Optional[str]:
    """
    Coerce a cell to text.

    Whole-number floats lose their trailing ``.0`` so numeric codes read back
    the way they were typed into the spreadsheet. Empty cells return None.
    """
    if _is_missing(value):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, np.bool_)):
        return str(bool(value))
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        if float(value).is_integer():
            return str(int(value))
        return str(float(value))
    return str(value)


def cell_as_number(value: Any) -> Optional[Union[int, float]]:
    """Coerce a cell to a number, or None if it does not hold one."""
    if _is_missing(value) or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return int(value) if float(value).is_integer() else float(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else number
    return None


class Sheet:
    """One worksheet; the first row is conventionally the header row."""

    def __init__(self, name: str, frame: pd.DataFrame):
        self.name = name
        self.frame = frame

    def header(self) -> List[Optional[str]]:
        if self.frame.empty:
            return []
        return [cell_as_string(value) for value in self.frame.iloc[0].tolist()]

    def rows(self) -> Iterator[Tuple[int, List[Any]]]:
        """
        Yield data rows after the header.

        Returns:
            Iterator of (spreadsheet row number, cell values). Row numbers are
            1-based, so the first data row is row 2.
        """
        for offset, values in enumerate(
            self.frame.iloc[1:].itertuples(index=False, name=None)
        ):
            yield offset + 2, list(values)

    def __len__(self) -> int:
        return max(len(self.frame) - 1, 0)


class Workbook:
    """Ordered collection of sheets read from one spreadsheet file."""

    def __init__(self, path: Path, sheets: Dict[str, pd.DataFrame]):
        self.path = Path(path)
        self._sheets = sheets

    @property
    def sheet_names(self) -> List[str]:
        return list(self._sheets.keys())

    def sheet(self, name: str) -> Sheet:
        return Sheet(name, self._sheets[name])

    def first_sheet(self) -> Sheet:
        if not self._sheets:
            raise SpreadsheetReadError(self.path.name, "workbook has no sheets")
        return self.sheet(self.sheet_names[0])


def open_workbook(path: Union[str, Path], nrows: Optional[int] = None) -> Workbook:
    """
    Read every sheet of an Excel workbook without interpreting a header row.

    Args:
        path: Path to an .xlsx file
        nrows: Limit on rows read per sheet (header included), e.g. 1 to
            read only the header row

    Returns:
        Workbook exposing the sheets in file order

    Raises:
        SpreadsheetReadError: if the file cannot be opened or parsed
    """
    path = Path(path)
    logger.debug(f"Reading workbook: {path}")
    try:
        sheets = pd.read_excel(
            path,
            sheet_name=None,
            header=None,
            dtype=object,
            nrows=nrows,
            engine="openpyxl",
        )
    except Exception as e:
        raise SpreadsheetReadError(path.name, str(e)) from e
    return Workbook(path, sheets)
