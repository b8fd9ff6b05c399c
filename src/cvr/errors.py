"""
Exception types raised while discovering, extracting and storing ballots.

Configuration errors abort a run. Parse contract violations abort the
extraction of the enclosing contest. Spreadsheet read errors are reported
by the caller and the offending file is skipped.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class ConfigurationError(PipelineError):
    """Missing raw data, unknown jurisdiction, format or normalizer."""


class SpreadsheetReadError(PipelineError):
    """A single spreadsheet could not be opened or read."""

    def __init__(self, file_name: str, reason: str):
        self.file_name = file_name
        self.reason = reason
        super().__init__(f"Failed to read {file_name}: {reason}")


class ParseContractError(PipelineError, ValueError):
    """
    Raw data violates an assumption the extractor relies on.

    Carries enough context to reproduce the failure without re-running the
    whole pipeline.
    """

    def __init__(
        self,
        message: str,
        office_id: Optional[str] = None,
        file_name: Optional[str] = None,
        row: Optional[int] = None,
        column: Optional[int] = None,
    ):
        self.message = message
        self.office_id = office_id
        self.file_name = file_name
        self.row = row
        self.column = column
        super().__init__(self._format())

    def _format(self) -> str:
        context = []
        if self.office_id is not None:
            context.append(f"contest={self.office_id}")
        if self.file_name is not None:
            context.append(f"file={self.file_name}")
        if self.row is not None:
            context.append(f"row={self.row}")
        if self.column is not None:
            context.append(f"column={self.column}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"

    def with_context(self, **context) -> "ParseContractError":
        """Fill in any context fields that are still unset and return self."""
        for key, value in context.items():
            if getattr(self, key, None) is None:
                setattr(self, key, value)
        self.args = (self._format(),)
        return self


class HeaderRankError(ParseContractError):
    """A ranked-choice header declares a rank outside the supported range."""


class UnknownCandidateError(ParseContractError):
    """Ballot data references a candidate code absent from the mapping file."""


class MissingCellError(ParseContractError):
    """A required cell (ballot identifier or ranked choice) is empty or unreadable."""
