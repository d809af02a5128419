"""
Parse error taxonomy.

A ParseError aborts the parse of a single file only; callers processing a batch
catch it per file and carry on with the rest.
"""


class ParseError(ValueError):
    """Structural failure that makes a single export unusable."""


class HeaderNotFoundError(ParseError):
    """No header row with the expected account label in the scanned window."""

    def __init__(self, target: str, scanned_rows: int):
        self.target = target
        self.scanned_rows = scanned_rows
        super().__init__(
            f"Could not find header row: no '{target}' column label in the first {scanned_rows} rows"
        )


class UnsupportedFileError(ParseError):
    """File type that the tabular reader cannot open."""


class ReportFetchError(RuntimeError):
    """The remote accounting report could not be retrieved."""
