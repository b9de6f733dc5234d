"""
DE Table Loader for RNA-seq GSEA

Reads per-gene differential expression tables (DESeq2 output annotated with
human ortholog symbols) and writes them back out.
"""

import logging
from pathlib import Path
from typing import Optional

import pandas as pd

from .errors import MalformedInputError


SYMBOL_COLUMN = "HumanSymbol"
LFC_COLUMN = "log2FoldChange"
PADJ_COLUMN = "padj"
REQUIRED_COLUMNS = (SYMBOL_COLUMN, LFC_COLUMN, PADJ_COLUMN)

TAB_SUFFIXES = {".tsv", ".txt", ".tab"}


def _separator(path: Path) -> str:
    return '\t' if path.suffix.lower() in TAB_SUFFIXES else ','


def load_de_table(path, id_column: Optional[str] = None) -> pd.DataFrame:
    """
    Load a DE table from a delimited text file.

    Args:
        path: CSV (or TSV for .tsv/.txt/.tab) with a header row
        id_column: Gene identifier column; the first column is used when None

    Returns:
        DataFrame with the identifier column, HumanSymbol, log2FoldChange,
        padj and any extra columns, in file order

    Raises:
        FileNotFoundError: If the file doesn't exist
        MalformedInputError: If required columns are missing or ids repeat
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"DE table not found: {path}")

    try:
        table = pd.read_csv(path, sep=_separator(path))
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise MalformedInputError(f"Cannot parse DE table {path}: {e}") from e

    if table.columns.empty:
        raise MalformedInputError(f"DE table has no columns: {path}")

    if id_column is None:
        id_column = table.columns[0]

    return validate_de_table(table, id_column=id_column, source=str(path))


def validate_de_table(table: pd.DataFrame, id_column: str, source: str = "<table>") -> pd.DataFrame:
    """
    Check the DE table schema and coerce the numeric columns.

    Returns a copy; the input is left untouched.
    """
    missing = [c for c in (id_column,) + REQUIRED_COLUMNS if c not in table.columns]
    if missing:
        raise MalformedInputError(
            f"DE table {source} is missing required columns {missing}; "
            f"found {list(table.columns)}"
        )

    table = table.copy()
    duplicated = table[id_column][table[id_column].duplicated()]
    if not duplicated.empty:
        raise MalformedInputError(
            f"DE table {source} has {len(duplicated)} duplicate ids in '{id_column}', "
            f"e.g. {list(duplicated.astype(str)[:5])}"
        )

    table[LFC_COLUMN] = pd.to_numeric(table[LFC_COLUMN], errors='coerce')
    table[PADJ_COLUMN] = pd.to_numeric(table[PADJ_COLUMN], errors='coerce')

    logging.debug(f"DE table {source}: {len(table)} genes")
    return table


def save_de_table(table: pd.DataFrame, path) -> Path:
    """
    Write a DE (or difference) table as CSV, creating parent directories.

    Returns:
        The path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, sep=_separator(path), index=False)
    logging.info(f"Saved {len(table)} genes to {path}")
    return path


def condition_name(path) -> str:
    """Condition label of a DE table, taken from its parent directory name."""
    return Path(path).parent.name
