"""
Error kinds raised by the RNA-seq GSEA pipeline.

Each error also derives from the built-in exception callers would expect
(ValueError, KeyError, RuntimeError) so generic handlers keep working.
"""


class RNASeqGSEAError(Exception):
    """Base class for all pipeline errors."""


class MalformedInputError(RNASeqGSEAError, ValueError):
    """Input file or table is missing required columns or is otherwise unusable."""


class EmptyRankingError(RNASeqGSEAError, ValueError):
    """No records survived filtering while building a ranking vector."""


class MissingGeneLookupError(RNASeqGSEAError, KeyError):
    """A significant gene id is absent from one side of a contrast difference."""

    def __init__(self, gene_ids, side: str = ""):
        self.gene_ids = list(gene_ids)
        self.side = side
        preview = ", ".join(map(str, self.gene_ids[:5]))
        where = f" in table {side}" if side else ""
        super().__init__(f"{len(self.gene_ids)} significant genes not found{where}: {preview}")

    def __str__(self) -> str:
        # KeyError repr-quotes its message otherwise
        return self.args[0]


class ExternalStatisticError(RNASeqGSEAError, RuntimeError):
    """The delegated statistics library failed or returned malformed output."""
