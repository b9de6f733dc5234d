"""
Unit tests for the contrast differencer.
"""

import math

import pandas as pd
import pytest

from rnaseq_gsea.contrast import significant_gene_set, calc_condition_difference
from rnaseq_gsea.errors import MalformedInputError, MissingGeneLookupError


@pytest.fixture
def tables(de_frame):
    a = de_frame([
        ("g1", "A1", 2.0, 0.01),
        ("g2", "A2", 1.0, 0.50),
        ("g3", "A3", -1.0, 0.10),
        ("g4", "A4", 0.3, None),
    ])
    b = de_frame([
        ("g1", "B1", 0.5, 0.20),
        ("g2", "B2", -2.0, 0.05),
        ("g3", "B3", 1.0, 0.90),
        ("g4", "B4", 0.1, 0.90),
    ])
    return a, b


class TestSignificantGeneSet:
    """Test the significant gene union."""

    def test_union(self, tables):
        """Test ids significant in either table are returned once."""
        a, b = tables
        assert significant_gene_set(a, b, 0.25) == ["g1", "g2", "g3"]

    def test_strict_threshold(self, tables):
        """Test padj equal to the threshold is not significant."""
        a, b = tables
        assert significant_gene_set(a, b, 0.10) == ["g1", "g2"]

    def test_missing_padj_never_significant(self, tables):
        """Test NaN padj is excluded."""
        a, b = tables
        assert "g4" not in significant_gene_set(a, b, 0.5)


class TestConditionDifference:
    """Test difference table construction."""

    def test_scenario_single_gene(self, de_frame):
        """Test the documented single-gene example."""
        a = de_frame([("gene1", "X", 2.0, 0.01)])
        b = de_frame([("gene1", "X", 0.5, 0.20)])

        diff = calc_condition_difference(a, b, padj_threshold=0.25)

        assert len(diff) == 1
        row = diff.iloc[0]
        assert row["gene_id"] == "gene1"
        assert row["HumanSymbol"] == "X"
        assert row["log2FoldChange"] == pytest.approx(1.5)
        assert row["padj"] == 0.25

    def test_symbol_from_a(self, tables):
        """Test table A is the canonical symbol source."""
        a, b = tables
        diff = calc_condition_difference(a, b, 0.25)
        assert list(diff["HumanSymbol"]) == ["A1", "A2", "A3"]

    def test_padj_is_threshold(self, tables):
        """Test the p-value column is the threshold placeholder."""
        a, b = tables
        diff = calc_condition_difference(a, b, 0.25)
        assert (diff["padj"] == 0.25).all()

    def test_input_fold_changes_kept(self, tables):
        """Test both input fold changes are recorded."""
        a, b = tables
        diff = calc_condition_difference(a, b, 0.25).set_index("gene_id")
        assert diff.loc["g2", "log2FoldChange_a"] == 1.0
        assert diff.loc["g2", "log2FoldChange_b"] == -2.0
        assert diff.loc["g2", "log2FoldChange"] == pytest.approx(3.0)

    def test_antisymmetry(self, tables):
        """Test swapping A and B negates every fold change."""
        a, b = tables
        ab = calc_condition_difference(a, b, 0.25).set_index("gene_id")["log2FoldChange"]
        ba = calc_condition_difference(b, a, 0.25).set_index("gene_id")["log2FoldChange"]

        assert list(ab.index) == list(ba.index)
        for gene in ab.index:
            assert ab[gene] == pytest.approx(-ba[gene])

    def test_cardinality_bound(self, tables):
        """Test row count is at most the sum of significant rows."""
        a, b = tables
        diff = calc_condition_difference(a, b, 0.25)
        n_a = int((a["padj"] < 0.25).sum())
        n_b = int((b["padj"] < 0.25).sum())
        assert len(diff) <= n_a + n_b

    def test_cardinality_equal_without_overlap(self, de_frame):
        """Test row count equals the sum when no gene overlaps."""
        a = de_frame([("g1", "S1", 1.0, 0.01), ("g2", "S2", 1.0, 0.9)])
        b = de_frame([("g1", "S1", 0.0, 0.9), ("g2", "S2", 2.0, 0.01)])
        diff = calc_condition_difference(a, b, 0.25)
        assert len(diff) == 2

    def test_empty_when_nothing_significant(self, tables):
        """Test a tiny threshold gives an empty table with the right columns."""
        a, b = tables
        diff = calc_condition_difference(a, b, 1e-6)
        assert diff.empty
        assert {"gene_id", "HumanSymbol", "log2FoldChange", "padj"} <= set(diff.columns)

    def test_missing_column(self, tables):
        """Test a table without padj is rejected."""
        a, b = tables
        with pytest.raises(MalformedInputError):
            calc_condition_difference(a.drop(columns=["padj"]), b)

    def test_unknown_policy(self, tables):
        """Test an unknown missing-gene policy is rejected."""
        a, b = tables
        with pytest.raises(ValueError):
            calc_condition_difference(a, b, missing_policy="guess")


class TestMissingGenePolicy:
    """Test genes significant in one table but absent from the other."""

    @pytest.fixture
    def uneven(self, de_frame):
        a = de_frame([("g1", "S1", 2.0, 0.01), ("g2", "S2", 1.0, 0.01)])
        b = de_frame([("g1", "S1", 1.0, 0.5), ("g3", "S3", -1.0, 0.01)])
        return a, b

    def test_skip(self, uneven):
        """Test 'skip' drops genes missing from either side."""
        a, b = uneven
        diff = calc_condition_difference(a, b, 0.25, missing_policy="skip")
        assert list(diff["gene_id"]) == ["g1"]

    def test_zero(self, uneven):
        """Test 'zero' treats an absent fold change as 0."""
        a, b = uneven
        diff = calc_condition_difference(a, b, 0.25, missing_policy="zero").set_index("gene_id")

        assert diff.loc["g1", "log2FoldChange"] == pytest.approx(1.0)
        assert diff.loc["g2", "log2FoldChange"] == pytest.approx(1.0)
        assert diff.loc["g3", "log2FoldChange"] == pytest.approx(1.0)
        # symbol falls back to B when A lacks the gene
        assert diff.loc["g3", "HumanSymbol"] == "S3"

    def test_zero_antisymmetry(self, uneven):
        """Test 'zero' keeps differences antisymmetric."""
        a, b = uneven
        ab = calc_condition_difference(a, b, 0.25, missing_policy="zero").set_index("gene_id")
        ba = calc_condition_difference(b, a, 0.25, missing_policy="zero").set_index("gene_id")
        pd.testing.assert_series_equal(
            ab["log2FoldChange"], -ba["log2FoldChange"], check_names=False
        )

    def test_raise(self, uneven):
        """Test 'raise' reports the missing genes."""
        a, b = uneven
        with pytest.raises(MissingGeneLookupError) as exc_info:
            calc_condition_difference(a, b, 0.25, missing_policy="raise")

        assert exc_info.value.gene_ids == ["g3"]
        assert "g3" in str(exc_info.value)

    def test_present_nan_fold_change_stays_nan(self, de_frame):
        """Test only absence is replaced by zero, not a NaN fold change."""
        a = de_frame([("g1", "S1", float("nan"), 0.01)])
        b = de_frame([("g1", "S1", 1.0, 0.5)])
        diff = calc_condition_difference(a, b, 0.25, missing_policy="zero")
        assert math.isnan(diff.loc[0, "log2FoldChange"])
