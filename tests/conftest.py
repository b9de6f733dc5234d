"""
Shared fixtures for RNA-seq GSEA tests.
"""

from pathlib import Path

import pandas as pd
import pytest

from rnaseq_gsea.enrichment import gsea as gsea_module
from rnaseq_gsea.gene_set_utils import save_gmt


def _de_frame(rows, id_column="gene_id"):
    """rows: iterable of (gene_id, symbol, log2FoldChange, padj)"""
    return pd.DataFrame(
        list(rows),
        columns=[id_column, "HumanSymbol", "log2FoldChange", "padj"]
    )


@pytest.fixture
def de_frame():
    """Factory building a DE table from (id, symbol, lfc, padj) tuples."""
    return _de_frame


@pytest.fixture
def write_de(tmp_path):
    """Factory writing a DE table to <tmp>/<condition>/<name>.csv"""
    def _write(rows, condition="cond", name="deseq2_results", root=None):
        root = Path(root) if root is not None else tmp_path / "de"
        path = root / condition / f"{name}.csv"
        path.parent.mkdir(parents=True, exist_ok=True)
        _de_frame(rows).to_csv(path, index=False)
        return path
    return _write


@pytest.fixture
def ranked_rows():
    """Twenty genes G0..G19 with increasing fold changes, all significant."""
    return [(f"ENSMUSG{i:05d}", f"G{i}", float(i - 10), 0.01) for i in range(20)]


@pytest.fixture
def gene_sets():
    return {
        "LOW_SET": ["G0", "G1", "G2", "G3"],
        "HIGH_SET": ["G16", "G17", "G18", "G19"],
        "MIXED_SET": ["G5", "G10", "G15", "NOT_RANKED"],
    }


@pytest.fixture
def gmt_file(tmp_path, gene_sets):
    path = tmp_path / "genesets" / "toy.gmt"
    save_gmt(gene_sets, path, description="na")
    return path


class FakePrerankResult:
    def __init__(self, res2d):
        self.res2d = res2d


@pytest.fixture
def fake_prerank(monkeypatch):
    """
    Replace gseapy.prerank with a deterministic stand-in returning a
    gseapy 1.x style res2d. Returns the list of recorded calls.
    """
    calls = []

    def _prerank(rnk, gene_sets, min_size=15, max_size=500, permutation_num=1000, **kwargs):
        calls.append({
            "rnk": rnk,
            "gene_sets": gene_sets,
            "min_size": min_size,
            "max_size": max_size,
            "permutation_num": permutation_num,
            **kwargs,
        })
        symbols = set(rnk.index)
        rows = []
        for name in sorted(gene_sets):
            hits = [g for g in gene_sets[name] if g in symbols]
            if not min_size <= len(hits) <= max_size:
                continue
            es = float(rnk[hits].mean()) / 10
            rows.append({
                "Name": "prerank",
                "Term": name,
                "ES": es,
                "NES": es * 2,
                "NOM p-val": round(0.5 / (1 + abs(es) * 10), 6),
                "FDR q-val": round(0.6 / (1 + abs(es) * 10), 6),
                "FWER p-val": 0.5,
                "Tag %": f"{len(hits)}/{len(hits)}",
                "Gene %": "10.0%",
                "Lead_genes": ";".join(hits[:2]),
            })
        return FakePrerankResult(pd.DataFrame(rows))

    monkeypatch.setattr(gsea_module.gp, "prerank", _prerank)
    return calls
