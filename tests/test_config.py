"""
Unit tests for analysis configuration loading.
"""

from pathlib import Path

import pytest

from rnaseq_gsea.config import AnalysisConfig, GSEAConfig, load_config
from rnaseq_gsea.errors import MalformedInputError


CONFIG_YAML = """
paths:
  counts: data/counts.csv
  metadata: data/samples.csv
  de_root: out/de
gene_sets:
  hallmark: genesets/h.gmt
design:
  factors: [condition, genotype]
  contrasts:
    - [hypoxia-KO, hypoxia-WT]
thresholds:
  difference_padj: 0.2
gsea:
  permutation_num: 100
  max_workers: 2
differences:
  - name: KO_hypoxia_minus_normoxia
    a: hypoxia-KO_vs_hypoxia-WT
    b: normoxia-KO_vs_normoxia-WT
missing_gene_policy: zero
"""


class TestDefaults:

    def test_defaults(self):
        config = AnalysisConfig()

        assert config.thresholds.difference_padj == 0.25
        assert config.thresholds.ranking_padj == 1.0
        assert config.gsea.min_size == 15
        assert config.gsea.max_size == 500
        assert config.gsea.seed == 42
        assert config.missing_gene_policy == "skip"

    def test_empty_mapping(self):
        config = AnalysisConfig.from_dict({})
        assert config.gsea == GSEAConfig()
        assert config.differences == []


class TestLoadConfig:
    """Test YAML loading and path resolution."""

    def test_load(self, tmp_path):
        path = tmp_path / "analysis.yaml"
        path.write_text(CONFIG_YAML)

        config = load_config(path)

        assert config.paths.counts == tmp_path / "data" / "counts.csv"
        assert config.paths.de_root == tmp_path / "out" / "de"
        # defaults are resolved against the config directory too
        assert config.paths.gsea_root == tmp_path / "results" / "gsea"
        assert config.gene_sets == {"hallmark": tmp_path / "genesets" / "h.gmt"}
        assert config.design.contrasts == [("hypoxia-KO", "hypoxia-WT")]
        assert config.thresholds.difference_padj == 0.2
        assert config.gsea.permutation_num == 100
        assert config.gsea.max_workers == 2
        assert config.differences[0].a == "hypoxia-KO_vs_hypoxia-WT"
        assert config.missing_gene_policy == "zero"

    def test_absolute_paths_kept(self, tmp_path):
        path = tmp_path / "analysis.yaml"
        path.write_text(f"paths:\n  screen: {tmp_path / 'elsewhere' / 'screen.csv'}\n")

        config = load_config(path)

        assert config.paths.screen == tmp_path / "elsewhere" / "screen.csv"

    def test_to_dict_plain(self, tmp_path):
        path = tmp_path / "analysis.yaml"
        path.write_text(CONFIG_YAML)

        data = load_config(path).to_dict()

        assert isinstance(data["paths"]["counts"], str)
        assert data["design"]["contrasts"] == [["hypoxia-KO", "hypoxia-WT"]]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("paths: [unclosed\n")

        with pytest.raises(MalformedInputError):
            load_config(path)

    def test_root_not_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(MalformedInputError):
            load_config(path)


class TestValidation:
    """Test rejected configurations."""

    @pytest.mark.parametrize("data", [
        {"paths": {"countz": "x.csv"}},
        {"unknown_section": {}},
        {"missing_gene_policy": "guess"},
        {"thresholds": {"difference_padj": 0}},
        {"thresholds": {"screen_padj": 1.5}},
        {"thresholds": {"ranking_padj": -1}},
        {"gsea": {"min_size": 20, "max_size": 10}},
        {"gsea": {"permutation_num": 0}},
        {"gsea": {"max_workers": 0}},
        {"design": {"factors": []}},
        {"design": {"contrasts": [["a", "b", "c"]]}},
        {"differences": [{"name": "x", "a": "y"}]},
        {"paths": ["not", "a", "mapping"]},
        {"thresholds": {"ranking_padj": 0.25},
         "differences": [{"name": "d", "a": "x_vs_y", "b": "z_vs_y"}]},
        {"differences": [{"name": "d", "a": "x_vs_y", "b": "z_vs_y"},
                         {"name": "d", "a": "z_vs_y", "b": "x_vs_y"}]},
        {"differences": [{"name": "x_vs_y", "a": "x_vs_y", "b": "z_vs_y"}]},
        {"design": {"contrasts": [["x", "y"]]},
         "differences": [{"name": "x_vs_y", "a": "p_vs_q", "b": "r_vs_q"}]},
    ])
    def test_rejected(self, data):
        with pytest.raises(MalformedInputError):
            AnalysisConfig.from_dict(data)

    def test_ranking_threshold_only_checked_with_differences(self):
        """Test a low ranking threshold is fine when no difference table is ranked."""
        config = AnalysisConfig.from_dict({"thresholds": {"ranking_padj": 0.1}})
        assert config.thresholds.ranking_padj == 0.1

    def test_relative_paths_without_base(self):
        config = AnalysisConfig.from_dict({"paths": {"counts": "c.csv"}})
        assert config.paths.counts == Path("c.csv")
