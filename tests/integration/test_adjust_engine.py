"""
Integration tests for the adjustment engine.

Each test runs multcomp() or adjust_file() end to end and reads the written
report back with pandas.
"""

import gzip
import logging
import os

import numpy as np
import pandas as pd
import pytest
from scipy.stats import chi2

from gcadjust.adjust import AdjustConfig, AdjustFileConfig, adjust_file, multcomp
from gcadjust.adjust.correction import bonferroni, fdr_bh, holm
from gcadjust.errors import AdjustStatus


def _read(path):
    df = pd.read_csv(path, sep="\t", dtype=str, keep_default_na=False)
    return df.rename(columns={df.columns[0]: df.columns[0].lstrip("#")})


def _floats(df, column):
    return df[column].astype(float).to_numpy()


@pytest.mark.integration
class TestMultcompEndToEnd:
    def test_worked_example(self, tmp_path, make_variant_store, minimal_config):
        prefix = str(tmp_path / "run")
        # input order deliberately not sorted
        pvals = np.array([0.20, 0.01, 0.03, 0.02])
        result = multcomp(make_variant_store(4), minimal_config, prefix, pvals=pvals)

        assert result.ok
        assert result.rows_written == 4
        assert result.n_valid == 4
        assert result.lambda_gc is None
        assert result.output_path == prefix + ".adjusted"

        df = _read(result.output_path)
        assert list(df.columns) == ["ID", "UNADJ", "BONF", "HOLM", "FDR_BH"]
        assert df["ID"].tolist() == ["rs2", "rs4", "rs3", "rs1"]
        np.testing.assert_allclose(_floats(df, "BONF"), [0.04, 0.08, 0.12, 0.8])
        np.testing.assert_allclose(_floats(df, "HOLM"), [0.04, 0.06, 0.06, 0.2])
        np.testing.assert_allclose(_floats(df, "FDR_BH"), [0.04, 0.04, 0.04, 0.2])

    def test_header_first_line(self, tmp_path, make_variant_store, minimal_config):
        result = multcomp(
            make_variant_store(2), minimal_config, str(tmp_path / "run"), pvals=np.array([0.1, 0.2])
        )
        with open(result.output_path) as f:
            assert f.readline() == "#ID\tUNADJ\tBONF\tHOLM\tFDR_BH\n"

    def test_missing_tests_excluded_from_n(self, tmp_path, make_variant_store):
        config = AdjustConfig(columns=["chrom", "pos"], methods=["bonf"], skip_gc=True)
        pvals = np.array([0.01, -1.0, 0.02, -1.0, 0.5])
        result = multcomp(make_variant_store(5), config, str(tmp_path / "run"), pvals=pvals)

        assert result.n_valid == 3
        df = _read(result.output_path)
        assert df["ID"].tolist() == ["rs1", "rs3", "rs5"]
        assert df["POS"].tolist() == ["100", "300", "500"]
        np.testing.assert_allclose(_floats(df, "BONF"), [0.03, 0.06, 1.0])

    def test_inclusion_mask_maps_to_variants(self, tmp_path, make_variant_store):
        config = AdjustConfig(columns=["unadj"], methods=[], skip_gc=True)
        mask = np.array([False, True, True, False])
        result = multcomp(
            make_variant_store(4),
            config,
            str(tmp_path / "run"),
            pvals=np.array([0.3, 0.001]),
            variant_include=mask,
        )
        assert _read(result.output_path)["ID"].tolist() == ["rs3", "rs2"]

    def test_chisq_input_matches_pval_input(self, tmp_path, make_variant_store):
        rng = np.random.default_rng(21)
        chisqs = rng.chisquare(1, size=300)
        config = AdjustConfig(columns=["unadj", "gc"], skip_gc=False)
        store = make_variant_store(300)

        by_chisq = multcomp(store, config, str(tmp_path / "a"), chisqs=chisqs)
        by_pval = multcomp(store, config, str(tmp_path / "b"), pvals=chi2.sf(chisqs, 1))

        a, b = _read(by_chisq.output_path), _read(by_pval.output_path)
        assert a["ID"].tolist() == b["ID"].tolist()
        np.testing.assert_allclose(_floats(a, "FDR_BY"), _floats(b, "FDR_BY"), rtol=1e-4)
        assert by_chisq.lambda_gc == pytest.approx(by_pval.lambda_gc, rel=1e-9)

    def test_allele_and_qq_columns(self, tmp_path, variant_table):
        from gcadjust.adjust import VariantStore

        store = VariantStore.from_dataframe(variant_table)
        config = AdjustConfig(
            columns=["chrom", "pos", "ref", "alt1", "alt", "qq"], methods=[], skip_gc=True
        )
        result = multcomp(
            store, config, str(tmp_path / "run"), pvals=np.array([0.5, 0.1, 0.001, 0.9])
        )
        df = _read(result.output_path)
        assert list(df.columns) == ["CHROM", "POS", "ID", "REF", "ALT1", "ALT", "QQ"]
        assert df.iloc[0].tolist() == ["2", "1500", "rs3", "G", "A", "A,C", "0.125"]
        np.testing.assert_allclose(_floats(df, "QQ"), [0.125, 0.375, 0.625, 0.875])

    def test_log10_and_floor(self, tmp_path, make_variant_store):
        config = AdjustConfig(
            columns=["unadj"], methods=["bonf"], skip_gc=True, log10=True, output_min_p=1e-8
        )
        result = multcomp(
            make_variant_store(3),
            config,
            str(tmp_path / "run"),
            pvals=np.array([0.0, 1e-20, 0.1]),
        )
        df = _read(result.output_path)
        assert df["UNADJ"].tolist() == ["8", "8", "1"]
        assert df["BONF"].tolist() == ["8", "8", "0.522879"]


@pytest.mark.integration
class TestGenomicControlModes:
    @pytest.fixture
    def inflated(self):
        rng = np.random.default_rng(42)
        return rng.chisquare(1, size=5000) * 1.5

    def _expected_gc(self, chisq):
        lam = max(1.0, float(np.median(chisq)) / 0.456)
        return lam, chi2.sf(chisq / lam, 1)

    def test_annotate(self, tmp_path, make_variant_store, inflated):
        config = AdjustConfig(columns=["unadj", "gc"], methods=["bonf"])
        result = multcomp(make_variant_store(5000), config, str(tmp_path / "run"), chisqs=inflated)
        lam, gc = self._expected_gc(inflated)

        assert result.lambda_gc == pytest.approx(lam)
        assert result.lambda_gc > 1.0
        df = _read(result.output_path)
        raw = np.sort(chi2.sf(inflated, 1))
        np.testing.assert_allclose(_floats(df, "UNADJ"), raw, rtol=1e-5)
        np.testing.assert_allclose(_floats(df, "GC"), np.sort(gc), rtol=1e-5)
        np.testing.assert_allclose(_floats(df, "BONF"), bonferroni(raw), rtol=1e-5)

    def test_substitute(self, tmp_path, make_variant_store, inflated):
        config = AdjustConfig(
            columns=["unadj", "gc"], methods=["holm", "fdr_bh"], gc_mode="substitute"
        )
        result = multcomp(make_variant_store(5000), config, str(tmp_path / "run"), chisqs=inflated)
        _, gc = self._expected_gc(inflated)
        gc = np.sort(gc)

        df = _read(result.output_path)
        np.testing.assert_allclose(_floats(df, "HOLM"), holm(gc), rtol=1e-5)
        np.testing.assert_allclose(_floats(df, "FDR_BH"), fdr_bh(gc), rtol=1e-5)

    def test_substitute_filters_on_gc(self, tmp_path, make_variant_store, inflated):
        config = AdjustConfig(
            columns=["gc"], methods=["bonf"], gc_mode="substitute", pfilter=0.01
        )
        result = multcomp(make_variant_store(5000), config, str(tmp_path / "run"), chisqs=inflated)
        _, gc = self._expected_gc(inflated)
        assert result.rows_written == int(np.count_nonzero(gc <= 0.01))
        assert result.n_valid == 5000

    def test_lambda_override(self, tmp_path, make_variant_store, inflated):
        config = AdjustConfig(columns=["gc"], methods=[], lambda_=2.0)
        result = multcomp(make_variant_store(5000), config, str(tmp_path / "run"), chisqs=inflated)
        assert result.lambda_gc == 2.0
        df = _read(result.output_path)
        np.testing.assert_allclose(
            _floats(df, "GC"), np.sort(chi2.sf(inflated / 2.0, 1)), rtol=1e-5
        )

    def test_skip_gc(self, tmp_path, make_variant_store, inflated):
        config = AdjustConfig(columns=["unadj", "gc"], methods=["bonf"], skip_gc=True)
        result = multcomp(make_variant_store(5000), config, str(tmp_path / "run"), chisqs=inflated)
        assert result.lambda_gc is None
        assert "GC" not in _read(result.output_path).columns


@pytest.mark.integration
class TestFilteringAndOutput:
    def test_pfilter_row_count_across_blocks(self, tmp_path, make_variant_store):
        pvals = np.random.default_rng(5).uniform(size=10000)
        config = AdjustConfig(columns=["unadj"], methods=["fdr_bh"], skip_gc=True, pfilter=0.05)
        result = multcomp(make_variant_store(10000), config, str(tmp_path / "run"), pvals=pvals)

        expected_rows = int(np.count_nonzero(pvals <= 0.05))
        assert result.rows_written == expected_rows
        df = _read(result.output_path)
        assert len(df) == expected_rows
        # corrections use all 10000 tests, not just the written rows
        np.testing.assert_allclose(
            _floats(df, "FDR_BH"), fdr_bh(np.sort(pvals))[:expected_rows], rtol=1e-5
        )

    def test_idempotent_plain(self, tmp_path, make_variant_store):
        pvals = np.random.default_rng(6).uniform(size=500)
        prefix = str(tmp_path / "run")
        contents = []
        for _ in range(2):
            result = multcomp(make_variant_store(500), AdjustConfig(), prefix, pvals=pvals)
            with open(result.output_path, "rb") as f:
                contents.append(f.read())
        assert contents[0] == contents[1]

    def test_idempotent_compressed(self, tmp_path, make_variant_store):
        pvals = np.random.default_rng(7).uniform(size=500)
        prefix = str(tmp_path / "run")
        config = AdjustConfig(compress=True)
        contents = []
        for _ in range(2):
            result = multcomp(make_variant_store(500), config, prefix, pvals=pvals)
            assert result.output_path == prefix + ".adjusted.gz"
            with open(result.output_path, "rb") as f:
                contents.append(f.read())
        assert contents[0] == contents[1]

    def test_compressed_matches_plain(self, tmp_path, make_variant_store):
        pvals = np.random.default_rng(8).uniform(size=500)
        plain = multcomp(
            make_variant_store(500), AdjustConfig(), str(tmp_path / "p"), pvals=pvals
        )
        packed = multcomp(
            make_variant_store(500), AdjustConfig(compress=True), str(tmp_path / "c"), pvals=pvals
        )
        with open(plain.output_path, "rb") as f, gzip.open(packed.output_path, "rb") as g:
            assert f.read() == g.read()

    def test_small_chunks_give_same_bytes(self, tmp_path, make_variant_store):
        pvals = np.random.default_rng(9).uniform(size=300)
        big = multcomp(make_variant_store(300), AdjustConfig(), str(tmp_path / "big"), pvals=pvals)
        small = multcomp(
            make_variant_store(300),
            AdjustConfig(chunk_size=64),
            str(tmp_path / "small"),
            pvals=pvals,
        )
        with open(big.output_path, "rb") as f, open(small.output_path, "rb") as g:
            assert f.read() == g.read()


@pytest.mark.integration
class TestStatuses:
    def test_zero_valid_tests(self, tmp_path, make_variant_store, caplog):
        prefix = str(tmp_path / "run")
        with caplog.at_level(logging.INFO, logger="gcadjust"):
            result = multcomp(
                make_variant_store(3), AdjustConfig(), prefix, pvals=np.array([-1.0, -1.0, -1.0])
            )
        assert result.status is AdjustStatus.SUCCESS
        assert result.rows_written == 0
        assert result.output_path is None
        assert not os.path.exists(prefix + ".adjusted")
        assert "Zero valid tests" in caplog.text

    def test_out_of_memory(self, tmp_path, make_variant_store):
        prefix = str(tmp_path / "run")
        config = AdjustConfig(max_memory_gb=1e-9)
        result = multcomp(make_variant_store(100), config, prefix, pvals=np.full(100, 0.5))
        assert result.status is AdjustStatus.OUT_OF_MEMORY
        assert not result.ok
        assert result.message
        assert not os.path.exists(prefix + ".adjusted")

    def test_write_failure(self, tmp_path, make_variant_store):
        prefix = str(tmp_path / "missing_dir" / "run")
        result = multcomp(make_variant_store(3), AdjustConfig(), prefix, pvals=np.full(3, 0.5))
        assert result.status is AdjustStatus.WRITE_FAIL

    def test_inconsistent_lengths(self, tmp_path, make_variant_store):
        result = multcomp(
            make_variant_store(3),
            AdjustConfig(),
            str(tmp_path / "run"),
            chisqs=np.ones(3),
            pvals=np.ones(2),
        )
        assert result.status is AdjustStatus.INCONSISTENT_INPUT

    def test_pvalue_above_one(self, tmp_path, make_variant_store):
        prefix = str(tmp_path / "run")
        config = AdjustConfig(gc_mode="substitute")
        result = multcomp(
            make_variant_store(6),
            config,
            prefix,
            pvals=np.array([0.001, 0.01, 0.2, 0.4, 0.6, 1.5]),
        )
        assert result.status is AdjustStatus.INCONSISTENT_INPUT
        assert "outside [0, 1]" in result.message
        assert result.lambda_gc is None
        assert not os.path.exists(prefix + ".adjusted")

    def test_negative_pvalue_with_valid_chisq(self, tmp_path, make_variant_store):
        prefix = str(tmp_path / "run")
        result = multcomp(
            make_variant_store(3),
            AdjustConfig(),
            prefix,
            chisqs=np.array([5.0, 1.0, 0.5]),
            pvals=np.array([0.02, -1.0, 0.5]),
        )
        assert result.status is AdjustStatus.INCONSISTENT_INPUT
        assert not os.path.exists(prefix + ".adjusted")

    def test_no_statistics(self, tmp_path, make_variant_store):
        result = multcomp(make_variant_store(3), AdjustConfig(), str(tmp_path / "run"))
        assert result.status is AdjustStatus.INCONSISTENT_INPUT

    def test_missing_metadata_for_selected_column(self, tmp_path):
        from gcadjust.adjust import VariantStore

        store = VariantStore(variant_ids=["a", "b"])
        config = AdjustConfig(columns=["pos"], methods=[], skip_gc=True)
        prefix = str(tmp_path / "run")
        result = multcomp(store, config, prefix, pvals=np.array([0.1, 0.2]))
        assert result.status is AdjustStatus.INCONSISTENT_INPUT
        assert not os.path.exists(prefix + ".adjusted")

    def test_adjust_file_not_yet_supported(self, tmp_path):
        assoc = tmp_path / "assoc.tsv"
        assoc.write_text("#CHROM\tPOS\tID\tREF\tALT\tP\n1\t100\trs1\tA\tG\t0.01\n")
        prefix = str(tmp_path / "run")
        result = adjust_file(AdjustFileConfig(fname=str(assoc)), prefix)
        assert result.status is AdjustStatus.NOT_YET_SUPPORTED
        assert "under development" in result.message
        assert sorted(os.listdir(tmp_path)) == ["assoc.tsv"]
