"""
Tests for single-K fits and fitting every K to one alignment.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from kpower.analysis.batch_fitter import BatchFitter, validate_k_values
from kpower.analysis.model_fit import FitSettings, ModelFitOrchestrator
from kpower.analysis.models import MixtureFamily, TreeHandling, TreeMode
from kpower.exceptions import ExternalToolFailure, ReportFileError, ReportParseIncomplete

from conftest import ReportWritingRunner


class TestBuildFitArgs:
    """Test the IQ-TREE argument list for each tree mode."""

    def build(self, tree, k=3, **kwargs):
        settings = FitSettings(tree=tree, threads=2, **kwargs)
        orchestrator = ModelFitOrchestrator(MagicMock(), settings)
        return orchestrator.build_fit_args("aln.fa", k, Path("out/K3/K3"))

    def test_nj_mode(self):
        args = self.build(TreeHandling(TreeMode.AUTO_NJ))
        assert args == ["-s", "aln.fa", "-m", "GTR+R3", "--fast", "--prefix", "out/K3/K3",
                        "-T", "2", "--redo", "-t", "BIONJ", "--tree-fix"]

    def test_fixed_mode(self):
        args = self.build(TreeHandling(TreeMode.FIXED_PATH, Path("species.tre")))
        assert args[-3:] == ["-t", "species.tre", "--tree-fix"]

    def test_search_mode(self):
        args = self.build(TreeHandling(TreeMode.HEURISTIC))
        assert "-t" not in args
        assert "--tree-fix" not in args

    def test_heterotachy_base_model(self):
        args = self.build(TreeHandling(), k=1, base_model="LG", family=MixtureFamily.HETEROTACHY)
        assert args[args.index("-m") + 1] == "LG"
        args = self.build(TreeHandling(), k=2, base_model="LG", family=MixtureFamily.HETEROTACHY)
        assert args[args.index("-m") + 1] == "LG+H2"


class TestModelFitOrchestrator:
    """Test fitting and report parsing."""

    def test_fit_returns_record(self, temp_dir, alignment_file, report_writing_runner):
        orchestrator = ModelFitOrchestrator(report_writing_runner, FitSettings(timeout=60))

        rec = orchestrator.fit(alignment_file, 2, temp_dir / "fits", label="empirical_K2")

        assert rec.K == 2
        assert rec.model_descriptor == "GTR+R2"
        assert rec.BIC == pytest.approx(1000.0)
        assert rec.AIC == pytest.approx(980.0)
        assert rec.log_likelihood == pytest.approx(-500.0)
        assert rec.free_parameter_count == 14
        assert rec.output_namespace == temp_dir / "fits" / "empirical_K2" / "empirical_K2"
        assert rec.report_location.exists()
        assert rec.tree_location.exists()
        assert rec.tree_mode is TreeMode.AUTO_NJ

    def test_timeout_passed_to_runner(self, temp_dir, alignment_file):
        runner = MagicMock()
        orchestrator = ModelFitOrchestrator(runner, FitSettings(timeout=42))

        with pytest.raises(ReportFileError):
            orchestrator.fit(alignment_file, 1, temp_dir)

        assert runner.invoke.call_args[1]['timeout'] == 42

    def test_failure_gets_label_context(self, temp_dir, alignment_file):
        runner = ReportWritingRunner(fail_on=["empirical"])
        orchestrator = ModelFitOrchestrator(runner, FitSettings())

        with pytest.raises(ExternalToolFailure) as exc_info:
            orchestrator.fit(alignment_file, 2, temp_dir, label="empirical_K2")

        assert exc_info.value.context['label'] == "empirical_K2"
        assert exc_info.value.context['alignment'] == str(alignment_file)
        assert exc_info.value.exit_status == 2

    def test_missing_bic_gives_none(self, temp_dir, alignment_file):
        runner = ReportWritingRunner(bic_by_k={1: None})
        orchestrator = ModelFitOrchestrator(runner, FitSettings())

        with pytest.warns(ReportParseIncomplete):
            rec = orchestrator.fit(alignment_file, 1, temp_dir)

        assert rec.BIC is None
        assert rec.criterion_value("BIC") is None


class TestBatchFitter:
    """Test fitting a list of K values."""

    def test_fit_all_labels_and_order(self, temp_dir, alignment_file, report_writing_runner):
        fitter = BatchFitter(ModelFitOrchestrator(report_writing_runner, FitSettings()))

        fits = fitter.fit_all(alignment_file, [3, 1, 2], temp_dir, label_prefix="empirical_")

        assert fits.k_values == [3, 1, 2]
        assert fits.best_k("BIC") == 2
        prefixes = [call[call.index("--prefix") + 1] for call in report_writing_runner.calls]
        assert [Path(p).name for p in prefixes] == ["empirical_K3", "empirical_K1", "empirical_K2"]

    def test_rerun_overwrites(self, temp_dir, alignment_file, report_writing_runner):
        fitter = BatchFitter(ModelFitOrchestrator(report_writing_runner, FitSettings()))

        first = fitter.fit_all(alignment_file, [1, 2], temp_dir)
        second = fitter.fit_all(alignment_file, [1, 2], temp_dir)

        assert first.criterion_values("BIC") == second.criterion_values("BIC")
        assert all("--redo" in call for call in report_writing_runner.calls)

    def test_failure_propagates(self, temp_dir, alignment_file):
        runner = ReportWritingRunner(fail_on=["empirical"])
        fitter = BatchFitter(ModelFitOrchestrator(runner, FitSettings()))

        with pytest.raises(ExternalToolFailure):
            fitter.fit_all(alignment_file, [1, 2], temp_dir)
        assert len(runner.calls) == 1


class TestValidateKValues:

    def test_valid(self):
        assert validate_k_values((1, 2, 3)) == [1, 2, 3]

    @pytest.mark.parametrize("values", [[], [0, 1], [1, 1], [1, 2.5], [True]])
    def test_invalid(self, values):
        with pytest.raises(ValueError):
            validate_k_values(values)
