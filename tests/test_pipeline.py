"""
Integration tests for the complete kpower workflow.

Most tests use the in-process ReportWritingRunner; the fake_iqtree tests
drive the real process runner against a script standing in for IQ-TREE.
"""

import math
from functools import partial
from unittest.mock import patch

import pytest

from kpower.analysis.pipeline import KPowerPipeline, kpower, run_kpower
from kpower.config_loader import build_configuration
from kpower.exceptions import PipelineStageError, ReplayCommandAbsent
from kpower.io.output_manager import read_table

from conftest import ReportWritingRunner


@pytest.fixture
def iqtree_stub(temp_dir):
    """Existing file passed as the IQ-TREE path; never executed."""
    path = temp_dir / "iqtree2"
    path.write_text("")
    return path


def make_config(alignment, output_dir, iqtree, **sections):
    data = {
        'input_output': {'alignment_file': str(alignment), 'output_dir': str(output_dir),
                         'make_plot': False},
        'model': {'k_max': 3},
        'simulation': {'replicates': 4, 'seed': 5},
        'computational': {'iqtree_path': str(iqtree)},
    }
    for name, values in sections.items():
        data[name].update(values)
    return build_configuration(data)


class TestKPowerPipeline:
    """Test the staged workflow with the stub runner."""

    def test_full_run(self, temp_dir, alignment_file, iqtree_stub):
        out = temp_dir / "run"
        config = make_config(alignment_file, out, iqtree_stub)

        result = run_kpower(config, runner_factory=ReportWritingRunner)

        assert result.best_k == 2
        assert result.power == 1.0
        assert result.usable_replicates == 4
        assert result.selection_counts == {2: 4}
        assert len(result.sim_files) == 4
        assert len(result.simulation_table) == 12
        assert result.empirical.k_values == [1, 2, 3]
        assert result.figure_path is None

        assert (out / "empirical" / "empirical_K2" / "empirical_K2.iqtree").exists()
        assert (out / "simulations" / "sim_4.fa").exists()
        assert (out / "sim_fits" / "sim0004_K3" / "sim0004_K3.iqtree").exists()
        assert len(read_table(out / "empirical_ic.csv")) == 3
        assert len(read_table(out / "simulation_ic.csv")) == 12
        assert "K_best   : 2" in (out / "kpower_summary.txt").read_text()

    def test_simulation_command(self, temp_dir, alignment_file, iqtree_stub):
        runner = ReportWritingRunner()
        config = make_config(alignment_file, temp_dir / "run", iqtree_stub,
                             computational={'iqtree_path': str(iqtree_stub), 'threads': 2})
        pipeline = KPowerPipeline(config, runner_factory=lambda exe, debug=False: runner)

        pipeline.run()

        sim_calls = [call for call in runner.calls if "--alisim" in call]
        assert len(sim_calls) == 1
        args = sim_calls[0]
        assert args[args.index("--length") + 1] == "16"
        assert args[args.index("--num-alignments") + 1] == "4"
        assert args[args.index("--seed") + 1] == "5"
        assert args[args.index("-T") + 1] == "2"
        assert "empirical_K2" in args[args.index("-t") + 1]
        assert args[-2:] == ["-s", str(alignment_file)]

    def test_replay_fallback(self, temp_dir, alignment_file, iqtree_stub):
        config = make_config(alignment_file, temp_dir / "run", iqtree_stub)

        with pytest.warns(ReplayCommandAbsent):
            result = run_kpower(config, runner_factory=partial(ReportWritingRunner, alisim=False))

        assert result.power == 1.0

    def test_run_info(self, temp_dir, alignment_file, iqtree_stub):
        pipeline = KPowerPipeline(make_config(alignment_file, temp_dir, iqtree_stub),
                                  runner_factory=ReportWritingRunner)
        pipeline.prepare()

        info = pipeline.run_info()

        assert info['K range'] == "1-3"
        assert info['Replicates (B)'] == 4
        assert info['IQ-TREE'] == str(iqtree_stub)


class TestPipelineStageErrors:
    """Test that failures name their stage and keep partial results."""

    def test_empirical_fit_failure(self, temp_dir, alignment_file, iqtree_stub):
        config = make_config(alignment_file, temp_dir / "run", iqtree_stub)
        factory = partial(ReportWritingRunner, fail_on=["empirical.fa"])

        with pytest.raises(PipelineStageError) as exc_info:
            run_kpower(config, runner_factory=factory)

        error = exc_info.value
        assert error.stage == "empirical_fit"
        assert error.label == "empirical_K1"
        assert error.partial_result == {}
        assert error.__cause__.exit_status == 2

    def test_no_criterion_in_empirical_fits(self, temp_dir, alignment_file, iqtree_stub):
        config = make_config(alignment_file, temp_dir / "run", iqtree_stub)
        factory = partial(ReportWritingRunner, bic_by_k={1: None, 2: None, 3: None})

        with pytest.warns(UserWarning):
            with pytest.raises(PipelineStageError) as exc_info:
                run_kpower(config, runner_factory=factory)

        assert exc_info.value.stage == "empirical_fit"
        assert 'empirical' in exc_info.value.partial_result
        assert 'best_k' not in exc_info.value.partial_result

    @patch('kpower.external_tools.tool_locator.shutil.which', return_value=None)
    def test_iqtree_not_found(self, mock_which, temp_dir, alignment_file):
        config = make_config(alignment_file, temp_dir / "run", temp_dir / "missing" / "iqtree2")

        with pytest.raises(PipelineStageError) as exc_info:
            run_kpower(config, runner_factory=ReportWritingRunner)

        assert exc_info.value.stage == "empirical_fit"
        assert "not found" in str(exc_info.value)

    def test_simulation_failure(self, temp_dir, alignment_file, iqtree_stub):
        config = make_config(alignment_file, temp_dir / "run", iqtree_stub)

        with pytest.raises(PipelineStageError) as exc_info:
            run_kpower(config, runner_factory=partial(ReportWritingRunner, sim_files=0))

        error = exc_info.value
        assert error.stage == "simulation"
        assert error.partial_result['best_k'] == 2
        assert error.partial_result['empirical'].k_values == [1, 2, 3]

    def test_bootstrap_failure_without_isolation(self, temp_dir, alignment_file, iqtree_stub):
        config = make_config(alignment_file, temp_dir / "run", iqtree_stub,
                             computational={'iqtree_path': str(iqtree_stub), 'isolate_failures': False})
        factory = partial(ReportWritingRunner, fail_on=["sim_3.fa"])

        with pytest.raises(PipelineStageError) as exc_info:
            run_kpower(config, runner_factory=factory)

        error = exc_info.value
        assert error.stage == "bootstrap_fit"
        assert error.label == "sim0003_K1"
        assert len(error.partial_result['sim_files']) == 4

    def test_bootstrap_failure_isolated(self, temp_dir, alignment_file, iqtree_stub):
        config = make_config(alignment_file, temp_dir / "run", iqtree_stub)
        factory = partial(ReportWritingRunner, fail_on=["sim_3.fa"])

        result = run_kpower(config, runner_factory=factory)

        assert result.failed_replicates == [3]
        assert result.usable_replicates == 3
        assert result.power == 1.0
        assert "Failed replicates: 1 (3)" in (temp_dir / "run" / "kpower_summary.txt").read_text()

    def test_empirical_directory_unwritable(self, temp_dir, alignment_file, iqtree_stub):
        out = temp_dir / "run"
        out.mkdir()
        (out / "empirical").write_text("not a directory")
        config = make_config(alignment_file, out, iqtree_stub)

        with pytest.raises(PipelineStageError) as exc_info:
            run_kpower(config, runner_factory=ReportWritingRunner)

        error = exc_info.value
        assert error.stage == "empirical_fit"
        assert isinstance(error.__cause__, OSError)
        assert error.partial_result == {}

    def test_sim_fits_directory_unwritable(self, temp_dir, alignment_file, iqtree_stub):
        out = temp_dir / "run"
        out.mkdir()
        (out / "sim_fits").write_text("not a directory")
        config = make_config(alignment_file, out, iqtree_stub,
                             computational={'iqtree_path': str(iqtree_stub), 'isolate_failures': False})

        with pytest.raises(PipelineStageError) as exc_info:
            run_kpower(config, runner_factory=ReportWritingRunner)

        error = exc_info.value
        assert error.stage == "bootstrap_fit"
        assert error.label == "replicate 1"
        assert isinstance(error.__cause__.__cause__, OSError)
        assert error.partial_result['best_k'] == 2
        assert len(error.partial_result['sim_files']) == 4

    def test_sim_fits_directory_unwritable_isolated(self, temp_dir, alignment_file, iqtree_stub):
        out = temp_dir / "run"
        out.mkdir()
        (out / "sim_fits").write_text("not a directory")
        config = make_config(alignment_file, out, iqtree_stub)

        result = run_kpower(config, runner_factory=ReportWritingRunner)

        assert result.failed_replicates == [1, 2, 3, 4]
        assert math.isnan(result.power)
        assert result.best_k == 2


class TestKPowerFunction:
    """Test the keyword-argument entry point against the fake IQ-TREE script."""

    def test_fake_iqtree_run(self, temp_dir, alignment_file, fake_iqtree, clean_fake_env):
        clean_fake_env.setenv("FAKE_SIM_BEST", "2,2,1,2")

        result = kpower(alignment_file, k_max=3, B=4, seed=3, outdir=temp_dir / "run",
                        iqtree_bin=str(fake_iqtree), make_plot=False)

        assert result.best_k == 2
        assert result.power == pytest.approx(0.75)
        assert result.selection_counts == {1: 1, 2: 3}
        assert len(read_table(temp_dir / "run" / "simulation_ic.csv")) == 12

    def test_search_tree_and_options(self, temp_dir, alignment_file, fake_iqtree, clean_fake_env):
        result = kpower(alignment_file, k_max=2, B=2, outdir=temp_dir / "run",
                        iqtree_bin=str(fake_iqtree), make_plot=False, fixed_tree=None,
                        ic="AIC", mimic_gaps=False, missing_policy="non_match")

        assert result.criterion.value == "AIC"
        assert result.best_k == 2
        assert result.power == 1.0

    @pytest.mark.parametrize("option,mode", [("NJ", "nj"), (None, "search"), ("search", "search")])
    @patch('kpower.analysis.pipeline.run_kpower')
    def test_tree_option_modes(self, mock_run, alignment_file, option, mode):
        kpower(alignment_file, k_max=2, fixed_tree=option)

        config = mock_run.call_args[0][0]
        assert config.model.tree_mode == mode
        assert config.model.fixed_tree is None

    @patch('kpower.analysis.pipeline.run_kpower')
    def test_tree_option_path(self, mock_run, temp_dir, alignment_file):
        tree = temp_dir / "species.tre"
        tree.write_text("((A,B),(C,D));\n")

        kpower(alignment_file, k_max=2, fixed_tree=str(tree))

        config = mock_run.call_args[0][0]
        assert config.model.tree_mode == "fixed"
        assert str(config.model.fixed_tree) == str(tree)

    def test_unknown_option(self, alignment_file):
        with pytest.raises(TypeError, match="colour"):
            kpower(alignment_file, k_max=2, colour="blue")

    def test_no_usable_replicates(self, temp_dir, alignment_file, fake_iqtree, clean_fake_env):
        clean_fake_env.setenv("FAKE_FAIL_ON", "simulations/sim_")

        result = kpower(alignment_file, k_max=2, B=3, outdir=temp_dir / "run",
                        iqtree_bin=str(fake_iqtree), make_plot=False)

        assert math.isnan(result.power)
        assert result.failed_replicates == [1, 2, 3]
        assert "Power    : NaN" in result.summary()

    def test_figure_written(self, temp_dir, alignment_file, fake_iqtree, clean_fake_env):
        pytest.importorskip("matplotlib")
        pytest.importorskip("seaborn")

        result = kpower(alignment_file, k_max=3, B=2, outdir=temp_dir / "run",
                        iqtree_bin=str(fake_iqtree))

        assert result.figure_path == temp_dir / "run" / "kpower_ic_profile.png"
        assert result.figure_path.exists()
