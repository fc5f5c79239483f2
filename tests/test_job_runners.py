"""
Tests for the external tool runner and the RAxML job runners.

Process creation is mocked; no external program is executed.
"""

import math
import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from perpetualtree.analysis.external_tools import ExternalToolRunner
from perpetualtree.analysis.job_base import JobOptions, parse_score, options_summary
from perpetualtree.analysis.raxml_jobs import (
    ParsimonyStarterJob, NNIRefinementJob, GammaScoringJob, GammaSearchJob
)
from perpetualtree.core.constants import GAMMA_SCORE_MARKER, SEARCH_SCORE_MARKER
from perpetualtree.exceptions import (
    ToolNotFoundError, ToolExecutionError, ToolTimeoutError, ScoreNotFoundError,
    FileOperationError,
)


@pytest.fixture
def options(temp_dir, alignment_file):
    outdir = temp_dir / "ml_trees"
    return JobOptions(alignment=alignment_file, outdir=outdir, name="refine_r0_c000_s123",
                      stdout=outdir / "info_refine_r0_c000_s123",
                      stderr=outdir / "err_refine_r0_c000_s123")


class TestExternalToolRunner:

    @patch('perpetualtree.analysis.external_tools.subprocess.Popen')
    def test_successful_run(self, mock_popen, temp_dir):
        process = Mock()
        process.wait.return_value = 0
        process.returncode = 0
        mock_popen.return_value = process

        result = ExternalToolRunner().run(["raxmlHPC", "-v"], temp_dir,
                                          temp_dir / "out", temp_dir / "err")

        assert result.returncode == 0
        assert result.args == ["raxmlHPC", "-v"]
        assert mock_popen.call_args.kwargs['cwd'] == str(temp_dir)
        assert (temp_dir / "out").exists()

    @patch('perpetualtree.analysis.external_tools.subprocess.Popen')
    def test_nonzero_exit(self, mock_popen, temp_dir):
        process = Mock()
        process.returncode = 3
        mock_popen.return_value = process

        with pytest.raises(ToolExecutionError) as exc_info:
            ExternalToolRunner().run(["raxmlHPC"], temp_dir, temp_dir / "out", temp_dir / "err",
                                     tool_name="RAxML")

        assert exc_info.value.returncode == 3
        assert "exit code 3" in str(exc_info.value)

    @patch('perpetualtree.analysis.external_tools.subprocess.Popen')
    def test_missing_executable(self, mock_popen, temp_dir):
        mock_popen.side_effect = FileNotFoundError("raxmlHPC")

        with pytest.raises(ToolNotFoundError):
            ExternalToolRunner().run(["raxmlHPC"], temp_dir, temp_dir / "out", temp_dir / "err")

    @patch('perpetualtree.analysis.external_tools.subprocess.Popen')
    def test_timeout_kills_process(self, mock_popen, temp_dir):
        process = Mock()
        process.wait.side_effect = [subprocess.TimeoutExpired("raxmlHPC", 5), None]
        mock_popen.return_value = process

        with pytest.raises(ToolTimeoutError) as exc_info:
            ExternalToolRunner().run(["raxmlHPC"], temp_dir, temp_dir / "out", temp_dir / "err",
                                     timeout_sec=5)

        process.kill.assert_called_once()
        assert exc_info.value.timeout == 5


class TestParseScore:

    def test_first_matching_line(self, temp_dir):
        stream = temp_dir / "RAxML_info.x"
        stream.write_text(f"header\n{GAMMA_SCORE_MARKER} -5000.125\n{GAMMA_SCORE_MARKER} -1.0\n")

        assert parse_score(stream, GAMMA_SCORE_MARKER) == -5000.125

    def test_search_marker_with_leading_whitespace(self, temp_dir):
        stream = temp_dir / "info"
        stream.write_text(f"   {SEARCH_SCORE_MARKER} -4321.5\n")

        assert parse_score(stream, SEARCH_SCORE_MARKER) == -4321.5

    def test_no_marker(self, temp_dir):
        stream = temp_dir / "info"
        stream.write_text("nothing here\n")
        with pytest.raises(ScoreNotFoundError):
            parse_score(stream, GAMMA_SCORE_MARKER)

    def test_missing_stream(self, temp_dir):
        with pytest.raises(ScoreNotFoundError):
            parse_score(temp_dir / "absent", GAMMA_SCORE_MARKER)

    def test_unparsable_value(self, temp_dir):
        stream = temp_dir / "info"
        stream.write_text(f"{GAMMA_SCORE_MARKER} n/a\n")
        with pytest.raises(ScoreNotFoundError):
            parse_score(stream, GAMMA_SCORE_MARKER)

    def test_nan_likelihood_rejected(self, options):
        options.outdir.mkdir(parents=True)
        job = GammaScoringJob()
        job.score_stream(options).write_text(f"{GAMMA_SCORE_MARKER} nan\n")

        assert math.isnan(parse_score(job.score_stream(options), GAMMA_SCORE_MARKER))
        with pytest.raises(ScoreNotFoundError):
            job.likelihood(options)


class TestJobCommands:

    def test_parsimony_command(self, options, temp_dir):
        options.seed = 100123
        options.starting_tree = temp_dir / "prev_best_tree_000.nw"

        command = ParsimonyStarterJob().build_command(options)

        assert command[0] == "parsimonator"
        assert command[command.index("-N") + 1] == "1"
        assert command[command.index("-p") + 1] == "100123"
        assert command[command.index("-t") + 1] == str(options.starting_tree)
        assert ParsimonyStarterJob().result_path(options).name == \
            "RAxML_parsimonyTree.refine_r0_c000_s123.0"

    def test_refinement_command(self, options, partition_file):
        options.partition_file = partition_file
        options.num_threads = 4

        command = NNIRefinementJob().build_command(options)

        assert command[:3] == ["raxmlLight", "-m", "GTRCAT"]
        assert command[command.index("-q") + 1] == str(partition_file)
        assert command[command.index("-T") + 1] == "4"
        assert command.count("-D") == 1
        assert NNIRefinementJob().result_path(options).name == "RAxML_result.refine_r0_c000_s123"

    def test_refinement_convergence_flag_not_duplicated(self, options):
        options.flags = ["-D"]
        assert NNIRefinementJob().build_command(options).count("-D") == 1

    def test_scoring_command(self, options):
        command = GammaScoringJob().build_command(options)

        assert command[:5] == ["raxmlHPC", "-f", "e", "-m", "GTRGAMMA"]
        assert GammaScoringJob().score_stream(options).name == "RAxML_info.refine_r0_c000_s123"

    def test_search_command(self, options):
        options.num_trees = 10
        options.seed = 123

        command = GammaSearchJob().build_command(options)

        assert command[command.index("-N") + 1] == "10"
        assert GammaSearchJob().score_stream(options) == Path(options.stdout)

    def test_relative_inputs_made_absolute(self, temp_dir, alignment_file, partition_file,
                                           monkeypatch):
        monkeypatch.chdir(temp_dir)
        options = JobOptions(alignment=Path("alignment.phy"), outdir=Path("ml_trees"),
                             name="refine_r0_c000_s123", stdout=Path("ml_trees/info"),
                             stderr=Path("ml_trees/err"), partition_file=Path("partitions.txt"),
                             starting_tree=Path("start.nw"))

        for job in (ParsimonyStarterJob(), NNIRefinementJob(), GammaScoringJob()):
            command = job.build_command(options)
            assert command[command.index("-s") + 1] == str(Path.cwd() / "alignment.phy")
            assert command[command.index("-t") + 1] == str(Path.cwd() / "start.nw")
        command = NNIRefinementJob().build_command(options)
        assert command[command.index("-q") + 1] == str(Path.cwd() / "partitions.txt")

    def test_run_requires_result_artifact(self, options):
        runner = Mock()
        runner.run.return_value = Mock(returncode=0, execution_time=0.1)

        with pytest.raises(ToolExecutionError):
            NNIRefinementJob(external_runner=runner).run(options)

    def test_run_returns_result(self, options):
        def fake_run(command, cwd, stdout_path, stderr_path, timeout_sec=None, tool_name=None):
            (Path(cwd) / "RAxML_result.refine_r0_c000_s123").write_text("(a,b,(c,d));\n")
            return Mock(returncode=0, execution_time=0.5)

        runner = Mock()
        runner.run.side_effect = fake_run
        job = NNIRefinementJob(external_runner=runner, timeout_sec=60)

        result = job.run(options)

        assert result.result_path == options.outdir / "RAxML_result.refine_r0_c000_s123"
        assert result.execution_time == 0.5
        assert runner.run.call_args.kwargs['timeout_sec'] == 60
        assert runner.run.call_args.kwargs['tool_name'] == "RAxML-Light"

    def test_missing_starting_tree(self, options, temp_dir):
        options.starting_tree = temp_dir / "absent.nw"
        with pytest.raises(FileOperationError):
            NNIRefinementJob(external_runner=Mock()).run(options)


class TestJobOptions:

    def test_options_summary_skips_unset(self, options):
        summary = options_summary(options)
        assert 'seed' not in summary
        assert summary['name'] == "refine_r0_c000_s123"
