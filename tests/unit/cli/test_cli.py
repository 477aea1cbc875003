"""Unit tests for command line dispatch and exit codes."""

import json

import pytest

from mobench.cli import Cli, main
from mobench.errors import ConfigError, ToolchainInvocationFailed
from mobench.utils.context.context import CliContext


@pytest.fixture
def run_cli(bench_project, fake_toolchain):
    def _run(*argv):
        context = CliContext(bench_project)
        context.runner = fake_toolchain
        cmd = Cli()
        return cmd.exec(context, cmd.cli(list(argv)))

    return _run


class TestDispatch:
    def test_command_list(self):
        assert Cli().get_command_list() == ["build", "package"]

    def test_rest_keeps_subcommand_arguments(self):
        args = Cli().cli(["build", "android", "--release", "--scheme", "Perf"])
        assert args.subcommand == "build"
        assert args.rest == ["android", "--release", "--scheme", "Perf"]

    def test_no_command_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            Cli().exec(CliContext(), Cli().cli([]))
        assert exc_info.value.code == 2

    def test_unknown_target_rejected(self):
        with pytest.raises(SystemExit):
            Cli().exec(CliContext(), Cli().cli(["build", "windows"]))


class TestBuildCommand:
    def test_android_success(self, run_cli, bench_project):
        result = run_cli("build", "android")
        assert result.exit_code == 0
        (build,) = result.get_value()
        assert build.artifacts[0].name == "app-debug.apk"
        assert bench_project / "target" / "mobench" in build.artifacts[0].parents

    def test_release_both(self, run_cli, fake_toolchain):
        result = run_cli("build", "both", "--release", "-j", "1")
        assert result.exit_code == 0
        assert [r.profile.value for r in result.get_value()] == ["release", "release"]
        assert all("--release" in c for c in fake_toolchain.commands("cargo") if "--target" in c)

    def test_failure_sets_exit_code(self, run_cli, fake_toolchain):
        fake_toolchain.fail_triples = {"aarch64-apple-ios"}
        result = run_cli("build", "both")
        assert result.exit_code == 1
        assert isinstance(result.get_error(), ToolchainInvocationFailed)
        android, ios = result.value
        assert android.is_success()
        assert ios.is_failure()

    def test_bench_spec_from_flags(self, run_cli, bench_project):
        result = run_cli(
            "build", "android", "--function", "bench_mobile::fibonacci", "--iterations", "7"
        )
        assert result.exit_code == 0
        spec_path = bench_project / "target/mobench/android/app/src/main/assets/bench_spec.json"
        assert json.loads(spec_path.read_text()) == {
            "function": "bench_mobile::fibonacci",
            "iterations": 7,
            "warmup": 3,
        }

    @pytest.mark.parametrize("flag", ["--iterations", "--warmup"])
    def test_negative_benchmark_counts_rejected(self, run_cli, fake_toolchain, flag):
        with pytest.raises(SystemExit) as exc_info:
            run_cli("build", "android", flag, "-1")
        assert exc_info.value.code == 2
        assert fake_toolchain.calls == []

    def test_config_file_values(self, run_cli, bench_project):
        (bench_project / "mobench.toml").write_text(
            '[project]\noutput_dir = "out"\n\n[build]\nprofile = "release"\n'
        )
        result = run_cli("build", "android")
        (build,) = result.get_value()
        assert build.artifacts[0].name == "app-release.apk"
        assert bench_project / "out" in build.artifacts[0].parents

    def test_invalid_config(self, run_cli, bench_project):
        (bench_project / "mobench.toml").write_text('[build]\nprofile = "fast"\n')
        result = run_cli("build", "android")
        assert result.exit_code == 1
        assert isinstance(result.get_error(), ConfigError)

    def test_main_dry_run(self, bench_project, monkeypatch):
        monkeypatch.chdir(bench_project)
        assert main(["build", "android", "--dry-run"]) == 0
        assert not (bench_project / "target" / "mobench").exists()


class TestPackageCommand:
    def test_ipa_and_xcuitest(self, run_cli, bench_project):
        result = run_cli("package", "all")
        assert result.exit_code == 0
        ipa, uitests = result.get_value()
        ios_dir = bench_project / "target" / "mobench" / "ios"
        assert ipa == ios_dir / "BenchRunner.ipa"
        assert uitests == ios_dir / "BenchRunnerUITests.zip"
        assert ipa.is_file() and uitests.is_file()

    def test_missing_build_fails(self, run_cli, fake_toolchain):
        fake_toolchain.missing_tools = {"xcodebuild"}
        result = run_cli("package", "ipa")
        assert result.exit_code == 1
