#
# Copyright 2024 mobench Project Authors. All rights reserved.
# Use of this source code is governed by a MIT-style
# license that can be found at
#
# https://opensource.org/license/MIT
#
# The above copyright notice and this permission
# notice shall be included in all copies or
# substantial portions of the Software.

import argparse
import time
from pathlib import Path

from mobench.build_scripts.models import BuildProfile, Platform, SigningMethod
from mobench.build_scripts.orchestrator import BuildOrchestrator, write_bench_spec
from mobench.errors import ConfigError
from mobench.utils.config import load_config
from mobench.utils.context.command import CliCommand
from mobench.utils.context.context import CliContext
from mobench.utils.context.namespace import CliNameSpace
from mobench.utils.context.result import CliResult


def non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{value}'")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {number}")
    return number


class Build(CliCommand):
    def description(self) -> str:
        return """Build benchmark artifacts for Android and/or iOS.

Pipeline per platform: resolve workspace -> compile every target triple
-> generate UniFFI bindings -> package.

SUPPORTED PLATFORMS:
    android     arm64-v8a, armeabi-v7a, x86_64 libraries, app APK + androidTest APK
    ios         ios-arm64 and ios-simulator-arm64 slices in an xcframework
    both        android then ios; a failure of one does not stop the other

EXAMPLES:
    mobench build android
    mobench build ios --release --package
    mobench build both --crate-dir crates/my-bench -j 2
    mobench build android --function my_bench::fib --iterations 50 --warmup 5
    mobench build ios --dry-run -v

CONFIGURATION:
    Values are read from mobench.toml in the project root (see --config).
    Command line flags override the file.

REQUIREMENTS:
    Android:    cargo-ndk, ANDROID_NDK_HOME, Gradle or a Gradle wrapper
    iOS:        Xcode, rustup targets aarch64-apple-ios and aarch64-apple-ios-sim,
                xcodegen (optional)
    Both:       uniffi-bindgen on PATH
        """

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="mobench build",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
        )
        parser.add_argument(
            "target",
            metavar="[android, ios, both]",
            type=str,
            choices=[p.value for p in Platform],
        )
        parser.add_argument(
            "--release",
            action="store_true",
            default=None,
            help="build in release mode (default: debug)",
        )
        parser.add_argument(
            "--project-root",
            type=str,
            default=None,
            help="project root directory (default: current directory)",
        )
        parser.add_argument(
            "--config",
            type=str,
            default=None,
            help="path of the config file (default: <project-root>/mobench.toml)",
        )
        parser.add_argument(
            "--output-dir",
            type=str,
            default=None,
            help="output directory (default: <project-root>/target/mobench)",
        )
        parser.add_argument(
            "--crate",
            dest="crate_name",
            type=str,
            default=None,
            help="benchmark crate name, enables the crates/<name> lookup",
        )
        parser.add_argument(
            "--crate-dir",
            type=str,
            default=None,
            help="explicit benchmark crate directory",
        )
        parser.add_argument(
            "-j", "--jobs",
            type=int,
            default=None,
            help="number of parallel compile jobs (default: CPU count)",
        )
        parser.add_argument(
            "--allow-partial-abis",
            action="store_true",
            default=None,
            help="skip Android ABIs whose library is missing instead of failing",
        )
        parser.add_argument(
            "--package",
            action="store_true",
            help="iOS: also produce the IPA and the XCUITest runner archive",
        )
        parser.add_argument(
            "--signing",
            choices=[m.value for m in SigningMethod],
            default=None,
            help="iOS signing method for --package (default: adhoc)",
        )
        parser.add_argument(
            "--scheme",
            type=str,
            default=None,
            help="Xcode scheme of the iOS host app (default: BenchRunner)",
        )
        parser.add_argument(
            "--min-sdk",
            type=int,
            default=None,
            help="Android minimum SDK passed to cargo-ndk (default: 24)",
        )
        parser.add_argument(
            "--timeout",
            type=int,
            default=None,
            help="timeout in seconds of each external tool call (default: 10800)",
        )
        parser.add_argument(
            "--function",
            type=str,
            default=None,
            help="benchmark function written to bench_spec.json",
        )
        parser.add_argument("--iterations", type=non_negative_int, default=None, help="benchmark iterations")
        parser.add_argument("--warmup", type=non_negative_int, default=None, help="benchmark warmup iterations")
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="print every tool call and file write without executing it",
        )
        parser.add_argument("-v", "--verbose", action="store_true", help="verbose output")
        return parser.parse_args(argv, namespace=CliNameSpace())

    def _print_build_time(self, start_time: float):
        elapsed = time.time() - start_time
        if elapsed < 60:
            print(f"\nBuild completed in {elapsed:.2f} seconds")
        else:
            minutes = int(elapsed // 60)
            seconds = elapsed % 60
            print(f"\nBuild completed in {minutes} min {seconds:.1f} sec")

    def _print_summary(self, results):
        print("\n==================Build Summary========================")
        for result in results:
            status = "SUCCEEDED" if result.is_success() else "FAILED"
            dry = " (dry-run)" if result.dry_run else ""
            print(f"{result.platform.display_name}: {status}{dry}")
            for artifact in result.artifacts:
                print(f"    {artifact}")
            for message in result.diagnostics:
                print(f"    note: {message}")
            if result.is_failure():
                print(f"    error: {result.get_error()}")
        print("=======================================================")

    def exec(self, context: CliContext, args: CliNameSpace) -> CliResult:
        start_time = time.time()
        project_root = Path(args.project_root).resolve() if args.project_root else context.project_root
        try:
            file_config = load_config(project_root, args.config)
        except ConfigError as e:
            print(f"ERROR: {e}")
            return CliResult(error=e)

        platform = Platform(args.target)
        config = file_config.to_build_config(
            project_root,
            platform,
            profile=BuildProfile.RELEASE if args.release else None,
            output_dir=Path(args.output_dir).resolve() if args.output_dir else None,
            crate_name=args.crate_name,
            crate_dir=Path(args.crate_dir) if args.crate_dir else None,
            jobs=args.jobs,
            allow_partial_abis=args.allow_partial_abis,
            package_archives=args.package or None,
            signing_method=SigningMethod(args.signing) if args.signing else None,
            scheme=args.scheme,
            android_min_sdk=args.min_sdk,
            tool_timeout=args.timeout,
            verbose=args.verbose or None,
            dry_run=args.dry_run or None,
        )

        bench = file_config.benchmark
        function = args.function or bench.function
        if function and not config.dry_run:
            written = write_bench_spec(
                config.resolved_output_dir,
                platform,
                function,
                args.iterations if args.iterations is not None else bench.iterations,
                args.warmup if args.warmup is not None else bench.warmup,
                scheme=config.scheme,
            )
            for path in written:
                print(f"bench spec: {path}")

        results = BuildOrchestrator(config, runner=context.runner).run()
        self._print_summary(results)
        self._print_build_time(start_time)
        return CliResult.from_build_results(results)
