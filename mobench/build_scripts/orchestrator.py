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

"""
Sequence the pipeline stages for each requested platform.

Each platform goes through
    NOT_STARTED -> RESOLVING_WORKSPACE -> COMPILING -> GENERATING_BINDINGS
    -> PACKAGING -> DONE
and moves straight to FAILED on the first typed error. A failure of one
platform never affects the other when both are requested.
"""

import json
import time
from pathlib import Path
from typing import List

from mobench.build_scripts.bindings import generate_bindings
from mobench.build_scripts.build_android import AndroidBuilder
from mobench.build_scripts.build_ios import IosBuilder
from mobench.build_scripts.build_utils import BuildContext
from mobench.build_scripts.compiler import compile_targets
from mobench.build_scripts.models import (
    BuildConfig,
    BuildResult,
    BuildState,
    Outcome,
    Platform,
)
from mobench.build_scripts.workspace import resolve_workspace
from mobench.errors import MobenchError, PackagingError

PACKAGERS = {
    Platform.ANDROID: AndroidBuilder,
    Platform.IOS: IosBuilder,
}


def bench_spec_path(output_dir, platform: Platform, scheme="BenchRunner") -> Path:
    """Where the host app of a platform reads its bench_spec.json from."""
    output_dir = Path(output_dir)
    if platform is Platform.ANDROID:
        return output_dir / "android" / "app" / "src" / "main" / "assets" / "bench_spec.json"
    if platform is Platform.IOS:
        return output_dir / "ios" / scheme / scheme / "Resources" / "bench_spec.json"
    raise ValueError(f"no bench spec location for {platform.value}")


def write_bench_spec(output_dir, platform: Platform, function: str, iterations: int, warmup: int, scheme="BenchRunner") -> List[Path]:
    """Write bench_spec.json for every concrete platform of platform."""
    spec = {"function": function, "iterations": iterations, "warmup": warmup}
    written = []
    for target in platform.expand():
        path = bench_spec_path(output_dir, target, scheme)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(spec, indent=2) + "\n", encoding="utf-8")
        written.append(path)
    return written


class BuildOrchestrator:
    """
    Run the build pipeline for the platforms of a BuildConfig.

    Args:
        config: Immutable configuration of this invocation
        runner: Tool runner passed to every stage, defaults to
            cmd_util.exec_command
    """

    def __init__(self, config: BuildConfig, runner=None):
        self.config = config
        self.runner = runner

    def run(self) -> List[BuildResult]:
        return [self.build_platform(p) for p in self.config.platform.expand()]

    def build_platform(self, platform: Platform) -> BuildResult:
        ctx = BuildContext(self.config, self.runner)
        result = BuildResult(
            platform=platform,
            profile=self.config.profile,
            dry_run=self.config.dry_run,
        )
        result.states.append(BuildState.NOT_STARTED)

        def enter(state):
            result.state = state
            result.states.append(state)
            ctx.debug(f"[{platform.value}] {state.value}")

        before_time = time.time()
        print(
            f"=================={platform.display_name} Build "
            f"({self.config.profile.value})========================"
        )
        try:
            enter(BuildState.RESOLVING_WORKSPACE)
            workspace = resolve_workspace(
                self.config.project_root,
                crate_name=self.config.crate_name,
                crate_dir=self.config.crate_dir,
                runner=ctx.probe,
            )
            for message in workspace.diagnostics:
                ctx.note(message)
            ctx.log(f"  crate: {workspace.crate_name} ({workspace.crate_dir})")
            ctx.debug(f"target dir: {workspace.target_dir}")

            enter(BuildState.COMPILING)
            artifacts = compile_targets(ctx, workspace, platform)

            enter(BuildState.GENERATING_BINDINGS)
            bindings = generate_bindings(ctx, workspace, platform)

            enter(BuildState.PACKAGING)
            result.artifacts = PACKAGERS[platform](ctx).package(workspace, artifacts, bindings)
        except (MobenchError, OSError) as e:
            if not isinstance(e, MobenchError):
                # file system failures surface as a failure of the current stage
                e = PackagingError(result.state.value, f"{type(e).__name__}: {e}")
            enter(BuildState.FAILED)
            result.outcome = Outcome.FAILED
            result.error = e
            result.diagnostics = list(ctx.diagnostics)
            print(f"!!!!!!!!!!!{platform.display_name} build fail!!!!!!!!!!!!!!!")
            print(f"ERROR: {e}")
            return result

        enter(BuildState.DONE)
        result.outcome = Outcome.SUCCEEDED
        result.diagnostics = list(ctx.diagnostics)
        print(f"{platform.display_name} build succeeded, use time: {int(time.time() - before_time)} s")
        return result
