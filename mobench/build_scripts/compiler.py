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
Drive the Rust toolchain once per target triple.

Triples are compiled on a bounded thread pool. Every future is joined before
returning, and on failure the error of the first failing triple in matrix
order is raised so a partial artifact set never reaches the packagers.
"""

import multiprocessing
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List

from mobench.build_scripts.build_utils import BuildContext
from mobench.build_scripts.models import (
    BuildProfile,
    CompiledArtifact,
    Platform,
    TargetSpec,
)
from mobench.build_scripts.targets import get_targets
from mobench.build_scripts.workspace import Workspace
from mobench.errors import MissingArtifact, ToolchainInvocationFailed


def compile_command(platform: Platform, target: TargetSpec, profile: BuildProfile, min_sdk: int) -> list:
    if platform is Platform.ANDROID:
        cmd = [
            "cargo", "ndk",
            "--target", target.triple,
            "--platform", str(min_sdk),
            "build", "--lib",
        ]
    else:
        cmd = ["cargo", "build", "--target", target.triple, "--lib"]
    if profile is BuildProfile.RELEASE:
        cmd.append("--release")
    return cmd


def check_toolchain(ctx: BuildContext, platform: Platform, targets):
    """
    Fail early with an install hint when a toolchain piece is missing.

    Raises:
        ToolchainInvocationFailed: for the first target the toolchain cannot build
    """
    if ctx.dry_run:
        return
    if platform is Platform.ANDROID:
        output = ctx.probe(["cargo", "ndk", "--version"])
        if not output.is_success():
            raise ToolchainInvocationFailed(
                targets[0].triple,
                output.returncode,
                output.output,
                hint="cargo-ndk is required. Install it with: cargo install cargo-ndk",
            )
        return

    output = ctx.probe(["rustup", "target", "list", "--installed"])
    if not output.is_success():
        ctx.note("could not list installed rustup targets, skipping target check")
        return
    installed = set(output.stdout.split())
    for target in targets:
        if target.triple not in installed:
            raise ToolchainInvocationFailed(
                target.triple,
                1,
                f"Rust target {target.triple} is not installed",
                hint=f"Install it with: rustup target add {target.triple}",
            )


def compile_target(ctx: BuildContext, workspace: Workspace, platform: Platform, target: TargetSpec) -> CompiledArtifact:
    config = ctx.config
    cmd = compile_command(platform, target, config.profile, config.android_min_sdk)
    before_time = time.time()
    ctx.log(f"  Building {target.triple} ({target.label})")
    output = ctx.run(cmd, cwd=workspace.crate_dir)
    if not output.is_success():
        hint = None
        if output.tool_missing:
            hint = "cargo was not found on PATH. Install Rust from https://rustup.rs"
        elif output.timed_out:
            hint = f"The build exceeded the {config.tool_timeout}s tool timeout"
        raise ToolchainInvocationFailed(
            target.triple, output.returncode, output.stderr or output.stdout, hint=hint
        )

    lib_path = workspace.library_output_dir(target.triple, config.profile) / target.library_file_name(
        workspace.module_name
    )
    if ctx.dry_run:
        return CompiledArtifact(target, lib_path, 0)
    if not lib_path.is_file():
        if platform is Platform.ANDROID and config.allow_partial_abis:
            ctx.warn(f"{target.triple} produced no library at {lib_path}, ABI {target.label} will be skipped")
            return None
        raise MissingArtifact(
            lib_path,
            hint="Make sure the crate's [lib] crate-type includes "
            + ("cdylib" if target.library_extension == "so" else "staticlib"),
        )
    ctx.debug(f"{target.triple} done in {int(time.time() - before_time)} s: {lib_path}")
    return CompiledArtifact(target, lib_path, lib_path.stat().st_size)


def compile_targets(ctx: BuildContext, workspace: Workspace, platform: Platform, targets=None) -> List[CompiledArtifact]:
    """
    Compile every triple of a platform.

    Args:
        ctx: Build context of the platform
        workspace: Resolved workspace
        platform: Platform.ANDROID or Platform.IOS
        targets: Override of the compile matrix, defaults to get_targets(platform)

    Returns:
        list: CompiledArtifact per triple, in matrix order. With
            allow_partial_abis, Android triples that produced no library are
            left out and reported as warnings

    Raises:
        ToolchainInvocationFailed: first failure in matrix order
        MissingArtifact: a tool exited 0 without producing the library
    """
    targets = tuple(targets or get_targets(platform))
    check_toolchain(ctx, platform, targets)

    workers = max(1, min(ctx.config.resolved_jobs, multiprocessing.cpu_count(), len(targets)))
    ctx.log(f"main archs: {[t.triple for t in targets]}, jobs: {workers}")

    results = {}
    errors = {}
    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_target = {
            executor.submit(compile_target, ctx, workspace, platform, target): target
            for target in targets
        }
        for future in as_completed(future_to_target):
            target = future_to_target[future]
            try:
                results[target.triple] = future.result()
            except (ToolchainInvocationFailed, MissingArtifact) as e:
                print(f"!!!!!!!!!!!build {target.triple} fail!!!!!!!!!!!!!!!")
                errors[target.triple] = e

    for target in targets:
        if target.triple in errors:
            raise errors[target.triple]
    return [results[t.triple] for t in targets if results[t.triple] is not None]
