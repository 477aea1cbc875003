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
Android packaging: jniLibs layout, Gradle assembly and APK resolution.

Output layout under {output_dir}/android:
    app/src/main/jniLibs/{abi}/lib{module}.so
    app/src/main/java/...                     (generated Kotlin bindings)
    app/build/outputs/apk/{variant}/*.apk
    app/build/outputs/apk/androidTest/{variant}/*.apk
"""

import json
import time
from pathlib import Path
from typing import List

from mobench.build_scripts.build_utils import BuildContext
from mobench.build_scripts.models import BindingSet, CompiledArtifact
from mobench.build_scripts.scaffold import ensure_android_project
from mobench.build_scripts.targets import ANDROID_TARGETS
from mobench.build_scripts.workspace import Workspace
from mobench.errors import MissingArtifact, PackagingError

OUTPUT_METADATA = "output-metadata.json"


def jni_libs_dir(android_dir: Path) -> Path:
    return android_dir / "app" / "src" / "main" / "jniLibs"


def apk_output_dir(android_dir: Path, variant: str, android_test=False) -> Path:
    apk_dir = android_dir / "app" / "build" / "outputs" / "apk"
    if android_test:
        return apk_dir / "androidTest" / variant
    return apk_dir / variant


def gradle_command(android_dir: Path) -> list:
    wrapper = android_dir / "gradlew"
    if wrapper.is_file():
        return ["./gradlew"]
    return ["gradle"]


def read_output_metadata(metadata_path: Path) -> str:
    """First elements[].outputFile of a Gradle output-metadata.json."""
    try:
        with open(metadata_path, "r", encoding="utf-8") as f:
            metadata = json.load(f)
    except ValueError as e:
        raise PackagingError("resolve-apk", f"{metadata_path} is not valid JSON: {e}")
    elements = metadata.get("elements") if isinstance(metadata, dict) else None
    for element in elements or []:
        output_file = element.get("outputFile") if isinstance(element, dict) else None
        if output_file:
            return output_file
    raise PackagingError("resolve-apk", f"{metadata_path} lists no outputFile")


def resolve_apk(ctx: BuildContext, apk_dir: Path) -> Path:
    """
    Locate the APK Gradle produced in apk_dir.

    The file named by output-metadata.json is used verbatim. Without the
    metadata file a directory scan must find exactly one .apk, and that
    fallback is recorded in the diagnostics.

    Raises:
        PackagingError: when no single APK can be identified
    """
    metadata_path = apk_dir / OUTPUT_METADATA
    if metadata_path.is_file():
        apk_path = apk_dir / read_output_metadata(metadata_path)
        if not apk_path.is_file():
            raise PackagingError(
                "resolve-apk", f"{metadata_path} names {apk_path.name}, which does not exist"
            )
        return apk_path

    apks = sorted(apk_dir.glob("*.apk")) if apk_dir.is_dir() else []
    if len(apks) == 1:
        ctx.note(f"{metadata_path} missing, resolved APK by directory scan: {apks[0]}")
        return apks[0]
    found = ", ".join(p.name for p in apks) or "none"
    raise PackagingError(
        "resolve-apk",
        f"{metadata_path} missing and directory scan found {len(apks)} APKs ({found})",
    )


class AndroidBuilder:
    def __init__(self, ctx: BuildContext):
        self.ctx = ctx
        self.android_dir = ctx.output_dir / "android"

    def install_bindings(self, bindings: BindingSet):
        java_dir = self.android_dir / "app" / "src" / "main" / "java"
        if self.ctx.dry_run:
            self.ctx.copy_tree(bindings.staging_dir, java_dir)
            return
        for source in bindings.sources:
            self.ctx.copy_file(source, java_dir / source.relative_to(bindings.staging_dir))
        self.ctx.debug(f"copied {len(bindings.sources)} Kotlin sources to {java_dir}")

    def install_native_libs(self, workspace: Workspace, artifacts: List[CompiledArtifact]) -> List[Path]:
        """
        Copy one library per required ABI into jniLibs.

        Raises:
            MissingArtifact: a required ABI has no library and
                allow_partial_abis is off
        """
        jni_dir = jni_libs_dir(self.android_dir)
        self.ctx.remove_tree(jni_dir)
        by_triple = {a.target.triple: a for a in artifacts}
        installed = []
        for target in ANDROID_TARGETS:
            artifact = by_triple.get(target.triple)
            expected = (
                artifact.path
                if artifact
                else workspace.library_output_dir(target.triple, self.ctx.config.profile)
                / target.library_file_name(workspace.module_name)
            )
            if artifact is None or (not self.ctx.dry_run and not expected.is_file()):
                if self.ctx.config.allow_partial_abis:
                    self.ctx.warn(f"skipping ABI {target.label}: {expected} not found")
                    continue
                raise MissingArtifact(
                    expected, hint="Pass --allow-partial-abis to build without this ABI"
                )
            dst = jni_dir / target.label / target.library_file_name(workspace.module_name)
            self.ctx.copy_file(expected, dst)
            self.ctx.debug(f"{target.label}: {dst}")
            installed.append(dst)
        return installed

    def run_gradle(self, task: str, stage: str):
        profile = self.ctx.config.profile
        cmd = gradle_command(self.android_dir) + [
            task,
            f"-Pmobench.testBuildType={profile.value}",
        ]
        if not self.ctx.verbose:
            cmd.append("--quiet")
        output = self.ctx.run(cmd, cwd=self.android_dir)
        if output.tool_missing:
            raise PackagingError(
                stage,
                "gradle not found. Install Gradle or add a Gradle wrapper (gradlew) "
                f"to {self.android_dir}",
            )
        if not output.is_success():
            raise PackagingError(stage, f"{task} failed:\n{output.output}")

    def package(self, workspace: Workspace, artifacts: List[CompiledArtifact], bindings: BindingSet) -> List[Path]:
        """
        Turn compiled libraries and Kotlin bindings into app and test APKs.

        Returns:
            list: [app_apk, android_test_apk]
        """
        before_time = time.time()
        profile = self.ctx.config.profile
        variant = profile.value

        ensure_android_project(self.ctx, workspace)
        self.install_bindings(bindings)
        self.install_native_libs(workspace, artifacts)

        self.ctx.log(f"  Running Gradle assemble{profile.variant}")
        self.run_gradle(f"assemble{profile.variant}", "gradle-assemble")
        self.run_gradle(f"assemble{profile.variant}AndroidTest", "gradle-assemble-android-test")

        app_dir = apk_output_dir(self.android_dir, variant)
        test_dir = apk_output_dir(self.android_dir, variant, android_test=True)
        if self.ctx.dry_run:
            return [app_dir / f"app-{variant}.apk", test_dir / f"app-{variant}-androidTest.apk"]

        app_apk = resolve_apk(self.ctx, app_dir)
        test_apk = resolve_apk(self.ctx, test_dir)
        for apk in (app_apk, test_apk):
            if apk.stat().st_size == 0:
                raise PackagingError("resolve-apk", f"{apk} is empty")
        print("==================Output========================")
        print(app_apk)
        print(test_apk)
        print(f"use time: {int(time.time() - before_time)} s")
        return [app_apk, test_apk]
