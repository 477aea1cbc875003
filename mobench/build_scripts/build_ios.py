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
iOS packaging: xcframework assembly, signing, IPA and UI-test archives.

Output layout under {output_dir}/ios:
    {Module}.xcframework/Info.plist
    {Module}.xcframework/{slice-id}/{Module}.framework/{Module}
    {Module}.xcframework/{slice-id}/{Module}.framework/Info.plist
    {Module}.xcframework/{slice-id}/{Module}.framework/Headers/{Module}FFI.h
    {Module}.xcframework/{slice-id}/{Module}.framework/Headers/module.modulemap
    include/{Module}.h
    {scheme}/{scheme}/Generated/*.swift
    {scheme}.ipa, {scheme}UITests.zip         (on demand)
"""

import plistlib
import re
import string
import time
import zipfile
from pathlib import Path
from typing import List

from mobench.build_scripts.build_utils import BuildContext, validate_archive_path, zip_directory
from mobench.build_scripts.models import (
    AggregateFramework,
    BindingSet,
    CompiledArtifact,
    FrameworkSlice,
    SigningMethod,
)
from mobench.build_scripts.scaffold import ensure_ios_project, sanitize_bundle_id_component
from mobench.build_scripts.workspace import Workspace
from mobench.errors import MissingArtifact, PackagingError, SigningFailed

MODULEMAP_TEMPLATE = string.Template(
    "framework module $module {\n"
    '  umbrella header "$header"\n'
    "  export *\n"
    "  module * { export * }\n"
    "}\n"
)

UNRESOLVED_TEMPLATE_VAR = re.compile(r"\$\{?[A-Za-z_][A-Za-z0-9_]*\}?")


def render_modulemap(module_name: str, header_name: str) -> str:
    text = MODULEMAP_TEMPLATE.safe_substitute(module=module_name, header=header_name)
    leftover = UNRESOLVED_TEMPLATE_VAR.search(text)
    if leftover:
        raise PackagingError("modulemap", f"unresolved placeholder {leftover.group(0)}")
    return text


def framework_bundle_id(bundle_prefix: str, crate_name: str) -> str:
    return f"{bundle_prefix}.{sanitize_bundle_id_component(crate_name)}.framework"


def app_bundle_id(bundle_prefix: str, crate_name: str, scheme: str) -> str:
    return f"{bundle_prefix}.{sanitize_bundle_id_component(crate_name)}.{scheme}"


def slice_info_plist(module_name: str, target, bundle_id: str, min_os: str) -> dict:
    return {
        "CFBundleDevelopmentRegion": "en",
        "CFBundleExecutable": module_name,
        "CFBundleIdentifier": bundle_id,
        "CFBundleInfoDictionaryVersion": "6.0",
        "CFBundleName": module_name,
        "CFBundlePackageType": "FMWK",
        "CFBundleShortVersionString": "0.1.0",
        "CFBundleVersion": "1",
        "CFBundleSupportedPlatforms": [target.platform_identifier],
        "MinimumOSVersion": min_os,
    }


def aggregate_info_plist(module_name: str, slices: List[FrameworkSlice]) -> dict:
    libraries = []
    for fw_slice in slices:
        target = fw_slice.target
        library = {
            "BinaryPath": f"{module_name}.framework/{module_name}",
            "LibraryIdentifier": target.label,
            "LibraryPath": f"{module_name}.framework",
            "SupportedArchitectures": list(target.architectures),
            "SupportedPlatform": target.manifest_platform,
        }
        if target.platform_variant:
            library["SupportedPlatformVariant"] = target.platform_variant
        libraries.append(library)
    return {
        "AvailableLibraries": libraries,
        "CFBundlePackageType": "XFWK",
        "XCFrameworkFormatVersion": "1.0",
    }


def verify_manifest(xcframework_path: Path, module_name: str):
    """
    Re-read an xcframework Info.plist and check it against the disk layout.

    Raises:
        PackagingError: when a LibraryPath differs from {Module}.framework or
            the directory it names is missing under its LibraryIdentifier
    """
    manifest_path = xcframework_path / "Info.plist"
    with open(manifest_path, "rb") as f:
        manifest = plistlib.load(f)
    expected = f"{module_name}.framework"
    libraries = manifest.get("AvailableLibraries") or []
    if not libraries:
        raise PackagingError("xcframework-manifest", f"{manifest_path} lists no libraries")
    for library in libraries:
        identifier = library.get("LibraryIdentifier")
        library_path = library.get("LibraryPath")
        if library_path != expected:
            raise PackagingError(
                "xcframework-manifest",
                f"LibraryPath {library_path!r} of {identifier} should be {expected!r}",
            )
        framework_dir = xcframework_path / identifier / library_path
        if not framework_dir.is_dir():
            raise PackagingError("xcframework-manifest", f"{framework_dir} does not exist")
        if not (framework_dir / module_name).is_file():
            raise PackagingError(
                "xcframework-manifest", f"{framework_dir} has no {module_name} binary"
            )


def check_slice_identifier(label: str):
    if not label or label in (".", "..") or "/" in label or "\\" in label:
        raise PackagingError("xcframework", f"invalid slice identifier {label!r}")


class IosBuilder:
    def __init__(self, ctx: BuildContext):
        self.ctx = ctx
        self.ios_dir = ctx.output_dir / "ios"

    @property
    def scheme(self) -> str:
        return self.ctx.config.scheme

    def xcframework_path(self, module_name: str) -> Path:
        return self.ios_dir / f"{module_name}.xcframework"

    def install_bindings(self, bindings: BindingSet):
        generated_dir = self.ios_dir / self.scheme / self.scheme / "Generated"
        self.ctx.remove_tree(generated_dir)
        if self.ctx.dry_run:
            self.ctx.copy_tree(bindings.staging_dir, generated_dir)
            return
        for source in bindings.sources:
            self.ctx.copy_file(source, generated_dir / source.name)

    def build_slice(self, xcframework: Path, workspace: Workspace, artifact: CompiledArtifact, header: Path) -> FrameworkSlice:
        module = workspace.module_name
        target = artifact.target
        check_slice_identifier(target.label)
        slice_dir = xcframework / target.label
        framework_dir = slice_dir / f"{module}.framework"
        headers_dir = framework_dir / "Headers"
        # the binary is named after the module, never after the slice
        binary_path = framework_dir / module
        header_name = f"{module}FFI.h"

        if not self.ctx.dry_run and not artifact.path.is_file():
            raise MissingArtifact(artifact.path)
        self.ctx.makedirs(headers_dir)
        self.ctx.copy_file(artifact.path, binary_path)
        self.ctx.copy_file(header, headers_dir / header_name)
        self.ctx.write_text(headers_dir / "module.modulemap", render_modulemap(module, header_name))
        info = slice_info_plist(
            module,
            target,
            framework_bundle_id(self.ctx.config.bundle_prefix, workspace.crate_name),
            self.ctx.config.ios_deployment_target,
        )
        self.ctx.write_bytes(framework_dir / "Info.plist", plistlib.dumps(info))
        self.ctx.debug(f"slice {target.label}: {binary_path}")
        return FrameworkSlice(target, slice_dir, framework_dir, binary_path, headers_dir)

    def assemble_xcframework(self, workspace: Workspace, artifacts: List[CompiledArtifact], header: Path) -> AggregateFramework:
        """
        Build {Module}.xcframework from one static library per slice.

        Any previous xcframework is removed first, so repeated builds produce
        the same layout.

        Raises:
            PackagingError: invalid or duplicate slice identifiers, or a
                manifest that does not match the disk layout
            MissingArtifact: a compiled library or the FFI header is gone
        """
        module = workspace.module_name
        xcframework = self.xcframework_path(module)
        labels = [a.target.label for a in artifacts]
        if len(set(labels)) != len(labels):
            raise PackagingError("xcframework", f"duplicate slice identifiers in {labels}")
        if not self.ctx.dry_run and (header is None or not Path(header).is_file()):
            raise MissingArtifact(header or f"{module}FFI.h")

        self.ctx.remove_tree(xcframework)
        slices = [self.build_slice(xcframework, workspace, a, header) for a in artifacts]
        manifest_path = xcframework / "Info.plist"
        self.ctx.write_bytes(manifest_path, plistlib.dumps(aggregate_info_plist(module, slices)))
        if not self.ctx.dry_run:
            verify_manifest(xcframework, module)
        return AggregateFramework(xcframework, module, slices, manifest_path)

    def sign(self, path: Path):
        """Ad-hoc sign path. Failure is recorded as a warning only."""
        output = self.ctx.run(["codesign", "--force", "--deep", "--sign", "-", str(path)])
        if output.is_success():
            self.ctx.debug(f"signed {path}")
            return
        detail = output.output or f"exit code {output.returncode}"
        if output.tool_missing:
            detail = "codesign not found, Xcode command line tools are required"
        self.ctx.warn(str(SigningFailed(f"{path}: {detail}")))

    def generate_xcode_project(self):
        project_dir = self.ios_dir / self.scheme
        if not self.ctx.dry_run and not (project_dir / "project.yml").is_file():
            self.ctx.debug("no project.yml found, skipping xcodegen")
            return
        output = self.ctx.run(["xcodegen", "generate"], cwd=project_dir)
        if output.tool_missing:
            self.ctx.warn("xcodegen not found, install it with: brew install xcodegen")
            return
        if not output.is_success():
            raise PackagingError("xcodegen", output.output or f"exit code {output.returncode}")

    def xcodebuild_command(self, scheme: str, action: str, method: SigningMethod) -> list:
        cmd = [
            "xcodebuild",
            "-project", str(self.ios_dir / scheme / f"{scheme}.xcodeproj"),
            "-scheme", scheme,
            "-destination", "generic/platform=iOS",
            "-configuration", self.ctx.config.profile.variant,
            "-derivedDataPath", str(self.ios_dir / "build"),
            action,
        ]
        if method is SigningMethod.ADHOC:
            cmd += ["CODE_SIGNING_REQUIRED=NO", "CODE_SIGNING_ALLOWED=NO"]
        else:
            cmd += ["CODE_SIGN_STYLE=Automatic", "-allowProvisioningUpdates"]
        return cmd

    def products_dir(self) -> Path:
        config = self.ctx.config.profile.variant
        return self.ios_dir / "build" / "Build" / "Products" / f"{config}-iphoneos"

    def run_xcodebuild(self, scheme: str, action: str, method: SigningMethod, stage: str):
        validate_archive_path(scheme)
        output = self.ctx.run(self.xcodebuild_command(scheme, action, method), cwd=self.ios_dir)
        if output.tool_missing:
            raise PackagingError(stage, "xcodebuild not found, Xcode is required")
        if not output.is_success():
            raise PackagingError(stage, output.output or f"exit code {output.returncode}")

    def package_ipa(self, scheme=None, method=None) -> Path:
        """
        Build the app and pack it as {scheme}.ipa.

        Args:
            scheme: Xcode scheme, defaults to the configured one
            method: SigningMethod, defaults to the configured one

        Returns:
            Path: the IPA, whose entries all live under Payload/{scheme}.app/

        Raises:
            PackagingError: xcodebuild failure, missing .app or bad archive layout
            ArchiveError: app paths the archiver cannot represent
        """
        scheme = scheme or self.scheme
        method = method or self.ctx.config.signing_method
        ipa_path = self.ios_dir / f"{scheme}.ipa"
        self.ctx.log(f"  Building {scheme}.ipa ({method.value})")
        self.run_xcodebuild(scheme, "build", method, "xcodebuild-app")

        app_path = self.products_dir() / f"{scheme}.app"
        if self.ctx.dry_run:
            print(f"  [dry-run] zip {app_path} -> {ipa_path} (Payload/{scheme}.app)")
            return ipa_path
        if not app_path.is_dir():
            raise PackagingError("xcodebuild-app", f"app bundle not found at {app_path}")
        self.sign(app_path)

        root = f"Payload/{scheme}.app"
        self.ctx.remove_tree(ipa_path)
        zip_directory(app_path, ipa_path, root)
        with zipfile.ZipFile(ipa_path) as zipf:
            names = zipf.namelist()
        for name in names:
            if name != "Payload/" and not name.startswith(f"{root}/"):
                raise PackagingError("ipa", f"unexpected entry {name!r} in {ipa_path}")
        return ipa_path

    def package_xcuitest(self, scheme=None) -> Path:
        """Build the UI-test runner and pack it as {scheme}UITests.zip."""
        scheme = scheme or self.scheme
        method = self.ctx.config.signing_method
        zip_path = self.ios_dir / f"{scheme}UITests.zip"
        self.ctx.log(f"  Building {scheme}UITests.zip")
        self.run_xcodebuild(scheme, "build-for-testing", method, "xcodebuild-uitests")

        runner_name = f"{scheme}UITests-Runner.app"
        runner_path = self.products_dir() / runner_name
        if self.ctx.dry_run:
            print(f"  [dry-run] zip {runner_path} -> {zip_path}")
            return zip_path
        if not runner_path.is_dir():
            raise PackagingError("xcodebuild-uitests", f"test runner not found at {runner_path}")
        self.ctx.remove_tree(zip_path)
        zip_directory(runner_path, zip_path, runner_name)
        return zip_path

    def package(self, workspace: Workspace, artifacts: List[CompiledArtifact], bindings: BindingSet) -> List[Path]:
        """
        Returns:
            list: [xcframework, header] plus [ipa, uitests_zip] when
                package_archives is set
        """
        before_time = time.time()
        module = workspace.module_name

        ensure_ios_project(self.ctx, workspace)
        self.install_bindings(bindings)
        framework = self.assemble_xcframework(workspace, artifacts, bindings.header)
        self.sign(framework.path)

        header_dst = self.ios_dir / "include" / f"{module}.h"
        self.ctx.copy_file(bindings.header, header_dst)
        self.generate_xcode_project()

        outputs = [framework.path, header_dst]
        if self.ctx.config.package_archives:
            outputs.append(self.package_ipa())
            outputs.append(self.package_xcuitest())

        print("==================Output========================")
        for output in outputs:
            print(output)
        print(f"use time: {int(time.time() - before_time)} s")
        return outputs
