"""
Shared fixtures for mobench tests.

FakeToolchain replaces every external tool (cargo, cargo-ndk, rustup,
uniffi-bindgen, gradle, codesign, xcodegen, xcodebuild). It records each
call and fabricates the files the real tool would produce, so the whole
pipeline runs inside tmp_path.
"""

import json
import plistlib
from pathlib import Path

import pytest

from mobench.build_scripts.build_utils import host_library_extension
from mobench.build_scripts.models import BuildConfig, BuildProfile, Platform
from mobench.utils.cmd.cmd_util import TOOL_NOT_FOUND_CODE, CommandOutput

INSTALLED_RUST_TARGETS = [
    "aarch64-apple-ios",
    "aarch64-apple-ios-sim",
    "aarch64-linux-android",
    "armv7-linux-androideabi",
    "x86_64-linux-android",
    "x86_64-unknown-linux-gnu",
]


def _option(args, name, default=None):
    if name in args:
        return args[args.index(name) + 1]
    return default


class FakeToolchain:
    def __init__(self, target_dir, module_name):
        self.target_dir = Path(target_dir)
        self.module_name = module_name
        self.calls = []
        self.fail_triples = set()
        self.missing_tools = set()
        self.metadata_fails = False
        self.gradle_fails = False
        self.codesign_fails = False
        self.skip_library_triples = set()
        self.write_apk_metadata = True
        self.app_apk_name = None
        self.test_apk_name = None
        self.installed_targets = list(INSTALLED_RUST_TARGETS)

    def commands(self, tool=None):
        return [args for args, _ in self.calls if tool is None or args[0] == tool]

    def __call__(self, command, cwd=None, env=None, timeout_second=None):
        args = [str(a) for a in command]
        self.calls.append((args, cwd))
        tool = args[0]
        if tool in self.missing_tools or (tool == "cargo" and len(args) > 1 and f"cargo-{args[1]}" in self.missing_tools):
            return CommandOutput(args, TOOL_NOT_FOUND_CODE, stderr=f"command not found: {tool}", tool_missing=True)
        handler = {
            "cargo": self._cargo,
            "rustup": self._rustup,
            "uniffi-bindgen": self._bindgen,
            "gradle": self._gradle,
            "./gradlew": self._gradle,
            "codesign": self._codesign,
            "xcodegen": self._xcodegen,
            "xcodebuild": self._xcodebuild,
        }.get(tool)
        if handler is None:
            return CommandOutput(args, TOOL_NOT_FOUND_CODE, tool_missing=True)
        return handler(args, Path(cwd) if cwd else None)

    # cargo

    def _cargo(self, args, cwd):
        if args[1] == "metadata":
            if self.metadata_fails:
                return CommandOutput(args, 101, stderr="error: could not find `Cargo.toml`")
            payload = {"packages": [], "target_directory": str(self.target_dir)}
            return CommandOutput(args, 0, stdout=json.dumps(payload))
        if args[1] == "ndk":
            if args[2] == "--version":
                return CommandOutput(args, 0, stdout="cargo-ndk 3.5.4")
            return self._compile(args, "so")
        if "--target" in args:
            return self._compile(args, "a")
        # host build for binding generation
        lib = self.target_dir / "debug" / f"lib{self.module_name}.{host_library_extension()}"
        lib.parent.mkdir(parents=True, exist_ok=True)
        lib.write_bytes(b"host-library")
        return CommandOutput(args, 0)

    def _compile(self, args, ext):
        triple = _option(args, "--target")
        if triple in self.fail_triples:
            return CommandOutput(args, 101, stderr=f"error: could not compile for {triple}")
        if triple not in self.skip_library_triples:
            profile = "release" if "--release" in args else "debug"
            lib = self.target_dir / triple / profile / f"lib{self.module_name}.{ext}"
            lib.parent.mkdir(parents=True, exist_ok=True)
            lib.write_bytes(f"{triple}-{ext}".encode())
        return CommandOutput(args, 0, stderr="Finished")

    def _rustup(self, args, cwd):
        return CommandOutput(args, 0, stdout="\n".join(self.installed_targets) + "\n")

    def _bindgen(self, args, cwd):
        out_dir = Path(_option(args, "--out-dir"))
        language = _option(args, "--language")
        module = self.module_name
        out_dir.mkdir(parents=True, exist_ok=True)
        if language == "kotlin":
            source = out_dir / "uniffi" / module / f"{module}.kt"
            source.parent.mkdir(parents=True, exist_ok=True)
            source.write_text(f"package uniffi.{module}\n")
        else:
            (out_dir / f"{module}.swift").write_text("import Foundation\n")
            (out_dir / f"{module}FFI.h").write_text("#pragma once\n")
            (out_dir / f"{module}FFI.modulemap").write_text(f"module {module}FFI {{}}\n")
        return CommandOutput(args, 0)

    # android

    def _gradle(self, args, cwd):
        if self.gradle_fails:
            return CommandOutput(args, 1, stderr="FAILURE: Build failed with an exception.")
        task = args[1]
        android_test = task.endswith("AndroidTest")
        variant = task[len("assemble"):]
        if android_test:
            variant = variant[: -len("AndroidTest")]
        variant = variant.lower()
        apk_dir = cwd / "app" / "build" / "outputs" / "apk"
        if android_test:
            apk_dir = apk_dir / "androidTest" / variant
            name = self.test_apk_name or f"app-{variant}-androidTest.apk"
        else:
            apk_dir = apk_dir / variant
            name = self.app_apk_name or f"app-{variant}.apk"
        apk_dir.mkdir(parents=True, exist_ok=True)
        (apk_dir / name).write_bytes(b"PK-apk")
        if self.write_apk_metadata:
            metadata = {
                "version": 3,
                "artifactType": {"type": "APK", "kind": "Directory"},
                "variantName": variant,
                "elements": [{"type": "SINGLE", "outputFile": name}],
            }
            (apk_dir / "output-metadata.json").write_text(json.dumps(metadata))
        return CommandOutput(args, 0)

    # ios

    def _codesign(self, args, cwd):
        if self.codesign_fails:
            return CommandOutput(args, 1, stderr="errSecInternalComponent")
        return CommandOutput(args, 0)

    def _xcodegen(self, args, cwd):
        (cwd / f"{cwd.name}.xcodeproj").mkdir(parents=True, exist_ok=True)
        return CommandOutput(args, 0)

    def _xcodebuild(self, args, cwd):
        scheme = _option(args, "-scheme")
        config = _option(args, "-configuration")
        products = Path(_option(args, "-derivedDataPath")) / "Build" / "Products" / f"{config}-iphoneos"
        if "build-for-testing" in args:
            bundle = products / f"{scheme}UITests-Runner.app"
            executable = f"{scheme}UITests-Runner"
        else:
            bundle = products / f"{scheme}.app"
            executable = scheme
        bundle.mkdir(parents=True, exist_ok=True)
        (bundle / executable).write_bytes(b"\xcf\xfa\xed\xfe")
        (bundle / "Info.plist").write_bytes(plistlib.dumps({"CFBundleExecutable": executable}))
        return CommandOutput(args, 0)


@pytest.fixture
def bench_project(tmp_path):
    """A project root holding a bench-mobile crate."""
    root = tmp_path / "project"
    crate = root / "bench-mobile"
    (crate / "src").mkdir(parents=True)
    (crate / "Cargo.toml").write_text(
        '[package]\nname = "bench-mobile"\nversion = "0.1.0"\nedition = "2021"\n\n'
        '[lib]\ncrate-type = ["cdylib", "staticlib", "lib"]\n'
    )
    (crate / "src" / "lib.rs").write_text(
        "use mobench_sdk::benchmark;\n\n#[benchmark]\npub fn fibonacci() {\n}\n"
    )
    return root


@pytest.fixture
def fake_toolchain(bench_project):
    return FakeToolchain(bench_project / "bench-mobile" / "target", "bench_mobile")


@pytest.fixture
def make_config(bench_project):
    def _make(platform=Platform.ANDROID, profile=BuildProfile.DEBUG, **kwargs):
        return BuildConfig(platform=platform, profile=profile, project_root=bench_project, **kwargs)

    return _make
