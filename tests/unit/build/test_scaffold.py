"""
Unit tests for host-app project scaffolding.

Templates are rendered with copier into tmp_path.
"""

from pathlib import Path

import pytest

from mobench.build_scripts.build_utils import BuildContext
from mobench.build_scripts.models import Platform
from mobench.build_scripts.scaffold import (
    android_project_exists,
    detect_default_function,
    ensure_android_project,
    ensure_ios_project,
    find_unresolved_placeholders,
    ios_project_exists,
    sanitize_bundle_id_component,
    to_pascal_case,
)
from mobench.build_scripts.workspace import resolve_workspace
from mobench.errors import PackagingError


@pytest.fixture
def workspace(bench_project, fake_toolchain):
    return resolve_workspace(bench_project, runner=fake_toolchain)


class TestNaming:
    def test_sanitize(self):
        assert sanitize_bundle_id_component("bench-mobile") == "benchmobile"
        assert sanitize_bundle_id_component("My_Crate.Name") == "mycratename"
        assert sanitize_bundle_id_component("9lives") == "app9lives"
        assert sanitize_bundle_id_component("---") == "app"

    def test_pascal_case(self):
        assert to_pascal_case("bench-mobile") == "BenchMobile"
        assert to_pascal_case("sample_fns") == "SampleFns"

    def test_detect_default_function(self, bench_project):
        assert detect_default_function(bench_project / "bench-mobile", "bench_mobile") == "bench_mobile::fibonacci"

    def test_detect_default_function_fallback(self, tmp_path):
        assert detect_default_function(tmp_path, "foo") == "foo::example_benchmark"


class TestAndroidScaffold:
    def test_renders_project(self, make_config, fake_toolchain, workspace):
        ctx = BuildContext(make_config(Platform.ANDROID), fake_toolchain)
        android_dir = ensure_android_project(ctx, workspace)
        assert android_project_exists(android_dir)

        activity = android_dir / "app/src/main/java/dev/world/benchmobile/MainActivity.kt"
        assert activity.is_file()
        text = activity.read_text()
        assert "package dev.world.benchmobile" in text
        assert 'System.loadLibrary("bench_mobile")' in text
        assert '"bench_mobile::fibonacci"' in text
        assert (android_dir / "app/src/androidTest/java/dev/world/benchmobile/MainActivityTest.kt").is_file()

        gradle = (android_dir / "app" / "build.gradle").read_text()
        assert "applicationId 'dev.world.benchmobile'" in gradle
        assert "minSdk 24" in gradle
        assert "mobench.testBuildType" in gradle
        assert find_unresolved_placeholders(p for p in android_dir.rglob("*") if p.is_file()) == []

    def test_existing_project_untouched(self, make_config, fake_toolchain, workspace):
        ctx = BuildContext(make_config(Platform.ANDROID), fake_toolchain)
        android_dir = ctx.output_dir / "android"
        android_dir.mkdir(parents=True)
        (android_dir / "build.gradle").write_text("// user edited\n")
        ensure_android_project(ctx, workspace)
        assert (android_dir / "build.gradle").read_text() == "// user edited\n"
        assert not (android_dir / "app").exists()

    def test_partial_directory_is_never_overwritten(self, make_config, fake_toolchain, workspace):
        ctx = BuildContext(make_config(Platform.ANDROID), fake_toolchain)
        android_dir = ctx.output_dir / "android"
        settings = android_dir / "settings.gradle"
        settings.parent.mkdir(parents=True)
        settings.write_text("// keep me\n")
        ensure_android_project(ctx, workspace)
        assert settings.read_text() == "// keep me\n"
        assert (android_dir / "build.gradle").is_file()

    def test_dry_run_renders_nothing(self, make_config, fake_toolchain, workspace):
        ctx = BuildContext(make_config(Platform.ANDROID, dry_run=True), fake_toolchain)
        android_dir = ensure_android_project(ctx, workspace)
        assert not android_dir.exists()


class TestIosScaffold:
    def test_renders_project(self, make_config, fake_toolchain, workspace):
        ctx = BuildContext(make_config(Platform.IOS), fake_toolchain)
        ios_dir = ensure_ios_project(ctx, workspace)
        assert ios_project_exists(ios_dir)
        project = (ios_dir / "BenchRunner" / "project.yml").read_text()
        assert "PRODUCT_BUNDLE_IDENTIFIER: dev.world.benchmobile.BenchRunner" in project
        assert "bundleIdPrefix: dev.world.benchmobile" in project
        assert "../bench_mobile.xcframework" in project
        assert "dev.world.benchmobile.benchmobile" not in project
        assert (ios_dir / "BenchRunner" / "BenchRunner" / "BenchRunnerApp.swift").is_file()
        assert (ios_dir / "BenchRunner" / "BenchRunnerUITests" / "BenchRunnerUITests.swift").is_file()

    def test_custom_scheme(self, make_config, fake_toolchain, workspace):
        ctx = BuildContext(make_config(Platform.IOS, scheme="PerfHost", bundle_prefix="com.example"), fake_toolchain)
        ios_dir = ensure_ios_project(ctx, workspace)
        assert ios_project_exists(ios_dir, "PerfHost")
        project = (ios_dir / "PerfHost" / "project.yml").read_text()
        assert "com.example.benchmobile.PerfHost" in project


class TestPlaceholderCheck:
    def test_detects_leftover(self, tmp_path):
        good = tmp_path / "ok.kt"
        good.write_text("val x = \"${name}\"\n")
        bad = tmp_path / "bad.gradle"
        bad.write_text("applicationId '{{ package_name }}'\n")
        found = find_unresolved_placeholders([good, bad])
        assert found == [(bad, "{{ package_name }}")]

    def test_detects_leftover_in_path(self, tmp_path):
        path = tmp_path / "{{ package_leaf }}" / "Main.kt"
        path.parent.mkdir()
        path.write_text("")
        assert find_unresolved_placeholders([path])

    def test_render_rejects_unresolved(self, make_config, fake_toolchain, workspace, tmp_path, monkeypatch):
        template = tmp_path / "templates" / "broken"
        template.mkdir(parents=True)
        (template / "copier.yml").write_text("_templates_suffix: .jinja\n")
        (template / "raw.gradle").write_text("name '{{ not_rendered }}'\n")
        monkeypatch.setattr("mobench.build_scripts.scaffold.TEMPLATES_PATH", tmp_path / "templates")
        from mobench.build_scripts.scaffold import render_template

        ctx = BuildContext(make_config(Platform.ANDROID), fake_toolchain)
        with pytest.raises(PackagingError) as exc_info:
            render_template(ctx, "broken", tmp_path / "out", {})
        assert exc_info.value.stage == "scaffold"
        assert "not_rendered" in exc_info.value.detail
