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
Render the Android and iOS host-app projects from copier templates.

A project is rendered only when its marker file is missing, and existing
files are never overwritten. Rendered output is scanned for unresolved
template placeholders before a build is allowed to continue.
"""

import os
import re
from pathlib import Path

from copier import run_copy
from copier.errors import CopierError

from mobench.build_scripts.build_utils import BuildContext
from mobench.build_scripts.models import BuildConfig
from mobench.build_scripts.workspace import Workspace
from mobench.errors import PackagingError

TEMPLATES_PATH = Path(__file__).resolve().parent.parent / "templates"

ANDROID_PACKAGE_ROOT = "dev.world"

PLACEHOLDER_PATTERN = re.compile(r"\{\{.*?\}\}|\{%.*?%\}")

TEXT_SUFFIXES = {
    ".gradle", ".kts", ".properties", ".xml", ".kt", ".java", ".swift",
    ".yml", ".yaml", ".json", ".plist", ".h", ".modulemap", ".pro", ".txt",
}


def sanitize_bundle_id_component(name: str) -> str:
    """Lowercase alphanumerics of name, e.g. "bench-mobile" -> "benchmobile"."""
    sanitized = "".join(c for c in name if c.isascii() and c.isalnum()).lower()
    if not sanitized:
        return "app"
    if sanitized[0].isdigit():
        sanitized = f"app{sanitized}"
    return sanitized


def to_pascal_case(name: str) -> str:
    parts = re.split(r"[^0-9A-Za-z]+", name)
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def android_project_exists(android_dir) -> bool:
    android_dir = Path(android_dir)
    return (android_dir / "build.gradle").exists() or (android_dir / "build.gradle.kts").exists()


def ios_project_exists(ios_dir, scheme="BenchRunner") -> bool:
    return (Path(ios_dir) / scheme / "project.yml").exists()


def detect_default_function(crate_dir, module_name: str) -> str:
    """
    First function marked #[benchmark] in src/lib.rs, as "module::function".

    Falls back to "{module}::example_benchmark".
    """
    lib_rs = Path(crate_dir) / "src" / "lib.rs"
    fallback = f"{module_name}::example_benchmark"
    if not lib_rs.is_file():
        return fallback
    found_attr = False
    with open(lib_rs, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            trimmed = line.strip()
            if trimmed == "#[benchmark]" or trimmed.startswith("#[benchmark("):
                found_attr = True
                continue
            if not found_attr:
                continue
            match = re.search(r"\bfn\s+([A-Za-z0-9_]+)", trimmed)
            if match:
                return f"{module_name}::{match.group(1)}"
            if trimmed and not trimmed.startswith("#") and not trimmed.startswith("//"):
                found_attr = False
    return fallback


def android_template_data(workspace: Workspace, config: BuildConfig) -> dict:
    leaf = sanitize_bundle_id_component(workspace.crate_name)
    return {
        "project_name": to_pascal_case(workspace.crate_name) or "BenchRunner",
        "package_leaf": leaf,
        "package_name": f"{ANDROID_PACKAGE_ROOT}.{leaf}",
        "library_name": workspace.module_name,
        "default_function": detect_default_function(workspace.crate_dir, workspace.module_name),
        "min_sdk": str(config.android_min_sdk),
    }


def ios_template_data(workspace: Workspace, config: BuildConfig) -> dict:
    prefix = f"{config.bundle_prefix}.{sanitize_bundle_id_component(workspace.crate_name)}"
    return {
        "project_name": to_pascal_case(workspace.crate_name) or config.scheme,
        "scheme": config.scheme,
        "library_name": workspace.module_name,
        "bundle_id_prefix": prefix,
        "bundle_id": f"{prefix}.{config.scheme}",
        "default_function": detect_default_function(workspace.crate_dir, workspace.module_name),
        "deployment_target": config.ios_deployment_target,
    }


def list_files(root) -> set:
    files = set()
    for dirpath, _, filenames in os.walk(root):
        for filename in filenames:
            files.add(Path(dirpath) / filename)
    return files


def find_unresolved_placeholders(paths) -> list:
    """Return (path, token) pairs for template syntax left in text files."""
    found = []
    for path in sorted(paths):
        path = Path(path)
        if PLACEHOLDER_PATTERN.search(path.as_posix()):
            found.append((path, path.name))
            continue
        if path.suffix not in TEXT_SUFFIXES:
            continue
        text = path.read_text(encoding="utf-8", errors="replace")
        match = PLACEHOLDER_PATTERN.search(text)
        if match:
            found.append((path, match.group(0)))
    return found


def render_template(ctx: BuildContext, template_name: str, dst_dir: Path, data: dict):
    """
    Render mobench/templates/{template_name} into dst_dir.

    Raises:
        PackagingError: copier failure or unresolved placeholders in output
    """
    src = TEMPLATES_PATH / template_name
    if ctx.dry_run:
        print(f"  [dry-run] render template {template_name} -> {dst_dir}")
        return
    before = list_files(dst_dir) if dst_dir.exists() else set()
    try:
        run_copy(
            str(src),
            str(dst_dir),
            data=data,
            defaults=True,
            overwrite=False,
            skip_if_exists=["**"],
            unsafe=True,
            quiet=not ctx.verbose,
        )
    except CopierError as e:
        raise PackagingError("scaffold", f"rendering {template_name} template failed: {e}")

    rendered = list_files(dst_dir) - before
    leftovers = find_unresolved_placeholders(rendered)
    if leftovers:
        detail = "; ".join(f"{path}: {token}" for path, token in leftovers)
        raise PackagingError("scaffold", f"unresolved template placeholders: {detail}")
    ctx.debug(f"rendered {len(rendered)} files from {template_name} template")


def ensure_android_project(ctx: BuildContext, workspace: Workspace) -> Path:
    android_dir = ctx.output_dir / "android"
    if android_project_exists(android_dir):
        ctx.debug(f"Android project exists at {android_dir}")
        return android_dir
    ctx.log(f"  Generating Android project at {android_dir}")
    render_template(ctx, "android", android_dir, android_template_data(workspace, ctx.config))
    return android_dir


def ensure_ios_project(ctx: BuildContext, workspace: Workspace) -> Path:
    ios_dir = ctx.output_dir / "ios"
    if ios_project_exists(ios_dir, ctx.config.scheme):
        ctx.debug(f"iOS project exists at {ios_dir}")
        return ios_dir
    ctx.log(f"  Generating iOS project at {ios_dir}")
    render_template(ctx, "ios", ios_dir, ios_template_data(workspace, ctx.config))
    return ios_dir
