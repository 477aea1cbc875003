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
Locate the benchmark library crate and its compiled-artifact directory.

A project is either a standalone crate or a crate nested inside a Cargo
workspace. In the workspace case compiled libraries land in the workspace
target directory, not next to the crate, so the directory is asked from
`cargo metadata` rather than guessed.
"""

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

if sys.version_info >= (3, 11, 0, "alpha", 7):
    import tomllib
else:
    import tomli as tomllib

from mobench.build_scripts.models import BuildProfile
from mobench.errors import WorkspaceNotFound
from mobench.utils.cmd.cmd_util import exec_command

BENCH_CRATE_DIR = "bench-mobile"


@dataclass
class Workspace:
    project_root: Path
    crate_dir: Path
    crate_name: str
    module_name: str
    target_dir: Path
    diagnostics: List[str] = field(default_factory=list)

    def library_output_dir(self, triple: str, profile: BuildProfile) -> Path:
        return self.target_dir / triple / profile.value

    @property
    def host_library_dir(self) -> Path:
        return self.target_dir / "debug"


def load_manifest(path) -> Optional[dict]:
    """Parse a Cargo.toml, returning None when it is absent or unreadable."""
    path = Path(path)
    if not path.is_file():
        return None
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError):
        return None


def candidate_crate_dirs(project_root: Path, crate_name=None, crate_dir=None) -> List[Path]:
    """An explicit crate_dir is the only candidate; nothing else is guessed."""
    if crate_dir:
        crate_dir = Path(crate_dir)
        if not crate_dir.is_absolute():
            crate_dir = project_root / crate_dir
        return [crate_dir]
    candidates = [project_root / BENCH_CRATE_DIR]
    if crate_name:
        candidates.append(project_root / "crates" / crate_name)
    candidates.append(project_root)
    return candidates


def read_crate_names(manifest: dict):
    """Return (crate_name, module_name) from a parsed Cargo.toml."""
    crate_name = manifest["package"]["name"]
    lib = manifest.get("lib") or {}
    module_name = lib.get("name") or crate_name.replace("-", "_")
    return crate_name, module_name


def find_workspace_root(crate_dir: Path) -> Optional[Path]:
    """Nearest directory at or above crate_dir whose Cargo.toml has [workspace]."""
    for directory in [crate_dir] + list(crate_dir.parents):
        manifest = load_manifest(directory / "Cargo.toml")
        if manifest is not None and "workspace" in manifest:
            return directory
    return None


def detect_target_dir(crate_dir: Path, runner=exec_command, diagnostics=None) -> Path:
    """
    Compiled-artifact directory for a crate.

    Order: CARGO_TARGET_DIR, `cargo metadata` target_directory, explicit
    [workspace] ancestor, {crate_dir}/target. Each fallback is appended to
    diagnostics.
    """
    if diagnostics is None:
        diagnostics = []
    env_dir = os.environ.get("CARGO_TARGET_DIR")
    if env_dir:
        target_dir = Path(env_dir)
        if not target_dir.is_absolute():
            target_dir = crate_dir / target_dir
        return target_dir

    output = runner(
        ["cargo", "metadata", "--format-version", "1", "--no-deps"], cwd=crate_dir
    )
    if output.is_success():
        try:
            metadata = json.loads(output.stdout)
            return Path(metadata["target_directory"])
        except (ValueError, KeyError, TypeError) as e:
            reason = f"unparseable output ({e})"
    else:
        reason = output.output or f"exit code {output.returncode}"

    workspace_root = find_workspace_root(crate_dir)
    if workspace_root is not None:
        target_dir = workspace_root / "target"
        diagnostics.append(
            f"cargo metadata failed: {reason}; using workspace target dir {target_dir}"
        )
        return target_dir
    target_dir = crate_dir / "target"
    diagnostics.append(
        f"cargo metadata failed: {reason}; using crate target dir {target_dir}"
    )
    return target_dir


def resolve_workspace(
    project_root=None, crate_name=None, crate_dir=None, runner=exec_command
) -> Workspace:
    """
    Resolve the library crate of a project.

    Args:
        project_root: Project root directory, defaults to the cwd
        crate_name: Crate name, enables the crates/{name} candidate
        crate_dir: Explicit crate directory, the only candidate when given
        runner: Tool runner used for `cargo metadata`

    Returns:
        Workspace: crate location, names and target directory

    Raises:
        WorkspaceNotFound: when no candidate holds a Cargo.toml with [package]
    """
    project_root = Path(project_root or Path.cwd()).resolve()
    searched = []
    for candidate in candidate_crate_dirs(project_root, crate_name, crate_dir):
        manifest_path = candidate / "Cargo.toml"
        searched.append(manifest_path)
        manifest = load_manifest(manifest_path)
        if manifest is None or "package" not in manifest:
            continue
        name, module = read_crate_names(manifest)
        diagnostics = []
        target_dir = detect_target_dir(candidate, runner, diagnostics)
        return Workspace(
            project_root=project_root,
            crate_dir=candidate,
            crate_name=name,
            module_name=module,
            target_dir=target_dir,
            diagnostics=diagnostics,
        )
    raise WorkspaceNotFound(searched)
