#!/usr/bin/env python3
# -- coding: utf-8 --
#
# build_utils.py
# mobench
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
Build utility functions shared by the Android and iOS build scripts.

This module provides:
- BuildContext, which carries the immutable BuildConfig, the tool runner and
  the per-platform diagnostics list through every stage
- Dry-run aware file operations (copy, clean, write)
- Archive helpers (zip a directory under a fixed root, validate entry paths)
- Host platform checks
"""

import os
import platform
import shutil
import zipfile
from pathlib import Path

from mobench.build_scripts.models import BuildConfig
from mobench.errors import ArchiveError
from mobench.utils.cmd.cmd_util import CommandOutput, exec_command, format_command


class BuildContext:
    """
    State shared by the stages of one platform build.

    Args:
        config: The BuildConfig of the invocation
        runner: Callable with the signature of cmd_util.exec_command. Tests
            pass a fake runner here so no real toolchain is needed.

    Note:
        diagnostics collects explicit fallbacks and non-fatal warnings, and
        ends up on the BuildResult of the platform.
    """

    def __init__(self, config: BuildConfig, runner=None):
        self.config = config
        self.runner = runner or exec_command
        self.diagnostics = []

    @property
    def verbose(self) -> bool:
        return self.config.verbose

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    @property
    def output_dir(self) -> Path:
        return self.config.resolved_output_dir

    def log(self, message):
        print(message)

    def debug(self, message):
        if self.verbose:
            print(f"  {message}")

    def note(self, message):
        """Record an explicit fallback taken by a stage."""
        self.diagnostics.append(message)
        print(f"  NOTE: {message}")

    def warn(self, message):
        self.diagnostics.append(message)
        print(f"WARNING: {message}")

    def run(self, command, cwd=None, env=None) -> CommandOutput:
        """Invoke an external tool, or only print it in dry-run mode."""
        cmd_str = format_command(command)
        if self.dry_run:
            where = f" (in {cwd})" if cwd else ""
            print(f"  [dry-run] {cmd_str}{where}")
            return CommandOutput(command, 0)
        self.debug(f"run cmd: [{cmd_str}]")
        return self.runner(
            command, cwd=cwd, env=env, timeout_second=self.config.tool_timeout
        )

    def probe(self, command, cwd=None) -> CommandOutput:
        """Invoke a read-only query tool; runs even in dry-run mode."""
        self.debug(f"probe cmd: [{format_command(command)}]")
        return self.runner(command, cwd=cwd, timeout_second=self.config.tool_timeout)

    def makedirs(self, path):
        if self.dry_run:
            self.debug(f"[dry-run] mkdir -p {path}")
            return
        os.makedirs(path, exist_ok=True)

    def remove_tree(self, path):
        if not os.path.exists(path):
            return
        if self.dry_run:
            print(f"  [dry-run] rm -rf {path}")
            return
        clean(path)

    def copy_file(self, src, dst):
        if self.dry_run:
            print(f"  [dry-run] copy {src} -> {dst}")
            return
        copy_file(src, dst)

    def copy_tree(self, src, dst):
        if self.dry_run:
            print(f"  [dry-run] copy {src}/ -> {dst}/")
            return
        copy_tree(src, dst)

    def write_text(self, path, text):
        if self.dry_run:
            print(f"  [dry-run] write {path}")
            return
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_text(text, encoding="utf-8")

    def write_bytes(self, path, data):
        if self.dry_run:
            print(f"  [dry-run] write {path}")
            return
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_bytes(data)


def clean(path):
    """Remove a file or a directory tree if it exists."""
    if os.path.islink(path) or os.path.isfile(path):
        os.remove(path)
    elif os.path.isdir(path):
        shutil.rmtree(path)


def copy_file(src, dst):
    """
    Copy a file, creating destination directories as needed.

    Args:
        src: Source file path
        dst: Destination file path
    """
    os.makedirs(os.path.dirname(str(dst)) or ".", exist_ok=True)
    shutil.copy(str(src), str(dst))


def copy_tree(src, dst):
    """Copy a directory tree into dst, merging with existing content."""
    shutil.copytree(str(src), str(dst), dirs_exist_ok=True)


def system_is_macos():
    """Check if current platform is macOS/Darwin."""
    return platform.system().lower() == "darwin"


def system_is_linux():
    """Check if current platform is Linux."""
    return platform.system().lower() == "linux"


def host_library_extension():
    """Shared library extension of the host, or None when unsupported."""
    if system_is_macos():
        return "dylib"
    if system_is_linux():
        return "so"
    return None


def validate_archive_path(rel_path: str):
    """
    Reject a path the archiver cannot represent faithfully.

    Raises:
        ArchiveError: for control characters, backslashes, colons or text
            that is not encodable as UTF-8
    """
    try:
        rel_path.encode("utf-8")
    except UnicodeEncodeError:
        raise ArchiveError(f"path is not valid UTF-8: {rel_path!r}")
    for ch in rel_path:
        if ord(ch) < 0x20 or ord(ch) == 0x7F:
            raise ArchiveError(f"path contains a control character: {rel_path!r}")
    if "\\" in rel_path:
        raise ArchiveError(f"path contains a backslash: {rel_path!r}")
    if ":" in rel_path:
        raise ArchiveError(f"path contains a colon: {rel_path!r}")


def zip_directory(src_dir, out_file, arc_root):
    """
    Zip a directory so that every entry lives under arc_root.

    Args:
        src_dir: Directory to archive, its own name is replaced by arc_root
        out_file: Output ZIP file path
        arc_root: Archive prefix, e.g. "Payload/BenchRunner.app"

    Returns:
        list: the archive entry names in write order

    Note:
        All entry names are validated before the archive is created, so a
        rejected path never leaves a partial archive behind.
    """
    src_dir = Path(src_dir)
    arc_root = arc_root.strip("/")
    validate_archive_path(arc_root)
    entries = []
    for dirpath, dirnames, filenames in os.walk(src_dir):
        dirnames.sort()
        rel_dir = Path(dirpath).relative_to(src_dir).as_posix()
        prefix = arc_root if rel_dir == "." else f"{arc_root}/{rel_dir}"
        validate_archive_path(prefix)
        entries.append((Path(dirpath), f"{prefix}/"))
        for filename in sorted(filenames):
            arcname = f"{prefix}/{filename}"
            validate_archive_path(arcname)
            entries.append((Path(dirpath) / filename, arcname))

    os.makedirs(os.path.dirname(str(out_file)) or ".", exist_ok=True)
    parents = []
    parts = arc_root.split("/")
    for i in range(1, len(parts)):
        parents.append("/".join(parts[:i]) + "/")
    with zipfile.ZipFile(out_file, "w", zipfile.ZIP_DEFLATED) as zipf:
        for name in parents:
            zipf.writestr(name, "")
        for path, arcname in entries:
            zipf.write(path, arcname)
    return parents + [arcname for _, arcname in entries]
