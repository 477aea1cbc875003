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
Typed errors raised by the build pipeline.

Every stage raises one of these at the point of failure. The orchestrator
turns them into a FAILED BuildResult for the affected platform only, and the
CLI maps a FAILED result to exit code 1.
"""

from pathlib import Path
from typing import Iterable, Optional


class MobenchError(Exception):
    """Base class for every error the build pipeline raises."""


class WorkspaceNotFound(MobenchError):
    def __init__(self, searched: Iterable[Path]):
        self.searched = [Path(p) for p in searched]
        lines = "\n".join(f"  - {p}" for p in self.searched)
        super().__init__(
            "No Rust library crate found. Searched for Cargo.toml with a "
            f"[package] table in:\n{lines}\n"
            "Pass --crate-dir <path>, or create a bench-mobile/ crate "
            "in the project root."
        )


class ToolchainInvocationFailed(MobenchError):
    def __init__(self, triple: str, exit_code: int, stderr: str, hint: Optional[str] = None):
        self.triple = triple
        self.exit_code = exit_code
        self.stderr = stderr
        self.hint = hint
        message = f"Compilation for {triple} failed with exit code {exit_code}"
        if stderr:
            message += f"\n{stderr.rstrip()}"
        if hint:
            message += f"\n{hint}"
        super().__init__(message)


class BindingGenerationError(MobenchError):
    def __init__(self, diagnostic: str):
        self.diagnostic = diagnostic
        super().__init__(f"Binding generation failed: {diagnostic}")


class MissingArtifact(MobenchError):
    def __init__(self, expected_path, hint: Optional[str] = None):
        self.expected_path = Path(expected_path)
        self.hint = hint
        message = f"Expected build artifact not found: {self.expected_path}"
        if hint:
            message += f"\n{hint}"
        super().__init__(message)


class PackagingError(MobenchError):
    def __init__(self, stage: str, detail: str):
        self.stage = stage
        self.detail = detail
        super().__init__(f"Packaging failed at stage '{stage}': {detail}")


class SigningFailed(MobenchError):
    """Code signing failed. Recorded as a warning, never aborts a build."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Code signing failed: {detail}")


class ArchiveError(MobenchError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Cannot create archive: {reason}")


class ConfigError(MobenchError):
    def __init__(self, path, detail: str):
        self.path = Path(path) if path else None
        self.detail = detail
        where = f" in {self.path}" if self.path else ""
        super().__init__(f"Invalid configuration{where}: {detail}")
