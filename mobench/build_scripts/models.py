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
Data types shared by the build pipeline.

BuildConfig is immutable for the duration of one invocation. CompiledArtifact,
BindingSet and FrameworkSlice are produced fresh on every build and never
reused across runs.
"""

import multiprocessing
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple


class Platform(Enum):
    ANDROID = "android"
    IOS = "ios"
    BOTH = "both"

    def expand(self) -> List["Platform"]:
        """Concrete platforms to build, Android before iOS."""
        if self is Platform.BOTH:
            return [Platform.ANDROID, Platform.IOS]
        return [self]

    @property
    def display_name(self) -> str:
        return {"android": "Android", "ios": "iOS", "both": "Android+iOS"}[self.value]


class BuildProfile(Enum):
    DEBUG = "debug"
    RELEASE = "release"

    @property
    def variant(self) -> str:
        """Capitalized name used by Gradle tasks and Xcode configurations."""
        return self.value.capitalize()


class SigningMethod(Enum):
    ADHOC = "adhoc"
    DEVELOPMENT = "development"


class BuildState(Enum):
    NOT_STARTED = "not_started"
    RESOLVING_WORKSPACE = "resolving_workspace"
    COMPILING = "compiling"
    GENERATING_BINDINGS = "generating_bindings"
    PACKAGING = "packaging"
    DONE = "done"
    FAILED = "failed"


class Outcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class BuildConfig:
    platform: Platform
    profile: BuildProfile = BuildProfile.DEBUG
    project_root: Path = field(default_factory=Path.cwd)
    output_dir: Optional[Path] = None
    verbose: bool = False
    dry_run: bool = False
    crate_name: Optional[str] = None
    crate_dir: Optional[Path] = None
    jobs: Optional[int] = None
    allow_partial_abis: bool = False
    package_archives: bool = False
    signing_method: SigningMethod = SigningMethod.ADHOC
    scheme: str = "BenchRunner"
    tool_timeout: int = 3 * 3600
    android_min_sdk: int = 24
    bundle_prefix: str = "dev.world"
    ios_deployment_target: str = "15.0"

    @property
    def resolved_output_dir(self) -> Path:
        if self.output_dir is not None:
            return Path(self.output_dir)
        return Path(self.project_root) / "target" / "mobench"

    @property
    def resolved_jobs(self) -> int:
        if self.jobs and self.jobs > 0:
            return self.jobs
        return multiprocessing.cpu_count()


@dataclass(frozen=True)
class TargetSpec:
    """One entry of the compile matrix."""

    triple: str
    # Android ABI directory or xcframework slice identifier
    label: str
    library_extension: str
    architectures: Tuple[str, ...] = ()
    platform_identifier: Optional[str] = None
    manifest_platform: Optional[str] = None
    platform_variant: Optional[str] = None

    def library_file_name(self, module_name: str) -> str:
        return f"lib{module_name}.{self.library_extension}"


@dataclass
class CompiledArtifact:
    target: TargetSpec
    path: Path
    size: int = 0


@dataclass
class BindingSet:
    language: str
    staging_dir: Path
    sources: List[Path] = field(default_factory=list)
    header: Optional[Path] = None
    modulemap: Optional[Path] = None


@dataclass
class FrameworkSlice:
    target: TargetSpec
    slice_dir: Path
    framework_dir: Path
    binary_path: Path
    headers_dir: Path


@dataclass
class AggregateFramework:
    path: Path
    module_name: str
    slices: List[FrameworkSlice]
    manifest_path: Path


@dataclass
class BuildResult:
    platform: Platform
    profile: BuildProfile
    artifacts: List[Path] = field(default_factory=list)
    outcome: Outcome = Outcome.SUCCEEDED
    error: Optional[Exception] = None
    state: BuildState = BuildState.NOT_STARTED
    states: List[BuildState] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)
    dry_run: bool = False

    def is_success(self) -> bool:
        return self.outcome is Outcome.SUCCEEDED

    def is_failure(self) -> bool:
        return self.outcome is Outcome.FAILED

    def get_error(self, default=None):
        if self.is_failure():
            return self.error
        return default
