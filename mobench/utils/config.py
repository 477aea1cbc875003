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
mobench.toml configuration handler.

Example:

    [project]
    crate = "bench-mobile"
    crate_dir = "bench-mobile"
    output_dir = "target/mobench"

    [build]
    profile = "release"
    jobs = 4
    tool_timeout = 3600
    allow_partial_abis = false

    [android]
    min_sdk = 24

    [ios]
    scheme = "BenchRunner"
    bundle_prefix = "dev.world"
    signing = "adhoc"
    deployment_target = "15.0"

    [benchmark]
    function = "bench_mobile::fibonacci"
    iterations = 20
    warmup = 3

String values support ${VAR_NAME} and $VAR_NAME environment references.
"""

import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11, 0, "alpha", 7):
    import tomllib
else:
    import tomli as tomllib

from mobench.build_scripts.models import (
    BuildConfig,
    BuildProfile,
    Platform,
    SigningMethod,
)
from mobench.errors import ConfigError

CONFIG_FILE_NAME = "mobench.toml"


@dataclass
class BenchmarkSettings:
    function: Optional[str] = None
    iterations: int = 20
    warmup: int = 3


@dataclass
class MobenchConfig:
    """Values read from mobench.toml, None meaning "not set"."""
    path: Optional[Path] = None
    crate_name: Optional[str] = None
    crate_dir: Optional[Path] = None
    output_dir: Optional[Path] = None
    profile: Optional[BuildProfile] = None
    jobs: Optional[int] = None
    tool_timeout: Optional[int] = None
    allow_partial_abis: Optional[bool] = None
    android_min_sdk: Optional[int] = None
    scheme: Optional[str] = None
    bundle_prefix: Optional[str] = None
    signing_method: Optional[SigningMethod] = None
    ios_deployment_target: Optional[str] = None
    benchmark: BenchmarkSettings = field(default_factory=BenchmarkSettings)

    def to_build_config(self, project_root, platform: Platform, **overrides) -> BuildConfig:
        """
        Merge file values with CLI overrides into a BuildConfig.

        Overrides whose value is None are ignored, so unset CLI flags fall
        back to the file and then to the BuildConfig defaults.
        """
        values: Dict[str, Any] = {
            "crate_name": self.crate_name,
            "crate_dir": self.crate_dir,
            "output_dir": self.output_dir,
            "profile": self.profile,
            "jobs": self.jobs,
            "tool_timeout": self.tool_timeout,
            "allow_partial_abis": self.allow_partial_abis,
            "android_min_sdk": self.android_min_sdk,
            "scheme": self.scheme,
            "bundle_prefix": self.bundle_prefix,
            "signing_method": self.signing_method,
            "ios_deployment_target": self.ios_deployment_target,
        }
        for key, value in overrides.items():
            if value is not None:
                values[key] = value
        kwargs = {k: v for k, v in values.items() if v is not None}
        return BuildConfig(platform=platform, project_root=Path(project_root), **kwargs)


def _expand_env(value):
    """
    Expand environment variables in configuration values.

    Supports ${VAR_NAME} and $VAR_NAME syntax. Unknown variables are kept.
    """
    if not isinstance(value, str):
        return value

    pattern1 = re.compile(r"\$\{([^}]+)\}")
    value = pattern1.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)

    pattern2 = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)")
    value = pattern2.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)

    return value


def _section(data: dict, name: str, path: Path) -> dict:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(path, f"[{name}] must be a table")
    return section


def _typed(section: dict, key: str, kind, section_name: str, path: Path):
    if key not in section:
        return None
    value = _expand_env(section[key])
    if kind is int and isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if kind is bool and isinstance(value, str) and value.lower() in ("true", "false"):
        value = value.lower() == "true"
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ConfigError(path, f"{section_name}.{key} must be a {kind.__name__}")
    return value


def _enum(enum_cls, value, key: str, path: Path):
    if value is None:
        return None
    try:
        return enum_cls(value.lower())
    except ValueError:
        choices = ", ".join(e.value for e in enum_cls)
        raise ConfigError(path, f"{key} must be one of: {choices}")


def _relative_path(project_root: Path, value: Optional[str]) -> Optional[Path]:
    if value is None:
        return None
    path = Path(value).expanduser()
    return path if path.is_absolute() else project_root / path


def parse_config(data: dict, project_root, path=None) -> MobenchConfig:
    project_root = Path(project_root)
    path = path or project_root / CONFIG_FILE_NAME
    project = _section(data, "project", path)
    build = _section(data, "build", path)
    android = _section(data, "android", path)
    ios = _section(data, "ios", path)
    bench = _section(data, "benchmark", path)

    benchmark = BenchmarkSettings()
    function = _typed(bench, "function", str, "benchmark", path)
    iterations = _typed(bench, "iterations", int, "benchmark", path)
    warmup = _typed(bench, "warmup", int, "benchmark", path)
    for key, value in (("iterations", iterations), ("warmup", warmup)):
        if value is not None and value < 0:
            raise ConfigError(path, f"benchmark.{key} must not be negative")
    if function is not None:
        benchmark.function = function
    if iterations is not None:
        benchmark.iterations = iterations
    if warmup is not None:
        benchmark.warmup = warmup

    jobs = _typed(build, "jobs", int, "build", path)
    if jobs is not None and jobs < 1:
        raise ConfigError(path, "build.jobs must be at least 1")
    timeout = _typed(build, "tool_timeout", int, "build", path)
    if timeout is not None and timeout < 1:
        raise ConfigError(path, "build.tool_timeout must be at least 1 second")

    return MobenchConfig(
        path=path,
        crate_name=_typed(project, "crate", str, "project", path),
        crate_dir=_relative_path(project_root, _typed(project, "crate_dir", str, "project", path)),
        output_dir=_relative_path(project_root, _typed(project, "output_dir", str, "project", path)),
        profile=_enum(BuildProfile, _typed(build, "profile", str, "build", path), "build.profile", path),
        jobs=jobs,
        tool_timeout=timeout,
        allow_partial_abis=_typed(build, "allow_partial_abis", bool, "build", path),
        android_min_sdk=_typed(android, "min_sdk", int, "android", path),
        scheme=_typed(ios, "scheme", str, "ios", path),
        bundle_prefix=_typed(ios, "bundle_prefix", str, "ios", path),
        signing_method=_enum(SigningMethod, _typed(ios, "signing", str, "ios", path), "ios.signing", path),
        ios_deployment_target=_typed(ios, "deployment_target", str, "ios", path),
        benchmark=benchmark,
    )


def load_config(project_root, config_path=None) -> MobenchConfig:
    """
    Load mobench.toml from project_root, or an explicit config_path.

    A missing default file yields an empty MobenchConfig; a missing explicit
    file is an error.

    Raises:
        ConfigError: unreadable TOML or invalid values
    """
    project_root = Path(project_root)
    path = Path(config_path) if config_path else project_root / CONFIG_FILE_NAME
    if not path.is_file():
        if config_path:
            raise ConfigError(path, "file not found")
        return MobenchConfig()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(path, f"TOML parse error: {e}")
    return parse_config(data, project_root, path)
