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

from typing import Tuple

from mobench.build_scripts.models import Platform, TargetSpec

ANDROID_TARGETS = (
    TargetSpec("aarch64-linux-android", "arm64-v8a", "so"),
    TargetSpec("armv7-linux-androideabi", "armeabi-v7a", "so"),
    TargetSpec("x86_64-linux-android", "x86_64", "so"),
)

IOS_TARGETS = (
    TargetSpec(
        "aarch64-apple-ios",
        "ios-arm64",
        "a",
        architectures=("arm64",),
        platform_identifier="iPhoneOS",
        manifest_platform="ios",
    ),
    TargetSpec(
        "aarch64-apple-ios-sim",
        "ios-simulator-arm64",
        "a",
        architectures=("arm64",),
        platform_identifier="iPhoneSimulator",
        manifest_platform="ios",
        platform_variant="simulator",
    ),
)

TARGET_MATRIX = {
    Platform.ANDROID: ANDROID_TARGETS,
    Platform.IOS: IOS_TARGETS,
}


def get_targets(platform: Platform) -> Tuple[TargetSpec, ...]:
    if platform not in TARGET_MATRIX:
        raise ValueError(f"no compile targets for platform '{platform.value}'")
    return TARGET_MATRIX[platform]


def find_target(triple: str) -> TargetSpec:
    for targets in TARGET_MATRIX.values():
        for target in targets:
            if target.triple == triple:
                return target
    raise KeyError(triple)


def abi_for_triple(triple: str) -> str:
    """Android ABI directory name for a Rust target triple."""
    target = find_target(triple)
    if target not in ANDROID_TARGETS:
        raise KeyError(triple)
    return target.label
