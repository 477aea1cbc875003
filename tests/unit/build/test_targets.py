"""Unit tests for the target matrix."""

import pytest

from mobench.build_scripts.models import Platform
from mobench.build_scripts.targets import (
    ANDROID_TARGETS,
    IOS_TARGETS,
    abi_for_triple,
    get_targets,
)


def test_android_abi_mapping():
    assert abi_for_triple("aarch64-linux-android") == "arm64-v8a"
    assert abi_for_triple("armv7-linux-androideabi") == "armeabi-v7a"
    assert abi_for_triple("x86_64-linux-android") == "x86_64"


def test_ios_triple_is_not_an_android_abi():
    with pytest.raises(KeyError):
        abi_for_triple("aarch64-apple-ios")


def test_ios_slices():
    device, simulator = IOS_TARGETS
    assert (device.triple, device.label) == ("aarch64-apple-ios", "ios-arm64")
    assert device.platform_identifier == "iPhoneOS"
    assert device.platform_variant is None
    assert (simulator.triple, simulator.label) == ("aarch64-apple-ios-sim", "ios-simulator-arm64")
    assert simulator.platform_identifier == "iPhoneSimulator"
    assert simulator.platform_variant == "simulator"


def test_library_file_names():
    assert ANDROID_TARGETS[0].library_file_name("sample_fns") == "libsample_fns.so"
    assert IOS_TARGETS[0].library_file_name("sample_fns") == "libsample_fns.a"


def test_get_targets():
    assert get_targets(Platform.ANDROID) == ANDROID_TARGETS
    assert get_targets(Platform.IOS) == IOS_TARGETS
    with pytest.raises(ValueError):
        get_targets(Platform.BOTH)


def test_both_expands_android_first():
    assert Platform.BOTH.expand() == [Platform.ANDROID, Platform.IOS]
    assert Platform.IOS.expand() == [Platform.IOS]
