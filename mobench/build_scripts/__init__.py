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

"""Build pipeline stages for Android and iOS."""

__all__ = [
    "bindings",
    "build_android",
    "build_ios",
    "build_utils",
    "compiler",
    "models",
    "orchestrator",
    "scaffold",
    "targets",
    "workspace",
]
