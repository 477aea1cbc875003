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

from pathlib import Path

from mobench.build_scripts.build_utils import BuildContext, host_library_extension
from mobench.build_scripts.models import BindingSet, Platform
from mobench.build_scripts.workspace import Workspace
from mobench.errors import BindingGenerationError

UNIFFI_BINDGEN = "uniffi-bindgen"

LANGUAGES = {
    Platform.ANDROID: ("kotlin", "*.kt"),
    Platform.IOS: ("swift", "*.swift"),
}


def host_library_path(workspace: Workspace) -> Path:
    ext = host_library_extension()
    if ext is None:
        raise BindingGenerationError(
            "unsupported host OS for binding generation, use macOS or Linux"
        )
    return workspace.host_library_dir / f"lib{workspace.module_name}.{ext}"


def staging_dir(ctx: BuildContext, platform: Platform) -> Path:
    return ctx.output_dir / "bindings" / platform.value


def generate_bindings(ctx: BuildContext, workspace: Workspace, platform: Platform) -> BindingSet:
    """
    Generate the foreign-language bindings of the library.

    The host library carries the UniFFI metadata, so it is built first and
    handed to the generator. Output goes to a freshly cleared staging
    directory.

    Raises:
        BindingGenerationError: host build or generator failure, missing
            generator, or missing FFI header for Swift
    """
    language, pattern = LANGUAGES[platform]
    out_dir = staging_dir(ctx, platform)
    ctx.log(f"  Generating {language} bindings")
    ctx.remove_tree(out_dir)
    ctx.makedirs(out_dir)

    output = ctx.run(["cargo", "build", "--lib"], cwd=workspace.crate_dir)
    if not output.is_success():
        raise BindingGenerationError(f"host library build failed:\n{output.output}")
    lib_path = host_library_path(workspace)
    if not ctx.dry_run and not lib_path.is_file():
        raise BindingGenerationError(
            f"host library not found at {lib_path}; add \"cdylib\" to the crate-type of [lib]"
        )

    output = ctx.run(
        [
            UNIFFI_BINDGEN, "generate",
            "--library", str(lib_path),
            "--language", language,
            "--out-dir", str(out_dir),
        ],
        cwd=workspace.crate_dir,
    )
    if output.tool_missing:
        raise BindingGenerationError(
            f"{UNIFFI_BINDGEN} not found on PATH. Install it with: cargo install uniffi-bindgen"
        )
    if not output.is_success():
        raise BindingGenerationError(output.output or f"exit code {output.returncode}")

    header = out_dir / f"{workspace.module_name}FFI.h"
    modulemap = out_dir / f"{workspace.module_name}FFI.modulemap"
    if ctx.dry_run:
        return BindingSet(
            language,
            out_dir,
            header=header if platform is Platform.IOS else None,
            modulemap=modulemap if platform is Platform.IOS else None,
        )

    sources = sorted(out_dir.rglob(pattern))
    if not sources:
        raise BindingGenerationError(f"no {language} sources generated in {out_dir}")
    if platform is Platform.IOS and not header.is_file():
        raise BindingGenerationError(f"generator did not produce {header}")
    return BindingSet(
        language,
        out_dir,
        sources=sources,
        header=header if header.is_file() else None,
        modulemap=modulemap if modulemap.is_file() else None,
    )
