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

import argparse
from pathlib import Path

from mobench.build_scripts.build_ios import IosBuilder
from mobench.build_scripts.build_utils import BuildContext
from mobench.build_scripts.models import BuildProfile, Platform, SigningMethod
from mobench.errors import MobenchError
from mobench.utils.config import load_config
from mobench.utils.context.command import CliCommand
from mobench.utils.context.context import CliContext
from mobench.utils.context.namespace import CliNameSpace
from mobench.utils.context.result import CliResult


class Package(CliCommand):
    def description(self) -> str:
        return """Package an existing iOS build for device testing.

Requires a previous `mobench build ios`, which leaves the xcframework and the
generated Xcode project in the output directory.

ARCHIVES:
    ipa         <scheme>.ipa with the app under Payload/<scheme>.app
    xcuitest    <scheme>UITests.zip with <scheme>UITests-Runner.app
    all         both archives

EXAMPLES:
    mobench package ipa
    mobench package all --release --signing development
        """

    def cli(self, argv=None) -> CliNameSpace:
        parser = argparse.ArgumentParser(
            prog="mobench package",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
        )
        parser.add_argument("archive", choices=["ipa", "xcuitest", "all"])
        parser.add_argument("--release", action="store_true", default=None, help="package the Release configuration")
        parser.add_argument("--project-root", type=str, default=None, help="project root directory")
        parser.add_argument("--config", type=str, default=None, help="path of the config file")
        parser.add_argument("--output-dir", type=str, default=None, help="output directory of the build")
        parser.add_argument("--scheme", type=str, default=None, help="Xcode scheme (default: BenchRunner)")
        parser.add_argument(
            "--signing",
            choices=[m.value for m in SigningMethod],
            default=None,
            help="signing method (default: adhoc)",
        )
        parser.add_argument("--dry-run", action="store_true", help="print the plan only")
        parser.add_argument("-v", "--verbose", action="store_true", help="verbose output")
        return parser.parse_args(argv, namespace=CliNameSpace())

    def exec(self, context: CliContext, args: CliNameSpace) -> CliResult:
        project_root = Path(args.project_root).resolve() if args.project_root else context.project_root
        print("==================iOS Package========================")
        try:
            file_config = load_config(project_root, args.config)
            config = file_config.to_build_config(
                project_root,
                Platform.IOS,
                profile=BuildProfile.RELEASE if args.release else None,
                output_dir=Path(args.output_dir).resolve() if args.output_dir else None,
                signing_method=SigningMethod(args.signing) if args.signing else None,
                scheme=args.scheme,
                verbose=args.verbose or None,
                dry_run=args.dry_run or None,
            )
            builder = IosBuilder(BuildContext(config, context.runner))
            outputs = []
            if args.archive in ("ipa", "all"):
                outputs.append(builder.package_ipa())
            if args.archive in ("xcuitest", "all"):
                outputs.append(builder.package_xcuitest())
        except (MobenchError, OSError) as e:
            print(f"ERROR: {e}")
            return CliResult(error=e)

        print("==================Output========================")
        for output in outputs:
            print(output)
        for message in builder.ctx.diagnostics:
            print(f"note: {message}")
        return CliResult(value=outputs)
