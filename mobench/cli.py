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
import importlib
import os
import sys

from mobench.utils.context.command import CliCommand
from mobench.utils.context.context import CliContext
from mobench.utils.context.namespace import CliNameSpace
from mobench.utils.context.result import CliResult

SCRIPT_PATH = os.path.split(os.path.realpath(__file__))[0]


# Root Class for Command Line Interface
class Cli(CliCommand):
    def description(self) -> str:
        return """mobench - build Rust benchmarks into mobile test artifacts

Compiles a Rust crate with a UniFFI surface for Android and iOS and packages
it into an APK + androidTest APK, or an xcframework (+ IPA and XCUITest
runner archive on demand).

USAGE:
    mobench <command> [options]

COMMANDS:
    build       Compile, generate bindings and package for android, ios or both
    package     Package an existing iOS build as IPA and/or XCUITest archive

EXAMPLES:
    mobench build android                 # Debug APKs
    mobench build both --release          # Release artifacts for both platforms
    mobench build ios --package           # xcframework + IPA + XCUITest zip
    mobench build android --dry-run       # Print the plan only
    mobench package ipa --signing development

For more information on a specific command:
    mobench <command> --help
        """

    def get_command_list(self) -> list:
        arr = []
        for command in os.listdir(os.path.join(SCRIPT_PATH, "commands")):
            if not command.startswith("_") and command.endswith(".py"):
                arr.append(os.path.splitext(os.path.basename(command))[0])
        return sorted(arr)

    def parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="mobench",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            description=self.description(),
            add_help=False,
        )
        parser.add_argument(
            "subcommand",
            metavar=f"{self.get_command_list()}",
            type=str,
            nargs="?",
            choices=self.get_command_list(),
        )
        return parser

    def cli(self, argv=None) -> CliNameSpace:
        argv = list(sys.argv[1:] if argv is None else argv)
        if len(argv) == 1 and argv[0] in ["--help", "-h"]:
            self.parser().print_help()
            sys.exit(0)
        # parse only known args, the subcommand parses the rest
        args, unknown = self.parser().parse_known_args(argv, namespace=CliNameSpace())
        args.rest = argv
        if args.subcommand:
            args.rest.remove(args.subcommand)
        return args

    def exec(self, context: CliContext, args: CliNameSpace) -> CliResult:
        if not args.subcommand:
            print("ERROR: No command specified\n")
            self.parser().print_help()
            sys.exit(2)

        # get module name
        module_name = f"mobench.commands.{args.subcommand}"
        # get class name
        class_name = args.subcommand.capitalize()
        # import module
        module = importlib.import_module(module_name)
        # get class of module
        klass = getattr(module, class_name)
        # instance class
        sub_cmd = klass()
        # now execute the subcommand
        return sub_cmd.exec(context, sub_cmd.cli(args.rest))


def main(argv=None) -> int:
    cmd = Cli()
    result = cmd.exec(CliContext(), cmd.cli(argv))
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
