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

from mobench.utils.context.context import CliContext
from mobench.utils.context.namespace import CliNameSpace
from mobench.utils.context.result import CliResult


# Base class of every command, commands/<name>.py defines class <Name>(CliCommand)
class CliCommand:
    def description(self) -> str:
        raise NotImplementedError

    def cli(self, argv=None) -> CliNameSpace:
        raise NotImplementedError

    def exec(self, context: CliContext, args: CliNameSpace) -> CliResult:
        raise NotImplementedError
