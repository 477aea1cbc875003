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

import os
import shlex
import subprocess
import time
from threading import Timer

# 3 hours
DEFAULT_TIMEOUT_SECOND = 3 * 3600

# exit code reported when the executable itself cannot be found
TOOL_NOT_FOUND_CODE = 127

# exit code reported when the executable exists but cannot be started
TOOL_NOT_EXECUTABLE_CODE = 126


class CommandOutput:
    def __init__(
        self,
        args,
        returncode,
        stdout="",
        stderr="",
        timed_out=False,
        tool_missing=False,
        use_time_ms=0,
    ):
        self.args = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.timed_out = timed_out
        self.tool_missing = tool_missing
        self.use_time_ms = use_time_ms

    def is_success(self) -> bool:
        return self.returncode == 0 and not self.timed_out and not self.tool_missing

    @property
    def output(self) -> str:
        """stdout and stderr joined, for error reports."""
        parts = [p.rstrip() for p in (self.stdout, self.stderr) if p and p.strip()]
        return "\n".join(parts)

    def __repr__(self):
        return (
            f"CommandOutput(args={self.args!r}, returncode={self.returncode}, "
            f"timed_out={self.timed_out}, tool_missing={self.tool_missing})"
        )


def decode_bytes(data: bytes) -> str:
    if not data:
        return ""
    try:
        return bytes.decode(data, "UTF-8")
    except UnicodeDecodeError:
        return bytes.decode(data, "UTF-8", errors="replace")


def format_command(command) -> str:
    return " ".join(shlex.quote(str(x)) for x in command)


def exec_command(command, cwd=None, env=None, timeout_second=DEFAULT_TIMEOUT_SECOND) -> CommandOutput:
    """
    Run an external tool and capture its output.

    The process is killed once timeout_second elapses. A missing executable
    is reported through tool_missing, and one that cannot be started (no
    exec permission, bad format) through exit code 126, instead of raising.

    Args:
        command: Argument list, the first item is the executable
        cwd: Working directory for the tool
        env: Extra environment variables merged over os.environ
        timeout_second: Wall-clock limit for the call

    Returns:
        CommandOutput: exit code, decoded stdout/stderr and timeout flag
    """
    args = [str(x) for x in command]
    start_mills = int(time.time() * 1000)
    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update({k: str(v) for k, v in env.items()})
    try:
        popen = subprocess.Popen(
            args,
            cwd=str(cwd) if cwd else None,
            env=full_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError:
        return CommandOutput(
            args,
            TOOL_NOT_FOUND_CODE,
            stderr=f"command not found: {args[0]}",
            tool_missing=True,
        )
    except OSError as e:
        return CommandOutput(
            args,
            TOOL_NOT_EXECUTABLE_CODE,
            stderr=f"cannot execute {args[0]}: {e}",
        )

    killed = []

    def _kill(process):
        killed.append(True)
        process.kill()

    timer = Timer(timeout_second, _kill, [popen])
    try:
        timer.start()
        stdout, stderr = popen.communicate()
    finally:
        timer.cancel()
    use_time = int(time.time() * 1000) - start_mills
    err_msg = decode_bytes(stderr)
    if killed:
        err_msg = (
            f"{err_msg}\nFailed for timeout({popen.returncode}) after "
            f"{timeout_second}s, use_time: {use_time}ms"
        ).strip()
    return CommandOutput(
        args,
        popen.returncode,
        stdout=decode_bytes(stdout),
        stderr=err_msg,
        timed_out=bool(killed),
        use_time_ms=use_time,
    )
