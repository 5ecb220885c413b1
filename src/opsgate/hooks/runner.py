"""
Proof hook runner.

A proof hook is an opaque command reference stored in the token catalog.
OpsGate never interprets it beyond splitting it into an argument list and
running it:

    exit 0  -> token value 1
    exit 1  -> token value 0
    anything else -> execution failure

If the hook prints a `<TOKEN_ID>=<value>` line, the value must be 0 or 1
and agree with the exit code; otherwise the output is rejected.

Execution failures (cannot start, unexpected exit, timeout, unparseable
output) raise HookError subclasses. They are never turned into a 0 value,
since that would report a policy failure for what is really a broken hook.

Security Note:
    Commands are split with shlex and run with shell=False, so the hook
    reference cannot inject shell syntax.
"""

import logging
import os
import re
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from opsgate.errors import HookExecutionError, HookOutputError, HookTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0
DEFAULT_MAX_OUTPUT_BYTES = 1024 * 1024

EXIT_TOKEN_GREEN = 0
EXIT_TOKEN_RED = 1


@dataclass(frozen=True)
class HookOutcome:
    """Result of one successful hook invocation."""

    token_id: str
    hook_ref: str
    value: int
    return_code: int
    duration_seconds: float
    stdout: str = ""
    stderr: str = ""


def _decode(data: bytes, limit: int) -> str:
    if len(data) > limit:
        data = data[:limit] + f"\n... [truncated, exceeded {limit} bytes]".encode()
    return data.decode("utf-8", errors="replace")


def split_hook_ref(hook_ref: str, token_id: str = "") -> list[str]:
    """Split a hook reference into an argument list."""
    try:
        return shlex.split(hook_ref)
    except ValueError as e:
        raise HookExecutionError(
            token_id=token_id,
            hook_ref=hook_ref,
            underlying_error=f"cannot parse command: {e}",
        ) from e


class ProofHookRunner:
    """
    Runs proof hooks in subprocesses, one at a time.

    Attributes:
        timeout_seconds: Upper bound for a single hook
        cwd: Working directory for hooks (default: current directory)
        env: Extra environment variables layered over os.environ
        max_output_bytes: Per-stream output cap
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        cwd: Path | str | None = None,
        env: dict[str, str] | None = None,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ) -> None:
        if timeout_seconds <= 0:
            msg = "timeout_seconds must be positive"
            raise ValueError(msg)
        self.timeout_seconds = timeout_seconds
        self.cwd = Path(cwd) if cwd is not None else None
        self.env = dict(env or {})
        self.max_output_bytes = max_output_bytes

    def run(self, token_id: str, hook_ref: str) -> HookOutcome:
        """
        Run one hook and map its exit code to a token value.

        Args:
            token_id: Token the hook proves
            hook_ref: Opaque command reference from the catalog

        Returns:
            HookOutcome with value 0 or 1

        Raises:
            HookExecutionError: If the hook cannot start or exits with
                a code other than 0 or 1
            HookTimeoutError: If the hook exceeds timeout_seconds
            HookOutputError: If a printed token value is invalid or
                contradicts the exit code
        """
        argv = split_hook_ref(hook_ref, token_id)
        if not argv:
            raise HookExecutionError(token_id=token_id, hook_ref=hook_ref, underlying_error="empty command")

        env = os.environ.copy()
        env.update(self.env)

        logger.debug("Running proof hook for %s: %s", token_id, argv)
        started = time.monotonic()
        try:
            completed = subprocess.run(
                argv,
                cwd=str(self.cwd) if self.cwd else None,
                env=env,
                capture_output=True,
                timeout=self.timeout_seconds,
                shell=False,
            )
        except subprocess.TimeoutExpired as e:
            raise HookTimeoutError(
                token_id=token_id,
                hook_ref=hook_ref,
                timeout_seconds=self.timeout_seconds,
            ) from e
        except FileNotFoundError as e:
            raise HookExecutionError(
                token_id=token_id,
                hook_ref=hook_ref,
                underlying_error=f"executable not found: {argv[0]}",
            ) from e
        except OSError as e:
            raise HookExecutionError(token_id=token_id, hook_ref=hook_ref, underlying_error=str(e)) from e
        duration = time.monotonic() - started

        stdout = _decode(completed.stdout, self.max_output_bytes)
        stderr = _decode(completed.stderr, self.max_output_bytes)

        if completed.returncode == EXIT_TOKEN_GREEN:
            value = 1
        elif completed.returncode == EXIT_TOKEN_RED:
            value = 0
        else:
            raise HookExecutionError(
                token_id=token_id,
                hook_ref=hook_ref,
                underlying_error=f"unexpected exit code {completed.returncode}",
            )

        try:
            printed = parse_printed_value(token_id, stdout)
        except HookOutputError as e:
            raise HookOutputError(token_id=token_id, hook_ref=hook_ref, output=e.output) from e
        if printed is not None and printed != value:
            raise HookOutputError(
                token_id=token_id,
                hook_ref=hook_ref,
                output=f"{token_id}={printed} contradicts exit code {completed.returncode}",
            )

        logger.info("Proof hook %s -> %d (%.2fs)", token_id, value, duration)
        return HookOutcome(
            token_id=token_id,
            hook_ref=hook_ref,
            value=value,
            return_code=completed.returncode,
            duration_seconds=duration,
            stdout=stdout,
            stderr=stderr,
        )


def parse_printed_value(token_id: str, stdout: str) -> int | None:
    """
    Return the last `<token_id>=<value>` printed by a hook, or None.

    Raises:
        HookOutputError: If the printed value is not 0 or 1
    """
    pattern = re.compile(rf"^{re.escape(token_id)}=(.*)$", re.MULTILINE)
    matches = pattern.findall(stdout)
    if not matches:
        return None
    raw = matches[-1].strip()
    if raw not in ("0", "1"):
        raise HookOutputError(token_id=token_id, output=f"{token_id}={raw}")
    return int(raw)
