"""Encodings of a monitored subprocess outcome.

Two audiences, two encodings:

* ``log_result()`` is stored in ``job_finish.result``: exit code 0..255 as-is,
  death by signal S as ``256 + S``, failure to spawn as ``512``.
* ``exit_status()`` is what the supervising process returns to its own caller,
  following shell convention: exit code as-is, signal S as ``128 + S``, failure
  to spawn as ``-1``.
"""

from __future__ import annotations

from dataclasses import dataclass

MAX_EXIT_CODE = 255
MAX_SIGNAL = 255
LOG_SIGNAL_BASE = 256
LOG_NOT_STARTED = 512
SHELL_SIGNAL_BASE = 128
EXIT_NOT_STARTED = -1


@dataclass(slots=True, frozen=True)
class ExecutionOutcome:
    """Exactly one of: exited with a code, killed by a signal, never started."""

    exit_code: int | None = None
    signal: int | None = None

    def __post_init__(self) -> None:
        if self.exit_code is not None and self.signal is not None:
            raise ValueError("An outcome cannot have both an exit code and a signal.")
        if self.exit_code is not None and not 0 <= self.exit_code <= MAX_EXIT_CODE:
            raise ValueError(f"Exit code out of range 0..{MAX_EXIT_CODE}: {self.exit_code}")
        if self.signal is not None and not 1 <= self.signal <= MAX_SIGNAL:
            raise ValueError(f"Signal out of range 1..{MAX_SIGNAL}: {self.signal}")

    @classmethod
    def exited(cls, code: int) -> ExecutionOutcome:
        return cls(exit_code=code)

    @classmethod
    def signaled(cls, signal: int) -> ExecutionOutcome:
        return cls(signal=signal)

    @classmethod
    def not_started(cls) -> ExecutionOutcome:
        return cls()

    @classmethod
    def from_returncode(cls, returncode: int) -> ExecutionOutcome:
        """Map ``Popen.returncode``, where ``-N`` means killed by signal N."""

        if returncode < 0:
            return cls.signaled(-returncode)
        # Windows exit codes are 32-bit; keep the low byte like a POSIX wait status.
        return cls.exited(returncode & 0xFF)

    @property
    def failed_to_start(self) -> bool:
        return self.exit_code is None and self.signal is None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def log_result(self) -> int:
        if self.exit_code is not None:
            return self.exit_code
        if self.signal is not None:
            return LOG_SIGNAL_BASE + self.signal
        return LOG_NOT_STARTED

    def exit_status(self) -> int:
        if self.exit_code is not None:
            return self.exit_code
        if self.signal is not None:
            return SHELL_SIGNAL_BASE + self.signal
        return EXIT_NOT_STARTED

    def describe(self) -> str:
        if self.exit_code is not None:
            return f"exit {self.exit_code}"
        if self.signal is not None:
            return f"signal {self.signal}"
        return "not started"


def decode_log_result(value: int) -> ExecutionOutcome:
    """Inverse of ``ExecutionOutcome.log_result``."""

    if 0 <= value <= MAX_EXIT_CODE:
        return ExecutionOutcome.exited(value)
    if LOG_SIGNAL_BASE < value <= LOG_SIGNAL_BASE + MAX_SIGNAL:
        return ExecutionOutcome.signaled(value - LOG_SIGNAL_BASE)
    if value == LOG_NOT_STARTED:
        return ExecutionOutcome.not_started()
    raise ValueError(f"Not a recognized logged result: {value}")
