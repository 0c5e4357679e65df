"""
options.py — Immutable configuration for one setup run.

SetupOptions is built once (by the CLI or by a caller) and passed down to the
enrollment code. Fields left as None are decided interactively later.
Contradictions raise ConfigurationConflict at construction time, before any
entropy is drawn or file touched.
"""

from dataclasses import dataclass
from typing import Optional

from otp_setup.errors import ConfigurationConflict
from otp_setup.scratch_codes import MAX_SCRATCHCODES, SCRATCHCODES

MODE_TOTP = "totp"
MODE_HOTP = "hotp"

MIN_STEP_SIZE, MAX_STEP_SIZE = 1, 60
MIN_WINDOW_SIZE, MAX_WINDOW_SIZE = 1, 21
MIN_TOTP_WINDOW_SIZE = 3
MIN_RATE_LIMIT, MAX_RATE_LIMIT = 1, 10
MIN_RATE_TIME, MAX_RATE_TIME = 15, 600

QR_MODES = ("NONE", "ANSI", "ANSI_INVERSE", "ANSI_GREY", "UTF8", "UTF8_INVERSE", "UTF8_GREY")
DEFAULT_QR_MODE = "ANSI"


def normalize_qr_mode(value: str) -> str:
    """'utf8-inverse' -> 'UTF8_INVERSE'; raises ConfigurationConflict if unknown."""
    mode = value.upper().replace("-", "_")
    if mode not in QR_MODES:
        raise ConfigurationConflict(f"Invalid qr-mode {value!r}")
    return mode


def _check_range(name: str, value: Optional[int], low: int, high: int) -> None:
    if value is not None and not low <= value <= high:
        raise ConfigurationConflict(f"{name} must be in the range {low}..{high}")


@dataclass(frozen=True)
class SetupOptions:
    """Everything that shapes the generated secret file."""

    mode: Optional[str] = None
    disallow_reuse: Optional[bool] = None
    step_size: Optional[int] = None
    window_size: Optional[int] = None
    minimal_window: bool = False
    rate_limit: Optional[int] = None
    rate_time: Optional[int] = None
    no_rate_limit: bool = False
    emergency_codes: int = SCRATCHCODES
    confirm: bool = True
    force: bool = False
    quiet: bool = False
    label: Optional[str] = None
    issuer: Optional[str] = None
    secret_path: Optional[str] = None
    qr_mode: str = DEFAULT_QR_MODE

    def __post_init__(self):
        if self.mode not in (None, MODE_TOTP, MODE_HOTP):
            raise ConfigurationConflict(f"Unknown mode {self.mode!r}")
        if self.disallow_reuse is not None and self.mode != MODE_TOTP:
            raise ConfigurationConflict(
                "Must select time-based mode, when using -d or -D"
            )

        _check_range("Step size", self.step_size, MIN_STEP_SIZE, MAX_STEP_SIZE)
        if self.step_size is not None and self.mode == MODE_HOTP:
            raise ConfigurationConflict("Step size is not meaningful in counter-based mode")

        _check_range("Window size", self.window_size, MIN_WINDOW_SIZE, MAX_WINDOW_SIZE)
        if self.window_size is not None and self.minimal_window:
            raise ConfigurationConflict("-w and -W are mutually exclusive")
        if (self.mode == MODE_TOTP and self.window_size is not None
                and self.window_size < MIN_TOTP_WINDOW_SIZE):
            raise ConfigurationConflict(
                f"Window size must be at least {MIN_TOTP_WINDOW_SIZE} in time-based mode"
            )

        _check_range("Rate limit", self.rate_limit, MIN_RATE_LIMIT, MAX_RATE_LIMIT)
        _check_range("Rate time", self.rate_time, MIN_RATE_TIME, MAX_RATE_TIME)
        if self.no_rate_limit and (self.rate_limit is not None or self.rate_time is not None):
            raise ConfigurationConflict("-u is mutually exclusive with -r/-R")
        if (self.rate_limit is None) != (self.rate_time is None):
            raise ConfigurationConflict("Must set -r when setting -R, and vice versa")

        _check_range("Number of emergency codes", self.emergency_codes, 0, MAX_SCRATCHCODES)
        if self.secret_path is not None and not self.secret_path:
            raise ConfigurationConflict("-s must be followed by a filename")
        object.__setattr__(self, "qr_mode", normalize_qr_mode(self.qr_mode))

    @property
    def rate_limited(self) -> bool:
        return self.rate_limit is not None
