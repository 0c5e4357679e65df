"""
enrollment.py — One complete setup run.

Draw a secret, show it (QR code, text, a verification code), draw scratch
codes, assemble the secret file and write it. Everything interactive goes
through the prompter and the `out` stream so a run can be scripted.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, TextIO
import logging
import os
import socket
import sys
import time

from otp_setup.config_document import ConfigDocument, build_document
from otp_setup.options import MODE_TOTP, SetupOptions
from otp_setup.otp_core import (
    DEFAULT_TIME_STEP,
    EntropySource,
    base32_encode,
    format_code,
    format_otpauth_uri,
    generate_code,
    generate_secret,
    totp_counter,
)
from otp_setup.persist import default_secret_path, persist
from otp_setup.qr_display import NullRenderer
from otp_setup.scratch_codes import format_scratch_code, generate_scratch_codes

logger = logging.getLogger(__name__)

HOTP_DISPLAY_COUNTER = 1


@dataclass
class EnrollmentResult:
    secret: str
    use_totp: bool
    scratch_codes: List[int] = field(default_factory=list)
    path: Optional[str] = None
    document: Optional[ConfigDocument] = None

    @property
    def written(self) -> bool:
        return self.document is not None


# --- Default label / issuer ------------------------------------------------
def get_hostname() -> str:
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = ""
    return hostname or "unix"


def get_username() -> str:
    """Login name of the real uid, or the uid itself if it has no passwd entry."""
    uid = os.getuid()
    try:
        import pwd
        return pwd.getpwuid(uid).pw_name
    except (ImportError, KeyError):
        return str(uid)


def default_label() -> str:
    return f"{get_username()}@{get_hostname()}"


def default_issuer() -> str:
    return get_hostname()


# --- Steps -----------------------------------------------------------------
def choose_mode(options: SetupOptions, prompter) -> bool:
    """True for time-based (TOTP), False for counter-based (HOTP)."""
    if options.mode is None:
        return prompter.ask_yes_no("Do you want authentication tokens to be time-based")
    return options.mode == MODE_TOTP


def display_enroll_info(secret_b32: str, label: str, use_totp: bool,
                        issuer: Optional[str], renderer, qr_mode: str, out: TextIO) -> None:
    """Show the otpauth:// URL as a QR code when writing to a terminal."""
    if qr_mode == "NONE":
        return
    url = format_otpauth_uri(secret_b32, label, use_totp, issuer)
    if not out.isatty():
        return
    if not renderer.render(url):
        print("Failed to show QR code visually for scanning.\n"
              "Consider typing the OTP secret into your app manually.", file=out)
        print(f"    {url}", file=out)


def confirm_code(secret_b32: str, step_size: int, prompter, out: TextIO,
                 clock: Callable[[], float] = time.time) -> bool:
    """
    Ask for the code shown by the app until it matches the current TOTP step.

    No timeout; only a correct code or a negative number ends the loop.
    Returns False when skipped.
    """
    while True:
        answer = prompter.ask_code("Enter code from app (-1 to skip):")
        if answer is not None and answer < 0:
            print("Code confirmation skipped", file=out)
            return False
        correct = generate_code(secret_b32, totp_counter(clock(), step_size))
        if answer == correct:
            print("Code confirmed", file=out)
            return True
        logger.debug("Code mismatch, asking again")
        print(f"Code incorrect (correct code {format_code(correct)}). Try again.", file=out)


def enroll(options: SetupOptions, prompter, entropy: EntropySource,
           renderer=None, out: Optional[TextIO] = None,
           clock: Callable[[], float] = time.time, environ=None) -> EnrollmentResult:
    """
    Run one setup. Returns the result whether or not the file was written
    (the user may decline the update); errors propagate as OTPSetupError.
    """
    out = out or sys.stdout
    renderer = renderer or NullRenderer()

    secret = base32_encode(generate_secret(entropy))
    logger.debug("Generated new %d-character secret", len(secret))
    use_totp = choose_mode(options, prompter)
    result = EnrollmentResult(secret=secret, use_totp=use_totp)

    if not options.quiet:
        label = options.label or default_label()
        issuer = options.issuer if options.issuer is not None else default_issuer()
        display_enroll_info(secret, label, use_totp, issuer, renderer, options.qr_mode, out)
        print(f"Your new secret key is: {secret}", file=out)
        if options.confirm and use_totp:
            confirm_code(secret, options.step_size or DEFAULT_TIME_STEP, prompter, out, clock)
        else:
            code = generate_code(secret, HOTP_DISPLAY_COUNTER)
            print(f"Your verification code for code {HOTP_DISPLAY_COUNTER} is "
                  f"{format_code(code)}", file=out)
        print("Your emergency scratch codes are:", file=out)

    result.scratch_codes = generate_scratch_codes(entropy, options.emergency_codes)
    if not options.quiet:
        for code in result.scratch_codes:
            print(f"  {format_scratch_code(code)}", file=out)

    result.path = options.secret_path or default_secret_path(environ)
    if not options.force and not prompter.ask_yes_no(
            f'Do you want me to update your "{result.path}" file?'):
        logger.debug("Update of %s declined", result.path)
        return result

    document = build_document(secret, use_totp, result.scratch_codes, options, prompter)
    persist(document, result.path)
    result.document = document
    logger.debug("Wrote %s", result.path)
    return result
