"""
config_document.py — The secret file written to ~/.google_authenticator.

Layout, one item per line:

    <32-char base32 secret>
    " <policy directives, most recently added first>
    " TOTP_AUTH | " HOTP_COUNTER 1
    <8-digit scratch codes>

add_directive() always inserts right below the secret line, so directives
appear in the reverse order they were added. The mode line is appended before
any directive is added and therefore ends up last, next to the scratch codes.
Existing readers of the file parse directives relative to the secret line;
keep the insertion rule as is.
"""

from typing import List
import logging

from otp_setup.errors import ConfigurationConflict
from otp_setup.options import (
    MAX_WINDOW_SIZE,
    MIN_TOTP_WINDOW_SIZE,
    MAX_RATE_LIMIT,
    MAX_RATE_TIME,
    MAX_STEP_SIZE,
    SetupOptions,
)
from otp_setup.otp_core import DEFAULT_TIME_STEP, SECRET_BASE32_LEN
from otp_setup.scratch_codes import MAX_SCRATCHCODES, SCRATCHCODE_LENGTH, format_scratch_code

logger = logging.getLogger(__name__)

DIRECTIVE_PREFIX = '" '

TOTP_AUTH = DIRECTIVE_PREFIX + "TOTP_AUTH"
HOTP_COUNTER = DIRECTIVE_PREFIX + "HOTP_COUNTER 1"
DISALLOW_REUSE = DIRECTIVE_PREFIX + "DISALLOW_REUSE"
DEFAULT_WIDE_WINDOW = 17
DEFAULT_RATE_LIMIT = (3, 30)
MINIMAL_HOTP_WINDOW = 1


def step_size_directive(step_size: int) -> str:
    return f"{DIRECTIVE_PREFIX}STEP_SIZE {step_size}"


def window_size_directive(window_size: int) -> str:
    return f"{DIRECTIVE_PREFIX}WINDOW_SIZE {window_size}"


def rate_limit_directive(attempts: int, seconds: int) -> str:
    return f"{DIRECTIVE_PREFIX}RATE_LIMIT {attempts} {seconds}"


def _line_size(line: str) -> int:
    return len(line) + 1  # newline


# Worst case: every directive at its widest plus the maximum number of codes.
MAX_DOCUMENT_SIZE = (
    _line_size("A" * SECRET_BASE32_LEN)
    + max(_line_size(TOTP_AUTH), _line_size(HOTP_COUNTER))
    + _line_size(DISALLOW_REUSE)
    + _line_size(step_size_directive(MAX_STEP_SIZE))
    + _line_size(window_size_directive(MAX_WINDOW_SIZE))
    + _line_size(rate_limit_directive(MAX_RATE_LIMIT, MAX_RATE_TIME))
    + MAX_SCRATCHCODES * (SCRATCHCODE_LENGTH + 1)
)


class ConfigDocument:
    """
    Ordered lines of the secret file, built up in memory.

    Lines are stored without their trailing newline; str(doc) renders the
    file contents.
    """

    def __init__(self, secret_b32: str, capacity: int = MAX_DOCUMENT_SIZE):
        self.capacity = capacity
        self._lines: List[str] = []
        self._append(secret_b32)

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    @property
    def secret(self) -> str:
        return self._lines[0]

    def __len__(self) -> int:
        return sum(_line_size(line) for line in self._lines)

    def __str__(self) -> str:
        return "".join(line + "\n" for line in self._lines)

    def _check_capacity(self, line: str) -> None:
        assert len(self) + _line_size(line) <= self.capacity, "secret file buffer overflow"

    def _append(self, line: str) -> None:
        line = line.rstrip("\n")
        self._check_capacity(line)
        self._lines.append(line)

    def set_mode(self, use_totp: bool) -> None:
        """Append the mode line. Must happen exactly once, before scratch codes."""
        assert not any(line in (TOTP_AUTH, HOTP_COUNTER) for line in self._lines)
        self._append(TOTP_AUTH if use_totp else HOTP_COUNTER)

    def add_scratch_code(self, code: int) -> None:
        self._append(format_scratch_code(code))

    def add_directive(self, text: str) -> None:
        """Insert `text` as the line directly after the secret line."""
        text = text.rstrip("\n")
        self._check_capacity(text)
        self._lines.insert(1, text)
        logger.debug("Added option %s", text.strip('" '))

    def maybe_add_directive(self, prompter, msg: str, text: str) -> bool:
        """Ask `msg`; add `text` on yes."""
        if prompter.ask_yes_no(msg):
            self.add_directive(text)
            return True
        return False


REUSE_QUESTION = (
    "Do you want to disallow multiple uses of the same authentication\n"
    "token? This restricts you to one login about every 30s, but it increases\n"
    "your chances to notice or even prevent man-in-the-middle attacks"
)

TOTP_WINDOW_QUESTION = (
    "By default, a new token is generated every 30 seconds by the mobile app.\n"
    "In order to compensate for possible time-skew between the client and the server,\n"
    "we allow an extra token before and after the current time. This allows for a\n"
    "time skew of up to 30 seconds between authentication server and client. If you\n"
    "experience problems with poor time synchronization, you can increase the window\n"
    "from its default size of 3 permitted codes (one previous code, the current\n"
    "code, the next code) to 17 permitted codes (the 8 previous codes, the current\n"
    "code, and the 8 next codes). This will permit for a time skew of up to 4 minutes\n"
    "between client and server.\n"
    "Do you want to do so?"
)

HOTP_WINDOW_QUESTION = (
    "By default, three tokens are valid at any one time.  This accounts for\n"
    "generated-but-not-used tokens and failed login attempts. In order to\n"
    "decrease the likelihood of synchronization problems, this window can be\n"
    "increased from its default size of 3 to 17. Do you want to do so?"
)

RATE_LIMIT_QUESTION = (
    "If the computer that you are logging into isn't hardened against brute-force\n"
    "login attempts, you can enable rate-limiting for the authentication module.\n"
    "By default, this limits attackers to no more than 3 login attempts every 30s.\n"
    "Do you want to enable rate-limiting?"
)


def add_policy_directives(doc: ConfigDocument, use_totp: bool,
                          options: SetupOptions, prompter) -> None:
    """
    Add the optional directives for `options`, asking `prompter` about
    anything the options leave open. Order of addition: reuse, step size,
    window (TOTP) or window (HOTP), then rate limit.
    """
    if use_totp:
        if options.disallow_reuse is None:
            doc.maybe_add_directive(prompter, REUSE_QUESTION, DISALLOW_REUSE)
        elif options.disallow_reuse:
            doc.add_directive(DISALLOW_REUSE)

        if options.step_size is not None and options.step_size != DEFAULT_TIME_STEP:
            doc.add_directive(step_size_directive(options.step_size))

        if options.window_size is None and not options.minimal_window:
            doc.maybe_add_directive(prompter, TOTP_WINDOW_QUESTION,
                                    window_size_directive(DEFAULT_WIDE_WINDOW))
        elif options.minimal_window:
            doc.add_directive(window_size_directive(MIN_TOTP_WINDOW_SIZE))
        elif options.window_size < MIN_TOTP_WINDOW_SIZE:
            # Only reachable when the mode was chosen interactively.
            raise ConfigurationConflict(
                f"Window size must be at least {MIN_TOTP_WINDOW_SIZE} in time-based mode"
            )
        else:
            doc.add_directive(window_size_directive(options.window_size))
    else:
        if options.step_size is not None:
            # Only reachable when the mode was chosen interactively.
            raise ConfigurationConflict("Step size is not meaningful in counter-based mode")
        if options.window_size is None and not options.minimal_window:
            doc.maybe_add_directive(prompter, HOTP_WINDOW_QUESTION,
                                    window_size_directive(DEFAULT_WIDE_WINDOW))
        else:
            doc.add_directive(window_size_directive(
                MINIMAL_HOTP_WINDOW if options.minimal_window else options.window_size))

    if options.no_rate_limit:
        return
    if options.rate_limited:
        doc.add_directive(rate_limit_directive(options.rate_limit, options.rate_time))
    else:
        doc.maybe_add_directive(prompter, RATE_LIMIT_QUESTION,
                                rate_limit_directive(*DEFAULT_RATE_LIMIT))


def build_document(secret_b32: str, use_totp: bool, scratch_codes,
                   options: SetupOptions, prompter) -> ConfigDocument:
    """Secret line, mode line, scratch codes, then the policy directives."""
    doc = ConfigDocument(secret_b32)
    doc.set_mode(use_totp)
    for code in scratch_codes:
        doc.add_scratch_code(code)
    add_policy_directives(doc, use_totp, options, prompter)
    return doc
