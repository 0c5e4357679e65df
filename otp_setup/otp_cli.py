#!/usr/bin/env python3
"""
otp_cli.py — Command line for setting up a one-time-password secret.

Creates a new secret, shows it to the user (QR code, text, a verification
code), and writes ~/.google_authenticator with the chosen policy options and
emergency scratch codes.

Usage examples:
  # Interactive setup, answer the questions
  otp-setup

  # Non-interactive TOTP setup
  otp-setup -t -d -f -r 3 -R 30 -w 3 -C -Q UTF8

  # HOTP secret in a custom location
  otp-setup -c -s /etc/otp/alice -e 10 --verbose
"""

from typing import List, Optional
import argparse
import logging
import sys

from otp_setup import __version__
from otp_setup.enrollment import enroll
from otp_setup.errors import OTPSetupError
from otp_setup.options import MODE_HOTP, MODE_TOTP, QR_MODES, SetupOptions
from otp_setup.otp_core import EntropySource
from otp_setup.prompts import ConsolePrompter, PromptAborted
from otp_setup.qr_display import make_renderer
from otp_setup.scratch_codes import MAX_SCRATCHCODES

logger = logging.getLogger(__name__)

PROG = "otp-setup"


class _Once(argparse.Action):
    """
    Store an option, refusing to see it (or another option sharing `key`)
    twice on one command line.
    """

    def __init__(self, option_strings, dest, key=None, **kwargs):
        self.key = key or dest
        super().__init__(option_strings, dest, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        seen = namespace.__dict__.setdefault("_seen", {})
        if self.key in seen:
            if seen[self.key] == option_string:
                parser.error(f"Duplicate {option_string} option detected")
            parser.error(f"Duplicate {seen[self.key]} and/or {option_string} option detected")
        seen[self.key] = option_string
        setattr(namespace, self.dest, self.const if self.nargs == 0 else values)


def _flag(parser, *names, dest, const=True, key=None, help=None):
    parser.add_argument(*names, dest=dest, action=_Once, nargs=0, const=const,
                        key=key, help=help)


def _value(parser, *names, dest, type=str, metavar=None, key=None, help=None):
    parser.add_argument(*names, dest=dest, action=_Once, type=type, metavar=metavar,
                        key=key, help=help)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=PROG,
        description="Create a TOTP/HOTP secret and write it to ~/.google_authenticator.",
    )
    p.set_defaults(mode=None, confirm=True, disallow_reuse=None, force=False,
                   label=None, issuer=None, quiet=False, qr_mode="ANSI",
                   rate_limit=None, rate_time=None, no_rate_limit=False,
                   secret_path=None, step_size=None, window_size=None,
                   minimal_window=False, emergency_codes=None)
    p.add_argument("--version", action="version", version=f"{PROG} {__version__}")
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    _flag(p, "-c", "--counter-based", dest="mode", const=MODE_HOTP,
          help="Set up counter-based (HOTP) verification")
    _flag(p, "-C", "--no-confirm", dest="confirm", const=False,
          help="Don't confirm code. For non-interactive setups")
    _flag(p, "-t", "--time-based", dest="mode", const=MODE_TOTP,
          help="Set up time-based (TOTP) verification")
    _flag(p, "-d", "--disallow-reuse", dest="disallow_reuse", const=True,
          help="Disallow reuse of previously used TOTP tokens")
    _flag(p, "-D", "--allow-reuse", dest="disallow_reuse", const=False,
          help="Allow reuse of previously used TOTP tokens")
    _flag(p, "-f", "--force", dest="force",
          help="Write file without first confirming with user")
    _value(p, "-l", "--label", dest="label", metavar="LABEL",
           help='Override the default label in "otpauth://" URL')
    _value(p, "-i", "--issuer", dest="issuer", metavar="ISSUER",
           help='Override the default issuer in "otpauth://" URL')
    _flag(p, "-q", "--quiet", dest="quiet", help="Quiet mode")
    _value(p, "-Q", "--qr-mode", dest="qr_mode", metavar="MODE",
           help=f"QRCode output mode: {', '.join(QR_MODES)}")
    _value(p, "-r", "--rate-limit", dest="rate_limit", type=int, metavar="N",
           help="Limit logins to N per every M seconds")
    _value(p, "-R", "--rate-time", dest="rate_time", type=int, metavar="M",
           help="Limit logins to N per every M seconds")
    _flag(p, "-u", "--no-rate-limit", dest="no_rate_limit",
          help="Disable rate-limiting")
    _value(p, "-s", "--secret", dest="secret_path", metavar="FILE",
           help="Specify a non-standard file location")
    _value(p, "-S", "--step-size", dest="step_size", type=int, metavar="S",
           help="Set interval between token refreshes")
    _value(p, "-w", "--window-size", dest="window_size", type=int, metavar="W",
           key="window", help="Set window of concurrently valid codes")
    _flag(p, "-W", "--minimal-window", dest="minimal_window", key="window",
          help="Disable window of concurrently valid codes")
    _value(p, "-e", "--emergency-codes", dest="emergency_codes", type=int, metavar="N",
           help=f"Number of emergency codes to generate (0..{MAX_SCRATCHCODES})")
    return p


def options_from_args(args: argparse.Namespace) -> SetupOptions:
    """Translate parsed arguments into SetupOptions (validated there)."""
    kwargs = dict(
        mode=args.mode,
        disallow_reuse=args.disallow_reuse,
        step_size=args.step_size,
        window_size=args.window_size,
        minimal_window=args.minimal_window,
        rate_limit=args.rate_limit,
        rate_time=args.rate_time,
        no_rate_limit=args.no_rate_limit,
        confirm=args.confirm,
        force=args.force,
        quiet=args.quiet,
        label=args.label,
        issuer=args.issuer,
        secret_path=args.secret_path,
        qr_mode=args.qr_mode,
    )
    if args.emergency_codes is not None:
        kwargs["emergency_codes"] = args.emergency_codes
    return SetupOptions(**kwargs)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[+] %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        options = options_from_args(args)
        logger.debug("Options: %s", options)
        with EntropySource() as entropy:
            enroll(
                options,
                ConsolePrompter(),
                entropy,
                renderer=make_renderer(options.qr_mode, sys.stdout),
                out=sys.stdout,
            )
    except KeyboardInterrupt:
        print()
        return 1
    except PromptAborted:
        return 1
    except OTPSetupError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
