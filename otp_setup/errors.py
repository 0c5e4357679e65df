"""
Exception hierarchy for otp_setup.

Every failure is terminal for the run: the CLI reports the message and exits
with status 1. Nothing here is retried.
"""


class OTPSetupError(Exception):
    """Base class for every otp_setup failure."""


class EntropyExhausted(OTPSetupError):
    """The random device returned fewer bytes than requested."""


class EncodingError(OTPSetupError, ValueError):
    """Base32 input could not be decoded, or encoded output is too large."""


class ConfigurationConflict(OTPSetupError, ValueError):
    """Contradictory or out-of-range setup options."""


class FileConflict(OTPSetupError):
    """A temporary file from an earlier run is still in place."""

    def __init__(self, path: str):
        super().__init__(f"Temporary file {path!r} already exists")
        self.path = path


class WriteFailure(OTPSetupError):
    """Writing or renaming the new secret file failed."""
