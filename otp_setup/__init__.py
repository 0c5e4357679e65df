"""
otp_setup package
=================

Sets up a one-time-password (HOTP/TOTP, RFC 4226 & RFC 6238) secret for the
current user and writes it, with policy options and emergency scratch codes,
to ~/.google_authenticator.

──────────────────────────────────────────────
Core algorithm
──────────────────────────────────────────────
- HOTP: code = Truncate(HMAC-SHA1(key=secret, msg=counter)) mod 10^6
- TOTP: HOTP with counter = floor(unix_time / step_size), step_size 30 by default
- Dynamic truncation: offset = last digest byte & 0x0F, 4 bytes big-endian,
  top bit cleared.

──────────────────────────────────────────────
Quick example
──────────────────────────────────────────────
>>> from otp_setup import EntropySource, base32_encode, generate_secret, generate_code
>>> with EntropySource() as entropy:
...     secret = base32_encode(generate_secret(entropy))
>>> code = generate_code(secret, 1)
"""

__version__ = "1.0.0"

from otp_setup.otp_core import (
    EntropySource,
    base32_decode,
    base32_encode,
    compute_code,
    format_otpauth_uri,
    generate_code,
    generate_secret,
)
