#!/usr/bin/env python3
"""
otp_core.py — Core primitives for provisioning a TOTP / HOTP secret.

Contents:
- EntropySource: exact-length reads from the OS random device.
- Base32 encode / tolerant decode for secrets typed in by hand.
- HOTP code computation (RFC 4226 dynamic truncation), TOTP counter helper.
- otpauth:// enrollment URL with the percent-encoding authenticator apps expect.

No prompting and no file writes happen here; see enrollment.py and persist.py.
"""

from typing import BinaryIO, Optional
import base64
import hashlib
import hmac
import logging
import struct

from otp_setup.errors import EncodingError, EntropyExhausted

logger = logging.getLogger(__name__)

# --- Config / constants ----------------------------------------------------
SECRET_BITS = 160                        # must be divisible by eight
SECRET_BYTES = SECRET_BITS // 8
BITS_PER_BASE32_CHAR = 5
SECRET_BASE32_LEN = (SECRET_BITS + BITS_PER_BASE32_CHAR - 1) // BITS_PER_BASE32_CHAR
VERIFICATION_CODE_MODULUS = 1000 * 1000  # six digits
DEFAULT_TIME_STEP = 30
MAX_SECRET_BYTES = 100                   # hard cap on decoded secret size
MAX_URL_LENGTH = 10000
RANDOM_DEVICE = "/dev/urandom"

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_BASE32_VALUES = {ch: i for i, ch in enumerate(BASE32_ALPHABET)}
_BASE32_SEPARATORS = frozenset(" \t\r\n-=")


# --- Entropy ---------------------------------------------------------------
class EntropySource:
    """
    Blocking reader over the OS secure random device.

    read(n) returns exactly n bytes or raises EntropyExhausted. A short read is
    never retried: a degraded random source must not quietly produce a weak
    secret.

    A file-like `stream` can be injected instead of opening RANDOM_DEVICE.
    """

    def __init__(self, stream: Optional[BinaryIO] = None, path: str = RANDOM_DEVICE):
        self.path = path
        if stream is None:
            try:
                stream = open(path, "rb", buffering=0)
            except OSError as e:
                raise EntropyExhausted(f"Failed to open {path!r}: {e}") from e
        self._stream = stream

    def read(self, n: int) -> bytes:
        try:
            data = self._stream.read(n)
        except OSError as e:
            raise EntropyExhausted(f"Failed to read from {self.path!r}: {e}") from e
        if data is None or len(data) != n:
            got = 0 if data is None else len(data)
            raise EntropyExhausted(
                f"Failed to read from {self.path!r}: wanted {n} bytes, got {got}"
            )
        logger.debug("Read %d bytes of entropy", n)
        return data

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> "EntropySource":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def generate_secret(entropy: EntropySource) -> bytes:
    """Draw SECRET_BYTES (160 bits) of secret material."""
    return entropy.read(SECRET_BYTES)


# --- Base32 ----------------------------------------------------------------
def base32_encode(raw: bytes) -> str:
    """
    Encode bytes as unpadded upper-case Base32.

    Produces ceil(8 * len(raw) / 5) characters, e.g. 32 for a 20-byte secret.
    """
    return base64.b32encode(raw).decode("ascii").rstrip("=")


def estimate_decoded_len(text: str) -> int:
    """Upper bound on the bytes decode() can produce for `text`."""
    return (len(text) + 7) // 8 * BITS_PER_BASE32_CHAR


def base32_decode(text: str, max_len: Optional[int] = None) -> bytes:
    """
    Decode Base32 text typed or pasted by a person.

    - Case-insensitive.
    - Whitespace, '-' and '=' are skipped wherever they appear.
    - Any other character outside A-Z2-7 raises EncodingError.
    - Trailing bits that do not fill a whole byte are dropped.

    Decoding stops once `max_len` bytes were produced (default: the estimate
    from estimate_decoded_len). The number of decoded bytes is len(result) and
    may be shorter than the estimate.
    """
    if max_len is None:
        max_len = estimate_decoded_len(text)
    out = bytearray()
    buffer = 0
    bits_left = 0
    for ch in text:
        if len(out) >= max_len:
            break
        if ch in _BASE32_SEPARATORS:
            continue
        value = _BASE32_VALUES.get(ch.upper())
        if value is None:
            raise EncodingError(f"Invalid Base32 character {ch!r}")
        buffer = ((buffer << BITS_PER_BASE32_CHAR) | value) & 0xFFFF
        bits_left += BITS_PER_BASE32_CHAR
        if bits_left >= 8:
            bits_left -= 8
            out.append((buffer >> bits_left) & 0xFF)
    return bytes(out)


def decode_secret(secret_b32: str) -> bytes:
    """
    Decode a Base32 secret for use as an HMAC key.

    Raises:
        EncodingError: if the input would need more than MAX_SECRET_BYTES, or
            decodes to zero bytes.
    """
    estimate = estimate_decoded_len(secret_b32)
    if estimate <= 0 or estimate > MAX_SECRET_BYTES:
        raise EncodingError(
            f"Base32 secret too long or empty (estimated {estimate} bytes)"
        )
    key = base32_decode(secret_b32, estimate)
    if len(key) < 1:
        raise EncodingError("Base32 secret contains no key material")
    return key


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """8-byte big-endian counter, the HOTP challenge."""
    return struct.pack(">Q", i)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    RFC 4226 dynamic truncation.

    offset = low nibble of the last digest byte; the four bytes at offset are
    read big-endian and masked to 31 bits.
    """
    offset = hmac_digest[-1] & 0x0F
    truncated = int.from_bytes(hmac_digest[offset:offset + 4], "big")
    return truncated & 0x7FFFFFFF


def compute_code(secret: bytes, counter: int) -> int:
    """
    HOTP value for raw key bytes and a counter, in [0, 999999].

    Pure function: the same (secret, counter) always yields the same code.
    """
    digest = hmac.new(secret, int_to_bytes(counter), hashlib.sha1).digest()
    return dynamic_truncate(digest) % VERIFICATION_CODE_MODULUS


def generate_code(secret_b32: str, counter: int) -> int:
    """Like compute_code, but takes the Base32 secret as stored on disk."""
    return compute_code(decode_secret(secret_b32), counter)


def totp_counter(timestamp: float, step_size: int = DEFAULT_TIME_STEP) -> int:
    """floor(timestamp / step_size)"""
    return int(timestamp) // step_size


def format_code(code: int) -> str:
    """Six digits, zero-padded."""
    return f"{code:06d}"


# --- Enrollment URL --------------------------------------------------------
_URL_RESERVED = frozenset(b"%&?=")


def url_encode(text: str) -> str:
    """
    Percent-encode a label or issuer for an otpauth:// URL.

    Bytes <= 0x20, >= 0x7F and any of '%&?=' become %XX (upper-case hex);
    everything else, including '/', ':' and '@', passes through unchanged.
    """
    raw = text.encode("utf-8")
    if 3 * len(raw) + 1 > MAX_URL_LENGTH:
        raise EncodingError("Generated URL would be unreasonably large")
    parts = []
    for b in raw:
        if b <= 0x20 or b >= 0x7F or b in _URL_RESERVED:
            parts.append(f"%{b:02X}")
        else:
            parts.append(chr(b))
    return "".join(parts)


def format_otpauth_uri(
    secret_b32: str,
    label: str,
    use_totp: bool = True,
    issuer: Optional[str] = None,
) -> str:
    """
    Build the otpauth:// URL an authenticator app scans.

    otpauth://{h|t}otp/<label>?secret=<secret>[&issuer=<issuer>]

    The issuer parameter is omitted when issuer is None or empty.
    """
    kind = "t" if use_totp else "h"
    uri = f"otpauth://{kind}otp/{url_encode(label)}?secret={secret_b32}"
    if issuer:
        uri += f"&issuer={url_encode(issuer)}"
    return uri
