"""
Emergency scratch codes.

Each code consumes its own 4-byte block of entropy. Values that would print
with a leading zero are discarded and the slot is redrawn from fresh entropy,
so every code is exactly SCRATCHCODE_LENGTH digits.
"""

from typing import List
import logging

from otp_setup.errors import ConfigurationConflict
from otp_setup.otp_core import EntropySource

logger = logging.getLogger(__name__)

SCRATCHCODES = 5            # default number of codes
MAX_SCRATCHCODES = 10
SCRATCHCODE_LENGTH = 8
BYTES_PER_SCRATCHCODE = 4   # 32 bits of randomness is enough

SCRATCHCODE_MODULUS = 10 ** SCRATCHCODE_LENGTH
SCRATCHCODE_MIN = SCRATCHCODE_MODULUS // 10


def scratch_code_from_bytes(block: bytes) -> int:
    """Big-endian, masked to 31 bits, reduced modulo 10**8. May be < 10**7."""
    return (int.from_bytes(block, "big") & 0x7FFFFFFF) % SCRATCHCODE_MODULUS


def generate_scratch_code(entropy: EntropySource) -> int:
    """
    Draw one scratch code in [10000000, 99999999].

    Rejected values cost another BYTES_PER_SCRATCHCODE read; a failed read
    propagates as EntropyExhausted.
    """
    while True:
        code = scratch_code_from_bytes(entropy.read(BYTES_PER_SCRATCHCODE))
        if code >= SCRATCHCODE_MIN:
            return code
        logger.debug("Scratch code below %d rejected, drawing again", SCRATCHCODE_MIN)


def generate_scratch_codes(entropy: EntropySource, count: int = SCRATCHCODES) -> List[int]:
    if not 0 <= count <= MAX_SCRATCHCODES:
        raise ConfigurationConflict(
            f"Number of emergency codes must be in the range 0..{MAX_SCRATCHCODES}"
        )
    codes = [generate_scratch_code(entropy) for _ in range(count)]
    logger.debug("Generated %d scratch codes", len(codes))
    return codes


def format_scratch_code(code: int) -> str:
    return f"{code:0{SCRATCHCODE_LENGTH}d}"
