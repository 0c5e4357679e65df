import pytest

from otp_setup.errors import ConfigurationConflict, EntropyExhausted
from otp_setup.otp_core import EntropySource
from otp_setup.scratch_codes import (
    format_scratch_code,
    generate_scratch_code,
    generate_scratch_codes,
    scratch_code_from_bytes,
)

TOO_SMALL = b"\x00\x00\x00\x01"        # 1
SMALLEST = b"\x00\x98\x96\x80"         # 10000000
LARGEST = b"\x05\xf5\xe0\xff"          # 99999999
WRAPS_TO_ZERO = b"\x05\xf5\xe1\x00"    # 100000000 % 10**8 == 0
HIGH_BIT = b"\xff\xff\xff\xff"         # masked to 0x7FFFFFFF


@pytest.mark.parametrize(
    "block, expected",
    [
        (TOO_SMALL, 1),
        (SMALLEST, 10000000),
        (LARGEST, 99999999),
        (WRAPS_TO_ZERO, 0),
        (HIGH_BIT, 47483647),
    ],
    ids=["one", "smallest", "largest", "wraps", "high-bit"],
)
def test_scratch_code_from_bytes(block, expected):
    assert scratch_code_from_bytes(block) == expected


def test_leading_zero_codes_are_redrawn(make_entropy):
    entropy = make_entropy(TOO_SMALL, WRAPS_TO_ZERO, SMALLEST)
    assert generate_scratch_code(entropy) == 10000000


def test_entropy_failure_during_redraw_is_fatal(make_entropy):
    entropy = make_entropy(TOO_SMALL, b"\x00\x00")
    with pytest.raises(EntropyExhausted):
        generate_scratch_code(entropy)


def test_each_code_uses_its_own_block(make_entropy):
    entropy = make_entropy(LARGEST, TOO_SMALL, SMALLEST, HIGH_BIT)
    assert generate_scratch_codes(entropy, 3) == [99999999, 10000000, 47483647]


def test_zero_codes_reads_nothing(make_entropy):
    assert generate_scratch_codes(make_entropy(), 0) == []


@pytest.mark.parametrize("count", [-1, 11])
def test_code_count_is_bounded(make_entropy, count):
    with pytest.raises(ConfigurationConflict):
        generate_scratch_codes(make_entropy(LARGEST * 11), count)


def test_generated_codes_are_always_eight_digits():
    with EntropySource() as entropy:
        codes = [code for _ in range(20) for code in generate_scratch_codes(entropy, 10)]
    assert all(10000000 <= code <= 99999999 for code in codes)
    assert all(len(format_scratch_code(code)) == 8 for code in codes)
