import io

import pytest

from otp_setup.otp_core import EntropySource

RFC4226_SECRET = b"12345678901234567890"
RFC4226_SECRET_B32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


class TTYStringIO(io.StringIO):
    """StringIO that claims to be a terminal."""

    def isatty(self):
        return True


@pytest.fixture
def make_entropy():
    """Build an EntropySource that replays the given bytes, then runs dry."""

    def _make(*chunks):
        return EntropySource(stream=io.BytesIO(b"".join(chunks)), path="<test>")

    return _make


@pytest.fixture
def rfc_secret():
    return RFC4226_SECRET


@pytest.fixture
def rfc_secret_b32():
    return RFC4226_SECRET_B32


@pytest.fixture
def tty_out():
    return TTYStringIO()
