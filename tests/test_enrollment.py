"""
End-to-end setup runs with scripted answers and replayed entropy.
"""

import io
import os

import pytest

from otp_setup import enrollment
from otp_setup.config_document import HOTP_COUNTER, TOTP_AUTH
from otp_setup.enrollment import display_enroll_info, enroll
from otp_setup.errors import EntropyExhausted
from otp_setup.options import SetupOptions
from otp_setup.prompts import ScriptedPrompter
from otp_setup.qr_display import NullRenderer

SCRATCH_BLOCKS = [
    b"\x00\x98\x96\x80",  # 10000000
    b"\x05\xf5\xe0\xff",  # 99999999
    b"\x00\x00\x00\x01",  # rejected, redrawn
    b"\x00\xbc\x61\x4e",  # 12345678
    b"\x05\x39\x7f\xb1",  # 87654321
    b"\x7f\xff\xff\xff",  # 47483647
]
SCRATCH_CODES = [10000000, 99999999, 12345678, 87654321, 47483647]


class RecordingRenderer:
    def __init__(self, supported=True):
        self.supported = supported
        self.rendered = []

    def render(self, text):
        self.rendered.append(text)
        return self.supported


@pytest.fixture
def entropy(make_entropy, rfc_secret):
    return make_entropy(rfc_secret, *SCRATCH_BLOCKS)


@pytest.fixture
def secret_path(tmp_path):
    return str(tmp_path / ".google_authenticator")


def _options(secret_path, **kwargs):
    kwargs.setdefault("label", "alice@host")
    kwargs.setdefault("issuer", "host")
    kwargs.setdefault("force", True)
    return SetupOptions(secret_path=secret_path, **kwargs)


def test_totp_with_defaults_end_to_end(entropy, secret_path, rfc_secret_b32):
    options = _options(secret_path, mode="totp", step_size=30, emergency_codes=5, confirm=False)
    prompter = ScriptedPrompter(yes_no=False)
    out = io.StringIO()

    result = enroll(options, prompter, entropy, out=out)

    assert result.written
    with open(secret_path, encoding="utf-8") as f:
        lines = f.read().splitlines()
    assert lines[0] == rfc_secret_b32
    assert len(lines[0]) == 32
    directives = [line for line in lines if line.startswith('" ')]
    assert directives == [TOTP_AUTH]
    codes = lines[2:]
    assert len(codes) == 5
    assert all(len(code) == 8 and code.isdigit() and code[0] != "0" for code in codes)
    assert [int(code) for code in codes] == SCRATCH_CODES == result.scratch_codes

    printed = out.getvalue()
    assert f"Your new secret key is: {rfc_secret_b32}" in printed
    assert "Your verification code for code 1 is 287082" in printed
    assert "  10000000\n  99999999\n  12345678\n" in printed
    assert len(prompter.questions) == 3


def test_confirm_loop_until_correct(entropy, secret_path):
    options = _options(secret_path, mode="totp", disallow_reuse=False,
                       window_size=3, no_rate_limit=True)
    prompter = ScriptedPrompter(codes=[None, 123456, 287082])
    out = io.StringIO()

    enroll(options, prompter, entropy, out=out, clock=lambda: 59.0)

    printed = out.getvalue()
    assert printed.count("Code incorrect (correct code 287082). Try again.") == 2
    assert "Code confirmed" in printed
    assert prompter.questions.count("Enter code from app (-1 to skip):") == 3


def test_confirm_uses_step_size(entropy, secret_path):
    options = _options(secret_path, mode="totp", step_size=60, disallow_reuse=False,
                       window_size=3, no_rate_limit=True)
    out = io.StringIO()

    enroll(options, ScriptedPrompter(codes=[755224]), entropy, out=out, clock=lambda: 59.0)

    assert "Code confirmed" in out.getvalue()
    with open(secret_path, encoding="utf-8") as f:
        assert '" STEP_SIZE 60\n' in f.read()


def test_confirm_can_be_skipped(entropy, secret_path):
    options = _options(secret_path, mode="totp", disallow_reuse=False,
                       window_size=3, no_rate_limit=True)
    out = io.StringIO()

    result = enroll(options, ScriptedPrompter(codes=[-1]), entropy, out=out)

    assert "Code confirmation skipped" in out.getvalue()
    assert result.written


def test_mode_question_and_hotp_file(entropy, secret_path):
    def answer(question):
        return question.startswith("Do you want me to update")

    options = _options(secret_path, force=False)
    prompter = ScriptedPrompter(yes_no=answer)

    result = enroll(options, prompter, entropy, out=io.StringIO())

    assert result.use_totp is False
    assert prompter.questions[0] == "Do you want authentication tokens to be time-based"
    assert prompter.questions[1] == f'Do you want me to update your "{secret_path}" file?'
    with open(secret_path, encoding="utf-8") as f:
        lines = f.read().splitlines()
    assert lines[1] == HOTP_COUNTER
    assert len(lines) == 2 + 5


def test_declining_update_writes_nothing(entropy, secret_path):
    options = _options(secret_path, mode="totp", force=False)

    result = enroll(options, ScriptedPrompter(yes_no=False), entropy, out=io.StringIO())

    assert not result.written
    assert result.path == secret_path
    assert not os.path.exists(secret_path)


def test_quiet_prints_nothing(entropy, secret_path):
    options = _options(secret_path, mode="hotp", quiet=True, window_size=5, no_rate_limit=True)
    out = io.StringIO()

    result = enroll(options, ScriptedPrompter(), entropy, out=out)

    assert out.getvalue() == ""
    assert result.document.lines[1] == '" WINDOW_SIZE 5'


def test_entropy_failure_writes_nothing(make_entropy, rfc_secret, secret_path):
    entropy = make_entropy(rfc_secret, b"\x00\x98\x96\x80", b"\x00")
    options = _options(secret_path, mode="totp", confirm=False)

    with pytest.raises(EntropyExhausted):
        enroll(options, ScriptedPrompter(), entropy, out=io.StringIO())
    assert not os.path.exists(secret_path)


def test_default_path_from_home(entropy, tmp_path):
    options = SetupOptions(mode="hotp", force=True, quiet=True, minimal_window=True,
                           no_rate_limit=True)

    result = enroll(options, ScriptedPrompter(), entropy, environ={"HOME": str(tmp_path)})

    assert result.path == str(tmp_path / ".google_authenticator")
    assert os.path.exists(result.path)


def test_enroll_info_renders_qr_on_terminal(tty_out, rfc_secret_b32):
    renderer = RecordingRenderer()
    display_enroll_info(rfc_secret_b32, "alice@host", True, "My Co", renderer, "ANSI", tty_out)
    assert renderer.rendered == [
        f"otpauth://totp/alice@host?secret={rfc_secret_b32}&issuer=My%20Co"
    ]
    assert tty_out.getvalue() == ""


def test_enroll_info_falls_back_to_text(tty_out, rfc_secret_b32):
    display_enroll_info(rfc_secret_b32, "alice@host", False, None, NullRenderer(), "UTF8", tty_out)
    printed = tty_out.getvalue()
    assert "Consider typing the OTP secret into your app manually." in printed
    assert f"otpauth://hotp/alice@host?secret={rfc_secret_b32}" in printed


@pytest.mark.parametrize("qr_mode, tty", [("NONE", True), ("ANSI", False)])
def test_enroll_info_skipped(qr_mode, tty, tty_out, rfc_secret_b32):
    out = tty_out if tty else io.StringIO()
    renderer = RecordingRenderer()
    display_enroll_info(rfc_secret_b32, "alice@host", True, "host", renderer, qr_mode, out)
    assert renderer.rendered == []
    assert out.getvalue() == ""


def test_default_label_and_issuer(monkeypatch):
    monkeypatch.setattr(enrollment, "get_username", lambda: "alice")
    monkeypatch.setattr(enrollment.socket, "gethostname", lambda: "box")
    assert enrollment.default_label() == "alice@box"
    assert enrollment.default_issuer() == "box"


def test_hostname_falls_back_to_unix(monkeypatch):
    monkeypatch.setattr(enrollment.socket, "gethostname", lambda: "")
    assert enrollment.get_hostname() == "unix"
