"""
qr_display.py — Show the enrollment URL as a QR code in the terminal.

Renderers share one method, render(text) -> bool; False means "could not
display", and the caller falls back to printing the secret for manual entry.
make_renderer() checks for the `qrcode` package at run time and returns a
NullRenderer when it is missing or the mode is NONE.
"""

from typing import List, Optional, TextIO
import logging
import sys

logger = logging.getLogger(__name__)

ANSI_RESET = "\x1B[0m"
ANSI_BLACKONGREY = "\x1B[30;47m"
ANSI_INVERSEOFF = "\x1B[27m"
ANSI_INVERSE = "\x1B[7m"
UTF8_BOTH = "█"
UTF8_TOPHALF = "▀"
UTF8_BOTTOMHALF = "▄"


class NullRenderer:
    """Never displays anything."""

    def render(self, text: str) -> bool:
        return False


class TerminalQRRenderer:
    """
    Draw a QR code with ANSI colour escapes or Unicode half blocks.

    ANSI modes print two spaces per module, toggling inverse video; UTF8 modes
    pack two rows into one line with half-block characters, which halves the
    height but is not shown correctly by every terminal. *_INVERSE swaps the
    colours, *_GREY draws black on grey.
    """

    def __init__(self, qr_mode: str = "ANSI", out: Optional[TextIO] = None):
        self.qr_mode = qr_mode
        self.out = out or sys.stdout

    def encode(self, text: str) -> List[List[bool]]:
        import qrcode
        from qrcode.constants import ERROR_CORRECT_M

        qr = qrcode.QRCode(version=None, error_correction=ERROR_CORRECT_M, border=0)
        qr.add_data(text.encode("utf-8"))
        qr.make(fit=True)
        return qr.get_matrix()

    def render(self, text: str) -> bool:
        try:
            matrix = self.encode(text)
        except ImportError:
            logger.debug("qrcode package not available")
            return False
        self.out.write(self.draw(matrix))
        self.out.flush()
        return True

    @property
    def _inverse_colors(self) -> bool:
        return self.qr_mode.endswith("_INVERSE")

    @property
    def _color_setup(self) -> str:
        if self.qr_mode.endswith("_GREY"):
            return ANSI_BLACKONGREY
        return ANSI_INVERSE if self._inverse_colors else ""

    def draw(self, matrix: List[List[bool]]) -> str:
        if self.qr_mode.startswith("ANSI"):
            return self._draw_ansi(matrix)
        return self._draw_utf8(matrix)

    def _draw_ansi(self, matrix: List[List[bool]]) -> str:
        width = len(matrix)
        setup = self._color_setup
        inverse = ANSI_INVERSEOFF if self._inverse_colors else ANSI_INVERSE
        inverse_off = ANSI_INVERSE if self._inverse_colors else ANSI_INVERSEOFF
        blank = setup + "  " * (width + 4) + ANSI_RESET + "\n"

        lines = [ANSI_RESET, blank, blank]
        for row in matrix:
            line = [setup, "    "]
            inverted = False
            for dark in row:
                if dark != inverted:
                    line.append(inverse if dark else inverse_off)
                    inverted = dark
                line.append("  ")
            if inverted:
                line.append(inverse_off)
            line.append("    " + ANSI_RESET + "\n")
            lines.append("".join(line))
        lines += [blank, blank]
        return "".join(lines)

    def _draw_utf8(self, matrix: List[List[bool]]) -> str:
        width = len(matrix)
        setup = self._color_setup
        blank = setup + " " * (width + 4) + ANSI_RESET + "\n"

        lines = [ANSI_RESET, blank]
        for y in range(0, width, 2):
            line = [setup, "  "]
            for x in range(width):
                top = matrix[y][x]
                bottom = y + 1 < width and matrix[y + 1][x]
                if top:
                    line.append(UTF8_BOTH if bottom else UTF8_TOPHALF)
                else:
                    line.append(UTF8_BOTTOMHALF if bottom else " ")
            line.append("  " + ANSI_RESET + "\n")
            lines.append("".join(line))
        lines.append(blank)
        return "".join(lines)


def make_renderer(qr_mode: str = "ANSI", out: Optional[TextIO] = None):
    """Pick a renderer for `qr_mode`, falling back to NullRenderer."""
    if qr_mode == "NONE":
        return NullRenderer()
    try:
        import qrcode  # noqa: F401
    except ImportError:
        logger.debug("qrcode package not installed, QR display disabled")
        return NullRenderer()
    return TerminalQRRenderer(qr_mode, out)
