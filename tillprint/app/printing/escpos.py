"""ESC/POS command encoding for 80mm thermal receipt printers.

Everything here is pure: helpers return ``bytes`` (or lists of ``bytes``)
and never touch a device. :class:`CommandBuffer` accumulates command groups
and encoded text in order and joins them when the receipt is complete.
"""

from __future__ import annotations

from typing import Iterable, List, Literal

ESC = 0x1B
GS = 0x1D
LF = 0x0A

# Normal font on 80mm paper
LINE_WIDTH = 48

INIT = bytes([ESC, 0x40])
CUT_PARTIAL = bytes([GS, 0x56, 0x01])
ALIGN_LEFT = bytes([ESC, 0x61, 0x00])
ALIGN_CENTER = bytes([ESC, 0x61, 0x01])
ALIGN_RIGHT = bytes([ESC, 0x61, 0x02])
BOLD_ON = bytes([ESC, 0x45, 0x01])
BOLD_OFF = bytes([ESC, 0x45, 0x00])
SIZE_TRIPLE = bytes([ESC, 0x21, 0x38])
DOUBLE_BOTH = bytes([ESC, 0x21, 0x30])
DOUBLE_HEIGHT = bytes([ESC, 0x21, 0x10])
NORMAL_SIZE = bytes([ESC, 0x21, 0x00])
FEED_LINE = bytes([LF])
CASH_DRAWER = bytes([ESC, 0x70, 0x00, 0x19, 0x78])

QR_MIN_MODULE = 1
QR_MAX_MODULE = 8

Align = Literal["left", "right", "center"]


def feed(lines: int) -> bytes:
    """Return ``ESC d n`` which feeds ``lines`` blank lines."""

    return bytes([ESC, 0x64, lines & 0xFF])


def encode_text(text: str) -> bytes:
    """Map each character to its low byte, ``?`` for code points >= 256.

    The printer firmware has no extended code page loaded, so anything
    outside Latin-1 is printed as a question mark.
    """

    return bytes(ord(c) if ord(c) < 256 else 0x3F for c in text)


def pad(text: str, width: int, align: Align = "left") -> str:
    """Fit ``text`` into exactly ``width`` columns."""

    s = str(text)
    width = max(width, 0)
    if len(s) >= width:
        return s[:width]
    gap = width - len(s)
    if align == "right":
        return " " * gap + s
    if align == "center":
        return " " * (gap // 2) + s + " " * (gap - gap // 2)
    return s + " " * gap


def two_column(left: str, right: str, total_width: int = LINE_WIDTH) -> str:
    """Left-align ``left`` and right-align ``right`` on one line."""

    right = str(right)[: max(total_width - 1, 0)]
    return pad(left, total_width - len(right) - 1) + " " + right


def divider(char: str = "-", width: int = LINE_WIDTH) -> str:
    return char * width


def format_currency(amount: float) -> str:
    """Render ``amount`` as ``Rs.1,234.50``."""

    return f"Rs.{amount:,.2f}"


def format_number(value: float) -> str:
    """Render a quantity or percentage without a trailing ``.0``."""

    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def qr_commands(url: str, module_size: int = 6) -> List[bytes]:
    """Build the ``GS ( k`` blocks that store and print a native QR code.

    The printer rasterises the symbol itself, so no image is transferred.
    ``module_size`` is the cell width in dots; 6 gives roughly 35mm on
    80mm stock.
    """

    if not QR_MIN_MODULE <= module_size <= QR_MAX_MODULE:
        raise ValueError(
            f"QR module size must be between {QR_MIN_MODULE} and {QR_MAX_MODULE}"
        )
    data = encode_text(url)
    # pL pH count the cn, fn and m bytes that precede the payload
    length = len(data) + 3
    if length > 0xFFFF:
        raise ValueError("QR payload too long")
    p_low = length & 0xFF
    p_high = (length >> 8) & 0xFF

    return [
        # model 2
        bytes([GS, 0x28, 0x6B, 0x04, 0x00, 0x31, 0x41, 0x32, 0x00]),
        bytes([GS, 0x28, 0x6B, 0x03, 0x00, 0x31, 0x43, module_size]),
        # error correction level M
        bytes([GS, 0x28, 0x6B, 0x03, 0x00, 0x31, 0x45, 0x31]),
        bytes([GS, 0x28, 0x6B, p_low, p_high, 0x31, 0x50, 0x30]) + data,
        bytes([GS, 0x28, 0x6B, 0x03, 0x00, 0x31, 0x51, 0x30]),
    ]


class CommandBuffer:
    """Ordered accumulator of command groups and encoded text."""

    def __init__(self) -> None:
        self._chunks: List[bytes] = []

    def push(self, *commands: bytes) -> "CommandBuffer":
        self._chunks.extend(commands)
        return self

    def extend(self, commands: Iterable[bytes]) -> "CommandBuffer":
        self._chunks.extend(commands)
        return self

    def text(self, s: str) -> "CommandBuffer":
        self._chunks.append(encode_text(s))
        return self

    def line(self, s: str = "") -> "CommandBuffer":
        return self.text(s).push(FEED_LINE)

    def to_bytes(self) -> bytes:
        return b"".join(self._chunks)

    def __len__(self) -> int:
        return sum(len(c) for c in self._chunks)
