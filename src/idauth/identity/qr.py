"""Terminal rendering of the QR codes sent with ``QR`` mechanisms.

The identity service sends the code as a PNG data URI. The image is
converted back into its module grid (cropped to the dark modules, side
length snapped to a valid symbol size) and printed with half-block
characters, two module rows per text line.
"""

from __future__ import annotations

import base64
import binascii
import io

from PIL import Image

from idauth.exceptions import ResponseParseError
from idauth.output import get_output

FINDER_MODULES = 7
MIN_VERSION = 1
MAX_VERSION = 40
QUIET_ZONE = 2

_BLOCKS = {
    (True, True): "█",
    (True, False): "▀",
    (False, True): "▄",
    (False, False): " ",
}


def decode_image(data_uri: str) -> Image.Image:
    """Decode a ``data:image/png;base64,...`` URI into a greyscale image.

    Raises:
        ResponseParseError: If the payload is not a decodable image.
    """
    _, _, payload = data_uri.partition(",")
    try:
        raw = base64.b64decode(payload or data_uri, validate=False)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, ValueError, OSError) as exc:
        raise ResponseParseError(f"failed to display QR code: {exc}") from exc
    return image.convert("L")


def _symbol_modules(estimate: float) -> int:
    """Snap an estimated side length to the nearest QR version (``17 + 4v``)."""
    version = int(round((estimate - 17) / 4))
    version = min(max(version, MIN_VERSION), MAX_VERSION)
    return 17 + 4 * version


def module_grid(image: Image.Image) -> list[list[bool]]:
    """Sample the QR modules of *image*; ``True`` marks a dark module.

    The finder pattern only gives a rough module size. The side length is
    snapped to a valid symbol size and the grid is sampled at
    ``side / modules`` pitch, so images scaled by a non-integer factor
    still line up.
    """
    mono = image.convert("L").point(lambda p: 255 if p < 128 else 0)
    bbox = mono.getbbox()
    if bbox is None:
        raise ResponseParseError("failed to display QR code: image is blank")
    dark = mono.crop(bbox)

    width, height = dark.size
    run = 0
    while run < width and dark.getpixel((run, 0)):
        run += 1
    modules = _symbol_modules(width / max(run / FINDER_MODULES, 1.0))

    pitch_x = width / modules
    pitch_y = height / modules
    grid = []
    for r in range(modules):
        y = min(int((r + 0.5) * pitch_y), height - 1)
        row = []
        for c in range(modules):
            x = min(int((c + 0.5) * pitch_x), width - 1)
            row.append(bool(dark.getpixel((x, y))))
        grid.append(row)
    return grid


def render(grid: list[list[bool]], invert: bool = True) -> str:
    """Render *grid* with half blocks, surrounded by a quiet zone.

    With *invert* (the default, for dark terminal backgrounds) the light
    modules are drawn and the dark modules are left blank.
    """
    cols = len(grid[0]) if grid else 0
    blank = [False] * (cols + 2 * QUIET_ZONE)
    padded = [list(blank) for _ in range(QUIET_ZONE)]
    for row in grid:
        padded.append([False] * QUIET_ZONE + list(row) + [False] * QUIET_ZONE)
    padded.extend(list(blank) for _ in range(QUIET_ZONE))
    if len(padded) % 2:
        padded.append(list(blank))

    lines = []
    for top, bottom in zip(padded[::2], padded[1::2]):
        if invert:
            top = [not cell for cell in top]
            bottom = [not cell for cell in bottom]
        lines.append("".join(_BLOCKS[(t, b)] for t, b in zip(top, bottom)))
    return "\n".join(lines)


def display_qr_code(data_uri: str, invert: bool = True) -> None:
    """Print the QR code carried by *data_uri* to stderr."""
    get_output().block(render(module_grid(decode_image(data_uri)), invert=invert))
