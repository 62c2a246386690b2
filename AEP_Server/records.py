"""Fixed-offset record layouts for the data blocks the item decoder reads.

Each layout is a big-endian numpy structured dtype; reserved regions are kept
as opaque byte fields so the offsets of the known fields stay explicit.
"""

from __future__ import annotations

import numpy as np


def _window(prefix: str) -> list:
    # Composition timing values sit in 8-byte windows: u16, 24-bit value, 3 spare bytes.
    return [
        (f"{prefix}_head", ">u2"),
        (prefix, "u1", (3,)),
        (f"{prefix}_spare", "u1", (3,)),
    ]


# Item descriptor ("idta").
IDTA_DTYPE = np.dtype([
    ("type", ">u2"),
    ("unknown00", "V14"),
    ("id", ">u4"),
])

# Footage geometry and timing ("sspc").
SSPC_DTYPE = np.dtype([
    ("unknown00", "V30"),
    ("width", ">u4"),              # 30
    ("height", ">u4"),             # 34
    ("seconds_dividend", ">u4"),   # 38
    ("seconds_divisor", ">u4"),    # 42
    ("unknown01", "V10"),
    ("framerate", ">u4"),          # 56
    ("framerate_dividend", ">u2"), # 60
])

# Composition descriptor ("cdta").
CDTA_DTYPE = np.dtype(
    [("unknown00", "V10")]
    + _window("unknown01")        # 10
    + _window("playhead")         # 18
    + _window("start_frame")      # 26
    + _window("end_frame")        # 34
    + _window("comp_duration")    # 42
    + [
        ("unknown02", ">u2"),                  # 50
        ("background_color", "u1", (3,)),      # 52
        ("unknown03", "V85"),
        ("width", ">u2"),                      # 140
        ("height", ">u2"),                     # 142
        ("unknown04", "V12"),
        ("framerate", ">u2"),                  # 156
        ("unknown05", "V7"),
        ("start_offset", "u1", (3,)),          # 165
        ("start_offset_spare", ">u2"),         # 168
        ("comparison_framerate", ">u2"),       # 170
    ]
)

# Project header ("nhed"); only the colour depth byte is read.
NHED_DTYPE = np.dtype([
    ("unknown00", "V15"),
    ("depth", "u1"),
])

# Footage sub-type descriptor ("opti") is read as raw bytes.
OPTI_FOOTAGE_TYPE_OFFSET = 4
OPTI_SOLID_NAME_SLICE = slice(26, 255)
OPTI_PLACEHOLDER_NAME_SLICE = slice(10, None)
