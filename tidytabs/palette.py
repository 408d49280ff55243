"""Deterministic colour assignment for tab-group labels.

Each label hashes onto a fixed 9-colour palette so the same label gets the
same colour across runs. When there are no more distinct labels than
colours, a greedy pass moves colliding labels onto unused colours, walking
labels in input order and the palette in palette order.
"""

from __future__ import annotations

from collections.abc import Sequence

PALETTE: tuple[str, ...] = (
    "blue",
    "cyan",
    "green",
    "yellow",
    "orange",
    "pink",
    "purple",
    "red",
    "grey",
)

DEFAULT_COLOR = "grey"


def label_hash(label: str) -> int:
    """31-based rolling hash over UTF-16 code units, wrapped to signed 32 bits.

    Case-insensitive and whitespace-trimmed, so "News" and " news " hash alike.
    Lone surrogates count as single code units.
    """
    data = label.strip().lower().encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def color_for_label(label: str) -> str:
    """Hash-only colour for a label, ignoring any other labels."""
    return PALETTE[label_hash(label) % len(PALETTE)]


def assign_colors(labels: Sequence[str]) -> dict[str, str]:
    """Map every label to a palette colour.

    Duplicate labels share one entry. With at most ``len(PALETTE)`` distinct
    labels, every label ends up on its own colour; above that, collisions are
    left as hashed.
    """
    distinct = list(dict.fromkeys(labels))
    colors = {label: color_for_label(label) for label in distinct}

    if len(distinct) > len(PALETTE):
        return colors

    by_color: dict[str, list[str]] = {}
    for label in distinct:
        by_color.setdefault(colors[label], []).append(label)

    for colliding in by_color.values():
        for label in colliding[1:]:
            # recomputed per label: earlier moves may have taken a colour
            used = {c for other, c in colors.items() if other != label}
            free = next((c for c in PALETTE if c not in used), None)
            if free is not None:
                colors[label] = free

    return colors
