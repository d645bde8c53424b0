#! /usr/bin/env python
# -*- coding: utf-8 -*-

"""Per-segment lengths and joint radii derived from the arm settings.

Attached arms taper linearly from the root (longest link, thickest joint)
to the tip. Free arms use a constant length and a constant radius.
"""

from __future__ import annotations

import math
from typing import List, Sequence

import numpy as np

from fabrik import Vector2D, pairwise

MIN_SEGMENT_LENGTH = 50.0
MIN_JOINT_RADIUS = 10.0
MAX_JOINT_RADIUS = 25.0
FREE_JOINT_RADIUS = 15.0


def scale_decreasing(i, total: int, lo: float, hi: float):
    """((total - i) / total) * (hi - lo) + lo; ``i`` may be an array."""
    return ((total - i) / total) * (hi - lo) + lo


def segment_lengths(
    n: int,
    min_length: float = MIN_SEGMENT_LENGTH,
    max_length: float = 120.0,
    attached: bool = True,
) -> List[float]:
    if n <= 0:
        return []
    if not attached:
        return [float(max_length)] * n
    idx = np.arange(n, dtype=float)
    return [float(v) for v in scale_decreasing(idx, n, min_length, max_length)]


def joint_radii(
    n: int,
    min_radius: float = MIN_JOINT_RADIUS,
    max_radius: float = MAX_JOINT_RADIUS,
    attached: bool = True,
    free_radius: float = FREE_JOINT_RADIUS,
) -> List[float]:
    # n segmentos -> n + 1 juntas
    count = max(0, n) + 1
    if not attached:
        return [float(free_radius)] * count
    idx = np.arange(count, dtype=float)
    return [float(v) for v in scale_decreasing(idx, count, min_radius, max_radius)]


# ------------------------------ Contorno --------------------------------------


def segment_outline(
    base: Vector2D, head: Vector2D, base_radius: float, head_radius: float
) -> np.ndarray:
    """Corners (4, 2) of the filled band joining two joint circles.

    Each end is offset perpendicular to the heading by its own radius, so the
    band narrows toward the thinner joint.
    """
    heading = math.atan2(head.y - base.y, head.x - base.x)
    right = heading - math.pi / 2
    left = heading + math.pi / 2
    return np.array(
        [
            [base.x + base_radius * math.cos(right), base.y + base_radius * math.sin(right)],
            [head.x + head_radius * math.cos(right), head.y + head_radius * math.sin(right)],
            [head.x + head_radius * math.cos(left), head.y + head_radius * math.sin(left)],
            [base.x + base_radius * math.cos(left), base.y + base_radius * math.sin(left)],
        ],
        dtype=float,
    )


def arm_outlines(joints: Sequence[Vector2D], radii: Sequence[float]) -> List[np.ndarray]:
    radii = list(radii)
    return [
        segment_outline(a, b, radii[i], radii[i + 1])
        for i, (a, b) in enumerate(pairwise(list(joints)))
    ]
