#! /usr/bin/env python
# -*- coding: utf-8 -*-

"""Planar FABRIK chain: vectors, rigid segments and the reaching chain."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

T = TypeVar("T")


def pairwise(items: Sequence[T]) -> Iterator[Tuple[T, T]]:
    # (a, b), (b, c), ... ; vacío si hay menos de dos elementos
    for i in range(len(items) - 1):
        yield items[i], items[i + 1]


# ------------------------------- Vector2D -------------------------------------


@dataclass(frozen=True)
class Vector2D:
    x: float
    y: float

    @classmethod
    def polar(cls, length: float, angle: float) -> Vector2D:
        return cls(length * math.cos(angle), length * math.sin(angle))

    def add(self, other: Vector2D) -> Vector2D:
        return Vector2D(self.x + other.x, self.y + other.y)

    def sub(self, other: Vector2D) -> Vector2D:
        return Vector2D(self.x - other.x, self.y - other.y)

    def add_scalar(self, k: float) -> Vector2D:
        return Vector2D(self.x + k, self.y + k)

    def sub_scalar(self, k: float) -> Vector2D:
        return Vector2D(self.x - k, self.y - k)

    def scale(self, k: float) -> Vector2D:
        return Vector2D(k * self.x, k * self.y)

    def magnitude(self) -> float:
        return math.hypot(self.x, self.y)

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=float)

    def __add__(self, other: Vector2D) -> Vector2D:
        return self.add(other)

    def __sub__(self, other: Vector2D) -> Vector2D:
        return self.sub(other)

    def __mul__(self, k: float) -> Vector2D:
        return self.scale(k)

    __rmul__ = __mul__

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y


# -------------------------------- Segment -------------------------------------


@dataclass(frozen=True)
class Segment:
    """Rigid link from ``base`` (proximal) to ``head`` (distal).

    Segments are values: every operation returns a new segment and leaves
    the original untouched.
    """

    base: Vector2D
    head: Vector2D

    @classmethod
    def from_polar(cls, base: Vector2D, length: float, angle: float = 0.0) -> Segment:
        return cls(base, base + Vector2D.polar(length, angle))

    @property
    def heading(self) -> float:
        return math.atan2(self.head.y - self.base.y, self.head.x - self.base.x)

    @property
    def length(self) -> float:
        return (self.head - self.base).magnitude()

    def rebase(self, new_base: Vector2D) -> Segment:
        """Translate so that ``base`` lands on ``new_base``."""
        return Segment(new_base, (self.head - self.base) + new_base)

    def move(self, delta: Vector2D) -> Segment:
        return Segment(self.base + delta, self.head + delta)

    def head_towards(self, target: Vector2D) -> Segment:
        """Re-orient toward ``target`` keeping base and length.

        The head only reaches ``target`` when it happens to lie exactly one
        length away from the base.
        """
        angle = math.atan2(target.y - self.base.y, target.x - self.base.x)
        return Segment.from_polar(self.base, self.length, angle)

    def follow(self, target: Vector2D) -> Segment:
        """Single-link FABRIK step.

        Orient toward ``target``, then drag the link along that line so its
        head sits on ``target`` and its base one length behind it.
        """
        seg = self.head_towards(target).rebase(target)
        return seg.move(seg.base - seg.head)


# --------------------------------- Chain --------------------------------------


class Chain:
    """Ordered chain of segments anchored (optionally) at ``base``.

    ``follow`` runs exactly one backward reaching pass and, when the chain is
    attached, one forward re-anchoring pass. It does not iterate to a
    tolerance: the caller invokes it once per animation tick and successive
    ticks play the role of successive iterations.
    """

    def __init__(
        self,
        base: Vector2D,
        segment_lengths: Sequence[float],
        attached: bool = True,
    ) -> None:
        self.base = base
        self.attached = attached
        self.segments: List[Segment] = [
            Segment.from_polar(base, float(length), 0.0) for length in segment_lengths
        ]

    def __len__(self) -> int:
        return len(self.segments)

    def __repr__(self) -> str:
        mode = "attached" if self.attached else "free"
        return f"Chain(base={self.base!r}, segments={len(self.segments)}, {mode})"

    @property
    def joints(self) -> List[Vector2D]:
        if not self.segments:
            return []
        return [seg.base for seg in self.segments] + [self.segments[-1].head]

    @property
    def points(self) -> np.ndarray:
        # (n+1, 2), mismo formato que forward_kinematics
        joints = self.joints
        if not joints:
            return np.zeros((0, 2), dtype=float)
        return np.asarray([[p.x, p.y] for p in joints], dtype=float)

    @property
    def end_effector(self) -> Optional[Vector2D]:
        if not self.segments:
            return None
        return self.segments[-1].head

    @property
    def lengths(self) -> List[float]:
        return [seg.length for seg in self.segments]

    def follow(self, target: Vector2D) -> None:
        segs = self.segments
        n = len(segs)
        if n == 0:
            return

        # Barrido hacia atrás: del efector a la raíz
        segs[-1] = segs[-1].follow(target)
        for i in reversed(range(n - 1)):
            segs[i] = segs[i].follow(segs[i + 1].base)

        if not self.attached:
            return

        # Barrido hacia delante: vuelve a fijar la raíz
        segs[0] = segs[0].rebase(self.base)
        for i in range(1, n):
            segs[i] = segs[i].rebase(segs[i - 1].head)
