#! /usr/bin/env python
# -*- coding: utf-8 -*-

"""Tick driver: latest target -> low-pass filter -> chain -> joints."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List, Optional

from fabrik import Chain, Vector2D
from filtro import LowPassFilter2D, alpha_from_smoothing
from taper import MIN_SEGMENT_LENGTH, joint_radii, segment_lengths

logger = logging.getLogger(__name__)

# Campos cuyo cambio obliga a reconstruir la cadena
_REBUILD_FIELDS = ("num_segments", "segment_length", "attached", "width", "height")


def clip(value: float, lo: float, hi: float) -> float:
    return max(lo, min(value, hi))


@dataclass(frozen=True)
class ArmSettings:
    num_segments: int = 5
    segment_length: float = 120.0
    attached: bool = True
    smoothing: float = 0.5
    width: float = 960.0
    height: float = 600.0
    tick_ms: int = 5

    @property
    def anchor(self) -> Vector2D:
        # centro del borde inferior del lienzo
        return Vector2D(self.width / 2.0, self.height)

    def lengths(self) -> List[float]:
        return segment_lengths(
            self.num_segments, MIN_SEGMENT_LENGTH, self.segment_length, self.attached
        )

    def radii(self) -> List[float]:
        return joint_radii(self.num_segments, attached=self.attached)


class TargetLatch:
    """Latest raw target. One writer (input capture), one reader (tick)."""

    def __init__(self, initial: Vector2D) -> None:
        self._value = initial

    def write(self, x: float, y: float) -> None:
        self._value = Vector2D(float(x), float(y))

    def read(self) -> Vector2D:
        return self._value


@dataclass(frozen=True)
class _Rig:
    chain: Chain
    radii: List[float]


class Tracker:
    """Owns the latch, the filter and the chain, and runs one solve per tick."""

    def __init__(self, settings: Optional[ArmSettings] = None) -> None:
        self.settings = settings or ArmSettings()
        self.latch = TargetLatch(Vector2D(self.settings.width / 2.0, 0.0))
        self.filter = LowPassFilter2D(alpha_from_smoothing(self.settings.smoothing))
        self._rig = self._build(self.settings)
        self.joints: List[Vector2D] = self._rig.chain.joints
        self.ticks = 0

    @staticmethod
    def _build(settings: ArmSettings) -> _Rig:
        chain = Chain(settings.anchor, settings.lengths(), settings.attached)
        return _Rig(chain=chain, radii=settings.radii())

    @property
    def chain(self) -> Chain:
        return self._rig.chain

    @property
    def radii(self) -> List[float]:
        return self._rig.radii

    def tick(self) -> List[Vector2D]:
        rig = self._rig  # una sola lectura: la cadena no cambia a mitad del tick
        target = self.filter.update(self.latch.read())
        rig.chain.follow(target)
        self.joints = rig.chain.joints
        self.ticks += 1
        return self.joints

    def reconfigure(self, **changes) -> ArmSettings:
        new = replace(self.settings, **changes)
        old = self.settings
        self.settings = new

        if new.smoothing != old.smoothing:
            self.filter.alpha = alpha_from_smoothing(new.smoothing)
            logger.debug("Filter alpha set to %.3f", self.filter.alpha)

        if any(getattr(new, f) != getattr(old, f) for f in _REBUILD_FIELDS):
            # Reinicio completo: se descartan las posiciones anteriores
            self._rig = self._build(new)
            self.joints = self._rig.chain.joints
            logger.debug(
                "Rebuilt chain: %d segments, lengths=%s, attached=%s",
                new.num_segments,
                [round(v, 2) for v in self._rig.chain.lengths],
                new.attached,
            )
        return new

    def run(self, targets: Iterable[Vector2D]) -> Iterator[List[Vector2D]]:
        for t in targets:
            self.latch.write(t.x, t.y)
            yield self.tick()


def circle_path(center: Vector2D, radius: float, steps: int) -> Iterator[Vector2D]:
    if steps <= 0:
        return
    for k in range(steps):
        phi = 2.0 * math.pi * k / steps
        yield center + Vector2D.polar(radius, phi)
