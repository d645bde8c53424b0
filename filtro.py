#! /usr/bin/env python
# -*- coding: utf-8 -*-

"""First-order exponential smoothing for the target signal."""

from __future__ import annotations

from fabrik import Vector2D


def alpha_from_smoothing(level: float) -> float:
    # glide 0 -> sin suavizado, glide -> 1 -> casi no se mueve
    return 1.0 - float(level)


class LowPassFilter:
    """Exponential low-pass filter of a scalar stream.

    ``alpha = 1`` passes the input through unchanged, values close to 0 smooth
    heavily. Values outside [0, 1] are accepted as given and produce
    overshooting or inverted damping.
    """

    def __init__(self, alpha: float, state: float = 0.0) -> None:
        self.alpha = float(alpha)
        self.state = float(state)

    def update(self, value: float) -> float:
        self.state = self.state + self.alpha * (value - self.state)
        return self.state

    def reset(self, state: float = 0.0) -> None:
        self.state = float(state)


class LowPassFilter2D:
    """Two independent scalar filters, one per axis."""

    def __init__(self, alpha: float, state: Vector2D = Vector2D(0.0, 0.0)) -> None:
        self.filter_x = LowPassFilter(alpha, state.x)
        self.filter_y = LowPassFilter(alpha, state.y)

    @property
    def alpha(self) -> float:
        return self.filter_x.alpha

    @alpha.setter
    def alpha(self, value: float) -> None:
        self.filter_x.alpha = float(value)
        self.filter_y.alpha = float(value)

    @property
    def state(self) -> Vector2D:
        return Vector2D(self.filter_x.state, self.filter_y.state)

    def update(self, point: Vector2D) -> Vector2D:
        x = self.filter_x.update(point.x)
        y = self.filter_y.update(point.y)
        return Vector2D(x, y)

    def reset(self, state: Vector2D = Vector2D(0.0, 0.0)) -> None:
        self.filter_x.reset(state.x)
        self.filter_y.reset(state.y)
