#! /usr/bin/env python
# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "matplotlib",
#     "numpy",
#     "typer",
# ]
# ///

# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
import tomllib
from dataclasses import replace
from typing import Iterable, List, Optional

import matplotlib.pyplot as plt
import numpy as np
import typer
from matplotlib.patches import Circle, Polygon
from matplotlib.widgets import Button, Slider

from fabrik import Vector2D
from taper import MIN_SEGMENT_LENGTH, arm_outlines
from tracker import ArmSettings, Tracker, circle_path, clip

app = typer.Typer(add_completion=False)

# Rangos de los controles
SEGMENTS_RANGE = (1, 6)
LENGTH_RANGE = (50.0, 150.0)
LENGTH_STEP = 10.0
GLIDE_RANGE = (0.0, 0.9)
GLIDE_STEP = 0.1


# ------------------------------ TOML soporte ----------------------------------


def validate_settings(s: ArmSettings) -> ArmSettings:
    if s.num_segments < 1:
        raise ValueError(f"'segments' debe ser al menos 1, se recibió {s.num_segments}.")
    if s.segment_length < MIN_SEGMENT_LENGTH:
        raise ValueError(
            f"'length' debe ser al menos {MIN_SEGMENT_LENGTH:g}, "
            f"se recibió {s.segment_length}."
        )
    if not 0.0 <= s.smoothing < 1.0:
        raise ValueError(f"'smoothing' debe estar en [0, 1), se recibió {s.smoothing}.")
    if s.width <= 0 or s.height <= 0:
        raise ValueError("'width' y 'height' del lienzo deben ser positivos.")
    if s.tick_ms <= 0:
        raise ValueError(f"'tick_ms' debe ser positivo, se recibió {s.tick_ms}.")
    return s


def fit_to_controls(s: ArmSettings) -> dict:
    """Changes that bring ``s`` inside the ranges and steps of the sliders."""
    segments = int(clip(s.num_segments, *SEGMENTS_RANGE))
    lo, hi = LENGTH_RANGE
    length = lo + round((clip(s.segment_length, lo, hi) - lo) / LENGTH_STEP) * LENGTH_STEP
    glide = round(round(clip(s.smoothing, *GLIDE_RANGE) / GLIDE_STEP) * GLIDE_STEP, 3)
    changes = {
        "num_segments": segments,
        "segment_length": float(clip(length, lo, hi)),
        "smoothing": glide,
    }
    return {k: v for k, v in changes.items() if getattr(s, k) != v}


def _number(table: dict, key: str, where: str, default: float) -> float:
    val = table.get(key, default)
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        raise ValueError(f"En [{where}], '{key}' debe ser un número.")
    return float(val)


def load_arm_config(path: str) -> ArmSettings:
    """Read a TOML file shaped like::

    [arm]
    segments = 5        # number of links
    length = 120.0      # longest link (root) / every link when free
    attached = true     # anchored to the bottom of the canvas
    smoothing = 0.5     # glide, 0 disables the filter
    tick_ms = 5

    [canvas]
    width = 960
    height = 600
    """
    with open(path, "rb") as f:
        data = tomllib.load(f)

    if "arm" not in data or not isinstance(data["arm"], dict):
        raise ValueError("El archivo TOML debe tener una sección [arm].")
    arm = data["arm"]
    canvas = data.get("canvas", {})
    if not isinstance(canvas, dict):
        raise ValueError("[canvas] debe ser una tabla.")

    defaults = ArmSettings()

    segments = arm.get("segments", defaults.num_segments)
    if isinstance(segments, bool) or not isinstance(segments, int):
        raise ValueError("En [arm], 'segments' debe ser un entero.")

    attached = arm.get("attached", defaults.attached)
    if not isinstance(attached, bool):
        raise ValueError("En [arm], 'attached' debe ser un booleano.")

    tick_ms = arm.get("tick_ms", defaults.tick_ms)
    if isinstance(tick_ms, bool) or not isinstance(tick_ms, int):
        raise ValueError("En [arm], 'tick_ms' debe ser un entero.")

    settings = ArmSettings(
        num_segments=segments,
        segment_length=_number(arm, "length", "arm", defaults.segment_length),
        attached=attached,
        smoothing=_number(arm, "smoothing", "arm", defaults.smoothing),
        width=_number(canvas, "width", "canvas", defaults.width),
        height=_number(canvas, "height", "canvas", defaults.height),
        tick_ms=tick_ms,
    )
    return validate_settings(settings)


# ----------------------------- Visualización ---------------------------------


class ArmViewer:
    """Interactive window: the arm chases the pointer.

    - Pointer motion over the canvas writes the raw target.
    - A canvas timer runs one tick per interval and redraws.
    - Sliders: number of segments, segment length, glide.
    - Button: attach / detach the root.

    Input listeners and the timer have separate start/stop calls.
    """

    def __init__(self, tracker: Tracker) -> None:
        self.tracker = tracker
        # Los sliders solo representan valores dentro de sus rangos y pasos
        changes = fit_to_controls(tracker.settings)
        if changes:
            tracker.reconfigure(**changes)
        s = tracker.settings

        self.fig, self.ax = plt.subplots()
        self.fig.subplots_adjust(bottom=0.25)
        self.ax.set_xlim(0.0, s.width)
        self.ax.set_ylim(s.height, 0.0)  # coordenadas de pantalla: y hacia abajo
        self.ax.set_aspect("equal", adjustable="box")
        self.ax.grid(True, linestyle=":", alpha=0.4)
        self.ax.set_title("FABRIK 2D")

        self.links: List[Polygon] = []
        self.circles: List[Circle] = []
        self._chain = None

        # Objetivo filtrado
        (self.target_artist,) = self.ax.plot([], [], marker="*", color="k", ms=12)

        # Widgets
        ax_segments = self.fig.add_axes([0.15, 0.12, 0.3, 0.03])
        ax_length = self.fig.add_axes([0.6, 0.12, 0.3, 0.03])
        ax_glide = self.fig.add_axes([0.15, 0.06, 0.3, 0.03])
        ax_attach = self.fig.add_axes([0.6, 0.05, 0.12, 0.05])

        self.slider_segments = Slider(
            ax_segments,
            "segmentos",
            SEGMENTS_RANGE[0],
            SEGMENTS_RANGE[1],
            valinit=s.num_segments,
            valstep=1,
            valfmt="%0.0f",
        )
        self.slider_length = Slider(
            ax_length,
            "longitud",
            LENGTH_RANGE[0],
            LENGTH_RANGE[1],
            valinit=s.segment_length,
            valstep=LENGTH_STEP,
            valfmt="%0.0f",
        )
        self.slider_glide = Slider(
            ax_glide,
            "suavizado",
            GLIDE_RANGE[0],
            GLIDE_RANGE[1],
            valinit=s.smoothing,
            valstep=GLIDE_STEP,
            valfmt="%0.1f",
        )
        self.btn_attach = Button(ax_attach, self._attach_label())

        self.slider_segments.on_changed(self.on_segments)
        self.slider_length.on_changed(self.on_length)
        self.slider_glide.on_changed(self.on_glide)
        self.btn_attach.on_clicked(self.on_toggle)

        self.timer = self.fig.canvas.new_timer(interval=int(s.tick_ms))
        self.timer.add_callback(self._on_timer)
        self.running = False
        self._motion_cid: Optional[int] = None

        self._sync_artists()
        self._draw()

    # -- ciclo de vida --

    def connect_input(self) -> None:
        if self._motion_cid is None:
            self._motion_cid = self.fig.canvas.mpl_connect(
                "motion_notify_event", self._on_motion
            )

    def disconnect_input(self) -> None:
        if self._motion_cid is not None:
            self.fig.canvas.mpl_disconnect(self._motion_cid)
            self._motion_cid = None

    def start(self) -> None:
        self.running = True
        self.timer.start()

    def stop(self) -> None:
        self.running = False
        self.timer.stop()

    def show(self) -> None:
        self.connect_input()
        self.start()
        plt.show()

    # -- dibujo --

    def _attach_label(self) -> str:
        return "Soltar" if self.tracker.settings.attached else "Anclar"

    def _sync_artists(self) -> None:
        # La cadena se reconstruyó: se regeneran los parches
        chain = self.tracker.chain
        if chain is self._chain:
            return
        self._chain = chain
        for art in self.links + self.circles:
            art.remove()
        self.links.clear()
        self.circles.clear()

        for _ in range(len(chain)):
            poly = Polygon(np.zeros((4, 2)), closed=True, facecolor="black")
            self.ax.add_patch(poly)
            self.links.append(poly)
        for r in self.tracker.radii:
            circ = Circle((0.0, 0.0), r, facecolor="black", edgecolor="white")
            self.ax.add_patch(circ)
            self.circles.append(circ)

    def _draw(self) -> None:
        joints = self.tracker.joints
        for poly, corners in zip(self.links, arm_outlines(joints, self.tracker.radii)):
            poly.set_xy(corners)
        for p, circ in zip(joints, self.circles):
            circ.set_center((p.x, p.y))
        target = self.tracker.filter.state
        self.target_artist.set_data([target.x], [target.y])
        self.fig.canvas.draw_idle()

    # -- eventos --

    def _on_motion(self, event) -> None:
        if event.inaxes is not self.ax or event.xdata is None or event.ydata is None:
            return
        s = self.tracker.settings
        self.tracker.latch.write(
            clip(event.xdata, 0.0, s.width), clip(event.ydata, 0.0, s.height)
        )

    def _on_timer(self) -> None:
        if not self.running:
            return
        self.tracker.tick()
        self._draw()

    def _reconfigure(self, **changes) -> None:
        self.tracker.reconfigure(**changes)
        self._sync_artists()
        self._draw()

    def on_segments(self, val: float) -> None:
        self._reconfigure(num_segments=int(round(val)))

    def on_length(self, val: float) -> None:
        self._reconfigure(segment_length=float(val))

    def on_glide(self, val: float) -> None:
        self._reconfigure(smoothing=round(float(val), 3))

    def on_toggle(self, event) -> None:
        self._reconfigure(attached=not self.tracker.settings.attached)
        self.btn_attach.label.set_text(self._attach_label())


# ------------------------------ Salida texto ---------------------------------


def print_origins(points: np.ndarray, final: Optional[Iterable[float]] = None) -> None:
    print("Orígenes de las juntas:")
    for i, (x, y) in enumerate(points):
        print(f"(J{i})\t= [{x:.3f}, {y:.3f}]")
    if final is not None:
        xf, yf = final
        print(f"Objetivo = [{xf:.3f}, {yf:.3f}]")


def _settings_from_options(
    config: Optional[str],
    segments: Optional[int],
    length: Optional[float],
    attached: Optional[bool],
    smoothing: Optional[float],
) -> ArmSettings:
    settings = ArmSettings()
    if config is not None:
        try:
            settings = load_arm_config(config)
        except (OSError, ValueError) as e:
            typer.echo(f"Error leyendo configuración TOML '{config}': {e}", err=True)
            raise typer.Exit(code=2) from e

    overrides = {
        "num_segments": segments,
        "segment_length": length,
        "attached": attached,
        "smoothing": smoothing,
    }
    settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    try:
        return validate_settings(settings)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


# ------------------------------- Subcomandos ----------------------------------

_CONFIG_HELP = "Ruta a un archivo TOML con las secciones [arm] y [canvas]."


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Activa el logging DEBUG"),
) -> None:
    """Brazo planar FABRIK que persigue un objetivo."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )


@app.command()
def solve(
    x: float = typer.Argument(..., help="Coordenada x del objetivo (lienzo)"),
    y: float = typer.Argument(..., help="Coordenada y del objetivo (lienzo, y hacia abajo)"),
    segments: Optional[int] = typer.Option(None, "--segments", help="Número de eslabones"),
    length: Optional[float] = typer.Option(None, "--length", help="Longitud del eslabón"),
    attached: Optional[bool] = typer.Option(
        None, "--attached/--free", help="Ancla la raíz al lienzo"
    ),
    smoothing: Optional[float] = typer.Option(
        None, "--smoothing", help="Suavizado en [0, 1); 0 desactiva el filtro"
    ),
    ticks: int = typer.Option(60, "--ticks", min=1, help="Número de ticks del solver"),
    config: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
    quiet: bool = typer.Option(False, "--quiet/--verbose", help="Reducir salida"),
) -> None:
    settings = _settings_from_options(config, segments, length, attached, smoothing)
    tracker = Tracker(settings)
    target = Vector2D(x, y)

    if not quiet:
        print("- Posición inicial:")
        print_origins(tracker.chain.points)

    for k in range(1, ticks + 1):
        tracker.latch.write(x, y)
        tracker.tick()
        if not quiet:
            print(f"\n- Tick {k}:")
            print_origins(tracker.chain.points)

    eff = tracker.chain.end_effector
    dist = float(np.linalg.norm((eff - target).as_array()))

    print()
    print(f"{tracker.ticks} ticks, {len(tracker.chain)} segmentos "
          f"({'anclado' if settings.attached else 'libre'}).")
    print_origins(tracker.chain.points, final=(x, y))
    print(f"- Distancia al objetivo: {dist:.5f}")


@app.command()
def trace(
    radius: float = typer.Option(150.0, "--radius", help="Radio del círculo objetivo"),
    steps: int = typer.Option(360, "--steps", min=1, help="Ticks por vuelta"),
    segments: Optional[int] = typer.Option(None, "--segments", help="Número de eslabones"),
    length: Optional[float] = typer.Option(None, "--length", help="Longitud del eslabón"),
    attached: Optional[bool] = typer.Option(
        None, "--attached/--free", help="Ancla la raíz al lienzo"
    ),
    smoothing: Optional[float] = typer.Option(
        None, "--smoothing", help="Suavizado en [0, 1); 0 desactiva el filtro"
    ),
    config: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    settings = _settings_from_options(config, segments, length, attached, smoothing)
    tracker = Tracker(settings)
    center = Vector2D(settings.width / 2.0, settings.height / 2.0)
    path = list(circle_path(center, radius, steps))

    errors = []
    for target, joints in zip(path, tracker.run(path)):
        errors.append((joints[-1] - target).magnitude())

    print(f"{tracker.ticks} ticks alrededor de un círculo de radio {radius:g}.")
    print_origins(tracker.chain.points, final=tuple(path[-1]))
    print(f"- Distancia media al objetivo:  {float(np.mean(errors)):.5f}")
    print(f"- Distancia máxima al objetivo: {float(np.max(errors)):.5f}")


@app.command()
def view(
    segments: Optional[int] = typer.Option(None, "--segments", help="Número de eslabones"),
    length: Optional[float] = typer.Option(None, "--length", help="Longitud del eslabón"),
    attached: Optional[bool] = typer.Option(
        None, "--attached/--free", help="Ancla la raíz al lienzo"
    ),
    smoothing: Optional[float] = typer.Option(
        None, "--smoothing", help="Suavizado en [0, 1); 0 desactiva el filtro"
    ),
    config: Optional[str] = typer.Option(None, "--config", help=_CONFIG_HELP),
) -> None:
    settings = _settings_from_options(config, segments, length, attached, smoothing)
    viewer = ArmViewer(Tracker(settings))
    viewer.show()


if __name__ == "__main__":
    app()
