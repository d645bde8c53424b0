from types import SimpleNamespace

import matplotlib.pyplot as plt
import pytest
from typer.testing import CliRunner

from fabrik import Vector2D
from ik import ArmViewer, app, fit_to_controls, load_arm_config, validate_settings
from taper import arm_outlines
from tracker import ArmSettings, Tracker

runner = CliRunner()


def _write(tmp_path, text):
    path = tmp_path / "arm.toml"
    path.write_text(text, encoding="utf-8")
    return str(path)


# ------------------------------- Config ---------------------------------------


def test_load_full_config(tmp_path):
    path = _write(
        tmp_path,
        """
[arm]
segments = 3
length = 80.0
attached = false
smoothing = 0.2
tick_ms = 16

[canvas]
width = 400
height = 300
""",
    )
    s = load_arm_config(path)
    assert s == ArmSettings(
        num_segments=3,
        segment_length=80.0,
        attached=False,
        smoothing=0.2,
        width=400.0,
        height=300.0,
        tick_ms=16,
    )


def test_missing_keys_fall_back_to_defaults(tmp_path):
    s = load_arm_config(_write(tmp_path, "[arm]\nsegments = 2\n"))
    assert s == ArmSettings(num_segments=2)


def test_missing_arm_table(tmp_path):
    with pytest.raises(ValueError, match=r"\[arm\]"):
        load_arm_config(_write(tmp_path, "[canvas]\nwidth = 10\n"))


@pytest.mark.parametrize(
    "body, key",
    [
        ("segments = 0", "segments"),
        ('segments = "five"', "segments"),
        ("length = -1.0", "length"),
        ("length = 10.0", "length"),
        ("smoothing = 1.0", "smoothing"),
        ('attached = "yes"', "attached"),
        ("tick_ms = 0", "tick_ms"),
    ],
)
def test_invalid_values(tmp_path, body, key):
    with pytest.raises(ValueError, match=key):
        load_arm_config(_write(tmp_path, f"[arm]\n{body}\n"))


def test_validate_settings_accepts_defaults():
    s = ArmSettings()
    assert validate_settings(s) is s


# --------------------------------- CLI ----------------------------------------


def test_solve_quiet():
    result = runner.invoke(app, ["solve", "480", "100", "--ticks", "3", "--quiet"])
    assert result.exit_code == 0, result.output
    assert "3 ticks, 5 segmentos (anclado)" in result.output
    assert "Distancia al objetivo" in result.output


def test_solve_free_arm_reaches_target():
    result = runner.invoke(
        app,
        ["solve", "480", "300", "--free", "--smoothing", "0", "--ticks", "1", "--quiet"],
    )
    assert result.exit_code == 0, result.output
    assert "Distancia al objetivo: 0.00000" in result.output


def test_solve_verbose_lists_every_tick():
    result = runner.invoke(app, ["solve", "480", "100", "--ticks", "2", "--segments", "2"])
    assert result.exit_code == 0, result.output
    assert "- Posición inicial:" in result.output
    assert "- Tick 2:" in result.output
    assert "(J2)" in result.output


def test_solve_reads_config(tmp_path):
    path = _write(tmp_path, "[arm]\nsegments = 2\nattached = false\n")
    result = runner.invoke(app, ["solve", "100", "100", "--config", path, "--quiet"])
    assert result.exit_code == 0, result.output
    assert "2 segmentos (libre)" in result.output


def test_solve_bad_config_exits_2(tmp_path):
    path = _write(tmp_path, "[arm]\nsegments = 0\n")
    result = runner.invoke(app, ["solve", "1", "1", "--config", path])
    assert result.exit_code == 2


def test_solve_missing_config_exits_2(tmp_path):
    result = runner.invoke(app, ["solve", "1", "1", "--config", str(tmp_path / "nope.toml")])
    assert result.exit_code == 2


def test_solve_bad_option_exits_2():
    result = runner.invoke(app, ["solve", "1", "1", "--segments", "0"])
    assert result.exit_code == 2


def test_solve_short_length_exits_2():
    result = runner.invoke(
        app, ["solve", "480", "300", "--length", "10", "--segments", "3", "--ticks", "1", "--quiet"]
    )
    assert result.exit_code == 2


def test_short_length_would_invert_taper():
    with pytest.raises(ValueError, match="length"):
        validate_settings(ArmSettings(num_segments=3, segment_length=10.0))
    s = validate_settings(ArmSettings(num_segments=3, segment_length=50.0))
    assert s.lengths() == pytest.approx([50.0, 50.0, 50.0])


def test_trace():
    result = runner.invoke(app, ["trace", "--steps", "12", "--segments", "3"])
    assert result.exit_code == 0, result.output
    assert "12 ticks alrededor de un círculo de radio 150." in result.output
    assert "Distancia media al objetivo" in result.output


# -------------------------------- Viewer --------------------------------------


@pytest.fixture
def viewer():
    v = ArmViewer(Tracker(ArmSettings(smoothing=0.0)))
    yield v
    plt.close(v.fig)


def test_viewer_builds_artists(viewer):
    assert len(viewer.links) == 5
    assert len(viewer.circles) == 6


def test_pointer_motion_is_clipped_to_canvas(viewer):
    viewer._on_motion(SimpleNamespace(inaxes=viewer.ax, xdata=2000.0, ydata=-5.0))
    assert viewer.tracker.latch.read() == Vector2D(960.0, 0.0)


def test_pointer_outside_axes_is_ignored(viewer):
    before = viewer.tracker.latch.read()
    viewer._on_motion(SimpleNamespace(inaxes=None, xdata=None, ydata=None))
    assert viewer.tracker.latch.read() == before


def test_timer_ticks_only_while_running(viewer):
    viewer.start()
    viewer._on_timer()
    assert viewer.tracker.ticks == 1
    viewer.stop()
    viewer._on_timer()
    assert viewer.tracker.ticks == 1


def test_input_and_timer_stop_independently(viewer):
    viewer.connect_input()
    viewer.start()
    viewer.stop()
    assert viewer._motion_cid is not None
    viewer.start()
    viewer.disconnect_input()
    assert viewer._motion_cid is None
    assert viewer.running
    viewer.stop()


def test_segments_slider_rebuilds(viewer):
    viewer.slider_segments.set_val(3)
    assert len(viewer.tracker.chain) == 3
    assert len(viewer.links) == 3
    assert len(viewer.circles) == 4


def test_glide_slider_keeps_chain(viewer):
    chain = viewer.tracker.chain
    viewer.slider_glide.set_val(0.4)
    assert viewer.tracker.chain is chain
    assert viewer.tracker.filter.alpha == pytest.approx(0.6)


def test_toggle_detaches(viewer):
    viewer.on_toggle(None)
    assert not viewer.tracker.settings.attached
    assert viewer.btn_attach.label.get_text() == "Anclar"
    viewer.on_toggle(None)
    assert viewer.tracker.settings.attached
    assert viewer.btn_attach.label.get_text() == "Soltar"


def test_fit_to_controls_snaps_into_slider_ranges():
    s = ArmSettings(num_segments=9, segment_length=125.0, smoothing=0.95)
    assert fit_to_controls(s) == {"num_segments": 6, "segment_length": 130.0, "smoothing": 0.9}
    assert fit_to_controls(ArmSettings()) == {}


def test_viewer_matches_out_of_range_settings():
    v = ArmViewer(Tracker(ArmSettings(num_segments=9, segment_length=125.0)))
    try:
        assert v.slider_segments.val == 6
        assert len(v.tracker.chain) == 6
        assert len(v.links) == 6
        assert v.slider_length.val == 130.0
        assert v.tracker.settings.segment_length == 130.0
        assert v.tracker.chain.lengths[0] == pytest.approx(130.0)
    finally:
        plt.close(v.fig)


def test_drawn_links_follow_joint_outlines(viewer):
    viewer.start()
    viewer._on_timer()
    viewer.stop()
    expected = arm_outlines(viewer.tracker.joints, viewer.tracker.radii)
    for poly, corners in zip(viewer.links, expected):
        # Polygon cerrado: repite el primer vértice al final
        assert poly.get_xy()[:4] == pytest.approx(corners)
