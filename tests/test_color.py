"""Tests for color parsing and interpolation."""

import pytest

from lightsync.lights import HSV, RGB, interpolate, interpolate_hsv, make_interpolator

RED = RGB(255, 0, 0)
GREEN = RGB(0, 255, 0)
BLUE = RGB(0, 0, 255)


@pytest.mark.parametrize("text,expected", [
    ("#ff0000", RED),
    ("00FF00", GREEN),
    ("#00f", BLUE),
])
def test_from_hex(text, expected):
    assert RGB.from_hex(text) == expected


@pytest.mark.parametrize("text", ["", "#12", "#1234567", "#gg0000"])
def test_from_hex_rejects_garbage(text):
    with pytest.raises(ValueError):
        RGB.from_hex(text)


def test_channels_are_validated():
    with pytest.raises(ValueError):
        RGB(256, 0, 0)
    with pytest.raises(ValueError):
        RGB(0.5, 0, 0)


def test_to_hex_round_trip():
    assert RGB(18, 52, 86).to_hex() == "#123456"


def test_dim():
    assert RGB(200, 100, 50).dim(0.5) == RGB(100, 50, 25)
    assert RED.dim(2.0) == RED
    assert RED.dim(-1) == RGB.black()


def test_hsv_takes_shortest_path_across_red():
    # 0.9 -> 0.1 passes through 0.0 rather than 0.5
    mid = interpolate_hsv(HSV(0.9), HSV(0.1), 0.5)
    assert mid.hue == pytest.approx(0.0, abs=1e-9) or mid.hue == pytest.approx(1.0)


def test_hsv_long_path_goes_through_middle():
    mid = interpolate_hsv(HSV(0.9), HSV(0.1), 0.5, long_path=True)
    assert mid.hue == pytest.approx(0.5)


def test_gray_endpoint_keeps_other_hue():
    mid = interpolate_hsv(HSV(0.0, 0.0, 1.0), HSV(0.6, 1.0, 1.0), 0.5)
    assert mid.hue == pytest.approx(0.6)
    assert mid.saturation == pytest.approx(0.5)


def test_interpolate_endpoints_for_every_mode():
    for mode in ("hsv", "hsv_long", "rgb"):
        assert interpolate(RED, BLUE, 0.0, mode) == RED
        assert interpolate(RED, BLUE, 1.0, mode) == BLUE


def test_interpolate_clamps_t():
    assert interpolate(RED, BLUE, -1.0, "rgb") == RED
    assert interpolate(RED, BLUE, 3.0, "rgb") == BLUE


def test_blue_to_red_short_and_long_paths_differ():
    short = interpolate(BLUE, RED, 0.5, "hsv")
    long = interpolate(BLUE, RED, 0.5, "hsv_long")
    assert short == RGB(255, 0, 255)  # magenta
    assert long == RGB(0, 255, 0)  # through green


def test_make_interpolator_accepts_hex():
    fn = make_interpolator("#000000", "#ffffff", "rgb")
    assert fn(0.0) == RGB.black()
    assert fn(1.0) == RGB.white()
    assert fn(0.25) == RGB(64, 64, 64)


def test_make_interpolator_rejects_unknown_mode():
    with pytest.raises(ValueError):
        make_interpolator(RED, BLUE, "lab")
