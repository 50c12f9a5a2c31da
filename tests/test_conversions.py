"""Tests for the protocol-to-bridge value encodings."""

import unittest

import pytest

from huemcp.lib.conversions import (
    D65_WHITE_XY,
    brightness_to_bri,
    is_number,
    is_rgb,
    kelvin_to_mired,
    ms_to_transitiontime,
    rgb_to_xy,
)


class TestBrightness(unittest.TestCase):
    def test_whole_range_maps_into_bri_scale(self):
        for percent in range(101):
            with self.subTest(percent=percent):
                bri = brightness_to_bri(percent)
                self.assertEqual(bri, round(percent / 100 * 254))
                self.assertTrue(0 <= bri <= 254)

    def test_bounds(self):
        self.assertEqual(brightness_to_bri(0), 0)
        self.assertEqual(brightness_to_bri(100), 254)
        self.assertEqual(brightness_to_bri(50), 127)


class TestTemperature(unittest.TestCase):
    def test_kelvin_to_mired(self):
        for kelvin in range(2000, 6501, 50):
            with self.subTest(kelvin=kelvin):
                self.assertEqual(kelvin_to_mired(kelvin), round(1_000_000 / kelvin))

    def test_bounds(self):
        self.assertEqual(kelvin_to_mired(2000), 500)
        self.assertEqual(kelvin_to_mired(6500), 154)


def test_transition_time_counts_hundred_millisecond_steps():
    assert ms_to_transitiontime(0) == 0
    assert ms_to_transitiontime(400) == 4
    assert ms_to_transitiontime(1000) == 10


def test_rgb_to_xy_primaries():
    assert rgb_to_xy(255, 0, 0) == pytest.approx((0.64, 0.33), abs=1e-3)
    assert rgb_to_xy(0, 255, 0) == pytest.approx((0.30, 0.60), abs=1e-3)
    assert rgb_to_xy(0, 0, 255) == pytest.approx((0.15, 0.06), abs=1e-3)


def test_rgb_to_xy_white_and_black():
    assert rgb_to_xy(255, 255, 255) == pytest.approx(D65_WHITE_XY, abs=1e-3)
    assert rgb_to_xy(0, 0, 0) == D65_WHITE_XY


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ([255, 0, 0], True),
        ((0, 128, 255), True),
        ([256, 0, 0], False),
        ([-1, 0, 0], False),
        ([255, 0], False),
        ([1.5, 0, 0], False),
        ([True, 0, 0], False),
        ("red", False),
        (None, False),
    ],
)
def test_is_rgb(value, expected):
    assert is_rgb(value) is expected


def test_is_number_rejects_bools_and_strings():
    assert is_number(3)
    assert is_number(2.5)
    assert not is_number(True)
    assert not is_number("3")
