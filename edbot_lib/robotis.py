"""
Raw-value conversions for ROBOTIS sensors and servos.

Robots report sensor readings as raw ADC values in the mirrored state tree.
These helpers turn them into physical units, rounded to one decimal place.
Values outside a sensor's calibrated range raise ValueError.
"""

from __future__ import annotations

import math


def _round(value: float) -> float:
    # Half-up, so 2.25 -> 2.3 rather than banker's rounding.
    return math.floor(value * 10 + 0.5) / 10


def _check_range(raw: float, low: int, high: int) -> None:
    if raw < low or raw > high:
        raise ValueError(f"Raw value {raw} is outside the permitted range [{low} - {high}]")


def raw_to_irss10_dist(raw: float) -> float:
    """IRSS-10 infrared sensor, distance in cm. Measures roughly 3cm to 30cm."""
    _check_range(raw, 26, 713)
    return _round(214.32803656545 * math.pow(raw, -0.60223538294025299184))


def raw_to_dms80_dist(raw: float) -> float:
    """DMS-80 distance sensor, distance in cm. Measures 8cm to 80cm."""
    _check_range(raw, 111, 740)
    return _round(19490.373230416 * math.pow(raw, -1.16498805911575493846))


def raw_to_tps10_temp(raw: float) -> float:
    """TPS-10 temperature sensor, degrees Celsius."""
    return _round(0.1179268 * raw - 34.86361)


def raw_to_ts10_touch(raw: float) -> int:
    return 1 if raw > 0 else 0


def raw_to_mgss10_mag(raw: float) -> int:
    return 1 if raw > 0 else 0


def raw_to_sm10_angle(raw: float) -> float:
    """
    SM-10 servo position, 0 to 300 degrees.

    The usable raw range of the SM-10 is 64-959, not 0-1023.
    """
    _check_range(raw, 64, 959)
    return _round(300.0 * (raw - 64) / 895.0)


def raw_to_cm150_dist(raw: float) -> float:
    """CM-150 built-in IR sensor, distance in cm. Measures 3cm to 20cm."""
    _check_range(raw, 26, 681)
    return _round(108.47751089561 * math.pow(raw, -0.51378200718609424542))


def raw_to_cm50_dist(raw: float) -> float:
    """CM-50 built-in IR sensor. Same calibration as the CM-150."""
    _check_range(raw, 26, 681)
    return _round(108.47751089561 * math.pow(raw, -0.51378200718609424542))


__all__ = [
    "raw_to_cm150_dist",
    "raw_to_cm50_dist",
    "raw_to_dms80_dist",
    "raw_to_irss10_dist",
    "raw_to_mgss10_mag",
    "raw_to_sm10_angle",
    "raw_to_tps10_temp",
    "raw_to_ts10_touch",
]
