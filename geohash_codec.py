# Geohash codec.  Encodes (lat, lon) to base-32 geohash strings and decodes them back.
#
# Accuracy for typical geohash lengths (number of characters):
# Length  Lat error     Lon error
# 1       ±23°          ±23°
# 2       ±2.8°         ±5.6°
# 3       ±0.70°        ±0.70°
# 4       ±0.087°       ±0.18°
# 5       ±0.022°       ±0.022°
# 6       ±0.0027°      ±0.0055°
# 7       ±0.00069°     ±0.00069°
# 8       ±0.000086°    ±0.00017°
# 9       ±0.000021°    ±0.000021°
# 10      ±0.0000027°   ±0.0000054°
"""Geohash encoding and decoding.

Bits are interleaved longitude first, and the alternation runs across
character boundaries.  Hashes match geohash.org character for character.

    >>> encode(42.6, -5.6, precision=5)
    'ezs42'
    >>> decode('ezs42').to_point()
    (42.60498046875, -5.60302734375)
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

# Constants -------------------------------------------------------------------
BASE32_ALPHABET = "0123456789bcdefghjkmnpqrstuvwxyz"
BASE32_DECODE_MAP = {char: index for index, char in enumerate(BASE32_ALPHABET)}
BITS_PER_CHAR = 5

LAT_RANGE = (-90.0, 90.0)
LON_RANGE = (-180.0, 180.0)
DEFAULT_PRECISION = 10
# 18 characters is 45 bits per axis.  Past that a cell near the poles or the
# dateline is only a few ulps wide and its midpoint starts to round.
MAX_PRECISION = 18

LatLon = Tuple[float, float]


# Exceptions ------------------------------------------------------------------
class GeohashError(Exception):
    """Base exception for geohash operations."""


class InvalidGeohashError(GeohashError):
    """Raised when a geohash is empty or not a string."""


class InvalidCharacterError(InvalidGeohashError):
    """Raised when a geohash contains a character outside the base32 alphabet."""

    def __init__(self, character: str, position: int):
        self.character = character
        self.position = position
        super().__init__(
            f"Invalid geohash character {character!r} at position {position}. "
            f"Valid characters: {BASE32_ALPHABET}"
        )


class InvalidCoordinateError(GeohashError):
    """Raised when latitude or longitude is out of valid range."""


class InvalidPrecisionError(GeohashError):
    """Raised when precision value is invalid."""


# Data types ------------------------------------------------------------------
class Bounds(NamedTuple):
    lat_min: float
    lon_min: float
    lat_max: float
    lon_max: float


@dataclass(frozen=True)
class DecodedCell:
    """Centre of a geohash cell with its half-height and half-width.

    Attributes:
        latitude: Centre latitude in degrees
        longitude: Centre longitude in degrees
        latitude_error: Half the cell height in degrees
        longitude_error: Half the cell width in degrees
    """

    latitude: float
    longitude: float
    latitude_error: float
    longitude_error: float

    @classmethod
    def from_bounds(cls, bounds: Bounds) -> DecodedCell:
        latitude, latitude_error = _centre(bounds.lat_min, bounds.lat_max)
        longitude, longitude_error = _centre(bounds.lon_min, bounds.lon_max)
        return cls(
            latitude=latitude,
            longitude=longitude,
            latitude_error=latitude_error,
            longitude_error=longitude_error,
        )

    def to_point(self) -> LatLon:
        """Return the centre as a (latitude, longitude) tuple."""
        return self.latitude, self.longitude

    def to_rounded_point(self) -> LatLon:
        """Return the centre rounded to the decimal places the error bounds justify.

        Examples:
            >>> decode("ezs42").to_rounded_point()
            (42.6, -5.6)
        """
        return (_round_to_error(self.latitude, self.latitude_error),
                _round_to_error(self.longitude, self.longitude_error))

    def to_bbox(self) -> Bounds:
        """Return the cell as (lat_min, lon_min, lat_max, lon_max)."""
        return Bounds(
            self.latitude - self.latitude_error,
            self.longitude - self.longitude_error,
            self.latitude + self.latitude_error,
            self.longitude + self.longitude_error,
        )

    def contains(self, latitude: float, longitude: float) -> bool:
        """True if the point lies inside the cell, edges included."""
        return (abs(latitude - self.latitude) <= self.latitude_error
                and abs(longitude - self.longitude) <= self.longitude_error)

    @property
    def height_degrees(self) -> float:
        return self.latitude_error * 2

    @property
    def width_degrees(self) -> float:
        return self.longitude_error * 2


# Helpers ---------------------------------------------------------------------
def _centre(low: float, high: float) -> Tuple[float, float]:
    """
    Midpoint of a range and the distance from it to the farther bound.
    :param low: Lower bound
    :param high: Upper bound
    :return: (mid, err) with mid - err <= low and high <= mid + err
    """
    mid = (low + high) / 2
    return mid, max(high - mid, mid - low)


def _round_to_error(value: float, error: float) -> float:
    if error <= 0:
        return value
    places = max(1, round(-math.log10(error))) - 1
    return round(value, places)


def _check_coordinate(latitude: float, longitude: float) -> None:
    # NaN fails both comparisons, so it is rejected here as well
    if not LAT_RANGE[0] <= latitude <= LAT_RANGE[1]:
        raise InvalidCoordinateError(f"Latitude {latitude} out of range {LAT_RANGE}")
    if not LON_RANGE[0] <= longitude <= LON_RANGE[1]:
        raise InvalidCoordinateError(f"Longitude {longitude} out of range {LON_RANGE}")


def _check_precision(precision: int) -> None:
    if isinstance(precision, bool) or not isinstance(precision, int):
        raise InvalidPrecisionError(f"Precision must be an integer, got {precision!r}")
    if not 1 <= precision <= MAX_PRECISION:
        raise InvalidPrecisionError(
            f"Precision must be between 1 and {MAX_PRECISION}, got {precision}"
        )


def _decimal_places(value: float) -> int:
    """
    Count the decimal places written in a number.
    :param value: Latitude or longitude as given by the caller
    :return: 0 for whole numbers (including -20.0), 5 for 1e-05, and so on
    """
    exponent = Decimal(str(value)).normalize().as_tuple().exponent
    return max(0, -exponent)


def _bits_for_axis(value: float, half_span: float) -> int:
    """
    Bits one axis needs before its error drops below half a unit of the last written digit.
    :param value: Latitude or longitude
    :param half_span: 45 for latitude, 90 for longitude (the error after the first bit)
    :return: bit count for that axis
    """
    target = 10.0 ** -_decimal_places(value) / 2
    bits = 1
    err = half_span
    while err > target:
        bits += 1
        err /= 2
    return bits


# Public API ------------------------------------------------------------------
def infer_precision(latitude: float, longitude: float) -> int:
    """Pick a geohash length that preserves the decimal places of the input.

    Args:
        latitude: Latitude in degrees
        longitude: Longitude in degrees

    Returns:
        Number of characters, at most MAX_PRECISION

    Raises:
        InvalidCoordinateError: If coordinates are out of valid range

    Examples:
        >>> infer_precision(42.6, -5.6)
        5
        >>> infer_precision(-20, 50)
        4
    """
    _check_coordinate(latitude, longitude)
    lat_bits = _bits_for_axis(latitude, LAT_RANGE[1] / 2)
    lon_bits = _bits_for_axis(longitude, LON_RANGE[1] / 2)
    axis_bits = max(lat_bits, lon_bits)
    precision = -(-2 * axis_bits // BITS_PER_CHAR)
    if precision > MAX_PRECISION:
        logger.warning("Inferred precision %d for (%s, %s) capped at %d",
                       precision, latitude, longitude, MAX_PRECISION)
        return MAX_PRECISION
    logger.debug("Inferred precision %d for (%s, %s)", precision, latitude, longitude)
    return precision


def encode(latitude: float, longitude: float,
           precision: Optional[int] = DEFAULT_PRECISION) -> str:
    """Encode a (latitude, longitude) pair into a geohash string.

    Args:
        latitude: Latitude in degrees [-90, 90]
        longitude: Longitude in degrees [-180, 180]
        precision: Number of base32 characters (default: 10).  None infers
            it from the decimal places of the inputs, see infer_precision.

    Returns:
        Geohash string of exactly ``precision`` characters

    Raises:
        InvalidCoordinateError: If coordinates are out of valid range
        InvalidPrecisionError: If precision is invalid

    Examples:
        >>> encode(49.26, -123.26, precision=7)
        'c2b25ps'
        >>> encode(-20, 50, precision=None)
        'mh7w'
    """
    _check_coordinate(latitude, longitude)
    if precision is None:
        precision = infer_precision(latitude, longitude)
    _check_precision(precision)

    lat_low, lat_high = LAT_RANGE
    lon_low, lon_high = LON_RANGE
    geohash_chars = []
    accumulator = 0

    for bit_index in range(precision * BITS_PER_CHAR):
        if bit_index % 2 == 0:
            mid = (lon_low + lon_high) / 2
            if longitude >= mid:
                accumulator = (accumulator << 1) | 1
                lon_low = mid
            else:
                accumulator <<= 1
                lon_high = mid
        else:
            mid = (lat_low + lat_high) / 2
            if latitude >= mid:
                accumulator = (accumulator << 1) | 1
                lat_low = mid
            else:
                accumulator <<= 1
                lat_high = mid

        if bit_index % BITS_PER_CHAR == BITS_PER_CHAR - 1:
            geohash_chars.append(BASE32_ALPHABET[accumulator])
            accumulator = 0

    return "".join(geohash_chars)


def decode_bounds(geohash: str) -> Bounds:
    """Decode a geohash into the cell it names.

    Args:
        geohash: Geohash string

    Returns:
        Bounds of the cell as (lat_min, lon_min, lat_max, lon_max)

    Raises:
        InvalidGeohashError: If geohash is empty or not a string
        InvalidCharacterError: If geohash contains a character outside the alphabet
    """
    if not isinstance(geohash, str) or not geohash:
        raise InvalidGeohashError(f"Geohash must be a non-empty string, got {geohash!r}")

    lat_low, lat_high = LAT_RANGE
    lon_low, lon_high = LON_RANGE
    bit_index = 0

    for position, char in enumerate(geohash):
        try:
            value = BASE32_DECODE_MAP[char]
        except KeyError as exc:
            raise InvalidCharacterError(char, position) from exc

        for shift in range(BITS_PER_CHAR - 1, -1, -1):
            bit = (value >> shift) & 1
            if bit_index % 2 == 0:
                mid = (lon_low + lon_high) / 2
                if bit:
                    lon_low = mid
                else:
                    lon_high = mid
            else:
                mid = (lat_low + lat_high) / 2
                if bit:
                    lat_low = mid
                else:
                    lat_high = mid
            bit_index += 1

    return Bounds(lat_low, lon_low, lat_high, lon_high)


def decode(geohash: str) -> DecodedCell:
    """Decode a geohash into its centre point and error bounds.

    Args:
        geohash: Geohash string

    Returns:
        DecodedCell with latitude, longitude, latitude_error and longitude_error

    Raises:
        InvalidGeohashError: If geohash is empty or not a string
        InvalidCharacterError: If geohash contains a character outside the alphabet

    Examples:
        >>> cell = decode("ezs42")
        >>> round(cell.latitude, 2), round(cell.longitude, 2)
        (42.6, -5.6)
    """
    return DecodedCell.from_bounds(decode_bounds(geohash))


__all__ = [
    "encode",
    "decode",
    "decode_bounds",
    "infer_precision",

    "DecodedCell",
    "Bounds",
    "LatLon",

    "BASE32_ALPHABET",
    "BASE32_DECODE_MAP",
    "BITS_PER_CHAR",
    "DEFAULT_PRECISION",
    "MAX_PRECISION",
    "LAT_RANGE",
    "LON_RANGE",

    "GeohashError",
    "InvalidGeohashError",
    "InvalidCharacterError",
    "InvalidCoordinateError",
    "InvalidPrecisionError",
]
