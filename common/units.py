"""
Unit Registry and Dimensional Analysis for the Referencing Engine.

This module provides a centralized unit system using the `pint` library. Axis
units of coordinate systems (degrees, grads, metres, US survey feet, ...) are
converted to the SI units used internally (radians and metres) through this
registry, so that a wrong combination such as "metres to degrees" fails loudly
instead of producing a silently wrong scale factor.

Example Usage
-------------
>>> from common.units import ureg, Q_, conversion_factor
>>> conversion_factor('degree', 'radian')
0.017453292519943295
>>> Q_(100, 'km').to('m')
<Quantity(100000.0, 'meter')>
"""

from typing import Dict, Union

import pint
from pint import UnitRegistry as PintUnitRegistry

# Create the global unit registry
ureg = PintUnitRegistry()

# Convenience alias for creating quantities
Q_ = ureg.Quantity


# Unit names as spelled by EPSG / PROJ, mapped to expressions pint understands.
UNIT_ALIASES: Dict[str, str] = {
    "metre": "meter",
    "metres": "meter",
    "m": "meter",
    "kilometre": "kilometer",
    "km": "kilometer",
    "foot": "foot",
    "ft": "foot",
    "us survey foot": "1200 / 3937 * meter",
    "ftus": "1200 / 3937 * meter",
    "degree": "degree",
    "degrees": "degree",
    "deg": "degree",
    "°": "degree",
    "radian": "radian",
    "rad": "radian",
    "grad": "pi / 200 * radian",
    "gon": "pi / 200 * radian",
    "arc-second": "arcsecond",
    "arcsecond": "arcsecond",
    "arc-minute": "arcminute",
    "microradian": "microradian",
    "unity": "dimensionless",
}


class UnitRegistry:
    """Wrapper around pint UnitRegistry with geodesy-specific conveniences.

    Attributes
    ----------
    registry : pint.UnitRegistry
        The underlying pint unit registry.

    Examples
    --------
    >>> units = UnitRegistry()
    >>> units.conversion_factor('US survey foot', 'metre')
    0.3048006096012192
    """

    def __init__(self):
        """Initialize the unit registry."""
        self._registry = ureg

    @property
    def registry(self) -> PintUnitRegistry:
        """Access the underlying pint registry."""
        return self._registry

    def parse(self, unit: str) -> pint.Quantity:
        """Parse an EPSG-style unit name into a pint quantity of magnitude 1.

        Parameters
        ----------
        unit : str
            Unit name, e.g. 'metre', 'degree', 'US survey foot', 'grad'.

        Returns
        -------
        pint.Quantity
            The unit as a quantity (so that scaled units such as grads work).
        """
        expression = UNIT_ALIASES.get(unit.strip().lower(), unit.strip())
        return self._registry.parse_expression(expression)

    def quantity(self, value: float, unit: str) -> pint.Quantity:
        """Create a quantity with units."""
        return value * self.parse(unit)

    def conversion_factor(self, source_unit: str, target_unit: str) -> float:
        """Return the factor converting values in `source_unit` to `target_unit`.

        Raises
        ------
        ValueError
            If the two units are not of the same dimensionality.
        """
        if source_unit == target_unit:
            return 1.0
        source = self.parse(source_unit)
        target = self.parse(target_unit)
        try:
            return float((source / target).to("dimensionless").magnitude)
        except pint.DimensionalityError as e:
            raise ValueError(
                f"Incompatible units: can not convert '{source_unit}' to '{target_unit}'"
            ) from e

    def validate_dimensionality(
        self,
        quantity: pint.Quantity,
        expected_dim: str
    ) -> bool:
        """Check if a quantity has the expected dimensionality.

        Parameters
        ----------
        quantity : pint.Quantity
            The quantity to check.
        expected_dim : str
            The expected dimensionality (e.g., '[length]').

        Returns
        -------
        bool
            True if dimensionality matches.

        Raises
        ------
        pint.DimensionalityError
            If dimensionality does not match.
        """
        expected = self._registry.get_dimensionality(expected_dim)
        if quantity.dimensionality != expected:
            raise pint.DimensionalityError(
                quantity.units,
                expected_dim,
                quantity.dimensionality,
                expected
            )
        return True

    def is_angular(self, unit: str) -> bool:
        """Whether the given unit measures angles."""
        # pint treats radians as dimensionless, so "unity" is excluded explicitly.
        quantity = self.parse(unit)
        return quantity.dimensionality == self._registry.radian.dimensionality and not quantity.unitless

    def is_linear(self, unit: str) -> bool:
        """Whether the given unit measures lengths."""
        return self.parse(unit).dimensionality == self._registry.meter.dimensionality


_units = UnitRegistry()


def conversion_factor(source_unit: str, target_unit: str) -> float:
    """Module-level shortcut for `UnitRegistry.conversion_factor`."""
    return _units.conversion_factor(source_unit, target_unit)


def is_angular(unit: str) -> bool:
    """Module-level shortcut for `UnitRegistry.is_angular`."""
    return _units.is_angular(unit)


def is_linear(unit: str) -> bool:
    """Module-level shortcut for `UnitRegistry.is_linear`."""
    return _units.is_linear(unit)


def to_magnitude(value: Union[float, pint.Quantity], unit: str) -> float:
    """Return the magnitude of `value` expressed in `unit`.

    Bare numbers are assumed to be already in `unit`. Quantities are converted,
    and a quantity of the wrong dimensionality raises `ValueError`.

    Parameters
    ----------
    value : float or pint.Quantity
        The value to convert.
    unit : str
        The unit in which the magnitude is wanted.
    """
    if isinstance(value, pint.Quantity):
        target = _units.parse(unit)
        try:
            return float(value.to(target.units).magnitude / target.magnitude)
        except pint.DimensionalityError as e:
            raise ValueError(
                f"Value {value} has incompatible units. Expected {unit}, got {value.units}"
            ) from e
    return float(value)
