"""
Bursa-Wolf (Helmert 7-parameter) Datum Shift.

Geocentric coordinates of a datum are converted to WGS 84 geocentric
coordinates by a translation, a small rotation and a scale change:

    [X']            [  1   -rz   ry ] [X]   [tx]
    [Y'] = (1 + ds) [  rz   1   -rx ] [Y] + [ty]
    [Z']            [ -ry   rx   1  ] [Z]   [tz]

This is the "position vector" convention (EPSG method 9606). The "coordinate
frame rotation" convention (EPSG method 9607) uses the opposite rotation signs;
`BursaWolfParameters.from_coordinate_frame` converts from it.

References
----------
- IOGP Publication 373-7-2, §4.4.3 "Helmert 7-parameter transformations"
"""

from dataclasses import dataclass
import numpy as np

from transform.matrix import Matrix, Matrices

ARC_SECOND_TO_RADIAN = np.pi / (180 * 60 * 60)
PPM = 1e-6


@dataclass(frozen=True)
class BursaWolfParameters:
    """Parameters of a geocentric datum shift to WGS 84.

    Attributes
    ----------
    tx, ty, tz : float
        Translations in metres.
    rx, ry, rz : float
        Rotations in arc-seconds (position vector convention).
    ds : float
        Scale difference in parts per million.
    """
    tx: float = 0.0
    ty: float = 0.0
    tz: float = 0.0
    rx: float = 0.0
    ry: float = 0.0
    rz: float = 0.0
    ds: float = 0.0

    @classmethod
    def from_coordinate_frame(cls, tx, ty, tz, rx, ry, rz, ds) -> 'BursaWolfParameters':
        """Create parameters from the coordinate frame rotation convention (EPSG:9607)."""
        return cls(tx, ty, tz, -rx, -ry, -rz, ds)

    def is_identity(self) -> bool:
        return not any((self.tx, self.ty, self.tz, self.rx, self.ry, self.rz, self.ds))

    def is_translation(self) -> bool:
        """Whether the datum shift has no rotation and no scale change."""
        return not any((self.rx, self.ry, self.rz, self.ds))

    def to_matrix(self) -> Matrix:
        """Return the 4×4 affine matrix of this datum shift in geocentric coordinates."""
        s = 1 + self.ds * PPM
        rx = self.rx * ARC_SECOND_TO_RADIAN
        ry = self.ry * ARC_SECOND_TO_RADIAN
        rz = self.rz * ARC_SECOND_TO_RADIAN
        rotation = np.array([
            [1.0, -rz,  ry],
            [rz,  1.0, -rx],
            [-ry, rx,  1.0],
        ])
        return Matrices.create_affine(s * rotation, [self.tx, self.ty, self.tz])
