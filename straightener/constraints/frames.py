#    This script is part of straightener.
#    Copyright (C) 2026 The straightener developers
#
#    This program is free software: you can redistribute it and/or modify
#    it under the terms of the GNU General Public License as published by
#    the Free Software Foundation, either version 3 of the License, or
#    (at your option) any later version.
#
#    This program is distributed in the hope that it will be useful,
#    but WITHOUT ANY WARRANTY without even the implied warranty of
#    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#    GNU General Public License for more details.
#
#    You should have received a copy of the GNU General Public License
#    along with this program.

import numpy as np

__all__ = ['base_right_axis', 'tangent_frame']


def base_right_axis(tangent):
    """Unit vector perpendicular to ``tangent``.

    Uses the x-axis projected onto the plane normal to ``tangent``, or the
    y-axis if the tangent is (almost) parallel to x.
    """
    tangent = np.asarray(tangent, dtype=float)
    for axis in ([1.0, 0, 0], [0, 1.0, 0]):
        r = np.array(axis) - np.dot(axis, tangent) * tangent
        n = np.linalg.norm(r)
        if n > 1e-6:
            return r / n
    raise ValueError(f'Unable to find axis perpendicular to {tangent}')


def tangent_frame(tangent, angle=0.0, flip_x=False):
    """Orthonormal frame around a tangent.

    Parameters
    ----------
    tangent :   (3, ) array
                Does not need to be normalized but must not be zero.
    angle :     float
                Rotation (radians) about the tangent.
    flip_x :    bool
                If True, the right axis is negated after rotation.

    Returns
    -------
    (3, 3) array
                Rows right, up and normal (= normalized tangent).

    """
    t = np.asarray(tangent, dtype=float)
    n = np.linalg.norm(t)
    if n == 0:
        raise ValueError('Tangent must not be zero.')
    t = t / n

    right = base_right_axis(t)
    up = np.cross(t, right)

    c, s = np.cos(angle), np.sin(angle)
    right, up = c * right + s * up, -s * right + c * up
    if flip_x:
        right = -right

    return np.vstack([right, up, t])
