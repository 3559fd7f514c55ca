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

import logging

import numpy as np

__all__ = ['smooth', 'arc_length', 'point_at_arc_length', 'tangents']

logger = logging.getLogger('straightener')


def smooth(points, iterations=10):
    """Smooth a polyline by repeated local averaging.

    Each iteration replaces every interior point with the mean of itself
    and its two neighbours. First and last point are kept fixed.

    Parameters
    ----------
    points :        (N, 3) array
                    Ordered polyline.
    iterations :    int (>= 0)
                    Number of averaging rounds. 0 returns a copy.

    Returns
    -------
    (N, 3) array

    Examples
    --------
    >>> import numpy as np
    >>> from straightener.post import smooth
    >>> smooth(np.array([[0, 0, 0], [1, 3, 0], [2, 0, 0]]), iterations=1)
    array([[0., 0., 0.],
           [1., 1., 0.],
           [2., 0., 0.]])

    """
    iterations = int(iterations)
    if iterations < 0:
        raise ValueError('`iterations` must be >= 0')

    points = np.array(points, dtype=float)
    if points.ndim != 2:
        raise ValueError(f'Expected (N, 3) array, got {points.shape}')

    if points.shape[0] < 3:
        return points

    for _ in range(iterations):
        points[1:-1] = (points[:-2] + points[1:-1] + points[2:]) / 3

    return points


def arc_length(points):
    """Cumulative arc length along a polyline.

    Parameters
    ----------
    points :    (N, 3) array

    Returns
    -------
    (N, ) array
                Distance travelled from the first point. Zero-length
                segments are allowed and simply repeat the previous value.

    """
    points = np.asarray(points, dtype=float)
    if not len(points):
        return np.zeros(0)
    seg = np.linalg.norm(np.diff(points, axis=0), axis=1)
    return np.concatenate([[0.0], np.cumsum(seg)])


def point_at_arc_length(points, s, lengths=None):
    """Interpolate the position at arc length ``s`` along a polyline.

    Parameters
    ----------
    points :    (N, 3) array
    s :         float | (K, ) array
                Arc length(s). Values outside ``[0, length]`` are clamped
                to the polyline's ends.
    lengths :   (N, ) array, optional
                Precomputed ``arc_length(points)``.

    Returns
    -------
    (3, ) | (K, 3) array

    """
    points = np.asarray(points, dtype=float)
    if isinstance(lengths, type(None)):
        lengths = arc_length(points)

    s = np.asarray(s, dtype=float)
    scalar = s.ndim == 0
    s = np.atleast_1d(s)

    # Zero-length segments produce repeated lengths, np.interp copes with those
    out = np.stack([np.interp(s, lengths, points[:, i]) for i in range(3)], axis=1)

    return out[0] if scalar else out


def tangents(points):
    """Unit tangent per segment of a polyline.

    Zero-length segments inherit the tangent of the previous segment (or the
    next valid one at the start of the polyline).

    Parameters
    ----------
    points :    (N, 3) array

    Returns
    -------
    (N - 1, 3) array
                Raises ``ValueError`` if no segment has non-zero length.

    """
    points = np.asarray(points, dtype=float)
    d = np.diff(points, axis=0)
    norm = np.linalg.norm(d, axis=1)
    valid = norm > 0

    if not np.any(valid):
        raise ValueError('Polyline has no segment of non-zero length.')

    if not np.all(valid):
        logger.debug(f'Polyline has {(~valid).sum()} zero-length segment(s); '
                     're-using neighbouring tangents.')

    t = np.zeros_like(d)
    t[valid] = d[valid] / norm[valid][:, None]

    # Forward fill, then back fill the leading gap
    idx = np.where(valid, np.arange(len(d)), 0)
    np.maximum.accumulate(idx, out=idx)
    first = np.argmax(valid)
    idx[:first] = first

    return t[idx]
