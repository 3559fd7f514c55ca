#    This script is part of straightener.
#    Copyright (C) 2026 The straightener developers
#
#    This program is free software: you can redistribute it and/or modify
#    it under the terms of the GNU General Public License as published by
#    the Free Software Foundation, either version 3 of the License, or
#    (at your option) any later version.
#
#    This program is distributed in the hope that it will be useful,
#    but WITHOUT ANY WARRANTY; without even the implied warranty of
#    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#    GNU General Public License for more details.
#
#    You should have received a copy of the GNU General Public License
#    along with this program.

r"""
Example data
------------
straightener ships with a synthetic example: a square bar bent along a
circular arc and cut into tetrahedra. It stands in for a scanned specimen
that should be straightened. Optionally the mesh contains several bars, each
its own connected component.
"""

import itertools

import numpy as np

from ..tetmesh import TetMesh

__docformat__ = "numpy"
__all__ = ['example_mesh', 'example_endpoints']

# Kuhn subdivision of a cube into 6 tets: each tet follows one monotone path
# from corner (0, 0, 0) to corner (1, 1, 1)
_KUHN_PATHS = list(itertools.permutations(range(3)))


def _grid_index(i, j, k, n_cross):
    return (i * (n_cross + 1) + j) * (n_cross + 1) + k


def example_mesh(n_segments=24, n_cross=2, length=20.0, width=2.0,
                 bend=np.pi / 2, n_components=1):
    """Generate a bent bar as tet mesh.

    Parameters
    ----------
    n_segments :    int
                    Number of hexahedral cells along the bar.
    n_cross :       int
                    Number of cells across the bar (in both directions).
    length :        float
                    Length of the bar's center line.
    width :         float
                    Edge length of the bar's square cross-section.
    bend :          float
                    Angle (radians) the center line turns by. 0 produces a
                    straight bar along the x-axis.
    n_components :  int
                    Number of bars. Additional bars are offset along z.

    Returns
    -------
    straightener.TetMesh

    Examples
    --------
    >>> import straightener as sk
    >>> mesh = sk.example_mesh()
    >>> mesh.n_tets
    576

    """
    if n_segments < 1 or n_cross < 1 or n_components < 1:
        raise ValueError('`n_segments`, `n_cross` and `n_components` must be >= 1')

    i, j, k = np.meshgrid(np.arange(n_segments + 1), np.arange(n_cross + 1),
                          np.arange(n_cross + 1), indexing='ij')
    u = i.ravel() / n_segments * length
    a = (j.ravel() / n_cross - 0.5) * width
    b = (k.ravel() / n_cross - 0.5) * width

    if bend:
        R = length / bend
        theta = u / R
        center = np.c_[R * np.sin(theta), R * (1 - np.cos(theta)), np.zeros_like(u)]
        inward = np.c_[-np.sin(theta), np.cos(theta), np.zeros_like(u)]
    else:
        center = np.c_[u, np.zeros_like(u), np.zeros_like(u)]
        inward = np.tile([0.0, 1.0, 0.0], (u.shape[0], 1))
    vertices = center + a[:, None] * inward + b[:, None] * np.array([0, 0, 1.0])

    tets = []
    for ci, cj, ck in itertools.product(range(n_segments), range(n_cross), range(n_cross)):
        for path in _KUHN_PATHS:
            corner = [0, 0, 0]
            tet = [_grid_index(ci, cj, ck, n_cross)]
            for axis in path:
                corner[axis] = 1
                tet.append(_grid_index(ci + corner[0], cj + corner[1],
                                       ck + corner[2], n_cross))
            tets.append(tet)
    tets = np.array(tets, dtype=int)

    n_verts = vertices.shape[0]
    offset = np.array([0, 0, 3.0 * width])
    vertices = np.vstack([vertices + c * offset for c in range(n_components)])
    tets = np.vstack([tets + c * n_verts for c in range(n_components)])

    return TetMesh(vertices, tets)


def example_endpoints(n_segments=24, n_cross=2, n_components=1):
    """Endpoint pairs at the two ends of each bar of ``example_mesh``.

    Parameters must match those passed to ``example_mesh``.

    Returns
    -------
    list of (int, int)
                One pair per component: the vertices closest to the center
                of the bar's first and last cross-section.

    """
    n_verts = (n_segments + 1) * (n_cross + 1) ** 2
    mid = n_cross // 2
    a = _grid_index(0, mid, mid, n_cross)
    b = _grid_index(n_segments, mid, mid, n_cross)
    return [(a + c * n_verts, b + c * n_verts) for c in range(n_components)]
