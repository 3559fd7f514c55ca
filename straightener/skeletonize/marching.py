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

__all__ = ['marching_tets']


def marching_tets(vertices, tets, field, isovalue):
    """Extract the level set ``field == isovalue`` from a tet mesh.

    A vertex counts as "above" if its value is strictly greater than the
    isovalue. Each tet with vertices on both sides contributes a triangle
    (one vertex separated from the other three) or a quad split into two
    triangles (two against two). Level set vertices sit on the crossed tet
    edges and are shared between all tets using that edge.

    Parameters
    ----------
    vertices :  (N, 3) array
    tets :      (M, 4) int array
    field :     (N, ) array
                Scalar value per vertex.
    isovalue :  float

    Returns
    -------
    LV :        (K, 3) array
                Level set vertices. Empty if the level set does not cross
                any tet.
    LF :        (F, 3) int array
                Level set triangles indexing into ``LV``.

    """
    vertices = np.asarray(vertices, dtype=float)
    tets = np.asarray(tets, dtype=int)
    field = np.asarray(field, dtype=float)

    empty = np.zeros((0, 3)), np.zeros((0, 3), dtype=int)
    if not len(tets):
        return empty

    above = field[tets] > isovalue
    n_above = above.sum(axis=1)
    cut = (n_above > 0) & (n_above < 4)
    if not np.any(cut):
        return empty

    tets = tets[cut]
    above = above[cut]
    n_above = n_above[cut]

    # Reorder local vertices so that those above the isovalue come first
    order = np.argsort(~above, axis=1, kind='stable')
    o = np.take_along_axis(tets, order, axis=1)

    # Crossed edges as (global_i, global_j) pairs, one polygon per tet
    edges = []
    faces_local = []

    one = n_above == 1
    if np.any(one):
        t = o[one]
        e = np.stack([t[:, [0, 1]], t[:, [0, 2]], t[:, [0, 3]]], axis=1)
        edges.append(e.reshape(-1, 2))
        faces_local.append(np.array([[0, 1, 2]]) + 3 * np.arange(len(t))[:, None])

    three = n_above == 3
    if np.any(three):
        t = o[three]
        e = np.stack([t[:, [3, 0]], t[:, [3, 1]], t[:, [3, 2]]], axis=1)
        edges.append(e.reshape(-1, 2))
        faces_local.append(np.array([[0, 1, 2]]) + 3 * np.arange(len(t))[:, None])

    two = n_above == 2
    if np.any(two):
        # Above: p, q - below: r, s. Cycle p-r, p-s, q-s, q-r
        t = o[two]
        e = np.stack([t[:, [0, 2]], t[:, [0, 3]], t[:, [1, 3]], t[:, [1, 2]]], axis=1)
        edges.append(e.reshape(-1, 2))
        quad = np.array([[0, 1, 2], [0, 2, 3]])
        faces_local.append((quad[None, :, :]
                            + 4 * np.arange(len(t))[:, None, None]).reshape(-1, 3))

    # Offset face indices into the concatenated edge list
    offsets = np.cumsum([0] + [len(e) for e in edges[:-1]])
    edges = np.vstack(edges)
    faces = np.vstack([f + off for f, off in zip(faces_local, offsets)])

    # Share level set vertices between tets using the same edge
    keys = np.sort(edges, axis=1)
    unique_keys, first, inverse = np.unique(keys, axis=0, return_index=True,
                                            return_inverse=True)
    inverse = inverse.ravel()

    # Interpolate along each unique edge (oriented as in the first occurrence)
    i, j = edges[first, 0], edges[first, 1]
    fi, fj = field[i], field[j]
    t = (isovalue - fi) / (fj - fi)
    LV = vertices[i] + t[:, None] * (vertices[j] - vertices[i])
    LF = inverse[faces]

    return LV, LF
