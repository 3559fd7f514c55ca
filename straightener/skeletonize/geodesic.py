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
import scipy.sparse

from scipy.sparse.csgraph import dijkstra
from scipy.sparse.linalg import spsolve

from ..pre.components import mesh_adjacency
from ..pre.validation import validate_endpoint_pairs
from ..utilities import make_tetmesh

__all__ = ['geodesic_distances', 'NO_DATA']

logger = logging.getLogger('straightener')

# Field value for vertices in components without a selected endpoint pair
NO_DATA = -1.0

METHODS = ('dijkstra', 'two_sided', 'diffusion')


def geodesic_distances(mesh, endpoint_pairs, components=None, normalized=True,
                       method='dijkstra'):
    """Compute a scalar field running from one endpoint to the other.

    The field approximates the geodesic distance through the volume by
    shortest paths over the tet edges (weighted by edge length). Each
    connected component is handled on its own: computing the field for one
    endpoint pair never reads or writes vertices of another component.

    Parameters
    ----------
    mesh :          mesh obj
                    The tet mesh. Can be a ``straightener.TetMesh``, a tuple
                    ``(vertices, tets)`` or a dictionary
                    ``{'vertices': vertices, 'tets': tets}``.
    endpoint_pairs : list of (int, int)
                    Vertex indices. Must pass ``validate_endpoint_pairs``.
    components :    (N, ) int array, optional
                    Connected component label per vertex. Computed from the
                    mesh if not provided.
    normalized :    bool
                    If True, values of each component are rescaled using
                    the field values at its two endpoints, such that the
                    first endpoint maps to 0 and the second to 1. Vertices
                    further from the first endpoint than the second end up
                    above 1. If False, the raw distance from the first
                    endpoint is returned.
    method :        "dijkstra" | "two_sided" | "diffusion"
                    "dijkstra" uses graph shortest paths from the first
                    endpoint. "two_sided" uses ``d_a / (d_a + d_b)`` where
                    ``d_a`` and ``d_b`` are the shortest path distances to
                    either endpoint. "diffusion" solves a Laplace problem on
                    the edge graph with the endpoints held at 0 and 1 which
                    produces smoother level sets on bulky components.

    Returns
    -------
    field :         (N, ) float array
                    Vertices in components without an endpoint pair (and
                    vertices unreachable from the endpoints) are set to
                    ``NO_DATA`` (-1).

    """
    if method not in METHODS:
        raise ValueError(f'Unknown method "{method}"')

    mesh = make_tetmesh(mesh)

    if isinstance(components, type(None)):
        components = mesh.components
    components = np.asarray(components)

    if components.shape[0] != mesh.n_vertices:
        raise ValueError(f'Got {components.shape[0]} component labels for a '
                         f'mesh with {mesh.n_vertices} vertices')

    if not validate_endpoint_pairs(endpoint_pairs, components):
        raise ValueError('Endpoint pairs must lie within one connected component '
                         'each and components must not be shared between pairs.')

    field = np.full(mesh.n_vertices, NO_DATA)
    adj = mesh_adjacency(mesh, weighted=True)

    for a, b in endpoint_pairs:
        comp = components[a]
        keep = np.where(components == comp)[0]

        # Local indices of the endpoints
        la, lb = np.searchsorted(keep, [a, b])

        if np.allclose(mesh.vertices[a], mesh.vertices[b]):
            logger.warning(f'Endpoints {a} and {b} are at the same position - '
                           f'no field for component {comp}.')
            continue

        sub = adj[keep][:, keep]

        if method in ('dijkstra', 'two_sided'):
            values = _shortest_path_field(sub, la, lb, normalized=normalized,
                                          two_sided=method == 'two_sided')
        else:
            values = _diffusion_field(sub, la, lb, normalized=normalized)

        field[keep] = values

        n_missing = (values == NO_DATA).sum()
        if n_missing:
            logger.warning(f'{n_missing} vertices in component {comp} are not '
                           'reachable from the endpoints.')

    return field


def _shortest_path_field(adj, a, b, normalized=True, two_sided=False):
    """Shortest path field over a single component."""
    if two_sided:
        dist = dijkstra(csgraph=adj, directed=False, indices=[a, b])
        d_a, d_b = dist[0], dist[1]
        reachable = np.isfinite(d_a) & np.isfinite(d_b)
    else:
        d_a = dijkstra(csgraph=adj, directed=False, indices=a)
        reachable = np.isfinite(d_a)

    values = np.full(adj.shape[0], NO_DATA)
    if not np.isfinite(d_a[b]):
        return values

    if two_sided:
        # d_a + d_b >= d(a, b) > 0 by the triangle inequality
        values[reachable] = d_a[reachable] / (d_a[reachable] + d_b[reachable])
        values[a], values[b] = 0.0, 1.0
        if not normalized:
            values[reachable] *= d_a[b]
    elif normalized:
        # Rescale using the endpoint values: d_a[a] == 0
        values[reachable] = d_a[reachable] / d_a[b]
    else:
        values[reachable] = d_a[reachable]
    return values


def _diffusion_field(adj, a, b, normalized=True):
    """Harmonic field with Dirichlet values 0 at ``a`` and 1 at ``b``."""
    n = adj.shape[0]

    # Inverse edge lengths as conductances
    W = adj.copy().tocsr()
    W.data = 1 / W.data
    L = scipy.sparse.diags(np.asarray(W.sum(axis=1)).ravel()) - W

    values = np.zeros(n)
    values[b] = 1.0

    interior = np.setdiff1d(np.arange(n), [a, b])
    if len(interior):
        L = L.tocsr()
        L_II = L[interior][:, interior].tocsc()
        rhs = np.asarray(W[interior][:, [b]].todense()).ravel()
        sol = spsolve(L_II, rhs)
        values[interior] = np.atleast_1d(sol)

    # Vertices that are not connected to either endpoint produce NaNs
    values = np.clip(values, 0, 1)
    values[~np.isfinite(values)] = NO_DATA

    if not normalized:
        d_ab = dijkstra(csgraph=adj, directed=False, indices=a)[b]
        ok = values != NO_DATA
        values[ok] = values[ok] * d_ab

    return values
