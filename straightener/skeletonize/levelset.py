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

from tqdm.auto import tqdm

from ..pre.components import split_mesh_components
from ..pre.validation import validate_endpoint_pairs
from ..utilities import make_tetmesh, check_cancelled
from .base import Skeleton
from .geodesic import NO_DATA
from .marching import marching_tets

__all__ = ['by_level_sets', 'skeleton_for_pair']

logger = logging.getLogger('straightener')


def by_level_sets(mesh, field, endpoint_pairs, components=None, n_samples=100,
                  progress=True, cancel=None):
    """Skeletonize a tet mesh by marching along a scalar field.

    For each endpoint pair, the range of field values between the two
    endpoints is split into ``n_samples - 1`` equal steps. At every interior
    step we extract the level set (a polygon cutting through the
    component) and collapse it to its centroid. Think of slicing a sausage
    and keeping the middle of each slice. This works best with elongated
    meshes and a field that runs from one end to the other (see
    ``straightener.skeletonize.geodesic_distances``).

    Parameters
    ----------
    mesh :          mesh obj
                    The tet mesh. Can be a ``straightener.TetMesh``, a tuple
                    ``(vertices, tets)`` or a dictionary
                    ``{'vertices': vertices, 'tets': tets}``.
    field :         (N, ) array
                    Scalar value per vertex, e.g. normalized geodesic
                    distances.
    endpoint_pairs : list of (int, int)
                    Vertex indices. Each pair produces one polyline running
                    from the first to the second vertex.
    components :    (N, ) int array, optional
                    Connected component label per vertex. Computed from the
                    mesh if not provided.
    n_samples :     int (>= 2)
                    Number of skeleton vertices requested per pair. Level
                    sets that come out empty (e.g. at very thin cross
                    sections) are skipped, so each polyline has at most
                    ``n_samples`` vertices.
    progress :      bool
                    If True, will show progress bar.
    cancel :        threading.Event | callable, optional
                    Checked between level sets. If set, the extraction is
                    aborted with ``straightener.utilities.Cancelled``.

    Returns
    -------
    straightener.Skeleton
                    Holds results of the skeletonization.

    """
    mesh = make_tetmesh(mesh)
    field = np.asarray(field, dtype=float)

    if field.shape[0] != mesh.n_vertices:
        raise ValueError(f'Got {field.shape[0]} field values for a mesh with '
                         f'{mesh.n_vertices} vertices')

    n_samples = int(n_samples)
    if n_samples < 2:
        raise ValueError('`n_samples` must be integer >= 2')

    if isinstance(components, type(None)):
        components = mesh.components
    components = np.asarray(components)

    if not validate_endpoint_pairs(endpoint_pairs, components):
        raise ValueError('Endpoint pairs must lie within one connected component '
                         'each and components must not be shared between pairs.')

    tets_by_comp = split_mesh_components(mesh.tets, components)

    vertices = []
    pair_ids = []
    total = len(endpoint_pairs) * max(n_samples - 2, 0)
    with tqdm(desc='Extracting skeleton', total=total, disable=not progress) as pbar:
        for i, pair in enumerate(endpoint_pairs):
            comp = components[pair[0]]
            pts = skeleton_for_pair(mesh.vertices, tets_by_comp[comp], field,
                                    pair, n_samples, cancel=cancel, pbar=pbar)
            vertices.append(pts)
            pair_ids.append(np.full(pts.shape[0], i, dtype=int))

    if vertices:
        vertices = np.vstack(vertices)
        pair_ids = np.concatenate(pair_ids)
    else:
        vertices = np.zeros((0, 3))
        pair_ids = np.zeros(0, dtype=int)

    return Skeleton(vertices=vertices, pair_ids=pair_ids,
                    endpoint_pairs=endpoint_pairs, field=field, mesh=mesh,
                    method='level_sets')


def skeleton_for_pair(vertices, tets, field, pair, n_samples, cancel=None,
                      pbar=None):
    """Extract the skeleton polyline of a single endpoint pair.

    Parameters
    ----------
    vertices :      (N, 3) array
    tets :          (M, 4) int array
                    Tets of the pair's connected component.
    field :         (N, ) array
    pair :          (int, int)
    n_samples :     int (>= 2)

    Returns
    -------
    (K, 3) array
                    ``K <= n_samples``. First and last point are the
                    positions of the two endpoints.

    """
    vertices = np.asarray(vertices)
    a, b = pair
    f0, f1 = field[a], field[b]
    if f0 == NO_DATA or f1 == NO_DATA:
        raise ValueError(f'Endpoints {a} and {b} have no field data')

    incr = (f1 - f0) / (n_samples - 1)

    points = [vertices[a]]
    for i in range(1, n_samples - 1):
        check_cancelled(cancel)

        isovalue = f0 + i * incr
        LV, _ = marching_tets(vertices, tets, field, isovalue)
        if pbar is not None:
            pbar.update(1)

        if not len(LV):
            logger.debug(f'Empty level set at isovalue {isovalue:.4f} for '
                         f'pair ({a}, {b}) - skipping sample.')
            continue

        points.append(LV.mean(axis=0))
    points.append(vertices[b])

    return np.array(points)
