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

import numpy as np
import scipy.sparse
import scipy.sparse.csgraph

from ..tetmesh import TET_EDGES, TET_FACES

__all__ = ['connected_components', 'split_mesh_components',
           'remesh_connected_component', 'tet_mesh_faces', 'edge_endpoints',
           'point_in_tet', 'containing_tet', 'nearest_vertex', 'scale_zero_one',
           'mesh_adjacency', 'transfer_points']


def mesh_adjacency(mesh, weighted=True):
    """Generate a sparse, symmetric adjacency matrix over the tet edges.

    Parameters
    ----------
    mesh :      straightener.TetMesh
    weighted :  bool
                If True, entries are Euclidean edge lengths. If False, all
                entries are 1.

    Returns
    -------
    scipy.sparse.csr_matrix
                (N, N) adjacency matrix.

    """
    edges = mesh.edges
    n = mesh.n_vertices
    if weighted:
        # dijkstra treats explicit zeros as missing edges
        w = np.maximum(mesh.edge_lengths, np.finfo(float).tiny)
    else:
        w = np.ones(edges.shape[0])

    adj = scipy.sparse.coo_matrix((np.concatenate((w, w)),
                                   (np.concatenate((edges[:, 0], edges[:, 1])),
                                    np.concatenate((edges[:, 1], edges[:, 0])))),
                                  shape=(n, n))
    return adj.tocsr()


def connected_components(mesh):
    """Label the connected components of a tet mesh.

    Parameters
    ----------
    mesh :      straightener.TetMesh

    Returns
    -------
    labels :    (N, ) int array
                Component label for each vertex. Vertices joined by an edge
                always share a label. Vertices not referenced by any tet end
                up in their own component.

    """
    adj = mesh_adjacency(mesh, weighted=False)
    _, labels = scipy.sparse.csgraph.connected_components(adj, directed=False)
    return labels.astype(int)


def split_mesh_components(tets, components):
    """Split tets by connected component.

    Parameters
    ----------
    tets :          (M, 4) int array
    components :    (N, ) int array
                    Component label per vertex.

    Returns
    -------
    list of (M_c, 4) arrays
                    Entry ``c`` holds the tets of component ``c``.

    """
    tets = np.asarray(tets)
    components = np.asarray(components)
    n_comps = int(components.max()) + 1 if components.size else 0
    tet_labels = components[tets[:, 0]] if len(tets) else np.zeros(0, dtype=int)
    return [tets[tet_labels == c] for c in range(n_comps)]


def remesh_connected_component(comp, components, vertices, tets):
    """Compute a compact mesh consisting only of component ``comp``.

    Parameters
    ----------
    comp :          int
                    Component to extract.
    components :    (N, ) int array
    vertices :      (N, 3) array
    tets :          (M, 4) int array

    Returns
    -------
    cmap :          (N, ) int array
                    Maps global vertex indices to indices in the new mesh.
                    ``-1`` for vertices outside the component.
    sub_vertices :  (N_c, 3) array
    sub_tets :      (M_c, 4) int array

    """
    components = np.asarray(components)
    tets = np.asarray(tets)
    keep = np.where(components == comp)[0]

    cmap = np.full(components.shape[0], -1, dtype=int)
    cmap[keep] = np.arange(keep.shape[0])

    sub_tets = tets[components[tets[:, 0]] == comp]
    return cmap, np.asarray(vertices)[keep], cmap[sub_tets]


def tet_mesh_faces(tets, flip=False):
    """Extract boundary faces from tets.

    Boundary faces are those referenced by exactly one tet. Interior faces
    are shared by two tets and are dropped.

    Parameters
    ----------
    tets :      (M, 4) int array
    flip :      bool
                If True, will invert the winding of the returned faces.

    Returns
    -------
    faces :     (K, 3) int array

    """
    tets = np.asarray(tets)
    if not len(tets):
        return np.zeros((0, 3), dtype=int)

    faces = tets[:, TET_FACES].reshape(-1, 3)
    _, inverse, counts = np.unique(np.sort(faces, axis=1), axis=0,
                                   return_inverse=True, return_counts=True)
    faces = faces[counts[inverse.ravel()] == 1]

    if flip:
        faces = faces[:, ::-1]

    return faces


def edge_endpoints(vertices, elements):
    """Return endpoints of all unique edges of the given elements.

    Parameters
    ----------
    vertices :  (N, 3) array
    elements :  (K, 2) | (K, 3) | (K, 4) int array
                Edges, triangles or tets.

    Returns
    -------
    V1, V2 :    (E, 3) arrays
                Start and end point of each edge.

    """
    vertices = np.asarray(vertices)
    elements = np.asarray(elements)

    if elements.shape[1] == 2:
        edges = elements
    elif elements.shape[1] == 3:
        edges = elements[:, [[0, 1], [1, 2], [2, 0]]].reshape(-1, 2)
    elif elements.shape[1] == 4:
        edges = elements[:, TET_EDGES].reshape(-1, 2)
    else:
        raise ValueError(f'Unable to extract edges from elements of shape {elements.shape}')

    edges = np.unique(np.sort(edges, axis=1), axis=0)
    return vertices[edges[:, 0]], vertices[edges[:, 1]]


def _barycentric(corners, p):
    """Barycentric coordinates of ``p`` in (K, 4, 3) tets.

    Degenerate tets produce NaNs.
    """
    T = np.transpose(corners[:, 1:] - corners[:, :1], (0, 2, 1))
    det = np.linalg.det(T)
    ok = np.abs(det) > 1e-300

    bary = np.full((corners.shape[0], 4), np.nan)
    if np.any(ok):
        rhs = (p - corners[ok, 0])[..., None]
        lam = np.linalg.solve(T[ok], rhs)[..., 0]
        bary[ok, 1:] = lam
        bary[ok, 0] = 1 - lam.sum(axis=1)
    return bary


def point_in_tet(vertices, tets, p, tet, eps=1e-10):
    """Check if point ``p`` lies in tet ``tet``.

    Points on the tet's boundary count as inside.
    """
    vertices = np.asarray(vertices)
    tets = np.asarray(tets)
    if tet < 0 or tet >= tets.shape[0]:
        raise IndexError(f'Tet {tet} out of range for mesh with {tets.shape[0]} tets')

    bary = _barycentric(vertices[tets[[tet]]], np.asarray(p, dtype=float))[0]
    return bool(np.all(np.isfinite(bary)) and np.all(bary >= -eps))


def containing_tet(vertices, tets, p, eps=1e-10):
    """Return the index of the tet containing ``p``.

    Parameters
    ----------
    vertices :  (N, 3) array
    tets :      (M, 4) int array
    p :         (3, ) array
    eps :       float
                Tolerance for points on tet faces.

    Returns
    -------
    int
                Index of the first tet containing ``p`` or -1 if ``p`` is
                outside of the mesh.

    """
    vertices = np.asarray(vertices)
    tets = np.asarray(tets)
    p = np.asarray(p, dtype=float)
    if not len(tets):
        return -1

    corners = vertices[tets]

    # Cheap bounding box test first
    cand = np.where(np.all(corners.min(axis=1) <= p + eps, axis=1)
                    & np.all(corners.max(axis=1) >= p - eps, axis=1))[0]
    if not len(cand):
        return -1

    bary = _barycentric(corners[cand], p)
    inside = np.all(bary >= -eps, axis=1)  # NaN compares False
    hits = cand[inside]

    return int(hits[0]) if len(hits) else -1


def nearest_vertex(vertices, p):
    """Return the index of the vertex closest to ``p``."""
    vertices = np.asarray(vertices)
    if not len(vertices):
        raise ValueError('Mesh has no vertices.')
    return int(np.argmin(np.linalg.norm(vertices - np.asarray(p), axis=1)))


def scale_zero_one(values):
    """Scale values such that they lie between zero and one.

    Constant input is mapped to all zeros.
    """
    values = np.asarray(values, dtype=float)
    if not values.size:
        return values.copy()
    mn, mx = values.min(), values.max()
    if mx - mn <= 0:
        return np.zeros_like(values)
    return (values - mn) / (mx - mn)


def transfer_points(vertices, tets, deformed_vertices, points):
    """Carry points along with a deformation of the mesh.

    Each point keeps its barycentric coordinates in the tet containing it.
    Points outside of the mesh move with their nearest vertex.

    Parameters
    ----------
    vertices :          (N, 3) array
                        Rest positions.
    tets :              (M, 4) int array
    deformed_vertices : (N, 3) array
                        Deformed positions, same topology.
    points :            (K, 3) array
                        Points in rest space.

    Returns
    -------
    (K, 3) array
                        Points in deformed space.

    """
    vertices = np.asarray(vertices, dtype=float)
    tets = np.asarray(tets)
    deformed_vertices = np.asarray(deformed_vertices, dtype=float)
    points = np.asarray(points, dtype=float).reshape(-1, 3)

    if deformed_vertices.shape != vertices.shape:
        raise ValueError(f'Expected deformed vertices of shape {vertices.shape}, '
                         f'got {deformed_vertices.shape}')

    out = np.zeros_like(points)
    for i, p in enumerate(points):
        tet = containing_tet(vertices, tets, p)
        if tet >= 0:
            bary = _barycentric(vertices[tets[[tet]]], p)[0]
            out[i] = bary @ deformed_vertices[tets[tet]]
        else:
            v = nearest_vertex(vertices, p)
            out[i] = p + deformed_vertices[v] - vertices[v]
    return out
