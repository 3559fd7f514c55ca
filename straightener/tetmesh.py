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
import trimesh as tm

__docformat__ = "numpy"

# Local vertex pairs forming the six edges of a tetrahedron
TET_EDGES = np.array([[0, 1], [0, 2], [0, 3], [1, 2], [1, 3], [2, 3]])

# Local faces of a tetrahedron: face ``i`` is opposite to vertex ``i`` and
# wound such that its normal points away from that vertex
TET_FACES = np.array([[1, 3, 2], [0, 2, 3], [0, 3, 1], [0, 1, 2]])


class TetMesh:
    """Class representing a tetrahedral mesh.

    The mesh is treated as immutable for the duration of a pipeline run:
    vertex and tet arrays are made read-only and all derived quantities are
    computed lazily and cached.

    Attributes
    ----------
    vertices :  (N, 3) array
                Vertex positions.
    tets :      (M, 4) array
                Vertex indices of each tetrahedron.
    faces :     (K, 3) array
                Boundary triangles (faces referenced by exactly one tet).
    edges :     (E, 2) array
                Unique, sorted vertex pairs connected by a tet edge.
    components : (N, ) array
                Connected component label for each vertex.

    """

    def __init__(self, vertices, tets):
        vertices = np.array(vertices, dtype=float)
        tets = np.array(tets, dtype=int)

        if vertices.ndim != 2 or vertices.shape[1] != 3:
            raise ValueError(f'Expected (N, 3) vertices, got {vertices.shape}')
        if tets.size == 0:
            tets = tets.reshape(0, 4)
        if tets.ndim != 2 or tets.shape[1] != 4:
            raise ValueError(f'Expected (M, 4) tets, got {tets.shape}')
        if tets.size and (tets.min() < 0 or tets.max() >= vertices.shape[0]):
            raise ValueError('Tets reference vertices outside the mesh.')

        vertices.setflags(write=False)
        tets.setflags(write=False)

        self._vertices = vertices
        self._tets = tets
        self._cache = {}

    def __str__(self):
        """Summary."""
        return self.__repr__()

    def __repr__(self):
        """Return quick summary of the mesh."""
        return (f'<TetMesh(vertices={self.vertices.shape}, '
                f'tets={self.tets.shape})>')

    def __len__(self):
        return self.vertices.shape[0]

    @property
    def vertices(self):
        """Vertex positions."""
        return self._vertices

    @property
    def tets(self):
        """Tetrahedra."""
        return self._tets

    @property
    def n_vertices(self):
        return self._vertices.shape[0]

    @property
    def n_tets(self):
        return self._tets.shape[0]

    def _cached(self, key, func):
        if key not in self._cache:
            value = func()
            if isinstance(value, np.ndarray):
                value.setflags(write=False)
            self._cache[key] = value
        return self._cache[key]

    @property
    def faces(self):
        """Boundary faces of the mesh."""
        from .pre.components import tet_mesh_faces
        return self._cached('faces', lambda: tet_mesh_faces(self.tets))

    @property
    def edges(self):
        """Unique tet edges (sorted vertex pairs)."""
        def _edges():
            e = self.tets[:, TET_EDGES].reshape(-1, 2)
            return np.unique(np.sort(e, axis=1), axis=0)
        return self._cached('edges', _edges)

    @property
    def edge_lengths(self):
        """Euclidean length of each edge in ``edges``."""
        def _lengths():
            e = self.edges
            return np.linalg.norm(self.vertices[e[:, 0]] - self.vertices[e[:, 1]],
                                  axis=1)
        return self._cached('edge_lengths', _lengths)

    @property
    def components(self):
        """Connected component label for each vertex."""
        from .pre.components import connected_components
        return self._cached('components', lambda: connected_components(self))

    @property
    def n_components(self):
        if not self.n_vertices:
            return 0
        return int(self.components.max()) + 1

    @property
    def tet_centroids(self):
        """Barycenter of each tet."""
        return self._cached('tet_centroids',
                            lambda: self.vertices[self.tets].mean(axis=1))

    @property
    def surface(self):
        """Boundary surface as ``trimesh.Trimesh``.

        Vertices are not re-indexed, i.e. the surface shares its vertex
        indices with the tet mesh.

        """
        if 'surface' not in self._cache:
            self._cache['surface'] = tm.Trimesh(vertices=np.array(self.vertices),
                                                faces=np.array(self.faces),
                                                process=False)
        return self._cache['surface']

    def copy(self):
        """Return copy of the mesh."""
        return TetMesh(self.vertices.copy(), self.tets.copy())

    def with_vertices(self, vertices):
        """Return a mesh with the same topology but new vertex positions."""
        vertices = np.asarray(vertices, dtype=float)
        if vertices.shape != self.vertices.shape:
            raise ValueError(f'Expected vertices of shape {self.vertices.shape}, '
                             f'got {vertices.shape}')
        return TetMesh(vertices, self.tets)
