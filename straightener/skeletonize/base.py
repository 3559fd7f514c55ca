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

import csv
import datetime

import numpy as np
import trimesh as tm

from textwrap import dedent

from .utils import chain_edges, make_swc, edges_to_graph

__docformat__ = "numpy"


class Skeleton:
    """Class representing a level set skeleton.

    Typically returned as results from ``by_level_sets``. The skeleton is an
    ordered polyline per endpoint pair; the polylines of all pairs are
    concatenated in selection order.

    Attributes
    ----------
    vertices :  (N, 3) array
                Vertex (node) positions.
    pair_ids :  (N, ) array
                Index of the endpoint pair each vertex belongs to.
    endpoint_pairs : list of (int, int)
                Mesh vertex indices the polylines start and end at.
    field :     (V, ) array, optional
                The scalar field the skeleton was extracted from.
    mesh :      straightener.TetMesh, optional
                The original mesh.
    method :    str, optional
                Which method was used to generate the skeleton.

    """

    def __init__(self, vertices, pair_ids=None, endpoint_pairs=None, field=None,
                 mesh=None, method=None):
        self.vertices = np.asarray(vertices, dtype=float).reshape(-1, 3)
        if isinstance(pair_ids, type(None)):
            pair_ids = np.zeros(self.vertices.shape[0], dtype=int)
        self.pair_ids = np.asarray(pair_ids, dtype=int)
        if self.pair_ids.shape[0] != self.vertices.shape[0]:
            raise ValueError('Need exactly one pair ID per skeleton vertex')
        self.endpoint_pairs = [tuple(p) for p in (endpoint_pairs or [])]
        self.field = field
        self.mesh = mesh
        self.method = method

    def __str__(self):
        """Summary."""
        return self.__repr__()

    def __repr__(self):
        """Return quick summary of the skeleton's geometry."""
        elements = [f'vertices={self.vertices.shape}',
                    f'edges={self.edges.shape}']
        if self.method:
            elements.append(f'method={self.method}')
        return f'<Skeleton({", ".join(elements)})>'

    def __len__(self):
        return self.vertices.shape[0]

    @property
    def edges(self):
        """Return skeleton edges (child -> parent)."""
        return chain_edges(self.pair_ids)

    @property
    def n_pairs(self):
        """Number of polylines in the skeleton."""
        return len(np.unique(self.pair_ids))

    @property
    def swc(self):
        """SWC table of the skeleton."""
        return make_swc(self.edges, self.vertices)

    @property
    def length(self):
        """Summed length of all polylines."""
        e = self.edges
        if not len(e):
            return 0.0
        return float(np.linalg.norm(self.vertices[e[:, 0]] - self.vertices[e[:, 1]],
                                    axis=1).sum())

    @property
    def skeleton(self):
        """Skeleton as trimesh Path3D."""
        if not hasattr(self, '_skeleton'):
            lines = [tm.path.entities.Line(e) for e in self.edges]

            self._skeleton = tm.path.Path3D(entities=lines,
                                            vertices=self.vertices,
                                            process=False)
        return self._skeleton

    def polyline(self, pair):
        """Return the vertices belonging to endpoint pair ``pair``."""
        return self.vertices[self.pair_ids == pair]

    def copy(self):
        """Return copy of the skeleton."""
        return Skeleton(vertices=self.vertices.copy(),
                        pair_ids=self.pair_ids.copy(),
                        endpoint_pairs=list(self.endpoint_pairs),
                        field=self.field.copy() if not isinstance(self.field, type(None)) else None,
                        mesh=self.mesh,
                        method=self.method)

    def get_graph(self):
        """Generate networkX representation of the skeleton.

        Distance between nodes will be used as edge weights.

        Returns
        -------
        networkx.DiGraph

        """
        return edges_to_graph(self.edges, vertices=self.vertices,
                              n_nodes=self.vertices.shape[0])

    def save_swc(self, filepath):
        """Save skeleton in SWC format.

        Parameters
        ----------
        filepath :      path-like
                        Filepath to save SWC to.

        """
        header = dedent(f"""\
        # SWC format file
        # based on specifications at http://www.neuronland.org/NLMorphologyConverter/MorphologyFormats/SWC/Spec.html
        # Created on {datetime.date.today()} using straightener
        # PointNo Label X Y Z Radius Parent
        # Labels:
        # 0 = undefined, 6 = end point
        """)

        swc = self.swc.copy()

        # Set all labels to undefined
        swc['label'] = 0
        swc.loc[~swc.node_id.isin(swc.parent_id.values), 'label'] = 6
        swc['radius'] = 0

        # Get things in order
        swc = swc[['node_id', 'label', 'x', 'y', 'z', 'radius', 'parent_id']]

        # Adjust column titles
        swc.columns = ['PointNo', 'Label', 'X', 'Y', 'Z', 'Radius', 'Parent']

        with open(filepath, 'w') as file:
            # Write header
            file.write(header)

            # Write data
            writer = csv.writer(file, delimiter=' ')
            writer.writerows(swc.astype(str).values)

    def scene(self, mesh=False, **kwargs):
        """Return a Scene object containing the skeleton.

        Returns
        -------
        scene :     trimesh.scene.scene.Scene
                    Contains the skeleton and optionally the mesh surface.

        """
        if mesh:
            if isinstance(self.mesh, type(None)):
                raise ValueError('Skeleton has no mesh.')

            surface = self.mesh.surface.copy()
            surface.visual.face_colors = [100, 100, 100, 100]

            sc = tm.Scene([surface, self.skeleton.copy()], **kwargs)
        else:
            sc = tm.Scene(self.skeleton.copy(), **kwargs)

        return sc

    def show(self, mesh=False, **kwargs):
        """Render the skeleton in an opengl window. Requires pyglet.

        Parameters
        ----------
        mesh :      bool
                    If True, will render transparent mesh on top of the
                    skeleton.

        Returns
        --------
        scene :     trimesh.scene.Scene
                    Scene with skeleton in it.

        """
        scene = self.scene(mesh=mesh)

        # Rescale to -5 to +5 bounds to avoid clipping issues in the viewer
        fac = 5 / np.fabs(self.skeleton.bounds).max()
        scene.apply_transform(np.diag([fac, fac, fac, 1]))

        return scene.show(**kwargs)
