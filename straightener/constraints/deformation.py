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

from typing import NamedTuple

import numpy as np
import scipy.spatial

from ..post.smoothing import arc_length
from ..pre.components import containing_tet
from ..pre.validation import validate_endpoint_pairs
from ..skeletonize.levelset import by_level_sets
from ..utilities import make_tetmesh
from .frames import tangent_frame

__all__ = ['DeformationConstraints', 'OrientationConstraint', 'ConstraintRecord']

logger = logging.getLogger('straightener')


class OrientationConstraint(NamedTuple):
    """Committed orientation of a constrainable tet."""

    angle: float
    flipped: bool


class ConstraintRecord(NamedTuple):
    """State of a single constrainable tet."""

    tet: int
    angle: float
    flipped: bool
    committed: bool


class DeformationConstraints:
    """Boundary conditions that straighten a tet mesh along its skeleton.

    Two kinds of constraints are generated:

    1. *Bone constraints* pull the mesh vertex nearest to each skeleton
       sample onto a straight line. Per endpoint pair the line starts at
       the first endpoint and points towards the second; a sample's target
       sits at its arc length along the skeleton (times ``scale``).
    2. *Orientation constraints* fix the twist of individual tets along the
       skeleton. Each committed constraint pins the four corners of its tet
       to a rotated copy of the tet placed on the straight line.

    Parameters
    ----------
    scale :     float
                Multiplier for the straight line's arc length.

    Examples
    --------
    >>> import straightener as sk
    >>> mesh = sk.example_mesh()
    >>> pairs = sk.data.example_endpoints()
    >>> field = sk.skeletonize.geodesic_distances(mesh, pairs)
    >>> dc = sk.constraints.DeformationConstraints()
    >>> length = dc.update_bone_constraints(mesh, field, mesh.components,
    ...                                     pairs, 20, progress=False)
    >>> dc.update_orientation_constraint(0, 0.5, False)
    >>> b, bc = dc.slim_constraints(only_ends_and_tets=True)

    """

    def __init__(self, scale=1.0):
        self.scale = scale
        self.mesh = None
        self.skeleton = None
        self._reset()

    def _reset(self):
        self.bone_constraints_idx = np.zeros(0, dtype=int)
        self._bone_pair = np.zeros(0, dtype=int)
        self._bone_arclength = np.zeros(0)
        self._bone_is_end = np.zeros(0, dtype=bool)

        self.constrainable_tets_idx = np.zeros(0, dtype=int)
        self._tet_pair = np.zeros(0, dtype=int)
        self._tet_arclength = np.zeros(0)

        self.straight_origin = np.zeros((0, 3))
        self.straight_dir = np.zeros((0, 3))

        self._orientation = []

    def __repr__(self):
        return (f'<DeformationConstraints(bone={self.num_bone_constraints}, '
                f'orientation={self.num_orientation_constraints}, '
                f'constrainable_tets={self.num_constrainable_tets}, '
                f'scale={self.scale})>')

    @property
    def scale(self):
        return self._scale

    @scale.setter
    def scale(self, value):
        value = float(value)
        if not value > 0:
            raise ValueError('`scale` must be > 0')
        self._scale = value

    validate_endpoint_pairs = staticmethod(validate_endpoint_pairs)

    @property
    def num_bone_constraints(self):
        return int(self.bone_constraints_idx.shape[0])

    @property
    def num_orientation_constraints(self):
        return sum(c is not None for c in self._orientation)

    @property
    def num_constrainable_tets(self):
        return int(self.constrainable_tets_idx.shape[0])

    @property
    def num_constraints(self):
        return self.num_bone_constraints + self.num_orientation_constraints

    @property
    def bone_constraints_pos(self):
        """Target position of each bone constraint."""
        return self._straight_position(self._bone_pair, self._bone_arclength)

    def _straight_position(self, pair, s):
        return (self.straight_origin[pair]
                + self.straight_dir[pair] * (s * self._scale)[:, None])

    def update_bone_constraints(self, mesh, field, components, endpoint_pairs,
                                num_verts, thin_mesh=None, skeleton=None,
                                progress=True, cancel=None):
        """(Re-)compute bone constraints and constrainable tets.

        Orientation constraints are cleared.

        Parameters
        ----------
        mesh :          mesh obj
                        The tet mesh the solver deforms.
        field :         (N, ) array
                        Scalar field over the level set mesh (``thin_mesh``
                        if provided, else ``mesh``).
        components :    (N, ) int array
                        Component labels of the level set mesh.
        endpoint_pairs : list of (int, int)
                        Vertex indices into the level set mesh.
        num_verts :     int (>= 2)
                        Skeleton samples per endpoint pair.
        thin_mesh :     mesh obj, optional
                        Thinner version of ``mesh`` to extract level sets
                        from. Vertices and tets are still looked up in
                        ``mesh``.
        skeleton :      straightener.Skeleton, optional
                        Previously extracted skeleton for these inputs.
                        Skips level set extraction.
        progress :      bool
                        Show progress bar during level set extraction.
        cancel :        threading.Event | callable, optional
                        Checked during level set extraction.

        Returns
        -------
        float
                        Total length of the straight skeleton (sum of the
                        distances between consecutive targets).

        """
        mesh = make_tetmesh(mesh)
        level_mesh = mesh if thin_mesh is None else make_tetmesh(thin_mesh)
        components = np.asarray(components)

        if not validate_endpoint_pairs(endpoint_pairs, components):
            raise ValueError('Endpoint pairs must lie within one connected component '
                             'each and components must not be shared between pairs.')

        if skeleton is None:
            skeleton = by_level_sets(level_mesh, field, endpoint_pairs,
                                     components=components, n_samples=num_verts,
                                     progress=progress, cancel=cancel)

        self._reset()
        self.mesh = mesh
        self.skeleton = skeleton

        tree = scipy.spatial.cKDTree(mesh.vertices)
        vertex_tets = _vertex_to_tets(mesh)

        bone_idx, bone_pair, bone_s, bone_end = [], [], [], []
        tet_idx, tet_pair, tet_s = [], [], []
        origins, dirs = [], []
        seen = set()
        for p in range(len(endpoint_pairs)):
            pts = skeleton.polyline(p)
            origin = pts[0]
            d = pts[-1] - pts[0]
            norm = np.linalg.norm(d)
            if norm > 0:
                d = d / norm
            else:
                logger.warning(f'Endpoints of pair {p} coincide - using x-axis '
                               'as straight direction.')
                d = np.array([1.0, 0, 0])
            origins.append(origin)
            dirs.append(d)

            s = arc_length(pts)
            _, nearest = tree.query(pts)
            ends = {int(nearest[0]), int(nearest[-1])}

            last_tet = None
            for j, (v, pt) in enumerate(zip(nearest, pts)):
                v = int(v)
                is_end = j == 0 or j == len(pts) - 1
                if v in seen or (not is_end and v in ends):
                    logger.debug(f'Skeleton sample {j} of pair {p} maps to already '
                                 f'constrained vertex {v} - skipping.')
                else:
                    seen.add(v)
                    bone_idx.append(v)
                    bone_pair.append(p)
                    bone_s.append(s[j])
                    bone_end.append(is_end)

                t = containing_tet(mesh.vertices, mesh.tets, pt)
                if t < 0:
                    t = _closest_incident_tet(mesh, vertex_tets[v], pt)
                if t >= 0 and t != last_tet:
                    tet_idx.append(t)
                    tet_pair.append(p)
                    tet_s.append(s[j])
                    last_tet = t

        self.bone_constraints_idx = np.array(bone_idx, dtype=int)
        self._bone_pair = np.array(bone_pair, dtype=int)
        self._bone_arclength = np.array(bone_s, dtype=float)
        self._bone_is_end = np.array(bone_end, dtype=bool)

        self.constrainable_tets_idx = np.array(tet_idx, dtype=int)
        self._tet_pair = np.array(tet_pair, dtype=int)
        self._tet_arclength = np.array(tet_s, dtype=float)
        self._orientation = [None] * len(tet_idx)

        self.straight_origin = np.array(origins, dtype=float).reshape(-1, 3)
        self.straight_dir = np.array(dirs, dtype=float).reshape(-1, 3)

        return self.straight_length()

    def straight_length(self):
        """Sum of distances between consecutive bone targets of each pair."""
        if self.num_bone_constraints < 2:
            return 0.0
        pos = self.bone_constraints_pos
        same = self._bone_pair[1:] == self._bone_pair[:-1]
        return float(np.linalg.norm(np.diff(pos, axis=0), axis=1)[same].sum())

    def scale_bone_constraints(self, scale):
        """Set ``scale`` without recomputing nearest vertices.

        Returns
        -------
        (K, 3) array
                    Rescaled bone constraint targets.

        """
        self.scale = scale
        return self.bone_constraints_pos

    def _check_tet_idx(self, idx):
        if not isinstance(idx, (int, np.integer)) or idx < 0 or idx >= self.num_constrainable_tets:
            raise IndexError(f'Constrainable tet {idx} out of range '
                             f'[0, {self.num_constrainable_tets})')
        return int(idx)

    def update_orientation_constraint(self, idx, angle, flipped_x):
        """Commit (or overwrite) the orientation of constrainable tet ``idx``."""
        idx = self._check_tet_idx(idx)
        self._orientation[idx] = OrientationConstraint(float(angle), bool(flipped_x))

    def remove_orientation_constraint(self, idx):
        """Revert constrainable tet ``idx`` to unconstrained."""
        idx = self._check_tet_idx(idx)
        self._orientation[idx] = None

    def clear_orientation_constraints(self):
        self._orientation = [None] * self.num_constrainable_tets

    def orientation_constraint(self, idx):
        """Committed ``OrientationConstraint`` of tet ``idx`` or None."""
        return self._orientation[self._check_tet_idx(idx)]

    def constraint_records(self):
        """List of ``ConstraintRecord``, one per constrainable tet."""
        records = []
        for tet, c in zip(self.constrainable_tets_idx, self._orientation):
            if c is None:
                records.append(ConstraintRecord(int(tet), 0.0, False, False))
            else:
                records.append(ConstraintRecord(int(tet), c.angle, c.flipped, True))
        return records

    def _tet_centroid(self, vertices, i):
        return vertices[self.mesh.tets[self.constrainable_tets_idx[i]]].mean(axis=0)

    def frame_for_tet(self, idx, angle, flip_x=False, n_lookahead=4, vertices=None):
        """Local frame of a constrainable tet.

        The tangent points from the tet's centroid to the centroid of the
        constrainable tet ``n_lookahead`` steps further along the skeleton
        (or from ``n_lookahead`` steps back if there are not enough tets
        ahead). Tets of other endpoint pairs are never used.

        Parameters
        ----------
        idx :           int
                        Index into the constrainable tets.
        angle :         float
                        Rotation (radians) about the tangent.
        flip_x :        bool
                        If True, negate the right axis.
        n_lookahead :   int
        vertices :      (N, 3) array, optional
                        Vertex positions to use instead of the mesh's, e.g.
                        deformed positions from the solver.

        Returns
        -------
        frame :         (3, 3) array
                        Rows right, up and normal.
        center :        (3, ) array
                        Centroid of the tet.

        """
        idx = self._check_tet_idx(idx)
        vertices = self.mesh.vertices if vertices is None else np.asarray(vertices)

        same = np.where(self._tet_pair == self._tet_pair[idx])[0]
        start, end = same[0], same[-1]
        n_lookahead = max(int(n_lookahead), 1)

        center = self._tet_centroid(vertices, idx)
        ahead = min(idx + n_lookahead, end)
        if ahead > idx:
            tangent = self._tet_centroid(vertices, ahead) - center
        else:
            behind = max(idx - n_lookahead, start)
            tangent = center - self._tet_centroid(vertices, behind)

        if np.linalg.norm(tangent) == 0:
            tangent = self.straight_dir[self._tet_pair[idx]]

        return tangent_frame(tangent, angle, flip_x), center

    def orientation_constraint_targets(self):
        """Corner vertices and targets for all committed orientation constraints.

        Returns
        -------
        idx :       (K, ) int array
        pos :       (K, 3) array

        """
        idx, pos = [], []
        for i, c in enumerate(self._orientation):
            if c is None:
                continue
            rest, center = self.frame_for_tet(i, c.angle, c.flipped)
            p = self._tet_pair[i]
            target_center = self._straight_position(np.array([p]),
                                                    self._tet_arclength[[i]])[0]
            straight = tangent_frame(self.straight_dir[p])

            corners = self.mesh.tets[self.constrainable_tets_idx[i]]
            local = (self.mesh.vertices[corners] - center) @ rest.T
            idx.extend(corners.tolist())
            pos.append(target_center + local @ straight)

        if not idx:
            return np.zeros(0, dtype=int), np.zeros((0, 3))
        return np.array(idx, dtype=int), np.vstack(pos)

    def slim_constraints(self, only_ends_and_tets=False):
        """Assemble the boundary conditions for the solver.

        Parameters
        ----------
        only_ends_and_tets : bool
                        If True, only the two endpoint bone constraints of
                        each pair are used. Orientation constraints are
                        always included.

        Returns
        -------
        b :             (K, ) int array
                        Constrained vertex indices (unique).
        bc :            (K, 3) array
                        Target positions.

        """
        keep = self._bone_is_end if only_ends_and_tets else np.ones_like(self._bone_is_end)
        b = [self.bone_constraints_idx[keep]]
        bc = [self.bone_constraints_pos[keep]]

        o_idx, o_pos = self.orientation_constraint_targets()
        b.append(o_idx)
        bc.append(o_pos)

        b = np.concatenate(b).astype(int)
        bc = np.vstack(bc).reshape(-1, 3)

        # First constraint on a vertex wins
        _, first = np.unique(b, return_index=True)
        first = np.sort(first)
        if len(first) < len(b):
            logger.debug(f'Dropped {len(b) - len(first)} duplicate constraint(s).')

        return b[first], bc[first]


def _vertex_to_tets(mesh):
    """List of incident tets per vertex."""
    order = np.argsort(mesh.tets.ravel(), kind='stable')
    verts = mesh.tets.ravel()[order]
    tets = order // 4
    splits = np.searchsorted(verts, np.arange(mesh.n_vertices + 1))
    return [tets[splits[i]:splits[i + 1]] for i in range(mesh.n_vertices)]


def _closest_incident_tet(mesh, incident, p):
    if not len(incident):
        return -1
    d = np.linalg.norm(mesh.tet_centroids[incident] - p, axis=1)
    return int(incident[np.argmin(d)])
