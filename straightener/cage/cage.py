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

import bisect
import logging
import numbers

import numpy as np
import trimesh as tm

from ..post.smoothing import smooth, arc_length, point_at_arc_length, tangents
from .keyframe import (KeyFrame, KeyFrameHandle, StaleHandleError, check_bbox,
                       bbox_contains)

__all__ = ['BoundingCage']

logger = logging.getLogger('straightener')


class BoundingCage:
    """Sequence of editable cross-sections along a skeleton.

    The cage is parameterized by arc length along the smoothed skeleton:
    keyframe indices run from ``min_index`` (0, the first skeleton point)
    to ``max_index`` (the skeleton's length). Two boundary keyframes at
    either end always exist. Any index between two explicit keyframes
    resolves to a virtual keyframe that blends the two.

    Explicit keyframes are referenced via ``KeyFrameHandle``. Handles of
    deleted keyframes are detected on use and raise ``StaleHandleError``.

    Examples
    --------
    >>> import numpy as np
    >>> from straightener.cage import BoundingCage
    >>> points = np.c_[np.linspace(0, 10, 50), np.zeros(50), np.zeros(50)]
    >>> cage = BoundingCage()
    >>> cage.set_skeleton_vertices(points, 10, (-5, 5, -5, 5))
    >>> cage.num_keyframes
    2
    >>> h = cage.insert_keyframe(5.0)
    >>> cage.select_keyframe(h)
    >>> cage.move_centroid_2d((1, 1))
    True

    """

    def __init__(self):
        self._skeleton = np.zeros((0, 3))
        self._smooth = np.zeros((0, 3))
        self._lengths = np.zeros(0)
        self._frames = np.zeros((0, 3, 3))

        # Keyframe arena: slot -> keyframe, generation counter per slot
        self._slots = []
        self._generations = []
        self._free = []

        # Explicit keyframes ordered by index
        self._order = []
        self._indices = []

        # Handle of an explicit keyframe or the index of a virtual one
        self._selected = None

    def __repr__(self):
        return (f'<BoundingCage(skeleton={self._skeleton.shape[0]} vertices, '
                f'length={self.max_index:.3f}, keyframes={self.num_keyframes})>')

    def __len__(self):
        return self.num_keyframes

    def __iter__(self):
        return iter(self.keyframes)

    @property
    def skeleton_vertices(self):
        """Skeleton vertices as passed to ``set_skeleton_vertices``."""
        return self._skeleton

    @property
    def smooth_skeleton_vertices(self):
        """Smoothed skeleton vertices used to frame keyframes."""
        return self._smooth

    @property
    def has_skeleton(self):
        return self._smooth.shape[0] >= 2

    @property
    def min_index(self):
        return 0.0

    @property
    def max_index(self):
        return float(self._lengths[-1]) if len(self._lengths) else 0.0

    @property
    def skeleton_indices(self):
        """Arc length index of each smoothed skeleton vertex."""
        return self._lengths

    @property
    def num_keyframes(self):
        return len(self._order)

    @property
    def keyframes(self):
        """Explicit keyframes ordered by index."""
        return [self._slots[s] for s in self._order]

    @property
    def handles(self):
        """Handles of the explicit keyframes ordered by index."""
        return [self._slots[s].handle for s in self._order]

    @property
    def _tol(self):
        return 1e-9 * max(self.max_index, 1.0)

    def set_skeleton_vertices(self, points, smoothing_iterations, initial_bbox):
        """Replace the skeleton and reset the cage.

        All explicit keyframes are discarded (their handles go stale) and two
        new boundary keyframes are created at ``min_index`` and
        ``max_index``.

        Parameters
        ----------
        points :                (N, 3) array
                                Ordered skeleton polyline.
        smoothing_iterations :  int (>= 0)
                                Rounds of local averaging applied to the
                                polyline before framing.
        initial_bbox :          (min_u, max_u, min_v, max_v)
                                Bounding box of the two boundary keyframes.
                                Must contain (0, 0).

        """
        points = np.asarray(points, dtype=float)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f'Expected (N, 3) skeleton vertices, got {points.shape}')
        if points.shape[0] < 2:
            raise ValueError('Need at least two skeleton vertices.')

        initial_bbox = check_bbox(initial_bbox)
        if not bbox_contains(initial_bbox, (0, 0)):
            raise ValueError(f'Initial bounding box {initial_bbox} must contain (0, 0)')

        smoothed = smooth(points, smoothing_iterations)
        lengths = arc_length(smoothed)
        if lengths[-1] <= 0:
            raise ValueError('Skeleton has zero length.')

        frames = self._transport_frames(tangents(smoothed))

        skeleton = points.copy()
        for a in (skeleton, smoothed, lengths, frames):
            a.setflags(write=False)

        self._clear_keyframes()
        self._skeleton = skeleton
        self._smooth = smoothed
        self._lengths = lengths
        self._frames = frames

        for index in (self.min_index, self.max_index):
            kf = self._make_keyframe(index, 0.0, False, initial_bbox, (0, 0))
            self._insert(kf)

    @staticmethod
    def _transport_frames(tangents):
        """Parallel transport a right axis along the segment tangents.

        Returns
        -------
        (M, 3, 3) array
                Rows right, up, normal for each segment.

        """
        frames = np.zeros((tangents.shape[0], 3, 3))
        right = None
        for i, t in enumerate(tangents):
            candidates = [] if right is None else [right]
            candidates += [np.array([1.0, 0, 0]), np.array([0, 1.0, 0])]
            for r in candidates:
                r = r - r.dot(t) * t
                n = np.linalg.norm(r)
                if n > 1e-6:
                    right = r / n
                    break
            up = np.cross(t, right)
            frames[i] = [right, up, t]
        return frames

    def frame_for_index(self, index):
        """Origin and base frame (rows right, up, normal) at ``index``."""
        seg = int(np.searchsorted(self._lengths, index, side='right')) - 1
        seg = min(max(seg, 0), self._frames.shape[0] - 1)
        origin = point_at_arc_length(self._smooth, index, lengths=self._lengths)
        return origin, self._frames[seg]

    def _make_keyframe(self, index, angle, flipped, bbox, centroid_2d):
        origin, frame = self.frame_for_index(index)
        return KeyFrame(index, origin, frame[0], frame[1], frame[2],
                        angle=angle, flipped=flipped, bbox=bbox,
                        centroid_2d=centroid_2d)

    def _check_index(self, index):
        if not self.has_skeleton:
            raise ValueError('Bounding cage has no skeleton.')
        index = float(index)
        if index < self.min_index - self._tol or index > self.max_index + self._tol:
            raise ValueError(f'Index {index} outside of [{self.min_index}, '
                             f'{self.max_index}]')
        return min(max(index, self.min_index), self.max_index)

    def _find(self, index):
        """Position of ``index`` in the ordered keyframes and whether it hits one."""
        pos = bisect.bisect_left(self._indices, index - self._tol)
        hit = pos < len(self._indices) and abs(self._indices[pos] - index) <= self._tol
        return pos, hit

    def keyframe_for_index(self, index):
        """Return the keyframe at arc length ``index``.

        If ``index`` coincides with an explicit keyframe, that keyframe is
        returned. Otherwise a new virtual keyframe is returned: its origin
        and base frame come from the smoothed skeleton, while angle,
        bounding box and centroid are blended linearly between the two
        bracketing explicit keyframes.

        Parameters
        ----------
        index :     float
                    Must be within ``[min_index, max_index]``.

        Returns
        -------
        KeyFrame

        """
        index = self._check_index(index)
        pos, hit = self._find(index)
        if hit:
            return self._slots[self._order[pos]]

        lo = self._slots[self._order[pos - 1]]
        hi = self._slots[self._order[pos]]
        t = (index - lo.index) / (hi.index - lo.index)

        angle = (1 - t) * lo.angle + t * hi.angle
        bbox = tuple((1 - t) * np.array(lo.bbox) + t * np.array(hi.bbox))
        centroid = (1 - t) * lo.centroid_2d + t * hi.centroid_2d
        flipped = lo.flipped if t < 0.5 else hi.flipped

        return self._make_keyframe(index, angle, flipped, bbox, centroid)

    def keyframe(self, handle):
        """Dereference a ``KeyFrameHandle``."""
        slot, generation = handle
        if (slot < 0 or slot >= len(self._slots)
                or self._generations[slot] != generation
                or self._slots[slot] is None):
            raise StaleHandleError(f'{handle} does not refer to a keyframe of this cage')
        return self._slots[slot]

    def _insert(self, kf):
        pos, hit = self._find(kf.index)
        if hit:
            return self._slots[self._order[pos]].handle

        if self._free:
            slot = self._free.pop()
        else:
            slot = len(self._slots)
            self._slots.append(None)
            self._generations.append(0)

        handle = KeyFrameHandle(slot, self._generations[slot])
        self._slots[slot] = kf
        kf._cage = self
        kf._handle = handle

        self._order.insert(pos, slot)
        self._indices.insert(pos, kf.index)
        return handle

    def insert_keyframe(self, keyframe):
        """Turn a virtual keyframe into an explicit one.

        Parameters
        ----------
        keyframe :  KeyFrame | float
                    A virtual keyframe (e.g. from ``keyframe_for_index``) or
                    an index. Only the index of a virtual keyframe is used:
                    the stored keyframe gets the geometry interpolated at
                    the moment of insertion, so virtual keyframes created
                    before an edit or a new skeleton do not carry outdated
                    geometry into the cage. Use ``keyframe(handle)`` to get
                    the stored object.

        Returns
        -------
        KeyFrameHandle
                    If there already is an explicit keyframe at that index,
                    its handle is returned and nothing is inserted.

        """
        if isinstance(keyframe, KeyFrame):
            if keyframe._cage is self:
                return keyframe.handle
            if keyframe.in_bounding_cage:
                raise ValueError('Keyframe belongs to a different cage.')
            index = keyframe.index
        elif isinstance(keyframe, numbers.Number):
            index = keyframe
        else:
            raise TypeError(f'Expected KeyFrame or index, got "{type(keyframe)}"')

        return self._insert(self.keyframe_for_index(index))

    def delete_keyframe(self, handle):
        """Delete an explicit keyframe.

        Returns
        -------
        bool
                False if the keyframe is one of the two boundary keyframes,
                which cannot be deleted.

        """
        kf = self.keyframe(handle)
        pos = self._order.index(handle.slot)
        if pos == 0 or pos == len(self._order) - 1:
            logger.debug(f'Refusing to delete boundary keyframe at index {kf.index}')
            return False

        del self._order[pos]
        del self._indices[pos]
        self._release(handle.slot)

        if self._selected == handle:
            self._selected = None
        return True

    def _release(self, slot):
        kf = self._slots[slot]
        kf._cage = None
        kf._handle = None
        self._slots[slot] = None
        self._generations[slot] += 1
        self._free.append(slot)

    def _clear_keyframes(self):
        for slot in self._order:
            self._release(slot)
        self._order = []
        self._indices = []
        self._selected = None

    def select_keyframe(self, keyframe):
        """Select the keyframe that subsequent edits apply to.

        Parameters
        ----------
        keyframe :  KeyFrameHandle | KeyFrame | float | None
                    An index (or a virtual keyframe) selects the position
                    along the skeleton: ``selected_keyframe`` is
                    re-interpolated there until the selection is edited and
                    thereby inserted. None clears the selection.

        """
        if keyframe is None:
            self._selected = None
        elif isinstance(keyframe, KeyFrameHandle):
            self._selected = self.keyframe(keyframe).handle
        elif isinstance(keyframe, KeyFrame):
            if keyframe._cage is self:
                self._selected = keyframe.handle
            elif keyframe.in_bounding_cage:
                raise ValueError('Keyframe belongs to a different cage.')
            else:
                self._selected = self._check_index(keyframe.index)
        elif isinstance(keyframe, numbers.Number):
            self._selected = self._check_index(keyframe)
        else:
            raise TypeError(f'Unable to select keyframe from "{type(keyframe)}"')

    @property
    def selected_keyframe(self):
        """Currently selected keyframe (may be virtual) or None."""
        if self._selected is None:
            return None
        if isinstance(self._selected, KeyFrameHandle):
            return self.keyframe(self._selected)
        return self.keyframe_for_index(self._selected)

    def _materialize_selected(self):
        if self._selected is None:
            raise ValueError('No keyframe selected.')
        if not isinstance(self._selected, KeyFrameHandle):
            self._selected = self.insert_keyframe(self._selected)
        return self.keyframe(self._selected)

    def set_keyframe_bounding_box(self, bbox):
        """Set the bounding box of the selected keyframe.

        A virtual selection is inserted into the cage first.

        Returns
        -------
        bool
                False (and nothing changes) if the box does not contain the
                keyframe's centroid.

        """
        bbox = check_bbox(bbox)
        if not bbox_contains(bbox, (0, 0)):
            logger.debug(f'Rejected bounding box {bbox}: does not contain the centroid')
            return False
        return self._materialize_selected().set_bounding_box(bbox)

    def move_centroid_2d(self, p):
        """Move the centroid of the selected keyframe.

        A virtual selection is inserted into the cage first.

        Returns
        -------
        bool
                False (and nothing changes) if ``p`` lies outside of the
                keyframe's bounding box.

        """
        if self._selected is None:
            raise ValueError('No keyframe selected.')
        p = np.asarray(p, dtype=float).reshape(2)
        if not bbox_contains(self.selected_keyframe.absolute_bbox, p):
            logger.debug(f'Rejected centroid move to {p}: outside of bounding box')
            return False
        return self._materialize_selected().move_centroid_2d(p)

    def set_keyframe_orientation(self, angle=None, flipped=None):
        """Set rotation angle and/or flip flag of the selected keyframe."""
        self._materialize_selected().set_orientation(angle=angle, flipped=flipped)

    def centroid_3d(self, index):
        return self.keyframe_for_index(index).centroid_3d

    def bounding_box_vertices_3d(self, index):
        return self.keyframe_for_index(index).bounding_box_vertices_3d

    def keyframe_bounding_box(self):
        """Union of the explicit keyframes' bounding boxes.

        Returns
        -------
        tuple
                ``(min_u, max_u, min_v, max_v)`` relative to the centroids.

        """
        if not self._order:
            raise ValueError('Bounding cage has no keyframes.')
        boxes = np.array([kf.bbox for kf in self.keyframes])
        return (float(boxes[:, 0].min()), float(boxes[:, 1].max()),
                float(boxes[:, 2].min()), float(boxes[:, 3].max()))

    def geometry(self):
        """Frozen geometry of all explicit keyframes."""
        return tuple(kf.geometry() for kf in self.keyframes)

    def _ring_indices(self):
        idx = np.sort(np.concatenate([self._indices, self._lengths]))
        keep = np.r_[True, np.diff(idx) > self._tol]
        return idx[keep]

    def cage_mesh(self):
        """Generate the cage as a closed tube mesh.

        Rings of four vertices (the bounding box corners) are placed at every
        explicit keyframe and every smoothed skeleton vertex. Both ends are
        capped.

        Returns
        -------
        trimesh.Trimesh

        """
        if not self.has_skeleton:
            raise ValueError('Bounding cage has no skeleton.')

        rings = [self.keyframe_for_index(i).bounding_box_vertices_3d
                 for i in self._ring_indices()]
        vertices = np.vstack(rings)
        n = len(rings)

        # Quads between consecutive rings
        r = np.arange(n - 1)[:, None]
        j = np.arange(4)[None, :]
        a = (4 * r + j).ravel()
        b = (4 * r + (j + 1) % 4).ravel()
        c = (4 * (r + 1) + (j + 1) % 4).ravel()
        d = (4 * (r + 1) + j).ravel()
        sides = np.vstack([np.c_[a, b, c], np.c_[a, c, d]])

        last = 4 * (n - 1)
        caps = np.array([[0, 2, 1], [0, 3, 2],
                         [last, last + 1, last + 2], [last, last + 2, last + 3]])

        faces = np.vstack([sides, caps])
        return tm.Trimesh(vertices=vertices, faces=faces, process=False)

    def mesh_vertices(self):
        return np.asarray(self.cage_mesh().vertices)

    def mesh_faces(self):
        return np.asarray(self.cage_mesh().faces)

    def slice_corners(self, depth):
        """Corners of ``depth`` evenly spaced cross-sections along the cage.

        All cross-sections use the union of the keyframe bounding boxes
        (see ``keyframe_bounding_box``) around their centroid, which is what
        you need to resample a straightened volume.

        Parameters
        ----------
        depth :     int (>= 2)
                    Number of slices.

        Returns
        -------
        (depth, 4, 3) array
                    Per slice the lower left, lower right, upper left and
                    upper right corner.

        """
        depth = int(depth)
        if depth < 2:
            raise ValueError('`depth` must be >= 2')

        min_u, max_u, min_v, max_v = self.keyframe_bounding_box()
        corners = np.zeros((depth, 4, 3))
        for i in range(depth):
            index = i / (depth - 1) * (self.max_index - self.min_index)
            kf = self.keyframe_for_index(index)
            cu, cv = kf.centroid_2d
            corners[i] = kf.to_3d([[min_u + cu, min_v + cv],
                                   [max_u + cu, min_v + cv],
                                   [min_u + cu, max_v + cv],
                                   [max_u + cu, max_v + cv]])
        return corners
