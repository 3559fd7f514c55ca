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

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

__all__ = ['KeyFrame', 'KeyFrameHandle', 'KeyFrameGeometry', 'StaleHandleError']

logger = logging.getLogger('straightener')


class StaleHandleError(LookupError):
    """Raised when dereferencing a handle to a deleted keyframe."""


class KeyFrameHandle(NamedTuple):
    """Stable reference to an explicit keyframe of a ``BoundingCage``.

    A handle stays valid until its keyframe is deleted or the cage's
    skeleton is replaced. After that, dereferencing it raises
    ``StaleHandleError``.
    """

    slot: int
    generation: int


@dataclass(frozen=True, eq=False)
class KeyFrameGeometry:
    """Read-only copy of a keyframe's geometry."""

    index: float
    origin: np.ndarray
    right: np.ndarray
    up: np.ndarray
    normal: np.ndarray
    angle: float
    flipped: bool
    bbox: tuple
    centroid_2d: np.ndarray
    right_rotated_3d: np.ndarray
    up_rotated_3d: np.ndarray
    centroid_3d: np.ndarray
    bounding_box_vertices_3d: np.ndarray
    explicit: bool


def check_bbox(bbox):
    """Return ``bbox`` as (min_u, max_u, min_v, max_v) tuple of floats."""
    bbox = tuple(float(b) for b in bbox)
    if len(bbox) != 4:
        raise ValueError(f'Expected bounding box (min_u, max_u, min_v, max_v), got {bbox}')
    if bbox[0] > bbox[1] or bbox[2] > bbox[3]:
        raise ValueError(f'Bounding box has min > max: {bbox}')
    return bbox


def bbox_contains(bbox, p):
    """Check if 2d point ``p`` lies inside (or on) ``bbox``."""
    return bool(bbox[0] <= p[0] <= bbox[1] and bbox[2] <= p[1] <= bbox[3])


def _readonly(a):
    a = np.array(a, dtype=float)
    a.setflags(write=False)
    return a


class KeyFrame:
    """Oriented cross-section of a bounding cage.

    The keyframe's local 2d coordinate system is spanned by the rotated
    right and up axes, with the skeleton point ``origin`` at (0, 0). The
    bounding box ``bbox`` is stored relative to the centroid
    ``centroid_2d``, i.e. in keyframe coordinates the box spans
    ``centroid + (min_u, max_u, min_v, max_v)``.

    Keyframes returned by ``BoundingCage.keyframe_for_index`` for an index
    between two explicit keyframes are virtual: they are not part of the
    cage (``in_bounding_cage`` is False) and editing them has no effect on
    the cage until they are inserted.

    Parameters
    ----------
    index :         float
                    Arc length along the smoothed skeleton.
    origin :        (3, ) array
                    Point on the smoothed skeleton.
    right, up, normal : (3, ) arrays
                    Orthonormal base frame. ``normal`` is the skeleton
                    tangent.
    angle :         float
                    Rotation (radians) of the cross-section about the
                    normal.
    flipped :       bool
                    If True, the rotated right axis is negated.
    bbox :          (4, ) tuple
                    ``(min_u, max_u, min_v, max_v)`` relative to the
                    centroid.
    centroid_2d :   (2, ) array
                    Centroid in keyframe coordinates.

    """

    def __init__(self, index, origin, right, up, normal, angle=0.0,
                 flipped=False, bbox=(-1, 1, -1, 1), centroid_2d=(0, 0)):
        self._index = float(index)
        self._origin = _readonly(origin)
        self._right = _readonly(right)
        self._up = _readonly(up)
        self._normal = _readonly(normal)
        self._angle = float(angle)
        self._flipped = bool(flipped)
        self._bbox = check_bbox(bbox)
        self._centroid_2d = _readonly(centroid_2d)

        # Set by the owning cage on insertion
        self._cage = None
        self._handle = None

    def __repr__(self):
        state = 'explicit' if self.in_bounding_cage else 'virtual'
        return (f'<KeyFrame(index={self._index:.3f}, angle={self._angle:.3f}, '
                f'flipped={self._flipped}, bbox={self._bbox}, {state})>')

    @property
    def index(self):
        return self._index

    @property
    def origin(self):
        return self._origin

    @property
    def right(self):
        return self._right

    @property
    def up(self):
        return self._up

    @property
    def normal(self):
        return self._normal

    @property
    def angle(self):
        return self._angle

    @property
    def flipped(self):
        return self._flipped

    @property
    def bbox(self):
        """Bounding box ``(min_u, max_u, min_v, max_v)`` relative to the centroid."""
        return self._bbox

    @property
    def centroid_2d(self):
        return self._centroid_2d

    @property
    def handle(self):
        """``KeyFrameHandle`` if the keyframe is part of a cage, else None."""
        return self._handle

    @property
    def in_bounding_cage(self):
        """True if this is an explicit keyframe of a cage."""
        return self._cage is not None

    @property
    def right_rotated_3d(self):
        c, s = np.cos(self._angle), np.sin(self._angle)
        r = c * self._right + s * self._up
        return -r if self._flipped else r

    @property
    def up_rotated_3d(self):
        c, s = np.cos(self._angle), np.sin(self._angle)
        return -s * self._right + c * self._up

    @property
    def orientation(self):
        """Rotated frame as (3, 3) array with rows right, up and normal."""
        return np.vstack([self.right_rotated_3d, self.up_rotated_3d, self._normal])

    @property
    def orientation_not_rotated(self):
        """Base frame as (3, 3) array with rows right, up and normal."""
        return np.vstack([self._right, self._up, self._normal])

    def to_3d(self, points_2d):
        """Map (N, 2) keyframe coordinates to 3d."""
        p = np.asarray(points_2d, dtype=float).reshape(-1, 2)
        return (self._origin[None, :]
                + p[:, :1] * self.right_rotated_3d[None, :]
                + p[:, 1:] * self.up_rotated_3d[None, :])

    @property
    def centroid_3d(self):
        return self.to_3d(self._centroid_2d)[0]

    @property
    def bounding_box_vertices_2d(self):
        """Corners of the bounding box in keyframe coordinates.

        Counter-clockwise: lower left, lower right, upper right, upper left.
        """
        min_u, max_u, min_v, max_v = self._bbox
        box = np.array([[min_u, min_v], [max_u, min_v],
                        [max_u, max_v], [min_u, max_v]])
        return box + self._centroid_2d[None, :]

    @property
    def bounding_box_vertices_3d(self):
        return self.to_3d(self.bounding_box_vertices_2d)

    @property
    def absolute_bbox(self):
        """Bounding box in keyframe coordinates (i.e. offset by the centroid)."""
        cu, cv = self._centroid_2d
        min_u, max_u, min_v, max_v = self._bbox
        return (min_u + cu, max_u + cu, min_v + cv, max_v + cv)

    def move_centroid_2d(self, p):
        """Move the centroid to ``p`` while keeping the bounding box in place.

        Parameters
        ----------
        p :     (2, ) array
                New centroid in keyframe coordinates.

        Returns
        -------
        bool
                False (and nothing changes) if ``p`` is outside of the
                bounding box.

        """
        p = np.asarray(p, dtype=float).reshape(2)
        box = self.absolute_bbox
        if not bbox_contains(box, p):
            logger.debug(f'Rejected centroid move to {p}: outside of bounding box {box}')
            return False

        self._bbox = (box[0] - p[0], box[1] - p[0], box[2] - p[1], box[3] - p[1])
        self._centroid_2d = _readonly(p)
        return True

    def set_bounding_box(self, bbox):
        """Set the bounding box (relative to the centroid).

        Returns False (and nothing changes) if the new box would not
        contain the centroid. Raises ``ValueError`` if min > max.
        """
        bbox = check_bbox(bbox)
        if not bbox_contains(bbox, (0, 0)):
            logger.debug(f'Rejected bounding box {bbox}: does not contain the centroid')
            return False
        self._bbox = bbox
        return True

    def set_orientation(self, angle=None, flipped=None):
        """Set rotation angle and/or flip flag."""
        if angle is not None:
            self._angle = float(angle)
        if flipped is not None:
            self._flipped = bool(flipped)

    def geometry(self):
        """Return a frozen copy of this keyframe's geometry."""
        return KeyFrameGeometry(index=self._index,
                                origin=self._origin,
                                right=self._right,
                                up=self._up,
                                normal=self._normal,
                                angle=self._angle,
                                flipped=self._flipped,
                                bbox=self._bbox,
                                centroid_2d=self._centroid_2d,
                                right_rotated_3d=_readonly(self.right_rotated_3d),
                                up_rotated_3d=_readonly(self.up_rotated_3d),
                                centroid_3d=_readonly(self.centroid_3d),
                                bounding_box_vertices_3d=_readonly(self.bounding_box_vertices_3d),
                                explicit=self.in_bounding_cage)
