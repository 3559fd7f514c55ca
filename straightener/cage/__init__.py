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
The `straightener.cage` module contains the bounding cage: an editable
sequence of oriented cross-sections ("keyframes") along a skeleton.

Keyframes are indexed by arc length along the smoothed skeleton. Two boundary
keyframes sit at the start and end; everything in between is interpolated
until you insert an explicit keyframe:

>>> kf = cage.keyframe_for_index(12.5)      # virtual
>>> handle = cage.insert_keyframe(kf)       # now explicit
>>> cage.select_keyframe(handle)
>>> cage.set_keyframe_orientation(angle=0.3)

Edits via `BoundingCage.set_keyframe_bounding_box()`,
`BoundingCage.move_centroid_2d()` and
`BoundingCage.set_keyframe_orientation()` apply to the selected keyframe.
`BoundingCage.cage_mesh()` wraps all cross-sections in a tube mesh.

"""

from .cage import BoundingCage
from .keyframe import KeyFrame, KeyFrameHandle, KeyFrameGeometry, StaleHandleError

__docformat__ = "numpy"
__all__ = ['BoundingCage', 'KeyFrame', 'KeyFrameHandle', 'KeyFrameGeometry',
           'StaleHandleError']
