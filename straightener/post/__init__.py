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
The `straightener.post` module contains functions to post-process skeleton
polylines before they are used to frame the bounding cage.

`straightener.post.smooth` removes the jitter that level-set centroids pick
up from the tet discretization. Endpoints never move, so the smoothed
polyline still starts and ends at the selected endpoints.

`straightener.post.arc_length` and `straightener.post.point_at_arc_length`
parameterize a polyline by distance travelled along it. The cage uses this
parameterization for its keyframe indices.

"""

from .smoothing import smooth, arc_length, point_at_arc_length, tangents

__docformat__ = "numpy"
__all__ = ["smooth", "arc_length", "point_at_arc_length", "tangents"]
