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
The `straightener.skeletonize` module contains functions to extract an
ordered skeleton from a tet mesh.

Skeleton extraction happens in two steps:

1. `straightener.skeletonize.geodesic_distances()` computes a scalar field
   that runs from 0 at the first endpoint of a pair to 1 at the second. The
   field approximates geodesic distance through the volume using shortest
   paths over the tet edges.
2. `straightener.skeletonize.by_level_sets()` steps through the field in
   equal increments, cuts the mesh at each value using marching tetrahedra
   (`marching_tets()`) and keeps the centroid of each cut.

| function                                    | description                                        |
| ------------------------------------------- | ---------------------------------------------------|
| `straightener.skeletonize.geodesic_distances()` | field from endpoint to endpoint                |
| `straightener.skeletonize.marching_tets()`  | level set of a scalar field on a tet mesh          |
| `straightener.skeletonize.by_level_sets()`  | ordered skeleton from the level sets of a field    |

"""

from .base import Skeleton
from .geodesic import geodesic_distances, NO_DATA
from .levelset import by_level_sets, skeleton_for_pair
from .marching import marching_tets

__docformat__ = "numpy"
__all__ = ['geodesic_distances', 'marching_tets', 'by_level_sets',
           'skeleton_for_pair', 'Skeleton', 'NO_DATA']
