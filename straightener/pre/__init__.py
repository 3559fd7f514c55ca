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

"""
The `straightener.pre` module contains functions to prepare a tet mesh and the
user's endpoint selection before a skeleton is extracted.

#### Connected components

Each connected component of the mesh is treated independently: geodesic
fields, level sets and constraints of one component never touch the vertices
of another. `connected_components()` labels the vertices,
`split_mesh_components()` and `remesh_connected_component()` produce
per-component tets or compact sub-meshes.

#### Endpoint validation

At most one endpoint pair may be selected per connected component and both
endpoints of a pair must share a component. `validate_endpoint_pairs()`
answers yes/no, `check_endpoint_pairs()` also tells you why a selection was
rejected.

"""

from .components import (connected_components, split_mesh_components,
                         remesh_connected_component, tet_mesh_faces,
                         edge_endpoints, point_in_tet, containing_tet,
                         nearest_vertex, scale_zero_one, mesh_adjacency,
                         transfer_points)
from .validation import (validate_endpoint_pairs, check_endpoint_pairs,
                         SelectionResult)

__docformat__ = "numpy"
__all__ = ['connected_components', 'split_mesh_components',
           'remesh_connected_component', 'tet_mesh_faces', 'edge_endpoints',
           'point_in_tet', 'containing_tet', 'nearest_vertex', 'scale_zero_one',
           'mesh_adjacency', 'transfer_points', 'validate_endpoint_pairs',
           'check_endpoint_pairs', 'SelectionResult']
