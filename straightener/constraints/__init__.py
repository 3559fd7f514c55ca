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
The `straightener.constraints` module turns a skeleton into boundary
conditions for a mesh deformation solver.

`DeformationConstraints.update_bone_constraints()` maps each skeleton sample
to its nearest mesh vertex and gives it a target on a straight line.
`DeformationConstraints.update_orientation_constraint()` additionally fixes
the twist of individual tets along the skeleton.
`DeformationConstraints.slim_constraints()` assembles the final
`(vertex index, target position)` lists that are handed to the solver.

"""

from .deformation import DeformationConstraints, OrientationConstraint, ConstraintRecord
from .frames import tangent_frame

__docformat__ = "numpy"
__all__ = ['DeformationConstraints', 'OrientationConstraint', 'ConstraintRecord',
           'tangent_frame']
