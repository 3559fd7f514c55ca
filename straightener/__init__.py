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
# What is straightener?

`straightener` takes a tetrahedral mesh of an elongated, bent specimen (think
a fish scanned lying on its side) and computes everything a mesh deformation
solver needs to un-bend it along its medial axis.

Some terminology first:

- a *tet mesh* consists of *vertices* and *tets* (tetrahedra, 4 vertex
  indices each)
- an *endpoint pair* is two vertices (head and tail) of one connected
  component of the mesh
- a *skeleton* is an ordered polyline from the first to the second endpoint
  that runs through the middle of the specimen
- a *keyframe* is an oriented cross-section along the skeleton; all
  keyframes together form the *bounding cage*
- *constraints* are (vertex, target position) pairs that pull the mesh onto
  a straight line

# Installation

```bash
pip3 install git+https://github.com/straightener/straightener@master
```

# Getting started

A straightening pipeline consists of:

1. Picking an endpoint pair per connected component
2. Computing a scalar field that runs from 0 at the first to 1 at the second
   endpoint
3. Slicing the mesh at evenly spaced values of that field and collapsing each
   slice into its centroid
4. Framing the resulting skeleton with a bounding cage
5. Generating constraints for the deformation solver

------

| function                                        | description                                       |
| ----------------------------------------------- | ------------------------------------------------- |
| **example data**                                |                                                   |
| `straightener.example_mesh()`                   | generate a bent example bar                       |
| **pre-processing**                              |                                                   |
| `straightener.pre.connected_components()`       | label connected components                        |
| `straightener.pre.check_endpoint_pairs()`       | validate an endpoint selection                    |
| **skeletonization**                             |                                                   |
| `straightener.skeletonize.geodesic_distances()` | scalar field between endpoints                    |
| `straightener.skeletonize.by_level_sets()`      | skeleton from level sets of the field             |
| **postprocessing**                              |                                                   |
| `straightener.post.smooth()`                    | smooth the skeleton                               |
| **cage & constraints**                          |                                                   |
| `straightener.cage.BoundingCage`                | editable cross-sections along the skeleton        |
| `straightener.constraints.DeformationConstraints` | boundary conditions for the solver              |
| `straightener.StraighteningPipeline`            | all of the above in a background thread           |

------

# Examples

```Python
>>> import straightener as sk
>>> mesh = sk.example_mesh()
>>> mesh
<TetMesh(vertices=(225, 3), tets=(576, 4))>
>>> pairs = sk.data.example_endpoints()
>>> field = sk.skeletonize.geodesic_distances(mesh, pairs)
>>> skel = sk.skeletonize.by_level_sets(mesh, field, pairs, n_samples=20)
>>> skel
<Skeleton(vertices=(20, 3), edges=(19, 2), method=level_sets)>
```

Frame the skeleton with a cage and edit a cross-section half way along:

```Python
>>> cage = sk.cage.BoundingCage()
>>> cage.set_skeleton_vertices(skel.vertices, 10, (-2, 2, -2, 2))
>>> cage.select_keyframe(cage.max_index / 2)
>>> cage.set_keyframe_orientation(angle=0.2)
>>> cage.num_keyframes
3
```

Generate constraints for the solver:

```Python
>>> dc = sk.constraints.DeformationConstraints()
>>> dc.update_bone_constraints(mesh, field, mesh.components, pairs, 20,
...                            skeleton=skel)
>>> b, bc = dc.slim_constraints(only_ends_and_tets=False)
```

In an interactive application you will want to use
`straightener.StraighteningPipeline` instead: it runs the above in a
background thread, drops outdated requests and hands out immutable
snapshots of the results.

# Gotchas

- the skeleton can be at most as good as the scalar field: endpoints should
  sit at the extreme ends of the specimen
- thin cross-sections can produce empty level sets; these samples are
  skipped, so skeletons may have fewer vertices than requested
- only one endpoint pair per connected component is allowed

# Top-level functions and classes
At top-level we expose `example_mesh()`, `TetMesh`, `Skeleton`,
`SkeletonParameters` and `StraighteningPipeline`. Everything else lives in
the submodules.

"""

__version__ = "0.1.0"
__version_vector__ = (0, 1, 0)

from . import pre
from . import skeletonize
from . import post
from . import cage
from . import constraints
from . import data

from .tetmesh import TetMesh
from .utilities import make_tetmesh, Cancelled
from .skeletonize.base import Skeleton
from .config import SkeletonParameters
from .pipeline import StraighteningPipeline, PipelineSnapshot
from .data import example_mesh

__docformat__ = "numpy"

__all__ = ['TetMesh', 'Skeleton', 'SkeletonParameters', 'StraighteningPipeline',
           'PipelineSnapshot', 'Cancelled', 'example_mesh', 'make_tetmesh',
           'pre', 'post', 'skeletonize', 'cage', 'constraints', 'data']
