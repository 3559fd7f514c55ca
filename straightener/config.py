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

from dataclasses import dataclass, fields, asdict

from .skeletonize.geodesic import METHODS

__all__ = ['SkeletonParameters']

logger = logging.getLogger('straightener')


@dataclass
class SkeletonParameters:
    """Parameters for skeleton extraction, cage and constraints.

    Attributes
    ----------
    num_subdivisions :      int (>= 2)
                            Number of skeleton samples per endpoint pair.
    num_smoothing_iters :   int (>= 0)
                            Smoothing rounds applied to the skeleton before
                            the bounding cage is framed.
    cage_bbox_radius :      float (> 0)
                            Half width of the boundary keyframes' bounding
                            box.
    scale :                 float (> 0)
                            Length multiplier for the straightened skeleton.
    only_ends_and_tets :    bool
                            If True, the solver only receives the endpoint
                            bone constraints plus orientation constraints.
    field_method :          "dijkstra" | "two_sided" | "diffusion"
                            How the scalar field is computed.
    normalized :            bool
                            Rescale the field per component so that the
                            endpoints map to 0 and 1.

    """

    num_subdivisions: int = 100
    num_smoothing_iters: int = 10
    cage_bbox_radius: float = 40.0
    scale: float = 1.0
    only_ends_and_tets: bool = False
    field_method: str = 'dijkstra'
    normalized: bool = True

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise ``ValueError`` if any parameter is out of range."""
        if int(self.num_subdivisions) != self.num_subdivisions or self.num_subdivisions < 2:
            raise ValueError('`num_subdivisions` must be integer >= 2')
        if int(self.num_smoothing_iters) != self.num_smoothing_iters or self.num_smoothing_iters < 0:
            raise ValueError('`num_smoothing_iters` must be integer >= 0')
        if not self.cage_bbox_radius > 0:
            raise ValueError('`cage_bbox_radius` must be > 0')
        if not self.scale > 0:
            raise ValueError('`scale` must be > 0')
        if self.field_method not in METHODS:
            raise ValueError(f'`field_method` must be one of {METHODS}, '
                             f'got "{self.field_method}"')
        return self

    @property
    def initial_bbox(self):
        """Bounding box of the boundary keyframes."""
        r = float(self.cage_bbox_radius)
        return (-r, r, -r, r)

    @classmethod
    def from_dict(cls, params):
        """Create from dictionary. Unknown keys are ignored with a warning."""
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            logger.warning(f'Ignoring unknown skeleton parameter(s): {sorted(unknown)}')
        return cls(**{k: v for k, v in params.items() if k in known})

    def to_dict(self):
        return asdict(self)

    def replace(self, **kwargs):
        """Return a copy with some parameters changed."""
        params = self.to_dict()
        params.update(kwargs)
        return SkeletonParameters(**params)
