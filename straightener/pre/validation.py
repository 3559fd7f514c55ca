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

from typing import NamedTuple

import numpy as np

__all__ = ['validate_endpoint_pairs', 'check_endpoint_pairs', 'SelectionResult']


class SelectionResult(NamedTuple):
    """Outcome of an endpoint selection. Truthy iff the selection is valid."""

    ok: bool
    reason: str = ''

    def __bool__(self):
        return bool(self.ok)


def _component(components, v):
    if v < 0 or v >= components.shape[0]:
        raise IndexError(f'Vertex {v} out of range for {components.shape[0]} '
                         'component labels')
    return int(components[v])


def validate_endpoint_pairs(endpoint_pairs, components):
    """Check that endpoint pairs are compatible with the mesh components.

    Valid means that both endpoints of every pair lie in the same connected
    component and that no two pairs share a component.

    Parameters
    ----------
    endpoint_pairs :    iterable of (int, int)
                        Vertex indices.
    components :        (N, ) int array
                        Connected component label per vertex.

    Returns
    -------
    bool

    """
    components = np.asarray(components)
    seen = set()
    for a, b in endpoint_pairs:
        c1 = _component(components, a)
        c2 = _component(components, b)
        if c1 != c2 or c1 in seen:
            return False
        seen.add(c1)
    return True


def check_endpoint_pairs(endpoint_pairs, components):
    """Same as ``validate_endpoint_pairs`` but explains rejections.

    Also rejects pairs whose two endpoints are the same vertex.

    Returns
    -------
    SelectionResult
                ``(ok, reason)`` where ``reason`` is a human-readable
                message if ``ok`` is False.

    """
    components = np.asarray(components)
    seen = set()
    for i, (a, b) in enumerate(endpoint_pairs):
        if a == b:
            return SelectionResult(False, f'Invalid Endpoints: endpoints of pair {i} '
                                          'are the same vertex.')
        c1 = _component(components, a)
        c2 = _component(components, b)
        if c1 != c2:
            return SelectionResult(False, f'Invalid Endpoints: endpoints of pair {i} '
                                          'lie in different connected components.')
        if c1 in seen:
            return SelectionResult(False, 'Invalid Endpoints: you can only have one '
                                          'endpoint pair per connected component.')
        seen.add(c1)
    return SelectionResult(True)
