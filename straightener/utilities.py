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

from .tetmesh import TetMesh

logger = logging.getLogger('straightener')

if not logger.handlers:
    logger.addHandler(logging.StreamHandler())


def make_tetmesh(mesh):
    """Construct ``straightener.TetMesh`` from input data.

    Parameters
    ----------
    mesh :      tuple | dict | mesh-like object
                Tuple: (vertices, tets)
                dict: {'vertices': [], 'tets': []}
                mesh-like object: mesh.vertices, mesh.tets

    Returns
    -------
    straightener.TetMesh

    """
    if isinstance(mesh, TetMesh):
        return mesh
    elif isinstance(mesh, (tuple, list)) and len(mesh) == 2:
        return TetMesh(vertices=mesh[0], tets=mesh[1])
    elif isinstance(mesh, dict):
        return TetMesh(vertices=mesh['vertices'], tets=mesh['tets'])
    elif hasattr(mesh, 'vertices') and hasattr(mesh, 'tets'):
        return TetMesh(vertices=mesh.vertices, tets=mesh.tets)

    raise TypeError('Unable to construct a straightener.TetMesh from object of '
                    f'type "{type(mesh)}"')


class Cancelled(Exception):
    """Raised when a computation is superseded by a newer request."""


def check_cancelled(cancel):
    """Raise ``Cancelled`` if ``cancel`` signals cancellation.

    ``cancel`` may be None, a callable returning bool or anything with an
    ``is_set()`` method (e.g. ``threading.Event``).
    """
    if cancel is None:
        return
    if hasattr(cancel, 'is_set'):
        flag = cancel.is_set()
    else:
        flag = cancel()
    if flag:
        raise Cancelled()
