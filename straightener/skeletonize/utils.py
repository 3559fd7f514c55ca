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

import networkx as nx
import numpy as np
import pandas as pd


def chain_edges(pair_ids):
    """Generate child -> parent edges for concatenated polylines.

    Parameters
    ----------
    pair_ids :  (N, ) int array
                For each skeleton vertex the endpoint pair it belongs to.
                Vertices of one pair must be contiguous.

    Returns
    -------
    edges :     (M, 2) int array
                ``[i + 1, i]`` for consecutive vertices of the same pair.

    """
    pair_ids = np.asarray(pair_ids)
    if pair_ids.shape[0] < 2:
        return np.zeros((0, 2), dtype=int)

    same = pair_ids[1:] == pair_ids[:-1]
    child = np.arange(1, pair_ids.shape[0])[same]
    return np.vstack((child, child - 1)).T.astype(int)


def make_swc(edges, coords, n_nodes=None):
    """Generate SWC table.

    Parameters
    ----------
    edges :     (M, 2) array
                child -> parent edges.
    coords :    (N, 3) array
                Coordinates of nodes.
    n_nodes :   int, optional
                Total number of nodes. Nodes without a parent become roots.
                Defaults to ``len(coords)``.

    Returns
    -------
    swc :       pandas.DataFrame

    """
    coords = np.asarray(coords)
    if isinstance(n_nodes, type(None)):
        n_nodes = coords.shape[0]

    parents = np.full(n_nodes, -1, dtype=int)
    edges = np.asarray(edges, dtype=int).reshape(-1, 2)
    parents[edges[:, 0]] = edges[:, 1]

    # Generate node table (do NOT remove the explicit dtype)
    swc = pd.DataFrame({'node_id': np.arange(n_nodes, dtype=int),
                        'parent_id': parents})

    if n_nodes:
        swc['x'] = coords[:, 0]
        swc['y'] = coords[:, 1]
        swc['z'] = coords[:, 2]
    else:
        swc['x'] = swc['y'] = swc['z'] = None

    # Placeholder radius
    swc['radius'] = None

    return swc


def edges_to_graph(edges, vertices=None, n_nodes=None):
    """Create directed networkx graph (child -> parent) from edge list.

    Parameters
    ----------
    edges :     (M, 2) array
    vertices :  (N, 3) array, optional
                If provided, Euclidean distances are added as ``weight``.
    n_nodes :   int, optional
                Number of nodes. Makes sure isolated nodes are part of the
                graph.

    Returns
    -------
    networkx.DiGraph

    """
    G = nx.DiGraph()
    if not isinstance(n_nodes, type(None)):
        G.add_nodes_from(range(n_nodes))

    edges = np.asarray(edges, dtype=int).reshape(-1, 2)
    if isinstance(vertices, type(None)):
        G.add_edges_from(edges.tolist())
    else:
        vertices = np.asarray(vertices)
        w = np.linalg.norm(vertices[edges[:, 0]] - vertices[edges[:, 1]], axis=1)
        G.add_weighted_edges_from(zip(edges[:, 0].tolist(),
                                      edges[:, 1].tolist(),
                                      w.tolist()))
    return G
