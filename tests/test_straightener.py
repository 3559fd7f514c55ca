import itertools
import threading

import straightener as sk
import trimesh as tm
import networkx as nx
import numpy as np
import pandas as pd
import pytest


def unit_tet():
    vertices = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1]], dtype=float)
    tets = np.array([[0, 1, 2, 3]])
    return vertices, tets


class TestExampleData:
    def test_example_mesh(self):
        mesh = sk.example_mesh()
        assert isinstance(mesh, sk.TetMesh)
        assert mesh.n_vertices == 225
        assert mesh.n_tets == 576
        assert mesh.n_components == 1

    def test_surface(self):
        mesh = sk.example_mesh(bend=0)
        assert len(mesh.faces) == 400
        assert isinstance(mesh.surface, tm.Trimesh)

    def test_two_components(self):
        mesh = sk.example_mesh(n_components=2)
        assert mesh.n_components == 2
        pairs = sk.data.example_endpoints(n_components=2)
        assert sk.pre.validate_endpoint_pairs(pairs, mesh.components)

    def test_make_tetmesh(self):
        mesh = sk.example_mesh()
        for m in [mesh, (mesh.vertices, mesh.tets),
                  {'vertices': mesh.vertices, 'tets': mesh.tets}]:
            assert isinstance(sk.make_tetmesh(m), sk.TetMesh)

        with pytest.raises(TypeError):
            sk.make_tetmesh('not a mesh')

    def test_readonly(self):
        mesh = sk.example_mesh()
        with pytest.raises(ValueError):
            mesh.vertices[0, 0] = 1


class TestPreprocessing:
    def test_split_components(self):
        mesh = sk.example_mesh(n_components=2)
        parts = sk.pre.split_mesh_components(mesh.tets, mesh.components)
        assert len(parts) == 2
        assert sum(len(p) for p in parts) == mesh.n_tets

    def test_remesh_component(self):
        mesh = sk.example_mesh(n_components=2)
        cmap, V, T = sk.pre.remesh_connected_component(1, mesh.components,
                                                       mesh.vertices, mesh.tets)
        assert V.shape == (225, 3)
        assert T.shape == (576, 4)
        assert T.min() == 0 and T.max() == 224
        assert (cmap == -1).sum() == 225

    def test_point_location(self):
        V, T = unit_tet()
        assert sk.pre.point_in_tet(V, T, [0.1, 0.1, 0.1], 0)
        assert not sk.pre.point_in_tet(V, T, [1, 1, 1], 0)
        assert sk.pre.containing_tet(V, T, [0.2, 0.2, 0.2]) == 0
        assert sk.pre.containing_tet(V, T, [2, 2, 2]) == -1
        assert sk.pre.nearest_vertex(V, [0.9, 0.1, 0]) == 1

        with pytest.raises(IndexError):
            sk.pre.point_in_tet(V, T, [0, 0, 0], 1)

    def test_transfer_points(self):
        V, T = unit_tet()
        pts = sk.pre.transfer_points(V, T, V * 2, [[0.25, 0.25, 0.25], [2, 0, 0]])
        assert np.allclose(pts[0], [0.5, 0.5, 0.5])
        # Outside of the mesh: moves with vertex 1
        assert np.allclose(pts[1], [3, 0, 0])

        with pytest.raises(ValueError):
            sk.pre.transfer_points(V, T, V[:-1], [[0, 0, 0]])

    def test_scale_zero_one(self):
        assert np.allclose(sk.pre.scale_zero_one([2, 4, 6]), [0, 0.5, 1])
        assert np.allclose(sk.pre.scale_zero_one([3, 3]), [0, 0])


class TestValidation:
    def test_valid(self):
        comps = np.array([0, 0, 1, 1])
        assert sk.pre.validate_endpoint_pairs([(0, 1), (2, 3)], comps)
        assert sk.pre.validate_endpoint_pairs([], comps)

    def test_same_pair_twice(self):
        comps = np.array([0, 0, 1, 1])
        assert not sk.pre.validate_endpoint_pairs([(0, 1), (0, 1)], comps)

    def test_spanning_components(self):
        comps = np.array([0, 0, 1, 1])
        assert not sk.pre.validate_endpoint_pairs([(0, 2)], comps)

    def test_out_of_range(self):
        with pytest.raises(IndexError):
            sk.pre.validate_endpoint_pairs([(0, 10)], np.array([0, 0]))

    def test_matches_definition(self):
        comps = np.array([0, 0, 1, 1, 2])
        all_pairs = list(itertools.combinations(range(5), 2))
        for n in range(3):
            for pairs in itertools.combinations(all_pairs, n):
                expected = (all(comps[a] == comps[b] for a, b in pairs)
                            and len({comps[a] for a, _ in pairs}) == len(pairs))
                assert sk.pre.validate_endpoint_pairs(pairs, comps) == expected

    def test_check_reasons(self):
        comps = np.array([0, 0, 1, 1])
        res = sk.pre.check_endpoint_pairs([(0, 1)], comps)
        assert res and res.ok and res.reason == ''

        res = sk.pre.check_endpoint_pairs([(0, 0)], comps)
        assert not res and 'same vertex' in res.reason

        res = sk.pre.check_endpoint_pairs([(0, 2)], comps)
        assert not res and 'different connected components' in res.reason

        res = sk.pre.check_endpoint_pairs([(0, 1), (1, 0)], comps)
        assert not res and 'one endpoint pair per connected component' in res.reason


class TestGeodesic:
    def test_normalized(self):
        mesh = sk.example_mesh()
        (a, b), = pairs = sk.data.example_endpoints()
        field = sk.skeletonize.geodesic_distances(mesh, pairs)
        assert field[a] == 0
        assert field[b] == 1
        assert field.min() >= 0

        # Same field as the raw distances, rescaled by the endpoint values
        raw = sk.skeletonize.geodesic_distances(mesh, pairs, normalized=False)
        assert np.allclose(field, raw / raw[b])

    def test_two_sided(self):
        mesh = sk.example_mesh()
        (a, b), = pairs = sk.data.example_endpoints()
        field = sk.skeletonize.geodesic_distances(mesh, pairs, method='two_sided')
        assert field[a] == 0
        assert field[b] == 1
        assert field.min() >= 0 and field.max() <= 1

        raw = sk.skeletonize.geodesic_distances(mesh, pairs, normalized=False,
                                                method='two_sided')
        assert np.allclose(raw, field * raw[b])

    def test_follows_bar(self):
        mesh = sk.example_mesh(bend=0)
        field = sk.skeletonize.geodesic_distances(mesh, sk.data.example_endpoints())
        assert np.corrcoef(field, mesh.vertices[:, 0])[0, 1] > 0.95

    def test_raw(self):
        mesh = sk.example_mesh()
        (a, b), = pairs = sk.data.example_endpoints()
        field = sk.skeletonize.geodesic_distances(mesh, pairs, normalized=False)
        assert field[a] == 0
        assert field[b] >= np.linalg.norm(mesh.vertices[a] - mesh.vertices[b])

    def test_no_data(self):
        mesh = sk.example_mesh(n_components=2)
        pairs = sk.data.example_endpoints(n_components=2)
        field = sk.skeletonize.geodesic_distances(mesh, pairs[:1])
        other = mesh.components == mesh.components[pairs[1][0]]
        assert np.all(field[other] == sk.skeletonize.NO_DATA)
        assert np.all(field[~other] >= 0)

        field = sk.skeletonize.geodesic_distances(mesh, pairs)
        assert not np.any(field == sk.skeletonize.NO_DATA)
        for a, b in pairs:
            assert field[a] == 0 and field[b] == 1

    def test_diffusion(self):
        mesh = sk.example_mesh()
        (a, b), = pairs = sk.data.example_endpoints()
        field = sk.skeletonize.geodesic_distances(mesh, pairs, method='diffusion')
        assert field[a] == 0
        assert field[b] == 1
        assert field.min() >= 0 and field.max() <= 1

    def test_invalid(self):
        mesh = sk.example_mesh()
        a, b = sk.data.example_endpoints()[0]
        with pytest.raises(ValueError):
            sk.skeletonize.geodesic_distances(mesh, [(a, b), (b, a)])
        with pytest.raises(ValueError):
            sk.skeletonize.geodesic_distances(mesh, [(a, b)], method='heat')


class TestMarchingTets:
    def test_triangle(self):
        V, T = unit_tet()
        LV, LF = sk.skeletonize.marching_tets(V, T, V[:, 0], 0.5)
        assert LV.shape == (3, 3)
        assert LF.shape == (1, 3)
        assert np.allclose(LV[:, 0], 0.5)

    def test_quad(self):
        V, T = unit_tet()
        LV, LF = sk.skeletonize.marching_tets(V, T, V[:, 0] + V[:, 1], 0.5)
        assert LV.shape == (4, 3)
        assert LF.shape == (2, 3)
        assert np.allclose(LV[:, 0] + LV[:, 1], 0.5)

    def test_empty(self):
        V, T = unit_tet()
        LV, LF = sk.skeletonize.marching_tets(V, T, V[:, 0], 2)
        assert LV.shape == (0, 3)
        assert LF.shape == (0, 3)

    def test_cross_section(self):
        # Slicing a straight bar perpendicular to its axis gives its cross-section
        mesh = sk.example_mesh(bend=0)
        LV, LF = sk.skeletonize.marching_tets(mesh.vertices, mesh.tets,
                                              mesh.vertices[:, 0], 10.2)
        assert np.allclose(LV[:, 0], 10.2)
        assert len(np.unique(LV.round(9), axis=0)) == len(LV)

        tri = LV[LF]
        area = np.linalg.norm(np.cross(tri[:, 1] - tri[:, 0],
                                       tri[:, 2] - tri[:, 0]), axis=1).sum() / 2
        assert area == pytest.approx(4)


class TestLevelSets:
    def test_skeleton(self):
        mesh = sk.example_mesh()
        (a, b), = pairs = sk.data.example_endpoints()
        field = sk.skeletonize.geodesic_distances(mesh, pairs)
        s = sk.skeletonize.by_level_sets(mesh, field, pairs, n_samples=20,
                                         progress=False)

        assert isinstance(s, sk.Skeleton)
        assert 2 < len(s) <= 20
        assert np.allclose(s.vertices[0], mesh.vertices[a])
        assert np.allclose(s.vertices[-1], mesh.vertices[b])
        assert s.edges.shape == (len(s) - 1, 2)
        assert s.method == 'level_sets'

    def test_centered(self):
        mesh = sk.example_mesh(bend=0)
        pairs = sk.data.example_endpoints()
        field = sk.skeletonize.geodesic_distances(mesh, pairs)
        s = sk.skeletonize.by_level_sets(mesh, field, pairs, n_samples=15,
                                         progress=False)
        assert np.all(np.abs(s.vertices[:, 1:]) < 0.5)
        assert np.all(np.diff(s.vertices[:, 0]) > 0)

    def test_two_components(self):
        mesh = sk.example_mesh(n_components=2)
        pairs = sk.data.example_endpoints(n_components=2)
        field = sk.skeletonize.geodesic_distances(mesh, pairs)
        s = sk.skeletonize.by_level_sets(mesh, field, pairs, n_samples=10,
                                         progress=False)

        assert not np.any(field == sk.skeletonize.NO_DATA)
        assert len(s) <= 20
        assert s.n_pairs == 2
        for i, (a, b) in enumerate(pairs):
            line = s.polyline(i)
            assert np.allclose(line[0], mesh.vertices[a])
            assert np.allclose(line[-1], mesh.vertices[b])

    def test_empty_level_set(self):
        # Two tets that do not share vertices: no tet crosses 0.5
        V = np.vstack((unit_tet()[0], unit_tet()[0] + [3, 0, 0]))
        T = np.array([[0, 1, 2, 3], [4, 5, 6, 7]])
        field = np.array([0, 0.1, 0.2, 0.3, 0.7, 0.8, 0.9, 1.0])

        LV, _ = sk.skeletonize.marching_tets(V, T, field, 0.5)
        assert not len(LV)

        pts = sk.skeletonize.skeleton_for_pair(V, T, field, (0, 7), 5)
        assert pts.shape == (4, 3)
        assert np.allclose(pts[0], V[0])
        assert np.allclose(pts[-1], V[7])
        assert pts[1, 0] < 1 and pts[2, 0] > 3

    def test_only_endpoints(self):
        mesh = sk.example_mesh()
        pairs = sk.data.example_endpoints()
        field = sk.skeletonize.geodesic_distances(mesh, pairs)
        s = sk.skeletonize.by_level_sets(mesh, field, pairs, n_samples=2,
                                         progress=False)
        assert len(s) == 2

        with pytest.raises(ValueError):
            sk.skeletonize.by_level_sets(mesh, field, pairs, n_samples=1)

    def test_cancel(self):
        mesh = sk.example_mesh()
        pairs = sk.data.example_endpoints()
        field = sk.skeletonize.geodesic_distances(mesh, pairs)
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(sk.Cancelled):
            sk.skeletonize.by_level_sets(mesh, field, pairs, n_samples=10,
                                         progress=False, cancel=cancel)

    def test_outputs(self, tmp_path):
        mesh = sk.example_mesh(n_components=2)
        pairs = sk.data.example_endpoints(n_components=2)
        field = sk.skeletonize.geodesic_distances(mesh, pairs)
        s = sk.skeletonize.by_level_sets(mesh, field, pairs, n_samples=10,
                                         progress=False)

        assert isinstance(s.swc, pd.DataFrame)
        assert len(s.swc) == len(s)
        assert (s.swc.parent_id == -1).sum() == 2

        G = s.get_graph()
        assert isinstance(G, nx.DiGraph)
        assert G.number_of_edges() == len(s) - 2

        assert s.length > 0
        assert isinstance(s.skeleton, tm.path.Path3D)

        fp = tmp_path / 'skeleton.swc'
        s.save_swc(fp)
        assert fp.exists()

        c = s.copy()
        assert c is not s
        assert np.all(c.vertices == s.vertices)


class TestPostprocessing:
    def test_smooth(self):
        pts = np.array([[0, 0, 0], [1, 3, 0], [2, 0, 0], [3, 3, 0]], dtype=float)
        sm = sk.post.smooth(pts, 5)
        assert np.all(sm[0] == pts[0])
        assert np.all(sm[-1] == pts[-1])
        assert np.abs(np.diff(sm[:, 1])).max() < 3

        same = sk.post.smooth(pts, 0)
        assert same is not pts
        assert np.all(same == pts)

        with pytest.raises(ValueError):
            sk.post.smooth(pts, -1)

    def test_smooth_line(self):
        pts = np.c_[np.linspace(0, 10, 11), np.zeros(11), np.zeros(11)]
        assert np.allclose(sk.post.smooth(pts, 10), pts)

    def test_arc_length(self):
        pts = np.array([[0, 0, 0], [1, 0, 0], [1, 0, 0], [1, 2, 0]], dtype=float)
        assert np.allclose(sk.post.arc_length(pts), [0, 1, 1, 3])
        assert np.allclose(sk.post.point_at_arc_length(pts, 2), [1, 1, 0])
        assert sk.post.point_at_arc_length(pts, [0.5, 3]).shape == (2, 3)

    def test_tangents(self):
        pts = np.array([[0, 0, 0], [1, 0, 0], [1, 0, 0], [1, 2, 0]], dtype=float)
        t = sk.post.tangents(pts)
        assert np.allclose(t, [[1, 0, 0], [1, 0, 0], [0, 1, 0]])

        with pytest.raises(ValueError):
            sk.post.tangents(np.zeros((3, 3)))


class TestConfig:
    def test_defaults(self):
        p = sk.SkeletonParameters()
        assert p.num_subdivisions == 100
        assert p.num_smoothing_iters == 10
        assert p.initial_bbox == (-40, 40, -40, 40)

    def test_invalid(self):
        for kwargs in [{'num_subdivisions': 1}, {'num_smoothing_iters': -1},
                       {'cage_bbox_radius': 0}, {'scale': 0},
                       {'field_method': 'heat'}]:
            with pytest.raises(ValueError):
                sk.SkeletonParameters(**kwargs)

    def test_from_dict(self):
        p = sk.SkeletonParameters.from_dict({'cage_bbox_radius': 5, 'foo': 1})
        assert p.initial_bbox == (-5, 5, -5, 5)
        assert p.replace(scale=2).scale == 2
        assert p.scale == 1
