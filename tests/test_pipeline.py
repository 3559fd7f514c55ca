import queue

import straightener as sk
import numpy as np
import pytest

from straightener.pipeline import CancelToken, PipelineResult


PARAMS = {'num_subdivisions': 20, 'num_smoothing_iters': 5, 'cage_bbox_radius': 2}


def drain(q):
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


@pytest.fixture
def pipeline():
    mesh = sk.example_mesh(n_components=2)
    p = sk.StraighteningPipeline(mesh, parameters=PARAMS)
    yield p
    p.shutdown(timeout=10)


class TestRequests:
    def test_initial(self, pipeline):
        snap = pipeline.snapshot
        assert isinstance(snap, sk.PipelineSnapshot)
        assert snap.version == 0
        assert not snap.has_skeleton

    def test_rejected(self, pipeline):
        pairs = sk.data.example_endpoints(n_components=2)
        res = pipeline.request_skeleton([pairs[0], pairs[0]])
        assert not res
        assert 'one endpoint pair per connected component' in res.reason
        assert not pipeline.busy
        assert pipeline.snapshot.version == 0
        assert pipeline.results.empty()

    def test_request(self, pipeline):
        pairs = sk.data.example_endpoints(n_components=2)
        assert pipeline.request_skeleton(pairs)
        assert pipeline.wait(timeout=60)

        result = pipeline.results.get(timeout=1)
        assert isinstance(result, PipelineResult)
        assert result.ok
        assert result.request_id == pipeline.last_request_id

        snap = pipeline.snapshot
        assert snap is result.snapshot
        assert snap.endpoint_pairs == tuple(pairs)
        assert len(snap.skeleton_vertices) <= 40
        assert not np.any(snap.field == sk.skeletonize.NO_DATA)
        assert len(snap.keyframes) == 2
        assert all(g.bbox == (-2, 2, -2, 2) for g in snap.keyframes)
        assert snap.cage_vertices.shape[1] == 3
        assert len(snap.constraint_indices) == len(snap.constraint_positions)
        assert snap.straight_length > 0

        with pytest.raises(ValueError):
            snap.skeleton_vertices[0, 0] = 0

    def test_supersede(self, pipeline):
        pairs = sk.data.example_endpoints(n_components=2)
        assert pipeline.request_skeleton(pairs[:1])
        assert pipeline.request_skeleton(pairs[1:])
        assert pipeline.wait(timeout=60)

        assert pipeline.snapshot.endpoint_pairs == tuple(pairs[1:])
        assert pipeline.snapshot.request_id == pipeline.last_request_id

        results = drain(pipeline.results)
        assert 1 <= len(results) <= 2
        assert results[-1].ok
        assert results[-1].request_id == pipeline.last_request_id

    def test_failure_reported(self):
        # Endpoints at the same position produce no field and no skeleton
        mesh = sk.TetMesh([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1], [0, 0, 0]],
                          [[0, 1, 2, 3], [4, 1, 2, 3]])
        with sk.StraighteningPipeline(mesh, parameters=PARAMS) as p:
            assert p.request_skeleton([(0, 4)])
            assert p.wait(timeout=60)
            result = p.results.get(timeout=1)
            assert not result.ok
            assert result.error is not None
            assert p.snapshot.version == 0

    def test_shutdown(self):
        p = sk.StraighteningPipeline(sk.example_mesh(), parameters=PARAMS)
        p.shutdown(timeout=10)
        with pytest.raises(RuntimeError):
            p.request_skeleton(sk.data.example_endpoints())


class TestEditing:
    @pytest.fixture
    def ready(self, pipeline):
        pipeline.request_skeleton(sk.data.example_endpoints(n_components=2))
        assert pipeline.wait(timeout=60)
        return pipeline

    def test_edit_cage(self, ready):
        before = ready.snapshot
        with ready.edit_cage() as cage:
            cage.select_keyframe(cage.max_index / 2)
            cage.set_keyframe_orientation(angle=0.2)

        after = ready.snapshot
        assert after.version == before.version + 1
        assert len(after.keyframes) == 3
        assert len(before.keyframes) == 2

    def test_edit_constraints(self, ready):
        with ready.edit_constraints() as dc:
            dc.update_orientation_constraint(1, 0.3, False)

        records = ready.snapshot.constraint_records
        assert sum(r.committed for r in records) == 1

    def test_edit_error(self, ready):
        version = ready.snapshot.version
        with pytest.raises(IndexError):
            with ready.edit_constraints() as dc:
                dc.update_orientation_constraint(10 ** 6, 0.3, False)
        assert ready.snapshot.version == version

    def test_apply_deformation(self, ready):
        V = ready.mesh.vertices
        assert not ready.apply_deformation(None)
        assert not ready.apply_deformation(V[:-1])
        bad = np.array(V)
        bad[0, 0] = np.nan
        assert not ready.apply_deformation(bad)
        assert ready.snapshot.deformed_vertices is None

        assert ready.apply_deformation(V + 1)
        assert np.allclose(ready.snapshot.deformed_vertices, V + 1)

        snap = ready.snapshot
        origins = np.array([g.origin for g in snap.keyframes])
        assert np.allclose(snap.deformed_keyframe_origins, origins + 1)

        with ready.edit_cage() as cage:
            cage.insert_keyframe(cage.max_index / 2)
        assert len(ready.snapshot.deformed_keyframe_origins) == 3

    def test_update_scale(self, ready):
        length = ready.snapshot.straight_length
        assert not ready.update_parameters(scale=2)
        assert ready.snapshot.straight_length == pytest.approx(2 * length)

    def test_update_recompute(self, ready):
        assert ready.update_parameters(num_subdivisions=10)
        assert ready.wait(timeout=60)
        assert len(ready.snapshot.skeleton_vertices) <= 20


class TestParameters:
    def test_recompute_latest_pairs(self, pipeline):
        pairs = sk.data.example_endpoints(n_components=2)
        assert pipeline.request_skeleton(pairs[:1])
        assert pipeline.wait(timeout=60)

        assert pipeline.request_skeleton(pairs[1:])
        assert pipeline.update_parameters(num_subdivisions=10)
        assert pipeline.wait(timeout=60)

        snap = pipeline.snapshot
        assert snap.endpoint_pairs == tuple(pairs[1:])
        assert snap.request_id == pipeline.last_request_id
        assert len(snap.skeleton_vertices) <= 10
        assert pipeline.parameters.num_subdivisions == 10

    def test_recompute_before_first_result(self, pipeline):
        pairs = sk.data.example_endpoints(n_components=2)
        assert pipeline.request_skeleton(pairs)
        assert pipeline.update_parameters(num_subdivisions=10)
        assert pipeline.wait(timeout=60)

        snap = pipeline.snapshot
        assert snap.endpoint_pairs == tuple(pairs)
        assert len(snap.skeleton_vertices) <= 20
        assert pipeline.parameters.num_subdivisions == 10

    def test_scale_while_running(self, pipeline):
        pairs = sk.data.example_endpoints(n_components=2)
        assert pipeline.request_skeleton(pairs)
        assert not pipeline.update_parameters(scale=3.0,
                                              only_ends_and_tets=True)
        assert pipeline.wait(timeout=60)

        assert pipeline.parameters.scale == 3.0
        assert pipeline.parameters.only_ends_and_tets
        assert pipeline.constraints.scale == 3.0

        # Endpoint constraints only
        assert len(pipeline.snapshot.constraint_indices) == 2 * len(pairs)


class TestCancelToken:
    def test_token(self):
        t = CancelToken()
        assert not t.is_set()
        t.cancel()
        assert t.is_set() and t.cancelled
        with pytest.raises(sk.Cancelled):
            sk.utilities.check_cancelled(t)
