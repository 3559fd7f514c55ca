import straightener as sk
import trimesh as tm
import numpy as np
import pytest

from straightener.cage import BoundingCage, KeyFrame, StaleHandleError


def arc(n=50, radius=10):
    t = np.linspace(0, np.pi / 2, n)
    return np.c_[radius * np.cos(t), radius * np.sin(t), np.zeros(n)]


def line(n=50, length=10):
    return np.c_[np.linspace(0, length, n), np.zeros(n), np.zeros(n)]


def make_cage(points=None, iters=10, radius=5):
    cage = BoundingCage()
    cage.set_skeleton_vertices(arc() if points is None else points, iters,
                               (-radius, radius, -radius, radius))
    return cage


class TestSetSkeleton:
    def test_boundary_keyframes(self):
        cage = make_cage()
        assert cage.num_keyframes == 2
        for kf in cage.keyframes:
            assert kf.bbox == (-5, 5, -5, 5)
            assert kf.in_bounding_cage

        assert cage.min_index == 0
        assert cage.max_index > 0
        assert cage.keyframe_for_index(cage.min_index) is cage.keyframes[0]
        assert cage.keyframe_for_index(cage.max_index) is cage.keyframes[-1]

    def test_smoothing(self):
        cage = make_cage()
        assert cage.skeleton_vertices.shape == (50, 3)
        assert cage.smooth_skeleton_vertices.shape == (50, 3)
        assert np.all(cage.smooth_skeleton_vertices[0] == arc()[0])
        assert np.all(cage.smooth_skeleton_vertices[-1] == arc()[-1])

    def test_frames(self):
        cage = make_cage()
        for i in np.linspace(cage.min_index, cage.max_index, 7):
            kf = cage.keyframe_for_index(i)
            F = kf.orientation_not_rotated
            assert np.allclose(F @ F.T, np.eye(3))
            assert np.allclose(np.cross(kf.right, kf.up), kf.normal)

    def test_reset(self):
        cage = make_cage()
        h = cage.insert_keyframe(cage.max_index / 2)
        old = cage.handles

        cage.set_skeleton_vertices(line(), 0, (-1, 1, -1, 1))
        assert cage.num_keyframes == 2
        for handle in old + [h]:
            with pytest.raises(StaleHandleError):
                cage.keyframe(handle)

    def test_degenerate(self):
        cage = BoundingCage()
        with pytest.raises(ValueError):
            cage.set_skeleton_vertices(np.zeros((1, 3)), 0, (-1, 1, -1, 1))
        with pytest.raises(ValueError):
            cage.set_skeleton_vertices(np.ones((5, 3)), 0, (-1, 1, -1, 1))
        with pytest.raises(ValueError):
            cage.set_skeleton_vertices(line(), 0, (1, 2, -1, 1))

    def test_zero_length_segment(self):
        pts = np.vstack([line(5)[:3], line(5)[2:]])
        cage = make_cage(pts, iters=0)
        assert cage.max_index == pytest.approx(10)
        kf = cage.keyframe_for_index(5)
        assert np.allclose(kf.normal, [1, 0, 0])


class TestKeyFrames:
    def test_virtual(self):
        cage = make_cage()
        kf = cage.keyframe_for_index(cage.max_index / 2)
        assert isinstance(kf, KeyFrame)
        assert not kf.in_bounding_cage
        assert kf.handle is None
        assert cage.num_keyframes == 2

    def test_out_of_range(self):
        cage = make_cage()
        with pytest.raises(ValueError):
            cage.keyframe_for_index(-1)
        with pytest.raises(ValueError):
            cage.keyframe_for_index(cage.max_index + 1)
        with pytest.raises(ValueError):
            BoundingCage().keyframe_for_index(0)

    def test_interpolation(self):
        cage = make_cage()
        cage.select_keyframe(cage.handles[-1])
        cage.set_keyframe_orientation(angle=1.0)
        assert cage.set_keyframe_bounding_box((-1, 9, -5, 5))

        kf = cage.keyframe_for_index(cage.max_index / 2)
        assert kf.angle == pytest.approx(0.5)
        assert np.allclose(kf.bbox, (-3, 7, -5, 5))

    def test_insert_idempotent(self):
        cage = make_cage()
        cage.select_keyframe(cage.handles[0])
        cage.set_keyframe_orientation(angle=0.4)
        cage.set_keyframe_bounding_box((-3, 6, -2, 2))

        i = cage.max_index * 0.3
        before = cage.keyframe_for_index(i).geometry()
        h = cage.insert_keyframe(i)
        kf = cage.keyframe_for_index(i)

        assert kf.in_bounding_cage
        assert kf is cage.keyframe(h)
        assert cage.num_keyframes == 3
        assert kf.index == pytest.approx(before.index)
        assert kf.angle == pytest.approx(before.angle)
        assert np.allclose(kf.bbox, before.bbox)
        assert np.allclose(kf.origin, before.origin)
        assert np.allclose(kf.centroid_2d, before.centroid_2d)
        assert np.allclose(kf.bounding_box_vertices_3d, before.bounding_box_vertices_3d)

        assert cage.insert_keyframe(i) == h
        assert cage.insert_keyframe(kf) == h
        assert cage.num_keyframes == 3

    def test_insert_order(self):
        cage = make_cage()
        cage.insert_keyframe(cage.max_index * 0.7)
        cage.insert_keyframe(cage.max_index * 0.3)
        cage.insert_keyframe(cage.max_index * 0.5)
        idx = [kf.index for kf in cage.keyframes]
        assert len(idx) == 5
        assert np.all(np.diff(idx) > 0)

    def test_rotation(self):
        cage = make_cage()
        kf = cage.keyframes[0]
        kf.set_orientation(angle=np.pi / 2)
        assert np.allclose(kf.right_rotated_3d, kf.up)
        assert np.allclose(kf.up_rotated_3d, -kf.right)

        kf.set_orientation(flipped=True)
        assert np.allclose(kf.right_rotated_3d, -kf.up)
        assert np.allclose(kf.up_rotated_3d, -kf.right)


class TestEditing:
    def test_move_centroid(self):
        cage = make_cage()
        cage.select_keyframe(cage.insert_keyframe(cage.max_index / 2))
        kf = cage.selected_keyframe

        assert cage.move_centroid_2d((2, 1))
        assert np.allclose(kf.centroid_2d, (2, 1))
        assert np.allclose(kf.bbox, (-7, 3, -6, 4))
        assert np.allclose(kf.absolute_bbox, (-5, 5, -5, 5))

        assert not cage.move_centroid_2d((6, 0))
        assert np.allclose(kf.centroid_2d, (2, 1))
        assert np.allclose(kf.bbox, (-7, 3, -6, 4))

        assert np.allclose(kf.centroid_3d, kf.to_3d([(2, 1)])[0])

    def test_move_centroid_virtual(self):
        cage = make_cage()
        cage.select_keyframe(cage.max_index / 2)

        assert not cage.move_centroid_2d((10, 10))
        assert cage.num_keyframes == 2

        assert cage.move_centroid_2d((1, 1))
        assert cage.num_keyframes == 3
        assert cage.selected_keyframe.in_bounding_cage

    def test_bounding_box(self):
        cage = make_cage()
        cage.select_keyframe(cage.handles[0])
        kf = cage.selected_keyframe

        with pytest.raises(ValueError):
            cage.set_keyframe_bounding_box((1, -1, -1, 1))

        assert not cage.set_keyframe_bounding_box((1, 2, -1, 1))
        assert kf.bbox == (-5, 5, -5, 5)

        assert cage.set_keyframe_bounding_box((-1, 2, -3, 1))
        assert kf.bbox == (-1, 2, -3, 1)
        assert cage.keyframe_bounding_box() == (-5, 5, -5, 5)

        cage.select_keyframe(cage.handles[-1])
        cage.set_keyframe_bounding_box((-2, 6, -1, 1))
        assert cage.keyframe_bounding_box() == (-2, 6, -3, 1)

    def test_insert_outdated_virtual(self):
        cage = make_cage()
        v = cage.keyframe_for_index(cage.max_index / 2)
        assert v.angle == 0

        cage.select_keyframe(cage.handles[-1])
        cage.set_keyframe_orientation(angle=1.0)

        h = cage.insert_keyframe(v)
        kf = cage.keyframe(h)
        assert kf is not v
        assert not v.in_bounding_cage
        assert kf.angle == pytest.approx(0.5)

    def test_insert_virtual_from_old_skeleton(self):
        cage = make_cage(line(), iters=0)
        v = cage.keyframe_for_index(5)
        assert np.allclose(v.origin, (5, 0, 0))

        cage.set_skeleton_vertices(line()[:, [1, 0, 2]], 0, (-5, 5, -5, 5))
        h = cage.insert_keyframe(v)
        assert np.allclose(cage.keyframe(h).origin, (0, 5, 0))

    def test_selection_follows_edits(self):
        cage = make_cage()
        cage.select_keyframe(cage.max_index / 2)

        h = cage.insert_keyframe(cage.max_index * 0.75)
        assert cage.keyframe(h).set_bounding_box((-1, 1, -1, 1))

        # Re-interpolated between the boxes at 0 and 0.75
        r = 5 - 4 * 2 / 3
        assert np.allclose(cage.selected_keyframe.bbox, (-r, r, -r, r))

        cage.set_keyframe_orientation(angle=0.2)
        kf = cage.selected_keyframe
        assert kf.in_bounding_cage
        assert kf.angle == pytest.approx(0.2)
        assert np.allclose(kf.bbox, (-r, r, -r, r))
        assert cage.num_keyframes == 4

    def test_selection_reset(self):
        cage = make_cage()
        cage.select_keyframe(cage.max_index / 2)
        cage.set_skeleton_vertices(line(), 0, (-5, 5, -5, 5))
        assert cage.selected_keyframe is None

    def test_no_selection(self):
        cage = make_cage()
        with pytest.raises(ValueError):
            cage.set_keyframe_orientation(angle=1)


class TestHandles:
    def test_delete(self):
        cage = make_cage()
        h = cage.insert_keyframe(cage.max_index / 2)
        assert cage.delete_keyframe(h)
        assert cage.num_keyframes == 2

        with pytest.raises(StaleHandleError):
            cage.keyframe(h)
        with pytest.raises(LookupError):
            cage.delete_keyframe(h)

    def test_slot_reuse(self):
        cage = make_cage()
        h1 = cage.insert_keyframe(cage.max_index / 2)
        cage.delete_keyframe(h1)
        h2 = cage.insert_keyframe(cage.max_index / 3)

        assert h2 != h1
        assert cage.keyframe(h2).index == pytest.approx(cage.max_index / 3)
        with pytest.raises(StaleHandleError):
            cage.keyframe(h1)

    def test_boundary(self):
        cage = make_cage()
        for h in cage.handles:
            assert not cage.delete_keyframe(h)
        assert cage.num_keyframes == 2

    def test_deleted_selection(self):
        cage = make_cage()
        h = cage.insert_keyframe(cage.max_index / 2)
        cage.select_keyframe(h)
        cage.delete_keyframe(h)
        assert cage.selected_keyframe is None


class TestCageMesh:
    def test_box(self):
        cage = make_cage(line(), iters=10)
        mesh = cage.cage_mesh()
        assert isinstance(mesh, tm.Trimesh)
        assert mesh.vertices.shape == (200, 3)
        assert mesh.faces.shape == (49 * 8 + 4, 3)
        assert mesh.is_watertight
        assert mesh.volume == pytest.approx(10 * 10 * 10)

    def test_keyframe_rings(self):
        cage = make_cage()
        cage.insert_keyframe(cage.max_index * 0.51)
        assert len(cage.mesh_vertices()) == 51 * 4
        assert cage.mesh_faces().max() < len(cage.mesh_vertices())

    def test_recomputed(self):
        cage = make_cage(line())
        before = cage.mesh_vertices()
        cage.select_keyframe(cage.handles[0])
        cage.set_keyframe_bounding_box((-1, 1, -1, 1))
        assert not np.allclose(before, cage.mesh_vertices())

    def test_slice_corners(self):
        cage = make_cage(line(), iters=0)
        corners = cage.slice_corners(5)
        assert corners.shape == (5, 4, 3)
        assert np.allclose(corners[0, :, 0], 0)
        assert np.allclose(corners[-1, :, 0], 10)
        assert np.allclose(np.abs(corners[..., 1:]), 5)

        with pytest.raises(ValueError):
            cage.slice_corners(1)

    def test_geometry(self):
        cage = make_cage()
        geom = cage.geometry()
        assert len(geom) == 2
        assert all(g.explicit for g in geom)
        with pytest.raises(ValueError):
            geom[0].origin[0] = 1
