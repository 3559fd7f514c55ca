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

import contextlib
import logging
import queue
import threading

from dataclasses import dataclass
from typing import NamedTuple, Optional

import numpy as np

from .cage import BoundingCage
from .config import SkeletonParameters
from .constraints import DeformationConstraints
from .pre.components import transfer_points
from .pre.validation import check_endpoint_pairs
from .skeletonize import geodesic_distances, by_level_sets
from .utilities import make_tetmesh, check_cancelled, Cancelled

__all__ = ['StraighteningPipeline', 'PipelineSnapshot', 'PipelineResult',
           'CancelToken']

logger = logging.getLogger('straightener')

# Parameters that require re-extracting the skeleton when changed
_RECOMPUTE = ('num_subdivisions', 'num_smoothing_iters', 'cage_bbox_radius',
              'field_method', 'normalized')

# Parameters applied to the current constraints without recomputation
_LIVE = ('scale', 'only_ends_and_tets')


class CancelToken:
    """Flag checked between pipeline stages."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def is_set(self):
        return self._event.is_set()

    @property
    def cancelled(self):
        return self._event.is_set()


def _frozen(a, dtype=float):
    if a is None:
        return None
    a = np.array(a, dtype=dtype)
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class PipelineSnapshot:
    """Consistent, read-only view of the pipeline's state.

    A new snapshot is published after every recomputation and every edit;
    existing snapshots never change.

    ``deformed_vertices`` holds the last accepted solver output and
    ``deformed_keyframe_origins`` the origins of the explicit keyframes
    carried into the deformed mesh, in keyframe order. Both are None until
    ``apply_deformation`` succeeds.
    """

    version: int = 0
    request_id: int = 0
    endpoint_pairs: tuple = ()
    field: Optional[np.ndarray] = None
    skeleton_vertices: Optional[np.ndarray] = None
    skeleton_pair_ids: Optional[np.ndarray] = None
    smooth_skeleton_vertices: Optional[np.ndarray] = None
    keyframes: tuple = ()
    cage_vertices: Optional[np.ndarray] = None
    cage_faces: Optional[np.ndarray] = None
    constraint_indices: Optional[np.ndarray] = None
    constraint_positions: Optional[np.ndarray] = None
    constraint_records: tuple = ()
    straight_length: float = 0.0
    deformed_vertices: Optional[np.ndarray] = None
    deformed_keyframe_origins: Optional[np.ndarray] = None

    @property
    def has_skeleton(self):
        return self.skeleton_vertices is not None


class PipelineResult(NamedTuple):
    """Outcome of a skeleton request, as put on ``StraighteningPipeline.results``."""

    request_id: int
    ok: bool
    snapshot: Optional[PipelineSnapshot] = None
    error: Optional[BaseException] = None


class _Job(NamedTuple):
    request_id: int
    endpoint_pairs: list
    parameters: SkeletonParameters
    token: CancelToken


class StraighteningPipeline:
    """Background recomputation of skeleton, cage and constraints.

    A single worker thread processes skeleton requests. There is at most one
    pending request: a new request replaces a pending one and cancels the
    one being computed, which aborts at the next stage boundary and
    publishes nothing.

    Readers use ``snapshot``, an immutable ``PipelineSnapshot`` that is
    swapped as a whole. Edits to the cage or the constraints go through
    ``edit_cage()`` and ``edit_constraints()``.

    Parameters
    ----------
    mesh :          mesh obj
                    The tet mesh to straighten.
    components :    (N, ) int array, optional
                    Component labels of the level set mesh (``thin_mesh`` if
                    given, else ``mesh``). Computed if not provided.
    parameters :    SkeletonParameters | dict, optional
    thin_mesh :     mesh obj, optional
                    Thinner version of ``mesh`` used for the scalar field
                    and level sets. Endpoint indices refer to this mesh.
    progress :      bool
                    Show progress bars in the worker.

    Examples
    --------
    >>> import straightener as sk
    >>> mesh = sk.example_mesh()
    >>> with sk.StraighteningPipeline(mesh, parameters={'num_subdivisions': 20}) as p:
    ...     p.request_skeleton(sk.data.example_endpoints())
    ...     p.wait()
    ...     snap = p.snapshot
    SelectionResult(ok=True, reason='')
    True

    """

    def __init__(self, mesh, components=None, parameters=None, thin_mesh=None,
                 progress=False):
        self.mesh = make_tetmesh(mesh)
        self.thin_mesh = None if thin_mesh is None else make_tetmesh(thin_mesh)
        level_mesh = self.level_mesh

        if components is None:
            components = level_mesh.components
        components = np.array(components)
        if components.shape[0] != level_mesh.n_vertices:
            raise ValueError(f'Got {components.shape[0]} component labels for '
                             f'{level_mesh.n_vertices} vertices')
        components.setflags(write=False)
        self.components = components

        if parameters is None:
            parameters = SkeletonParameters()
        elif isinstance(parameters, dict):
            parameters = SkeletonParameters.from_dict(parameters)
        self.parameters = parameters.validate()
        self.progress = progress

        self.results = queue.Queue()

        # Guards cage, constraints and the published snapshot
        self._lock = threading.RLock()
        self.cage = BoundingCage()
        self.constraints = DeformationConstraints(scale=self.parameters.scale)
        self.skeleton = None
        self.field = None
        self.endpoint_pairs = []
        self._deformed = None
        self._request_id = 0
        self._snapshot = PipelineSnapshot()

        # Guards the pending slot and the running job
        self._cond = threading.Condition()
        self._pending = None
        self._running = None
        self._last_request = 0
        self._latest_pairs = []
        self._closed = False

        self._worker = threading.Thread(target=self._run, daemon=True,
                                        name='straightener-pipeline')
        self._worker.start()

    def __repr__(self):
        return (f'<StraighteningPipeline(mesh={self.mesh}, '
                f'version={self._snapshot.version})>')

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()

    @property
    def level_mesh(self):
        """Mesh used for the scalar field and level sets."""
        return self.mesh if self.thin_mesh is None else self.thin_mesh

    @property
    def snapshot(self):
        """Latest published ``PipelineSnapshot``."""
        with self._lock:
            return self._snapshot

    @property
    def last_request_id(self):
        return self._last_request

    @property
    def busy(self):
        with self._cond:
            return self._pending is not None or self._running is not None

    def request_skeleton(self, endpoint_pairs, parameters=None):
        """Request (re-)computation for a new endpoint selection.

        The selection is validated right away. Invalid selections are
        rejected without touching any state.

        Parameters
        ----------
        endpoint_pairs :    list of (int, int)
        parameters :        SkeletonParameters, optional
                            Defaults to ``self.parameters``.

        Returns
        -------
        SelectionResult

        """
        pairs = [(int(a), int(b)) for a, b in endpoint_pairs]
        res = check_endpoint_pairs(pairs, self.components)
        if not res:
            logger.info(f'Rejected endpoint selection: {res.reason}')
            return res

        params = (self.parameters if parameters is None else parameters).validate()

        with self._cond:
            if self._closed:
                raise RuntimeError('Pipeline has been shut down.')
            self._last_request += 1
            self._latest_pairs = pairs
            if self._pending is not None:
                self._pending.token.cancel()
            if self._running is not None:
                self._running.token.cancel()
            self._pending = _Job(self._last_request, pairs, params, CancelToken())
            self._cond.notify_all()

        return res

    def _run(self):
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._pending is not None or self._closed)
                if self._closed:
                    return
                job, self._pending = self._pending, None
                self._running = job

            try:
                snapshot = self._compute(job)
            except Cancelled:
                logger.debug(f'Request {job.request_id} superseded.')
            except Exception as e:
                logger.error(f'Request {job.request_id} failed: {e}')
                self.results.put(PipelineResult(job.request_id, False, error=e))
            else:
                self.results.put(PipelineResult(job.request_id, True, snapshot))
            finally:
                with self._cond:
                    self._running = None
                    self._cond.notify_all()

    def _compute(self, job):
        params = job.parameters
        token = job.token
        level_mesh = self.level_mesh

        field = geodesic_distances(level_mesh, job.endpoint_pairs,
                                   components=self.components,
                                   normalized=params.normalized,
                                   method=params.field_method)
        check_cancelled(token)

        skeleton = by_level_sets(level_mesh, field, job.endpoint_pairs,
                                 components=self.components,
                                 n_samples=params.num_subdivisions,
                                 progress=self.progress, cancel=token)
        check_cancelled(token)

        cage = BoundingCage()
        cage.set_skeleton_vertices(skeleton.vertices, params.num_smoothing_iters,
                                   params.initial_bbox)
        check_cancelled(token)

        constraints = DeformationConstraints(scale=params.scale)
        constraints.update_bone_constraints(self.mesh, field, self.components,
                                            job.endpoint_pairs,
                                            params.num_subdivisions,
                                            thin_mesh=self.thin_mesh,
                                            skeleton=skeleton,
                                            progress=False, cancel=token)

        with self._lock:
            check_cancelled(token)
            # Keep live edits made while this job was running
            params = params.replace(**{k: getattr(self.parameters, k) for k in _LIVE})
            constraints.scale = params.scale
            self.field = field
            self.skeleton = skeleton
            self.cage = cage
            self.constraints = constraints
            self.endpoint_pairs = list(job.endpoint_pairs)
            self.parameters = params
            self._deformed = None
            self._request_id = job.request_id
            return self._publish()

    def _publish(self):
        """Build and swap in a new snapshot. Caller must hold ``_lock``."""
        kwargs = dict(version=self._snapshot.version + 1,
                      request_id=self._request_id,
                      endpoint_pairs=tuple(self.endpoint_pairs),
                      field=_frozen(self.field),
                      deformed_vertices=_frozen(self._deformed))

        if self.skeleton is not None:
            kwargs['skeleton_vertices'] = _frozen(self.skeleton.vertices)
            kwargs['skeleton_pair_ids'] = _frozen(self.skeleton.pair_ids, int)

        if self.cage.has_skeleton:
            cage_mesh = self.cage.cage_mesh()
            kwargs['smooth_skeleton_vertices'] = _frozen(self.cage.smooth_skeleton_vertices)
            kwargs['keyframes'] = self.cage.geometry()
            kwargs['cage_vertices'] = _frozen(cage_mesh.vertices)
            kwargs['cage_faces'] = _frozen(cage_mesh.faces, int)
            if self._deformed is not None:
                origins = [kf.origin for kf in self.cage.keyframes]
                kwargs['deformed_keyframe_origins'] = _frozen(
                    transfer_points(self.mesh.vertices, self.mesh.tets,
                                    self._deformed, origins))

        if self.constraints.mesh is not None:
            b, bc = self.constraints.slim_constraints(self.parameters.only_ends_and_tets)
            kwargs['constraint_indices'] = _frozen(b, int)
            kwargs['constraint_positions'] = _frozen(bc)
            kwargs['constraint_records'] = tuple(self.constraints.constraint_records())
            kwargs['straight_length'] = self.constraints.straight_length()

        self._snapshot = PipelineSnapshot(**kwargs)
        return self._snapshot

    @contextlib.contextmanager
    def edit_cage(self):
        """Edit the bounding cage. Publishes a new snapshot on exit.

        Examples
        --------
        >>> with pipeline.edit_cage() as cage:
        ...     cage.select_keyframe(cage.max_index / 2)
        ...     cage.set_keyframe_orientation(angle=0.3)

        """
        with self._lock:
            yield self.cage
            self._publish()

    @contextlib.contextmanager
    def edit_constraints(self):
        """Edit the deformation constraints. Publishes a new snapshot on exit."""
        with self._lock:
            yield self.constraints
            self._publish()

    def update_parameters(self, **kwargs):
        """Change parameters.

        ``scale`` and ``only_ends_and_tets`` are applied to the current
        constraints right away. Changing any other parameter re-requests the
        skeleton for the most recently requested endpoint pairs, which may
        still be pending or running.

        Returns
        -------
        bool
                    True if a recomputation was requested.

        """
        with self._lock:
            old = self.parameters
            new = self.parameters = old.replace(**kwargs)
            self.constraints.scale = new.scale
            self._publish()

        with self._cond:
            pairs = list(self._latest_pairs)

        recompute = any(getattr(old, k) != getattr(new, k) for k in _RECOMPUTE)
        if recompute and pairs:
            return bool(self.request_skeleton(pairs, parameters=new))
        return False

    def apply_deformation(self, vertices):
        """Feed back vertex positions computed by the solver.

        The next snapshots show the deformed mesh and the keyframe origins
        moved along with it. A newly computed skeleton discards
        the deformation.

        Returns
        -------
        bool
                    False (and the last good state is kept) if ``vertices``
                    is missing, has the wrong shape or contains non-finite
                    values.

        """
        if vertices is None:
            logger.warning('Solver returned no vertices - keeping last state.')
            return False

        vertices = np.asarray(vertices, dtype=float)
        if vertices.shape != self.mesh.vertices.shape:
            logger.warning(f'Solver returned vertices of shape {vertices.shape}, '
                           f'expected {self.mesh.vertices.shape} - keeping last state.')
            return False
        if not np.all(np.isfinite(vertices)):
            logger.warning('Solver returned non-finite vertices - keeping last state.')
            return False

        with self._lock:
            self._deformed = vertices
            self._publish()
        return True

    def wait(self, timeout=None):
        """Block until all requests are processed.

        Returns
        -------
        bool
                    False if ``timeout`` expired first.

        """
        with self._cond:
            return self._cond.wait_for(lambda: self._pending is None and self._running is None,
                                       timeout)

    def shutdown(self, timeout=None):
        """Cancel outstanding work and stop the worker thread."""
        with self._cond:
            self._closed = True
            if self._pending is not None:
                self._pending.token.cancel()
                self._pending = None
            if self._running is not None:
                self._running.token.cancel()
            self._cond.notify_all()
        self._worker.join(timeout)
