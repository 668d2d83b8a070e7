"""
Mesh-to-Mesh Interpolation Operator for Axis-Aligned Box Meshes.

Reference implementation of the operator interface the harness drives:

    mapper = OverlapMeshMapper(source_mesh, target_mesh, n_threads,
                               force_recalc, write_addr)
    mapper.interpolate(target_field, source_field, source_gradient, method)

The constructor does the expensive work (intersection addressing, weights);
interpolate() is a handful of sparse matrix-vector products that overwrite the
target interior values in place.

Methods:
    CONSERVATIVE              φ_t = Σ_s V_ts [φ_s + ∇φ_s·(x_ts - x_s)] / V_t
    CONSERVATIVE_FIRST_ORDER  φ_t = Σ_s V_ts φ_s / V_t
    INVERSE_DISTANCE          φ_t = Σ_k w_k φ_k / Σ_k w_k,  w_k = 1/d_k

V_ts is the intersection volume of target cell t with source cell s and x_ts
its centroid. Because Σ_t V_ts (x_ts - x_s) = 0 for a fully covered source
cell, both conservative variants preserve Σ V φ exactly.

For box meshes the intersection factorises per axis, so the 3D weights are
Kronecker products of 1D overlap matrices.
"""

import hashlib
import numpy as np
from numba import njit
from enum import Enum
from pathlib import Path
from scipy import sparse
from scipy.spatial import cKDTree
from typing import Dict, Optional, Tuple, Union

from .mesh import Mesh
from .fields import ScalarField, VectorField


class UnknownMethodError(ValueError):
    """Raised when a value does not name an InterpolationMethod."""

    def __init__(self, value, context: str = "interpolation"):
        self.value = value
        self.context = context
        valid = ", ".join(m.name for m in InterpolationMethod)
        super().__init__(
            f"Unknown interpolation method {value!r} in {context} "
            f"(expected one of: {valid})"
        )


class InterpolationMethod(Enum):
    """Interpolation schemes understood by the operator."""

    CONSERVATIVE = 0
    INVERSE_DISTANCE = 1
    CONSERVATIVE_FIRST_ORDER = 2

    @property
    def is_conservative(self) -> bool:
        return self is not InterpolationMethod.INVERSE_DISTANCE


def parse_method(
    value: Union[InterpolationMethod, str, int],
    context: str = "method selection"
) -> InterpolationMethod:
    """
    Convert untrusted input into an InterpolationMethod.

    Raises:
        UnknownMethodError: if the value names no method
    """
    if isinstance(value, InterpolationMethod):
        return value

    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        try:
            return InterpolationMethod(int(value))
        except ValueError:
            raise UnknownMethodError(value, context) from None

    if isinstance(value, str):
        key = value.strip().upper().replace('-', '_').replace(' ', '_')
        if key in InterpolationMethod.__members__:
            return InterpolationMethod[key]

    raise UnknownMethodError(value, context)


@njit(cache=True)
def _overlap_1d(
    target_edges: np.ndarray,
    source_edges: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Sweep two sorted edge arrays and return every non-empty 1D intersection.

    Returns:
        Tuple (target index, source index, overlap length, overlap midpoint)
    """
    nt = target_edges.size - 1
    ns = source_edges.size - 1
    cap = nt + ns

    rows = np.empty(cap, dtype=np.int64)
    cols = np.empty(cap, dtype=np.int64)
    lengths = np.empty(cap, dtype=np.float64)
    mids = np.empty(cap, dtype=np.float64)

    i = 0
    j = 0
    count = 0
    while i < nt and j < ns:
        lo = max(target_edges[i], source_edges[j])
        hi = min(target_edges[i + 1], source_edges[j + 1])
        if hi > lo:
            rows[count] = i
            cols[count] = j
            lengths[count] = hi - lo
            mids[count] = 0.5 * (lo + hi)
            count += 1
        if target_edges[i + 1] < source_edges[j + 1]:
            i += 1
        else:
            j += 1

    return rows[:count], cols[:count], lengths[:count], mids[:count]


def addressing_key(source_mesh: Mesh, target_mesh: Mesh) -> str:
    """Hash identifying a (source, target) box-mesh pair."""
    h = hashlib.md5()
    for mesh in (source_mesh, target_mesh):
        for e in mesh.edges:
            h.update(np.ascontiguousarray(e, dtype=np.float64).tobytes())
            h.update(b'|')
    return h.hexdigest()[:12]


class OverlapMeshMapper:
    """
    Interpolation operator between two axis-aligned box meshes.

    Attributes:
        source_mesh: Mesh interpolated from
        target_mesh: Mesh interpolated to
        n_threads: Worker count for the KD-tree neighbour search
        addressing_loaded: True if intersection addressing came from cache

    Example:
        >>> mapper = OverlapMeshMapper(coarse, fine)
        >>> mapper.interpolate(fine_field, coarse_field, coarse_grad,
        ...                    InterpolationMethod.CONSERVATIVE)
    """

    def __init__(
        self,
        source_mesh: Mesh,
        target_mesh: Mesh,
        n_threads: int = 1,
        force_recalc: bool = False,
        write_addr: bool = False,
        cache_dir: str = "cache",
        n_neighbours: int = 8,
        verbose: bool = False
    ):
        """
        Build intersection weights and the neighbour search structure.

        Args:
            source_mesh: Box mesh to interpolate from
            target_mesh: Box mesh to interpolate to
            n_threads: Threads for the neighbour search (-1 = all cores)
            force_recalc: Ignore cached intersection addressing
            write_addr: Save intersection addressing to cache_dir
            cache_dir: Directory for cached addressing
            n_neighbours: Neighbours for inverse-distance weighting
            verbose: Print progress
        """
        for role, mesh in (("source", source_mesh), ("target", target_mesh)):
            if not mesh.is_box:
                raise ValueError(
                    f"OverlapMeshMapper needs box meshes; {role} mesh "
                    f"'{mesh.name}' has no cell edges"
                )

        self.source_mesh = source_mesh
        self.target_mesh = target_mesh
        self.n_threads = n_threads
        self.verbose = verbose
        self.cache_path = Path(cache_dir) / f"addr_{addressing_key(source_mesh, target_mesh)}.npz"
        self.addressing_loaded = False

        if not np.isclose(source_mesh.total_volume, target_mesh.total_volume, rtol=1e-12):
            if verbose:
                print(
                    f"    WARNING: mesh volumes differ "
                    f"({source_mesh.total_volume:.6e} vs {target_mesh.total_volume:.6e}); "
                    f"uncovered cells lose conservation"
                )

        addressing = None
        if not force_recalc and self.cache_path.exists():
            addressing = self._load_addressing()

        if addressing is None:
            addressing = self._compute_addressing()

        if write_addr:
            self._save_addressing(addressing)

        self._build_overlap_operators(addressing)
        self._build_inverse_distance(n_neighbours)

    # ------------------------------------------------------------------
    # Addressing
    # ------------------------------------------------------------------

    def _compute_addressing(self) -> Dict[str, np.ndarray]:
        addressing = {}
        for axis, te, se in zip("xyz", self.target_mesh.edges, self.source_mesh.edges):
            rows, cols, lengths, mids = _overlap_1d(te, se)
            addressing[f'{axis}_rows'] = rows
            addressing[f'{axis}_cols'] = cols
            addressing[f'{axis}_lengths'] = lengths
            addressing[f'{axis}_mids'] = mids
        return addressing

    def _load_addressing(self) -> Dict[str, np.ndarray]:
        if self.verbose:
            print(f"    Loading cached addressing from: {self.cache_path}")
        with np.load(self.cache_path) as data:
            addressing = {k: data[k] for k in data.files}
        self.addressing_loaded = True
        return addressing

    def _save_addressing(self, addressing: Dict[str, np.ndarray]) -> None:
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        np.savez_compressed(self.cache_path, **addressing)
        if self.verbose:
            print(f"    Saved addressing to: {self.cache_path}")

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def _build_overlap_operators(self, addressing: Dict[str, np.ndarray]) -> None:
        nt = self.target_mesh.shape
        ns = self.source_mesh.shape

        overlap = {}
        offset = {}
        for a, axis in enumerate("xyz"):
            rows = addressing[f'{axis}_rows']
            cols = addressing[f'{axis}_cols']
            lengths = addressing[f'{axis}_lengths']
            mids = addressing[f'{axis}_mids']
            src_centres = 0.5 * (self.source_mesh.edges[a][:-1] + self.source_mesh.edges[a][1:])

            shape = (nt[a], ns[a])
            overlap[axis] = sparse.csr_matrix((lengths, (rows, cols)), shape=shape)
            offset[axis] = sparse.csr_matrix(
                (lengths * (mids - src_centres[cols]), (rows, cols)), shape=shape
            )

        Ox, Oy, Oz = overlap['x'], overlap['y'], overlap['z']
        Dx, Dy, Dz = offset['x'], offset['y'], offset['z']

        # Row/column index k*(ny*nx) + j*nx + i
        self.weights = sparse.kron(Oz, sparse.kron(Oy, Ox), format='csr')
        self.gradient_weights = (
            sparse.kron(Oz, sparse.kron(Oy, Dx), format='csr'),
            sparse.kron(Oz, sparse.kron(Dy, Ox), format='csr'),
            sparse.kron(Dz, sparse.kron(Oy, Ox), format='csr'),
        )

    def _build_inverse_distance(self, n_neighbours: int) -> None:
        src = self.source_mesh.cell_centres
        tgt = self.target_mesh.cell_centres
        k = max(1, min(n_neighbours, src.shape[0]))

        self.tree = cKDTree(src)
        dist, idx = self.tree.query(tgt, k=k, workers=self.n_threads)
        dist = dist.reshape(tgt.shape[0], k)
        idx = idx.reshape(tgt.shape[0], k)

        exact = dist[:, 0] < 1e-14
        with np.errstate(divide='ignore'):
            w = np.where(dist > 0.0, 1.0 / dist, 0.0)
        w[exact, :] = 0.0
        w[exact, 0] = 1.0
        w /= w.sum(axis=1, keepdims=True)

        rows = np.repeat(np.arange(tgt.shape[0]), k)
        self.idw_weights = sparse.csr_matrix(
            (w.ravel(), (rows, idx.ravel())), shape=(tgt.shape[0], src.shape[0])
        )

    # ------------------------------------------------------------------
    # Interpolation
    # ------------------------------------------------------------------

    def interpolate(
        self,
        target_field: ScalarField,
        source_field: ScalarField,
        source_gradient: Optional[VectorField] = None,
        method: InterpolationMethod = InterpolationMethod.CONSERVATIVE
    ) -> None:
        """
        Overwrite the target interior values with values mapped from the source.

        Boundary values of the target are left untouched.

        Args:
            target_field: Field on the target mesh (mutated in place)
            source_field: Field on the source mesh
            source_gradient: Interior gradient of a scalar source field; used
                by CONSERVATIVE only
            method: Interpolation scheme
        """
        method = parse_method(method, "OverlapMeshMapper.interpolate")

        if source_field.mesh is not self.source_mesh:
            raise ValueError(
                f"Source field '{source_field.name}' is not on mesh '{self.source_mesh.name}'"
            )
        if target_field.mesh is not self.target_mesh:
            raise ValueError(
                f"Target field '{target_field.name}' is not on mesh '{self.target_mesh.name}'"
            )
        if target_field is source_field:
            raise ValueError("Source and target must be distinct field objects")
        if target_field.internal.shape[1:] != source_field.internal.shape[1:]:
            raise ValueError(
                f"Cannot map {source_field.field_class} '{source_field.name}' "
                f"into {target_field.field_class} '{target_field.name}'"
            )

        phi = source_field.internal

        if method is InterpolationMethod.INVERSE_DISTANCE:
            target_field.internal[...] = self.idw_weights @ phi
            return

        mapped = self.weights @ phi

        if method is InterpolationMethod.CONSERVATIVE and source_gradient is not None:
            if phi.ndim != 1:
                raise ValueError(
                    f"Gradient correction is only defined for scalar fields, "
                    f"got '{source_field.name}'"
                )
            grad = source_gradient.internal
            for axis, G in enumerate(self.gradient_weights):
                mapped = mapped + G @ grad[:, axis]

        volumes = self.target_mesh.cell_volumes
        if mapped.ndim == 2:
            volumes = volumes[:, None]
        target_field.internal[...] = mapped / volumes
