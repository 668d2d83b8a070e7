"""
Mesh Geometry Container and Structured Box Meshes.

The harness only reads mesh geometry:
    - cell volumes and cell centroids (interior cells)
    - boundary patches, each an ordered list of face centroids

Box meshes are axis-aligned tensor-product meshes built from one array of
cell edges per axis. Cells are ordered x fastest, then y, then z:

    cell = i + nx * (j + ny * k)

Boundary patches of a box mesh:
    left/right   x = x_min / x_max   (faces ordered k outer, j inner)
    bottom/top   y = y_min / y_max   (faces ordered k outer, i inner)
    back/front   z = z_min / z_max   (faces ordered j outer, i inner)
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple


@dataclass
class BoundaryPatch:
    """
    Named group of boundary faces.

    Attributes:
        name: Patch name
        face_centres: Face centroids, shape (n_faces, 3)
        patch_type: Geometric patch type (informational)
    """
    name: str
    face_centres: np.ndarray
    patch_type: str = "patch"

    @property
    def n_faces(self) -> int:
        return int(self.face_centres.shape[0])


@dataclass
class Mesh:
    """
    Cell-centred mesh geometry.

    Attributes:
        cell_volumes: Cell volumes, shape (n_cells,)
        cell_centres: Cell centroids, shape (n_cells, 3)
        patches: Boundary patches in order
        name: Mesh label used in logs and file names
        edges: Per-axis cell edges for box meshes, None otherwise
    """
    cell_volumes: np.ndarray
    cell_centres: np.ndarray
    patches: List[BoundaryPatch] = field(default_factory=list)
    name: str = "mesh"
    edges: Optional[Tuple[np.ndarray, np.ndarray, np.ndarray]] = None

    def __post_init__(self):
        self.cell_volumes = np.asarray(self.cell_volumes, dtype=np.float64)
        self.cell_centres = np.asarray(self.cell_centres, dtype=np.float64)

        if self.cell_centres.ndim != 2 or self.cell_centres.shape[1] != 3:
            raise ValueError(
                f"Mesh '{self.name}': cell_centres must have shape (n, 3), "
                f"got {self.cell_centres.shape}"
            )
        if self.cell_volumes.shape != (self.cell_centres.shape[0],):
            raise ValueError(
                f"Mesh '{self.name}': {self.cell_volumes.shape[0]} volumes "
                f"for {self.cell_centres.shape[0]} cells"
            )
        if np.any(self.cell_volumes <= 0.0):
            raise ValueError(f"Mesh '{self.name}': cell volumes must be positive")

    @property
    def n_cells(self) -> int:
        return int(self.cell_volumes.shape[0])

    @property
    def total_volume(self) -> float:
        return float(np.sum(self.cell_volumes))

    @property
    def is_box(self) -> bool:
        return self.edges is not None

    @property
    def shape(self) -> Tuple[int, int, int]:
        """Cells per axis (nx, ny, nz) for box meshes."""
        if self.edges is None:
            raise ValueError(f"Mesh '{self.name}' is not a box mesh")
        return tuple(len(e) - 1 for e in self.edges)

    @property
    def n_geometric_dims(self) -> int:
        """Number of axes resolved by more than one cell."""
        if self.edges is None:
            return 3
        return sum(1 for n in self.shape if n > 1)

    def patch_names(self) -> List[str]:
        return [p.name for p in self.patches]

    def patch(self, name: str) -> BoundaryPatch:
        for p in self.patches:
            if p.name == name:
                return p
        raise KeyError(f"Mesh '{self.name}' has no patch '{name}'")

    def __repr__(self) -> str:
        if self.edges is not None:
            nx, ny, nz = self.shape
            return (
                f"Mesh('{self.name}', {nx}×{ny}×{nz} = {self.n_cells} cells, "
                f"{self.n_geometric_dims}D, V={self.total_volume:.4g})"
            )
        return f"Mesh('{self.name}', {self.n_cells} cells, V={self.total_volume:.4g})"


def _centres(edges: np.ndarray) -> np.ndarray:
    return 0.5 * (edges[:-1] + edges[1:])


def box_mesh_from_edges(
    x_edges: Sequence[float],
    y_edges: Sequence[float],
    z_edges: Sequence[float],
    name: str = "box"
) -> Mesh:
    """
    Build an axis-aligned box mesh from per-axis cell edges.

    Args:
        x_edges: Strictly increasing edges in x (nx + 1 values)
        y_edges: Strictly increasing edges in y (ny + 1 values)
        z_edges: Strictly increasing edges in z (nz + 1 values)
        name: Mesh label

    Returns:
        Mesh with six boundary patches
    """
    ex = np.asarray(x_edges, dtype=np.float64)
    ey = np.asarray(y_edges, dtype=np.float64)
    ez = np.asarray(z_edges, dtype=np.float64)

    for axis, e in zip("xyz", (ex, ey, ez)):
        if e.ndim != 1 or e.size < 2:
            raise ValueError(f"{axis}_edges needs at least two values")
        if np.any(np.diff(e) <= 0.0):
            raise ValueError(f"{axis}_edges must be strictly increasing")

    cx, cy, cz = _centres(ex), _centres(ey), _centres(ez)
    dx, dy, dz = np.diff(ex), np.diff(ey), np.diff(ez)

    # (k, j, i) ordering so that ravel() puts x fastest
    Z, Y, X = np.meshgrid(cz, cy, cx, indexing='ij')
    centres = np.column_stack([X.ravel(), Y.ravel(), Z.ravel()])
    volumes = (dz[:, None, None] * dy[None, :, None] * dx[None, None, :]).ravel()

    def _face_grid(a, b):
        B, A = np.meshgrid(b, a, indexing='ij')
        return A.ravel(), B.ravel()

    patches = []

    ys, zs = _face_grid(cy, cz)
    for name_, x0 in (("left", ex[0]), ("right", ex[-1])):
        pts = np.column_stack([np.full(ys.size, x0), ys, zs])
        patches.append(BoundaryPatch(name_, pts, "wall"))

    xs, zs = _face_grid(cx, cz)
    for name_, y0 in (("bottom", ey[0]), ("top", ey[-1])):
        pts = np.column_stack([xs, np.full(xs.size, y0), zs])
        patches.append(BoundaryPatch(name_, pts, "wall"))

    xs, ys = _face_grid(cx, cy)
    z_type = "empty" if len(cz) == 1 else "wall"
    for name_, z0 in (("back", ez[0]), ("front", ez[-1])):
        pts = np.column_stack([xs, ys, np.full(xs.size, z0)])
        patches.append(BoundaryPatch(name_, pts, z_type))

    return Mesh(
        cell_volumes=volumes,
        cell_centres=centres,
        patches=patches,
        name=name,
        edges=(ex, ey, ez),
    )


def box_mesh(
    nx: int,
    ny: int,
    nz: int = 1,
    lower: Sequence[float] = (0.0, 0.0, 0.0),
    upper: Sequence[float] = (1.0, 1.0, 1.0),
    name: str = "box"
) -> Mesh:
    """
    Build a uniform axis-aligned box mesh.

    Example:
        >>> mesh = box_mesh(2, 2, 2)   # 8 cells on the unit cube
        >>> mesh.n_cells
        8
    """
    if min(nx, ny, nz) < 1:
        raise ValueError(f"Cell counts must be positive, got ({nx}, {ny}, {nz})")

    return box_mesh_from_edges(
        np.linspace(lower[0], upper[0], nx + 1),
        np.linspace(lower[1], upper[1], ny + 1),
        np.linspace(lower[2], upper[2], nz + 1),
        name=name,
    )
