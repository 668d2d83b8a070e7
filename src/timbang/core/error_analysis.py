"""
Interpolation Error Against Analytic Solutions.

For each interior cell the exact value at the cell centroid is compared with
the computed value:

    e_i   = |φ_i - f(x_i)|
    L2    = sqrt(Σ e_i² / n)
    L∞    = max e_i
    h     = (1/n)^(1/3)

h is an isotropic spacing proxy for a roughly unit-volume domain. It is only
meant as a rough convergence-order indicator.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional

from .mesh import Mesh
from .fields import ScalarField
from .analytic import TestFieldKind, HillParameters, evaluate_value


@dataclass(frozen=True)
class ErrorReport:
    """
    Error norms of one field against its analytic solution.

    Attributes:
        l2_error: Root-mean-square cell error
        linf_error: Maximum cell error
        effective_spacing: (1/n)^(1/3)
        cell_count: Number of interior cells
        per_cell_abs_error: Field "iError" holding |φ - f| per cell
    """
    l2_error: float
    linf_error: float
    effective_spacing: float
    cell_count: int
    per_cell_abs_error: ScalarField

    @property
    def spacing_squared(self) -> float:
        return self.effective_spacing ** 2

    def as_dict(self, prefix: str = "") -> dict:
        return {
            f'{prefix}l2_error': self.l2_error,
            f'{prefix}linf_error': self.linf_error,
            f'{prefix}dx': self.effective_spacing,
            f'{prefix}dx2': self.spacing_squared,
            f'{prefix}n_cells': self.cell_count,
        }


def effective_spacing(n_cells: int) -> float:
    """Isotropic spacing proxy (1/n)^(1/3)."""
    if n_cells <= 0:
        raise ValueError(f"n_cells must be positive, got {n_cells}")
    return float(np.cbrt(1.0 / n_cells))


def analyze_error(
    mesh: Mesh,
    field: ScalarField,
    kind: TestFieldKind,
    hill: Optional[HillParameters] = None,
    error_name: str = "iError"
) -> ErrorReport:
    """
    Compare a computed scalar field with the analytic solution.

    Args:
        mesh: Mesh the field lives on
        field: Computed scalar field
        kind: Analytic field it should reproduce
        hill: Cosine hill geometry
        error_name: Name of the per-cell error field

    Returns:
        ErrorReport
    """
    if field.internal.ndim != 1:
        raise ValueError(f"Error analysis needs a scalar field, got '{field.name}'")
    if field.internal.shape[0] != mesh.n_cells:
        raise ValueError(
            f"Field '{field.name}' has {field.internal.shape[0]} cells, "
            f"mesh '{mesh.name}' has {mesh.n_cells}"
        )

    exact = evaluate_value(mesh.cell_centres, kind, hill)
    abs_error = np.abs(field.internal - exact)

    error_field = ScalarField.zeros(
        mesh, error_name, boundary_type="calculated", time_name=field.time_name
    )
    error_field.internal[:] = abs_error

    n = mesh.n_cells
    return ErrorReport(
        l2_error=float(np.sqrt(np.sum(abs_error ** 2) / n)),
        linf_error=float(np.max(abs_error)),
        effective_spacing=effective_spacing(n),
        cell_count=n,
        per_cell_abs_error=error_field,
    )


def estimate_convergence_order(
    coarse: ErrorReport,
    fine: ErrorReport,
    norm: str = "l2"
) -> float:
    """
    Observed order of accuracy between two refinement levels.

        p = ln(e_coarse / e_fine) / ln(h_coarse / h_fine)

    Returns NaN when an error vanishes or the spacings coincide.
    """
    if norm == "l2":
        e_c, e_f = coarse.l2_error, fine.l2_error
    elif norm == "linf":
        e_c, e_f = coarse.linf_error, fine.linf_error
    else:
        raise ValueError(f"Unknown norm '{norm}' (expected 'l2' or 'linf')")

    h_ratio = coarse.effective_spacing / fine.effective_spacing
    if e_c <= 0.0 or e_f <= 0.0 or abs(np.log(h_ratio)) < 1e-14:
        return float('nan')

    return float(np.log(e_c / e_f) / np.log(h_ratio))
