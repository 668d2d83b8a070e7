"""
timbang: Conservative Remap Verification Harness

Verifies mesh-to-mesh field remapping against analytic test fields with
known values and gradients.

Checks:
    Conservation    I = Σ V φ equal on source and target meshes
    Accuracy        L2 = sqrt(Σ e² / n),  L∞ = max e,  e = |φ - f(x)|
    Stability       drift of I after N forward/backward remap cycles

Features:
    - Numba JIT compiled analytic field kernels
    - Exact overlap remapping between axis-aligned box meshes
    - Gradient-corrected second-order conservative mapping
    - Inverse-distance mapping on a scipy KD-tree
    - NetCDF field store, CSV metrics, summary figures

Example:
    >>> from timbang import box_mesh, CyclicStabilityTester, TestFieldKind
    >>> coarse = box_mesh(20, 20, 1, (-1, -1, -0.05), (1, 1, 0.05))
    >>> fine = box_mesh(27, 23, 1, (-1, -1, -0.05), (1, 1, 0.05))
    >>> result = CyclicStabilityTester(coarse, fine).run(250, TestFieldKind.COSINE_HILL_2D)

License: MIT
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .core.analytic import (
    TestFieldKind,
    HillParameters,
    UnknownTestKindError,
    evaluate_value,
    evaluate_gradient,
    parse_test_kind,
)
from .core.mesh import Mesh, BoundaryPatch, box_mesh, box_mesh_from_edges
from .core.fields import ScalarField, VectorField, build_test_field, reassert_boundary_values
from .core.conservation import ConservationReport, compute_integral, compute_magnitude, compute_conservation
from .core.error_analysis import ErrorReport, analyze_error, estimate_convergence_order
from .core.mapper import InterpolationMethod, OverlapMeshMapper, UnknownMethodError
from .core.remap import RemapDriver
from .core.harness import CyclicStabilityTester, run_mapping_error_test
from .io.config_manager import ConfigManager
from .io.data_handler import DataHandler
from .io.field_store import FieldStore

__all__ = [
    # Analytic fields
    "TestFieldKind",
    "HillParameters",
    "UnknownTestKindError",
    "evaluate_value",
    "evaluate_gradient",
    "parse_test_kind",
    # Meshes and fields
    "Mesh",
    "BoundaryPatch",
    "box_mesh",
    "box_mesh_from_edges",
    "ScalarField",
    "VectorField",
    "build_test_field",
    "reassert_boundary_values",
    # Analysis
    "ConservationReport",
    "compute_integral",
    "compute_magnitude",
    "compute_conservation",
    "ErrorReport",
    "analyze_error",
    "estimate_convergence_order",
    # Remapping
    "InterpolationMethod",
    "OverlapMeshMapper",
    "UnknownMethodError",
    "RemapDriver",
    "CyclicStabilityTester",
    "run_mapping_error_test",
    # IO
    "ConfigManager",
    "DataHandler",
    "FieldStore",
]
