"""Core components for remap verification."""

from .analytic import TestFieldKind, HillParameters, evaluate_value, evaluate_gradient
from .mesh import Mesh, BoundaryPatch, box_mesh, box_mesh_from_edges
from .fields import ScalarField, VectorField, build_test_field, reassert_boundary_values
from .conservation import ConservationReport, compute_integral, compute_magnitude, compute_conservation
from .error_analysis import ErrorReport, analyze_error
from .mapper import InterpolationMethod, OverlapMeshMapper
from .remap import RemapDriver
from .harness import CyclicStabilityTester, CyclicResult, MappingErrorResult, run_mapping_error_test

__all__ = [
    "TestFieldKind",
    "HillParameters",
    "evaluate_value",
    "evaluate_gradient",
    "Mesh",
    "BoundaryPatch",
    "box_mesh",
    "box_mesh_from_edges",
    "ScalarField",
    "VectorField",
    "build_test_field",
    "reassert_boundary_values",
    "ConservationReport",
    "compute_integral",
    "compute_magnitude",
    "compute_conservation",
    "ErrorReport",
    "analyze_error",
    "InterpolationMethod",
    "OverlapMeshMapper",
    "RemapDriver",
    "CyclicStabilityTester",
    "CyclicResult",
    "MappingErrorResult",
    "run_mapping_error_test",
]
