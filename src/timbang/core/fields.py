"""
Cell-Centred Fields and Analytic Test Field Construction.

A field stores one value per interior cell plus, for every boundary patch,
one value per boundary face. Scalar fields hold shape (n,), vector fields
shape (n, 3).

Test fields come in pairs:
    - scalar "alpha" with fixedValue boundaries (Dirichlet data)
    - gradient "grad(alpha)" with zeroGradient boundaries

Only the interior gradient is populated: the gradient is transport
information for higher-order conservative mapping, whereas boundary values
are externally imposed conditions.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .mesh import Mesh
from .analytic import (
    TestFieldKind,
    HillParameters,
    parse_test_kind,
    evaluate_value,
    evaluate_gradient,
)


READ_FRESH = "fresh"
READ_LOADED = "read"


@dataclass(eq=False)
class ScalarField:
    """
    Scalar field on a mesh.

    Attributes:
        name: Field name (persistence key)
        mesh: Owning mesh
        internal: Interior cell values in mesh cell order
        boundary: Patch name -> boundary face values
        boundary_type: Boundary-condition tag
        time_name: Time/state identifier for persistence
        read_state: "fresh" (created, do not read) or "read" (loaded)
        written: True once persisted
    """
    name: str
    mesh: Mesh
    internal: np.ndarray
    boundary: Dict[str, np.ndarray]
    boundary_type: str = "fixedValue"
    time_name: str = "0"
    read_state: str = READ_FRESH
    written: bool = False

    value_shape = ()
    field_class = "volScalarField"

    def __post_init__(self):
        self.internal = np.asarray(self.internal, dtype=np.float64)
        self.boundary = {
            k: np.asarray(v, dtype=np.float64) for k, v in self.boundary.items()
        }
        self.check_sizes()

    def check_sizes(self) -> None:
        """Raise ValueError if any section does not match the mesh."""
        expected = (self.mesh.n_cells,) + self.value_shape
        if self.internal.shape != expected:
            raise ValueError(
                f"Field '{self.name}': interior shape {self.internal.shape} "
                f"does not match mesh '{self.mesh.name}' {expected}"
            )

        names = set(self.mesh.patch_names())
        if set(self.boundary) != names:
            raise ValueError(
                f"Field '{self.name}': boundary patches {sorted(self.boundary)} "
                f"do not match mesh patches {sorted(names)}"
            )

        for patch in self.mesh.patches:
            expected = (patch.n_faces,) + self.value_shape
            if self.boundary[patch.name].shape != expected:
                raise ValueError(
                    f"Field '{self.name}': patch '{patch.name}' has shape "
                    f"{self.boundary[patch.name].shape}, expected {expected}"
                )

    @classmethod
    def zeros(
        cls,
        mesh: Mesh,
        name: str,
        boundary_type: str = "fixedValue",
        time_name: str = "0"
    ) -> 'ScalarField':
        """Create a fresh zero-filled field sized to the mesh."""
        internal = np.zeros((mesh.n_cells,) + cls.value_shape, dtype=np.float64)
        boundary = {
            p.name: np.zeros((p.n_faces,) + cls.value_shape, dtype=np.float64)
            for p in mesh.patches
        }
        return cls(
            name=name,
            mesh=mesh,
            internal=internal,
            boundary=boundary,
            boundary_type=boundary_type,
            time_name=time_name,
            read_state=READ_FRESH,
        )

    def copy(self, name: Optional[str] = None) -> 'ScalarField':
        """Deep copy with an optional new name."""
        return type(self)(
            name=name or self.name,
            mesh=self.mesh,
            internal=self.internal.copy(),
            boundary={k: v.copy() for k, v in self.boundary.items()},
            boundary_type=self.boundary_type,
            time_name=self.time_name,
            read_state=self.read_state,
        )

    @property
    def n_cells(self) -> int:
        return int(self.internal.shape[0])

    def __repr__(self) -> str:
        return (
            f"{self.field_class}('{self.name}', mesh='{self.mesh.name}', "
            f"n={self.n_cells}, bc={self.boundary_type}, {self.read_state})"
        )


@dataclass(eq=False, repr=False)
class VectorField(ScalarField):
    """Vector field on a mesh; values have shape (n, 3)."""

    value_shape = (3,)
    field_class = "volVectorField"


def build_test_field(
    mesh: Mesh,
    kind: TestFieldKind,
    populate: bool = True,
    hill: Optional[HillParameters] = None,
    name: str = "alpha",
    time_name: str = "0"
) -> Tuple[ScalarField, VectorField]:
    """
    Allocate (and optionally populate) an analytic test field and its gradient.

    Args:
        mesh: Mesh to size the fields to
        kind: Analytic field
        populate: Fill interior values, interior gradients and boundary values
            from the analytic model; False leaves both fields at zero
        hill: Cosine hill geometry
        name: Scalar field name; the gradient is named "grad(<name>)"
        time_name: Time/state identifier

    Returns:
        Tuple (scalar field, gradient field)

    Raises:
        UnknownTestKindError: if kind names no analytic field, populated or not
    """
    kind = parse_test_kind(kind, "build_test_field")
    scalar = ScalarField.zeros(mesh, name, "fixedValue", time_name)
    gradient = VectorField.zeros(mesh, f"grad({name})", "zeroGradient", time_name)

    if populate:
        scalar.internal[:] = evaluate_value(mesh.cell_centres, kind, hill)
        gradient.internal[:] = evaluate_gradient(mesh.cell_centres, kind, hill)
        reassert_boundary_values(scalar, kind, hill)

    return scalar, gradient


def reassert_boundary_values(
    scalar: ScalarField,
    kind: TestFieldKind,
    hill: Optional[HillParameters] = None
) -> None:
    """Overwrite every boundary face value with the analytic scalar."""
    for patch in scalar.mesh.patches:
        if patch.n_faces == 0:
            continue
        scalar.boundary[patch.name][:] = evaluate_value(patch.face_centres, kind, hill)
