"""
Analytic Test Fields with Exact Values and Gradients.

Catalogue of closed-form scalar fields used to verify mesh-to-mesh remapping.
Each field has an exact value and an exact gradient, so interpolation error
can be measured cell by cell against ground truth.

Fields:
    CONSTANT        f = c                                  ∇f = 0
    LINEAR          f = 2x + 3y + z                        ∇f = (2, 3, 1)
    SINUSOID_2D     f = 1 + sin(2πx) sin(2πy)
    SINUSOID_3D     f = 1 + sin(2πx) sin(2πy) sin(2πz)
    COSINE_HILL_2D  f = 2 + cos(πr/L),  r = |x - h|

Cosine hill gradient:
    ∇f = -(π/(rL)) sin(πr/L) (x - h)

    The formula divides by r. Its limit at the hill centre is the zero vector,
    which is what the kernel returns for r below HILL_RADIUS_TOLERANCE.
"""

import numpy as np
from numba import njit, prange
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Union


CONSTANT_VALUE = 2.0
HILL_RADIUS_TOLERANCE = 1e-12


class UnknownTestKindError(ValueError):
    """Raised when a value does not name a TestFieldKind."""

    def __init__(self, value, context: str = "analytic field evaluation"):
        self.value = value
        self.context = context
        valid = ", ".join(k.name for k in TestFieldKind)
        super().__init__(
            f"Unknown test field kind {value!r} in {context} "
            f"(expected one of: {valid})"
        )


class TestFieldKind(Enum):
    """Closed catalogue of analytic test fields."""

    __test__ = False  # not a pytest test class

    CONSTANT = 0
    LINEAR = 1
    SINUSOID_2D = 2
    SINUSOID_3D = 3
    COSINE_HILL_2D = 4


@dataclass(frozen=True)
class HillParameters:
    """
    Geometry of the cosine hill.

    Attributes:
        center: Hill centre h
        length: Length scale L (the hill returns to its peak value at r = 2L)
    """
    center: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    length: float = 0.5 * np.sqrt(2.0)

    def center_array(self) -> np.ndarray:
        return np.asarray(self.center, dtype=np.float64)


DEFAULT_HILL = HillParameters()


# =============================================================================
# VALUE KERNELS
# =============================================================================

@njit(cache=True, parallel=True)
def _constant_value(points: np.ndarray, value: float) -> np.ndarray:
    n = points.shape[0]
    out = np.empty(n, dtype=np.float64)
    for i in prange(n):
        out[i] = value
    return out


@njit(cache=True, parallel=True)
def _linear_value(points: np.ndarray) -> np.ndarray:
    n = points.shape[0]
    out = np.empty(n, dtype=np.float64)
    for i in prange(n):
        out[i] = 2.0 * points[i, 0] + 3.0 * points[i, 1] + points[i, 2]
    return out


@njit(cache=True, parallel=True)
def _sinusoid_2d_value(points: np.ndarray) -> np.ndarray:
    n = points.shape[0]
    out = np.empty(n, dtype=np.float64)
    k = 2.0 * np.pi
    for i in prange(n):
        out[i] = 1.0 + np.sin(k * points[i, 0]) * np.sin(k * points[i, 1])
    return out


@njit(cache=True, parallel=True)
def _sinusoid_3d_value(points: np.ndarray) -> np.ndarray:
    n = points.shape[0]
    out = np.empty(n, dtype=np.float64)
    k = 2.0 * np.pi
    for i in prange(n):
        out[i] = 1.0 + (
            np.sin(k * points[i, 0])
            * np.sin(k * points[i, 1])
            * np.sin(k * points[i, 2])
        )
    return out


@njit(cache=True, parallel=True)
def _cosine_hill_value(points: np.ndarray, center: np.ndarray, length: float) -> np.ndarray:
    n = points.shape[0]
    out = np.empty(n, dtype=np.float64)
    for i in prange(n):
        dx = points[i, 0] - center[0]
        dy = points[i, 1] - center[1]
        dz = points[i, 2] - center[2]
        r = np.sqrt(dx * dx + dy * dy + dz * dz)
        out[i] = 2.0 + np.cos(np.pi * r / length)
    return out


# =============================================================================
# GRADIENT KERNELS
# =============================================================================

@njit(cache=True, parallel=True)
def _linear_gradient(points: np.ndarray) -> np.ndarray:
    n = points.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    for i in prange(n):
        out[i, 0] = 2.0
        out[i, 1] = 3.0
        out[i, 2] = 1.0
    return out


@njit(cache=True, parallel=True)
def _sinusoid_2d_gradient(points: np.ndarray) -> np.ndarray:
    n = points.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    k = 2.0 * np.pi
    for i in prange(n):
        sx = np.sin(k * points[i, 0])
        cx = np.cos(k * points[i, 0])
        sy = np.sin(k * points[i, 1])
        cy = np.cos(k * points[i, 1])
        out[i, 0] = k * cx * sy
        out[i, 1] = k * sx * cy
        out[i, 2] = 0.0
    return out


@njit(cache=True, parallel=True)
def _sinusoid_3d_gradient(points: np.ndarray) -> np.ndarray:
    n = points.shape[0]
    out = np.empty((n, 3), dtype=np.float64)
    k = 2.0 * np.pi
    for i in prange(n):
        sx = np.sin(k * points[i, 0])
        cx = np.cos(k * points[i, 0])
        sy = np.sin(k * points[i, 1])
        cy = np.cos(k * points[i, 1])
        sz = np.sin(k * points[i, 2])
        cz = np.cos(k * points[i, 2])
        out[i, 0] = k * cx * sy * sz
        out[i, 1] = k * sx * cy * sz
        out[i, 2] = k * sx * sy * cz
    return out


@njit(cache=True, parallel=True)
def _cosine_hill_gradient(points: np.ndarray, center: np.ndarray, length: float) -> np.ndarray:
    n = points.shape[0]
    out = np.zeros((n, 3), dtype=np.float64)
    for i in prange(n):
        dx = points[i, 0] - center[0]
        dy = points[i, 1] - center[1]
        dz = points[i, 2] - center[2]
        r = np.sqrt(dx * dx + dy * dy + dz * dz)
        if r < HILL_RADIUS_TOLERANCE:
            continue
        scale = -(np.pi / (r * length)) * np.sin(np.pi * r / length)
        out[i, 0] = scale * dx
        out[i, 1] = scale * dy
        out[i, 2] = scale * dz
    return out


# =============================================================================
# DISPATCH
# =============================================================================

_Kernel = Callable[[np.ndarray, HillParameters], np.ndarray]

_VALUE_KERNELS: Dict[TestFieldKind, _Kernel] = {
    TestFieldKind.CONSTANT: lambda p, h: _constant_value(p, CONSTANT_VALUE),
    TestFieldKind.LINEAR: lambda p, h: _linear_value(p),
    TestFieldKind.SINUSOID_2D: lambda p, h: _sinusoid_2d_value(p),
    TestFieldKind.SINUSOID_3D: lambda p, h: _sinusoid_3d_value(p),
    TestFieldKind.COSINE_HILL_2D: lambda p, h: _cosine_hill_value(
        p, h.center_array(), h.length
    ),
}

_GRADIENT_KERNELS: Dict[TestFieldKind, _Kernel] = {
    TestFieldKind.CONSTANT: lambda p, h: np.zeros((p.shape[0], 3), dtype=np.float64),
    TestFieldKind.LINEAR: lambda p, h: _linear_gradient(p),
    TestFieldKind.SINUSOID_2D: lambda p, h: _sinusoid_2d_gradient(p),
    TestFieldKind.SINUSOID_3D: lambda p, h: _sinusoid_3d_gradient(p),
    TestFieldKind.COSINE_HILL_2D: lambda p, h: _cosine_hill_gradient(
        p, h.center_array(), h.length
    ),
}

# Every kind must have both kernels
for _table in (_VALUE_KERNELS, _GRADIENT_KERNELS):
    _missing = set(TestFieldKind) - set(_table)
    if _missing:
        raise RuntimeError(f"Missing analytic kernels for: {sorted(k.name for k in _missing)}")


def parse_test_kind(
    value: Union[TestFieldKind, str, int],
    context: str = "test field selection"
) -> TestFieldKind:
    """
    Convert untrusted input into a TestFieldKind.

    Accepts an enum member, a case-insensitive name ("linear",
    "COSINE_HILL_2D", "cosine-hill-2d") or an integer code.

    Raises:
        UnknownTestKindError: if the value names no kind
    """
    if isinstance(value, TestFieldKind):
        return value

    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        try:
            return TestFieldKind(int(value))
        except ValueError:
            raise UnknownTestKindError(value, context) from None

    if isinstance(value, str):
        key = value.strip().upper().replace('-', '_').replace(' ', '_')
        if key in TestFieldKind.__members__:
            return TestFieldKind[key]

    raise UnknownTestKindError(value, context)


def _require_kind(kind, context: str) -> TestFieldKind:
    if not isinstance(kind, TestFieldKind):
        raise UnknownTestKindError(kind, context)
    return kind


def _as_points(points: np.ndarray) -> Tuple[np.ndarray, bool]:
    pts = np.asarray(points, dtype=np.float64)
    single = pts.ndim == 1
    if single:
        pts = pts.reshape(1, -1)
    if pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError(f"Expected points of shape (n, 3), got {np.shape(points)}")
    return np.ascontiguousarray(pts), single


def evaluate_value(
    points: np.ndarray,
    kind: TestFieldKind,
    hill: Optional[HillParameters] = None
) -> Union[np.ndarray, float]:
    """
    Evaluate the exact scalar field.

    Args:
        points: Coordinates, shape (n, 3) or (3,)
        kind: Which analytic field
        hill: Cosine hill geometry (default: origin, L = √2/2)

    Returns:
        Values, shape (n,), or a float for a single point
    """
    kind = _require_kind(kind, "evaluate_value")
    pts, single = _as_points(points)
    values = _VALUE_KERNELS[kind](pts, hill or DEFAULT_HILL)
    return float(values[0]) if single else values


def evaluate_gradient(
    points: np.ndarray,
    kind: TestFieldKind,
    hill: Optional[HillParameters] = None
) -> np.ndarray:
    """
    Evaluate the exact gradient.

    Args:
        points: Coordinates, shape (n, 3) or (3,)
        kind: Which analytic field
        hill: Cosine hill geometry (default: origin, L = √2/2)

    Returns:
        Gradient vectors, shape (n, 3), or (3,) for a single point
    """
    kind = _require_kind(kind, "evaluate_gradient")
    pts, single = _as_points(points)
    grads = _GRADIENT_KERNELS[kind](pts, hill or DEFAULT_HILL)
    return grads[0] if single else grads
