"""
Remap Verification Harness.

Two experiments on a (source, target) mesh pair:

Mapping error test:
    populated source, empty target, one forward remap with gradient,
    error norms on both meshes and the conservation report.

Cyclic stability test:
    INIT          populated fields on both meshes, I₀ = Σ V φ on the source
    cycle 1       FORWARD, REASSERT_BC
    cycle 2..N    BACKWARD, REASSERT_BC, FORWARD, REASSERT_BC
    DONE          error norms on both meshes, drift |I₀ - I_target|

Boundary values are re-imposed from the analytic model after every remap so
that only interior values carry the accumulated remapping error.
"""

import numpy as np
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from tqdm import tqdm

from .mesh import Mesh
from .fields import ScalarField, build_test_field, reassert_boundary_values
from .analytic import TestFieldKind, HillParameters, parse_test_kind
from .mapper import InterpolationMethod, OverlapMeshMapper, parse_method
from .conservation import (
    ConservationReport,
    compute_integral,
    compute_magnitude,
    conservation_from_integrals,
)
from .error_analysis import ErrorReport, analyze_error


class CycleState(Enum):
    """Phases of the cyclic stability test."""

    INIT = "init"
    FORWARD = "forward"
    REASSERT_BC = "reassert_bc"
    BACKWARD = "backward"
    DONE = "done"


@dataclass
class MappingErrorResult:
    """
    Outcome of a single forward remap.

    Attributes:
        kind: Analytic test field
        method: Interpolation scheme
        conservation: Source vs target integrals
        source_error: Errors of the (exact) source field
        target_error: Errors of the mapped target field
        source_field: Populated source field
        target_field: Mapped target field
    """
    kind: TestFieldKind
    method: InterpolationMethod
    conservation: ConservationReport
    source_error: ErrorReport
    target_error: ErrorReport
    source_field: ScalarField
    target_field: ScalarField

    def as_dict(self) -> Dict[str, Any]:
        result = {'kind': self.kind.name, 'method': self.method.name}
        result.update(self.conservation.as_dict())
        result.update(self.source_error.as_dict('source_'))
        result.update(self.target_error.as_dict('target_'))
        return result


@dataclass
class CyclicResult:
    """
    Outcome of the cyclic stability test.

    Attributes:
        n_cycles: Completed cycles
        kind: Analytic test field
        method: Interpolation scheme
        conservation: Initial source integral vs final target integral
        source_error: Errors of the source field after the last cycle
        target_error: Errors of the target field after the last cycle
        source_field: Final source field
        target_field: Final target field
        drift_history: |I₀ - I_target| after each cycle
        state_history: Every state the test passed through
    """
    n_cycles: int
    kind: TestFieldKind
    method: InterpolationMethod
    conservation: ConservationReport
    source_error: ErrorReport
    target_error: ErrorReport
    source_field: ScalarField
    target_field: ScalarField
    drift_history: np.ndarray
    state_history: List[CycleState] = field(default_factory=list)

    @property
    def max_drift(self) -> float:
        return float(np.max(self.drift_history)) if self.drift_history.size else 0.0

    def as_dict(self) -> Dict[str, Any]:
        result = {
            'kind': self.kind.name,
            'method': self.method.name,
            'n_cycles': self.n_cycles,
            'max_drift': self.max_drift,
        }
        result.update(self.conservation.as_dict())
        result.update(self.source_error.as_dict('source_'))
        result.update(self.target_error.as_dict('target_'))
        return result


def _make_mapper(factory, source_mesh, target_mesh, n_threads, force_recalc,
                 write_addr, options):
    return factory(source_mesh, target_mesh, n_threads, force_recalc,
                   write_addr, **(options or {}))


def run_mapping_error_test(
    source_mesh: Mesh,
    target_mesh: Mesh,
    kind: TestFieldKind,
    method: InterpolationMethod = InterpolationMethod.CONSERVATIVE,
    mapper_factory: Callable = OverlapMeshMapper,
    n_threads: int = 1,
    force_recalc: bool = False,
    write_addr: bool = False,
    mapper_options: Optional[Dict[str, Any]] = None,
    source_store=None,
    target_store=None,
    hill: Optional[HillParameters] = None,
    logger=None,
    verbose: bool = True
) -> MappingErrorResult:
    """
    Map a populated analytic field once and measure the result.

    Args:
        source_mesh: Mesh holding the exact field
        target_mesh: Mesh receiving the remapped field
        kind: Analytic test field
        method: Interpolation scheme
        mapper_factory: Operator constructor
            (source_mesh, target_mesh, n_threads, force_recalc, write_addr)
        n_threads: Forwarded to the operator
        force_recalc: Forwarded to the operator
        write_addr: Forwarded to the operator
        mapper_options: Extra keyword arguments for the operator
        source_store: FieldStore for the source case (optional)
        target_store: FieldStore for the target case (optional)
        hill: Cosine hill geometry
        logger: RemapLogger
        verbose: Print progress

    Returns:
        MappingErrorResult
    """
    kind = parse_test_kind(kind, "mapping error test")
    method = parse_method(method, "mapping error test")

    if verbose:
        print(f"      Mapping error test: {kind.name}, {method.name}")

    source, source_grad = build_test_field(source_mesh, kind, True, hill)
    target, _ = build_test_field(target_mesh, kind, False, hill)

    mapper = _make_mapper(mapper_factory, source_mesh, target_mesh, n_threads,
                          force_recalc, write_addr, mapper_options)
    mapper.interpolate(target, source, source_grad, method)

    conservation = conservation_from_integrals(
        compute_integral(source_mesh, source),
        compute_integral(target_mesh, target),
        compute_magnitude(source_mesh, source),
    )
    source_error = analyze_error(source_mesh, source, kind, hill)
    target_error = analyze_error(target_mesh, target, kind, hill)

    if source_store is not None:
        source_store.write(source)
        source_store.write(source_grad)
        source_store.write(source_error.per_cell_abs_error)
    if target_store is not None:
        target_store.write(target)
        target_store.write(target_error.per_cell_abs_error)

    if logger is not None:
        logger.log_conservation(source.name, conservation)
        logger.log_error_report("source", source_error)
        logger.log_error_report("target", target_error)

    return MappingErrorResult(
        kind=kind,
        method=method,
        conservation=conservation,
        source_error=source_error,
        target_error=target_error,
        source_field=source,
        target_field=target,
    )


class CyclicStabilityTester:
    """
    Cycle an analytic field between two meshes and track its integral.

    Each cycle calls the two operators directly instead of going through
    RemapDriver: the boundary re-assertion must follow every remap, and
    intermediate fields are kept in memory rather than written per cycle.

    Example:
        >>> tester = CyclicStabilityTester(coarse, fine, verbose=False)
        >>> result = tester.run(250, TestFieldKind.COSINE_HILL_2D)
        >>> result.conservation.relative_drift < 1e-6
        True
    """

    def __init__(
        self,
        source_mesh: Mesh,
        target_mesh: Mesh,
        mapper_factory: Callable = OverlapMeshMapper,
        n_threads: int = 1,
        force_recalc: bool = False,
        write_addr: bool = False,
        source_store=None,
        target_store=None,
        hill: Optional[HillParameters] = None,
        logger=None,
        verbose: bool = True,
        mapper_options: Optional[Dict[str, Any]] = None
    ):
        self.source_mesh = source_mesh
        self.target_mesh = target_mesh
        self.mapper_factory = mapper_factory
        self.n_threads = n_threads
        self.force_recalc = force_recalc
        self.write_addr = write_addr
        self.mapper_options = mapper_options
        self.source_store = source_store
        self.target_store = target_store
        self.hill = hill
        self.logger = logger
        self.verbose = verbose

        self.state = CycleState.INIT
        self.state_history: List[CycleState] = []

    def _enter(self, state: CycleState) -> None:
        self.state = state
        self.state_history.append(state)

    def _reassert(self, source: ScalarField, target: ScalarField,
                  kind: TestFieldKind) -> None:
        self._enter(CycleState.REASSERT_BC)
        reassert_boundary_values(source, kind, self.hill)
        reassert_boundary_values(target, kind, self.hill)

    def run(
        self,
        n_cycles: int,
        kind: TestFieldKind,
        method: InterpolationMethod = InterpolationMethod.CONSERVATIVE
    ) -> CyclicResult:
        """
        Run n_cycles forward (and n_cycles - 1 backward) remaps.

        Args:
            n_cycles: Number of forward remaps (>= 1)
            kind: Analytic test field
            method: Interpolation scheme

        Returns:
            CyclicResult
        """
        if int(n_cycles) < 1:
            raise ValueError(f"n_cycles must be at least 1, got {n_cycles}")
        n_cycles = int(n_cycles)
        kind = parse_test_kind(kind, "cyclic stability test")
        method = parse_method(method, "cyclic stability test")

        self.state_history = []
        self._enter(CycleState.INIT)

        source, source_grad = build_test_field(self.source_mesh, kind, True, self.hill)
        target, target_grad = build_test_field(self.target_mesh, kind, True, self.hill)

        initial_integral = compute_integral(self.source_mesh, source)

        initial_magnitude = compute_magnitude(self.source_mesh, source)

        if self.source_store is not None:
            self.source_store.write(source)
            self.source_store.write(source_grad)

        forward = _make_mapper(self.mapper_factory, self.source_mesh, self.target_mesh,
                               self.n_threads, self.force_recalc, self.write_addr,
                               self.mapper_options)
        backward = _make_mapper(self.mapper_factory, self.target_mesh, self.source_mesh,
                                self.n_threads, self.force_recalc, self.write_addr,
                                self.mapper_options)

        if self.logger is not None:
            self.logger.info(
                f"Cyclic test: {kind.name}, {method.name}, {n_cycles} cycles"
            )
            self.logger.info(f"  Initial source integral: {initial_integral:.12e}")

        drift_history = np.zeros(n_cycles)

        iterator = tqdm(
            range(1, n_cycles + 1),
            desc="      Cycling",
            disable=not self.verbose,
            ncols=70,
            unit="cycle"
        )

        for cycle in iterator:
            if cycle >= 2:
                self._enter(CycleState.BACKWARD)
                backward.interpolate(source, target, target_grad, method)
                self._reassert(source, target, kind)

            self._enter(CycleState.FORWARD)
            forward.interpolate(target, source, source_grad, method)
            self._reassert(source, target, kind)

            drift_history[cycle - 1] = abs(
                initial_integral - compute_integral(self.target_mesh, target)
            )

        self._enter(CycleState.DONE)

        source_error = analyze_error(self.source_mesh, source, kind, self.hill)
        target_error = analyze_error(self.target_mesh, target, kind, self.hill)
        conservation = conservation_from_integrals(
            initial_integral, compute_integral(self.target_mesh, target),
            initial_magnitude
        )

        if self.target_store is not None:
            self.target_store.write(target)
            self.target_store.write(target_error.per_cell_abs_error)
        if self.source_store is not None:
            self.source_store.write(source_error.per_cell_abs_error)

        if self.logger is not None:
            self.logger.log_conservation(source.name, conservation)

        if self.verbose:
            print(f"      Initial source integral: {initial_integral:.12e}")
            print(f"      Final target integral:   {conservation.target_integral:.12e}")
            print(f"      |drift|: {conservation.absolute_drift:.6e}")

        return CyclicResult(
            n_cycles=n_cycles,
            kind=kind,
            method=method,
            conservation=conservation,
            source_error=source_error,
            target_error=target_error,
            source_field=source,
            target_field=target,
            drift_history=drift_history,
            state_history=list(self.state_history),
        )
