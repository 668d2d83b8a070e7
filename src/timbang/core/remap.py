"""
Single-Call Remap Driver.

One remap moves a field from the source mesh of an operator to its target
mesh:

    1. target persisted ("header OK")  -> load it, interpolate into it
    2. otherwise                        -> fresh zero field, interpolate into it

Both branches then compute the source and target integrals, persist the
result and record a ConservationReport. Drift is reported, never enforced.
"""

from typing import Dict, List, Optional

from .fields import ScalarField, VectorField
from .mapper import InterpolationMethod, parse_method
from .conservation import (
    ConservationReport,
    compute_integral,
    compute_magnitude,
    conservation_from_integrals,
)


DEFAULT_DRIFT_WARNING = 1e-8


class RemapDriver:
    """
    Drive one interpolation call and account for its conservation.

    Attributes:
        store: FieldStore of the target case (None = keep results in memory)
        reports: ConservationReport of every remap, in call order
    """

    def __init__(
        self,
        store=None,
        logger=None,
        verbose: bool = True,
        drift_warning: float = DEFAULT_DRIFT_WARNING
    ):
        """
        Args:
            store: FieldStore to load existing targets from and write results to
            logger: RemapLogger
            verbose: Print per-field progress
            drift_warning: Relative drift above which a conservative remap
                is flagged with a warning
        """
        self.store = store
        self.logger = logger
        self.verbose = verbose
        self.drift_warning = drift_warning
        self.reports: List[ConservationReport] = []

    def _target_field(self, mapper, target_name: str, source_field: ScalarField,
                      time_name: str) -> ScalarField:
        mesh = mapper.target_mesh

        if self.store is not None and self.store.header_ok(target_name, time_name, mesh):
            field = self.store.read(target_name, time_name, mesh)
            if field.field_class != source_field.field_class:
                raise ValueError(
                    f"Persisted '{target_name}' is a {field.field_class}, "
                    f"source '{source_field.name}' is a {source_field.field_class}"
                )
            if self.verbose:
                print(f"      Interpolating onto existing {target_name}")
            return field

        if self.verbose:
            print(f"      Creating {target_name}")
        return type(source_field).zeros(
            mesh, target_name, source_field.boundary_type, time_name
        )

    def remap_one(
        self,
        mapper,
        target_name: str,
        source_field: ScalarField,
        source_gradient: Optional[VectorField] = None,
        method: InterpolationMethod = InterpolationMethod.CONSERVATIVE,
        time_name: Optional[str] = None
    ) -> ScalarField:
        """
        Remap one field onto the target mesh of mapper.

        Args:
            mapper: Operator with source_mesh, target_mesh and interpolate()
            target_name: Name of the field on the target mesh
            source_field: Field on mapper.source_mesh
            source_gradient: Interior gradient of a scalar source field
            method: Interpolation scheme
            time_name: Target time name (defaults to the source's)

        Returns:
            Target field holding the interpolated values
        """
        method = parse_method(method, "RemapDriver.remap_one")
        time_name = time_name or source_field.time_name

        source_integral = compute_integral(mapper.source_mesh, source_field)
        source_magnitude = compute_magnitude(mapper.source_mesh, source_field)

        target = self._target_field(mapper, target_name, source_field, time_name)
        mapper.interpolate(target, source_field, source_gradient, method)

        target_integral = compute_integral(mapper.target_mesh, target)
        report = conservation_from_integrals(
            source_integral, target_integral, source_magnitude
        )

        if self.store is not None:
            self.store.write(target, time_name)

        self.reports.append(report)
        self._log(target_name, report, method)
        return target

    def map_all_fields(
        self,
        mapper,
        source_store,
        time_name: str,
        method: InterpolationMethod = InterpolationMethod.CONSERVATIVE
    ) -> Dict[str, ConservationReport]:
        """
        Remap every scalar and vector field stored under one source time.

        Args:
            mapper: Operator from the source mesh to the target mesh
            source_store: FieldStore of the source case
            time_name: Source time directory
            method: Interpolation scheme

        Returns:
            Dict field name -> ConservationReport
        """
        method = parse_method(method, "RemapDriver.map_all_fields")
        fields = source_store.list_fields(time_name)

        if self.verbose:
            print(f"    Mapping {len(fields)} fields at time {time_name}")

        results = {}
        for name, field_class in fields.items():
            if self.verbose:
                print(f"    {field_class} {name}")
            source = source_store.read(name, time_name, mapper.source_mesh)
            self.remap_one(mapper, name, source, None, method, time_name)
            results[name] = self.reports[-1]

        return results

    def _log(self, name: str, report: ConservationReport,
             method: InterpolationMethod) -> None:
        if self.logger is not None:
            self.logger.log_conservation(name, report)

        if self.verbose:
            print(f"      integral source: {_fmt(report.source_integral)}")
            print(f"      integral target: {_fmt(report.target_integral)}")
            print(f"      |drift|: {report.absolute_drift:.6e}")

        if method.is_conservative and report.relative_drift > self.drift_warning:
            msg = (
                f"Conservation drift of '{name}' is {report.relative_drift:.2e} "
                f"(relative), above {self.drift_warning:.1e}"
            )
            if self.logger is not None:
                self.logger.warning(msg)
            elif self.verbose:
                print(f"  WARNING: {msg}")


def _fmt(value) -> str:
    if getattr(value, 'ndim', 0):
        return "(" + " ".join(f"{v:.10e}" for v in value) + ")"
    return f"{value:.10e}"
