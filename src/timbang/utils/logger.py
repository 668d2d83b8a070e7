"""Run logger for remap verification scenarios."""

import logging
import numpy as np
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, List


class RemapLogger:
    """Logger for remap verification runs."""

    def __init__(
        self,
        scenario_name: str,
        log_dir: str = "logs",
        verbose: bool = True
    ):
        """
        Initialize run logger.

        Args:
            scenario_name: Scenario name (for log filename)
            log_dir: Directory for log files
            verbose: Print warnings and errors to console
        """
        self.scenario_name = scenario_name
        self.log_dir = Path(log_dir)
        self.verbose = verbose

        self.log_dir.mkdir(parents=True, exist_ok=True)

        clean_name = scenario_name.lower().replace(' ', '_').replace('-', '_')
        self.log_file = self.log_dir / f"{clean_name}.log"

        self.logger = self._setup_logger()
        self.warnings: List[str] = []
        self.errors: List[str] = []

    def _setup_logger(self) -> logging.Logger:
        """Configure Python logging."""
        logger = logging.getLogger(f"timbang_{self.scenario_name}")
        logger.setLevel(logging.DEBUG)
        for handler in logger.handlers:
            handler.close()
        logger.handlers = []

        handler = logging.FileHandler(self.log_file, mode='w')
        handler.setLevel(logging.DEBUG)

        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)

        logger.addHandler(handler)
        return logger

    def info(self, msg: str):
        """Log informational message."""
        self.logger.info(msg)

    def warning(self, msg: str):
        """Log warning message."""
        self.logger.warning(msg)
        self.warnings.append(msg)

        if self.verbose:
            print(f"  WARNING: {msg}")

    def error(self, msg: str):
        """Log error message."""
        self.logger.error(msg)
        self.errors.append(msg)

        if self.verbose:
            print(f"  ERROR: {msg}")

    def log_meshes(self, source_mesh, target_mesh):
        """Log source and target mesh summary."""
        self.info("=" * 70)
        self.info("CONSERVATIVE REMAP VERIFICATION")
        self.info(f"Scenario: {self.scenario_name}")
        self.info("=" * 70)

        for role, mesh in (("SOURCE", source_mesh), ("TARGET", target_mesh)):
            self.info("")
            self.info(f"{role} MESH: {mesh.name}")
            self.info(f"  Cells = {mesh.n_cells}")
            if mesh.is_box:
                nx, ny, nz = mesh.shape
                self.info(f"  nx × ny × nz = {nx} × {ny} × {nz}")
            self.info(f"  Geometric dimensions = {mesh.n_geometric_dims}")
            self.info(f"  Total volume = {mesh.total_volume:.6e}")
            self.info(f"  Patches = {', '.join(mesh.patch_names())}")

        self.info("=" * 70)

    def log_config(self, config: Dict[str, Any]):
        """Log run configuration."""
        self.info("")
        self.info("RUN PARAMETERS:")
        self.info(f"  Method = {config.get('method', '?')}")
        self.info(f"  Threads = {config.get('n_threads', '?')}")
        self.info(f"  Force recalc = {config.get('force_recalc', False)}")
        self.info(f"  Write addressing = {config.get('write_addr', False)}")

        if config.get('test_only', True):
            self.info(f"  Mapping error field = {config.get('test_kind', '?')}")
            self.info(f"  Cyclic field = {config.get('cyclic_kind', '?')}")
            self.info(f"  Cycles = {config.get('n_cycles', '?')}")
        else:
            self.info(f"  Source case = {config.get('source_case', '?')}")
            self.info(f"  Target case = {config.get('target_case', '?')}")
            self.info(f"  Time = {config.get('time', '?')}")

        self.info("=" * 70)

    def log_conservation(self, name: str, report):
        """Log source/target integrals of one remapped field."""
        self.info("")
        self.info(f"CONSERVATION ({name}):")
        self.info(f"  Source integral: {_fmt(report.source_integral)}")
        self.info(f"  Target integral: {_fmt(report.target_integral)}")
        self.info(f"  |drift|: {report.absolute_drift:.6e}")
        self.info(f"  Relative drift: {report.relative_drift:.2e}")

    def log_error_report(self, label: str, report):
        """Log error norms on one mesh."""
        self.info("")
        self.info(f"ERROR ({label}):")
        self.info(f"  L2 error: {report.l2_error:.6e}")
        self.info(f"  Linf error: {report.linf_error:.6e}")
        self.info(f"  dx: {report.effective_spacing:.6e}")
        self.info(f"  dx²: {report.spacing_squared:.6e}")
        self.info(f"  Cells: {report.cell_count}")

    def log_cyclic_result(self, result):
        """Log outcome of the cyclic stability test."""
        self.info("")
        self.info("=" * 70)
        self.info("CYCLIC STABILITY")
        self.info("=" * 70)
        self.info(f"  Field: {result.kind.name}")
        self.info(f"  Method: {result.method.name}")
        self.info(f"  Cycles: {result.n_cycles}")
        self.info(f"  Max drift: {result.max_drift:.6e}")
        self.info(f"  Final drift: {result.conservation.absolute_drift:.6e}")

        self.log_error_report("source", result.source_error)
        self.log_error_report("target", result.target_error)

        self.info("=" * 70)

    def log_timing(self, timing: Dict[str, float]):
        """Log timing breakdown."""
        self.info("")
        self.info("=" * 70)
        self.info("TIMING")
        self.info("=" * 70)

        for key, value in sorted(timing.items()):
            if key != 'total':
                self.info(f"  {key}: {value:.3f} s")

        self.info(f"  {'-' * 40}")
        total = timing.get('total', sum(timing.values()))
        self.info(f"  TOTAL: {total:.3f} s")

        self.info("=" * 70)

    def finalize(self):
        """Write final summary and release the log file."""
        self.info("")
        self.info("=" * 70)
        self.info("SUMMARY")
        self.info("=" * 70)

        if self.errors:
            self.info(f"ERRORS: {len(self.errors)}")
            for i, err in enumerate(self.errors, 1):
                self.info(f"  {i}. {err}")
        else:
            self.info("ERRORS: None")

        if self.warnings:
            self.info(f"WARNINGS: {len(self.warnings)}")
            for i, warn in enumerate(self.warnings, 1):
                self.info(f"  {i}. {warn}")
        else:
            self.info("WARNINGS: None")

        self.info("")
        self.info(f"Log file: {self.log_file}")
        self.info(f"Completed: {datetime.now().isoformat()}")
        self.info("=" * 70)

        for handler in self.logger.handlers:
            handler.close()


def _fmt(value) -> str:
    if np.ndim(value):
        return "(" + " ".join(f"{v:.12e}" for v in value) + ")"
    return f"{value:.12e}"
