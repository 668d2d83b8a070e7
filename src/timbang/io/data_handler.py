"""
Data Handler for Remap Verification Runs.

Saves results to:
    - CSV: scalar metrics with units, per-cycle drift history, case comparison
    - NetCDF: gridded source/target/error fields of a box-mesh run
"""

import numpy as np
import pandas as pd
from netCDF4 import Dataset
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional


class DataHandler:
    """Handle saving run data to various formats."""

    @staticmethod
    def save_diagnostics_csv(filepath: str, diagnostics: Dict[str, Any]):
        """
        Save scalar metrics to CSV.

        Args:
            filepath: Output file path
            diagnostics: Dictionary of metrics
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        rows = []
        for key, value in sorted(diagnostics.items()):
            if isinstance(value, (int, float, bool, np.integer, np.floating)):
                rows.append({
                    'Metric': key,
                    'Value': value,
                    'Units': DataHandler._get_metric_units(key),
                })

        df = pd.DataFrame(rows, columns=['Metric', 'Value', 'Units'])
        df.to_csv(filepath, index=False)

    @staticmethod
    def _get_metric_units(metric_name: str) -> str:
        """Get units for a metric (prefixes such as 'source_' are ignored)."""
        units_map = {
            'integral_source': 'field * volume',
            'integral_target': 'field * volume',
            'drift_absolute': 'field * volume',
            'drift_relative': 'dimensionless',
            'max_drift': 'field * volume',
            'l2_error': 'field',
            'linf_error': 'field',
            'dx': 'length',
            'dx2': 'length²',
            'n_cells': 'count',
            'n_cycles': 'count',
            'convergence_order': 'dimensionless',
        }
        if metric_name in units_map:
            return units_map[metric_name]
        for prefix in ('source_', 'target_', 'mapping_', 'cyclic_'):
            if metric_name.startswith(prefix):
                return DataHandler._get_metric_units(metric_name[len(prefix):])
        return 'unknown'

    @staticmethod
    def save_cycle_history_csv(filepath: str, drift_history: np.ndarray,
                               initial_integral: float, source_magnitude: float = 0.0):
        """
        Save conservation drift after every cycle.

        Args:
            filepath: Output file path
            drift_history: |I₀ - I_target| per cycle
            initial_integral: I₀
            source_magnitude: Σ V |φ₀|; relative drift uses max(|I₀|, this)
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        drift_history = np.asarray(drift_history, dtype=np.float64)
        scale = max(abs(initial_integral), source_magnitude)

        df = pd.DataFrame({
            'cycle': np.arange(1, drift_history.size + 1),
            'drift_absolute': drift_history,
            'drift_relative': drift_history / scale if scale > 0 else np.zeros_like(drift_history),
        })
        df.to_csv(filepath, index=False, float_format='%.8e')

    @staticmethod
    def save_comparison_csv(filepath: str, results: Dict[str, Dict[str, Any]]):
        """
        Save comparison table across multiple cases.

        Args:
            filepath: Output file path
            results: Case name -> flat metric dictionary
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        rows = []
        for case_name, metrics in results.items():
            rows.append({
                'Case': case_name,
                'Method': metrics.get('method', ''),
                'Cycles': metrics.get('cyclic_n_cycles', np.nan),
                'Mapping L2': metrics.get('mapping_target_l2_error', np.nan),
                'Mapping Linf': metrics.get('mapping_target_linf_error', np.nan),
                'Mapping drift': metrics.get('mapping_drift_relative', np.nan),
                'Cyclic L2': metrics.get('cyclic_target_l2_error', np.nan),
                'Cyclic drift': metrics.get('cyclic_drift_relative', np.nan),
            })

        df = pd.DataFrame(rows)
        df.to_csv(filepath, index=False, float_format='%.4e')

    @staticmethod
    def save_netcdf(
        filepath: str,
        result,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Save the final fields of a harness run on box meshes.

        Fields are stored as (z, y, x) grids per mesh, prefixed 'source_'
        and 'target_'.

        Args:
            filepath: Output file path
            result: CyclicResult or MappingErrorResult
            config: Optional configuration dictionary
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with Dataset(filepath, 'w', format='NETCDF4') as nc:
            for role, field, error in (
                ('source', result.source_field, result.source_error),
                ('target', result.target_field, result.target_error),
            ):
                mesh = field.mesh
                if not mesh.is_box:
                    raise ValueError(f"Gridded output needs a box mesh, got '{mesh.name}'")

                nx, ny, nz = mesh.shape
                dims = (f'{role}_z', f'{role}_y', f'{role}_x')

                for axis, n, edges in zip('xyz', (nx, ny, nz), mesh.edges):
                    dim = f'{role}_{axis}'
                    nc.createDimension(dim, n)
                    nc_c = nc.createVariable(dim, 'f8', (dim,), zlib=True)
                    nc_c[:] = 0.5 * (edges[:-1] + edges[1:])
                    nc_c.long_name = f'{role} cell centre {axis}'
                    nc_c.axis = axis.upper()

                nc_f = nc.createVariable(f'{role}_{field.name}', 'f8', dims, zlib=True)
                nc_f[:] = field.internal.reshape(nz, ny, nx)
                nc_f.long_name = f'{field.name} on {role} mesh'

                nc_e = nc.createVariable(f'{role}_iError', 'f8', dims, zlib=True)
                nc_e[:] = error.per_cell_abs_error.internal.reshape(nz, ny, nx)
                nc_e.long_name = f'absolute error on {role} mesh'

                nc_v = nc.createVariable(f'{role}_volume', 'f8', dims, zlib=True)
                nc_v[:] = mesh.cell_volumes.reshape(nz, ny, nx)
                nc_v.long_name = f'{role} cell volume'

            drift_history = getattr(result, 'drift_history', None)
            if drift_history is not None:
                nc.createDimension('cycle', len(drift_history))
                nc_d = nc.createVariable('drift', 'f8', ('cycle',), zlib=True)
                nc_d[:] = drift_history
                nc_d.long_name = 'conservation drift after each cycle'

            for key, value in result.as_dict().items():
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    nc_var = nc.createVariable(f'diag_{key}', 'f8')
                    nc_var[()] = float(value)
                    nc_var.long_name = key.replace('_', ' ')
                    nc_var.units = DataHandler._get_metric_units(key)

            nc.title = f'Remap verification: {result.kind.name}, {result.method.name}'
            nc.institution = 'timbang'
            nc.source = 'timbang'
            nc.history = f'Created {datetime.now().isoformat()}'
            nc.test_kind = result.kind.name
            nc.method = result.method.name

            if config:
                nc.scenario_name = config.get('scenario_name', 'unknown')
                nc.n_threads = int(config.get('n_threads', 1))
