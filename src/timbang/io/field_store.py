"""
NetCDF Field Store Keyed by Field Name and Time.

Layout on disk:

    <case_dir>/
        0/
            alpha.nc
            grad(alpha).nc
        0.5/
            U.nc
        constant/          (ignored by time selection)

Each file holds one field:
    - dimensions: cell, component (vector fields), face_<patch>
    - variables: internal (cell[, component]), boundary_<patch> (face_<patch>[, component])
    - attributes: field_name, field_class, boundary_type, time_name, n_cells
"""

import numpy as np
from netCDF4 import Dataset
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Sequence, Type

from ..core.mesh import Mesh
from ..core.fields import ScalarField, VectorField, READ_LOADED


FIELD_CLASSES: Dict[str, Type[ScalarField]] = {
    ScalarField.field_class: ScalarField,
    VectorField.field_class: VectorField,
}


def nearest_time_index(times: Sequence[str], t: float) -> int:
    """
    Index of the time name numerically closest to t.

    Non-numeric names such as "constant" are skipped.

    Returns:
        Index into times, or -1 if no numeric time exists
    """
    nearest_index = -1
    nearest_diff = np.inf

    for index, name in enumerate(times):
        try:
            value = float(name)
        except ValueError:
            continue

        diff = abs(value - t)
        if diff < nearest_diff:
            nearest_diff = diff
            nearest_index = index

    return nearest_index


class FieldStore:
    """
    Read and write fields of one case directory.

    Example:
        >>> store = FieldStore("cases/target")
        >>> if store.header_ok("alpha", "0", mesh):
        ...     alpha = store.read("alpha", "0", mesh)
    """

    def __init__(self, case_dir: str):
        self.case_dir = Path(case_dir)

    def path(self, name: str, time_name: str) -> Path:
        return self.case_dir / time_name / f"{name}.nc"

    def times(self) -> List[str]:
        """Time directory names sorted by value; non-numeric names last."""
        if not self.case_dir.exists():
            return []

        names = [p.name for p in self.case_dir.iterdir() if p.is_dir()]

        def _key(name):
            try:
                return (0, float(name))
            except ValueError:
                return (1, 0.0)

        return sorted(names, key=_key)

    def select_time(self, t: float) -> str:
        """Name of the stored time nearest to t."""
        times = self.times()
        index = nearest_time_index(times, t)
        if index < 0:
            raise FileNotFoundError(f"No time directories in {self.case_dir}")
        return times[index]

    def header_ok(self, name: str, time_name: str, mesh: Mesh = None) -> bool:
        """
        True if a readable field file exists for (name, time_name).

        When a mesh is given the stored cell count must match it.
        """
        path = self.path(name, time_name)
        if not path.is_file():
            return False

        try:
            with Dataset(path, 'r') as nc:
                attrs = nc.ncattrs()
                if 'field_class' not in attrs or 'internal' not in nc.variables:
                    return False
                if nc.getncattr('field_class') not in FIELD_CLASSES:
                    return False
                if mesh is not None and int(nc.getncattr('n_cells')) != mesh.n_cells:
                    return False
        except OSError:
            return False

        return True

    def list_fields(self, time_name: str) -> Dict[str, str]:
        """Field name -> field class for every valid file under a time."""
        time_dir = self.case_dir / time_name
        if not time_dir.is_dir():
            return {}

        fields = {}
        for path in sorted(time_dir.glob("*.nc")):
            if not self.header_ok(path.stem, time_name):
                continue
            with Dataset(path, 'r') as nc:
                fields[path.stem] = nc.getncattr('field_class')
        return fields

    def read(self, name: str, time_name: str, mesh: Mesh) -> ScalarField:
        """
        Load a field onto a mesh.

        Raises:
            FileNotFoundError: if no valid file exists
            ValueError: if stored sizes do not match the mesh
        """
        if not self.header_ok(name, time_name):
            raise FileNotFoundError(f"No valid field '{name}' at time {time_name} in {self.case_dir}")

        with Dataset(self.path(name, time_name), 'r') as nc:
            cls = FIELD_CLASSES[nc.getncattr('field_class')]
            internal = np.array(nc.variables['internal'][:], dtype=np.float64)

            boundary = {}
            for patch in mesh.patches:
                var_name = f'boundary_{patch.name}'
                if var_name not in nc.variables:
                    raise ValueError(
                        f"Field '{name}' has no values for patch '{patch.name}' "
                        f"of mesh '{mesh.name}'"
                    )
                boundary[patch.name] = np.array(nc.variables[var_name][:], dtype=np.float64)

            boundary_type = nc.getncattr('boundary_type')

        return cls(
            name=name,
            mesh=mesh,
            internal=internal,
            boundary=boundary,
            boundary_type=boundary_type,
            time_name=time_name,
            read_state=READ_LOADED,
        )

    def write(self, field: ScalarField, time_name: str = None) -> Path:
        """Persist a field and mark it written."""
        time_name = time_name or field.time_name
        path = self.path(field.name, time_name)
        path.parent.mkdir(parents=True, exist_ok=True)

        is_vector = field.internal.ndim == 2

        with Dataset(path, 'w', format='NETCDF4') as nc:
            nc.createDimension('cell', field.mesh.n_cells)
            if is_vector:
                nc.createDimension('component', 3)

            cell_dims = ('cell', 'component') if is_vector else ('cell',)
            nc_int = nc.createVariable('internal', 'f8', cell_dims, zlib=True)
            nc_int[:] = field.internal
            nc_int.long_name = f'{field.name} cell values'

            for patch in field.mesh.patches:
                dim = f'face_{patch.name}'
                nc.createDimension(dim, patch.n_faces)
                dims = (dim, 'component') if is_vector else (dim,)
                nc_b = nc.createVariable(f'boundary_{patch.name}', 'f8', dims, zlib=True)
                if patch.n_faces:
                    nc_b[:] = field.boundary[patch.name]
                nc_b.patch_type = patch.patch_type

            nc.field_name = field.name
            nc.field_class = field.field_class
            nc.boundary_type = field.boundary_type
            nc.time_name = time_name
            nc.mesh_name = field.mesh.name
            nc.n_cells = field.mesh.n_cells
            nc.history = f'Created {datetime.now().isoformat()}'
            nc.source = 'timbang'

        field.written = True
        return path
