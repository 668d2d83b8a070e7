"""
Summary Figures for Remap Verification Runs.

Renders the first z-layer of box-mesh fields with their true cell edges, so
source and target resolutions are visible side by side.
"""

import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.colors import LinearSegmentedColormap
from pathlib import Path
from typing import Dict, Any, Optional


class FieldPlotter:
    """
    Create summary figures for mapping and cyclic remap results.

    Only box meshes are drawn; fields are shown on the lowest z-layer.
    """

    COLOR_BG = '#101418'
    COLOR_BG_PANEL = '#1A2028'
    COLOR_FIELD_LOW = '#1B2A49'
    COLOR_FIELD_MID = '#3E7CB1'
    COLOR_FIELD_HIGH = '#F2D492'
    COLOR_ACCENT = '#F29559'
    COLOR_GRID = '#2E3A46'
    COLOR_TEXT = '#D6DEE6'
    COLOR_TITLE = '#FFFFFF'

    def __init__(self, dpi: int = 150):
        """
        Initialize plotter.

        Args:
            dpi: Resolution for output images
        """
        self.dpi = dpi
        self._setup_style()

    def _setup_style(self):
        """Setup matplotlib dark theme."""
        plt.style.use('dark_background')
        plt.rcParams.update({
            'figure.facecolor': self.COLOR_BG,
            'axes.facecolor': self.COLOR_BG_PANEL,
            'axes.edgecolor': self.COLOR_GRID,
            'axes.labelcolor': self.COLOR_TEXT,
            'axes.titlecolor': self.COLOR_TITLE,
            'xtick.color': self.COLOR_TEXT,
            'ytick.color': self.COLOR_TEXT,
            'text.color': self.COLOR_TEXT,
            'grid.color': self.COLOR_GRID,
            'grid.alpha': 0.3,
            'font.family': 'sans-serif',
            'font.size': 11,
            'axes.labelsize': 12,
            'axes.titlesize': 14,
            'mathtext.fontset': 'cm',
        })

    def _field_cmap(self) -> LinearSegmentedColormap:
        colors = [
            self.COLOR_FIELD_LOW,
            self.COLOR_FIELD_MID,
            self.COLOR_FIELD_HIGH,
        ]
        return LinearSegmentedColormap.from_list('remap_field', colors, N=256)

    @staticmethod
    def _layer(field) -> np.ndarray:
        """First z-layer of a box-mesh field as a (ny, nx) array."""
        nx, ny, nz = field.mesh.shape
        return field.internal.reshape(nz, ny, nx)[0]

    def _draw_field(self, fig, ax, field, title, cmap, vmin=None, vmax=None, label=''):
        x_edges, y_edges, _ = field.mesh.edges
        im = ax.pcolormesh(
            x_edges, y_edges, self._layer(field),
            cmap=cmap, vmin=vmin, vmax=vmax, shading='flat'
        )
        ax.set_xlabel('$x$', fontweight='bold')
        ax.set_ylabel('$y$', fontweight='bold')
        ax.set_title(title, fontweight='bold')
        ax.set_aspect('equal')
        cbar = fig.colorbar(im, ax=ax, pad=0.02)
        cbar.set_label(label)

    def create_summary_plot(
        self,
        result,
        filepath: str,
        diagnostics: Optional[Dict[str, Any]] = None
    ):
        """
        Create a 2×3 summary figure.

        Layout:
        - Row 1: Source field, Target field, Target |error|
        - Row 2: Source |error|, Drift history, Diagnostics

        Args:
            result: CyclicResult or MappingErrorResult on box meshes
            filepath: Output file path
            diagnostics: Optional flat metric dictionary
        """
        for field in (result.source_field, result.target_field):
            if not field.mesh.is_box:
                raise ValueError(f"Plotting needs a box mesh, got '{field.mesh.name}'")

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        fig = plt.figure(figsize=(18, 11), facecolor=self.COLOR_BG)
        fig.suptitle(
            f'{result.kind.name} remapped with {result.method.name}',
            fontsize=16, fontweight='bold', color=self.COLOR_TITLE, y=0.98
        )

        cmap = self._field_cmap()
        values = np.concatenate([result.source_field.internal, result.target_field.internal])
        vmin, vmax = float(values.min()), float(values.max())

        source_mesh = result.source_field.mesh
        target_mesh = result.target_field.mesh

        # ====== Row 1 ======
        ax1 = fig.add_subplot(231)
        self._draw_field(
            fig, ax1, result.source_field,
            f'Source ({source_mesh.n_cells} cells)', cmap, vmin, vmax, result.source_field.name
        )

        ax2 = fig.add_subplot(232)
        self._draw_field(
            fig, ax2, result.target_field,
            f'Target ({target_mesh.n_cells} cells)', cmap, vmin, vmax, result.target_field.name
        )

        ax3 = fig.add_subplot(233)
        self._draw_field(
            fig, ax3, result.target_error.per_cell_abs_error,
            'Target $|\\phi - f|$', 'magma', label='absolute error'
        )

        # ====== Row 2 ======
        ax4 = fig.add_subplot(234)
        self._draw_field(
            fig, ax4, result.source_error.per_cell_abs_error,
            'Source $|\\phi - f|$', 'magma', label='absolute error'
        )

        ax5 = fig.add_subplot(235)
        drift = getattr(result, 'drift_history', None)
        if drift is not None and len(drift):
            cycles = np.arange(1, len(drift) + 1)
            ax5.semilogy(cycles, np.maximum(drift, 1e-300), color=self.COLOR_ACCENT, lw=2)
            ax5.set_xlabel('Cycle', fontweight='bold')
            ax5.set_ylabel('$|I_0 - I_{target}|$', fontweight='bold')
            ax5.set_title('Conservation Drift', fontweight='bold')
            ax5.grid(True, alpha=0.3)
        else:
            ax5.axis('off')
            ax5.set_title('Conservation Drift (single remap)', fontweight='bold')

        ax6 = fig.add_subplot(236)
        ax6.axis('off')

        diag = diagnostics if diagnostics else result.as_dict()
        info_lines = ["REMAP DIAGNOSTICS", "─" * 35]
        info_lines.append(f"Source integral: {diag.get('integral_source', np.nan):.10e}")
        info_lines.append(f"Target integral: {diag.get('integral_target', np.nan):.10e}")
        info_lines.append(f"Relative drift: {diag.get('drift_relative', np.nan):.2e}")
        info_lines.append("")
        info_lines.append(f"Target L2: {diag.get('target_l2_error', np.nan):.4e}")
        info_lines.append(f"Target Linf: {diag.get('target_linf_error', np.nan):.4e}")
        info_lines.append(f"Target dx: {diag.get('target_dx', np.nan):.4e}")
        if 'n_cycles' in diag:
            info_lines.append(f"Cycles: {diag['n_cycles']}")

        ax6.text(
            0.05, 0.95, "\n".join(info_lines),
            transform=ax6.transAxes,
            fontsize=11, fontfamily='monospace',
            color=self.COLOR_TEXT,
            verticalalignment='top',
            bbox=dict(
                boxstyle='round,pad=0.5',
                facecolor=self.COLOR_BG_PANEL,
                edgecolor=self.COLOR_GRID,
                alpha=0.9
            )
        )

        plt.tight_layout(rect=[0, 0, 1, 0.95])
        plt.savefig(
            filepath, dpi=self.dpi,
            facecolor=self.COLOR_BG, edgecolor='none',
            bbox_inches='tight'
        )
        plt.close(fig)
