"""
Plots module: figures derived from regression results.
"""

from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .errors import ConfigurationError


def plot_forest(rows, filepath=None, title=None, exponentiate=True):
    """
    Horizontal forest plot of model estimates with confidence intervals.

    Reference-level rows are skipped.

    Args:
        rows: Sequence of RegressionRow
        filepath: Optional output path (saved at 300 dpi)
        title: Optional plot title
        exponentiate: Estimates are odds ratios (log x axis, line at 1)

    Returns:
        matplotlib Figure
    """
    rows = [row for row in rows if not row.reference and row.estimate is not None]
    if not rows:
        raise ConfigurationError("No estimates to plot")

    names = [row.label if row.level is None else f"{row.label}: {row.level}" for row in rows]
    positions = list(range(len(rows)))
    estimates = [row.estimate for row in rows]
    err_low = [row.estimate - row.ci_low for row in rows]
    err_high = [row.ci_high - row.estimate for row in rows]

    fig, ax = plt.subplots(figsize=(8, 0.5 * len(rows) + 1.5))
    ax.errorbar(estimates, positions, xerr=[err_low, err_high], fmt='o', color='black',
                ecolor='gray', capsize=3)
    ax.axvline(x=1 if exponentiate else 0, color='r', linestyle='--', linewidth=1)
    if exponentiate:
        ax.set_xscale('log')
    ax.set_yticks(positions)
    ax.set_yticklabels(names, fontsize=10)
    ax.invert_yaxis()
    ax.set_xlabel('Odds Ratio' if exponentiate else 'log(OR)', fontsize=11)
    if title:
        ax.set_title(title, fontsize=12, fontweight='bold')
    ax.grid(alpha=0.3, axis='x')
    fig.tight_layout()

    if filepath is not None:
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(filepath, dpi=300, bbox_inches='tight')
        plt.close(fig)

    return fig
