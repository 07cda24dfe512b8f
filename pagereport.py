"""
Comparison reports: a plain-text summary table and a bar chart of page faults
"""

from typing import Dict, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from pagepolicies import ALGORITHMS

MAX_PAGES_SHOWN = 20


def _describe(algorithm_name: str) -> str:
    algo_class = ALGORITHMS.get(algorithm_name)
    return algo_class.description if algo_class else "No description available"


def format_comparison_report(results: Dict[str, Dict], pages: Sequence[int],
                             frame_size: int) -> str:
    """Text report of compare_all_algorithms() output, best algorithm first"""
    pages = list(pages)
    shown = ", ".join(str(p) for p in pages[:MAX_PAGES_SHOWN])
    if len(pages) > MAX_PAGES_SHOWN:
        shown += "..."

    succeeded = {name: r for name, r in results.items() if 'error' not in r}
    ranked = sorted(succeeded, key=lambda name: succeeded[name]['faults'])

    lines = [
        "Simulation Parameters:",
        f"- Page Reference String: [{shown}]",
        f"- Number of Pages: {len(pages)}",
        f"- Frame Size: {frame_size}",
        "",
        "Results:",
        f"{'Algorithm':<15} {'Page Faults':<15} {'Fault Rate':<15}",
        "-" * 45,
    ]
    for name in ranked:
        stats = succeeded[name]
        lines.append(f"{name:<15} {stats['faults']:<15} {stats['fault_rate']:.2f}%")
    for name, stats in results.items():
        if 'error' in stats:
            lines.append(f"{name:<15} {'ERROR':<15} {stats['error']}")

    if ranked:
        best = ranked[0]
        lines.append("")
        lines.append(f"Best Algorithm: {best} with {succeeded[best]['faults']} page faults "
                     f"({succeeded[best]['fault_rate']:.2f}% fault rate)")

    lines.append("")
    lines.append("Algorithm Descriptions:")
    for name in results:
        lines.append(f"{name}: {_describe(name)}")
    return "\n".join(lines)


def plot_comparison(results: Dict[str, Dict], path: Optional[str] = None):
    """
    Bar chart of page faults per algorithm. Failed algorithms are left out.
    Saves to path when one is given; returns the matplotlib Figure
    """
    names = [name for name, r in results.items() if 'error' not in r]
    faults = np.array([results[name]['faults'] for name in names])
    x = np.arange(len(names))

    fig, ax = plt.subplots(figsize=(10, 5))
    bars = ax.bar(x, faults, 0.6)
    for bar in bars:
        height = bar.get_height()
        ax.text(bar.get_x() + bar.get_width() / 2., height,
                f'{int(height)}', ha='center', va='bottom', fontsize=9)

    ax.set_title('Page Replacement Algorithm Comparison', fontweight='bold')
    ax.set_ylabel('Page Faults')
    ax.set_xticks(x)
    ax.set_xticklabels(names)
    ax.grid(axis='y', alpha=0.3)
    fig.tight_layout()

    if path:
        fig.savefig(path, dpi=150, bbox_inches='tight')
    return fig
