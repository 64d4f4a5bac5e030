"""
Curve Visualizer for chart difficulty fingerprints.
Plots combo% -> throughput, miss count -> throughput, cheese level -> factor
and mash level -> tap difficulty for one chart JSON file.

Usage:
    python -m scripts.curve_visualizer path/to/chart.json [clock_rate]
"""

import json
import os
import sys

import matplotlib.pyplot as plt
from loguru import logger

from src.difficulty.core import Chart
from src.difficulty.models import Mods
from src.difficulty.pipeline import ChartDifficultyCalculator


def plot_fingerprint(fingerprint, title, out_path=None):
    """지문의 4개 곡선을 2x2 그리드로 그립니다."""
    fig, axs = plt.subplots(2, 2, figsize=(12, 9))
    section_count = len(fingerprint.combo_tps)

    # (1) Combo
    combo = [(i + 1) / section_count * 100 for i in range(section_count)]
    axs[0, 0].plot(combo, fingerprint.combo_tps, marker="o", color="red")
    axs[0, 0].set_xlabel("Combo [%]")
    axs[0, 0].set_ylabel("Throughput")
    axs[0, 0].set_title("Combo -> Throughput")
    axs[0, 0].grid(True)

    # (2) Misses
    axs[0, 1].plot(fingerprint.miss_counts, fingerprint.miss_tps, marker="o", color="blue")
    axs[0, 1].set_xlabel("Miss count")
    axs[0, 1].set_ylabel("Throughput")
    axs[0, 1].set_title("Misses -> Throughput")
    axs[0, 1].grid(True)

    # (3) Cheese
    axs[1, 0].plot(fingerprint.cheese_levels, fingerprint.cheese_factors, marker="o", color="green")
    axs[1, 0].set_xlabel("Cheese level")
    axs[1, 0].set_ylabel("Throughput factor")
    axs[1, 0].set_title("Cheese -> Aim factor")
    axs[1, 0].grid(True)

    # (4) Mash
    axs[1, 1].plot(fingerprint.mash_levels, fingerprint.mash_tap_difficulties, marker="o", color="purple")
    axs[1, 1].set_xlabel("Mash level")
    axs[1, 1].set_ylabel("Tap difficulty")
    axs[1, 1].set_title("Mash -> Tap difficulty")
    axs[1, 1].grid(True)

    plt.suptitle(f"{title}  ({fingerprint.star_rating:.2f}*)", fontsize=16)
    plt.tight_layout(rect=[0, 0.03, 1, 0.97])

    if out_path:
        fig.savefig(out_path, dpi=120)
        logger.info(f"Saved figure to {out_path}")
    else:
        plt.show()
    return fig


def main(chart_path, clock_rate=1.0):
    with open(chart_path, encoding="utf-8") as f:
        chart = Chart.from_dict(json.load(f))

    fingerprint = ChartDifficultyCalculator().calculate(chart, Mods(clock_rate=clock_rate))
    if not fingerprint.combo_tps:
        logger.warning(f"'{chart_path}' is too short to have difficulty curves.")
        return
    plot_fingerprint(fingerprint, os.path.basename(chart_path))


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    main(sys.argv[1], float(sys.argv[2]) if len(sys.argv) > 2 else 1.0)
