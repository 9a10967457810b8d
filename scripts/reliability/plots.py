"""Plotting utilities for reliability results."""
from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .components import VarianceComponentTable
from .config import DEFAULT_THRESHOLD


sns.set_style("whitegrid")


def plot_sweep(frame: pd.DataFrame, out_path: Path, threshold: float = DEFAULT_THRESHOLD) -> None:
    """Point estimates with percentile intervals against repetition count."""

    subset = frame.dropna(subset=["val"]).sort_values("n")
    plt.figure(figsize=(8, 5))
    ax = sns.lineplot(data=subset, x="n", y="val", hue="coefficient", marker="o", errorbar=None)
    for _, group in subset.groupby("coefficient"):
        ax.fill_between(group["n"], group["lower"], group["upper"], alpha=0.2)
    plt.axhline(threshold, color="black", linewidth=1, linestyle="--")
    plt.xlabel("Averaged repetitions (n)")
    plt.ylabel("ICC")
    plt.ylim(0, 1.05)
    plt.tight_layout()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(out_path, dpi=200)
    plt.close()


def plot_variance_components(table: VarianceComponentTable, out_path: Path) -> None:
    frame = table.to_frame()
    plt.figure(figsize=(6, 4))
    sns.barplot(data=frame, x="facet", y="proportion", color="#ff7f0e")
    plt.ylabel("Share of total variance")
    plt.xlabel("Facet")
    plt.ylim(0, 1)
    plt.xticks(rotation=30, ha="right")
    plt.tight_layout()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(out_path, dpi=200)
    plt.close()


__all__ = ["plot_sweep", "plot_variance_components"]
