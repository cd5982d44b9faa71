"""
Plotting helpers for chain output: structure bar plots of a Q-matrix and
log-likelihood traces.
"""

from __future__ import annotations

from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd


def plot_qmatrix(Q: np.ndarray, ax: Optional[plt.Axes] = None,
                 labels: Optional[Sequence[str]] = None,
                 order: str = "none", bar_width: float = 1.0,
                 cmap: str = "tab10", title: str = ""):
    """
    Stacked bar plot of a Q-matrix (rows = individuals or populations, columns = demes).

    order : "none" keeps the row order; "dominant" sorts rows by their
            largest deme and then by its proportion.
    """
    Q = np.asarray(Q, dtype=float)
    if Q.ndim != 2:
        raise ValueError("Q must be a 2D array")
    n, K = Q.shape
    if labels is not None and len(labels) != n:
        raise ValueError("labels must have one entry per row of Q")

    if order == "dominant":
        top = Q.argmax(axis=1)
        idx = np.lexsort((-Q[np.arange(n), top], top))
    elif order == "none":
        idx = np.arange(n)
    else:
        raise ValueError(f"Unknown order={order!r}")

    if ax is None:
        fig, ax = plt.subplots(figsize=(max(6, n * 0.08), 3))

    pal = plt.get_cmap(cmap)
    x = np.arange(n)
    bottom = np.zeros(n)
    for k in range(K):
        ax.bar(x, Q[idx, k], bottom=bottom, width=bar_width, color=pal(k % pal.N),
               edgecolor="none", label=f"Deme {k + 1}")
        bottom += Q[idx, k]

    ax.set_xlim(-0.5, n - 0.5)
    ax.set_ylim(0, 1)
    ax.set_ylabel("Posterior assignment")
    if labels is not None:
        ax.set_xticks(x)
        ax.set_xticklabels([labels[i] for i in idx], rotation=90, fontsize=7)
    else:
        ax.set_xticks([])
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.legend(frameon=False, loc="upper right", fontsize=7)
    ax.set_title(title or f"K = {K}")
    return ax


def plot_trace(trace: pd.DataFrame, ax: Optional[plt.Axes] = None,
               column: str = "logLikeGroup", include_burnin: bool = False):
    """Plot one column of an MCMCResult trace against iteration; burn-in rows have iteration <= 0."""
    if column not in trace.columns:
        raise ValueError(f"trace has no column {column!r}")
    df = trace if include_burnin else trace[trace["iteration"] > 0]

    if ax is None:
        fig, ax = plt.subplots()

    ax.plot(df["iteration"].to_numpy(), df[column].to_numpy(), linewidth=0.8)
    if include_burnin:
        ax.axvline(0.5, linestyle="--", color="grey", linewidth=1)
    ax.set_xlabel("Iteration")
    ax.set_ylabel(column)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    return ax
