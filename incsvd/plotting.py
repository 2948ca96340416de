"""Plotting utilities for incremental SVD runs."""

from __future__ import annotations

import matplotlib.pyplot as plt
import numpy as np


def plot_singular_values(values: list[np.ndarray],
                         labels: list[str],
                         title: str = "Singular values",
                         outfile: str | None = None) -> None:
    """Plot the singular value decay of one or more bases.

    Parameters
    ----------
    values : list of ndarrays
        Singular values of each basis, e.g. one array per time interval.
    labels : list of str
        Legend label for each array.
    title : str, optional
        Title of the plot.
    outfile : str, optional
        If provided, the figure is saved to this path instead of shown.
    """
    fig, ax = plt.subplots(figsize=(6, 4))
    for s, label in zip(values, labels):
        ax.semilogy(np.arange(1, len(s) + 1), s, marker="o", markersize=3, label=label)
    ax.set_xlabel("Index")
    ax.set_ylabel("Singular value")
    ax.set_title(title)
    ax.grid(True, which="both", linestyle="--", linewidth=0.5)
    if labels:
        ax.legend(loc="best")
    plt.tight_layout()
    if outfile:
        plt.savefig(outfile)
        plt.close(fig)
    else:
        plt.show()


def plot_time_series(times: np.ndarray,
                     series_list: list[np.ndarray],
                     labels: list[str],
                     title: str,
                     ylabel: str,
                     logy: bool = False,
                     vlines: list[float] | None = None,
                     vline_style: dict | None = None,
                     outfile: str | None = None) -> None:
    """Plot one or more time series on a single axis.

    Typical uses are the basis rank or the orthogonality error over
    simulation time, with the time interval start times as ``vlines``.

    Parameters
    ----------
    times : ndarray of shape (T,)
        Sample times.
    series_list : list of ndarrays
        Each element is an array of length T.
    labels : list of str
        Legend labels for each series.
    title : str
        Plot title.
    ylabel : str
        Label for y-axis.
    logy : bool, optional
        If True, use a logarithmic y-scale.
    vlines : list of float, optional
        Times at which to draw vertical reference lines.
    vline_style : dict, optional
        Matplotlib style kwargs for vlines (color, linestyle, etc.).
    outfile : str, optional
        If given, save to this path instead of showing.
    """
    fig, ax = plt.subplots(figsize=(10, 4))

    for series, label in zip(series_list, labels):
        ax.plot(times, series, label=label)

    if logy:
        ax.set_yscale("log")

    ax.set_xlabel("Time")
    ax.set_ylabel(ylabel)
    ax.set_title(title)
    ax.grid(True, linestyle="--", linewidth=0.5)

    if vlines:
        style = {"color": "k", "linestyle": "--", "linewidth": 0.8}
        if vline_style is not None:
            style.update(vline_style)
        for t in vlines:
            ax.axvline(x=t, **style)

    if labels:
        ax.legend(loc="best")

    plt.tight_layout()
    if outfile:
        plt.savefig(outfile)
        plt.close(fig)
    else:
        plt.show()
