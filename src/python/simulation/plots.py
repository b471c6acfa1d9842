"""
Plotting utilities for attitude filter runs.
Time histories of estimated vs true attitude, estimation errors and the
adaptive external-acceleration state, saved as PNG files.
"""

import os

import numpy as np
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for saving
import matplotlib.pyplot as plt


# ---------------------------------------------------------------------------
# PlotStyle -- shared styling helpers
# ---------------------------------------------------------------------------

class PlotStyle:
    """Centralised styling and figure management for run plots."""

    COLORS = {
        'primary': '#2E86AB',      # Steel blue
        'secondary': '#A23B72',    # Magenta
        'accent1': '#F18F01',      # Orange
        'warning': '#F57C00',      # Amber
        'neutral': '#546E7A',      # Blue grey
    }

    PALETTE = ['#2E86AB', '#F18F01', '#2E7D32']

    @staticmethod
    def setup_style():
        plt.rcParams.update({
            'font.size': 11,
            'axes.labelsize': 12,
            'axes.titlesize': 13,
            'legend.fontsize': 9,
            'axes.grid': True,
            'grid.alpha': 0.3,
            'axes.spines.top': False,
            'axes.spines.right': False,
            'lines.linewidth': 1.4,
        })

    @staticmethod
    def create_figure(nrows=1, ncols=1, figsize=None):
        fig, axes = plt.subplots(nrows, ncols, figsize=figsize, sharex=True)
        return fig, np.atleast_1d(axes)

    @staticmethod
    def save_figure(fig, filepath, dpi=150):
        """Save *fig* to *filepath*, creating directories as needed."""
        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fig.tight_layout()
        fig.savefig(filepath, dpi=dpi, facecolor='white', edgecolor='none')
        plt.close(fig)

    @staticmethod
    def shade_external_acceleration(ax, times, flags, color, alpha=0.12):
        """Shade the spans where *flags* is True."""
        flags = np.asarray(flags, dtype=bool)
        if not flags.any():
            return
        edges = np.flatnonzero(np.diff(np.concatenate(([0], flags.astype(int), [0]))))
        for start, stop in zip(edges[::2], edges[1::2]):
            ax.axvspan(times[start], times[stop - 1], color=color, alpha=alpha)


# ---------------------------------------------------------------------------
# Standalone plotting functions
# ---------------------------------------------------------------------------

def plot_attitude(df, title, filepath):
    """Estimated and true roll / pitch / yaw (deg), one subplot per angle.

    Parameters
    ----------
    df : pandas.DataFrame  -- output of simulation.scenario.run_scenario
    title : str
    filepath : str
    """
    PlotStyle.setup_style()
    fig, axes = PlotStyle.create_figure(nrows=3, ncols=1, figsize=(10, 8))
    t = df['time'].to_numpy()

    for ax, axis, colour in zip(axes, ('roll', 'pitch', 'yaw'), PlotStyle.PALETTE):
        ax.plot(t, df[f'{axis}_true'], color='black', linestyle='--',
                linewidth=1.0, label='Truth')
        ax.plot(t, df[axis], color=colour, label='Estimate')
        PlotStyle.shade_external_acceleration(ax, t, df['external_true'],
                                              PlotStyle.COLORS['warning'])
        ax.set_ylabel(f'{axis.capitalize()} [deg]')
        ax.legend(loc='upper right')

    axes[-1].set_xlabel('Time [s]')
    fig.suptitle(title)
    PlotStyle.save_figure(fig, filepath)


def plot_attitude_error(df, title, filepath):
    """Attitude estimation errors (deg) for roll, pitch and yaw."""
    PlotStyle.setup_style()
    fig, axes = PlotStyle.create_figure(nrows=1, ncols=1, figsize=(10, 4))
    t = df['time'].to_numpy()

    for axis, colour in zip(('roll', 'pitch', 'yaw'), PlotStyle.PALETTE):
        axes[0].plot(t, df[f'{axis}_err'], color=colour, label=axis)
    PlotStyle.shade_external_acceleration(axes[0], t, df['external_true'],
                                          PlotStyle.COLORS['warning'])
    axes[0].set_ylabel('Error [deg]')
    axes[0].set_xlabel('Time [s]')
    axes[0].legend(loc='upper right')
    fig.suptitle(title)
    PlotStyle.save_figure(fig, filepath)


def plot_adaptive_state(df, title, filepath):
    """Covariance trace, Qstar trace and the detection flag over time."""
    PlotStyle.setup_style()
    fig, axes = PlotStyle.create_figure(nrows=3, ncols=1, figsize=(10, 8))
    t = df['time'].to_numpy()

    axes[0].semilogy(t, df['trace_P'], color=PlotStyle.COLORS['primary'])
    axes[0].set_ylabel('trace(P)')

    axes[1].plot(t, df['trace_qstar'], color=PlotStyle.COLORS['secondary'])
    axes[1].set_ylabel('trace(Q*)')

    axes[2].step(t, df['external_detected'].astype(int), where='post',
                 color=PlotStyle.COLORS['accent1'], label='Detected')
    axes[2].step(t, df['external_true'].astype(int), where='post',
                 color=PlotStyle.COLORS['neutral'], linestyle='--', label='Truth')
    axes[2].set_ylabel('External acc.')
    axes[2].set_yticks([0, 1])
    axes[2].legend(loc='upper right')

    axes[-1].set_xlabel('Time [s]')
    fig.suptitle(title)
    PlotStyle.save_figure(fig, filepath)
