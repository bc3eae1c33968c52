"""Plotting utilities for analysis."""

import numpy as np
import matplotlib.pyplot as plt
import torch
from typing import Optional

from models import RecurrentStructure


def plot_sensitivity(
    sensitivity: torch.Tensor,
    structure: RecurrentStructure,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """
    Heatmap of the sensitivity tensor d activation_k / d parameter_p.

    Args:
        sensitivity: [number_of_parameters, number_of_neurons]
        structure: Structure the sensitivity belongs to (for axis labels)
        save_path: Optional path to save figure
    """
    values = sensitivity.detach().cpu().numpy()
    vmax = max(np.abs(values).max(), 1e-12) if values.size else 1.0

    fig, ax = plt.subplots(figsize=(max(4, 0.6 * structure.number_of_neurons + 2), 6))
    im = ax.imshow(values, aspect='auto', cmap='RdBu_r', vmin=-vmax, vmax=vmax,
                   interpolation='nearest')
    fig.colorbar(im, ax=ax, label='Sensitivity')

    # Separate hidden and output neurons
    if structure.hidden > 0:
        ax.axvline(structure.hidden - 0.5, color='k', linewidth=1)
    ax.set_xticks(range(structure.number_of_neurons))
    ax.set_xticklabels([f'h{k}' for k in range(structure.hidden)] +
                       [f'o{k}' for k in range(structure.outputs)])
    ax.set_xlabel('Neuron')
    ax.set_ylabel('Parameter')
    ax.set_title('Sensitivity tensor')
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    return fig


def plot_loss_and_gradient(
    losses: np.ndarray,
    gradient_norms: np.ndarray,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """
    Per-step loss and norm of the per-step gradient contribution.

    Args:
        losses: [T] loss of each step (0 where no loss was applied)
        gradient_norms: [T] norm of each step's gradient contribution
        save_path: Optional path to save figure
    """
    fig, axes = plt.subplots(2, 1, figsize=(10, 5), sharex=True)
    time = np.arange(len(losses))

    axes[0].plot(time, losses, color='tab:blue')
    axes[0].set_ylabel('Loss')
    axes[0].grid(True, alpha=0.3)

    axes[1].semilogy(time, np.maximum(gradient_norms, 1e-16), color='tab:red')
    axes[1].set_ylabel('|gradient|')
    axes[1].set_xlabel('Time step')
    axes[1].grid(True, alpha=0.3)

    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    return fig
