"""Analysis and plotting of online evaluation runs."""

from .plotting import plot_sensitivity, plot_loss_and_gradient

__all__ = ['plot_sensitivity', 'plot_loss_and_gradient']
