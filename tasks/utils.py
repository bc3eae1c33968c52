"""Shared utility functions and base class for sequence generation."""

import numpy as np
import torch
from typing import Optional
import matplotlib.pyplot as plt


class BaseTask:
    """
    Base class for online sequence tasks.

    A task produces one sequence at a time as a dict of float64 tensors:
        inputs: [T, input_size]
        targets: [T, output_size]
        loss_mask: [T] - 1 where the step carries a loss signal, 0 otherwise
        metadata: dict of task-specific values

    Subclasses implement:
    - get_input_output_dims()
    - _generate(seq_len): returns (inputs, targets, loss_mask, metadata) as numpy arrays
    """

    # Metrics returned by compute_metrics() - subclasses can override
    metric_names = ['mse']

    def __init__(
        self,
        seq_len: int = 100,
        input_noise_std: float = 0.0,
    ):
        """Initialize base task parameters."""
        self.seq_len = seq_len  # Default number of time steps per sequence
        self.input_noise_std = input_noise_std  # Std dev of Gaussian noise added to inputs

        # Task name for plots (can be overridden in subclasses)
        self.name = self.__class__.__name__.replace("Task", " Task")

    def get_input_output_dims(self) -> tuple[int, int]:
        """Return input and output dimensions."""
        raise NotImplementedError

    def _generate(self, seq_len: int) -> tuple[np.ndarray, np.ndarray, np.ndarray, dict]:
        raise NotImplementedError

    def generate_sequence(self, seq_len: Optional[int] = None) -> dict:
        """Generate a single sequence.

        Args:
            seq_len: Number of time steps (defaults to self.seq_len)

        Returns:
            Dictionary with inputs [T, in], targets [T, out], loss_mask [T], metadata
        """
        if seq_len is None:
            seq_len = self.seq_len
        inputs, targets, loss_mask, metadata = self._generate(seq_len)

        if self.input_noise_std > 0:
            inputs = inputs + np.random.normal(0.0, self.input_noise_std, size=inputs.shape)

        return {
            'inputs': torch.from_numpy(np.asarray(inputs, dtype=np.float64)),
            'targets': torch.from_numpy(np.asarray(targets, dtype=np.float64)),
            'loss_mask': torch.from_numpy(np.asarray(loss_mask, dtype=np.float64)),
            'metadata': metadata,
        }

    def loss(self, outputs: torch.Tensor, targets: torch.Tensor) -> float:
        """Squared error of one step: 0.5 * ||outputs - targets||^2."""
        return 0.5 * float(((outputs - targets) ** 2).sum())

    def loss_coefficients(self, outputs: torch.Tensor, targets: torch.Tensor) -> torch.Tensor:
        """Derivative of loss() with respect to the outputs of one step."""
        return outputs - targets

    def compute_metrics(
        self,
        outputs: torch.Tensor,
        targets: torch.Tensor,
        loss_mask: torch.Tensor,
    ) -> dict[str, float]:
        """Compute masked metrics over a whole sequence.

        Args:
            outputs: [T, out] network outputs
            targets: [T, out] target outputs
            loss_mask: [T] loss mask

        Returns:
            Dictionary with 'mse' (NaN if the mask is empty)
        """
        with torch.no_grad():
            active = loss_mask > 0
            if not active.any():
                return {'mse': float('nan')}
            mse = ((outputs[active] - targets[active]) ** 2).mean().item()
        return {'mse': mse}

    def create_sequence_figure(
        self,
        inputs: np.ndarray,
        outputs: np.ndarray,
        targets: np.ndarray,
        loss_mask: Optional[np.ndarray] = None,
        fig: Optional[plt.Figure] = None
    ) -> plt.Figure:
        """Create standard sequence visualization. Can be overridden for custom figures.

        Args:
            inputs: [T, in] input array
            outputs: [T, out] output array
            targets: [T, out] target array
            loss_mask: Optional [T] loss mask array
            fig: Optional existing figure to reuse (will be cleared)
        """
        if fig is None:
            fig, axes = plt.subplots(2, 1, figsize=(10, 6), sharex=True)
        else:
            fig.clear()
            axes = fig.subplots(2, 1, sharex=True)
        ax_inputs, ax_outputs = axes

        T = inputs.shape[0]
        time = np.arange(T)

        for i in range(inputs.shape[1]):
            ax_inputs.plot(time, inputs[:, i], label=f'input {i}')
        ax_inputs.set_ylabel('Input')
        ax_inputs.set_title(self.name)
        ax_inputs.legend(loc='upper right', fontsize=8)

        for i in range(outputs.shape[1]):
            line, = ax_outputs.plot(time, outputs[:, i], label=f'output {i}')
            ax_outputs.plot(time, targets[:, i], '--', color=line.get_color(), alpha=0.6,
                            label=f'target {i}')

        # Shade steps without a loss signal
        if loss_mask is not None:
            inactive = loss_mask <= 0
            if inactive.any():
                ax_outputs.fill_between(time, 0, 1, where=inactive, color='gray', alpha=0.15,
                                        transform=ax_outputs.get_xaxis_transform(),
                                        label='no loss')

        ax_outputs.set_xlabel('Time step')
        ax_outputs.set_ylabel('Output')
        ax_outputs.legend(loc='upper right', fontsize=8)
        fig.tight_layout()
        return fig
