"""Online runner - steps sequences through an OnlineRNN and accumulates RTRL gradients."""

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import torch

from analysis import plot_loss_and_gradient, plot_sensitivity
from models import OnlineRNN
from tasks import BaseTask
from runners.utils import BaseRunner


class OnlineRunner(BaseRunner):
    """Runner that evaluates a task sequence by sequence, one time step at a time.

    For every sequence a fresh state is created, the gradient of the masked
    sequence loss is accumulated online from gradient_contribution() on
    steps that carry a loss signal, and per-sequence metrics are logged.
    Parameters are never updated here.
    """

    def __init__(
        self,
        model: OnlineRNN,
        task: BaseTask,
        task_name: str = 'task',
        num_sequences: int = 10,
        teacher_forcing: bool = False,
        gradient_check: bool = False,
        fd_epsilon: float = 1e-6,
        save_figures: bool = True,
        **kwargs
    ):
        super().__init__(model=model, **kwargs)
        self.task = task
        self.task_name = task_name
        self.num_sequences = num_sequences
        self.teacher_forcing = teacher_forcing
        self.gradient_check = gradient_check
        self.fd_epsilon = fd_epsilon
        self.save_figures = save_figures

    def run_sequence(self, sequence: dict, teacher_forcing: Optional[bool] = None) -> dict:
        """Run one sequence with gradient tracking.

        Args:
            sequence: Dict with inputs [T, in], targets [T, out], loss_mask [T]
            teacher_forcing: Force the output activation to the target after
                every step (defaults to self.teacher_forcing)

        Returns:
            Dict with outputs [T, out], losses [T], gradient [P], per-step
            gradient_norms [T], the final sensitivity [P, N] and the total loss
        """
        if teacher_forcing is None:
            teacher_forcing = self.teacher_forcing
        inputs = sequence['inputs']
        targets = sequence['targets']
        loss_mask = sequence['loss_mask']
        T = inputs.shape[0]

        state = self.model.create_state(compute_gradient=True)
        outputs = torch.zeros(T, self.model.output_size, dtype=torch.float64)
        losses = torch.zeros(T, dtype=torch.float64)
        gradient = torch.zeros(self.model.number_of_parameters, dtype=torch.float64)
        gradient_norms = torch.zeros(T, dtype=torch.float64)

        for t in range(T):
            output_t = self.model.step(inputs[t], state)
            outputs[t] = output_t
            # Steps without a loss signal skip the gradient contraction
            if loss_mask[t] > 0:
                losses[t] = self.task.loss(output_t, targets[t])
                coefficients = self.task.loss_coefficients(output_t, targets[t])
                contribution = self.model.gradient_contribution(coefficients, state)
                gradient_norms[t] = contribution.norm()
                gradient += contribution
            if teacher_forcing:
                self.model.set_output_activation(state, targets[t])

        return {
            'outputs': outputs,
            'losses': losses,
            'gradient': gradient,
            'gradient_norms': gradient_norms,
            'sensitivity': state.sensitivity.clone(),
            'loss': losses.sum().item(),
        }

    def sequence_loss(self, sequence: dict, teacher_forcing: bool = False) -> float:
        """Masked sequence loss without gradient tracking."""
        state = self.model.create_state(compute_gradient=False)
        total = 0.0
        for t in range(sequence['inputs'].shape[0]):
            output_t = self.model.step(sequence['inputs'][t], state)
            if sequence['loss_mask'][t] > 0:
                total += self.task.loss(output_t, sequence['targets'][t])
            if teacher_forcing:
                self.model.set_output_activation(state, sequence['targets'][t])
        return total

    def finite_difference_gradient(self, sequence: dict, epsilon: Optional[float] = None) -> torch.Tensor:
        """Central finite differences of sequence_loss() for every parameter."""
        if epsilon is None:
            epsilon = self.fd_epsilon
        original = self.model.parameter_vector()
        gradient = torch.zeros_like(original)
        try:
            for p in range(original.numel()):
                shifted = original.clone()
                shifted[p] += epsilon
                self.model.set_parameter_vector(shifted)
                loss_plus = self.sequence_loss(sequence)
                shifted[p] -= 2 * epsilon
                self.model.set_parameter_vector(shifted)
                loss_minus = self.sequence_loss(sequence)
                gradient[p] = (loss_plus - loss_minus) / (2 * epsilon)
        finally:
            self.model.set_parameter_vector(original)
        return gradient

    def run(self) -> list[dict]:
        """Evaluate num_sequences fresh sequences and log their metrics."""
        print(f"Starting online evaluation of {self.num_sequences} sequences...")
        print(f"Task: {self.task_name}")
        print(f"Teacher forcing: {self.teacher_forcing}")
        print(f"Log directory: {self.log_dir}")
        if self.gradient_check and self.teacher_forcing:
            print("Gradient check skipped: forced outputs are not part of the RTRL derivative")

        history = []
        for i in range(self.num_sequences):
            sequence = self.task.generate_sequence()
            result = self.run_sequence(sequence)

            metrics = {
                'loss': result['loss'],
                'grad_norm': result['gradient'].norm().item(),
                'output_norm': result['outputs'].norm().item(),
            }
            task_metrics = self.task.compute_metrics(
                result['outputs'], sequence['targets'], sequence['loss_mask']
            )
            for key, value in task_metrics.items():
                metrics[f'{self.task_name}/{key}'] = value

            if self.gradient_check and not self.teacher_forcing:
                fd_gradient = self.finite_difference_gradient(sequence)
                rel_error = relative_gradient_error(result['gradient'], fd_gradient)
                metrics['gradient_check/max_rel_error'] = rel_error

            self.log_metrics(metrics)
            history.append(metrics)

            if self.step % self.log_interval == 0:
                print(f"Sequence {self.step + 1}/{self.num_sequences}: " +
                      ", ".join([f"{k}={v:.4f}" for k, v in metrics.items()]))

            if self.save_figures and i == 0:
                fig = self.task.create_sequence_figure(
                    inputs=sequence['inputs'].numpy(),
                    outputs=result['outputs'].numpy(),
                    targets=sequence['targets'].numpy(),
                    loss_mask=sequence['loss_mask'].numpy(),
                )
                self.log_figure(f'{self.task_name}/sequence_{i + 1}', fig)
                plt.close(fig)

                fig = plot_loss_and_gradient(result['losses'].numpy(), result['gradient_norms'].numpy())
                self.log_figure(f'{self.task_name}/gradient_trace', fig)
                plt.close(fig)

                fig = plot_sensitivity(result['sensitivity'], self.model.structure)
                self.log_figure(f'{self.task_name}/sensitivity', fig)
                plt.close(fig)

            self.step += 1

        mean_loss = float(np.mean([m['loss'] for m in history])) if history else float('nan')
        print(f"\nEvaluation complete! Mean sequence loss: {mean_loss:.4f}")
        return history


def relative_gradient_error(gradient: torch.Tensor, reference: torch.Tensor) -> float:
    """Largest absolute deviation relative to the largest reference magnitude."""
    if reference.numel() == 0:
        return 0.0
    scale = max(gradient.abs().max().item(), reference.abs().max().item(), 1e-8)
    return (gradient - reference).abs().max().item() / scale
