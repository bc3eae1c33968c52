"""Non-recurrent evaluation of a network structure."""

import torch

from .errors import ShapeError
from .structure import RecurrentStructure


class FeedForwardNet:
    """
    Evaluates a structure that has no recurrent neuron connections.

    Every neuron only depends on the inputs, the bias and lower-indexed
    neurons of the same pattern, so a whole batch can be evaluated at once
    and no state is carried between calls.
    """

    def __init__(self, structure: RecurrentStructure):
        if structure.has_recurrence:
            raise ValueError("FeedForwardNet requires a structure without recurrent connections")
        self.structure = structure

    @property
    def input_size(self) -> int:
        return self.structure.inputs

    @property
    def output_size(self) -> int:
        return self.structure.outputs

    @property
    def number_of_parameters(self) -> int:
        return self.structure.number_of_parameters

    def parameter_vector(self) -> torch.Tensor:
        return self.structure.parameter_vector()

    def set_parameter_vector(self, parameters) -> None:
        self.structure.set_parameter_vector(parameters)

    def create_state(self) -> None:
        return None

    def step(self, inputs, state=None) -> torch.Tensor:
        """Evaluate a single pattern; the state is ignored."""
        inputs = torch.as_tensor(inputs, dtype=torch.float64)
        return self(inputs.unsqueeze(0))[0]

    def __call__(self, patterns) -> torch.Tensor:
        """
        Args:
            patterns: [batch_size, input_size]

        Returns:
            outputs: [batch_size, output_size]
        """
        s = self.structure
        patterns = torch.as_tensor(patterns, dtype=torch.float64)
        if patterns.dim() != 2 or patterns.shape[1] != s.inputs:
            raise ShapeError(
                f"patterns must have shape (batch_size, {s.inputs}), got {tuple(patterns.shape)}"
            )
        batch_size = patterns.shape[0]
        units = torch.zeros(batch_size, s.number_of_units, dtype=torch.float64)
        units[:, :s.inputs] = patterns
        units[:, s.bias_index] = 1.0

        offset = s.neuron_offset
        for k in range(s.number_of_neurons):
            net = units[:, :offset] @ s.input_weights[k]
            net = net + units[:, offset:offset + k] @ s.feedforward_weights[k, :k]
            units[:, offset + k] = s.activation(net)
        return units[:, s.output_offset:]
