"""Topology and weights of a fully connected recurrent network."""

from typing import Optional

import numpy as np
import torch

from .activations import Activation, get_activation
from .errors import ShapeError


class RecurrentStructure:
    """
    Connectivity, weight table and activation function of a recurrent network.

    Units are laid out as [inputs | bias | hidden neurons | output neurons].
    Every neuron k has one row in the weight table holding the weight of the
    connection from each unit j (0 if unconnected). Input and bias connections
    are read at the current time step. Neuron -> neuron connections are read
    from the previous time step unless they are marked as feedforward, in
    which case the source neuron's value from the current step is used.
    Feedforward connections must run from a lower to a higher neuron index, so
    evaluating neurons in index order respects all same-step dependencies.

    Trainable connections own one entry of the parameter vector each, ordered
    row-major over (neuron, unit). Connections that exist but are not
    trainable are constants and have parameter index -1.

    The structure is shared read-only by evaluators and their states. Weights
    must only be changed through set_parameter_vector(), set_weight() or
    init_weights(), and never while a sequence is being evaluated.
    """

    def __init__(
        self,
        inputs: int,
        hidden: int,
        outputs: int,
        connections=None,
        trainable=None,
        feedforward=None,
        activation: str = 'logistic',
        bias: bool = True,
    ):
        if inputs < 0 or hidden < 0 or outputs < 1:
            raise ShapeError(
                f"Invalid layer sizes: inputs={inputs}, hidden={hidden}, outputs={outputs}"
            )
        self.inputs = inputs
        self.hidden = hidden
        self.outputs = outputs
        self.bias_index = inputs
        self.neuron_offset = inputs + 1
        self.number_of_neurons = hidden + outputs
        self.number_of_units = self.neuron_offset + self.number_of_neurons
        self.activation: Activation = get_activation(activation)

        shape = (self.number_of_neurons, self.number_of_units)
        neuron_shape = (self.number_of_neurons, self.number_of_neurons)

        # Connectivity
        if connections is None:
            connections = torch.ones(shape, dtype=torch.bool)
            if not bias:
                connections[:, self.bias_index] = False
        else:
            connections = self._as_mask(connections, shape, 'connections')
        self.connections = connections

        if trainable is None:
            trainable = connections.clone()
        else:
            trainable = self._as_mask(trainable, shape, 'trainable') & connections
        self.trainable = trainable

        if feedforward is None:
            feedforward = torch.zeros(neuron_shape, dtype=torch.bool)
        else:
            feedforward = self._as_mask(feedforward, neuron_shape, 'feedforward')
            if torch.triu(feedforward).any():
                raise ValueError(
                    "Feedforward connections must go from a lower to a higher neuron index"
                )
        self.feedforward = feedforward & connections[:, self.neuron_offset:]

        # Parameter bookkeeping: flat positions of the trainable weights
        self._parameter_positions = self.trainable.reshape(-1).nonzero().squeeze(1)
        self.number_of_parameters = int(self._parameter_positions.numel())
        self.parameter_index = torch.full(shape, -1, dtype=torch.long)
        self.parameter_index.view(-1)[self._parameter_positions] = torch.arange(
            self.number_of_parameters
        )

        self.weights = torch.zeros(shape, dtype=torch.float64)
        self._refresh()

    @staticmethod
    def _as_mask(mask, shape: tuple, name: str) -> torch.Tensor:
        mask = torch.as_tensor(np.asarray(mask), dtype=torch.bool)
        if tuple(mask.shape) != shape:
            raise ShapeError(f"{name} must have shape {shape}, got {tuple(mask.shape)}")
        return mask.clone()

    def _refresh(self) -> None:
        """Rebuild the derived weight blocks after the weight table changed."""
        neuron_weights = self.weights[:, self.neuron_offset:]
        # [N, inputs + 1], read at the current step
        self.input_weights = self.weights[:, :self.neuron_offset].contiguous()
        # [N, N], read from the previous step
        self.recurrent_weights = neuron_weights.masked_fill(self.feedforward, 0.0)
        # [N, N], strictly lower triangular, read at the current step
        self.feedforward_weights = neuron_weights.masked_fill(~self.feedforward, 0.0)

    @property
    def has_feedforward(self) -> bool:
        return bool(self.feedforward.any())

    @property
    def has_recurrence(self) -> bool:
        neuron_connections = self.connections[:, self.neuron_offset:]
        return bool((neuron_connections & ~self.feedforward).any())

    @property
    def output_offset(self) -> int:
        return self.number_of_units - self.outputs

    def parameter_vector(self) -> torch.Tensor:
        """Return a copy of the trainable weights in parameter order."""
        return self.weights.view(-1)[self._parameter_positions].clone()

    def set_parameter_vector(self, parameters) -> None:
        parameters = torch.as_tensor(parameters, dtype=torch.float64)
        if tuple(parameters.shape) != (self.number_of_parameters,):
            raise ShapeError(
                f"Parameter vector must have shape ({self.number_of_parameters},), "
                f"got {tuple(parameters.shape)}"
            )
        self.weights.view(-1)[self._parameter_positions] = parameters
        self._refresh()

    def set_weight(self, neuron: int, unit: int, value: float) -> None:
        """Set the weight of one existing connection (trainable or constant)."""
        if not self.connections[neuron, unit]:
            raise ValueError(f"No connection from unit {unit} to neuron {neuron}")
        self.weights[neuron, unit] = value
        self._refresh()

    def init_weights(
        self,
        std: Optional[float] = None,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        """Draw trainable weights from N(0, std^2).

        Without an explicit std, each neuron uses 1/sqrt(fan_in). Constant
        connections keep their current value.
        """
        fan_in = self.connections.sum(dim=1).clamp(min=1).to(torch.float64)
        if std is None:
            scale = (1.0 / torch.sqrt(fan_in)).unsqueeze(1)
        else:
            scale = torch.full((self.number_of_neurons, 1), float(std), dtype=torch.float64)
        draws = torch.randn(
            self.weights.shape, generator=generator, dtype=torch.float64
        ) * scale
        self.weights = torch.where(self.trainable, draws, self.weights)
        self._refresh()

    def __repr__(self) -> str:
        return (
            f"RecurrentStructure(inputs={self.inputs}, hidden={self.hidden}, "
            f"outputs={self.outputs}, parameters={self.number_of_parameters}, "
            f"activation='{self.activation.name}')"
        )
