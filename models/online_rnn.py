"""Recurrent network evaluated one time step at a time with real-time recurrent learning."""

from typing import Optional

import torch

from .errors import ShapeError, UsageError
from .structure import RecurrentStructure


class OnlineRNNState:
    """
    Evaluation state of one sequence.

    All buffers are allocated here once and updated in place by
    OnlineRNN.step(). A new sequence starts with a new state (or reset()).

    Attributes:
        activation: [number_of_units] values of all units at the current step
        previous_activation: [number_of_units] values of all units at the previous step
        net_input: [number_of_neurons] pre-activations of the current step
        derivative: [number_of_neurons] activation derivative at net_input
        sensitivity: [number_of_parameters, number_of_neurons] holding
            d activation_k(t) / d parameter_p, or None without gradient tracking
    """

    def __init__(self, structure: RecurrentStructure, compute_gradient: bool):
        self.structure = structure
        # Row 0 is the current step, row 1 the previous one. Keeping both in
        # one buffer lets the sensitivity update gather connection sources
        # with a single index_select.
        self._trace = torch.zeros(2, structure.number_of_units, dtype=torch.float64)
        self.activation = self._trace[0]
        self.previous_activation = self._trace[1]
        self.net_input = torch.zeros(structure.number_of_neurons, dtype=torch.float64)
        self.derivative = torch.zeros(structure.number_of_neurons, dtype=torch.float64)

        if compute_gradient:
            gradient_shape = (structure.number_of_parameters, structure.number_of_neurons)
            self.sensitivity = torch.zeros(gradient_shape, dtype=torch.float64)
            self._scratch = torch.zeros(gradient_shape, dtype=torch.float64)
            self._direct = torch.zeros(structure.number_of_parameters, dtype=torch.float64)
        else:
            self.sensitivity = None
            self._scratch = None
            self._direct = None

        self.time_step = 0
        self._trace[:, structure.bias_index] = 1.0

    @property
    def compute_gradient(self) -> bool:
        return self.sensitivity is not None

    def reset(self) -> None:
        """Restart the sequence without reallocating."""
        self._trace.zero_()
        self._trace[:, self.structure.bias_index] = 1.0
        self.net_input.zero_()
        self.derivative.zero_()
        if self.sensitivity is not None:
            self.sensitivity.zero_()
            self._scratch.zero_()
        self.time_step = 0


class OnlineRNN:
    """
    Recurrent network regression model for online learning.

    The network processes a single input vector per call. All sequence state
    (current and previous activations and, when gradients are requested, the
    sensitivity of every neuron to every parameter) lives in an
    OnlineRNNState created by create_state(). A new sequence is started by
    creating a new state.

    With gradient tracking, step() updates the sensitivity tensor with the
    real-time recurrent learning recurrence

        S_t[p, k] = f'(net_k(t)) * ( sum_l W_rec[k, l] S_{t-1}[p, l]
                                     + a_j                  if p owns weight (k, j)
                                     + sum_{l<k} W_ff[k, l] S_t[p, l] )

    where a_j is the value read over the connection. This costs O(n^3) memory
    and O(n^4) operations per step for n neurons, but never needs the history
    of the sequence. gradient_contribution() may be skipped on steps without a
    loss signal.

    The structure is borrowed: it must outlive the network and every state,
    and its weights must not change while a sequence is in flight.
    """

    def __init__(self, structure: RecurrentStructure, compute_gradient: bool = True):
        self.structure = structure
        self.compute_gradient = compute_gradient

        # Where the direct term of each parameter comes from: parameter p owns
        # weight (k, j) and reads unit j from the current step (row 0 of the
        # state trace) or, for recurrent neuron connections, the previous step (row 1).
        s = structure
        owned = s.parameter_index >= 0
        neurons, units = owned.nonzero(as_tuple=True)
        order = s.parameter_index[neurons, units].argsort()
        neurons, units = neurons[order], units[order]
        reads_previous = torch.zeros_like(units, dtype=torch.bool)
        from_neuron = units >= s.neuron_offset
        reads_previous[from_neuron] = ~s.feedforward[
            neurons[from_neuron], units[from_neuron] - s.neuron_offset
        ]
        self._parameter_rows = torch.arange(s.number_of_parameters)
        self._parameter_neurons = neurons
        self._source_index = units + reads_previous.long() * s.number_of_units

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

    def create_state(self, compute_gradient: Optional[bool] = None) -> OnlineRNNState:
        """Allocate the state for a new sequence."""
        if compute_gradient is None:
            compute_gradient = self.compute_gradient
        return OnlineRNNState(self.structure, compute_gradient)

    def eval(self, inputs, state: Optional[OnlineRNNState] = None) -> torch.Tensor:
        if state is None:
            raise UsageError("OnlineRNN can not be evaluated without a state object")
        return self.step(inputs, state)

    def __call__(self, inputs, state: Optional[OnlineRNNState] = None) -> torch.Tensor:
        return self.eval(inputs, state)

    def step(self, inputs, state: OnlineRNNState) -> torch.Tensor:
        """
        Feed one time step to the network.

        Args:
            inputs: [input_size] input of this time step
            state: state of the running sequence, updated in place

        Returns:
            outputs: [output_size] activations of the output neurons
        """
        self._check_state(state)
        inputs = self._as_vector(inputs, self.input_size, 'inputs')
        s = self.structure
        offset = s.neuron_offset

        # The previous step's values become the recurrent inputs
        state.previous_activation.copy_(state.activation)
        state.activation[:s.inputs] = inputs

        net = state.net_input
        neurons = state.activation[offset:]
        torch.mv(s.input_weights, state.activation[:offset], out=net)
        net.addmv_(s.recurrent_weights, state.previous_activation[offset:])

        if s.has_feedforward:
            ff = s.feedforward_weights
            for k in range(s.number_of_neurons):
                if k > 0:
                    net[k] += torch.dot(ff[k, :k], neurons[:k])
                neurons[k:k + 1] = s.activation(net[k:k + 1])
        else:
            neurons.copy_(s.activation(net))
        state.derivative.copy_(s.activation.derivative(net))

        if state.sensitivity is not None:
            self._update_sensitivity(state)

        state.time_step += 1
        return state.activation[s.output_offset:].clone()

    def _update_sensitivity(self, state: OnlineRNNState) -> None:
        """Advance the sensitivity tensor by one step.

        Summation order: recurrent propagation, then the direct term, then
        same-step feedforward propagation in increasing source index, then
        the activation derivative.
        """
        s = self.structure
        scratch = state._scratch

        # scratch[p, k] = sum_l S_{t-1}[p, l] * W_rec[k, l]
        torch.mm(state.sensitivity, s.recurrent_weights.t(), out=scratch)

        torch.index_select(state._trace.view(-1), 0, self._source_index, out=state._direct)
        scratch.index_put_(
            (self._parameter_rows, self._parameter_neurons), state._direct, accumulate=True
        )

        if s.has_feedforward:
            ff = s.feedforward_weights
            for k in range(s.number_of_neurons):
                column = scratch[:, k]
                if k > 0:
                    column.addmv_(scratch[:, :k], ff[k, :k])
                column.mul_(state.derivative[k])
        else:
            scratch.mul_(state.derivative)

        state.sensitivity, state._scratch = scratch, state.sensitivity

    def gradient_contribution(self, coefficients, state: OnlineRNNState) -> torch.Tensor:
        """
        Weighted sum of the output sensitivities at the current step.

        Args:
            coefficients: [output_size] dLoss/doutput_k of the current step
            state: state of the running sequence

        Returns:
            gradient: [number_of_parameters] with
                gradient[p] = sum_k coefficients[k] * sensitivity[p, output k]
        """
        self._check_state(state)
        if state.sensitivity is None:
            raise UsageError("State was created without gradient tracking")
        coefficients = self._as_vector(coefficients, self.output_size, 'coefficients')
        return torch.mv(state.sensitivity[:, self.structure.hidden:], coefficients)

    def set_output_activation(self, state: OnlineRNNState, values) -> None:
        """
        Overwrite the activation of the output neurons (teacher forcing).

        The next step reads the forced values as recurrent input. The
        previous activation and the sensitivity tensor are left untouched.
        """
        self._check_state(state)
        values = self._as_vector(values, self.output_size, 'values')
        state.activation[self.structure.output_offset:] = values

    def _check_state(self, state) -> None:
        if not isinstance(state, OnlineRNNState):
            raise UsageError(f"Expected an OnlineRNNState, got {type(state).__name__}")
        if state.structure is not self.structure:
            raise UsageError("State was created for a different network structure")

    @staticmethod
    def _as_vector(values, size: int, name: str) -> torch.Tensor:
        values = torch.as_tensor(values, dtype=torch.float64)
        # Batches of size one are accepted
        if values.dim() == 2 and values.shape[0] == 1:
            values = values[0]
        if tuple(values.shape) != (size,):
            raise ShapeError(f"{name} must have shape ({size},), got {tuple(values.shape)}")
        return values
