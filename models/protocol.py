"""Protocol for model classes."""

from typing import Any, Protocol

import torch


class Model(Protocol):
    """Protocol for evaluable models.

    Models process a single time step at a time. The caller owns the state
    returned by create_state() and manages the loop over time steps.
    """

    input_size: int
    output_size: int
    number_of_parameters: int

    def create_state(self) -> Any:
        """Allocate the state of a new sequence (None for stateless models)."""
        ...

    def step(self, inputs: torch.Tensor, state: Any) -> torch.Tensor:
        """
        Evaluate one time step.

        Args:
            inputs: [input_size] input at this time step
            state: sequence state, updated in place

        Returns:
            outputs: [output_size] output at this time step
        """
        ...

    def parameter_vector(self) -> torch.Tensor:
        ...

    def set_parameter_vector(self, parameters: torch.Tensor) -> None:
        ...
