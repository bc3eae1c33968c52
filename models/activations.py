"""Neuron activation functions evaluated at the pre-activation (net input)."""

from dataclasses import dataclass
from typing import Callable

import torch
import torch.nn.functional as F


@dataclass(frozen=True)
class Activation:
    """Activation function paired with its derivative.

    Both callables take the pre-activation tensor and return a tensor of the
    same shape.
    """

    name: str
    fn: Callable[[torch.Tensor], torch.Tensor]
    deriv: Callable[[torch.Tensor], torch.Tensor]

    def __call__(self, net: torch.Tensor) -> torch.Tensor:
        return self.fn(net)

    def derivative(self, net: torch.Tensor) -> torch.Tensor:
        return self.deriv(net)


def _logistic_deriv(net):
    y = torch.sigmoid(net)
    return y * (1.0 - y)


def _tanh_deriv(net):
    y = torch.tanh(net)
    return 1.0 - y * y


def _fast_sigmoid(net):
    return net / (1.0 + net.abs())


def _fast_sigmoid_deriv(net):
    d = 1.0 + net.abs()
    return 1.0 / (d * d)


def _elu_deriv(net):
    # alpha = 1
    return torch.where(net > 0, torch.ones_like(net), torch.exp(net))


_ACTIVATIONS = {
    'logistic': Activation('logistic', torch.sigmoid, _logistic_deriv),
    'tanh': Activation('tanh', torch.tanh, _tanh_deriv),
    'linear': Activation('linear', lambda net: net.clone(), torch.ones_like),
    'fast_sigmoid': Activation('fast_sigmoid', _fast_sigmoid, _fast_sigmoid_deriv),
    'softplus': Activation('softplus', F.softplus, torch.sigmoid),
    'elu': Activation('elu', F.elu, _elu_deriv),
}


def get_activation(name: str) -> Activation:
    """Look up an activation by name ('logistic', 'tanh', 'linear', ...)."""
    if name not in _ACTIVATIONS:
        raise ValueError(f"Unknown activation: {name}")
    return _ACTIVATIONS[name]


def activation_names() -> list[str]:
    return list(_ACTIVATIONS)
