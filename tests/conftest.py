"""Shared fixtures for the test suite."""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest
import torch

from models import RecurrentStructure


@pytest.fixture(autouse=True)
def seed():
    np.random.seed(0)
    torch.manual_seed(0)


@pytest.fixture
def wandb_config():
    return {'wandb': {'project': 'online-rnn-tests', 'mode': 'disabled'}}


def single_neuron_structure(w: float, v: float, activation: str = 'linear') -> RecurrentStructure:
    """1 input, 1 self-recurrent output neuron, no bias.

    Parameter 0 is the input weight v, parameter 1 the self weight w.
    """
    structure = RecurrentStructure(
        1, 0, 1,
        connections=[[True, False, True]],
        activation=activation,
    )
    structure.set_parameter_vector([v, w])
    return structure


def feedforward_structure(activation: str = 'tanh') -> RecurrentStructure:
    """2 inputs, 1 hidden and 1 output neuron; the hidden neuron feeds the output in the same step."""
    # units: in0, in1, bias, h0, o0
    connections = [
        [True, True, True, False, False],
        [True, True, True, True, False],
    ]
    feedforward = [
        [False, False],
        [True, False],
    ]
    structure = RecurrentStructure(
        2, 1, 1, connections=connections, feedforward=feedforward, activation=activation
    )
    structure.set_parameter_vector(torch.tensor([0.3, -0.7, 0.1, 0.5, 0.2, -0.4, 1.2],
                                                dtype=torch.float64))
    return structure


def recurrent_structure(activation: str = 'tanh', feedforward: bool = False) -> RecurrentStructure:
    """Fully connected 2-input network with 2 hidden and 1 output neuron."""
    ff = None
    if feedforward:
        ff = torch.zeros(3, 3, dtype=torch.bool)
        ff[2, :2] = True
    structure = RecurrentStructure(2, 2, 1, feedforward=ff, activation=activation)
    generator = torch.Generator().manual_seed(1234)
    structure.init_weights(std=0.6, generator=generator)
    return structure
