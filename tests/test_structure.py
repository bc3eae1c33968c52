"""Tests for RecurrentStructure."""

import pytest
import torch

from models import RecurrentStructure, ShapeError

from conftest import feedforward_structure


def test_layout_and_counts():
    structure = RecurrentStructure(3, 4, 2)
    assert structure.number_of_neurons == 6
    assert structure.number_of_units == 3 + 1 + 6
    assert structure.bias_index == 3
    assert structure.neuron_offset == 4
    assert structure.output_offset == 8
    # Fully connected including bias
    assert structure.number_of_parameters == 6 * 10
    assert structure.has_recurrence
    assert not structure.has_feedforward


def test_without_bias_drops_bias_column():
    structure = RecurrentStructure(2, 1, 1, bias=False)
    assert not structure.connections[:, structure.bias_index].any()
    assert structure.number_of_parameters == 2 * 4


def test_parameter_order_is_row_major():
    structure = feedforward_structure()
    # neuron 0 owns units 0, 1, 2; neuron 1 owns units 0, 1, 2, 3
    expected = torch.tensor([
        [0, 1, 2, -1, -1],
        [3, 4, 5, 6, -1],
    ])
    assert torch.equal(structure.parameter_index, expected)
    assert structure.weights[1, 3].item() == pytest.approx(1.2)
    assert structure.weights[0, 3].item() == 0.0


def test_parameter_vector_roundtrip_copy():
    structure = RecurrentStructure(1, 1, 1)
    parameters = torch.arange(structure.number_of_parameters, dtype=torch.float64)
    structure.set_parameter_vector(parameters)
    vector = structure.parameter_vector()
    assert torch.equal(vector, parameters)
    vector[0] = 100.0
    assert structure.parameter_vector()[0] == 0.0


def test_set_parameter_vector_shape_error():
    structure = RecurrentStructure(1, 1, 1)
    with pytest.raises(ShapeError):
        structure.set_parameter_vector(torch.zeros(structure.number_of_parameters + 1))


def test_connection_mask_shape_error():
    with pytest.raises(ShapeError):
        RecurrentStructure(1, 1, 1, connections=torch.ones(2, 3, dtype=torch.bool))


def test_invalid_sizes():
    with pytest.raises(ShapeError):
        RecurrentStructure(1, 1, 0)


def test_feedforward_must_be_lower_triangular():
    feedforward = torch.zeros(2, 2, dtype=torch.bool)
    feedforward[0, 1] = True
    with pytest.raises(ValueError):
        RecurrentStructure(1, 1, 1, feedforward=feedforward)
    feedforward = torch.eye(2, dtype=torch.bool)
    with pytest.raises(ValueError):
        RecurrentStructure(1, 1, 1, feedforward=feedforward)


def test_unknown_activation():
    with pytest.raises(ValueError, match="Unknown activation"):
        RecurrentStructure(1, 1, 1, activation='sigmoidal')


def test_weight_blocks_split_by_latency():
    structure = feedforward_structure()
    assert structure.has_feedforward
    assert not structure.has_recurrence
    assert structure.recurrent_weights.abs().sum() == 0
    assert structure.feedforward_weights[1, 0].item() == pytest.approx(1.2)
    assert structure.input_weights.shape == (2, 3)


def test_constant_connections_have_no_parameter():
    trainable = torch.ones(1, 3, dtype=torch.bool)
    trainable[0, 1] = False  # bias weight is constant
    structure = RecurrentStructure(1, 0, 1, trainable=trainable)
    assert structure.number_of_parameters == 2
    assert structure.parameter_index[0, 1] == -1

    structure.set_weight(0, 1, 0.25)
    structure.init_weights(generator=torch.Generator().manual_seed(0))
    assert structure.weights[0, 1].item() == 0.25


def test_set_weight_requires_connection():
    structure = RecurrentStructure(1, 0, 1, bias=False)
    with pytest.raises(ValueError):
        structure.set_weight(0, structure.bias_index, 1.0)


def test_init_weights_is_reproducible():
    a = RecurrentStructure(2, 3, 1)
    b = RecurrentStructure(2, 3, 1)
    a.init_weights(generator=torch.Generator().manual_seed(7))
    b.init_weights(generator=torch.Generator().manual_seed(7))
    assert torch.equal(a.parameter_vector(), b.parameter_vector())
    assert a.parameter_vector().abs().sum() > 0
