"""Tests for the online runner and the main entry point helpers."""

import matplotlib.pyplot as plt
import numpy as np
import pytest
import torch
from omegaconf import OmegaConf

from analysis import plot_loss_and_gradient, plot_sensitivity
from models import OnlineRNN, RecurrentStructure
from runners import OnlineRunner
from runners.online_run import relative_gradient_error
from tasks import DelayedEchoTask, SineWaveTask

from conftest import recurrent_structure, single_neuron_structure


def make_runner(tmp_path, wandb_config, model, task, **kwargs):
    return OnlineRunner(
        model=model,
        task=task,
        task_name='test',
        log_dir=tmp_path,
        config=wandb_config,
        save_figures=False,
        **kwargs
    )


def test_requires_wandb_config(tmp_path):
    net = OnlineRNN(recurrent_structure())
    with pytest.raises(ValueError, match="wandb config"):
        OnlineRunner(model=net, task=SineWaveTask(), log_dir=tmp_path, config={})


def test_run_sequence_gradient_matches_finite_differences(tmp_path, wandb_config):
    structure = recurrent_structure(feedforward=True)
    net = OnlineRNN(structure)
    task = DelayedEchoTask(seq_len=8, delay=2)
    runner = make_runner(tmp_path, wandb_config, net, task)
    try:
        sequence = task.generate_sequence()
        # Two-input network: feed the echo signal on both inputs
        sequence['inputs'] = sequence['inputs'].repeat(1, 2)
        before = net.parameter_vector()

        result = runner.run_sequence(sequence)
        fd_gradient = runner.finite_difference_gradient(sequence)

        torch.testing.assert_close(result['gradient'], fd_gradient, rtol=1e-4, atol=1e-7)
        assert relative_gradient_error(result['gradient'], fd_gradient) < 1e-4
        assert torch.equal(net.parameter_vector(), before)
        assert result['loss'] == pytest.approx(runner.sequence_loss(sequence))
        # No loss on the first delay steps
        assert torch.all(result['losses'][:2] == 0)
        assert torch.all(result['gradient_norms'][:2] == 0)
        assert result['sensitivity'].shape == (net.number_of_parameters, 3)
    finally:
        runner.close()


def test_teacher_forcing_feeds_targets_back(tmp_path, wandb_config):
    net = OnlineRNN(single_neuron_structure(w=0.5, v=1.0))
    task = SineWaveTask(seq_len=3, washout=0)
    runner = make_runner(tmp_path, wandb_config, net, task)
    try:
        sequence = {
            'inputs': torch.tensor([[1.0], [0.0], [0.0]], dtype=torch.float64),
            'targets': torch.tensor([[2.0], [3.0], [0.0]], dtype=torch.float64),
            'loss_mask': torch.ones(3, dtype=torch.float64),
        }
        free = runner.run_sequence(sequence, teacher_forcing=False)
        forced = runner.run_sequence(sequence, teacher_forcing=True)
        assert free['outputs'][:, 0].tolist() == pytest.approx([1.0, 0.5, 0.25])
        assert forced['outputs'][:, 0].tolist() == pytest.approx([1.0, 1.0, 1.5])
    finally:
        runner.close()


def test_run_logs_metrics(tmp_path, wandb_config):
    task = DelayedEchoTask(seq_len=10, delay=1)
    structure = RecurrentStructure(1, 2, 1, activation='tanh')
    structure.init_weights(generator=torch.Generator().manual_seed(5))
    net = OnlineRNN(structure)

    runner = make_runner(tmp_path, wandb_config, net, task, num_sequences=3, gradient_check=True)
    try:
        history = runner.run()
    finally:
        runner.close()

    assert len(history) == 3
    assert runner.step == 3
    for metrics in history:
        assert np.isfinite(metrics['loss'])
        assert metrics['grad_norm'] >= 0
        assert 'test/mse' in metrics
        assert metrics['gradient_check/max_rel_error'] < 1e-4


def test_plots(tmp_path):
    structure = recurrent_structure()
    net = OnlineRNN(structure)
    state = net.create_state()
    net.step([0.3, -0.2], state)

    fig = plot_sensitivity(state.sensitivity, structure, save_path=tmp_path / 'sensitivity.png')
    assert (tmp_path / 'sensitivity.png').exists()
    plt.close(fig)

    fig = plot_loss_and_gradient(np.array([0.0, 0.5, 0.2]), np.array([0.0, 1.0, 0.3]))
    assert len(fig.axes) == 2
    plt.close(fig)


def test_main_factories():
    import main

    conf = OmegaConf.create({
        'task': {'task_type': 'delayed_echo', 'seq_len': 5, 'delay': 1},
        'model': {'hidden': 3, 'activation': 'tanh', 'feedforward_hidden_to_output': True},
    })
    task, task_name = main.create_task(conf)
    assert task_name == 'delayed_echo'
    assert isinstance(task, DelayedEchoTask)

    model = main.create_model(conf, task)
    assert model.input_size == 1
    assert model.output_size == 1
    assert model.structure.has_feedforward
    assert model.structure.number_of_neurons == 4

    conf.task.task_type = 'unknown'
    with pytest.raises(ValueError, match="Unknown task_type"):
        main.create_task(conf)
