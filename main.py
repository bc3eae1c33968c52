"""Main script. Create task, network and runner from OmegaConf config, then evaluate online."""

import sys
import random
from pathlib import Path

import numpy as np
import torch
from omegaconf import OmegaConf, DictConfig


def create_task(conf: DictConfig):
    """Create task instance from config."""
    from tasks import SineWaveTask, DelayedEchoTask
    task_name_to_class = {
        'sine_wave': SineWaveTask,
        'delayed_echo': DelayedEchoTask,
    }
    task_type = conf.task.task_type
    if task_type not in task_name_to_class:
        raise ValueError(f"Unknown task_type: {task_type}")
    task_params = {k: v for k, v in conf.task.items() if k != 'task_type'}
    return task_name_to_class[task_type](**task_params), task_type


def create_structure(conf: DictConfig, input_size: int, output_size: int):
    """Create the network structure from config. Input/output sizes come from the task."""
    from models import RecurrentStructure

    hidden = conf.model.get('hidden', 4)
    structure_params = {
        'activation': conf.model.get('activation', 'tanh'),
        'bias': conf.model.get('bias', True),
    }

    # Optionally let hidden neurons drive the outputs within the same step
    if conf.model.get('feedforward_hidden_to_output', False):
        neurons = hidden + output_size
        feedforward = torch.zeros(neurons, neurons, dtype=torch.bool)
        feedforward[hidden:, :hidden] = True
        structure_params['feedforward'] = feedforward

    structure = RecurrentStructure(input_size, hidden, output_size, **structure_params)
    structure.init_weights(std=conf.model.get('weight_std'))
    return structure


def create_model(conf: DictConfig, task):
    """Create OnlineRNN instance from config."""
    from models import OnlineRNN

    input_size, output_size = task.get_input_output_dims()
    structure = create_structure(conf, input_size, output_size)
    return OnlineRNN(structure, compute_gradient=True)


def create_runner(conf: DictConfig, model, task, task_name: str, log_dir: str = None):
    """Create runner instance from config."""
    from runners import OnlineRunner

    if log_dir is None:
        log_dir = conf.run.get('log_dir', 'logs')
    run_params = {k: v for k, v in conf.run.items() if k != 'log_dir'}
    return OnlineRunner(
        model=model,
        task=task,
        task_name=task_name,
        log_dir=log_dir,
        config=OmegaConf.to_container(conf, resolve=True),
        **run_params
    )


# ============================================================================
# Main script
# ============================================================================

def set_random_seed(seed: int):
    """Set random seed for reproducibility across all libraries."""
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def main():
    """Main evaluation script with OmegaConf CLI interface.

    Usage:
        python main.py configs/sine_wave.yaml

        # With parameter overrides
        python main.py configs/sine_wave.yaml model.hidden=8 run.num_sequences=20

        # Finite-difference check of the online gradient, without wandb upload
        python main.py configs/delayed_echo.yaml run.gradient_check=true wandb.mode=disabled
    """
    # Parse CLI
    if len(sys.argv) < 2 or '=' in sys.argv[1]:
        print("Error: Config file required!\nUsage: python main.py configs/sine_wave.yaml [key=value overrides...]")
        sys.exit(1)

    config_path = sys.argv[1]
    cli_args = sys.argv[2:]

    # Load config
    print(f"Loading config from {config_path}")
    conf = OmegaConf.load(config_path)

    # Merge CLI overrides
    if cli_args:
        conf = OmegaConf.merge(conf, OmegaConf.from_cli(cli_args))

    # Set random seed
    random_seed = conf.get('random_seed', 42)
    set_random_seed(random_seed)
    print(f"Random seed: {random_seed}")

    # Setup log directory and save config
    log_dir = Path(conf.run.get('log_dir', 'logs/test'))
    log_dir.mkdir(parents=True, exist_ok=True)
    OmegaConf.save(conf, log_dir / 'config.yaml')

    task, task_name = create_task(conf)
    model = create_model(conf, task)
    print(f"Network: {model.structure}")
    runner = create_runner(conf, model, task, task_name, log_dir=str(log_dir))

    try:
        runner.run()
    finally:
        runner.close()


if __name__ == '__main__':
    main()
