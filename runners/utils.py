"""Shared utilities for all runners."""

import json
import os
from pathlib import Path
from typing import Optional

import torch
import wandb

from models import Model


class BaseRunner:
    """Base runner class with logging and configuration handling."""

    def __init__(
        self,
        model: Model,
        log_dir: str | Path = 'logs',
        log_interval: int = 1,
        config: Optional[dict] = None
    ):
        """Initialize base runner.

        Args:
            model: Model to evaluate
            log_dir: Directory for logs and figures
            log_interval: Sequences between console summaries
            config: Full configuration dict (must contain a 'wandb' block; the
                whole dict is logged to wandb)
        """
        self.model = model
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_interval = log_interval

        if config and 'wandb' in config:
            wandb_config = config['wandb']

            # Prepare wandb.init kwargs
            init_kwargs = {
                'project': wandb_config['project'],
                'dir': str(self.log_dir),
                'config': config,
                'mode': wandb_config.get('mode') or 'online',
            }

            # Optional parameters
            if wandb_config.get('entity'):
                init_kwargs['entity'] = wandb_config['entity']
            if wandb_config.get('run_name'):
                init_kwargs['name'] = wandb_config['run_name']

            wandb.init(**init_kwargs)

            # Log SLURM information if running on SLURM
            if 'SLURM_JOB_ID' in os.environ:
                slurm_info = {
                    'job_id': os.environ.get('SLURM_JOB_ID'),
                    'job_name': os.environ.get('SLURM_JOB_NAME'),
                    'partition': os.environ.get('SLURM_JOB_PARTITION'),
                    'nodelist': os.environ.get('SLURM_NODELIST'),
                }
                slurm_info = {k: v for k, v in slurm_info.items() if v is not None}
                wandb.config.update({'slurm': slurm_info})
        else:
            raise ValueError("wandb config is required in config file")

        # Print full configuration
        print("\n" + "=" * 60)
        print("Configuration:")
        print(f"  PyTorch threads: {torch.get_num_threads()}")
        print(f"  Model parameters: {model.number_of_parameters}")
        print("\nFull Config:")
        print(json.dumps(config, indent=2, default=str))
        print("=" * 60 + "\n")

        # Run state
        self.step = 0

    def log_metrics(self, metrics: dict, step: Optional[int] = None) -> None:
        """Log scalar metrics to wandb."""
        wandb.log(metrics, step=self.step if step is None else step)

    def log_figure(self, name: str, fig) -> None:
        """Log a matplotlib figure to wandb and save it under log_dir/figures."""
        figure_dir = self.log_dir / 'figures'
        figure_dir.mkdir(exist_ok=True)
        fig.savefig(figure_dir / f"{name.replace('/', '_')}.png")
        wandb.log({name: wandb.Image(fig)}, step=self.step)

    def close(self) -> None:
        """Close logging resources."""
        wandb.finish()
