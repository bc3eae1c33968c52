"""Reproduce an input pulse train after a fixed delay."""

import numpy as np
from .utils import BaseTask


class DelayedEchoTask(BaseTask):
    """
    Memory task: the target at step t is the input at step t - delay.

    Inputs are random +/-1 pulses emitted with probability pulse_prob
    (0 otherwise). No loss is applied during the first delay steps.
    """

    def __init__(self, delay: int = 2, pulse_prob: float = 0.5, **kwargs):
        super().__init__(**kwargs)
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        self.delay = delay
        self.pulse_prob = pulse_prob
        self.name = "Delayed Echo Task"

    def get_input_output_dims(self) -> tuple[int, int]:
        return (1, 1)

    def _generate(self, seq_len: int):
        pulses = np.random.choice([-1.0, 1.0], size=seq_len)
        active = np.random.uniform(size=seq_len) < self.pulse_prob
        signal = pulses * active

        targets = np.zeros(seq_len)
        if self.delay < seq_len:
            targets[self.delay:] = signal[:seq_len - self.delay]
        loss_mask = np.zeros(seq_len)
        loss_mask[self.delay:] = 1.0
        metadata = {'delay': self.delay, 'num_pulses': int(active.sum())}
        return signal[:, None], targets[:, None], loss_mask, metadata
