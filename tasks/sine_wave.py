"""Next-step prediction of a sine wave."""

import numpy as np
from .utils import BaseTask


class SineWaveTask(BaseTask):
    """
    Predict the next value of a sine wave from the current one.

    The first washout steps carry no loss so the network can settle.
    Frequency and phase are sampled per sequence.
    """

    def __init__(
        self,
        period_min: float = 10.0,
        period_max: float = 30.0,
        amplitude: float = 0.8,
        washout: int = 5,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.period_range = (period_min, period_max)
        self.amplitude = amplitude
        self.washout = washout
        self.name = "Sine Wave Task"

    def get_input_output_dims(self) -> tuple[int, int]:
        return (1, 1)

    def _generate(self, seq_len: int):
        period = np.random.uniform(*self.period_range)
        phase = np.random.uniform(0.0, 2 * np.pi)
        t = np.arange(seq_len + 1)
        wave = self.amplitude * np.sin(2 * np.pi * t / period + phase)

        inputs = wave[:-1, None]
        targets = wave[1:, None]
        loss_mask = np.ones(seq_len)
        loss_mask[:self.washout] = 0.0
        metadata = {'period': period, 'phase': phase}
        return inputs, targets, loss_mask, metadata
