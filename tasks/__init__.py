"""Sequence tasks for online evaluation."""

from .utils import BaseTask
from .sine_wave import SineWaveTask
from .delayed_echo import DelayedEchoTask

__all__ = ['BaseTask', 'SineWaveTask', 'DelayedEchoTask']
