"""Recurrent network models with online gradient computation."""

from .protocol import Model
from .errors import ShapeError, UsageError
from .activations import Activation, get_activation
from .structure import RecurrentStructure
from .online_rnn import OnlineRNN, OnlineRNNState
from .feedforward import FeedForwardNet
from .mean_model import MeanModel

__all__ = [
    'Model',
    'ShapeError',
    'UsageError',
    'Activation',
    'get_activation',
    'RecurrentStructure',
    'OnlineRNN',
    'OnlineRNNState',
    'FeedForwardNet',
    'MeanModel',
]
