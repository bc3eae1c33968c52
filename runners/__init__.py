"""Runners for online sequence evaluation."""

from runners.utils import BaseRunner
from runners.online_run import OnlineRunner

__all__ = [
    'BaseRunner',
    'OnlineRunner',
]
