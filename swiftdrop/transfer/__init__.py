"""
Transfer Layer.

This package holds the transfer engine contract used by the scheduler and the
engines that implement it: a simulated chunk loop and a multipart HTTP uploader.
"""

from .base import AbortSignal, PolicyAwareEngine, ProgressCallback, TransferEngine, run_abortable
from .http import HttpTransferEngine
from .simulated import SimulatedTransferEngine

__all__ = [
    "AbortSignal",
    "HttpTransferEngine",
    "PolicyAwareEngine",
    "ProgressCallback",
    "SimulatedTransferEngine",
    "TransferEngine",
    "run_abortable",
]
