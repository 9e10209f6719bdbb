# Services package
from .batch_runner import BatchRunner

__all__ = ['BatchRunner']
