"""
Pipeline stages for the uppercase stream pipeline.
"""

from .compression import GzipCompressStage, GzipDecompressStage
from .transform import UppercaseStage

__all__ = [
    'GzipCompressStage',
    'GzipDecompressStage',
    'UppercaseStage',
]
