"""
Uppercase stream pipeline modules.
"""

# Import pipeline stages
from .stages import GzipCompressStage, GzipDecompressStage, UppercaseStage
from .streams import FileSink, FileSource, StdinSource, StdoutSink

__all__ = [
    'GzipCompressStage',
    'GzipDecompressStage',
    'UppercaseStage',
    'FileSink',
    'FileSource',
    'StdinSource',
    'StdoutSink',
]
