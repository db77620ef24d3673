"""
Streaming gzip compression and decompression stages.
"""

import logging
import zlib

from base_classes import ByteStream, StageOperator
from cancellation import TimeoutToken
from pipeline_errors import DecodeError

logger = logging.getLogger(__name__)

GZIP_WBITS = 16 + zlib.MAX_WBITS
GZIP_MAGIC = b"\x1f\x8b"


class GzipCompressStage(StageOperator):
    """
    Gzip-compress a byte stream at the default compression level.

    Compressed output is emitted as soon as zlib produces it, so memory use
    stays bounded by zlib's internal window rather than the input size.
    """

    name = "compress"

    def __init__(self, level: int = zlib.Z_DEFAULT_COMPRESSION):
        self.level = level

    async def apply(self, stream: ByteStream, token: TimeoutToken) -> ByteStream:
        compressor = zlib.compressobj(self.level, zlib.DEFLATED, GZIP_WBITS)
        total_input = 0
        total_output = 0

        async for chunk in stream:
            total_input += len(chunk)
            compressed = compressor.compress(chunk)
            await token.checkpoint()
            if compressed:
                total_output += len(compressed)
                yield compressed

        tail = compressor.flush()
        total_output += len(tail)
        yield tail

        logger.debug(f"Compression complete: {total_input} -> {total_output} bytes")


class GzipDecompressStage(StageOperator):
    """
    Gzip-decompress a byte stream.

    Concatenated gzip members are decoded in order. Output per zlib call is
    capped at ``max_chunk_size`` so a highly compressed input can not expand
    into one huge buffer.
    """

    name = "uncompress"

    def __init__(self, max_chunk_size: int = 64 * 1024):
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        self.max_chunk_size = max_chunk_size

    async def apply(self, stream: ByteStream, token: TimeoutToken) -> ByteStream:
        decompressor = zlib.decompressobj(GZIP_WBITS)
        saw_input = False
        trailing_garbage = False

        async for chunk in stream:
            if trailing_garbage or not chunk:
                continue
            saw_input = True
            data = chunk
            while True:
                if decompressor.eof:
                    # Previous member finished; anything left is either the
                    # next member or garbage.
                    if not data.startswith(GZIP_MAGIC[:len(data)]):
                        logger.warning(f"Ignoring {len(data)} trailing bytes after gzip data")
                        trailing_garbage = True
                        break
                    decompressor = zlib.decompressobj(GZIP_WBITS)

                try:
                    out = decompressor.decompress(data, self.max_chunk_size)
                except zlib.error as e:
                    raise DecodeError("Invalid gzip input", cause=e)

                if decompressor.eof:
                    data = decompressor.unused_data
                else:
                    data = decompressor.unconsumed_tail

                await token.checkpoint()
                if out:
                    yield out

                # zlib may still hold output when the cap was hit
                if not data and (decompressor.eof or len(out) < self.max_chunk_size):
                    break

        if saw_input and not decompressor.eof and not trailing_garbage:
            raise DecodeError("Unexpected end of gzip input")

        logger.debug("Decompression complete")
