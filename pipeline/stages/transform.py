"""
Text transform stages.
"""

import codecs
import logging

from base_classes import ByteStream, StageOperator
from cancellation import TimeoutToken

logger = logging.getLogger(__name__)


class UppercaseStage(StageOperator):
    """
    Uppercase the text of a byte stream.

    Input is decoded with an incremental decoder, so a multi-byte character
    split across two chunks is held back until its remaining bytes arrive
    and is then mapped as a whole. Bytes that are not valid in ``encoding``
    pass through unchanged.
    """

    name = "uppercase"

    def __init__(self, encoding: str = "utf-8"):
        codecs.lookup(encoding)
        self.encoding = encoding

    async def apply(self, stream: ByteStream, token: TimeoutToken) -> ByteStream:
        decoder = codecs.getincrementaldecoder(self.encoding)(errors="surrogateescape")

        async for chunk in stream:
            text = decoder.decode(chunk)
            token.check()
            if text:
                yield self.transform(text)

        tail = decoder.decode(b"", final=True)
        if tail:
            yield self.transform(tail)

    def transform(self, text: str) -> bytes:
        return text.upper().encode(self.encoding, errors="surrogateescape")
