"""Four-stage re-encoding of a combined buffer.

Mojibake of this kind is produced by decoding text with the wrong single-byte
encoding and storing the result; the repair replays that chain backwards::

    decode(input) -> encode(middle) -> decode(origin) -> encode(output)
"""

from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from ..shared.config import PipelineConfig
from .encoding import UnsupportedEncodingError, stream_safe_name

T = TypeVar("T")


@dataclass
class ReencodeResult:
    """Outcome of re-encoding one buffer.

    Attributes:
        data: Converted bytes, or the untouched input when ``error`` is set
        error: Unsupported encoding that stopped the conversion, if any
    """
    data: bytes
    error: Optional[UnsupportedEncodingError] = None

    @property
    def converted(self) -> bool:
        return self.error is None


class FourStageReencoder:
    """Stateless decode/encode/decode/encode chain.

    Decode steps substitute U+FFFD for malformed input, the middle encode drops
    characters the single-byte encoding cannot represent, and the output encode
    writes ``?`` for characters the output encoding lacks. The only failure is
    an unknown encoding name, which is returned as a value instead of raised.
    """

    def __init__(
        self,
        input_encoding: str,
        middle_encoding: str,
        origin_encoding: str,
        output_encoding: str
    ) -> None:
        self.input_encoding = input_encoding
        self.middle_encoding = stream_safe_name(middle_encoding)
        self.origin_encoding = origin_encoding
        self.output_encoding = stream_safe_name(output_encoding)

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "FourStageReencoder":
        return cls(
            config.input_encoding,
            config.middle_encoding,
            config.origin_encoding,
            config.output_encoding,
        )

    def reencode(self, buffer: bytes) -> ReencodeResult:
        """Run the four stages over ``buffer``."""
        if not buffer:
            return ReencodeResult(data=b"")
        try:
            text = _stage("input", self.input_encoding,
                          lambda: buffer.decode(self.input_encoding, errors="replace"))
            middle = _stage("middle", self.middle_encoding,
                            lambda: text.encode(self.middle_encoding, errors="ignore"))
            original = _stage("origin", self.origin_encoding,
                              lambda: middle.decode(self.origin_encoding, errors="replace"))
            output = _stage("output", self.output_encoding,
                            lambda: original.encode(self.output_encoding, errors="replace"))
        except UnsupportedEncodingError as e:
            return ReencodeResult(data=bytes(buffer), error=e)
        return ReencodeResult(data=output)


def _stage(stage: str, encoding: str, step: Callable[[], T]) -> T:
    try:
        return step()
    except LookupError as e:
        raise UnsupportedEncodingError(encoding, stage) from e
