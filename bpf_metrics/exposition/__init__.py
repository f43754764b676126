from .decoder import DecodeStatus, ExpositionDecoder, decode, fold_programs
from .encoder import CONTENT_TYPE, EOF_MARKER, encode

__all__ = [
    "CONTENT_TYPE",
    "EOF_MARKER",
    "encode",
    "decode",
    "fold_programs",
    "DecodeStatus",
    "ExpositionDecoder",
]
