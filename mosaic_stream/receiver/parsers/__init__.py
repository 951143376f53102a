"""Record layouts and sentence parsers."""

from .nmea_parser import DEFAULT_SENTENCE_PARSERS, GgaParser, SentenceParser, tokenize_sentence
from .nmea_types import CommandResponse, GpggaRecord, NMEASentence
from .sbf_blocks import (
    SBF_SCHEMAS,
    AttCovEuler,
    AttEuler,
    PosCovGeodetic,
    PVTCartesian,
    PVTGeodetic,
    SbfRecord,
    SbfSchema,
    encode_block,
)

__all__ = [
    "DEFAULT_SENTENCE_PARSERS",
    "SBF_SCHEMAS",
    "AttCovEuler",
    "AttEuler",
    "CommandResponse",
    "GgaParser",
    "GpggaRecord",
    "NMEASentence",
    "PVTCartesian",
    "PVTGeodetic",
    "PosCovGeodetic",
    "SbfRecord",
    "SbfSchema",
    "SentenceParser",
    "encode_block",
    "tokenize_sentence",
]
