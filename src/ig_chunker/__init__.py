"""Chunk text into institutional grammar statements and components."""

from .chunker import chunk, split_train_test, train_chunker, validate
from .feature_extractor import (
    CategoricalSchema,
    ChunkFeatures,
    ReservedCharacterError,
    TokenizationError,
    build_features,
    lags_and_leads,
    reduce_vocabulary,
)
from .tags import CompositeTag, Position, decode_tags
from .tokenizer import NltkTokenizer, RegexTokenizer, TokenSpan

__all__ = [
    "build_features",
    "split_train_test",
    "train_chunker",
    "validate",
    "chunk",
    "decode_tags",
    "CompositeTag",
    "Position",
    "reduce_vocabulary",
    "lags_and_leads",
    "CategoricalSchema",
    "ChunkFeatures",
    "ReservedCharacterError",
    "TokenizationError",
    "NltkTokenizer",
    "RegexTokenizer",
    "TokenSpan",
]
