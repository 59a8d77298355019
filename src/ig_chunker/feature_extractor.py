# In src/ig_chunker/feature_extractor.py

import logging
from dataclasses import dataclass, field
from typing import List, NamedTuple, Tuple

import numpy as np
import pandas as pd

from .process_data import validate_fragments
from .tags import encode_tag
from .tokenizer import SENTENCE, WORD, NltkTokenizer

logger = logging.getLogger(__name__)

# --- 1. Configuration ---
SEPARATOR = "␞"  # SYMBOL FOR RECORD SEPARATOR, must never occur in input text
OTHER_TOKEN = "<OTHER>"
START_TOKEN = "<START>"
END_TOKEN = "<END>"
DEFAULT_NUMBER_OF_WORDS = 50
DEFAULT_WINDOW = 10

FEATURE_NAMES = ("word", "part_of_speech")
NON_FEATURE_COLUMNS = ("tag", "word_original", "source")


class ReservedCharacterError(ValueError):
    """Input text contains the reserved text-unit separator."""


class TokenizationError(RuntimeError):
    """The tokenizer did not keep the text-unit separator as its own token."""


class ChunkFeatures(NamedTuple):
    chunked: pd.DataFrame
    unchunked: pd.DataFrame


# --- 2. Vocabulary and context windows ---

def reduce_vocabulary(words, number_of_words=DEFAULT_NUMBER_OF_WORDS, other=OTHER_TOKEN):
    """
    Keeps the `number_of_words` most frequent words and replaces the rest with
    `other`. Ties are broken by first appearance. `other` itself is never
    ranked, so reducing twice gives the same result as reducing once.
    """
    if number_of_words < 0:
        raise ValueError(f"number_of_words must be non-negative, got {number_of_words}")
    words = pd.Series(words, dtype=object)
    candidates = words[words != other]
    counts = candidates.value_counts()
    if len(counts) <= number_of_words:
        return words.copy()

    ranked = sorted(pd.unique(candidates), key=lambda word: -counts[word])
    keep = set(ranked[:number_of_words])
    return words.where(words.isin(keep) | (words == other), other)


def window_columns(name, window):
    columns = []
    for i in range(1, window + 1):
        columns += [f"{name}_lag_{i}", f"{name}_lead_{i}"]
    return columns


def lags_and_leads(frame, name, window=0, by=None):
    """
    Adds `window` lag and lead copies of column `name`. With `by`, windows
    are computed within each group and never cross group boundaries.
    Positions before the start get START_TOKEN, after the end END_TOKEN.
    """
    if window < 0:
        raise ValueError(f"window must be non-negative, got {window}")
    frame = frame.copy()
    if by:
        values = frame.groupby(list(by), sort=False, dropna=False)[name]
    else:
        values = frame[name]
    for i in range(1, window + 1):
        frame[f"{name}_lag_{i}"] = values.shift(i, fill_value=START_TOKEN)
        frame[f"{name}_lead_{i}"] = values.shift(-i, fill_value=END_TOKEN)
    return frame


# --- 3. One-hot schema ---

@dataclass
class CategoricalSchema:
    """An ordered list of (column, category) indicator pairs.

    Fit once on every row that will ever be encoded, then applied to each
    partition so all partitions share exactly the same columns.
    """

    pairs: List[Tuple[str, str]] = field(default_factory=list)

    @classmethod
    def fit(cls, frame, columns):
        pairs = []
        for column in columns:
            for category in sorted(frame[column].astype(str).unique()):
                pairs.append((column, category))
        return cls(pairs)

    @property
    def columns(self):
        return [f"{column}={category}" for column, category in self.pairs]

    def transform(self, frame):
        as_text = {}
        data = {}
        for (column, category), name in zip(self.pairs, self.columns):
            if column not in as_text:
                as_text[column] = frame[column].astype(str).to_numpy()
            data[name] = (as_text[column] == category).astype(np.uint8)
        return pd.DataFrame(data, index=frame.index, columns=self.columns)


def feature_matrix(table):
    """Drops target and traceability columns, leaving only indicators."""
    return table.drop(columns=[c for c in NON_FEATURE_COLUMNS if c in table.columns])


# --- 4. Tokenization ---

def tokenize_texts(texts, tokenizer):
    """
    Tokenizes text units joined by the separator and maps every word token
    back to the index of the text unit it came from.
    Returns (text_ids, words, parts_of_speech).
    """
    texts = list(texts)
    if not texts:
        return [], [], []

    all_texts = f" {SEPARATOR} ".join(texts)
    text_ids, words, parts_of_speech = [], [], []
    text_id = 0
    for span in tokenizer(all_texts):
        surface = all_texts[span.start:span.end]
        if span.kind != SENTENCE and surface == SEPARATOR:
            text_id += 1
            continue
        if span.kind != WORD:
            continue
        text_ids.append(text_id)
        words.append(surface)
        parts_of_speech.append(span.part_of_speech)

    if text_id != len(texts) - 1:
        raise TokenizationError(
            f"Expected {len(texts) - 1} separator tokens but found {text_id}; "
            f"the tokenizer must split '{SEPARATOR}' into a token of its own"
        )
    return text_ids, words, parts_of_speech


def _check_reserved(texts):
    reserved = texts.str.contains(SEPARATOR, regex=False)
    if reserved.any():
        rows = reserved[reserved].index.tolist()
        raise ReservedCharacterError(
            f"Text in rows {rows[:10]} contains the reserved separator {SEPARATOR!r} (U+241E)"
        )


# --- 5. Feature tables ---

def build_features(chunked, unchunked, number_of_words=DEFAULT_NUMBER_OF_WORDS,
                   window=DEFAULT_WINDOW, tokenizer=None):
    """
    Create features for chunking.

    Chunked and unchunked text must be included together so that both share
    one vocabulary and one indicator schema.

    chunked: fragments with columns source, text, component (missing when
        the fragment is not a component) and statement_ID. Text between
        statements gets its own statement_ID and no components.
    unchunked: fragments with columns source and text.
    number_of_words: number of distinct words kept; others become OTHER_TOKEN.
    window: number of words before and after each word used as features.
    tokenizer: callable text -> list of TokenSpan; NltkTokenizer by default.

    Returns ChunkFeatures(chunked, unchunked). The chunked table carries the
    composite `tag`; the unchunked table carries `word_original` and `source`.
    """
    if window < 0:
        raise ValueError(f"window must be non-negative, got {window}")
    chunked = validate_fragments(chunked, chunked=True)
    unchunked = validate_fragments(unchunked, chunked=False)

    texts = pd.concat(
        [
            chunked.assign(chunked=True),
            unchunked.assign(component=None, statement_ID=None, chunked=False),
        ],
        ignore_index=True,
    )
    texts["component"] = texts["component"].astype(object)
    texts["chunked"] = texts["chunked"].astype(bool)
    _check_reserved(texts["text"])

    statement_keys = ["chunked", "source", "statement_ID"]
    if len(texts):
        texts["inside"] = (
            texts.groupby(statement_keys, sort=False, dropna=False)["component"]
            .transform(lambda component: component.notna().any())
            .astype(bool)
        )
    else:
        texts["inside"] = pd.Series(dtype=bool)

    if tokenizer is None:
        tokenizer = NltkTokenizer()
    text_ids, word_originals, parts_of_speech = tokenize_texts(texts["text"], tokenizer)

    words = texts.iloc[text_ids].reset_index(drop=True)
    words["text_ID"] = np.asarray(text_ids, dtype=int)
    words["word_original"] = pd.Series(word_originals, dtype=object)
    words["part_of_speech"] = pd.Series(parts_of_speech, dtype=object)
    words["word"] = reduce_vocabulary(words["word_original"], number_of_words).to_numpy()

    first_in_statement = words.groupby(statement_keys, sort=False, dropna=False).cumcount() == 0
    first_in_text = words.groupby("text_ID", sort=False).cumcount() == 0
    words["tag"] = [
        encode_tag(inside, statement_first, None if pd.isna(component) else component, text_first)
        for inside, statement_first, component, text_first in zip(
            words["inside"], first_in_statement, words["component"], first_in_text)
    ]

    feature_columns = list(FEATURE_NAMES)
    for name in FEATURE_NAMES:
        words = lags_and_leads(words, name, window, by=["chunked", "source"])
        feature_columns += window_columns(name, window)

    schema = CategoricalSchema.fit(words, feature_columns)
    encoded = schema.transform(words)
    is_chunked = words["chunked"].to_numpy(dtype=bool)

    chunked_table = encoded.loc[is_chunked].reset_index(drop=True)
    chunked_table["tag"] = words.loc[is_chunked, "tag"].to_numpy()

    unchunked_table = encoded.loc[~is_chunked].reset_index(drop=True)
    unchunked_table["word_original"] = words.loc[~is_chunked, "word_original"].to_numpy()
    unchunked_table["source"] = words.loc[~is_chunked, "source"].to_numpy()

    logger.info(
        "Built %d chunked and %d unchunked feature rows with %d indicator columns",
        len(chunked_table), len(unchunked_table), len(schema.pairs),
    )
    return ChunkFeatures(chunked_table, unchunked_table)
