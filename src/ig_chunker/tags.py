# In src/ig_chunker/tags.py

"""
Composite tag grammar for institutional grammar chunking.

Every token gets one tag combining where it sits in a statement with where
it sits in a component, e.g. ``"beginning statement inside aim"`` or
``"outside statement outside component"``. Decoding turns a sequence of
(possibly noisy) predicted tags back into statements and components.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
import pandas as pd
from tqdm import tqdm

logger = logging.getLogger(__name__)

STATEMENT_WORD = "statement"
COMPONENT_WORD = "component"
OUTPUT_COLUMNS = ["source", "statement_ID", "component", "text"]


class Position(str, Enum):
    BEGINNING = "beginning"
    INSIDE = "inside"
    OUTSIDE = "outside"


_POSITIONS = {position.value: position for position in Position}


@dataclass(frozen=True)
class CompositeTag:
    """A parsed or to-be-encoded composite tag.

    Positions are ``None`` only when parsed from a malformed tag.
    """

    statement_position: Optional[Position]
    component_position: Optional[Position]
    component: Optional[str] = None

    @property
    def inside_statement(self):
        return self.statement_position is not Position.OUTSIDE

    def encode(self):
        if self.statement_position is None or self.component_position is None:
            raise ValueError(f"Cannot encode a tag with a missing position: {self!r}")
        if self.component_position is Position.OUTSIDE:
            if self.component is not None:
                raise ValueError(f"An outside component cannot carry a label: {self!r}")
            component_part = f"{Position.OUTSIDE.value} {COMPONENT_WORD}"
        else:
            if not self.component:
                raise ValueError(f"A {self.component_position.value} component needs a label: {self!r}")
            if self.statement_position is Position.OUTSIDE:
                raise ValueError(f"Labelled components only occur inside statements: {self!r}")
            component_part = f"{self.component_position.value} {self.component}"
        return f"{self.statement_position.value} {STATEMENT_WORD} {component_part}"

    def __str__(self):
        return self.encode()

    @classmethod
    def parse(cls, tag):
        """Parses a tag string without ever raising.

        Accepts both ``"<pos> statement outside component"`` and
        ``"<pos> statement <pos> <label>"``, as well as truncated forms where
        the statement part is missing. Anything unrecognised is left as None.
        """
        if not isinstance(tag, str):
            return cls(None, None)
        words = tag.split()

        statement_position = None
        rest = words
        if len(words) >= 2 and words[1] == STATEMENT_WORD and words[0] in _POSITIONS:
            statement_position = _POSITIONS[words[0]]
            rest = words[2:]

        component_position = None
        component = None
        if rest and rest[0] in _POSITIONS:
            component_position = _POSITIONS[rest[0]]
            if component_position is not Position.OUTSIDE:
                component = " ".join(rest[1:]) or None

        return cls(statement_position, component_position, component)


# --- Encoding ---

def statement_tag(inside, first_token):
    """Statement position of a token from its statement's in/out status."""
    if not inside:
        return Position.OUTSIDE
    return Position.BEGINNING if first_token else Position.INSIDE


def component_tag(component, first_token):
    """Component half of a tag; the statement position is filled in later."""
    if component is None:
        return CompositeTag(None, Position.OUTSIDE)
    position = Position.BEGINNING if first_token else Position.INSIDE
    return CompositeTag(None, position, component)


def encode_tag(inside, first_in_statement, component, first_in_text):
    """Builds the full composite tag string for one token."""
    half = component_tag(component, first_in_text)
    return CompositeTag(
        statement_tag(inside, first_in_statement),
        half.component_position,
        half.component,
    ).encode()


# --- Decoding ---

class RunState(Enum):
    INSIDE = "inside"
    OUTSIDE = "outside"


def advance(state, position):
    """One step of the boundary fold.

    Returns ``(starts_group, next_state)``. A group starts on ``beginning``,
    or on ``outside`` when the previous token was not outside. A missing
    position is read as ``inside``.
    """
    if position is Position.OUTSIDE:
        return state is not RunState.OUTSIDE, RunState.OUTSIDE
    return position is Position.BEGINNING, RunState.INSIDE


def number_runs(positions):
    """Numbers groups 1..M over an ordered sequence of position markers.

    The first token always opens group 1, so an ``inside`` with no earlier
    ``beginning`` joins whatever group is open.
    """
    state = RunState.INSIDE
    group = 0
    numbers = []
    for index, position in enumerate(positions):
        starts_group, state = advance(state, position)
        if starts_group or index == 0:
            group += 1
        numbers.append(group)
    return numbers


def _first_observed(values):
    value = values.iloc[0]
    return None if pd.isna(value) else value


def decode_tags(tags, words, sources):
    """Rebuilds component spans from per-token tags.

    ``tags``, ``words`` and ``sources`` are aligned and in token order.
    Returns one row per (source, statement, component group) with the
    columns ``source, statement_ID, component, text``.
    """
    if not (len(tags) == len(words) == len(sources)):
        raise ValueError(
            f"tags, words and sources must be aligned, got lengths "
            f"{len(tags)}, {len(words)} and {len(sources)}"
        )
    if len(tags) == 0:
        return pd.DataFrame(columns=OUTPUT_COLUMNS)

    parsed = [CompositeTag.parse(tag) for tag in tags]
    statement_positions = [tag.statement_position for tag in parsed]
    component_positions = [tag.component_position for tag in parsed]
    tokens = pd.DataFrame({
        "source": list(sources),
        "word_original": [str(word) for word in words],
        "component": pd.Series([tag.component for tag in parsed], dtype=object),
    })

    statement_ids = np.zeros(len(tokens), dtype=int)
    text_ids = np.zeros(len(tokens), dtype=int)
    by_source = tokens.groupby("source", sort=False, dropna=False)
    for _, source_tokens in tqdm(by_source, desc="Decoding sources", leave=False):
        rows = source_tokens.index.to_numpy()
        statements = np.asarray(number_runs(statement_positions[row] for row in rows))
        statement_ids[rows] = statements
        for statement in np.unique(statements):
            statement_rows = rows[statements == statement]
            text_ids[statement_rows] = number_runs(component_positions[row] for row in statement_rows)

    tokens["statement_ID"] = statement_ids
    tokens["text_ID"] = text_ids

    spans = (
        tokens
        .groupby(["source", "statement_ID", "text_ID"], sort=False, dropna=False)
        .agg(component=("component", _first_observed),
             text=("word_original", " ".join))
        .reset_index()
    )
    logger.debug("Decoded %d tokens into %d spans", len(tokens), len(spans))
    return spans[OUTPUT_COLUMNS]
