import pandas as pd
import pytest

from ig_chunker.tokenizer import RegexTokenizer


@pytest.fixture
def chunked_fragments():
    return pd.DataFrame({
        "source": [1] * 11,
        "text": ["Power plants", "must not", "ever", "pollute", "the air",
                 "and also",
                 "sewage plants", "must not", "ever", "pollute", "the water"],
        "component": ["attribute", "deontic", None, "aim", "object",
                      None,
                      "attribute", "deontic", None, "aim", "object"],
        "statement_ID": [1, 1, 1, 1, 1,
                         2,
                         3, 3, 3, 3, 3],
    })


@pytest.fixture
def unchunked_fragments():
    return pd.DataFrame({
        "source": [2],
        "text": ["Chemical plants must not ever pollute the soil"],
    })


@pytest.fixture
def tokenizer():
    return RegexTokenizer()


class ReplayModel:
    """Stands in for a classifier by returning fixed tags."""

    def __init__(self, tags):
        self.tags = list(tags)

    def predict(self, features):
        assert len(features) == len(self.tags)
        return self.tags


@pytest.fixture
def replay_model():
    return ReplayModel
