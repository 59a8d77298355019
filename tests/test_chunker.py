"""
Tests for splitting, training, validating and chunking.
"""

import pandas as pd
import pytest

from ig_chunker.chunker import (
    aligned_features,
    chunk,
    load_chunker,
    save_chunker,
    split_train_test,
    train_chunker,
    validate,
)
from ig_chunker.feature_extractor import build_features
from ig_chunker.tags import OUTPUT_COLUMNS


def _tagged_table(counts):
    tags = [tag for tag, count in counts.items() for _ in range(count)]
    return pd.DataFrame({"word=a": range(len(tags)), "tag": tags})


def test_split_keeps_every_tag_in_training():
    data = _tagged_table({"A": 10, "B": 2})
    training, testing = split_train_test(data, fraction=0.5, random_state=0)

    assert training["tag"].value_counts().to_dict() == {"A": 5, "B": 1}
    assert testing["tag"].value_counts().to_dict() == {"A": 5, "B": 1}
    assert sorted(training["word=a"].tolist() + testing["word=a"].tolist()) == list(range(12))


def test_split_keeps_singleton_tags_and_row_order():
    data = _tagged_table({"A": 4, "B": 1})
    split = split_train_test(data, fraction=0.5, random_state=1)

    assert "B" in split.training["tag"].tolist()
    assert split.training["word=a"].is_monotonic_increasing
    assert split.testing["word=a"].is_monotonic_increasing


def test_split_is_reproducible():
    data = _tagged_table({"A": 20, "B": 7, "C": 3})
    first = split_train_test(data, fraction=0.6, random_state=42)
    second = split_train_test(data, fraction=0.6, random_state=42)
    pd.testing.assert_frame_equal(first.training, second.training)


@pytest.mark.parametrize("fraction", [0, -0.1, 1.5])
def test_split_rejects_bad_fraction(fraction):
    with pytest.raises(ValueError):
        split_train_test(_tagged_table({"A": 2}), fraction=fraction)


def test_chunk_round_trip_with_encoder_tags(chunked_fragments, tokenizer, replay_model):
    """Replaying the training tags on the same text rebuilds the fragments."""
    unchunked = chunked_fragments[["source", "text"]]
    features = build_features(chunked_fragments, unchunked, number_of_words=5, window=2, tokenizer=tokenizer)

    spans = chunk(replay_model(features.chunked["tag"]), features.unchunked)

    assert list(spans.columns) == OUTPUT_COLUMNS
    assert spans["text"].tolist() == chunked_fragments["text"].tolist()
    assert spans["statement_ID"].tolist() == [1] * 5 + [2] + [3] * 5
    assert spans["source"].tolist() == [1] * 11
    for decoded, original in zip(spans["component"], chunked_fragments["component"]):
        if pd.isna(original):
            assert pd.isna(decoded)
        else:
            assert decoded == original


def test_chunk_empty_table(replay_model):
    spans = chunk(replay_model([]), pd.DataFrame(columns=["word=a", "word_original", "source"]))
    assert spans.empty
    assert list(spans.columns) == OUTPUT_COLUMNS


@pytest.fixture
def features(chunked_fragments, unchunked_fragments, tokenizer):
    return build_features(chunked_fragments, unchunked_fragments, number_of_words=3, window=3, tokenizer=tokenizer)


def test_train_validate_and_chunk(features):
    model = train_chunker(features.chunked, n_estimators=10, random_state=0)
    assert model.n_estimators == 10

    table = validate(model, features.chunked)
    assert table.index.name == "true"
    assert table.columns.name == "predicted"
    assert table.values.sum() == len(features.chunked)
    assert set(table.index) == set(features.chunked["tag"])

    spans = chunk(model, features.unchunked)
    assert list(spans.columns) == OUTPUT_COLUMNS
    assert set(spans["source"]) == {2}
    assert " ".join(spans["text"]) == "Chemical plants must not ever pollute the soil"


def test_validate_empty_testing_table(features):
    model = train_chunker(features.chunked, n_estimators=5, random_state=0)
    table = validate(model, features.chunked.iloc[0:0])
    assert list(table.index) == list(table.columns) == sorted(model.classes_)
    assert table.values.sum() == 0


def test_train_chunker_rejects_empty_table(features):
    with pytest.raises(ValueError):
        train_chunker(features.chunked.iloc[0:0])


def test_save_and_load_chunker(features, tmp_path):
    model = train_chunker(features.chunked, n_estimators=5, random_state=0)
    path = tmp_path / "models" / "chunker.joblib"
    save_chunker(model, path)

    loaded = load_chunker(path)
    pd.testing.assert_frame_equal(chunk(loaded, features.unchunked), chunk(model, features.unchunked))


def test_validate_lists_every_tag_on_both_axes(replay_model):
    """A tag that is never predicted still gets a column, keeping the table square."""
    testing = pd.DataFrame({"word=a": [1, 0, 0, 1], "tag": ["A", "B", "B", "C"]})
    table = validate(replay_model(["A", "C", "C", "C"]), testing)

    assert list(table.index) == ["A", "B", "C"]
    assert list(table.columns) == ["A", "B", "C"]
    assert table.loc["B"].tolist() == [0, 0, 2]
    assert table.values.trace() == 2


def test_chunk_features_from_a_different_build(chunked_fragments, unchunked_fragments, tokenizer):
    """New text brings new indicator columns; the chunker still predicts."""
    trained_on = build_features(chunked_fragments, unchunked_fragments, number_of_words=3, window=2, tokenizer=tokenizer)
    model = train_chunker(trained_on.chunked, n_estimators=5, random_state=0)

    new_text = pd.DataFrame({"source": [5], "text": ["Factories shall NOT dump 42 barrels"]})
    later = build_features(chunked_fragments, new_text, number_of_words=3, window=2, tokenizer=tokenizer)
    assert set(later.unchunked.columns) != set(trained_on.unchunked.columns)

    aligned = aligned_features(model, later.unchunked)
    assert list(aligned.columns) == list(model.feature_names_in_)
    assert "part_of_speech=DD" in later.unchunked.columns
    assert "part_of_speech=DD" not in aligned.columns

    spans = chunk(model, later.unchunked)
    assert set(spans["source"]) == {5}
    assert " ".join(spans["text"]) == "Factories shall NOT dump 42 barrels"
