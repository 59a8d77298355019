# In src/ig_chunker/chunker.py

import argparse
import logging
import math
from pathlib import Path
from typing import NamedTuple

import joblib # Import joblib for saving the chunker
import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier

from .feature_extractor import DEFAULT_NUMBER_OF_WORDS, DEFAULT_WINDOW, build_features, feature_matrix
from .process_data import read_fragments
from .tags import OUTPUT_COLUMNS, decode_tags
from .tokenizer import TOKENIZERS

logger = logging.getLogger(__name__)

# --- 1. Configuration ---
DEFAULT_TRAINING_FRACTION = 0.6
CHUNKER_MODEL_PATH = 'saved_models/chunker.joblib'
CONFUSION_TABLE_PATH = 'saved_models/confusion_table.csv'
FOREST_DEFAULTS = {
    'n_estimators': 500,
}


class TrainTestSplit(NamedTuple):
    training: pd.DataFrame
    testing: pd.DataFrame


# --- 2. Training and evaluation ---

def split_train_test(data, fraction=DEFAULT_TRAINING_FRACTION, random_state=None):
    """
    Split data into training and testing data, sampling `fraction` of the
    rows of every tag so rare tags are represented in training. Every tag
    with at least one row contributes at least one training row.
    """
    if not 0 < fraction <= 1:
        raise ValueError(f"fraction must be in (0, 1], got {fraction}")
    if 'tag' not in data.columns:
        raise ValueError("Cannot split a table without a 'tag' column")

    rng = np.random.default_rng(random_state)
    positions = pd.Series(np.arange(len(data)), index=data.index)
    training_rows = []
    for tag, rows in positions.groupby(data['tag'].to_numpy(), sort=True):
        size = max(1, math.floor(fraction * len(rows) + 0.5))
        training_rows.extend(rng.choice(rows.to_numpy(), size=size, replace=False))
        logger.debug("Tag %r: %d of %d rows to training", tag, size, len(rows))

    is_training = np.zeros(len(data), dtype=bool)
    is_training[np.asarray(training_rows, dtype=int)] = True
    return TrainTestSplit(
        training=data.iloc[is_training].reset_index(drop=True),
        testing=data.iloc[~is_training].reset_index(drop=True),
    )


def train_chunker(features_chunked, **classifier_params):
    """
    Build a chunker: a random forest predicting the composite tag of each
    word. Keyword arguments are passed to RandomForestClassifier.
    """
    if len(features_chunked) == 0:
        raise ValueError("Cannot train a chunker on an empty table")
    params = {**FOREST_DEFAULTS, **classifier_params}
    model = RandomForestClassifier(**params)
    model.fit(feature_matrix(features_chunked), features_chunked['tag'].to_numpy())
    logger.info("Trained chunker on %d rows and %d tags", len(features_chunked), len(model.classes_))
    return model


def aligned_features(chunker, table):
    """
    Indicator columns of `table` in the order the chunker was fit with.
    Columns the chunker never saw are dropped and missing ones are zero.
    """
    features = feature_matrix(table)
    names = getattr(chunker, 'feature_names_in_', None)
    if names is None:
        return features
    missing = len(set(names) - set(features.columns))
    unseen = len(set(features.columns) - set(names))
    if missing or unseen:
        logger.info("Aligning features: %d columns zero-filled, %d unseen columns dropped", missing, unseen)
    return features.reindex(columns=names, fill_value=0)


def validate(chunker, testing):
    """
    Two way table of actual tags (rows) against predicted tags (columns).
    Both axes list every known tag, so the diagonal holds the correct
    predictions.
    """
    if len(testing) == 0:
        predicted = np.array([], dtype=object)
    else:
        predicted = np.asarray(chunker.predict(aligned_features(chunker, testing)))
    actual = testing['tag'].to_numpy()
    tags = sorted(set(getattr(chunker, 'classes_', [])) | set(actual) | set(predicted))

    if len(actual) == 0:
        table = pd.DataFrame(0, index=tags, columns=tags)
    else:
        table = pd.crosstab(pd.Series(actual, name='true'), pd.Series(predicted, name='predicted'))
        table = table.reindex(index=tags, columns=tags, fill_value=0)
    table.index.name = 'true'
    table.columns.name = 'predicted'
    return table


def chunk(chunker, features_unchunked):
    """
    Chunk text with a chunker and unchunked features. Returns one row per
    reconstructed component span: source, statement_ID, component, text.
    """
    if len(features_unchunked) == 0:
        return pd.DataFrame(columns=OUTPUT_COLUMNS)
    tags = chunker.predict(aligned_features(chunker, features_unchunked))
    return decode_tags(
        list(tags),
        features_unchunked['word_original'].tolist(),
        features_unchunked['source'].tolist(),
    )


def save_chunker(chunker, path=CHUNKER_MODEL_PATH):
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(chunker, path)
    logger.info("Chunker saved to %s", path)


def load_chunker(path=CHUNKER_MODEL_PATH):
    return joblib.load(path)


# --- 3. Main Execution Block ---
def main(argv=None):
    parser = argparse.ArgumentParser(description="Train and validate an institutional grammar chunker.")
    parser.add_argument('chunked', help="Chunked fragments (.csv or .jsonl)")
    parser.add_argument('unchunked', help="Unchunked fragments (.csv or .jsonl)")
    parser.add_argument('--number-of-words', type=int, default=DEFAULT_NUMBER_OF_WORDS)
    parser.add_argument('--window', type=int, default=DEFAULT_WINDOW)
    parser.add_argument('--tokenizer', choices=sorted(TOKENIZERS), default='nltk')
    parser.add_argument('--fraction', type=float, default=DEFAULT_TRAINING_FRACTION)
    parser.add_argument('--n-estimators', type=int, default=FOREST_DEFAULTS['n_estimators'])
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--model', default=CHUNKER_MODEL_PATH)
    parser.add_argument('--confusion-table', default=CONFUSION_TABLE_PATH)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        chunked = read_fragments(args.chunked, chunked=True)
        unchunked = read_fragments(args.unchunked, chunked=False)
    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}")
        return 1

    print("Building features...")
    features = build_features(chunked, unchunked, number_of_words=args.number_of_words, window=args.window,
                              tokenizer=TOKENIZERS[args.tokenizer]())

    print("Splitting into training and testing data...")
    split = split_train_test(features.chunked, fraction=args.fraction, random_state=args.seed)
    print(f"  Training rows: {len(split.training)} | Testing rows: {len(split.testing)}")

    print("Training chunker...")
    model = train_chunker(split.training, n_estimators=args.n_estimators, random_state=args.seed)

    print("\n--- Confusion table (true tags as rows) ---")
    table = validate(model, split.testing)
    print(table.to_string())
    Path(args.confusion_table).parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(args.confusion_table)

    save_chunker(model, args.model)
    print(f"\nModel saved to '{args.model}'")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
