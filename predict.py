# In predict.py (in the root folder)

import argparse
import logging

import pandas as pd

from ig_chunker.chunker import CHUNKER_MODEL_PATH, chunk, load_chunker
from ig_chunker.feature_extractor import DEFAULT_NUMBER_OF_WORDS, DEFAULT_WINDOW, build_features
from ig_chunker.process_data import read_fragments
from ig_chunker.tokenizer import TOKENIZERS


def main(argv=None):
    parser = argparse.ArgumentParser(description="Chunk unchunked text with a trained chunker.")
    parser.add_argument('chunked', help="The chunked fragments the model was trained with")
    parser.add_argument('unchunked', help="Fragments to chunk")
    parser.add_argument('--model', default=CHUNKER_MODEL_PATH)
    # Must match the values used for training so the indicator columns line up.
    parser.add_argument('--number-of-words', type=int, default=DEFAULT_NUMBER_OF_WORDS)
    parser.add_argument('--window', type=int, default=DEFAULT_WINDOW)
    parser.add_argument('--tokenizer', choices=sorted(TOKENIZERS), default='nltk')
    parser.add_argument('--output', help="Write the chunks to this CSV file instead of printing them")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # --- 1. Load the trained chunker and the fragments ---
    print("Loading the trained chunker...")
    try:
        model = load_chunker(args.model)
        chunked = read_fragments(args.chunked, chunked=True)
        unchunked = read_fragments(args.unchunked, chunked=False)
    except FileNotFoundError as e:
        print(f"Error: A file was not found: {e}")
        print("Please run 'python -m ig_chunker.chunker' first to train and save the chunker.")
        return 1

    # --- 2. Rebuild features exactly as done in training ---
    features = build_features(chunked, unchunked, number_of_words=args.number_of_words, window=args.window,
                              tokenizer=TOKENIZERS[args.tokenizer]())

    # --- 3. Chunk ---
    chunks = chunk(model, features.unchunked)

    if args.output:
        chunks.to_csv(args.output, index=False)
        print(f"Saved {len(chunks)} chunks to {args.output}")
        return 0

    print("\n" + "="*50)
    for row in chunks.itertuples(index=False):
        component = "-" if pd.isna(row.component) else row.component
        print(f"[{row.source} / {row.statement_ID}] {component}: {row.text}")
    print("="*50)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
