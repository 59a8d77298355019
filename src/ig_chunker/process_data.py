# In src/ig_chunker/process_data.py

import json
import logging
from pathlib import Path

import pandas as pd
from tqdm import tqdm # A library to show progress bars

logger = logging.getLogger(__name__)

CHUNKED_COLUMNS = ["source", "text", "component", "statement_ID"]
UNCHUNKED_COLUMNS = ["source", "text"]


def required_columns(chunked):
    return CHUNKED_COLUMNS if chunked else UNCHUNKED_COLUMNS


def validate_fragments(fragments, chunked):
    """
    Checks a fragment table has the columns it needs and returns a copy with
    only those columns, in order. Empty components become missing values.
    """
    columns = required_columns(chunked)
    missing = [column for column in columns if column not in fragments.columns]
    if missing:
        kind = "chunked" if chunked else "unchunked"
        raise ValueError(f"The {kind} fragments are missing required columns: {missing}")

    fragments = fragments.loc[:, columns].copy()
    fragments["text"] = fragments["text"].fillna("").astype(str)
    if chunked:
        component = fragments["component"].astype(object)
        blank = component.isna() | (component.astype(str).str.strip() == "")
        fragments["component"] = pd.Series(
            [None if is_blank else value for value, is_blank in zip(component, blank)],
            index=fragments.index, dtype=object,
        )
    return fragments.reset_index(drop=True)


def read_fragments(file_path, chunked):
    """
    Reads fragments from a .csv or .jsonl file.

    Each JSON line is one fragment. Records missing a required key are
    skipped with a warning.
    """
    file_path = Path(file_path)
    columns = required_columns(chunked)

    if file_path.suffix == ".csv":
        fragments = pd.read_csv(file_path)
    elif file_path.suffix in (".jsonl", ".json"):
        records = []
        with open(file_path, 'r', encoding='utf-8') as f:
            for line_number, line in enumerate(tqdm(f, desc=f"Reading {file_path.name}"), 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                # component may legitimately be null, but the key has to be there
                try:
                    records.append({column: data[column] for column in columns})
                except KeyError as e:
                    logger.warning("Line %d of %s is missing %s. Skipping this record.", line_number, file_path, e)
                    continue
        fragments = pd.DataFrame(records, columns=columns)
    else:
        raise ValueError(f"Unsupported fragment file type '{file_path.suffix}' for {file_path}")

    logger.info("Read %d %s fragments from %s", len(fragments), "chunked" if chunked else "unchunked", file_path)
    return validate_fragments(fragments, chunked)
