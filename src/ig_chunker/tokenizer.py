# In src/ig_chunker/tokenizer.py

import logging
import re
from dataclasses import dataclass
from typing import Optional

import nltk
from nltk.tokenize import PunktSentenceTokenizer, WordPunctTokenizer

logger = logging.getLogger(__name__)

WORD = "word"
SENTENCE = "sentence"

# Separates words from punctuation.
TOKEN_PATTERN = re.compile(r"[\w'-]+|[.,!?;:()]|\S+")


@dataclass(frozen=True)
class TokenSpan:
    """One annotation over a text: end-exclusive character offsets."""

    start: int
    end: int
    kind: str = WORD
    part_of_speech: Optional[str] = None


def get_token_signature(token):
    """Generates a 'signature' of a token by replacing character types."""
    return "".join(['C' if char.isupper() else 'c' if char.islower() else 'D' if char.isdigit() else char for char in token])


class RegexTokenizer:
    """Tokenizes with a regular expression and tags each word with its
    character signature instead of a part of speech.

    Needs no downloaded models, which makes it handy for tests and for
    quick experiments.
    """

    def __init__(self, pattern=TOKEN_PATTERN):
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern

    def __call__(self, text):
        return [
            TokenSpan(m.start(), m.end(), WORD, get_token_signature(m.group(0)))
            for m in self.pattern.finditer(text)
        ]


def _ensure_nltk_resource(path, package):
    try:
        nltk.data.find(path)
    except LookupError:
        logger.info("Downloading NLTK resource '%s'", package)
        nltk.download(package, quiet=True)


class NltkTokenizer:
    """Sentence spans from Punkt, word spans from WordPunct, and Penn
    Treebank part-of-speech tags from NLTK's averaged perceptron tagger."""

    def __init__(self, tagger_resource="averaged_perceptron_tagger_eng"):
        _ensure_nltk_resource(f"taggers/{tagger_resource}", tagger_resource)
        self.sentence_tokenizer = PunktSentenceTokenizer()
        self.word_tokenizer = WordPunctTokenizer()

    def __call__(self, text):
        spans = []
        for sent_start, sent_end in self.sentence_tokenizer.span_tokenize(text):
            spans.append(TokenSpan(sent_start, sent_end, SENTENCE))
            sentence = text[sent_start:sent_end]
            word_spans = list(self.word_tokenizer.span_tokenize(sentence))
            words = [sentence[start:end] for start, end in word_spans]
            for (start, end), (_, pos) in zip(word_spans, nltk.pos_tag(words)):
                spans.append(TokenSpan(sent_start + start, sent_start + end, WORD, pos))
        return spans


TOKENIZERS = {
    'nltk': NltkTokenizer,
    'regex': RegexTokenizer,
}
