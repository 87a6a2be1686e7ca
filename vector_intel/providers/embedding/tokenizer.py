"""
WordPiece Tokenizer

Minimal BERT-style tokenizer for the local ONNX model: lowercases, strips
accents, splits on whitespace and punctuation, then greedily matches the
longest vocabulary pieces ("##" marks word continuations).

Encoded sequences are [CLS] tokens... [SEP], truncated to max_length and
right-padded with [PAD] inside a batch.
"""

from __future__ import annotations

import unicodedata
from pathlib import Path

import numpy as np

PAD_ID = 0
UNK_ID = 100
CLS_ID = 101
SEP_ID = 102

MAX_CHARS_PER_WORD = 100


def _is_punctuation(char: str) -> bool:
    cp = ord(char)
    if 33 <= cp <= 47 or 58 <= cp <= 64 or 91 <= cp <= 96 or 123 <= cp <= 126:
        return True
    return unicodedata.category(char).startswith("P")


def _strip_accents(text: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFD", text) if unicodedata.category(c) != "Mn"
    )


class WordPieceTokenizer:
    """
    Greedy longest-match-first WordPiece tokenizer.

    Args:
        vocab: Token -> id mapping
        max_length: Maximum sequence length including [CLS] and [SEP]
        lowercase: Lowercase and strip accents before splitting
    """

    def __init__(
        self,
        vocab: dict[str, int],
        max_length: int = 128,
        lowercase: bool = True,
    ) -> None:
        if max_length < 2:
            raise ValueError("max_length must leave room for [CLS] and [SEP]")
        self.vocab = vocab
        self.max_length = max_length
        self.lowercase = lowercase
        self.pad_id = vocab.get("[PAD]", PAD_ID)
        self.unk_id = vocab.get("[UNK]", UNK_ID)
        self.cls_id = vocab.get("[CLS]", CLS_ID)
        self.sep_id = vocab.get("[SEP]", SEP_ID)

    @classmethod
    def from_file(cls, path: Path | str, max_length: int = 128) -> "WordPieceTokenizer":
        """Load a vocab.txt file (one token per line, id = line number)."""
        vocab: dict[str, int] = {}
        with open(path, encoding="utf-8") as f:
            for index, line in enumerate(f):
                token = line.rstrip("\n")
                if token:
                    vocab[token] = index
        return cls(vocab, max_length=max_length)

    def basic_tokenize(self, text: str) -> list[str]:
        if self.lowercase:
            text = _strip_accents(text.lower())
        words: list[str] = []
        current: list[str] = []
        for char in text:
            if char.isspace():
                if current:
                    words.append("".join(current))
                    current = []
            elif _is_punctuation(char):
                if current:
                    words.append("".join(current))
                    current = []
                words.append(char)
            else:
                current.append(char)
        if current:
            words.append("".join(current))
        return words

    def wordpiece(self, word: str) -> list[int]:
        if len(word) > MAX_CHARS_PER_WORD:
            return [self.unk_id]

        ids: list[int] = []
        start = 0
        while start < len(word):
            end = len(word)
            match: int | None = None
            while start < end:
                piece = word[start:end] if start == 0 else f"##{word[start:end]}"
                if piece in self.vocab:
                    match = self.vocab[piece]
                    break
                end -= 1
            if match is None:
                return [self.unk_id]
            ids.append(match)
            start = end
        return ids

    def encode(self, text: str) -> list[int]:
        """Token ids for one text, with [CLS]/[SEP], truncated to max_length."""
        ids: list[int] = []
        max_tokens = self.max_length - 2
        for word in self.basic_tokenize(text):
            ids.extend(self.wordpiece(word))
            if len(ids) >= max_tokens:
                break
        return [self.cls_id, *ids[:max_tokens], self.sep_id]

    def encode_batch(self, texts: list[str]) -> tuple[np.ndarray, np.ndarray]:
        """
        Encode and right-pad a batch.

        Returns:
            (input_ids, attention_mask), both int64 arrays of batch x seq
        """
        encoded = [self.encode(t) for t in texts]
        seq_len = max((len(e) for e in encoded), default=2)
        input_ids = np.full((len(encoded), seq_len), self.pad_id, dtype=np.int64)
        attention_mask = np.zeros((len(encoded), seq_len), dtype=np.int64)
        for row, ids in enumerate(encoded):
            input_ids[row, : len(ids)] = ids
            attention_mask[row, : len(ids)] = 1
        return input_ids, attention_mask
