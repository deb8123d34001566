#!/usr/bin/env python3

"""
Normalize link anchor texts into lexicon labels.

A link label such as ``'''U.S.''' President's`` is turned into the lexicon key
``us president`` by three steps:

1. tokenization into classified word tokens (markup and punctuation are
   boundaries),
2. classic filtering: possessive ``'s`` is cut from apostrophe tokens and dots
   are removed from acronyms,
3. lower-casing.

Surviving tokens are joined with a single space. An empty result means the
link occurrence carries no usable label and must be discarded by the caller.

The tokenizer is pluggable: any callable returning an iterable of ``Token``
for a string can be handed to ``LabelNormalizer``.
"""

import html
import logging
import re
from typing import Callable, Iterable, Iterator, NamedTuple, Optional, Sequence

log = logging.getLogger(__name__)


class Token(NamedTuple):
    text: str
    type: str


ALPHANUM = "ALPHANUM"
APOSTROPHE = "APOSTROPHE"
ACRONYM = "ACRONYM"
COMPANY = "COMPANY"
EMAIL = "EMAIL"
HOST = "HOST"
NUM = "NUM"

Tokenizer = Callable[[str], Iterable[Token]]
TokenFilter = Callable[[Iterable[Token]], Iterable[Token]]

# Alternatives are tried left to right, so more specific token classes first.
TOKEN_PATTERN = re.compile(
    r"(?P<EMAIL>[^\W_][\w.+-]*@[^\W_]+(?:[.-][^\W_]+)*\.[^\W\d_]{2,})"
    r"|(?P<ACRONYM>(?:[^\W\d_]\.){2,})"
    r"|(?P<COMPANY>[^\W\d_]+[&@][^\W\d_]+)"
    r"|(?P<NUM>\d+(?:[.,]\d+)+)"
    r"|(?P<HOST>[^\W_]+(?:\.[^\W_]+)+)"
    r"|(?P<APOSTROPHE>[^\W\d_]+(?:'[^\W\d_]+)+)"
    r"|(?P<ALPHANUM>[^\W_]+)"
)

MARKUP_PATTERN = re.compile(r"<[^>]*>|\[\[|\]\]|\{\{|\}\}|'{2,}")

APOSTROPHE_VARIANTS = str.maketrans({"’": "'", "ʼ": "'", "＇": "'"})


def wiki_tokenize(text: str) -> Iterator[Token]:
    """Split wiki link text into classified tokens.

    HTML entities are decoded, tags and wiki emphasis/link brackets act as
    token boundaries.
    """
    text = html.unescape(text).translate(APOSTROPHE_VARIANTS)
    text = MARKUP_PATTERN.sub(" ", text)
    for match in TOKEN_PATTERN.finditer(text):
        yield Token(match.group(), match.lastgroup or ALPHANUM)


def classic_filter(tokens: Iterable[Token]) -> Iterator[Token]:
    """Strip possessives from apostrophe tokens and dots from acronyms."""
    for token in tokens:
        if token.type == APOSTROPHE and token.text[-2:] in ("'s", "'S"):
            yield token._replace(text=token.text[:-2])
        elif token.type == ACRONYM:
            yield token._replace(text=token.text.replace(".", ""))
        else:
            yield token


def lowercase_filter(tokens: Iterable[Token]) -> Iterator[Token]:
    for token in tokens:
        yield token._replace(text=token.text.lower())


class LabelNormalizer:
    """Turn raw anchor text into a canonical label string.

    :param Tokenizer tokenizer: Callable splitting text into ``Token``.
    :param Optional[Sequence[TokenFilter]] token_filters: Filters applied in
        order to the token stream. Defaults to classic and lower-case filtering.
    """

    def __init__(
        self,
        tokenizer: Tokenizer = wiki_tokenize,
        token_filters: Optional[Sequence[TokenFilter]] = None,
    ) -> None:
        self.tokenizer: Tokenizer = tokenizer
        self.token_filters: Sequence[TokenFilter] = (
            tuple(token_filters)
            if token_filters is not None
            else (classic_filter, lowercase_filter)
        )

    def tokens(self, text: str) -> Iterable[Token]:
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.token_filters:
            stream = token_filter(stream)
        return stream

    def normalize(self, text: str) -> str:
        """Return the normalized label of ``text`` or ``""`` if nothing is left.

        A failing tokenizer only loses this one label: the error is logged
        and the empty label returned.
        """
        try:
            return " ".join(token.text for token in self.tokens(text) if token.text)
        except Exception:
            log.exception("Tokenization failed for label %r", text)
            return ""

    __call__ = normalize
