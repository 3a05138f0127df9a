from functools import cache
from typing import Optional

from inflect import engine


@cache
def inflect() -> engine:
    return engine()


def plural(word: str, count: Optional[int] = None) -> str:
    """
    Pluralize a noun.
    """
    if not word.isalpha():
        return word
    return inflect().plural_noun(word, count)  # type: ignore


## Tests


def test_plural():
    assert plural("problem") == "problems"
    assert plural("hypothesis") == "hypotheses"
    assert plural("capture") == "captures"
    assert plural("snake_case") == "snake_case"
