"""Identifiers for stored records.

Ids are a short readable prefix plus a random base 36 suffix, which is case insensitive
and so safe to use in filenames.
"""

from strif import new_uid

PRODUCT_PREFIX = "prod_"
RELATIONSHIP_PREFIX = "rel_"


def new_id(prefix: str) -> str:
    return f"{prefix}{new_uid(bits=64)}"


def id_suffix(record_id: str, prefix: str = PRODUCT_PREFIX) -> str:
    """
    The random part of an id, e.g. `prod_3kx9a2` -> `3kx9a2`.
    """
    return record_id.replace(prefix, "", 1)


def short_id(record_id: str, length: int = 4, prefix: str = PRODUCT_PREFIX) -> str:
    return id_suffix(record_id, prefix)[:length]


## Tests


def test_new_id():
    a = new_id(PRODUCT_PREFIX)
    b = new_id(PRODUCT_PREFIX)
    assert a.startswith("prod_") and len(a) > len("prod_") + 4
    assert a != b


def test_short_id():
    assert short_id("prod_abcdefgh") == "abcd"
    assert short_id("prod_ab") == "ab"
    assert short_id("xyz123456") == "xyz1"
