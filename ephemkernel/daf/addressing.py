"""
Record/word address arithmetic for DAF kernel files.

A DAF file is a sequence of fixed 1024-byte records. Data is addressed by
1-based word addresses, one word being an 8-byte double, so every record
holds 128 words. Addresses, record numbers and word numbers are all 1-based.
"""

from typing import Tuple

from ..exceptions import InvalidArgumentError

RECORD_LENGTH = 1024
WORD_LENGTH = 8
WORDS_PER_RECORD = RECORD_LENGTH // WORD_LENGTH
# Usable characters of a character record (names, comments)
CHARS_PER_RECORD = 1000

ID_WORD_LENGTH = 8
INTERNAL_NAME_LENGTH = 60

# Binary format tags written at byte 88 of the file record, mapped to struct/numpy prefixes
BYTE_ORDERS = {
    "LTL-IEEE": "<",
    "BIG-IEEE": ">",
}


def _check_positive(value: int, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{what} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidArgumentError(f"{what} must be positive, got {value}")
    return value


def record_count_to_byte_count(n: int) -> int:
    """Number of bytes spanned by ``n`` whole records."""
    _check_positive(n, "Record count")
    return n * RECORD_LENGTH


def record_to_byte_offset(record: int) -> int:
    """Byte offset at which 1-based record ``record`` starts."""
    _check_positive(record, "Record number")
    return (record - 1) * RECORD_LENGTH


def address_to_record_word(address: int) -> Tuple[int, int]:
    """
    Split a word address into its record and word-within-record.

    Args:
        address: 1-based word address.

    Returns:
        (record, word), both 1-based.
    """
    _check_positive(address, "Address")
    record, word = divmod(address - 1, WORDS_PER_RECORD)
    return record + 1, word + 1


def record_word_to_address(record: int, word: int) -> int:
    """Inverse of :func:`address_to_record_word`."""
    _check_positive(record, "Record number")
    _check_positive(word, "Word number")
    if word > WORDS_PER_RECORD:
        raise InvalidArgumentError(
            f"Word number must not exceed {WORDS_PER_RECORD}, got {word}"
        )
    return (record - 1) * WORDS_PER_RECORD + word


def address_to_byte_offset(address: int) -> int:
    """Byte offset of the first byte of the word at ``address``."""
    _check_positive(address, "Address")
    return (address - 1) * WORD_LENGTH


def summary_size(nd: int, ni: int) -> int:
    """Words taken by one array summary with ``nd`` doubles and ``ni`` integers."""
    if nd < 0 or ni < 0:
        raise InvalidArgumentError(f"Summary format must be non-negative, got ND={nd} NI={ni}")
    return nd + (ni + 1) // 2
