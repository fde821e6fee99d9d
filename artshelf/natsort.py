import re
import unicodedata
from typing import Iterable, List, Tuple, Union

_DIGITS = re.compile(r"(\d+)")


def _fold(text: str) -> str:
    # Accent- and case-insensitive, so "Émile" sorts with "emile".
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def natural_key(text: str) -> Tuple[Union[str, int], ...]:
    """Key for natural ordering: digit runs compare by value, letters case-insensitively.

    ``re.split`` with a capturing group alternates text and digit parts, so
    two keys always line up str-against-str and int-against-int.
    """
    parts: List[Union[str, int]] = []
    for idx, part in enumerate(_DIGITS.split(_fold(text or ""))):
        parts.append(int(part) if idx % 2 else part)
    return tuple(parts)


def natural_sorted(items: Iterable[str]) -> List[str]:
    return sorted(items, key=lambda s: (natural_key(s), s))
