import secrets
from typing import List, Sequence, Set, TypeVar

T = TypeVar("T")


def pick_random(items: Sequence[T], count: int) -> List[T]:
    """
    Draw `count` distinct entries from `items` without replacement.

    Indices come from `secrets.randbelow`; an index already taken is simply
    drawn again. When `count` covers the whole list every item is returned
    once.
    """
    if count <= 0:
        return []
    if count >= len(items):
        return list(items)

    chosen: List[T] = []
    used: Set[int] = set()
    while len(chosen) < count:
        index = secrets.randbelow(len(items))
        if index in used:
            continue
        used.add(index)
        chosen.append(items[index])
    return chosen
