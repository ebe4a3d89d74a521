"""Levenshtein distance and the length-dependent tolerance used for tag matching."""

SHORT_TOKEN_LENGTH = 4
MEDIUM_TOKEN_LENGTH = 8


def levenshtein_distance(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Keep the shorter string on the inner loop so the row stays small.
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def max_fuzzy_distance(length: int) -> int:
    """Short tokens must match exactly; longer ones tolerate a few typos."""
    if length < SHORT_TOKEN_LENGTH:
        return 0
    if length < MEDIUM_TOKEN_LENGTH:
        return 2
    return 3
