# Terms that hide a post from search results. Matching is case-sensitive.
FILTERED_WORDS = [
    "fuck",
]


def is_filtered(message: str) -> bool:
    """Return True when the message contains any denylisted term"""
    for word in FILTERED_WORDS:
        if word in message:
            return True
    return False
