"""
Mojibake repair for text exported by Instagram.

Instagram's JSON export writes UTF-8 text as if every byte were a
Latin-1 character, so "é" arrives as the two characters "Ã©". Repair
reverses that: each character is turned back into its byte value and
the result is decoded as UTF-8.

Only Instagram values go through here. Snapchat exports are already
correctly encoded and must be stored as-is.
"""


def repair_mojibake(value: str) -> str:
    """
    Undo a UTF-8 → Latin-1 mis-decoding.

    Args:
        value: Text suspected to be UTF-8 bytes read as Latin-1.

    Returns:
        The repaired text, or the original value unchanged when it cannot
        be reinterpreted (characters above U+00FF, or bytes that are not
        valid UTF-8). Repair is all or nothing.

    Examples:
        >>> repair_mojibake("cafÃ©")
        'café'
        >>> repair_mojibake("plain ascii")
        'plain ascii'
        >>> repair_mojibake("Ã")
        'Ã'
    """
    if not value:
        return value

    try:
        return value.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return value
