"""
Positional placeholder helpers

Built SQL always uses ``?`` placeholders; dialect drivers translate them
to the engine's native style. Quoted literals and identifiers are skipped.
"""
from typing import Iterator, Tuple

QMARK = "qmark"          # ?
FORMAT = "format"        # %s
NUMERIC = "numeric"      # $1, $2, ...

PARAM_STYLES = (QMARK, FORMAT, NUMERIC)

_QUOTES = ("'", '"', "`")


def _scan(sql: str) -> Iterator[Tuple[int, str, bool]]:
    """Yield ``(index, char, inside_quotes)`` for every character."""
    quote = None
    for i, ch in enumerate(sql):
        if quote is None:
            if ch in _QUOTES:
                quote = ch
                yield i, ch, True
                continue
            yield i, ch, False
        else:
            if ch == quote:
                quote = None
            yield i, ch, True


def count_placeholders(sql: str) -> int:
    """Number of ``?`` placeholders outside quoted text."""
    return sum(1 for _, ch, quoted in _scan(sql) if ch == "?" and not quoted)


def translate_placeholders(sql: str, style: str) -> str:
    """
    Rewrite ``?`` placeholders for a DB-API paramstyle.

    For ``format`` every literal ``%`` is doubled, including inside quoted
    text, since the driver interpolates the whole statement.
    """
    if style == QMARK:
        return sql
    if style not in PARAM_STYLES:
        raise ValueError(f"Unsupported placeholder style: {style}")

    out = []
    position = 0
    for _, ch, quoted in _scan(sql):
        if style == FORMAT and ch == "%":
            out.append("%%")
        elif ch == "?" and not quoted:
            position += 1
            out.append("%s" if style == FORMAT else f"${position}")
        else:
            out.append(ch)
    return "".join(out)
