import re
import unicodedata

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def sku_token(value: str, *, max_length: int | None = None, fallback: str = "") -> str:
    """Upper-case ASCII token for SKU codes: "Toor Dal (Arhar)" -> "TOORDALARHAR"."""
    if not value:
        return fallback

    folded = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    token = _NON_ALNUM.sub("", folded.upper())
    if max_length is not None:
        token = token[:max_length]
    return token or fallback
