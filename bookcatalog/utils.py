# bookcatalog/utils.py
import unicodedata

_SEPARATORS = {" ", "_", ".", ",", "—", "–", "-", ":", ";", "/", "\\", "&", "+"}


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated form of ``text``.

    Accents are folded to ASCII, separator characters collapse into a
    single hyphen and any other punctuation is dropped:
    ``"The Catcher in the Rye"`` becomes ``"the-catcher-in-the-rye"``.
    """
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    out = []
    prev_dash = False
    for ch in folded.strip().lower():
        if ch.isalnum():
            out.append(ch)
            prev_dash = False
        elif ch in _SEPARATORS or ch.isspace():
            if not prev_dash:
                out.append("-")
                prev_dash = True
    return "".join(out).strip("-")
