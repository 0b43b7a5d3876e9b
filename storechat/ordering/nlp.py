# storechat/ordering/nlp.py
from __future__ import annotations

import difflib
import re
import unicodedata
from typing import List, Optional

# ----------------------------
# Regex helpers
# ----------------------------
# Split a shopping list by commas, &, +, "and" (and the Hindi joiners).
_SPLIT_RE = re.compile(r"\s*(?:,|;|&|\+|\band\b|\baur\b|और)\s*", re.IGNORECASE)

# Leading filler words (greetings + ordering fluff, English and romanised Hindi)
_LEADING_FILLER_RE = re.compile(
    r"^\s*(?:"
    r"hi|hello|hey|namaste|namaskar|vanakkam|"
    r"pls|plz|please|kindly|"
    r"bhaiya|bhai|anna|sir|"
    r"i\s*would\s*like|i'?d\s*like|i\s*want|i\s*need|can\s*i\s*get|could\s*i\s*get|"
    r"may\s*i\s*have|can\s*i\s*have|get\s*me|give\s*me|send\s*me|mujhe"
    r")\b[,\s]*",
    re.IGNORECASE,
)

# Trailing politeness
_TRAILING_POLITE_RE = re.compile(r"\b(?:please|pls|plz|chahiye|dena)\b\.?\s*$", re.IGNORECASE)

_SPACE_RE = re.compile(r"\s+")


# ----------------------------
# Canonicalization
# ----------------------------
def fold(s: str) -> str:
    """
    Case- and diacritic-insensitive form used for every name comparison.

    - NFKD, then drop combining marks that sit on Latin letters
      ("jalapeño" -> "jalapeno"); marks on Indic letters are kept, they are vowels
    - punctuation/symbols become spaces, except a decimal point between digits
    - casefold + collapse whitespace
    """
    s = unicodedata.normalize("NFKD", s or "")
    out: List[str] = []
    prev_latin = False
    for i, ch in enumerate(s):
        if unicodedata.combining(ch):
            if not prev_latin:
                out.append(ch)
            continue
        if unicodedata.category(ch)[0] in "PS":
            keep_point = (
                ch == "." and 0 < i < len(s) - 1 and s[i - 1].isdigit() and s[i + 1].isdigit()
            )
            out.append(ch if keep_point else " ")
            prev_latin = False
            continue
        out.append(ch)
        prev_latin = ord(ch) < 0x0250
    folded = unicodedata.normalize("NFC", "".join(out)).casefold()
    return _SPACE_RE.sub(" ", folded).strip()


def singular(token: str) -> str:
    if len(token) <= 3 or not token.isascii() or not token.isalpha():
        return token
    if token.endswith("ies"):
        return token[:-3] + "y"
    if token.endswith(("oes", "ches", "shes", "xes", "sses")):
        return token[:-2]
    if token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def match_key(s: str) -> str:
    """fold() plus naive English singularisation, so "Onions" == "onion"."""
    return " ".join(singular(t) for t in fold(s).split())


# ----------------------------
# Local grocery names
# ----------------------------
# hi / te / ta / kn words (romanised and native script) -> English catalog name
_LOCAL_ITEM_NAMES = {
    "rice": ("chawal", "chaawal", "चावल", "biyyam", "బియ్యం", "arisi", "அரிசி", "akki", "ಅಕ್ಕಿ"),
    "milk": ("doodh", "dudh", "दूध", "paalu", "పాలు", "paal", "பால்", "haalu", "ಹಾಲು"),
    "onion": ("pyaz", "pyaaz", "pyaj", "प्याज", "ullipaya", "ullipayalu", "ఉల్లిపాయ", "ఉల్లిపాయలు",
              "vengayam", "வெங்காயம்", "eerulli", "ಈರುಳ್ಳಿ"),
    "tomato": ("tamatar", "टमाटर", "tamata", "టమాటా", "thakkali", "தக்காளி", "ಟೊಮೆಟೊ"),
    "potato": ("aloo", "alu", "आलू", "bangaladumpa", "బంగాళదుంప", "urulaikizhangu", "ಆಲೂಗಡ್ಡೆ", "aalugadde"),
    "eggs": ("anda", "ande", "अंडा", "अंडे", "guddu", "gudlu", "గుడ్లు", "muttai", "முட்டை", "motte", "ಮೊಟ್ಟೆ"),
    "curd": ("dahi", "दही", "perugu", "పెరుగు", "thayir", "தயிர்", "mosaru", "ಮೊಸರು"),
    "turmeric powder": ("haldi", "हल्दी", "pasupu", "పసుపు", "manjal", "மஞ்சள்", "arishina", "ಅರಿಶಿನ"),
    "sugar": ("cheeni", "chini", "चीनी", "chakkera", "చక్కెర", "sakkarai", "சர்க்கரை", "sakkare", "ಸಕ್ಕರೆ"),
    "salt": ("namak", "नमक", "uppu", "ఉప్పు", "உப்பு", "ಉಪ್ಪು"),
    "oil": ("tel", "तेल", "nune", "నూనె", "ennai", "எண்ணெய்", "enne", "ಎಣ್ಣೆ"),
}

_LOCAL_FOLDED = {fold(word): name for name, words in _LOCAL_ITEM_NAMES.items() for word in words}


def english_item_name(phrase: str) -> Optional[str]:
    """Map a local grocery word to its English catalog name ("tamatar" -> "tomato")."""
    return _LOCAL_FOLDED.get(fold(phrase))


def strip_filler_prefix(raw: str) -> str:
    """
    Removes greetings + ordering filler + trailing politeness.
    Example:
      "Hi bhaiya, I need 2kg rice please" -> "2kg rice"
    """
    s = (raw or "").strip()

    while True:
        s2 = _LEADING_FILLER_RE.sub("", s).strip()
        if s2 == s:
            break
        s = s2

    return _TRAILING_POLITE_RE.sub("", s).strip()


def split_intents(msg: str) -> List[str]:
    """
    Split by commas, semicolons, &, +, "and"/"aur".
    If nothing splits, returns [msg].
    """
    parts = [p.strip() for p in _SPLIT_RE.split(msg or "") if p and p.strip()]
    return parts or [(msg or "").strip()]


# ----------------------------
# Fuzzy matching
# ----------------------------
def similarity(a: str, b: str) -> float:
    """
    Score two match keys in [0, 1]: the better of the edit-distance ratio and
    the token overlap (shared tokens over the longer token set).
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    ratio = difflib.SequenceMatcher(None, a, b).ratio()
    ta, tb = set(a.split()), set(b.split())
    overlap = len(ta & tb) / max(len(ta), len(tb))
    return max(ratio, overlap)


def fuzzy_best_key(keys: List[str], query: str, cutoff: float = 0.85) -> Optional[str]:
    if not query or not keys:
        return None
    q = fold(query)
    if q in keys:
        return q
    matches = difflib.get_close_matches(q, keys, n=1, cutoff=cutoff)
    return matches[0] if matches else None
