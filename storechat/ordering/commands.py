# storechat/ordering/commands.py
from __future__ import annotations

import difflib
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Sequence, Tuple, Union

from .errors import FulfillmentError
from .nlp import english_item_name, fold, match_key, singular, split_intents, strip_filler_prefix
from .resolver import FailedLine, RequestedLine
from .units import parse_quantity_text

SUPPORTED_LANGUAGES = ("en", "hi", "te", "ta", "kn")


# ----------------------------
# Commands (one per turn)
# ----------------------------
@dataclass(frozen=True)
class AddCommand:
    lines: Tuple[RequestedLine, ...]
    rejected: Tuple[FailedLine, ...] = ()


@dataclass(frozen=True)
class RemoveCommand:
    names: Tuple[str, ...]


@dataclass(frozen=True)
class SummaryCommand:
    pass


@dataclass(frozen=True)
class ConfirmCommand:
    pass


@dataclass(frozen=True)
class CancelCommand:
    pass


@dataclass(frozen=True)
class UnknownCommand:
    text: str


Command = Union[AddCommand, RemoveCommand, SummaryCommand, ConfirmCommand, CancelCommand, UnknownCommand]


# ----------------------------
# Keywords per language
# Romanised forms are listed next to native script; customers mix both.
# ----------------------------
_KEYWORDS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "en": {
        "confirm": ("yes", "y", "yeah", "yep", "confirm", "confirmed", "ok", "okay", "proceed", "place order",
                    "place the order", "go ahead", "checkout", "order now", "done"),
        "cancel": ("cancel", "cancel order", "cancel the order", "cancel it", "start over", "clear", "clear cart",
                   "reset", "never mind", "nevermind", "forget it"),
        "summary": ("cart", "my cart", "show cart", "show my cart", "basket", "summary", "my order",
                    "show my order", "whats in my cart", "what is in my cart", "total", "bill"),
        "remove": ("remove", "delete", "drop", "take out", "cancel", "no more", "dont want", "don t want",
                   "do not want", "without"),
    },
    "hi": {
        "confirm": ("haan", "han", "haa", "ha", "ji", "ji haan", "theek hai", "thik hai", "sahi hai",
                    "order kar do", "kar do", "हाँ", "हां", "जी हाँ", "ठीक है", "ऑर्डर करो"),
        "cancel": ("cancel karo", "rehne do", "rahne do", "mat karo", "nahi chahiye", "रद्द करो", "रहने दो",
                   "नहीं चाहिए"),
        "summary": ("cart dikhao", "order dikhao", "bill dikhao", "kitna hua", "कार्ट दिखाओ", "मेरा ऑर्डर",
                    "बिल दिखाओ"),
        "remove": ("hatao", "hata do", "hata dijiye", "nikalo", "nikal do", "nahi chahiye", "हटाओ", "हटा दो",
                   "निकालो", "निकाल दो", "नहीं चाहिए"),
    },
    "te": {
        "confirm": ("avunu", "sare", "ok andi", "అవును", "సరే", "ఓకే"),
        "cancel": ("vaddu", "cancel cheyyi", "వద్దు"),
        "summary": ("cart chupinchu", "order chupinchu", "చూపించు"),
        "remove": ("teeseyi", "tolaginchu", "vaddu", "తీసేయి", "తొలగించు", "వద్దు"),
    },
    "ta": {
        "confirm": ("aama", "sari", "seri", "ஆமா", "ஆம்", "சரி"),
        "cancel": ("venda", "vendam", "வேண்டாம்"),
        "summary": ("cart kaattu", "kaattu", "காட்டு"),
        "remove": ("neekku", "eduthudu", "venda", "vendam", "நீக்கு", "எடுத்துடு", "வேண்டாம்"),
    },
    "kn": {
        "confirm": ("houdu", "sari", "ಹೌದು", "ಸರಿ"),
        "cancel": ("beda", "ಬೇಡ"),
        "summary": ("cart torisu", "torisu", "ತೋರಿಸು"),
        "remove": ("tegedu", "tegi", "beda", "ತೆಗೆದು", "ತೆಗೆ", "ಬೇಡ"),
    },
}

_FOLDED: Dict[str, Dict[str, Tuple[str, ...]]] = {
    lang: {kind: tuple(fold(w) for w in words) for kind, words in kinds.items()}
    for lang, kinds in _KEYWORDS.items()
}

_ADD_PREFIX_RE = re.compile(r"^\s*(?:also\s+)?(?:add|buy|order|plus|include|put)\b\s*(?:me\s+)?", re.IGNORECASE)
_ADD_SUFFIX_RE = re.compile(r"\s*\b(?:daal\s*do|dal\s*do|add\s*karo|bhejo|dena|please)\s*$", re.IGNORECASE)
_TARGET_NOISE_RE = re.compile(r"^(?:the|a|an|all|my)\s+|\s+(?:ko|wala|wali|from\s+(?:my\s+)?cart|please)$")

_CONTROL_KINDS = ("confirm", "cancel", "summary")


def _tables(language: str) -> List[Dict[str, Tuple[str, ...]]]:
    lang = (language or "en").lower()[:2]
    order = [lang] if lang in _FOLDED else []
    order += [x for x in SUPPORTED_LANGUAGES if x not in order]
    return [_FOLDED[x] for x in order]


def _fold_keep_separators(s: str) -> str:
    """fold() each list item but keep the commas between them."""
    return ",".join(fold(p) for p in re.split(r"[,;&+]", s or ""))


def _clean_target(s: str) -> str:
    prev = None
    s = s.strip()
    while prev != s:
        prev = s
        s = _TARGET_NOISE_RE.sub("", s).strip()
    return s


def _removal_target(f: str, language: str) -> Union[str, None]:
    """Text after a removal keyword ("remove x") or before one ("x hatao")."""
    for table in _tables(language):
        for kw in sorted(table["remove"], key=len, reverse=True):
            if f == kw:
                return ""
            if f.startswith(kw + " "):
                return f[len(kw):].strip()
            if f.endswith(" " + kw):
                return f[: -len(kw)].strip()
    return None


def _control(f: str, language: str) -> Union[Command, None]:
    kinds = {"confirm": ConfirmCommand, "cancel": CancelCommand, "summary": SummaryCommand}
    for table in _tables(language):
        for kind in _CONTROL_KINDS:
            if f in table[kind]:
                return kinds[kind]()

    # one-word typos ("confrim", "cnacel") against the declared language + English
    if " " not in f and len(f) >= 4:
        vocab: Dict[str, str] = {}
        for table in _tables(language)[:2]:
            for kind in _CONTROL_KINDS:
                for w in table[kind]:
                    if " " not in w and len(w) >= 4:
                        vocab.setdefault(w, kind)
        best = difflib.get_close_matches(f, list(vocab), n=1, cutoff=0.8)
        if best:
            return kinds[vocab[best[0]]]()
    return None


def parse_add(text: str, require_quantity: bool = True) -> Union[AddCommand, None]:
    """
    "2kg rice, 1 litre milk" -> AddCommand. Parts without an amount default to
    one catalog unit. With require_quantity, at least one part needs an amount.
    """
    lines: List[RequestedLine] = []
    rejected: List[FailedLine] = []
    explicit = 0
    for part in split_intents(text):
        qty, unit, name = parse_quantity_text(fold(part))
        if qty is not None:
            explicit += 1
        try:
            lines.append(RequestedLine(raw_text=name, quantity=qty if qty is not None else 1, unit_hint=unit))
        except FulfillmentError as e:
            rejected.append(FailedLine(requested_name=name or part, reason=str(e), quantity=qty, unit=unit))
    if require_quantity and not explicit:
        return None
    if not lines and not rejected:
        return None
    return AddCommand(lines=tuple(lines), rejected=tuple(rejected))


def parse_command(text: str, language: str = "en") -> Command:
    """
    Local parser for turns that arrive without NLP output: removal and control
    commands in every supported language, plus simple quantity lists.
    """
    stripped = strip_filler_prefix(text or "")
    f = fold(stripped)
    if not f:
        return UnknownCommand(text=text or "")

    control = _control(f, language)
    if control is not None:
        return control

    target = _removal_target(_fold_keep_separators(stripped), language)
    if target is not None:
        names = tuple(n for n in (_clean_target(p) for p in split_intents(target)) if n)
        return RemoveCommand(names=names)

    m = _ADD_PREFIX_RE.match(stripped)
    body = _ADD_SUFFIX_RE.sub("", stripped[m.end():] if m else stripped).strip()
    add = parse_add(body, require_quantity=m is None)
    if add is not None:
        return add

    return UnknownCommand(text=text)


# ----------------------------
# Staple fallback
# ----------------------------
# keyword -> default amount when nothing else understood the turn
_STAPLE_DEFAULTS: Dict[str, Tuple[Decimal, str]] = {
    "rice": (Decimal("1"), "kg"),
    "milk": (Decimal("1"), "litre"),
    "oil": (Decimal("1"), "litre"),
    "onion": (Decimal("500"), "g"),
    "tomato": (Decimal("500"), "g"),
}


def _staple_item(keyword: str, catalog_names: Sequence[str]) -> Union[str, None]:
    containing = [n for n in catalog_names if keyword in match_key(n).split()]
    for name in containing:
        if match_key(name) == keyword:
            return name
    return containing[0] if containing else None


def parse_staples(text: str, catalog_names: Sequence[str]) -> Union[AddCommand, None]:
    """
    Keyword scan for staples: "I want rice and milk" -> 1 kg rice, 1 litre milk.

    Each staple maps to the first catalog item whose name carries the keyword
    and is ordered at its default amount. Staples the store does not list are skipped.
    """
    lines: List[RequestedLine] = []
    seen = set()
    for token in fold(text).split():
        keyword = english_item_name(token) or singular(token)
        if keyword not in _STAPLE_DEFAULTS or keyword in seen:
            continue
        seen.add(keyword)
        name = _staple_item(keyword, catalog_names)
        if name is None:
            continue
        qty, unit = _STAPLE_DEFAULTS[keyword]
        lines.append(RequestedLine(raw_text=name, quantity=qty, unit_hint=unit))
    if not lines:
        return None
    return AddCommand(lines=tuple(lines))
