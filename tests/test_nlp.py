"""Tests for text folding, filler stripping and fuzzy scoring."""

from storechat.ordering.nlp import fold, fuzzy_best_key, match_key, similarity, split_intents, strip_filler_prefix


def test_fold_is_case_and_accent_insensitive():
    assert fold("  Jalapeño   CHIPS! ") == "jalapeno chips"
    assert fold("Basmati-Rice") == "basmati rice"


def test_fold_keeps_decimal_points_and_indic_marks():
    assert fold("2.5kg") == "2.5kg"
    assert fold("टमाटर") == "टमाटर"


def test_match_key_singularises():
    assert match_key("Onions") == "onion"
    assert match_key("Tomatoes") == "tomato"
    assert match_key("Eggs") == "egg"
    assert match_key("Rice") == "rice"


def test_strip_filler_prefix():
    assert strip_filler_prefix("Hi bhaiya, I need 2kg rice please") == "2kg rice"
    assert strip_filler_prefix("mujhe 1 kg chawal chahiye") == "1 kg chawal"


def test_split_intents():
    assert split_intents("2kg rice, 1 litre milk and 3 onions") == ["2kg rice", "1 litre milk", "3 onions"]
    assert split_intents("chawal aur dal") == ["chawal", "dal"]
    assert split_intents("rice") == ["rice"]


def test_similarity_bounds():
    assert similarity("rice", "rice") == 1.0
    assert similarity("", "rice") == 0.0
    assert 0.0 < similarity("tomatoe", "tomato") < 1.0


def test_fuzzy_best_key():
    keys = ["onion", "tomato"]
    assert fuzzy_best_key(keys, "tomatto") == "tomato"
    assert fuzzy_best_key(keys, "paneer") is None
