from speechdrill.text import HOMOPHONE_TO_CANON, normalize, tokenize


def test_normalize_lowercases_and_strips_punctuation() -> None:
    assert normalize("  Hello,   WORLD!! ") == "hello world"
    assert normalize("Wait... what?") == "wait what"
    assert normalize("a_b") == "a b"
    assert normalize("tab\tsep\nline") == "tab sep line"


def test_normalize_keeps_apostrophes_hyphens_and_unicode_letters() -> None:
    assert normalize("Don't RE-DO it") == "don't re-do it"
    assert normalize("Café, ñandú!") == "café ñandú"
    assert normalize("Привет, мир") == "привет мир"
    assert normalize("Room 101") == "room 101"


def test_normalize_coerces_non_string_input() -> None:
    assert normalize(None) == ""
    assert normalize("") == ""
    assert normalize(42) == "42"


def test_normalize_is_idempotent() -> None:
    samples = [
        "",
        "Hello!",
        "  I'm   fine -- thanks.  ",
        "İstanbul ŞEHİR",
        "straße ß",
        "emoji 🙂 here",
        "x_y-z's",
    ]
    for sample in samples:
        once = normalize(sample)
        assert normalize(once) == once


def test_tokenize_canonicalizes_homophones() -> None:
    assert tokenize("Eye buy it") == ["i", "bye", "it"]
    assert tokenize("AYE, by!") == ["i", "bye"]
    assert tokenize("eh") == ["a"]


def test_tokenize_empty_input() -> None:
    assert tokenize("") == []
    assert tokenize("  ?!  ") == []
    assert tokenize(None) == []


def test_homophone_targets_are_canonical() -> None:
    for canon in HOMOPHONE_TO_CANON.values():
        assert HOMOPHONE_TO_CANON.get(canon, canon) == canon
