from transcript_sanitizer.utils.text import (
    fingerprint,
    normalize_language,
    normalize_token,
    normalize_whitespace,
    split_sentences,
)


def test_sentence_pieces_rebuild_the_text():
    text = "First one. Second one!  Third?\nNo end"
    pieces = split_sentences(text)
    assert "".join(pieces) == text
    assert pieces[0] == "First one. "


def test_cjk_sentence_split():
    assert split_sentences("今日は晴れ。明日は雨。") == ["今日は晴れ。", "明日は雨。"]


def test_normalize_whitespace_caps_newlines():
    assert normalize_whitespace("a  \n\n\n\n\nb \n", 3) == "a\n\n\nb"


def test_normalize_token():
    assert normalize_token("Ｈｅｌｌｏ,") == "hello"
    assert normalize_token("...") == ""


def test_fingerprint_ignores_spacing_and_punctuation():
    assert fingerprint("The plan, in short.") == fingerprint("the plan in short")


def test_normalize_language():
    assert normalize_language("ja-JP") == "ja"
    assert normalize_language("zh_Hant") == "zh"
    assert normalize_language("") == "auto"
    assert normalize_language("AUTO") == "auto"
