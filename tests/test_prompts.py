from trendpack.prompts import extract_variables, missing_variables, replace_variables


def test_extract_variables_dedupes_in_order():
    content = "주제: {topic}\n타겟: {target}\n다시 {topic}"
    assert extract_variables(content) == ["topic", "target"]
    assert extract_variables("") == []
    assert extract_variables("변수 없음 {}") == []


def test_replace_variables_keeps_unknown_placeholders():
    content = "주제: {topic}, 말투: {tone}"

    assert replace_variables(content, {"topic": "겨울 패션"}) == "주제: 겨울 패션, 말투: {tone}"
    assert replace_variables(content, {"topic": 3, "tone": None}) == "주제: 3, 말투: {tone}"
    assert replace_variables(content, None) == content


def test_missing_variables():
    assert missing_variables("{a} {b}", {"a": "x"}) == ["b"]
    assert missing_variables("{a}", {"a": "x"}) == []
