import json

import pytest

from tidytabs.errors import MalformedResponse
from tidytabs.interpreter import interpret

VALID = '{"groups":[{"label":"News","tabIds":[3,4]},{"label":"Python","tabIds":[1,2]}]}'


def test_interpret_plain_json():
    grouping = interpret(VALID)

    assert grouping.labels == ["News", "Python"]
    assert grouping.groups[0].tab_ids == [3, 4]
    assert grouping.recovered is False


def test_interpret_fenced_block_with_commentary_matches_direct_parse():
    text = f"Sure! Here is the grouping:\n```json\n{VALID}\n```\nLet me know if you need more."
    assert interpret(text) == interpret(VALID)


def test_interpret_untagged_fence():
    assert interpret(f"```\n{VALID}\n```") == interpret(VALID)


def test_interpret_prose_around_object():
    text = f"Here you go: {VALID} Hope that helps."
    assert interpret(text) == interpret(VALID)


def test_interpret_recovers_groups_before_truncation_with_trailing_comma():
    text = (
        '{"groups":[{"label":"News","tabIds":[3,4]},'
        '{"label":"Python","tabIds":[1,2]},'
    )

    grouping = interpret(text)

    assert grouping.labels == ["News", "Python"]
    assert grouping.recovered is True


def test_interpret_recovers_when_cut_mid_element():
    text = '{"groups":[{"label":"News","tabIds":[3,4]},{"label":"Pyth'

    grouping = interpret(text)

    assert grouping.labels == ["News"]
    assert grouping.recovered is True


def test_interpret_recovery_skips_invalid_elements():
    text = (
        '{"groups":[{"label":"","tabIds":[1]},{"label":"News","tabIds":["x"]},'
        '{"label":"Python","tabIds":[1,2]},{"label":"Tr'
    )

    assert interpret(text).labels == ["Python"]


def test_interpret_truncated_without_complete_group_fails():
    with pytest.raises(MalformedResponse) as exc_info:
        interpret('{"groups":[{"label":"News","tab')

    assert str(exc_info.value).startswith("Invalid JSON response")
    assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)


def test_interpret_no_json_structure_fails():
    with pytest.raises(MalformedResponse):
        interpret("I'm sorry, I can't group these tabs.")


def test_interpret_empty_text_fails():
    with pytest.raises(MalformedResponse):
        interpret("   ")


def test_interpret_missing_groups_is_not_masked_by_recovery():
    with pytest.raises(MalformedResponse) as exc_info:
        interpret('{"clusters": []}')

    assert "groups" in str(exc_info.value)
    assert not isinstance(exc_info.value.__cause__, json.JSONDecodeError)


def test_interpret_invalid_label_fails():
    with pytest.raises(MalformedResponse):
        interpret('{"groups":[{"label":"  ","tabIds":[1]}]}')


def test_interpret_tab_ids_must_be_a_list():
    with pytest.raises(MalformedResponse):
        interpret('{"groups":[{"label":"News","tabIds":"1,2"}]}')


def test_interpret_coerces_and_drops_bad_ids():
    grouping = interpret(
        '{"groups":[{"label":"News","tabIds":["1", "x", 2.0, null, true, 3.5, "", 1]}]}'
    )

    assert grouping.groups[0].tab_ids == [1, 2]


def test_interpret_drops_group_without_usable_ids():
    grouping = interpret(
        '{"groups":[{"label":"Empty","tabIds":["a","b"]},{"label":"News","tabIds":[3]}]}'
    )

    assert grouping.labels == ["News"]


def test_interpret_all_groups_empty_fails():
    with pytest.raises(MalformedResponse):
        interpret('{"groups":[{"label":"Empty","tabIds":[]}]}')


def test_interpret_trims_labels():
    grouping = interpret('{"groups":[{"label":"  News  ","tabIds":[3]}]}')
    assert grouping.labels == ["News"]


def test_interpret_allows_duplicate_labels():
    grouping = interpret(
        '{"groups":[{"label":"News","tabIds":[3]},{"label":"News","tabIds":[4]}]}'
    )
    assert grouping.labels == ["News", "News"]


def test_interpret_deeply_nested_output_is_malformed():
    text = '{"groups":' + "[" * 100_000 + "]" * 100_000 + "}"

    with pytest.raises(MalformedResponse) as exc_info:
        interpret(text)

    assert isinstance(exc_info.value.__cause__, RecursionError)


def test_interpret_recovery_stops_at_deeply_nested_element():
    text = '{"groups":[{"label":"News","tabIds":[3,4]},' + "[" * 100_000

    grouping = interpret(text)

    assert grouping.recovered is True
    assert grouping.labels == ["News"]
