"""Tests for llm_cards/parsing.py."""

from llm_cards.models import Section
from llm_cards.parsing import FALLBACK_SECTION_TITLE, parse_badges, parse_sections, strip_code_fences


def test_parse_badges_basic():
    assert parse_badges("Advanced Features, Common Issues, Best Practices") == [
        "Advanced Features",
        "Common Issues",
        "Best Practices",
    ]


def test_parse_badges_strips_quotes():
    badges = parse_badges('"Qubits", \'Entanglement\', “Error Correction”')
    assert badges == ["Qubits", "Entanglement", "Error Correction"]


def test_parse_badges_limits_to_three():
    assert len(parse_badges("a, b, c, d, e")) == 3


def test_parse_badges_drops_empty_parts():
    assert parse_badges(' , "" ,Qubits,,') == ["Qubits"]


def test_parse_badges_empty_reply():
    assert parse_badges("") == []


def test_strip_code_fences():
    assert strip_code_fences("```json\n[1, 2]\n```") == "[1, 2]"
    assert strip_code_fences("no fences here") == "no fences here"


def test_parse_sections_valid_array():
    reply = 'Here you go:\n[{"title": "Basics", "content": "Qubits."}, {"title": "Uses", "content": "Chemistry."}]'
    assert parse_sections(reply) == [
        Section(title="Basics", content="Qubits."),
        Section(title="Uses", content="Chemistry."),
    ]


def test_parse_sections_fenced_array():
    reply = '```json\n[{"title": "Basics", "content": "Qubits."}]\n```'
    assert parse_sections(reply) == [Section(title="Basics", content="Qubits.")]


def test_parse_sections_keeps_code_blocks_in_content():
    reply = '[{"title": "Code", "content": "Run:\\n```python\\nprint(1)\\n```"}]'
    assert parse_sections(reply) == [Section(title="Code", content="Run:\n```python\nprint(1)\n```")]


def test_parse_sections_fenced_array_with_code_in_content():
    reply = '```json\n[{"title": "Code", "content": "```sh\\nls\\n```"}]\n```'
    assert parse_sections(reply)[0].content == "```sh\nls\n```"


def test_parse_sections_drops_incomplete_elements():
    reply = '[{"title": "Basics", "content": "Qubits."}, {"title": ""}, {"content": "orphan"}, 3, {"title": "T", "content": "  "}]'
    assert parse_sections(reply) == [Section(title="Basics", content="Qubits.")]


def test_parse_sections_without_brackets_falls_back_to_raw():
    reply = "```markdown\n## Qubits\nThey hold superpositions.\n```"
    sections = parse_sections(reply)
    assert len(sections) == 1
    assert sections[0].title == FALLBACK_SECTION_TITLE
    assert sections[0].content == "## Qubits\nThey hold superpositions."


def test_parse_sections_invalid_json_falls_back():
    reply = "[not json at all]"
    assert parse_sections(reply) == [Section(title=FALLBACK_SECTION_TITLE, content=reply)]


def test_parse_sections_no_valid_elements_falls_back():
    reply = '[{"name": "x"}]'
    assert parse_sections(reply) == [Section(title=FALLBACK_SECTION_TITLE, content=reply)]
