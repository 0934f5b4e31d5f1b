"""Static keyword heuristic for follow-up badges, used when badge_mode is 'heuristic'."""

from llm_cards.parsing import MAX_BADGES

# (question keyword, response keywords, badges if matched, badges otherwise)
# An empty "otherwise" means the rule contributes nothing when the response does not match.
_RULES: list[tuple[str, tuple[str, ...], list[str], list[str]]] = [
    ("virus", ("biological", "disease"), ["computer viruses", "antivirus software"], []),
    ("virus", ("computer", "software"), ["biological viruses", "immune system"], []),
    ("memory", ("computer", "ram"), ["human memory", "psychology"], []),
    ("memory", ("brain", "remember"), ["computer memory", "storage"], []),
    ("network", ("computer", "internet"), ["social networks", "professional networking"], []),
    ("network", ("social", "people"), ["computer networks", "technical networking"], []),
    ("security", (), ["cyber security", "physical security", "financial security"], []),
    ("cloud", ("computing", "server"), ["weather clouds", "meteorology"], ["cloud computing", "technology"]),
]

GENERIC_BADGES = ["technical approach", "practical approach", "theoretical approach"]


def heuristic_badges(question: str, response: str) -> list[str]:
    """Suggest alternative readings of an ambiguous question from keywords alone."""
    question_lc = question.lower()
    response_lc = response.lower()

    badges: list[str] = []
    matched_topics: set[str] = set()
    for topic, hints, matched, otherwise in _RULES:
        if topic not in question_lc or topic in matched_topics:
            continue
        if not hints or any(h in response_lc for h in hints):
            badges.extend(matched)
            matched_topics.add(topic)
        elif otherwise:
            badges.extend(otherwise)
            matched_topics.add(topic)

    if not badges:
        badges = list(GENERIC_BADGES)
    return badges[:MAX_BADGES]
