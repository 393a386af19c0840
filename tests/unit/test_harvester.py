"""
Unit tests for entity and keyword harvesting.
"""

from tiered_memory.memory.harvester import extract_entities, extract_keywords, extract_people
from tiered_memory.models.schemas import MAX_KEYWORDS


class TestExtractPeople:

    def test_capitalized_runs_are_single_entities(self):
        values = [entity.value for entity in extract_people("Ana Lopez deploys React on AWS")]
        assert values == ["Ana Lopez", "React"]

    def test_entities_are_typed_person(self):
        entities = extract_people("Call Maria")
        assert [(entity.type, entity.value) for entity in entities] == [("person", "Maria")]

    def test_lowercase_text_has_no_entities(self):
        assert extract_people("nothing capitalized here") == []


class TestExtractKeywords:

    def test_topical_terms_come_first(self):
        keywords = extract_keywords("ana lopez deploys react on aws")
        assert keywords[:2] == ["aws", "react"]
        assert "lopez" in keywords and "deploys" in keywords

    def test_short_words_and_stop_words_dropped(self):
        keywords = extract_keywords("this is a test about them and the cat")
        assert keywords == ["test"]

    def test_deduplicated_in_order(self):
        assert extract_keywords("python python tests tests python") == ["python", "tests"]

    def test_capped_at_max_keywords(self):
        text = " ".join(f"word{index:02d}" for index in range(40))
        keywords = extract_keywords(text)
        assert len(keywords) == MAX_KEYWORDS
        assert keywords[0] == "word00"


def test_extract_entities_returns_both():
    entities, keywords = extract_entities("  Sam   moved to Denver to learn Kubernetes ")
    assert [entity.value for entity in entities] == ["Sam", "Denver", "Kubernetes"]
    assert keywords[0] == "kubernetes"
    assert "moved" in keywords and "denver" in keywords
