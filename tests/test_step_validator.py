# tests/test_step_validator.py
import pytest

from SpecDraftBackend.validator import StepValidator, validate_step

validator = StepValidator()


class TestPriority:
    def test_unknown_priority_fails(self):
        r = validator.validate("requirement", "priority_assignment", {"priority": "high"})
        assert r.passed is False
        assert r.step == "priority_assignment"
        assert any(i.startswith("priority:") for i in r.issues)
        assert any("critical" in s for s in r.suggestions)

    def test_critical_priority_passes(self):
        r = validator.validate("requirement", "priority_assignment", {"priority": "critical"})
        assert r.passed is True
        assert r.issues == []
        assert any("critical" in s for s in r.strengths)


class TestEmptyInput:
    def test_no_data(self):
        r = validator.validate("requirement", "priority_assignment", {})
        assert r.passed is False
        assert r.issues == ["No data provided for this step"]

    def test_none(self):
        assert validator.validate("requirement", "priority_assignment", None).passed is False

    def test_all_values_empty(self):
        r = validator.validate("component", "map_dependencies", {"depends_on": [], "external_dependencies": []})
        assert r.passed is False
        assert r.issues == ["All provided values are empty"]


class TestUnknownTargets:
    def test_unknown_step(self):
        r = validator.validate("requirement", "not_a_step", {"x": 1})
        assert r.passed is False
        assert "not_a_step" in r.issues[0]

    def test_unknown_type(self):
        r = validator.validate("epic", "basic_info", {"x": 1})
        assert r.passed is False
        assert "epic" in r.issues[0]


class TestCoaching:
    def test_short_problem_without_rationale(self):
        r = validator.validate("requirement", "problem_identification", {"description": "Login is broken"})
        assert r.passed is False
        assert len(r.issues) == 2
        assert all(i.startswith("description:") for i in r.issues)
        assert any("elaborate" in s.lower() for s in r.suggestions)
        assert any("because" in s for s in r.suggestions)

    def test_problem_with_rationale_passes(self):
        text = "Users abandon checkout because login takes several attempts on mobile devices today."
        r = validator.validate("requirement", "problem_identification", {"description": text})
        assert r.passed is True
        assert "Includes rationale for why this matters" in r.strengths

    def test_implementation_terms_flagged(self):
        r = validator.validate("requirement", "avoid_implementation",
                               {"description": "Store sessions in a postgres database"})
        assert r.passed is False
        assert any("implementation details" in i for i in r.issues)
        assert any("WHAT" in s for s in r.suggestions)

    def test_terms_match_whole_words_only(self):
        r = validator.validate("requirement", "avoid_implementation",
                               {"description": "Users must be able to reset a forgotten password"})
        assert r.passed is True

    def test_vague_terms_flagged(self):
        r = validator.validate("requirement", "specific_language", {
            "description": "The login page should be fast",
            "criteria": [{"id": "crit-001", "description": "Login completes within 2 seconds"}],
        })
        assert r.passed is False
        assert any("vague" in i for i in r.issues)
        assert any("specific, measurable" in s for s in r.suggestions)

    def test_unmeasurable_criteria(self):
        r = validator.validate("requirement", "measurability", {"criteria": [
            {"id": "crit-001", "description": "Users like the login page"},
            {"id": "crit-002", "description": "It feels right"},
        ]})
        assert r.passed is False
        assert any("measurable" in i for i in r.issues)
        assert any("numbers" in s for s in r.suggestions)

    def test_measurable_criteria(self):
        r = validator.validate("requirement", "measurability", {"criteria": [
            {"id": "crit-001", "description": "Login completes within 2 seconds"},
            {"id": "crit-002", "description": "The system must display a lockout message"},
        ]})
        assert r.passed is True
        assert "Listed 2 measurable criteria" in r.strengths

    def test_too_few_items(self):
        r = validator.validate("requirement", "measurability", {"criteria": [
            {"id": "crit-001", "description": "Login completes within 2 seconds"},
        ]})
        assert r.passed is False
        assert any("Add more items" in s for s in r.suggestions)

    def test_pattern_mismatch(self):
        r = validator.validate("plan", "review_context", {
            "criteria_id": "crit-1",
            "description": "Implements the login criterion for the authentication requirement end to end.",
        })
        assert r.passed is False
        assert any(i.startswith("criteria_id:") for i in r.issues)
        assert any("Fix the format" in s for s in r.suggestions)

    def test_too_long(self):
        r = validator.validate("decision", "decision_statement", {"decision": "x" * 501})
        assert r.passed is False
        assert any("Shorten" in s for s in r.suggestions)

    def test_missing_required_field(self):
        r = validator.validate("constitution", "basic_info", {"name": "Engineering Principles"})
        assert r.passed is False
        assert any("description" in i for i in r.issues)
        assert "Provide every required field for this step" in r.suggestions


class TestStrengths:
    def test_dependency_counts(self):
        r = validate_step("component", "map_dependencies", {
            "depends_on": ["cmp-001-auth-service"], "external_dependencies": ["stripe"],
        })
        assert r.passed is True
        assert r.strengths == ["Mapped 1 internal and 1 external dependencies"]

    def test_default_strength(self):
        r = validate_step("component", "identify_patterns", {"description": "Repository pattern"})
        assert r.passed is True
        assert r.strengths == ["Step completed successfully"]

    def test_array_item_step(self):
        r = validate_step("decision", "consequences_item",
                          {"type": "risk", "description": "Service calls can fail", "mitigation": "Retries"})
        assert r.passed is True

    def test_array_list_step(self):
        r = validate_step("constitution", "articles_list", {"items": []})
        assert r.passed is False


class TestMalformedInput:
    @pytest.mark.parametrize("data", [["priority", "critical"], "critical", 42])
    def test_non_object_data_fails(self, data):
        r = validator.validate("requirement", "priority_assignment", data)
        assert r.passed is False
        assert r.issues[0].startswith("Step data must be an object")

    def test_crash_becomes_failed_result(self, monkeypatch):
        def boom(schema, instance):
            raise RuntimeError("schema exploded")

        monkeypatch.setattr("SpecDraftBackend.validator.schema_issues", boom)
        r = validator.validate("requirement", "priority_assignment", {"priority": "critical"})
        assert r.passed is False
        assert r.issues == ["Validation error: schema exploded"]
        assert r.strengths == []
