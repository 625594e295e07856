"""JSON Schemas for step submissions, array items and finalized entities.

Heuristic checks are expressed as custom jsonschema keywords so that the
keyword lists below are the only place quality heuristics live:

- ``requiresRationale``: string must mention one of the keywords
- ``forbidsTerms``: string must not contain any listed term (whole words)
- ``measurable``: at least one list entry reads as measurable
"""
import re
import copy
from typing import Dict, Any, Optional

from jsonschema import Draft7Validator, ValidationError, validators

from .schemas import EntityType
from .steps import ARRAY_FIELDS

# ---------- heuristic extension points ----------
RATIONALE_KEYWORDS = ("because", "needed", "why", "so that")

IMPLEMENTATION_TERMS = (
    "database", "mongodb", "postgres", "mysql", "redis", "react", "vue", "angular",
    "svelte", "api endpoint", "rest api", "graphql", "button", "form", "dropdown",
    "modal", "table", "component", "class", "function", "method", "django", "fastapi",
)

VAGUE_TERMS = (
    "fast", "quick", "slow", "easy", "hard", "simple", "complex", "good", "bad",
    "nice", "better", "efficient",
)

_MEASURABLE_PATTERNS = (
    re.compile(r"\d+"),
    re.compile(r"(must|should|will|can)\s+(display|show|allow|enable|provide)", re.I),
    re.compile(r"(successfully|correctly|accurately)", re.I),
)


def _found_terms(text: str, terms) -> list:
    lower = text.lower()
    return [t for t in terms if re.search(r"\b" + re.escape(t) + r"\b", lower)]


def _requires_rationale(validator, keywords, instance, schema):
    if not validator.is_type(instance, "string"):
        return
    lower = instance.lower()
    if not any(k in lower for k in keywords):
        yield ValidationError(
            "Description should include rationale (use words like 'because', 'needed', 'so that')"
        )


def _forbids_terms(validator, spec, instance, schema):
    if not validator.is_type(instance, "string"):
        return
    found = _found_terms(instance, spec["terms"])
    if not found:
        return
    if spec.get("category") == "vague":
        yield ValidationError(
            f"Contains vague terms: {', '.join(found)}; use specific, quantifiable language"
        )
    else:
        yield ValidationError(f"Contains implementation details: {', '.join(found)}")


def _measurable(validator, enabled, instance, schema):
    if not enabled or not validator.is_type(instance, "array") or not instance:
        return
    for entry in instance:
        text = entry.get("description", "") if isinstance(entry, dict) else entry
        if isinstance(text, str) and any(p.search(text) for p in _MEASURABLE_PATTERNS):
            return
    yield ValidationError("Criteria should be measurable and testable")


SpecValidator = validators.extend(
    Draft7Validator,
    {
        "requiresRationale": _requires_rationale,
        "forbidsTerms": _forbids_terms,
        "measurable": _measurable,
    },
)

# ---------- shared fragments ----------
SLUG = {"type": "string", "minLength": 1, "pattern": r"^[a-z0-9]+(-[a-z0-9]+)*$"}
NAME = {"type": "string", "minLength": 1}
PRIORITY = {"type": "string", "enum": ["critical", "required", "ideal", "optional"]}
STRINGS = {"type": "array", "items": {"type": "string"}}
COMPONENT_ID = {"type": "string", "pattern": r"^cmp-\d{3}-[a-z0-9-]+$"}
REQUIREMENT_ID = {"type": "string", "pattern": r"^req-\d{3}-[a-z0-9-]+$"}
PLAN_ID = {"type": "string", "pattern": r"^pln-\d{3}-[a-z0-9-]+$"}
DECISION_ID = {"type": "string", "pattern": r"^dec-\d{3}-[a-z0-9-]+$"}
CRITERIA_REF = {"type": "string", "pattern": r"^req-\d{3}-[a-z0-9-]+/crit-\d{3}$"}
ARTICLE_REF = {"type": "string", "pattern": r"^con-\d{3}-[a-z0-9-]+/art-\d{3}$"}


def _text(min_length: int = 1, max_length: Optional[int] = None, **extra) -> Dict[str, Any]:
    s: Dict[str, Any] = {"type": "string", "minLength": min_length}
    if max_length is not None:
        s["maxLength"] = max_length
    s.update(extra)
    return s


def _obj(properties: Dict[str, Any], required=()) -> Dict[str, Any]:
    return {"type": "object", "properties": properties, "required": list(required)}


CRITERION = _obj({
    "id": {"type": "string", "pattern": r"^crit-\d{3}$"},
    "description": _text(),
    "status": {"type": "string", "enum": ["needs-review", "active", "archived"], "default": "needs-review"},
}, required=["id", "description"])

TASK_OUTLINE = _obj({"id": {"type": "string"}, "description": {"type": "string"},
                     "estimated_days": {"type": "number", "minimum": 0}},
                    required=["id", "description"])

# ---------- array item schemas ----------
ITEM_SCHEMAS: Dict[EntityType, Dict[str, Dict[str, Any]]] = {
    EntityType.requirement: {
        "criteria": CRITERION,
    },
    EntityType.component: {
        "deployments": _obj({
            "platform": _text(),
            "url": {"type": "string"},
            "build_command": {"type": "string"},
            "deploy_command": {"type": "string"},
            "environment_vars": dict(STRINGS, default=[]),
            "secrets": dict(STRINGS, default=[]),
            "notes": {"type": "string"},
        }, required=["platform"]),
        "constraints": _obj({
            "id": {"type": "string", "pattern": r"^constr-\d{3}$"},
            "type": {"type": "string", "enum": ["performance", "security", "scalability",
                                                "reliability", "compatibility", "other"]},
            "description": _text(),
        }, required=["id", "type", "description"]),
    },
    EntityType.plan: {
        "tasks": _obj({
            "id": {"type": "string", "pattern": r"^task-\d{3}$"},
            "task": _text(),
            "priority": {"type": "string", "enum": ["low", "medium", "high", "critical"], "default": "medium"},
            "depends_on": dict({"type": "array", "items": {"type": "string", "pattern": r"^task-\d{3}$"}},
                               default=[]),
            "considerations": dict(STRINGS, default=[]),
        }, required=["id", "task"]),
        "test_cases": _obj({
            "id": {"type": "string", "pattern": r"^tc-\d{3}$"},
            "name": _text(),
            "description": _text(),
            "steps": dict(STRINGS, default=[]),
            "expected_result": _text(),
            "implemented": {"type": "boolean", "default": False},
        }, required=["id", "name", "description", "expected_result"]),
    },
    EntityType.constitution: {
        "articles": _obj({
            "id": {"type": "string", "pattern": r"^art-\d{3}$"},
            "title": _text(),
            "principle": _text(),
            "rationale": _text(),
            "examples": dict(STRINGS, default=[]),
            "exceptions": dict(STRINGS, default=[]),
            "status": {"type": "string", "enum": ["needs-review", "active", "archived"], "default": "needs-review"},
        }, required=["id", "title", "principle", "rationale"]),
    },
    EntityType.decision: {
        "consequences": _obj({
            "type": {"type": "string", "enum": ["positive", "negative", "risk"]},
            "description": _text(),
            "mitigation": {"type": "string"},
        }, required=["type", "description"]),
    },
}

# ---------- base step schemas ----------
_BASE_STEP_SCHEMAS: Dict[EntityType, Dict[str, Dict[str, Any]]] = {
    EntityType.requirement: {
        "problem_identification": _obj({
            "description": _text(50, requiresRationale=list(RATIONALE_KEYWORDS)),
        }, required=["description"]),
        "avoid_implementation": _obj({
            "description": _text(1, forbidsTerms={"terms": list(IMPLEMENTATION_TERMS),
                                                  "category": "implementation"}),
        }, required=["description"]),
        "measurability": _obj({
            "criteria": {"type": "array", "items": CRITERION, "minItems": 2, "measurable": True},
        }, required=["criteria"]),
        "specific_language": _obj({
            "description": _text(1, forbidsTerms={"terms": list(VAGUE_TERMS), "category": "vague"}),
            "criteria": {"type": "array", "items": CRITERION, "minItems": 1},
        }, required=["description", "criteria"]),
        "acceptance_criteria": _obj({
            "criteria": {"type": "array", "items": CRITERION, "minItems": 1},
        }, required=["criteria"]),
        "priority_assignment": _obj({"priority": PRIORITY}, required=["priority"]),
        "review_and_refine": _obj({
            "slug": SLUG,
            "name": NAME,
            "description": _text(50),
            "priority": PRIORITY,
        }, required=["slug", "name", "description", "priority"]),
    },
    EntityType.component: {
        "analyze_requirements": _obj({"description": _text()}, required=["description"]),
        "define_boundaries": _obj({"description": _text(50)}, required=["description"]),
        "define_responsibilities": _obj({
            "capabilities": dict(STRINGS, minItems=1),
        }, required=["capabilities"]),
        "define_interfaces": _obj({"description": _text(50)}, required=["description"]),
        "map_dependencies": _obj({
            "depends_on": {"type": "array", "items": COMPONENT_ID},
            "external_dependencies": STRINGS,
        }),
        "define_ownership": _obj({"description": _text(50)}, required=["description"]),
        "identify_patterns": _obj({"description": _text()}, required=["description"]),
        "quality_attributes": _obj({
            "constraints": dict(STRINGS, minItems=1),
        }, required=["constraints"]),
        "trace_requirements": _obj({"description": _text(50)}, required=["description"]),
        "validate_refine": _obj({
            "type": {"type": "string", "enum": ["app", "service", "library"]},
            "slug": SLUG,
            "name": NAME,
            "description": _text(),
            "capabilities": dict(STRINGS, minItems=1),
            "tech_stack": dict(STRINGS, minItems=1),
        }, required=["type", "slug", "name", "description", "capabilities", "tech_stack"]),
    },
    EntityType.plan: {
        "review_context": _obj({
            "criteria_id": CRITERIA_REF,
            "description": _text(50),
        }, required=["criteria_id", "description"]),
        "identify_phases": _obj({"description": _text(50)}, required=["description"]),
        "analyze_dependencies": _obj({"depends_on": {"type": "array", "items": PLAN_ID}}),
        "break_down_tasks": _obj({
            "tasks": {"type": "array", "items": TASK_OUTLINE, "minItems": 1},
        }, required=["tasks"]),
        "estimate_effort": _obj({
            "tasks": {"type": "array", "items": TASK_OUTLINE, "minItems": 1},
        }, required=["tasks"]),
        "define_acceptance": _obj({"acceptance_criteria": _text()}, required=["acceptance_criteria"]),
        "identify_milestones": _obj({"description": _text(50)}, required=["description"]),
        "plan_testing": _obj({"description": _text(50)}, required=["description"]),
        "plan_risks": _obj({"description": _text(50)}, required=["description"]),
        "create_timeline": _obj({"description": _text(50)}, required=["description"]),
        "trace_specs": _obj({"description": _text(50)}, required=["description"]),
        "validate_refine": _obj({
            "slug": SLUG,
            "name": NAME,
            "description": _text(),
            "criteria_id": CRITERIA_REF,
            "acceptance_criteria": _text(),
        }, required=["slug", "name", "description", "criteria_id", "acceptance_criteria"]),
    },
    EntityType.constitution: {
        "basic_info": _obj({"name": NAME, "description": _text(20)}, required=["name", "description"]),
        "key_areas": _obj({"areas": dict(STRINGS, minItems=1)}, required=["areas"]),
        "finalize": _obj({"name": NAME}, required=["name"]),
    },
    EntityType.decision: {
        "basic_info": _obj({"name": NAME, "description": _text()}, required=["name", "description"]),
        "decision_statement": _obj({"decision": _text(20, 500)}, required=["decision"]),
        "context": _obj({"context": _text(20, 1000)}, required=["context"]),
        "alternatives": _obj({"alternatives": STRINGS}, required=["alternatives"]),
        "relationships": _obj({
            "affects_components": {"type": "array", "items": COMPONENT_ID},
            "affects_requirements": {"type": "array", "items": REQUIREMENT_ID},
            "affects_plans": {"type": "array", "items": PLAN_ID},
            "informed_by_articles": {"type": "array", "items": ARTICLE_REF},
            "supersedes": DECISION_ID,
        }),
        "finalize": _obj({"name": NAME}, required=["name"]),
    },
}


def _with_step(step_id: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    s = copy.deepcopy(schema)
    s.setdefault("properties", {})["step"] = {"const": step_id}
    s["required"] = ["step"] + [r for r in s.get("required", []) if r != "step"]
    return s


def _build_step_schemas() -> Dict[EntityType, Dict[str, Dict[str, Any]]]:
    out: Dict[EntityType, Dict[str, Dict[str, Any]]] = {}
    for entity_type in EntityType:
        table = {step_id: _with_step(step_id, s)
                 for step_id, s in _BASE_STEP_SCHEMAS[entity_type].items()}
        for field in ARRAY_FIELDS[entity_type]:
            table[f"{field}_list"] = _with_step(f"{field}_list", _obj({
                "items": {"type": "array", "items": _text(), "minItems": 1},
            }, required=["items"]))
            table[f"{field}_item"] = _with_step(f"{field}_item", ITEM_SCHEMAS[entity_type][field])
        out[entity_type] = table
    return out


STEP_SCHEMAS = _build_step_schemas()


def _entity_schema(entity_type: EntityType) -> Dict[str, Any]:
    props: Dict[str, Any] = {"name": NAME, "slug": SLUG}
    for field in ARRAY_FIELDS[entity_type]:
        props[field] = {"type": "array", "items": ITEM_SCHEMAS[entity_type][field]}
    return _obj(props, required=["name"])


ENTITY_SCHEMAS: Dict[EntityType, Dict[str, Any]] = {t: _entity_schema(t) for t in EntityType}

for _schema in [ENTITY_SCHEMAS[t] for t in EntityType] + [
        s for table in STEP_SCHEMAS.values() for s in table.values()]:
    SpecValidator.check_schema(_schema)


def step_schema(entity_type, step_id: str) -> Optional[Dict[str, Any]]:
    return STEP_SCHEMAS[EntityType(entity_type)].get(step_id)


def item_schema(entity_type, field: str) -> Dict[str, Any]:
    return ITEM_SCHEMAS[EntityType(entity_type)][field]


def entity_schema(entity_type) -> Dict[str, Any]:
    return ENTITY_SCHEMAS[EntityType(entity_type)]


def schema_issues(schema: Dict[str, Any], instance: Any) -> list:
    """All violations of ``schema`` by ``instance``, in a stable order."""
    v = SpecValidator(schema)
    return sorted(v.iter_errors(instance), key=lambda e: [str(p) for p in e.absolute_path])


def describe_error(e: ValidationError) -> str:
    path = ".".join(str(p) for p in e.absolute_path)
    return f"{path}: {e.message}" if path else e.message


def apply_defaults(schema: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy of ``data`` with top-level schema defaults filled in."""
    out = copy.deepcopy(data)
    for key, prop in schema.get("properties", {}).items():
        if key not in out and "default" in prop:
            out[key] = copy.deepcopy(prop["default"])
    return out
