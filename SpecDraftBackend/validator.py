# SpecDraftBackend/validator.py
from typing import Dict, Any, List, Callable, Optional

from .logs import get_logger
from .schemas import EntityType, ValidationResult
from .step_schemas import step_schema, schema_issues, describe_error, RATIONALE_KEYWORDS

log = get_logger("specdraft.validator")

CUSTOM_KEYWORDS = ("requiresRationale", "forbidsTerms", "measurable")


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and len(value) == 0)


def _has_rationale(text: Any) -> bool:
    return isinstance(text, str) and any(k in text.lower() for k in RATIONALE_KEYWORDS)


# ---------- strengths ----------
def _count(key: str, noun: str) -> Callable[[Dict[str, Any]], List[str]]:
    def check(d: Dict[str, Any]) -> List[str]:
        n = len(d.get(key) or [])
        return [f"Listed {n} {noun}"] if n else []
    return check


def _problem(d):
    out = ["Clear problem statement"]
    if _has_rationale(d.get("description")):
        out.append("Includes rationale for why this matters")
    return out


def _priority(d):
    return [f"Clear priority assignment: {d['priority']}"] if d.get("priority") else []


def _dependencies(d):
    internal = len(d.get("depends_on") or [])
    external = len(d.get("external_dependencies") or [])
    if not internal and not external:
        return ["Explicitly stated no dependencies"]
    return [f"Mapped {internal} internal and {external} external dependencies"]


def _relationships(d):
    linked = [k for k in ("affects_components", "affects_requirements", "affects_plans",
                          "informed_by_articles") if d.get(k)]
    out = [f"Linked {k.replace('_', ' ')}" for k in linked]
    if d.get("supersedes"):
        out.append(f"Supersedes {d['supersedes']}")
    return out


STRENGTHS: Dict[EntityType, Dict[str, Callable[[Dict[str, Any]], List[str]]]] = {
    EntityType.requirement: {
        "problem_identification": _problem,
        "avoid_implementation": lambda d: ["Implementation-agnostic description"],
        "measurability": _count("criteria", "measurable criteria"),
        "specific_language": lambda d: ["Uses specific, quantifiable language"],
        "acceptance_criteria": _count("criteria", "acceptance criteria"),
        "priority_assignment": _priority,
        "review_and_refine": lambda d: [f"Ready to create '{d.get('name')}'"] + _priority(d),
    },
    EntityType.component: {
        "define_responsibilities": _count("capabilities", "capabilities"),
        "map_dependencies": _dependencies,
        "quality_attributes": _count("constraints", "quality constraints"),
        "validate_refine": lambda d: [f"Component type: {d.get('type')}"] + _count("tech_stack", "technologies")(d),
    },
    EntityType.plan: {
        "review_context": lambda d: [f"Traces to acceptance criterion {d.get('criteria_id')}"],
        "break_down_tasks": _count("tasks", "tasks"),
        "estimate_effort": lambda d: [
            f"Estimated {sum(t.get('estimated_days') or 0 for t in d.get('tasks') or [])} days of effort"
        ],
        "analyze_dependencies": _count("depends_on", "plan dependencies"),
    },
    EntityType.constitution: {
        "basic_info": lambda d: [f"Named constitution '{d.get('name')}'"],
        "key_areas": _count("areas", "key areas"),
    },
    EntityType.decision: {
        "decision_statement": lambda d: ["Decision stated concisely"],
        "context": lambda d: ["Context explains what prompted the decision"],
        "alternatives": _count("alternatives", "alternatives considered"),
        "relationships": _relationships,
    },
}


# ---------- suggestions ----------
def _suggestion(e) -> Optional[str]:
    kind = e.validator
    if kind == "minLength":
        return f"Please elaborate: provide at least {e.validator_value} characters with more detail"
    if kind == "minItems":
        return f"Add more items: at least {e.validator_value} required"
    if kind == "maxLength":
        return f"Shorten this to at most {e.validator_value} characters"
    if kind == "pattern":
        return f"Fix the format so it matches {e.validator_value}"
    if kind in ("enum", "const"):
        allowed = e.validator_value if kind == "enum" else [e.validator_value]
        return f"Choose one of: {', '.join(str(v) for v in allowed)}"
    if kind == "required":
        return "Provide every required field for this step"
    if kind == "type":
        return f"Provide a value of type {e.validator_value}"
    if kind in CUSTOM_KEYWORDS:
        msg = e.message.lower()
        if "rationale" in msg:
            return "Explain WHY this is needed using words like 'because', 'needed' or 'so that'"
        if "implementation" in msg:
            return "Focus on WHAT needs to happen, not HOW (avoid naming technologies or UI elements)"
        if "vague" in msg:
            return "Replace vague terms with specific, measurable language (e.g. 'under 2 seconds')"
        if "measurable" in msg:
            return "Make criteria measurable: include numbers, thresholds or observable outcomes"
    return None


class StepValidator:
    """Checks one step payload against its schema and coaches the caller.

    Failures are returned as results, never raised.
    """

    def validate(self, entity_type, step_id: str, data: Optional[Dict[str, Any]]) -> ValidationResult:
        if data is not None and not isinstance(data, dict):
            return ValidationResult(step=step_id, passed=False,
                                    issues=[f"Step data must be an object, got {type(data).__name__}"],
                                    suggestions=["Send the step fields as a JSON object"])
        if not data:
            return ValidationResult(step=step_id, passed=False, issues=["No data provided for this step"],
                                    suggestions=["Provide the fields this step asks for"])
        if all(_is_empty(v) for v in data.values()):
            return ValidationResult(step=step_id, passed=False, issues=["All provided values are empty"],
                                    suggestions=["Fill in at least the required fields"])
        try:
            et = EntityType(entity_type)
        except ValueError:
            return ValidationResult(step=step_id, passed=False, issues=[f"Unknown entity type: {entity_type}"])
        schema = step_schema(et, step_id)
        if schema is None:
            return ValidationResult(step=step_id, passed=False,
                                    issues=[f"Unknown step '{step_id}' for {et.value}"])

        try:
            errors = schema_issues(schema, {"step": step_id, **data})
            if not errors:
                check = STRENGTHS.get(et, {}).get(step_id)
                strengths = check(data) if check else []
                return ValidationResult(step=step_id, passed=True,
                                        strengths=strengths or ["Step completed successfully"])

            issues, suggestions = [], []
            for e in errors:
                issues.append(describe_error(e))
                tip = _suggestion(e)
                if tip and tip not in suggestions:
                    suggestions.append(tip)
            return ValidationResult(step=step_id, passed=False, issues=issues, suggestions=suggestions)
        except Exception as ex:
            log.exception("Step validation crashed for %s/%s", et.value, step_id)
            return ValidationResult(step=step_id, passed=False, issues=[f"Validation error: {ex}"])


def validate_step(entity_type, step_id: str, data: Optional[Dict[str, Any]]) -> ValidationResult:
    return StepValidator().validate(entity_type, step_id, data)
