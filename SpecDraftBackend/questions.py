# SpecDraftBackend/questions.py
"""Question tables that drive the EntityDrafter.

Main questions are ``(id, field, prompt, guidance, optional)`` rows asked in
order. Every array field has one collection question (comma-separated item
descriptions) and a template of per-item questions that is cloned once per
item with ids suffixed ``-item-{index}``.
"""
from typing import Dict, Tuple

from .schemas import EntityType
from .steps import ARRAY_FIELDS

MAIN_QUESTIONS: Dict[EntityType, Tuple[tuple, ...]] = {
    EntityType.requirement: (
        ("q-001", "name", "What is the name of this requirement?", "Short and specific, e.g. 'User Authentication'", False),
        ("q-002", "description", "What problem or opportunity does this address?",
         "Explain who is affected and why it matters, using 'because' or 'so that'.", False),
        ("q-003", "outcome", "What's the desired outcome?", "Describe the observable end state, not the implementation.", False),
        ("q-004", "priority", "What is the priority?", "critical | required | ideal | optional", False),
        ("q-005", "constraints", "Key constraints or dependencies?", "Deadlines, regulations, other teams. Optional.", True),
    ),
    EntityType.component: (
        ("q-001", "name", "What is the name of this component?", "", False),
        ("q-002", "description", "Provide a detailed description of this component.", "", False),
        ("q-003", "type", "What type of component is this?", "app | service | library", False),
        ("q-004", "folder", "What is the relative folder path from the repository root?", "Default: .", False),
        ("q-005", "dev_port", "What is the dev server port?", "Optional.", True),
        ("q-006", "notes", "Any additional notes about this component?", "Optional.", True),
    ),
    EntityType.plan: (
        ("q-001", "name", "What is the name of this plan?", "", False),
        ("q-002", "description", "What does this plan accomplish? Describe goal and approach.",
         "Name the acceptance criterion it fulfils (req-001-slug/crit-001).", False),
        ("q-003", "decisions", "Architectural decisions guiding this implementation?", "DEC ids comma-separated, or 'none'.", True),
        ("q-004", "components", "Which components will be modified or created?", "CMP ids comma-separated, or 'none'.", True),
    ),
    EntityType.constitution: (
        ("q-001", "name", "What is the name of this constitution?", "", False),
        ("q-002", "description", "What does this constitution govern, who does it apply to and when is it referenced?",
         "Good: 'Defines technical decision-making for the platform team.' Bad: 'Guidelines for good code'.", False),
        ("q-003", "purpose", "Why does this exist? What problem does it solve?",
         "Connect it to faster decisions, better alignment or fewer errors.", False),
        ("q-004", "areas", "Key areas to address?",
         "Recurring debates, past mistakes, common trade-offs. 3-7 areas, comma-separated.", False),
    ),
    EntityType.decision: (
        ("q-001", "name", "What is the name of this decision?", "", False),
        ("q-002", "decision", "What exactly was decided, and what situation made it necessary now?",
         "Clear, specific, actionable. Include timeline and scope.", False),
        ("q-003", "alternatives", "Which alternatives were considered and why were they rejected?",
         "List each option with the reason it lost.", False),
        ("q-004", "supersedes", "Does this supersede or modify a previous decision?", "Decision id, e.g. dec-012-use-moment.", True),
        ("q-005", "affects_components", "Components affected?", "CMP ids comma-separated, 'all', or 'none'.", True),
    ),
}

# field -> ((collection id, prompt, guidance), ((id, field, prompt, guidance, optional), ...))
ARRAY_QUESTIONS: Dict[EntityType, Dict[str, tuple]] = {
    EntityType.requirement: {
        "criteria": (
            ("q-criteria", "List acceptance criteria (comma-separated).",
             "Each criterion must be testable and measurable. Aim for 2-4."),
            (
                ("cr-q-001", "description", "Describe the criterion and explain why it matters.",
                 "Good: 'Login completes in under 2 seconds for 95% of requests'.", False),
                ("cr-q-002", "research", "Industry standards that back this criterion?", "Optional.", True),
            ),
        ),
    },
    EntityType.component: {
        "deployments": (
            ("q-deployments", "List deployment targets (comma-separated).", "e.g. 'Production on Fly.io, Staging on Render'"),
            (
                ("dp-q-001", "platform", "What platform is this deployed to?", "", False),
                ("dp-q-002", "url", "What is the production URL or endpoint?", "Optional.", True),
                ("dp-q-003", "build_command", "What is the build command?", "Optional.", True),
                ("dp-q-004", "deploy_command", "What is the deploy command?", "Optional.", True),
                ("dp-q-005", "environment_vars", "List required environment variables.", "Comma-separated, optional.", True),
                ("dp-q-006", "secrets", "List required secrets.", "Comma-separated, optional.", True),
                ("dp-q-007", "notes", "Any additional deployment notes?", "Optional.", True),
            ),
        ),
        "constraints": (
            ("q-constraints", "List quality constraints (comma-separated).",
             "Performance, security, scalability, reliability, compatibility."),
            (
                ("cs-q-001", "type", "Constraint type?",
                 "performance | security | scalability | reliability | compatibility | other", False),
                ("cs-q-002", "description", "Describe the constraint with a measurable threshold.",
                 "Good: 'p99 latency under 200ms at 500 rps'.", False),
            ),
        ),
    },
    EntityType.plan: {
        "tasks": (
            ("q-tasks", "List implementation tasks (comma-separated).", "Each task should be 0.5-3 days of effort."),
            (
                ("tk-q-001", "task", "Describe task details, dependencies and considerations.", "", False),
                ("tk-q-002", "priority", "Priority?", "low | medium | high | critical", False),
                ("tk-q-003", "research", "External resources consulted for this task?", "Optional.", True),
            ),
        ),
        "test_cases": (
            ("q-test-cases", "List test cases (comma-separated).", "Cover the happy path and the important failures."),
            (
                ("tc-q-001", "description", "Test scenario, steps and expected result.", "", False),
            ),
        ),
    },
    EntityType.constitution: {
        "articles": (
            ("q-articles", "List article/principle titles (comma-separated).",
             "Convert key areas into actionable principles. 3-7 articles."),
            (
                ("ar-q-001", "title", "Article title?", "e.g. 'Library-First Principle'", False),
                ("ar-q-002", "principle", "Principle as a clear, actionable guideline.",
                 "Specific, debatable, actionable.", False),
                ("ar-q-003", "rationale", "Why does this exist? Problem or benefit?",
                 "Concrete impact on quality, speed or alignment.", False),
                ("ar-q-004", "examples", "2-3 scenarios where this guided a decision.", "Comma-separated, optional.", True),
                ("ar-q-005", "exceptions", "When should this NOT apply?", "Comma-separated or 'none', optional.", True),
                ("ar-q-006", "status", "Status?", "needs-review | active | archived", True),
            ),
        ),
    },
    EntityType.decision: {
        "consequences": (
            ("q-consequences", "List key consequences (comma-separated).",
             "Include both positives and negatives. Aim for 3-8."),
            (
                ("cq-q-001", "type", "Type?", "positive | negative | risk", False),
                ("cq-q-002", "description", "Describe specifically. Quantify when possible.", "", False),
                ("cq-q-003", "mitigation", "How will you mitigate it? (negative/risk only)", "Optional.", True),
            ),
        ),
    },
}

for _t in EntityType:
    if _t not in MAIN_QUESTIONS or set(ARRAY_QUESTIONS.get(_t, {})) != set(ARRAY_FIELDS[_t]):
        raise RuntimeError(f"Question tables do not match array fields for {_t.value!r}")
