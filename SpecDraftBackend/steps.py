"""Static per-entity-type step tables.

Each entity type has a fixed list of base steps. For every declared array
field a synthetic ``<field>_list`` step (name the items) and a synthetic
``<field>_item`` step (submit one structured item) are inserted just before
the final review step, so ``total_steps`` is always
``BASE_STEP_COUNTS[type] + 2 * len(ARRAY_FIELDS[type])``.
"""
from typing import Dict, List, Tuple

from .schemas import EntityType, StepDefinition

ID_PREFIXES: Dict[EntityType, str] = {
    EntityType.requirement: "req",
    EntityType.component: "cmp",
    EntityType.plan: "pln",
    EntityType.constitution: "con",
    EntityType.decision: "dec",
}

# declaration order drives the question flow
ARRAY_FIELDS: Dict[EntityType, Tuple[str, ...]] = {
    EntityType.requirement: ("criteria",),
    EntityType.component: ("deployments", "constraints"),
    EntityType.plan: ("tasks", "test_cases"),
    EntityType.constitution: ("articles",),
    EntityType.decision: ("consequences",),
}

# (id, name, description, prompt, guidance, required_fields)
_BASE_STEPS: Dict[EntityType, List[tuple]] = {
    EntityType.requirement: [
        ("problem_identification", "Identify Problem", "Define the problem or opportunity",
         "What problem are we solving and why is it important?",
         "Explain the problem or opportunity this requirement addresses. Include the business value "
         "and rationale using words like 'because', 'needed', or 'so that'.",
         ["description"]),
        ("avoid_implementation", "Avoid Implementation Details", "Ensure requirement is implementation-agnostic",
         "What needs to happen, without specifying how it should be implemented?",
         "Describe WHAT the system should do, not HOW. Avoid naming technologies, databases, "
         "frameworks or UI widgets.",
         ["description"]),
        ("measurability", "Define Measurability", "Add measurable success criteria",
         "How will you know when this requirement is successfully met?",
         "Define 2-4 measurable acceptance criteria. Each should be specific and testable.",
         ["criteria"]),
        ("specific_language", "Use Specific Language", "Remove vague terms",
         "Can you make the description and criteria more specific and quantifiable?",
         "Replace vague terms like 'fast' or 'easy' with measurable language, e.g. "
         "'completes in under 2 seconds' or 'requires no more than 3 clicks'.",
         ["description", "criteria"]),
        ("acceptance_criteria", "Finalize Acceptance Criteria", "Ensure criteria are complete and testable",
         "Are all acceptance criteria testable, independent, clear, and achievable?",
         "Review each criterion: testable, independent, clear, achievable.",
         ["criteria"]),
        ("priority_assignment", "Assign Priority", "Set appropriate priority level",
         "What is the priority of this requirement?",
         "Choose 'critical' (must-have for launch), 'required' (needed soon after launch), "
         "'ideal' (nice to have) or 'optional' (future consideration).",
         ["priority"]),
        ("review_and_refine", "Review and Finalize", "Final review before creation",
         "Ready to create this requirement? Let's do a final review.",
         "Review all the information provided and make final adjustments.",
         ["slug", "name", "description", "priority"]),
    ],
    EntityType.component: [
        ("analyze_requirements", "Analyze Requirements", "Review which requirements this component satisfies",
         "Which requirements does this component satisfy and how?",
         "List the requirement IDs and explain how this component addresses them.",
         ["description"]),
        ("define_boundaries", "Define Boundaries", "Apply single responsibility principle",
         "What is this component responsible for, and what is NOT its responsibility?",
         "Be explicit about what this component handles and what it delegates.",
         ["description"]),
        ("define_responsibilities", "Define Responsibilities", "List what the component does",
         "What specific capabilities does this component provide?",
         "List the capabilities this component handles directly.",
         ["capabilities"]),
        ("define_interfaces", "Define Interfaces", "Specify inputs, outputs, and contracts",
         "What are this component's inputs, outputs, and contracts?",
         "Describe accepted inputs, produced outputs, exposed APIs, data formats and protocols.",
         ["description"]),
        ("map_dependencies", "Map Dependencies", "Identify internal and external dependencies",
         "What does this component depend on?",
         "List internal components (cmp-XXX-slug) and external libraries or services. "
         "Empty lists state 'no dependencies'.",
         []),
        ("define_ownership", "Define Ownership", "Specify state management and data ownership",
         "What data and state does this component own versus borrow?",
         "Which data does it create and manage, and which does it read from others?",
         ["description"]),
        ("identify_patterns", "Identify Patterns", "List architectural patterns used",
         "What architectural patterns does this component use?",
         "E.g. Repository, Service, Factory, Observer, Strategy. Explain each choice.",
         ["description"]),
        ("quality_attributes", "Define Quality Attributes", "Performance, security and testability",
         "What are the quality requirements for this component?",
         "Performance targets, security requirements, testability, scalability, reliability.",
         ["constraints"]),
        ("trace_requirements", "Trace to Requirements", "Create traceability matrix",
         "How do the capabilities trace back to requirements?",
         "Link each capability to the requirement(s) it satisfies.",
         ["description"]),
        ("validate_refine", "Validate and Refine", "Final review before creation",
         "Ready to create this component? Let's do a final review.",
         "Check boundaries, dependencies, capabilities, quality attributes and traceability.",
         ["type", "slug", "name", "description", "capabilities", "tech_stack"]),
    ],
    EntityType.plan: [
        ("review_context", "Review Context", "Review requirements and components",
         "What acceptance criteria are you fulfilling and what's the context?",
         "Reference the criterion (req-001-slug/crit-001) and the relevant components.",
         ["criteria_id", "description"]),
        ("identify_phases", "Identify Phases", "Break work into major phases",
         "What are the major phases of work for this plan?",
         "Break the plan into 2-5 phases and describe what each accomplishes.",
         ["description"]),
        ("analyze_dependencies", "Analyze Dependencies", "Create dependency graph and ordering",
         "What dependencies exist for this plan?",
         "List plans (pln-XXX-slug) that must complete before this one starts.",
         []),
        ("break_down_tasks", "Break Down Tasks", "Create actionable tasks (0.5-3 days each)",
         "What specific tasks need to be completed?",
         "Each task should be 0.5-3 days of effort and independently testable.",
         ["tasks"]),
        ("estimate_effort", "Estimate Effort", "Add effort estimates with buffer",
         "How much effort will each task require?",
         "Estimate each task in days and add a 20% buffer for unknowns.",
         ["tasks"]),
        ("define_acceptance", "Define Acceptance Criteria", "Add acceptance criteria for the plan",
         "How will you know when this plan is complete?",
         "State the conditions that must hold to consider this plan done.",
         ["acceptance_criteria"]),
        ("identify_milestones", "Identify Milestones", "Define major checkpoints",
         "What are the major milestones for this plan?",
         "Identify 2-4 deliverable checkpoints.",
         ["description"]),
        ("plan_testing", "Plan Testing Strategy", "Define how work will be tested",
         "How will you test the work in this plan?",
         "Unit, integration and end-to-end strategy with coverage goals.",
         ["description"]),
        ("plan_risks", "Plan for Risks", "Identify risks and mitigation strategies",
         "What risks could impact this plan and how will you mitigate them?",
         "Identify 2-5 key risks and a mitigation for each.",
         ["description"]),
        ("create_timeline", "Create Timeline", "Build schedule and critical path",
         "What's the timeline for this plan?",
         "When does each phase complete, and what is the critical path?",
         ["description"]),
        ("trace_specs", "Trace to Specs", "Link to requirements and components",
         "How do the tasks trace to requirements and components?",
         "Every task should support at least one requirement or component.",
         ["description"]),
        ("validate_refine", "Validate and Refine", "Final review before creation",
         "Ready to create this plan? Let's do a final review.",
         "Verify tasks, dependencies, estimates with buffer, and traceability.",
         ["slug", "name", "description", "criteria_id", "acceptance_criteria"]),
    ],
    EntityType.constitution: [
        ("basic_info", "Basic Information", "Provide basic constitution information",
         "What is this constitution about and what will it govern?",
         "Provide a name and description. Explain which aspects of development it governs.",
         ["name", "description"]),
        ("key_areas", "Key Areas", "Identify the areas the articles will address",
         "Which recurring debates, trade-offs or practices should this constitution settle?",
         "List 3-7 concrete areas such as technology selection or code review standards.",
         ["areas"]),
        ("finalize", "Finalize", "Review and create the constitution",
         "Ready to create this constitution? Let's do a final review.",
         "Review the name, description and all articles.",
         ["name"]),
    ],
    EntityType.decision: [
        ("basic_info", "Basic Information", "Provide basic decision information",
         "What is this decision about?",
         "Provide a name and a brief description of what this decision addresses.",
         ["name", "description"]),
        ("decision_statement", "Decision Statement", "State what was decided",
         "What exactly was decided?",
         "State the decision in 20-500 characters.",
         ["decision"]),
        ("context", "Context", "Explain the situation that prompted this decision",
         "What situation or problem led to this decision?",
         "Describe the problem, opportunity or constraint (20-1000 characters).",
         ["context"]),
        ("alternatives", "Alternatives", "Document alternatives considered",
         "Which alternatives were considered and why were they rejected?",
         "List each alternative with the reason it was not chosen.",
         ["alternatives"]),
        ("relationships", "Relationships", "Link to affected entities and informing articles",
         "What does this decision impact and what principles informed it?",
         "Reference affected components, requirements and plans, informing constitution "
         "articles, and any superseded decision.",
         []),
        ("finalize", "Finalize", "Review and create the decision",
         "Ready to create this decision? Let's do a final review.",
         "Review all decision details.",
         ["name"]),
    ],
}

BASE_STEP_COUNTS: Dict[EntityType, int] = {t: len(rows) for t, rows in _BASE_STEPS.items()}


def _array_steps(field: str) -> List[tuple]:
    label = field.replace("_", " ")
    return [
        (f"{field}_list", f"List {label.title()}", f"Name every {label} item",
         f"List the {label} (one short description per item).",
         "Each description becomes one item with its own questions. The count is fixed afterwards.",
         ["items"]),
        (f"{field}_item", f"Define {label.title()} Item", f"Submit one structured {label} item",
         f"Provide the structured data for one {label} item.",
         "Answer the item's questions first, then submit the item as a JSON object.",
         []),
    ]


def _build(entity_type: EntityType) -> List[StepDefinition]:
    rows = list(_BASE_STEPS[entity_type])
    synthetic: List[tuple] = []
    for field in ARRAY_FIELDS[entity_type]:
        synthetic.extend(_array_steps(field))
    rows = rows[:-1] + synthetic + rows[-1:]

    steps = []
    for i, (step_id, name, description, prompt, guidance, required) in enumerate(rows):
        steps.append(StepDefinition(
            id=step_id,
            order=i + 1,
            name=name,
            description=description,
            prompt=prompt,
            guidance=guidance,
            required_fields=list(required),
            next_step=rows[i + 1][0] if i + 1 < len(rows) else None,
        ))
    return steps


for _t in EntityType:
    if _t not in _BASE_STEPS or _t not in ARRAY_FIELDS or _t not in ID_PREFIXES:
        raise RuntimeError(f"Step tables are missing entity type {_t.value!r}")

_REGISTRY: Dict[EntityType, Tuple[StepDefinition, ...]] = {t: tuple(_build(t)) for t in EntityType}


def get_step_definitions(entity_type) -> List[StepDefinition]:
    """Ordered step definitions for an entity type. Raises ValueError for unknown types."""
    return [s.model_copy(deep=True) for s in _REGISTRY[EntityType(entity_type)]]


def get_step(entity_type, step_id: str):
    for step in _REGISTRY[EntityType(entity_type)]:
        if step.id == step_id:
            return step.model_copy(deep=True)
    return None


def total_steps(entity_type) -> int:
    et = EntityType(entity_type)
    return BASE_STEP_COUNTS[et] + 2 * len(ARRAY_FIELDS[et])


def array_step(entity_type, step_id: str):
    """``(field, "list" | "item")`` for a synthetic array step, else None."""
    for field in ARRAY_FIELDS[EntityType(entity_type)]:
        if step_id == f"{field}_list":
            return field, "list"
        if step_id == f"{field}_item":
            return field, "item"
    return None
