from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class EntityType(str, Enum):
    requirement = "requirement"
    component = "component"
    plan = "plan"
    constitution = "constitution"
    decision = "decision"


class Question(BaseModel):
    id: str
    field: str
    prompt: str
    guidance: str = ""
    answer: Optional[str] = None
    optional: bool = False
    skipped: bool = False

    @property
    def resolved(self) -> bool:
        return self.answer is not None or self.skipped


class StepDefinition(BaseModel):
    id: str
    order: int
    name: str
    description: str
    prompt: str
    guidance: str = ""
    required_fields: List[str] = Field(default_factory=list)
    next_step: Optional[str] = None


class ValidationResult(BaseModel):
    step: str
    passed: bool
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)


class Draft(BaseModel):
    id: str
    type: EntityType
    current_step: int = 1
    total_steps: int
    data: Dict[str, Any] = Field(default_factory=dict)
    validation_results: List[ValidationResult] = Field(default_factory=list)
    created_at: str
    updated_at: str
    expires_at: str
    # serialized EntityDrafter, see drafter.EntityDrafter.to_state
    drafter: Optional[Dict[str, Any]] = None


class NextActionResponse(BaseModel):
    stage: str  # "questions" | "finalization" | "complete"
    next_action: Dict[str, Any]
    progress: Dict[str, int] = Field(default_factory=dict)
