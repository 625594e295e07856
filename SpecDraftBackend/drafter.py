# SpecDraftBackend/drafter.py
"""Question/answer state machine for one draft.

An EntityDrafter asks its main questions in order, then walks each array
field: the collection question, then every item's questions. Array items
only ever enter the entity through ArrayDrafter.finalize_item_with_data;
whatever the caller passes for an array field at finalize time is discarded.
"""
import re
import copy
from typing import Dict, Any, List, Optional

from pydantic import BaseModel

from .errors import NotFound, InvalidPayload, IllegalState
from .logs import get_logger
from .questions import MAIN_QUESTIONS, ARRAY_QUESTIONS
from .schemas import EntityType, Question
from .step_schemas import item_schema, entity_schema, schema_issues, describe_error, apply_defaults
from .steps import ARRAY_FIELDS

log = get_logger("specdraft.drafter")

ENTITY_ID_RE = re.compile(r"^([a-z_]+)\[(\d+)\]$")

# EntityDrafter.state values
COLLECTING_MAIN = "collecting-main"
READY_TO_FINALIZE = "ready-to-finalize"
FINALIZED = "finalized"


class QuestionLocation(BaseModel):
    question: Question
    context: str  # "main" | "collection" | "item"
    field: Optional[str] = None
    index: Optional[int] = None


def _question(row, suffix: str = "") -> Question:
    qid, field, prompt, guidance, optional = row
    return Question(id=f"{qid}{suffix}", field=field, prompt=prompt, guidance=guidance, optional=optional)


def _check_answer(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayload("Answer must be a non-empty string")
    return value.strip()


class ItemDraft:
    def __init__(self, index: int, description: str, questions: List[Question]):
        self.index = index
        self.description = description
        self.questions = questions
        self.finalized_data: Optional[Dict[str, Any]] = None

    @property
    def finalized(self) -> bool:
        return self.finalized_data is not None

    def pending_required(self) -> List[Question]:
        return [q for q in self.questions if not q.optional and q.answer is None]

    def to_state(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "description": self.description,
            "questions": [q.model_dump() for q in self.questions],
            "finalized_data": copy.deepcopy(self.finalized_data),
        }


class ArrayDrafter:
    """Sole authority for the contents of one array field."""

    def __init__(self, entity_type: EntityType, field: str):
        self.entity_type = entity_type
        self.field = field
        (cid, cprompt, cguidance), self.templates = ARRAY_QUESTIONS[entity_type][field]
        self.collection = Question(id=cid, field=field, prompt=cprompt, guidance=cguidance)
        self.item_schema = item_schema(entity_type, field)
        self.items: List[ItemDraft] = []
        self.frozen = False

    def _check_mutable(self):
        if self.frozen:
            raise IllegalState("Draft is already finalized")

    @property
    def awaiting_descriptions(self) -> bool:
        return self.collection.answer is not None and not self.items

    @property
    def is_complete(self) -> bool:
        return bool(self.items) and all(i.finalized for i in self.items)

    @property
    def incomplete_indices(self) -> List[int]:
        return [i.index for i in self.items if not i.finalized]

    def questions(self) -> List[Question]:
        out = [self.collection]
        for item in self.items:
            out.extend(item.questions)
        return out

    def current_question(self) -> Optional[Question]:
        if not self.collection.resolved:
            return self.collection
        for item in self.items:
            if item.finalized:
                continue
            for q in item.questions:
                if not q.resolved:
                    return q
        return None

    def set_descriptions(self, descriptions: List[str]):
        self._check_mutable()
        if self.collection.answer is None:
            raise IllegalState(f"Answer the collection question for '{self.field}' first")
        if self.items:
            raise IllegalState(f"Items for '{self.field}' are already set")
        cleaned = [d.strip() for d in descriptions if isinstance(d, str) and d.strip()]
        if not cleaned:
            raise InvalidPayload(f"At least one description is required for '{self.field}'")
        self.items = [
            ItemDraft(i, desc, [_question(row, f"-item-{i}") for row in self.templates])
            for i, desc in enumerate(cleaned)
        ]
        log.info("Materialized %d %s items", len(self.items), self.field)

    def get_item(self, index: int) -> ItemDraft:
        if not 0 <= index < len(self.items):
            raise NotFound(f"No item {index} in '{self.field}'")
        return self.items[index]

    def finalize_item_with_data(self, index: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._check_mutable()
        item = self.get_item(index)
        if item.finalized:
            raise IllegalState(f"{self.field}[{index}] is already finalized")
        pending = item.pending_required()
        if pending:
            raise IllegalState(
                f"Answer the questions for {self.field}[{index}] first: {', '.join(q.id for q in pending)}"
            )
        if not isinstance(payload, dict):
            raise InvalidPayload(f"{self.field}[{index}] data must be an object")
        errors = schema_issues(self.item_schema, payload)
        if errors:
            issues = [describe_error(e) for e in errors]
            raise InvalidPayload(f"Invalid {self.field}[{index}] data", issues)
        item.finalized_data = apply_defaults(self.item_schema, payload)
        log.info("Finalized %s[%d]", self.field, index)
        return copy.deepcopy(item.finalized_data)

    def finalized_items(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(i.finalized_data) for i in self.items if i.finalized]

    def item_context(self, index: int) -> Dict[str, Any]:
        item = self.get_item(index)
        return {
            "field": self.field,
            "index": index,
            "description": item.description,
            "answers": {q.field: q.answer for q in item.questions if q.answer is not None},
            "schema": copy.deepcopy(self.item_schema),
        }

    def to_state(self) -> Dict[str, Any]:
        return {
            "collection": self.collection.model_dump(),
            "items": [i.to_state() for i in self.items],
        }

    def load_state(self, state: Dict[str, Any]):
        saved = state.get("collection") or {}
        self.collection.answer = saved.get("answer")
        self.collection.skipped = bool(saved.get("skipped"))
        self.items = []
        for raw in state.get("items") or []:
            index = raw["index"]
            answers = {q["id"]: q for q in raw.get("questions") or []}
            questions = []
            for row in self.templates:
                q = _question(row, f"-item-{index}")
                prev = answers.get(q.id) or {}
                q.answer = prev.get("answer")
                q.skipped = bool(prev.get("skipped"))
                questions.append(q)
            item = ItemDraft(index, raw.get("description", ""), questions)
            item.finalized_data = copy.deepcopy(raw.get("finalized_data"))
            self.items.append(item)


class EntityDrafter:
    def __init__(self, entity_type):
        self.entity_type = EntityType(entity_type)
        self.questions: List[Question] = [_question(row) for row in MAIN_QUESTIONS[self.entity_type]]
        self.arrays: Dict[str, ArrayDrafter] = {
            field: ArrayDrafter(self.entity_type, field) for field in ARRAY_FIELDS[self.entity_type]
        }
        self._entity: Optional[Dict[str, Any]] = None

    # ---------- state ----------
    @property
    def finalized(self) -> bool:
        return self._entity is not None

    @property
    def state(self) -> str:
        if self.finalized:
            return FINALIZED
        if any(not q.resolved for q in self.questions):
            return COLLECTING_MAIN
        for i, arr in enumerate(self.arrays.values()):
            if not arr.collection.resolved or arr.awaiting_descriptions:
                return f"collecting-array[{i}].collection"
            if not arr.is_complete:
                return f"collecting-array[{i}].items"
        return READY_TO_FINALIZE

    def _check_mutable(self):
        if self.finalized:
            raise IllegalState("Draft is already finalized")

    def _awaiting(self) -> Optional[ArrayDrafter]:
        for arr in self.arrays.values():
            if arr.awaiting_descriptions:
                return arr
        return None

    def current_question(self) -> Optional[Question]:
        if self.finalized:
            return None
        for q in self.questions:
            if not q.resolved:
                return q
        for arr in self.arrays.values():
            q = arr.current_question()
            if q is not None:
                return q
            if arr.awaiting_descriptions:
                return None
        return None

    @property
    def questions_complete(self) -> bool:
        return self.current_question() is None and self._awaiting() is None

    @property
    def is_complete(self) -> bool:
        if any(not q.optional and not q.resolved for q in self.questions):
            return False
        return all(arr.is_complete for arr in self.arrays.values())

    # ---------- answering ----------
    def submit_answer(self, value: str) -> Question:
        self._check_mutable()
        q = self.current_question()
        if q is None:
            waiting = self._awaiting()
            if waiting is not None:
                raise IllegalState(f"Set the item descriptions for '{waiting.field}' before answering further")
            raise IllegalState("No question is pending")
        q.answer = _check_answer(value)
        return q

    def find_question_by_id(self, question_id: str) -> Optional[QuestionLocation]:
        for q in self.questions:
            if q.id == question_id:
                return QuestionLocation(question=q, context="main")
        for field, arr in self.arrays.items():
            if arr.collection.id == question_id:
                return QuestionLocation(question=arr.collection, context="collection", field=field)
            for item in arr.items:
                for q in item.questions:
                    if q.id == question_id:
                        return QuestionLocation(question=q, context="item", field=field, index=item.index)
        return None

    def _locate(self, question_id: str) -> QuestionLocation:
        loc = self.find_question_by_id(question_id)
        if loc is None:
            raise NotFound(f"Question {question_id} not found")
        return loc

    def _live(self, loc: QuestionLocation) -> Question:
        if loc.context == "main":
            return next(q for q in self.questions if q.id == loc.question.id)
        arr = self.arrays[loc.field]
        if loc.context == "collection":
            return arr.collection
        return next(q for q in arr.items[loc.index].questions if q.id == loc.question.id)

    def answer_question_by_id(self, question_id: str, value: str) -> Question:
        self._check_mutable()
        loc = self._locate(question_id)
        q = self._live(loc)
        if q.resolved:
            raise IllegalState(f"Question {question_id} was already answered or skipped")
        if loc.context == "item" and self.arrays[loc.field].items[loc.index].finalized:
            raise IllegalState(f"{loc.field}[{loc.index}] is already finalized")
        answer = _check_answer(value)
        if loc.context == "collection" and not self.arrays[loc.field].items:
            descriptions = [d.strip() for d in answer.split(",") if d.strip()]
            if not descriptions:
                raise InvalidPayload(f"List at least one {loc.field} item, comma-separated")
            q.answer = answer
            self.arrays[loc.field].set_descriptions(descriptions)
            return q
        q.answer = answer
        return q

    def skip_answer(self, question_id: str) -> Question:
        self._check_mutable()
        q = self._live(self._locate(question_id))
        if not q.optional:
            raise IllegalState(f"Question {question_id} is required and cannot be skipped")
        if q.resolved:
            raise IllegalState(f"Question {question_id} was already answered or skipped")
        q.skipped = True
        return q

    def get_array_drafter(self, field: str) -> ArrayDrafter:
        arr = self.arrays.get(field)
        if arr is None:
            raise NotFound(f"'{field}' is not an array field of {self.entity_type.value}")
        return arr

    # ---------- finalization ----------
    def _missing(self) -> List[str]:
        out = [q.id for q in self.questions if not q.optional and not q.resolved]
        for field, arr in self.arrays.items():
            if not arr.items:
                out.append(f"{field} (no items)")
            out.extend(f"{field}[{i}]" for i in arr.incomplete_indices)
        return out

    def finalize(self, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._check_mutable()
        if not self.is_complete:
            raise IllegalState(f"Draft is incomplete: {', '.join(self._missing())}")
        if payload is not None and not isinstance(payload, dict):
            raise InvalidPayload("Entity data must be an object")

        entity = copy.deepcopy(payload or {})
        for field, arr in self.arrays.items():
            authoritative = arr.finalized_items()
            if field in entity and entity[field] != authoritative:
                log.warning("Discarding caller-supplied %s for %s draft; using %d finalized items",
                            field, self.entity_type.value, len(authoritative))
            entity[field] = authoritative

        errors = schema_issues(entity_schema(self.entity_type), entity)
        if errors:
            raise InvalidPayload(f"Invalid {self.entity_type.value}", [describe_error(e) for e in errors])

        self._entity = entity
        for arr in self.arrays.values():
            arr.frozen = True
        log.info("Finalized %s entity", self.entity_type.value)
        return copy.deepcopy(entity)

    def finalize_by_entity_id(self, entity_id: Optional[str], payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if entity_id in (None, "", "main"):
            return self.finalize(payload)
        m = ENTITY_ID_RE.match(entity_id)
        if not m:
            raise InvalidPayload(f"Unrecognized entity id '{entity_id}' (use 'main' or 'field[index]')")
        self._check_mutable()
        return self.get_array_drafter(m.group(1)).finalize_item_with_data(int(m.group(2)), payload)

    # ---------- views ----------
    @property
    def data(self) -> Dict[str, Any]:
        if self.finalized:
            return copy.deepcopy(self._entity)
        out: Dict[str, Any] = {q.field: q.answer for q in self.questions if q.answer is not None}
        for field, arr in self.arrays.items():
            out[field] = arr.finalized_items()
        return out

    def entity_context(self) -> Dict[str, Any]:
        return {
            "type": self.entity_type.value,
            "answers": {q.field: q.answer for q in self.questions if q.answer is not None},
            "arrays": {field: arr.finalized_items() for field, arr in self.arrays.items()},
            "schema": copy.deepcopy(entity_schema(self.entity_type)),
        }

    def continue_context(self) -> Dict[str, Any]:
        q = self.current_question()
        if q is not None:
            loc = self.find_question_by_id(q.id)
            return {
                "stage": "questions",
                "next_action": {
                    "action": "answer_question",
                    "question_id": q.id,
                    "question": q.prompt,
                    "guidance": q.guidance,
                    "optional": q.optional,
                    "context": {"type": loc.context, "field": loc.field, "index": loc.index},
                },
            }
        waiting = self._awaiting()
        if waiting is not None:
            return {
                "stage": "questions",
                "next_action": {
                    "action": "set_descriptions",
                    "field": waiting.field,
                    "answer": waiting.collection.answer,
                },
            }
        if not self.finalized:
            for field, arr in self.arrays.items():
                if arr.incomplete_indices:
                    index = arr.incomplete_indices[0]
                    return {
                        "stage": "finalization",
                        "next_action": {
                            "action": "finalize_entity",
                            "entity_id": f"{field}[{index}]",
                            "context": arr.item_context(index),
                        },
                    }
            return {
                "stage": "finalization",
                "next_action": {"action": "finalize_entity", "entity_id": "main", "context": self.entity_context()},
            }
        return {
            "stage": "complete",
            "next_action": {"action": "complete", "message": "Draft is finalized and ready to be saved"},
        }

    def progress(self) -> Dict[str, int]:
        questions = list(self.questions)
        for arr in self.arrays.values():
            questions.extend(arr.questions())
        items = [i for arr in self.arrays.values() for i in arr.items]
        return {
            "answered": sum(1 for q in questions if q.resolved),
            "total": len(questions),
            "items_finalized": sum(1 for i in items if i.finalized),
            "items_total": len(items),
        }

    # ---------- persistence ----------
    def to_state(self) -> Dict[str, Any]:
        return {
            "type": self.entity_type.value,
            "questions": [q.model_dump() for q in self.questions],
            "arrays": {field: arr.to_state() for field, arr in self.arrays.items()},
            "entity": copy.deepcopy(self._entity),
        }

    @classmethod
    def from_state(cls, entity_type, state: Dict[str, Any]) -> "EntityDrafter":
        drafter = cls(entity_type)
        saved = {q["id"]: q for q in state.get("questions") or []}
        for q in drafter.questions:
            prev = saved.get(q.id) or {}
            q.answer = prev.get("answer")
            q.skipped = bool(prev.get("skipped"))
        for field, arr_state in (state.get("arrays") or {}).items():
            if field in drafter.arrays:
                drafter.arrays[field].load_state(arr_state)
            else:
                log.warning("Ignoring state for unknown array field %s", field)
        drafter._entity = copy.deepcopy(state.get("entity"))
        if drafter.finalized:
            for arr in drafter.arrays.values():
                arr.frozen = True
        return drafter


def create_entity_drafter(entity_type) -> EntityDrafter:
    return EntityDrafter(entity_type)
