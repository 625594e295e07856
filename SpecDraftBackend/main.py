from typing import Optional, Dict, Any, List, Callable

from fastapi import FastAPI, Depends, HTTPException
from pydantic import BaseModel, Field

from .drafter import EntityDrafter
from .drafts import DraftManager, SPECS_DIR
from .errors import SpecDraftError, NotFound, InvalidPayload, IllegalState
from .logs import get_logger
from .schemas import Draft, EntityType, StepDefinition, ValidationResult, NextActionResponse
from .steps import get_step_definitions, get_step, array_step
from .validator import StepValidator

APP_NAME = "SpecDraft"

log = get_logger("specdraft.api")

app = FastAPI(title=APP_NAME)

_manager: Optional[DraftManager] = None
_validator = StepValidator()


class DraftCreateIn(BaseModel):
    type: EntityType
    slug: Optional[str] = None
    name: Optional[str] = None


class StepSubmitIn(BaseModel):
    step: str
    data: Dict[str, Any] = Field(default_factory=dict)


class AnswerIn(BaseModel):
    answer: str
    question_id: Optional[str] = None


class SkipIn(BaseModel):
    question_id: str


class DescriptionsIn(BaseModel):
    items: List[str]


class ItemDataIn(BaseModel):
    data: Dict[str, Any]


class FinalizeIn(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)
    entity_id: Optional[str] = None


@app.on_event("startup")
def on_startup():
    global _manager
    if _manager is None:
        _manager = DraftManager(SPECS_DIR)


@app.on_event("shutdown")
def on_shutdown():
    global _manager
    if _manager is not None:
        _manager.destroy()
        _manager = None


def get_manager() -> DraftManager:
    if _manager is None:
        raise HTTPException(503, "Draft store not initialised")
    return _manager


def _http_error(e: SpecDraftError) -> HTTPException:
    if isinstance(e, NotFound):
        return HTTPException(404, str(e))
    if isinstance(e, InvalidPayload):
        return HTTPException(422, {"message": str(e), "issues": e.issues})
    if isinstance(e, IllegalState):
        return HTTPException(409, str(e))
    return HTTPException(400, str(e))


def _load(manager: DraftManager, draft_id: str) -> Draft:
    d = manager.get(draft_id)
    if not d: raise HTTPException(404, "Draft not found")
    return d


def _with_drafter(manager: DraftManager, draft_id: str, action: Callable[[EntityDrafter], Any]) -> Dict[str, Any]:
    """Rebuild the draft's drafter, apply ``action`` and persist the new state."""
    d = _load(manager, draft_id)
    drafter = EntityDrafter.from_state(d.type, d.drafter) if d.drafter else EntityDrafter(d.type)
    try:
        result = action(drafter)
    except SpecDraftError as e:
        log.info("Draft %s rejected request: %s", draft_id, e)
        raise _http_error(e)
    manager.update(draft_id, {"drafter": drafter.to_state()})
    out = {"draft_id": draft_id, "state": drafter.state, "progress": drafter.progress()}
    if result is not None:
        out["result"] = result
    out.update(drafter.continue_context())
    return out


def _array_step_done(d: Draft, field: str, kind: str) -> bool:
    if not d.drafter:
        return False
    arr = EntityDrafter.from_state(d.type, d.drafter).get_array_drafter(field)
    return arr.is_complete if kind == "item" else bool(arr.items)


@app.get("/healthz")
def healthz():
    return {"ok": True, "app": APP_NAME}


@app.get("/api/entity-types")
def api_entity_types():
    return {"types": [t.value for t in EntityType]}


@app.get("/api/steps/{entity_type}", response_model=List[StepDefinition])
def api_steps(entity_type: EntityType):
    return get_step_definitions(entity_type)


@app.post("/api/drafts", response_model=Draft)
def api_create_draft(body: DraftCreateIn, manager: DraftManager = Depends(get_manager)):
    try:
        return manager.create(body.type, slug=body.slug, name=body.name)
    except SpecDraftError as e:
        log.info("Rejected draft creation: %s", e)
        raise _http_error(e)


@app.get("/api/drafts", response_model=List[Draft])
def api_list_drafts(type: Optional[EntityType] = None, manager: DraftManager = Depends(get_manager)):
    return manager.list(type)


@app.get("/api/drafts/{draft_id}", response_model=Draft)
def api_get_draft(draft_id: str, manager: DraftManager = Depends(get_manager)):
    return _load(manager, draft_id)


@app.delete("/api/drafts/{draft_id}")
def api_delete_draft(draft_id: str, manager: DraftManager = Depends(get_manager)):
    if not manager.delete(draft_id):
        raise HTTPException(404, "Draft not found")
    return {"ok": True}


@app.post("/api/drafts/{draft_id}/steps", response_model=ValidationResult)
def api_submit_step(draft_id: str, body: StepSubmitIn, manager: DraftManager = Depends(get_manager)):
    d = _load(manager, draft_id)
    result = _validator.validate(d.type, body.step, body.data)
    update: Dict[str, Any] = {"validation_results": [*d.validation_results, result]}
    if result.passed:
        step = get_step(d.type, body.step)
        synthetic = array_step(d.type, body.step)
        # array contents belong to the drafter; only its progress moves the step pointer
        if synthetic is None:
            update["data"] = {**d.data, **body.data}
        if synthetic is None or _array_step_done(d, *synthetic):
            update["current_step"] = min(max(d.current_step, step.order + 1), d.total_steps)
    manager.update(draft_id, update)
    return result


@app.get("/api/drafts/{draft_id}/next", response_model=NextActionResponse)
def api_next(draft_id: str, manager: DraftManager = Depends(get_manager)):
    d = _load(manager, draft_id)
    drafter = EntityDrafter.from_state(d.type, d.drafter) if d.drafter else EntityDrafter(d.type)
    return {**drafter.continue_context(), "progress": drafter.progress()}


@app.post("/api/drafts/{draft_id}/answer")
def api_answer(draft_id: str, body: AnswerIn, manager: DraftManager = Depends(get_manager)):
    def action(drafter: EntityDrafter):
        if body.question_id:
            q = drafter.answer_question_by_id(body.question_id, body.answer)
        else:
            q = drafter.submit_answer(body.answer)
        return {"answered": q.id}
    return _with_drafter(manager, draft_id, action)


@app.post("/api/drafts/{draft_id}/skip")
def api_skip(draft_id: str, body: SkipIn, manager: DraftManager = Depends(get_manager)):
    return _with_drafter(manager, draft_id, lambda drafter: {"skipped": drafter.skip_answer(body.question_id).id})


@app.post("/api/drafts/{draft_id}/arrays/{field}/descriptions")
def api_set_descriptions(draft_id: str, field: str, body: DescriptionsIn, manager: DraftManager = Depends(get_manager)):
    def action(drafter: EntityDrafter):
        arr = drafter.get_array_drafter(field)
        arr.set_descriptions(body.items)
        return {"items": len(arr.items)}
    return _with_drafter(manager, draft_id, action)


@app.post("/api/drafts/{draft_id}/arrays/{field}/items/{index}")
def api_finalize_item(draft_id: str, field: str, index: int, body: ItemDataIn,
                      manager: DraftManager = Depends(get_manager)):
    return _with_drafter(manager, draft_id,
                         lambda drafter: drafter.finalize_by_entity_id(f"{field}[{index}]", body.data))


@app.post("/api/drafts/{draft_id}/finalize")
def api_finalize(draft_id: str, body: FinalizeIn, manager: DraftManager = Depends(get_manager)):
    return _with_drafter(manager, draft_id, lambda drafter: drafter.finalize_by_entity_id(body.entity_id, body.data))
