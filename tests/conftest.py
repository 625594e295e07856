# tests/conftest.py
import pytest

from SpecDraftBackend.drafts import DraftManager


ARTICLE = {
    "id": "art-001",
    "title": "Correct Title",
    "principle": "Evaluate existing libraries before building custom code.",
    "rationale": "Battle-tested libraries reduce security risk and maintenance cost.",
}


@pytest.fixture
def manager(tmp_path):
    m = DraftManager(str(tmp_path), autostart=False)
    yield m
    m.destroy()


@pytest.fixture
def walk():
    """Answer every pending question, setting descriptions when the flow asks for them."""

    def _walk(drafter, descriptions):
        while True:
            q = drafter.current_question()
            if q is not None:
                drafter.submit_answer(f"answer to {q.id}")
                continue
            waiting = [a for a in drafter.arrays.values() if a.awaiting_descriptions]
            if not waiting:
                return drafter
            waiting[0].set_descriptions(descriptions[waiting[0].field])

    return _walk


@pytest.fixture
def article():
    return dict(ARTICLE)
