# tests/test_draft_manager.py
import re
import json
import time
import threading
from datetime import datetime, timedelta

import pytest

from SpecDraftBackend.drafts import DraftManager
from SpecDraftBackend.errors import InvalidPayload
from SpecDraftBackend.schemas import EntityType

PAST = "2000-01-01T00:00:00.000Z"
TOTALS = {"requirement": 9, "component": 14, "plan": 16, "constitution": 5, "decision": 8}


def _ts(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ")


class TestCreate:
    @pytest.mark.parametrize("entity_type", sorted(TOTALS))
    def test_step_counts(self, manager, entity_type):
        d = manager.create(entity_type)
        assert d.current_step == 1
        assert d.total_steps == TOTALS[entity_type]
        assert d.type == EntityType(entity_type)

    def test_slug_id(self, manager):
        d = manager.create("requirement", "user-auth")
        assert re.match(r"^req-user-auth-\d+$", d.id)
        assert d.data == {"slug": "user-auth"}

    @pytest.mark.parametrize("slug", ["../escape", "a/b", "User-Auth", "trailing-", "two--hyphens", ""])
    def test_bad_slug_rejected(self, manager, slug):
        with pytest.raises(InvalidPayload) as exc:
            manager.create("requirement", slug)
        assert exc.value.issues
        assert manager.list() == []
        assert not manager.drafts_dir.exists() or list(manager.drafts_dir.iterdir()) == []

    def test_name_is_seeded(self, manager):
        d = manager.create("component", "api", "API Service")
        assert d.id.startswith("cmp-api-")
        assert d.data == {"slug": "api", "name": "API Service"}

    def test_random_id_without_slug(self, manager):
        d = manager.create("decision")
        assert re.match(r"^dec-\d+-[a-z0-9]{6}$", d.id)
        assert d.data == {}

    def test_ids_are_unique(self, manager):
        ids = {manager.create("plan", "same").id for _ in range(20)}
        assert len(ids) == 20

    def test_expiry_is_24h(self, manager):
        d = manager.create("plan")
        assert _ts(d.expires_at) - _ts(d.created_at) == timedelta(hours=24)
        assert d.created_at.endswith("Z")

    def test_persisted(self, manager):
        d = manager.create("constitution", "eng")
        path = manager.drafts_dir / f"{d.id}.draft.json"
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["id"] == d.id
        assert raw["type"] == "constitution"
        assert raw["total_steps"] == 5


class TestReadWrite:
    def test_get(self, manager):
        d = manager.create("requirement")
        assert manager.get(d.id).id == d.id
        assert manager.get("req-missing") is None

    def test_get_returns_copy(self, manager):
        d = manager.create("constitution", "eng")
        loaded = manager.get(d.id)
        loaded.data["name"] = "changed"
        loaded.current_step = 4
        d.data["slug"] = "also-changed"
        stored = manager.get(d.id)
        assert stored.data == {"slug": "eng"}
        assert stored.current_step == 1

    def test_expired_draft_is_absent(self, manager):
        d = manager.create("requirement")
        manager.update(d.id, {"expires_at": PAST})
        assert manager.get(d.id) is None
        # still on disk until the sweep runs
        assert (manager.drafts_dir / f"{d.id}.draft.json").exists()

    def test_update_keeps_immutable_fields(self, manager):
        d = manager.create("requirement", "user-auth")
        u = manager.update(d.id, {
            "id": "x", "type": "decision", "created_at": "z",
            "current_step": 3, "data": {"priority": "critical"},
        })
        assert u.id == d.id
        assert u.type == EntityType.requirement
        assert u.created_at == d.created_at
        assert u.current_step == 3
        assert u.data == {"priority": "critical"}
        assert manager.get(d.id).current_step == 3

    def test_update_unknown(self, manager):
        assert manager.update("req-missing", {"current_step": 2}) is None

    def test_delete(self, manager):
        d = manager.create("plan")
        assert manager.delete(d.id) is True
        assert manager.get(d.id) is None
        assert not (manager.drafts_dir / f"{d.id}.draft.json").exists()
        assert manager.delete(d.id) is False
        assert manager.delete("nope") is False

    def test_list(self, manager):
        assert manager.list() == []
        r = manager.create("requirement")
        manager.create("component")
        assert [d.id for d in manager.list("requirement")] == [r.id]
        assert len(manager.list()) == 2
        manager.update(r.id, {"expires_at": PAST})
        assert manager.list("requirement") == []


class TestStore:
    def test_reload(self, tmp_path, manager):
        d = manager.create("decision", "db-choice", "Database choice")
        other = DraftManager(str(tmp_path), autostart=False)
        try:
            loaded = other.get(d.id)
            assert loaded is not None
            assert loaded.data == {"slug": "db-choice", "name": "Database choice"}
            assert loaded.created_at == d.created_at
        finally:
            other.destroy()

    def test_expired_files_are_deleted_on_load(self, tmp_path, manager):
        d = manager.create("plan")
        manager.update(d.id, {"expires_at": PAST})
        other = DraftManager(str(tmp_path), autostart=False)
        try:
            assert other.get(d.id) is None
            assert not (other.drafts_dir / f"{d.id}.draft.json").exists()
        finally:
            other.destroy()

    def test_unreadable_file_is_skipped(self, tmp_path, manager):
        good = manager.create("requirement")
        (manager.drafts_dir / "broken.draft.json").write_text("{not json", encoding="utf-8")
        other = DraftManager(str(tmp_path), autostart=False)
        try:
            assert [d.id for d in other.list()] == [good.id]
        finally:
            other.destroy()

    def test_cleanup_expired(self, manager):
        keep = manager.create("requirement")
        gone = manager.create("requirement")
        manager.update(gone.id, {"expires_at": PAST})
        assert manager.cleanup_expired() == 1
        assert not (manager.drafts_dir / f"{gone.id}.draft.json").exists()
        assert manager.get(keep.id) is not None
        assert manager.cleanup_expired() == 0

    def test_list_while_sweeping(self, manager):
        for _ in range(20):
            manager.create("requirement")
        errors = []
        stop = threading.Event()

        def sweeper():
            try:
                while not stop.is_set():
                    d = manager.create("plan")
                    manager.update(d.id, {"expires_at": PAST})
                    manager.cleanup_expired()
            except Exception as e:
                errors.append(e)

        t = threading.Thread(target=sweeper, daemon=True)
        t.start()
        try:
            for _ in range(300):
                assert len(manager.list("requirement")) == 20
        finally:
            stop.set()
            t.join(timeout=5)
        assert errors == []
        assert manager.list("plan") == []

    def test_write_failure_keeps_memory_state(self, tmp_path):
        (tmp_path / ".drafts").write_text("not a directory", encoding="utf-8")
        m = DraftManager(str(tmp_path), autostart=False)
        try:
            d = m.create("requirement", "user-auth")
            assert m.get(d.id) is not None
            assert m.update(d.id, {"current_step": 2}).current_step == 2
        finally:
            m.destroy()


class TestSweepTimer:
    def test_destroy_cancels_timer(self, tmp_path):
        m = DraftManager(str(tmp_path), sweep_interval=3600)
        timer = m._timer
        assert timer is not None and timer.daemon
        m.create("requirement")
        m.destroy()
        assert m._timer is None
        assert not timer.is_alive() or timer.finished.is_set()
        assert m.list() == []

    def test_no_rescheduling_after_destroy(self, tmp_path):
        m = DraftManager(str(tmp_path), autostart=False)
        m.destroy()
        m._schedule_sweep()
        assert m._timer is None

    def test_sweep_rearms(self, tmp_path):
        m = DraftManager(str(tmp_path), sweep_interval=3600)
        try:
            first = m._timer
            m._sweep()
            assert m._timer is not first
            assert m._timer.daemon
        finally:
            m.destroy()

    def test_timer_purges_expired(self, tmp_path):
        m = DraftManager(str(tmp_path), sweep_interval=0.05)
        try:
            keep = m.create("requirement")
            gone = m.create("requirement")
            m.update(gone.id, {"expires_at": PAST})
            path = m.drafts_dir / f"{gone.id}.draft.json"
            deadline = time.monotonic() + 5
            while path.exists() and time.monotonic() < deadline:
                time.sleep(0.02)
            assert not path.exists()
            assert gone.id not in m._drafts
            assert m.get(keep.id) is not None
        finally:
            m.destroy()
