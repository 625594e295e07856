# SpecDraftBackend/drafts.py
import os
import re
import json
import time
import random
import string
import threading
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Optional, Dict, Any, List

from pydantic import ValidationError

from .errors import InvalidPayload
from .logs import get_logger
from .schemas import Draft, EntityType
from .step_schemas import SLUG
from .steps import ID_PREFIXES, total_steps

log = get_logger("specdraft.drafts")

SPECS_DIR = os.getenv("SPECDRAFT_SPECS_DIR", "./specs")
DRAFT_TTL_HOURS = float(os.getenv("SPECDRAFT_DRAFT_TTL_HOURS", "24"))
SWEEP_INTERVAL_SECONDS = float(os.getenv("SPECDRAFT_SWEEP_INTERVAL_SECONDS", "3600"))

DRAFTS_DIRNAME = ".drafts"
DRAFT_SUFFIX = ".draft.json"
IMMUTABLE_FIELDS = ("id", "type", "created_at")
SLUG_RE = re.compile(SLUG["pattern"])


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def _parse(ts: str) -> datetime:
    return datetime.strptime(ts, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rand6() -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))


class DraftManager:
    """In-memory map of drafts backed by one JSON file per draft.

    The in-memory map is authoritative for the running process; disk writes
    are best-effort. An expiry sweep runs on a daemon timer until destroy().
    """

    def __init__(self, specs_dir: Optional[str] = None, ttl_hours: Optional[float] = None,
                 sweep_interval: Optional[float] = None, autostart: bool = True):
        self.drafts_dir = Path(specs_dir or SPECS_DIR) / DRAFTS_DIRNAME
        self.ttl = timedelta(hours=DRAFT_TTL_HOURS if ttl_hours is None else ttl_hours)
        self.sweep_interval = SWEEP_INTERVAL_SECONDS if sweep_interval is None else sweep_interval
        self._drafts: Dict[str, Draft] = {}
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()  # guards _timer
        self._drafts_lock = threading.RLock()  # guards _drafts, shared with the sweep thread
        self._destroyed = False
        self._last_ms = 0
        self._load()
        if autostart:
            self._schedule_sweep()

    # ---------- persistence ----------
    def _path(self, draft_id: str) -> Path:
        return self.drafts_dir / f"{draft_id}{DRAFT_SUFFIX}"

    def _load(self):
        if not self.drafts_dir.is_dir():
            return
        now = _utcnow()
        for path in sorted(self.drafts_dir.glob(f"*{DRAFT_SUFFIX}")):
            try:
                draft = Draft.model_validate_json(path.read_text(encoding="utf-8"))
            except (OSError, ValueError, ValidationError) as e:
                log.warning("Skipping unreadable draft file %s: %s", path.name, e)
                continue
            if self._expired(draft, now):
                log.info("Removing expired draft %s", draft.id)
                self._unlink(draft.id)
                continue
            self._drafts[draft.id] = draft
        log.info("Loaded %d drafts from %s", len(self._drafts), self.drafts_dir)

    def _save(self, draft: Draft):
        try:
            self.drafts_dir.mkdir(parents=True, exist_ok=True)
            self._path(draft.id).write_text(json.dumps(draft.model_dump(mode="json"), indent=2), encoding="utf-8")
        except OSError as e:
            log.error("Failed to persist draft %s: %s", draft.id, e)

    def _unlink(self, draft_id: str):
        try:
            self._path(draft_id).unlink(missing_ok=True)
        except OSError as e:
            log.error("Failed to delete draft file %s: %s", draft_id, e)

    # ---------- expiry ----------
    @staticmethod
    def _expired(draft: Draft, now: Optional[datetime] = None) -> bool:
        return (now or _utcnow()) > _parse(draft.expires_at)

    def cleanup_expired(self) -> int:
        now = _utcnow()
        with self._drafts_lock:
            expired = [d.id for d in self._drafts.values() if self._expired(d, now)]
            for draft_id in expired:
                self._drafts.pop(draft_id, None)
                self._unlink(draft_id)
        if expired:
            log.info("Swept %d expired drafts", len(expired))
        return len(expired)

    def _schedule_sweep(self):
        with self._lock:
            if self._destroyed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.sweep_interval, self._sweep)
            self._timer.daemon = True
            self._timer.start()

    def _sweep(self):
        try:
            self.cleanup_expired()
        except Exception:
            log.exception("Expiry sweep failed")
        self._schedule_sweep()

    def destroy(self):
        """Stop the sweep timer and forget every in-memory draft."""
        with self._lock:
            self._destroyed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        with self._drafts_lock:
            self._drafts.clear()

    # ---------- ids ----------
    def _next_ms(self) -> int:
        ms = int(time.time() * 1000)
        if ms <= self._last_ms:
            ms = self._last_ms + 1
        self._last_ms = ms
        return ms

    def _new_id(self, entity_type: EntityType, slug: Optional[str]) -> str:
        prefix = ID_PREFIXES[entity_type]
        while True:
            ms = self._next_ms()
            draft_id = f"{prefix}-{slug}-{ms}" if slug else f"{prefix}-{ms}-{_rand6()}"
            if draft_id not in self._drafts and not self._path(draft_id).exists():
                return draft_id

    # ---------- CRUD ----------
    def create(self, entity_type, slug: Optional[str] = None, name: Optional[str] = None) -> Draft:
        et = EntityType(entity_type)
        if slug is not None and not SLUG_RE.match(slug):
            raise InvalidPayload(f"Invalid slug {slug!r}: use lowercase letters, digits and single hyphens",
                                 [f"slug: does not match {SLUG['pattern']}"])
        now = _utcnow()
        data: Dict[str, Any] = {}
        if slug:
            data["slug"] = slug
        if name:
            data["name"] = name
        with self._drafts_lock:
            draft = Draft(
                id=self._new_id(et, slug),
                type=et,
                current_step=1,
                total_steps=total_steps(et),
                data=data,
                created_at=_iso(now),
                updated_at=_iso(now),
                expires_at=_iso(now + self.ttl),
            )
            self._drafts[draft.id] = draft
            self._save(draft)
        log.info("Created draft %s (%s, %d steps)", draft.id, et.value, draft.total_steps)
        return draft.model_copy(deep=True)

    def _live(self, draft_id: str) -> Optional[Draft]:
        draft = self._drafts.get(draft_id)
        if draft is None or self._expired(draft):
            return None
        return draft

    def get(self, draft_id: str) -> Optional[Draft]:
        """A copy of the stored draft; change it through update()."""
        with self._drafts_lock:
            draft = self._live(draft_id)
            return draft.model_copy(deep=True) if draft is not None else None

    def update(self, draft_id: str, partial: Dict[str, Any]) -> Optional[Draft]:
        with self._drafts_lock:
            current = self._live(draft_id)
            if current is None:
                return None
            merged = current.model_dump()
            merged.update({k: v for k, v in partial.items() if k not in IMMUTABLE_FIELDS})
            merged["updated_at"] = _iso(_utcnow())
            draft = Draft.model_validate(merged)
            self._drafts[draft_id] = draft
            self._save(draft)
            return draft.model_copy(deep=True)

    def delete(self, draft_id: str) -> bool:
        with self._drafts_lock:
            if self._drafts.pop(draft_id, None) is None:
                return False
            self._unlink(draft_id)
        log.info("Deleted draft %s", draft_id)
        return True

    def list(self, entity_type=None) -> List[Draft]:
        et = EntityType(entity_type) if entity_type is not None else None
        now = _utcnow()
        with self._drafts_lock:
            return [d.model_copy(deep=True) for d in self._drafts.values()
                    if not self._expired(d, now) and (et is None or d.type == et)]
