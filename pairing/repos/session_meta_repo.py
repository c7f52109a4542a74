"""Durable session metadata: one meta.json per request directory."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from pairing.models.pairing import PairingRequest
from pairing.models.session_meta import SessionMeta

logger = logging.getLogger(__name__)

_META_FILENAME = "meta.json"


class SessionMetaRepo:
    """Reads and writes the per-request metadata record under a sessions directory."""

    def __init__(self, sessions_dir: Path) -> None:
        self._root = Path(sessions_dir)

    def session_path(self, request_id: str) -> Path:
        return self._root / request_id

    def write_once(self, request: PairingRequest) -> SessionMeta | None:
        """
        Persist metadata for a request that reached ready.

        Never overwrites an existing record.

        Returns:
            The written SessionMeta, or None if one already existed
        """
        if request.session_id is None or request.ready_at is None:
            raise ValueError(f"Request {request.request_id} has not reached ready")

        path = self.session_path(request.request_id) / _META_FILENAME
        if path.exists():
            return None

        meta = SessionMeta(
            session_id=request.session_id,
            request_id=request.request_id,
            phone=request.phone,
            created_at=request.created_at,
            ready_at=request.ready_at,
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("x", encoding="utf-8") as fh:
            fh.write(meta.model_dump_json(by_alias=True, indent=2))
        return meta

    def list(self) -> list[SessionMeta]:
        """
        Load every readable metadata record, oldest first.

        Directories without meta.json (sessions that never reached ready) are
        skipped. Unreadable files are logged and skipped.
        """
        if not self._root.is_dir():
            return []

        sessions: list[SessionMeta] = []
        for entry in sorted(self._root.iterdir()):
            path = entry / _META_FILENAME
            if not path.is_file():
                continue
            try:
                sessions.append(SessionMeta.model_validate_json(path.read_text(encoding="utf-8")))
            except (OSError, json.JSONDecodeError, ValidationError):
                logger.warning("Skipping unreadable session metadata %s", path)
        sessions.sort(key=lambda m: m.ready_at)
        return sessions
