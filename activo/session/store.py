"""
Conversation persistence.

Each CLI exchange is saved as one JSON file under the project's
`.activo/conversations/` directory. The next session picks up where the
last one left off: the most recent messages are replayed as history and
the older ones are condensed into a summary for the system prompt.

File names sort chronologically (`session_<ms>_<suffix>.json`), so
"latest" means "last in sort order".

Usage:
    store = SessionStore(".activo/conversations")

    summary, recent = await get_session_context(store, gateway, recent_count=5)

    session = store.create()
    session.messages.extend(result.messages)
    store.save(session)
    store.clean_old_sessions(keep_count=10)
"""

from __future__ import annotations

import json
import logging
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from activo.providers.llm.base import GatewayError, Message, MessageRole

if TYPE_CHECKING:
    from activo.providers.llm.base import ModelGateway

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session_"
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def _utc_now() -> datetime:
    return datetime.now(UTC)


def generate_session_id() -> str:
    """Chronologically sortable id: session_<ms>_<6 chars>."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"{SESSION_PREFIX}{int(time.time() * 1000)}_{suffix}"


@dataclass
class Session:
    """A saved conversation."""

    id: str = field(default_factory=generate_session_id)
    started_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    messages: list[Message] = field(default_factory=list)
    summary: str | None = None

    def user_requests(self) -> list[str]:
        return [m.content for m in self.messages if m.role == MessageRole.USER]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "startedAt": self.started_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.summary:
            data["summary"] = self.summary
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        return cls(
            id=data["id"],
            started_at=datetime.fromisoformat(data["startedAt"]),
            updated_at=datetime.fromisoformat(data["updatedAt"]),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            summary=data.get("summary") or None,
        )


class SessionStore:
    """
    JSON-file session storage in one directory.

    Unreadable session files are logged and treated as missing.
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, session_id: str) -> Path:
        return self._directory / f"{session_id}.json"

    def _session_files(self) -> list[Path]:
        """Session files, newest first."""
        if not self._directory.is_dir():
            return []
        files = [
            p
            for p in self._directory.iterdir()
            if p.name.startswith(SESSION_PREFIX) and p.suffix == ".json"
        ]
        return sorted(files, key=lambda p: p.name, reverse=True)

    def _read(self, path: Path) -> Session | None:
        try:
            return Session.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"[session] Cannot load {path.name}: {e}")
            return None

    def create(self) -> Session:
        """New, unsaved session."""
        return Session()

    def save(self, session: Session) -> Path:
        """Write the session, refreshing updated_at."""
        self._directory.mkdir(parents=True, exist_ok=True)
        session.updated_at = _utc_now()
        path = self._path(session.id)
        path.write_text(json.dumps(session.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug(f"[session] Saved {session.id} ({len(session.messages)} messages)")
        return path

    def load(self, session_id: str) -> Session | None:
        path = self._path(session_id)
        if not path.is_file():
            return None
        return self._read(path)

    def load_latest(self) -> Session | None:
        files = self._session_files()
        if not files:
            return None
        return self._read(files[0])

    def list_sessions(self, limit: int = 20) -> list[dict[str, Any]]:
        """Newest first: id, updated_at and a preview of the first request."""
        listing = []
        for path in self._session_files()[:limit]:
            session = self._read(path)
            if session is None:
                listing.append({"id": path.stem, "updated_at": None, "preview": "(error loading)"})
                continue
            requests = session.user_requests()
            preview = requests[0][:50] if requests else "(empty)"
            if requests and len(requests[0]) > 50:
                preview += "..."
            listing.append(
                {
                    "id": session.id,
                    "updated_at": session.updated_at.isoformat(),
                    "preview": preview,
                }
            )
        return listing

    def clean_old_sessions(self, keep_count: int = 10) -> int:
        """Delete all but the newest `keep_count` sessions. Returns the number removed."""
        removed = 0
        for path in self._session_files()[keep_count:]:
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                logger.warning(f"[session] Cannot delete {path.name}: {e}")
        if removed:
            logger.info(f"[session] Removed {removed} old session(s)")
        return removed

    def __repr__(self) -> str:
        return f"<SessionStore directory={self._directory}>"


# =============================================================================
# Context Carry-over
# =============================================================================

SUMMARY_PROMPT = """Summarize the following conversation in 3-5 key points, one line each.

Conversation:
{conversation}

Summary (key points only):"""


def _format_for_summary(messages: list[Message]) -> str:
    lines = []
    for message in messages:
        if message.role == MessageRole.USER:
            lines.append(f"User: {message.content}")
        elif message.role == MessageRole.ASSISTANT:
            text = message.content[:200] + ("..." if len(message.content) > 200 else "")
            if message.tool_calls:
                text += f" [tools: {', '.join(c.name for c in message.tool_calls)}]"
            lines.append(f"Assistant: {text}")
    return "\n".join(lines)


async def summarize_messages(messages: list[Message], gateway: "ModelGateway") -> str:
    """
    Condense messages into a few key points.

    Falls back to the last three user requests if the model call fails.
    """
    if not messages:
        return ""

    prompt = SUMMARY_PROMPT.format(conversation=_format_for_summary(messages))
    try:
        reply = await gateway.complete([Message.user(prompt)])
        return reply.content.strip()
    except GatewayError as e:
        logger.warning(f"[session] Summary request failed, using fallback: {e}")
        requests = [m.content[:50] for m in messages if m.role == MessageRole.USER][-3:]
        return f"Previous requests: {', '.join(requests)}"


async def get_session_context(
    store: SessionStore,
    gateway: "ModelGateway",
    recent_count: int = 5,
) -> tuple[str, list[Message]]:
    """
    Context carried over from the latest session.

    Returns:
        (summary, recent_messages). The summary covers everything older
        than the last `recent_count` messages; it is generated once and
        saved back to the session.
    """
    latest = store.load_latest()
    if latest is None or not latest.messages:
        return "", []

    context = [m for m in latest.messages if m.role != MessageRole.SYSTEM]
    if len(context) <= recent_count:
        return latest.summary or "", context

    split = len(context) - recent_count
    older, recent = context[:split], context[split:]

    summary = latest.summary or ""
    if older and not summary:
        summary = await summarize_messages(older, gateway)
        latest.summary = summary
        store.save(latest)

    return summary, recent
