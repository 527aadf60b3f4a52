"""In-process notes tools, keyed by the caller's identity."""

from __future__ import annotations

import threading
from typing import Any, Dict, List

from taskagent.tools import Param, Tool, ToolContext

_store: Dict[str, List[Dict[str, str]]] = {}
_lock = threading.Lock()


def notes_create(ctx: ToolContext, params: Dict[str, Any]) -> Dict[str, Any]:
    """Save a note for the current user."""
    content = str(params["content"]).strip()
    if not content:
        raise ValueError("content must not be empty")
    note = {"title": str(params.get("title") or content[:40]), "content": content}
    with _lock:
        notes = _store.setdefault(ctx.user_id, [])
        notes.append(note)
        count = len(notes)
    return {"saved": note, "count": count, "_fragment": f"<p>Saved note <strong>{note['title']}</strong></p>"}


def notes_list(ctx: ToolContext, params: Dict[str, Any]) -> Dict[str, Any]:
    """Return the current user's notes, optionally filtered by a substring."""
    query = str(params.get("query") or "").lower()
    with _lock:
        notes = list(_store.get(ctx.user_id, []))
    if query:
        notes = [n for n in notes if query in n["title"].lower() or query in n["content"].lower()]
    return {"notes": notes, "count": len(notes)}


def clear_notes() -> None:
    with _lock:
        _store.clear()


def notes_tools() -> List[Tool]:
    return [
        Tool(
            name="notes.create",
            description="Save a short note for the current user",
            category="notes",
            handler=notes_create,
            input={
                "content": Param("string", "Text of the note", required=True),
                "title": Param("string", "Optional title; defaults to the start of the content"),
            },
        ),
        Tool(
            name="notes.list",
            description="List the current user's notes, optionally filtered by a search term",
            category="notes",
            handler=notes_list,
            input={"query": Param("string", "Only return notes containing this text")},
        ),
    ]
