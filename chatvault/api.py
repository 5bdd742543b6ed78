"""
FastAPI backend for chatvault.

Serves the contact list, merged timelines, search, tags and statistics
from the store, and accepts export uploads for import.

Environment Variables:
    CHATVAULT_DB_PATH: Store to serve when no config was set
                       (default: ~/.chatvault/chatvault.db)
    CHATVAULT_ALIASES: Default aliases for uploads that don't send any
    CHATVAULT_ALLOWED_ORIGIN: Extra CORS origin for a local frontend
"""

from __future__ import annotations

import os
from dataclasses import asdict
from typing import Any, Dict, Iterator, List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from chatvault.analysis import (
    add_tag,
    filter_contacts,
    filter_noise,
    find_matches,
    get_smart_tags,
    get_statistics,
    tag_contacts,
)
from chatvault.config import Config, get_config
from chatvault.ingest.dispatcher import ArchiveDispatcher
from chatvault.ingest.models import Contact, Message
from chatvault.merge import ContactMergeGraph
from chatvault.store import SQLiteStore

# Searches shorter than this return nothing
MIN_SEARCH_LENGTH = 3


def get_store() -> Iterator[SQLiteStore]:
    """Open the configured store for one request."""
    store = SQLiteStore(get_config().db_path)
    try:
        store.connect()
        yield store
    finally:
        store.close()


app = FastAPI(
    title="chatvault API",
    version="0.1.0",
    description="Browse, search, tag and merge imported Instagram and Snapchat chats.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        os.getenv("CHATVAULT_ALLOWED_ORIGIN", "http://127.0.0.1:5173"),
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class TagsUpdate(BaseModel):
    tags: str


class NicknameUpdate(BaseModel):
    nickname: Optional[str] = None


class FlagUpdate(BaseModel):
    value: bool


class LinkRequest(BaseModel):
    candidate_id: str


def _contact_dict(contact: Contact) -> Dict[str, Any]:
    data = asdict(contact)
    data["label"] = contact.label
    data["tag_list"] = contact.tag_list()
    return data


def _message_dict(message: Message) -> Dict[str, Any]:
    return asdict(message)


def _require_contact(store: SQLiteStore, contact_id: str) -> Contact:
    contact = store.get_contact(contact_id)
    if contact is None:
        raise HTTPException(status_code=404, detail=f"Contact not found: {contact_id}")
    return contact


@app.get("/health")
def health() -> Dict[str, Any]:
    """Health check - also reports where the store lives."""
    path = get_config().db_path
    return {
        "status": "ok" if path.exists() else "empty",
        "db_exists": path.exists(),
        "db_path": str(path),
    }


@app.get("/contacts")
def contacts(
    include_hidden: bool = False,
    store: SQLiteStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    """List contacts, pinned first, then by message count."""
    return [_contact_dict(c) for c in store.list_contacts(include_hidden=include_hidden)]


@app.get("/contacts/{contact_id}")
def contact_detail(contact_id: str, store: SQLiteStore = Depends(get_store)) -> Dict[str, Any]:
    """Get one contact."""
    return _contact_dict(_require_contact(store, contact_id))


@app.get("/contacts/{contact_id}/timeline")
def contact_timeline(
    contact_id: str,
    smart_filter: bool = False,
    q: str = "",
    store: SQLiteStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    Get a contact's merged timeline, oldest first.

    The timeline includes directly linked contacts' messages. When q is
    given, "matches" holds the indices of messages containing it.
    """
    _require_contact(store, contact_id)
    graph = ContactMergeGraph(store)
    chat_ids = graph.timeline_ids(contact_id)
    messages = store.get_messages_for_ids(chat_ids)
    if smart_filter:
        messages = filter_noise(messages)
    return {
        "contact_id": contact_id,
        "chat_ids": chat_ids,
        "messages": [_message_dict(m) for m in messages],
        "matches": find_matches(messages, q),
    }


@app.get("/contacts/{contact_id}/candidates")
def link_candidates(
    contact_id: str,
    q: str = "",
    store: SQLiteStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    """Contacts that can still be linked into contact_id."""
    _require_contact(store, contact_id)
    return [_contact_dict(c) for c in ContactMergeGraph(store).link_candidates(contact_id, q)]


@app.put("/contacts/{contact_id}/tags")
def update_tags(
    contact_id: str, body: TagsUpdate, store: SQLiteStore = Depends(get_store)
) -> Dict[str, Any]:
    _require_contact(store, contact_id)
    store.update_tags(contact_id, body.tags)
    return _contact_dict(_require_contact(store, contact_id))


@app.post("/contacts/{contact_id}/tags/{tag}")
def quick_add_tag(
    contact_id: str, tag: str, store: SQLiteStore = Depends(get_store)
) -> Dict[str, Any]:
    """Append one tag to a contact's tags."""
    contact = _require_contact(store, contact_id)
    if tag.strip() and tag.strip() not in contact.tag_list():
        store.update_tags(contact_id, add_tag(contact.tags, tag.strip()))
    return _contact_dict(_require_contact(store, contact_id))


@app.put("/contacts/{contact_id}/nickname")
def update_nickname(
    contact_id: str, body: NicknameUpdate, store: SQLiteStore = Depends(get_store)
) -> Dict[str, Any]:
    _require_contact(store, contact_id)
    store.update_nickname(contact_id, body.nickname)
    return _contact_dict(_require_contact(store, contact_id))


@app.put("/contacts/{contact_id}/hidden")
def set_hidden(
    contact_id: str, body: FlagUpdate, store: SQLiteStore = Depends(get_store)
) -> Dict[str, Any]:
    _require_contact(store, contact_id)
    store.set_hidden(contact_id, body.value)
    return _contact_dict(_require_contact(store, contact_id))


@app.put("/contacts/{contact_id}/pinned")
def set_pinned(
    contact_id: str, body: FlagUpdate, store: SQLiteStore = Depends(get_store)
) -> Dict[str, Any]:
    _require_contact(store, contact_id)
    store.set_pinned(contact_id, body.value)
    return _contact_dict(_require_contact(store, contact_id))


@app.post("/contacts/{contact_id}/links")
def link_contact(
    contact_id: str, body: LinkRequest, store: SQLiteStore = Depends(get_store)
) -> Dict[str, Any]:
    """Absorb another contact into contact_id."""
    graph = ContactMergeGraph(store)
    try:
        representative = graph.link(contact_id, body.candidate_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Contact not found: {e.args[0]}") from e
    return _contact_dict(representative)


@app.delete("/contacts/{contact_id}/links/{candidate_id}")
def unlink_contact(
    contact_id: str, candidate_id: str, store: SQLiteStore = Depends(get_store)
) -> Dict[str, Any]:
    """Undo a link."""
    try:
        representative = ContactMergeGraph(store).unlink(contact_id, candidate_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=f"Link not found: {e.args[0]}") from e
    return _contact_dict(representative)


@app.get("/search")
def search(
    q: str = Query(default=""),
    limit: int = Query(default=100, ge=1, le=100),
    store: SQLiteStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    """Search message content, most recent first."""
    if len(q) < MIN_SEARCH_LENGTH:
        return []
    return [_message_dict(m) for m in store.search_messages(q, limit=limit)]


@app.get("/home-search")
def home_search(
    q: str = Query(default=""),
    store: SQLiteStore = Depends(get_store),
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Home-screen search: matching contacts plus matching messages.

    Hidden contacts are never matched. Message search keeps the
    three-character minimum of /search.
    """
    if not q:
        return {"contacts": [], "tagged": [], "messages": []}
    visible = store.list_contacts()
    messages = store.search_messages(q) if len(q) >= MIN_SEARCH_LENGTH else []
    return {
        "contacts": [_contact_dict(c) for c in filter_contacts(visible, q)],
        "tagged": [_contact_dict(c) for c in tag_contacts(visible, q)],
        "messages": [_message_dict(m) for m in messages],
    }


@app.get("/tags")
def tags(store: SQLiteStore = Depends(get_store)) -> List[str]:
    """Every distinct tag in use."""
    return get_smart_tags(store)


@app.get("/stats")
def stats(store: SQLiteStore = Depends(get_store)) -> Dict[str, Any]:
    """Totals and the five busiest contacts."""
    data = get_statistics(store)
    data["top_contacts"] = [_contact_dict(c) for c in data["top_contacts"]]
    return data


@app.post("/import")
def import_archive(
    file: UploadFile = File(...),
    aliases: Optional[str] = Form(default=None),
    platform: Optional[str] = Form(default=None),
    store: SQLiteStore = Depends(get_store),
) -> Dict[str, Any]:
    """
    Import an uploaded export (zip or JSON).

    aliases is a comma-separated list; the configured aliases are used
    when it is omitted.
    """
    if aliases is None:
        alias_list = get_config().aliases
    else:
        alias_list = Config(aliases=aliases.split(",")).aliases
    result = ArchiveDispatcher(store).run_import(
        file.file,
        content_type=file.content_type or "",
        filename=file.filename or "",
        aliases=alias_list,
        platform=platform,
    )
    store.record_import(result)
    return {
        "success": result.success,
        "processed": result.processed,
        "inserted": result.inserted,
        "entries_seen": result.entries_seen,
        "entries_failed": result.entries_failed,
        "error": result.error,
        "events": result.messages,
    }
