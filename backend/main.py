"""Family Tree - genealogy management backend.

FastAPI server exposing the family member list, the derived family tree and
its generation view.
"""

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("familytree")

from fastapi import FastAPI, File, HTTPException, Query, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from events import generate_birthday_events, get_upcoming_events
from family_service import FamilyTreeService
from models import DerivedTree, PersonCreate, PersonRecord, PersonUpdate
from relations import suggested_relations
from storage import JsonFileStorage
from tree_builder import get_family_name, get_parent_name

DEFAULT_CORS_ORIGINS = "http://localhost:4200,http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"

# Global state
family_service: FamilyTreeService | None = None


def create_service_from_env() -> FamilyTreeService:
    """Build the service from FAMILYTREE_DATA_FILE and FAMILYTREE_SEED."""
    data_file = os.getenv("FAMILYTREE_DATA_FILE", "family_tree_data.json")
    seed_source = os.getenv("FAMILYTREE_SEED") or None
    logger.info(f"Using data file {data_file}, seed source {seed_source or '(built-in defaults)'}")
    return FamilyTreeService(storage=JsonFileStorage(data_file), seed_source=seed_source)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - load family data on startup."""
    global family_service

    if family_service is None:
        logger.info("Loading family data...")
        family_service = create_service_from_env()
    logger.info(f"✓ Family tree ready with {len(family_service.get_all_members())} members")

    yield

    logger.info("Shutting down")


# Create FastAPI app
app = FastAPI(
    title="Family Tree",
    description="Genealogy management backend: family members, derived tree and generations",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("FAMILYTREE_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Response models
class TreeResponse(BaseModel):
    """Response containing the derived family tree."""
    family_name: str
    root: dict
    members: list[dict]
    spouses: dict[str, str]
    hierarchy: dict


class MessageResponse(BaseModel):
    message: str


def _get_service() -> FamilyTreeService:
    if family_service is None:
        logger.error("Family service not initialized")
        raise HTTPException(status_code=503, detail="Family data not loaded yet")
    return family_service


def _tree_payload(tree: DerivedTree) -> dict[str, Any]:
    return {
        "family_name": get_family_name(tree.members),
        "root": tree.root.to_dict(),
        "members": [m.to_dict() for m in tree.members],
        "spouses": tree.spouses,
        "hierarchy": tree.to_hierarchy(),
    }


def _member_or_404(service: FamilyTreeService, member_id: str) -> PersonRecord:
    member = service.get_member_by_id(member_id)
    if member is None:
        logger.warning(f"Member {member_id} not found")
        raise HTTPException(status_code=404, detail=f"Member with ID {member_id} not found")
    return member


# Endpoints

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    logger.debug("Health check requested")
    return {
        "status": "healthy",
        "data_loaded": family_service is not None,
    }


@app.get("/members")
async def get_members():
    """Get all family members in stored order."""
    service = _get_service()
    members = service.get_all_members()
    logger.info(f"Returning {len(members)} members")
    return {"members": [m.to_dict() for m in members]}


@app.get("/members/potential-parents")
async def get_potential_parents():
    """Get members old enough to be picked as a parent."""
    service = _get_service()
    return {"members": [m.to_dict() for m in service.get_potential_parents()]}


@app.get("/members/potential-spouses")
async def get_potential_spouses(relation: str | None = Query(default=None)):
    """Get unmarried members whose relation is compatible with `relation`."""
    service = _get_service()
    return {"members": [m.to_dict() for m in service.get_potential_spouses(relation)]}


@app.get("/members/{member_id}")
async def get_member(member_id: str):
    """Get a single family member along with their parent's name."""
    service = _get_service()
    member = _member_or_404(service, member_id)
    return {
        "member": member.to_dict(),
        "parent_name": get_parent_name(service.get_all_members(), member.parent_id),
    }


@app.post("/members", status_code=201)
async def add_member(payload: PersonCreate):
    """Add a family member. An id is generated when none is given."""
    service = _get_service()

    fields = payload.model_dump(exclude={"id"})
    member = PersonRecord(id=payload.id or service.generate_member_id(), **fields)
    logger.info(f"Adding member {member.id} ({member.name}, {member.relation})")

    if not service.add_member(member):
        raise HTTPException(status_code=400, detail=f"Member with ID {member.id} already exists")

    return {"member": member.to_dict()}


@app.patch("/members/{member_id}")
async def update_member(member_id: str, payload: PersonUpdate):
    """Update some fields of a family member."""
    service = _get_service()
    _member_or_404(service, member_id)
    updates = payload.model_dump(exclude_unset=True)
    logger.info(f"Updating member {member_id}: {sorted(updates)}")

    if not service.update_member(member_id, updates):
        raise HTTPException(status_code=400, detail=f"Invalid update for member {member_id}")

    return {"member": _member_or_404(service, member_id).to_dict()}


@app.delete("/members/{member_id}", response_model=MessageResponse)
async def delete_member(member_id: str):
    """Delete a family member and unlink their children and spouse."""
    service = _get_service()
    logger.info(f"Deleting member {member_id}")

    if not service.delete_member(member_id):
        raise HTTPException(status_code=404, detail=f"Member with ID {member_id} not found")

    return MessageResponse(message=f"Deleted member {member_id}")


@app.get("/tree", response_model=TreeResponse)
async def get_tree():
    """Get the derived family tree."""
    service = _get_service()
    tree = service.get_family_tree()
    logger.debug(f"Returning tree rooted at {tree.root.id}")
    return TreeResponse(**_tree_payload(tree))


@app.get("/tree/stream")
async def stream_tree():
    """Stream the family tree using Server-Sent Events, once now and after every change."""
    service = _get_service()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def on_change(tree: DerivedTree):
        loop.call_soon_threadsafe(queue.put_nowait, _tree_payload(tree))

    async def generate() -> AsyncGenerator[str, None]:
        unsubscribe = service.subscribe(on_change)
        logger.info("Tree stream subscriber connected")
        try:
            while True:
                payload = await queue.get()
                yield f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"
        finally:
            unsubscribe()
            logger.info("Tree stream subscriber disconnected")

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@app.get("/generations")
async def get_generations():
    """Get members grouped by generation, couples side by side."""
    service = _get_service()
    levels = service.get_generation_levels()
    logger.info(f"Returning {len(levels)} generations")
    return {
        "family_name": service.get_family_name(),
        "generations": [
            {
                "level": level.level,
                "title": level.title,
                "members": [m.to_dict() for m in level.members],
                "suggested_relations": [r.value for r in suggested_relations(level.level)],
            }
            for level in levels
        ],
    }


@app.get("/family-data/export")
async def export_family_data():
    """Export all family data as a JSON document."""
    service = _get_service()
    return Response(
        content=service.export_family_data(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="family-data.json"'},
    )


@app.post("/family-data/import", response_model=MessageResponse)
async def import_family_data(file: UploadFile = File(...)):
    """Replace all family data with an exported JSON document."""
    service = _get_service()
    logger.info(f"Received family data upload: {file.filename}")

    content = await file.read()
    try:
        content_str = content.decode("utf-8")
    except UnicodeDecodeError:
        logger.info("UTF-8 decode failed, trying latin-1 encoding")
        content_str = content.decode("latin-1")

    if not service.import_family_data(content_str):
        raise HTTPException(status_code=400, detail="Invalid family data: expected a 'familyMembers' array")

    count = len(service.get_all_members())
    return MessageResponse(message=f"Imported {count} family members from {file.filename}")


@app.post("/family-data/reset", response_model=MessageResponse)
async def reset_family_data():
    """Discard saved changes and reload the seed data."""
    service = _get_service()
    service.reset_to_default_data()
    return MessageResponse(message=f"Reset to {len(service.get_all_members())} family members")


@app.get("/events/upcoming")
async def get_upcoming(days: int = Query(default=30, ge=0, le=366)):
    """Get birthdays coming up within the next `days` days."""
    service = _get_service()
    events = generate_birthday_events(service.get_all_members())
    upcoming = get_upcoming_events(events, days)
    logger.info(f"Found {len(upcoming)} events in the next {days} days")
    return {"events": [e.model_dump(mode="json") for e in upcoming]}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
