from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["home"])


@router.get("/", response_class=PlainTextResponse)
async def home() -> str:
    return "Ello Govna"
