"""Top-level HTML page."""
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from todo_stream.rendering import templates

router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
async def index(request: Request) -> HTMLResponse:
    """Serve the single-page todo list shell."""
    return templates.TemplateResponse(request, "index.html", {})
