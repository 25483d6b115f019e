"""Todo CRUD endpoints serving both HTML fragments and JSON."""

from typing import Any, TypeVar

import structlog
from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ValidationError

from todo_stream.events.publisher import MutationPublisher
from todo_stream.rendering import templates
from todo_stream.store import Todo, TodoInput, TodoStore, TodoUpdate

logger = structlog.get_logger()

router = APIRouter(prefix="/todos", tags=["todos"])

M = TypeVar("M", bound=BaseModel)

JSON_TYPE = "application/json"
FORM_TYPE = "application/x-www-form-urlencoded"


def _store(request: Request) -> TodoStore:
    return request.app.state.store


def _publisher(request: Request) -> MutationPublisher:
    return request.app.state.publisher


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


def _is_form(request: Request) -> bool:
    """Decide the payload format from the Content-Type header.

    Raises:
        HTTPException: 415 for anything other than JSON or urlencoded form.
    """
    content_type = request.headers.get("content-type", "").split(";")[0].strip()
    if content_type == FORM_TYPE:
        return True
    if content_type == JSON_TYPE:
        return False
    raise HTTPException(
        status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        detail=f"Expected {JSON_TYPE} or {FORM_TYPE}",
    )


async def _read_payload(
    request: Request,
    model: type[M],
    form_defaults: dict[str, Any] | None = None,
) -> tuple[M, bool]:
    """Parse and validate the request body as JSON or form data.

    Args:
        request: Incoming request.
        model: Payload model to validate against.
        form_defaults: Values assumed for fields a form omits.

    Returns:
        Tuple of (validated payload, whether the body was a form).

    Raises:
        RequestValidationError: If the body does not match the model.
    """
    is_form = _is_form(request)
    try:
        if is_form:
            raw: Any = {**(form_defaults or {}), **(await request.form())}
        else:
            raw = await request.json()
        return model.model_validate(raw), is_form
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False)) from e
    except ValueError as e:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": str(e), "input": None}]
        ) from e


def _todo_fragment(request: Request, todo: Todo) -> HTMLResponse:
    return templates.TemplateResponse(request, "todo.html", {"todo": todo})


@router.get("", response_model=None)
async def list_todos(request: Request) -> HTMLResponse | list[Todo]:
    """List every todo.

    Returns the ``todos.html`` fragment when the client accepts HTML,
    otherwise a JSON array.
    """
    todos = await _store(request).aselect_all()
    if _wants_html(request):
        return templates.TemplateResponse(request, "todos.html", {"todos": todos})
    return todos


@router.post("", response_model=None)
async def create_todo(request: Request) -> HTMLResponse | Todo:
    """Create a todo from a form or JSON body.

    The response is built from the stored row; the live create event is
    published after the insert has committed.
    """
    todo_input, is_form = await _read_payload(request, TodoInput)
    todo = await _store(request).ainsert(todo_input.description)
    logger.info("todo_created", todo_id=todo.id)
    _publisher(request).publish_create(todo)

    if is_form:
        return _todo_fragment(request, todo)
    return todo


@router.put("/{todo_id}", response_model=None)
async def update_todo(todo_id: int, request: Request) -> HTMLResponse | Todo:
    """Set a todo's completion flag.

    An unchecked checkbox is absent from form submissions, so a form
    without ``completed`` marks the todo as open.
    """
    todo_update, is_form = await _read_payload(
        request, TodoUpdate, form_defaults={"completed": False}
    )
    todo = await _store(request).aupdate_completed(todo_id, todo_update.completed)
    logger.info("todo_updated", todo_id=todo.id, completed=todo.completed)
    _publisher(request).publish_update(todo)

    if is_form:
        return _todo_fragment(request, todo)
    return todo


@router.delete("/{todo_id}")
async def delete_todo(todo_id: int, request: Request) -> Response:
    """Delete a todo and announce its id to live streams."""
    await _store(request).adelete(todo_id)
    logger.info("todo_deleted", todo_id=todo_id)
    _publisher(request).publish_delete(todo_id)
    return Response(status_code=status.HTTP_200_OK)
