"""HTML fragment rendering for todo rows."""
from fastapi.templating import Jinja2Templates

from todo_stream.config import PACKAGE_DIR
from todo_stream.store.schemas import Todo

templates = Jinja2Templates(directory=str(PACKAGE_DIR / "templates"))


def render_todo(todo: Todo) -> str:
    """Render the ``todo.html`` fragment used for list items and live events."""
    return templates.get_template("todo.html").render(todo=todo)
