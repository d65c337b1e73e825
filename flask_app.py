"""Development entry point for the CargaInteligente back office.

``flask --app flask_app run`` and ``python flask_app.py`` both pick up the
module-level :data:`app`. ``FLASK_DEBUG``, ``CARGA_HOST`` and ``CARGA_PORT``
control the development server.
"""

from __future__ import annotations

import logging
import os
from typing import Final

from carga_web import create_app
from carga_web.config import TRUE_VALUES

FALSE_VALUES: Final[set[str]] = {"0", "false", "f", "no", "n", "off"}
DEFAULT_DEBUG: Final[bool] = False


def resolve_debug_flag(env_var: str = "FLASK_DEBUG") -> bool:
    """Return whether the development server runs with the debugger.

    Unset or unrecognised values fall back to :data:`DEFAULT_DEBUG`.
    """

    flag = (os.getenv(env_var) or "").strip().lower()
    if flag in TRUE_VALUES:
        return True
    if flag in FALSE_VALUES:
        return False
    return DEFAULT_DEBUG


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
app.config["DEBUG"] = resolve_debug_flag()


if __name__ == "__main__":
    app.run(
        debug=app.debug,
        host=os.getenv("CARGA_HOST", "127.0.0.1"),
        port=int(os.getenv("CARGA_PORT", "5000")),
    )
