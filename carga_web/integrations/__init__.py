"""Adapters around third-party logistics, messaging and tax APIs.

Every adapter accepts an optional ``session`` exposing the
:class:`requests.Session` request methods so tests can replace the network.
"""

from __future__ import annotations

from typing import Optional

import requests


class IntegrationError(RuntimeError):
    """Raised when a third-party API call fails or is misconfigured."""


def resolve_session(session: Optional[requests.Session] = None) -> requests.Session:
    return session if session is not None else requests.Session()


__all__ = ["IntegrationError", "resolve_session"]
