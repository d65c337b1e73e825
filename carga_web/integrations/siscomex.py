"""Portal Único Siscomex declarations (DU-E and DUIMP), simulated.

A production integration authenticates with an mTLS client certificate and
sends the JWT and CSRF tokens returned by the portal on every call. This
adapter keeps that shape: tokens are cached until they expire, and each
registration returns a generated declaration number.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

TOKEN_LIFETIME = timedelta(hours=1)
DUE_ENDPOINT = "/due/api/publica/due"
DUIMP_ENDPOINT = "/duimp/api/publica/duimp"


@dataclass(slots=True)
class AuthTokens:
    jwt: str
    csrf: str
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SiscomexClient:
    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._rng = rng or random.Random()
        self._clock = clock
        self._tokens: Optional[AuthTokens] = None

    def authenticate(self) -> AuthTokens:
        now = self._clock()
        if self._tokens and self._tokens.expires_at > now:
            return self._tokens
        stamp = int(now.timestamp() * 1000)
        logger.info("Siscomex: requesting new authentication tokens")
        self._tokens = AuthTokens(
            jwt=f"simulated-jwt-bearer-token-{stamp}",
            csrf=f"simulated-csrf-token-{stamp}",
            expires_at=now + TOKEN_LIFETIME,
        )
        return self._tokens

    def _call(self, endpoint: str, method: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        tokens = self.authenticate()
        logger.info("Siscomex: %s %s (jwt %s...)", method, endpoint, tokens.jwt[:30])
        return {
            "success": True,
            "message": f"Operação {method} para {endpoint} simulada com sucesso.",
            "submittedData": dict(payload),
        }

    def _declaration_number(self) -> str:
        return f"24BR{self._rng.randint(1_000_000_000, 9_999_999_999)}"

    def register_due(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Register an export declaration.

        Raises:
            ValueError: When the exporter CNPJ is not 14 digits.
        """

        cnpj = re.sub(r"\D", "", str(data.get("exporterCnpj", "")))
        if len(cnpj) != 14:
            raise ValueError("CNPJ do exportador inválido.")
        response = self._call(DUE_ENDPOINT, "POST", data)
        response.update(
            dueNumber=self._declaration_number(),
            message="DU-E registrada com sucesso no Portal Único Siscomex (Simulação).",
        )
        return response

    def register_duimp(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        response = self._call(DUIMP_ENDPOINT, "POST", data)
        response.update(
            duimpNumber=self._declaration_number(),
            message="DUIMP registrada com sucesso no Portal Único Siscomex (Simulação).",
        )
        return response


__all__ = ["AuthTokens", "SiscomexClient"]
