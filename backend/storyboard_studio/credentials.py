"""Credential gate: decides whether generation is available at all."""

from __future__ import annotations

import logging
import os
from typing import Callable, Mapping, MutableMapping, Optional, Sequence, Set

from .errors import ErrorKind, classify_error

logger = logging.getLogger(__name__)

OVERRIDE_KEY = "gemini_api_key"
ENV_KEYS = ("GEMINI_API_KEY", "API_KEY")

HostProbe = Callable[[], Optional[str]]


def _clean(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class CredentialGate:
    """Ordered key lookup: host capability, local override, then environment.

    A key rejected by the remote service is remembered for the session and
    skipped on later lookups, which closes the gate until a new key arrives.
    """

    def __init__(
        self,
        host_probe: HostProbe | None = None,
        override_store: MutableMapping[str, object] | None = None,
        environ: Mapping[str, str] | None = None,
        env_keys: Sequence[str] = ENV_KEYS,
    ):
        self._host_probe = host_probe
        self._store = override_store if override_store is not None else {}
        self._environ = environ if environ is not None else os.environ
        self._env_keys = tuple(env_keys)
        self._rejected: Set[str] = set()

    def _probe_host(self) -> str | None:
        if self._host_probe is None:
            return None
        try:
            return _clean(self._host_probe())
        except Exception as exc:
            logger.warning("Host credential probe failed: %s", exc)
            return None

    def _candidates(self):
        yield self._probe_host()
        yield _clean(self._store.get(OVERRIDE_KEY))
        for name in self._env_keys:
            yield _clean(self._environ.get(name))

    def resolve(self) -> str | None:
        for candidate in self._candidates():
            if candidate and candidate not in self._rejected:
                return candidate
        return None

    def is_open(self) -> bool:
        return self.resolve() is not None

    def set_override(self, api_key: str) -> None:
        key = _clean(api_key)
        if key is None:
            self._store.pop(OVERRIDE_KEY, None)
            return
        self._rejected.discard(key)
        self._store[OVERRIDE_KEY] = key

    def revoke(self) -> None:
        current = self.resolve()
        if current:
            self._rejected.add(current)
        self._store.pop(OVERRIDE_KEY, None)
        logger.warning("Credential revoked; generation is gated until a new key is provided")

    def handle_error(self, exc: BaseException) -> bool:
        """Revoke the current key when ``exc`` means it is no longer valid."""
        if classify_error(exc) is ErrorKind.UNAUTHORIZED:
            self.revoke()
            return True
        return False
