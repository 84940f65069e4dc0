"""Credential gate probe-order and revocation tests."""

import httpx
import openai

from storyboard_studio.credentials import OVERRIDE_KEY, CredentialGate
from storyboard_studio.errors import ErrorKind, GenerationError


def test_probe_order_host_then_override_then_env():
    store = {OVERRIDE_KEY: "override-key"}
    env = {"GEMINI_API_KEY": "env-key", "API_KEY": "legacy-key"}

    assert CredentialGate(lambda: "host-key", store, env).resolve() == "host-key"
    assert CredentialGate(lambda: None, store, env).resolve() == "override-key"
    assert CredentialGate(None, {}, env).resolve() == "env-key"
    assert CredentialGate(None, {}, {"API_KEY": "legacy-key"}).resolve() == "legacy-key"


def test_gate_closed_without_any_key():
    gate = CredentialGate(None, {}, {"GEMINI_API_KEY": "   "})

    assert gate.resolve() is None
    assert not gate.is_open()


def test_failing_host_probe_is_skipped():
    def _boom():
        raise RuntimeError("host unavailable")

    assert CredentialGate(_boom, {}, {"GEMINI_API_KEY": "env-key"}).resolve() == "env-key"


def test_entity_not_found_revokes_and_closes_gate():
    store = {}
    gate = CredentialGate(None, store, {})
    gate.set_override("stale-key")
    assert gate.is_open()

    revoked = gate.handle_error(GenerationError(ErrorKind.UNAUTHORIZED, "Requested entity was not found."))

    assert revoked
    assert OVERRIDE_KEY not in store
    assert not gate.is_open()


def test_rejected_env_key_stays_gated_until_new_override():
    gate = CredentialGate(None, {}, {"GEMINI_API_KEY": "env-key"})

    assert gate.handle_error(RuntimeError("Requested entity was not found."))
    assert gate.resolve() is None

    gate.set_override("fresh-key")
    assert gate.resolve() == "fresh-key"


def test_other_failures_do_not_revoke():
    gate = CredentialGate(None, {}, {"GEMINI_API_KEY": "env-key"})

    assert not gate.handle_error(GenerationError(ErrorKind.RATE_LIMITED, "quota"))
    assert gate.resolve() == "env-key"


def test_invalid_key_bad_request_revokes():
    gate = CredentialGate(None, {}, {"GEMINI_API_KEY": "typo-key"})
    request = httpx.Request("POST", "https://example.invalid/v1/chat/completions")
    exc = openai.BadRequestError(
        "Error code: 400 - API key not valid. Please pass a valid API key.",
        response=httpx.Response(400, request=request),
        body=None,
    )

    assert gate.handle_error(exc)
    assert not gate.is_open()
