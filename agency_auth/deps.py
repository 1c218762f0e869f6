"""FastAPI dependencies for the services wired up in ``create_app``."""

from __future__ import annotations

from fastapi import Request

from .services.callback_svc import CallbackResolver
from .services.install_svc import InstallEventHandler
from .services.store import CredentialStore
from .services.token_svc import TokenExchangeClient


def get_store(request: Request) -> CredentialStore:
    return request.app.state.store


def get_exchange(request: Request) -> TokenExchangeClient:
    return request.app.state.exchange


def get_resolver(request: Request) -> CallbackResolver:
    state = request.app.state
    return CallbackResolver(
        state.store,
        state.exchange,
        state.menu,
        merge_max_attempts=state.settings.merge_max_attempts,
    )


def get_install_handler(request: Request) -> InstallEventHandler:
    state = request.app.state
    return InstallEventHandler(
        state.store,
        state.exchange,
        state.menu,
        merge_max_attempts=state.settings.merge_max_attempts,
    )
