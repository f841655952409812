"""Request-scoped collaborators pulled from ``app.state``."""

from fastapi import Request

from acme_server.core.config import Settings
from acme_server.core.csrf import CsrfStore
from acme_server.core.email import EmailSender


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_email_sender(request: Request) -> EmailSender:
    return request.app.state.email_sender


def get_csrf_store(request: Request) -> CsrfStore:
    return request.app.state.csrf_store
