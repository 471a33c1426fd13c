"""FastAPI dependencies. The app factory puts the wired services on app.state."""

from fastapi import Request


def get_db(request: Request):
    return request.app.state.db


def get_lifecycle(request: Request):
    return request.app.state.lifecycle
