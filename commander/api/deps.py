# commander/api/deps.py
"""FastAPI dependencies resolving the per-process runtime."""

from fastapi import Request

from commander.runtime import CommanderRuntime


def get_runtime(request: Request) -> CommanderRuntime:
    return request.app.state.runtime
