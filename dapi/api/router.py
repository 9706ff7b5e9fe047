"""
Data API routes
"""
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from dapi.api.read_handler import ReadHandler

router = APIRouter()


def get_read_handler(request: Request) -> ReadHandler:
    """The handler built by ``create_app``."""
    return request.app.state.read_handler


def get_current_user(request: Request) -> Optional[Any]:
    """
    Resolve the request's user with the app's ``user_resolver``.

    Authentication lives outside this package; without a resolver every
    request is anonymous and only public models are readable.
    """
    resolver = getattr(request.app.state, "user_resolver", None)
    if resolver is None:
        return None
    return resolver(request)


def client_address(request: Request) -> str:
    if request.client is None:
        return ""
    return f"{request.client.host}:{request.client.port}"


@router.get("/{path:path}")
def read_model(
    path: str,
    request: Request,
    handler: ReadHandler = Depends(get_read_handler),
    user: Optional[Any] = Depends(get_current_user),
):
    """List (``/{model}``) or fetch one (``/{model}/{id}``)."""
    status_code, payload = handler.handle(
        path,
        dict(request.query_params),
        user=user,
        ip_address=client_address(request),
        request=request,
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))
