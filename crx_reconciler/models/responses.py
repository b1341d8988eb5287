"""The two package-manager response shapes and the verdict derived from them."""

from pydantic import BaseModel


class ExecResponse(BaseModel):
    """JSON answer of an install / uninstall / delete command."""

    success: bool
    msg: str = ""


class XmlEnvelope(BaseModel):
    """Raw XML status envelope returned by an upload."""

    body: str


class ActionVerdict(BaseModel):
    """Uniform outcome of a package action."""

    success: bool
    message: str
