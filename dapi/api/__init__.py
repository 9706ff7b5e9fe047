"""
API Package - read pipeline and HTTP routes
"""
from dapi.api.context import RequestContext
from dapi.api.assembler import ResultAssembler, strip_private
from dapi.api.read_handler import ReadHandler, split_path
from dapi.api.router import router

__all__ = [
    "RequestContext",
    "ResultAssembler",
    "strip_private",
    "ReadHandler",
    "split_path",
    "router",
]
