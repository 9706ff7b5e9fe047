"""
Read Handler

Runs one read request through the pipeline:
permission gate -> parameter parser -> query builder -> dialect -> assembler.
"""
from typing import Any, Mapping, Optional, Tuple

import structlog

from dapi.api.assembler import ResultAssembler
from dapi.api.context import RequestContext
from dapi.dialects import BaseDialect
from dapi.errors import ApiError, ExecutionFailure, InvalidPath, PermissionDenied
from dapi.query.params import ParameterParser, coerce_value
from dapi.registry import SchemaRegistry
from dapi.security import READ, PermissionGate
from dapi.trail import DEBUG, ERROR, Trail

logger = structlog.get_logger()


def split_path(path: str) -> Tuple[str, ...]:
    """``"book/5"`` -> ``("book", "5")``; surrounding slashes are ignored."""
    path = path.strip("/")
    if not path:
        return ()
    return tuple(path.split("/"))


class ReadHandler:
    """Serve ``{model}`` list reads and ``{model}/{id}`` single reads."""

    def __init__(self, registry: SchemaRegistry, dialect: BaseDialect,
                 gate: Optional[PermissionGate] = None,
                 assembler: Optional[ResultAssembler] = None,
                 trail: Optional[Trail] = None,
                 debug_db: bool = False):
        self.registry = registry
        self.dialect = dialect
        self.gate = gate or PermissionGate()
        self.assembler = assembler or ResultAssembler(registry, dialect)
        self.trail = trail or Trail()
        self.debug_db = debug_db
        self.builder = dialect.builder()

    def handle(self, path: str, params: Mapping[str, str], user: Any = None,
               ip_address: Optional[str] = None, request: Any = None) -> Tuple[int, dict]:
        """
        Handle a read request.

        Args:
            path: Request path below the API prefix, e.g. ``"book/5"``
            params: Query-string parameters
            user: Authenticated user or None
            ip_address: Client address, recorded in the audit log
            request: Framework request object, passed to model hooks

        Returns:
            ``(http_status, payload)``
        """
        try:
            return 200, self.read(path, params, user, ip_address, request)
        except ExecutionFailure as e:
            self.trail(ERROR, "SQL: %s\nARGS: %r", e.sql, e.sql_args)
            return e.status_code, e.to_envelope()
        except ApiError as e:
            logger.info("dapi_read_rejected", path=path, status=e.status_code, error=e.message)
            return e.status_code, e.to_envelope()

    def read(self, path: str, params: Mapping[str, str], user: Any = None,
             ip_address: Optional[str] = None, request: Any = None) -> dict:
        """Like ``handle`` but raises ``ApiError`` instead of returning it."""
        parts = split_path(path)
        if not parts:
            raise InvalidPath(f"invalid format ({path})")

        registration = self.registry.get(parts[0])
        if registration is None:
            raise InvalidPath(f"invalid format ({path})")

        decision = self.gate.resolve(registration, READ, request, user)
        if not decision.allowed:
            raise PermissionDenied()

        if len(parts) > 2:
            raise InvalidPath(f"invalid format ({path})")

        schema = registration.schema
        parser = ParameterParser(schema, self.registry)
        context = RequestContext(
            model=registration.name,
            params=dict(params),
            user=user,
            ip_address=ip_address,
            record_id=parts[1] if len(parts) == 2 else None,
            request=request,
        )

        if context.is_single:
            spec = parser.parse_single(params)
            pk_value = coerce_value(schema.pk_field, context.record_id, "id")
            sql, args = self.builder.build_get(schema, pk_value, registration.list_modifier, user)
            dynamic = False
        else:
            spec = parser.parse(params)
            sql, args = self.builder.build(schema, spec, registration.list_modifier, user)
            dynamic = spec.custom_projection

        if self.debug_db:
            self.trail(DEBUG, sql)
            self.trail(DEBUG, "%r", args)

        outcome = self.dialect.execute(sql, args, schema=schema, dynamic=dynamic)
        return self.assembler.assemble(registration, spec, outcome, context, should_log=decision.should_log)
