"""
Result Assembler

Turns a ``DriverResult`` into the response envelope: preloads related
rows, expands many-to-many fields, strips private fields, runs the
model's response hook and queues the audit entry.
"""
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

import structlog

from dapi.api.context import RequestContext
from dapi.audit import AuditEntry, AuditQueue
from dapi.dialects import BaseDialect, DriverResult, TypedResult
from dapi.models import AuditAction
from dapi.query.spec import ColumnRef, FilterCondition, FilterOperator, M2MMode, QuerySpec
from dapi.registry import FieldSpec, ModelRegistration, ModelSchema, RelationKind, SchemaRegistry

logger = structlog.get_logger()

Row = Dict[str, Any]


def strip_private(schema: ModelSchema, row: Row) -> Row:
    """Remove private fields (by name and by column) from ``row``."""
    for spec in schema.fields:
        if spec.private:
            row.pop(spec.name, None)
            if spec.column:
                row.pop(spec.column, None)
    return row


class ResultAssembler:
    """Shapes query results for one dialect."""

    def __init__(self, registry: SchemaRegistry, dialect: BaseDialect,
                 audit_queue: Optional[AuditQueue] = None):
        self.registry = registry
        self.dialect = dialect
        self.audit_queue = audit_queue
        self.builder = dialect.builder()

    def assemble(self, registration: ModelRegistration, spec: QuerySpec, outcome: DriverResult,
                 context: RequestContext, should_log: bool = False) -> dict:
        """
        Build the response payload.

        Args:
            registration: The model being read
            spec: Parsed request
            outcome: Rows returned by the dialect
            context: Request context (user, params, record id)
            should_log: Queue an audit entry for this read

        Returns:
            ``{"status": "ok", "result": ...}``; ``result`` is a list for
            list reads and a single row or None for single-record reads
        """
        schema = registration.schema
        rows = [dict(row) for row in outcome.result.rows]

        if isinstance(outcome.result, TypedResult):
            if spec.preload:
                self.preload(schema, rows, context.user)
            if spec.m2m is not None:
                self.expand_m2m(schema, rows, spec.m2m, context.user)
            rows = [strip_private(schema, row) for row in rows]

        if context.is_single:
            payload = {"status": "ok", "result": rows[0] if rows else None}
        else:
            payload = {"status": "ok", "result": rows}

        if registration.response_hook is not None:
            payload = registration.response_hook(context, payload)

        if should_log:
            self.log_read(schema, context, outcome.row_count)

        return payload

    # ------------------------------------------------------------------
    # Related rows
    # ------------------------------------------------------------------

    def _fetch(self, target: ModelSchema, column: str, keys: Sequence[Any], user: Any) -> List[Row]:
        """Fetch ``target`` rows whose ``column`` is in ``keys``."""
        registration = self.registry.get(target.name)
        list_modifier = registration.list_modifier if registration else None
        spec = QuerySpec(filters=[FilterCondition(
            column=ColumnRef(target.table, column),
            operator=FilterOperator.IN,
            values=tuple(keys),
        )])
        sql, args = self.builder.build(target, spec, list_modifier, user)
        outcome = self.dialect.execute(sql, args, schema=target)
        return [strip_private(target, dict(row)) for row in outcome.result.rows]

    @staticmethod
    def _row_key(schema: ModelSchema, column: str) -> str:
        spec = schema.field_for_column(column)
        return spec.name if spec is not None else column

    def _target(self, relation: FieldSpec) -> Optional[ModelSchema]:
        target = self.registry.get_schema(relation.target) if relation.target else None
        if target is None:
            logger.warning("preload_target_missing", field=relation.name, target=relation.target)
        return target

    def preload(self, schema: ModelSchema, rows: List[Row], user: Any = None) -> None:
        """Load ONE_TO_ONE and ONE_TO_MANY relations, one level deep."""
        if not rows:
            return

        pk_key = schema.pk_field.name
        for relation in schema.relation_fields:
            if relation.private or relation.relation not in (RelationKind.ONE_TO_ONE, RelationKind.ONE_TO_MANY):
                continue
            target = self._target(relation)
            if target is None or not relation.foreign_key:
                continue

            if relation.relation == RelationKind.ONE_TO_ONE:
                fk_key = self._row_key(schema, relation.foreign_key)
                keys = sorted({row.get(fk_key) for row in rows if row.get(fk_key) is not None}, key=str)
                related = {}
                if keys:
                    target_pk = target.pk_field.name
                    related = {r.get(target_pk): r for r in self._fetch(target, target.pk_column, keys, user)}
                for row in rows:
                    row[relation.name] = related.get(row.get(fk_key))
            else:
                keys = [row.get(pk_key) for row in rows if row.get(pk_key) is not None]
                grouped: Dict[Any, List[Row]] = defaultdict(list)
                if keys:
                    back_key = self._row_key(target, relation.foreign_key)
                    for r in self._fetch(target, relation.foreign_key, keys, user):
                        grouped[r.get(back_key)].append(r)
                for row in rows:
                    row[relation.name] = grouped.get(row.get(pk_key), [])

    def expand_m2m(self, schema: ModelSchema, rows: List[Row], mode: M2MMode, user: Any = None) -> None:
        """Attach MANY_TO_MANY fields as id lists or full rows."""
        if not rows:
            return

        pk_key = schema.pk_field.name
        keys = [row.get(pk_key) for row in rows if row.get(pk_key) is not None]
        for relation in schema.relation_fields:
            if relation.private or relation.relation != RelationKind.MANY_TO_MANY:
                continue
            target = self._target(relation)
            if target is None:
                continue

            links = self._through_links(schema, target, relation, keys)
            if mode == M2MMode.FILL:
                target_ids = sorted({t for targets in links.values() for t in targets}, key=str)
                by_pk = {}
                if target_ids:
                    target_pk = target.pk_field.name
                    by_pk = {r.get(target_pk): r for r in self._fetch(target, target.pk_column, target_ids, user)}
                for row in rows:
                    row[relation.name] = [by_pk[t] for t in links.get(row.get(pk_key), []) if t in by_pk]
            else:
                for row in rows:
                    row[relation.name] = list(links.get(row.get(pk_key), []))

    def _through_links(self, schema: ModelSchema, target: ModelSchema, relation: FieldSpec,
                       keys: Sequence[Any]) -> Dict[Any, List[Any]]:
        links: Dict[Any, List[Any]] = defaultdict(list)
        if not keys or not relation.through:
            return links

        source_column, target_column = relation.through_columns or (
            f"{schema.table}_id", f"{target.table}_id"
        )
        ident = self.builder.ident
        placeholders = ", ".join("?" for _ in keys)
        sql = (
            f"SELECT {ident(source_column)}, {ident(target_column)} FROM {ident(relation.through)}"
            f" WHERE {ident(source_column)} IN ({placeholders})"
            f" ORDER BY {ident(source_column)}, {ident(target_column)}"
        )
        outcome = self.dialect.execute(sql, list(keys), dynamic=True)
        columns = outcome.result.columns
        for row in outcome.result.rows:
            links[row[columns[0]]].append(row[columns[1]])
        return links

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def log_read(self, schema: ModelSchema, context: RequestContext, rows_count: int) -> None:
        if self.audit_queue is None:
            return
        table_id = 0
        params = context.params
        if context.is_single:
            params = {"id": context.record_id}
            try:
                table_id = int(context.record_id)
            except (TypeError, ValueError):
                table_id = 0
        self.audit_queue.enqueue(AuditEntry(
            username=context.username,
            action=AuditAction.READ.value,
            table_name=schema.name,
            table_id=table_id,
            activity={
                "params": params,
                "rows_count": rows_count,
                "_IP": context.ip_address or "",
            },
        ))
