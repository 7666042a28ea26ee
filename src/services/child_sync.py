"""
Relational sync primitives shared by the bulk sync services.

- upsert_by_code(): batched insert of primary rows under a conflict policy
- resolve_codes(): batched natural key -> surrogate id lookup
- replace_children(): delete-then-insert of a child collection
- attributes_rows() / portion_size_rows(): child rows shared by foods and categories

Every lookup is done in chunks of at most SQL_CHUNK_SIZE keys so a large
import never exceeds SQLite's bound parameter limit, and never per row.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import delete, insert, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from src.services.exceptions import ConflictError, ReferentialIntegrityError, ValidationError
from src.utils.constants import CONFLICT_ABORT, CONFLICT_OVERWRITE, CONFLICT_STRATEGIES
from src.utils.datetime_utils import utc_now

SQL_CHUNK_SIZE = 500


def chunked(items: Sequence, size: int = SQL_CHUNK_SIZE):
    """Yield consecutive slices of at most size items."""
    for start in range(0, len(items), size):
        yield items[start : start + size]


def check_duplicate_codes(kind: str, codes: Iterable[str]) -> None:
    """Raise ValidationError when an input lists the same code more than once."""
    seen: Set[str] = set()
    duplicates: Set[str] = set()
    for code in codes:
        if code in seen:
            duplicates.add(code)
        seen.add(code)
    if duplicates:
        raise ValidationError(
            [f"Duplicate {kind.lower()} codes in input: {', '.join(sorted(duplicates))}"]
        )


def resolve_codes(
    session: Session,
    model,
    codes: Iterable[str],
    locale_id: Optional[str] = None,
) -> Tuple[Dict[str, int], Set[str]]:
    """
    Resolve natural keys to surrogate ids.

    Args:
        session: Database session
        model: Model with a "code" column (and "locale_id" when locale_id is given)
        codes: Codes to resolve (duplicates allowed)
        locale_id: Restrict the lookup to one locale

    Returns:
        Tuple of ({code: id} for every code found, set of codes not found)
    """
    wanted = sorted(set(codes))
    found: Dict[str, int] = {}

    for chunk in chunked(wanted):
        query = select(model.code, model.id).where(model.code.in_(chunk))
        if locale_id is not None:
            query = query.where(model.locale_id == locale_id)
        for code, row_id in session.execute(query):
            found[code] = row_id

    missing = set(wanted) - set(found)
    return found, missing


def upsert_by_code(
    session: Session,
    model,
    kind: str,
    rows: List[Dict[str, Any]],
    on_conflict: str,
    update_columns: List[str],
    locale_id: Optional[str] = None,
    existing: Optional[Dict[str, int]] = None,
) -> Dict[str, int]:
    """
    Insert primary rows keyed by code under a conflict policy.

    Policies:
        abort: fail with ConflictError naming every existing code, before writing
        overwrite: replace update_columns of existing rows
        skip: leave existing rows untouched

    Args:
        session: Database session
        model: Model with a unique (locale_id, code) or (code) key
        kind: Entity name used in error messages ("Food", "Category", "Locale")
        rows: Column dicts, each with a "code" (and "locale_id" when scoped)
        on_conflict: One of CONFLICT_STRATEGIES
        update_columns: Columns replaced by the overwrite policy
        locale_id: Locale the rows belong to, None for global rows
        existing: Result of resolve_codes() for the row codes, when the caller
            already looked them up

    Returns:
        {code: id} of the affected rows. With skip, rows that already existed
        are not affected and are left out.

    Raises:
        ConflictError: abort policy and at least one code already exists
        ValueError: Unknown policy
    """
    if on_conflict not in CONFLICT_STRATEGIES:
        raise ValueError(f"Unknown conflict strategy: {on_conflict}")
    if not rows:
        return {}

    codes = [row["code"] for row in rows]
    if existing is None:
        existing, _ = resolve_codes(session, model, codes, locale_id)
    table = model.__table__
    index_elements = ["locale_id", "code"] if locale_id is not None else ["code"]

    if on_conflict == CONFLICT_ABORT:
        if existing:
            raise ConflictError(kind, existing.keys())
        session.execute(insert(table), rows)
        affected_codes = codes
    elif on_conflict == CONFLICT_OVERWRITE:
        stmt = sqlite_insert(table)
        set_ = {column: stmt.excluded[column] for column in update_columns}
        set_["updated_at"] = utc_now()
        session.execute(stmt.on_conflict_do_update(index_elements=index_elements, set_=set_), rows)
        affected_codes = codes
    else:
        stmt = sqlite_insert(table).on_conflict_do_nothing(index_elements=index_elements)
        session.execute(stmt, rows)
        affected_codes = [code for code in codes if code not in existing]

    affected, _ = resolve_codes(session, model, affected_codes, locale_id)
    return affected


def replace_children(
    session: Session,
    model,
    parent_column: str,
    parent_ids: Iterable[int],
    rows: List[Dict[str, Any]],
) -> int:
    """
    Replace the child rows of every given parent (delete-then-insert).

    All existing children of parent_ids are deleted, even when rows holds
    nothing for a parent, so the stored set always equals the input set.

    Args:
        session: Database session
        model: Child model
        parent_column: Foreign key column naming the parent
        parent_ids: Parents whose children are replaced
        rows: New child rows (column dicts)

    Returns:
        Number of rows inserted
    """
    ids = sorted(set(parent_ids))
    column = getattr(model, parent_column)
    for chunk in chunked(ids):
        session.execute(delete(model.__table__).where(column.in_(chunk)))
    if rows:
        session.execute(insert(model.__table__), rows)
    return len(rows)


def raise_for_missing(missing: Dict[str, Set[str]], locale_id: Optional[str] = None) -> None:
    """
    Raise for every unresolved reference at once.

    Args:
        missing: {referenced kind: unresolved codes}; empty sets are ignored
        locale_id: Locale the references were resolved in

    Raises:
        ReferentialIntegrityError: One kind has unresolved codes
        ValidationError: Several kinds have unresolved codes (one message each)
    """
    failures = [(kind, codes) for kind, codes in missing.items() if codes]
    if not failures:
        return
    if len(failures) == 1:
        kind, codes = failures[0]
        raise ReferentialIntegrityError(kind, codes, locale_id)

    errors: List[str] = []
    for kind, codes in failures:
        errors.extend(ReferentialIntegrityError(kind, codes, locale_id).errors)
    raise ValidationError(errors)


def attributes_rows(parent_column: str, affected: Dict[str, int], records) -> List[Dict[str, Any]]:
    """Attribute rows for affected records; all-null attributes produce no row."""
    rows = []
    for record in records:
        if record.code in affected and not record.attributes.is_empty():
            row = record.attributes.to_row()
            row[parent_column] = affected[record.code]
            rows.append(row)
    return rows


def portion_size_rows(parent_column: str, affected: Dict[str, int], records) -> List[Dict[str, Any]]:
    """Portion size method rows for affected records, order_by following input order."""
    rows = []
    for record in records:
        if record.code not in affected:
            continue
        for index, psm in enumerate(record.portion_size_methods):
            rows.append(
                {
                    parent_column: affected[record.code],
                    "method": psm.method,
                    "description": psm.description,
                    "conversion_factor": psm.conversion_factor,
                    "use_for_recipes": psm.use_for_recipes,
                    "order_by": index,
                    "parameters": psm.parameters,
                }
            )
    return rows
