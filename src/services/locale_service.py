"""
Locale Service - lookup and bulk update of locales.

Locales are the partitions every food and category belongs to. Imports may
create or update locales before syncing their contents, using the same
conflict policies as foods and categories.
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models.locale import Locale
from src.services.child_sync import check_duplicate_codes, resolve_codes, upsert_by_code
from src.services.database import session_scope
from src.services.dto import BulkUpdateResult, LocaleInput
from src.services.exceptions import ConflictError, LocaleNotFound
from src.services.logging_utils import get_service_logger, log_operation
from src.utils.constants import CONFLICT_ABORT, CONFLICT_SKIP

logger = get_service_logger(__name__)

LOCALE_UPDATE_COLUMNS = [
    "english_name",
    "local_name",
    "respondent_language_id",
    "admin_language_id",
    "country_flag_code",
    "text_direction",
    "food_index_enabled",
    "food_index_language_backend_id",
]


def get_locale(locale_id: str, session: Session) -> Locale:
    """
    Get a locale by code.

    Raises:
        LocaleNotFound: If no locale has this code
    """
    locale = session.execute(select(Locale).where(Locale.code == locale_id)).scalar_one_or_none()
    if locale is None:
        raise LocaleNotFound(locale_id)
    return locale


def list_locale_codes(session: Optional[Session] = None) -> List[str]:
    """All locale codes, sorted."""

    def _impl(sess: Session) -> List[str]:
        return list(sess.execute(select(Locale.code).order_by(Locale.code)).scalars())

    if session is not None:
        return _impl(session)

    with session_scope() as session:
        return _impl(session)


def _bulk_update_locales_impl(
    records: List[LocaleInput],
    on_conflict: str,
    session: Session,
    on_change: Optional[Callable[[Optional[str], List[str]], None]],
) -> BulkUpdateResult:
    if not records:
        return BulkUpdateResult(locale_id=None)

    session.flush()

    codes = [record.code for record in records]
    check_duplicate_codes("Locale", codes)

    existing, _ = resolve_codes(session, Locale, codes)
    if on_conflict == CONFLICT_ABORT and existing:
        log_operation(
            logger,
            "bulk_update_locales",
            "conflict",
            level=logging.WARNING,
            codes=sorted(existing),
        )
        raise ConflictError("Locale", existing.keys())

    affected = upsert_by_code(
        session,
        Locale,
        "Locale",
        [record.to_row() for record in records],
        on_conflict,
        LOCALE_UPDATE_COLUMNS,
        existing=existing,
    )

    session.expire_all()

    result = BulkUpdateResult(
        locale_id=None,
        affected_codes=sorted(affected),
        skipped_codes=sorted(existing) if on_conflict == CONFLICT_SKIP else [],
    )

    if on_change is not None and result.affected_codes:
        on_change(None, result.affected_codes)

    log_operation(
        logger,
        "bulk_update_locales",
        "success",
        affected=result.affected_count,
        skipped=len(result.skipped_codes),
    )
    return result


def bulk_update_locales(
    records: List[LocaleInput],
    on_conflict: str,
    session: Optional[Session] = None,
    on_change: Optional[Callable[[Optional[str], List[str]], None]] = None,
) -> BulkUpdateResult:
    """
    Create or update locales under a conflict policy.

    Args:
        records: Locale records
        on_conflict: "abort", "overwrite" or "skip"
        session: Optional session; joins the caller's transaction when given
        on_change: Called with (None, affected codes) after the update

    Returns:
        BulkUpdateResult with the affected and skipped codes

    Raises:
        ConflictError: abort policy and some locale codes already exist
            ("Locale codes already exist: en_GB, fr_FR")
        ValidationError: Duplicate codes in the input
    """
    if session is not None:
        return _bulk_update_locales_impl(records, on_conflict, session, on_change)

    with session_scope() as session:
        return _bulk_update_locales_impl(records, on_conflict, session, on_change)
