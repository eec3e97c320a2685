# Overview: Sequential document code allocation (e.g. HD20250007) for sales and purchases.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..validation import ConflictError
from posledger.time_utils import current_year
from .concurrency import lock_for_update


DEFAULT_PAD = 4


class DocumentCodeConflictError(ConflictError):
    """Raised when a freshly allocated document code is taken by a concurrent posting."""
    pass


def series_prefix(base: str, year: int | None = None) -> str:
    """Series prefix for a document kind and year: series_prefix("HD", 2025) -> "HD2025"."""
    return f"{base}{year or current_year()}"


def _code_pad() -> int:
    return int(current_app.config.get("DOCUMENT_CODE_PAD", DEFAULT_PAD))


def _suffix_number(code: str, prefix: str) -> int | None:
    suffix = code[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


def _max_series_number(model, prefix: str, *, lock: bool) -> int:
    """
    Highest counter used in a series, 0 for an empty series.

    Longer codes sort first so HD202510000 beats HD20259999; within one length
    the order is plain lexicographic.
    """
    query = db.session.query(model.code).filter(
        model.code.like(f"{prefix}%"),
    ).order_by(
        func.length(model.code).desc(),
        model.code.desc(),
    )
    if lock:
        query = lock_for_update(query)

    top = query.limit(1).first()
    if top is None:
        return 0

    number = _suffix_number(top[0], prefix)
    if number is not None:
        return number

    # Hand-entered codes with a non-numeric tail: fall back to a full scan
    numbers = [_suffix_number(code, prefix) for (code,) in query.all()]
    return max((n for n in numbers if n is not None), default=0)


def next_document_code(model, prefix: str, *, lock: bool = True, pad: int | None = None) -> str:
    """
    Next code in a series: greatest existing counter + 1, zero-padded.

    With lock=True the scan runs SELECT ... FOR UPDATE inside the caller's
    transaction. Uniqueness is still backed by the unique constraint on code;
    the posting engine regenerates and retries when the insert collides.
    """
    width = pad if pad is not None else _code_pad()
    next_num = _max_series_number(model, prefix, lock=lock) + 1
    return f"{prefix}{next_num:0{width}d}"


def peek_next_code(model, prefix: str) -> str:
    """
    Best-effort preview of the next code. Nothing is reserved; the code
    actually assigned at posting time may differ.
    """
    return next_document_code(model, prefix, lock=False)
