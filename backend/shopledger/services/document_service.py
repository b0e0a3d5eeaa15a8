# Overview: Service-layer operations for document numbering; sequential, gap-tolerant, race-free.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..models import DocumentSequence


# document_type -> (prefix, zero padding)
SALE = "SALE"
ORDER = "ORDER"
RETURN = "RET"
BATCH = "BATCH"
PAYMENT = "PAY"
CUSTOMER = "CUST"

DOCUMENT_FORMATS = {
    SALE: ("SALE", 6),
    ORDER: ("ORD", 6),
    RETURN: ("RET", 6),
    BATCH: ("BATCH", 6),
    PAYMENT: ("PAY", 6),
    CUSTOMER: ("CUST", 5),
}


def _current_value(session, document_type: str) -> int:
    current = (
        session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return current - 1


def next_document_number(session, *, document_type: str) -> str:
    """
    Allocate the next document number for a type, e.g. "SALE-000042".

    Runs inside the caller's transaction: the allocation is rolled back with
    the document it numbers. The counter row is bumped with a single UPDATE so
    two writers can never read the same value. The first allocation of a type
    inserts the counter row inside a SAVEPOINT; if a concurrent writer created
    it first, only the savepoint is discarded and the UPDATE is retried.
    """
    if document_type not in DOCUMENT_FORMATS:
        raise ValidationError(f"Unknown document type: {document_type}")
    prefix, pad = DOCUMENT_FORMATS[document_type]

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = session.execute(stmt)
    if result.rowcount:
        next_num = _current_value(session, document_type)
    else:
        try:
            with session.begin_nested():
                session.add(DocumentSequence(document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            result = session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_value(session, document_type)

    return f"{prefix}-{next_num:0{pad}d}"
