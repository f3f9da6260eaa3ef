from __future__ import annotations

import logging
from collections.abc import Sequence

from order_transfer.models.config_models import CANONICAL_HEADERS
from order_transfer.models.sheet import SheetRef
from order_transfer.models.transfer import HeaderMismatch
from order_transfer.sheets.provider import SheetProvider, sheet_operation

from .columns import normalize_header

logger = logging.getLogger(__name__)

"""Header contract validation.

Compares the required header set against a destination sheet's header row,
ignoring case and surrounding whitespace. The report is advisory: callers show
it to the operator, the transfer itself does not block on it.
"""

__all__ = [
    "compare_headers",
    "validate_headers",
]


def compare_headers(
    destination_headers: Sequence[str],
    required_headers: Sequence[str] = CANONICAL_HEADERS,
) -> HeaderMismatch | None:
    """Compare a destination header row with the required set.

    Returns:
        None when every required header is present and nothing extra exists,
        otherwise a HeaderMismatch with original-cased values
    """
    # 正規化キー -> 元の表記
    required_by_key: dict[str, str] = {}
    for h in required_headers:
        required_by_key.setdefault(normalize_header(h), h)
    dest_by_key: dict[str, str] = {}
    for h in destination_headers:
        key = normalize_header(h)
        if key:  # 空ヘッダ列は対象外
            dest_by_key.setdefault(key, h)

    missing = [required_by_key[k] for k in required_by_key if k not in dest_by_key]
    extra = [dest_by_key[k] for k in dest_by_key if k not in required_by_key]

    if not missing and not extra:
        return None
    return HeaderMismatch(expected=list(required_headers), missing=missing, extra=extra)


def validate_headers(
    provider: SheetProvider,
    source: SheetRef,
    destination: SheetRef,
    required_headers: Sequence[str] = CANONICAL_HEADERS,
) -> HeaderMismatch | None:
    """Validate the destination header row of a planned transfer.

    Both sheets must exist; the source is read only to confirm that.

    Raises:
        NotFoundError: source or destination sheet cannot be located
    """
    with sheet_operation("read", source):
        provider.read_headers(source)
    with sheet_operation("read", destination):
        dest_headers = provider.read_headers(destination)

    mismatch = compare_headers(dest_headers, required_headers)
    if mismatch is not None:
        logger.debug(
            "header mismatch destination=%s missing=%s extra=%s",
            destination,
            mismatch.missing,
            mismatch.extra,
        )
    return mismatch
