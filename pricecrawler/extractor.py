"""
Row extraction for the price history table.

The in-page script (see ``adapters.EXTRACT_ROWS_JS``) only collects raw cell
text; everything that decides what a transaction record looks like happens
here, on plain Python data, so it can be exercised without a browser.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .exceptions import ExtractionError
from .models import TransactionRecord

logger = logging.getLogger(__name__)

# "#07-12" -> "07": unit marker, two or more digits, hyphen.
FLOOR_PATTERN = re.compile(r"#(\d{2,})-")

ROW_SCOPE = "row"
DETAIL_SCOPE = "detail"


@dataclass(frozen=True)
class FieldSpec:
    """
    Where one logical field lives in the table.

    Attributes:
        name: Output key in the transaction record
        address: Value of the addressing attribute of the field container
        value_selector: Selector of the value element inside the container
        scope: ``"row"`` for the collapsed summary row, ``"detail"`` for the
            expanded panel that follows it
    """
    name: str
    address: str
    value_selector: str
    scope: str = ROW_SCOPE

    def to_js(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "address": self.address,
            "valueSelector": self.value_selector,
            "scope": self.scope,
        }


def derive_floor(address: Optional[str]) -> Optional[str]:
    """
    Pull the floor number out of a unit address.

    Args:
        address: Full address text, e.g. ``"#07-12, Example Rd"``

    Returns:
        The floor digits as written (``"07"``), or None if there is no unit
        marker
    """
    if not address:
        return None
    match = FLOOR_PATTERN.search(address)
    return match.group(1) if match else None


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()


def parse_row(raw: Mapping[str, Any], fields: Sequence[FieldSpec]) -> TransactionRecord:
    """
    Build one transaction record from raw cell values.

    Only configured fields are kept. A field whose value is missing from
    ``raw`` (or is None) is omitted. ``floor`` is derived from ``address``
    and is never present without it.
    """
    record: TransactionRecord = {}
    for spec in fields:
        value = _clean(raw.get(spec.name))
        if value is not None:
            record[spec.name] = value

    floor = derive_floor(record.get("address"))
    if floor is not None:
        record["floor"] = floor

    return record


def parse_rows(raw_rows: Any, fields: Sequence[FieldSpec]) -> List[TransactionRecord]:
    """
    Build transaction records for every row on the current page.

    Args:
        raw_rows: Result of the in-page extraction script, one mapping per
            collapsed row in DOM order
        fields: Field layout of the table

    Returns:
        Records in row order

    Raises:
        ExtractionError: If the script returned something that is not a list
    """
    if raw_rows is None:
        return []
    if not isinstance(raw_rows, list):
        raise ExtractionError(
            f"Row extraction returned {type(raw_rows).__name__}, expected a list"
        )

    records = []
    for index, raw in enumerate(raw_rows):
        if not isinstance(raw, Mapping):
            # Keep row positions stable: an unreadable row becomes an empty record.
            logger.debug(f"Row {index} is not a mapping ({type(raw).__name__}), keeping it empty")
            records.append({})
            continue
        records.append(parse_row(raw, fields))
    return records
