"""JSON artifacts written after a crawl."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Sequence, Union

from .models import BatchOutcome, utc_timestamp

logger = logging.getLogger(__name__)

BATCH_FILE_TEMPLATE = "bulk-crawl-{session_id}.json"


def write_json(path: Union[str, Path], payload: Any) -> Path:
    """Write ``payload`` as indented UTF-8 JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    logger.info(f"Data saved to {path}")
    return path


def batch_payload(
    session_id: str,
    total_urls: int,
    outcomes: Sequence[BatchOutcome]
) -> Dict[str, Any]:
    return {
        "sessionId": session_id,
        "crawledAt": utc_timestamp(),
        "totalUrls": total_urls,
        "results": [outcome.to_dict() for outcome in outcomes],
    }


def save_batch_results(
    session_id: str,
    total_urls: int,
    outcomes: Sequence[BatchOutcome],
    output_dir: Union[str, Path] = "output"
) -> Path:
    """
    Persist a finished batch as ``bulk-crawl-<session_id>.json``.

    Args:
        session_id: Id of the crawl session
        total_urls: Number of URLs requested
        outcomes: Per-URL outcomes in input order
        output_dir: Directory for the artifact

    Returns:
        Path of the written file
    """
    path = Path(output_dir) / BATCH_FILE_TEMPLATE.format(session_id=session_id)
    return write_json(path, batch_payload(session_id, total_urls, outcomes))
