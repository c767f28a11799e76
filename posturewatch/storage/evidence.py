from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

EVIDENCE_DIR = Path(__file__).resolve().parent.parent / "data" / "evidence"


def _ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _timestamp(ts: Optional[float] = None) -> str:
    moment = datetime.fromtimestamp(ts, timezone.utc) if ts is not None else datetime.now(timezone.utc)
    return moment.strftime("%Y%m%dT%H%M%S%fZ")


def save_evidence_image(
    image: bytes,
    reasons: Iterable[str],
    captured_at: Optional[float] = None,
    root: Optional[Path] = None,
) -> Path:
    """Persist a captured JPEG next to a small JSON descriptor."""
    root = root or EVIDENCE_DIR
    _ensure_dir(root)
    reason_list = sorted(reasons)
    slug = "_".join(reason_list) or "bad_posture"
    stem = f"{_timestamp(captured_at)}_{slug}"
    path = root / f"{stem}.jpg"
    path.write_bytes(image)
    meta = {
        "image": path.name,
        "reasons": reason_list,
        "captured_at_utc": datetime.fromtimestamp(captured_at, timezone.utc).isoformat()
        if captured_at is not None
        else datetime.now(timezone.utc).isoformat(),
    }
    (root / f"{stem}.json").write_text(json.dumps(meta, indent=2), encoding="utf-8")
    logger.info("Saved posture evidence to {}", path)
    return path


def list_evidence(root: Optional[Path] = None) -> list[dict]:
    root = root or EVIDENCE_DIR
    if not root.exists():
        return []
    items = []
    for meta_path in sorted(root.glob("*.json")):
        try:
            items.append(json.loads(meta_path.read_text(encoding="utf-8")))
        except Exception:
            logger.warning("Failed to read evidence descriptor {}", meta_path)
    return items
