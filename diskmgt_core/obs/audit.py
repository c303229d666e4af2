from __future__ import annotations
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import hashlib
from ..utils.paths import log_subdir

"""
Audit trail for registry mutations (register/edit/remove).
One JSON line per change in <log_dir>/audit/YYYY/MM/DD/<tool>.jsonl.
Each line hashes the previous line's hash plus its own content, so a line
removed or edited by hand breaks the chain from that point on.
Edits record the value before and after the change.
"""


def audit_path(tool: str, when: Optional[datetime] = None) -> str:
    when = when or datetime.now(timezone.utc)
    base_dir = log_subdir("audit", when.strftime("%Y"), when.strftime("%m"), when.strftime("%d"))
    return os.path.join(base_dir, f"{tool}.jsonl")


def _last_hash(path: str) -> str | None:
    if not os.path.exists(path):
        return None
    try:
        with open(path, "rb") as f:
            last = None
            for line in f:
                if line.strip():
                    last = line
        if last:
            return json.loads(last.decode("utf-8")).get("hash")
    except (OSError, ValueError):
        return None
    return None


def _chain_hash(prev_hash: str | None, rec: Dict[str, Any]) -> str:
    # Stable serialization of everything except 'hash'/'chain'
    ser = json.dumps(rec, sort_keys=True, ensure_ascii=False, default=str).encode("utf-8")
    h = hashlib.sha256()
    if prev_hash:
        h.update(prev_hash.encode("utf-8"))
    h.update(ser)
    return h.hexdigest()


def write_audit(tool: str, mode: str, request_id: str, ok: bool, summary: str = "", **extra: Any) -> str:
    """
    Append one audit line and return the file it went to.

    request_id is the drive uuid for registry changes.
    """
    now = datetime.now(timezone.utc)
    path = audit_path(tool, now)
    rec: Dict[str, Any] = {
        "ts": now.isoformat(),
        "tool": tool,
        "mode": mode,
        "request_id": request_id,
        "ok": ok,
        "summary": summary,
    }
    rec.update(extra or {})
    rec["prev_hash"] = _last_hash(path)
    rec["hash"] = _chain_hash(rec["prev_hash"], rec)
    rec["chain"] = "sha256"
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(rec, ensure_ascii=False, default=str) + "\n")
    return path
