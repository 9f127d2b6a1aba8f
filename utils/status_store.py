import os
import json
import fcntl
import hashlib
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional

import logging

from models.document import EnrichedDocument, UploadState

logger = logging.getLogger("api.state")


def _state_dir() -> Path:
	return Path(os.getenv("STATE_DIR", "state")).resolve() / "uploads"


def _user_key(email: str) -> str:
	# Keep addresses out of file names
	return hashlib.sha256(email.strip().lower().encode("utf-8")).hexdigest()[:32]


def _state_file(email: str) -> Path:
	directory = _state_dir()
	directory.mkdir(parents=True, exist_ok=True)
	return directory / f"{_user_key(email)}.json"


def _load(path: Path) -> Dict:
	if not path.exists():
		return {}
	with open(path, "r", encoding="utf-8") as f:
		fcntl.flock(f.fileno(), fcntl.LOCK_SH)
		raw = f.read()
		fcntl.flock(f.fileno(), fcntl.LOCK_UN)
	if not raw.strip():
		return {}
	try:
		return json.loads(raw)
	except json.JSONDecodeError:
		logger.warning("state_file_corrupt", extra={"path": str(path)})
		return {}


def _update(email: str, key: str, value) -> None:
	path = _state_file(email)
	with open(path, "a+", encoding="utf-8") as f:
		fcntl.flock(f.fileno(), fcntl.LOCK_EX)
		f.seek(0)
		raw = f.read()
		try:
			current = json.loads(raw) if raw.strip() else {}
		except json.JSONDecodeError:
			current = {}
		current[key] = value
		f.seek(0)
		f.truncate(0)
		f.write(json.dumps(current, ensure_ascii=False, default=str))
		fcntl.flock(f.fileno(), fcntl.LOCK_UN)


def get_upload_state(email: str) -> UploadState:
	data = _load(_state_file(email)).get("upload")
	if not data:
		return UploadState()
	return UploadState.model_validate(data)


def set_upload_state(email: str, status: str, message: str, file_name: Optional[str] = None, enriched_url: Optional[str] = None) -> UploadState:
	state = UploadState(
		status=status,
		message=message,
		file_name=file_name,
		enriched_url=enriched_url,
		updated_at=datetime.utcnow(),
	)
	_update(email, "upload", state.model_dump(mode="json"))
	return state


def get_enriched_documents(email: str) -> Optional[List[EnrichedDocument]]:
	"""Return cached documents, or None when nothing has been loaded yet."""
	items = _load(_state_file(email)).get("enriched")
	if items is None:
		return None
	return [EnrichedDocument.model_validate(item) for item in items]


def set_enriched_documents(email: str, documents: List[EnrichedDocument]) -> None:
	_update(email, "enriched", [doc.model_dump(mode="json") for doc in documents])
