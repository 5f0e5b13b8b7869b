import os
import uuid
from pathlib import Path

from fastapi import UploadFile

from app.core.config import Settings
from app.core.errors import ResourceTooLarge

CHUNK_SIZE = 1024 * 1024


def ensure_upload_dir(settings: Settings) -> Path:
    root = Path(settings.upload_dir)
    root.mkdir(parents=True, exist_ok=True)
    return root


async def save_upload_file(file: UploadFile, settings: Settings) -> str:
    """Spool an upload to disk so a background job can read it after the request ends."""
    max_bytes = settings.max_upload_bytes
    if file.size is not None and file.size > max_bytes:
        raise ResourceTooLarge("FILE_TOO_LARGE", f"file exceeds {max_bytes} byte limit")

    ext = Path(file.filename or "").suffix.lower()
    root = ensure_upload_dir(settings)
    final_path = root / f"{uuid.uuid4()}{ext}"

    total = 0
    with final_path.open("wb") as handle:
        while True:
            chunk = await file.read(CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > max_bytes:
                handle.close()
                os.remove(final_path)
                raise ResourceTooLarge("FILE_TOO_LARGE", f"file exceeds {max_bytes} byte limit")
            handle.write(chunk)
    await file.close()
    return str(final_path)


def delete_file_if_exists(path: str) -> None:
    p = Path(path)
    if p.exists():
        p.unlink(missing_ok=True)
