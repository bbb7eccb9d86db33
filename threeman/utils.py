"""Time and JSON file helpers shared by the store, config and CLI."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

T = TypeVar('T', bound=BaseModel)
logger = logging.getLogger('threeman.utils')


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def load_json(path: Path | str, schema: type[T] | None = None) -> Any | T:
    """
    Read a JSON document, optionally validating it into a pydantic model.

    Args:
        path: File to read
        schema: Model class to validate the parsed document against

    Returns:
        The parsed document, or a schema instance when schema is given

    Raises:
        FileNotFoundError: If path does not exist
        json.JSONDecodeError: If the file is not valid JSON
        ValueError: If the document does not match schema
    """
    path = Path(path)
    if not path.exists():
        logger.error(f'Missing JSON file: {path}')
        raise FileNotFoundError(f'File not found: {path}')

    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        logger.error(f'{path} is not valid JSON (line {e.lineno}, col {e.colno}): {e.msg}')
        raise

    if schema is None:
        return data

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        logger.error(f'{path} failed {schema.__name__} validation: {e.error_count()} errors')
        raise ValueError(f'{path} does not match {schema.__name__}:\n{e}') from e


def save_json(path: Path | str, data: Any, indent: int = 2) -> None:
    """
    Write data (a pydantic model or plain JSON value) to path.

    The document goes to a sibling .tmp file that is then renamed over path, so
    readers never see a half-written store.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = data.model_dump(mode='json') if isinstance(data, BaseModel) else data
    tmp_path = path.with_name(f'{path.name}.tmp')
    try:
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=indent, ensure_ascii=False)
    except (TypeError, OSError) as e:
        logger.error(f'Could not write {path}: {e}')
        tmp_path.unlink(missing_ok=True)
        raise
    tmp_path.replace(path)
    logger.debug(f'Wrote {path}')
