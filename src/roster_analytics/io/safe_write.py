#!/usr/bin/env python3
"""
Safe Write Operations with Atomic Writes and Checksums

Writes computed dataset results to a temporary file first, computes a
checksum, and then atomically renames it to the final destination.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from roster_analytics.utils.json_safety import to_json_safe
from roster_analytics.utils.logger import get_logger


def compute_file_checksum(file_path: Path, algorithm: str = 'md5') -> str:
    """
    Compute checksum for a file.

    Args:
        file_path: Path to the file
        algorithm: Hash algorithm ('md5', 'sha1', 'sha256')

    Returns:
        Hexadecimal checksum string
    """
    hash_obj = hashlib.new(algorithm)

    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(4096), b""):
            hash_obj.update(chunk)

    return hash_obj.hexdigest()


def safe_write_json(data: Any, path: Union[str, Path],
                    logger: Optional[logging.Logger] = None) -> Dict[str, Union[str, int, Path]]:
    """
    Safely write JSON data with atomic operation and checksum.

    Args:
        data: Engine result, dataclass tree, dictionary or list
        path: Destination file path
        logger: Optional logger instance

    Returns:
        Dictionary with path, checksum, and size information

    Raises:
        OSError: If the write or rename fails
    """
    if logger is None:
        logger = get_logger(__name__)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    # Temporary file lives in the destination directory so rename stays atomic
    temp_path = path.with_suffix('.tmp')

    try:
        logger.info(f"Writing JSON to temporary file: {temp_path}")

        with open(temp_path, 'w', encoding='utf-8') as f:
            json.dump(to_json_safe(data), f, indent=2, ensure_ascii=False)

        checksum = compute_file_checksum(temp_path)
        size_bytes = temp_path.stat().st_size

        temp_path.replace(path)

        logger.info(f"Successfully wrote JSON: {path} ({size_bytes:,} bytes, MD5: {checksum})")

        return {
            "path": path,
            "checksum": checksum,
            "size_bytes": size_bytes,
            "format": "json"
        }

    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        logger.error(f"Failed to write JSON to {path}: {e}")
        raise
