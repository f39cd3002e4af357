"""
Sample directory scanning.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ('jpg', 'png', 'ppm')


def list_files(directory: Union[str, Path], extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> List[Path]:
    """
    List the files of one directory whose extension is in extensions.

    Sub-directories are not descended into. Extension matching ignores case
    and a leading dot.

    Args:
        directory: Directory to scan
        extensions: Accepted file extensions

    Returns:
        Sorted list of matching file paths; empty if the directory does not exist
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.error(f"Error opening directory '{directory}'")
        return []

    wanted = {ext.lower().lstrip('.') for ext in extensions}
    files = []
    for entry in sorted(directory.iterdir()):
        if not entry.is_file():
            continue
        if entry.suffix.lower().lstrip('.') in wanted:
            files.append(entry)
        else:
            logger.debug(f"Found file does not match required file type, skipping: '{entry.name}'")

    logger.info(f"Found {len(files)} sample files in {directory}")
    return files
