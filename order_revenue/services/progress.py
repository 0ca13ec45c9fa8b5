from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from tqdm import tqdm

"""Upload progress display with tqdm (TTY only).

Outside a terminal (CI, redirected output) no bar is created, so logs stay free
of control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """One progress bar over the uploaded files.

    Use as a context manager; the bar is closed on exit.
    """

    def __init__(self, total_files: int, *, description: str = "Uploading files") -> None:
        self.total_files = total_files
        self.description = description
        self.current_file = 0
        self.failed_files = 0
        self.enabled = is_tty_enabled()
        self.pbar: tqdm[Any] | None = None
        if self.enabled:
            self.pbar = tqdm(
                total=total_files,
                desc=description,
                unit="file",
                leave=True,
                ncols=80,
                ascii=True,
            )

    def start_file(self, file_path: Path) -> None:
        self.current_file += 1
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({file_path.name})")

    def finish_file(self, success: bool = True) -> None:
        """Advance the bar and mark the last file with ✓ or ✗."""
        if not success:
            self.failed_files += 1
        if self.pbar is not None:
            status = "✓" if success else "✗"
            self.pbar.update(1)
            self.pbar.set_description(f"{self.description} {status}")

    def set_postfix(self, **kwargs: Any) -> None:
        if self.pbar is not None:
            self.pbar.set_postfix(**kwargs)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
