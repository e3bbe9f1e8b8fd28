from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Iterable, Optional, Protocol

from .errors import StockAssetError

logger = logging.getLogger(__name__)


class StockAssetPicker(Protocol):
    def pick(self) -> Path: ...


class DirectoryStockAssetPicker:
    """Picks a random image file from a local directory."""

    def __init__(
        self,
        directory: Path,
        extensions: Iterable[str] = (".jpg", ".jpeg", ".png"),
        rng: Optional[random.Random] = None,
    ) -> None:
        self.directory = Path(directory)
        self.extensions = {ext.lower() for ext in extensions}
        self._rng = rng or random.Random()

    def candidates(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        return sorted(
            path for path in self.directory.iterdir() if path.is_file() and path.suffix.lower() in self.extensions
        )

    def pick(self) -> Path:
        """
        Raises:
            StockAssetError: If the directory holds no usable image
        """
        images = self.candidates()
        if not images:
            raise StockAssetError("No stock photos available", {"directory": str(self.directory)})
        choice = self._rng.choice(images)
        logger.debug(f"Picked stock photo {choice.name}")
        return choice
