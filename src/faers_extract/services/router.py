"""Sorting decompressed FAERS tables into per-category partitions."""
import logging
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..config import CATEGORY_MARKERS


class CategoryRouter:
    """Moves each file into the partition of the first marker its name contains."""

    def __init__(self, partitions: Dict[str, Path]):
        """
        Args:
            partitions: Mapping of category marker (DEMO, REAC, DRUG, INDI) to directory
        """
        self.partitions = {category: Path(path) for category, path in partitions.items()}
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def classify(file_path: Path) -> Optional[str]:
        """Return the category of a file, or None if it matches no marker."""
        name = Path(file_path).name.upper()
        for marker in CATEGORY_MARKERS:
            if marker in name:
                return marker
        return None

    def route(self, files: Iterable[Path]) -> Dict[str, List[Path]]:
        routed: Dict[str, List[Path]] = {category: [] for category in self.partitions}
        ignored = []

        for file_path in files:
            file_path = Path(file_path)
            category = self.classify(file_path)
            if category is None or category not in self.partitions:
                ignored.append(file_path.name)
                continue

            target_dir = self.partitions[category]
            target_dir.mkdir(parents=True, exist_ok=True)
            destination = target_dir / file_path.name
            if file_path.resolve() != destination.resolve():
                # Existing files of the same name are replaced
                shutil.move(str(file_path), str(destination))
            routed[category].append(destination)

        for category, paths in routed.items():
            self.logger.info(f"{category}: {len(paths)} files routed to {self.partitions[category]}")
        if ignored:
            self.logger.debug(f"Left {len(ignored)} unclassified files in place: {ignored}")

        return routed
