"""Locating and decompressing FAERS quarterly ASCII archives."""
import logging
import re
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import List

from tqdm import tqdm

from ..config import ARCHIVE_PATTERN


class ArchiveExtractor:
    """Unpacks FAERS ASCII archives into one flat folder of .txt tables."""

    def __init__(self, working_dir: Path):
        self.working_dir = Path(working_dir)
        self.logger = logging.getLogger(__name__)

    def find_archives(self) -> List[Path]:
        """Return archives in the working directory named like faers_ascii_2015q1.zip."""
        pattern = re.compile(ARCHIVE_PATTERN, re.IGNORECASE)
        archives = sorted(
            f for f in self.working_dir.iterdir()
            if f.is_file() and pattern.search(f.name)
        )
        if archives:
            self.logger.info(f"Found {len(archives)} archives: {[a.name for a in archives]}")
        else:
            self.logger.warning(f"No valid .zip files found in {self.working_dir}")
        return archives

    def extract_file(self, zip_path: Path, extract_path: Path) -> None:
        """Extract one archive with a progress bar."""
        try:
            with zipfile.ZipFile(zip_path, 'r') as zip_ref:
                total_size = sum(info.file_size for info in zip_ref.filelist)
                with tqdm(total=total_size, unit='iB', unit_scale=True, desc=zip_path.name) as pbar:
                    for info in zip_ref.filelist:
                        zip_ref.extract(info, extract_path)
                        pbar.update(info.file_size)
        except Exception as e:
            self.logger.error(f"Error extracting {zip_path}: {str(e)}")
            raise

    def extract_all(self, ascii_dir: Path) -> List[Path]:
        """Extract every archive and copy its .txt tables flat into ascii_dir.

        Archives nest their tables in folders (ascii/, ASCII/ ...); only the
        file names are kept, so a later archive overwrites an earlier file
        with the same name.

        Returns:
            Paths of the copied files in ascii_dir
        """
        ascii_dir = Path(ascii_dir)
        ascii_dir.mkdir(parents=True, exist_ok=True)
        copied = {}

        with tempfile.TemporaryDirectory(prefix='faers_unzip_') as staging:
            for archive in self.find_archives():
                self.logger.info(f"Extracting: {archive.name}")
                self.extract_file(archive, Path(staging))

            for txt_file in sorted(Path(staging).rglob('*')):
                if txt_file.is_file() and txt_file.suffix.lower() == '.txt':
                    destination = ascii_dir / txt_file.name
                    shutil.copyfile(txt_file, destination)
                    copied[destination.name] = destination

        self.logger.info(f"Extraction complete. {len(copied)} files are now in: {ascii_dir}")
        return sorted(copied.values())
