"""
Сжатие и разжатие файлов на диске.
"""

import io
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from compressor import HuffmanDecoder, HuffmanEncoder
from format import calculate_crc32


COMPRESSED_SUFFIX = '.hf'
DECOMPRESSED_SUFFIX = '.uhf'


@dataclass
class FileReport:
    source: str
    target: str
    source_size: int
    target_size: int

    @property
    def ratio(self) -> float:
        return (self.target_size / self.source_size * 100) if self.source_size > 0 else 0.0


class FileCompressor:
    def __init__(self, debug: int = 0):
        self.encoder = HuffmanEncoder(debug)
        self.decoder = HuffmanDecoder(debug)

    def compress_file(self, source: str, target: Optional[str] = None) -> FileReport:
        if target is None:
            target = source + COMPRESSED_SUFFIX

        return self._process(source, target, self.encoder.compress)

    def decompress_file(self, source: str, target: Optional[str] = None) -> FileReport:
        if target is None:
            if source.endswith(COMPRESSED_SUFFIX):
                target = source[:-len(COMPRESSED_SUFFIX)] + DECOMPRESSED_SUFFIX
            else:
                target = source + DECOMPRESSED_SUFFIX

        return self._process(source, target, self.decoder.decompress)

    def verify_file(self, source: str) -> bool:
        if not os.path.isfile(source):
            raise FileNotFoundError(f"{source} not found")

        with open(source, 'rb') as f:
            data = f.read()

        compressed = io.BytesIO()
        self.encoder.compress(io.BytesIO(data), compressed)

        compressed.seek(0)
        restored = io.BytesIO()
        self.decoder.decompress(compressed, restored)

        restored_data = restored.getvalue()
        if len(restored_data) != len(data):
            return False

        return calculate_crc32(restored_data) == calculate_crc32(data)

    def compress_files(self, sources: List[str], output_dir: Optional[str] = None) -> List[FileReport]:
        reports = []
        used_targets = set()

        for source in sources:
            if not os.path.isfile(source):
                print(f"Warning: {source} not found, skipping")
                continue

            target = None
            if output_dir is not None:
                os.makedirs(output_dir, exist_ok=True)
                target = os.path.join(output_dir, Path(source).name + COMPRESSED_SUFFIX)

                if target in used_targets:
                    print(f"Warning: {source} would overwrite {target}, skipping")
                    continue
                used_targets.add(target)

            print(f"Compressing {source}...", end=" ")
            report = self.compress_file(source, target)
            reports.append(report)
            print(f"OK ({report.ratio:.1f}%)")

        if not reports:
            print("No files compressed")
            return reports

        total_source = sum(r.source_size for r in reports)
        total_target = sum(r.target_size for r in reports)
        total_ratio = (total_target / total_source * 100) if total_source > 0 else 0.0
        print(f"Total: {total_source} -> {total_target} bytes ({total_ratio:.1f}%)")

        return reports

    def decompress_files(self, sources: List[str], output_dir: Optional[str] = None) -> List[FileReport]:
        reports = []
        used_targets = set()

        for source in sources:
            if not os.path.isfile(source):
                print(f"Warning: {source} not found, skipping")
                continue

            target = None
            if output_dir is not None:
                os.makedirs(output_dir, exist_ok=True)
                name = Path(source).name
                if name.endswith(COMPRESSED_SUFFIX):
                    name = name[:-len(COMPRESSED_SUFFIX)]
                target = os.path.join(output_dir, name + DECOMPRESSED_SUFFIX)

                if target in used_targets:
                    print(f"Warning: {source} would overwrite {target}, skipping")
                    continue
                used_targets.add(target)

            print(f"Decompressing {source}...", end=" ")
            report = self.decompress_file(source, target)
            reports.append(report)
            print("OK")

        return reports

    def _process(self, source: str, target: str, operation) -> FileReport:
        if not os.path.isfile(source):
            raise FileNotFoundError(f"{source} not found")

        if os.path.abspath(source) == os.path.abspath(target) or (
                os.path.exists(target) and os.path.samefile(source, target)):
            raise ValueError(f"{target} would overwrite its own source")

        try:
            with open(source, 'rb') as src, open(target, 'wb') as dst:
                operation(src, dst)
        except Exception:
            if os.path.exists(target):
                os.remove(target)
            raise

        return FileReport(
            source=source,
            target=target,
            source_size=os.path.getsize(source),
            target_size=os.path.getsize(target)
        )
