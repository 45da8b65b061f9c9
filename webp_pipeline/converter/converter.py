"""Offline batch conversion of a source directory to WebP."""

import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

from tqdm import tqdm

from ..config import ConverterConfig
from ..core.models import ConversionRecord, ConversionReport, ConversionResult
from ..core.naming import output_name
from ..storage.ledger import ConversionLedger
from .encoder import ConversionError, encode_webp, fit_to_size
from .scanner import SourceScanner

logger = logging.getLogger(__name__)


class WebPConverter:
    """Converts every eligible image of the configured source directory."""

    def __init__(
        self,
        config: ConverterConfig,
        ledger: Optional[ConversionLedger] = None,
    ):
        """Initialize the converter.

        Args:
            config: Converter settings
            ledger: Optional ledger receiving one record per converted file
        """
        self.config = config
        self.ledger = ledger
        self.scanner = SourceScanner(config.extensions, config.skip_files)

    def output_path(self, source: Path) -> Path:
        """Where the WebP counterpart of a source file is written."""
        source = Path(source)
        if self.config.recursive:
            try:
                relative = source.parent.relative_to(self.config.source_dir)
            except ValueError:
                relative = Path()
            return self.config.output_dir / relative / output_name(source.name)
        return self.config.output_dir / output_name(source.name)

    def plan(self) -> tuple[list[Path], list[Path]]:
        """List the files a run would convert.

        Returns:
            Tuple of (eligible files, skip-listed files)
        """
        return self.scanner.scan(
            self.config.source_dir,
            recursive=self.config.recursive,
            exclude=[self.config.output_dir],
        )

    def convert_file(self, source: str | Path) -> ConversionResult:
        """Convert one file. Failures are returned in the result, not raised."""
        source = Path(source)
        result = ConversionResult(source=source, quality=self.config.quality)
        try:
            result.original_size = source.stat().st_size
            data = encode_webp(
                source,
                quality=self.config.quality,
                method=self.config.method,
                max_dimension=self.config.max_dimension,
            )
            output = self.output_path(source)
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_bytes(data)
        except (ConversionError, OSError) as e:
            result.error = str(e)
            logger.warning("Failed to convert %s: %s", source, e)
            return result

        result.output = output
        result.webp_size = len(data)

        if self.config.mirror_to_source:
            self._mirror(source, output)

        if self.ledger is not None:
            self.ledger.add_record(ConversionRecord.from_result(result))

        return result

    def _mirror(self, source: Path, output: Path) -> None:
        """Copy the output next to its source (``dir/name.ext`` -> ``dir/name.webp``)."""
        mirrored = source.with_name(output.name)
        if mirrored.resolve() == output.resolve():
            return
        try:
            shutil.copyfile(output, mirrored)
        except OSError as e:
            logger.warning("Could not copy %s next to its source: %s", output.name, e)

    def convert_all(
        self,
        progress: bool = False,
        on_result: Optional[Callable[[ConversionResult], None]] = None,
    ) -> ConversionReport:
        """Convert every eligible file; one failure never stops the batch.

        Args:
            progress: Show a tqdm progress bar
            on_result: Called after each file with its result

        Returns:
            ConversionReport; byte totals only count successful conversions
        """
        report = ConversionReport()
        eligible, skipped = self.plan()
        report.skipped = skipped

        for source in tqdm(eligible, desc="Converting", disable=not progress):
            result = self.convert_file(source)
            if result.ok:
                report.converted.append(result)
            else:
                report.failed.append(result)
            if on_result is not None:
                on_result(result)

        return report

    def optimize_to_target(
        self,
        target: str | Path,
        target_bytes: int,
        start_quality: int = 75,
        min_quality: int = 30,
        step: int = 10,
    ) -> ConversionResult:
        """Re-encode one file in place until it fits under a byte ceiling.

        The file is backed up first and restored if anything goes wrong. It is
        only overwritten when the new encoding is smaller. The result's
        ``error`` mentions a missed target even when the file shrank.
        """
        target = Path(target)
        result = ConversionResult(source=target)
        if not target.is_file():
            result.error = f"File not found: {target}"
            return result

        original_size = target.stat().st_size
        result.original_size = original_size
        backup = target.with_name(target.name + ".backup")
        shutil.copyfile(target, backup)

        try:
            fit = fit_to_size(
                backup,
                target_bytes,
                start_quality=start_quality,
                min_quality=min_quality,
                step=step,
                method=self.config.method,
                max_dimension=self.config.max_dimension,
            )
            output = target.with_suffix(".webp")
            if fit.size < original_size or output != target:
                output.write_bytes(fit.data)
                result.webp_size = fit.size
            else:
                output = target
                result.webp_size = original_size
            result.output = output
            result.quality = fit.quality
            if not fit.met_target:
                result.error = (
                    f"Target of {target_bytes} bytes not met "
                    f"(smallest at quality {fit.quality}: {fit.size} bytes)"
                )
        except (ConversionError, OSError) as e:
            shutil.copyfile(backup, target)
            result.error = str(e)
            logger.warning("Optimization of %s failed, restored backup: %s", target, e)
        finally:
            backup.unlink(missing_ok=True)

        if result.output is not None and self.ledger is not None and result.webp_size:
            self.ledger.add_record(ConversionRecord.from_result(result))

        return result
