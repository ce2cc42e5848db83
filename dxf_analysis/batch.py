"""
Batch rendering of DXF folders into PNG previews.

Provides:
- Folder discovery of ``*.dxf`` / ``*.DXF`` files
- Optional scoring from a ``<stem>.metrics.json`` file next to each drawing
- Sequential or thread-pool processing with a per-file render timeout
- Summary reporting; one file's failure never aborts the batch

Usage:
    from dxf_analysis.batch import batch_render

    results = batch_render(
        input_dir="./facas",
        output_dir="./previews",
        parallel=True,
    )
    print(results.summary())
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from dxf_analysis.config import AnalysisConfig, load_config
from dxf_analysis.errors import DXFAnalysisError
from dxf_analysis.io.dxf_loader import load_dxf
from dxf_analysis.models import DXFMetrics
from dxf_analysis.rendering.cancellation import CancellationToken
from dxf_analysis.rendering.image import DXFImageRenderer, DXFRenderedImage
from dxf_analysis.scoring.scorer import ComplexityScorer, ComplexityScoreResult

logger = logging.getLogger(__name__)

METRICS_SUFFIX = ".metrics.json"


@dataclass
class RenderJobResult:
    """Result of rendering a single file."""
    input_path: Path
    output_path: Optional[Path] = None
    score: Optional[float] = None
    width_px: int = 0
    height_px: int = 0
    success: bool = False
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def status(self) -> str:
        return "OK" if self.success else "FAILED"


@dataclass
class BatchResult:
    """Result of a batch render."""
    results: List[RenderJobResult] = field(default_factory=list)
    total_duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.total == 0:
            return 0.0
        return 100.0 * self.successful / self.total

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = [
            "Batch Render Summary",
            "=" * 40,
            f"Total files:     {self.total}",
            f"Successful:      {self.successful}",
            f"Failed:          {self.failed}",
            f"Success rate:    {self.success_rate:.1f}%",
            f"Total time:      {self.total_duration_seconds:.1f}s",
            "",
        ]

        if self.failed > 0:
            lines.append("Failed files:")
            for r in self.results:
                if not r.success:
                    lines.append(f"  - {r.input_path.name}: {r.error}")

        return "\n".join(lines)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'success_rate': self.success_rate,
            'total_duration_seconds': self.total_duration_seconds,
            'results': [
                {
                    'input': str(r.input_path),
                    'output': str(r.output_path) if r.output_path else None,
                    'score': r.score,
                    'width_px': r.width_px,
                    'height_px': r.height_px,
                    'success': r.success,
                    'error': r.error,
                    'duration': r.duration_seconds,
                }
                for r in self.results
            ],
        }


def find_dxf_files(
    input_dir: Union[str, Path],
    pattern: str = "*.dxf",
    recursive: bool = False,
) -> List[Path]:
    """Find DXF files in a directory (both extension cases).

    Raises:
        FileNotFoundError: If the directory does not exist
        NotADirectoryError: If the path is not a directory
    """
    input_dir = Path(input_dir)

    if not input_dir.exists():
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    if not input_dir.is_dir():
        raise NotADirectoryError(f"Not a directory: {input_dir}")

    search = input_dir.rglob if recursive else input_dir.glob
    files = list(search(pattern))
    files.extend(search(pattern.replace('.dxf', '.DXF')))
    files = sorted(set(files))

    logger.info("Found %d DXF files in %s", len(files), input_dir)
    return files


def metrics_path_for(dxf_path: Path, metrics_dir: Optional[Union[str, Path]] = None) -> Path:
    """``<stem>.metrics.json`` in ``metrics_dir`` (default: next to the drawing)."""
    folder = Path(metrics_dir) if metrics_dir else dxf_path.parent
    return folder / f"{dxf_path.stem}{METRICS_SUFFIX}"


def render_dxf_file(
    dxf_path: Union[str, Path],
    config: Optional[AnalysisConfig] = None,
    metrics: Optional[DXFMetrics] = None,
    watermark: bool = True,
    timeout_seconds: Optional[float] = None,
) -> Tuple[DXFRenderedImage, Optional[ComplexityScoreResult]]:
    """Load, optionally score, and render one DXF file.

    Args:
        dxf_path: Drawing to render
        config: Analysis configuration (defaults when None)
        metrics: Extracted metrics; when given the score is computed and
            stamped on the preview
        watermark: Draw the name/score label
        timeout_seconds: Render deadline; ``config.render_timeout_seconds``
            when None, no deadline when <= 0

    Returns:
        (rendered image, score result or None)

    Raises:
        DXFLoadError, RenderError, RenderCancelled
    """
    config = config or AnalysisConfig()
    document = load_dxf(dxf_path)

    score = None
    if metrics is not None:
        score = ComplexityScorer(config.scoring).compute(metrics)

    if timeout_seconds is None:
        timeout_seconds = config.render_timeout_seconds

    token = CancellationToken()
    timer = token.cancel_after(timeout_seconds) if timeout_seconds and timeout_seconds > 0 else None
    try:
        image = DXFImageRenderer(watermark=watermark).render(
            Path(dxf_path).name,
            document,
            score=score.score if score else None,
            cancellation=token,
        )
    finally:
        if timer is not None:
            timer.cancel()

    return image, score


def render_single_file(
    input_path: Path,
    output_dir: Path,
    config: Optional[AnalysisConfig] = None,
    metrics_dir: Optional[Union[str, Path]] = None,
    watermark: bool = True,
) -> RenderJobResult:
    """Render a single DXF into ``output_dir``, never raising."""
    start_time = time.perf_counter()
    result = RenderJobResult(input_path=input_path)

    try:
        metrics = None
        metrics_file = metrics_path_for(input_path, metrics_dir)
        if metrics_file.is_file():
            metrics = DXFMetrics.load(metrics_file)

        image, score = render_dxf_file(input_path, config, metrics, watermark)
        result.output_path = image.save(output_dir)
        result.score = score.score if score else None
        result.width_px = image.width_px
        result.height_px = image.height_px
        result.success = True

    except DXFAnalysisError as e:
        result.error = str(e)
        logger.error("Failed to render %s: %s", input_path.name, e)
    except Exception as e:
        result.error = f"{type(e).__name__}: {e}"
        logger.exception("Unexpected error rendering %s", input_path.name)

    result.duration_seconds = time.perf_counter() - start_time
    return result


def batch_render(
    input_dir: Union[str, Path],
    output_dir: Optional[Union[str, Path]] = None,
    metrics_dir: Optional[Union[str, Path]] = None,
    pattern: str = "*.dxf",
    recursive: bool = False,
    config: Optional[AnalysisConfig] = None,
    config_path: Optional[Union[str, Path]] = None,
    parallel: bool = False,
    max_workers: Optional[int] = None,
    watermark: bool = True,
    progress_callback: Optional[Callable[[int, int, RenderJobResult], None]] = None,
) -> BatchResult:
    """Render every DXF of a folder to PNG.

    Args:
        input_dir: Directory containing DXF files
        output_dir: Output directory (default: config.output_image_folder,
            then the input directory)
        metrics_dir: Where ``<stem>.metrics.json`` files live (default:
            next to each drawing)
        pattern: Glob pattern for DXF files
        recursive: Search subdirectories
        config: Analysis configuration
        config_path: Path to a .dxfanalysis.json / appsettings file
        parallel: Use a thread pool
        max_workers: Pool size (default: config.parallelism)
        watermark: Draw the name/score label
        progress_callback: Called after each file: (current, total, result)

    Returns:
        BatchResult with render statistics, ordered by input path
    """
    start_time = time.perf_counter()
    input_dir = Path(input_dir)

    if config is None:
        config = load_config(dxf_path=input_dir / "dummy.dxf", explicit_config=config_path)

    if output_dir is None:
        output_dir = config.output_image_folder or input_dir
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    dxf_files = find_dxf_files(input_dir, pattern, recursive)
    if not dxf_files:
        logger.warning("No DXF files found in %s", input_dir)
        return BatchResult(total_duration_seconds=time.perf_counter() - start_time)

    workers = max_workers or config.parallelism
    logger.info("Starting batch render: %d files, parallel=%s, workers=%d",
                len(dxf_files), parallel, workers if parallel else 1)

    results: List[RenderJobResult] = []

    def _record(i: int, result: RenderJobResult) -> None:
        results.append(result)
        if progress_callback:
            progress_callback(i, len(dxf_files), result)
        logger.info("[%d/%d] %s: %s (%.1fs)", i, len(dxf_files), result.input_path.name,
                    result.status, result.duration_seconds)

    if parallel:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(render_single_file, f, output_dir, config, metrics_dir, watermark)
                for f in dxf_files
            ]
            for i, future in enumerate(as_completed(futures), 1):
                _record(i, future.result())
    else:
        for i, dxf_file in enumerate(dxf_files, 1):
            _record(i, render_single_file(dxf_file, output_dir, config, metrics_dir, watermark))

    results.sort(key=lambda r: str(r.input_path))
    batch_result = BatchResult(
        results=results,
        total_duration_seconds=time.perf_counter() - start_time,
    )

    logger.info(
        "Batch render complete: %d/%d successful (%.1f%%) in %.1fs",
        batch_result.successful, batch_result.total,
        batch_result.success_rate, batch_result.total_duration_seconds
    )
    return batch_result


def batch_render_cli(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for folder mode."""
    import argparse

    from dxf_analysis.logging_config import configure_default_logging

    parser = argparse.ArgumentParser(description="Render a folder of DXF cutting dies to PNG previews")
    parser.add_argument("input_dir", help="Directory containing DXF files")
    parser.add_argument("-o", "--output", dest="output_dir", help="Output directory")
    parser.add_argument("-m", "--metrics-dir", dest="metrics_dir",
                        help="Directory with <stem>.metrics.json files (default: next to each DXF)")
    parser.add_argument("-p", "--pattern", default="*.dxf", help="File pattern (default: *.dxf)")
    parser.add_argument("-r", "--recursive", action="store_true", help="Search subdirectories")
    parser.add_argument("-c", "--config", dest="config_path", help="Path to a .dxfanalysis.json config file")
    parser.add_argument("--parallel", action="store_true", help="Use a thread pool")
    parser.add_argument("-j", "--jobs", type=int, dest="max_workers", help="Maximum parallel jobs")
    parser.add_argument("--no-watermark", action="store_true", help="Do not stamp name and score")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    configure_default_logging(verbose=args.verbose)

    try:
        result = batch_render(
            input_dir=args.input_dir,
            output_dir=args.output_dir,
            metrics_dir=args.metrics_dir,
            pattern=args.pattern,
            recursive=args.recursive,
            config_path=args.config_path,
            parallel=args.parallel,
            max_workers=args.max_workers,
            watermark=not args.no_watermark,
        )
    except (FileNotFoundError, NotADirectoryError) as e:
        logger.error("Batch render failed: %s", e)
        return 1

    print("\n" + result.summary())
    return 0 if result.failed == 0 else 1


if __name__ == "__main__":
    import sys
    sys.exit(batch_render_cli())
