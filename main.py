"""
Ponto de entrada: pré-visualização PNG calibrada e pontuação de complexidade de um DXF.

Uso:
    python main.py <dxf_file> [--output PNG] [--metrics JSON] [--config JSON]

Exemplos:
    python main.py "NR120184.dxf"                               # PNG ao lado do DXF
    python main.py "NR120184.dxf" --metrics NR120184.metrics.json
    python main.py "NR120184.dxf" --config appsettings.json --timeout 30
"""

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional, Tuple

# Garantir saída Unicode em consoles Windows
if sys.stdout.encoding and sys.stdout.encoding.lower() not in ('utf-8', 'utf8'):
    sys.stdout.reconfigure(encoding='utf-8', errors='replace')
if sys.stderr.encoding and sys.stderr.encoding.lower() not in ('utf-8', 'utf8'):
    sys.stderr.reconfigure(encoding='utf-8', errors='replace')

from dxf_analysis.batch import render_dxf_file
from dxf_analysis.config import AnalysisConfig, load_config
from dxf_analysis.errors import DXFLoadError, RenderCancelled, RenderError
from dxf_analysis.logging_config import LogContext, log_timing, setup_logging
from dxf_analysis.models import DXFMetrics
from dxf_analysis.rendering.image import DXFRenderedImage
from dxf_analysis.scoring.scorer import ComplexityScoreResult

logger = logging.getLogger("dxf_analysis.main")


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def run_analysis(
    dxf_path: str,
    output_png: Optional[str] = None,
    metrics_path: Optional[str] = None,
    config: Optional[AnalysisConfig] = None,
    watermark: bool = True,
    timeout_seconds: Optional[float] = None,
) -> Tuple[DXFRenderedImage, Optional[ComplexityScoreResult]]:
    """Pipeline completo: DXF → PNG calibrado (+ pontuação).

    Passos:
      1. Leitura das métricas (opcional) e cálculo da pontuação.
      2. Leitura do DXF.
      3. Renderização calibrada com prazo de cancelamento.
      4. Gravação do PNG.

    Args:
        dxf_path: caminho do arquivo DXF.
        output_png: caminho do PNG de saída; quando omitido, grava
            ``<nome>.png`` em ``config.output_image_folder`` ou ao lado do DXF.
        metrics_path: JSON de métricas extraídas (opcional).
        config: configuração de análise.
        watermark: desenhar nome e pontuação no canto.
        timeout_seconds: prazo da renderização (padrão: da configuração).

    Returns:
        (imagem renderizada, resultado da pontuação ou None)

    Raises:
        DXFLoadError, RenderError, RenderCancelled, ValueError, OSError
    """
    config = config or AnalysisConfig()

    metrics = DXFMetrics.load(metrics_path) if metrics_path else None

    with log_timing(logger, "Análise de %s" % Path(dxf_path).name):
        image, score = render_dxf_file(dxf_path, config, metrics, watermark, timeout_seconds)

    if output_png:
        target = Path(output_png)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(image.data)
        image.local_path = target
        logger.info("Imagem salva em %s (%d bytes)", target, image.length)
    else:
        image.save(config.output_image_folder or Path(dxf_path).parent)

    return image, score


def _print_report(image: DXFRenderedImage, score: Optional[ComplexityScoreResult]) -> None:
    print(f"Arquivo:    {image.original_file_name}")
    print(f"Imagem:     {image.local_path}")
    print(f"Dimensões:  {image.width_px}x{image.height_px} px")
    print(f"DPI:        {image.dpi:.2f}")
    print(f"SHA-256:    {image.sha256}")
    if score is not None:
        print(f"Pontuação:  {score.score:.2f}")
        for line in score.explanations:
            print(f"  - {line}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Pré-visualização calibrada e pontuação de complexidade de facas DXF.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "dxf_file",
        help="Caminho do arquivo DXF de entrada.",
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Caminho do PNG de saída (padrão: <nome>.png ao lado do DXF).",
    )
    parser.add_argument(
        "--metrics", "-m",
        default=None,
        help="JSON com as métricas extraídas do DXF; habilita a pontuação.",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Arquivo de configuração (.dxfanalysis.json ou appsettings.json).",
    )
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=None,
        help="Tempo limite da renderização em segundos (padrão: da configuração; 0 desativa).",
    )
    parser.add_argument(
        "--no-watermark",
        action="store_true",
        dest="no_watermark",
        help="Não desenhar nome e pontuação na imagem.",
    )
    parser.add_argument(
        "--json-log",
        default=None,
        dest="json_log",
        help="Gravar log estruturado (uma linha JSON por registro) neste arquivo.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log detalhado (DEBUG).",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = _parse_args(argv)

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_file=args.json_log,
    )

    try:
        config = load_config(dxf_path=args.dxf_file, explicit_config=args.config)
        with LogContext(analysis_id=uuid.uuid4().hex[:12], file=Path(args.dxf_file).name):
            image, score = run_analysis(
                args.dxf_file,
                output_png=args.output,
                metrics_path=args.metrics,
                config=config,
                watermark=not args.no_watermark,
                timeout_seconds=args.timeout,
            )
    except DXFLoadError as exc:
        logger.critical("Erro ao carregar DXF: %s", exc)
        sys.exit(1)
    except RenderCancelled as exc:
        logger.critical("Renderização cancelada: %s", exc)
        sys.exit(1)
    except RenderError as exc:
        logger.critical("Erro de renderização: %s", exc)
        sys.exit(1)
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        logger.critical("Erro nas métricas ou na configuração: %s", exc)
        sys.exit(1)
    except Exception as exc:
        logger.critical("Erro inesperado: %s", exc, exc_info=True)
        sys.exit(2)

    _print_report(image, score)


if __name__ == "__main__":
    main()
