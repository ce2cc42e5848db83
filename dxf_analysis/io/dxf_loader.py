"""
Leitura de arquivos DXF.

Única responsabilidade: abrir o arquivo com ezdxf e devolver o documento,
recorrendo ao modo de recuperação quando a estrutura estiver danificada.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import ezdxf
from ezdxf import recover

from dxf_analysis.errors import DXFLoadError

logger = logging.getLogger(__name__)


@dataclass
class DXFInfo:
    """Metadata about a loaded DXF file."""
    filepath: str
    dxf_version: str
    file_size_bytes: int
    entity_count: int
    recovered: bool = False
    audit_fixes: int = 0

    @property
    def file_size_kb(self) -> float:
        return self.file_size_bytes / 1024


def load_dxf_with_info(filepath: Union[str, Path]) -> Tuple["ezdxf.document.Drawing", DXFInfo]:
    """Carregar um DXF e devolver o documento com seus metadados.

    Args:
        filepath: Caminho do arquivo DXF.

    Returns:
        doc:  documento ezdxf.
        info: DXFInfo com versão, tamanho e contagem de entidades.

    Raises:
        DXFLoadError: se o arquivo não existir ou não puder ser interpretado.
    """
    filepath = str(filepath)
    if not os.path.isfile(filepath):
        raise DXFLoadError(f"Arquivo não encontrado: {filepath!r}")

    recovered = False
    fixes = 0
    try:
        doc = ezdxf.readfile(filepath)
    except ezdxf.DXFStructureError as exc:
        logger.warning("Estrutura DXF inválida em %s (%s); tentando recuperação", filepath, exc)
        try:
            doc, auditor = recover.readfile(filepath)
        except (IOError, ezdxf.DXFStructureError) as recover_exc:
            raise DXFLoadError(f"Não foi possível recuperar o DXF {filepath!r}: {recover_exc}") from recover_exc
        recovered = True
        fixes = len(auditor.fixes)
        if auditor.has_errors:
            logger.warning("Recuperação de %s terminou com %d erro(s) não corrigido(s)",
                           filepath, len(auditor.errors))
        logger.info("DXF recuperado: %s (%d correção(ões) aplicada(s))", filepath, fixes)
    except IOError as exc:
        raise DXFLoadError(f"Não foi possível ler o arquivo DXF {filepath!r}: {exc}") from exc

    info = DXFInfo(
        filepath=filepath,
        dxf_version=doc.dxfversion,
        file_size_bytes=os.path.getsize(filepath),
        entity_count=len(doc.modelspace()),
        recovered=recovered,
        audit_fixes=fixes,
    )
    logger.info("DXF carregado: %s (versão %s, %d entidades, %.1f KB)",
                filepath, info.dxf_version, info.entity_count, info.file_size_kb)
    return doc, info


def load_dxf(filepath: Union[str, Path]) -> "ezdxf.document.Drawing":
    """Carregar um DXF (ver ``load_dxf_with_info``)."""
    doc, _ = load_dxf_with_info(filepath)
    return doc
