from dxf_analysis.io.dxf_loader import DXFInfo, load_dxf, load_dxf_with_info

__all__ = ["DXFInfo", "load_dxf", "load_dxf_with_info"]
