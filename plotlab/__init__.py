"""PlotLab: turn SVG line-art into pen-plotter G-code for 3D printers."""

__version__ = "0.3.0"
