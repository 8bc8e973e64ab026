# -*- coding: utf-8 -*-
"""The io package contains modules for reading and writing raster, vector and tabular data.

Raster reads support windows so that tiled runs never load a full extent.
"""
