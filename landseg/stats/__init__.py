# -*- coding: utf-8 -*-
"""Per-object statistics: zonal reducers, boundary and shape descriptors, layer summaries."""
