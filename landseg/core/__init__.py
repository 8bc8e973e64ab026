# -*- coding: utf-8 -*-
"""The core package holds the data structures and per-object stages of landseg.

It defines label grids and value bands, layers, purity labelling, validation exclusion, stratified
sampling, tiling, and the segmentation and classification collaborators.
"""
