# -*- coding: utf-8 -*-
"""Logging setup and synthetic data helpers."""
