# -*- coding: utf-8 -*-
"""Summaries of layer object tables, meant to be attached to layers with ``Layer.attach_function``."""


def attach_count(layer, class_column=None, class_value=None):
    """Count objects in a layer, optionally filtered by class.

    Parameters:
    -----------
    layer : Layer
        Layer to count objects in
    class_column : str or tuple, optional
        Column containing class values
    class_value : int, optional
        Class value to filter by

    Returns:
    --------
    count : int
        Number of objects
    """
    if layer.objects is None:
        return 0

    if class_value is not None and class_column in layer.objects.columns:
        return int((layer.objects[class_column] == class_value).sum())

    return len(layer.objects)


def attach_class_distribution(layer, class_column="class_code", ignore=(0,)):
    """Distribution of class codes among the objects of a layer.

    Parameters:
    -----------
    layer : Layer
        Layer to analyze
    class_column : str or tuple
        Column containing class codes
    ignore : tuple
        Codes left out of counts and percentages (0 = impure or undefined)

    Returns:
    --------
    distribution : dict
        Class counts, percentages over the counted objects, and totals
    """
    if layer.objects is None or class_column not in layer.objects.columns:
        return {}

    codes = layer.objects[class_column].dropna()
    ignored = int(codes.isin(ignore).sum())
    codes = codes[~codes.isin(ignore)]
    class_counts = codes.value_counts().sort_index()
    total_count = int(class_counts.sum())

    if total_count:
        class_percentages = (class_counts / total_count * 100).round(2)
    else:
        class_percentages = class_counts.astype(float)

    return {
        "counts": {int(k): int(v) for k, v in class_counts.items()},
        "percentages": {int(k): float(v) for k, v in class_percentages.items()},
        "total": total_count,
        "ignored": ignored,
    }
