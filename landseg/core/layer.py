# -*- coding: utf-8 -*-
"""Layers: named, typed tables of per-object results tied to the label grid they describe.

The objects layer holds one row per object id (band statistics, shape, purity, exclusion flags);
the samples layer holds the sampled objects and their anchor locations and points back to the
objects layer as its parent. Summaries such as class distributions are attached to a layer as
functions whose results stay with it.
"""

import uuid

import pandas as pd


class Layer:
    """Per-object results derived from one label grid.

    ``objects`` is a DataFrame. For objects layers it is indexed by object id with
    (period, band, statistic) columns; for samples layers it is a flat sample set.
    """

    def __init__(self, name=None, parent=None, type="generic"):
        """Initialize a Layer.

        Parameters:
        -----------
        name : str, optional
            Name of the layer. A unique name is generated when None.
        parent : Layer, optional
            Layer this one was derived from
        type : str
            "objects", "samples", "classification" or "generic"
        """
        self.id = str(uuid.uuid4())
        self.name = name if name else f"Layer_{self.id[:8]}"
        self.parent = parent
        self.type = type
        self.created_at = pd.Timestamp.now()

        self.grid = None
        self.objects = None
        self.metadata = {}
        self.attached_functions = {}

    @property
    def transform(self):
        return self.grid.transform if self.grid is not None else None

    @property
    def crs(self):
        return self.grid.crs if self.grid is not None else None

    def column_group(self, group):
        """Columns of the objects table whose first level is ``group``, e.g. "purity"."""
        if self.objects is None or not isinstance(self.objects.columns, pd.MultiIndex):
            raise ValueError(f"Layer '{self.name}' has no grouped object columns")
        return self.objects.xs(group, axis=1, level=0, drop_level=True)

    def lineage(self):
        """Names of this layer and its ancestors, oldest first."""
        names = []
        layer = self
        while layer is not None:
            names.append(layer.name)
            layer = layer.parent
        return names[::-1]

    def attach_function(self, function, name=None, **kwargs):
        """Run ``function(layer, **kwargs)`` and keep its result on the layer.

        Parameters:
        -----------
        function : callable
            Summary function taking the layer as first argument
        name : str, optional
            Key of the result. Defaults to the function's name.
        **kwargs : dict
            Arguments to pass to the function

        Returns:
        --------
        self : Layer
            For chaining
        """
        key = name if name else function.__name__
        self.attached_functions[key] = {
            "function": function,
            "args": kwargs,
            "result": function(self, **kwargs),
        }
        return self

    def get_function_result(self, function_name):
        if function_name not in self.attached_functions:
            raise ValueError(f"Function '{function_name}' not attached to this layer")
        return self.attached_functions[function_name]["result"]

    def copy(self):
        """Copy of the layer sharing the same label grid."""
        new_layer = Layer(name=f"{self.name}_copy", parent=self.parent, type=self.type)
        new_layer.grid = self.grid
        new_layer.objects = self.objects.copy() if self.objects is not None else None
        new_layer.metadata = dict(self.metadata)
        return new_layer

    def __str__(self):
        num_objects = len(self.objects) if self.objects is not None else 0
        parent_name = self.parent.name if self.parent else "None"
        return f"Layer '{self.name}' (type: {self.type}, parent: {parent_name}, objects: {num_objects})"


class LayerManager:
    """Keeps the layers of a run and tracks the active one."""

    def __init__(self):
        self.layers = {}
        self.active_layer = None

    def add_layer(self, layer, set_active=True):
        """Register ``layer``, optionally making it the active layer."""
        self.layers[layer.id] = layer
        if set_active:
            self.active_layer = layer
        return layer

    def get_layer(self, layer_id_or_name):
        """Look a layer up by id first, then by name."""
        if layer_id_or_name in self.layers:
            return self.layers[layer_id_or_name]
        for layer in self.layers.values():
            if layer.name == layer_id_or_name:
                return layer
        raise ValueError(f"Layer '{layer_id_or_name}' not found")

    def get_layer_names(self):
        return [layer.name for layer in self.layers.values()]

    def get_layers_by_type(self, layer_type):
        return [layer for layer in self.layers.values() if layer.type == layer_type]

    def remove_layer(self, layer_id_or_name):
        """Drop a layer; the most recently added remaining layer becomes active if needed."""
        layer = self.get_layer(layer_id_or_name)
        del self.layers[layer.id]

        if self.active_layer is not None and self.active_layer.id == layer.id:
            self.active_layer = list(self.layers.values())[-1] if self.layers else None
