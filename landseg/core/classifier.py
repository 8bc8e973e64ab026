# -*- coding: utf-8 -*-
"""Trains a classifier on sampled pure objects and labels every object of the grid."""

import logging

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import accuracy_score, cohen_kappa_score, confusion_matrix

from .layer import Layer

logger = logging.getLogger(__name__)

DEFAULT_FOREST_PARAMS = {"n_estimators": 400, "max_samples": 0.632, "random_state": 12344, "oob_score": True}

# column groups of the objects table that are labels or bookkeeping rather than features
NON_FEATURE_GROUPS = ("purity",)
NON_FEATURE_STATISTICS = ("excluded", "pixel_count", "perimeter_pixels")


def feature_columns(objects):
    """Columns of an objects table usable as classifier features."""
    columns = []
    for column in objects.columns:
        if column[0] in NON_FEATURE_GROUPS or column[-1] in NON_FEATURE_STATISTICS:
            continue
        columns.append(column)
    return columns


class ObjectClassifier:
    """Random Forest classification of objects from their per-object features."""

    def __init__(self, name=None, classifier_params=None):
        """Initialize the classifier.

        Parameters:
        -----------
        name : str, optional
            Name recorded in the metadata of classification layers
        classifier_params : dict, optional
            Parameters relayed to sklearn's RandomForestClassifier
        """
        params = dict(DEFAULT_FOREST_PARAMS)
        params.update(classifier_params or {})
        self.classifier_params = params
        self.classifier = None
        self.features = None
        self.name = name if name else "Object_Classification"

    def training_table(self, objects, samples):
        """Join sampled objects with their features.

        Parameters:
        -----------
        objects : pandas.DataFrame
            Objects table indexed by object id, (period, band, statistic) columns
        samples : pandas.DataFrame
            Sample set with object_id and class_code columns

        Returns:
        --------
        features : pandas.DataFrame
            One float row per sampled object with complete features
        labels : pandas.Series
            Class code of each row
        """
        columns = feature_columns(objects)
        features = objects.loc[samples["object_id"].to_numpy(), columns].astype("float64")
        labels = pd.Series(samples["class_code"].to_numpy(), index=features.index, name="class_code")

        complete = features.notna().all(axis=1)
        if not complete.all():
            logger.info("Dropping %d sample(s) with missing features", int((~complete).sum()))
        return features[complete], labels[complete]

    def validation_table(self, objects, validation_ids, reference_labels):
        """Feature rows of the objects held out for validation.

        Parameters:
        -----------
        objects : pandas.DataFrame
            Objects table indexed by object id
        validation_ids : iterable
            Ids of the validation objects, e.g. the exclusions of a pipeline run
        reference_labels : pandas.Series
            Object id -> reference class code, e.g. one purity column. Codes <= 0 are skipped.

        Returns:
        --------
        features : pandas.DataFrame
        labels : pandas.Series
        """
        ids = pd.Index(sorted(int(i) for i in validation_ids), dtype="int64")
        codes = reference_labels.reindex(ids)
        codes = codes[codes.notna() & (codes.fillna(0) > 0)].astype("int64")

        samples = pd.DataFrame({"object_id": codes.index.to_numpy(), "class_code": codes.to_numpy()})
        return self.training_table(objects, samples)

    def train(self, features, labels):
        """Fit the forest.

        Returns:
        --------
        classifier : sklearn.ensemble.RandomForestClassifier
        """
        if len(features) == 0:
            raise ValueError("cannot train on an empty training table")
        self.features = list(features.columns)
        self.classifier = RandomForestClassifier(**self.classifier_params)
        self.classifier.fit(features.to_numpy(), labels.to_numpy())

        if getattr(self.classifier, "oob_score_", None) is not None:
            logger.info("OOB score: %.4f", self.classifier.oob_score_)
        return self.classifier

    def classify(self, features):
        """Predict a class code per object; objects with missing features get <NA>."""
        if self.classifier is None:
            raise ValueError("classifier has not been trained")
        features = features[self.features].astype("float64")
        complete = features.notna().all(axis=1).to_numpy()

        predictions = pd.Series(pd.NA, index=features.index, dtype="Int64", name="classification")
        if complete.any():
            predicted = self.classifier.predict(features.to_numpy()[complete])
            predictions[complete] = np.asarray(predicted, dtype="int64")
        return predictions

    @property
    def feature_importances_(self):
        """Impurity-based importance of each feature column, highest first."""
        if self.classifier is None:
            raise ValueError("classifier has not been trained")
        importances = pd.Series(self.classifier.feature_importances_, name="importance")
        if self.features and isinstance(self.features[0], tuple):
            importances.index = pd.MultiIndex.from_tuples(self.features)
        else:
            importances.index = pd.Index(self.features)
        return importances.sort_values(ascending=False, kind="stable")

    def assess(self, features, labels):
        """Score the trained forest against reference labels.

        Parameters:
        -----------
        features : pandas.DataFrame
            Complete feature rows, e.g. from ``validation_table``
        labels : pandas.Series
            Reference class code of each row

        Returns:
        --------
        assessment : dict
            ``error_matrix`` (reference rows, predicted columns), ``overall_accuracy``,
            ``producers_accuracy`` and ``users_accuracy`` per class, ``kappa``, ``n``
        """
        if len(features) == 0:
            raise ValueError("cannot assess on an empty validation table")
        reference = labels.to_numpy(dtype="int64")
        predicted = self.classify(features).to_numpy(dtype="int64")
        classes = np.union1d(reference, predicted)

        matrix = pd.DataFrame(
            confusion_matrix(reference, predicted, labels=classes),
            index=pd.Index(classes, name="reference"),
            columns=pd.Index(classes, name="predicted"),
        )
        correct = pd.Series(np.diag(matrix.to_numpy()), index=classes, dtype="float64")

        assessment = {
            "error_matrix": matrix,
            "overall_accuracy": float(accuracy_score(reference, predicted)),
            # omission side: share of each reference class that was found
            "producers_accuracy": correct / matrix.sum(axis=1).to_numpy(),
            # commission side: share of each predicted class that is right
            "users_accuracy": correct / matrix.sum(axis=0).to_numpy(),
            "kappa": float(cohen_kappa_score(reference, predicted, labels=classes)),
            "n": len(reference),
        }
        logger.info(
            "Validation on %d object(s): OA %.4f, kappa %.4f",
            assessment["n"],
            assessment["overall_accuracy"],
            assessment["kappa"],
        )
        return assessment

    def execute(self, objects_layer, samples_layer, layer_manager=None, layer_name=None, validation=None):
        """Train on the samples of ``samples_layer`` and classify every object of ``objects_layer``.

        Parameters:
        -----------
        validation : tuple, optional
            (validation_ids, reference_labels) as accepted by ``validation_table``. When given,
            the forest is assessed on those objects and the scores go to the layer metadata.

        Returns:
        --------
        result_layer : Layer
            Objects table with one extra ("classification", "", "class_code") column
        """
        features, labels = self.training_table(objects_layer.objects, samples_layer.objects)
        self.train(features, labels)

        objects = objects_layer.objects.copy()
        objects[("classification", "", "class_code")] = self.classify(objects[self.features])

        result_layer = Layer(name=layer_name, parent=objects_layer, type="classification")
        result_layer.grid = objects_layer.grid
        result_layer.objects = objects
        result_layer.metadata = {
            "classifier": self.name,
            "training_samples": len(features),
            "classifier_params": self.classifier_params,
            "feature_importances": self.feature_importances_,
        }
        if validation is not None:
            validation_features, validation_labels = self.validation_table(objects_layer.objects, *validation)
            result_layer.metadata["assessment"] = self.assess(validation_features, validation_labels)

        if layer_manager:
            layer_manager.add_layer(result_layer)

        return result_layer
