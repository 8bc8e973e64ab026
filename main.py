# -*- coding: utf-8 -*-
"""Testing Working Document!

Just a workspace document to run the object statistics and sampling workflow end to end.
"""

import os

from landseg import (
    DEFAULT_REFERENCE_LAYERS,
    LayerManager,
    ObjectClassifier,
    PipelineConfig,
    PipelineOrchestrator,
    calculate_statistics_summary,
    configure_logging,
    create_sample_data,
    layer_to_raster,
    layer_to_vector,
    objects_to_table,
)


def run_example(output_dir="output"):
    """Run Example."""
    os.makedirs(output_dir, exist_ok=True)
    configure_logging(verbose=False)

    manager = LayerManager()

    print("Creating synthetic scene...")
    grid, bands, references, validation_marks = create_sample_data(block=10, blocks=(6, 6))
    print(grid)

    config = PipelineConfig.from_dict(
        {
            "reference_layers": [layer.model_dump() for layer in DEFAULT_REFERENCE_LAYERS],
            "sampling": {"n_per_class": 5, "seed": 7},
            "boundary": {"radius": 1},
            "tiling": {"tile_size": 25, "max_workers": 2},
        }
    )

    print("\nComputing object statistics, purity and samples...")
    orchestrator = PipelineOrchestrator(config, layer_manager=manager)
    result = orchestrator.run(grid, bands, references, validation_marks=validation_marks)

    print(result.objects)
    print(result.samples)
    print(f"Excluded objects: {sorted(result.exclusions)}")
    print(f"Objects split across tiles: {len(result.fragments)}")
    for name in result.purity.columns:
        distribution = result.objects.get_function_result(f"purity_{name}")
        print(f"  {name}: {distribution['counts']} ({distribution['ignored']} impure)")

    print("\nTraining the object classifier...")
    classifier = ObjectClassifier(name="RF Classification", classifier_params={"n_estimators": 100})
    training = result.samples.copy()
    training.objects = result.layer_samples["lpis_corine"]
    classified = classifier.execute(
        result.objects,
        training,
        layer_manager=manager,
        layer_name="Classification",
        validation=(result.exclusions, result.purity["lpis_corine"]),
    )
    assessment = classified.metadata["assessment"]
    print(f"Validation objects: {assessment['n']}, overall accuracy: {assessment['overall_accuracy']:.3f}")
    print("Most important features:")
    print(classified.metadata["feature_importances"].head(5))

    print("\nExporting results...")
    objects_to_table(result.objects, os.path.join(output_dir, "objects.csv"))
    layer_to_vector(result.samples, os.path.join(output_dir, "samples.geojson"))
    layer_to_raster(
        classified,
        os.path.join(output_dir, "classification.tif"),
        column=("classification", "", "class_code"),
    )
    calculate_statistics_summary(manager, os.path.join(output_dir, "summary.json"))

    print(f"\nResults saved to {output_dir}")
    print("Available layers:")
    for i, layer_name in enumerate(manager.get_layer_names()):
        print(f"  {i + 1}. {layer_name}")


if __name__ == "__main__":
    run_example()
