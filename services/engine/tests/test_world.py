from __future__ import annotations

import numpy as np

from tectonic_globe_engine.models import WorldConfig
from tectonic_globe_engine.modules.mesh import expected_counts
from tectonic_globe_engine.modules.world import elevations, generate_world
from tectonic_globe_engine.utils import seed_from_text


def _reference_config(**overrides) -> WorldConfig:
    payload = {"seed": "42", "plateSimDetail": 2, "plateCount": 10, "steps": 5, "worldDetail": 3}
    payload.update(overrides)
    return WorldConfig(**payload)


def test_pipeline_is_deterministic_for_fixed_seed():
    world_a = generate_world(_reference_config())
    world_b = generate_world(_reference_config())

    assert np.array_equal(world_a.render_mesh.positions(), world_b.render_mesh.positions())
    assert np.array_equal(world_a.simulation.positions(), world_b.simulation.positions())
    assert world_a.fingerprint == world_b.fingerprint


def test_different_seeds_give_different_worlds():
    world_a = generate_world(_reference_config(seed="42", steps=1, worldDetail=2))
    world_b = generate_world(_reference_config(seed="43", steps=1, worldDetail=2))

    assert world_a.seed_value != world_b.seed_value
    assert world_a.fingerprint != world_b.fingerprint


def test_pipeline_shapes_and_bounds():
    world = generate_world(_reference_config())

    vertex_count, _, face_count = expected_counts(3)
    assert len(world.render_mesh.vertices) == vertex_count
    assert len(world.render_mesh.faces) == face_count
    assert len(world.simulation.points) == expected_counts(2)[0]
    assert len(world.step_reports) == 5
    assert world.seed_value == seed_from_text("42")

    radii = elevations(world.render_mesh)
    assert np.all(np.isfinite(radii))
    assert radii.min() >= -1e-9
    assert radii.max() <= 2.0 + 1e-9


def test_on_step_callback_sees_every_step():
    steps: list[int] = []
    generate_world(_reference_config(steps=3, worldDetail=1), on_step=lambda report: steps.append(report.step))

    assert steps == [1, 2, 3]


def test_zero_steps_still_maps_heights():
    world = generate_world(_reference_config(steps=0, worldDetail=2, heightAmplitude=0.5))

    radii = elevations(world.render_mesh)
    assert world.simulation.steps_taken == 0
    assert radii.min() >= 0.5 - 1e-9
    assert radii.max() <= 1.5 + 1e-9
