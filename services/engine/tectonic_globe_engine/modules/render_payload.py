from __future__ import annotations

from typing import Literal

import numpy as np

from ..models import MeshPayload
from ..utils import row_blocks
from .mesh import Mesh
from .plate_simulation import BLOCK_ROWS, PlateSimulation
from .world import GeneratedWorld, elevations

Color = tuple[float, float, float, float]

COLOR_CHANNEL = 0.5
FLAT_COLOR: Color = (COLOR_CHANNEL, COLOR_CHANNEL, COLOR_CHANNEL, 1.0)


def color_for_hue(hue: float) -> Color:
    """RGBA for a hue on the [0, 6) sextant scale (0 red, 2 green, 4 blue)."""
    hue = hue % 6.0
    c = COLOR_CHANNEL
    x = c * (1.0 - abs(hue % 2.0 - 1.0))

    if hue < 1.0:
        rgb = (c, x, 0.0)
    elif hue < 2.0:
        rgb = (x, c, 0.0)
    elif hue < 3.0:
        rgb = (0.0, c, x)
    elif hue < 4.0:
        rgb = (0.0, x, c)
    elif hue < 5.0:
        rgb = (x, 0.0, c)
    else:
        rgb = (c, 0.0, x)
    return (rgb[0], rgb[1], rgb[2], 1.0)


def color_by_height(height: float, min_height: float, max_height: float) -> Color:
    diff = max_height - min_height
    if diff <= 0.0:
        return FLAT_COLOR
    relative = min(1.0, max(0.0, (height - min_height) / diff))
    # Lowest ground is blue, highest is red.
    return color_for_hue(4.0 * (1.0 - relative))


def color_by_index(index: int, count: int) -> Color:
    if count <= 0:
        return FLAT_COLOR
    return color_for_hue(6.0 * (index % count) / count)


def face_centroids(mesh: Mesh) -> np.ndarray:
    positions = mesh.positions()
    faces = mesh.face_index_array()
    return positions[faces].mean(axis=1)


def face_plate_ids(render_mesh: Mesh, plate_sim: PlateSimulation) -> np.ndarray:
    """Plate of the simulation point closest in direction to each render face."""
    centroids = face_centroids(render_mesh)
    sim_positions = plate_sim.positions()
    nearest = np.zeros(len(centroids), dtype=np.int64)
    for rows in row_blocks(len(centroids), BLOCK_ROWS):
        nearest[rows] = np.argmax(centroids[rows] @ sim_positions.T, axis=1)
    return plate_sim.plate_ids()[nearest]


def build_mesh_payload(
    world_id: str,
    world: GeneratedWorld,
    color_by: Literal["height", "plate"] = "height",
) -> MeshPayload:
    mesh = world.render_mesh
    faces = mesh.face_index_array()

    if color_by == "plate":
        plate_ids = face_plate_ids(mesh, world.simulation)
        plate_count = len(world.simulation.plates)
        colors = [color_by_index(int(plate_id), plate_count) for plate_id in plate_ids]
    elif color_by == "height":
        radii = elevations(mesh)
        face_heights = radii[faces].mean(axis=1)
        lo = float(radii.min())
        hi = float(radii.max())
        colors = [color_by_height(float(height), lo, hi) for height in face_heights]
    else:
        raise ValueError(f"unknown colour mode {color_by!r}")

    return MeshPayload(
        worldId=world_id,
        colorBy=color_by,
        positions=[tuple(pos) for pos in mesh.positions().tolist()],
        faces=[tuple(face) for face in faces.tolist()],
        faceColors=colors,
        faceIds=list(range(len(mesh.faces))),
    )
