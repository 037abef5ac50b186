"""
Reading recorded runs back for analysis and plotting.
"""

import csv
import os
import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from .recorder import MESH_FRAME_HEADER, MESH_FRAME_SUFFIX

_FRAME_PATTERN = re.compile(r"^step(\d+)" + re.escape(MESH_FRAME_SUFFIX) + r"$")


@dataclass
class MeshFrameRow:
    """One body placement from a mesh-frame file."""
    mesh_name: str
    position: np.ndarray
    basis: np.ndarray  # columns are the body x, y, z axes
    scale: np.ndarray


def read_mesh_frames(path: str) -> List[MeshFrameRow]:
    """
    Parse a mesh-frame file.

    Raises:
        ValueError: If the header or a row does not have the mesh-frame layout
    """
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None or tuple(header) != MESH_FRAME_HEADER:
            raise ValueError(f"{path} is not a mesh-frame file")
        rows = []
        for line_number, fields in enumerate(reader, start=2):
            if not fields:
                continue
            if len(fields) != len(MESH_FRAME_HEADER):
                raise ValueError(f"{path}:{line_number}: expected {len(MESH_FRAME_HEADER)} "
                                 f"fields, found {len(fields)}")
            values = np.array([float(v) for v in fields[1:]])
            rows.append(MeshFrameRow(
                mesh_name=fields[0],
                position=values[0:3],
                basis=values[3:12].reshape(3, 3).T,
                scale=values[12:15],
            ))
    return rows


def list_recorded_frames(output_dir: str) -> List[Tuple[int, str]]:
    """(frame number, mesh-frame path) pairs sorted by frame number."""
    frames = []
    for name in os.listdir(output_dir):
        match = _FRAME_PATTERN.match(name)
        if match:
            frames.append((int(match.group(1)), os.path.join(output_dir, name)))
    return sorted(frames)


def load_body_trajectories(output_dir: str) -> Dict[int, np.ndarray]:
    """
    Positions of every body across all recorded frames.

    Bodies are keyed by their row position in the mesh-frame files (wheels in
    mesh order, then the chassis); each value is an Nx3 array over frames.
    """
    trajectories: Dict[int, List[np.ndarray]] = {}
    for _, path in list_recorded_frames(output_dir):
        for row_index, row in enumerate(read_mesh_frames(path)):
            trajectories.setdefault(row_index, []).append(row.position)
    return {key: np.array(value) for key, value in trajectories.items()}
