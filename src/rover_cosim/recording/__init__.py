"""
Frame output and replay.

Components:
    - FrameRecorder: periodic terrain snapshots and mesh-frame files
    - write_checkpoint: end-of-settling terrain checkpoint
    - read_mesh_frames / load_body_trajectories: reading recorded runs back
"""

from .recorder import (DEFAULT_FPS, MESH_FRAME_HEADER, FrameRecorder, frame_basename,
                       mesh_frame_row, output_steps, write_checkpoint)
from .replay import MeshFrameRow, list_recorded_frames, load_body_trajectories, read_mesh_frames

__all__ = [
    "DEFAULT_FPS",
    "MESH_FRAME_HEADER",
    "FrameRecorder",
    "MeshFrameRow",
    "frame_basename",
    "list_recorded_frames",
    "load_body_trajectories",
    "mesh_frame_row",
    "output_steps",
    "read_mesh_frames",
    "write_checkpoint",
]
