"""
OCVWarp Core Modules

This package contains the video warping core:
- View state, transform modes and configuration loading
- Projection map generation for the four transform modes
- Map compilation and cached map management
- Frame warping, interactive view control and the frame pipeline
"""

from .view_state import ViewState, TransformMode, parse_view_config, save_view_config
from .projection_maps import CoordinateField, ProjectionMapGenerator, generate_projection_maps
from .map_compiler import CompiledMap, compile_maps
from .cache_manager import CacheManager
from .frame_warp import resize_frame, warp_frame, apply_projection
from .view_controller import Command, ViewController, command_for_key
from .commands import NullCommandSource, ScriptedCommandSource, WaitKeyCommandSource
from .telemetry import FrameRateMeter, format_status, print_status
from .video_io import VideoSource, VideoSink, output_path_for
from .pipeline import PipelineDriver, PipelineState

__all__ = [
  'ViewState',
  'TransformMode',
  'parse_view_config',
  'save_view_config',
  'CoordinateField',
  'ProjectionMapGenerator',
  'generate_projection_maps',
  'CompiledMap',
  'compile_maps',
  'CacheManager',
  'resize_frame',
  'warp_frame',
  'apply_projection',
  'Command',
  'ViewController',
  'command_for_key',
  'NullCommandSource',
  'ScriptedCommandSource',
  'WaitKeyCommandSource',
  'FrameRateMeter',
  'format_status',
  'print_status',
  'VideoSource',
  'VideoSink',
  'output_path_for',
  'PipelineDriver',
  'PipelineState'
]
