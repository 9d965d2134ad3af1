"""
MIT License

Copyright (c) 2025 Pan Yu

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

Author: Pan Yu
"""

import time
from typing import Optional
from .commands import NullCommandSource
from .frame_warp import apply_projection
from .map_compiler import CompiledMap
from .projection_maps import ProjectionMapGenerator
from .telemetry import FrameRateMeter, print_status
from .view_controller import ViewController


class PipelineState:
  """Run-wide counters and flags, reset only when the driver is created."""

  def __init__(self):
    self.frame_index = 0
    self.fps: Optional[float] = None
    self.done = False
    self.end_of_stream = False
    self.regenerations = 0

  def __str__(self):
    return (f"PipelineState(frames={self.frame_index}, regenerations={self.regenerations}, "
            f"done={self.done}, end_of_stream={self.end_of_stream})")


class PipelineDriver:
  """
  Sequential read, warp, write loop.

  One frame is fully read, warped and written before the next is fetched.
  A changed view is regenerated and compiled before the frame that follows the
  change is warped, so every output frame comes from exactly one view.
  """

  def __init__(self, source, sink, controller: ViewController,
               command_source=None, generator: Optional[ProjectionMapGenerator] = None,
               frame_rate_meter: Optional[FrameRateMeter] = None, show_status: bool = True):
    """
    Parameters:
    - source: object with read() returning a frame or None at end of stream (VideoSource)
    - sink: object with write(frame) (VideoSink)
    - controller: ViewController holding the view and dirty flag
    - command_source: object with poll(frame) returning a Command or None; None for no commands
    - generator: ProjectionMapGenerator; defaults to an uncached one, so every view change
      generates and compiles a new map
    - frame_rate_meter: FrameRateMeter; defaults to a 5 second window
    - show_status: print the per-frame status line
    """
    self.source = source
    self.sink = sink
    self.controller = controller
    self.command_source = command_source if command_source is not None else NullCommandSource()
    self.generator = generator if generator is not None else ProjectionMapGenerator()
    self.frame_rate_meter = frame_rate_meter if frame_rate_meter is not None else FrameRateMeter()
    self.show_status = show_status
    self.state = PipelineState()
    self.compiled: Optional[CompiledMap] = None

  def _regenerate(self) -> None:
    self.compiled = self.generator.get_compiled_map(self.controller.snapshot())
    self.controller.mark_clean()
    self.state.regenerations += 1

  def step(self) -> bool:
    """
    Process one input frame.

    Returns:
    - False once the loop should stop (end of stream, or quit after this frame)
    """
    frame = self.source.read()
    if frame is None:
      self.state.end_of_stream = True
      return False

    if self.controller.dirty:
      self._regenerate()

    output = apply_projection(frame, self.compiled)
    self.sink.write(output)

    self.state.frame_index += 1
    fps = self.frame_rate_meter.tick()
    if fps is not None:
      self.state.fps = fps
    if self.show_status:
      print_status(self.state.frame_index, self.controller.view, self.state.fps)

    command = self.command_source.poll(output)
    if command is not None and self.controller.apply(command):
      self.state.done = True

    return not self.state.done

  def run(self) -> PipelineState:
    """
    Run until the input ends or a quit command arrives.

    Returns:
    - the final PipelineState
    """
    start_time = time.time()
    try:
      while self.step():
        pass
    finally:
      self.command_source.close()

    elapsed = time.time() - start_time
    print()
    print(f"Finished writing {self.state.frame_index} frames "
          f"({self.state.regenerations} map regenerations)")
    print(f"\033[33mTotal processing time: {elapsed:.4f} seconds\033[0m")
    return self.state
