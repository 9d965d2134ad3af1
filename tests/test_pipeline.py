"""Tests for the read, warp, write loop."""

import numpy as np
import pytest

from ocvwarp.cache_manager import CacheManager
from ocvwarp.commands import ScriptedCommandSource
from ocvwarp.frame_warp import apply_projection
from ocvwarp.pipeline import PipelineDriver
from ocvwarp.projection_maps import ProjectionMapGenerator
from ocvwarp.telemetry import LINE_START, FrameRateMeter
from ocvwarp.view_controller import Command, ViewController
from ocvwarp.view_state import TransformMode, ViewState


def _frames(count, width=80, height=60):
  rng = np.random.default_rng(1)
  return [rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8) for _ in range(count)]


def _driver(source, sink, view, commands=None):
  return PipelineDriver(source, sink, ViewController(view),
                        command_source=ScriptedCommandSource(commands or {}),
                        show_status=False)


@pytest.fixture
def view():
  return ViewState(0.0, 0.0, TransformMode.EQUIRECT_TO_FISHEYE_180, 48, 32)


def test_writes_every_frame(make_source, make_sink, view):
  source = make_source(_frames(5))
  sink = make_sink()

  state = _driver(source, sink, view).run()

  assert len(sink.frames) == 5
  assert state.frame_index == 5
  assert state.end_of_stream
  assert not state.done
  assert state.regenerations == 1
  for frame in sink.frames:
    assert frame.shape == (32, 48, 3)
    assert frame.dtype == np.uint8


def test_output_matches_direct_warp(make_source, make_sink, view):
  frames = _frames(2)
  sink = make_sink()

  _driver(make_source(frames), sink, view.copy()).run()

  compiled = ProjectionMapGenerator().get_compiled_map(view)
  for written, frame in zip(sink.frames, frames):
    np.testing.assert_array_equal(written, apply_projection(frame, compiled))


def test_quit_stops_after_current_frame(make_source, make_sink, view):
  source = make_source(_frames(10))
  sink = make_sink()

  state = _driver(source, sink, view, {3: Command.QUIT}).run()

  assert len(sink.frames) == 3
  assert source.reads == 3
  assert state.done
  assert not state.end_of_stream


def test_view_change_applies_to_next_frame(make_source, make_sink, view):
  frames = _frames(4)
  sink = make_sink()

  state = _driver(make_source(frames), sink, view.copy(), {2: Command.ANGLEY_UP_COARSE}).run()

  assert state.regenerations == 2
  generator = ProjectionMapGenerator()
  before = generator.get_compiled_map(view)
  after = generator.get_compiled_map(ViewState(0.0, 10.0, view.transform_mode, 48, 32))
  for index in (0, 1):
    np.testing.assert_array_equal(sink.frames[index], apply_projection(frames[index], before))
  for index in (2, 3):
    np.testing.assert_array_equal(sink.frames[index], apply_projection(frames[index], after))


def test_unchanged_view_is_not_regenerated(make_source, make_sink, view):
  """Commands only mark the view dirty; the map is rebuilt once per change."""
  commands = {1: Command.ANGLEX_UP, 2: Command.ANGLEX_DOWN}

  state = _driver(make_source(_frames(6)), make_sink(), view, commands).run()

  assert state.regenerations == 3


def test_empty_input(make_source, make_sink, view):
  sink = make_sink()

  state = _driver(make_source([]), sink, view).run()

  assert sink.frames == []
  assert state.frame_index == 0
  assert state.regenerations == 0
  assert state.end_of_stream


def test_input_size_differs_from_output(make_source, make_sink, make_solid_frame):
  """Frames are resized to the output size before warping."""
  view = ViewState(0.0, 0.0, TransformMode.FISHEYE360_TO_EQUIRECT, 40, 20)
  sink = make_sink()

  _driver(make_source([make_solid_frame(123, 77)]), sink, view).run()

  assert sink.frames[0].shape == (20, 40, 3)


def test_status_line_printed(make_source, make_sink, view, capsys):
  driver = PipelineDriver(make_source(_frames(2)), make_sink(), ViewController(view))

  driver.run()

  out = capsys.readouterr().out
  assert "Frame: 2 x: 0 y: 0" in out
  assert "Finished writing 2 frames" in out


class FakeClock:
  """Clock that advances by a fixed step on every reading."""

  def __init__(self):
    self.now = 100.0
    self.step = 0.0

  def __call__(self):
    self.now += self.step
    return self.now


class RecordingGenerator(ProjectionMapGenerator):
  """Generator that keeps every compiled map it hands out."""

  def __init__(self, **kwargs):
    super().__init__(**kwargs)
    self.compiled_maps = []

  def get_compiled_map(self, view):
    compiled = super().get_compiled_map(view)
    self.compiled_maps.append(compiled)
    return compiled


def test_returning_to_earlier_view_rebuilds_map(make_source, make_sink, view):
  """Every view change generates and compiles a new map, even for a view seen before."""
  generator = RecordingGenerator()
  commands = {1: Command.ANGLEX_UP, 2: Command.ANGLEX_DOWN}
  driver = PipelineDriver(make_source(_frames(4)), make_sink(), ViewController(view),
                          command_source=ScriptedCommandSource(commands),
                          generator=generator, show_status=False)

  driver.run()

  first, _, back = generator.compiled_maps
  assert back is not first
  np.testing.assert_array_equal(back.map1, first.map1)


def test_default_driver_does_not_cache(make_source, make_sink, view):
  driver = PipelineDriver(make_source([]), make_sink(), ViewController(view), show_status=False)

  assert driver.generator.cache_manager is None


def test_opt_in_cache_reuses_map(make_source, make_sink, view):
  generator = RecordingGenerator(cache_manager=CacheManager())
  commands = {1: Command.ANGLEX_UP, 2: Command.ANGLEX_DOWN}
  driver = PipelineDriver(make_source(_frames(4)), make_sink(), ViewController(view),
                          command_source=ScriptedCommandSource(commands),
                          generator=generator, show_status=False)

  driver.run()

  first, _, back = generator.compiled_maps
  assert back is first


def test_status_line_keeps_latest_fps(make_source, make_sink, view, capsys):
  """Once measured, the frame rate appears on every later status line."""
  clock = FakeClock()
  meter = FrameRateMeter(window_seconds=1.0, clock=clock)
  source = make_source(_frames(4))
  driver = PipelineDriver(source, make_sink(), ViewController(view), frame_rate_meter=meter)

  # 2 seconds per frame: the first frame closes the first window
  clock.step = 2.0
  driver.run()

  lines = capsys.readouterr().out.split(LINE_START)
  status_lines = [line for line in lines if line.startswith("Frame:")]
  assert len(status_lines) == 4
  assert all("fps: 0.5" in line for line in status_lines)


def test_status_line_without_estimate_has_no_fps(make_source, make_sink, view, capsys):
  clock = FakeClock()
  meter = FrameRateMeter(window_seconds=1000.0, clock=clock)
  driver = PipelineDriver(make_source(_frames(2)), make_sink(), ViewController(view), frame_rate_meter=meter)

  driver.run()

  assert "fps" not in capsys.readouterr().out
