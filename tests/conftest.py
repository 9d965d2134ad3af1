"""Shared pytest fixtures for OCVWarp tests."""

import numpy as np
import pytest

from ocvwarp.view_state import TransformMode, ViewState


class FrameListSource:
  """In-memory stand-in for VideoSource."""

  def __init__(self, frames):
    self.frames = list(frames)
    self.reads = 0

  def read(self):
    self.reads += 1
    if not self.frames:
      return None
    return self.frames.pop(0)


class FrameListSink:
  """In-memory stand-in for VideoSink."""

  def __init__(self):
    self.frames = []

  def write(self, frame):
    self.frames.append(frame.copy())


def solid_frame(width, height, color=(40, 120, 200)):
  frame = np.empty((height, width, 3), dtype=np.uint8)
  frame[:] = color
  return frame


@pytest.fixture
def make_solid_frame():
  return solid_frame


@pytest.fixture
def make_source():
  return FrameListSource


@pytest.fixture
def make_sink():
  return FrameListSink


@pytest.fixture(params=list(TransformMode), ids=lambda mode: mode.name)
def mode(request):
  """Parametrized over all four transform modes."""
  return request.param


@pytest.fixture
def small_view(mode):
  """A small view with non-zero pan in the given mode."""
  return ViewState(anglex=25.0, angley=-15.0, transform_mode=mode, output_width=64, output_height=48)
