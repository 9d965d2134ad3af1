import argparse
import cv2
import matplotlib
import matplotlib.pyplot as plt
from ocvwarp.frame_warp import apply_projection
from ocvwarp.map_compiler import compile_maps
from ocvwarp.projection_maps import generate_projection_maps
from ocvwarp.view_state import ViewState, TransformMode


def load_frame(path):
  """Load an image, or the first frame of a video."""
  frame = cv2.imread(path)
  if frame is not None:
    return frame
  capture = cv2.VideoCapture(path)
  ok, frame = capture.read()
  capture.release()
  if not ok:
    raise ValueError(f"Could not load image or video frame: {path}")
  return frame


def display_comparison(input_path, output_path='comparison.png', output_width=960, output_height=540,
                       anglex=0.0, angley=0.0, show=True):
  """
  Display the input frame next to its warp under every transform mode.
  """
  original = load_frame(input_path)

  fig, axes = plt.subplots(2, 3, figsize=(18, 8))
  axes = axes.ravel()

  axes[0].imshow(cv2.cvtColor(original, cv2.COLOR_BGR2RGB))
  axes[0].set_title('Input', fontsize=14)

  for ax, mode in zip(axes[1:], TransformMode):
    view = ViewState(anglex, angley, mode, output_width, output_height)
    warped = apply_projection(original, compile_maps(generate_projection_maps(view)))
    ax.imshow(cv2.cvtColor(warped, cv2.COLOR_BGR2RGB))
    ax.set_title(f'{int(mode)}: {mode.name}', fontsize=11)

  for ax in axes:
    ax.axis('off')

  plt.tight_layout()
  plt.savefig(output_path, dpi=150, bbox_inches='tight')
  if show:
    plt.show()

  print(f"Comparison saved as '{output_path}'")
  print(f"Input shape: {original.shape}")


if __name__ == "__main__":
  parser = argparse.ArgumentParser(description="Preview all four projections of one frame.")
  parser.add_argument("input", help="image or video file")
  parser.add_argument("-o", "--output", default="comparison.png")
  parser.add_argument("--width", type=int, default=960)
  parser.add_argument("--height", type=int, default=540)
  parser.add_argument("--anglex", type=float, default=0.0)
  parser.add_argument("--angley", type=float, default=0.0)
  parser.add_argument("--no-show", action="store_true", help="only save the figure")
  args = parser.parse_args()

  if args.no_show:
    matplotlib.use("Agg")
  display_comparison(args.input, args.output, args.width, args.height,
                     args.anglex, args.angley, show=not args.no_show)
