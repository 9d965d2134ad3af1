import argparse
import sys
from ocvwarp.cache_manager import CacheManager
from ocvwarp.commands import NullCommandSource, WaitKeyCommandSource
from ocvwarp.pipeline import PipelineDriver
from ocvwarp.projection_maps import ProjectionMapGenerator
from ocvwarp.video_io import VideoSource, VideoSink, output_path_for
from ocvwarp.view_controller import ViewController
from ocvwarp.view_state import parse_view_config

KEY_HELP = """interactive keys (with --preview):
  u + =   angley +1      U   angley +10
  m - _   angley -1      M   angley -10
  k } ]   anglex +1      K   anglex +10
  h { [   anglex -1      H   anglex -10
  x X Esc quit
"""


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    description="Warp a video between equirectangular and fisheye projections.",
    epilog=KEY_HELP,
    formatter_class=argparse.RawDescriptionHelpFormatter
  )
  parser.add_argument("input", nargs="?", default="input.mp4", help="input video (default: input.mp4)")
  parser.add_argument("-o", "--output", help="output video (default: input name + 'F.avi')")
  parser.add_argument("-c", "--config", default="config/OCVWarp.yaml",
                      help="view configuration, YAML or legacy .ini (default: config/OCVWarp.yaml)")
  parser.add_argument("--fourcc", help="four character output codec (default: same as the input)")
  parser.add_argument("--preview", action="store_true",
                      help="show the warped frames in a window that accepts the interactive keys")
  parser.add_argument("--quiet", action="store_true", help="do not print the per-frame status line")
  parser.add_argument("--cache-mb", type=float, default=None,
                      help="keep compiled maps of earlier views in an LRU cache of this size (default: no cache)")
  return parser


def main(argv=None) -> int:
  args = build_parser().parse_args(argv)

  view = parse_view_config(args.config)
  print(f"Initial view: {view}")

  output_path = args.output or output_path_for(args.input)

  try:
    with VideoSource(args.input) as source:
      print(f"Input frame resolution: Width={source.width}  Height={source.height} "
            f"of nr#: {source.frame_count}")
      print(f"Input codec type: {source.codec_name}")

      fourcc = args.fourcc if args.fourcc else source.fourcc
      with VideoSink(output_path, source.fps, view.output_size, fourcc) as sink:
        if args.preview:
          command_source = WaitKeyCommandSource(delay_ms=10, window_name="Display")
        else:
          command_source = NullCommandSource()

        cache_manager = CacheManager(max_memory_mb=args.cache_mb) if args.cache_mb else None
        driver = PipelineDriver(source, sink, ViewController(view),
                                command_source=command_source,
                                generator=ProjectionMapGenerator(cache_manager=cache_manager),
                                show_status=not args.quiet)
        state = driver.run()
  except IOError as e:
    print(f"Error: {e}", file=sys.stderr)
    return 1

  print(f"Output written to: {output_path} ({state.frame_index} frames)")
  return 0


if __name__ == "__main__":
  sys.exit(main())
