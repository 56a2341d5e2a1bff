"""Command-line interface."""
import argparse
import logging
import sys
from dataclasses import replace

import numpy as np

from kerrlens.camera import OrbitCamera
from kerrlens.config import FrameParameters, MassSpinConfig, Quality, TraceSettings, load_settings
from kerrlens.environment import ProceduralSky, SkyMapSampler
from kerrlens.logging_config import setup_logging
from kerrlens.render import plot_paths, render_frame, save_image, trace_fan
from kerrlens.tracer import trace

logger = logging.getLogger("kerrlens.cli")


def build_parser():
    parser = argparse.ArgumentParser(prog="kerrlens", description="Trace light around a Kerr black hole.")
    parser.add_argument("--mass", type=float, default=1.0)
    parser.add_argument("--spin", type=float, default=0.0)
    parser.add_argument("--quality", choices=[q.value for q in Quality], default=Quality.FAST.value)
    parser.add_argument("--steps", type=int, default=None, help="step budget per ray")
    parser.add_argument("--settings", default=None, help="JSON file of trace settings")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-file", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    p_trace = sub.add_parser("trace", help="trace a single ray")
    p_trace.add_argument("--origin", type=float, nargs=3, required=True)
    p_trace.add_argument("--direction", type=float, nargs=3, required=True)

    p_render = sub.add_parser("render", help="render an image")
    p_render.add_argument("--width", type=int, default=160)
    p_render.add_argument("--height", type=int, default=90)
    p_render.add_argument("--distance", type=float, default=30.0, help="camera distance in units of mass")
    p_render.add_argument("--azimuth", type=float, default=0.0)
    p_render.add_argument("--elevation", type=float, default=1.42, help="polar angle in radians")
    p_render.add_argument("--fov", type=float, default=60.0)
    p_render.add_argument("--sky", default=None, help="equirectangular sky image or FITS file")
    p_render.add_argument("--workers", type=int, default=1)
    p_render.add_argument("--out", required=True)

    p_paths = sub.add_parser("paths", help="plot an equatorial fan of ray paths")
    p_paths.add_argument("--rays", type=int, default=24)
    p_paths.add_argument("--distance", type=float, default=30.0)
    p_paths.add_argument("--out", required=True)
    return parser


def load_sampler(path):
    if path is None:
        return ProceduralSky()
    if str(path).lower().endswith((".fits", ".fit", ".fts")):
        return SkyMapSampler.from_fits(path)
    return SkyMapSampler.from_image(path)


def run(args):
    settings = load_settings(args.settings) if args.settings else TraceSettings()
    if args.steps is not None:
        settings = replace(settings, max_steps=args.steps)
    params = FrameParameters(
        config=MassSpinConfig(mass=args.mass, spin=args.spin),
        quality=Quality(args.quality),
        settings=settings,
    )

    if args.command == "trace":
        outcome = trace(args.origin, args.direction, params.config, params.quality, params.settings)
        direction = "-" if outcome.direction is None else np.array2string(outcome.direction, precision=6)
        print(f"{outcome.kind.value} ({outcome.termination.value}) after {outcome.steps} steps, "
              f"direction {direction}")
    elif args.command == "render":
        camera = OrbitCamera(radius=args.distance * args.mass, azimuth=args.azimuth,
                             elevation=args.elevation, fov_degrees=args.fov)
        image = render_frame(camera, params, load_sampler(args.sky), args.width, args.height, args.workers)
        save_image(args.out, image)
    elif args.command == "paths":
        outcomes = trace_fan(params.config, params.quality, params.settings,
                             n_rays=args.rays, distance=args.distance)
        plot_paths(outcomes, params.config, args.out)
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level.upper(), logging.INFO), args.log_file)
    try:
        return run(args)
    except (ValueError, OSError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
