from __future__ import annotations

import argparse
import logging
import os
import time
from typing import Any, Dict, List, Optional, Tuple

from buddhabrot.config import load_config, normalise_config
from buddhabrot.errors import BuddhabrotError, CorruptPersistedBuffer
from buddhabrot.image.pillow_writer import write_image
from buddhabrot.pipeline import run_cycles
from buddhabrot.render import MODES, TONES, ToneMap, render
from buddhabrot.util.logging_setup import configure_root_logging, create_log_queue, get_logger, start_queue_listener
from buddhabrot.util.manifest import build_manifest, write_manifest

def _rgb(text: str) -> Tuple[int, int, int]:
    try:
        parts = tuple(int(p) for p in text.split(","))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"colour must be R,G,B: {text}") from e
    if len(parts) != 3 or not all(0 <= p <= 255 for p in parts):
        raise argparse.ArgumentTypeError(f"colour must be three values in 0..255: {text}")
    return parts

def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="buddhabrot", description="Monte Carlo Buddhabrot density sampler.")
    p.add_argument("--config", type=str, default=None, help="Path to config JSON. If omitted, built-in defaults are used.")
    p.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level.")
    p.add_argument("--log-file", type=str, default="buddhabrot.log", help="Log file path (rotating). Set empty to disable file logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("render", help="Sample orbits and store one buffer file per band.")
    r.add_argument("--threads", type=int, default=None, help="Override the number of workers.")
    r.add_argument("--duration", type=float, default=None, help="Override the time budget per cycle, in seconds.")
    r.add_argument("--cycles", type=int, default=None, help="Override the number of cycles (0 runs until interrupted).")
    r.add_argument("--output-dir", type=str, default=None, help="Override output_dir from config.")
    r.add_argument("--discard-corrupt", action="store_true", help="Overwrite persisted buffers of the wrong size instead of failing.")

    e = sub.add_parser("export", help="Tone map stored buffers into an image.")
    e.add_argument("--output", type=str, default="image.png", help="Image file to write.")
    e.add_argument("--output-dir", type=str, default=None, help="Directory holding the buffer files.")
    e.add_argument("--mode", type=str, default="rgb", choices=MODES, help="rgb: bands as channels; band: one band greyscale; mix: Lab blend.")
    e.add_argument("--band", type=int, default=0, help="Band index for --mode band.")
    e.add_argument("--tone", type=str, default="linear", choices=TONES, help="Response curve.")
    e.add_argument("--tone-param", type=float, default=1.0, help="Parameter of the response curve.")
    e.add_argument("--exposure", type=float, default=1.0, help="Linear scale applied after the curve.")
    e.add_argument("--color", dest="colors", type=_rgb, action="append", default=None, help="R,G,B colour per band for --mode mix. Repeat per band.")
    e.add_argument("--invert", action="store_true", help="Complement every channel.")
    return p

def _apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    if getattr(args, "threads", None) is not None:
        cfg["threads"] = args.threads
    if getattr(args, "duration", None) is not None:
        cfg["duration"] = args.duration
    if getattr(args, "cycles", None) is not None:
        cfg["cycles"] = args.cycles or None
    if args.output_dir:
        cfg["output_dir"] = args.output_dir
    return cfg

def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    log_file = args.log_file if args.log_file and args.log_file.strip() else None
    listener_logger = configure_root_logging(level=log_level, console=True, log_file=log_file)

    queue = create_log_queue()
    listener = start_queue_listener(queue, listener_logger)

    logger = get_logger()

    try:
        config = normalise_config(_apply_overrides(load_config(args.config), args))

        if args.cmd == "render":
            started = time.time()
            summary = run_cycles(config, log_queue=queue, log_level=log_level, discard_corrupt=args.discard_corrupt)
            manifest = build_manifest(config=config.to_dict(), summary=summary, started=started)
            path = os.path.join(config.output_dir, "run.json")
            write_manifest(path, manifest)
            logger.info("Run manifest written: %s", path)
            return 0

        if args.cmd == "export":
            tone = ToneMap(curve=args.tone, param=args.tone_param, exposure=args.exposure)
            image = render(config, mode=args.mode, band=args.band, tone=tone, colors=args.colors, invert=args.invert)
            write_image(args.output, image.data, image.width, image.height, image.channels)
            return 0

        raise RuntimeError("Unknown command.")
    except CorruptPersistedBuffer as e:
        logger.error("Corrupt buffer file %s: expected %s bytes, found %s", e.path, e.expected, e.actual)
        return 2
    except BuddhabrotError as e:
        logger.error("%s", e)
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    finally:
        listener.stop()

if __name__ == "__main__":
    raise SystemExit(main())
