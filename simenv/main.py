from __future__ import annotations

import argparse
import signal
from typing import List, Optional

from .backends import available_backends, create_world
from .config_reader import WorldConfig
from .logging_utils import LogLevel, SimLogger, setup_logging
from .world import World


def setup_signal_handlers():
    """Restore default SIGPIPE handling so piping output into `head` exits quietly."""
    if hasattr(signal, "SIGPIPE"):
        signal.signal(signal.SIGPIPE, signal.SIG_DFL)


def _open_world(world_path: str, backend: Optional[str], debug: bool) -> World:
    cfg = WorldConfig.from_yaml(world_path)
    level = LogLevel.DEBUG if debug else LogLevel.parse(cfg.scene.log_level)
    world = create_world(backend or cfg.scene.backend, logger=SimLogger(level=level, debug=debug))
    with world.transaction() as txn:
        world.load_world(txn, cfg)
    return world


def cmd_info(world_path: str, backend: Optional[str], debug: bool) -> int:
    setup_logging(debug)
    world = _open_world(world_path, backend, debug)
    try:
        print(f"backend: {world.backend_name} (physics={'yes' if world.supports_physics() else 'no'})")
        print(f"timestep: {world.get_physics_timestep()}")
        for line in world.describe():
            print(line)
    finally:
        world.close()
    return 0


def cmd_step(world_path: str, steps: int, backend: Optional[str], debug: bool) -> int:
    logger = setup_logging(debug)
    world = _open_world(world_path, backend, debug)
    try:
        if not world.supports_physics():
            logger.error(f"backend '{world.backend_name}' does not support physics")
            return 2
        with world.transaction() as txn:
            world.step_physics(txn, steps)
        print(f"stepped {steps} x {world.get_physics_timestep()}s")
        for name, state in world.get_world_state().items():
            print(f"{name}: q={[round(float(v), 6) for v in state.dof_positions]}")
    finally:
        world.close()
    return 0


def cmd_collisions(world_path: str, backend: Optional[str], debug: bool) -> int:
    setup_logging(debug)
    world = _open_world(world_path, backend, debug)
    try:
        objects = world.get_objects(exclude_robots=False)
        colliding = 0
        for i, a in enumerate(objects):
            for b in objects[i + 1:]:
                contacts: List = []
                if world.check_collision(a, b, contacts):
                    colliding += 1
                    print(f"{a.get_name()} <-> {b.get_name()}: {len(contacts)} contacts")
        if not colliding:
            print("no collisions")
    finally:
        world.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="simenv", description="Backend-agnostic robot simulation environment")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--world", required=True, help="Path to YAML world file")
        p.add_argument("--backend", choices=available_backends(), default=None,
                       help="Override scene.backend from the world file")
        p.add_argument("--debug", action="store_true", help="Enable debug logging")

    p_info = sub.add_parser("info", help="Load a world and list its objects")
    common(p_info)
    p_info.set_defaults(func=lambda args: cmd_info(args.world, args.backend, args.debug))

    p_step = sub.add_parser("step", help="Step physics and print the resulting DOF positions")
    common(p_step)
    p_step.add_argument("--steps", type=int, default=1, help="Number of physics steps")
    p_step.set_defaults(func=lambda args: cmd_step(args.world, args.steps, args.backend, args.debug))

    p_col = sub.add_parser("collisions", help="Report colliding object pairs")
    common(p_col)
    p_col.set_defaults(func=lambda args: cmd_collisions(args.world, args.backend, args.debug))
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    setup_signal_handlers()
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
