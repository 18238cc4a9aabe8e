import pytest

from simenv import backends
from simenv.backends import active_backend, available_backends, backend_class, create_world
from simenv.backends.reference import ReferenceWorld
from simenv.errors import BackendConflictError
from simenv.logging_utils import SimLogger


def test_available_backends():
    assert available_backends() == ["pybullet", "reference"]
    assert backend_class("reference") is ReferenceWorld


def test_create_world_pins_backend(reset_backend, logger):
    assert active_backend() is None
    world = create_world("reference", logger=logger, timestep=0.05)
    try:
        assert isinstance(world, ReferenceWorld)
        assert world.get_physics_timestep() == 0.05
        assert world.get_logger() is logger
        assert active_backend() == "reference"
        # the same backend may be created again
        create_world("Reference", logger=logger).close()
    finally:
        world.close()


def test_second_backend_conflicts(reset_backend, logger):
    world = create_world("reference", logger=logger)
    try:
        with pytest.raises(BackendConflictError):
            create_world("pybullet", logger=logger)
        assert active_backend() == "reference"
    finally:
        world.close()


def test_unknown_backend(reset_backend):
    with pytest.raises(ValueError, match="Unknown backend"):
        create_world("mujoco")
    assert backends._active is None


def test_world_builds_its_own_logger(reset_backend):
    world = create_world()
    try:
        assert isinstance(world.get_logger(), SimLogger)
        assert world.get_logger().name == "simenv.reference"
    finally:
        world.close()
