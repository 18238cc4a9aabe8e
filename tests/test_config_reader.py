from simenv.config_reader import GeometryConfig, JointConfig, ObjectConfig, WorldConfig
import pytest
import textwrap
from pydantic import ValidationError


def test_load_minimal_config(tmp_path):
    cfg_yaml = tmp_path / "env.yaml"
    cfg_yaml.write_text(textwrap.dedent(
        """
        objects:
          - name: block
            links:
              - name: body
                geometries:
                  - type: sphere
                    radius: 0.1
        """
    ))
    cfg = WorldConfig.from_yaml(cfg_yaml)
    assert cfg.objects[0].name == "block"
    assert cfg.scene.dt == 0.01
    assert cfg.scene.backend == "reference"
    assert cfg.objects[0].robot is False
    assert cfg.objects[0].root_link() == "body"


def test_robots_are_flagged(world_yaml):
    cfg = WorldConfig.from_yaml(world_yaml)
    assert cfg.scene.dt == 0.02
    assert [o.name for o in cfg.all_objects()] == ["table", "cup", "slider"]
    assert cfg.robots[0].robot is True
    assert cfg.objects[1].base_dofs == ["x", "y", "z"]
    assert cfg.robots[0].joints[0].position_limits == (-0.5, 0.5)


def test_robot_include_with_overrides(tmp_path, world_yaml):
    (tmp_path / "meshes").mkdir()
    env = tmp_path / "env.yaml"
    env.write_text(textwrap.dedent(
        f"""
        robots:
          - {world_yaml.name}
          - include: {world_yaml.name}
            name: slider2
            position: [0.0, 2.0, 0.0]
        objects:
          - name: rock
            links:
              - name: body
                geometries:
                  - type: mesh
                    filename: meshes/rock.stl
        """
    ))
    cfg = WorldConfig.from_yaml(env)
    assert [r.name for r in cfg.robots] == ["slider", "slider2"]
    assert cfg.robots[1].position == (0.0, 2.0, 0.0)
    assert cfg.robots[1].joints[0].name == "slide"
    mesh = cfg.objects[0].links[0].geometries[0]
    assert mesh.filename == str((tmp_path / "meshes" / "rock.stl").resolve())


def test_duplicate_object_names():
    body = [{"name": "body", "geometries": [{"type": "sphere", "radius": 0.1}]}]
    with pytest.raises(ValidationError, match="duplicate object names"):
        WorldConfig(objects=[{"name": "a", "links": body}], robots=[{"name": "a", "links": body}])


def test_structure_validation():
    body = [{"name": "body"}]
    with pytest.raises(ValidationError, match="no links"):
        ObjectConfig(name="empty")
    with pytest.raises(ValidationError, match="base_dofs"):
        ObjectConfig(name="o", links=body, base_dofs=["x", "x"])
    with pytest.raises(ValidationError, match="outside this object"):
        ObjectConfig(name="o", links=body, joints=[{"name": "j", "parent": "body", "child": "other"}])
    with pytest.raises(ValidationError, match="duplicate link names"):
        ObjectConfig(name="o", links=body + body)
    cyclic = ObjectConfig(name="o", links=[{"name": "a"}, {"name": "b"}], joints=[
        {"name": "ab", "parent": "a", "child": "b"},
        {"name": "ba", "parent": "b", "child": "a"},
    ])
    with pytest.raises(ValueError, match="no root link"):
        cyclic.root_link()


def test_geometry_and_joint_validation():
    with pytest.raises(ValidationError, match="requires 'size'"):
        GeometryConfig(type="box")
    with pytest.raises(ValidationError, match="requires 'radius' and 'length'"):
        GeometryConfig(type="cylinder", radius=0.1)
    with pytest.raises(ValidationError, match="min > max"):
        JointConfig(name="j", parent="a", child="b", position_limits=(1.0, -1.0))
    with pytest.raises(ValidationError, match="axis must be non-zero"):
        JointConfig(name="j", parent="a", child="b", axis=(0.0, 0.0, 0.0))
    with pytest.raises(ValidationError):
        JointConfig(name="j", parent="a", child="b", type="spherical")
