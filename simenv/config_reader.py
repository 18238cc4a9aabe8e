"""Configuration models and YAML loader for simenv world files."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, model_validator

from .dofs import BASE_AXES, MAX_BASE_DOFS


Vec3 = Tuple[float, float, float]
Limits = Tuple[float, float]


class SceneConfig(BaseModel):
    dt: float = Field(0.01, gt=0.0)
    gravity: Vec3 = (0.0, 0.0, -9.81)
    backend: str = "reference"
    log_level: str = "info"
    # Max contacts reported per geometry pair in contact-collecting queries
    contact_limit: int = Field(4, ge=1)


class GeometryConfig(BaseModel):
    type: Literal["box", "sphere", "cylinder", "mesh"]
    size: Optional[Vec3] = None        # box: full side lengths
    radius: Optional[float] = None     # sphere, cylinder
    length: Optional[float] = None     # cylinder, along local z
    filename: Optional[str] = None     # mesh
    scale: Vec3 = (1.0, 1.0, 1.0)
    origin_xyz: Vec3 = (0.0, 0.0, 0.0)
    origin_rpy: Vec3 = (0.0, 0.0, 0.0)

    @model_validator(mode="after")
    def _check_shape(self) -> "GeometryConfig":
        if self.type == "box" and self.size is None:
            raise ValueError("box geometry requires 'size'")
        if self.type == "sphere" and self.radius is None:
            raise ValueError("sphere geometry requires 'radius'")
        if self.type == "cylinder" and (self.radius is None or self.length is None):
            raise ValueError("cylinder geometry requires 'radius' and 'length'")
        if self.type == "mesh" and not self.filename:
            raise ValueError("mesh geometry requires 'filename'")
        return self


class LinkConfig(BaseModel):
    name: str
    geometries: List[GeometryConfig] = Field(default_factory=list)
    collidable: bool = True
    mass: float = Field(1.0, gt=0.0)


class JointConfig(BaseModel):
    name: str
    type: Literal["revolute", "prismatic"] = "revolute"
    parent: str
    child: str
    axis: Vec3 = (0.0, 0.0, 1.0)
    origin_xyz: Vec3 = (0.0, 0.0, 0.0)
    origin_rpy: Vec3 = (0.0, 0.0, 0.0)
    # None = unlimited
    position_limits: Optional[Limits] = None
    velocity_limits: Optional[Limits] = None
    acceleration_limits: Optional[Limits] = None
    inertia: float = Field(1.0, gt=0.0)
    initial_position: float = 0.0

    @model_validator(mode="after")
    def _check_limits(self) -> "JointConfig":
        for field_name in ("position_limits", "velocity_limits", "acceleration_limits"):
            lim = getattr(self, field_name)
            if lim is not None and lim[0] > lim[1]:
                raise ValueError(f"joint '{self.name}': {field_name} min > max")
        if all(abs(a) < 1e-12 for a in self.axis):
            raise ValueError(f"joint '{self.name}': axis must be non-zero")
        return self


class ObjectConfig(BaseModel):
    """
    One object (or robot) in the world.

    Either `links`/`joints` are given inline, or `urdf` names a URDF file which
    WorldConfig.from_yaml expands into links/joints. `base_dofs` lists the free
    base axes; an empty list makes the object static.
    """
    name: str
    robot: bool = False
    urdf: Optional[str] = None
    base_link: Optional[str] = None
    base_dofs: List[Literal["x", "y", "z", "rx", "ry", "rz"]] = Field(default_factory=list)
    position: Vec3 = (0.0, 0.0, 0.0)
    rpy: Vec3 = (0.0, 0.0, 0.0)
    links: List[LinkConfig] = Field(default_factory=list)
    joints: List[JointConfig] = Field(default_factory=list)
    base_inertia: float = Field(1.0, gt=0.0)
    # Links folded into another link (e.g. fixed URDF joints): alias -> link
    link_aliases: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_structure(self) -> "ObjectConfig":
        if len(self.base_dofs) > MAX_BASE_DOFS or len(set(self.base_dofs)) != len(self.base_dofs):
            raise ValueError(f"object '{self.name}': base_dofs must be distinct axes of {list(BASE_AXES)}")
        if self.urdf is not None and not self.links:
            # Expanded later by WorldConfig.from_yaml / urdf_utils
            return self
        if not self.links:
            raise ValueError(f"object '{self.name}' has no links")
        link_names = [l.name for l in self.links]
        if len(set(link_names)) != len(link_names):
            raise ValueError(f"object '{self.name}': duplicate link names")
        joint_names = [j.name for j in self.joints]
        if len(set(joint_names)) != len(joint_names):
            raise ValueError(f"object '{self.name}': duplicate joint names")
        known = set(link_names)
        for j in self.joints:
            if j.parent not in known or j.child not in known:
                raise ValueError(
                    f"object '{self.name}': joint '{j.name}' connects links outside this object"
                )
        if self.base_link is not None and self.base_link not in known:
            raise ValueError(f"object '{self.name}': unknown base_link '{self.base_link}'")
        return self

    def root_link(self) -> str:
        """Base link: explicit, else the first link that is never a joint child."""
        if self.base_link is not None:
            return self.base_link
        children = {j.child for j in self.joints}
        roots = [l.name for l in self.links if l.name not in children]
        if not roots:
            raise ValueError(f"object '{self.name}': kinematic graph has no root link")
        return roots[0]


class WorldConfig(BaseModel):
    """
    Top-level world description.

    Attributes:
        scene: Physics/collision parameters and backend selection
        objects: Passive objects
        robots: Actuated objects (robot flag forced on)
    """
    scene: SceneConfig = Field(default_factory=SceneConfig)
    objects: List[ObjectConfig] = Field(default_factory=list)
    robots: List[ObjectConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_names(self) -> "WorldConfig":
        for r in self.robots:
            r.robot = True
        names = [o.name for o in self.all_objects()]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate object names: {dupes}")
        return self

    def all_objects(self) -> List[ObjectConfig]:
        return list(self.objects) + list(self.robots)

    @staticmethod
    def from_yaml(path: str | Path) -> "WorldConfig":
        """
        Load a world file.

        - robots entries may be inline mappings, a string path to another YAML
          (first robot of that file), or {'include': file, ...overrides}
        - relative urdf/mesh paths are resolved against the including file
        - urdf entries without inline links are expanded via urdf_utils
        """
        from .urdf_utils import object_config_from_urdf

        path = Path(path)
        data = yaml.safe_load(path.read_text()) or {}

        def resolve(entry: Dict[str, Any], base_dir: Path) -> Dict[str, Any]:
            entry = dict(entry)
            if entry.get("urdf"):
                entry["urdf"] = str((base_dir / entry["urdf"]).resolve())
            for link in entry.get("links") or []:
                for g in link.get("geometries") or []:
                    if g.get("filename"):
                        g["filename"] = str((base_dir / g["filename"]).resolve())
            return entry

        def include(inc: str | Path) -> Dict[str, Any]:
            inc_path = (path.parent / inc).resolve()
            inc_data = yaml.safe_load(inc_path.read_text()) or {}
            inc_robots = inc_data.get("robots") or []
            if not inc_robots:
                raise ValueError(f"Included file {inc_path} has no 'robots' list")
            return resolve(inc_robots[0], inc_path.parent)

        robots: List[Dict[str, Any]] = []
        for entry in data.get("robots") or []:
            if isinstance(entry, str):
                robots.append(include(entry))
            elif isinstance(entry, dict) and "include" in entry:
                base_map = include(entry["include"])
                base_map.update({k: v for k, v in entry.items() if k != "include"})
                robots.append(base_map)
            elif isinstance(entry, dict):
                robots.append(resolve(entry, path.parent))
            else:
                raise TypeError("robots: each item must be a mapping, or a string path to a YAML (include)")

        objects = [resolve(o, path.parent) for o in (data.get("objects") or []) if isinstance(o, dict)]

        expanded = []
        for entry in objects + robots:
            if entry.get("urdf") and not entry.get("links"):
                from_urdf = object_config_from_urdf(entry["urdf"], name=entry["name"])
                merged = from_urdf.model_dump()
                merged.update({k: v for k, v in entry.items() if v is not None})
                entry = merged
            expanded.append(entry)

        scene = SceneConfig(**(data.get("scene") or {}))
        return WorldConfig(
            scene=scene,
            objects=[ObjectConfig(**o) for o in expanded[:len(objects)]],
            robots=[ObjectConfig(**r) for r in expanded[len(objects):]],
        )
