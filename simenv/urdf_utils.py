from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

from .config_reader import GeometryConfig, JointConfig, LinkConfig, ObjectConfig
from .utils import make_transform, transform_to_xyz_rpy


def _floats(text: Optional[str], default: Tuple[float, ...]) -> Tuple[float, ...]:
    if not text:
        return default
    return tuple(float(x) for x in text.split())


def _origin(elem: Optional[ET.Element]) -> np.ndarray:
    if elem is None:
        return np.eye(4)
    xyz = _floats(elem.attrib.get("xyz"), (0.0, 0.0, 0.0))
    rpy = _floats(elem.attrib.get("rpy"), (0.0, 0.0, 0.0))
    return make_transform(xyz, rpy)


def _resolve_mesh(filename: str, urdf_dir: Path) -> str:
    if filename.startswith("file://"):
        filename = filename[len("file://"):]
    if filename.startswith("package://"):
        # No ROS package index; assume the package root sits next to the URDF
        filename = filename[len("package://"):].split("/", 1)[-1]
    p = Path(filename)
    return str(p if p.is_absolute() else (urdf_dir / p).resolve())


def _parse_geometry(col: ET.Element, urdf_dir: Path) -> Optional[Tuple[GeometryConfig, np.ndarray]]:
    geom = col.find("geometry")
    if geom is None:
        return None
    T = _origin(col.find("origin"))
    box = geom.find("box")
    sphere = geom.find("sphere")
    cyl = geom.find("cylinder")
    mesh = geom.find("mesh")
    if box is not None:
        cfg = GeometryConfig(type="box", size=_floats(box.attrib.get("size"), (1.0, 1.0, 1.0)))
    elif sphere is not None:
        cfg = GeometryConfig(type="sphere", radius=float(sphere.attrib["radius"]))
    elif cyl is not None:
        cfg = GeometryConfig(type="cylinder", radius=float(cyl.attrib["radius"]),
                             length=float(cyl.attrib["length"]))
    elif mesh is not None and "filename" in mesh.attrib:
        scale = _floats(mesh.attrib.get("scale"), (1.0, 1.0, 1.0))
        if len(scale) == 1:
            scale = (scale[0],) * 3
        cfg = GeometryConfig(type="mesh", filename=_resolve_mesh(mesh.attrib["filename"], urdf_dir),
                             scale=scale)
    else:
        return None
    return cfg, T


def get_urdf_root_link_name(urdf_path: str | Path) -> Optional[str]:
    """
    Returns the root/base link name of a URDF by finding a link that is never a child of any joint.
    """
    tree = ET.parse(str(urdf_path))
    root = tree.getroot()
    links = [link.get("name") for link in root.findall("link")]
    children = {joint.find("child").attrib.get("link") for joint in root.findall("joint") if joint.find("child") is not None}
    bases = [l for l in links if l not in children]
    if bases:
        return bases[0]
    return links[0] if links else None


def object_config_from_urdf(urdf_path: str | Path, name: Optional[str] = None) -> ObjectConfig:
    """
    Convert a URDF into an ObjectConfig.

    Links attached through fixed joints are folded into their first movable
    ancestor: their collision geometries are re-expressed in the ancestor's
    frame and recorded in `link_aliases`. Continuous joints become unlimited
    revolute joints. Floating and planar joints are rejected.
    """
    path = Path(urdf_path)
    tree = ET.parse(path)
    root = tree.getroot()
    urdf_dir = path.parent

    # child -> (parent, origin, joint element)
    parent_of: Dict[str, Tuple[str, np.ndarray, ET.Element]] = {}
    for j in root.findall("joint"):
        jtype = j.get("type")
        if jtype in ("floating", "planar"):
            raise ValueError(f"{path}: joint '{j.get('name')}' of type '{jtype}' is not supported")
        parent = j.find("parent").attrib["link"]
        child = j.find("child").attrib["link"]
        parent_of[child] = (parent, _origin(j.find("origin")), j)

    def effective(link: str) -> Tuple[str, np.ndarray]:
        """First ancestor (or self) not attached by a fixed joint, and link's pose in it."""
        T = np.eye(4)
        while link in parent_of and parent_of[link][2].get("type") == "fixed":
            parent, origin, _ = parent_of[link]
            T = origin @ T
            link = parent
        return link, T

    links: Dict[str, LinkConfig] = {}
    aliases: Dict[str, str] = {}
    for link_el in root.findall("link"):
        lname = link_el.get("name")
        target, T = effective(lname)
        if target != lname:
            aliases[lname] = target
        if target not in links:
            links[target] = LinkConfig(name=target)
        inertial = link_el.find("inertial")
        if inertial is not None and inertial.find("mass") is not None and target == lname:
            links[target].mass = max(float(inertial.find("mass").attrib.get("value", 1.0)), 1e-6)
        for col in link_el.findall("collision"):
            parsed = _parse_geometry(col, urdf_dir)
            if parsed is None:
                continue
            gcfg, G = parsed
            xyz_rpy = transform_to_xyz_rpy(T @ G)
            gcfg.origin_xyz = tuple(float(v) for v in xyz_rpy[:3])
            gcfg.origin_rpy = tuple(float(v) for v in xyz_rpy[3:])
            links[target].geometries.append(gcfg)

    joints: List[JointConfig] = []
    for j in root.findall("joint"):
        jtype = j.get("type")
        if jtype == "fixed":
            continue
        parent, origin, _ = parent_of[j.find("child").attrib["link"]]
        eff_parent, T = effective(parent)
        xyz_rpy = transform_to_xyz_rpy(T @ origin)
        limit = j.find("limit")
        pos_lim = None
        vel_lim = None
        if limit is not None:
            if jtype != "continuous" and "lower" in limit.attrib and "upper" in limit.attrib:
                pos_lim = (float(limit.attrib["lower"]), float(limit.attrib["upper"]))
            if "velocity" in limit.attrib:
                v = abs(float(limit.attrib["velocity"]))
                vel_lim = (-v, v)
        axis_el = j.find("axis")
        joints.append(JointConfig(
            name=j.get("name"),
            type="prismatic" if jtype == "prismatic" else "revolute",
            parent=eff_parent,
            child=j.find("child").attrib["link"],
            axis=_floats(axis_el.attrib.get("xyz") if axis_el is not None else None, (1.0, 0.0, 0.0)),
            origin_xyz=tuple(float(v) for v in xyz_rpy[:3]),
            origin_rpy=tuple(float(v) for v in xyz_rpy[3:]),
            position_limits=pos_lim,
            velocity_limits=vel_lim,
        ))

    return ObjectConfig(
        name=name or root.get("name") or path.stem,
        urdf=str(path.resolve()),
        base_link=get_urdf_root_link_name(path),
        links=list(links.values()),
        joints=joints,
        link_aliases=aliases,
    )


def _fmt(values) -> str:
    return " ".join(f"{float(v):.9g}" for v in values)


def write_urdf(cfg: ObjectConfig, out_path: str | Path) -> Path:
    """
    Serialize an inline ObjectConfig as URDF (used to hand inline objects to
    URDF-loading backends). Unlimited revolute joints become continuous.
    """
    robot = ET.Element("robot", name=cfg.name)
    for link in cfg.links:
        le = ET.SubElement(robot, "link", name=link.name)
        inertial = ET.SubElement(le, "inertial")
        ET.SubElement(inertial, "origin", xyz="0 0 0", rpy="0 0 0")
        ET.SubElement(inertial, "mass", value=f"{link.mass:.9g}")
        ET.SubElement(inertial, "inertia", ixx="0.01", ixy="0", ixz="0", iyy="0.01", iyz="0", izz="0.01")
        for g in link.geometries:
            for tag in ("collision", "visual"):
                ce = ET.SubElement(le, tag)
                ET.SubElement(ce, "origin", xyz=_fmt(g.origin_xyz), rpy=_fmt(g.origin_rpy))
                ge = ET.SubElement(ce, "geometry")
                if g.type == "box":
                    ET.SubElement(ge, "box", size=_fmt(g.size))
                elif g.type == "sphere":
                    ET.SubElement(ge, "sphere", radius=f"{g.radius:.9g}")
                elif g.type == "cylinder":
                    ET.SubElement(ge, "cylinder", radius=f"{g.radius:.9g}", length=f"{g.length:.9g}")
                else:
                    ET.SubElement(ge, "mesh", filename=str(g.filename), scale=_fmt(g.scale))
    for j in cfg.joints:
        unlimited = j.position_limits is None
        jtype = j.type
        if jtype == "revolute" and unlimited:
            jtype = "continuous"
        je = ET.SubElement(robot, "joint", name=j.name, type=jtype)
        ET.SubElement(je, "parent", link=j.parent)
        ET.SubElement(je, "child", link=j.child)
        ET.SubElement(je, "origin", xyz=_fmt(j.origin_xyz), rpy=_fmt(j.origin_rpy))
        ET.SubElement(je, "axis", xyz=_fmt(j.axis))
        lower, upper = j.position_limits if not unlimited else (-1e9, 1e9)
        velocity = abs(j.velocity_limits[1]) if j.velocity_limits is not None else 1e9
        ET.SubElement(je, "limit", lower=f"{lower:.9g}", upper=f"{upper:.9g}",
                      velocity=f"{velocity:.9g}", effort="1e9")
    out_path = Path(out_path)
    ET.ElementTree(robot).write(out_path)
    return out_path
