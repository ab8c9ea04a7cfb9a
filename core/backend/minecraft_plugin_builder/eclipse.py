"""
Eclipse Project Files

Writes .project and .classpath so the project opens in Eclipse (and editors
that read Eclipse metadata) with the platform and dependency jars on the
classpath.
"""

import logging
import xml.etree.ElementTree as ET
from typing import List
from xml.dom import minidom

from .config import ProjectPaths
from .project import Project
from .resolver import DependencyResolver

logger = logging.getLogger(__name__)


def _pretty_xml(element: ET.Element) -> str:
    raw = ET.tostring(element, encoding="unicode")
    return minidom.parseString(raw).toprettyxml(indent="  ", encoding="UTF-8").decode("utf-8")


def generate_classpath(project: Project, paths: ProjectPaths, resolver: DependencyResolver) -> str:
    """.classpath content: sources, output, JRE, platform jar, dependency jars"""
    expected = resolver.artifacts_on_disk()

    root = ET.Element("classpath")
    ET.SubElement(root, "classpathentry", kind="src", path=paths.relative(paths.source_dir))
    ET.SubElement(root, "classpathentry", kind="output", path=paths.relative(paths.build_dir))
    ET.SubElement(root, "classpathentry", kind="con", path="org.eclipse.jdt.launching.JRE_CONTAINER")
    for jar in expected.classpath:
        ET.SubElement(root, "classpathentry", kind="lib", path=paths.relative(jar))
    return _pretty_xml(root)


def classpath_libraries(classpath_xml: str) -> List[str]:
    """lib entries of a .classpath document"""
    root = ET.fromstring(classpath_xml)
    return [entry.get("path") for entry in root.findall("classpathentry") if entry.get("kind") == "lib"]


def generate_project_file(project: Project) -> str:
    root = ET.Element("projectDescription")
    ET.SubElement(root, "name").text = project.name
    ET.SubElement(root, "comment").text = project.description
    ET.SubElement(root, "projects")

    build_spec = ET.SubElement(root, "buildSpec")
    build_command = ET.SubElement(build_spec, "buildCommand")
    ET.SubElement(build_command, "name").text = "org.eclipse.jdt.core.javabuilder"
    ET.SubElement(build_command, "arguments")

    natures = ET.SubElement(root, "natures")
    ET.SubElement(natures, "nature").text = "org.eclipse.jdt.core.javanature"
    return _pretty_xml(root)


def refresh_eclipse(project: Project, paths: ProjectPaths, resolver: DependencyResolver) -> None:
    """Rewrite .project and .classpath"""
    (paths.root / ".project").write_text(generate_project_file(project), encoding="utf-8")
    (paths.root / ".classpath").write_text(generate_classpath(project, paths, resolver), encoding="utf-8")
    logger.debug("Refreshed Eclipse project files")
