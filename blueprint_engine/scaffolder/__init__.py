"""Blueprint scaffolder -- renders and writes blueprint file trees.

Quick usage::

    from blueprint_engine.registry import Registry
    from blueprint_engine.scaffolder import BlueprintGenerator

    registry = Registry.from_directory("blueprints")
    generator = BlueprintGenerator(registry)
    result = await generator.generate(
        "cli-simple", {"ProjectName": "demo"}, "/tmp/demo"
    )
    result.raise_for_status()
"""

from blueprint_engine.scaffolder.generator import BlueprintGenerator
from blueprint_engine.scaffolder.materializer import Materializer, safe_relative_path
from blueprint_engine.scaffolder.selection import select_dependencies, select_post_hooks
from blueprint_engine.scaffolder.templates import PIPELINE_FUNCTIONS, TemplateRenderer, render_template

__all__ = [
    "BlueprintGenerator",
    "Materializer",
    "PIPELINE_FUNCTIONS",
    "TemplateRenderer",
    "render_template",
    "safe_relative_path",
    "select_dependencies",
    "select_post_hooks",
]
