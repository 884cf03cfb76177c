"""Blueprint generation engine.

Turns a declarative project blueprint plus user-supplied variable values into
a directory of generated files.

Usage::

    from blueprint_engine import BlueprintGenerator, Registry

    registry = Registry.from_directory("blueprints")
    result = await BlueprintGenerator(registry).generate(
        "cli-simple", {"ProjectName": "demo"}, "./demo"
    )
    print(result.destinations, result.dependencies, result.post_hooks)
"""

from blueprint_engine.conditions import condition_holds, evaluate, parse_condition
from blueprint_engine.config import EngineConfig
from blueprint_engine.errors import BlueprintError, ErrorKind
from blueprint_engine.models import (
    BlueprintManifest,
    DependencyEntry,
    FileEntry,
    GeneratedFile,
    GenerationResult,
    GenerationStatus,
    PlannedFile,
    PostHook,
    ProgressEvent,
    VariableDef,
    VariableType,
)
from blueprint_engine.registry import Registry, load_manifest
from blueprint_engine.scaffolder import (
    BlueprintGenerator,
    Materializer,
    TemplateRenderer,
    render_template,
    select_dependencies,
    select_post_hooks,
)
from blueprint_engine.variables import GenerationContext, resolve_variables

__all__ = [
    "BlueprintError",
    "BlueprintGenerator",
    "BlueprintManifest",
    "DependencyEntry",
    "EngineConfig",
    "ErrorKind",
    "FileEntry",
    "GeneratedFile",
    "GenerationContext",
    "GenerationResult",
    "GenerationStatus",
    "Materializer",
    "PlannedFile",
    "PostHook",
    "ProgressEvent",
    "Registry",
    "TemplateRenderer",
    "VariableDef",
    "VariableType",
    "condition_holds",
    "evaluate",
    "load_manifest",
    "parse_condition",
    "render_template",
    "resolve_variables",
    "select_dependencies",
    "select_post_hooks",
]
