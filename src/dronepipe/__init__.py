
from .loader import load_document, parse_document
from .emitter import dump_document
from .lint import lint_document, validate_document, LintPolicy
from .engine import run_document, BuildResult, PipelineResult, StepResult
from .context import BuildContext
from .model import Document, Pipeline, Step, Service, Volume

__all__ = [
    "load_document", "parse_document", "dump_document",
    "lint_document", "validate_document", "LintPolicy",
    "run_document", "BuildResult", "PipelineResult", "StepResult",
    "BuildContext",
    "Document", "Pipeline", "Step", "Service", "Volume",
]
