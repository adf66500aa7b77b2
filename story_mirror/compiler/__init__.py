from story_mirror.compiler.mermaid import generate_mermaid
from story_mirror.compiler.parser import parse_run_yaml
from story_mirror.compiler.validator import format_errors, validate_run

__all__ = ["format_errors", "generate_mermaid", "parse_run_yaml", "validate_run"]
