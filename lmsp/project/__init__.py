"""Document model and reference tracing."""

from .arena import BlockArena
from .document import Document
from .info import ProjectInfo, stack_name_from_comment
from .tracer import ReferenceTracer

__all__ = ["BlockArena", "Document", "ProjectInfo", "ReferenceTracer", "stack_name_from_comment"]
