"""Manuscript tools, their shared skeleton and the registry."""

from .base import BaseTool, ToolDependencies, ToolRunResult
from .consistency_checker import ConsistencyChecker
from .file_cache import FileCache
from .prompt_library import PromptLibrary
from .registry import TOOL_FACTORIES, ToolRegistry, build_registry
from .reports import ReportAssembler, ReportRequest
from .template_tool import TEMPLATE_TOOLS, TemplateTool, TemplateToolDefinition
from .tokens_words_counter import TokensWordsCounter

__all__ = [
    "BaseTool",
    "ConsistencyChecker",
    "FileCache",
    "PromptLibrary",
    "ReportAssembler",
    "ReportRequest",
    "TEMPLATE_TOOLS",
    "TOOL_FACTORIES",
    "TemplateTool",
    "TemplateToolDefinition",
    "ToolDependencies",
    "ToolRegistry",
    "ToolRunResult",
    "TokensWordsCounter",
    "build_registry",
]
