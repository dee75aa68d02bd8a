"""Application logic layer."""

from .app import TaskFlowCore
from .date_parser import ParseResult, format_date, parse_task_title

__all__ = ["ParseResult", "TaskFlowCore", "format_date", "parse_task_title"]
