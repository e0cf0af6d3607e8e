"""
Task modules for the remediation pipeline.

Exports: SplitTask, AutotagTask, AltTextTask, MergeTask, TitleTask,
AccessibilityCheckTask
"""

from .accessibility_check_task import AccessibilityCheckTask, check_document
from .alt_text_task import AltTextTask
from .autotag_task import AutotagTask
from .merge_task import MergeTask
from .split_task import SplitTask, plan_chunks
from .title_task import TitleTask, apply_title

__all__ = [
    "AccessibilityCheckTask",
    "AltTextTask",
    "AutotagTask",
    "MergeTask",
    "SplitTask",
    "TitleTask",
    "apply_title",
    "check_document",
    "plan_chunks",
]
