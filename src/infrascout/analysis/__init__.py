"""Static analysis of repository checkouts."""

from infrascout.analysis.apps import AppDetector
from infrascout.analysis.ci_config import CIConfigDetector
from infrascout.analysis.dependencies import DependencyAnalyzer
from infrascout.analysis.monorepo import MonorepoDetector
from infrascout.analysis.path_guard import DiskUsageProbe, DuDiskUsageProbe, PathGuard
from infrascout.analysis.repository import RepositoryAnalyzer

__all__ = [
    "AppDetector",
    "CIConfigDetector",
    "DependencyAnalyzer",
    "DiskUsageProbe",
    "DuDiskUsageProbe",
    "MonorepoDetector",
    "PathGuard",
    "RepositoryAnalyzer",
]
