"""Predicates for resource files that are generated from other sources."""

from pathlib import PurePosixPath
from typing import Iterable, Set

KUSTOMIZATION_FILE_NAMES = frozenset({"kustomization.yaml", "kustomization.yml", "kustomization"})
HELM_CHART_FILE_NAMES = frozenset({"Chart.yaml", "Chart.yml"})
YAML_SUFFIXES = frozenset({".yaml", ".yml"})


def is_kustomization_file(path: str) -> bool:
    return PurePosixPath(path).name.lower() in KUSTOMIZATION_FILE_NAMES


def is_helm_chart_file(path: str) -> bool:
    return PurePosixPath(path).name in HELM_CHART_FILE_NAMES


def find_helm_chart_dirs(paths: Iterable[str]) -> Set[PurePosixPath]:
    """Directories holding a Helm ``Chart.yaml``."""
    return {PurePosixPath(path).parent for path in paths if is_helm_chart_file(path)}


def _chart_relative(path: PurePosixPath, chart_dirs: Set[PurePosixPath]):
    for chart_dir in chart_dirs:
        try:
            yield path.relative_to(chart_dir)
        except ValueError:
            continue


def is_helm_values_file(path: str, chart_dirs: Set[PurePosixPath]) -> bool:
    """``values*.yaml`` directly inside a chart directory."""
    pure = PurePosixPath(path)
    if pure.suffix.lower() not in YAML_SUFFIXES or not pure.name.lower().startswith("values"):
        return False
    return pure.parent in chart_dirs


def is_helm_template_file(path: str, chart_dirs: Set[PurePosixPath]) -> bool:
    """Any file below a chart's ``templates/`` directory."""
    pure = PurePosixPath(path)
    return any(
        len(relative.parts) > 1 and relative.parts[0] == "templates"
        for relative in _chart_relative(pure, chart_dirs)
    )


class DerivedResourceFilter:
    """
    Marks paths whose content is templated or generated rather than canonical:
    kustomization files plus Helm chart, values and template files.

    Chart directories are discovered from the full path listing passed in,
    so the filter must be built from every path at the commit.
    """

    def __init__(self, all_paths: Iterable[str]):
        self.chart_dirs = find_helm_chart_dirs(all_paths)

    def __call__(self, path: str) -> bool:
        return (
            is_kustomization_file(path)
            or is_helm_chart_file(path)
            or is_helm_values_file(path, self.chart_dirs)
            or is_helm_template_file(path, self.chart_dirs)
        )
