#!/usr/bin/env python3
"""Test the package structure and its public exports."""

import ast
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

PACKAGE_ROOT = Path(__file__).parent / "vcsync"


def test_module_syntax():
    """Test that all Python files have valid syntax."""
    print("Testing module syntax...")

    errors = []
    for file_path in sorted(PACKAGE_ROOT.rglob('*.py')):
        try:
            ast.parse(file_path.read_text(encoding='utf-8'))
            print(f"  ✓ {file_path.relative_to(PACKAGE_ROOT.parent)}")
        except SyntaxError as e:
            errors.append(f"{file_path}: {e}")
            print(f"  ✗ {file_path}: {e}")

    assert not errors, errors


def test_package_layout():
    """Test that every package directory has an __init__.py."""
    print("\nTesting package layout...")

    for directory in [PACKAGE_ROOT, PACKAGE_ROOT / "git_sync"]:
        assert (directory / "__init__.py").exists(), f"{directory} is missing __init__.py"
        print(f"  ✓ {directory.name}/__init__.py")


def test_git_sync_exports():
    """Test that the git_sync package exports its public API."""
    print("\nTesting git_sync exports...")

    import vcsync.git_sync as git_sync

    expected_exports = [
        'VcsCommandRunner',
        'RepositoryStateProber',
        'ChangeSetBuilder',
        'BranchMutator',
        'ChangeWatcher',
        'ProjectRepositoryManager',
        'RepositoryStateStore',
        'GitResult',
        'VcsError',
        'VcsErrorKind',
    ]

    missing_exports = [name for name in expected_exports if not hasattr(git_sync, name)]
    assert not missing_exports, f"git_sync missing exports: {missing_exports}"
    assert set(expected_exports) <= set(git_sync.__all__)
    print("  ✓ git_sync exports all expected names")


def test_package_metadata():
    """Test the top-level package metadata and entry point."""
    print("\nTesting package metadata...")

    import vcsync

    assert vcsync.__version__ == "1.0.0"
    assert callable(vcsync.main)
    print(f"  ✓ vcsync {vcsync.__version__}")


def main():
    """Run all module structure tests."""
    print("vcsync Module Structure Test")
    print("=" * 50)

    tests = [
        ("Syntax validation", test_module_syntax),
        ("Package layout", test_package_layout),
        ("git_sync exports", test_git_sync_exports),
        ("Package metadata", test_package_metadata),
    ]

    results = []
    for test_name, test_func in tests:
        print(f"\n{test_name}")
        print("-" * 30)
        try:
            test_func()
            results.append((test_name, True))
        except AssertionError as e:
            print(f"  ✗ {e}")
            results.append((test_name, False))

    print("\n" + "=" * 50)
    print("MODULE STRUCTURE TEST SUMMARY")
    print("=" * 50)

    passed = sum(1 for _, success in results if success)
    for test_name, success in results:
        print(f"{'✅ PASS' if success else '❌ FAIL'} {test_name}")

    print(f"\nResults: {passed}/{len(results)} tests passed")
    return passed == len(results)


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
