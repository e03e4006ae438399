#!/usr/bin/env python3
"""Test runner for the vcsync test suites."""

import sys
import subprocess
from pathlib import Path


def run_test(test_file: str, description: str) -> bool:
    """Run a single test file and return success status."""
    print(f"\n{'='*60}")
    print(f"Running: {description}")
    print(f"File: {test_file}")
    print('='*60)

    try:
        result = subprocess.run([sys.executable, test_file], capture_output=False, text=True)

        success = result.returncode == 0
        print(f"\n{'✅ PASSED' if success else '❌ FAILED'}: {description}")
        return success

    except OSError as e:
        print(f"❌ ERROR running {test_file}: {e}")
        return False


def main():
    """Run every vcsync test suite."""
    print("vcsync Test Suite")
    print("="*60)

    tests = [
        ("test_module_structure.py", "Module Structure Validation"),
        ("test_configuration.py", "Configuration and Platform"),
        ("test_error_classification.py", "Error Classification"),
        ("test_command_runner.py", "Command Runner"),
        ("test_branch_parsing.py", "Branch and Log Parsing"),
        ("test_repository_state.py", "Repository State Probing"),
        ("test_change_set.py", "Change Sets and Commit Resources"),
        ("test_branch_operations.py", "Branch Operations"),
        ("test_change_watcher.py", "Change Watcher"),
        ("test_project_manager.py", "Project Manager"),
        ("test_mcp_server.py", "MCP Server Integration"),
    ]

    root = Path(__file__).parent
    results = []
    for test_file, description in tests:
        if (root / test_file).exists():
            success = run_test(str(root / test_file), description)
            results.append((test_file, description, success))
        else:
            print(f"⚠️  Test file not found: {test_file}")
            results.append((test_file, description, False))

    # Summary
    print(f"\n{'='*60}")
    print("TEST SUITE SUMMARY")
    print("="*60)

    passed = 0
    for test_file, description, success in results:
        status = "✅ PASS" if success else "❌ FAIL"
        print(f"{status} {description}")
        if success:
            passed += 1

    print(f"\nResults: {passed}/{len(results)} tests passed")

    if passed == len(results):
        print("\n🎉 ALL TESTS PASSED!")
        return True
    else:
        print(f"\n⚠️  {len(results) - passed} tests failed")
        return False


if __name__ == "__main__":
    try:
        success = main()
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n\nTest suite interrupted by user")
        sys.exit(1)
