#!/usr/bin/env python3
"""Build Lambda deployment packages."""

import ast
import os
import shutil
import sys
import zipfile
from pathlib import Path
from typing import Iterable, List, Set

LAMBDAS = [
    "lambda_detect_anomalies",
    "lambda_check_interactions",
    "lambda_analyze_lab_report",
]

SHARED_PACKAGE = "ward_signals"
PROJECT_ROOT = Path(__file__).resolve().parent

# Top-level import -> site-packages entries it needs at runtime
DEPENDENCY_PACKAGES = {
    "pydantic": [
        "pydantic",
        "pydantic_core",
        "typing_extensions",
        "typing_inspection",
        "annotated_types",
    ],
    "pydantic_settings": ["pydantic_settings", "python_dotenv", "dotenv"],
    "requests": ["requests", "urllib3", "charset_normalizer", "idna", "certifi"],
    "pandas": ["pandas", "pytz", "python_dateutil", "dateutil", "tzdata", "six"],
    "numpy": ["numpy"],
}

# Provided by the Lambda Python runtime
RUNTIME_PROVIDED = {"boto3", "botocore"}


def imported_modules(source_files: Iterable[Path]) -> Set[str]:
    """Return the top-level absolute imports of the given source files."""
    modules = set()
    for path in source_files:
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                modules.update(alias.name.split(".")[0] for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                modules.add(node.module.split(".")[0])
    return modules


def packages_to_copy(lambda_name: str, root: Path = PROJECT_ROOT) -> List[str]:
    """Resolve the site-packages entries a Lambda's imports pull in.

    Scans the handler and the shared package; stdlib, runtime-provided and
    local modules are skipped, and an unmapped third-party import fails the
    build.
    """
    sources = [root / lambda_name / "handler.py"]
    sources.extend(sorted((root / SHARED_PACKAGE).rglob("*.py")))

    packages = []
    for module in sorted(imported_modules(sources)):
        if module == SHARED_PACKAGE or module in RUNTIME_PROVIDED:
            continue
        if module in sys.stdlib_module_names:
            continue
        if module not in DEPENDENCY_PACKAGES:
            raise ValueError(f"No package mapping for import '{module}' in {lambda_name}")
        for pkg in DEPENDENCY_PACKAGES[module]:
            if pkg not in packages:
                packages.append(pkg)
    return packages


def build_lambda_package(lambda_name: str, site_packages_dir: str, output_dir: str):
    """Build a Lambda deployment package.

    Args:
        lambda_name: Name of the Lambda function (e.g., 'lambda_detect_anomalies').
        site_packages_dir: Directory containing installed Python packages.
        output_dir: Directory to write the ZIP file to.
    """
    print(f"Building {lambda_name}...")

    temp_dir = Path(output_dir) / f"{lambda_name}_temp"
    temp_dir.mkdir(parents=True, exist_ok=True)

    try:
        lambda_dir = Path(lambda_name)
        shutil.copy2(lambda_dir / "handler.py", temp_dir / "handler.py")

        shutil.copytree(
            Path("ward_signals"),
            temp_dir / "ward_signals",
            dirs_exist_ok=True,
            ignore=shutil.ignore_patterns("__pycache__"),
        )

        site_packages = Path(site_packages_dir)
        if site_packages.exists():
            for pkg in packages_to_copy(lambda_name):
                pkg_path = site_packages / pkg
                if pkg_path.exists():
                    if pkg_path.is_dir():
                        shutil.copytree(pkg_path, temp_dir / pkg, dirs_exist_ok=True)
                    else:
                        shutil.copy2(pkg_path, temp_dir / pkg)

                for dist_info in site_packages.glob(f"{pkg}*.dist-info"):
                    shutil.copytree(dist_info, temp_dir / dist_info.name, dirs_exist_ok=True)

            # Shared objects bundled next to the numpy and pandas wheels
            for libs_dir in ("numpy.libs", "pandas.libs"):
                libs_path = site_packages / libs_dir
                if libs_path.exists():
                    shutil.copytree(libs_path, temp_dir / libs_dir, dirs_exist_ok=True)

        zip_path = Path(output_dir) / f"{lambda_name}.zip"
        with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zipf:
            for root, dirs, files in os.walk(temp_dir):
                for file in files:
                    file_path = Path(root) / file
                    zipf.write(file_path, file_path.relative_to(temp_dir))

        print(f"✓ Built {zip_path}")

    finally:
        if temp_dir.exists():
            shutil.rmtree(temp_dir)


def main():
    """Main build function."""
    site_packages = sys.argv[1] if len(sys.argv) > 1 else "packages"
    output_dir = "dist"

    Path(output_dir).mkdir(parents=True, exist_ok=True)

    for lambda_name in LAMBDAS:
        build_lambda_package(lambda_name, site_packages, output_dir)

    print(f"\n✓ All Lambda packages built successfully in {output_dir}/")


if __name__ == "__main__":
    main()
