"""Setup script for the facematch package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README if it exists
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="facematch-core",
    version="0.1.0",
    description="Face descriptor matching and photo face-record lifecycle",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Photo Gallery Team",
    # scripts/ ships as a package so the console entry points resolve outside the repo
    packages=find_packages(exclude=["tests*", "docs*"]),
    python_requires=">=3.9",
    install_requires=[
        "opencv-python>=4.9.0",
        "numpy>=1.26.0",
        "pandas>=2.2.0",
        "pyarrow>=15.0.0",
        "tqdm>=4.66.0",
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "black",
            "flake8",
            "mypy",
        ],
        "test": [
            "pytest>=7.4.0",
        ],
        "detector": [
            "face_recognition>=1.3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "facematch-faces=scripts.face_ops:main",
            "facematch-bulk-detect=scripts.bulk_detect:main",
            "facematch-export-bank=scripts.export_descriptor_bank:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
    ],
)
