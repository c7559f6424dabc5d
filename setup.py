# setup.py
from setuptools import setup, find_packages

setup(
    name="file-assoc",
    version="2.0.0",
    description="Reset per-file macOS LaunchServices overrides across file trees",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "psutil",
        "setproctitle",
        "tqdm",
        "xattr",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "file-assoc=file_assoc.cli:main",
            "reset-file-associations=file_assoc.cli:reset_main",
        ],
    },
)
