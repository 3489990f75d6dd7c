import setuptools

try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = "Save 'RUN --mount=type=cache' caches on CI platforms"

setuptools.setup(
    name="cache-dance",
    version="0.1.0",
    description="Save 'RUN --mount=type=cache' caches on CI platforms",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=setuptools.find_packages(where="src", include=["cache_dance", "cache_dance.*"]),
    install_requires=[
        "typer",
        "rich",
        "pydantic>=2",
        "python-dotenv",
        "dockerfile-parse",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "cache-dance=cache_dance.cli.main:app",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
    python_requires=">=3.10",
)
