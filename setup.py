"""
Setup script for sharegraph: publish and duplicate engine for a shared content graph
"""

from setuptools import setup, find_packages

setup(
    name="sharegraph",
    version="1.0.0",
    description="Publish and duplicate engine for a shared content graph",
    long_description="Publishes private canvases and their content as immutable public snapshots and duplicates them into new workspaces with every reference rewritten",
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src", exclude=["tests*", "docs*", "examples*"]),
    python_requires=">=3.10",
    install_requires=[
        # Core dependencies
        "pydantic>=2.11.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",

        # Data processing
        "numpy>=1.24.0",
    ],
    extras_require={
        "storage": [
            "redis>=5.0.1",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-mock>=3.10.0",
            "black>=22.0.0",
            "isort>=5.10.0",
            "mypy>=1.0.0",
            "flake8>=4.0.0",
        ],
        "all": [
            "redis>=5.0.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "sharegraph=sharegraph.__main__:main",
        ],
    },
    package_data={
        "": ["*.md", "*.txt", "*.json"],
    },
    include_package_data=True,
    author="ShareGraph Team",
    license="MIT",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="sharing publishing duplication content-graph",
)
