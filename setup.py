from setuptools import setup, find_packages

setup(
    name="swarm-loopguard",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "pydantic>=2.5",
        "structlog>=23.1",
        "httpx>=0.25",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "numpy>=1.24",
        "filelock>=3.12",
    ],
    extras_require={
        "semantic": ["sentence-transformers>=2.2"],
        "test": ["pytest>=7.4"],
    },
    entry_points={
        "console_scripts": [
            "swarm-loopguard=swarm_loopguard.cli:main",
        ],
    },
    description="Persistent multi-type loop detection for multi-agent LLM swarms.",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
)
