from setuptools import setup, find_packages

setup(
    name="netlab_compute",
    version="0.1.0",
    description="Graph analytics and layout computation engine with an isolated worker-pool dispatcher",
    author="Swift Fox",
    packages=find_packages(exclude=("tests", "docs", "build", "dist")),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "pandas>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7",
            "networkx>=3.0",
        ],
    },
)
