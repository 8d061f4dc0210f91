import runpy
from setuptools import setup

__version__ = runpy.run_path("aiaa_client/__version__.py")["__version__"]

setup(
    name="aiaa_client",
    version=__version__,
    description="Client for point based 3D annotation with an AIAA inference server",
    packages=["aiaa_client"],
    license="MIT",
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "imageio",
        "tifffile",
        "scikit-image",
        "requests",
        "SimpleITK",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "aiaa_client.dextr3d = aiaa_client.dextr3d:main",
        ]
    }
)
