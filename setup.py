"""Setup script for the httptag package."""

from setuptools import setup, find_packages

requires = ["trio>=0.22"]

__version__ = None
exec(open("src/httptag/version.py").read())

setup(
    name="httptag",
    version=__version__,
    description="Describe HTTP requests as text templates and send them with Trio",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["test"]),
    include_package_data=True,
    install_requires=requires,
    extras_require={"test": ["pytest"]},
)
