from setuptools import setup, find_packages
import os
import io

here = os.path.abspath(os.path.dirname(__file__))
package_dir = os.path.join(here, "src", "squidconfig")

# Read the version without importing the package and its dependencies
version = {}
with io.open(os.path.join(package_dir, "version.py"), encoding="utf-8") as ff:
    exec(ff.read(), version)
__version__ = version["__version__"]

# Get the long description from the README file
with io.open(os.path.join(package_dir, "README.squidconfig.rst"), encoding="utf-8") as ff:
    long_description = ff.read()

setup(
    name="squidconfig",
    version=__version__,
    description="Derive C/C++ include directories and predefined macros from build logs",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    python_requires=">=3.9",
    license="LGPLv3+",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "Topic :: Software Development :: Quality Assurance",
        "License :: OSI Approved :: GNU Lesser General Public License v3 or later (LGPLv3+)",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13"
    ],
    keywords="c++ msvc build-log static-analysis preprocessor",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={
        "squidconfig": [ff for ff in os.listdir(package_dir) if ff.startswith("README")]
        + ["samples/buildlogs/*.txt"],
    },
    include_package_data=True,
    install_requires=[
        "configargparse>=1.5.3",
        "appdirs>=1.4.4",
        "rich>=12.0.0",
        "rich_rst>=1.1.7",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    scripts=[ff for ff in os.listdir(here) if ff.startswith("squidconfig-")],
)
