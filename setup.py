import io
import os
import re

from setuptools import find_packages, setup


with io.open("sat_reportbuilder/__init__.py", "rt", encoding="utf8") as f:
    version = re.search(r"__version__ = \"(.*?)\"", f.read()).group(1)


def fpath(name):
    return os.path.join(os.path.dirname(__file__), name)


def read(fname):
    return open(fpath(fname)).read()


def desc():
    return read("README.rst")


setup(
    name="SAT-ReportBuilder",
    version=version,
    license="BSD",
    author="Cully Engineering",
    description=(
        "Site Acceptance Test report management: a multi-step report wizard,"
        " a Technical Manager / Project Manager approval workflow, audit trail"
        " and Excel export, served as a Flask REST API."
    ),
    long_description=desc(),
    long_description_content_type="text/x-rst",
    packages=find_packages(exclude=["tests*"]),
    entry_points={
        "console_scripts": ["sat-reportbuilder = sat_reportbuilder.app:cli"],
    },
    include_package_data=True,
    zip_safe=False,
    platforms="any",
    install_requires=[
        "apispec[yaml]>=6.0.0, <7",
        "bleach>=6.0.0, <7",
        "click>=8, <9",
        "Flask>=2.2.5, <3.0.0",
        "Flask-Cors>=3.0.10, <7",
        "Flask-JWT-Extended>=4.0.0, <5.0.0",
        "Flask-Limiter>3,<4",
        "Flask-SQLAlchemy>=3.0, <4",
        "marshmallow>=3.18.0, <4",
        "marshmallow-sqlalchemy>=1.0.0, <2.0.0",
        "openpyxl>=3.0.0, <4.0.0",
        "python-dateutil>=2.3, <3",
        "PyJWT>=2.0.0, <3.0.0",
        "SQLAlchemy>=1.4.40, <3",
        "werkzeug>=2.3, <3",
    ],
    extras_require={
        "testing": ["pytest>=7"],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Web Environment",
        "Framework :: Flask",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires="~=3.9",
)
