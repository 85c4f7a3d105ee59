from setuptools import find_packages, setup


def read_requirements():
    with open("requirements.txt") as f:
        return [line for line in f.read().splitlines() if line and not line.startswith("#")]


setup(
    name="catgrid",
    version="0.3.0",
    description="Keeps a launcher application grid grouped by desktop-entry category",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
    python_requires=">=3.10",
    install_requires=read_requirements(),
    extras_require={
        "gi": [
            "PyGObject",
        ],
        "dev": [
            "pygobject-stubs[Gtk4,Gdk]",
        ],
        "test": [
            "pytest",
        ],
    },
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
)
