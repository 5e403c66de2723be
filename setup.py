from setuptools import setup

package_name = "exprscan"

setup(
    name=package_name,
    version="0.0.1",
    packages=[package_name],
    package_data={package_name: ["grammars/*.peg"]},
    python_requires=">=3.11",
    install_requires=["setuptools", "psutil"],
    extras_require={
        "test": ["pytest"],
    },
    zip_safe=False,
    maintainer="Dawid Seredyński",
    description="Parse source files with a PEG grammar and list the unique expressions they contain.",
    license="Apache-2.0",
    entry_points={
        "console_scripts": [
            "exprscan = exprscan.cli:main",
        ],
    },
)
